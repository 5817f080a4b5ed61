"""Company settings: one row, created on first use."""
import logging

from sqlalchemy.orm import Session

from ledgerbook.core.audit import AuditLog
from ledgerbook.db.init_db import seed_company_settings
from ledgerbook.models.company_settings import CompanySettings
from ledgerbook.schemas.settings import CompanySettingsUpdate

logger = logging.getLogger(__name__)


def get_company_settings(db: Session) -> CompanySettings:
    return seed_company_settings(db, commit=False)


def update_company_settings(db: Session, data: CompanySettingsUpdate) -> CompanySettings:
    row = get_company_settings(db)
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    for key, value in changes.items():
        if key.endswith("_prefix"):
            value = value.upper()
        setattr(row, key, value)
    db.commit()
    db.refresh(row)
    logger.info(f"Company settings updated: {sorted(changes)}")
    AuditLog.log_action("update", "settings", row.id, changes=changes)
    return row


def get_prefix(db: Session, kind: str) -> str:
    """Numbering prefix for "invoice", "payment" or "discount"."""
    row = get_company_settings(db)
    return getattr(row, f"{kind}_prefix")
