"""Company settings: name, contact, currency and numbering prefixes."""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ledgerbook.api.deps import get_db
from ledgerbook.schemas.settings import CompanySettingsResponse, CompanySettingsUpdate
from ledgerbook.services import settings_service

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=CompanySettingsResponse)
def get_settings(db: Session = Depends(get_db)):
    row = settings_service.get_company_settings(db)
    db.commit()
    return row


@router.patch("", response_model=CompanySettingsResponse)
def update_settings(data: CompanySettingsUpdate, db: Session = Depends(get_db)):
    logger.info(f"[SETTINGS] Update request: {data.model_dump(exclude_unset=True)}")
    return settings_service.update_company_settings(db, data)
