"""
Audit logging for posting events.

Every change that moves a customer's balance (invoice, payment, discount,
adjustment, opening balance) is written as one JSON line to the "audit"
logger so a balance can be reconstructed from the log when rows disagree.
"""
import logging
import json
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, Dict

# Separate logger for audit events (can be shipped to centralized logging)
audit_logger = logging.getLogger("audit")


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value


class AuditLog:
    """Central audit logging for posting events."""

    @staticmethod
    def log_action(
        action: str,  # "create", "update", "delete", "cancel", "status"
        resource_type: str,  # "customer", "invoice", "payment", "discount", "ledger"
        resource_id: int,
        customer_id: Optional[int] = None,
        changes: Optional[Dict[str, Any]] = None,
    ):
        """
        Log business-critical actions.

        Usage:
            AuditLog.log_action("create", "payment", 12, customer_id=3, changes={"amount": "4500.00"})
            AuditLog.log_action("delete", "invoice", 7, customer_id=3)
        """
        log_entry = {
            "timestamp": datetime.utcnow().isoformat(),
            "event_type": f"{resource_type}.{action}",
            "resource_id": resource_id,
        }

        if customer_id is not None:
            log_entry["customer_id"] = customer_id
        if changes:
            log_entry["changes"] = _jsonable(changes)

        audit_logger.info(json.dumps(log_entry))

    @staticmethod
    def log_balance_drift(customer_id: int, stored, recomputed):
        """
        Log a customer whose stored current balance disagreed with the ledger.

        Drift happens when two sessions post to the same customer at once;
        the rebuild fixes the stored value, this records that it happened.
        """
        log_entry = {
            "timestamp": datetime.utcnow().isoformat(),
            "event_severity": "WARNING",
            "event_type": "ledger.balance_drift",
            "customer_id": customer_id,
            "stored": _jsonable(stored),
            "recomputed": _jsonable(recomputed),
        }

        audit_logger.warning(json.dumps(log_entry))
