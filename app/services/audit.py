import enum
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.orm import Session

from app.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


def _sanitize(obj: Any) -> Any:
    """Make nested pydantic models, enums and dates storable in a JSON column."""
    if hasattr(obj, "model_dump"):
        return _sanitize(obj.model_dump())
    if isinstance(obj, dict):
        return {k: _sanitize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_sanitize(i) for i in obj]
    if isinstance(obj, enum.Enum):
        return obj.value
    if isinstance(obj, (date, datetime)):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return float(obj)
    return obj


class AuditService:
    """
    Append-only audit sink for ledger operations.

    Entries are written in their own commit, after the domain transaction has
    been committed. A failure here is logged and swallowed: it never turns a
    successful ledger operation into an error for the caller.
    """

    def log_action(
        self,
        db: Session,
        *,
        action: str,
        module: str,
        entity_type: str,
        entity_id: Optional[int],
        performed_by: int,
        employee_id: Optional[int] = None,
        status: str = "success",
        previous_data: Optional[dict] = None,
        new_data: Optional[dict] = None,
        details: Optional[dict] = None,
    ) -> Optional[AuditLog]:
        try:
            entry = AuditLog(
                action=action,
                module=module,
                entity_type=entity_type,
                entity_id=entity_id,
                performed_by=performed_by,
                employee_id=employee_id,
                status=status,
                previous_data=_sanitize(previous_data),
                new_data=_sanitize(new_data),
                details=_sanitize(details),
            )
            db.add(entry)
            db.commit()
            return entry
        except Exception as e:
            db.rollback()
            logger.error(f"FAILED TO AUDIT LOG {action} for {entity_type}#{entity_id}: {e}", exc_info=True)
            return None
