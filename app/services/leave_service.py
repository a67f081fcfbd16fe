"""
Leave Ledger Service

Owns the leave-request lifecycle and the yearly per-employee balance ledger.

Architecture:
- Router -> LeaveLedger (this module) -> Models
- Balance rows are mutated only through single conditional UPDATE statements,
  so concurrent approvals/cancellations against the same (employee, year, type)
  row cannot lose updates and a debit can never push `remaining` below zero.
- Status transitions are compare-and-set on the current status.
- Audit and notification writes happen after the domain commit and never fail
  the operation.
"""

import logging
from datetime import date, datetime, timezone
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Type

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import BadRequestError, ForbiddenError, NotFoundError
from app.models.leave_balance import LeaveBalance
from app.models.leave_request import (
    BALANCE_TRACKED_TYPES,
    HalfDayPeriod,
    LeaveRequest,
    LeaveStatus,
    LeaveType,
)
from app.models.notification import NotificationType
from app.models.user import User
from app.schemas.leave import (
    LeaveBalanceResponse,
    LeavePage,
    LeaveQuery,
    LeaveRequestResponse,
    LeaveStatisticsResponse,
    LeaveTypeBalance,
    StatusTotals,
    UnpaidBalance,
)
from app.services.audit import AuditService
from app.services.ledger_utils import count_leave_days, page_window, pagination_block
from app.services.notification import NotificationService

logger = logging.getLogger(__name__)

# Every (employee, year) balance consists of exactly these rows
BALANCE_ROW_TYPES = BALANCE_TRACKED_TYPES + (LeaveType.UNPAID.value,)

MODULE = "leave"
ENTITY = "Leave"


def _coerce(enum_cls: Type[Enum], value, label: str) -> str:
    try:
        return enum_cls(value).value
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise BadRequestError(f"Invalid {label} '{value}'. Allowed: {allowed}")


class LeaveLedger:
    def __init__(
        self,
        audit: AuditService,
        notifier: NotificationService,
        entitlements: Optional[Dict[str, float]] = None,
        today: Callable[[], date] = date.today,
    ):
        self._audit = audit
        self._notifier = notifier
        self._entitlements = entitlements if entitlements is not None else settings.leave.entitlements()
        self._today = today

    # ------------------------------------------------------------------
    # Balance ledger
    # ------------------------------------------------------------------

    def _ensure_balance(self, db: Session, employee_id: int, year: int) -> Dict[str, LeaveBalance]:
        """Load the (employee, year) balance rows, creating the missing ones with default entitlements."""
        rows = db.query(LeaveBalance).filter(
            LeaveBalance.employee_id == employee_id,
            LeaveBalance.year == year
        ).all()
        present = {row.leave_type for row in rows}
        missing = [t for t in BALANCE_ROW_TYPES if t not in present]
        if not missing:
            return {row.leave_type: row for row in rows}

        for leave_type in missing:
            total = float(self._entitlements.get(leave_type, 0.0))
            db.add(LeaveBalance(
                employee_id=employee_id,
                year=year,
                leave_type=leave_type,
                total_days=total,
                used_days=0.0,
                remaining_days=total,
            ))
        try:
            db.commit()
            logger.info(f"Created {year} leave balance for employee {employee_id}")
        except IntegrityError:
            # Another request created the same rows first; theirs are equivalent
            db.rollback()
            logger.info(f"Leave balance for employee {employee_id}/{year} created concurrently, reloading")

        rows = db.query(LeaveBalance).filter(
            LeaveBalance.employee_id == employee_id,
            LeaveBalance.year == year
        ).all()
        return {row.leave_type: row for row in rows}

    def _debit(self, db: Session, employee_id: int, year: int, leave_type: str, days: float) -> bool:
        """Atomically consume `days` if enough remains. Returns False when the guard rejects it."""
        stmt = (
            update(LeaveBalance)
            .where(
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.year == year,
                LeaveBalance.leave_type == leave_type,
                LeaveBalance.remaining_days >= days,
            )
            # SET expressions read the pre-update row (SQLite, PostgreSQL); MySQL would not
            .values(
                used_days=LeaveBalance.used_days + days,
                remaining_days=LeaveBalance.total_days - LeaveBalance.used_days - days,
            )
            .execution_options(synchronize_session=False)
        )
        return db.execute(stmt).rowcount == 1

    def _credit(self, db: Session, employee_id: int, year: int, leave_type: str, days: float) -> bool:
        stmt = (
            update(LeaveBalance)
            .where(
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.year == year,
                LeaveBalance.leave_type == leave_type,
                LeaveBalance.used_days >= days,
            )
            # Same pre-update semantics as _debit
            .values(
                used_days=LeaveBalance.used_days - days,
                remaining_days=LeaveBalance.total_days - LeaveBalance.used_days + days,
            )
            .execution_options(synchronize_session=False)
        )
        return db.execute(stmt).rowcount == 1

    def _count_unpaid(self, db: Session, employee_id: int, year: int, days: float) -> None:
        # Unpaid leave has no cap, only a usage counter that never drops below zero
        db.execute(
            update(LeaveBalance)
            .where(
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.year == year,
                LeaveBalance.leave_type == LeaveType.UNPAID.value,
                LeaveBalance.used_days + days >= 0,
            )
            .values(used_days=LeaveBalance.used_days + days)
            .execution_options(synchronize_session=False)
        )

    def get_leave_balance(self, db: Session, employee_id: int, year: Optional[int] = None) -> LeaveBalanceResponse:
        target_year = year or self._today().year
        rows = self._ensure_balance(db, employee_id, target_year)

        def _typed(leave_type: str) -> LeaveTypeBalance:
            row = rows[leave_type]
            return LeaveTypeBalance(total=row.total_days, used=row.used_days, remaining=row.remaining_days)

        return LeaveBalanceResponse(
            employee_id=employee_id,
            year=target_year,
            casual=_typed(LeaveType.CASUAL.value),
            sick=_typed(LeaveType.SICK.value),
            paid=_typed(LeaveType.PAID.value),
            unpaid=UnpaidBalance(used=rows[LeaveType.UNPAID.value].used_days),
        )

    # ------------------------------------------------------------------
    # Request lifecycle
    # ------------------------------------------------------------------

    def _get_leave(self, db: Session, leave_id: int) -> LeaveRequest:
        leave = db.get(LeaveRequest, leave_id)
        if not leave:
            raise NotFoundError("Leave request not found")
        return leave

    def _transition(self, db: Session, leave_id: int, from_statuses: Iterable[str], **values) -> bool:
        """Compare-and-set the status of a request; False if someone else moved it first."""
        stmt = (
            update(LeaveRequest)
            .where(LeaveRequest.id == leave_id, LeaveRequest.status.in_(list(from_statuses)))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return db.execute(stmt).rowcount == 1

    def apply_leave(
        self,
        db: Session,
        employee_id: int,
        leave_type: str,
        start_date: date,
        end_date: date,
        reason: str,
        is_half_day: bool = False,
        half_day_period: Optional[str] = None,
        attachments: Optional[List[str]] = None,
    ) -> LeaveRequest:
        leave_type = _coerce(LeaveType, leave_type, "leave type")
        today = self._today()

        if not reason or not reason.strip():
            raise BadRequestError("Reason is required")
        if start_date < today:
            raise BadRequestError("Cannot apply for leave in the past")
        if end_date < start_date:
            raise BadRequestError("End date must be after or equal to start date")

        if is_half_day:
            if not half_day_period:
                raise BadRequestError("Half day period is required for half day leave")
            half_day_period = _coerce(HalfDayPeriod, half_day_period, "half day period")
        total_days = count_leave_days(start_date, end_date, is_half_day)

        overlapping = db.query(LeaveRequest).filter(
            LeaveRequest.employee_id == employee_id,
            LeaveRequest.status.in_([LeaveStatus.PENDING.value, LeaveStatus.APPROVED.value]),
            LeaveRequest.start_date <= end_date,
            LeaveRequest.end_date >= start_date,
        ).first()
        if overlapping:
            raise BadRequestError("You already have a leave request for this date range")

        # Advisory only: the authoritative check happens at approval
        if leave_type in BALANCE_TRACKED_TYPES:
            balance = self._ensure_balance(db, employee_id, today.year)[leave_type]
            if balance.remaining_days < total_days:
                raise BadRequestError(
                    f"Insufficient {leave_type} leave balance. Available: {balance.remaining_days:g} days"
                )

        leave = LeaveRequest(
            employee_id=employee_id,
            leave_type=leave_type,
            start_date=start_date,
            end_date=end_date,
            total_days=total_days,
            reason=reason,
            is_half_day=is_half_day,
            half_day_period=half_day_period if is_half_day else None,
            attachments=list(attachments or []),
            status=LeaveStatus.PENDING.value,
        )
        db.add(leave)
        db.commit()
        db.refresh(leave)
        logger.info(f"Leave {leave.id} applied by employee {employee_id} ({leave_type}, {total_days:g} days)")

        self._audit.log_action(
            db,
            action="LEAVE_APPLIED",
            module=MODULE,
            entity_type=ENTITY,
            entity_id=leave.id,
            performed_by=employee_id,
            employee_id=employee_id,
            details={
                "leave_type": leave_type,
                "start_date": start_date,
                "end_date": end_date,
                "total_days": total_days,
            },
        )
        return leave

    def approve_leave(self, db: Session, leave_id: int, reviewer_id: int, remarks: Optional[str] = None) -> LeaveRequest:
        leave = self._get_leave(db, leave_id)
        if leave.status != LeaveStatus.PENDING.value:
            raise BadRequestError(f"Leave is already {leave.status}")

        employee_id = leave.employee_id
        leave_type = leave.leave_type
        days = leave.total_days
        year = leave.start_date.year
        if leave_type in BALANCE_ROW_TYPES:
            self._ensure_balance(db, employee_id, year)

        values = {
            "status": LeaveStatus.APPROVED.value,
            "reviewed_by": reviewer_id,
            "reviewed_at": datetime.now(timezone.utc),
        }
        if remarks:
            values["review_remarks"] = remarks
        if not self._transition(db, leave_id, [LeaveStatus.PENDING.value], **values):
            db.rollback()
            raise BadRequestError("Leave request was already reviewed")

        if leave_type in BALANCE_TRACKED_TYPES:
            if not self._debit(db, employee_id, year, leave_type, days):
                db.rollback()
                raise BadRequestError(f"Insufficient {leave_type} leave balance to approve this request")
        elif leave_type == LeaveType.UNPAID.value:
            self._count_unpaid(db, employee_id, year, days)

        # Status and balance land together
        db.commit()
        db.refresh(leave)
        logger.info(f"Leave {leave_id} approved by {reviewer_id}")

        self._audit.log_action(
            db,
            action="LEAVE_APPROVED",
            module=MODULE,
            entity_type=ENTITY,
            entity_id=leave_id,
            performed_by=reviewer_id,
            employee_id=employee_id,
            previous_data={"status": LeaveStatus.PENDING.value},
            new_data={"status": LeaveStatus.APPROVED.value},
            details={"leave_id": leave_id, "employee_id": employee_id, "remarks": remarks},
        )
        self._notifier.notify_user(
            db,
            employee_id,
            "Leave Approved",
            f"Your {leave_type} leave request for {days:g} day(s) has been APPROVED.",
            NotificationType.SUCCESS.value,
            link=f"/leaves/{leave_id}",
        )
        return leave

    def reject_leave(self, db: Session, leave_id: int, reviewer_id: int, remarks: str) -> LeaveRequest:
        if not remarks or not remarks.strip():
            raise BadRequestError("Remarks are required to reject a leave request")
        leave = self._get_leave(db, leave_id)
        if leave.status != LeaveStatus.PENDING.value:
            raise BadRequestError(f"Leave is already {leave.status}")

        employee_id = leave.employee_id
        leave_type = leave.leave_type
        if not self._transition(
            db,
            leave_id,
            [LeaveStatus.PENDING.value],
            status=LeaveStatus.REJECTED.value,
            reviewed_by=reviewer_id,
            reviewed_at=datetime.now(timezone.utc),
            review_remarks=remarks,
        ):
            db.rollback()
            raise BadRequestError("Leave request was already reviewed")
        db.commit()
        db.refresh(leave)
        logger.info(f"Leave {leave_id} rejected by {reviewer_id}")

        self._audit.log_action(
            db,
            action="LEAVE_REJECTED",
            module=MODULE,
            entity_type=ENTITY,
            entity_id=leave_id,
            performed_by=reviewer_id,
            employee_id=employee_id,
            previous_data={"status": LeaveStatus.PENDING.value},
            new_data={"status": LeaveStatus.REJECTED.value},
            details={"leave_id": leave_id, "employee_id": employee_id, "remarks": remarks},
        )
        self._notifier.notify_user(
            db,
            employee_id,
            "Leave Rejected",
            f"Your {leave_type} leave request has been REJECTED. Reason: {remarks}",
            NotificationType.ERROR.value,
            link=f"/leaves/{leave_id}",
        )
        return leave

    def cancel_leave(self, db: Session, leave_id: int, requesting_employee_id: int) -> LeaveRequest:
        leave = self._get_leave(db, leave_id)
        if leave.employee_id != requesting_employee_id:
            raise ForbiddenError("Unauthorized to cancel this leave")
        if leave.status == LeaveStatus.CANCELLED.value:
            raise BadRequestError("Leave is already cancelled")
        if leave.status == LeaveStatus.REJECTED.value:
            raise BadRequestError("Cannot cancel rejected leave")

        previous_status = leave.status
        leave_type = leave.leave_type
        days = leave.total_days
        year = leave.start_date.year
        refund = previous_status == LeaveStatus.APPROVED.value
        if refund and leave_type in BALANCE_ROW_TYPES:
            self._ensure_balance(db, leave.employee_id, year)

        if not self._transition(db, leave_id, [previous_status], status=LeaveStatus.CANCELLED.value):
            db.rollback()
            raise BadRequestError("Leave request changed while cancelling, please retry")

        if refund:
            if leave_type in BALANCE_TRACKED_TYPES:
                if not self._credit(db, requesting_employee_id, year, leave_type, days):
                    logger.warning(
                        f"Refund of {days:g} {leave_type} day(s) for leave {leave_id} exceeded recorded usage; balance left unchanged"
                    )
            elif leave_type == LeaveType.UNPAID.value:
                self._count_unpaid(db, requesting_employee_id, year, -days)

        db.commit()
        db.refresh(leave)
        logger.info(f"Leave {leave_id} cancelled by employee {requesting_employee_id} (was {previous_status})")

        self._audit.log_action(
            db,
            action="LEAVE_CANCELLED",
            module=MODULE,
            entity_type=ENTITY,
            entity_id=leave_id,
            performed_by=requesting_employee_id,
            employee_id=requesting_employee_id,
            previous_data={"status": previous_status},
            new_data={"status": LeaveStatus.CANCELLED.value},
            details={"leave_id": leave_id, "refunded_days": days if refund else 0},
        )
        return leave

    # ------------------------------------------------------------------
    # Read-only projections
    # ------------------------------------------------------------------

    def _list(self, db: Session, query: LeaveQuery) -> LeavePage:
        q = db.query(LeaveRequest)
        if query.status:
            q = q.filter(LeaveRequest.status == query.status.value)
        if query.leave_type:
            q = q.filter(LeaveRequest.leave_type == query.leave_type.value)
        if query.employee_id is not None:
            q = q.filter(LeaveRequest.employee_id == query.employee_id)
        if query.start_date:
            q = q.filter(LeaveRequest.start_date >= query.start_date)
        if query.end_date:
            q = q.filter(LeaveRequest.start_date <= query.end_date)
        if query.department:
            q = q.join(User, LeaveRequest.employee_id == User.id).filter(User.department == query.department)

        total = q.count()
        skip, limit = page_window(query.page, query.limit)
        leaves = (
            q.order_by(LeaveRequest.created_at.desc(), LeaveRequest.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )
        return LeavePage(
            leaves=[LeaveRequestResponse.model_validate(leave) for leave in leaves],
            pagination=pagination_block(total, query.page, limit),
        )

    def get_my_leaves(self, db: Session, employee_id: int, query: Optional[LeaveQuery] = None) -> LeavePage:
        query = query or LeaveQuery()
        # Callers only ever see their own requests
        scoped = query.model_copy(update={"employee_id": employee_id, "department": None})
        return self._list(db, scoped)

    def get_all_leaves(self, db: Session, query: Optional[LeaveQuery] = None) -> LeavePage:
        return self._list(db, query or LeaveQuery())

    def get_pending_leaves(self, db: Session, page: int = 1, limit: int = settings.default_page_size) -> LeavePage:
        return self._list(db, LeaveQuery(status=LeaveStatus.PENDING, page=page, limit=limit))

    def get_leave_by_id(self, db: Session, leave_id: int) -> LeaveRequest:
        return self._get_leave(db, leave_id)

    def get_leave_statistics(
        self, db: Session, employee_id: Optional[int] = None, year: Optional[int] = None
    ) -> LeaveStatisticsResponse:
        target_year = year or self._today().year
        q = db.query(
            LeaveRequest.status,
            func.count(LeaveRequest.id),
            func.coalesce(func.sum(LeaveRequest.total_days), 0.0),
        ).filter(
            LeaveRequest.start_date >= date(target_year, 1, 1),
            LeaveRequest.start_date <= date(target_year, 12, 31),
        )
        if employee_id is not None:
            q = q.filter(LeaveRequest.employee_id == employee_id)

        by_status = {s.value: StatusTotals() for s in LeaveStatus}
        for status, count, total_days in q.group_by(LeaveRequest.status).all():
            by_status[status] = StatusTotals(count=count, total_days=float(total_days or 0))
        return LeaveStatisticsResponse(year=target_year, by_status=by_status)
