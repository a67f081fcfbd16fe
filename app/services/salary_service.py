"""
Salary Ledger Service

This module provides the business logic layer for salary records.
It encapsulates all database access, keeping the router focused on HTTP
request/response handling.

Architecture:
- Router -> SalaryLedger (this module) -> Models
- Stored amounts are always derived via compute_salary_amounts()
- A paid record is immutable: no update, delete or second payment
- (employee_id, month, year) uniqueness is enforced by the database; the
  existence check here only produces the friendlier message first
"""

import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import AppException, BadRequestError, DuplicatePeriodError, NotFoundError
from app.models.salary import PaymentMethod, SalaryRecord, SalaryStatus
from app.models.user import User, UserRole, UserStatus
from app.schemas.salary import (
    BulkFailure,
    BulkSalaryResult,
    MonthAmount,
    SalaryPage,
    SalaryQuery,
    SalaryResponse,
    SalaryStatisticsResponse,
    SalaryStructure,
    SalaryUpdate,
    StatusAmount,
)
from app.services.audit import AuditService
from app.services.ledger_utils import page_window, pagination_block, round2
from app.services.notification import NotificationService
from app.services.salary_calc import compute_salary_amounts

logger = logging.getLogger(__name__)

MODULE = "salary"
ENTITY = "Salary"
NULLABLE_UPDATE_FIELDS = ("credit_date", "remarks")

# Used for bulk generation until per-employee contracts exist
DEFAULT_SALARY_STRUCTURE = SalaryStructure(
    basic=30000,
    hra=12000,
    medical_allowance=2000,
    transport_allowance=1500,
    other_allowances=1000,
    bonus=0,
    provident_fund=3600,
    professional_tax=200,
    income_tax=5000,
    other_deductions=0,
)


def _validate_days(working_days: int, present_days: int, leave_days: int, absent_days: int) -> None:
    if min(working_days, present_days, leave_days, absent_days) < 0:
        raise BadRequestError("Day counts cannot be negative")
    if present_days + absent_days > working_days:
        raise BadRequestError("Present days + absent days cannot exceed working days")


def _amounts_snapshot(salary: SalaryRecord) -> Dict[str, Any]:
    return {
        "status": salary.status,
        "gross_salary": salary.gross_salary,
        "total_deductions": salary.total_deductions,
        "net_salary": salary.net_salary,
    }


class SalaryLedger:
    def __init__(
        self,
        audit: AuditService,
        notifier: NotificationService,
        default_structure: SalaryStructure = DEFAULT_SALARY_STRUCTURE,
        default_working_days: int = settings.default_working_days,
    ):
        self._audit = audit
        self._notifier = notifier
        self._default_structure = default_structure
        self._default_working_days = default_working_days

    def _get_for_update(self, db: Session, salary_id: int) -> SalaryRecord:
        # Row lock on PostgreSQL; SQLite serialises writers anyway
        salary = db.query(SalaryRecord).filter(SalaryRecord.id == salary_id).with_for_update().first()
        if not salary:
            raise NotFoundError("Salary record not found")
        return salary

    def create_salary(
        self,
        db: Session,
        employee_id: int,
        month: int,
        year: int,
        structure: Union[SalaryStructure, Mapping[str, Any]],
        gross_salary: Optional[float],
        total_deductions: Optional[float],
        net_salary: Optional[float],
        working_days: int,
        present_days: int,
        leave_days: int,
        absent_days: int,
        is_prorated: bool,
        created_by: int,
        credit_date: Optional[date] = None,
        remarks: Optional[str] = None,
    ) -> SalaryRecord:
        """
        Create the salary record of an employee for one period.

        gross_salary, total_deductions and net_salary are accepted for API
        compatibility only; the stored figures are recomputed from `structure`.

        Raises:
            NotFoundError: employee does not exist
            DuplicatePeriodError: a record for the period already exists
            BadRequestError: invalid period or day counts
        """
        if not db.get(User, employee_id):
            raise NotFoundError("User not found")
        if not 1 <= month <= 12 or year < 2020:
            raise BadRequestError(f"Invalid salary period {month}/{year}")

        existing = db.query(SalaryRecord.id).filter(
            SalaryRecord.employee_id == employee_id,
            SalaryRecord.month == month,
            SalaryRecord.year == year
        ).first()
        if existing:
            raise DuplicatePeriodError(month, year)

        _validate_days(working_days, present_days, leave_days, absent_days)
        try:
            structure = SalaryStructure.model_validate(structure)
        except ValidationError as e:
            raise BadRequestError("Invalid salary structure", details={"errors": e.errors(include_url=False)})

        amounts = compute_salary_amounts(structure.model_dump(), working_days, present_days, is_prorated)
        supplied = (gross_salary, total_deductions, net_salary)
        if any(v is not None for v in supplied) and supplied != (
            amounts.gross_salary, amounts.total_deductions, amounts.net_salary
        ):
            logger.info(
                f"Caller-supplied amounts {supplied} for employee {employee_id} {month}/{year} "
                f"replaced by computed {amounts}"
            )

        salary = SalaryRecord(
            employee_id=employee_id,
            month=month,
            year=year,
            structure=structure.model_dump(),
            gross_salary=amounts.gross_salary,
            total_deductions=amounts.total_deductions,
            net_salary=amounts.net_salary,
            working_days=working_days,
            present_days=present_days,
            leave_days=leave_days,
            absent_days=absent_days,
            is_prorated=is_prorated,
            credit_date=credit_date,
            remarks=remarks,
            created_by=created_by,
            status=SalaryStatus.PENDING.value,
        )
        db.add(salary)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise DuplicatePeriodError(month, year)
        db.refresh(salary)
        logger.info(f"Salary {salary.id} created for employee {employee_id} ({month}/{year})")

        self._audit.log_action(
            db,
            action="SALARY_CREATED",
            module=MODULE,
            entity_type=ENTITY,
            entity_id=salary.id,
            performed_by=created_by,
            employee_id=employee_id,
            new_data=_amounts_snapshot(salary),
            details={"employee_id": employee_id, "month": month, "year": year, "net_salary": amounts.net_salary},
        )
        return salary

    def update_salary_status(self, db: Session, salary_id: int, status: str, actor_id: int) -> SalaryRecord:
        try:
            new_status = SalaryStatus(status).value
        except ValueError:
            raise BadRequestError(f"Invalid salary status '{status}'")

        salary = self._get_for_update(db, salary_id)
        previous_status = salary.status
        if previous_status == SalaryStatus.PAID.value and new_status != previous_status:
            logger.warning(f"Salary {salary_id} moved out of paid to {new_status} by {actor_id}")

        salary.status = new_status
        if new_status in (SalaryStatus.PROCESSED.value, SalaryStatus.PAID.value) and new_status != previous_status:
            salary.processed_by = actor_id
            salary.processed_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(salary)

        self._audit.log_action(
            db,
            action="SALARY_STATUS_UPDATED",
            module=MODULE,
            entity_type=ENTITY,
            entity_id=salary.id,
            performed_by=actor_id,
            employee_id=salary.employee_id,
            previous_data={"status": previous_status},
            new_data={"status": new_status},
        )
        # Repeated "paid" updates must not notify twice
        if new_status == SalaryStatus.PAID.value and previous_status != SalaryStatus.PAID.value:
            self._notifier.send_salary_paid(db, salary.employee, salary)
        return salary

    def process_salary_payment(
        self,
        db: Session,
        salary_id: int,
        payment_method: str,
        processed_by: int,
        transaction_id: Optional[str] = None,
        actual_credit_date: Optional[datetime] = None,
        remarks: Optional[str] = None,
    ) -> SalaryRecord:
        try:
            payment_method = PaymentMethod(payment_method).value
        except ValueError:
            raise BadRequestError(f"Invalid payment method '{payment_method}'")

        salary = self._get_for_update(db, salary_id)
        if salary.status == SalaryStatus.PAID.value:
            raise BadRequestError("Salary already paid")

        previous = _amounts_snapshot(salary)
        now = datetime.now(timezone.utc)
        salary.status = SalaryStatus.PAID.value
        salary.payment_method = payment_method
        salary.transaction_id = transaction_id
        salary.actual_credit_date = actual_credit_date or now
        salary.processed_by = processed_by
        salary.processed_at = now
        if remarks:
            salary.remarks = remarks
        db.commit()
        db.refresh(salary)
        logger.info(f"Salary {salary_id} paid via {payment_method} by {processed_by}")

        self._audit.log_action(
            db,
            action="SALARY_PAID",
            module=MODULE,
            entity_type=ENTITY,
            entity_id=salary.id,
            performed_by=processed_by,
            employee_id=salary.employee_id,
            previous_data=previous,
            new_data=_amounts_snapshot(salary),
            details={
                "payment_method": payment_method,
                "transaction_id": transaction_id,
                "amount": salary.net_salary,
            },
        )
        self._notifier.send_salary_paid(db, salary.employee, salary)
        return salary

    def update_salary(
        self,
        db: Session,
        salary_id: int,
        update_data: Union[SalaryUpdate, Mapping[str, Any]],
        actor_id: int,
    ) -> SalaryRecord:
        try:
            update_data = SalaryUpdate.model_validate(update_data)
        except ValidationError as e:
            raise BadRequestError("Invalid salary update", details={"errors": e.errors(include_url=False)})

        salary = self._get_for_update(db, salary_id)
        if salary.status == SalaryStatus.PAID.value:
            raise BadRequestError("Cannot update paid salary. Please contact system administrator.")

        # credit_date and remarks may be cleared with an explicit null
        changes = {
            k: v for k, v in update_data.model_dump(exclude_unset=True).items()
            if v is not None or k in NULLABLE_UPDATE_FIELDS
        }

        # Build the merged state first so a rejected update leaves the record untouched
        structure = dict(salary.structure or {})
        if "structure" in changes:
            structure.update({k: v for k, v in changes["structure"].items() if v is not None})
        working_days = changes.get("working_days", salary.working_days)
        present_days = changes.get("present_days", salary.present_days)
        leave_days = changes.get("leave_days", salary.leave_days)
        absent_days = changes.get("absent_days", salary.absent_days)
        is_prorated = changes.get("is_prorated", salary.is_prorated)
        _validate_days(working_days, present_days, leave_days, absent_days)

        previous = _amounts_snapshot(salary)
        amounts = compute_salary_amounts(structure, working_days, present_days, is_prorated)

        salary.structure = structure
        salary.working_days = working_days
        salary.present_days = present_days
        salary.leave_days = leave_days
        salary.absent_days = absent_days
        salary.is_prorated = is_prorated
        if "credit_date" in changes:
            salary.credit_date = changes["credit_date"]
        if "remarks" in changes:
            salary.remarks = changes["remarks"]
        salary.gross_salary = amounts.gross_salary
        salary.total_deductions = amounts.total_deductions
        salary.net_salary = amounts.net_salary
        db.commit()
        db.refresh(salary)

        self._audit.log_action(
            db,
            action="SALARY_UPDATED",
            module=MODULE,
            entity_type=ENTITY,
            entity_id=salary.id,
            performed_by=actor_id,
            employee_id=salary.employee_id,
            previous_data=previous,
            new_data=_amounts_snapshot(salary),
            details={"updates": sorted(changes.keys())},
        )
        return salary

    def delete_salary(self, db: Session, salary_id: int, actor_id: int) -> Dict[str, str]:
        salary = self._get_for_update(db, salary_id)
        if salary.status == SalaryStatus.PAID.value:
            raise BadRequestError("Cannot delete paid salary. Please contact system administrator.")

        snapshot = {
            "employee_id": salary.employee_id,
            "month": salary.month,
            "year": salary.year,
            **_amounts_snapshot(salary),
        }
        db.delete(salary)
        db.commit()
        logger.info(f"Salary {salary_id} deleted by {actor_id}")

        self._audit.log_action(
            db,
            action="SALARY_DELETED",
            module=MODULE,
            entity_type=ENTITY,
            entity_id=salary_id,
            performed_by=actor_id,
            employee_id=snapshot["employee_id"],
            previous_data=snapshot,
        )
        return {"message": "Salary record deleted successfully"}

    def generate_bulk_salaries(
        self, db: Session, month: int, year: int, created_by: int, department: Optional[str] = None
    ) -> BulkSalaryResult:
        """
        Create default salary records for every active employee.

        Each employee is committed on its own: one failure is recorded and the
        batch carries on.
        """
        query = db.query(User).filter(
            User.status == UserStatus.ACTIVE.value,
            User.role == UserRole.EMPLOYEE
        )
        if department:
            query = query.filter(User.department == department)
        employee_ids = [u.id for u in query.order_by(User.id).all()]

        if not employee_ids:
            raise NotFoundError("No active employees found")

        results = BulkSalaryResult()
        working_days = self._default_working_days
        for employee_id in employee_ids:
            existing = db.query(SalaryRecord.id).filter(
                SalaryRecord.employee_id == employee_id,
                SalaryRecord.month == month,
                SalaryRecord.year == year
            ).first()
            if existing:
                results.failed.append(BulkFailure(employee_id=employee_id, reason="Salary already exists"))
                continue

            try:
                self.create_salary(
                    db,
                    employee_id,
                    month,
                    year,
                    self._default_structure,
                    None, None, None,
                    working_days,
                    working_days,  # present days, until attendance feeds in
                    0,
                    0,
                    False,
                    created_by,
                )
                results.success.append(employee_id)
            except DuplicatePeriodError:
                # Another writer created it after the existence check above
                results.failed.append(BulkFailure(employee_id=employee_id, reason="Salary already exists"))
            except AppException as e:
                results.failed.append(BulkFailure(employee_id=employee_id, reason=e.message))
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Bulk salary generation failed for employee {employee_id}: {e}", exc_info=True)
                results.failed.append(BulkFailure(employee_id=employee_id, reason="Database error"))

        logger.info(
            f"Bulk salary generation {month}/{year}: {len(results.success)} created, {len(results.failed)} failed"
        )
        return results

    # ------------------------------------------------------------------
    # Read-only projections
    # ------------------------------------------------------------------

    def _list(self, db: Session, query: SalaryQuery) -> SalaryPage:
        q = db.query(SalaryRecord)
        if query.employee_id is not None:
            q = q.filter(SalaryRecord.employee_id == query.employee_id)
        if query.year:
            q = q.filter(SalaryRecord.year == query.year)
        if query.month:
            q = q.filter(SalaryRecord.month == query.month)
        if query.status:
            q = q.filter(SalaryRecord.status == query.status.value)
        if query.department:
            q = q.filter(SalaryRecord.employee_id.in_(select(User.id).where(User.department == query.department)))

        total = q.count()
        skip, limit = page_window(query.page, query.limit)
        salaries = (
            q.order_by(SalaryRecord.year.desc(), SalaryRecord.month.desc(), SalaryRecord.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )
        return SalaryPage(
            salaries=[SalaryResponse.model_validate(s) for s in salaries],
            pagination=pagination_block(total, query.page, limit),
        )

    def get_my_salaries(
        self,
        db: Session,
        employee_id: int,
        year: Optional[int] = None,
        month: Optional[int] = None,
        page: int = 1,
        limit: int = settings.default_page_size,
    ) -> SalaryPage:
        return self._list(db, SalaryQuery(employee_id=employee_id, year=year, month=month, page=page, limit=limit))

    def get_all_salaries(self, db: Session, query: Optional[SalaryQuery] = None) -> SalaryPage:
        return self._list(db, query or SalaryQuery())

    def get_salary_by_id(self, db: Session, salary_id: int) -> SalaryRecord:
        salary = db.get(SalaryRecord, salary_id)
        if not salary:
            raise NotFoundError("Salary record not found")
        return salary

    def get_salary_statistics(
        self, db: Session, year: Optional[int] = None, department: Optional[str] = None
    ) -> SalaryStatisticsResponse:
        target_year = year or date.today().year
        filters = [SalaryRecord.year == target_year]
        if department:
            filters.append(SalaryRecord.employee_id.in_(select(User.id).where(User.department == department)))

        by_status = {s.value: StatusAmount() for s in SalaryStatus}
        status_rows = (
            db.query(SalaryRecord.status, func.count(SalaryRecord.id), func.sum(SalaryRecord.net_salary))
            .filter(*filters)
            .group_by(SalaryRecord.status)
            .all()
        )
        for status, count, total in status_rows:
            by_status[status] = StatusAmount(count=count, total_amount=round2(total or 0))

        month_rows = (
            db.query(
                SalaryRecord.month,
                func.count(SalaryRecord.id),
                func.sum(SalaryRecord.net_salary),
                func.avg(SalaryRecord.net_salary),
            )
            .filter(*filters)
            .group_by(SalaryRecord.month)
            .order_by(SalaryRecord.month)
            .all()
        )
        by_month = [
            MonthAmount(month=month, count=count, total_amount=round2(total or 0), avg_salary=round2(avg or 0))
            for month, count, total, avg in month_rows
        ]
        return SalaryStatisticsResponse(year=target_year, by_status=by_status, by_month=by_month)
