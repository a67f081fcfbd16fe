import pytest
from datetime import date
from sqlalchemy.orm import Query

from app.core.exceptions import BadRequestError, DuplicatePeriodError, NotFoundError
from app.models.audit_log import AuditLog
from app.models.notification import Notification
from app.models.salary import SalaryRecord, SalaryStatus
from app.models.user import UserRole, UserStatus
from app.schemas.salary import SalaryQuery

STRUCTURE = {
    "basic": 30000,
    "hra": 12000,
    "medical_allowance": 2000,
    "provident_fund": 3600,
    "professional_tax": 200,
}


def _create(ledger, db, employee, creator, month=3, year=2025, **overrides):
    params = dict(
        structure=STRUCTURE,
        gross_salary=None,
        total_deductions=None,
        net_salary=None,
        working_days=30,
        present_days=30,
        leave_days=0,
        absent_days=0,
        is_prorated=False,
        created_by=creator.id,
    )
    params.update(overrides)
    return ledger.create_salary(db, employee.id, month, year, **params)


def test_create_salary_computes_amounts(db_session, salary_ledger, employee, hr_user):
    salary = _create(salary_ledger, db_session, employee, hr_user)
    assert salary.status == SalaryStatus.PENDING.value
    assert salary.gross_salary == 44000
    assert salary.total_deductions == 3800
    assert salary.net_salary == 40200.00
    assert salary.structure["other_allowances"] == 0

    audit = db_session.query(AuditLog).one()
    assert audit.action == "SALARY_CREATED"
    assert audit.entity_id == salary.id


def test_caller_amounts_are_ignored(db_session, salary_ledger, employee, hr_user):
    salary = _create(
        salary_ledger, db_session, employee, hr_user,
        gross_salary=1, total_deductions=2, net_salary=99999,
    )
    assert salary.net_salary == 40200.00


def test_prorated_create(db_session, salary_ledger, employee, hr_user):
    salary = _create(
        salary_ledger, db_session, employee, hr_user,
        present_days=20, absent_days=10, is_prorated=True,
    )
    assert salary.gross_salary == 44000
    assert salary.net_salary == 26800.00


def test_duplicate_period_rejected(db_session, salary_ledger, employee, hr_user):
    _create(salary_ledger, db_session, employee, hr_user)
    with pytest.raises(BadRequestError, match="Salary for 3/2025 already exists"):
        _create(salary_ledger, db_session, employee, hr_user)
    assert db_session.query(SalaryRecord).count() == 1


def test_unknown_employee_rejected(db_session, salary_ledger, hr_user):
    with pytest.raises(NotFoundError, match="User not found"):
        salary_ledger.create_salary(
            db_session, 999, 3, 2025, STRUCTURE, None, None, None, 30, 30, 0, 0, False, hr_user.id
        )


def test_days_must_fit_working_days(db_session, salary_ledger, employee, hr_user):
    with pytest.raises(BadRequestError, match="cannot exceed working days"):
        _create(salary_ledger, db_session, employee, hr_user, present_days=25, absent_days=6)


def test_invalid_structure_rejected(db_session, salary_ledger, employee, hr_user):
    with pytest.raises(BadRequestError, match="Invalid salary structure"):
        _create(salary_ledger, db_session, employee, hr_user, structure={"basic": -1, "hra": 0})


def test_payment_marks_paid_and_notifies(db_session, salary_ledger, employee, hr_user):
    salary = _create(salary_ledger, db_session, employee, hr_user)
    paid = salary_ledger.process_salary_payment(
        db_session, salary.id, "bank-transfer", hr_user.id, transaction_id="TXN-1"
    )
    assert paid.status == SalaryStatus.PAID.value
    assert paid.processed_by == hr_user.id
    assert paid.actual_credit_date is not None
    assert paid.transaction_id == "TXN-1"

    notification = db_session.query(Notification).filter(Notification.user_id == employee.id).one()
    assert "40200.00" in notification.message
    assert notification.link == f"/salaries/{salary.id}"


def test_paid_record_is_immutable(db_session, salary_ledger, employee, hr_user, admin_user):
    salary = _create(salary_ledger, db_session, employee, hr_user)
    salary_ledger.process_salary_payment(db_session, salary.id, "cash", hr_user.id)

    with pytest.raises(BadRequestError, match="Salary already paid"):
        salary_ledger.process_salary_payment(db_session, salary.id, "cash", hr_user.id)
    with pytest.raises(BadRequestError, match="Cannot update paid salary"):
        salary_ledger.update_salary(db_session, salary.id, {"remarks": "late fix"}, hr_user.id)
    with pytest.raises(BadRequestError, match="Cannot delete paid salary"):
        salary_ledger.delete_salary(db_session, salary.id, admin_user.id)
    assert db_session.query(SalaryRecord).count() == 1


def test_status_update_notifies_once(db_session, salary_ledger, employee, hr_user):
    salary = _create(salary_ledger, db_session, employee, hr_user)

    processed = salary_ledger.update_salary_status(db_session, salary.id, "processed", hr_user.id)
    assert processed.processed_by == hr_user.id
    assert db_session.query(Notification).count() == 0

    salary_ledger.update_salary_status(db_session, salary.id, "paid", hr_user.id)
    salary_ledger.update_salary_status(db_session, salary.id, "paid", hr_user.id)
    assert db_session.query(Notification).filter(Notification.user_id == employee.id).count() == 1


def test_invalid_status_rejected(db_session, salary_ledger, employee, hr_user):
    salary = _create(salary_ledger, db_session, employee, hr_user)
    with pytest.raises(BadRequestError, match="Invalid salary status"):
        salary_ledger.update_salary_status(db_session, salary.id, "archived", hr_user.id)


def test_update_merges_structure_and_recomputes(db_session, salary_ledger, employee, hr_user):
    salary = _create(salary_ledger, db_session, employee, hr_user)
    updated = salary_ledger.update_salary(
        db_session, salary.id, {"structure": {"bonus": 5000}, "remarks": "Q1 bonus"}, hr_user.id
    )
    assert updated.structure["basic"] == 30000
    assert updated.structure["bonus"] == 5000
    assert updated.gross_salary == 49000
    assert updated.net_salary == 45200
    assert updated.remarks == "Q1 bonus"

    audit = db_session.query(AuditLog).filter(AuditLog.action == "SALARY_UPDATED").one()
    assert audit.details["updates"] == ["remarks", "structure"]


def test_rejected_update_leaves_record_untouched(db_session, salary_ledger, employee, hr_user):
    salary = _create(salary_ledger, db_session, employee, hr_user)
    with pytest.raises(BadRequestError):
        salary_ledger.update_salary(db_session, salary.id, {"absent_days": 31}, hr_user.id)
    db_session.expire_all()
    assert salary_ledger.get_salary_by_id(db_session, salary.id).absent_days == 0


def test_delete_unpaid_salary(db_session, salary_ledger, employee, hr_user, admin_user):
    salary = _create(salary_ledger, db_session, employee, hr_user)
    result = salary_ledger.delete_salary(db_session, salary.id, admin_user.id)
    assert result["message"] == "Salary record deleted successfully"
    assert db_session.query(SalaryRecord).count() == 0
    with pytest.raises(NotFoundError):
        salary_ledger.get_salary_by_id(db_session, salary.id)


def test_bulk_generation_skips_existing(db_session, salary_ledger, make_user, hr_user):
    employees = [make_user() for _ in range(5)]
    make_user(status=UserStatus.SUSPENDED.value)
    make_user(role=UserRole.MANAGER)
    _create(salary_ledger, db_session, employees[2], hr_user, month=3, year=2025)

    result = salary_ledger.generate_bulk_salaries(db_session, 3, 2025, hr_user.id)

    assert len(result.success) == 4
    assert employees[2].id not in result.success
    assert len(result.failed) == 1
    assert result.failed[0].employee_id == employees[2].id
    assert result.failed[0].reason == "Salary already exists"
    assert db_session.query(SalaryRecord).filter(SalaryRecord.month == 3).count() == 5

    generated = db_session.query(SalaryRecord).filter(SalaryRecord.employee_id == employees[0].id).one()
    assert generated.gross_salary == 46500
    assert generated.total_deductions == 8800
    assert generated.net_salary == 37700


def test_bulk_generation_by_department(db_session, salary_ledger, make_user, hr_user):
    make_user(department="Sales")
    make_user(department="Engineering")
    result = salary_ledger.generate_bulk_salaries(db_session, 4, 2025, hr_user.id, department="Sales")
    assert len(result.success) == 1


def test_bulk_generation_without_employees(db_session, salary_ledger, hr_user):
    with pytest.raises(NotFoundError, match="No active employees found"):
        salary_ledger.generate_bulk_salaries(db_session, 3, 2025, hr_user.id)


def test_listing_and_statistics(db_session, salary_ledger, make_user, hr_user):
    first, second = make_user(), make_user(department="Sales")
    for month in (1, 2, 3):
        _create(salary_ledger, db_session, first, hr_user, month=month)
    march = _create(salary_ledger, db_session, second, hr_user, month=3)
    salary_ledger.process_salary_payment(db_session, march.id, "cheque", hr_user.id)

    mine = salary_ledger.get_my_salaries(db_session, first.id, year=2025, page=1, limit=2)
    assert mine.pagination.total == 3
    assert [s.month for s in mine.salaries] == [3, 2]

    sales = salary_ledger.get_all_salaries(db_session, SalaryQuery(department="Sales"))
    assert [s.employee_id for s in sales.salaries] == [second.id]

    stats = salary_ledger.get_salary_statistics(db_session, year=2025)
    assert stats.by_status["pending"].count == 3
    assert stats.by_status["paid"].count == 1
    assert stats.by_status["paid"].total_amount == 40200
    assert stats.by_status["on-hold"].count == 0
    march_stats = next(m for m in stats.by_month if m.month == 3)
    assert march_stats.count == 2
    assert march_stats.total_amount == 80400
    assert march_stats.avg_salary == 40200

@pytest.fixture
def hide_existing_salaries(monkeypatch):
    """Make existence checks miss, as when another writer commits in between."""
    original_first = Query.first

    def first(self):
        if self.column_descriptions[0]["entity"] is SalaryRecord:
            return None
        return original_first(self)

    monkeypatch.setattr(Query, "first", first)


def test_concurrent_duplicate_hits_unique_constraint(db_session, salary_ledger, employee, hr_user, hide_existing_salaries):
    _create(salary_ledger, db_session, employee, hr_user)
    with pytest.raises(DuplicatePeriodError, match="Salary for 3/2025 already exists"):
        _create(salary_ledger, db_session, employee, hr_user)
    assert db_session.query(SalaryRecord).count() == 1


def test_bulk_reports_concurrent_duplicate_as_existing(
    db_session, salary_ledger, make_user, hr_user, hide_existing_salaries
):
    employees = [make_user() for _ in range(2)]
    _create(salary_ledger, db_session, employees[0], hr_user)

    result = salary_ledger.generate_bulk_salaries(db_session, 3, 2025, hr_user.id)

    assert result.success == [employees[1].id]
    assert len(result.failed) == 1
    assert result.failed[0].employee_id == employees[0].id
    assert result.failed[0].reason == "Salary already exists"
    assert db_session.query(SalaryRecord).filter(SalaryRecord.employee_id == employees[0].id).count() == 1


def test_update_can_clear_credit_date_and_remarks(db_session, salary_ledger, employee, hr_user):
    salary = _create(salary_ledger, db_session, employee, hr_user, credit_date=date(2025, 3, 31), remarks="March run")

    updated = salary_ledger.update_salary(db_session, salary.id, {"remarks": None, "credit_date": None}, hr_user.id)
    assert updated.remarks is None
    assert updated.credit_date is None
    assert updated.net_salary == 40200

    # Omitted fields stay as they are
    updated = salary_ledger.update_salary(db_session, salary.id, {"remarks": "Reissued"}, hr_user.id)
    updated = salary_ledger.update_salary(db_session, salary.id, {"present_days": 30}, hr_user.id)
    assert updated.remarks == "Reissued"
