from typing import Dict, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import ForbiddenError
from app.database import get_db
from app.dependencies import get_salary_ledger
from app.models.salary import SalaryStatus
from app.models.user import User
from app.routers.auth_deps import get_current_user, require_admin, require_hr
from app.schemas.salary import (
    BulkSalaryRequest,
    BulkSalaryResult,
    SalaryCreateRequest,
    SalaryPage,
    SalaryPaymentRequest,
    SalaryQuery,
    SalaryResponse,
    SalaryStatisticsResponse,
    SalaryStatusUpdate,
    SalaryUpdate,
)
from app.services.salary_service import SalaryLedger

router = APIRouter(
    prefix="/salaries",
    tags=["Salary"]
)


@router.post("", response_model=SalaryResponse, status_code=status.HTTP_201_CREATED)
def create_salary(
    payload: SalaryCreateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_hr()),
    ledger: SalaryLedger = Depends(get_salary_ledger),
):
    return ledger.create_salary(
        db,
        employee_id=payload.employee_id,
        month=payload.month,
        year=payload.year,
        structure=payload.structure,
        gross_salary=payload.gross_salary,
        total_deductions=payload.total_deductions,
        net_salary=payload.net_salary,
        working_days=payload.working_days,
        present_days=payload.present_days,
        leave_days=payload.leave_days,
        absent_days=payload.absent_days,
        is_prorated=payload.is_prorated,
        created_by=current_user.id,
        credit_date=payload.credit_date,
        remarks=payload.remarks,
    )


@router.post("/bulk", response_model=BulkSalaryResult)
def generate_bulk_salaries(
    payload: BulkSalaryRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_hr()),
    ledger: SalaryLedger = Depends(get_salary_ledger),
):
    return ledger.generate_bulk_salaries(db, payload.month, payload.year, current_user.id, payload.department)


@router.get("/me", response_model=SalaryPage)
def get_my_salaries(
    year: Optional[int] = None,
    month: Optional[int] = Query(None, ge=1, le=12),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    ledger: SalaryLedger = Depends(get_salary_ledger),
):
    return ledger.get_my_salaries(db, current_user.id, year=year, month=month, page=page, limit=limit)


@router.get("/statistics", response_model=SalaryStatisticsResponse)
def get_salary_statistics(
    year: Optional[int] = None,
    department: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_hr()),
    ledger: SalaryLedger = Depends(get_salary_ledger),
):
    return ledger.get_salary_statistics(db, year=year, department=department)


@router.get("", response_model=SalaryPage)
def get_all_salaries(
    employee_id: Optional[int] = None,
    year: Optional[int] = None,
    month: Optional[int] = Query(None, ge=1, le=12),
    status_filter: Optional[SalaryStatus] = Query(None, alias="status"),
    department: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_hr()),
    ledger: SalaryLedger = Depends(get_salary_ledger),
):
    query = SalaryQuery(
        employee_id=employee_id,
        year=year,
        month=month,
        status=status_filter,
        department=department,
        page=page,
        limit=limit,
    )
    return ledger.get_all_salaries(db, query)


@router.get("/{salary_id}", response_model=SalaryResponse)
def get_salary(
    salary_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    ledger: SalaryLedger = Depends(get_salary_ledger),
):
    salary = ledger.get_salary_by_id(db, salary_id)
    if salary.employee_id != current_user.id and not current_user.is_hr:
        raise ForbiddenError("You can only view your own salary records")
    return salary


@router.patch("/{salary_id}", response_model=SalaryResponse)
def update_salary(
    salary_id: int,
    payload: SalaryUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_hr()),
    ledger: SalaryLedger = Depends(get_salary_ledger),
):
    return ledger.update_salary(db, salary_id, payload, current_user.id)


@router.put("/{salary_id}/status", response_model=SalaryResponse)
def update_salary_status(
    salary_id: int,
    payload: SalaryStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_hr()),
    ledger: SalaryLedger = Depends(get_salary_ledger),
):
    return ledger.update_salary_status(db, salary_id, payload.status.value, current_user.id)


@router.post("/{salary_id}/pay", response_model=SalaryResponse)
def process_salary_payment(
    salary_id: int,
    payload: SalaryPaymentRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_hr()),
    ledger: SalaryLedger = Depends(get_salary_ledger),
):
    return ledger.process_salary_payment(
        db,
        salary_id,
        payment_method=payload.payment_method.value,
        processed_by=current_user.id,
        transaction_id=payload.transaction_id,
        actual_credit_date=payload.actual_credit_date,
        remarks=payload.remarks,
    )


@router.delete("/{salary_id}", response_model=Dict[str, str])
def delete_salary(
    salary_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin()),
    ledger: SalaryLedger = Depends(get_salary_ledger),
):
    return ledger.delete_salary(db, salary_id, current_user.id)
