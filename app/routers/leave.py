from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import ForbiddenError
from app.database import get_db
from app.dependencies import get_leave_ledger
from app.models.leave_request import LeaveStatus, LeaveType
from app.models.user import User
from app.routers.auth_deps import get_current_user, require_manager
from app.schemas.leave import (
    LeaveApplyRequest,
    LeaveApproveRequest,
    LeaveBalanceResponse,
    LeavePage,
    LeaveQuery,
    LeaveRejectRequest,
    LeaveRequestResponse,
    LeaveStatisticsResponse,
)
from app.services.leave_service import LeaveLedger

router = APIRouter(
    prefix="/leaves",
    tags=["Leave"]
)


@router.post("", response_model=LeaveRequestResponse, status_code=status.HTTP_201_CREATED)
def apply_leave(
    payload: LeaveApplyRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    ledger: LeaveLedger = Depends(get_leave_ledger),
):
    return ledger.apply_leave(
        db,
        employee_id=current_user.id,
        leave_type=payload.leave_type.value,
        start_date=payload.start_date,
        end_date=payload.end_date,
        reason=payload.reason,
        is_half_day=payload.is_half_day,
        half_day_period=payload.half_day_period.value if payload.half_day_period else None,
        attachments=payload.attachments,
    )


@router.get("/me", response_model=LeavePage)
def get_my_leaves(
    status_filter: Optional[LeaveStatus] = Query(None, alias="status"),
    leave_type: Optional[LeaveType] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    ledger: LeaveLedger = Depends(get_leave_ledger),
):
    query = LeaveQuery(
        status=status_filter,
        leave_type=leave_type,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )
    return ledger.get_my_leaves(db, current_user.id, query)


@router.get("/balance", response_model=LeaveBalanceResponse)
def get_my_balance(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    ledger: LeaveLedger = Depends(get_leave_ledger),
):
    return ledger.get_leave_balance(db, current_user.id, year)


@router.get("/balance/{employee_id}", response_model=LeaveBalanceResponse)
def get_employee_balance(
    employee_id: int,
    year: Optional[int] = Query(None, ge=2000, le=2100),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager()),
    ledger: LeaveLedger = Depends(get_leave_ledger),
):
    return ledger.get_leave_balance(db, employee_id, year)


@router.get("/pending", response_model=LeavePage)
def get_pending_leaves(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager()),
    ledger: LeaveLedger = Depends(get_leave_ledger),
):
    return ledger.get_pending_leaves(db, page, limit)


@router.get("/statistics", response_model=LeaveStatisticsResponse)
def get_leave_statistics(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    employee_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    ledger: LeaveLedger = Depends(get_leave_ledger),
):
    # Employees only ever see their own figures
    if not current_user.can_approve:
        employee_id = current_user.id
    return ledger.get_leave_statistics(db, employee_id=employee_id, year=year)


@router.get("", response_model=LeavePage)
def get_all_leaves(
    status_filter: Optional[LeaveStatus] = Query(None, alias="status"),
    leave_type: Optional[LeaveType] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    employee_id: Optional[int] = None,
    department: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager()),
    ledger: LeaveLedger = Depends(get_leave_ledger),
):
    query = LeaveQuery(
        status=status_filter,
        leave_type=leave_type,
        start_date=start_date,
        end_date=end_date,
        employee_id=employee_id,
        department=department,
        page=page,
        limit=limit,
    )
    return ledger.get_all_leaves(db, query)


@router.get("/{leave_id}", response_model=LeaveRequestResponse)
def get_leave(
    leave_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    ledger: LeaveLedger = Depends(get_leave_ledger),
):
    leave = ledger.get_leave_by_id(db, leave_id)
    if leave.employee_id != current_user.id and not current_user.can_approve:
        raise ForbiddenError("You can only view your own leave requests")
    return leave


@router.put("/{leave_id}/approve", response_model=LeaveRequestResponse)
def approve_leave(
    leave_id: int,
    payload: Optional[LeaveApproveRequest] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager()),
    ledger: LeaveLedger = Depends(get_leave_ledger),
):
    remarks = payload.remarks if payload else None
    return ledger.approve_leave(db, leave_id, current_user.id, remarks)


@router.put("/{leave_id}/reject", response_model=LeaveRequestResponse)
def reject_leave(
    leave_id: int,
    payload: LeaveRejectRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager()),
    ledger: LeaveLedger = Depends(get_leave_ledger),
):
    return ledger.reject_leave(db, leave_id, current_user.id, payload.remarks)


@router.put("/{leave_id}/cancel", response_model=LeaveRequestResponse)
def cancel_leave(
    leave_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    ledger: LeaveLedger = Depends(get_leave_ledger),
):
    return ledger.cancel_leave(db, leave_id, current_user.id)
