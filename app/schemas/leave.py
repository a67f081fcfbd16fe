from pydantic import BaseModel, ConfigDict, Field
from datetime import date, datetime
from typing import Dict, List, Optional

from app.models.leave_request import LeaveType, LeaveStatus, HalfDayPeriod
from app.schemas.common import PageParams, Pagination

class LeaveApplyRequest(BaseModel):
    leave_type: LeaveType
    start_date: date
    end_date: date
    reason: str = Field(min_length=10, max_length=500)
    is_half_day: bool = False
    half_day_period: Optional[HalfDayPeriod] = None
    attachments: List[str] = Field(default_factory=list)

class LeaveApproveRequest(BaseModel):
    remarks: Optional[str] = None

class LeaveRejectRequest(BaseModel):
    remarks: str = Field(min_length=10)

class LeaveQuery(PageParams):
    """Filter set shared by the 'my leaves' and 'all leaves' listings."""
    status: Optional[LeaveStatus] = None
    leave_type: Optional[LeaveType] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    employee_id: Optional[int] = None
    department: Optional[str] = None

class LeaveRequestResponse(BaseModel):
    id: int
    employee_id: int
    leave_type: str
    start_date: date
    end_date: date
    total_days: float
    reason: str
    is_half_day: bool
    half_day_period: Optional[str] = None
    attachments: List[str] = Field(default_factory=list)
    status: str
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    review_remarks: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class LeavePage(BaseModel):
    leaves: List[LeaveRequestResponse]
    pagination: Pagination

class LeaveTypeBalance(BaseModel):
    total: float
    used: float
    remaining: float

class UnpaidBalance(BaseModel):
    used: float

class LeaveBalanceResponse(BaseModel):
    employee_id: int
    year: int
    casual: LeaveTypeBalance
    sick: LeaveTypeBalance
    paid: LeaveTypeBalance
    unpaid: UnpaidBalance

class StatusTotals(BaseModel):
    count: int = 0
    total_days: float = 0.0

class LeaveStatisticsResponse(BaseModel):
    year: int
    by_status: Dict[str, StatusTotals]
