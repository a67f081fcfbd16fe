from pydantic import BaseModel, ConfigDict, Field
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from app.models.salary import SalaryStatus, PaymentMethod
from app.schemas.common import PageParams, Pagination

EARNING_FIELDS = ("basic", "hra", "medical_allowance", "transport_allowance", "other_allowances", "bonus")
DEDUCTION_FIELDS = ("provident_fund", "professional_tax", "income_tax", "other_deductions")

class SalaryStructure(BaseModel):
    basic: float = Field(ge=0)
    hra: float = Field(ge=0)
    medical_allowance: float = Field(default=0, ge=0)
    transport_allowance: float = Field(default=0, ge=0)
    other_allowances: float = Field(default=0, ge=0)
    bonus: float = Field(default=0, ge=0)
    provident_fund: float = Field(default=0, ge=0)
    professional_tax: float = Field(default=0, ge=0)
    income_tax: float = Field(default=0, ge=0)
    other_deductions: float = Field(default=0, ge=0)

class SalaryStructurePatch(BaseModel):
    """Partial structure; unset fields keep their stored value."""
    basic: Optional[float] = Field(default=None, ge=0)
    hra: Optional[float] = Field(default=None, ge=0)
    medical_allowance: Optional[float] = Field(default=None, ge=0)
    transport_allowance: Optional[float] = Field(default=None, ge=0)
    other_allowances: Optional[float] = Field(default=None, ge=0)
    bonus: Optional[float] = Field(default=None, ge=0)
    provident_fund: Optional[float] = Field(default=None, ge=0)
    professional_tax: Optional[float] = Field(default=None, ge=0)
    income_tax: Optional[float] = Field(default=None, ge=0)
    other_deductions: Optional[float] = Field(default=None, ge=0)

class SalaryCreateRequest(BaseModel):
    employee_id: int
    month: int = Field(ge=1, le=12)
    year: int = Field(ge=2020)
    structure: SalaryStructure
    # Advisory only: the ledger always recomputes amounts from the structure
    gross_salary: Optional[float] = None
    total_deductions: Optional[float] = None
    net_salary: Optional[float] = None
    working_days: int = Field(ge=0, le=31)
    present_days: int = Field(ge=0, le=31)
    leave_days: int = Field(default=0, ge=0, le=31)
    absent_days: int = Field(default=0, ge=0, le=31)
    is_prorated: bool = False
    credit_date: Optional[date] = None
    remarks: Optional[str] = None

class SalaryUpdate(BaseModel):
    structure: Optional[SalaryStructurePatch] = None
    working_days: Optional[int] = Field(default=None, ge=0, le=31)
    present_days: Optional[int] = Field(default=None, ge=0, le=31)
    leave_days: Optional[int] = Field(default=None, ge=0, le=31)
    absent_days: Optional[int] = Field(default=None, ge=0, le=31)
    is_prorated: Optional[bool] = None
    credit_date: Optional[date] = None
    remarks: Optional[str] = None

class SalaryStatusUpdate(BaseModel):
    status: SalaryStatus

class SalaryPaymentRequest(BaseModel):
    payment_method: PaymentMethod
    transaction_id: Optional[str] = None
    actual_credit_date: Optional[datetime] = None
    remarks: Optional[str] = None

class BulkSalaryRequest(BaseModel):
    month: int = Field(ge=1, le=12)
    year: int = Field(ge=2020)
    department: Optional[str] = None

class SalaryQuery(PageParams):
    employee_id: Optional[int] = None
    year: Optional[int] = None
    month: Optional[int] = Field(default=None, ge=1, le=12)
    status: Optional[SalaryStatus] = None
    department: Optional[str] = None

class SalaryResponse(BaseModel):
    id: int
    employee_id: int
    month: int
    year: int
    structure: Dict[str, Any]
    gross_salary: float
    total_deductions: float
    net_salary: float
    working_days: int
    present_days: int
    leave_days: int
    absent_days: int
    is_prorated: bool
    status: str
    credit_date: Optional[date] = None
    actual_credit_date: Optional[datetime] = None
    payment_method: Optional[str] = None
    transaction_id: Optional[str] = None
    remarks: Optional[str] = None
    created_by: int
    processed_by: Optional[int] = None
    processed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class SalaryPage(BaseModel):
    salaries: List[SalaryResponse]
    pagination: Pagination

class BulkFailure(BaseModel):
    employee_id: int
    reason: str

class BulkSalaryResult(BaseModel):
    success: List[int] = Field(default_factory=list)
    failed: List[BulkFailure] = Field(default_factory=list)

class StatusAmount(BaseModel):
    count: int = 0
    total_amount: float = 0.0

class MonthAmount(BaseModel):
    month: int
    count: int
    total_amount: float
    avg_salary: float

class SalaryStatisticsResponse(BaseModel):
    year: int
    by_status: Dict[str, StatusAmount]
    by_month: List[MonthAmount]
