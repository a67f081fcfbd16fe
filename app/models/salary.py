from sqlalchemy import Column, Integer, String, Float, DateTime, Date, Boolean, JSON, ForeignKey, UniqueConstraint, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base
import enum

class SalaryStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSED = "processed"
    PAID = "paid"
    ON_HOLD = "on-hold"

class PaymentMethod(str, enum.Enum):
    BANK_TRANSFER = "bank-transfer"
    CHEQUE = "cheque"
    CASH = "cash"

class SalaryRecord(Base):
    __tablename__ = "salary_records"
    __table_args__ = (
        # One record per employee per period
        UniqueConstraint("employee_id", "month", "year", name="uq_salary_employee_period"),
        Index("ix_salary_employee_period_desc", "employee_id", "year", "month"),
    )

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)

    # Earnings/deductions breakdown, see app.schemas.salary.SalaryStructure
    structure = Column(JSON, nullable=False)
    gross_salary = Column(Float, nullable=False)
    total_deductions = Column(Float, nullable=False)
    net_salary = Column(Float, nullable=False)

    working_days = Column(Integer, nullable=False)
    present_days = Column(Integer, nullable=False)
    leave_days = Column(Integer, default=0, nullable=False)
    absent_days = Column(Integer, default=0, nullable=False)
    is_prorated = Column(Boolean, default=False, nullable=False)

    status = Column(String, default=SalaryStatus.PENDING.value, nullable=False, index=True)
    credit_date = Column(Date, nullable=True, index=True)
    actual_credit_date = Column(DateTime(timezone=True), nullable=True)
    payment_method = Column(String, nullable=True)
    transaction_id = Column(String, nullable=True)
    remarks = Column(String, nullable=True)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    processed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    employee = relationship("User", foreign_keys=[employee_id], back_populates="salaries")
