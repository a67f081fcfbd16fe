from sqlalchemy import Column, Integer, String, Date, Float, ForeignKey, DateTime, Boolean, JSON, CheckConstraint, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base
import enum

class LeaveType(str, enum.Enum):
    CASUAL = "casual"
    SICK = "sick"
    PAID = "paid"
    UNPAID = "unpaid"
    MATERNITY = "maternity"
    PATERNITY = "paternity"

class LeaveStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"

class HalfDayPeriod(str, enum.Enum):
    FIRST_HALF = "first-half"
    SECOND_HALF = "second-half"

# Types drawn from a capped yearly entitlement
BALANCE_TRACKED_TYPES = (LeaveType.CASUAL.value, LeaveType.SICK.value, LeaveType.PAID.value)

class LeaveRequest(Base):
    __tablename__ = "leave_requests"
    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="ck_leave_date_order"),
        Index("ix_leave_employee_status", "employee_id", "status"),
        Index("ix_leave_employee_dates", "employee_id", "start_date", "end_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    leave_type = Column(String, nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    total_days = Column(Float, nullable=False)
    reason = Column(String, nullable=False)
    is_half_day = Column(Boolean, default=False, nullable=False)
    half_day_period = Column(String, nullable=True)
    attachments = Column(JSON, default=list)
    # Stored as plain strings to keep SQLite and PostgreSQL behaviour identical
    status = Column(String, default=LeaveStatus.PENDING.value, nullable=False, index=True)
    reviewed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    review_remarks = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    employee = relationship("User", foreign_keys=[employee_id], back_populates="leave_requests")
    reviewer = relationship("User", foreign_keys=[reviewed_by])
