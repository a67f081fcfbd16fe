"""
User Model.
Doubles as the employee roster the leave and salary ledgers are keyed on.
"""
from sqlalchemy import Column, Integer, String, Enum, DateTime
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
from app.database import Base


class UserRole(str, enum.Enum):
    """
    User roles with hierarchical permissions.

    - ADMIN: Full access, including deletion of salary records
    - HR: Payroll and leave administration
    - MANAGER: Leave review for the team
    - EMPLOYEE: Self-service access
    """
    ADMIN = "ADMIN"
    HR = "HR"
    MANAGER = "MANAGER"
    EMPLOYEE = "EMPLOYEE"


class UserStatus(str, enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    REJECTED = "rejected"
    SUSPENDED = "suspended"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=False)
    employee_code = Column(String, unique=True, nullable=True)

    role = Column(Enum(UserRole), default=UserRole.EMPLOYEE, nullable=False)
    status = Column(String, default=UserStatus.PENDING.value, nullable=False, index=True)

    department = Column(String, nullable=True, index=True)
    designation = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    leave_requests = relationship(
        "LeaveRequest", foreign_keys="[LeaveRequest.employee_id]",
        back_populates="employee", cascade="all, delete-orphan"
    )
    leave_balances = relationship("LeaveBalance", back_populates="employee", cascade="all, delete-orphan")
    salaries = relationship(
        "SalaryRecord", foreign_keys="[SalaryRecord.employee_id]",
        back_populates="employee", cascade="all, delete-orphan"
    )
    notifications = relationship("Notification", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<User {self.email} ({self.role.value})>"

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE.value

    @property
    def is_hr(self) -> bool:
        """Check if user can administer payroll."""
        return self.role in [UserRole.ADMIN, UserRole.HR]

    @property
    def can_approve(self) -> bool:
        """Check if user can review leave requests."""
        return self.role in [UserRole.ADMIN, UserRole.HR, UserRole.MANAGER]
