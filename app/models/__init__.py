# Models package
# Importing modules here ensures they are registered with SQLAlchemy Base
from . import (
    user,
    leave_request, leave_balance,
    salary,
    audit_log, notification
)

# Explicit class exports for cleaner imports
from .user import User, UserRole, UserStatus
from .leave_request import LeaveRequest, LeaveStatus, LeaveType
from .leave_balance import LeaveBalance
from .salary import SalaryRecord, SalaryStatus, PaymentMethod
from .audit_log import AuditLog
from .notification import Notification

__all__ = [
    "User",
    "UserRole",
    "UserStatus",
    "LeaveRequest",
    "LeaveStatus",
    "LeaveType",
    "LeaveBalance",
    "SalaryRecord",
    "SalaryStatus",
    "PaymentMethod",
    "AuditLog",
    "Notification",
]
