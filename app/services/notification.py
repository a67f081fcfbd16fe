import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.models.notification import Notification, NotificationType
from app.models.salary import SalaryRecord
from app.models.user import User

logger = logging.getLogger(__name__)

MONTH_NAMES = ["", "January", "February", "March", "April", "May", "June",
               "July", "August", "September", "October", "November", "December"]


class NotificationService:
    """
    Fire-and-forget in-app notifications.

    Every send commits on its own; failures are logged and swallowed so they
    never block the ledger operation that triggered them.
    """

    def notify_user(
        self,
        db: Session,
        user_id: int,
        title: str,
        message: str,
        type: str = NotificationType.INFO.value,
        link: Optional[str] = None
    ) -> Optional[Notification]:
        try:
            notification = Notification(
                user_id=user_id,
                title=title,
                message=message,
                type=type,
                link=link
            )
            db.add(notification)
            db.commit()
            return notification
        except Exception as e:
            db.rollback()
            logger.warning(f"Notification to user {user_id} failed: {e}", exc_info=True)
            return None

    def send_salary_paid(self, db: Session, employee: Optional[User], salary: SalaryRecord) -> Optional[Notification]:
        """Tell the employee their salary for the period has been credited."""
        if employee is None or not employee.email:
            logger.info(f"Skipping salary-paid notification for salary {salary.id}: no contact on file")
            return None

        credit_date = salary.actual_credit_date or salary.credit_date
        period = f"{MONTH_NAMES[salary.month]} {salary.year}"
        message = (
            f"Hi {employee.full_name}, your salary for {period} has been credited. "
            f"Gross: {salary.gross_salary:.2f}, Deductions: {salary.total_deductions:.2f}, "
            f"Net: {salary.net_salary:.2f}"
        )
        if credit_date:
            message += f", Credit date: {credit_date.strftime('%B %d, %Y')}"
        logger.info(
            "Salary paid notification",
            extra={"salary_id": salary.id, "email": employee.email, "month": salary.month, "year": salary.year},
        )
        return self.notify_user(
            db,
            employee.id,
            title=f"Salary credited for {period}",
            message=message,
            type=NotificationType.SUCCESS.value,
            link=f"/salaries/{salary.id}",
        )
