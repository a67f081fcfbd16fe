from sqlalchemy import Column, Integer, String, DateTime, JSON, ForeignKey
from sqlalchemy.sql import func
from app.database import Base

class AuditLog(Base):
    """Append-only trail of who did what to which ledger entity."""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    performed_by = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    action = Column(String, nullable=False, index=True)
    module = Column(String, nullable=False, index=True)  # leave, salary, user, system
    entity_type = Column(String, nullable=False)
    entity_id = Column(Integer, nullable=True)
    status = Column(String, default="success", nullable=False)
    previous_data = Column(JSON, nullable=True)
    new_data = Column(JSON, nullable=True)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
