import os
import logging
from pydantic import BaseModel, Field
from typing import Dict
from dotenv import load_dotenv

load_dotenv()

class LeaveSettings(BaseModel):
    # Yearly entitlements for balance-tracked leave types
    casual: float = Field(default=float(os.getenv("LEAVE_DEFAULT_CASUAL", "12")))
    sick: float = Field(default=float(os.getenv("LEAVE_DEFAULT_SICK", "10")))
    paid: float = Field(default=float(os.getenv("LEAVE_DEFAULT_PAID", "15")))

    def entitlements(self) -> Dict[str, float]:
        return {"casual": self.casual, "sick": self.sick, "paid": self.paid}

class Config(BaseModel):
    app_name: str = "HR Ledger Backend"
    environment: str = os.getenv("APP_ENV", "development")
    api_prefix: str = "/api"
    version: str = "1.0.0"
    request_id_header: str = "X-Request-ID"

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./database.db")

    # Auth
    secret_key: str = os.getenv("SECRET_KEY", "dev-only-insecure-key-DO-NOT-USE-IN-PROD")
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24)))

    # Ledger defaults
    leave: LeaveSettings = LeaveSettings()
    default_working_days: int = int(os.getenv("DEFAULT_WORKING_DAYS", "30"))

    # Pagination
    default_page_size: int = 10
    max_page_size: int = 100

settings = Config()

# --- Startup Validation for Production ---
_logger = logging.getLogger(__name__)
if settings.environment not in ("development", "testing"):
    if "dev-only" in settings.secret_key:
        raise RuntimeError(
            "FATAL: SECRET_KEY must be set for non-development environments. "
            "Set it as an environment variable."
        )
else:
    if "dev-only" in settings.secret_key:
        _logger.warning("Using insecure default SECRET_KEY, only acceptable in development.")
