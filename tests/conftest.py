import pytest
import os
from datetime import date
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set env before importing app components
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"

from app.database import Base, get_db
from app.main import app
from app.models.user import User, UserRole, UserStatus
from app.services.audit import AuditService
from app.services.leave_service import LeaveLedger
from app.services.notification import NotificationService
from app.services.salary_service import SalaryLedger
from fastapi.testclient import TestClient

# Fixed "today" for service-level tests so date rules are deterministic
TODAY = date(2025, 3, 1)


@pytest.fixture(scope="function")
def db_session():
    """Fresh in-memory database per test; the ledgers commit on their own."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def make_user(db_session):
    """Factory for active users of any role."""
    counter = {"n": 0}

    def _make_user(role=UserRole.EMPLOYEE, status=UserStatus.ACTIVE.value, department="Engineering", email=None):
        counter["n"] += 1
        user = User(
            email=email or f"user{counter['n']}@example.com",
            full_name=f"Test User {counter['n']}",
            employee_code=f"EMP{counter['n']:04d}",
            role=role,
            status=status,
            department=department,
        )
        db_session.add(user)
        db_session.commit()
        return user
    return _make_user


@pytest.fixture
def employee(make_user):
    return make_user(UserRole.EMPLOYEE, email="employee@example.com")


@pytest.fixture
def manager(make_user):
    return make_user(UserRole.MANAGER, email="manager@example.com")


@pytest.fixture
def hr_user(make_user):
    return make_user(UserRole.HR, email="hr@example.com")


@pytest.fixture
def admin_user(make_user):
    return make_user(UserRole.ADMIN, email="admin@example.com")


@pytest.fixture
def leave_ledger():
    return LeaveLedger(
        AuditService(),
        NotificationService(),
        entitlements={"casual": 12, "sick": 10, "paid": 15},
        today=lambda: TODAY,
    )


@pytest.fixture
def salary_ledger():
    return SalaryLedger(AuditService(), NotificationService())


@pytest.fixture(scope="function")
def get_token():
    """Helper fixture to create access tokens for a user."""
    from app.services.auth import create_token_for_user

    def _get_token(user):
        return create_token_for_user(user)
    return _get_token


@pytest.fixture
def auth_headers(get_token):
    def _headers(user):
        return {"Authorization": f"Bearer {get_token(user)}"}
    return _headers


@pytest.fixture(scope="function")
def client(db_session):
    """Get a TestClient that uses the test database session via dependency override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
