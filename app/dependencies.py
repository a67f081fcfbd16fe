"""
Service providers for the routers.

The ledgers are built once in the application lifespan and kept on
`app.state`; tests swap them through `app.dependency_overrides`.
"""
from fastapi import Request

from app.services.leave_service import LeaveLedger
from app.services.salary_service import SalaryLedger


def get_leave_ledger(request: Request) -> LeaveLedger:
    return request.app.state.leave_ledger


def get_salary_ledger(request: Request) -> SalaryLedger:
    return request.app.state.salary_ledger
