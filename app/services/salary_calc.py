"""
Salary amount derivation.

Stored gross/deductions/net figures always come from here, never from caller
input. Kept free of any database access so it can be exercised on its own.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Mapping

from app.schemas.salary import EARNING_FIELDS, DEDUCTION_FIELDS
from app.services.ledger_utils import round2, to_decimal


@dataclass(frozen=True)
class SalaryAmounts:
    gross_salary: float
    total_deductions: float
    net_salary: float


def compute_salary_amounts(
    structure: Mapping[str, Any],
    working_days: int,
    present_days: int,
    is_prorated: bool = False,
) -> SalaryAmounts:
    """
    Sum earnings and deductions of a structure and derive the net pay.

    When prorated, only the net amount is scaled by present_days / working_days;
    gross and deductions stay at their full-month values. A zero working_days
    month is never prorated.
    """
    gross = sum((to_decimal(structure.get(f)) for f in EARNING_FIELDS), Decimal(0))
    deductions = sum((to_decimal(structure.get(f)) for f in DEDUCTION_FIELDS), Decimal(0))

    net = gross - deductions
    if is_prorated and working_days > 0:
        net = net * Decimal(present_days) / Decimal(working_days)

    return SalaryAmounts(
        gross_salary=round2(gross),
        total_deductions=round2(deductions),
        net_salary=round2(net),
    )
