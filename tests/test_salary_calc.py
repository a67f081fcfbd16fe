from datetime import date

import pytest

from app.services.ledger_utils import count_leave_days, page_window, pagination_block, round2
from app.services.salary_calc import compute_salary_amounts

STRUCTURE = {
    "basic": 30000,
    "hra": 12000,
    "medical_allowance": 2000,
    "provident_fund": 3600,
    "professional_tax": 200,
}


def test_full_month_amounts():
    amounts = compute_salary_amounts(STRUCTURE, working_days=30, present_days=30)
    assert amounts.gross_salary == 44000
    assert amounts.total_deductions == 3800
    assert amounts.net_salary == 40200.00


def test_prorated_scales_net_only():
    amounts = compute_salary_amounts(STRUCTURE, working_days=30, present_days=20, is_prorated=True)
    assert amounts.gross_salary == 44000
    assert amounts.total_deductions == 3800
    assert amounts.net_salary == 26800.00


def test_prorated_rounds_half_up():
    amounts = compute_salary_amounts({"basic": 1000, "hra": 0}, working_days=3, present_days=1, is_prorated=True)
    assert amounts.net_salary == 333.33


def test_proration_flag_ignored_without_working_days():
    amounts = compute_salary_amounts(STRUCTURE, working_days=0, present_days=0, is_prorated=True)
    assert amounts.net_salary == 40200.00


def test_missing_components_count_as_zero():
    amounts = compute_salary_amounts({"basic": 100.10, "hra": 0.2}, working_days=30, present_days=30)
    assert amounts.gross_salary == 100.3
    assert amounts.total_deductions == 0


@pytest.mark.parametrize("value,expected", [(29.995, 30.0), (1.005, 1.01), (2.675, 2.68), (-1.005, -1.01)])
def test_round2_is_half_up(value, expected):
    assert round2(value) == expected


def test_count_leave_days():
    assert count_leave_days(date(2025, 3, 10), date(2025, 3, 12)) == 3
    assert count_leave_days(date(2025, 3, 10), date(2025, 3, 10)) == 1
    assert count_leave_days(date(2025, 3, 10), date(2025, 3, 10), is_half_day=True) == 0.5


def test_pagination_arithmetic():
    assert page_window(1, 10) == (0, 10)
    assert page_window(3, 10) == (20, 10)
    block = pagination_block(total=21, page=3, limit=10)
    assert block.pages == 3
    assert pagination_block(total=0, page=1, limit=10).pages == 0
