"""多笔贷款对比"""
import logging
from typing import Dict, List, Sequence

import pandas as pd

from config.constants import COMPARISON_COLUMNS
from core.calculator import calc_effective_annual_rate
from core.errors import InvalidInputError
from core.loan import Loan
from core.schedule_generator import AmortizationSchedule, generate_schedule

logger = logging.getLogger(__name__)


def _require_several(loans: Sequence[Loan]) -> List[Loan]:
    loans = list(loans)
    if len(loans) < 2:
        raise InvalidInputError("At least two loans are required for comparison")
    return loans


def _summary_row(loan: Loan, schedule: AmortizationSchedule) -> Dict:
    payments = [e.payment_amount for e in schedule]
    return {
        "loan_id": loan.id,
        "name": loan.name,
        "loan_type": loan.loan_type.value,
        "loan_amount": loan.total_loan_amount,
        "interest_rate": loan.interest_rate,
        "term": loan.term,
        "payment_frequency": loan.payment_frequency.value,
        "payment_amount": round(loan.payment_amount, 2),
        "number_of_payments": len(schedule),
        "total_interest": round(schedule.total_interest, 2),
        "total_payment": round(schedule.total_payment, 2),
        "payoff_date": schedule.payoff_date,
        "effective_annual_rate": calc_effective_annual_rate(
            loan.total_loan_amount, payments, loan.payments_per_year
        ),
    }


def compare_loans(loans: Sequence[Loan]) -> pd.DataFrame:
    """
    对比多笔贷款的关键指标，每笔一行。
    总利息、总还款取自实际生成的还款计划（包含额外还款的影响）。
    """
    loans = _require_several(loans)
    rows = [_summary_row(loan, generate_schedule(loan)) for loan in loans]
    logger.info("Compared %d loans", len(rows))
    return pd.DataFrame(rows, columns=COMPARISON_COLUMNS)


def loan_differences(loans: Sequence[Loan]) -> Dict[str, Dict[str, float]]:
    """以第一笔贷款为基准，计算其余每笔的差值（其他 - 基准）"""
    loans = _require_several(loans)
    schedules = [generate_schedule(loan) for loan in loans]
    base, base_schedule = loans[0], schedules[0]

    differences = {}
    for loan, schedule in zip(loans[1:], schedules[1:]):
        differences[loan.id] = {
            "payment_amount": loan.payment_amount - base.payment_amount,
            "total_interest": schedule.total_interest - base_schedule.total_interest,
            "total_payment": schedule.total_payment - base_schedule.total_payment,
            "term": loan.term - base.term,
            "number_of_payments": len(schedule) - len(base_schedule),
        }
    return differences
