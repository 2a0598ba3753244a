"""通胀调整计算"""
import logging
from typing import Iterable

import numpy as np

from config.settings import DEFAULT_INFLATION_RATE
from core.errors import InvalidInputError
from data_manager.data_validator import coerce_number
from data_manager.schema import (
    AmortizationEntry,
    InflationAdjustedEntry,
    InflationAdjustedSchedule,
    InflationSummary,
)

logger = logging.getLogger(__name__)


def inflation_factors(n_periods: int, annual_inflation_rate: float) -> np.ndarray:
    """第 i 期（从 0 开始）的折现系数 (1+m)^-i，m 为年通胀率换算的月通胀率"""
    monthly_rate = (1 + annual_inflation_rate / 100) ** (1 / 12) - 1
    return (1 + monthly_rate) ** -np.arange(n_periods, dtype=float)


def adjust_for_inflation(
    schedule: Iterable[AmortizationEntry],
    annual_inflation_rate: float = DEFAULT_INFLATION_RATE,
) -> InflationAdjustedSchedule:
    """将还款计划中的金额折算为当前购买力"""
    rate = coerce_number(annual_inflation_rate)
    if rate is None or rate < 0:
        raise InvalidInputError(
            f"annual_inflation_rate must be a number >= 0, got {annual_inflation_rate!r}"
        )

    entries = list(schedule)
    if not entries:
        return InflationAdjustedSchedule(summary=InflationSummary(inflation_rate=rate))

    factors = inflation_factors(len(entries), rate)
    payments = np.array([e.payment_amount for e in entries])
    principals = np.array([e.principal_portion for e in entries])
    interests = np.array([e.interest_portion for e in entries])

    adj_payments = payments * factors
    adj_principals = principals * factors
    adj_interests = interests * factors

    adjusted = tuple(
        InflationAdjustedEntry(
            sequence_number=e.sequence_number,
            date=e.date,
            payment_amount=e.payment_amount,
            principal_portion=e.principal_portion,
            interest_portion=e.interest_portion,
            remaining_balance=e.remaining_balance,
            inflation_factor=float(factors[i]),
            inflation_adjusted_amount=float(adj_payments[i]),
            inflation_adjusted_principal=float(adj_principals[i]),
            inflation_adjusted_interest=float(adj_interests[i]),
        )
        for i, e in enumerate(entries)
    )

    total_payment = float(payments.sum())
    total_adjusted = float(adj_payments.sum())
    summary = InflationSummary(
        total_original_payment=total_payment,
        total_inflation_adjusted_payment=total_adjusted,
        total_original_principal=float(principals.sum()),
        total_inflation_adjusted_principal=float(adj_principals.sum()),
        total_original_interest=float(interests.sum()),
        total_inflation_adjusted_interest=float(adj_interests.sum()),
        savings_from_inflation=total_payment - total_adjusted,
        inflation_rate=rate,
    )
    logger.debug("Inflation adjusted %d payments at %.2f%%", len(adjusted), rate)
    return InflationAdjustedSchedule(entries=adjusted, summary=summary)
