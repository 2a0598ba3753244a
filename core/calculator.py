"""核心计算：每年期数、周期利率、等额本息月供、真实年化率"""
import math
from typing import Sequence

from scipy import optimize

from config.constants import PAYMENTS_PER_YEAR, PaymentFrequency
from core.errors import UnknownFrequencyError


def periods_per_year(frequency) -> int:
    """monthly -> 12, bi-weekly -> 26, weekly -> 52"""
    key = frequency.value if isinstance(frequency, PaymentFrequency) else frequency
    try:
        return PAYMENTS_PER_YEAR[key]
    except (KeyError, TypeError):
        valid = ", ".join(PAYMENTS_PER_YEAR)
        raise UnknownFrequencyError(
            f"Unknown payment frequency: {frequency!r}. Valid frequencies are: {valid}"
        ) from None


def periodic_rate(annual_rate: float, frequency) -> float:
    """年利率(%) 换算为每期利率（小数）"""
    return annual_rate / 100 / periods_per_year(frequency)


def number_of_payments(term_months: int, frequency) -> int:
    return math.ceil(term_months * periods_per_year(frequency) / 12)


def annuity_payment(principal: float, rate: float, n_payments: int) -> float:
    """等额本息每期还款额

    P * r * (1+r)^n / ((1+r)^n - 1)，等价写成 P * r / (1 - (1+r)^-n)，
    期数很大时 (1+r)^n 不会溢出。
    """
    if principal <= 0:
        return 0.0
    if n_payments <= 0:
        raise ValueError("n_payments must be >= 1")
    if rate <= 0:
        return principal / n_payments
    return principal * rate / -math.expm1(-n_payments * math.log1p(rate))


def present_value_of_annuity(payment: float, rate: float, n_payments: int) -> float:
    """已知每期还款额反推本金：pmt * (1 - (1+r)^-n) / r"""
    if payment <= 0 or n_payments <= 0:
        return 0.0
    if rate <= 0:
        return payment * n_payments
    return payment * -math.expm1(-n_payments * math.log1p(rate)) / rate


def calc_effective_annual_rate(
    principal: float,
    payments: Sequence[float],
    payments_per_year: int = 12,
) -> float:
    """用 IRR 法计算真实年化率 (%)"""
    if principal <= 0 or not payments:
        return 0.0

    cash_flows = [-principal]
    cash_flows.extend(payments)

    def npv(rate):
        return sum(cf * (1 + rate) ** -i for i, cf in enumerate(cash_flows))

    undiscounted = npv(0.0)
    if abs(undiscounted) < 1e-9:
        return 0.0
    # 总还款大于本金时 IRR 为正，否则为负
    lower, upper = (0.0, 1.0) if undiscounted > 0 else (-0.5, 0.0)
    try:
        period_irr = optimize.brentq(npv, lower, upper)
    except (ValueError, RuntimeError, OverflowError):
        return 0.0
    annual_irr = (1 + period_irr) ** payments_per_year - 1
    return round(annual_irr * 100, 4)
