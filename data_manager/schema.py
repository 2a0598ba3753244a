from dataclasses import dataclass, field, fields
from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Tuple

import pandas as pd

from config.constants import INFLATION_SCHEDULE_COLUMNS, LoanType, PaymentFrequency
from core.errors import InvalidFrequencyError, InvalidInputError, InvalidLoanTypeError

if TYPE_CHECKING:
    from core.loan import Loan


def to_plain(value: Any) -> Any:
    """转为可 JSON 序列化的基础类型：日期转 ISO 字符串，枚举取 value"""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: to_plain(v) for k, v in value.items()}
    return value


class _Record:
    """dataclass 结果对象的公共 to_dict"""

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: to_plain(getattr(self, f.name)) for f in fields(self)}


@dataclass(frozen=True)
class LoanParameters(_Record):
    loan_type: LoanType
    principal: float
    down_payment: float
    interest_rate: float  # 年利率 (%)
    term: int  # 月
    payment_frequency: PaymentFrequency
    additional_payment: float
    inflation_rate: float  # 年通胀率 (%)
    start_date: date

    def __post_init__(self):
        try:
            object.__setattr__(self, "loan_type", LoanType(self.loan_type))
        except ValueError:
            valid = ", ".join(t.value for t in LoanType)
            raise InvalidLoanTypeError(
                f"Invalid loan type: {self.loan_type}. Valid types are: {valid}"
            ) from None
        try:
            object.__setattr__(self, "payment_frequency", PaymentFrequency(self.payment_frequency))
        except ValueError:
            valid = ", ".join(f.value for f in PaymentFrequency)
            raise InvalidFrequencyError(
                f"Invalid payment frequency: {self.payment_frequency}. Valid frequencies are: {valid}"
            ) from None
        if self.principal < 0:
            raise InvalidInputError("principal must be >= 0")
        if self.term < 1:
            raise InvalidInputError("term must be >= 1")


@dataclass(frozen=True)
class AmortizationEntry(_Record):
    sequence_number: int
    date: date
    payment_amount: float
    principal_portion: float
    interest_portion: float
    remaining_balance: float


@dataclass(frozen=True)
class ValidationResult(_Record):
    is_valid: bool
    warnings: Tuple[str, ...] = ()


@dataclass(frozen=True)
class AffordabilityResult(_Record):
    affordable_principal: float
    total_purchase_price: float
    down_payment: float
    monthly_payment: float
    total_interest: float
    loan: "Loan"


@dataclass(frozen=True)
class AdditionalPaymentImpact(_Record):
    payments_saved: int
    interest_saved: float
    time_saved_months: int
    time_saved_years: int
    new_term: int
    new_payment: float
    new_total_interest: float
    new_payoff_date: date
    original_term: int
    original_payment: float
    original_total_interest: float


@dataclass(frozen=True)
class CurrentLoanSummary(_Record):
    payment: float
    remaining_balance: float
    remaining_payments: int
    remaining_interest: float
    elapsed_payments: int
    total_cost: float  # 剩余利息 + 剩余本金


@dataclass(frozen=True)
class NewLoanSummary(_Record):
    payment: float
    principal: float
    total_interest: float
    term: int
    interest_rate: float
    total_payments: int
    total_cost: float  # 新贷款利息 + 本金 + 转贷费用


@dataclass(frozen=True)
class RefinanceSummary(_Record):
    monthly_savings: float
    lifetime_savings: float
    break_even_months: float  # 无法回本时为 math.inf
    closing_costs: float
    is_worthwhile: bool


@dataclass(frozen=True)
class RefinanceComparison(_Record):
    current_loan: CurrentLoanSummary
    new_loan: NewLoanSummary
    comparison: RefinanceSummary
    refinance_loan: "Loan"


@dataclass(frozen=True)
class InflationAdjustedEntry(_Record):
    sequence_number: int
    date: date
    payment_amount: float
    principal_portion: float
    interest_portion: float
    remaining_balance: float
    inflation_factor: float
    inflation_adjusted_amount: float
    inflation_adjusted_principal: float
    inflation_adjusted_interest: float


@dataclass(frozen=True)
class InflationSummary(_Record):
    total_original_payment: float = 0.0
    total_inflation_adjusted_payment: float = 0.0
    total_original_principal: float = 0.0
    total_inflation_adjusted_principal: float = 0.0
    total_original_interest: float = 0.0
    total_inflation_adjusted_interest: float = 0.0
    savings_from_inflation: float = 0.0
    inflation_rate: float = 0.0


@dataclass(frozen=True)
class InflationAdjustedSchedule(_Record):
    entries: Tuple[InflationAdjustedEntry, ...] = ()
    summary: InflationSummary = field(default_factory=InflationSummary)

    def __iter__(self):
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def to_dataframe(self) -> pd.DataFrame:
        df = pd.DataFrame([e.to_dict() for e in self.entries], columns=INFLATION_SCHEDULE_COLUMNS)
        if not df.empty:
            df["date"] = pd.to_datetime(df["date"]).dt.date
        return df
