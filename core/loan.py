"""贷款实体：参数、派生指标、提前还款影响、可负担额度、转贷比较、参数检查"""
import json
import logging
import math
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from config.constants import LoanType, PaymentFrequency
from config.settings import (
    DEFAULT_AFFORDABILITY_RATE,
    DEFAULT_AFFORDABILITY_TERM,
    MAX_INTEREST_RATE,
    MAX_TERM_MONTHS,
    RATE_WARNING_THRESHOLD,
)
from core.calculator import (
    annuity_payment,
    number_of_payments,
    periodic_rate,
    periods_per_year,
    present_value_of_annuity,
)
from core.errors import InvalidInputError, MissingParameterError
from core.schedule_generator import generate_schedule
from data_manager.data_validator import (
    canonical_keys,
    coerce_number,
    normalize_loan_params,
    validate_loan_type,
    validate_payment_frequency,
)
from data_manager.schema import (
    AdditionalPaymentImpact,
    AffordabilityResult,
    CurrentLoanSummary,
    LoanParameters,
    NewLoanSummary,
    RefinanceComparison,
    RefinanceSummary,
    ValidationResult,
)
from utils.date_utils import add_periods, parse_date, parse_datetime, periods_between
from utils.id_generator import generate_loan_id

__all__ = ["Loan", "LoanType", "PaymentFrequency"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Loan:
    """不可变的贷款对象，修改参数请用 update() 生成新实例"""

    params: LoanParameters
    id: str = field(default_factory=generate_loan_id)
    name: str = ""
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    adjustments: Tuple[str, ...] = ()  # 输入被修正时的说明

    # ---------- 构造 ----------

    @classmethod
    def create(cls, **raw) -> "Loan":
        """从原始参数创建（数值可以是字符串，日期可以是 ISO 字符串）"""
        return cls.from_dict(raw)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Loan":
        data = canonical_keys(data)
        params, notes = normalize_loan_params(data)

        created_at = parse_datetime(data.get("created_at")) or datetime.now()
        updated_at = parse_datetime(data.get("updated_at")) or created_at
        if updated_at < created_at:
            updated_at = created_at

        loan = cls(
            params=params,
            id=data.get("id") or generate_loan_id(),
            name=data.get("name") or params.loan_type.label,
            created_at=created_at,
            updated_at=updated_at,
            adjustments=tuple(data.get("adjustments") or ()) + tuple(notes),
        )
        loan._log_advisories()
        return loan

    @classmethod
    def from_json(cls, text: str) -> "Loan":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise InvalidInputError(f"Malformed loan JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise InvalidInputError("Loan JSON must be an object")
        return cls.from_dict(data)

    @classmethod
    def create_default(cls, loan_type: Union[str, LoanType] = LoanType.MORTGAGE) -> "Loan":
        """按贷款类型默认利率、期限创建，本金取最低额度的 2 倍"""
        loan_type = validate_loan_type(loan_type)
        return cls.create(
            loan_type=loan_type.value,
            principal=loan_type.min_amount * 2,
            interest_rate=loan_type.default_rate,
            term=loan_type.default_term,
        )

    def update(self, **changes) -> "Loan":
        """返回修改后的新实例，保留 id 和 created_at，updated_at 严格递增"""
        name = changes.pop("name", self.name)
        merged = self.params.to_dict()
        merged.update(canonical_keys(changes))
        params, notes = normalize_loan_params(merged)

        now = datetime.now()
        if now <= self.updated_at:
            now = self.updated_at + timedelta(microseconds=1)

        loan = replace(
            self,
            params=params,
            name=name,
            updated_at=now,
            adjustments=self.adjustments + tuple(notes),
        )
        loan._log_advisories()
        return loan

    # ---------- 序列化 ----------

    def to_dict(self) -> Dict[str, Any]:
        data = {"id": self.id, "name": self.name}
        data.update(self.params.to_dict())
        data.update({
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "adjustments": list(self.adjustments),
            # 派生值，仅供输出
            "total_loan_amount": self.total_loan_amount,
            "number_of_payments": self.number_of_payments,
            "payment_amount": self.payment_amount,
            "total_interest": self.total_interest,
            "payoff_date": self.payoff_date.isoformat(),
        })
        return data

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=indent)

    # ---------- 参数 ----------

    @property
    def loan_type(self) -> LoanType:
        return self.params.loan_type

    @property
    def principal(self) -> float:
        return self.params.principal

    @property
    def down_payment(self) -> float:
        return self.params.down_payment

    @property
    def interest_rate(self) -> float:
        return self.params.interest_rate

    @property
    def term(self) -> int:
        return self.params.term

    @property
    def payment_frequency(self) -> PaymentFrequency:
        return self.params.payment_frequency

    @property
    def additional_payment(self) -> float:
        return self.params.additional_payment

    @property
    def inflation_rate(self) -> float:
        return self.params.inflation_rate

    @property
    def start_date(self) -> date:
        return self.params.start_date

    # ---------- 派生指标 ----------

    @property
    def total_loan_amount(self) -> float:
        return max(self.principal - self.down_payment, 0.0)

    @property
    def payments_per_year(self) -> int:
        return periods_per_year(self.payment_frequency)

    @property
    def number_of_payments(self) -> int:
        return number_of_payments(self.term, self.payment_frequency)

    @property
    def periodic_interest_rate(self) -> float:
        return periodic_rate(self.interest_rate, self.payment_frequency)

    @property
    def payment_amount(self) -> float:
        return annuity_payment(
            self.total_loan_amount, self.periodic_interest_rate, self.number_of_payments
        )

    @property
    def total_interest(self) -> float:
        if self.total_loan_amount <= 0:
            return 0.0
        return self.payment_amount * self.number_of_payments - self.total_loan_amount

    @property
    def payoff_date(self) -> date:
        return add_periods(self.start_date, self.number_of_payments, self.payment_frequency)

    # ---------- 检查 ----------

    def validate(self) -> ValidationResult:
        """参数合理性检查，只给出提示，不抛异常"""
        warnings = list(self.adjustments)
        warnings.extend(self._advisories())
        return ValidationResult(is_valid=not warnings, warnings=tuple(warnings))

    def _advisories(self):
        notes = []
        if self.principal <= 0:
            notes.append("Principal amount must be greater than zero")
        elif self.principal < self.loan_type.min_amount:
            notes.append(
                f"Principal {self.principal:,.2f} is below the minimum "
                f"{self.loan_type.min_amount:,.2f} for a {self.loan_type.label}"
            )
        if self.interest_rate > RATE_WARNING_THRESHOLD:
            notes.append("Interest rate is unusually high")
        if self.principal > 0 and self.down_payment >= self.principal:
            notes.append("Down payment is greater than or equal to the principal")
        payment = self.payment_amount
        if payment > 0 and self.additional_payment > payment:
            notes.append("Additional payment is greater than the regular payment")
        return notes

    def _log_advisories(self):
        for note in self._advisories():
            logger.warning("Loan %s: %s", self.id, note)

    # ---------- 提前还款影响 ----------

    def calculate_additional_payment_impact(
        self, extra_amount: Optional[float] = None
    ) -> AdditionalPaymentImpact:
        """每期额外还本 extra_amount 与不额外还款的对比"""
        if extra_amount is None:
            extra = self.additional_payment
        else:
            extra = coerce_number(extra_amount)
            if extra is None or extra < 0:
                raise InvalidInputError(f"extra_amount must be a number >= 0, got {extra_amount!r}")

        baseline = self.update(additional_payment=0)
        enhanced = self.update(additional_payment=extra)
        base_schedule = generate_schedule(baseline)
        new_schedule = generate_schedule(enhanced)

        payments_saved = len(base_schedule) - len(new_schedule)
        months_saved = round(payments_saved * 12 / self.payments_per_year)

        return AdditionalPaymentImpact(
            payments_saved=payments_saved,
            interest_saved=base_schedule.total_interest - new_schedule.total_interest,
            time_saved_months=months_saved % 12,
            time_saved_years=months_saved // 12,
            new_term=self.term - months_saved,
            new_payment=enhanced.payment_amount + extra,
            new_total_interest=new_schedule.total_interest,
            new_payoff_date=new_schedule.payoff_date,
            original_term=self.term,
            original_payment=baseline.payment_amount,
            original_total_interest=base_schedule.total_interest,
        )

    # ---------- 可负担额度 ----------

    @classmethod
    def calculate_affordable_loan(
        cls,
        desired_payment,
        interest_rate=DEFAULT_AFFORDABILITY_RATE,
        term=DEFAULT_AFFORDABILITY_TERM,
        payment_frequency: Union[str, PaymentFrequency] = PaymentFrequency.MONTHLY,
        down_payment=0,
        loan_type: Union[str, LoanType] = LoanType.MORTGAGE,
    ) -> AffordabilityResult:
        """由期望的每期还款额反推可贷本金"""
        if desired_payment is None:
            raise MissingParameterError("desired_payment is required")
        payment = coerce_number(desired_payment)
        if payment is None or payment <= 0:
            raise InvalidInputError(f"desired_payment must be greater than zero, got {desired_payment!r}")

        rate = coerce_number(interest_rate)
        if rate is None or not 0 <= rate <= MAX_INTEREST_RATE:
            raise InvalidInputError(
                f"interest_rate must be between 0 and {MAX_INTEREST_RATE}, got {interest_rate!r}"
            )
        months = coerce_number(term)
        if months is None or not 1 <= months <= MAX_TERM_MONTHS:
            raise InvalidInputError(f"term must be between 1 and {MAX_TERM_MONTHS}, got {term!r}")
        months = int(round(months))
        down = coerce_number(down_payment)
        if down is None or down < 0:
            raise InvalidInputError(f"down_payment must be >= 0, got {down_payment!r}")
        frequency = validate_payment_frequency(payment_frequency)
        loan_type = validate_loan_type(loan_type)

        n = number_of_payments(months, frequency)
        principal = present_value_of_annuity(payment, periodic_rate(rate, frequency), n)

        # 超过贷款类型最高额度时本金被截断，结果一律取自实际构造的贷款
        loan = cls.create(
            name="Affordable Loan",
            loan_type=loan_type.value,
            principal=principal + down,
            down_payment=down,
            interest_rate=rate,
            term=months,
            payment_frequency=frequency.value,
        )
        return AffordabilityResult(
            affordable_principal=loan.total_loan_amount,
            total_purchase_price=loan.principal,
            down_payment=loan.down_payment,
            monthly_payment=loan.payment_amount,
            total_interest=loan.total_interest,
            loan=loan,
        )

    # ---------- 转贷 ----------

    def calculate_refinance(
        self,
        interest_rate=None,
        term=None,
        closing_costs=0,
        as_of: Union[str, date, None] = None,
        principal=None,
        payment_frequency: Union[str, PaymentFrequency, None] = None,
        additional_payment=0,
    ) -> RefinanceComparison:
        """
        以 as_of（默认今天）时的剩余本金按新利率、新期限转贷，与继续还原贷款比较

        Args:
            interest_rate: 新年利率 (%)，必填
            term: 新期限（月），默认沿用原期限
            closing_costs: 转贷费用
            as_of: 转贷日期
            principal: 新贷款本金，默认为剩余本金（大于剩余本金即套现转贷）
            payment_frequency: 新还款频率，默认沿用原频率
            additional_payment: 新贷款每期额外还本
        """
        if interest_rate is None:
            raise MissingParameterError("New interest rate is required for refinance calculation")
        rate = coerce_number(interest_rate)
        if rate is None or rate < 0:
            raise InvalidInputError(f"interest_rate must be >= 0, got {interest_rate!r}")
        costs = coerce_number(closing_costs) if closing_costs is not None else 0.0
        if costs is None or costs < 0:
            raise InvalidInputError(f"closing_costs must be >= 0, got {closing_costs!r}")
        if term is None:
            new_term = self.term
        else:
            new_term = coerce_number(term)
            if new_term is None or new_term < 1:
                raise InvalidInputError(f"term must be >= 1, got {term!r}")
        extra = coerce_number(additional_payment) if additional_payment is not None else 0.0
        if extra is None or extra < 0:
            raise InvalidInputError(f"additional_payment must be >= 0, got {additional_payment!r}")
        frequency = (
            validate_payment_frequency(payment_frequency)
            if payment_frequency is not None else self.payment_frequency
        )
        refinance_date = parse_date(as_of) if as_of is not None else date.today()
        if refinance_date is None:
            raise InvalidInputError(f"as_of is not a valid date: {as_of!r}")

        current_schedule = generate_schedule(self)
        elapsed = periods_between(self.start_date, refinance_date, self.payment_frequency)
        balance, remaining_payments, remaining_interest = current_schedule.remaining_after(elapsed)
        current_payment = self.payment_amount if remaining_payments > 0 else 0.0

        if principal is None:
            new_principal = balance
        else:
            new_principal = coerce_number(principal)
            if new_principal is None or new_principal < 0:
                raise InvalidInputError(f"principal must be >= 0, got {principal!r}")

        # 超出范围的利率、期限按贷款规则截断，汇总一律取自 new_loan
        new_loan = Loan.create(
            name="Refinance Option",
            loan_type=self.loan_type.value,
            principal=new_principal,
            interest_rate=rate,
            term=new_term,
            payment_frequency=frequency.value,
            additional_payment=extra,
            start_date=refinance_date,
        )
        new_schedule = generate_schedule(new_loan)
        new_total_interest = new_schedule.total_interest

        monthly_savings = current_payment - new_loan.payment_amount
        lifetime_savings = (remaining_interest - new_total_interest) - costs
        break_even = costs / monthly_savings if monthly_savings > 0 else math.inf

        logger.info(
            "Refinance %s at %.3f%%: savings per period %.2f, lifetime %.2f",
            self.id, new_loan.interest_rate, monthly_savings, lifetime_savings,
        )
        return RefinanceComparison(
            current_loan=CurrentLoanSummary(
                payment=current_payment,
                remaining_balance=balance,
                remaining_payments=remaining_payments,
                remaining_interest=remaining_interest,
                elapsed_payments=min(elapsed, len(current_schedule)),
                total_cost=remaining_interest + balance,
            ),
            new_loan=NewLoanSummary(
                payment=new_loan.payment_amount,
                principal=new_loan.total_loan_amount,
                total_interest=new_total_interest,
                term=new_loan.term,
                interest_rate=new_loan.interest_rate,
                total_payments=len(new_schedule),
                total_cost=new_total_interest + new_loan.total_loan_amount + costs,
            ),
            comparison=RefinanceSummary(
                monthly_savings=monthly_savings,
                lifetime_savings=lifetime_savings,
                break_even_months=break_even,
                closing_costs=costs,
                is_worthwhile=lifetime_savings > 0,
            ),
            refinance_loan=new_loan,
        )
