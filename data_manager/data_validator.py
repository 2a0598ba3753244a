"""边界层：把原始输入（字符串、缺失字段）整理成 LoanParameters

数值字段不合法时不抛错，而是替换为贷款类型默认值或截断到允许范围，
每一次修正都会记录下来，由 Loan.validate() 以提示的形式返回。
枚举字段（贷款类型、还款频率）不合法时直接抛出异常。
"""
import logging
import math
from datetime import date
from typing import Any, List, Mapping, Optional, Tuple

from config.constants import LoanType, PaymentFrequency
from config.settings import (
    DEFAULT_INFLATION_RATE,
    MAX_INFLATION_RATE,
    MAX_INTEREST_RATE,
    MAX_TERM_MONTHS,
)
from core.errors import InvalidFrequencyError, InvalidLoanTypeError
from data_manager.schema import LoanParameters
from utils.date_utils import parse_date

logger = logging.getLogger(__name__)

# 原始输入允许的字段别名（兼容 camelCase）
FIELD_ALIASES = {
    "type": "loan_type",
    "loanType": "loan_type",
    "downPayment": "down_payment",
    "interestRate": "interest_rate",
    "paymentFrequency": "payment_frequency",
    "additionalPayment": "additional_payment",
    "inflationRate": "inflation_rate",
    "startDate": "start_date",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}


def canonical_keys(raw: Mapping[str, Any]) -> dict:
    return {FIELD_ALIASES.get(k, k): v for k, v in raw.items()}


def coerce_number(value: Any) -> Optional[float]:
    """转为 float，支持 "1,234.5" 形式的字符串；无法转换返回 None"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        cleaned = value.strip().replace(",", "")
        if not cleaned:
            return None
        try:
            num = float(cleaned)
        except ValueError:
            return None
    else:
        try:
            num = float(value)
        except (TypeError, ValueError):
            return None
    if math.isnan(num) or math.isinf(num):
        return None
    return num


def _clamp(
    name: str,
    value: Any,
    default: float,
    notes: List[str],
    lower: float = 0.0,
    upper: Optional[float] = None,
) -> float:
    num = coerce_number(value)
    if num is None:
        if value is not None and value != "":
            notes.append(f"{name} {value!r} is not a number; using default {default}")
        return default
    if num < lower:
        notes.append(f"{name} {num} is below {lower}; using default {default}")
        return default
    if upper is not None and num > upper:
        notes.append(f"{name} {num} exceeds maximum {upper}; clamped")
        return upper
    return num


def validate_loan_type(value: Any) -> LoanType:
    try:
        return LoanType(value)
    except ValueError:
        valid = ", ".join(t.value for t in LoanType)
        raise InvalidLoanTypeError(f"Invalid loan type: {value}. Valid types are: {valid}") from None


def validate_payment_frequency(value: Any) -> PaymentFrequency:
    try:
        return PaymentFrequency(value)
    except ValueError:
        valid = ", ".join(f.value for f in PaymentFrequency)
        raise InvalidFrequencyError(
            f"Invalid payment frequency: {value}. Valid frequencies are: {valid}"
        ) from None


def normalize_loan_params(raw: Mapping[str, Any]) -> Tuple[LoanParameters, List[str]]:
    """校验并整理贷款参数，返回 (LoanParameters, 修正说明列表)"""
    data = canonical_keys(raw)
    notes: List[str] = []

    loan_type = validate_loan_type(data.get("loan_type") or LoanType.MORTGAGE.value)
    frequency = validate_payment_frequency(
        data.get("payment_frequency") or PaymentFrequency.MONTHLY.value
    )

    principal = _clamp(
        "principal", data.get("principal"), loan_type.min_amount, notes,
        upper=loan_type.max_amount,
    )
    interest_rate = _clamp(
        "interest_rate", data.get("interest_rate"), loan_type.default_rate, notes,
        upper=MAX_INTEREST_RATE,
    )
    term = _clamp(
        "term", data.get("term"), loan_type.default_term, notes,
        lower=1, upper=MAX_TERM_MONTHS,
    )
    down_payment = _clamp("down_payment", data.get("down_payment"), 0.0, notes, upper=principal)
    additional_payment = _clamp("additional_payment", data.get("additional_payment"), 0.0, notes)
    inflation_rate = _clamp(
        "inflation_rate", data.get("inflation_rate"), DEFAULT_INFLATION_RATE, notes,
        upper=MAX_INFLATION_RATE,
    )

    raw_start = data.get("start_date")
    start_date = parse_date(raw_start)
    if start_date is None:
        if raw_start not in (None, ""):
            notes.append(f"start_date {raw_start!r} is not a valid date; using today")
        start_date = date.today()

    for note in notes:
        logger.warning("Loan input adjusted: %s", note)

    params = LoanParameters(
        loan_type=loan_type,
        principal=principal,
        down_payment=down_payment,
        interest_rate=interest_rate,
        term=int(round(term)),
        payment_frequency=frequency,
        additional_payment=additional_payment,
        inflation_rate=inflation_rate,
        start_date=start_date,
    )
    return params, notes
