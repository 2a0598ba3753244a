from enum import Enum


class LoanType(str, Enum):
    MORTGAGE = "mortgage"
    AUTO = "auto"
    PERSONAL = "personal"
    STUDENT = "student"

    @property
    def label(self) -> str:
        return {
            "mortgage": "Home Mortgage",
            "auto": "Auto Loan",
            "personal": "Personal Loan",
            "student": "Student Loan",
        }[self.value]

    @property
    def default_term(self) -> int:
        """默认期限（月）"""
        return LOAN_TYPE_TABLE[self.value]["default_term"]

    @property
    def default_rate(self) -> float:
        """默认年利率 (%)"""
        return LOAN_TYPE_TABLE[self.value]["default_rate"]

    @property
    def min_amount(self) -> float:
        return LOAN_TYPE_TABLE[self.value]["min_amount"]

    @property
    def max_amount(self) -> float:
        return LOAN_TYPE_TABLE[self.value]["max_amount"]


class PaymentFrequency(str, Enum):
    MONTHLY = "monthly"
    BI_WEEKLY = "bi-weekly"
    WEEKLY = "weekly"

    @property
    def label(self) -> str:
        return {
            "monthly": "Monthly",
            "bi-weekly": "Bi-Weekly",
            "weekly": "Weekly",
        }[self.value]

    @property
    def payments_per_year(self) -> int:
        return PAYMENTS_PER_YEAR[self.value]

    @property
    def period_days(self) -> int:
        """按天推进的频率返回间隔天数，按月推进的返回 0"""
        return {"monthly": 0, "bi-weekly": 14, "weekly": 7}[self.value]


# 贷款类型参数表
LOAN_TYPE_TABLE = {
    "mortgage": {"default_term": 360, "default_rate": 4.5, "min_amount": 10_000, "max_amount": 10_000_000},
    "auto": {"default_term": 60, "default_rate": 5.0, "min_amount": 1_000, "max_amount": 200_000},
    "personal": {"default_term": 36, "default_rate": 10.0, "min_amount": 1_000, "max_amount": 50_000},
    "student": {"default_term": 120, "default_rate": 5.5, "min_amount": 1_000, "max_amount": 500_000},
}

PAYMENTS_PER_YEAR = {
    "monthly": 12,
    "bi-weekly": 26,
    "weekly": 52,
}

# 列定义
AMORTIZATION_SCHEDULE_COLUMNS = [
    "sequence_number", "date", "payment_amount",
    "principal_portion", "interest_portion", "remaining_balance",
]

INFLATION_SCHEDULE_COLUMNS = AMORTIZATION_SCHEDULE_COLUMNS + [
    "inflation_factor", "inflation_adjusted_amount",
    "inflation_adjusted_principal", "inflation_adjusted_interest",
]

COMPARISON_COLUMNS = [
    "loan_id", "name", "loan_type", "loan_amount", "interest_rate", "term",
    "payment_frequency", "payment_amount", "number_of_payments",
    "total_interest", "total_payment", "payoff_date", "effective_annual_rate",
]
