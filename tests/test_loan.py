"""贷款实体测试"""
import json
import math
from datetime import date, datetime

import pytest

from core.errors import (
    InvalidFrequencyError,
    InvalidInputError,
    InvalidLoanTypeError,
    MissingParameterError,
)
from core.loan import Loan, LoanType, PaymentFrequency
from core.schedule_generator import generate_schedule


class TestLoanCreation:
    """创建与派生指标"""

    def test_scenario_mortgage_payment(self, mortgage):
        """20万，首付4万，4.5%，30年 -> 810.70"""
        assert mortgage.total_loan_amount == 160000
        assert mortgage.number_of_payments == 360
        assert mortgage.payment_amount == pytest.approx(810.70, abs=0.01)
        assert mortgage.total_interest == pytest.approx(810.70 * 360 - 160000, abs=5)

    def test_scenario_zero_rate(self, zero_rate_loan):
        assert zero_rate_loan.payment_amount == pytest.approx(1666.67, abs=0.01)
        assert zero_rate_loan.total_interest == pytest.approx(0, abs=1e-6)

    def test_string_inputs(self):
        loan = Loan.create(principal="200,000", interest_rate="6", term="180")
        assert loan.principal == 200000
        assert loan.interest_rate == 6.0
        assert loan.term == 180

    def test_defaults(self):
        loan = Loan.create(principal=50000)
        assert loan.loan_type is LoanType.MORTGAGE
        assert loan.payment_frequency is PaymentFrequency.MONTHLY
        assert loan.interest_rate == 4.5
        assert loan.term == 360
        assert loan.inflation_rate == 2.5
        assert loan.name == "Home Mortgage"
        assert loan.id.startswith("LN-")

    def test_bi_weekly(self):
        loan = Loan.create(principal=100000, interest_rate=5.2, term=120, payment_frequency="bi-weekly")
        assert loan.payments_per_year == 26
        assert loan.number_of_payments == 260
        assert loan.periodic_interest_rate == pytest.approx(0.002)

    def test_payment_covers_principal(self):
        for rate in (0, 1.5, 7, 29):
            for term in (1, 37, 600):
                loan = Loan.create(principal=100000, interest_rate=rate, term=term)
                assert loan.payment_amount * loan.number_of_payments >= loan.principal - 1e-6

    def test_invalid_loan_type(self):
        with pytest.raises(InvalidLoanTypeError):
            Loan.create(loan_type="yacht", principal=100000)

    def test_invalid_frequency(self):
        with pytest.raises(InvalidFrequencyError):
            Loan.create(principal=100000, payment_frequency="daily")

    def test_negative_principal_uses_type_minimum(self):
        loan = Loan.create(loan_type="auto", principal=-100)
        assert loan.principal == LoanType.AUTO.min_amount
        assert loan.adjustments

    def test_create_default(self):
        loan = Loan.create_default("personal")
        assert loan.loan_type is LoanType.PERSONAL
        assert loan.principal == 2000
        assert loan.interest_rate == 10.0
        assert loan.term == 36


class TestPayoffDate:

    def test_monthly(self):
        loan = Loan.create(principal=50000, term=12, start_date="2024-01-31")
        assert loan.payoff_date == date(2025, 1, 31)

    def test_weekly(self):
        loan = Loan.create(principal=50000, term=12, payment_frequency="weekly", start_date="2024-01-01")
        assert loan.payoff_date == date(2024, 12, 30)


class TestUpdate:
    """不可变更新"""

    def test_returns_new_instance(self, mortgage):
        updated = mortgage.update(interest_rate=5.0)
        assert updated is not mortgage
        assert mortgage.interest_rate == 4.5
        assert updated.interest_rate == 5.0

    def test_preserves_identity(self, mortgage):
        updated = mortgage.update(term=180, name="Shorter")
        assert updated.id == mortgage.id
        assert updated.created_at == mortgage.created_at
        assert updated.updated_at > mortgage.updated_at
        assert updated.name == "Shorter"
        assert updated.principal == mortgage.principal

    def test_repeated_updates_strictly_increase(self, mortgage):
        first = mortgage.update(term=200)
        second = first.update(term=210)
        assert second.updated_at > first.updated_at > mortgage.updated_at

    def test_frozen(self, mortgage):
        with pytest.raises(AttributeError):
            mortgage.name = "changed"


class TestSerialization:
    """JSON 序列化"""

    def test_round_trip(self, mortgage):
        restored = Loan.from_json(mortgage.to_json())
        assert restored.params == mortgage.params
        assert restored.id == mortgage.id
        assert restored.created_at == mortgage.created_at
        assert restored.updated_at == mortgage.updated_at
        assert restored.payment_amount == pytest.approx(mortgage.payment_amount, abs=1e-6)

    def test_to_dict_contains_enum_values(self, mortgage):
        data = mortgage.to_dict()
        assert data["loan_type"] == "mortgage"
        assert data["payment_frequency"] == "monthly"
        assert data["start_date"] == "2024-01-01"
        json.dumps(data)

    def test_missing_dates_become_now(self):
        before = datetime.now()
        loan = Loan.from_json('{"principal": 50000, "created_at": "garbage"}')
        assert loan.created_at >= before
        assert loan.start_date == date.today()

    def test_missing_numbers_use_defaults(self):
        loan = Loan.from_dict({"loan_type": "auto"})
        assert loan.principal == 1000
        assert loan.interest_rate == 5.0
        assert loan.term == 60

    def test_malformed_json(self):
        with pytest.raises(InvalidInputError):
            Loan.from_json("{not json")
        with pytest.raises(InvalidInputError):
            Loan.from_json("[1, 2]")


class TestValidate:
    """参数检查"""

    def test_clean_loan(self, mortgage):
        result = mortgage.validate()
        assert result.is_valid
        assert result.warnings == ()

    def test_high_rate(self):
        result = Loan.create(principal=50000, interest_rate=25).validate()
        assert not result.is_valid
        assert any("unusually high" in w for w in result.warnings)

    def test_clamped_input_reported(self):
        result = Loan.create(principal=50000, interest_rate=45).validate()
        assert any("interest_rate" in w for w in result.warnings)

    def test_down_payment_equal_to_principal(self):
        result = Loan.create(principal=50000, down_payment=50000).validate()
        assert any("Down payment" in w for w in result.warnings)

    def test_additional_payment_exceeds_payment(self):
        result = Loan.create(principal=50000, interest_rate=5, term=360, additional_payment=5000).validate()
        assert any("Additional payment" in w for w in result.warnings)

    def test_zero_principal(self):
        result = Loan.create(principal=0).validate()
        assert any("greater than zero" in w for w in result.warnings)

    def test_below_type_minimum(self):
        result = Loan.create(principal=5000).validate()
        assert any("below the minimum" in w for w in result.warnings)

    def test_never_raises_and_calculations_still_work(self):
        loan = Loan.create(principal=50000, down_payment=50000)
        loan.validate()
        assert loan.payment_amount == 0.0
        assert len(generate_schedule(loan)) == 0


class TestAdditionalPaymentImpact:
    """额外还款影响"""

    @pytest.fixture
    def loan(self):
        return Loan.create(principal=200000, interest_rate=6, term=360, start_date="2024-01-01")

    def test_zero_extra(self, loan):
        impact = loan.calculate_additional_payment_impact(0)
        assert impact.payments_saved == 0
        assert impact.interest_saved == pytest.approx(0, abs=1e-6)
        assert impact.time_saved_months == 0
        assert impact.time_saved_years == 0
        assert impact.new_term == 360

    def test_extra_shortens_loan(self, loan):
        impact = loan.calculate_additional_payment_impact(200)
        assert impact.payments_saved > 0
        assert impact.interest_saved > 0
        assert impact.new_payment == pytest.approx(loan.payment_amount + 200)
        assert impact.new_payoff_date < loan.payoff_date
        assert impact.original_term == 360
        assert impact.original_payment == pytest.approx(loan.payment_amount)
        months = impact.time_saved_years * 12 + impact.time_saved_months
        assert impact.new_term == 360 - months

    def test_interest_saved_is_monotone(self, loan):
        saved = [loan.calculate_additional_payment_impact(x).interest_saved for x in (0, 50, 100, 500, 1000, 5000)]
        assert all(b >= a for a, b in zip(saved, saved[1:]))

    def test_huge_extra(self, loan):
        impact = loan.calculate_additional_payment_impact(1_000_000)
        assert impact.payments_saved == 359
        schedule = generate_schedule(loan.update(additional_payment=1_000_000))
        assert len(schedule) == 1
        assert schedule[0].remaining_balance == 0.0

    def test_default_extra_is_loan_additional_payment(self, loan):
        with_extra = loan.update(additional_payment=300)
        assert (
            with_extra.calculate_additional_payment_impact().payments_saved
            == loan.calculate_additional_payment_impact(300).payments_saved
        )

    def test_negative_extra(self, loan):
        with pytest.raises(InvalidInputError):
            loan.calculate_additional_payment_impact(-10)


class TestAffordability:
    """可负担额度"""

    def test_inverse_of_payment(self):
        result = Loan.calculate_affordable_loan(810.70, interest_rate=4.5, term=360)
        assert result.affordable_principal == pytest.approx(160000, abs=5)
        assert result.total_interest == pytest.approx(810.70 * 360 - result.affordable_principal)

    def test_down_payment_added_to_price(self):
        result = Loan.calculate_affordable_loan(1000, down_payment=20000)
        assert result.total_purchase_price == pytest.approx(result.affordable_principal + 20000)
        assert result.loan.total_loan_amount == pytest.approx(result.affordable_principal)
        assert result.loan.payment_amount == pytest.approx(1000)

    def test_zero_rate(self):
        result = Loan.calculate_affordable_loan(1000, interest_rate=0, term=12)
        assert result.affordable_principal == pytest.approx(12000)
        assert result.total_interest == pytest.approx(0)

    def test_defaults(self):
        result = Loan.calculate_affordable_loan("1500")
        assert result.loan.interest_rate == 4.5
        assert result.loan.term == 360
        assert result.monthly_payment == pytest.approx(1500)

    def test_non_positive_payment(self):
        with pytest.raises(InvalidInputError):
            Loan.calculate_affordable_loan(0)
        with pytest.raises(InvalidInputError):
            Loan.calculate_affordable_loan(-100)

    def test_missing_payment(self):
        with pytest.raises(MissingParameterError):
            Loan.calculate_affordable_loan(None)

    def test_capped_at_type_maximum(self):
        """超过房贷最高额度时，结果与构造出的贷款一致"""
        result = Loan.calculate_affordable_loan(100000, interest_rate=4.5, term=360)
        assert result.affordable_principal == pytest.approx(10_000_000)
        assert result.loan.total_loan_amount == pytest.approx(result.affordable_principal)
        assert result.monthly_payment == pytest.approx(result.loan.payment_amount)
        assert result.monthly_payment < 100000
        assert result.total_interest == pytest.approx(result.loan.total_interest)

    def test_out_of_range_rate_and_term(self):
        with pytest.raises(InvalidInputError):
            Loan.calculate_affordable_loan(1000, term=720)
        with pytest.raises(InvalidInputError):
            Loan.calculate_affordable_loan(1000, interest_rate=35)


class TestRefinance:
    """转贷比较"""

    @pytest.fixture
    def loan(self):
        return Loan.create(principal=300000, interest_rate=5.5, term=360, start_date="2020-01-01")

    def test_scenario_worthwhile(self, loan):
        """5.5% -> 1.0%，已还5年，费用5000"""
        result = loan.calculate_refinance(interest_rate=1.0, closing_costs=5000, as_of="2025-01-01")
        assert result.current_loan.elapsed_payments == 60
        assert result.current_loan.remaining_payments == 300
        assert result.comparison.is_worthwhile
        assert result.comparison.break_even_months < 12
        assert result.new_loan.term == 360
        assert result.new_loan.principal == pytest.approx(result.current_loan.remaining_balance)

    def test_savings_formulas(self, loan):
        result = loan.calculate_refinance(interest_rate=3.0, term=240, closing_costs=3000, as_of=date(2023, 1, 1))
        current, new, summary = result.current_loan, result.new_loan, result.comparison
        assert summary.monthly_savings == pytest.approx(current.payment - new.payment)
        assert summary.lifetime_savings == pytest.approx(
            current.remaining_interest - new.total_interest - 3000
        )
        assert summary.break_even_months == pytest.approx(3000 / summary.monthly_savings)
        assert result.refinance_loan.term == 240

    def test_higher_rate_never_breaks_even(self, loan):
        result = loan.calculate_refinance(interest_rate=9.0, closing_costs=2000, as_of="2021-01-01")
        assert result.comparison.monthly_savings < 0
        assert math.isinf(result.comparison.break_even_months)
        assert not result.comparison.is_worthwhile

    def test_missing_rate(self, loan):
        with pytest.raises(MissingParameterError):
            loan.calculate_refinance()

    def test_invalid_arguments(self, loan):
        with pytest.raises(InvalidInputError):
            loan.calculate_refinance(interest_rate=-1)
        with pytest.raises(InvalidInputError):
            loan.calculate_refinance(interest_rate=3, closing_costs=-50)

    def test_before_start_uses_full_balance(self, loan):
        result = loan.calculate_refinance(interest_rate=4.0, as_of="2019-06-01")
        assert result.current_loan.elapsed_payments == 0
        assert result.current_loan.remaining_balance == pytest.approx(300000)
        assert result.current_loan.remaining_payments == 360

    def test_reported_term_matches_new_loan(self, loan):
        result = loan.calculate_refinance(interest_rate=3.0, term=1000, as_of="2025-01-01")
        assert result.new_loan.term == 600
        assert result.refinance_loan.term == 600

    def test_total_cost(self, loan):
        result = loan.calculate_refinance(interest_rate=1.0, closing_costs=5000, as_of="2025-01-01")
        current, new = result.current_loan, result.new_loan
        assert current.total_cost == pytest.approx(current.remaining_interest + current.remaining_balance)
        assert new.total_cost == pytest.approx(new.total_interest + new.principal + 5000)

    def test_cash_out_principal(self, loan):
        result = loan.calculate_refinance(interest_rate=3.0, principal=350000, as_of="2025-01-01")
        assert result.new_loan.principal == pytest.approx(350000)
        assert result.refinance_loan.total_loan_amount == pytest.approx(350000)
        assert result.new_loan.payment > loan.calculate_refinance(interest_rate=3.0, as_of="2025-01-01").new_loan.payment

    def test_switch_frequency(self, loan):
        result = loan.calculate_refinance(interest_rate=3.0, payment_frequency="bi-weekly", as_of="2025-01-01")
        assert result.refinance_loan.payment_frequency is PaymentFrequency.BI_WEEKLY
        assert result.new_loan.total_payments == 780
        # 原贷款仍按月计算已还期数
        assert result.current_loan.elapsed_payments == 60

    def test_additional_payment_on_new_loan(self, loan):
        plain = loan.calculate_refinance(interest_rate=3.0, as_of="2025-01-01")
        faster = loan.calculate_refinance(interest_rate=3.0, additional_payment=200, as_of="2025-01-01")
        assert faster.new_loan.total_payments < plain.new_loan.total_payments
        assert faster.new_loan.total_interest < plain.new_loan.total_interest
        assert faster.new_loan.payment == pytest.approx(plain.new_loan.payment)
        assert faster.comparison.lifetime_savings > plain.comparison.lifetime_savings

    def test_invalid_overrides(self, loan):
        with pytest.raises(InvalidInputError):
            loan.calculate_refinance(interest_rate=3.0, principal=-1)
        with pytest.raises(InvalidInputError):
            loan.calculate_refinance(interest_rate=3.0, additional_payment=-5)
        with pytest.raises(InvalidFrequencyError):
            loan.calculate_refinance(interest_rate=3.0, payment_frequency="daily")
