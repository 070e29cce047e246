"""
Tests for the SBLOC state machine: interest, withdrawals, LTV regimes,
forced liquidation and state validation.
"""
import math

import pytest

from core.config import SBLOCConfig, WithdrawalChapter
from core.errors import StateValidationError
from engine.interest import (
    accrue_interest,
    calculate_annual_interest,
    calculate_monthly_interest,
    effective_annual_rate,
    project_loan_balance,
)
from engine.liquidation import (
    calculate_haircut_loss,
    calculate_liquidation_amount,
    can_recover_from_margin_call,
)
from engine.ltv import (
    LoanRegime,
    calculate_available_credit,
    calculate_drop_to_margin_call,
    calculate_ltv,
    calculate_margin_buffer,
    classify_regime,
    effective_ltv_limit,
)
from engine.sbloc import apply_return, initialize_sbloc_state, step_year
from engine.state import SBLOCState
from engine.validation import validate_sbloc_state
from engine.withdrawals import (
    chapter_multiplier,
    dividend_tax_borrowing,
    effective_withdrawal,
    withdrawal_schedule,
)


@pytest.fixture
def quiet_config():
    """No interest, no withdrawals: only returns and liquidation move the state."""
    return SBLOCConfig(annual_interest_rate=0.0, base_withdrawal=0.0)


def make_state(portfolio, loan, years=0):
    return SBLOCState(
        portfolio_value=portfolio,
        loan_balance=loan,
        current_ltv=calculate_ltv(loan, portfolio),
        years_since_start=years,
    )


@pytest.mark.unit
class TestInitialization:

    def test_defaults_start_without_a_loan(self):
        state = initialize_sbloc_state(SBLOCConfig(), 1_000_000)
        assert state.portfolio_value == 1_000_000
        assert state.loan_balance == 0.0
        assert state.current_ltv == 0.0
        assert state.years_since_start == 0
        assert not state.in_warning_zone

    def test_explicit_initial_loan(self):
        state = initialize_sbloc_state(SBLOCConfig(), 1_000_000, initial_loan_balance=200_000)
        assert state.current_ltv == pytest.approx(0.2)

    def test_initial_loan_from_config(self):
        state = initialize_sbloc_state(SBLOCConfig(initial_loan_balance=550_000), 1_000_000)
        assert state.current_ltv == pytest.approx(0.55)
        assert state.in_warning_zone


@pytest.mark.unit
class TestWithdrawals:

    def test_annual_raise(self):
        cfg = SBLOCConfig()
        assert effective_withdrawal(cfg, 0) == pytest.approx(50_000)
        assert effective_withdrawal(cfg, 1) == pytest.approx(51_500)
        # simulation year 3
        assert effective_withdrawal(cfg, 2) == pytest.approx(53_045)

    def test_deferred_start(self):
        cfg = SBLOCConfig(withdrawal_start_year=2)
        assert effective_withdrawal(cfg, 0) == 0.0
        assert effective_withdrawal(cfg, 1) == 0.0
        assert effective_withdrawal(cfg, 2) == pytest.approx(50_000)
        assert effective_withdrawal(cfg, 3) == pytest.approx(51_500)

    def test_chapters_reduce_later_withdrawals(self):
        cfg = SBLOCConfig(annual_withdrawal_raise=0.0, chapters=[
            WithdrawalChapter(years_after_start=10, reduction_percent=25),
            WithdrawalChapter(years_after_start=20, reduction_percent=20),
        ])
        assert effective_withdrawal(cfg, 9) == pytest.approx(50_000)
        assert effective_withdrawal(cfg, 10) == pytest.approx(37_500)
        assert effective_withdrawal(cfg, 20) == pytest.approx(30_000)

    def test_chapter_multiplier_without_chapters(self):
        assert chapter_multiplier((), 15) == 1.0

    def test_schedule(self):
        schedule = withdrawal_schedule(SBLOCConfig(annual_withdrawal_raise=0.0, withdrawal_start_year=1), 3)
        assert list(schedule) == [0.0, 50_000.0, 50_000.0]


@pytest.mark.unit
class TestInterest:

    def test_annual_interest(self):
        assert accrue_interest(100_000, SBLOCConfig()) == pytest.approx(7_400)
        assert calculate_annual_interest(100_000, 0.074) == pytest.approx(7_400)

    def test_monthly_compounding(self):
        cfg = SBLOCConfig(compounding_frequency="monthly")
        expected = 100_000 * ((1 + 0.074 / 12) ** 12 - 1)
        assert accrue_interest(100_000, cfg) == pytest.approx(expected)
        assert accrue_interest(100_000, cfg) > 7_400

    def test_effective_rate(self):
        assert effective_annual_rate(0.074) == pytest.approx(0.07656, abs=1e-4)
        assert effective_annual_rate(0.0) == 0.0

    def test_no_interest_without_a_loan(self):
        assert accrue_interest(0.0, SBLOCConfig()) == 0.0
        assert calculate_monthly_interest(-5.0, 0.074) == 0.0

    def test_projection_charges_interest_before_withdrawal(self):
        cfg = SBLOCConfig(annual_interest_rate=0.10, annual_withdrawal_raise=0.0)
        # year 1: 0 + 50k; year 2: 50k * 1.1 + 50k
        assert project_loan_balance(cfg, 2) == pytest.approx(105_000)


@pytest.mark.unit
class TestLTV:

    def test_ltv_edge_cases(self):
        assert calculate_ltv(0, 0) == 0.0
        assert calculate_ltv(100, 0) == math.inf
        assert calculate_ltv(650_000, 1_000_000) == pytest.approx(0.65)

    @pytest.mark.parametrize("portfolio, ltv, regime", [
        (1_000_000, 0.30, LoanRegime.HEALTHY),
        (1_000_000, 0.50, LoanRegime.WARNING),
        (1_000_000, 0.649, LoanRegime.WARNING),
        (1_000_000, 0.65, LoanRegime.FORCED_LIQUIDATION),
        (0.0, math.inf, LoanRegime.WIPED),
    ])
    def test_classify_regime(self, portfolio, ltv, regime):
        assert classify_regime(portfolio, ltv, SBLOCConfig()) is regime

    def test_available_credit(self):
        cfg = SBLOCConfig()
        assert calculate_available_credit(make_state(1_000_000, 400_000), cfg) == pytest.approx(250_000)
        assert calculate_available_credit(make_state(1_000_000, 700_000), cfg) == 0.0

    def test_drop_to_margin_call(self):
        cfg = SBLOCConfig()
        assert calculate_drop_to_margin_call(make_state(1_000_000, 400_000), cfg) == pytest.approx(1 - 0.4 / 0.65)
        assert calculate_drop_to_margin_call(make_state(1_000_000, 0), cfg) == 1.0
        assert calculate_drop_to_margin_call(make_state(0, 100_000), cfg) == -math.inf

    def test_margin_buffer(self):
        buffer = calculate_margin_buffer(make_state(1_000_000, 400_000), SBLOCConfig())
        assert buffer.dollars_until_warning == pytest.approx(200_000)
        assert buffer.dollars_until_margin_call == pytest.approx(1_000_000 - 400_000 / 0.65)

    def test_effective_ltv_limit(self):
        limits = {"equity": 0.5, "bond": 0.9, "cash": 0.95}
        assert effective_ltv_limit([(800_000, "equity"), (200_000, "bond")], limits) == pytest.approx(0.58)
        assert effective_ltv_limit([(100, "crypto")]) == pytest.approx(0.65)
        assert effective_ltv_limit([]) == 0.0


@pytest.mark.unit
class TestStepYear:

    def test_healthy_year(self):
        cfg = SBLOCConfig()
        state = make_state(1_000_000, 100_000)
        result = step_year(state, cfg, 0.0)

        assert result.year == 1
        assert result.interest_charged == pytest.approx(7_400)
        assert result.withdrawal_made == pytest.approx(50_000)
        assert state.loan_balance == pytest.approx(157_400)
        assert state.current_ltv == pytest.approx(0.1574)
        assert result.regime is LoanRegime.HEALTHY
        assert not result.margin_call_triggered
        assert state.years_since_start == 1

    def test_warning_zone(self, quiet_config):
        state = make_state(1_000_000, 500_000)
        result = step_year(state, quiet_config, 0.0)
        assert result.regime is LoanRegime.WARNING
        assert state.in_warning_zone
        assert result.margin_call is None

    def test_margin_call_at_exactly_max_ltv(self, quiet_config):
        state = make_state(1_000_000, 650_000)
        result = step_year(state, quiet_config, 0.0)
        assert result.regime is LoanRegime.FORCED_LIQUIDATION
        assert result.margin_call_triggered

    def test_forced_liquidation_reaches_target_ltv(self, quiet_config):
        state = make_state(1_000_000, 600_000)
        result = step_year(state, quiet_config, -0.10)

        # 900k portfolio, LTV 0.667; target 0.40 -> excess 240k of loan
        sold = 240_000 / 0.95
        assert result.regime is LoanRegime.FORCED_LIQUIDATION
        assert result.margin_call.ltv_at_call == pytest.approx(600_000 / 900_000)
        assert result.liquidation.assets_sold == pytest.approx(sold)
        assert result.liquidation.loan_repaid == pytest.approx(240_000)
        assert result.haircut_loss == pytest.approx(sold * 0.05)
        assert state.loan_balance == pytest.approx(360_000)
        assert state.portfolio_value == pytest.approx(900_000 - sold)
        assert state.current_ltv < quiet_config.max_ltv

    def test_portfolio_wiped_out(self):
        state = make_state(1_000_000, 100_000)
        result = step_year(state, SBLOCConfig(), -1.5)
        assert state.portfolio_value == 0.0
        assert result.regime is LoanRegime.WIPED
        assert result.ltv == math.inf
        assert result.liquidation is None
        assert result.portfolio_failed

    def test_apply_return_floors_at_zero(self):
        assert apply_return(100.0, -2.0) == 0.0
        assert apply_return(100.0, 0.1) == pytest.approx(110.0)

    def test_nan_return_is_rejected(self):
        with pytest.raises(StateValidationError) as excinfo:
            step_year(make_state(1_000_000, 0), SBLOCConfig(), float("nan"))
        assert excinfo.value.field == "portfolio_value"

    def test_invalid_state_rejected_before_stepping(self):
        state = SBLOCState(portfolio_value=-1.0, loan_balance=0.0, current_ltv=0.0)
        with pytest.raises(StateValidationError):
            step_year(state, SBLOCConfig(), 0.05)
        assert state.years_since_start == 0


@pytest.mark.unit
class TestDividendTax:

    def test_tax_is_borrowed_on_the_line(self):
        cfg = SBLOCConfig(
            annual_interest_rate=0.0, base_withdrawal=0.0,
            dividend_yield=0.02, dividend_tax_rate=0.25,
        )
        state = make_state(1_000_000, 100_000)
        result = step_year(state, cfg, 0.0)

        assert result.dividend_tax_borrowed == pytest.approx(5_000)
        assert state.loan_balance == pytest.approx(105_000)
        assert state.portfolio_value == pytest.approx(1_000_000)

    def test_tax_uses_post_return_portfolio(self):
        cfg = SBLOCConfig(
            annual_interest_rate=0.0, base_withdrawal=0.0,
            dividend_yield=0.02, dividend_tax_rate=0.25,
        )
        result = step_year(make_state(1_000_000, 0.0), cfg, 0.10)
        assert result.dividend_tax_borrowed == pytest.approx(5_500)

    def test_interest_is_charged_on_the_opening_loan_only(self):
        cfg = SBLOCConfig(base_withdrawal=0.0, dividend_yield=0.02, dividend_tax_rate=0.25)
        state = make_state(1_000_000, 100_000)
        result = step_year(state, cfg, 0.0)

        assert result.interest_charged == pytest.approx(7_400)
        assert state.loan_balance == pytest.approx(100_000 + 7_400 + 5_000)

    def test_default_config_borrows_nothing(self):
        result = step_year(make_state(1_000_000, 100_000), SBLOCConfig(), 0.0)
        assert result.dividend_tax_borrowed == 0.0

    def test_no_tax_on_an_empty_portfolio(self):
        cfg = SBLOCConfig(dividend_yield=0.03, dividend_tax_rate=0.2)
        assert dividend_tax_borrowing(0.0, cfg) == 0.0
        assert dividend_tax_borrowing(500_000, cfg) == pytest.approx(3_000)


@pytest.mark.unit
class TestLiquidationMath:

    def test_nothing_to_sell_below_target(self):
        amounts = calculate_liquidation_amount(1_000_000, 300_000, SBLOCConfig())
        assert amounts.assets_to_sell == 0.0
        assert amounts.target_ltv == pytest.approx(0.40)

    def test_haircut_loss(self):
        assert calculate_haircut_loss(100_000, 0.05) == pytest.approx(5_000)
        assert calculate_haircut_loss(0, 0.05) == 0.0

    def test_can_recover(self):
        cfg = SBLOCConfig()
        assert can_recover_from_margin_call(make_state(1_000_000, 700_000), cfg)
        assert not can_recover_from_margin_call(make_state(800_000, 800_000), cfg)
        assert not can_recover_from_margin_call(make_state(0, 600_000), cfg)


@pytest.mark.unit
class TestStateValidation:

    def test_infinite_ltv_allowed_when_wiped_with_debt(self):
        validate_sbloc_state(SBLOCState(0.0, 100_000.0, math.inf))

    def test_infinite_ltv_with_collateral_rejected(self):
        state = SBLOCState(1_000_000.0, 500_000.0, math.inf)
        with pytest.raises(StateValidationError) as excinfo:
            validate_sbloc_state(state)
        assert excinfo.value.field == "current_ltv"
        assert excinfo.value.state["portfolio_value"] == 1_000_000.0

    def test_infinite_ltv_without_debt_rejected(self):
        with pytest.raises(StateValidationError):
            validate_sbloc_state(SBLOCState(0.0, 0.0, math.inf))

    @pytest.mark.parametrize("state, field", [
        (SBLOCState(1.0, 0.0, float("nan")), "current_ltv"),
        (SBLOCState(1.0, 0.0, -0.1), "current_ltv"),
        (SBLOCState(-1.0, 0.0, 0.0), "portfolio_value"),
        (SBLOCState(1.0, float("inf"), 0.0), "loan_balance"),
        (SBLOCState(1.0, 0.0, 0.0, years_since_start=-1), "years_since_start"),
        (SBLOCState(1.0, 0.0, 0.0, years_since_start=1.5), "years_since_start"),
    ])
    def test_invalid_fields(self, state, field):
        with pytest.raises(StateValidationError) as excinfo:
            validate_sbloc_state(state)
        assert excinfo.value.field == field
        assert field in str(excinfo.value)
