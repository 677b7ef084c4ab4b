"""
Market Sizing Engine Tests
"""

import math

import pytest

from market_engine import (
    PenetrationStrategy, calculate_sam, calculate_som, calculate_tam, format_market_currency,
    format_market_percent, market_analysis_metrics, market_concentration, market_opportunity_score,
    market_penetration_trajectory, market_share_progression, penetration_factor, validate_market_analysis,
)


@pytest.mark.unit
class TestMarketSizing:

    def test_tam_compounds_forward_and_back(self):
        document = {"meta": {"base_year": 2024}, "market_sizing": {"total_addressable_market": {
            "base_value": {"value": 2.5e9}, "growth_rate": {"value": 12}}}}
        assert calculate_tam(document, 2024) == pytest.approx(2.5e9)
        assert calculate_tam(document, 2025) == pytest.approx(2.5e9 * 1.12)
        assert calculate_tam(document, 2023) == pytest.approx(2.5e9 / 1.12)

    def test_base_year_defaults_to_2024(self):
        document = {"market_sizing": {"total_addressable_market": {
            "base_value": {"value": 100}, "growth_rate": {"value": 10}}}}
        assert calculate_tam(document, 2025) == pytest.approx(110)

    def test_sam_and_som_nest(self, market_document):
        assert calculate_sam(market_document, 2024) == pytest.approx(4e8)
        assert calculate_som(market_document, 2024) == pytest.approx(4e7)

    def test_missing_sizing_is_zero(self):
        assert calculate_tam({}, 2030) == 0
        assert calculate_som({}, 2030) == 0


@pytest.mark.unit
class TestShareProgression:

    def test_linear_at_twenty_percent_of_timeframe(self, market_document):
        assert market_share_progression(market_document, 12) == pytest.approx(0.01 + 0.04 * 0.2)

    @pytest.mark.parametrize("strategy", ["linear", "exponential", "s_curve"])
    def test_every_strategy_runs_from_current_to_target(self, market_document, strategy):
        market_document["market_share"]["target_position"]["penetration_strategy"] = strategy
        assert market_share_progression(market_document, 0) == pytest.approx(0.01)
        assert market_share_progression(market_document, 60) == pytest.approx(0.05)

    def test_holds_target_after_timeframe(self, market_document):
        for strategy in ("linear", "exponential", "s_curve"):
            market_document["market_share"]["target_position"]["penetration_strategy"] = strategy
            assert market_share_progression(market_document, 120) == market_share_progression(market_document, 60)

    def test_exponential_leads_linear_early(self, market_document):
        linear = market_share_progression(market_document, 12)
        market_document["market_share"]["target_position"]["penetration_strategy"] = "exponential"
        assert market_share_progression(market_document, 12) > linear

    def test_factor_shapes(self):
        assert penetration_factor(PenetrationStrategy.LINEAR, 0.5) == 0.5
        assert penetration_factor(PenetrationStrategy.EXPONENTIAL, 0.0) == 0
        assert penetration_factor(PenetrationStrategy.EXPONENTIAL, 1.0) == pytest.approx(1.0)
        assert penetration_factor(PenetrationStrategy.EXPONENTIAL, 0.5) == pytest.approx((1 - math.exp(-1.5)) / (1 - math.exp(-3)))
        assert penetration_factor(PenetrationStrategy.S_CURVE, 0.0) == 0
        assert penetration_factor(PenetrationStrategy.S_CURVE, 1.0) == pytest.approx(1.0)
        assert penetration_factor(PenetrationStrategy.S_CURVE, 0.5) == pytest.approx(0.5)

    def test_missing_positions_give_zero(self):
        assert market_share_progression({}, 12) == 0
        assert market_share_progression({"market_share": {"current_position": {"current_share": 3}}}, 12) == 0


@pytest.mark.unit
class TestMarketMetrics:

    def test_three_party_concentration(self):
        assert market_concentration([0.5, 0.3, 0.2]) == pytest.approx(0.38)

    def test_concentration_includes_our_share(self, market_document):
        metrics = market_analysis_metrics(market_document, 0)
        assert metrics.market_concentration == pytest.approx(0.01 ** 2 + 0.3 ** 2 + 0.2 ** 2)

    def test_metrics_record(self, market_document):
        metrics = market_analysis_metrics(market_document, 12)
        assert metrics.year == 2025
        assert metrics.tam == pytest.approx(1.1e9)
        assert metrics.market_value == pytest.approx(metrics.som * metrics.market_share)
        assert metrics.market_based_volume == 0
        payload = metrics.to_dict()
        assert payload["competitivePosition"]["competitorShares"][0] == {
            "name": "Incumbent", "share": 0.3, "positioning": "premium"}

    def test_volume_needs_a_unit_price(self, market_document):
        metrics = market_analysis_metrics(market_document, 0, unit_price=1000)
        assert metrics.market_based_volume == pytest.approx(4e7 * 0.01 / 1000)

    def test_trajectory(self, market_document):
        trajectory = market_penetration_trajectory(market_document, 24, unit_price=100)
        assert len(trajectory) == 24
        assert trajectory[0].period == 1
        assert trajectory[-1].cumulative_volume == pytest.approx(sum(p.market_based_volume for p in trajectory))
        assert market_penetration_trajectory(market_document, 0) == []


@pytest.mark.unit
class TestValidation:

    def test_valid_document(self, market_document):
        result = validate_market_analysis(market_document)
        assert result.is_valid
        assert result.warnings == []

    def test_missing_tam_is_an_error(self):
        result = validate_market_analysis({})
        assert not result.is_valid
        assert "Total Addressable Market base value is required" in result.errors

    def test_percentages_outside_range(self, market_document):
        market_document["market_sizing"]["serviceable_addressable_market"]["percentage_of_tam"] = {"value": 120}
        market_document["market_sizing"]["serviceable_obtainable_market"]["percentage_of_sam"] = {"value": -5}
        result = validate_market_analysis(market_document)
        assert "Serviceable Addressable Market percentage must be between 0 and 100" in result.errors
        assert "Serviceable Obtainable Market percentage must be between 0 and 100" in result.errors

    def test_optimistic_shares_are_warnings(self, market_document):
        market_document["market_share"]["target_position"]["target_share"] = {"value": 60}
        market_document["competitive_landscape"]["competitors"][0]["market_share"] = {"value": 85}
        result = validate_market_analysis(market_document)
        assert result.is_valid
        assert "Target market share above 50% may be unrealistic in competitive markets" in result.warnings
        assert "Total market share (including competitors) exceeds 100%" in result.warnings

    def test_target_not_above_current(self, market_document):
        market_document["market_share"]["target_position"]["target_share"] = {"value": 1}
        result = validate_market_analysis(market_document)
        assert "Target market share should be higher than current market share" in result.warnings


@pytest.mark.unit
class TestOpportunityScore:

    def test_breakdown(self, market_document):
        score = market_opportunity_score(market_document)
        assert score.market_size == 15
        assert score.market_growth == 25
        assert score.competitive_position == 13
        assert score.barriers == 15
        assert score.score == 68
        assert score.interpretation.startswith("Good")

    def test_low_opportunity(self, market_document):
        market_document["market_sizing"]["total_addressable_market"] = {
            "base_value": {"value": 1_000_000}, "growth_rate": {"value": 2}}
        market_document["market_share"]["target_position"]["target_share"] = {"value": 1}
        market_document["competitive_landscape"]["competitive_advantages"] = []
        market_document["competitive_landscape"]["market_structure"]["barriers_to_entry"] = "high"
        score = market_opportunity_score(market_document)
        assert score.score < 50
        assert score.interpretation.startswith("Challenging")

    def test_tiny_market_does_not_go_negative(self):
        document = {"market_sizing": {"total_addressable_market": {"base_value": {"value": 10}}}}
        assert market_opportunity_score(document).market_size == 0

    def test_payload(self, market_document):
        payload = market_opportunity_score(market_document).to_dict()
        assert set(payload["breakdown"]) == {"marketSize", "marketGrowth", "competitivePosition", "barriers"}


@pytest.mark.unit
class TestFormatting:

    def test_suffixes(self):
        assert format_market_currency(1_500_000_000, "EUR") == "1.5B EUR"
        assert format_market_currency(250_000_000, "USD") == "250.0M USD"
        assert format_market_currency(750_000) == "750.0K EUR"
        assert format_market_currency(500, "USD") == "500 USD"

    def test_zero_and_negative(self):
        assert format_market_currency(0) == "0 EUR"
        assert format_market_currency(-1_000_000, "USD") == "-1.0M USD"

    def test_percent(self):
        assert format_market_percent(0.025) == "2.5%"
