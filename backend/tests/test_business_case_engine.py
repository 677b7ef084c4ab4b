"""
Business Case Engine Tests

Monthly rows per business model, the metrics rollup, horizon handling and
the pandas yearly summary.
"""

from datetime import date

import pytest

from business_case_engine import (
    BusinessCaseEngine, BusinessModel, calculate_business_metrics, generate_monthly_data,
    monthly_rows_to_frame, summarize_by_year,
)
from engine_config import EngineConfig
from financial_metrics import IRRErrorCode


@pytest.mark.unit
class TestHorizon:
    """Tests for the bounded monthly horizon"""

    def test_declared_periods(self):
        rows = generate_monthly_data({"meta": {"periods": 12}})
        assert len(rows) == 12
        assert all(row.revenue == 0 for row in rows)

    def test_periods_capped_at_sixty(self):
        assert len(generate_monthly_data({"meta": {"periods": 120}})) == 60

    def test_missing_periods_uses_the_cap(self):
        assert len(generate_monthly_data({"assumptions": {}})) == 60

    def test_cap_comes_from_config(self):
        config = EngineConfig(max_periods=24)
        assert len(generate_monthly_data({"meta": {"periods": 36}}, config)) == 24

    def test_non_dict_document_has_no_rows(self):
        assert generate_monthly_data(None) == []

    def test_dates_advance_monthly(self):
        rows = generate_monthly_data({"meta": {"periods": 3}}, EngineConfig(start_date=date(2025, 11, 1)))
        assert [row.date for row in rows] == [date(2025, 11, 1), date(2025, 12, 1), date(2026, 1, 1)]


@pytest.mark.unit
class TestRecurringModel:
    """Tests for accumulating customers"""

    def test_first_month(self, recurring_document):
        row = generate_monthly_data(recurring_document)[0]
        assert row.sales_volume == 100
        assert row.new_customers == 100
        assert row.existing_customers == 0
        assert row.revenue == 10000
        assert row.cogs == -3000
        assert row.gross_profit == 7000
        assert (row.sales_marketing, row.rd, row.ga) == (-2000, -3000, -1000)
        assert row.total_cac == -5000
        assert row.total_opex == -11000
        assert row.ebitda == -4000
        assert row.capex == -20000
        assert row.net_cash_flow == -24000
        assert row.cumulative_cash_flow == -24000

    def test_churn_carries_customers_forward(self, recurring_document):
        row = generate_monthly_data(recurring_document)[1]
        assert row.existing_customers == 98
        assert row.new_customers == 12
        assert row.revenue == 11000
        assert row.total_cac == -600
        assert row.net_cash_flow == 1100
        assert row.cumulative_cash_flow == -22900

    def test_metrics_rollup(self, recurring_document):
        metrics = calculate_business_metrics(recurring_document)
        flows = [row.net_cash_flow for row in metrics.monthly_data]
        assert metrics.total_revenue == sum(row.revenue for row in metrics.monthly_data)
        assert metrics.net_profit == pytest.approx(sum(flows))
        assert metrics.break_even_month == 2
        assert metrics.total_investment_required == 24000
        assert metrics.payback_period > 2
        assert metrics.irr_error is None

    def test_to_dict_uses_camel_case(self, recurring_document):
        payload = calculate_business_metrics(recurring_document).to_dict()
        assert {"totalRevenue", "netProfit", "npv", "irr", "paybackPeriod", "breakEvenMonth",
                "totalInvestmentRequired", "monthlyData"} <= set(payload)
        row = payload["monthlyData"][0]
        assert row["date"] == "2026-01-01"
        assert row["totalCAC"] == -5000
        assert "totalBenefits" not in row


@pytest.mark.unit
class TestUnitSalesModel:
    """Tests for all-new volume"""

    def test_every_unit_is_new(self, unit_sales_document):
        rows = generate_monthly_data(unit_sales_document)
        assert rows[1].sales_volume == 1050
        assert rows[1].new_customers == 1050
        assert rows[1].existing_customers == 0

    def test_variable_opex(self, unit_sales_document):
        row = generate_monthly_data(unit_sales_document)[0]
        assert row.revenue == 50000
        assert row.sales_marketing == -10000
        assert row.total_opex == -10000

    def test_unknown_model_is_unit_sales(self, unit_sales_document):
        unit_sales_document["meta"]["business_model"] = "subscription-ish"
        engine = BusinessCaseEngine()
        assert engine.business_model(unit_sales_document) == BusinessModel.UNIT_SALES

    def test_explicit_cogs_pct_overrides_config(self, unit_sales_document):
        unit_sales_document["assumptions"]["unit_economics"] = {"cogs_pct": {"value": 0.5}}
        row = generate_monthly_data(unit_sales_document)[0]
        assert row.cogs == -25000


@pytest.mark.unit
class TestCostSavingsModel:
    """Tests for benefits booked as revenue"""

    def test_benefits_become_revenue(self, cost_savings_document):
        row = generate_monthly_data(cost_savings_document)[0]
        assert row.revenue == 4500
        assert row.unit_price == 0
        assert row.sales_volume == 1
        assert row.new_customers == 0
        assert row.existing_customers == 0
        assert row.cost_savings == 500
        assert row.efficiency_gains == 4000
        assert row.total_benefits == 4500
        assert row.baseline_costs == 10000

    def test_row_dict_includes_benefits(self, cost_savings_document):
        row = generate_monthly_data(cost_savings_document)[3].to_dict()
        assert row["totalBenefits"] == 6000
        assert row["costSavings"] == 2000


@pytest.mark.unit
class TestMetricsEdgeCases:

    def test_missing_document_is_all_zero(self):
        metrics = calculate_business_metrics(None)
        assert metrics.total_revenue == 0
        assert metrics.npv == 0
        assert metrics.irr == 0
        assert metrics.monthly_data == []

    def test_flat_zero_series_reports_all_same(self):
        metrics = calculate_business_metrics({"meta": {"periods": 12}})
        assert metrics.irr == IRRErrorCode.ALL_SAME
        assert metrics.irr_error == "All cash flows are identical - IRR cannot be calculated"

    def test_discount_rate_falls_back_to_interest_rate(self):
        document = {"assumptions": {"financial": {"interest_rate": {"value": 0.08}}}}
        assert BusinessCaseEngine.discount_rate(document) == 0.08

    def test_output_hash_is_stable(self, recurring_document):
        engine = BusinessCaseEngine()
        first = engine.compute_output_hash(engine.calculate_business_metrics(recurring_document))
        second = engine.compute_output_hash(engine.calculate_business_metrics(recurring_document))
        assert first == second
        assert len(first) == 64


@pytest.mark.unit
class TestYearlySummary:

    def test_frame_has_one_row_per_month(self, recurring_document):
        frame = monthly_rows_to_frame(generate_monthly_data(recurring_document))
        assert len(frame) == 24
        assert "netCashFlow" in frame.columns

    def test_summary_groups_by_year(self, recurring_document):
        rows = generate_monthly_data(recurring_document)
        summary = summarize_by_year(rows)
        assert [year["year"] for year in summary] == [1, 2]
        assert summary[0]["revenue"] == sum(row.revenue for row in rows[:12])
        assert summary[1]["endingCumulativeCashFlow"] == pytest.approx(rows[-1].cumulative_cash_flow)

    def test_empty_summary(self):
        assert summarize_by_year([]) == []
