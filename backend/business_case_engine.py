"""
Deterministic Business Case Engine

Turns a JSON-shaped business assumption document into a bounded monthly
financial series and summary metrics (NPV, IRR, break-even, payback).
Key invariant: same document + same config = same outputs (reproducible).

Business models:
- recurring:    customers accumulate; existing = previous total minus churn
- unit_sales:   all volume is new every month
- cost_savings: benefits (savings + efficiency gains) are booked as revenue
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional

import pandas as pd
from dateutil.relativedelta import relativedelta

from cost_resolvers import capex_for_month, opex_for_month
from cost_savings import benefits_breakdown
from document_utils import canonical_hash, dig, optional_number, read_number, read_text, round_half_up
from engine_config import EngineConfig, DEFAULT_CONFIG
from financial_metrics import (
    calculate_irr, calculate_npv, break_even_month, payback_period,
    total_investment_required, effective_annual_rate, is_irr_error, irr_error_message,
)
from growth_patterns import GrowthDefaults
from override_resolvers import dynamic_unit_price
from segment_aggregator import total_volume

logger = logging.getLogger(__name__)


class BusinessModel(str, Enum):
    RECURRING = "recurring"
    UNIT_SALES = "unit_sales"
    COST_SAVINGS = "cost_savings"


# =============================================================================
# OUTPUT DATA STRUCTURES
# =============================================================================

@dataclass
class MonthlyRow:
    """
    One month of the projection.

    Revenue, customer and unit fields are whole numbers; costs are stored
    negative (cash outflows). Cost-savings fields are only set for the
    cost_savings model.
    """
    month: int  # 1-based
    date: date
    sales_volume: int = 0
    new_customers: int = 0
    existing_customers: int = 0
    unit_price: float = 0.0
    revenue: int = 0
    cogs: int = 0
    gross_profit: int = 0
    sales_marketing: int = 0
    rd: int = 0
    ga: int = 0
    total_cac: int = 0
    cac: float = 0.0
    total_opex: int = 0
    ebitda: int = 0
    capex: float = 0.0
    net_cash_flow: float = 0.0
    cumulative_cash_flow: float = 0.0
    baseline_costs: Optional[int] = None
    cost_savings: Optional[int] = None
    efficiency_gains: Optional[int] = None
    total_benefits: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "month": self.month,
            "date": self.date.isoformat(),
            "salesVolume": self.sales_volume,
            "newCustomers": self.new_customers,
            "existingCustomers": self.existing_customers,
            "unitPrice": self.unit_price,
            "revenue": self.revenue,
            "cogs": self.cogs,
            "grossProfit": self.gross_profit,
            "salesMarketing": self.sales_marketing,
            "rd": self.rd,
            "ga": self.ga,
            "totalCAC": self.total_cac,
            "cac": self.cac,
            "totalOpex": self.total_opex,
            "ebitda": self.ebitda,
            "capex": self.capex,
            "netCashFlow": self.net_cash_flow,
            "cumulativeCashFlow": self.cumulative_cash_flow,
        }
        if self.total_benefits is not None:
            data.update({
                "baselineCosts": self.baseline_costs,
                "costSavings": self.cost_savings,
                "efficiencyGains": self.efficiency_gains,
                "totalBenefits": self.total_benefits,
            })
        return data


@dataclass
class CalculatedMetrics:
    """Summary metrics over the monthly series"""
    total_revenue: float = 0.0
    net_profit: float = 0.0
    npv: float = 0.0
    irr: float = 0.0  # nominal annual, or an IRRErrorCode sentinel
    payback_period: int = 0
    total_investment_required: float = 0.0
    break_even_month: int = 0
    monthly_data: List[MonthlyRow] = field(default_factory=list)

    @property
    def irr_error(self) -> Optional[str]:
        return irr_error_message(self.irr) if is_irr_error(self.irr) else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalRevenue": self.total_revenue,
            "netProfit": self.net_profit,
            "npv": self.npv,
            "irr": self.irr,
            "irrEffectiveAnnual": effective_annual_rate(self.irr),
            "irrError": self.irr_error,
            "paybackPeriod": self.payback_period,
            "totalInvestmentRequired": self.total_investment_required,
            "breakEvenMonth": self.break_even_month,
            "monthlyData": [row.to_dict() for row in self.monthly_data],
        }


# =============================================================================
# ENGINE
# =============================================================================

class BusinessCaseEngine:
    """
    Computes monthly rows and metrics for a business assumption document.

    Stateless between calls: all carried state (customer base, cumulative
    cash) is threaded from one row to the next inside a single run.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or DEFAULT_CONFIG

    def horizon(self, document: Any) -> int:
        """Number of months to compute: declared periods capped at max_periods"""
        declared = optional_number(dig(document, "meta", "periods"))
        if declared is None:
            return self.config.max_periods
        return max(0, min(int(declared), self.config.max_periods))

    def business_model(self, document: Any) -> BusinessModel:
        raw = dig(document, "meta", "business_model")
        try:
            return BusinessModel(raw)
        except ValueError:
            if raw is not None:
                logger.warning(f"Unknown business model {raw!r}; treating as unit_sales")
            return BusinessModel.UNIT_SALES

    def cogs_ratio(self, document: Any) -> float:
        """Document-level cogs_pct when given, else the configured ratio"""
        explicit = optional_number(dig(document, "assumptions", "unit_economics", "cogs_pct"))
        return self.config.cogs_ratio if explicit is None else explicit

    @staticmethod
    def discount_rate(document: Any) -> float:
        financial = dig(document, "assumptions", "financial")
        rate = optional_number(dig(financial, "discount_rate"))
        if rate is None:
            rate = read_number(dig(financial, "interest_rate"))
        return rate

    def generate_monthly_data(self, document: Any) -> List[MonthlyRow]:
        """Build the monthly series as a scan: each row derives from the previous one"""
        if not isinstance(document, dict):
            return []

        model = self.business_model(document)
        defaults = GrowthDefaults.from_document(document)
        churn = read_number(dig(document, "assumptions", "customers", "churn_pct"))
        cac = read_number(dig(document, "assumptions", "unit_economics", "cac"))
        cogs_ratio = self.cogs_ratio(document)

        rows: List[MonthlyRow] = []
        previous: Optional[MonthlyRow] = None
        for month in range(self.horizon(document)):
            row = self._build_row(document, month, previous, model, defaults, churn, cac, cogs_ratio)
            rows.append(row)
            previous = row
        return rows

    def _build_row(
        self,
        document: Dict[str, Any],
        month: int,
        previous: Optional[MonthlyRow],
        model: BusinessModel,
        defaults: GrowthDefaults,
        churn: float,
        cac: float,
        cogs_ratio: float,
    ) -> MonthlyRow:
        row = MonthlyRow(month=month + 1, date=self.config.start_date + relativedelta(months=month))

        # === REVENUE / BENEFITS ===
        if model == BusinessModel.COST_SAVINGS:
            benefits = benefits_breakdown(document, month)
            volume = 1.0
            new_customers = 0.0
            revenue = round_half_up(benefits.total_benefits)
            row.baseline_costs = round_half_up(benefits.baseline_costs)
            row.cost_savings = round_half_up(benefits.cost_savings)
            row.efficiency_gains = round_half_up(benefits.efficiency_gains)
            row.total_benefits = round_half_up(benefits.total_benefits)
        else:
            volume = total_volume(document, month, defaults)
            if model == BusinessModel.RECURRING and previous is not None:
                existing = round_half_up((previous.new_customers + previous.existing_customers) * (1 - churn))
                new_customers = max(0.0, volume - existing)
                row.existing_customers = existing
            else:
                new_customers = volume
            row.unit_price = dynamic_unit_price(document, month)
            revenue = round_half_up(volume * row.unit_price)

        row.sales_volume = round_half_up(volume)
        row.new_customers = round_half_up(new_customers)
        row.revenue = revenue

        # === COGS ===
        row.cogs = -round_half_up(revenue * cogs_ratio)
        row.gross_profit = revenue + row.cogs

        # === OPEX ===
        opex = opex_for_month(document, revenue, volume)
        row.sales_marketing = -opex.sales_marketing
        row.rd = -opex.rd
        row.ga = -opex.ga

        acquiring = new_customers if model == BusinessModel.RECURRING else volume
        row.cac = cac
        row.total_cac = -round_half_up(acquiring * cac)
        row.total_opex = -opex.total_opex + row.total_cac

        # === CASH ===
        row.ebitda = row.gross_profit + row.total_opex
        row.capex = -capex_for_month(document, month)
        row.net_cash_flow = row.ebitda + row.capex
        row.cumulative_cash_flow = (previous.cumulative_cash_flow if previous else 0.0) + row.net_cash_flow
        return row

    def calculate_business_metrics(self, document: Any) -> CalculatedMetrics:
        """Monthly series plus rollup metrics; a missing document yields all zeros"""
        if not document:
            return CalculatedMetrics()

        start = time.perf_counter()
        rows = self.generate_monthly_data(document)
        cash_flows = [row.net_cash_flow for row in rows]

        metrics = CalculatedMetrics(
            total_revenue=sum(row.revenue for row in rows),
            net_profit=sum(cash_flows),
            npv=calculate_npv(cash_flows, self.discount_rate(document)),
            irr=calculate_irr(cash_flows, self.config),
            payback_period=payback_period(cash_flows),
            total_investment_required=total_investment_required(cash_flows),
            break_even_month=break_even_month(cash_flows),
            monthly_data=rows,
        )

        compute_time_ms = int((time.perf_counter() - start) * 1000)
        title = read_text(dig(document, "meta", "title"), "untitled")
        logger.info(f"Business case {title!r} computed in {compute_time_ms}ms ({len(rows)} months)")
        return metrics

    @staticmethod
    def compute_output_hash(metrics: CalculatedMetrics) -> str:
        """SHA256 of the metrics payload for integrity verification"""
        return canonical_hash(metrics.to_dict())


# =============================================================================
# TABULAR SUMMARIES
# =============================================================================

YEARLY_SUM_COLUMNS = [
    "revenue", "cogs", "grossProfit", "totalOpex", "ebitda", "capex", "netCashFlow",
]


def monthly_rows_to_frame(rows: List[MonthlyRow]) -> pd.DataFrame:
    return pd.DataFrame([row.to_dict() for row in rows])


def summarize_by_year(rows: List[MonthlyRow]) -> List[Dict[str, Any]]:
    """Yearly totals (year 1 = months 1-12) of the main P&L and cash lines"""
    if not rows:
        return []

    frame = monthly_rows_to_frame(rows)
    frame["year"] = (frame["month"] - 1) // 12 + 1
    yearly = frame.groupby("year", as_index=False)[YEARLY_SUM_COLUMNS].sum()
    yearly["endingCumulativeCashFlow"] = frame.groupby("year")["cumulativeCashFlow"].last().to_numpy()

    summary = []
    for record in yearly.to_dict(orient="records"):
        summary.append({key: (int(value) if key == "year" else float(value)) for key, value in record.items()})
    return summary


def generate_monthly_data(document: Any, config: Optional[EngineConfig] = None) -> List[MonthlyRow]:
    return BusinessCaseEngine(config).generate_monthly_data(document)


def calculate_business_metrics(document: Any, config: Optional[EngineConfig] = None) -> CalculatedMetrics:
    return BusinessCaseEngine(config).calculate_business_metrics(document)
