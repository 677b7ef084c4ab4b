"""
Cost-Savings Resolvers

For the cost_savings business model, benefits replace revenue:

- baseline costs:   sum of current monthly costs
- cost savings:     cost * savings_potential_pct / 100 * ramp factor
- efficiency gains: |baseline_value - improved_value| * value_per_unit * ramp factor

Efficiency gains use the absolute difference, so a reduction (hours worked)
and an increase (incidents detected) both count as positive benefit.
Every resolver returns 0 for other business models.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, List

from document_utils import dig, read_dicts, read_number
from cost_resolvers import ImplementationTimeline, implementation_factor


@dataclass
class CostSavingsBreakdown:
    baseline_costs: float = 0.0
    cost_savings: float = 0.0
    efficiency_gains: float = 0.0

    @property
    def total_benefits(self) -> float:
        return self.cost_savings + self.efficiency_gains

    def to_dict(self) -> Dict[str, float]:
        data = asdict(self)
        data["total_benefits"] = self.total_benefits
        return data


def is_cost_savings_model(document: Any) -> bool:
    return dig(document, "meta", "business_model") == "cost_savings"


def _baseline_items(document: Any) -> List[Dict[str, Any]]:
    return read_dicts(dig(document, "assumptions", "cost_savings", "baseline_costs"))


def _efficiency_items(document: Any) -> List[Dict[str, Any]]:
    return read_dicts(dig(document, "assumptions", "cost_savings", "efficiency_gains"))


def _ramp(item: Dict[str, Any], month: int) -> float:
    return implementation_factor(month, ImplementationTimeline.from_dict(item.get("implementation_timeline")))


def baseline_costs_for_month(document: Any, month: int) -> float:
    if not is_cost_savings_model(document):
        return 0.0
    return sum(read_number(item.get("current_monthly_cost")) for item in _baseline_items(document))


def cost_savings_for_month(document: Any, month: int) -> float:
    if not is_cost_savings_model(document):
        return 0.0
    total = 0.0
    for item in _baseline_items(document):
        monthly_cost = read_number(item.get("current_monthly_cost"))
        savings_rate = read_number(item.get("savings_potential_pct")) / 100
        total += monthly_cost * savings_rate * _ramp(item, month)
    return total


def efficiency_gains_for_month(document: Any, month: int) -> float:
    if not is_cost_savings_model(document):
        return 0.0
    total = 0.0
    for item in _efficiency_items(document):
        improvement = abs(read_number(item.get("baseline_value")) - read_number(item.get("improved_value")))
        total += improvement * read_number(item.get("value_per_unit")) * _ramp(item, month)
    return total


def total_benefits_for_month(document: Any, month: int) -> float:
    return cost_savings_for_month(document, month) + efficiency_gains_for_month(document, month)


def benefits_breakdown(document: Any, month: int) -> CostSavingsBreakdown:
    return CostSavingsBreakdown(
        baseline_costs=baseline_costs_for_month(document, month),
        cost_savings=cost_savings_for_month(document, month),
        efficiency_gains=efficiency_gains_for_month(document, month),
    )
