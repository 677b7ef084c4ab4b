"""
Cost Resolvers

OPEX, CAPEX and the implementation ramp factor.

OPEX items come in two shapes:
- legacy:   {"name": ..., "value": {"value": 5000}}          flat monthly cost
- variable: {"name": ..., "cost_structure": {fixed_component,
             variable_revenue_rate, variable_volume_rate}}

Items 0, 1 and 2 are reported as Sales & Marketing, R&D and G&A; the total
covers every item. All amounts here are unsigned; the generator books them
as outflows.
"""

import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional

from document_utils import dig, optional_number, read_dicts, read_list, read_number, round_half_up
from growth_patterns import PatternType, LEGACY_PATTERN_NAMES, build_legacy_pattern, resolve_pattern

logger = logging.getLogger(__name__)

OPEX_CATEGORIES = ("sales_marketing", "rd", "ga")


# =============================================================================
# IMPLEMENTATION RAMP
# =============================================================================

@dataclass(frozen=True)
class ImplementationTimeline:
    """Phased rollout, in 1-based month numbers"""
    start_month: float = 1
    ramp_up_months: float = 1
    full_implementation_month: float = 1

    @classmethod
    def from_dict(cls, data: Any) -> Optional["ImplementationTimeline"]:
        if not isinstance(data, dict):
            return None
        start = read_number(data.get("start_month"), 1.0)
        ramp = read_number(data.get("ramp_up_months"), 1.0)
        full = optional_number(data.get("full_implementation_month"))
        if full is None:
            full = start + ramp
        return cls(start_month=start, ramp_up_months=ramp, full_implementation_month=full)


def implementation_factor(month: int, timeline: Optional[ImplementationTimeline] = None) -> float:
    """
    Share (0..1) of a phased benefit or cost realised at a 0-based month index.

    0 before start_month, 1 from full_implementation_month on, linear ramp in
    between counting start_month itself as the first ramp month.
    """
    if timeline is None:
        return 1.0

    month_number = month + 1
    if month_number < timeline.start_month:
        return 0.0
    if month_number >= timeline.full_implementation_month:
        return 1.0

    months_in = month_number - timeline.start_month + 1
    return min(1.0, months_in / max(1.0, timeline.ramp_up_months))


# =============================================================================
# OPEX
# =============================================================================

@dataclass
class OpexBreakdown:
    """Unsigned monthly OPEX by canonical category"""
    sales_marketing: int = 0
    rd: int = 0
    ga: int = 0
    total_opex: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def opex_item_amount(item: Any, revenue: float, volume: float) -> int:
    """Monthly amount of one OPEX item: round(fixed + revenue*rate + volume*rate)"""
    if not isinstance(item, dict):
        return 0

    structure = item.get("cost_structure")
    if isinstance(structure, dict):
        fixed = read_number(structure.get("fixed_component"))
        revenue_rate = read_number(structure.get("variable_revenue_rate"))
        volume_rate = read_number(structure.get("variable_volume_rate"))
        return round_half_up(fixed + revenue * revenue_rate + volume * volume_rate)

    flat = optional_number(item.get("value"))
    if flat is not None:
        return round_half_up(flat)
    return 0


def opex_items(document: Any) -> List[Any]:
    """Raw OPEX entries; positions 0-2 are the canonical categories, so malformed entries keep their slot"""
    return read_list(dig(document, "assumptions", "opex"))


def opex_for_month(document: Any, revenue: float, volume: float) -> OpexBreakdown:
    items = opex_items(document)
    if not items:
        return OpexBreakdown()

    amounts = [opex_item_amount(item, revenue, volume) for item in items]
    categories = {name: (amounts[i] if i < len(amounts) else 0) for i, name in enumerate(OPEX_CATEGORIES)}
    return OpexBreakdown(total_opex=sum(amounts), **categories)


# =============================================================================
# CAPEX
# =============================================================================

def capex_item_amount(item: Any, month: int) -> float:
    """
    Unsigned CAPEX of one item at a 0-based month index.

    time_series items pay the entries declared for period == month + 1;
    pattern items grow linearly from their start value (or geometrically /
    seasonally when that pattern_type is declared).
    """
    timeline = item.get("timeline") if isinstance(item, dict) else None
    if not isinstance(timeline, dict):
        return 0.0

    timeline_type = timeline.get("type")
    if timeline_type == "time_series":
        return sum(
            read_number(entry.get("value"))
            for entry in read_dicts(timeline.get("series"))
            if optional_number(entry.get("period")) == month + 1
        )

    if timeline_type == "pattern":
        kind = LEGACY_PATTERN_NAMES.get(timeline.get("pattern_type"), PatternType.LINEAR_GROWTH)
        amount = resolve_pattern(build_legacy_pattern(timeline, kind), month)
        ramp = ImplementationTimeline.from_dict(item.get("implementation_timeline"))
        return amount * implementation_factor(month, ramp)

    return 0.0


def capex_for_month(document: Any, month: int) -> float:
    return sum(capex_item_amount(item, month) for item in read_dicts(dig(document, "assumptions", "capex")))
