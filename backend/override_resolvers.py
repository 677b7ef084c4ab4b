"""
Override Resolvers

Layers yearly adjustment factors and absolute period overrides on top of a
base value (the list price, or a segment's pattern volume). Precedence is
strict: period override > yearly factor > base value.

Trajectories tag every month with the source of its value so provenance can
be shown next to the number.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from document_utils import dig, optional_number, read_dicts, read_number, round_to
from growth_patterns import GrowthDefaults, NO_DEFAULTS, MONTHS_PER_YEAR, segment_base_volume

logger = logging.getLogger(__name__)


class ValueSource(str, Enum):
    """Where a resolved value came from"""
    BASE = "base"          # list price
    PATTERN = "pattern"    # growth pattern volume
    YEARLY = "yearly"      # base * yearly factor
    OVERRIDE = "override"  # absolute period override


@dataclass(frozen=True)
class TrajectoryPoint:
    period: int  # 1-based
    value: float
    source: ValueSource

    def to_dict(self) -> Dict[str, Any]:
        return {"period": self.period, "value": self.value, "source": self.source.value}


# =============================================================================
# LAYERING
# =============================================================================

def find_period_override(overrides: List[Dict[str, Any]], period: int, value_key: str) -> Optional[float]:
    """First override declared for ``period`` that carries a numeric ``value_key``"""
    for entry in overrides:
        if optional_number(entry.get("period")) == period:
            value = optional_number(entry.get(value_key))
            if value is not None:
                return value
    return None


def find_yearly_factor(factors: List[Dict[str, Any]], year: int) -> Optional[float]:
    for entry in factors:
        if optional_number(entry.get("year")) == year:
            factor = optional_number(entry.get("factor"))
            if factor is not None:
                return factor
    return None


def resolve_layered(
    base_fn: Callable[[int], float],
    month: int,
    overrides: List[Dict[str, Any]],
    factors: List[Dict[str, Any]],
    value_key: str,
    base_source: ValueSource,
    factor_places: Optional[int] = None,
) -> Tuple[float, ValueSource]:
    """
    Resolve one month against overrides and factors.

    The base function is only evaluated when no period override applies.
    """
    override = find_period_override(overrides, month + 1, value_key)
    if override is not None:
        return override, ValueSource.OVERRIDE

    factor = find_yearly_factor(factors, month // MONTHS_PER_YEAR + 1)
    if factor is not None:
        adjusted = base_fn(month) * factor
        if factor_places is not None:
            adjusted = round_to(adjusted, factor_places)
        return adjusted, ValueSource.YEARLY

    return base_fn(month), base_source


# =============================================================================
# PRICING
# =============================================================================

def base_unit_price(document: Any) -> float:
    return read_number(dig(document, "assumptions", "pricing", "avg_unit_price"))


def resolve_unit_price(document: Any, month: int) -> Tuple[float, ValueSource]:
    """Unit price for a month index; factor-adjusted prices are rounded to cents"""
    adjustments = dig(document, "assumptions", "pricing", "yearly_adjustments")
    base_price = base_unit_price(document)
    return resolve_layered(
        lambda _: base_price,
        month,
        read_dicts(dig(adjustments, "price_overrides")),
        read_dicts(dig(adjustments, "pricing_factors")),
        value_key="price",
        base_source=ValueSource.BASE,
        factor_places=2,
    )


def dynamic_unit_price(document: Any, month: int) -> float:
    return resolve_unit_price(document, month)[0]


def pricing_trajectory(document: Any, periods: int) -> List[TrajectoryPoint]:
    trajectory = []
    for month in range(max(0, periods)):
        price, source = resolve_unit_price(document, month)
        trajectory.append(TrajectoryPoint(period=month + 1, value=price, source=source))
    return trajectory


# =============================================================================
# VOLUME
# =============================================================================

def resolve_segment_volume(
    segment: Any,
    month: int,
    defaults: GrowthDefaults = NO_DEFAULTS,
) -> Tuple[float, ValueSource]:
    """
    Volume of one segment for a month index, after yearly adjustments.

    Can be negative when a negative factor or override is configured;
    aggregation clamps it.
    """
    adjustments = dig(segment, "volume", "yearly_adjustments")
    return resolve_layered(
        lambda m: segment_base_volume(segment, m, defaults),
        month,
        read_dicts(dig(adjustments, "volume_overrides")),
        read_dicts(dig(adjustments, "volume_factors")),
        value_key="volume",
        base_source=ValueSource.PATTERN,
    )


def dynamic_segment_volume(segment: Any, month: int, defaults: GrowthDefaults = NO_DEFAULTS) -> float:
    return resolve_segment_volume(segment, month, defaults)[0]


def volume_trajectory(segment: Any, periods: int, defaults: GrowthDefaults = NO_DEFAULTS) -> List[TrajectoryPoint]:
    trajectory = []
    for month in range(max(0, periods)):
        volume, source = resolve_segment_volume(segment, month, defaults)
        trajectory.append(TrajectoryPoint(period=month + 1, value=volume, source=source))
    return trajectory
