"""
Growth Pattern Resolvers

Evaluates a single segment's volume at month index m (0-based) for each
growth algebra:

- geom_growth:       v(m) = v0 * (1 + rate)^m
- linear_growth:     v(m) = v0 + increase * m
- seasonal_growth:   v(m) = (total * (1 + yoy)^(m // 12) / 12) * idx_norm[m % 12]
- time_series:       v(m) = series[min(m, len - 1)]
- segment variants:  simplified base_value patterns used by sliders

A raw volume block is first classified into a VolumePattern (a closed set of
PatternType variants), then evaluated by the resolver registered for that
variant. Missing parameters resolve to neutral defaults; nothing here raises.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from document_utils import dig, optional_number, read_number, read_list

logger = logging.getLogger(__name__)

MONTHS_PER_YEAR = 12


# =============================================================================
# PATTERN VARIANTS
# =============================================================================

class PatternType(str, Enum):
    """Growth algebra used to resolve a volume block"""
    GEOM_GROWTH = "geom_growth"
    LINEAR_GROWTH = "linear_growth"
    SEASONAL_GROWTH = "seasonal_growth"
    TIME_SERIES = "time_series"
    SEGMENT_SEASONAL = "segment_seasonal"
    SEGMENT_GEOMETRIC = "segment_geometric"
    SEGMENT_LINEAR = "segment_linear"
    FLAT = "flat"  # first series value, held constant


LEGACY_PATTERN_NAMES = {
    "seasonal_growth": PatternType.SEASONAL_GROWTH,
    "geom_growth": PatternType.GEOM_GROWTH,
    "linear_growth": PatternType.LINEAR_GROWTH,
}


@dataclass(frozen=True)
class VolumePattern:
    """
    A classified volume block.

    ``start`` is the starting value (v0, base_value or base-year total),
    ``rate`` the growth parameter (monthly rate, flat increase or yoy growth),
    ``indices`` the seasonality/segment pattern, ``series`` explicit values.
    """
    kind: PatternType
    start: Optional[float] = 0.0
    rate: float = 0.0
    indices: Tuple[float, ...] = ()
    series: Tuple[float, ...] = ()


@dataclass(frozen=True)
class GrowthDefaults:
    """
    Document-wide growth settings used to backfill segment parameters.

    Built once from ``assumptions.growth_settings`` and passed explicitly to
    the resolvers.
    """
    seasonal_base_year_total: Optional[float] = None
    seasonality_index_12: Tuple[float, ...] = ()
    seasonal_yoy_growth: Optional[float] = None
    geom_start: Optional[float] = None
    geom_monthly_growth: Optional[float] = None
    linear_start: Optional[float] = None
    linear_monthly_increase: Optional[float] = None

    @classmethod
    def from_document(cls, document: Any) -> "GrowthDefaults":
        settings = dig(document, "assumptions", "growth_settings")
        if not isinstance(settings, dict):
            return cls()
        return cls(
            seasonal_base_year_total=optional_number(dig(settings, "seasonal_growth", "base_year_total")),
            seasonality_index_12=tuple(
                read_number(v, 1.0) for v in read_list(dig(settings, "seasonal_growth", "seasonality_index_12"))
            ),
            seasonal_yoy_growth=optional_number(dig(settings, "seasonal_growth", "yoy_growth")),
            geom_start=optional_number(dig(settings, "geom_growth", "start")),
            geom_monthly_growth=optional_number(dig(settings, "geom_growth", "monthly_growth")),
            linear_start=optional_number(dig(settings, "linear_growth", "start")),
            linear_monthly_increase=optional_number(dig(settings, "linear_growth", "monthly_flat_increase")),
        )

    def detect_pattern(self) -> Optional[PatternType]:
        """Pick the configured legacy pattern: seasonal, then geometric, then linear"""
        if (self.seasonal_base_year_total or 0) > 0:
            return PatternType.SEASONAL_GROWTH
        if (self.geom_start or 0) > 0:
            return PatternType.GEOM_GROWTH
        if (self.linear_start or 0) > 0:
            return PatternType.LINEAR_GROWTH
        return None


NO_DEFAULTS = GrowthDefaults()


# =============================================================================
# PRIMITIVE RESOLVERS
# =============================================================================

def compound(rate: float, periods: float) -> float:
    """(1 + rate)^periods, with inf on overflow and 0 for an undefined power"""
    base = 1.0 + rate
    try:
        return math.pow(base, periods)
    except OverflowError:
        return math.inf
    except (ValueError, ZeroDivisionError):
        return 0.0


def geometric_value(start: float, rate: float, month: int) -> float:
    return start * compound(rate, month)


def linear_value(start: float, increase: float, month: int) -> float:
    return start + increase * month


def time_series_value(series: Sequence[float], month: int) -> float:
    """Value at ``month``, holding the last known value past the end of the series"""
    if not series:
        return 0.0
    return series[min(max(month, 0), len(series) - 1)]


def normalize_seasonality(indices: Sequence[float]) -> Tuple[float, ...]:
    """Scale a 12-entry index so it averages 1; anything else becomes flat"""
    if len(indices) != MONTHS_PER_YEAR:
        return (1.0,) * MONTHS_PER_YEAR
    total = sum(indices)
    if total <= 0:
        return tuple(indices)
    return tuple(value * MONTHS_PER_YEAR / total for value in indices)


def seasonal_growth_value(base_year_total: float, indices: Sequence[float], yoy_growth: float, month: int) -> float:
    normalized = normalize_seasonality(indices)
    year_index, month_in_year = divmod(max(month, 0), MONTHS_PER_YEAR)
    yearly_total = base_year_total * compound(yoy_growth, year_index)
    return yearly_total / MONTHS_PER_YEAR * normalized[month_in_year]


def segment_seasonal_value(
    base_value: Optional[float],
    pattern: Sequence[float],
    month: int,
    growth_rate: float = 0.0,
) -> float:
    """
    Slider-driven seasonal pattern: base_value * pattern[m mod len] * (1 + g)^m.

    The pattern is used as given (no normalization).
    """
    if base_value is None:
        return 0.0
    if not pattern:
        return base_value
    factor = pattern[max(month, 0) % len(pattern)]
    return base_value * factor * compound(growth_rate, month)


def segment_geometric_value(base_value: Optional[float], growth_rate: float, month: int) -> float:
    if base_value is None:
        return 0.0
    return geometric_value(base_value, growth_rate, month)


def segment_linear_value(base_value: Optional[float], increase: float, month: int) -> float:
    if base_value is None:
        return 0.0
    return linear_value(base_value, increase, month)


_RESOLVERS: Dict[PatternType, Callable[[VolumePattern, int], float]] = {
    PatternType.GEOM_GROWTH: lambda p, m: geometric_value(p.start or 0.0, p.rate, m),
    PatternType.LINEAR_GROWTH: lambda p, m: linear_value(p.start or 0.0, p.rate, m),
    PatternType.SEASONAL_GROWTH: lambda p, m: seasonal_growth_value(p.start or 0.0, p.indices, p.rate, m),
    PatternType.TIME_SERIES: lambda p, m: time_series_value(p.series, m),
    PatternType.SEGMENT_SEASONAL: lambda p, m: segment_seasonal_value(p.start, p.indices, m, p.rate),
    PatternType.SEGMENT_GEOMETRIC: lambda p, m: segment_geometric_value(p.start, p.rate, m),
    PatternType.SEGMENT_LINEAR: lambda p, m: segment_linear_value(p.start, p.rate, m),
    PatternType.FLAT: lambda p, m: p.start or 0.0,
}


def resolve_pattern(pattern: VolumePattern, month: int) -> float:
    """Evaluate a classified pattern at a month index; non-finite results resolve to 0"""
    value = _RESOLVERS[pattern.kind](pattern, month)
    if not math.isfinite(value):
        logger.debug(f"{pattern.kind.value} resolved to a non-finite value at month {month}; using 0")
        return 0.0
    return value


# =============================================================================
# CLASSIFICATION
# =============================================================================

def _series_values(node: Any) -> Tuple[float, ...]:
    return tuple(read_number(entry) for entry in read_list(node))


def _first_series_value(volume: Dict[str, Any]) -> Optional[float]:
    return optional_number(dig(volume, "series", 0))


def _has_number(volume: Dict[str, Any], key: str) -> bool:
    return optional_number(volume.get(key)) is not None


def build_legacy_pattern(
    volume: Dict[str, Any],
    kind: PatternType,
    defaults: GrowthDefaults = NO_DEFAULTS,
) -> VolumePattern:
    """Collect the parameters of a geom/linear/seasonal block, backfilling from defaults"""
    if kind == PatternType.SEASONAL_GROWTH:
        total = optional_number(volume.get("base_year_total"))
        if total is None:
            total = defaults.seasonal_base_year_total
        indices = tuple(read_number(v, 1.0) for v in read_list(volume.get("seasonality_index_12")))
        if not indices:
            indices = defaults.seasonality_index_12
        yoy = optional_number(volume.get("yoy_growth"))
        if yoy is None:
            yoy = defaults.seasonal_yoy_growth
        return VolumePattern(kind, start=total or 0.0, rate=yoy or 0.0, indices=indices or (1.0,) * MONTHS_PER_YEAR)

    start = optional_number(volume.get("start")) or _first_series_value(volume)
    if kind == PatternType.GEOM_GROWTH:
        rate = optional_number(volume.get("monthly_growth_rate"))
        if start is None:
            start = defaults.geom_start
        if rate is None:
            rate = defaults.geom_monthly_growth
    else:
        rate = optional_number(volume.get("monthly_flat_increase"))
        if start is None:
            start = defaults.linear_start
        if rate is None:
            rate = defaults.linear_monthly_increase
    return VolumePattern(kind, start=start or 0.0, rate=rate or 0.0)


def parse_volume_pattern(volume: Any, defaults: GrowthDefaults = NO_DEFAULTS) -> VolumePattern:
    """
    Classify a raw segment volume block.

    Precedence: segment-level base_value variants, then legacy
    ``type: "pattern"`` blocks (auto-detected from defaults when no
    pattern_type is given), then ``type: "time_series"``, then the first
    series value held flat.
    """
    if not isinstance(volume, dict):
        return VolumePattern(PatternType.FLAT)

    pattern_type = volume.get("pattern_type")
    has_base = _has_number(volume, "base_value")
    if pattern_type and has_base:
        base_value = optional_number(volume.get("base_value"))
        growth_rate = read_number(volume.get("growth_rate"))
        if pattern_type == "seasonal_growth" and isinstance(volume.get("seasonal_pattern"), list):
            pattern = tuple(read_number(v, 1.0) for v in volume["seasonal_pattern"])
            return VolumePattern(PatternType.SEGMENT_SEASONAL, start=base_value, rate=growth_rate, indices=pattern)
        if pattern_type == "geometric_growth" and _has_number(volume, "growth_rate"):
            return VolumePattern(PatternType.SEGMENT_GEOMETRIC, start=base_value, rate=growth_rate)
        if pattern_type == "linear_growth" and _has_number(volume, "growth_rate"):
            return VolumePattern(PatternType.SEGMENT_LINEAR, start=base_value, rate=growth_rate)

    volume_type = volume.get("type")
    if volume_type == "pattern":
        kind = LEGACY_PATTERN_NAMES.get(pattern_type)
        if kind is None:
            kind = defaults.detect_pattern()
            if kind is not None:
                logger.debug(f"Volume pattern auto-detected from growth settings: {kind.value}")
        if kind is not None:
            return build_legacy_pattern(volume, kind, defaults)
    elif volume_type == "time_series":
        return VolumePattern(PatternType.TIME_SERIES, series=_series_values(volume.get("series")))

    return VolumePattern(PatternType.FLAT, start=_first_series_value(volume) or 0.0)


def segment_base_volume(segment: Any, month: int, defaults: GrowthDefaults = NO_DEFAULTS) -> float:
    """Pattern volume for one segment at a month index, before any yearly adjustments"""
    volume = segment.get("volume") if isinstance(segment, dict) else None
    if not isinstance(volume, dict):
        return 0.0
    return resolve_pattern(parse_volume_pattern(volume, defaults), month)
