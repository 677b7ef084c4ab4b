"""
Market Sizing Engine

TAM/SAM/SOM compounding, market-share progression, competitive concentration,
opportunity scoring and assumption validation for a JSON-shaped market
document. Percentages in the document are expressed 0-100; shares returned
here are fractions (0.025 = 2.5%).
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from document_utils import dig, optional_number, read_dicts, read_list, read_number, read_text, round_half_up, safe_divide
from engine_config import EngineConfig, DEFAULT_CONFIG
from growth_patterns import compound

logger = logging.getLogger(__name__)


class PenetrationStrategy(str, Enum):
    LINEAR = "linear"
    EXPONENTIAL = "exponential"
    S_CURVE = "s_curve"


class BarrierLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


BARRIER_SCORES = {BarrierLevel.LOW: 25, BarrierLevel.MEDIUM: 15, BarrierLevel.HIGH: 5}
MAX_COMPONENT_SCORE = 25


# =============================================================================
# OUTPUT DATA STRUCTURES
# =============================================================================

@dataclass
class CompetitorShare:
    name: str
    share: float
    positioning: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "share": self.share, "positioning": self.positioning}


@dataclass
class MarketMetrics:
    """Market position for one month of the analysis horizon"""
    year: int
    tam: float
    sam: float
    som: float
    market_share: float
    market_based_volume: float
    market_value: float
    competitor_shares: List[CompetitorShare] = field(default_factory=list)
    market_concentration: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "year": self.year,
            "tam": self.tam,
            "sam": self.sam,
            "som": self.som,
            "marketShare": self.market_share,
            "marketBasedVolume": self.market_based_volume,
            "marketValue": self.market_value,
            "competitivePosition": {
                "ourShare": self.market_share,
                "competitorShares": [c.to_dict() for c in self.competitor_shares],
                "marketConcentration": self.market_concentration,
            },
        }


@dataclass
class PenetrationPoint:
    period: int
    year: int
    tam: float
    sam: float
    som: float
    market_share: float
    market_based_volume: float
    market_value: float
    cumulative_volume: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "period": self.period,
            "year": self.year,
            "tam": self.tam,
            "sam": self.sam,
            "som": self.som,
            "marketShare": self.market_share,
            "marketBasedVolume": self.market_based_volume,
            "marketValue": self.market_value,
            "cumulativeVolume": self.cumulative_volume,
        }


@dataclass
class ValidationResult:
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {"isValid": self.is_valid, "errors": self.errors, "warnings": self.warnings}


@dataclass
class OpportunityScore:
    score: int
    market_size: int
    market_growth: int
    competitive_position: int
    barriers: int
    interpretation: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "breakdown": {
                "marketSize": self.market_size,
                "marketGrowth": self.market_growth,
                "competitivePosition": self.competitive_position,
                "barriers": self.barriers,
            },
            "interpretation": self.interpretation,
        }


# =============================================================================
# MARKET SIZING
# =============================================================================

def base_year(document: Any, config: EngineConfig = DEFAULT_CONFIG) -> int:
    year = optional_number(dig(document, "meta", "base_year"))
    return int(year) if year else config.default_base_year


def calculate_tam(document: Any, year: int, config: EngineConfig = DEFAULT_CONFIG) -> float:
    """TAM compounded from the base year; past years discount back"""
    tam = dig(document, "market_sizing", "total_addressable_market")
    if not isinstance(tam, dict):
        return 0.0
    base_value = read_number(tam.get("base_value"))
    growth_rate = read_number(tam.get("growth_rate")) / 100
    value = base_value * compound(growth_rate, year - base_year(document, config))
    return value if math.isfinite(value) else 0.0


def calculate_sam(document: Any, year: int, config: EngineConfig = DEFAULT_CONFIG) -> float:
    pct = read_number(dig(document, "market_sizing", "serviceable_addressable_market", "percentage_of_tam"))
    return calculate_tam(document, year, config) * pct / 100


def calculate_som(document: Any, year: int, config: EngineConfig = DEFAULT_CONFIG) -> float:
    pct = read_number(dig(document, "market_sizing", "serviceable_obtainable_market", "percentage_of_sam"))
    return calculate_sam(document, year, config) * pct / 100


# =============================================================================
# MARKET SHARE
# =============================================================================

def penetration_factor(strategy: PenetrationStrategy, progress: float) -> float:
    """
    Fraction of the current-to-target gap closed at a given progress (0..1).

    Curved strategies are rescaled so 0 maps to 0 and 1 maps to 1: every
    strategy starts at the current share and ends exactly on the target.
    """
    if strategy == PenetrationStrategy.EXPONENTIAL:
        return (1 - math.exp(-3 * progress)) / (1 - math.exp(-3))
    if strategy == PenetrationStrategy.S_CURVE:
        low, high = _logistic(0.0), _logistic(1.0)
        return (_logistic(progress) - low) / (high - low)
    return progress


def _logistic(progress: float) -> float:
    return 1 / (1 + math.exp(-10 * (progress - 0.5)))


def market_share_progression(document: Any, month: int, config: EngineConfig = DEFAULT_CONFIG) -> float:
    """
    Own market share (fraction) at a 0-based month index.

    Moves from current to target share along the penetration strategy over
    the target timeframe (years), then holds at the target.
    """
    position = dig(document, "market_share")
    current_position = dig(position, "current_position")
    target_position = dig(position, "target_position")
    if not isinstance(current_position, dict) or not isinstance(target_position, dict):
        return 0.0

    current = read_number(current_position.get("current_share")) / 100
    target = read_number(target_position.get("target_share")) / 100
    timeframe = optional_number(target_position.get("target_timeframe")) or config.default_target_timeframe_years

    try:
        strategy = PenetrationStrategy(target_position.get("penetration_strategy") or "linear")
    except ValueError:
        strategy = PenetrationStrategy.LINEAR

    years_passed = max(0, month) / 12
    progress = min(years_passed / timeframe, 1.0) if timeframe > 0 else 1.0

    return current + (target - current) * penetration_factor(strategy, progress)


def market_concentration(shares: Sequence[float]) -> float:
    """Herfindahl-Hirschman index over fractional shares"""
    return sum(share ** 2 for share in shares)


def competitor_shares(document: Any) -> List[CompetitorShare]:
    return [
        CompetitorShare(
            name=read_text(competitor.get("name")),
            share=read_number(competitor.get("market_share")) / 100,
            positioning=read_text(competitor.get("positioning")),
        )
        for competitor in read_dicts(dig(document, "competitive_landscape", "competitors"))
    ]


def market_based_volume(market_value: float, unit_price: Optional[float] = None) -> float:
    """Units implied by captured market value at a given price; 0 without a price"""
    if not unit_price or unit_price <= 0:
        return 0.0
    return safe_divide(market_value, unit_price)


# =============================================================================
# PER-PERIOD METRICS
# =============================================================================

def market_analysis_metrics(
    document: Any,
    month: int,
    unit_price: Optional[float] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> MarketMetrics:
    year = month // 12 + base_year(document, config)
    som = calculate_som(document, year, config)
    share = market_share_progression(document, month, config)
    value = som * share
    competitors = competitor_shares(document)

    return MarketMetrics(
        year=year,
        tam=calculate_tam(document, year, config),
        sam=calculate_sam(document, year, config),
        som=som,
        market_share=share,
        market_based_volume=market_based_volume(value, unit_price),
        market_value=value,
        competitor_shares=competitors,
        market_concentration=market_concentration([share] + [c.share for c in competitors]),
    )


def market_penetration_trajectory(
    document: Any,
    periods: int,
    unit_price: Optional[float] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> List[PenetrationPoint]:
    trajectory = []
    cumulative = 0.0
    for month in range(max(0, periods)):
        metrics = market_analysis_metrics(document, month, unit_price, config)
        cumulative += metrics.market_based_volume
        trajectory.append(PenetrationPoint(
            period=month + 1,
            year=metrics.year,
            tam=metrics.tam,
            sam=metrics.sam,
            som=metrics.som,
            market_share=metrics.market_share,
            market_based_volume=metrics.market_based_volume,
            market_value=metrics.market_value,
            cumulative_volume=cumulative,
        ))

    if trajectory:
        logger.info(
            f"Market trajectory over {len(trajectory)} months: "
            f"final share {trajectory[-1].market_share:.4f}, cumulative volume {cumulative:.0f}"
        )
    return trajectory


# =============================================================================
# VALIDATION
# =============================================================================

def validate_market_analysis(document: Any) -> ValidationResult:
    """Hard errors for unusable sizing inputs, warnings for optimistic share targets"""
    result = ValidationResult()
    sizing = dig(document, "market_sizing")

    if not read_number(dig(sizing, "total_addressable_market", "base_value")):
        result.errors.append("Total Addressable Market base value is required")

    sam_pct = read_number(dig(sizing, "serviceable_addressable_market", "percentage_of_tam"))
    if not 0 <= sam_pct <= 100:
        result.errors.append("Serviceable Addressable Market percentage must be between 0 and 100")

    som_pct = read_number(dig(sizing, "serviceable_obtainable_market", "percentage_of_sam"))
    if not 0 <= som_pct <= 100:
        result.errors.append("Serviceable Obtainable Market percentage must be between 0 and 100")

    current = read_number(dig(document, "market_share", "current_position", "current_share"))
    target = read_number(dig(document, "market_share", "target_position", "target_share"))
    if target <= current:
        result.warnings.append("Target market share should be higher than current market share")
    if target > 50:
        result.warnings.append("Target market share above 50% may be unrealistic in competitive markets")

    competitors_total = sum(c.share * 100 for c in competitor_shares(document))
    if competitors_total + current > 100:
        result.warnings.append("Total market share (including competitors) exceeds 100%")

    return result


# =============================================================================
# OPPORTUNITY SCORE
# =============================================================================

def _clamp_component(value: float) -> float:
    if not math.isfinite(value):
        return 0.0
    return max(0.0, min(MAX_COMPONENT_SCORE, value))


def barrier_level(document: Any) -> BarrierLevel:
    raw = dig(document, "competitive_landscape", "market_structure", "barriers_to_entry")
    try:
        return BarrierLevel(raw)
    except ValueError:
        return BarrierLevel.MEDIUM


def interpret_score(score: float) -> str:
    if score >= 75:
        return "Excellent market opportunity with strong potential"
    if score >= 60:
        return "Good market opportunity with moderate potential"
    if score >= 40:
        return "Fair market opportunity with some challenges"
    return "Challenging market opportunity requiring careful consideration"


def market_opportunity_score(document: Any) -> OpportunityScore:
    """
    0-100 score from four 0-25 components: market size (log scale, 1M = 0),
    growth (10%/yr = 25), competitive position (target share and advantages)
    and entry barriers (lower is better).
    """
    tam = read_number(dig(document, "market_sizing", "total_addressable_market", "base_value"))
    growth = read_number(dig(document, "market_sizing", "total_addressable_market", "growth_rate"))
    target = read_number(dig(document, "market_share", "target_position", "target_share"))
    advantages = len(read_list(dig(document, "competitive_landscape", "competitive_advantages")))

    size_score = _clamp_component(math.log10(tam / 1_000_000) * 5) if tam > 0 else 0.0
    growth_score = _clamp_component(growth * 2.5)
    position_score = _clamp_component(target / 2 + advantages * 5)
    barrier_score = BARRIER_SCORES[barrier_level(document)]

    total = size_score + growth_score + position_score + barrier_score
    return OpportunityScore(
        score=round_half_up(total),
        market_size=round_half_up(size_score),
        market_growth=round_half_up(growth_score),
        competitive_position=round_half_up(position_score),
        barriers=barrier_score,
        interpretation=interpret_score(total),
    )


# =============================================================================
# FORMATTING
# =============================================================================

def format_market_currency(value: float, currency: str = "EUR") -> str:
    """Abbreviated amount: 1.5B EUR, 250.0M USD, 750.0K EUR, 500 USD"""
    magnitude = abs(value)
    sign = "-" if value < 0 else ""
    if magnitude >= 1e9:
        return f"{sign}{magnitude / 1e9:.1f}B {currency}"
    if magnitude >= 1e6:
        return f"{sign}{magnitude / 1e6:.1f}M {currency}"
    if magnitude >= 1e3:
        return f"{sign}{magnitude / 1e3:.1f}K {currency}"
    return f"{sign}{magnitude:.0f} {currency}"


def format_market_percent(value: float) -> str:
    return f"{value * 100:.1f}%"
