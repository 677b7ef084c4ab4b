"""
Market Analysis Suite

Strategic read-outs over a market document: suite metrics with a summary
narrative, customer-segment attractiveness, entry options, the opportunity
matrix and a module-aware validation. Every module of the document
(market_sizing, competitive_landscape, customer_analysis, strategic_planning)
is optional; missing ones contribute zeros.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from document_utils import dig, read_dicts, read_list, read_number, read_text, round_half_up
from market_engine import BarrierLevel, ValidationResult, barrier_level, market_concentration

logger = logging.getLogger(__name__)

BARRIER_ENTRY_SCORES = {BarrierLevel.LOW: 25, BarrierLevel.MEDIUM: 50, BarrierLevel.HIGH: 75}
THREAT_LEVEL_WEIGHTS = {"high": 3, "medium": 2, "low": 1}
BASELINE_RISK_SCORE = 50
EXPORT_VERSION = "1.0"

NEXT_STEPS = [
    "Validate market assumptions with primary research",
    "Develop detailed go-to-market strategy",
    "Create competitive differentiation plan",
    "Build financial model with market projections",
]


@dataclass
class SuiteSummary:
    market_opportunity: str
    recommendations: List[str] = field(default_factory=list)
    key_risks: List[str] = field(default_factory=list)
    next_steps: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "marketOpportunity": self.market_opportunity,
            "recommendations": self.recommendations,
            "keyRisks": self.key_risks,
            "nextSteps": self.next_steps,
        }


@dataclass
class SuiteMetrics:
    tam: float
    sam: float
    som: float
    opportunity_score: int
    competitive_position: str
    customer_segments: int
    market_growth_rate: float
    market_concentration: float
    competitor_count: int
    average_competitor_strength: float
    market_penetration_rate: float
    entry_barrier_score: int
    strategic_fit_score: float
    risk_score: int
    summary: SuiteSummary

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tam": self.tam,
            "sam": self.sam,
            "som": self.som,
            "opportunityScore": self.opportunity_score,
            "competitivePosition": self.competitive_position,
            "customerSegments": self.customer_segments,
            "marketGrowthRate": self.market_growth_rate,
            "marketConcentration": self.market_concentration,
            "competitorCount": self.competitor_count,
            "averageCompetitorStrength": self.average_competitor_strength,
            "marketPenetrationRate": self.market_penetration_rate,
            "entryBarrierScore": self.entry_barrier_score,
            "strategicFitScore": self.strategic_fit_score,
            "riskScore": self.risk_score,
            "summary": self.summary.to_dict(),
        }


@dataclass
class SegmentAnalysis:
    id: str
    name: str
    attractiveness: float
    accessibility: float
    defensibility: float
    size: float
    growth_rate: float
    competition_level: str
    recommended_strategy: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "attractiveness": self.attractiveness,
            "accessibility": self.accessibility,
            "defensibility": self.defensibility,
            "size": self.size,
            "growthRate": self.growth_rate,
            "competitionLevel": self.competition_level,
            "recommendedStrategy": self.recommended_strategy,
        }


@dataclass
class StrategicOption:
    id: str
    name: str
    description: str
    investment_required: float
    expected_return: float
    risk_level: str
    time_to_market: int  # months
    probability: int  # 0-100
    strategic_fit: int  # 0-100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "investmentRequired": self.investment_required,
            "expectedReturn": self.expected_return,
            "riskLevel": self.risk_level,
            "timeToMarket": self.time_to_market,
            "probability": self.probability,
            "strategicFit": self.strategic_fit,
        }


# =============================================================================
# SUITE METRICS
# =============================================================================

def _has_module(document: Any, name: str) -> bool:
    return bool(dig(document, name))


def suite_opportunity_score(
    market_size: float,
    growth_rate: float,
    concentration: float,
    entry_barrier_score: float,
    strategic_fit: float,
    target_share_pct: float,
) -> int:
    """Six-factor score: size, growth, competition, barriers, fit and ambition"""
    size_score = min(25.0, math.log10(market_size / 1_000_000) * 5) if market_size > 0 else 0.0
    growth_score = min(25.0, growth_rate * 2.5)
    competition_score = max(0.0, 25 - concentration * 25)
    barrier_score = max(0.0, 25 - entry_barrier_score / 4)
    fit_score = strategic_fit / 100 * 15
    share_score = min(10.0, target_share_pct / 5)
    return round_half_up(size_score + growth_score + competition_score + barrier_score + fit_score + share_score)


def competitive_position_label(market_share_pct: float, strategic_strength: float, competitor_strength: float) -> str:
    relative_strength = strategic_strength - competitor_strength * 20
    strong = relative_strength > 50
    if market_share_pct >= 10:
        return "Market Leader" if strong else "Strong Challenger"
    if market_share_pct >= 5:
        return "Strategic Challenger" if strong else "Market Follower"
    return "Niche Specialist" if strong else "Emerging Player"


def summary_insights(
    tam: float,
    opportunity_score: float,
    growth_rate: float,
    risk_score: float,
    competitor_count: int,
) -> SuiteSummary:
    if opportunity_score >= 75:
        opportunity = (
            f"Excellent market opportunity with {tam / 1e9:.1f}B TAM and {growth_rate:.1f}% growth rate. "
            "Strong potential for market entry and expansion."
        )
    elif opportunity_score >= 60:
        opportunity = (
            f"Good market opportunity with moderate potential. "
            f"Market size of {tam / 1e9:.1f}B offers solid foundation for growth."
        )
    elif opportunity_score >= 40:
        opportunity = "Fair market opportunity with some challenges. Consider focused approach on specific segments."
    else:
        opportunity = "Challenging market conditions. Careful strategy and strong differentiation required for success."

    if opportunity_score >= 70:
        recommendations = [
            "Accelerate market entry with significant investment",
            "Focus on capturing market share in high-growth segments",
        ]
    elif opportunity_score >= 50:
        recommendations = [
            "Pursue selective market entry with phased approach",
            "Develop strong competitive differentiation",
        ]
    else:
        recommendations = [
            "Consider alternative markets or modified value proposition",
            "Focus on niche segments with lower competition",
        ]
    if growth_rate > 10:
        recommendations.append("Leverage high market growth to gain early market position")
    if competitor_count > 5:
        recommendations.append("Develop clear differentiation strategy in crowded market")

    key_risks = []
    if risk_score > 60:
        key_risks.append("High market risk profile requires careful risk management")
    if competitor_count > 10:
        key_risks.append("Highly fragmented market with intense competition")
    if growth_rate < 3:
        key_risks.append("Slow market growth may limit expansion opportunities")

    return SuiteSummary(
        market_opportunity=opportunity,
        recommendations=recommendations,
        key_risks=key_risks,
        next_steps=list(NEXT_STEPS),
    )


def calculate_suite_metrics(document: Any) -> SuiteMetrics:
    """
    Point-in-time suite view of a market document.

    Sizing is taken at the base year (no compounding). Concentration here is
    competitors only; the per-month HHI in market_engine includes our share.
    """
    sizing = dig(document, "market_sizing") if _has_module(document, "market_sizing") else None
    tam = read_number(dig(sizing, "total_addressable_market", "base_value"))
    sam = tam * read_number(dig(sizing, "serviceable_addressable_market", "percentage_of_tam")) / 100
    som = sam * read_number(dig(sizing, "serviceable_obtainable_market", "percentage_of_sam")) / 100
    growth_rate = read_number(dig(sizing, "total_addressable_market", "growth_rate"))

    landscape = dig(document, "competitive_landscape") if _has_module(document, "competitive_landscape") else None
    competitors = read_dicts(dig(landscape, "competitors"))
    concentration = market_concentration([read_number(c.get("market_share")) / 100 for c in competitors])
    average_strength = (
        sum(THREAT_LEVEL_WEIGHTS.get(read_text(c.get("threat_level")), 1) for c in competitors) / len(competitors)
        if competitors else 0.0
    )

    target_share = read_number(dig(document, "market_share", "target_position", "target_share")) / 100
    entry_barrier_score = BARRIER_ENTRY_SCORES[barrier_level(document) if landscape else BarrierLevel.MEDIUM]
    strategic_fit = min(100, len(read_list(dig(landscape, "competitive_advantages"))) * 20)

    opportunity_score = suite_opportunity_score(
        market_size=tam,
        growth_rate=growth_rate,
        concentration=concentration,
        entry_barrier_score=entry_barrier_score,
        strategic_fit=strategic_fit,
        target_share_pct=target_share * 100,
    )
    segment_count = len(read_list(dig(document, "customer_analysis", "market_segments")))

    metrics = SuiteMetrics(
        tam=tam,
        sam=sam,
        som=som,
        opportunity_score=opportunity_score,
        competitive_position=competitive_position_label(target_share * 100, strategic_fit, average_strength),
        customer_segments=segment_count,
        market_growth_rate=growth_rate,
        market_concentration=concentration,
        competitor_count=len(competitors),
        average_competitor_strength=average_strength,
        market_penetration_rate=target_share,
        entry_barrier_score=entry_barrier_score,
        strategic_fit_score=strategic_fit,
        risk_score=BASELINE_RISK_SCORE,
        summary=summary_insights(tam, opportunity_score, growth_rate, BASELINE_RISK_SCORE, len(competitors)),
    )
    logger.info(f"Market suite computed: opportunity score {opportunity_score}, position {metrics.competitive_position!r}")
    return metrics


# =============================================================================
# SEGMENTS, OPTIONS, MATRIX
# =============================================================================

def _market_segments(document: Any) -> List[Dict[str, Any]]:
    return read_dicts(dig(document, "customer_analysis", "market_segments"))


def analyze_customer_segments(document: Any) -> List[SegmentAnalysis]:
    analyses = []
    for segment in _market_segments(document):
        size = read_number(segment.get("size_percentage"))
        growth = read_number(segment.get("growth_rate"))

        attractiveness = min(100.0, (size + growth * 2) / 2)
        accessibility = min(100.0, 60 + size / 2) if size > 20 else 30.0
        defensibility = 70.0 if growth > 5 else 50.0

        if attractiveness > 70:
            competition_level = "high"
        elif attractiveness > 40:
            competition_level = "medium"
        else:
            competition_level = "low"

        if attractiveness > 70 and accessibility > 60:
            strategy = "Invest heavily - primary target segment"
        elif attractiveness > 50:
            strategy = "Selective investment - secondary target"
        else:
            strategy = "Monitor - potential future opportunity"

        analyses.append(SegmentAnalysis(
            id=read_text(segment.get("id")),
            name=read_text(segment.get("name")),
            attractiveness=attractiveness,
            accessibility=accessibility,
            defensibility=defensibility,
            size=size,
            growth_rate=growth,
            competition_level=competition_level,
            recommended_strategy=strategy,
        ))
    return analyses


def generate_strategic_options(document: Any) -> List[StrategicOption]:
    """Entry routes sized as fractions of TAM; acquisition only behind high barriers"""
    tam = read_number(dig(document, "market_sizing", "total_addressable_market", "base_value"))
    barriers = barrier_level(document)

    options = [
        StrategicOption(
            id="direct_entry",
            name="Direct Market Entry",
            description="Enter market with full product offering and direct sales",
            investment_required=tam * 0.001,
            expected_return=tam * 0.01,
            risk_level="high" if barriers == BarrierLevel.HIGH else "medium",
            time_to_market=18 if barriers == BarrierLevel.HIGH else 12,
            probability={BarrierLevel.LOW: 80, BarrierLevel.MEDIUM: 60, BarrierLevel.HIGH: 40}[barriers],
            strategic_fit=85,
        ),
        StrategicOption(
            id="partnership",
            name="Strategic Partnership",
            description="Enter through partnerships with established market players",
            investment_required=tam * 0.0005,
            expected_return=tam * 0.005,
            risk_level="low",
            time_to_market=6,
            probability=75,
            strategic_fit=70,
        ),
        StrategicOption(
            id="niche_entry",
            name="Niche Market Entry",
            description="Focus on specific high-value customer segments",
            investment_required=tam * 0.0002,
            expected_return=tam * 0.003,
            risk_level="low",
            time_to_market=9,
            probability=85,
            strategic_fit=80,
        ),
    ]
    if barriers == BarrierLevel.HIGH:
        options.append(StrategicOption(
            id="acquisition",
            name="Market Acquisition",
            description="Acquire existing market player for immediate presence",
            investment_required=tam * 0.01,
            expected_return=tam * 0.02,
            risk_level="medium",
            time_to_market=3,
            probability=60,
            strategic_fit=90,
        ))
    return options


def create_opportunity_matrix(document: Any) -> Dict[str, Any]:
    """
    Place each segment on an accessibility (x) / attractiveness (y) grid.

    overall = 100 * (0.3 size + 0.3 growth + 0.2 (1 - intensity) + 0.2 access)
    where size is normalised to 10% of TAM and growth to 20% per year.
    """
    tam = read_number(dig(document, "market_sizing", "total_addressable_market", "base_value"))
    opportunities = []
    for segment in _market_segments(document):
        share_pct = read_number(segment.get("size_percentage"))
        growth = read_number(segment.get("growth_rate"))
        size = share_pct / 100 * tam

        if share_pct > 30:
            intensity = 0.8
        elif share_pct > 20:
            intensity = 0.6
        else:
            intensity = 0.4
        accessibility = 0.8 if share_pct > 15 else 0.5

        size_score = min(1.0, size / (tam * 0.1)) if tam > 0 else 0.0
        growth_score = min(1.0, growth / 20)
        overall = (size_score * 0.3 + growth_score * 0.3 + (1 - intensity) * 0.2 + accessibility * 0.2) * 100

        opportunities.append({
            "segment": read_text(segment.get("name")),
            "marketSize": size,
            "growthRate": growth,
            "competitiveIntensity": intensity,
            "accessibility": accessibility,
            "overallScore": overall,
            "position": {"x": accessibility * 100, "y": overall},
        })
    return {"opportunities": opportunities}


# =============================================================================
# VALIDATION / EXPORT
# =============================================================================

MODULE_HINTS = [
    ("market_sizing", "Market Sizing module not configured - add it to analyze TAM/SAM/SOM"),
    ("competitive_landscape", "Competitive Intelligence module not configured - add it for competitor analysis"),
    ("customer_analysis", "Customer Analysis module not configured - add it for segment analysis"),
    ("strategic_planning", "Strategic Planning module not configured - add it for execution strategy and projections"),
]


def validate_market_suite(document: Any) -> ValidationResult:
    """All modules are optional; an empty document is valid with hints"""
    result = ValidationResult()
    for module, hint in MODULE_HINTS:
        if not _has_module(document, module):
            result.warnings.append(hint)

    if _has_module(document, "market_sizing"):
        if not read_number(dig(document, "market_sizing", "total_addressable_market", "base_value")):
            result.errors.append("Market Sizing: Total Addressable Market base value is missing")

    if _has_module(document, "competitive_landscape"):
        if not read_list(dig(document, "competitive_landscape", "competitors")):
            result.warnings.append(
                "Competitive Intelligence: No competitors defined - add competitor data for better analysis"
            )
        if not read_list(dig(document, "competitive_landscape", "competitive_advantages")):
            result.warnings.append("Competitive Intelligence: No competitive advantages defined")

    if _has_module(document, "customer_analysis"):
        segments = _market_segments(document)
        if not segments:
            result.warnings.append("Customer Analysis: No customer segments defined")
        if sum(read_number(segment.get("size_percentage")) for segment in segments) > 100:
            result.errors.append("Customer Analysis: Total segment percentages exceed 100%")

    return result


def export_market_insights(
    document: Any,
    metrics: Optional[SuiteMetrics] = None,
    export_date: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Shareable insight bundle; pass export_date for a reproducible payload"""
    metrics = metrics or calculate_suite_metrics(document)
    exported_at = export_date or datetime.now(timezone.utc)
    summary = metrics.summary

    return {
        "meta": {
            "exportDate": exported_at.isoformat(),
            "analysisTitle": read_text(dig(document, "meta", "title"), "Market Analysis"),
            "version": EXPORT_VERSION,
        },
        "executiveSummary": summary.to_dict(),
        "marketSizing": {
            "tam": metrics.tam,
            "sam": metrics.sam,
            "som": metrics.som,
            "growthRate": metrics.market_growth_rate,
        },
        "competitiveAnalysis": {
            "position": metrics.competitive_position,
            "competitorCount": metrics.competitor_count,
            "marketConcentration": metrics.market_concentration,
        },
        "opportunityAssessment": {
            "score": metrics.opportunity_score,
            "riskLevel": metrics.risk_score,
            "recommendation": summary.market_opportunity,
        },
        "volumeProjections": {
            "marketBasedVolume": metrics.som * metrics.market_penetration_rate,
            "timeframe": "60 months",
        },
        "strategicRecommendations": summary.recommendations,
        "keyRisks": summary.key_risks,
        "nextSteps": summary.next_steps,
    }
