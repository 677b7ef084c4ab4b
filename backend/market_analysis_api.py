"""
Market Analysis API

Market sizing, share trajectory, validation and strategic-suite endpoints
over a posted market document.
"""

import time
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field

from business_case_api import config, record_run
from database import get_db
from market_engine import (
    market_analysis_metrics, market_opportunity_score, market_penetration_trajectory,
    validate_market_analysis,
)
from market_suite import (
    analyze_customer_segments, calculate_suite_metrics, create_opportunity_matrix,
    export_market_insights, generate_strategic_options, validate_market_suite,
)
from run_models import RunKind


router = APIRouter(prefix="/market-analysis", tags=["Market Analysis"])


# ═══════════════════════════════════════════════════════════════════════════════
# SCHEMAS
# ═══════════════════════════════════════════════════════════════════════════════

class MarketDocumentRequest(BaseModel):
    """A market assumption document."""
    document: Dict[str, Any] = Field(default_factory=dict)


class MarketMetricsRequest(MarketDocumentRequest):
    month: int = Field(0, ge=0, le=599)
    unit_price: Optional[float] = Field(None, gt=0)


class MarketTrajectoryRequest(MarketDocumentRequest):
    periods: int = Field(60, ge=0, le=60)
    unit_price: Optional[float] = Field(None, gt=0)


# ═══════════════════════════════════════════════════════════════════════════════
# ENDPOINTS
# ═══════════════════════════════════════════════════════════════════════════════

@router.post("/metrics")
def metrics(data: MarketMetricsRequest):
    return market_analysis_metrics(data.document, data.month, data.unit_price, config).to_dict()


@router.post("/trajectory")
def trajectory(data: MarketTrajectoryRequest, db: Session = Depends(get_db)):
    """Month-by-month penetration; records the run."""
    start = time.perf_counter()
    points = market_penetration_trajectory(data.document, data.periods, data.unit_price, config)
    compute_time_ms = int((time.perf_counter() - start) * 1000)

    payload = [point.to_dict() for point in points]
    run = record_run(db, RunKind.MARKET, data.document, payload, compute_time_ms, periods=len(points))
    return {"run_id": run.id, "trajectory": payload}


@router.post("/validate")
def validate(data: MarketDocumentRequest):
    return validate_market_analysis(data.document).to_dict()


@router.post("/opportunity-score")
def opportunity_score(data: MarketDocumentRequest):
    return market_opportunity_score(data.document).to_dict()


@router.post("/suite")
def suite(data: MarketDocumentRequest):
    """Strategic suite: metrics, segments, options, matrix, validation and export."""
    suite_metrics = calculate_suite_metrics(data.document)
    return {
        "metrics": suite_metrics.to_dict(),
        "segments": [segment.to_dict() for segment in analyze_customer_segments(data.document)],
        "strategicOptions": [option.to_dict() for option in generate_strategic_options(data.document)],
        "opportunityMatrix": create_opportunity_matrix(data.document),
        "validation": validate_market_suite(data.document).to_dict(),
        "export": export_market_insights(data.document, suite_metrics),
    }
