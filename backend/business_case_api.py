"""
Business Case API

Stateless calculation endpoints over a posted assumption document. Each full
calculation is recorded as a CalculationRun (hashes and headline results only)
so reruns can be checked for reproducibility.
"""

import time
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from business_case_engine import BusinessCaseEngine, summarize_by_year
from database import get_db
from document_utils import canonical_hash, dig, read_text
from engine_config import EngineConfig
from growth_patterns import GrowthDefaults
from override_resolvers import pricing_trajectory, volume_trajectory
from run_models import CalculationRun, RunKind
from segment_aggregator import find_segment
from sensitivity import driver_tornado, evaluate_driver, parse_drivers


router = APIRouter(prefix="/business-case", tags=["Business Case"])

config = EngineConfig.from_env()


# ═══════════════════════════════════════════════════════════════════════════════
# SCHEMAS
# ═══════════════════════════════════════════════════════════════════════════════

class DocumentRequest(BaseModel):
    """A business assumption document."""
    document: Dict[str, Any] = Field(default_factory=dict)


class PricingTrajectoryRequest(DocumentRequest):
    periods: int = Field(60, ge=0, le=60)


class VolumeTrajectoryRequest(DocumentRequest):
    segment_id: str
    periods: int = Field(60, ge=0, le=60)


class SensitivityRequest(DocumentRequest):
    """Evaluate one driver by key, or every declared driver when omitted."""
    driver_key: Optional[str] = None


# ═══════════════════════════════════════════════════════════════════════════════
# HELPERS
# ═══════════════════════════════════════════════════════════════════════════════

def record_run(
    db: Session,
    kind: RunKind,
    document: Dict[str, Any],
    output: Any,
    compute_time_ms: int,
    periods: Optional[int] = None,
    total_revenue: Optional[float] = None,
    npv: Optional[float] = None,
) -> CalculationRun:
    run = CalculationRun(
        kind=kind,
        title=read_text(dig(document, "meta", "title")) or None,
        periods=periods,
        input_hash=canonical_hash(document),
        output_hash=canonical_hash(output),
        total_revenue=total_revenue,
        npv=npv,
        compute_time_ms=compute_time_ms,
    )
    db.add(run)
    db.commit()
    db.refresh(run)
    return run


# ═══════════════════════════════════════════════════════════════════════════════
# CALCULATION ENDPOINTS
# ═══════════════════════════════════════════════════════════════════════════════

@router.post("/calculate")
def calculate(data: DocumentRequest, db: Session = Depends(get_db)):
    """Monthly rows, summary metrics and yearly totals; records the run."""
    engine = BusinessCaseEngine(config)
    start = time.perf_counter()
    metrics = engine.calculate_business_metrics(data.document)
    compute_time_ms = int((time.perf_counter() - start) * 1000)

    payload = metrics.to_dict()
    run = record_run(
        db,
        RunKind.BUSINESS_CASE,
        data.document,
        payload,
        compute_time_ms,
        periods=len(metrics.monthly_data),
        total_revenue=metrics.total_revenue,
        npv=metrics.npv,
    )
    return {
        "run_id": run.id,
        "output_hash": run.output_hash,
        "metrics": payload,
        "yearly_summary": summarize_by_year(metrics.monthly_data),
    }


@router.post("/monthly-data")
def monthly_data(data: DocumentRequest):
    rows = BusinessCaseEngine(config).generate_monthly_data(data.document)
    return {"rows": [row.to_dict() for row in rows], "periods": len(rows)}


@router.post("/trajectories/pricing")
def pricing_trajectory_endpoint(data: PricingTrajectoryRequest):
    return {"trajectory": [point.to_dict() for point in pricing_trajectory(data.document, data.periods)]}


@router.post("/trajectories/volume")
def volume_trajectory_endpoint(data: VolumeTrajectoryRequest):
    segment = find_segment(data.document, data.segment_id)
    if segment is None:
        raise HTTPException(status_code=404, detail=f"Segment {data.segment_id!r} not found")

    defaults = GrowthDefaults.from_document(data.document)
    trajectory = volume_trajectory(segment, data.periods, defaults)
    return {"segment_id": data.segment_id, "trajectory": [point.to_dict() for point in trajectory]}


@router.post("/sensitivity")
def sensitivity(data: SensitivityRequest, db: Session = Depends(get_db)):
    """Per-driver outcomes at min/mid/max, widest NPV swing first."""
    start = time.perf_counter()
    try:
        if data.driver_key is None:
            results = driver_tornado(data.document, config)
        else:
            driver = next((d for d in parse_drivers(data.document) if d.key == data.driver_key), None)
            if driver is None:
                raise HTTPException(status_code=404, detail=f"Driver {data.driver_key!r} not found")
            results = [evaluate_driver(data.document, driver, config)]
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    payload = [result.to_dict() for result in results]
    compute_time_ms = int((time.perf_counter() - start) * 1000)
    run = record_run(db, RunKind.SENSITIVITY, data.document, payload, compute_time_ms)
    return {"run_id": run.id, "drivers": payload}


# ═══════════════════════════════════════════════════════════════════════════════
# RUN HISTORY
# ═══════════════════════════════════════════════════════════════════════════════

@router.get("/runs")
def list_runs(
    kind: Optional[str] = None,
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
):
    query = db.query(CalculationRun)
    if kind:
        try:
            query = query.filter(CalculationRun.kind == RunKind(kind))
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid run kind: {kind}")
    runs: List[CalculationRun] = query.order_by(CalculationRun.id.desc()).limit(limit).all()
    return [run.to_dict() for run in runs]


@router.get("/runs/{run_id}")
def get_run(run_id: int, db: Session = Depends(get_db)):
    run = db.query(CalculationRun).filter(CalculationRun.id == run_id).first()
    if not run:
        raise HTTPException(status_code=404, detail="Calculation run not found")
    return run.to_dict()
