"""
Calculation Run Audit Models

One row per computation served over HTTP. Assumption documents are not
stored; only their hash plus the headline results, so a rerun with the same
document can be checked for an identical output hash.
"""

import enum
from datetime import datetime
from typing import Any, Dict

from sqlalchemy import Column, DateTime, Enum as SQLEnum, Float, Index, Integer, String
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class RunKind(enum.Enum):
    BUSINESS_CASE = "business_case"
    MARKET = "market"
    SENSITIVITY = "sensitivity"


class CalculationRun(Base):
    """A reproducible engine computation: same input_hash must give the same output_hash"""
    __tablename__ = "calculation_runs"

    id = Column(Integer, primary_key=True, index=True)
    kind = Column(SQLEnum(RunKind), nullable=False)
    title = Column(String(200), nullable=True)
    periods = Column(Integer, nullable=True)

    # Integrity
    input_hash = Column(String(64), nullable=False, index=True)  # SHA256 of the assumption document
    output_hash = Column(String(64), nullable=False)

    # Headline results
    total_revenue = Column(Float, nullable=True)
    npv = Column(Float, nullable=True)

    # Audit
    compute_time_ms = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_calculation_runs_kind_created", "kind", "created_at"),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value if self.kind else None,
            "title": self.title,
            "periods": self.periods,
            "input_hash": self.input_hash,
            "output_hash": self.output_hash,
            "total_revenue": self.total_revenue,
            "npv": self.npv,
            "compute_time_ms": self.compute_time_ms,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
