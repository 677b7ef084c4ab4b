"""
Sensitivity Drivers

A driver names one assumption (by dotted JSON path) and the range it may take.
Evaluating a driver substitutes each range point into a copy of the document
and re-runs the engine, so the document the caller holds is never modified.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from business_case_engine import BusinessCaseEngine
from document_utils import optional_number, read_dicts, read_list, read_text, set_nested_value, validate_path
from engine_config import EngineConfig

logger = logging.getLogger(__name__)


@dataclass
class Driver:
    key: str
    path: str
    range: List[float]  # [min, mid, max]
    label: str = ""
    rationale: str = ""
    unit: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["Driver"]:
        """Parse one drivers[] entry; None when the path or range is unusable"""
        path = data.get("path")
        if not validate_path(path):
            return None

        points = [optional_number(point) for point in read_list(data.get("range"))]
        if len(points) not in (2, 3) or any(point is None for point in points):
            return None
        if len(points) == 2:
            points = [points[0], (points[0] + points[1]) / 2, points[1]]

        key = read_text(data.get("key"), path)
        return cls(
            key=key,
            path=path,
            range=points,
            label=read_text(data.get("label"), key),
            rationale=read_text(data.get("rationale")),
            unit=read_text(data.get("unit")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "label": self.label,
            "path": self.path,
            "range": self.range,
            "rationale": self.rationale,
            "unit": self.unit,
        }


@dataclass
class DriverOutcome:
    value: float
    npv: float
    irr: float
    total_revenue: float
    net_profit: float
    break_even_month: int
    payback_period: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "value": self.value,
            "npv": self.npv,
            "irr": self.irr,
            "totalRevenue": self.total_revenue,
            "netProfit": self.net_profit,
            "breakEvenMonth": self.break_even_month,
            "paybackPeriod": self.payback_period,
        }


@dataclass
class DriverSensitivity:
    driver: Driver
    outcomes: List[DriverOutcome] = field(default_factory=list)

    @property
    def npv_swing(self) -> float:
        if not self.outcomes:
            return 0.0
        values = [outcome.npv for outcome in self.outcomes]
        return max(values) - min(values)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "driver": self.driver.to_dict(),
            "outcomes": [outcome.to_dict() for outcome in self.outcomes],
            "npvSwing": self.npv_swing,
        }


def parse_drivers(document: Any) -> List[Driver]:
    if not isinstance(document, dict):
        return []
    drivers = []
    for entry in read_dicts(document.get("drivers")):
        driver = Driver.from_dict(entry)
        if driver is None:
            logger.debug(f"Skipping malformed driver entry {entry.get('key')!r}")
            continue
        drivers.append(driver)
    return drivers


def apply_driver_value(document: Dict[str, Any], driver: Driver, value: float) -> Dict[str, Any]:
    """Copy of the document with the driver's assumption set to an absolute value"""
    return set_nested_value(document, driver.path, value)


def evaluate_driver(
    document: Dict[str, Any],
    driver: Driver,
    config: Optional[EngineConfig] = None,
) -> DriverSensitivity:
    """Run the engine once per range point of a driver. Raises ValueError on an unusable path."""
    engine = BusinessCaseEngine(config)
    result = DriverSensitivity(driver=driver)
    for value in driver.range:
        metrics = engine.calculate_business_metrics(apply_driver_value(document, driver, value))
        result.outcomes.append(DriverOutcome(
            value=value,
            npv=metrics.npv,
            irr=metrics.irr,
            total_revenue=metrics.total_revenue,
            net_profit=metrics.net_profit,
            break_even_month=metrics.break_even_month,
            payback_period=metrics.payback_period,
        ))
    return result


def driver_tornado(document: Dict[str, Any], config: Optional[EngineConfig] = None) -> List[DriverSensitivity]:
    """Every declared driver evaluated, widest NPV swing first"""
    results = [evaluate_driver(document, driver, config) for driver in parse_drivers(document)]
    results.sort(key=lambda result: result.npv_swing, reverse=True)
    logger.info(f"Sensitivity tornado over {len(results)} drivers")
    return results
