"""
Business Case Engine Configuration

Named constants for the calculation engine, overridable through environment
variables. The config object is passed explicitly into the engine so two runs
with the same config and the same document always produce the same numbers.
"""

import os
import logging
from dataclasses import dataclass, asdict
from datetime import date
from typing import Dict, Any

logger = logging.getLogger(__name__)

ENV_VAR_PREFIX = "BIZCASE_"


@dataclass(frozen=True)
class EngineConfig:
    """Tunable constants of the business case engine"""
    cogs_ratio: float = 0.30
    max_periods: int = 60
    start_date: date = date(2026, 1, 1)

    # IRR root finder
    irr_max_iterations: int = 200
    irr_tolerance: float = 1e-7
    irr_initial_guess: float = 0.1  # annual, nominal

    # Market analysis
    default_base_year: int = 2024
    default_target_timeframe_years: float = 5.0

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Build a config from BIZCASE_* environment variables, falling back to defaults"""
        defaults = cls()

        cogs_ratio = _env_float("COGS_RATIO", defaults.cogs_ratio)
        max_periods = _env_int("MAX_PERIODS", defaults.max_periods)

        start_date = defaults.start_date
        raw_start = os.getenv(f"{ENV_VAR_PREFIX}START_DATE")
        if raw_start:
            try:
                start_date = date.fromisoformat(raw_start)
            except ValueError:
                logger.warning(f"Ignoring invalid {ENV_VAR_PREFIX}START_DATE={raw_start!r}")

        return cls(
            cogs_ratio=cogs_ratio,
            max_periods=max(0, max_periods),
            start_date=start_date,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["start_date"] = self.start_date.isoformat()
        return data


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(f"{ENV_VAR_PREFIX}{name}")
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid {ENV_VAR_PREFIX}{name}={raw!r}")
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(f"{ENV_VAR_PREFIX}{name}")
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid {ENV_VAR_PREFIX}{name}={raw!r}")
        return default


DEFAULT_CONFIG = EngineConfig()
