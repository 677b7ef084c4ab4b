"""
Aggregate Financial Metrics

NPV, IRR, break-even, payback and funding need over a monthly cash-flow
series, plus display formatting for amounts and rates.

Conventions:
- Rates passed in and reported out are nominal annual rates; the monthly
  rate is annual / 12.
- Cash flows are discounted at the end of each month, so the first month is
  discounted one period.
- IRR never raises: degenerate series return an IRRErrorCode sentinel. The
  sentinels sit far outside any reachable rate, so a valid IRR (negative ones
  included) can never be mistaken for an error.
"""

import logging
import math
from enum import IntEnum
from itertools import accumulate
from typing import List, Optional, Sequence, Tuple

import numpy as np

from document_utils import round_half_up
from engine_config import EngineConfig, DEFAULT_CONFIG

logger = logging.getLogger(__name__)

# Monthly search interval for the IRR root finder
IRR_LOWER_BOUND = -0.99
IRR_UPPER_BOUND = 5.0
IRR_BRACKET_POINTS = 600

# Effective annual rates outside this band are reported as extreme
MIN_EFFECTIVE_ANNUAL_RATE = -0.99
MAX_EFFECTIVE_ANNUAL_RATE = 100.0

SAME_FLOW_TOLERANCE = 0.01


class IRRErrorCode(IntEnum):
    """Sentinel IRR results for series with no meaningful rate"""
    NO_DATA = -999
    ALL_SAME = -998
    ALL_POSITIVE = -997
    ALL_NEGATIVE = -996
    NO_CONVERGENCE = -995
    EXTREME_RATE = -994


IRR_ERROR_MESSAGES = {
    IRRErrorCode.NO_DATA: "No data available for IRR calculation",
    IRRErrorCode.ALL_SAME: "All cash flows are identical - IRR cannot be calculated",
    IRRErrorCode.ALL_POSITIVE: "All cash flows are positive - infinite return",
    IRRErrorCode.ALL_NEGATIVE: "All cash flows are negative - no return possible",
    IRRErrorCode.NO_CONVERGENCE: "IRR calculation did not converge",
    IRRErrorCode.EXTREME_RATE: "IRR calculation resulted in extreme rate",
}

_IRR_ERROR_VALUES = frozenset(int(code) for code in IRRErrorCode)


def is_irr_error(irr: float) -> bool:
    return irr in _IRR_ERROR_VALUES


def irr_error_message(irr: float) -> str:
    if not is_irr_error(irr):
        return "Unknown IRR error"
    return IRR_ERROR_MESSAGES[IRRErrorCode(int(irr))]


# =============================================================================
# NPV
# =============================================================================

def calculate_npv(cash_flows: Sequence[float], annual_rate: float) -> float:
    """Net present value at a nominal annual rate, discounting month i by (1 + r/12)^(i+1)"""
    if not cash_flows:
        return 0.0

    growth = 1.0 + annual_rate / 12
    if growth <= 0:
        logger.warning(f"Discount rate {annual_rate} is at or below -100% per month; NPV reported as 0")
        return 0.0

    npv = 0.0
    try:
        for index, cash_flow in enumerate(cash_flows):
            npv += cash_flow * growth ** -(index + 1)
    except OverflowError:
        logger.warning(f"Discount factors overflow at rate {annual_rate}; NPV reported as 0")
        return 0.0
    return npv if math.isfinite(npv) else 0.0


# =============================================================================
# IRR
# =============================================================================

def _npv_and_slope(flows: np.ndarray, periods: np.ndarray, rate: float) -> Tuple[float, float]:
    """NPV at a monthly rate and its derivative with respect to that rate"""
    with np.errstate(over="ignore", divide="ignore", invalid="ignore"):
        factors = np.power(1.0 + rate, -periods)
        value = float(np.dot(flows, factors))
        slope = float(np.dot(-periods * flows, factors)) / (1.0 + rate)
    return value, slope


def _newton(flows: np.ndarray, periods: np.ndarray, guess: float, tolerance: float, max_iterations: int) -> Optional[float]:
    rate = guess
    for _ in range(max_iterations):
        value, slope = _npv_and_slope(flows, periods, rate)
        if not (math.isfinite(value) and math.isfinite(slope)):
            return None
        if abs(value) <= tolerance:
            return rate
        if abs(slope) < 1e-12:
            return None

        next_rate = rate - value / slope
        if not IRR_LOWER_BOUND < next_rate < IRR_UPPER_BOUND:
            return None
        if abs(next_rate - rate) < 1e-14:
            return next_rate
        rate = next_rate
    return None


def _bisect(flows: np.ndarray, periods: np.ndarray, tolerance: float, max_iterations: int) -> Optional[float]:
    """Bracket a sign change on a grid, preferring the bracket nearest 0, then bisect it"""
    grid = np.linspace(IRR_LOWER_BOUND, IRR_UPPER_BOUND, IRR_BRACKET_POINTS)
    values = [_npv_and_slope(flows, periods, float(rate))[0] for rate in grid]

    brackets = []
    for i in range(len(grid) - 1):
        a, b = values[i], values[i + 1]
        if not (math.isfinite(a) and math.isfinite(b)):
            continue
        if a == 0:
            return float(grid[i])
        if a * b < 0:
            brackets.append((float(grid[i]), float(grid[i + 1]), a))
    if not brackets:
        return None

    low, high, low_value = min(brackets, key=lambda bracket: abs(bracket[0] + bracket[1]))
    mid = (low + high) / 2
    for _ in range(max_iterations):
        mid = (low + high) / 2
        value = _npv_and_slope(flows, periods, mid)[0]
        if abs(value) <= tolerance or (high - low) / 2 < 1e-15:
            return mid
        if (value < 0) == (low_value < 0):
            low, low_value = mid, value
        else:
            high = mid
    return None


def effective_annual_rate(annual_rate: float) -> float:
    """Compound a nominal annual rate monthly; sentinels pass through unchanged"""
    if is_irr_error(annual_rate):
        return annual_rate
    return (1.0 + annual_rate / 12) ** 12 - 1.0


def calculate_irr(cash_flows: Sequence[float], config: EngineConfig = DEFAULT_CONFIG) -> float:
    """
    Internal rate of return of a monthly cash-flow series.

    Finds the monthly rate where NPV is zero (Newton-Raphson from the
    configured guess, falling back to bisection over a bracketed sign change)
    and reports it as a nominal annual rate. Returns an IRRErrorCode value for
    empty, flat, one-signed, non-converging or extreme series.
    """
    if not cash_flows:
        return float(IRRErrorCode.NO_DATA)

    first = cash_flows[0]
    if all(abs(cf - first) < SAME_FLOW_TOLERANCE for cf in cash_flows):
        return float(IRRErrorCode.ALL_SAME)
    if all(cf >= 0 for cf in cash_flows):
        return float(IRRErrorCode.ALL_POSITIVE)
    if all(cf <= 0 for cf in cash_flows):
        return float(IRRErrorCode.ALL_NEGATIVE)

    flows = np.asarray(cash_flows, dtype=float)
    periods = np.arange(1, len(flows) + 1, dtype=float)
    tolerance = config.irr_tolerance * max(1.0, float(np.max(np.abs(flows))))

    monthly = _newton(flows, periods, config.irr_initial_guess / 12, tolerance, config.irr_max_iterations)
    if monthly is None:
        monthly = _bisect(flows, periods, tolerance, config.irr_max_iterations)
    if monthly is None:
        logger.warning(f"IRR did not converge over {len(flows)} cash flows")
        return float(IRRErrorCode.NO_CONVERGENCE)

    effective = (1.0 + monthly) ** 12 - 1.0
    if effective < MIN_EFFECTIVE_ANNUAL_RATE or effective > MAX_EFFECTIVE_ANNUAL_RATE:
        logger.warning(f"IRR of {monthly:.4f} per month is outside the reportable range")
        return float(IRRErrorCode.EXTREME_RATE)

    return monthly * 12


# =============================================================================
# TIMING METRICS
# =============================================================================

def cumulative_cash_flows(cash_flows: Sequence[float]) -> List[float]:
    return list(accumulate(cash_flows))


def break_even_month(cash_flows: Sequence[float]) -> int:
    """First 1-based month whose own cash flow is non-negative; 0 if never"""
    for index, cash_flow in enumerate(cash_flows):
        if cash_flow >= 0:
            return index + 1
    return 0


def payback_period(cash_flows: Sequence[float]) -> int:
    """First 1-based month whose cumulative cash flow is non-negative; 0 if never"""
    for index, cumulative in enumerate(accumulate(cash_flows)):
        if cumulative >= 0:
            return index + 1
    return 0


def total_investment_required(cash_flows: Sequence[float]) -> float:
    """Funding needed to reach self-sufficiency: the deepest cumulative deficit"""
    if not cash_flows:
        return 0.0
    return abs(min(0.0, min(accumulate(cash_flows))))


# =============================================================================
# FORMATTING
# =============================================================================

CURRENCY_SYMBOLS = {
    "EUR": "€",
    "USD": "$",
    "GBP": "£",
    "JPY": "¥",
    "INR": "₹",
}


def format_currency(amount: float, currency: str = "EUR") -> str:
    """Whole-unit currency string, e.g. €1,234,567 or -$500"""
    rounded = round_half_up(abs(amount))
    sign = "-" if amount < 0 and rounded else ""
    symbol = CURRENCY_SYMBOLS.get(currency, f"{currency} ")
    return f"{sign}{symbol}{rounded:,}"


def format_percent(value: float) -> str:
    """0.156 -> '15.6%'"""
    return f"{value * 100:.1f}%"
