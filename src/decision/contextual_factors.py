"""
===============================================================================
CONTEXTUAL FACTORS — Sentiment, On-Chain and Cycle Multipliers
===============================================================================

Three external signals are mapped to global multipliers on crash risk:

    SENTIMENT (0-100 fear & greed style score)
        ≤25 → 1.50   ≤40 → 1.25   ≤60 → 1.00   ≤75 → 0.85   else → 0.70

    ON-CHAIN RISK LABEL
        Extreme 1.75   High 1.40   Moderate 1.00   Low 0.75   Very Low 0.50

    CYCLE POSITION (last price / max price over trailing 365 days)
        >0.95 → 1.30   >0.80 → 1.15   <0.50 → 0.85   else → 1.00

Each global multiplier is then specialized per calendar month using fixed
lookup tables (index = month - 1) and the month's own history:

    sentiment[m] = global · SEASONAL_SENTIMENT[m]
                   · (1.1 if mean return < -0.001, 0.9 if > 0.001)
    cycle[m]     = global · CYCLE_PHASE[m] · HALVING_PROXIMITY[m]
                   · (1.1 if extreme rate > 1.5%, 0.9 if < 0.5%)
    onchain[m]   = 1.5 if indicator > 0.7, 0.7 if < 0.3,
                   else 1.0 + (indicator - 0.5)

Sentiment and cycle multipliers are clamped to [0.5, 2.0].

Absent signals are not errors: they default to a neutral 1.0 (0.5 for a
month's on-chain indicator) and are listed in ContextSignals.missing_signals.
===============================================================================
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from decision.crash_risk_config import CYCLE_LOOKBACK

logger = logging.getLogger(__name__)


# =============================================================================
# GLOBAL SIGNAL MAPPINGS
# =============================================================================

# (upper bound inclusive, factor), checked in order
SENTIMENT_BANDS: Tuple[Tuple[float, float], ...] = (
    (25.0, 1.5),    # extreme fear
    (40.0, 1.25),   # fear
    (60.0, 1.0),    # neutral
    (75.0, 0.85),   # greed
)
SENTIMENT_EXTREME_GREED_FACTOR = 0.7

ONCHAIN_RISK_LEVEL_FACTORS: Dict[str, float] = {
    "Extreme": 1.75,
    "High": 1.4,
    "Moderate": 1.0,
    "Low": 0.75,
    "Very Low": 0.5,
}

NEAR_TOP_THRESHOLD = 0.95
UPTREND_THRESHOLD = 0.80
DEEP_DRAWDOWN_THRESHOLD = 0.50
NEAR_TOP_FACTOR = 1.3
UPTREND_FACTOR = 1.15
DEEP_DRAWDOWN_FACTOR = 0.85

NEUTRAL_FACTOR = 1.0
NEUTRAL_ONCHAIN_INDICATOR = 0.5

# =============================================================================
# PER-MONTH LOOKUP TABLES (index = month - 1)
# =============================================================================

#                    Jan  Feb  Mar  Apr  May   Jun   Jul  Aug  Sep  Oct   Nov   Dec
SEASONAL_SENTIMENT = (0.9, 1.0, 1.1, 1.0, 1.15, 1.05, 1.0, 1.1, 1.2, 1.15, 0.95, 0.9)

# Early cycle Nov-Feb, mid cycle Mar-Jun, late cycle Jul-Oct
CYCLE_PHASE = (0.9, 0.9, 1.0, 1.0, 1.0, 1.0, 1.15, 1.15, 1.15, 1.15, 0.9, 0.9)

# Halving months May/Jul/Nov, post-halving months Jun/Aug/Dec/Jan
HALVING_PROXIMITY = (0.95, 1.0, 1.0, 1.0, 1.1, 0.95, 1.1, 0.95, 1.0, 1.0, 1.1, 0.95)

NEGATIVE_RETURN_THRESHOLD = -0.001
POSITIVE_RETURN_THRESHOLD = 0.001
NEGATIVE_RETURN_MULTIPLIER = 1.1
POSITIVE_RETURN_MULTIPLIER = 0.9

HIGH_EXTREME_RATE = 0.015
LOW_EXTREME_RATE = 0.005
HIGH_EXTREME_MULTIPLIER = 1.1
LOW_EXTREME_MULTIPLIER = 0.9

ONCHAIN_HIGH_INDICATOR = 0.7
ONCHAIN_LOW_INDICATOR = 0.3
ONCHAIN_HIGH_FACTOR = 1.5
ONCHAIN_LOW_FACTOR = 0.7

FACTOR_FLOOR = 0.5
FACTOR_CEILING = 2.0


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class OnChainSignal:
    """On-chain input: per-month risk indicator in [0, 1] and the current label."""
    monthly_risk_indicator: Mapping[int, float] = field(default_factory=dict)
    risk_level: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            "monthly_risk_indicator": {int(m): float(v) for m, v in self.monthly_risk_indicator.items()},
            "risk_level": self.risk_level,
        }


@dataclass(frozen=True)
class ContextSignals:
    """Resolved global multipliers and the raw inputs they came from."""
    sentiment_value: Optional[float]
    sentiment_factor: float
    onchain_risk_level: Optional[str]
    onchain_factor: float
    price_from_top: Optional[float]
    cycle_factor: float
    missing_signals: Tuple[str, ...] = ()

    def to_dict(self) -> Dict:
        return {
            "sentiment_value": self.sentiment_value,
            "sentiment_factor": self.sentiment_factor,
            "onchain_risk_level": self.onchain_risk_level,
            "onchain_factor": self.onchain_factor,
            "price_from_top": self.price_from_top,
            "cycle_factor": self.cycle_factor,
            "missing_signals": list(self.missing_signals),
        }


def clamp_factor(value: float, lower: float = FACTOR_FLOOR, upper: float = FACTOR_CEILING) -> float:
    return min(upper, max(lower, value))


def _is_number(value) -> bool:
    try:
        return value is not None and math.isfinite(float(value))
    except (TypeError, ValueError):
        return False


# =============================================================================
# GLOBAL FACTORS
# =============================================================================

def sentiment_factor(sentiment_value: Optional[float]) -> float:
    """Map a 0-100 sentiment score to a risk multiplier (1.0 if absent)."""
    if not _is_number(sentiment_value):
        return NEUTRAL_FACTOR
    value = float(sentiment_value)
    for upper, factor in SENTIMENT_BANDS:
        if value <= upper:
            return factor
    return SENTIMENT_EXTREME_GREED_FACTOR


def onchain_level_factor(risk_level: Optional[str]) -> float:
    """Map an on-chain risk label to a multiplier (1.0 if absent or unknown)."""
    if risk_level is None:
        return NEUTRAL_FACTOR
    return ONCHAIN_RISK_LEVEL_FACTORS.get(risk_level, NEUTRAL_FACTOR)


def price_from_top(prices: pd.Series, lookback: int = CYCLE_LOOKBACK) -> Optional[float]:
    """Last price as a fraction of the max over the trailing lookback records."""
    window = pd.to_numeric(prices, errors="coerce").to_numpy(dtype=float)[-lookback:]
    window = window[np.isfinite(window)]
    if window.size == 0:
        return None
    peak = float(window.max())
    if peak <= 0:
        return None
    return float(window[-1]) / peak


def cycle_factor(position: Optional[float]) -> float:
    """Map price-from-top to a risk multiplier (1.0 if unknown)."""
    if position is None:
        return NEUTRAL_FACTOR
    if position > NEAR_TOP_THRESHOLD:
        return NEAR_TOP_FACTOR
    if position > UPTREND_THRESHOLD:
        return UPTREND_FACTOR
    if position < DEEP_DRAWDOWN_THRESHOLD:
        return DEEP_DRAWDOWN_FACTOR
    return NEUTRAL_FACTOR


def resolve_context(
    records: pd.DataFrame,
    onchain_signal: Optional[OnChainSignal] = None,
    sentiment_value: Optional[float] = None,
    cycle_lookback: int = CYCLE_LOOKBACK,
) -> ContextSignals:
    """Resolve the three global multipliers for one run."""
    missing = []

    if not _is_number(sentiment_value):
        missing.append("sentiment")
        sentiment_value = None
    else:
        sentiment_value = float(sentiment_value)

    risk_level = onchain_signal.risk_level if onchain_signal is not None else None
    if risk_level is None:
        missing.append("onchain_risk_level")
    elif risk_level not in ONCHAIN_RISK_LEVEL_FACTORS:
        logger.debug(f"Unknown on-chain risk level {risk_level!r}, using neutral factor")
    if onchain_signal is None or not onchain_signal.monthly_risk_indicator:
        missing.append("onchain_monthly_indicator")

    position = price_from_top(records["price"], cycle_lookback) if len(records) else None
    if position is None:
        missing.append("cycle_position")

    context = ContextSignals(
        sentiment_value=sentiment_value,
        sentiment_factor=sentiment_factor(sentiment_value),
        onchain_risk_level=risk_level,
        onchain_factor=onchain_level_factor(risk_level),
        price_from_top=position,
        cycle_factor=cycle_factor(position),
        missing_signals=tuple(missing),
    )

    if missing:
        logger.debug(f"Signals defaulted to neutral: {', '.join(missing)}")
    logger.debug(
        f"Context: sentiment={context.sentiment_factor:.2f} onchain={context.onchain_factor:.2f} "
        f"cycle={context.cycle_factor:.2f}"
    )
    return context


# =============================================================================
# PER-MONTH SPECIALIZATION
# =============================================================================

def _check_month(month: int) -> int:
    if not 1 <= month <= 12:
        raise ValueError(f"Month must be in 1..12, got {month}")
    return month - 1


def month_sentiment_factor(month: int, global_factor: float, mean_log_return: float) -> float:
    """Seasonal sentiment multiplier for a calendar month, clamped to [0.5, 2.0]."""
    factor = global_factor * SEASONAL_SENTIMENT[_check_month(month)]
    if mean_log_return < NEGATIVE_RETURN_THRESHOLD:
        factor *= NEGATIVE_RETURN_MULTIPLIER
    elif mean_log_return > POSITIVE_RETURN_THRESHOLD:
        factor *= POSITIVE_RETURN_MULTIPLIER
    return clamp_factor(factor)


def month_cycle_factor(month: int, global_factor: float, extreme_rate: float) -> float:
    """Cycle-phase and halving-proximity multiplier for a month, clamped to [0.5, 2.0]."""
    idx = _check_month(month)
    factor = global_factor * CYCLE_PHASE[idx] * HALVING_PROXIMITY[idx]
    if extreme_rate > HIGH_EXTREME_RATE:
        factor *= HIGH_EXTREME_MULTIPLIER
    elif extreme_rate < LOW_EXTREME_RATE:
        factor *= LOW_EXTREME_MULTIPLIER
    return clamp_factor(factor)


def month_onchain_indicator(onchain_signal: Optional[OnChainSignal], month: int) -> float:
    if onchain_signal is None:
        return NEUTRAL_ONCHAIN_INDICATOR
    value = onchain_signal.monthly_risk_indicator.get(month)
    # 0 counts as missing
    if not _is_number(value) or float(value) == 0.0:
        return NEUTRAL_ONCHAIN_INDICATOR
    return float(value)


def month_onchain_factor(indicator: float) -> float:
    """Multiplier from a month's on-chain risk indicator in [0, 1]."""
    if indicator > ONCHAIN_HIGH_INDICATOR:
        return ONCHAIN_HIGH_FACTOR
    if indicator < ONCHAIN_LOW_INDICATOR:
        return ONCHAIN_LOW_FACTOR
    return NEUTRAL_FACTOR + (indicator - NEUTRAL_ONCHAIN_INDICATOR)
