#!/usr/bin/env python3
"""
===============================================================================
REALIZED VOLATILITY — Trailing-Window Volatility Ratios
===============================================================================

Close-to-close realized volatility of daily log returns over three trailing
windows:

    σ_short   last 30 records
    σ_medium  last 90 records
    σ_hist    all records

and the regime ratios that feed the seasonal volatility adjustment:

    short_term_ratio  = σ_short  / σ_hist
    medium_term_ratio = σ_medium / σ_hist

IMPLEMENTATION NOTES:

- Population standard deviation (ddof=0); values are daily, not annualized
- Non-finite returns are filtered from each window independently
- An empty window has σ = 0
- If σ_hist is (numerically) zero both ratios are reported as 1.0, i.e.
  "no regime shift", rather than propagating inf/NaN into the prior
===============================================================================
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict

import numpy as np
import pandas as pd

from decision.crash_risk_config import MEDIUM_VOL_WINDOW, SHORT_VOL_WINDOW

logger = logging.getLogger(__name__)

# Historical volatility below this is treated as zero
MIN_VOLATILITY = 1e-12


@dataclass(frozen=True)
class VolatilityProfile:
    """Trailing realized volatilities and their ratios to the full history."""
    short_term: float
    medium_term: float
    historical: float
    short_term_ratio: float
    medium_term_ratio: float
    short_window: int = SHORT_VOL_WINDOW
    medium_window: int = MEDIUM_VOL_WINDOW

    def to_dict(self) -> Dict:
        """Serialize to dictionary."""
        return {
            "short_term": self.short_term,
            "medium_term": self.medium_term,
            "historical": self.historical,
            "short_term_ratio": self.short_term_ratio,
            "medium_term_ratio": self.medium_term_ratio,
            "short_window": self.short_window,
            "medium_window": self.medium_window,
        }


def realized_volatility(log_returns) -> float:
    """Population standard deviation of the finite values; 0 for an empty set."""
    values = np.asarray(log_returns, dtype=float)
    values = values[np.isfinite(values)]
    if values.size == 0:
        return 0.0
    return float(np.std(values))


def volatility_ratio(volatility: float, historical: float) -> float:
    """Ratio to historical volatility, 1.0 when the history is flat."""
    if historical < MIN_VOLATILITY:
        return 1.0
    return volatility / historical


def analyze_volatility(
    records: pd.DataFrame,
    short_window: int = SHORT_VOL_WINDOW,
    medium_window: int = MEDIUM_VOL_WINDOW,
) -> VolatilityProfile:
    """
    Compute short/medium/historical volatility of a chronological record frame.

    Args:
        records: Frame with a 'log_return' column in chronological order
        short_window: Trailing records for the short-term estimate
        medium_window: Trailing records for the medium-term estimate

    Returns:
        VolatilityProfile
    """
    returns = records["log_return"].to_numpy(dtype=float)

    short_vol = realized_volatility(returns[-short_window:])
    medium_vol = realized_volatility(returns[-medium_window:])
    hist_vol = realized_volatility(returns)

    profile = VolatilityProfile(
        short_term=short_vol,
        medium_term=medium_vol,
        historical=hist_vol,
        short_term_ratio=volatility_ratio(short_vol, hist_vol),
        medium_term_ratio=volatility_ratio(medium_vol, hist_vol),
        short_window=short_window,
        medium_window=medium_window,
    )

    logger.debug(
        f"Volatility: {short_window}d={short_vol:.6f} {medium_window}d={medium_vol:.6f} "
        f"hist={hist_vol:.6f} short_ratio={profile.short_term_ratio:.3f} "
        f"medium_ratio={profile.medium_term_ratio:.3f}"
    )
    return profile
