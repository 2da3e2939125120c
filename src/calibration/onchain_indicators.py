"""
On-chain risk indicators for the seasonal crash-risk prior.

Converts a daily frame of raw network metrics into the OnChainSignal the
engine consumes: a risk indicator in [0, 1] for each calendar month and a
label for current conditions.

Input columns (all optional except date and price):

    mvrv                market value / realized value
    nvt                 network value / transactions
    active_supply_1d    supply moved in the last day
    active_supply_1yr   supply moved in the last year
    supply_top_10pct    share of supply held by the top 10% of addresses

Derived metrics:

    mvrv_z_score / nvt_z_score   vs trailing 90-day mean and σ (day excluded)
    supply_shock_ratio           active_supply_1d / active_supply_1yr
    whale_dominance_change       day-over-day change of supply_top_10pct
    price_change_30d             p_t / p_{t-30} - 1
    cycle_position               MVRV min-max position over the last 730 days

Monthly indicator = weighted mean of the components available for that month,
each mapped to [0, 1]:

    MVRV            (avg - 1) / 2.5       0.20
    NVT             (avg - 30) / 35       0.15
    MVRV z-score    (avg + 1) / 3         0.15
    supply shock    avg · 5               0.10
    whale change    (avg + 0.01) · 50     0.10
    price momentum  (avg + 0.2) / 0.7     0.15
    cycle position  avg                   0.15
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from decision.contextual_factors import NEUTRAL_ONCHAIN_INDICATOR, OnChainSignal

logger = logging.getLogger(__name__)

ZSCORE_WINDOW = 90
MOMENTUM_WINDOW = 30
CYCLE_WINDOW = 730
CYCLE_MIN_ROWS = 365
CYCLE_MIN_MVRV = 180
MIN_ROWS_FOR_INDICATORS = 90

METRIC_COLUMNS = ("mvrv", "nvt", "active_supply_1d", "active_supply_1yr", "supply_top_10pct")

# (column, weight, transform to [0, 1] before clamping)
MONTHLY_COMPONENTS = (
    ("mvrv", 0.20, lambda avg: (avg - 1.0) / 2.5),
    ("nvt", 0.15, lambda avg: (avg - 30.0) / 35.0),
    ("mvrv_z_score", 0.15, lambda avg: (avg + 1.0) / 3.0),
    ("supply_shock_ratio", 0.10, lambda avg: avg * 5.0),
    ("whale_dominance_change", 0.10, lambda avg: (avg + 0.01) * 50.0),
    ("price_change_30d", 0.15, lambda avg: (avg + 0.2) / 0.7),
    ("cycle_position", 0.15, lambda avg: avg),
)

# Lower bounds of each label, checked from the top
RISK_LEVEL_BANDS = (
    (0.8, "Extreme"),
    (0.65, "High"),
    (0.45, "Moderate"),
    (0.3, "Low"),
)
LOWEST_RISK_LEVEL = "Very Low"


def _clip01(value: float) -> float:
    return float(min(1.0, max(0.0, value)))


def _trailing_zscore(series: pd.Series, window: int = ZSCORE_WINDOW) -> pd.Series:
    # population σ of the preceding window, the day itself excluded
    prior = series.shift(1).rolling(window, min_periods=1)
    mean = prior.mean()
    std = prior.std(ddof=0)
    z = (series - mean) / std.where(std > 0)
    # defined from the first full window only
    z.iloc[:window] = np.nan
    return z


def derive_onchain_metrics(metrics: pd.DataFrame) -> pd.DataFrame:
    """
    Add derived on-chain metrics to a copy of the raw metrics frame.

    Args:
        metrics: Frame with 'date', 'price' and any of METRIC_COLUMNS

    Returns:
        Chronologically sorted copy with the derived columns added
        (NaN where the inputs are unavailable)
    """
    missing = {"date", "price"} - set(metrics.columns)
    if missing:
        raise ValueError(f"On-chain frame is missing columns: {sorted(missing)}")

    frame = metrics.copy()
    frame["date"] = pd.to_datetime(frame["date"])
    frame = frame.sort_values("date", kind="mergesort").reset_index(drop=True)
    for column in ("price",) + METRIC_COLUMNS:
        if column in frame.columns:
            frame[column] = pd.to_numeric(frame[column], errors="coerce")
        else:
            frame[column] = np.nan

    frame["mvrv_z_score"] = _trailing_zscore(frame["mvrv"])
    frame["nvt_z_score"] = _trailing_zscore(frame["nvt"])

    frame["supply_shock_ratio"] = frame["active_supply_1d"] / frame["active_supply_1yr"].where(
        frame["active_supply_1yr"] > 0
    )
    frame["whale_dominance_change"] = frame["supply_top_10pct"].diff()
    frame["price_change_30d"] = frame["price"] / frame["price"].shift(MOMENTUM_WINDOW) - 1.0

    frame["cycle_position"] = np.nan
    if len(frame) >= CYCLE_MIN_ROWS:
        recent = frame.iloc[-CYCLE_WINDOW:]
        mvrv = recent["mvrv"].dropna()
        if len(recent) > CYCLE_MIN_ROWS and len(mvrv) > CYCLE_MIN_MVRV:
            low, high = float(mvrv.min()), float(mvrv.max())
            if high > low:
                frame.loc[recent.index, "cycle_position"] = (recent["mvrv"] - low) / (high - low)

    return frame


def monthly_risk_indicators(enhanced: pd.DataFrame) -> Dict[int, float]:
    """
    Weighted on-chain risk indicator per calendar month.

    Returns an empty dict when fewer than 90 rows are available; months
    without rows or without any usable component get the neutral 0.5.
    """
    if len(enhanced) < MIN_ROWS_FOR_INDICATORS:
        logger.warning(
            f"Insufficient on-chain data for risk indicators: {len(enhanced)} rows "
            f"(need >={MIN_ROWS_FOR_INDICATORS})"
        )
        return {}

    months = pd.to_datetime(enhanced["date"]).dt.month
    indicators: Dict[int, float] = {}

    for month in range(1, 13):
        month_rows = enhanced[months == month]
        if month_rows.empty:
            indicators[month] = NEUTRAL_ONCHAIN_INDICATOR
            continue

        parts: List[Tuple[float, float]] = []
        for column, weight, transform in MONTHLY_COMPONENTS:
            values = month_rows[column].to_numpy(dtype=float)
            values = values[np.isfinite(values)]
            if values.size == 0:
                continue
            parts.append((_clip01(transform(float(values.mean()))), weight))

        if not parts:
            indicators[month] = NEUTRAL_ONCHAIN_INDICATOR
            continue
        total_weight = sum(w for _, w in parts)
        indicators[month] = sum(r * w for r, w in parts) / total_weight

    return indicators


def current_risk_level(enhanced: pd.DataFrame) -> Optional[str]:
    """Risk label for the latest row from its z-scores, cycle position and supply shock."""
    if enhanced.empty:
        return None
    latest = enhanced.iloc[-1]

    scores = []
    for column, transform in (
        ("mvrv_z_score", lambda v: (v + 1.0) / 3.0),
        ("nvt_z_score", lambda v: (v + 1.0) / 3.0),
        ("cycle_position", lambda v: v),
        ("supply_shock_ratio", lambda v: v * 5.0),
    ):
        value = latest.get(column)
        if value is not None and np.isfinite(value):
            scores.append(_clip01(transform(float(value))))

    avg = float(np.mean(scores)) if scores else 0.5
    for lower, label in RISK_LEVEL_BANDS:
        if avg >= lower:
            return label
    return LOWEST_RISK_LEVEL


def build_onchain_signal(metrics: pd.DataFrame) -> OnChainSignal:
    """Derive the engine's OnChainSignal from a raw on-chain metrics frame."""
    enhanced = derive_onchain_metrics(metrics)
    indicators = monthly_risk_indicators(enhanced)
    level = current_risk_level(enhanced)
    logger.info(
        f"On-chain signal: risk level {level}, "
        f"{len(indicators)} monthly indicators from {len(enhanced)} rows"
    )
    return OnChainSignal(monthly_risk_indicator=indicators, risk_level=level)
