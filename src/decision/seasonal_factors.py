"""
===============================================================================
SEASONAL FACTORS — Enhanced Seasonal Prior per Calendar Month
===============================================================================

The enhanced seasonal factor S_m is the only channel through which history
and context reach the Bayesian prior:

    base[m]    = freq[m] / overall_freq          (1.0 for every month if
                                                   overall_freq == 0)
    vol_adj[m] = sqrt(0.5 · short_term_ratio + 0.5 · σ_month[m] / σ_hist)
    S_m        = base[m] · vol_adj[m] · onchain[m] · sentiment[m] · cycle[m]

Months are calendar months pooled across all years. A month with no records
is absent from the factor set; the aggregator reports it as zero risk.

The factor set does not depend on the forecast horizon, so it is computed
once per dataset and reused for every horizon.
===============================================================================
"""
from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from typing import Dict, Optional

import numpy as np
import pandas as pd

from calibration.realized_volatility import VolatilityProfile, realized_volatility, volatility_ratio
from decision.contextual_factors import (
    ContextSignals,
    OnChainSignal,
    month_cycle_factor,
    month_onchain_factor,
    month_onchain_indicator,
    month_sentiment_factor,
)

logger = logging.getLogger(__name__)

SHORT_TERM_VOL_WEIGHT = 0.5
MONTH_VOL_WEIGHT = 0.5


@dataclass(frozen=True)
class MonthlyStatistics:
    """Historical statistics and composed factors for one calendar month."""
    month: int
    total_days: int
    extreme_events: int
    frequency: float
    base_seasonal_factor: float
    monthly_volatility: float
    volatility_ratio: float
    volatility_adjustment: float
    onchain_risk: float
    onchain_factor: float
    sentiment_factor: float
    cycle_factor: float
    enhanced_seasonal_factor: float
    mean_log_return: float = 0.0

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class SeasonalFactorSet:
    """Horizon-independent inputs to the posterior, keyed by month."""
    monthly: Dict[int, MonthlyStatistics]
    total_days: int
    total_extreme_events: int
    overall_frequency: float

    def get(self, month: int) -> Optional[MonthlyStatistics]:
        return self.monthly.get(month)


def base_seasonal_factor(monthly_frequency: float, overall_frequency: float) -> float:
    if overall_frequency > 0:
        return monthly_frequency / overall_frequency
    return 1.0


def volatility_adjustment(short_term_ratio: float, month_ratio: float) -> float:
    blended = SHORT_TERM_VOL_WEIGHT * short_term_ratio + MONTH_VOL_WEIGHT * month_ratio
    return math.sqrt(max(blended, 0.0))


def _finite_mean(values: np.ndarray) -> float:
    values = values[np.isfinite(values)]
    if values.size == 0:
        return 0.0
    return float(values.mean())


def compose_seasonal_factors(
    records: pd.DataFrame,
    volatility: VolatilityProfile,
    context: ContextSignals,
    onchain_signal: Optional[OnChainSignal] = None,
) -> SeasonalFactorSet:
    """
    Build MonthlyStatistics for every calendar month present in the records.

    Args:
        records: Frame flagged by segment_epochs (needs 'is_extreme')
        volatility: Trailing volatility profile of the same records
        context: Resolved global multipliers
        onchain_signal: Optional monthly on-chain risk indicators

    Returns:
        SeasonalFactorSet
    """
    total_days = int(len(records))
    total_events = int(records["is_extreme"].sum()) if total_days else 0
    overall_freq = total_events / total_days if total_days else 0.0

    logger.info(
        f"Overall extreme event frequency: {overall_freq:.2%} "
        f"({total_events} events in {total_days} days)"
    )

    monthly: Dict[int, MonthlyStatistics] = {}
    if total_days == 0:
        return SeasonalFactorSet(monthly, 0, 0, 0.0)

    months = pd.to_datetime(records["date"]).dt.month
    for month, group in records.groupby(months, sort=True):
        month = int(month)
        n_days = int(len(group))
        if n_days == 0:
            continue

        n_events = int(group["is_extreme"].sum())
        frequency = n_events / n_days
        returns = group["log_return"].to_numpy(dtype=float)

        month_vol = realized_volatility(returns)
        month_vol_ratio = volatility_ratio(month_vol, volatility.historical)
        vol_adj = volatility_adjustment(volatility.short_term_ratio, month_vol_ratio)

        mean_return = _finite_mean(returns)
        onchain_risk = month_onchain_indicator(onchain_signal, month)
        onchain = month_onchain_factor(onchain_risk)
        sentiment = month_sentiment_factor(month, context.sentiment_factor, mean_return)
        cycle = month_cycle_factor(month, context.cycle_factor, frequency)

        base = base_seasonal_factor(frequency, overall_freq)
        enhanced = base * vol_adj * onchain * sentiment * cycle

        monthly[month] = MonthlyStatistics(
            month=month,
            total_days=n_days,
            extreme_events=n_events,
            frequency=frequency,
            base_seasonal_factor=base,
            monthly_volatility=month_vol,
            volatility_ratio=month_vol_ratio,
            volatility_adjustment=vol_adj,
            onchain_risk=onchain_risk,
            onchain_factor=onchain,
            sentiment_factor=sentiment,
            cycle_factor=cycle,
            enhanced_seasonal_factor=enhanced,
            mean_log_return=mean_return,
        )
        logger.debug(
            f"Month {month:2d}: N={n_events} T={n_days} base={base:.3f} vol={vol_adj:.3f} "
            f"onchain={onchain:.2f} sentiment={sentiment:.2f} cycle={cycle:.2f} S={enhanced:.3f}"
        )

    return SeasonalFactorSet(
        monthly=monthly,
        total_days=total_days,
        total_extreme_events=total_events,
        overall_frequency=overall_freq,
    )
