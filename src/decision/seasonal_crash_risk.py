#!/usr/bin/env python3
"""
===============================================================================
SEASONAL CRASH RISK — Per-Month Bayesian Crash Probability
===============================================================================

Estimates, for each calendar month, the probability of at least one extreme
daily BTC move within a forecast horizon τ, with a 95% credible interval.

PIPELINE:

    daily records
        │
        ▼
    segment_epochs            1st-percentile crash threshold per halving epoch
        │
        ├──► analyze_volatility      30d / 90d / full-history realized vol
        └──► resolve_context         sentiment, on-chain, cycle multipliers
                │
                ▼
    compose_seasonal_factors  S_m = base · vol_adj · onchain · sentiment · cycle
        │
        ▼
    Gamma-Poisson posterior   alpha = a0·S_m + N, beta = b0 + T
        │
        ▼
    risk_by_month + components (explanation breakdown per month)

Everything up to the seasonal factor set is independent of τ and computed
once per dataset (prepare_seasonal_inputs). Horizons are then cheap O(12)
maps over months, so estimate_risk_bulk reuses the same immutable inputs
for every horizon.

FAILURE ISOLATION:
    - Quantile failure in one month → that month's interval is {0, 0}, its
      point risk is kept
    - Any other failure in one month → that month reports zero risk and a
      zeroed breakdown; the other eleven months are unaffected
    - Months without data → zero risk, zeroed breakdown

No state is kept between calls: identical inputs give identical results.
===============================================================================
"""
from __future__ import annotations

import logging
import multiprocessing
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from calibration.epoch_thresholds import EpochSegmentation, EpochThreshold, segment_epochs
from calibration.realized_volatility import VolatilityProfile, analyze_volatility
from decision.contextual_factors import ContextSignals, OnChainSignal, resolve_context
from decision.crash_risk_config import (
    DEFAULT_CRASH_RISK_CONFIG,
    DEFAULT_TIMEFRAMES,
    CrashRiskConfig,
    RiskMethod,
)
from decision.seasonal_factors import MonthlyStatistics, SeasonalFactorSet, compose_seasonal_factors
from ingestion.daily_records import DailyRecord, records_to_frame
from models.gamma_poisson import (
    GammaPosteriorParams,
    NumericDomainError,
    credible_interval,
    point_risk,
)

logger = logging.getLogger(__name__)

MONTHS = tuple(range(1, 13))

RecordsInput = Union[pd.DataFrame, Sequence[DailyRecord]]


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class RiskEstimate:
    """Crash probability for one month and its credible interval."""
    month: int
    risk: float
    lower: float
    upper: float

    @classmethod
    def zero(cls, month: int) -> "RiskEstimate":
        return cls(month=month, risk=0.0, lower=0.0, upper=0.0)

    def to_dict(self) -> Dict[str, float]:
        return {"risk": self.risk, "lower": self.lower, "upper": self.upper}


@dataclass(frozen=True)
class ComponentBreakdown:
    """Factor decomposition behind one month's estimate, for explanation layers."""
    month: int
    base_seasonal_factor: float = 1.0
    volatility_adjustment: float = 1.0
    onchain_factor: float = 1.0
    sentiment_factor: float = 1.0
    cycle_factor: float = 1.0
    enhanced_seasonal_factor: float = 1.0
    extreme_events: int = 0
    total_days: int = 0
    lower: float = 0.0
    upper: float = 0.0
    alpha: Optional[float] = None
    beta: Optional[float] = None
    interval_degraded: bool = False

    @classmethod
    def zeroed(cls, month: int) -> "ComponentBreakdown":
        return cls(month=month)

    def to_dict(self) -> Dict:
        return {
            "base_seasonal_factor": f"{self.base_seasonal_factor:.2f}",
            "volatility_adjustment": f"{self.volatility_adjustment:.2f}",
            "onchain_factor": f"{self.onchain_factor:.2f}",
            "sentiment_factor": f"{self.sentiment_factor:.2f}",
            "cycle_factor": f"{self.cycle_factor:.2f}",
            "enhanced_seasonal_factor": f"{self.enhanced_seasonal_factor:.2f}",
            "extreme_events": self.extreme_events,
            "total_days": self.total_days,
            "credible_interval": {
                "lower": f"{self.lower * 100:.1f}%",
                "upper": f"{self.upper * 100:.1f}%",
            },
        }


@dataclass(frozen=True)
class SeasonalModelInputs:
    """Horizon-independent, derived-once inputs for a dataset."""
    segmentation: EpochSegmentation
    volatility: VolatilityProfile
    context: ContextSignals
    factors: SeasonalFactorSet


@dataclass(frozen=True)
class SeasonalRiskResult:
    """Complete per-month crash risk result for one forecast horizon."""
    timeframe_days: int
    method: RiskMethod
    risk_by_month: Dict[int, RiskEstimate]
    components: Dict[int, ComponentBreakdown]
    monthly_statistics: Dict[int, MonthlyStatistics]
    volatility: VolatilityProfile
    context: ContextSignals
    epoch_thresholds: Dict[int, EpochThreshold] = field(default_factory=dict)
    overall_frequency: float = 0.0

    def to_dict(self) -> Dict:
        return {
            "timeframe_days": self.timeframe_days,
            "method": self.method.value,
            "risk_by_month": {m: est.to_dict() for m, est in self.risk_by_month.items()},
            "components": {m: comp.to_dict() for m, comp in self.components.items()},
            "monthly_statistics": {m: s.to_dict() for m, s in self.monthly_statistics.items()},
            "volatility": self.volatility.to_dict(),
            "context": self.context.to_dict(),
            "epoch_thresholds": {e: t.to_dict() for e, t in self.epoch_thresholds.items()},
            "overall_frequency": self.overall_frequency,
        }


# =============================================================================
# VALIDATION
# =============================================================================

def _validate_timeframe(timeframe_days) -> int:
    if isinstance(timeframe_days, bool) or not isinstance(timeframe_days, (int, np.integer)):
        raise ValueError(f"timeframe_days must be a positive integer, got {timeframe_days!r}")
    if timeframe_days <= 0:
        raise ValueError(f"timeframe_days must be a positive integer, got {timeframe_days}")
    return int(timeframe_days)


# =============================================================================
# PIPELINE
# =============================================================================

def prepare_seasonal_inputs(
    records: RecordsInput,
    onchain_signal: Optional[OnChainSignal] = None,
    sentiment_signal: Optional[float] = None,
    config: CrashRiskConfig = DEFAULT_CRASH_RISK_CONFIG,
) -> SeasonalModelInputs:
    """
    Run every horizon-independent stage of the pipeline.

    Raises:
        InputContractError: an epoch has no finite log returns and the
            config's empty_epoch_policy is RAISE
        ValueError: the records are missing required columns
    """
    frame = records_to_frame(records)
    segmentation = segment_epochs(frame, config.extreme_percentile, config.empty_epoch_policy)
    volatility = analyze_volatility(segmentation.records, config.short_vol_window, config.medium_vol_window)
    context = resolve_context(segmentation.records, onchain_signal, sentiment_signal, config.cycle_lookback)
    factors = compose_seasonal_factors(segmentation.records, volatility, context, onchain_signal)
    return SeasonalModelInputs(
        segmentation=segmentation,
        volatility=volatility,
        context=context,
        factors=factors,
    )


def estimate_month(
    stats: MonthlyStatistics,
    timeframe_days: int,
    config: CrashRiskConfig = DEFAULT_CRASH_RISK_CONFIG,
) -> Tuple[RiskEstimate, ComponentBreakdown]:
    """Posterior risk and credible interval for one month with data."""
    params = GammaPosteriorParams.from_counts(
        stats.enhanced_seasonal_factor,
        stats.extreme_events,
        stats.total_days,
        prior_shape=config.prior_shape,
        prior_rate=config.prior_rate,
    )
    risk = point_risk(params, timeframe_days, config.risk_method)

    degraded = False
    try:
        interval = credible_interval(
            params,
            timeframe_days,
            reference_risk=risk,
            credible_level=config.credible_level,
            widen_factor=config.upper_widen_factor,
            widen_cap=config.upper_widen_cap,
        )
        lower, upper = interval.lower, interval.upper
    except NumericDomainError as e:
        logger.warning(f"Month {stats.month}: credible interval unavailable ({e}), using [0, 0]")
        lower, upper = 0.0, 0.0
        degraded = True

    estimate = RiskEstimate(month=stats.month, risk=risk, lower=lower, upper=upper)
    breakdown = ComponentBreakdown(
        month=stats.month,
        base_seasonal_factor=stats.base_seasonal_factor,
        volatility_adjustment=stats.volatility_adjustment,
        onchain_factor=stats.onchain_factor,
        sentiment_factor=stats.sentiment_factor,
        cycle_factor=stats.cycle_factor,
        enhanced_seasonal_factor=stats.enhanced_seasonal_factor,
        extreme_events=stats.extreme_events,
        total_days=stats.total_days,
        lower=lower,
        upper=upper,
        alpha=params.alpha,
        beta=params.beta,
        interval_degraded=degraded,
    )
    return estimate, breakdown


def assemble_risk(
    inputs: SeasonalModelInputs,
    timeframe_days: int,
    config: CrashRiskConfig = DEFAULT_CRASH_RISK_CONFIG,
) -> SeasonalRiskResult:
    """Map the prepared factor set to a 12-month result for one horizon."""
    timeframe_days = _validate_timeframe(timeframe_days)

    risk_by_month: Dict[int, RiskEstimate] = {}
    components: Dict[int, ComponentBreakdown] = {}

    for month in MONTHS:
        stats = inputs.factors.get(month)
        if stats is None:
            risk_by_month[month] = RiskEstimate.zero(month)
            components[month] = ComponentBreakdown.zeroed(month)
            continue
        try:
            risk_by_month[month], components[month] = estimate_month(stats, timeframe_days, config)
        except Exception as e:
            logger.warning(f"Month {month}: risk computation failed ({e}), reporting zero risk")
            risk_by_month[month] = RiskEstimate.zero(month)
            components[month] = ComponentBreakdown.zeroed(month)

    logger.info(
        f"Seasonal crash risk ({timeframe_days}d, {config.risk_method.value}): "
        f"{len(inputs.factors.monthly)}/12 months with data, "
        f"peak {max(est.risk for est in risk_by_month.values()):.1%}"
    )

    return SeasonalRiskResult(
        timeframe_days=timeframe_days,
        method=config.risk_method,
        risk_by_month=risk_by_month,
        components=components,
        monthly_statistics=dict(inputs.factors.monthly),
        volatility=inputs.volatility,
        context=inputs.context,
        epoch_thresholds=dict(inputs.segmentation.thresholds),
        overall_frequency=inputs.factors.overall_frequency,
    )


def estimate_risk(
    records: RecordsInput,
    timeframe_days: int,
    onchain_signal: Optional[OnChainSignal] = None,
    sentiment_signal: Optional[float] = None,
    config: Optional[CrashRiskConfig] = None,
) -> SeasonalRiskResult:
    """
    Estimate per-month crash risk for one forecast horizon.

    Args:
        records: Chronological daily records (frame or DailyRecord sequence)
        timeframe_days: Forecast horizon τ in days (positive integer)
        onchain_signal: Optional monthly on-chain indicators and risk label
        sentiment_signal: Optional 0-100 sentiment score
        config: Engine settings (defaults to DEFAULT_CRASH_RISK_CONFIG)

    Returns:
        SeasonalRiskResult with risk_by_month and components for months 1..12
    """
    config = config or DEFAULT_CRASH_RISK_CONFIG
    timeframe_days = _validate_timeframe(timeframe_days)
    inputs = prepare_seasonal_inputs(records, onchain_signal, sentiment_signal, config)
    return assemble_risk(inputs, timeframe_days, config)


def _worker_assemble_risk(
    args: Tuple[SeasonalModelInputs, int, CrashRiskConfig],
) -> Tuple[int, SeasonalRiskResult]:
    """Worker function for parallel horizon computation."""
    inputs, timeframe_days, config = args
    return timeframe_days, assemble_risk(inputs, timeframe_days, config)


def estimate_risk_bulk(
    records: RecordsInput,
    timeframes: Iterable[int] = DEFAULT_TIMEFRAMES,
    onchain_signal: Optional[OnChainSignal] = None,
    sentiment_signal: Optional[float] = None,
    config: Optional[CrashRiskConfig] = None,
    max_workers: Optional[int] = None,
) -> Dict[int, SeasonalRiskResult]:
    """
    Estimate per-month crash risk for several horizons.

    The seasonal factor set is computed once and shared read-only. Small
    workloads run sequentially; larger ones use a ProcessPoolExecutor.
    Results are identical either way.

    Args:
        records: Chronological daily records
        timeframes: Forecast horizons in days
        onchain_signal: Optional on-chain signal
        sentiment_signal: Optional 0-100 sentiment score
        config: Engine settings
        max_workers: Max parallel workers (default: CPU count - 1)

    Returns:
        Dict of timeframe_days -> SeasonalRiskResult, in the requested order
    """
    config = config or DEFAULT_CRASH_RISK_CONFIG
    horizons = list(dict.fromkeys(_validate_timeframe(t) for t in timeframes))
    if not horizons:
        return {}

    inputs = prepare_seasonal_inputs(records, onchain_signal, sentiment_signal, config)

    if max_workers is None:
        max_workers = max(1, multiprocessing.cpu_count() - 1)

    # For small workloads, skip parallelism overhead
    if len(horizons) <= 3 or max_workers <= 1:
        return {t: assemble_risk(inputs, t, config) for t in horizons}

    results: Dict[int, SeasonalRiskResult] = {}
    try:
        with ProcessPoolExecutor(max_workers=max_workers) as executor:
            futures = [
                executor.submit(_worker_assemble_risk, (inputs, t, config))
                for t in horizons
            ]
            for future in as_completed(futures):
                timeframe_days, result = future.result()
                results[timeframe_days] = result
    except Exception as e:
        # Fallback to sequential if the pool cannot be used
        logger.warning(f"Parallel horizon computation failed ({e}), running sequentially")
        results = {t: assemble_risk(inputs, t, config) for t in horizons}

    return {t: results[t] for t in horizons}
