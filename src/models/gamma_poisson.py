"""
===============================================================================
GAMMA-POISSON CRASH RATE MODEL
===============================================================================

Extreme days in a calendar month are modelled as a Poisson process with
unknown daily rate λ and a conjugate Gamma prior whose shape is scaled by
the month's enhanced seasonal factor S_m:

    prior       λ ~ Gamma(a0 · S_m, rate = b0)
    data        N extreme days observed in T days
    posterior   λ | N, T ~ Gamma(alpha = a0 · S_m + N, rate = beta = b0 + T)

Probability of at least one extreme day within τ days:

    POSTERIOR MEAN (default)
        P = 1 - exp(-(alpha / beta) · τ)

    PREDICTIVE (exact, Negative-Binomial survival)
        P = 1 - (beta / (beta + τ)) ** alpha

The posterior-mean form plugs E[λ] into the Poisson survival function; the
predictive form integrates over λ and is always a little lower. Both are
increasing in τ.

CREDIBLE INTERVAL:
    λ_lo, λ_hi = Gamma(alpha, scale = 1/beta).ppf(0.025, 0.975)
    risk_lo, risk_hi = 1 - exp(-λ · τ)
    if risk_hi < P:  risk_hi = min(0.95, 1.2 · P)
    both bounds clamped to [0, 1]

Quantile inversion of a degenerate posterior (alpha ≤ 0, non-finite
parameters) raises NumericDomainError; callers decide how to degrade.
===============================================================================
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Tuple

import numpy as np
from scipy.stats import gamma as gamma_dist

from decision.crash_risk_config import (
    CREDIBLE_LEVEL,
    PRIOR_RATE,
    PRIOR_SHAPE,
    UPPER_WIDEN_CAP,
    UPPER_WIDEN_FACTOR,
    RiskMethod,
)


class NumericDomainError(ArithmeticError):
    """Gamma quantile inversion is undefined for the given posterior."""


@dataclass(frozen=True)
class GammaPosteriorParams:
    """Gamma(alpha, rate=beta) posterior over the daily extreme-event rate."""
    alpha: float
    beta: float

    @classmethod
    def from_counts(
        cls,
        seasonal_factor: float,
        extreme_events: int,
        total_days: int,
        prior_shape: float = PRIOR_SHAPE,
        prior_rate: float = PRIOR_RATE,
    ) -> "GammaPosteriorParams":
        return cls(
            alpha=prior_shape * seasonal_factor + extreme_events,
            beta=prior_rate + total_days,
        )

    @property
    def mean_rate(self) -> float:
        return self.alpha / self.beta

    def to_dict(self) -> Dict[str, float]:
        return {"alpha": self.alpha, "beta": self.beta}


@dataclass(frozen=True)
class CredibleInterval:
    lower: float
    upper: float
    lower_rate: float = 0.0
    upper_rate: float = 0.0
    widened: bool = False


def probability_of_event(rate: float, timeframe_days: float) -> float:
    """P(at least one event in τ days) for a Poisson process with the given rate."""
    return 1.0 - math.exp(-rate * timeframe_days)


def posterior_mean_risk(params: GammaPosteriorParams, timeframe_days: float) -> float:
    return probability_of_event(params.mean_rate, timeframe_days)


def predictive_risk(params: GammaPosteriorParams, timeframe_days: float) -> float:
    """Exact posterior predictive P(N_τ ≥ 1), the Negative-Binomial survival at 0."""
    return 1.0 - (params.beta / (params.beta + timeframe_days)) ** params.alpha


def point_risk(
    params: GammaPosteriorParams,
    timeframe_days: float,
    method: RiskMethod = RiskMethod.POSTERIOR_MEAN,
) -> float:
    if method is RiskMethod.PREDICTIVE:
        risk = predictive_risk(params, timeframe_days)
    else:
        risk = posterior_mean_risk(params, timeframe_days)
    return float(np.clip(risk, 0.0, 1.0))


def gamma_rate_quantiles(
    params: GammaPosteriorParams,
    lower_q: float,
    upper_q: float,
) -> Tuple[float, float]:
    """Posterior rate quantiles; raises NumericDomainError on a degenerate posterior."""
    alpha, beta = params.alpha, params.beta
    if not (math.isfinite(alpha) and math.isfinite(beta)) or alpha <= 0 or beta <= 0:
        raise NumericDomainError(f"Gamma quantiles undefined for alpha={alpha}, beta={beta}")

    lo, hi = gamma_dist.ppf([lower_q, upper_q], a=alpha, scale=1.0 / beta)
    if not (np.isfinite(lo) and np.isfinite(hi)):
        raise NumericDomainError(
            f"Gamma quantile inversion failed for alpha={alpha}, beta={beta}: ({lo}, {hi})"
        )
    return float(lo), float(hi)


def credible_interval(
    params: GammaPosteriorParams,
    timeframe_days: float,
    reference_risk: float,
    credible_level: float = CREDIBLE_LEVEL,
    widen_factor: float = UPPER_WIDEN_FACTOR,
    widen_cap: float = UPPER_WIDEN_CAP,
) -> CredibleInterval:
    """
    Credible interval on crash risk from posterior rate quantiles.

    Args:
        params: Posterior parameters
        timeframe_days: Horizon τ
        reference_risk: Point risk the upper bound must not fall below
        credible_level: Central mass of the interval (0.95 → 2.5%/97.5%)
        widen_factor: Multiplier on the point risk when widening the upper bound
        widen_cap: Ceiling applied to a widened upper bound

    Raises:
        NumericDomainError: quantile inversion is undefined
    """
    tail = (1.0 - credible_level) / 2.0
    lower_rate, upper_rate = gamma_rate_quantiles(params, tail, 1.0 - tail)

    lower = probability_of_event(lower_rate, timeframe_days)
    upper = probability_of_event(upper_rate, timeframe_days)

    widened = False
    if upper < reference_risk:
        upper = min(widen_cap, reference_risk * widen_factor)
        widened = True

    return CredibleInterval(
        lower=float(np.clip(lower, 0.0, 1.0)),
        upper=float(np.clip(upper, 0.0, 1.0)),
        lower_rate=lower_rate,
        upper_rate=upper_rate,
        widened=widened,
    )
