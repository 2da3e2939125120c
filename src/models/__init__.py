"""
===============================================================================
MODELS — Conjugate Crash-Rate Models
===============================================================================

This package contains the distributional model behind the crash-risk engine:

    - gamma_poisson.py: Gamma-Poisson posterior over the daily extreme-event
      rate, point risk (posterior mean or exact predictive) and credible
      intervals from Gamma quantiles

USAGE:
    from models import GammaPosteriorParams, point_risk, credible_interval

    params = GammaPosteriorParams.from_counts(seasonal_factor=1.0, extreme_events=1, total_days=30)
    risk = point_risk(params, timeframe_days=30)
"""

from models.gamma_poisson import (
    CredibleInterval,
    GammaPosteriorParams,
    NumericDomainError,
    credible_interval,
    gamma_rate_quantiles,
    point_risk,
    posterior_mean_risk,
    predictive_risk,
    probability_of_event,
)

__all__ = [
    'CredibleInterval',
    'GammaPosteriorParams',
    'NumericDomainError',
    'credible_interval',
    'gamma_rate_quantiles',
    'point_risk',
    'posterior_mean_risk',
    'predictive_risk',
    'probability_of_event',
]
