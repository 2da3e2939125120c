"""
===============================================================================
CRASH RISK CONFIGURATION — Seasonal Bayesian Crash-Risk Settings
===============================================================================

Centralizes the constants of the seasonal crash-risk engine:

    - Gamma prior hyperparameters (a0, b0)
    - Extreme-event percentile used per halving epoch
    - Volatility windows and cycle lookback
    - Credible interval level and upper-bound widening rule
    - Point-estimate method and empty-epoch policy

Two behaviours are explicit options rather than hard-coded choices:

    RiskMethod.POSTERIOR_MEAN   1 - exp(-(alpha/beta)·τ)        (default)
    RiskMethod.PREDICTIVE       1 - (beta/(beta+τ))^alpha       (exact NB survival)

    EmptyEpochPolicy.SKIP       epoch without finite returns flags nothing (default)
    EmptyEpochPolicy.RAISE      epoch without finite returns raises InputContractError

Environment overrides (read by CrashRiskConfig.from_env):
    CRASH_RISK_METHOD              posterior_mean | predictive
    CRASH_RISK_EMPTY_EPOCH_POLICY  skip | raise
===============================================================================
"""

import os
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Tuple


class RiskMethod(Enum):
    """How the point risk is derived from the Gamma posterior."""
    POSTERIOR_MEAN = "posterior_mean"
    PREDICTIVE = "predictive"


class EmptyEpochPolicy(Enum):
    """What to do with an epoch that has no finite log returns."""
    SKIP = "skip"
    RAISE = "raise"


# =============================================================================
# BAYESIAN PRIOR
# =============================================================================

PRIOR_SHAPE = 1.0   # a0: baseline prior shape
PRIOR_RATE = 1.0    # b0: baseline prior rate

# =============================================================================
# EXTREME EVENT DETECTION
# =============================================================================

EXTREME_PERCENTILE = 0.01

# =============================================================================
# VOLATILITY / CYCLE WINDOWS (records, i.e. calendar days)
# =============================================================================

SHORT_VOL_WINDOW = 30
MEDIUM_VOL_WINDOW = 90
CYCLE_LOOKBACK = 365

# =============================================================================
# CREDIBLE INTERVAL
# =============================================================================

CREDIBLE_LEVEL = 0.95
UPPER_WIDEN_FACTOR = 1.2
UPPER_WIDEN_CAP = 0.95

# Forecast horizons computed by the bulk entry point
DEFAULT_TIMEFRAMES: Tuple[int, ...] = (1, 7, 14, 30, 90)

MONTH_NAMES: Dict[int, str] = {
    1: "January", 2: "February", 3: "March", 4: "April",
    5: "May", 6: "June", 7: "July", 8: "August",
    9: "September", 10: "October", 11: "November", 12: "December",
}


@dataclass(frozen=True)
class CrashRiskConfig:
    """Immutable engine settings; safe to share across worker processes."""
    prior_shape: float = PRIOR_SHAPE
    prior_rate: float = PRIOR_RATE
    extreme_percentile: float = EXTREME_PERCENTILE
    short_vol_window: int = SHORT_VOL_WINDOW
    medium_vol_window: int = MEDIUM_VOL_WINDOW
    cycle_lookback: int = CYCLE_LOOKBACK
    credible_level: float = CREDIBLE_LEVEL
    upper_widen_factor: float = UPPER_WIDEN_FACTOR
    upper_widen_cap: float = UPPER_WIDEN_CAP
    risk_method: RiskMethod = RiskMethod.POSTERIOR_MEAN
    empty_epoch_policy: EmptyEpochPolicy = EmptyEpochPolicy.SKIP

    def __post_init__(self):
        if self.prior_shape <= 0 or self.prior_rate <= 0:
            raise ValueError(
                f"Prior hyperparameters must be positive: a0={self.prior_shape}, b0={self.prior_rate}"
            )
        if not 0.0 < self.extreme_percentile < 1.0:
            raise ValueError(f"extreme_percentile must be in (0, 1), got {self.extreme_percentile}")
        if not 0.0 < self.credible_level < 1.0:
            raise ValueError(f"credible_level must be in (0, 1), got {self.credible_level}")
        if min(self.short_vol_window, self.medium_vol_window, self.cycle_lookback) < 1:
            raise ValueError("Volatility and cycle windows must be at least one record")

    @property
    def lower_quantile(self) -> float:
        return (1.0 - self.credible_level) / 2.0

    @property
    def upper_quantile(self) -> float:
        return 1.0 - self.lower_quantile

    def with_overrides(self, **kwargs) -> "CrashRiskConfig":
        return replace(self, **kwargs)

    @classmethod
    def from_env(cls) -> "CrashRiskConfig":
        """Build a config, honouring CRASH_RISK_* environment overrides."""
        method = os.environ.get("CRASH_RISK_METHOD", RiskMethod.POSTERIOR_MEAN.value)
        policy = os.environ.get("CRASH_RISK_EMPTY_EPOCH_POLICY", EmptyEpochPolicy.SKIP.value)
        return cls(
            risk_method=RiskMethod(method.strip().lower()),
            empty_epoch_policy=EmptyEpochPolicy(policy.strip().lower()),
        )


DEFAULT_CRASH_RISK_CONFIG = CrashRiskConfig()
