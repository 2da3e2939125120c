"""
===============================================================================
CALIBRATION — Historical Statistics for the Seasonal Crash Prior
===============================================================================

This package derives the data-driven inputs of the crash-risk prior:

    - epoch_thresholds: 1st-percentile crash threshold per halving epoch
    - realized_volatility: trailing 30d / 90d / historical volatility ratios
    - onchain_indicators: monthly on-chain risk indicators and risk label
"""

from calibration.epoch_thresholds import (
    EpochSegmentation,
    EpochThreshold,
    InputContractError,
    compute_epoch_thresholds,
    percentile_threshold,
    segment_epochs,
)
from calibration.onchain_indicators import (
    build_onchain_signal,
    current_risk_level,
    derive_onchain_metrics,
    monthly_risk_indicators,
)
from calibration.realized_volatility import (
    VolatilityProfile,
    analyze_volatility,
    realized_volatility,
)

__all__ = [
    # Epoch thresholds
    'EpochSegmentation',
    'EpochThreshold',
    'InputContractError',
    'compute_epoch_thresholds',
    'percentile_threshold',
    'segment_epochs',
    # On-chain indicators
    'build_onchain_signal',
    'current_risk_level',
    'derive_onchain_metrics',
    'monthly_risk_indicators',
    # Volatility
    'VolatilityProfile',
    'analyze_volatility',
    'realized_volatility',
]
