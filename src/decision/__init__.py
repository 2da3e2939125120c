"""
Decision layer of the seasonal crash-risk engine.

- crash_risk_config: constants, CrashRiskConfig, RiskMethod, EmptyEpochPolicy
- contextual_factors: sentiment / on-chain / cycle multipliers per month
- seasonal_factors: enhanced seasonal factor S_m per calendar month
- seasonal_crash_risk: estimate_risk, estimate_risk_bulk
- risk_report: rich table rendering of a result
"""
