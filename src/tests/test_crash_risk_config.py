#!/usr/bin/env python3
"""
Test crash-risk engine configuration and environment overrides.
"""
import os
import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from decision.crash_risk_config import (
    DEFAULT_CRASH_RISK_CONFIG,
    CrashRiskConfig,
    EmptyEpochPolicy,
    RiskMethod,
)


class TestCrashRiskConfig:

    def test_defaults(self):
        config = DEFAULT_CRASH_RISK_CONFIG
        assert config.prior_shape == 1.0
        assert config.prior_rate == 1.0
        assert config.extreme_percentile == 0.01
        assert config.risk_method is RiskMethod.POSTERIOR_MEAN
        assert config.empty_epoch_policy is EmptyEpochPolicy.SKIP
        assert config.lower_quantile == pytest.approx(0.025)
        assert config.upper_quantile == pytest.approx(0.975)

    @pytest.mark.parametrize("kwargs", [
        {"prior_shape": 0.0},
        {"prior_rate": -1.0},
        {"extreme_percentile": 0.0},
        {"extreme_percentile": 1.0},
        {"credible_level": 1.5},
        {"short_vol_window": 0},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            CrashRiskConfig(**kwargs)

    def test_with_overrides(self):
        config = DEFAULT_CRASH_RISK_CONFIG.with_overrides(risk_method=RiskMethod.PREDICTIVE)
        assert config.risk_method is RiskMethod.PREDICTIVE
        assert DEFAULT_CRASH_RISK_CONFIG.risk_method is RiskMethod.POSTERIOR_MEAN

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("CRASH_RISK_METHOD", " Predictive ")
        monkeypatch.setenv("CRASH_RISK_EMPTY_EPOCH_POLICY", "raise")
        config = CrashRiskConfig.from_env()
        assert config.risk_method is RiskMethod.PREDICTIVE
        assert config.empty_epoch_policy is EmptyEpochPolicy.RAISE

    def test_from_env_defaults(self, monkeypatch):
        monkeypatch.delenv("CRASH_RISK_METHOD", raising=False)
        monkeypatch.delenv("CRASH_RISK_EMPTY_EPOCH_POLICY", raising=False)
        assert CrashRiskConfig.from_env() == DEFAULT_CRASH_RISK_CONFIG

    def test_from_env_rejects_unknown(self, monkeypatch):
        monkeypatch.setenv("CRASH_RISK_METHOD", "median")
        with pytest.raises(ValueError):
            CrashRiskConfig.from_env()
