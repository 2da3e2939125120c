#!/usr/bin/env python3
"""
Test on-chain metric derivation, monthly risk indicators and risk labels.
"""
import os
import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import numpy as np
import pandas as pd
import pytest

from calibration.onchain_indicators import (
    build_onchain_signal,
    current_risk_level,
    derive_onchain_metrics,
    monthly_risk_indicators,
)


def _metrics(n=400, start="2021-01-01", **columns):
    frame = pd.DataFrame({
        "date": pd.date_range(start, periods=n, freq="D"),
        "price": np.full(n, 40_000.0),
        "mvrv": np.full(n, 3.5),
        "nvt": np.full(n, 30.0),
    })
    for name, values in columns.items():
        frame[name] = values
    return frame


class TestDeriveMetrics:

    def test_trailing_zscore_excludes_current_day(self):
        metrics = _metrics(mvrv=np.arange(400, dtype=float))
        enhanced = derive_onchain_metrics(metrics)

        assert enhanced["mvrv_z_score"].iloc[:90].isna().all()
        window = np.arange(90, dtype=float)
        expected = (90.0 - window.mean()) / window.std(ddof=0)
        assert enhanced["mvrv_z_score"].iloc[90] == pytest.approx(expected)

    def test_flat_series_has_no_zscore(self):
        enhanced = derive_onchain_metrics(_metrics())
        assert enhanced["mvrv_z_score"].isna().all()

    def test_supply_and_momentum(self):
        n = 120
        price = 100.0 * np.exp(0.01 * np.arange(n))
        metrics = _metrics(
            n=n,
            price=price,
            active_supply_1d=np.full(n, 20.0),
            active_supply_1yr=np.full(n, 100.0),
            supply_top_10pct=np.linspace(0.5, 0.6, n),
        )
        enhanced = derive_onchain_metrics(metrics)

        assert enhanced["supply_shock_ratio"].iloc[-1] == pytest.approx(0.2)
        assert np.isnan(enhanced["whale_dominance_change"].iloc[0])
        assert enhanced["whale_dominance_change"].iloc[1] == pytest.approx(0.1 / (n - 1))
        assert enhanced["price_change_30d"].iloc[:30].isna().all()
        assert enhanced["price_change_30d"].iloc[-1] == pytest.approx(np.exp(0.3) - 1.0)

    def test_cycle_position_from_mvrv_range(self):
        mvrv = np.linspace(1.0, 3.0, 400)
        enhanced = derive_onchain_metrics(_metrics(mvrv=mvrv))
        assert enhanced["cycle_position"].iloc[0] == pytest.approx(0.0)
        assert enhanced["cycle_position"].iloc[-1] == pytest.approx(1.0)

    def test_short_history_has_no_cycle_position(self):
        enhanced = derive_onchain_metrics(_metrics(n=200, mvrv=np.linspace(1.0, 3.0, 200)))
        assert enhanced["cycle_position"].isna().all()

    def test_unsorted_input_is_sorted_copy(self):
        metrics = _metrics(n=100).iloc[::-1].reset_index(drop=True)
        enhanced = derive_onchain_metrics(metrics)
        assert enhanced["date"].is_monotonic_increasing
        assert not metrics["date"].is_monotonic_increasing

    def test_missing_required_columns(self):
        with pytest.raises(ValueError, match="missing columns"):
            derive_onchain_metrics(pd.DataFrame({"date": ["2021-01-01"], "mvrv": [2.0]}))


class TestMonthlyIndicators:

    def test_flat_metrics(self):
        # mvrv 1.0 @0.20, nvt 0.0 @0.15, momentum 0.2/0.7 @0.15; the rest unavailable
        indicators = monthly_risk_indicators(derive_onchain_metrics(_metrics()))
        expected = (0.20 * 1.0 + 0.15 * 0.0 + 0.15 * (0.2 / 0.7)) / 0.5

        assert sorted(indicators) == list(range(1, 13))
        for value in indicators.values():
            assert value == pytest.approx(expected)
        assert expected == pytest.approx(0.485714, abs=1e-6)

    def test_insufficient_rows(self):
        assert monthly_risk_indicators(derive_onchain_metrics(_metrics(n=60))) == {}

    def test_months_without_rows_are_neutral(self):
        indicators = monthly_risk_indicators(derive_onchain_metrics(_metrics(n=120)))
        assert indicators[7] == 0.5
        assert indicators[1] != 0.5

    def test_bounded(self):
        rng = np.random.default_rng(3)
        n = 500
        metrics = _metrics(
            n=n,
            price=20_000 * np.exp(np.cumsum(rng.normal(0, 0.04, n))),
            mvrv=rng.uniform(0.5, 5.0, n),
            nvt=rng.uniform(10, 120, n),
            active_supply_1d=rng.uniform(1, 50, n),
            active_supply_1yr=np.full(n, 100.0),
            supply_top_10pct=rng.uniform(0.4, 0.6, n),
        )
        indicators = monthly_risk_indicators(derive_onchain_metrics(metrics))
        assert all(0.0 <= v <= 1.0 for v in indicators.values())


class TestRiskLevel:

    def test_neutral_when_nothing_available(self):
        assert current_risk_level(derive_onchain_metrics(_metrics())) == "Moderate"

    def test_supply_shock_drives_extreme(self):
        metrics = _metrics(active_supply_1d=np.full(400, 20.0), active_supply_1yr=np.full(400, 100.0))
        assert current_risk_level(derive_onchain_metrics(metrics)) == "Extreme"

    def test_quiet_supply_is_very_low(self):
        metrics = _metrics(active_supply_1d=np.full(400, 1.0), active_supply_1yr=np.full(400, 100.0))
        assert current_risk_level(derive_onchain_metrics(metrics)) == "Very Low"

    def test_empty_frame(self):
        assert current_risk_level(pd.DataFrame()) is None


class TestBuildSignal:

    def test_signal(self):
        signal = build_onchain_signal(_metrics())
        assert signal.risk_level == "Moderate"
        assert len(signal.monthly_risk_indicator) == 12
        assert signal.to_dict()["risk_level"] == "Moderate"
