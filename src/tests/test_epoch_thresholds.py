#!/usr/bin/env python3
"""
Test halving-epoch threshold computation and extreme-event flagging.
"""
import os
import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import numpy as np
import pandas as pd
import pytest

from calibration.epoch_thresholds import (
    InputContractError,
    compute_epoch_thresholds,
    percentile_threshold,
    segment_epochs,
)
from decision.crash_risk_config import EmptyEpochPolicy


def _epoch_frame(returns, epoch=3, start="2021-01-01"):
    dates = pd.date_range(start, periods=len(returns), freq="D")
    return pd.DataFrame({
        "date": dates,
        "price": np.full(len(returns), 100.0),
        "log_return": np.asarray(returns, dtype=float),
        "halving_epoch": epoch,
    })


class TestPercentileThreshold:
    """Test the floor-index lower-tail threshold."""

    def test_floor_index(self):
        values = np.arange(300, dtype=float)
        # floor(300 * 0.01) = 3 -> fourth smallest
        assert percentile_threshold(values) == 3.0

    def test_small_sample_uses_minimum(self):
        values = np.array([0.3, -0.2, 0.1])
        assert percentile_threshold(values) == -0.2

    def test_ignores_non_finite(self):
        values = np.array([np.nan, -np.inf, 0.5, 0.2, np.inf])
        assert percentile_threshold(values) == 0.2

    def test_no_finite_values(self):
        assert percentile_threshold(np.array([np.nan, np.nan])) is None
        assert percentile_threshold(np.array([])) is None


class TestSegmentEpochs:
    """Test extreme-event flagging per halving epoch."""

    def test_strict_comparison_flags_below_threshold(self):
        frame = _epoch_frame(np.arange(300, dtype=float) / 1000.0)
        seg = segment_epochs(frame)

        # threshold is the value at index 3; 0, 1, 2 are strictly below
        assert seg.thresholds[3].threshold_log_return == pytest.approx(0.003)
        assert seg.records["is_extreme"].sum() == 3
        assert seg.records["is_extreme"].iloc[:3].all()
        assert not seg.records["is_extreme"].iloc[3]
        assert seg.thresholds[3].n_extreme == 3
        assert seg.thresholds[3].n_valid == 300

    def test_under_one_hundred_records_flags_nothing(self):
        frame = _epoch_frame(np.linspace(-0.1, 0.1, 99))
        seg = segment_epochs(frame)
        # index 0 is the minimum and nothing is strictly below it
        assert seg.total_extreme_events == 0

    def test_ties_at_threshold_not_flagged(self):
        returns = np.full(200, -0.05)
        frame = _epoch_frame(returns)
        assert segment_epochs(frame).total_extreme_events == 0

    def test_epochs_judged_independently(self):
        calm = _epoch_frame(np.arange(200, dtype=float) / 10000.0, epoch=2, start="2019-01-01")
        wild = _epoch_frame(np.arange(200, dtype=float) / 10.0 - 10.0, epoch=3, start="2021-01-01")
        seg = segment_epochs(pd.concat([calm, wild], ignore_index=True))

        assert set(seg.thresholds) == {2, 3}
        assert seg.thresholds[2].n_extreme == 2
        assert seg.thresholds[3].n_extreme == 2
        assert seg.total_extreme_events == 4

    def test_nan_return_never_extreme(self):
        returns = np.arange(300, dtype=float)
        returns[0] = np.nan
        seg = segment_epochs(_epoch_frame(returns))
        assert not seg.records["is_extreme"].iloc[0]

    def test_input_not_mutated(self):
        frame = _epoch_frame(np.arange(300, dtype=float))
        before = frame.copy()
        segment_epochs(frame)
        assert "is_extreme" not in frame.columns
        pd.testing.assert_frame_equal(frame, before)


class TestEmptyEpochPolicy:
    """Test handling of an epoch without finite log returns."""

    def _frame(self):
        good = _epoch_frame(np.arange(300, dtype=float), epoch=3, start="2021-01-01")
        empty = _epoch_frame([np.nan] * 5, epoch=4, start="2024-05-01")
        return pd.concat([good, empty], ignore_index=True)

    def test_skip(self):
        seg = segment_epochs(self._frame(), policy=EmptyEpochPolicy.SKIP)
        assert seg.skipped_epochs == (4,)
        assert 4 not in seg.thresholds
        assert not seg.records.loc[seg.records["halving_epoch"] == 4, "is_extreme"].any()

    def test_raise(self):
        with pytest.raises(InputContractError) as exc_info:
            compute_epoch_thresholds(self._frame(), policy=EmptyEpochPolicy.RAISE)
        assert exc_info.value.epoch == 4
        assert exc_info.value.n_records == 5
        assert isinstance(exc_info.value, ValueError)
