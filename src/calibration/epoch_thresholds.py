#!/usr/bin/env python3
"""
===============================================================================
EPOCH THRESHOLDS — Halving-Epoch Extreme Event Detection
===============================================================================

An "extreme event" is a day whose log return falls strictly below the 1st
percentile of log returns within its halving epoch:

    threshold_e = sorted(finite returns in epoch e)[floor(n_e · 0.01)]
    is_extreme  = log_return < threshold_e

Thresholds are computed per epoch so that a −10% day in the 2011 regime and
a −10% day in the 2023 regime are judged against their own volatility.

An epoch with no finite log returns cannot produce a threshold. This is an
input-contract violation; EmptyEpochPolicy decides whether it raises
InputContractError or leaves that epoch's records unflagged.

The caller's frame is never modified: segment_epochs returns a flagged copy.
===============================================================================
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from decision.crash_risk_config import (
    EXTREME_PERCENTILE,
    EmptyEpochPolicy,
)

logger = logging.getLogger(__name__)


class InputContractError(ValueError):
    """A halving epoch has no finite log returns to derive a threshold from."""

    def __init__(self, epoch: int, n_records: int):
        self.epoch = epoch
        self.n_records = n_records
        super().__init__(
            f"Epoch {epoch} has no finite log returns ({n_records} records); "
            f"cannot derive an extreme-event threshold"
        )


@dataclass(frozen=True)
class EpochThreshold:
    """Crash threshold for one halving epoch."""
    epoch: int
    threshold_log_return: float
    n_valid: int          # finite log returns used
    n_extreme: int = 0    # records flagged below the threshold

    def to_dict(self) -> Dict:
        return {
            "epoch": self.epoch,
            "threshold_log_return": self.threshold_log_return,
            "n_valid": self.n_valid,
            "n_extreme": self.n_extreme,
        }


@dataclass(frozen=True)
class EpochSegmentation:
    """Flagged records plus the thresholds that flagged them."""
    records: pd.DataFrame
    thresholds: Dict[int, EpochThreshold]
    skipped_epochs: Tuple[int, ...] = ()

    @property
    def total_extreme_events(self) -> int:
        return int(self.records["is_extreme"].sum())


def percentile_threshold(log_returns: np.ndarray, percentile: float = EXTREME_PERCENTILE) -> Optional[float]:
    """
    Lower-tail threshold by index into the sorted finite returns.

    Uses floor(n · percentile) without interpolation. Returns None when there
    are no finite values.
    """
    values = np.asarray(log_returns, dtype=float)
    values = np.sort(values[np.isfinite(values)])
    if values.size == 0:
        return None
    idx = int(math.floor(values.size * percentile))
    return float(values[idx])


def compute_epoch_thresholds(
    records: pd.DataFrame,
    percentile: float = EXTREME_PERCENTILE,
    policy: EmptyEpochPolicy = EmptyEpochPolicy.SKIP,
) -> Tuple[Dict[int, EpochThreshold], List[int]]:
    """
    Compute the per-epoch crash thresholds.

    Returns:
        (thresholds keyed by epoch, list of epochs skipped for lack of data)
    """
    thresholds: Dict[int, EpochThreshold] = {}
    skipped: List[int] = []

    for epoch, group in records.groupby("halving_epoch", sort=True):
        epoch = int(epoch)
        returns = group["log_return"].to_numpy(dtype=float)
        threshold = percentile_threshold(returns, percentile)
        if threshold is None:
            if policy is EmptyEpochPolicy.RAISE:
                raise InputContractError(epoch, len(group))
            logger.warning(
                f"Epoch {epoch}: no finite log returns in {len(group)} records, "
                f"no extreme events will be flagged"
            )
            skipped.append(epoch)
            continue

        n_valid = int(np.isfinite(returns).sum())
        thresholds[epoch] = EpochThreshold(epoch=epoch, threshold_log_return=threshold, n_valid=n_valid)
        logger.debug(f"Epoch {epoch} threshold ({percentile:.0%} percentile): {threshold:.6f}")

    return thresholds, skipped


def segment_epochs(
    records: pd.DataFrame,
    percentile: float = EXTREME_PERCENTILE,
    policy: EmptyEpochPolicy = EmptyEpochPolicy.SKIP,
) -> EpochSegmentation:
    """
    Flag extreme events using epoch-specific thresholds.

    Args:
        records: Record frame with 'halving_epoch' and 'log_return' columns
        percentile: Lower-tail percentile defining an extreme day
        policy: Handling of epochs with no finite returns

    Returns:
        EpochSegmentation whose records carry a boolean 'is_extreme' column
    """
    thresholds, skipped = compute_epoch_thresholds(records, percentile, policy)

    flagged = records.copy()
    threshold_by_row = flagged["halving_epoch"].map(
        {epoch: t.threshold_log_return for epoch, t in thresholds.items()}
    ).astype(float)
    # NaN thresholds (skipped epochs) and NaN returns both compare False
    flagged["is_extreme"] = (flagged["log_return"] < threshold_by_row).fillna(False).astype(bool)

    counts = flagged.groupby("halving_epoch")["is_extreme"].sum()
    thresholds = {
        epoch: EpochThreshold(
            epoch=t.epoch,
            threshold_log_return=t.threshold_log_return,
            n_valid=t.n_valid,
            n_extreme=int(counts.get(epoch, 0)),
        )
        for epoch, t in thresholds.items()
    }

    return EpochSegmentation(records=flagged, thresholds=thresholds, skipped_epochs=tuple(skipped))
