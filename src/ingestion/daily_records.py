"""
Daily record preparation for the seasonal crash-risk engine.

Turns a raw BTC price history into the chronological record frame the
engine consumes:

  - date           calendar day (normalized, tz-naive)
  - price          USD close, finite and > 0
  - log_return     ln(p_t / p_{t-1}); the first row is defined as 0
  - halving_epoch  index of the latest halving on or before the date

Halving epochs keep crash thresholds comparable across Bitcoin's changing
volatility regimes:

  epoch 0  2009-01-03  genesis block
  epoch 1  2012-11-28  first halving
  epoch 2  2016-07-09  second halving
  epoch 3  2020-05-11  third halving
  epoch 4  2024-04-20  fourth halving

Records may also be handed around as frozen DailyRecord dataclasses;
records_to_frame / frame_to_records convert between the two shapes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date as date_type, datetime
from typing import Iterable, List, Sequence, Union

import numpy as np
import pandas as pd

HALVING_DATES = (
    pd.Timestamp("2009-01-03"),
    pd.Timestamp("2012-11-28"),
    pd.Timestamp("2016-07-09"),
    pd.Timestamp("2020-05-11"),
    pd.Timestamp("2024-04-20"),
)

RECORD_COLUMNS = ["date", "price", "log_return", "halving_epoch"]


@dataclass(frozen=True)
class DailyRecord:
    """One day of price history. is_extreme is only set by the epoch segmenter."""
    date: pd.Timestamp
    price: float
    log_return: float
    halving_epoch: int
    is_extreme: bool = False


def get_halving_epoch(day: Union[str, date_type, datetime, pd.Timestamp]) -> int:
    """Return the halving epoch for a date (dates before genesis map to 0)."""
    ts = pd.Timestamp(day)
    if ts.tzinfo is not None:
        ts = ts.tz_localize(None)
    for epoch in range(len(HALVING_DATES) - 1, -1, -1):
        if ts >= HALVING_DATES[epoch]:
            return epoch
    return 0


def assign_halving_epochs(dates: pd.Series) -> pd.Series:
    """Vectorized get_halving_epoch over a datetime Series."""
    boundaries = np.array([d.value for d in HALVING_DATES], dtype=np.int64)
    values = pd.to_datetime(dates).values.astype("datetime64[ns]").astype(np.int64)
    epochs = np.searchsorted(boundaries, values, side="right") - 1
    return pd.Series(np.clip(epochs, 0, None), index=dates.index, dtype=int)


def _normalize_dates(dates: pd.Series) -> pd.Series:
    parsed = pd.to_datetime(dates)
    if getattr(parsed.dt, "tz", None) is not None:
        parsed = parsed.dt.tz_localize(None)
    return parsed.dt.normalize()


def build_daily_records(prices: Union[pd.Series, pd.DataFrame]) -> pd.DataFrame:
    """
    Build the engine's record frame from a price history.

    Parameters
    ----------
    prices : pd.Series or pd.DataFrame
        Either a date-indexed price Series, or a DataFrame with 'date' and
        'price' columns.

    Returns
    -------
    pd.DataFrame
        Columns RECORD_COLUMNS, sorted chronologically, with a fresh
        RangeIndex. Rows with missing, non-finite or non-positive prices
        are dropped before log returns are computed.
    """
    if isinstance(prices, pd.Series):
        frame = pd.DataFrame({"date": prices.index, "price": prices.values})
    else:
        missing = {"date", "price"} - set(prices.columns)
        if missing:
            raise ValueError(f"Price frame is missing columns: {sorted(missing)}")
        frame = prices[["date", "price"]].copy()

    frame["date"] = _normalize_dates(frame["date"])
    frame["price"] = pd.to_numeric(frame["price"], errors="coerce").astype(float)
    frame = frame[np.isfinite(frame["price"]) & (frame["price"] > 0)]
    frame = frame.sort_values("date", kind="mergesort").reset_index(drop=True)

    log_returns = np.log(frame["price"] / frame["price"].shift(1))
    if len(log_returns) > 0:
        log_returns.iloc[0] = 0.0
    frame["log_return"] = log_returns.astype(float)
    frame["halving_epoch"] = assign_halving_epochs(frame["date"])
    return frame[RECORD_COLUMNS]


def records_to_frame(records: Union[pd.DataFrame, Iterable[DailyRecord]]) -> pd.DataFrame:
    """
    Coerce engine input to a record frame.

    DataFrames are validated and copied (never modified in place); DailyRecord
    sequences are expanded column-wise. Any pre-existing is_extreme column is
    dropped since the segmenter owns that flag.
    """
    if isinstance(records, pd.DataFrame):
        missing = set(RECORD_COLUMNS) - set(records.columns)
        if missing:
            raise ValueError(f"Record frame is missing columns: {sorted(missing)}")
        frame = records[RECORD_COLUMNS].copy()
    else:
        rows = list(records)
        frame = pd.DataFrame(
            {
                "date": [r.date for r in rows],
                "price": [r.price for r in rows],
                "log_return": [r.log_return for r in rows],
                "halving_epoch": [r.halving_epoch for r in rows],
            },
            columns=RECORD_COLUMNS,
        )

    frame["date"] = pd.to_datetime(frame["date"])
    frame["price"] = pd.to_numeric(frame["price"], errors="coerce").astype(float)
    frame["log_return"] = pd.to_numeric(frame["log_return"], errors="coerce").astype(float)
    frame["halving_epoch"] = frame["halving_epoch"].astype(int)
    return frame.reset_index(drop=True)


def frame_to_records(frame: pd.DataFrame) -> List[DailyRecord]:
    """Materialize DailyRecord objects from a (possibly flagged) record frame."""
    flags: Sequence[bool]
    if "is_extreme" in frame.columns:
        flags = frame["is_extreme"].astype(bool).tolist()
    else:
        flags = [False] * len(frame)
    return [
        DailyRecord(
            date=pd.Timestamp(row.date),
            price=float(row.price),
            log_return=float(row.log_return),
            halving_epoch=int(row.halving_epoch),
            is_extreme=bool(flag),
        )
        for row, flag in zip(frame.itertuples(index=False), flags)
    ]
