"""
Ingestion utilities: halving epochs and daily record frames for the
seasonal crash-risk engine.
"""

from ingestion.daily_records import (
    DailyRecord,
    HALVING_DATES,
    build_daily_records,
    frame_to_records,
    get_halving_epoch,
    records_to_frame,
)

__all__ = [
    'DailyRecord',
    'HALVING_DATES',
    'build_daily_records',
    'frame_to_records',
    'get_halving_epoch',
    'records_to_frame',
]
