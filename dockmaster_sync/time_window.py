"""
Time Window Module
Computes where an incremental run starts looking for upstream changes.
"""

from datetime import datetime, timedelta
from typing import Optional

from dockmaster_sync.utils.helpers import ensure_utc


def compute_lookback_start(
    last_success: Optional[datetime],
    now: datetime,
    lookback_minutes: int = 15
) -> datetime:
    """
    Start of the lookback window for a run.

    The window always covers at least ``lookback_minutes``. When the last
    successful sync is older than that (downtime, failed runs), the window
    widens back to it so nothing in the gap is missed.

    Args:
        last_success: Watermark from the previous successful run, if any
        now: Current time
        lookback_minutes: Minimum window length

    Returns:
        Aware UTC datetime
    """
    now = ensure_utc(now)
    floor = now - timedelta(minutes=lookback_minutes)
    last_success = ensure_utc(last_success)

    if last_success is not None and last_success < floor:
        return last_success
    return floor
