"""Calendar arithmetic for report schedules."""

from datetime import datetime
from typing import Union

from dateutil.relativedelta import relativedelta

from src.reporting.database import ReportFrequency

_INTERVALS = {
    ReportFrequency.DAILY: relativedelta(days=1),
    ReportFrequency.WEEKLY: relativedelta(days=7),
    ReportFrequency.MONTHLY: relativedelta(months=1),
}


def compute_next_run(frequency: Union[ReportFrequency, str], now: datetime) -> datetime:
    """
    Next run time: one calendar unit of ``frequency`` after ``now``.

    Always counted from ``now``, not from the previous next_run_at, so a late
    run shifts the schedule. Months clamp to the last day (Jan 31 -> Feb 28/29).
    Aware datetimes keep wall-clock time across DST changes.
    """
    try:
        freq = ReportFrequency(frequency)
    except ValueError:
        raise ValueError(f"Unknown report frequency: {frequency!r}")
    return now + _INTERVALS[freq]
