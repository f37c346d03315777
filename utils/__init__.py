"""Utility modules for cross-cutting concerns."""

from utils.timezone import (
    now_utc,
    now_wallclock,
    to_utc,
    parse_iso,
    parse_wallclock,
    format_wallclock,
    combine_wallclock,
    minutes_between,
    format_ymd,
)
from utils.busy import BusyGuard, OperationInProgressError
