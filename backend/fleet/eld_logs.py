"""
ELD log assembly.

A log view is one trip's duty statuses for one calendar date, with the miles
the service reported for that date. Miles are never made up: without a
server log (or a value supplied by the caller) they stay unknown.
"""

from dataclasses import dataclass
from datetime import date, tzinfo
from typing import Optional, Tuple

from .models import DutyStatus
from .timeline import (
    LOG_PALETTE, LEGEND, build_timeline, log_date, log_timezone, parse_day, render_grid,
    segment_to_dict, select_for_date, status_totals,
)


@dataclass(frozen=True)
class ELDLogView:
    trip_id: int
    date: date
    total_miles: Optional[float]
    duty_statuses: Tuple[DutyStatus, ...]
    log_id: Optional[int] = None
    tz: Optional[tzinfo] = None     # zone the records were selected in

    @property
    def is_preview(self) -> bool:
        """True until the service has generated a log for this date."""
        return self.log_id is None

    def timeline(self, palette: dict = None, tz=None):
        return build_timeline(self.duty_statuses, self.date, palette or LOG_PALETTE, tz or self.tz)

    def to_dict(self, palette: dict = None) -> dict:
        segments = self.timeline(palette)
        return {
            'log_id': self.log_id,
            'trip': self.trip_id,
            'date': self.date.isoformat(),
            'total_miles': self.total_miles,
            'is_preview': self.is_preview,
            'duty_statuses': [record.to_dict() for record in self.duty_statuses],
            'segments': [segment_to_dict(seg) for seg in segments],
            'grid': render_grid(segments),
            'totals': status_totals(segments),
            'legend': list(LEGEND),
        }


def find_log(logs, day):
    day = parse_day(day)
    return next((log for log in logs or () if log.date == day), None)


def assemble(trip, duty_statuses, day, logs=(), total_miles: float = None, tz=None) -> ELDLogView:
    """
    Build the log view for ``day``. ``total_miles`` is only used when the
    service has no log for that date yet (a preview).
    """
    tz = tz or log_timezone()
    day = parse_day(day)
    trip_id = getattr(trip, 'id', trip)
    log = find_log(logs, day)

    miles = total_miles
    if log is not None and log.total_miles is not None:
        miles = log.total_miles

    return ELDLogView(
        trip_id=trip_id,
        date=day,
        total_miles=miles,
        duty_statuses=tuple(select_for_date(duty_statuses, day, tz)),
        log_id=log.id if log is not None else None,
        tz=tz,
    )


def log_dates(duty_statuses, tz=None) -> list:
    """Distinct calendar dates that have at least one duty status, ascending."""
    tz = tz or log_timezone()
    return sorted({log_date(record.start_time, tz) for record in duty_statuses})
