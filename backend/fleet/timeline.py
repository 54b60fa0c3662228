"""
24-hour duty status timeline.

Turns a trip's duty status records into the segments of one day's ELD graph:
each segment's offset and extent are fractions of the 24-hour axis. The
calendar date a record belongs to and its hour offsets are both taken in
``settings.ELD_LOG_TIMEZONE``.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from django.conf import settings
from django.utils import timezone

from .models import DutyStatus, DutyStatusType

HOURS_PER_DAY = 24
GRID_HEIGHT = 400

DEFAULT_COLOR = '#6B7280'

# ELD log graph: off duty in gray.
LOG_PALETTE = {
    DutyStatusType.DRIVING: '#10B981',
    DutyStatusType.ON_DUTY_NOT_DRIVING: '#3B82F6',
    DutyStatusType.OFF_DUTY: '#6B7280',
    DutyStatusType.SLEEPER_BERTH: '#F59E0B',
}

# Trip details timeline: off duty in red.
TRIP_PALETTE = dict(LOG_PALETTE, **{DutyStatusType.OFF_DUTY: '#EF4444'})

PALETTES = {
    'log': LOG_PALETTE,
    'trip': TRIP_PALETTE,
}


@dataclass(frozen=True)
class TimelineSegment:
    offset: float           # start, as a fraction of the day
    extent: float           # length, as a fraction of the day
    color: str
    label: str
    record: DutyStatus
    start_hour: float
    end_hour: float

    @property
    def duration_hours(self) -> float:
        return self.end_hour - self.start_hour


def log_timezone():
    return ZoneInfo(settings.ELD_LOG_TIMEZONE)


def parse_day(day) -> date:
    if isinstance(day, datetime):
        return day.date()
    if isinstance(day, date):
        return day
    return date.fromisoformat(str(day).strip())


def to_log_time(value: datetime, tz=None) -> datetime:
    tz = tz or log_timezone()
    if timezone.is_naive(value):
        return value.replace(tzinfo=tz)
    return value.astimezone(tz)


def log_date(value: datetime, tz=None) -> date:
    return to_log_time(value, tz).date()


def hour_of_day(value: datetime, tz=None) -> float:
    local = to_log_time(value, tz)
    return local.hour + local.minute / 60


def status_color(status, palette: dict = None) -> str:
    """Display color for a duty status. Unknown statuses get the default color."""
    palette = LOG_PALETTE if palette is None else palette
    return palette.get(status, DEFAULT_COLOR)


def status_label(status) -> str:
    """'ON_DUTY_NOT_DRIVING' -> 'On Duty Not Driving'."""
    return ' '.join(word.capitalize() for word in str(status or '').split('_') if word)


LEGEND = tuple(
    {'status': status, 'label': status_label(status), 'color': LOG_PALETTE[status]}
    for status in DutyStatusType.CHOICES
)


def select_for_date(records, day, tz=None) -> list:
    """Records starting on ``day``, sorted by start time (stable for ties)."""
    tz = tz or log_timezone()
    day = parse_day(day)
    selected = [r for r in records if log_date(r.start_time, tz) == day]
    return sorted(selected, key=lambda r: to_log_time(r.start_time, tz))


def build_timeline(records, day, palette: dict = None, tz=None) -> Tuple[TimelineSegment, ...]:
    """
    Segments for one day, in start order. Overlapping records are kept as
    they are and render on top of each other in that order. A record running
    past midnight is drawn up to 24:00.
    """
    tz = tz or log_timezone()
    day = parse_day(day)

    segments = []
    for record in select_for_date(records, day, tz):
        start = hour_of_day(record.start_time, tz)
        if log_date(record.end_time, tz) > day:
            end = float(HOURS_PER_DAY)
        else:
            end = hour_of_day(record.end_time, tz)
        end = max(end, start)

        segments.append(TimelineSegment(
            offset=start / HOURS_PER_DAY,
            extent=(end - start) / HOURS_PER_DAY,
            color=status_color(record.status, palette),
            label=status_label(record.status),
            record=record,
            start_hour=start,
            end_hour=end,
        ))
    return tuple(segments)


def render_grid(segments, height: float = GRID_HEIGHT) -> dict:
    """Pixel geometry of the ELD graph: hour rules and one block per segment."""
    hour_height = height / HOURS_PER_DAY
    return {
        'height': height,
        'hours': [
            {'label': f'{hour:02d}:00', 'top': round(hour * hour_height, 2)}
            for hour in range(HOURS_PER_DAY)
        ],
        'segments': [
            {
                'id': seg.record.id,
                'status': seg.record.status,
                'label': seg.label,
                'color': seg.color,
                'top': round(seg.offset * height, 2),
                'height': round(seg.extent * height, 2),
                'title': f'{seg.label} - {seg.record.location_description}',
            }
            for seg in segments
        ],
    }


def status_totals(segments) -> dict:
    """Hours per duty status for the day; unknown statuses are not counted."""
    totals = {status.lower(): 0.0 for status in DutyStatusType.CHOICES}
    for seg in segments:
        key = str(seg.record.status).lower()
        if key in totals:
            totals[key] += seg.duration_hours
    totals = {key: round(val, 2) for key, val in totals.items()}
    totals['total_on_duty'] = round(totals['driving'] + totals['on_duty_not_driving'], 2)
    return totals


def segment_to_dict(seg: TimelineSegment) -> dict:
    return {
        'offset': seg.offset,
        'extent': seg.extent,
        'color': seg.color,
        'label': seg.label,
        'start_hour': round(seg.start_hour, 4),
        'end_hour': round(seg.end_hour, 4),
        'record': seg.record.to_dict(),
    }


def day_timeline(records, day, palette: Optional[dict] = None, tz=None) -> dict:
    segments = build_timeline(records, day, palette, tz)
    return {
        'date': parse_day(day).isoformat(),
        'segments': [segment_to_dict(seg) for seg in segments],
        'grid': render_grid(segments),
        'totals': status_totals(segments),
    }
