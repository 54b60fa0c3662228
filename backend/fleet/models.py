"""
Records returned by the remote ELD API.

Nothing here is persisted locally; these are the parsed shapes handed from the
API client to the caches and views.
"""

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Optional, Tuple


class TripStatus:
    PLANNED = 'PLANNED'
    IN_PROGRESS = 'IN_PROGRESS'
    COMPLETED = 'COMPLETED'

    CHOICES = (PLANNED, IN_PROGRESS, COMPLETED)

    @classmethod
    def next_status(cls, status: str) -> Optional[str]:
        """PLANNED -> IN_PROGRESS -> COMPLETED; None once completed."""
        try:
            idx = cls.CHOICES.index(status)
        except ValueError:
            return None
        if idx + 1 >= len(cls.CHOICES):
            return None
        return cls.CHOICES[idx + 1]


class DutyStatusType:
    DRIVING = 'DRIVING'
    ON_DUTY_NOT_DRIVING = 'ON_DUTY_NOT_DRIVING'
    OFF_DUTY = 'OFF_DUTY'
    SLEEPER_BERTH = 'SLEEPER_BERTH'

    CHOICES = (OFF_DUTY, SLEEPER_BERTH, DRIVING, ON_DUTY_NOT_DRIVING)


@dataclass(frozen=True)
class GeoPoint:
    longitude: float
    latitude: float

    def as_pair(self) -> list:
        return [self.longitude, self.latitude]


@dataclass(frozen=True)
class User:
    id: int
    username: str
    email: str = ''
    first_name: str = ''
    last_name: str = ''
    is_admin: bool = False
    has_driver: bool = False

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip() or self.username

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class TokenPair:
    access: str
    refresh: Optional[str] = None


@dataclass(frozen=True)
class Carrier:
    id: int
    name: str
    main_office_address: str = ''


@dataclass(frozen=True)
class Vehicle:
    id: int
    vehicle_number: str
    license_plate: str = ''
    state: Optional[str] = None     # 2-letter code
    carrier: Optional[int] = None   # owning carrier id


@dataclass(frozen=True)
class Driver:
    id: int
    license_number: str = ''
    full_name: str = ''
    carrier: Optional[int] = None


@dataclass(frozen=True)
class Trip:
    id: int
    driver: Optional[Driver]
    vehicle: Optional[Vehicle]
    current_location: GeoPoint
    pickup_location: GeoPoint
    dropoff_location: GeoPoint
    current_cycle_hours: float      # hours used of the 70-hour/8-day cycle
    start_time: datetime
    status: str
    current_location_name: str = ''
    pickup_location_name: str = ''
    dropoff_location_name: str = ''
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class DutyStatus:
    """One duty status interval, half-open [start_time, end_time)."""
    id: int
    trip: int
    status: str
    start_time: datetime
    end_time: datetime
    location: Optional[GeoPoint] = None
    location_description: str = ''
    remarks: str = ''

    @property
    def duration_hours(self) -> float:
        return (self.end_time - self.start_time).total_seconds() / 3600.0

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'trip': self.trip,
            'status': self.status,
            'start_time': self.start_time.isoformat(),
            'end_time': self.end_time.isoformat(),
            'location': self.location.as_pair() if self.location else None,
            'location_description': self.location_description,
            'remarks': self.remarks,
        }


@dataclass(frozen=True)
class ELDLog:
    id: int
    trip: int
    date: date
    total_miles: Optional[float] = None     # None means unknown


@dataclass(frozen=True)
class RouteResponse:
    duty_statuses: Tuple[DutyStatus, ...] = field(default_factory=tuple)
    geometry: str = ''                      # GeoJSON
    total_miles: Optional[float] = None
