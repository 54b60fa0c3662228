"""Dashboard figures over a list of trips."""

from .models import TripStatus


def summarize_trips(trips) -> dict:
    trips = list(trips)
    counts = {status: 0 for status in TripStatus.CHOICES}
    for trip in trips:
        if trip.status in counts:
            counts[trip.status] += 1

    average_cycle = (
        sum(trip.current_cycle_hours for trip in trips) / len(trips)
        if trips
        else 0.0
    )
    return {
        'total': len(trips),
        'planned': counts[TripStatus.PLANNED],
        'in_progress': counts[TripStatus.IN_PROGRESS],
        'completed': counts[TripStatus.COMPLETED],
        'average_cycle_hours': round(average_cycle, 2),
    }


def filter_trips(trips, search: str = '', status: str = None, vehicle_id: int = None) -> list:
    """
    Search matches pickup/dropoff names and the vehicle number, case-insensitively.
    ``status``/``vehicle_id`` of None (or 'ALL') match every trip.
    """
    needle = (search or '').strip().lower()
    if status == 'ALL':
        status = None
    if vehicle_id == 'ALL':
        vehicle_id = None

    result = []
    for trip in trips:
        if needle:
            haystack = (
                trip.pickup_location_name or '',
                trip.dropoff_location_name or '',
                trip.vehicle.vehicle_number if trip.vehicle else '',
            )
            if not any(needle in text.lower() for text in haystack):
                continue
        if status and trip.status != status:
            continue
        if vehicle_id is not None and (trip.vehicle is None or trip.vehicle.id != int(vehicle_id)):
            continue
        result.append(trip)
    return result
