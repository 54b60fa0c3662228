"""
Entity caches over the API client.

One ``EntityCache`` per collection. Reads are served while fresh; concurrent
misses for one key share a single request; mutations in ``FleetRepository``
invalidate the collections they change before returning.
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor

from django.conf import settings
from rest_framework import serializers

from .models import TripStatus
from .serializers import (
    CarrierCreateSerializer, DutyStatusCreateSerializer, GenerateLogSerializer,
    TripCreateSerializer, TripUpdateSerializer, VehicleCreateSerializer, validate_form,
)

logger = logging.getLogger(__name__)

ALL = object()


class EntityCache:
    def __init__(self, name: str, loader, stale_after: float, clock=time.monotonic):
        self.name = name
        self.stale_after = stale_after
        self._loader = loader
        self._clock = clock
        self._lock = threading.Lock()
        self._entries = {}      # key -> (loaded_at, value)
        self._inflight = {}     # key -> Future
        self._generations = {}  # key -> invalidations while a load is running
        self._running = {}      # key -> loads in progress
        self._epoch = 0         # bumped when every key is invalidated

    def _generation(self, key):
        return self._epoch, self._generations.get(key, 0)

    def _fresh(self, key):
        entry = self._entries.get(key)
        if entry is None:
            return False, None
        loaded_at, value = entry
        if self._clock() - loaded_at >= self.stale_after:
            return False, None
        return True, value

    def peek(self, key=None):
        """The cached value if fresh, else None. Never hits the network."""
        with self._lock:
            return self._fresh(key)[1]

    def fetch(self, key=None):
        with self._lock:
            hit, value = self._fresh(key)
            if hit:
                return value
            future = self._inflight.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._inflight[key] = future
                generation = self._generation(key)
                self._running[key] = self._running.get(key, 0) + 1

        if not owner:
            return future.result()

        logger.debug('%s cache miss for %r', self.name, key)
        try:
            value = self._loader(key)
        except BaseException as exc:
            with self._lock:
                if self._inflight.get(key) is future:
                    del self._inflight[key]
                self._finish_load(key)
            future.set_exception(exc)
            raise

        with self._lock:
            # A load that raced with an invalidation must not repopulate the entry.
            if self._generation(key) == generation:
                self._entries[key] = (self._clock(), value)
            if self._inflight.get(key) is future:
                del self._inflight[key]
            self._finish_load(key)
        future.set_result(value)
        return value

    def _finish_load(self, key) -> None:
        # Counters only matter to loads still running.
        remaining = self._running[key] - 1
        if remaining:
            self._running[key] = remaining
        else:
            del self._running[key]
            self._generations.pop(key, None)

    def invalidate(self, key=ALL) -> None:
        with self._lock:
            if key is ALL:
                self._entries.clear()
                self._inflight.clear()
                self._generations.clear()
                self._epoch += 1
            else:
                self._entries.pop(key, None)
                self._inflight.pop(key, None)
                if key in self._running:
                    self._generations[key] = self._generations.get(key, 0) + 1

    def clear(self) -> None:
        self.invalidate(ALL)


class FetchScope:
    """
    Background fetches on behalf of one view. Once the view closes the scope,
    results that arrive later are dropped instead of delivered.
    """

    def __init__(self, executor):
        self._executor = executor
        self._futures = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def submit(self, cache: EntityCache, key=None, on_result=None, on_error=None):
        """
        Fetch ``key`` in the background. Without callbacks the caller reads
        the returned future itself.
        """
        future = self._executor.submit(cache.fetch, key)
        self._futures.append(future)
        if on_result is None:
            return future

        def deliver(done):
            if self._closed or done.cancelled():
                return
            exc = done.exception()
            if exc is None:
                on_result(done.result())
            elif on_error is not None:
                on_error(exc)
            else:
                logger.warning('%s fetch for %r failed: %s', cache.name, key, exc)

        future.add_done_callback(deliver)
        return future

    def close(self) -> None:
        self._closed = True
        for future in self._futures:
            future.cancel()
        self._futures = []

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


class FleetRepository:
    def __init__(self, client, stale_seconds: dict = None, clock=time.monotonic):
        stale = dict(settings.ELD_CACHE_STALE_SECONDS)
        stale.update(stale_seconds or {})
        self.client = client
        self._executor = None
        self._executor_lock = threading.Lock()

        self.trips = EntityCache('trips', self._load_trips, stale['trips'], clock)
        self.trip = EntityCache('trip', client.get_trip, stale['trip'], clock)
        self.vehicles = EntityCache('vehicles', lambda _key: client.list_vehicles(), stale['vehicles'], clock)
        self.carriers = EntityCache('carriers', lambda _key: client.list_carriers(), stale['carriers'], clock)
        self.duty_statuses = EntityCache(
            'duty_statuses', client.list_duty_statuses, stale['duty_statuses'], clock,
        )
        self.eld_logs = EntityCache('eld_logs', client.list_eld_logs, stale['eld_logs'], clock)

    @property
    def caches(self):
        return (self.trips, self.trip, self.vehicles, self.carriers, self.duty_statuses, self.eld_logs)

    def clear(self) -> None:
        for cache in self.caches:
            cache.clear()

    def scope(self) -> FetchScope:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix='fleet-fetch')
        return FetchScope(self._executor)

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False)

    # ── Trips ─────────────────────────────────────────────────

    @staticmethod
    def trips_key(status=None, limit=None, offset=None) -> tuple:
        params = {'status': status, 'limit': limit, 'offset': offset}
        return tuple(sorted((k, v) for k, v in params.items() if v is not None))

    def _load_trips(self, key):
        return self.client.list_trips(dict(key or ()))

    def list_trips(self, status=None, limit=None, offset=None):
        return self.trips.fetch(self.trips_key(status, limit, offset))

    def get_trip(self, trip_id: int):
        return self.trip.fetch(trip_id)

    def create_trip(self, data: dict):
        payload = validate_form(TripCreateSerializer, data)
        trip = self.client.create_trip(payload)
        self.trips.invalidate()
        return trip

    def update_trip(self, trip_id: int, data: dict):
        payload = validate_form(TripUpdateSerializer, data)
        trip = self.client.update_trip(trip_id, payload)
        self.trips.invalidate()
        self.trip.invalidate(trip_id)
        return trip

    def advance_trip(self, trip_id: int):
        """Move a trip to its next status: PLANNED -> IN_PROGRESS -> COMPLETED."""
        self.trip.invalidate(trip_id)
        trip = self.get_trip(trip_id)
        next_status = TripStatus.next_status(trip.status)
        if next_status is None:
            raise serializers.ValidationError(
                {'status': f'Trip {trip_id} is {trip.status} and cannot advance.'}
            )
        return self.update_trip(trip_id, {'status': next_status})

    def delete_trip(self, trip_id: int) -> None:
        self.client.delete_trip(trip_id)
        self.trips.invalidate()
        self.trip.invalidate(trip_id)
        self.duty_statuses.invalidate(trip_id)
        self.eld_logs.invalidate(trip_id)

    def calculate_route(self, trip_id: int):
        route = self.client.calculate_route(trip_id)
        self.trip.invalidate(trip_id)
        self.duty_statuses.invalidate(trip_id)
        return route

    # ── Duty statuses ─────────────────────────────────────────

    def list_duty_statuses(self, trip_id: int):
        return self.duty_statuses.fetch(trip_id)

    def create_duty_status(self, trip_id: int, data: dict):
        payload = validate_form(DutyStatusCreateSerializer, data)
        status = self.client.create_duty_status(trip_id, payload)
        self.duty_statuses.invalidate(status.trip)
        if status.trip != trip_id:
            self.duty_statuses.invalidate(trip_id)
        return status

    # ── ELD logs ──────────────────────────────────────────────

    def list_eld_logs(self, trip_id: int):
        return self.eld_logs.fetch(trip_id)

    def generate_eld_log(self, trip_id: int, day):
        payload = validate_form(GenerateLogSerializer, {'date': day})
        logs = self.client.generate_eld_log(trip_id, payload['date'])
        self.eld_logs.invalidate(trip_id)
        return logs

    # ── Fleet ─────────────────────────────────────────────────

    def list_vehicles(self):
        return self.vehicles.fetch()

    def create_vehicle(self, data: dict):
        vehicle = self.client.create_vehicle(validate_form(VehicleCreateSerializer, data))
        self.vehicles.invalidate()
        return vehicle

    def list_carriers(self):
        return self.carriers.fetch()

    def create_carrier(self, data: dict):
        carrier = self.client.create_carrier(validate_form(CarrierCreateSerializer, data))
        self.carriers.invalidate()
        return carrier
