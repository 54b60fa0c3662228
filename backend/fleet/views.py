"""Views for the fleet client: JSON view-models over the remote ELD API."""

from django.apps import apps
from rest_framework import serializers as drf_serializers
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from .eld_logs import assemble, log_dates
from .exceptions import (
    AuthenticationError, NetworkError, SchemaError, ServerError, SessionExpired,
)
from .serializers import (
    CarrierSerializer, DutyStatusSerializer, ELDLogSerializer, LoginSerializer,
    TripSerializer, VehicleSerializer, validate_form,
)
from .summaries import filter_trips, summarize_trips
from .timeline import PALETTES, day_timeline, parse_day


class FleetView(APIView):
    """Base view: renders every client error inline as ``{'error': message}``."""

    @property
    def session(self):
        return apps.get_app_config('fleet').session

    @property
    def repository(self):
        return apps.get_app_config('fleet').repository

    def handle_exception(self, exc):
        if isinstance(exc, drf_serializers.ValidationError):
            return Response({'error': exc.detail}, status=status.HTTP_400_BAD_REQUEST)
        if isinstance(exc, SessionExpired):
            return Response(
                {'error': exc.message, 'redirect': '/login'},
                status=status.HTTP_401_UNAUTHORIZED,
            )
        if isinstance(exc, AuthenticationError):
            return Response({'error': exc.message}, status=status.HTTP_401_UNAUTHORIZED)
        if isinstance(exc, NetworkError):
            return Response({'error': exc.message}, status=status.HTTP_504_GATEWAY_TIMEOUT)
        if isinstance(exc, ServerError):
            code = exc.status_code if 400 <= exc.status_code < 500 else status.HTTP_502_BAD_GATEWAY
            return Response({'error': exc.message}, status=code)
        if isinstance(exc, SchemaError):
            return Response(
                {'error': exc.message, 'details': exc.errors},
                status=status.HTTP_502_BAD_GATEWAY,
            )
        return super().handle_exception(exc)

    def require_admin(self):
        if not self.session.is_admin:
            return Response(
                {'error': 'Admin access required.'},
                status=status.HTTP_403_FORBIDDEN,
            )
        return None

    @staticmethod
    def day_or_error(raw):
        try:
            return parse_day(raw), None
        except ValueError:
            return None, Response(
                {'error': f"Invalid date '{raw}'. Use YYYY-MM-DD."},
                status=status.HTTP_400_BAD_REQUEST,
            )


def session_payload(session) -> dict:
    return {
        'is_authenticated': session.is_authenticated,
        'is_admin': session.is_admin,
        'user': session.user.to_dict() if session.user else None,
    }


# ── Auth ──────────────────────────────────────────────────────

class LoginView(FleetView):
    """POST /api/auth/login/  Body: { username, password }"""

    def post(self, request):
        form = validate_form(LoginSerializer, request.data)
        self.session.login(form['username'], form['password'])
        return Response(session_payload(self.session))


class RegisterView(FleetView):
    """
    POST /api/auth/register/
    Body: { username, password, email, first_name, last_name,
            license_number, carrier_name, carrier_address }
    """

    def post(self, request):
        self.session.register(request.data)
        return Response(session_payload(self.session), status=status.HTTP_201_CREATED)


class LogoutView(FleetView):
    """POST /api/auth/logout/"""

    def post(self, request):
        self.session.logout()
        return Response(session_payload(self.session))


class MeView(FleetView):
    """GET /api/auth/me/"""

    def get(self, request):
        return Response(session_payload(self.session))


# ── Dashboard & trips ─────────────────────────────────────────

class DashboardView(FleetView):
    """GET /api/dashboard/?search=&status=&vehicle="""

    def get(self, request):
        repo = self.repository
        # Both lists load side by side; a failure cancels whatever is still queued.
        with repo.scope() as scope:
            trips = scope.submit(repo.trips, repo.trips_key())
            vehicles = scope.submit(repo.vehicles)
            trips, vehicles = trips.result(), vehicles.result()

        filtered = filter_trips(
            trips,
            search=request.query_params.get('search', ''),
            status=request.query_params.get('status') or None,
            vehicle_id=request.query_params.get('vehicle') or None,
        )
        return Response({
            'summary': summarize_trips(trips),
            'trips': TripSerializer(filtered, many=True).data,
            'vehicles': VehicleSerializer(vehicles, many=True).data,
        })


class TripListView(FleetView):
    """GET /api/trips/?status=&limit=&offset=   POST /api/trips/"""

    def get(self, request):
        params = request.query_params
        try:
            limit = int(params['limit']) if params.get('limit') else None
            offset = int(params['offset']) if params.get('offset') else None
        except ValueError:
            return Response(
                {'error': 'limit and offset must be integers.'},
                status=status.HTTP_400_BAD_REQUEST,
            )
        trips = self.repository.list_trips(params.get('status') or None, limit, offset)
        return Response({'trips': TripSerializer(trips, many=True).data})

    def post(self, request):
        trip = self.repository.create_trip(request.data)
        return Response({'trip': TripSerializer(trip).data}, status=status.HTTP_201_CREATED)


class TripDetailView(FleetView):
    """GET | PATCH | DELETE /api/trips/<id>/"""

    def get(self, request, trip_id):
        trip = self.repository.get_trip(trip_id)
        statuses = self.repository.list_duty_statuses(trip_id)
        logs = self.repository.list_eld_logs(trip_id)
        return Response({
            'trip': TripSerializer(trip).data,
            'duty_statuses': DutyStatusSerializer(statuses, many=True).data,
            'eld_logs': ELDLogSerializer(logs, many=True).data,
            'log_dates': [day.isoformat() for day in log_dates(statuses)],
        })

    def patch(self, request, trip_id):
        trip = self.repository.update_trip(trip_id, request.data)
        return Response({'trip': TripSerializer(trip).data})

    def delete(self, request, trip_id):
        self.repository.delete_trip(trip_id)
        return Response(status=status.HTTP_204_NO_CONTENT)


class TripAdvanceView(FleetView):
    """POST /api/trips/<id>/advance/  PLANNED -> IN_PROGRESS -> COMPLETED"""

    def post(self, request, trip_id):
        trip = self.repository.advance_trip(trip_id)
        return Response({'trip': TripSerializer(trip).data})


class TripRouteView(FleetView):
    """POST /api/trips/<id>/route/"""

    def post(self, request, trip_id):
        route = self.repository.calculate_route(trip_id)
        return Response({
            'duty_statuses': DutyStatusSerializer(route.duty_statuses, many=True).data,
            'geometry': route.geometry,
            'total_miles': route.total_miles,
        })


# ── Duty statuses & ELD logs ──────────────────────────────────

class DutyStatusListView(FleetView):
    """
    GET  /api/trips/<id>/duty-status/?date=YYYY-MM-DD
    POST /api/trips/<id>/duty-status/
    """

    def get(self, request, trip_id):
        statuses = self.repository.list_duty_statuses(trip_id)
        payload = {
            'duty_statuses': DutyStatusSerializer(statuses, many=True).data,
            'dates': [day.isoformat() for day in log_dates(statuses)],
        }
        raw_day = request.query_params.get('date')
        if raw_day:
            day, error = self.day_or_error(raw_day)
            if error:
                return error
            payload['timeline'] = day_timeline(statuses, day, PALETTES['trip'])
        return Response(payload)

    def post(self, request, trip_id):
        record = self.repository.create_duty_status(trip_id, request.data)
        return Response(
            {'duty_status': DutyStatusSerializer(record).data},
            status=status.HTTP_201_CREATED,
        )


class ELDLogListView(FleetView):
    """GET /api/trips/<id>/eld-logs/"""

    def get(self, request, trip_id):
        logs = self.repository.list_eld_logs(trip_id)
        return Response({'eld_logs': ELDLogSerializer(logs, many=True).data})


class ELDLogGenerateView(FleetView):
    """POST /api/trips/<id>/eld-logs/generate/  Body: { date }"""

    def post(self, request, trip_id):
        day, error = self.day_or_error(request.data.get('date', ''))
        if error:
            return error
        logs = self.repository.generate_eld_log(trip_id, day)
        trip = self.repository.get_trip(trip_id)
        statuses = self.repository.list_duty_statuses(trip_id)
        view = assemble(trip, statuses, day, logs=logs)
        return Response({
            'eld_logs': ELDLogSerializer(logs, many=True).data,
            'log': view.to_dict(),
        }, status=status.HTTP_201_CREATED)


class ELDLogDetailView(FleetView):
    """
    GET /api/trips/<id>/eld-logs/<date>/?palette=log|trip&total_miles=
    The 24-hour graph for one date. ``total_miles`` only applies to a
    preview (no generated log for that date yet).
    """

    def get(self, request, trip_id, day):
        day, error = self.day_or_error(day)
        if error:
            return error

        palette = PALETTES.get(request.query_params.get('palette', 'log'))
        if palette is None:
            return Response(
                {'error': f"Unknown palette. Use one of: {', '.join(PALETTES)}."},
                status=status.HTTP_400_BAD_REQUEST,
            )

        total_miles = None
        raw_miles = request.query_params.get('total_miles')
        if raw_miles:
            try:
                total_miles = float(raw_miles)
            except ValueError:
                return Response(
                    {'error': 'total_miles must be a number.'},
                    status=status.HTTP_400_BAD_REQUEST,
                )

        trip = self.repository.get_trip(trip_id)
        statuses = self.repository.list_duty_statuses(trip_id)
        logs = self.repository.list_eld_logs(trip_id)
        view = assemble(trip, statuses, day, logs=logs, total_miles=total_miles)
        return Response({
            'trip': TripSerializer(trip).data,
            'log': view.to_dict(palette),
        })


# ── Fleet (admin) ─────────────────────────────────────────────

class VehicleListView(FleetView):
    """GET | POST /api/vehicles/"""

    def get(self, request):
        vehicles = self.repository.list_vehicles()
        return Response({'vehicles': VehicleSerializer(vehicles, many=True).data})

    def post(self, request):
        denied = self.require_admin()
        if denied:
            return denied
        vehicle = self.repository.create_vehicle(request.data)
        return Response({'vehicle': VehicleSerializer(vehicle).data}, status=status.HTTP_201_CREATED)


class CarrierListView(FleetView):
    """GET | POST /api/carriers/"""

    def get(self, request):
        carriers = self.repository.list_carriers()
        return Response({'carriers': CarrierSerializer(carriers, many=True).data})

    def post(self, request):
        denied = self.require_admin()
        if denied:
            return denied
        carrier = self.repository.create_carrier(request.data)
        return Response({'carrier': CarrierSerializer(carrier).data}, status=status.HTTP_201_CREATED)
