"""
Schemas for the remote ELD API.

Response serializers validate every payload at the client boundary and build
the dataclasses in ``fleet.models`` via ``save()``; they also render those
dataclasses back to JSON for the views. Form serializers validate user input
locally, before anything reaches the network.
"""

from datetime import timezone as dt_timezone

from rest_framework import serializers

from .exceptions import SchemaError
from .models import (
    Carrier, Driver, DutyStatus, DutyStatusType, ELDLog, GeoPoint, RouteResponse,
    TokenPair, Trip, TripStatus, User, Vehicle,
)

MAX_CYCLE_HOURS = 70


class GeoPointField(serializers.Field):
    """
    A (longitude, latitude) point. Accepts ``[lng, lat]``, ``"lng,lat"`` or a
    GeoJSON Point; always renders as ``[lng, lat]``.
    """

    default_error_messages = {
        'format': "Must be a 'lng,lat' pair (example: -77.4360,37.5407).",
        'number': "Has invalid coordinates. Use numeric 'lng,lat'.",
        'range': 'Coordinates out of range (lng -180..180, lat -90..90).',
    }

    def to_internal_value(self, data):
        if isinstance(data, dict) and data.get('type') == 'Point':
            data = data.get('coordinates')
        if isinstance(data, str):
            data = [p.strip() for p in data.split(',')]
        if not isinstance(data, (list, tuple)) or len(data) != 2:
            self.fail('format')

        try:
            lng = float(data[0])
            lat = float(data[1])
        except (TypeError, ValueError):
            self.fail('number')

        if lat < -90 or lat > 90 or lng < -180 or lng > 180:
            self.fail('range')
        return GeoPoint(longitude=lng, latitude=lat)

    def to_representation(self, value):
        return value.as_pair()


class RelatedIdField(serializers.Field):
    """A foreign key sent either as a bare id or as a nested object with ``id``."""

    default_error_messages = {
        'invalid': 'Expected an id or an object with an id.',
    }

    def to_internal_value(self, data):
        if isinstance(data, dict):
            data = data.get('id')
        if isinstance(data, bool):
            self.fail('invalid')
        try:
            return int(data)
        except (TypeError, ValueError):
            self.fail('invalid')

    def to_representation(self, value):
        return value


# ── Response schemas ──────────────────────────────────────────

class TokenPairSerializer(serializers.Serializer):
    access = serializers.CharField()
    refresh = serializers.CharField(required=False, allow_null=True, default=None)

    def create(self, validated_data):
        return TokenPair(**validated_data)


class UserInfoSerializer(serializers.Serializer):
    user_id = serializers.IntegerField(source='id')
    username = serializers.CharField()
    email = serializers.CharField(allow_blank=True, default='')
    first_name = serializers.CharField(allow_blank=True, default='')
    last_name = serializers.CharField(allow_blank=True, default='')
    is_admin = serializers.BooleanField(default=False)
    has_driver = serializers.BooleanField(default=False)

    def create(self, validated_data):
        return User(**validated_data)


class CarrierSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    name = serializers.CharField()
    main_office_address = serializers.CharField(allow_blank=True, default='')

    def create(self, validated_data):
        return Carrier(**validated_data)


class VehicleSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    vehicle_number = serializers.CharField()
    license_plate = serializers.CharField(allow_blank=True, default='')
    state = serializers.CharField(required=False, allow_null=True, allow_blank=True, default=None)
    carrier = RelatedIdField(required=False, allow_null=True, default=None)

    def create(self, validated_data):
        return Vehicle(**validated_data)


class DriverSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    license_number = serializers.CharField(allow_blank=True, default='')
    full_name = serializers.CharField(allow_blank=True, default='')
    carrier = RelatedIdField(required=False, allow_null=True, default=None)

    def create(self, validated_data):
        return Driver(**validated_data)


class TripSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    driver = DriverSerializer(allow_null=True, required=False, default=None)
    vehicle = VehicleSerializer(allow_null=True, required=False, default=None)
    current_location = GeoPointField()
    pickup_location = GeoPointField()
    dropoff_location = GeoPointField()
    current_location_name = serializers.CharField(allow_blank=True, allow_null=True, default='')
    pickup_location_name = serializers.CharField(allow_blank=True, allow_null=True, default='')
    dropoff_location_name = serializers.CharField(allow_blank=True, allow_null=True, default='')
    current_cycle_hours = serializers.FloatField()
    start_time = serializers.DateTimeField()
    status = serializers.CharField()
    created_at = serializers.DateTimeField(required=False, allow_null=True, default=None)
    updated_at = serializers.DateTimeField(required=False, allow_null=True, default=None)

    def create(self, validated_data):
        driver = validated_data.pop('driver')
        vehicle = validated_data.pop('vehicle')
        for name in ('current_location_name', 'pickup_location_name', 'dropoff_location_name'):
            validated_data[name] = validated_data[name] or ''
        return Trip(
            driver=Driver(**driver) if driver else None,
            vehicle=Vehicle(**vehicle) if vehicle else None,
            **validated_data,
        )


class DutyStatusSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    trip = RelatedIdField()
    # Free text on purpose: an unknown status still renders, with the fallback color.
    status = serializers.CharField()
    start_time = serializers.DateTimeField()
    end_time = serializers.DateTimeField()
    location = GeoPointField(required=False, allow_null=True, default=None)
    location_description = serializers.CharField(allow_blank=True, allow_null=True, default='')
    remarks = serializers.CharField(allow_blank=True, allow_null=True, default='')

    def create(self, validated_data):
        validated_data['location_description'] = validated_data['location_description'] or ''
        validated_data['remarks'] = validated_data['remarks'] or ''
        return DutyStatus(**validated_data)


class ELDLogSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    trip = RelatedIdField()
    date = serializers.DateField(required=False)
    timestamp = serializers.DateTimeField(required=False, write_only=True)
    total_miles = serializers.FloatField(required=False, allow_null=True, default=None)

    def validate(self, attrs):
        timestamp = attrs.pop('timestamp', None)
        if 'date' not in attrs:
            if timestamp is None:
                raise serializers.ValidationError({'date': 'This field is required.'})
            attrs['date'] = timestamp.astimezone(dt_timezone.utc).date()
        return attrs

    def create(self, validated_data):
        return ELDLog(**validated_data)


class RouteResponseSerializer(serializers.Serializer):
    duty_statuses = DutyStatusSerializer(many=True, default=list)
    geometry = serializers.JSONField(required=False, default='')
    total_miles = serializers.FloatField(required=False, allow_null=True, default=None)

    def create(self, validated_data):
        child = DutyStatusSerializer()
        statuses = tuple(child.create(dict(d)) for d in validated_data['duty_statuses'])
        return RouteResponse(
            duty_statuses=statuses,
            geometry=validated_data['geometry'],
            total_miles=validated_data['total_miles'],
        )


def parse_payload(serializer_class, data, many=False):
    """
    Validate an API payload and build its dataclass(es).
    Raises SchemaError instead of letting missing fields through.
    """
    serializer = serializer_class(data=data, many=many)
    if not serializer.is_valid():
        name = serializer_class.__name__.replace('Serializer', '')
        raise SchemaError(f'Malformed {name} payload from the ELD service.', serializer.errors)
    result = serializer.save()
    return tuple(result) if many else result


# ── Form schemas ──────────────────────────────────────────────

class LoginSerializer(serializers.Serializer):
    username = serializers.CharField()
    password = serializers.CharField(trim_whitespace=False)


class RegisterSerializer(serializers.Serializer):
    username = serializers.CharField()
    password = serializers.CharField(trim_whitespace=False)
    email = serializers.EmailField()
    first_name = serializers.CharField()
    last_name = serializers.CharField()
    license_number = serializers.CharField()
    carrier_name = serializers.CharField()
    carrier_address = serializers.CharField()


class TripCreateSerializer(serializers.Serializer):
    vehicle = serializers.IntegerField()
    current_location_input = GeoPointField()
    current_location_name = serializers.CharField(allow_blank=True, default='')
    pickup_location_input = GeoPointField()
    pickup_location_name = serializers.CharField(allow_blank=True, default='')
    dropoff_location_input = GeoPointField()
    dropoff_location_name = serializers.CharField(allow_blank=True, default='')
    current_cycle_hours = serializers.FloatField(min_value=0, max_value=MAX_CYCLE_HOURS)
    start_time = serializers.DateTimeField()
    status = serializers.ChoiceField(choices=TripStatus.CHOICES, default=TripStatus.PLANNED)


class TripUpdateSerializer(serializers.Serializer):
    vehicle = serializers.IntegerField(required=False)
    current_cycle_hours = serializers.FloatField(
        required=False, min_value=0, max_value=MAX_CYCLE_HOURS,
    )
    start_time = serializers.DateTimeField(required=False)
    status = serializers.ChoiceField(choices=TripStatus.CHOICES, required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError('Nothing to update.')
        return attrs


class DutyStatusCreateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=DutyStatusType.CHOICES)
    start_time = serializers.DateTimeField()
    end_time = serializers.DateTimeField()
    location = GeoPointField()
    location_description = serializers.CharField(allow_blank=True, default='')
    remarks = serializers.CharField(allow_blank=True, required=False, default='')

    def validate(self, attrs):
        if attrs['end_time'] <= attrs['start_time']:
            raise serializers.ValidationError({'end_time': 'Must be after start_time.'})
        return attrs


class VehicleCreateSerializer(serializers.Serializer):
    vehicle_number = serializers.CharField()
    license_plate = serializers.CharField()
    state = serializers.RegexField(r'^[A-Za-z]{2}$', error_messages={
        'invalid': 'Use a 2-letter state code.',
    })
    carrier = serializers.IntegerField()

    def validate_state(self, value):
        return value.upper()


class CarrierCreateSerializer(serializers.Serializer):
    name = serializers.CharField()
    main_office_address = serializers.CharField()


class GenerateLogSerializer(serializers.Serializer):
    date = serializers.DateField()


def validate_form(serializer_class, data, partial=False) -> dict:
    """
    Validate user input locally and return the JSON body to send.
    Raises rest_framework.serializers.ValidationError on bad input.
    """
    serializer = serializer_class(data=data, partial=partial)
    serializer.is_valid(raise_exception=True)
    return dict(serializer.data)
