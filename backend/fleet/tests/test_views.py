import requests
from django.apps import apps
from django.test import SimpleTestCase
from rest_framework.test import APIClient

from fleet.services.api import REFRESH_PATH

from .fakes import (
    FakeHTTP, make_user, scenario_payloads, signed_in_session, trip_payload,
    user_info_payload,
)


class FleetViewTestCase(SimpleTestCase):
    client_class = APIClient
    admin = False

    def setUp(self):
        self.config = apps.get_app_config('fleet')
        previous = (self.config.session, self.config.repository)
        self.addCleanup(self.restore_app, *previous)

        self.http = FakeHTTP()
        self.session = signed_in_session(self.http, user=make_user(is_admin=self.admin))
        self.repository = self.config.install(self.session)
        self.addCleanup(self.repository.close)

    def restore_app(self, session, repository):
        self.config.session = session
        self.config.repository = repository

    def add_trip_detail(self, logs=()):
        self.http.add('GET', '/trips/1/', payload=trip_payload(1))
        self.http.add('GET', '/trips/1/duty-status/', payload=scenario_payloads())
        self.http.add('GET', '/trips/1/eld-logs/', payload=list(logs))


class AuthViewTests(FleetViewTestCase):
    def test_me(self):
        resp = self.client.get('/api/auth/me/')
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertTrue(body['is_authenticated'])
        self.assertFalse(body['is_admin'])
        self.assertEqual(body['user']['username'], 'jdoe')

    def test_login(self):
        self.http.add('POST', '/auth/login/', payload={'access': 'a1', 'refresh': 'r1'})
        self.http.add('GET', '/user-info/', payload=user_info_payload(is_admin=True))

        resp = self.client.post('/api/auth/login/', {'username': 'jdoe', 'password': 'pw'}, format='json')

        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.json()['is_admin'])

    def test_bad_credentials(self):
        self.http.add('POST', '/auth/login/', status=401, payload={'detail': 'No active account found.'})

        resp = self.client.post('/api/auth/login/', {'username': 'jdoe', 'password': 'no'}, format='json')

        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json(), {'error': 'No active account found.'})
        self.assertEqual(self.http.count('POST', REFRESH_PATH), 0)

    def test_login_form_is_validated_locally(self):
        resp = self.client.post('/api/auth/login/', {'username': 'jdoe'}, format='json')
        self.assertEqual(resp.status_code, 400)
        self.assertIn('password', resp.json()['error'])
        self.assertEqual(self.http.calls, [])

    def test_logout_empties_caches(self):
        self.http.add('GET', '/vehicles/', payload=[])
        self.client.get('/api/vehicles/')

        resp = self.client.post('/api/auth/logout/')

        self.assertEqual(resp.status_code, 200)
        self.assertFalse(resp.json()['is_authenticated'])
        self.assertIsNone(self.repository.vehicles.peek())


class SessionErrorTests(FleetViewTestCase):
    def test_expired_session_redirects_to_login(self):
        self.http.add('GET', '/trips/', status=401)
        self.http.add('POST', REFRESH_PATH, status=401, payload={'detail': 'Token is invalid or expired'})

        resp = self.client.get('/api/trips/')

        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json()['redirect'], '/login')
        self.assertFalse(self.session.is_authenticated)

    def test_upstream_client_errors_pass_through(self):
        self.http.add('GET', '/trips/9/', status=404, payload={'detail': 'Not found.'})
        resp = self.client.get('/api/trips/9/')
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json(), {'error': 'Not found.'})

    def test_upstream_server_errors_are_bad_gateway(self):
        self.http.add('GET', '/trips/', status=500)
        resp = self.client.get('/api/trips/')
        self.assertEqual(resp.status_code, 502)

    def test_unreachable_service_is_gateway_timeout(self):
        def down(call):
            raise requests.ConnectionError('refused')

        self.http.add('GET', '/trips/', down)
        resp = self.client.get('/api/trips/')
        self.assertEqual(resp.status_code, 504)

    def test_malformed_payload_is_bad_gateway(self):
        self.http.add('GET', '/trips/', payload=[{'id': 1}])
        resp = self.client.get('/api/trips/')
        self.assertEqual(resp.status_code, 502)
        self.assertIn('details', resp.json())


class TripViewTests(FleetViewTestCase):
    def test_dashboard(self):
        self.http.add('GET', '/trips/', payload=[
            trip_payload(1, cycle=10.0),
            trip_payload(2, status='COMPLETED', cycle=20.0, pickup='Baltimore', dropoff='Philadelphia'),
        ])
        self.http.add('GET', '/vehicles/', payload=[
            {'id': 3, 'vehicle_number': 'TRK001', 'license_plate': 'ABC-1234', 'state': 'VA', 'carrier': 2},
        ])

        resp = self.client.get('/api/dashboard/', {'search': 'balt'})

        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body['summary'], {
            'total': 2, 'planned': 1, 'in_progress': 0, 'completed': 1, 'average_cycle_hours': 15.0,
        })
        self.assertEqual([t['id'] for t in body['trips']], [2])
        self.assertEqual(body['vehicles'][0]['vehicle_number'], 'TRK001')

    def test_dashboard_filters_by_status(self):
        self.http.add('GET', '/trips/', payload=[trip_payload(1), trip_payload(2, status='COMPLETED')])
        self.http.add('GET', '/vehicles/', payload=[])
        resp = self.client.get('/api/dashboard/', {'status': 'COMPLETED'})
        self.assertEqual([t['id'] for t in resp.json()['trips']], [2])

    def test_dashboard_load_failure(self):
        self.http.add('GET', '/trips/', status=500, payload={'error': 'Database unavailable'})
        self.http.add('GET', '/vehicles/', payload=[])

        resp = self.client.get('/api/dashboard/')

        self.assertEqual(resp.status_code, 502)
        self.assertEqual(resp.json(), {'error': 'Database unavailable'})
        self.assertIsNone(self.repository.trips.peek(self.repository.trips_key()))

    def test_invalid_trip_is_rejected_before_the_network(self):
        resp = self.client.post('/api/trips/', {
            'vehicle': 3, 'current_location_input': '200,100', 'current_cycle_hours': -1,
        }, format='json')

        self.assertEqual(resp.status_code, 400)
        errors = resp.json()['error']
        self.assertIn('current_location_input', errors)
        self.assertIn('current_cycle_hours', errors)
        self.assertIn('pickup_location_input', errors)
        self.assertEqual(self.http.calls, [])

    def test_bad_paging_parameters(self):
        resp = self.client.get('/api/trips/', {'limit': 'ten'})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(self.http.calls, [])

    def test_trip_detail(self):
        self.add_trip_detail()
        resp = self.client.get('/api/trips/1/')
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body['trip']['pickup_location'], [-76.2859, 36.8508])
        self.assertEqual(len(body['duty_statuses']), 4)
        self.assertEqual(body['log_dates'], ['2025-01-15', '2025-01-16'])

    def test_advance(self):
        self.http.add('GET', '/trips/1/', payload=trip_payload(1))
        self.http.add('PATCH', '/trips/1/', payload=trip_payload(1, status='IN_PROGRESS'))
        resp = self.client.post('/api/trips/1/advance/')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()['trip']['status'], 'IN_PROGRESS')

    def test_delete(self):
        self.http.add('DELETE', '/trips/1/', status=204)
        resp = self.client.delete('/api/trips/1/')
        self.assertEqual(resp.status_code, 204)


class LogViewTests(FleetViewTestCase):
    LOG = {'id': 11, 'trip': 1, 'date': '2025-01-15', 'total_miles': 412.5}

    def test_log_for_a_generated_date(self):
        self.add_trip_detail(logs=[self.LOG])

        resp = self.client.get('/api/trips/1/eld-logs/2025-01-15/')

        self.assertEqual(resp.status_code, 200)
        log = resp.json()['log']
        self.assertEqual(log['log_id'], 11)
        self.assertEqual(log['total_miles'], 412.5)
        self.assertFalse(log['is_preview'])
        self.assertEqual([s['record']['id'] for s in log['segments']], [1, 2, 3])
        self.assertEqual(log['segments'][2]['color'], '#6B7280')

    def test_preview_with_supplied_miles_and_trip_palette(self):
        self.add_trip_detail(logs=[self.LOG])

        resp = self.client.get('/api/trips/1/eld-logs/2025-01-16/', {'total_miles': '120', 'palette': 'trip'})

        log = resp.json()['log']
        self.assertTrue(log['is_preview'])
        self.assertEqual(log['total_miles'], 120.0)
        self.assertEqual(len(log['segments']), 1)

    def test_unknown_miles_stay_unknown(self):
        self.add_trip_detail()
        resp = self.client.get('/api/trips/1/eld-logs/2025-01-16/')
        self.assertIsNone(resp.json()['log']['total_miles'])

    def test_bad_date(self):
        resp = self.client.get('/api/trips/1/eld-logs/15-01-2025/')
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(self.http.calls, [])

    def test_unknown_palette(self):
        resp = self.client.get('/api/trips/1/eld-logs/2025-01-15/', {'palette': 'neon'})
        self.assertEqual(resp.status_code, 400)

    def test_duty_status_timeline_uses_trip_colors(self):
        self.http.add('GET', '/trips/1/duty-status/', payload=scenario_payloads())

        resp = self.client.get('/api/trips/1/duty-status/', {'date': '2025-01-15'})

        body = resp.json()
        self.assertEqual(body['dates'], ['2025-01-15', '2025-01-16'])
        self.assertEqual(body['timeline']['segments'][2]['color'], '#EF4444')

    def test_generate(self):
        self.add_trip_detail()
        self.http.add('POST', '/trips/1/eld-logs/generate/', payload={'message': 'ok', 'logs': [self.LOG]})

        resp = self.client.post('/api/trips/1/eld-logs/generate/', {'date': '2025-01-15'}, format='json')

        self.assertEqual(resp.status_code, 201)
        body = resp.json()
        self.assertEqual(body['eld_logs'][0]['id'], 11)
        self.assertEqual(body['log']['log_id'], 11)
        self.assertEqual(body['log']['total_miles'], 412.5)


class DriverPermissionTests(FleetViewTestCase):
    VEHICLE = {'vehicle_number': 'TRK008', 'license_plate': 'XYZ-9', 'state': 'VA', 'carrier': 2}

    def test_drivers_cannot_add_vehicles(self):
        resp = self.client.post('/api/vehicles/', self.VEHICLE, format='json')
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(self.http.calls, [])


class AdminVehicleTests(FleetViewTestCase):
    admin = True

    def test_admin_adds_vehicle(self):
        self.http.add('POST', '/vehicles/', payload=dict(DriverPermissionTests.VEHICLE, id=8))
        resp = self.client.post('/api/vehicles/', DriverPermissionTests.VEHICLE, format='json')
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.json()['vehicle']['id'], 8)

    def test_admin_adds_carrier(self):
        self.http.add('POST', '/carriers/', payload={
            'id': 4, 'name': 'Blue Ridge Haulers', 'main_office_address': 'Roanoke, VA',
        })
        resp = self.client.post('/api/carriers/', {
            'name': 'Blue Ridge Haulers', 'main_office_address': 'Roanoke, VA',
        }, format='json')
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.json()['carrier']['name'], 'Blue Ridge Haulers')


class AppShutdownTests(FleetViewTestCase):
    def test_shutdown_releases_the_client(self):
        self.repository.scope()

        self.config.shutdown()

        self.assertTrue(self.http.closed)
        with self.assertRaises(RuntimeError):
            self.repository.scope().submit(self.repository.vehicles)
