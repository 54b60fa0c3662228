from datetime import date, datetime

from django.test import SimpleTestCase, override_settings

from fleet.models import DutyStatus
from fleet.timeline import (
    DEFAULT_COLOR, LOG_PALETTE, TRIP_PALETTE, build_timeline, day_timeline, render_grid,
    select_for_date, status_color, status_label, status_totals,
)

from .fakes import duty, scenario_records


class TimelineModelTests(SimpleTestCase):
    def test_empty_input_gives_empty_timeline(self):
        self.assertEqual(build_timeline([], '2025-01-15'), ())
        grid = render_grid(())
        self.assertEqual(len(grid['hours']), 24)
        self.assertEqual(grid['segments'], [])

    def test_one_hour_record_at_eight_is_eight_and_one_twentyfourths(self):
        records = [duty(1, 'DRIVING', '2025-01-15T08:00:00+00:00', '2025-01-15T09:00:00+00:00')]
        (segment,) = build_timeline(records, '2025-01-15')
        self.assertAlmostEqual(segment.offset, 8 / 24)
        self.assertAlmostEqual(segment.extent, 1 / 24)
        self.assertEqual(segment.color, LOG_PALETTE['DRIVING'])
        self.assertEqual(segment.label, 'Driving')
        self.assertIs(segment.record, records[0])

    def test_output_count_matches_records_on_the_date(self):
        records = scenario_records()
        self.assertEqual(len(build_timeline(records, '2025-01-15')), 3)
        self.assertEqual(len(build_timeline(records, date(2025, 1, 16))), 1)
        self.assertEqual(len(build_timeline(records, '2025-01-17')), 0)

    def test_segments_are_sorted_by_start(self):
        segments = build_timeline(scenario_records(), '2025-01-15')
        self.assertEqual([s.record.id for s in segments], [1, 2, 3])
        self.assertAlmostEqual(segments[1].start_hour, 9.0)
        self.assertAlmostEqual(segments[1].end_hour, 11.5)

    def test_input_is_not_mutated_and_result_is_repeatable(self):
        records = scenario_records()
        before = list(records)
        first = build_timeline(records, '2025-01-15')
        second = build_timeline(records, '2025-01-15')
        self.assertEqual(records, before)
        self.assertEqual(first, second)

    def test_overlapping_records_are_kept_in_order(self):
        records = [
            duty(1, 'DRIVING', '2025-01-15T08:00:00+00:00', '2025-01-15T10:00:00+00:00'),
            duty(2, 'ON_DUTY_NOT_DRIVING', '2025-01-15T09:00:00+00:00', '2025-01-15T09:30:00+00:00'),
        ]
        segments = build_timeline(records, '2025-01-15')
        self.assertEqual([s.record.id for s in segments], [1, 2])
        self.assertAlmostEqual(segments[0].extent, 2 / 24)

    def test_record_running_past_midnight_is_drawn_to_end_of_day(self):
        records = [duty(1, 'SLEEPER_BERTH', '2025-01-15T20:00:00+00:00', '2025-01-16T06:00:00+00:00')]
        (segment,) = build_timeline(records, '2025-01-15')
        self.assertAlmostEqual(segment.end_hour, 24.0)
        self.assertAlmostEqual(segment.extent, 4 / 24)
        self.assertEqual(build_timeline(records, '2025-01-16'), ())

    def test_end_before_start_renders_with_no_extent(self):
        records = [duty(1, 'DRIVING', '2025-01-15T10:00:00+00:00', '2025-01-15T09:00:00+00:00')]
        (segment,) = build_timeline(records, '2025-01-15')
        self.assertEqual(segment.extent, 0)

    @override_settings(ELD_LOG_TIMEZONE='America/New_York')
    def test_dates_and_hours_follow_the_log_timezone(self):
        # 02:00 UTC on the 16th is 21:00 on the 15th in New York.
        records = [duty(1, 'DRIVING', '2025-01-16T02:00:00+00:00', '2025-01-16T03:00:00+00:00')]
        self.assertEqual(len(select_for_date(records, '2025-01-16')), 0)
        (segment,) = build_timeline(records, '2025-01-15')
        self.assertAlmostEqual(segment.start_hour, 21.0)

    def test_naive_and_aware_records_sort_together(self):
        naive = DutyStatus(
            id=1, trip=1, status='DRIVING',
            start_time=datetime(2025, 1, 15, 9), end_time=datetime(2025, 1, 15, 10),
        )
        aware = duty(2, 'ON_DUTY_NOT_DRIVING', '2025-01-15T08:00:00+00:00', '2025-01-15T09:00:00+00:00')

        selected = select_for_date([naive, aware], '2025-01-15')

        self.assertEqual([r.id for r in selected], [2, 1])
        self.assertAlmostEqual(build_timeline([naive, aware], '2025-01-15')[1].start_hour, 9.0)


class StatusDisplayTests(SimpleTestCase):
    def test_every_known_status_has_a_color(self):
        self.assertEqual(status_color('DRIVING'), '#10B981')
        self.assertEqual(status_color('ON_DUTY_NOT_DRIVING'), '#3B82F6')
        self.assertEqual(status_color('OFF_DUTY'), '#6B7280')
        self.assertEqual(status_color('SLEEPER_BERTH'), '#F59E0B')

    def test_trip_palette_shows_off_duty_in_red(self):
        self.assertEqual(status_color('OFF_DUTY', TRIP_PALETTE), '#EF4444')
        self.assertEqual(status_color('DRIVING', TRIP_PALETTE), '#10B981')

    def test_unknown_status_gets_default_color(self):
        self.assertEqual(status_color('YARD_MOVE'), DEFAULT_COLOR)
        self.assertEqual(status_color(None), DEFAULT_COLOR)
        records = [duty(1, 'YARD_MOVE', '2025-01-15T08:00:00+00:00', '2025-01-15T09:00:00+00:00')]
        (segment,) = build_timeline(records, '2025-01-15')
        self.assertEqual(segment.color, DEFAULT_COLOR)
        self.assertEqual(segment.label, 'Yard Move')

    def test_status_label(self):
        self.assertEqual(status_label('ON_DUTY_NOT_DRIVING'), 'On Duty Not Driving')
        self.assertEqual(status_label('SLEEPER_BERTH'), 'Sleeper Berth')
        self.assertEqual(status_label(''), '')


class GridTests(SimpleTestCase):
    def test_grid_geometry(self):
        segments = build_timeline(scenario_records(), '2025-01-15')
        grid = render_grid(segments, height=480)
        self.assertEqual(grid['hours'][0], {'label': '00:00', 'top': 0})
        self.assertEqual(grid['hours'][23]['label'], '23:00')
        first = grid['segments'][0]
        self.assertEqual(first['top'], 160.0)
        self.assertEqual(first['height'], 20.0)
        self.assertEqual(first['title'], 'On Duty Not Driving - Richmond, VA')

    def test_day_totals(self):
        totals = status_totals(build_timeline(scenario_records(), '2025-01-15'))
        self.assertEqual(totals['driving'], 2.5)
        self.assertEqual(totals['on_duty_not_driving'], 1.0)
        self.assertEqual(totals['off_duty'], 0.5)
        self.assertEqual(totals['sleeper_berth'], 0.0)
        self.assertEqual(totals['total_on_duty'], 3.5)

    def test_day_timeline_payload(self):
        payload = day_timeline(scenario_records(), '2025-01-15', TRIP_PALETTE)
        self.assertEqual(payload['date'], '2025-01-15')
        self.assertEqual(len(payload['segments']), 3)
        self.assertEqual(payload['segments'][2]['color'], '#EF4444')
        self.assertEqual(payload['segments'][0]['record']['id'], 1)
