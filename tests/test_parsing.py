import copy
import json
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

from work_warden.errors import ParseError
from work_warden.models import (
    Active,
    ClockIn,
    ClockOut,
    ClockType,
    Idle,
    Tasks,
    TrackedInterval,
)
from work_warden.parsing import dump_timecard, load_timecard, parse_instant, parse_timecard

CLOSED = {"since": None, "accumulated": {"seconds": 0, "nanoseconds": 0}}


def _state(**overrides):
    state = {
        "working": CLOSED,
        "onBreak": CLOSED,
        "onLunch": CLOSED,
        "idleWork": CLOSED,
        "isIdle": False,
        "tasks": {"since": None, "accumulated": {}},
    }
    state.update(overrides)
    return state


RAW_TIMECARD = {
    "initialState": _state(),
    "currentState": _state(
        working={
            "since": "2024-03-05T09:00:00.000+01:00",
            "accumulated": {"seconds": 120, "nanoseconds": 500_000_000},
        },
        onLunch={
            "since": None,
            "accumulated": {"seconds": 1800, "nanoseconds": 0},
        },
        isIdle=True,
        tasks={
            "since": ["2024-03-05T11:00:00+01:00", [1, 2]],
            "accumulated": {"1": {"seconds": 600, "nanoseconds": 0}},
        },
    ),
    "events": [
        {"type": "ClockIn", "time": "2024-03-05T09:00:00+01:00", "clock": "Day"},
        {"type": "Tasks", "time": "2024-03-05T09:05:00+01:00", "tasks": [1]},
        {"type": "ClockIn", "time": "2024-03-05T12:00:00+01:00", "clock": "Lunch"},
        {"type": "ClockOut", "time": "2024-03-05T12:30:00+01:00", "clock": "Lunch"},
        {"type": "Idle", "time": "2024-03-05T13:00:00+01:00"},
        {"type": "Active", "time": "2024-03-05T13:10:00+01:00"},
    ],
}


def _broken(mutate):
    raw = copy.deepcopy(RAW_TIMECARD)
    mutate(raw)
    return raw


class TestParseTimecard(unittest.TestCase):
    def test_parses_states_and_events(self) -> None:
        timecard = parse_timecard(RAW_TIMECARD)
        tz = timezone(timedelta(hours=1))
        current = timecard.current_state

        self.assertEqual(current.working, TrackedInterval(datetime(2024, 3, 5, 9, tzinfo=tz), 120_500.0))
        self.assertEqual(current.on_lunch.accumulated, 1_800_000.0)
        self.assertFalse(current.on_lunch.is_open)
        self.assertTrue(current.is_idle)
        self.assertEqual(current.tasks.since, (datetime(2024, 3, 5, 11, tzinfo=tz), (1, 2)))
        self.assertEqual(dict(current.tasks.accumulated), {1: 600_000.0})
        self.assertFalse(timecard.initial_state.working.is_open)

        self.assertEqual(
            [type(event) for event in timecard.events],
            [ClockIn, Tasks, ClockIn, ClockOut, Idle, Active],
        )
        self.assertEqual(timecard.events[0].clock, ClockType.DAY)
        self.assertEqual(timecard.events[1].ids, (1,))
        self.assertEqual(timecard.events[2].clock, ClockType.LUNCH)

    def test_accepts_json_text(self) -> None:
        self.assertEqual(parse_timecard(json.dumps(RAW_TIMECARD)), parse_timecard(RAW_TIMECARD))

    def test_accepts_legacy_duration_spelling(self) -> None:
        raw = _broken(
            lambda r: r["currentState"].update(
                onBreak={"since": None, "accumulated": {"secs": 1, "nanos": 250_000}}
            )
        )
        self.assertEqual(parse_timecard(raw).current_state.on_break.accumulated, 1000.25)

    def test_active_until_maps_to_idle_flag(self) -> None:
        def legacy(raw, active_until):
            del raw["currentState"]["isIdle"]
            raw["currentState"]["activeUntil"] = active_until

        idle = parse_timecard(_broken(lambda r: legacy(r, None)))
        active = parse_timecard(_broken(lambda r: legacy(r, "2024-03-05T14:00:00Z")))
        self.assertTrue(idle.current_state.is_idle)
        self.assertFalse(active.current_state.is_idle)

    def test_load_from_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "2024-3-5.log.json"
            path.write_text(json.dumps(RAW_TIMECARD), encoding="utf-8")
            self.assertEqual(load_timecard(path), parse_timecard(RAW_TIMECARD))

    def test_round_trip(self) -> None:
        original = parse_timecard(RAW_TIMECARD)
        again = parse_timecard(json.loads(json.dumps(dump_timecard(original))))
        self.assertEqual(again, original)


class TestParseErrors(unittest.TestCase):
    def assertRejected(self, raw) -> None:
        with self.assertRaises(ParseError):
            parse_timecard(raw)

    def test_malformed_instant(self) -> None:
        self.assertRejected(_broken(lambda r: r["events"][0].update(time="yesterday")))

    def test_numeric_instant(self) -> None:
        self.assertRejected(_broken(lambda r: r["events"][0].update(time=1709625600)))

    def test_malformed_duration(self) -> None:
        self.assertRejected(
            _broken(lambda r: r["currentState"]["working"].update(accumulated={"seconds": -1, "nanoseconds": 0}))
        )
        self.assertRejected(
            _broken(lambda r: r["currentState"]["working"].update(accumulated={"seconds": "5", "nanoseconds": 0}))
        )
        self.assertRejected(
            _broken(lambda r: r["currentState"]["working"].update(accumulated={"seconds": 5}))
        )

    def test_unknown_event_tag(self) -> None:
        self.assertRejected(_broken(lambda r: r["events"].append({"type": "Nap", "time": "2024-03-05T14:00:00Z"})))

    def test_unknown_clock(self) -> None:
        self.assertRejected(_broken(lambda r: r["events"][0].update(clock="Dinner")))

    def test_missing_required_field(self) -> None:
        self.assertRejected(_broken(lambda r: r["events"][0].pop("clock")))
        self.assertRejected(_broken(lambda r: r["initialState"].pop("onLunch")))
        self.assertRejected(_broken(lambda r: r["initialState"].pop("isIdle")))
        self.assertRejected(_broken(lambda r: r.pop("events")))

    def test_invalid_json_text(self) -> None:
        self.assertRejected("{not json")

    def test_parse_error_is_a_value_error(self) -> None:
        self.assertTrue(issubclass(ParseError, ValueError))


class TestParseInstant(unittest.TestCase):
    def test_sub_millisecond_precision_is_rounded(self) -> None:
        parsed = parse_instant("2024-03-05T09:00:00.123456789+00:00")
        self.assertEqual(parsed, datetime(2024, 3, 5, 9, 0, 0, 123_000, tzinfo=timezone.utc))

    def test_rounding_carries_into_seconds(self) -> None:
        parsed = parse_instant("2024-03-05T09:00:59.9996Z")
        self.assertEqual(parsed, datetime(2024, 3, 5, 9, 1, tzinfo=timezone.utc))

    def test_compact_offset(self) -> None:
        parsed = parse_instant("2024-03-05T09:00:00-0500")
        self.assertEqual(parsed.utcoffset(), timedelta(hours=-5))

    def test_seconds_may_be_omitted(self) -> None:
        parsed = parse_instant("2024-03-05T13:00Z")
        self.assertEqual(parsed, datetime(2024, 3, 5, 13, tzinfo=timezone.utc))

    def test_hour_only_offset(self) -> None:
        parsed = parse_instant("2024-03-05T09:00:00+05")
        self.assertEqual(parsed.utcoffset(), timedelta(hours=5))

    def test_fraction_requires_seconds(self) -> None:
        with self.assertRaises(ValueError):
            parse_instant("2024-03-05T13:00.5Z")

    def test_naive_instant_is_local(self) -> None:
        parsed = parse_instant("2024-03-05T09:00:00")
        self.assertIsNotNone(parsed.tzinfo)
        self.assertEqual(parsed, datetime(2024, 3, 5, 9).astimezone())


if __name__ == "__main__":
    unittest.main(verbosity=2)
