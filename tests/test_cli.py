import json
import tempfile
import unittest
from pathlib import Path

from typer.testing import CliRunner

from work_warden.cli import _LiveView, app
from work_warden.config import WardenSettings

CLOSED = {"since": None, "accumulated": {"seconds": 0, "nanoseconds": 0}}
STATE = {
    "working": CLOSED,
    "onBreak": CLOSED,
    "onLunch": CLOSED,
    "idleWork": CLOSED,
    "isIdle": False,
    "tasks": {"since": None, "accumulated": {"12": {"seconds": 60, "nanoseconds": 0}}},
}
TIMECARD = {
    "initialState": STATE,
    "currentState": STATE,
    "events": [
        {"type": "ClockIn", "time": "2024-03-05T09:00:00+00:00", "clock": "Day"},
        {"type": "ClockIn", "time": "2024-03-05T12:00:00+00:00", "clock": "Lunch"},
        {"type": "ClockOut", "time": "2024-03-05T12:45:00+00:00", "clock": "Lunch"},
        {"type": "ClockOut", "time": "2024-03-05T17:00:00+00:00", "clock": "Day"},
    ],
}


class TestCli(unittest.TestCase):
    def setUp(self) -> None:
        self.runner = CliRunner()
        self._tmpdir = tempfile.TemporaryDirectory()
        self.path = Path(self._tmpdir.name) / "2024-3-5.log.json"
        self.path.write_text(json.dumps(TIMECARD), encoding="utf-8")

    def tearDown(self) -> None:
        self._tmpdir.cleanup()

    def test_closed_timeline(self) -> None:
        result = self.runner.invoke(app, ["timeline", "--file", str(self.path), "--closed"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("lunch", result.output)
        self.assertIn("45m", result.output)
        self.assertIn("8h", result.output)

    def test_summary(self) -> None:
        result = self.runner.invoke(app, ["summary", "--file", str(self.path)])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Work:", result.output)
        self.assertIn("Idle:", result.output)

    def test_tasks(self) -> None:
        result = self.runner.invoke(app, ["tasks", "--file", str(self.path)])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("#12", result.output)
        self.assertIn("1m", result.output)

    def test_malformed_log_fails(self) -> None:
        self.path.write_text("{}", encoding="utf-8")
        result = self.runner.invoke(app, ["summary", "--file", str(self.path)])
        self.assertNotEqual(result.exit_code, 0)


    def test_live_timeline_survives_out_of_order_log(self) -> None:
        reordered = json.loads(json.dumps(TIMECARD))
        reordered["events"].reverse()
        self.path.write_text(json.dumps(reordered), encoding="utf-8")
        view = _LiveView(self.path, WardenSettings())
        with self.assertLogs("work_warden.cli", level="ERROR") as logs:
            view.show_timeline()
        self.assertIn("Could not rebuild the timeline", logs.output[0])


if __name__ == "__main__":
    unittest.main(verbosity=2)
