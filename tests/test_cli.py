import io
import json
import os
import tempfile
import unittest
from contextlib import redirect_stdout

import habitgrid


class CliTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.path = os.path.join(self._tmp.name, "habits.json")

    def tearDown(self):
        self._tmp.cleanup()

    def _run(self, *argv):
        buffer = io.StringIO()
        with redirect_stdout(buffer):
            habitgrid.main(["--data", self.path, *argv])
        return buffer.getvalue()

    def _stored_habits(self):
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)["habits"]

    def test_add_then_toggle_updates_progress(self):
        self._run("add", "Read", "--goal", "weekly", "--weekly-target", "3")
        self._run("toggle", "2", "2024-01-09", "--date", "2024-01-11")
        output = self._run("list", "--date", "2024-01-11")

        self.assertIn("Read", output)
        self.assertIn("Weekly goal: 3 days per week.", output)
        self.assertIn("progress: 1/3", output)
        self.assertEqual(self._stored_habits()[1]["completions"], {"2024-01-09": True})

    def test_toggle_twice_keeps_false_entry(self):
        self._run("add", "Read")
        self._run("toggle", "2", "2024-01-09", "--date", "2024-01-09")
        self._run("toggle", "2", "2024-01-09", "--date", "2024-01-09")
        self.assertEqual(self._stored_habits()[1]["completions"], {"2024-01-09": False})

    def test_toggle_non_target_day_is_refused(self):
        self._run("add", "Gym", "--goal", "custom", "--on", "mon,wed,fri")
        output = self._run("toggle", "2", "2024-01-09")

        self.assertIn("not a scheduled day", output)
        self.assertEqual(self._stored_habits()[1]["completions"], {})

    def test_show_prints_grid(self):
        self._run("add", "Gym", "--goal", "custom", "--on", "1,3,5")
        output = self._run("show", "2", "--date", "2024-01-08", "--days", "14")

        self.assertIn("Specific days: Mon, Wed, Fri.", output)
        self.assertIn("progress: 0/1", output)
        self.assertIn("2023-12-26 → 2024-01-08", output)

    def test_custom_goal_without_elapsed_days_prints_dash(self):
        self._run("add", "Swim", "--goal", "custom", "--on", "fri")
        output = self._run("list", "--date", "2024-01-08")
        self.assertIn("progress: 0/0 -", output)

    def test_corrupt_data_file_starts_fresh(self):
        with open(self.path, "w", encoding="utf-8") as f:
            f.write("{oops")
        output = self._run("list", "--date", "2024-01-08")
        self.assertIn("My habit", output)
        self.assertIn("today: pending", output)

    def test_unknown_habit_and_bad_dates(self):
        self.assertIn("not found", self._run("show", "42"))
        self.assertIn("Invalid date", self._run("list", "--date", "01/08/2024"))
        self.assertIn("Days must be at least 1.", self._run("show", "1", "--days", "0"))


if __name__ == "__main__":
    unittest.main()
