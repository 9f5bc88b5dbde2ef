"""
Smoke tests for the fitplan CLI.

Tests basic functionality:
- App runs and shows help
- Users register and admins import plans
- Day resolution, set logging and history
- Nutrition options, progress, measurements and backups
"""

import json
import tempfile
from pathlib import Path

import pytest
from typer.testing import CliRunner

from fitplan.cli.main import app


runner = CliRunner()

PLAN = {
    "sourceFileName": "block-a.json",
    "training": {
        "days": [
            {
                "dayIndex": 1,
                "label": "DAY 1 - Push",
                "exercises": [
                    {"id": "bench", "name": "Bench press", "series": 3, "reps": "8-10"},
                    {"id": "dips", "name": "Dips", "series": 3, "reps": "10"},
                ],
            },
            {
                "dayIndex": 2,
                "label": "Pull",
                "exercises": [{"id": "row", "name": "Row", "series": 4, "reps": "8"}],
            },
        ]
    },
    "nutrition": {
        "days": [
            {
                "weekIndex": 1,
                "dayOfWeek": "Mon",
                "meals": {"BREAKFAST": [{"title": "A", "lines": ["Oats", "Banana"]}]},
            },
            {
                "weekIndex": 2,
                "dayOfWeek": "Mon",
                "meals": {"LUNCH": [{"title": "B", "lines": ["Rice"]}]},
            },
        ]
    },
}


@pytest.fixture
def data_dir():
    """Temporary data directory with an admin who has an active plan."""
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir)
        plan_file = path / "plan.json"
        plan_file.write_text(json.dumps(PLAN), encoding="utf-8")

        assert runner.invoke(app, ["add-user", "coach", "--role", "admin", "-p", str(path)]).exit_code == 0
        result = runner.invoke(app, ["import-plan", str(plan_file), "-u", "coach", "--force", "-p", str(path)])
        assert result.exit_code == 0, result.output
        result = runner.invoke(app, [
            "settings", "-u", "coach", "--start", "2024-01-01", "--days", "Mon,Thu", "-p", str(path),
        ])
        assert result.exit_code == 0, result.output
        yield path


def _invoke(data_dir: Path, *args: str):
    return runner.invoke(app, [*args, "-p", str(data_dir)])


class TestCLISmoke:
    """Basic smoke tests for CLI commands."""

    def test_app_help(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "today" in result.output

    def test_users_listing(self, data_dir):
        _invoke(data_dir, "add-user", "ana", "--name", "Ana")
        result = _invoke(data_dir, "users", "--json")
        assert result.exit_code == 0
        assert [u["userId"] for u in json.loads(result.output)] == ["coach", "ana"]

    def test_non_admin_cannot_import(self, data_dir):
        _invoke(data_dir, "add-user", "ana")
        result = _invoke(data_dir, "import-plan", str(data_dir / "plan.json"), "-u", "ana", "--force")
        assert result.exit_code == 1
        assert "not allowed" in result.output

    def test_malformed_plan_exits_cleanly(self, data_dir):
        bad = data_dir / "bad.json"
        bad.write_text(json.dumps({"trainingDays": ["Push day"]}), encoding="utf-8")
        result = _invoke(data_dir, "import-plan", str(bad), "-u", "coach", "--force")
        assert result.exit_code == 1
        assert "Error" in result.output

    def test_import_for_other_user(self, data_dir):
        _invoke(data_dir, "add-user", "ana")
        result = _invoke(
            data_dir, "import-plan", str(data_dir / "plan.json"), "-u", "coach", "--for", "ana", "--force"
        )
        assert result.exit_code == 0
        history = json.loads(_invoke(data_dir, "plan-history", "-u", "ana", "--json").output)
        assert history[0]["isActive"] is True
        assert history[0]["assignedBy"] == "coach"

    def test_show_plan_json(self, data_dir):
        result = _invoke(data_dir, "show-plan", "-u", "coach", "--json")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["sourceFileName"] == "block-a.json"
        assert data["plan"]["nutrition"]["cycleWeeks"] == 2

    def test_settings_reject_unknown_day(self, data_dir):
        result = _invoke(data_dir, "settings", "-u", "coach", "--days", "Mon,Funday")
        assert result.exit_code == 1

    def test_today_training_day(self, data_dir):
        result = _invoke(data_dir, "today", "-u", "coach", "--date", "2024-01-04", "--json")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["isRestDay"] is False
        assert data["trainingDay"]["label"] == "Pull"
        assert data["nutritionWeek"] == 1
        assert data["nextTraining"]["date"] == "2024-01-04"

    def test_today_rest_day_is_not_an_error(self, data_dir):
        result = _invoke(data_dir, "today", "-u", "coach", "--date", "2024-01-02")
        assert result.exit_code == 0
        assert "Rest day" in result.output

    def test_invalid_date(self, data_dir):
        result = _invoke(data_dir, "today", "-u", "coach", "--date", "2024-13-01")
        assert result.exit_code == 1

    def test_log_set_and_history(self, data_dir):
        result = _invoke(
            data_dir, "log-set", "-u", "coach", "--date", "2024-01-01", "-e", "1", "-s", "1", "-w", "80"
        )
        assert result.exit_code == 0, result.output
        result = _invoke(
            data_dir, "log-set", "-u", "coach", "--date", "2024-01-01", "-e", "dips", "-s", "1", "-w", "20,5"
        )
        assert result.exit_code == 0, result.output

        history = json.loads(_invoke(data_dir, "show-history", "-u", "coach", "--json").output)
        assert len(history) == 1
        weights = {s["exerciseId"]: s["weightKg"] for s in history[0]["setLogs"]}
        assert weights == {"bench": "80", "dips": "20,5"}

    def test_log_set_on_rest_day_fails(self, data_dir):
        result = _invoke(data_dir, "log-set", "-u", "coach", "--date", "2024-01-02", "-e", "1", "-s", "1")
        assert result.exit_code == 1

    def test_log_workout_and_progress(self, data_dir):
        for date, weight in (("2024-01-01", "80"), ("2024-01-08", "82"), ("2024-02-05", "90")):
            result = _invoke(
                data_dir, "log-workout", "-u", "coach", "--date", date, "-s", f"bench: {weight}x8, 70x10"
            )
            assert result.exit_code == 0, result.output

        result = _invoke(data_dir, "progress", "-u", "coach", "--json")
        assert result.exit_code == 0
        blocks = json.loads(result.output)
        assert blocks[0]["blockId"] == "block-1-0"
        assert blocks[0]["name"] == "Push"
        assert blocks[0]["weeklyTotalKg"] == 8.0
        assert blocks[0]["monthlyAvgPct"] == 12.5

        detail = json.loads(_invoke(data_dir, "progress", "-u", "coach", "-b", "block-1-0", "--json").output)
        assert detail["exercises"][0]["weeklyDeltaPct"] == 9.8

        result = _invoke(data_dir, "progress", "-u", "coach", "-b", "block-1-0", "--plot", "1")
        assert result.exit_code == 0

    def test_unknown_block(self, data_dir):
        result = _invoke(data_dir, "progress", "-u", "coach", "-b", "block-9-9")
        assert result.exit_code == 1

    def test_nutrition_and_select_menu(self, data_dir):
        data = json.loads(_invoke(data_dir, "nutrition", "-u", "coach", "--date", "2024-01-02", "--json").output)
        assert [o["optionIndex"] for o in data["options"]] == [1, 2]
        assert data["suggestedOptionIndex"] == 2
        assert data["selection"] is None

        result = _invoke(data_dir, "select-menu", "1", "-u", "coach", "--date", "2024-01-02", "--done")
        assert result.exit_code == 0
        data = json.loads(_invoke(data_dir, "nutrition", "-u", "coach", "--date", "2024-01-02", "--json").output)
        assert data["selection"]["selectedOptionIndex"] == 1
        assert data["selection"]["done"] is True

    def test_select_menu_out_of_range(self, data_dir):
        result = _invoke(data_dir, "select-menu", "5", "-u", "coach", "--date", "2024-01-02")
        assert result.exit_code == 1

    def test_measures(self, data_dir):
        assert _invoke(data_dir, "log-measure", "-u", "coach", "--date", "2024-01-03", "-w", "83").exit_code == 0
        assert _invoke(data_dir, "log-measure", "-u", "coach", "--date", "2024-01-10", "-w", "82", "--waist", "90").exit_code == 0
        assert _invoke(data_dir, "log-measure", "-u", "coach", "--date", "2024-01-11", "--neck", "38").exit_code == 0

        data = json.loads(_invoke(data_dir, "measures", "-u", "coach", "--json").output)
        assert [r["weekStart"] for r in data["rows"]] == ["2024-01-01", "2024-01-08"]
        assert data["rows"][1]["weightKg"] == 82.0
        assert data["rows"][1]["neckCm"] == 38.0
        weight = next(t for t in data["trends"] if t["metric"] == "weightKg")
        assert weight["weeklyDelta"] == -1.0

        result = _invoke(data_dir, "measures", "-u", "coach", "-m", "weight_kg")
        assert result.exit_code == 0

    def test_backup_round_trip(self, data_dir):
        _invoke(data_dir, "log-workout", "-u", "coach", "--date", "2024-01-04", "-s", "1: 55x10", "-n", "pull")
        backup_file = data_dir / "backup.json"
        result = _invoke(data_dir, "export-backup", "-u", "coach", "-o", str(backup_file))
        assert result.exit_code == 0
        assert json.loads(backup_file.read_text(encoding="utf-8"))["entries"][0]["date"] == "2024-01-04"

        result = _invoke(data_dir, "restore-backup", str(backup_file), "-u", "coach", "--json")
        assert result.exit_code == 0
        report = json.loads(result.output)
        assert report["skippedExistingDays"] == 1
        assert report["insertedDays"] == 0

    def test_unknown_user(self, data_dir):
        result = _invoke(data_dir, "show-history", "-u", "ghost", "--all-plans")
        assert result.exit_code == 1
