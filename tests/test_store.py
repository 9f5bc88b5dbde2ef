"""
Tests for the file-backed store: users, plans, settings, logs and backup.
"""

import json
import tempfile
from pathlib import Path

import pytest

from fitplan.core.models import (
    Exercise,
    MealSelection,
    NormalizedPlan,
    SetLog,
    TrainingDay,
    UserAccount,
    WeeklyMeasure,
)
from fitplan.io.serializers import ValidationError, dict_to_plan
from fitplan.io.store import FitplanStore, PermissionDeniedError, UserNotFoundError, _atomic_write


@pytest.fixture
def store():
    """Store in a temporary directory with one admin and one user."""
    with tempfile.TemporaryDirectory() as tmpdir:
        s = FitplanStore(Path(tmpdir))
        s.add_user(UserAccount(user_id="coach", role="admin", name="Coach"))
        s.add_user(UserAccount(user_id="ana", role="user", name="Ana"))
        yield s


def _plan() -> NormalizedPlan:
    return NormalizedPlan(
        training_days=(
            TrainingDay(
                day_index=1,
                label="Push",
                exercises=(Exercise(id="bench", name="Press banca"), Exercise(id="dips", name="Fondos")),
            ),
            TrainingDay(
                day_index=2,
                label="Pull",
                exercises=(Exercise(id="row", name="Remo"),),
            ),
        )
    )


class TestUsers:
    """User registry."""

    def test_assignable_users_ordered_by_role_then_id(self, store):
        store.add_user(UserAccount(user_id="bob", role="user"))
        store.add_user(UserAccount(user_id="admin2", role="admin"))
        ids = [u.user_id for u in store.list_assignable_users()]
        assert ids == ["admin2", "coach", "ana", "bob"]

    def test_unknown_user_raises(self, store):
        with pytest.raises(UserNotFoundError):
            store.get_user("nobody")

    def test_unknown_user_is_file_not_found(self, store):
        with pytest.raises(FileNotFoundError):
            store.load_sessions("nobody")


class TestPlans:
    """Plan import and history."""

    def test_only_admin_can_import(self, store):
        with pytest.raises(PermissionDeniedError):
            store.import_plan("ana", _plan(), "plan.json")

    def test_import_for_other_user(self, store):
        record = store.import_plan("coach", _plan(), "plan.json", target_user_id="ana")
        assert record.is_active
        assert record.assigned_by == "coach"
        assert store.get_active_plan("ana").plan_id == record.plan_id
        assert store.get_active_plan("coach") is None

    def test_reimport_deactivates_previous(self, store):
        first = store.import_plan("coach", _plan(), "a.json", imported_at="2024-01-03T10:00:00")
        second = store.import_plan("coach", _plan(), "b.json", imported_at="2024-02-03T10:00:00")
        history = store.plan_history("coach")
        assert [r.plan_id for r in history] == [second.plan_id, first.plan_id]
        assert [r.is_active for r in history] == [True, False]
        assert store.get_active_plan("coach").source_file_name == "b.json"

    def test_empty_source_name_rejected(self, store):
        with pytest.raises(ValidationError):
            store.import_plan("coach", _plan(), "  ")

    def test_plan_round_trips_through_file(self, store):
        store.import_plan("coach", _plan(), "a.json")
        loaded = store.get_active_plan("coach").plan
        assert [d.label for d in loaded.training_days] == ["Push", "Pull"]
        assert loaded.training_days[0].exercises[1].id == "dips"

    def test_missing_day_index_defaults_to_position(self):
        plan = dict_to_plan({"training": {"days": [{"label": "A"}, {"label": "B"}]}})
        assert [d.day_index for d in plan.training_days] == [1, 2]


class TestSettings:
    """Lazy defaults and validation."""

    def test_defaults_from_active_plan(self, store):
        store.import_plan("coach", _plan(), "a.json", imported_at="2024-01-03T10:00:00")
        settings = store.load_settings("coach")
        assert settings.training_days == ("Mon", "Tue")
        assert settings.nutrition_start_date == "2024-01-01"

    def test_defaults_are_persisted(self, store):
        store.import_plan("coach", _plan(), "a.json", imported_at="2024-01-03T10:00:00")
        store.load_settings("coach")
        store.import_plan("coach", _plan(), "b.json", imported_at="2024-03-06T10:00:00")
        assert store.load_settings("coach").nutrition_start_date == "2024-01-01"

    def test_save_sorts_and_dedupes(self, store):
        saved = store.save_settings("ana", "2024-01-01", ["Sat", "Tue", "Sat"])
        assert saved.training_days == ("Tue", "Sat")
        assert store.load_settings("ana").training_days == ("Tue", "Sat")

    def test_save_rejects_empty_days(self, store):
        with pytest.raises(ValidationError):
            store.save_settings("ana", "2024-01-01", [])

    def test_save_rejects_unknown_day(self, store):
        with pytest.raises(ValidationError):
            store.save_settings("ana", "2024-01-01", ["Tue", "Someday"])


class TestWorkoutLogs:
    """Sessions and set rows."""

    def test_upsert_overwrites_same_set(self, store):
        store.import_plan("coach", _plan(), "a.json")
        store.upsert_set_log("coach", "2024-01-01", SetLog(set_number=1, weight_kg=80, exercise_id="bench"))
        store.upsert_set_log("coach", "2024-01-01", SetLog(set_number=1, weight_kg=85, exercise_id="bench"))
        store.upsert_set_log("coach", "2024-01-01", SetLog(set_number=2, weight_kg=85, exercise_id="bench"))

        sessions = store.load_sessions("coach")
        assert len(sessions) == 1
        assert [(s.set_number, s.weight_kg) for s in sessions[0].set_logs] == [(1, 85), (2, 85)]
        assert sessions[0].plan_id == store.get_active_plan("coach").plan_id

    def test_save_workout_replaces_exercise_rows(self, store):
        store.import_plan("coach", _plan(), "a.json")
        store.save_workout(
            "coach",
            "2024-01-01",
            [
                SetLog(set_number=1, weight_kg=80, exercise_id="bench"),
                SetLog(set_number=2, weight_kg=80, exercise_id="bench"),
                SetLog(set_number=1, weight_kg=10, exercise_id="dips"),
            ],
            note="first",
        )
        session = store.save_workout(
            "coach",
            "2024-01-01",
            [SetLog(set_number=1, weight_kg=90, exercise_id="bench")],
            completed=True,
        )
        assert [(s.exercise_id, s.set_number, s.weight_kg) for s in session.set_logs] == [
            ("dips", 1, 10),
            ("bench", 1, 90),
        ]
        assert session.note == "first"
        assert session.completed

    def test_sessions_filtered_by_plan(self, store):
        first = store.import_plan("coach", _plan(), "a.json")
        store.upsert_set_log("coach", "2024-01-01", SetLog(set_number=1, weight_kg=80, exercise_id="bench"))
        store.import_plan("coach", _plan(), "b.json")
        store.upsert_set_log("coach", "2024-01-08", SetLog(set_number=1, weight_kg=82, exercise_id="bench"))
        assert [s.date for s in store.load_sessions("coach", plan_id=first.plan_id)] == ["2024-01-01"]
        assert len(store.load_sessions("coach")) == 2

    def test_text_weight_is_kept(self, store):
        store.upsert_set_log("ana", "2024-01-01", SetLog(set_number=1, weight_kg="82,5", exercise_index=0))
        assert store.get_session("ana", "2024-01-01").set_logs[0].weight_kg == "82,5"

    def test_no_temp_files_left_behind(self, store):
        store.upsert_set_log("ana", "2024-01-01", SetLog(set_number=1, weight_kg=50, exercise_index=0))
        leftovers = [p for p in store.user_dir("ana").iterdir() if p.name.endswith(".tmp")]
        assert leftovers == []

    def test_failed_write_removes_temp_file(self, store):
        target = store.user_dir("ana") / "sessions.jsonl"
        target.write_text("", encoding="utf-8")
        # a lone surrogate cannot be encoded as UTF-8
        with pytest.raises(UnicodeEncodeError):
            _atomic_write(target, "\ud800")
        assert [p.name for p in target.parent.iterdir() if p.name.endswith(".tmp")] == []
        assert target.read_text(encoding="utf-8") == ""

    def test_corrupt_line_raises_validation_error(self, store):
        path = store.user_dir("ana") / "sessions.jsonl"
        path.write_text("{not json}\n", encoding="utf-8")
        with pytest.raises(ValidationError):
            store.load_sessions("ana")


class TestMealsAndMeasures:
    """Meal selections and weekly measurements."""

    def test_meal_selection_upsert(self, store):
        store.save_meal_selection("ana", MealSelection(date="2024-01-01", plan_id="p", selected_option_index=1))
        store.save_meal_selection(
            "ana", MealSelection(date="2024-01-01", plan_id="p", selected_option_index=3, done=True)
        )
        selection = store.get_meal_selection("ana", "p", "2024-01-01")
        assert selection.selected_option_index == 3
        assert selection.done
        assert len(store.load_meal_selections("ana")) == 1
        assert store.get_meal_selection("ana", "other", "2024-01-01") is None

    def test_measure_normalized_to_monday(self, store):
        store.save_measure("ana", WeeklyMeasure(week_start="2024-01-04", weight_kg=70.0))
        store.save_measure("ana", WeeklyMeasure(week_start="2024-01-07", weight_kg=69.5))
        rows = store.list_measures("ana")
        assert [(r.week_start, r.weight_kg) for r in rows] == [("2024-01-01", 69.5)]
        assert store.get_measure("ana", "2024-01-02").weight_kg == 69.5


class TestBackup:
    """workout_backup_v1 export and restore."""

    def _backup(self, entries):
        return {"version": 1, "source": "workout_backup_v1", "exportedAt": "", "entries": entries}

    def test_restore_report(self, store):
        store.import_plan("coach", _plan(), "a.json", imported_at="2024-01-01T08:00:00")
        store.save_settings("coach", "2024-01-01", ["Mon", "Thu"])
        store.upsert_set_log("coach", "2024-01-08", SetLog(set_number=1, weight_kg=70, exercise_id="bench"))

        payload = self._backup([
            {
                "date": "2024-01-01",
                "note": "ok",
                "exercises": [
                    {
                        "exerciseIndex": 0,
                        "exerciseName": "Press banca",
                        "sets": [
                            {"setNumber": 1, "weightKg": 60},
                            {"setNumber": 1, "weightKg": 62.5},
                            {"setNumber": 0, "weightKg": 99},
                            {"setNumber": 2, "weightKg": "abc"},
                        ],
                    },
                    {
                        "exerciseIndex": 7,
                        "exerciseName": "  fondos ",
                        "sets": [{"setNumber": 1, "weightKg": 20, "repsDone": 8, "done": True}],
                    },
                    {"exerciseIndex": 9, "exerciseName": "Unknown", "sets": [{"setNumber": 1, "weightKg": 5}]},
                ],
            },
            {"date": "2024-01-08", "exercises": []},
            {"date": "2024-01-02", "exercises": []},
            {"date": "not-a-date", "exercises": []},
        ])
        report = store.restore_backup("coach", payload)
        assert report == {
            "totalEntries": 4,
            "insertedDays": 1,
            "skippedExistingDays": 1,
            "skippedInvalidDays": 2,
            "insertedSetLogs": 2,
        }

        restored = store.get_session("coach", "2024-01-01")
        assert restored.note == "ok"
        rows = {(s.exercise_id, s.set_number): s for s in restored.set_logs}
        assert rows[("bench", 1)].weight_kg == 62.5
        assert rows[("dips", 1)].reps_done == 8
        assert rows[("dips", 1)].done is True
        # Existing day untouched
        assert store.get_session("coach", "2024-01-08").set_logs[0].weight_kg == 70

    def test_restore_rejects_other_formats(self, store):
        store.import_plan("coach", _plan(), "a.json")
        with pytest.raises(ValidationError):
            store.restore_backup("coach", {"version": 2, "source": "workout_backup_v1", "entries": []})
        with pytest.raises(ValidationError):
            store.restore_backup("coach", [])

    def test_export_then_restore_into_fresh_user(self, store):
        store.import_plan("coach", _plan(), "a.json")
        store.save_settings("coach", "2024-01-01", ["Mon", "Thu"])
        store.save_workout(
            "coach",
            "2024-01-04",
            [SetLog(set_number=1, weight_kg=55, exercise_id="row", reps_done=10)],
            note="pull day",
        )
        document = json.loads(json.dumps(store.export_backup("coach")))
        assert document["source"] == "workout_backup_v1"
        assert document["entries"][0]["trainingDayLabel"] == "Pull"
        assert document["entries"][0]["exercises"][0]["sets"][0]["weightKg"] == 55

        store.add_user(UserAccount(user_id="copy", role="user"))
        store.import_plan("coach", _plan(), "a.json", target_user_id="copy")
        store.save_settings("copy", "2024-01-01", ["Mon", "Thu"])
        report = store.restore_backup("copy", document)
        assert report["insertedDays"] == 1
        assert report["insertedSetLogs"] == 1
        assert store.get_session("copy", "2024-01-04").set_logs[0].exercise_id == "row"

    def test_restore_without_active_plan_fails(self, store):
        with pytest.raises(ValidationError):
            store.restore_backup("ana", self._backup([]))

    def test_exercise_matched_twice_counts_rows_once(self, store):
        store.import_plan("coach", _plan(), "a.json")
        store.save_settings("coach", "2024-01-01", ["Mon", "Thu"])
        payload = self._backup([
            {
                "date": "2024-01-01",
                "exercises": [
                    {"exerciseIndex": 0, "exerciseName": "x", "sets": [{"setNumber": 1, "weightKg": 60}]},
                    {"exerciseIndex": 5, "exerciseName": "Press banca", "sets": [{"setNumber": 1, "weightKg": 65}]},
                ],
            },
        ])
        report = store.restore_backup("coach", payload)
        assert report["insertedSetLogs"] == 1
        rows = store.get_session("coach", "2024-01-01").set_logs
        assert [(s.exercise_id, s.weight_kg) for s in rows] == [("bench", 65)]
