"""
File-backed storage for fitplan.

The only component touching persistence.  Layout under the data directory:

    users.json                      user accounts and roles
    users/<user_id>/plans.json      imported plans (one active)
    users/<user_id>/settings.json   calendar settings
    users/<user_id>/sessions.jsonl  one workout session per date
    users/<user_id>/meals.jsonl     one meal selection per (plan, date)
    users/<user_id>/measures.jsonl  one measurement row per week

Every write goes to a temporary file that then replaces the target,
so a file is always either the old or the new version.
"""

import json
import math
from datetime import datetime
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any, Callable, Iterable, TypeVar

from ..core.calendar import auto_training_weekdays, today_iso, week_start
from ..core.config import BACKUP_SOURCE, BACKUP_VERSION, ROLES
from ..core.engine.config_loader import default_data_dir, load_app_config
from ..core.models import (
    MealSelection,
    NormalizedPlan,
    PlanRecord,
    SetLog,
    Settings,
    UserAccount,
    WeeklyMeasure,
    WorkoutSession,
)
from ..core.progress import parse_weight
from ..core.selector import locate_training_day
from .serializers import (
    ValidationError,
    dict_to_meal_selection,
    dict_to_measure,
    dict_to_plan_record,
    dict_to_session,
    dict_to_settings,
    dict_to_user,
    meal_selection_to_dict,
    measure_to_dict,
    normalize_token,
    parse_backup_payload,
    plan_record_to_dict,
    session_to_dict,
    settings_to_dict,
    to_json_line,
    user_to_dict,
    validate_date,
    validate_training_days,
)

T = TypeVar("T")


class PermissionDeniedError(Exception):
    """Raised when a non-admin user attempts an admin-only action."""

    pass


class UserNotFoundError(FileNotFoundError):
    """Raised when a user id is not registered."""

    pass


def _atomic_write(path: Path, text: str) -> None:
    """Replace ``path`` with ``text`` in one step."""
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path: Path | None = None
    try:
        with NamedTemporaryFile(
            "w", dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", delete=False, encoding="utf-8"
        ) as tmp:
            temp_path = Path(tmp.name)
            tmp.write(text)
        temp_path.replace(path)
    except BaseException:
        if temp_path is not None:
            temp_path.unlink(missing_ok=True)
        raise


class FitplanStore:
    """
    Manages all persisted fitplan data for every user.

    Natural keys:
      session      (user, date)
      set log      (user, date, exercise identity, set number)
      meal choice  (user, plan, date)
      measurement  (user, week start)
    """

    def __init__(self, data_dir: str | Path):
        """
        Initialize the store.

        Args:
            data_dir: Root data directory
        """
        self.data_dir = Path(data_dir)
        self.users_path = self.data_dir / "users.json"

    def exists(self) -> bool:
        """Check if the store has been initialized."""
        return self.users_path.exists()

    def init(self) -> None:
        """Create the data directory and an empty user registry if missing."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        if not self.users_path.exists():
            _atomic_write(self.users_path, "[]")

    # ------------------------------------------------------------------
    # generic file helpers
    # ------------------------------------------------------------------

    def user_dir(self, user_id: str) -> Path:
        return self.data_dir / "users" / user_id

    def _read_json(self, path: Path, default: Any) -> Any:
        if not path.exists():
            return default
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Error parsing {path}: {e}") from e

    def _write_json(self, path: Path, data: Any) -> None:
        _atomic_write(path, json.dumps(data, indent=2, ensure_ascii=False))

    def _read_jsonl(self, path: Path, convert: Callable[[dict[str, Any]], T]) -> list[T]:
        if not path.exists():
            return []
        records: list[T] = []
        with open(path, "r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    records.append(convert(json.loads(line)))
                except (json.JSONDecodeError, ValidationError, KeyError, ValueError) as e:
                    raise ValidationError(
                        f"Error parsing line {line_num} in {path}: {e}"
                    ) from e
        return records

    def _write_jsonl(self, path: Path, rows: Iterable[dict[str, Any]]) -> None:
        _atomic_write(path, "".join(to_json_line(r) + "\n" for r in rows))

    # ------------------------------------------------------------------
    # users
    # ------------------------------------------------------------------

    def load_users(self) -> list[UserAccount]:
        """All registered users."""
        return [dict_to_user(d) for d in self._read_json(self.users_path, [])]

    def get_user(self, user_id: str) -> UserAccount:
        """
        Look up a user.

        Raises:
            UserNotFoundError: If the user is not registered
        """
        for user in self.load_users():
            if user.user_id == user_id:
                return user
        raise UserNotFoundError(f"User not found: {user_id}. Run 'add-user' first.")

    def add_user(self, user: UserAccount) -> None:
        """Register a user, or update name/role of an existing one."""
        self.init()
        users = [u for u in self.load_users() if u.user_id != user.user_id]
        users.append(user)
        self._write_json(self.users_path, [user_to_dict(u) for u in users])
        self.user_dir(user.user_id).mkdir(parents=True, exist_ok=True)

    def list_assignable_users(self) -> list[UserAccount]:
        """Users ordered by role (admins first), then id."""
        return sorted(self.load_users(), key=lambda u: (ROLES.index(u.role), u.user_id))

    # ------------------------------------------------------------------
    # plans
    # ------------------------------------------------------------------

    def _plans_path(self, user_id: str) -> Path:
        return self.user_dir(user_id) / "plans.json"

    def load_plans(self, user_id: str) -> list[PlanRecord]:
        """All plans of a user in import order."""
        self.get_user(user_id)
        raw = self._read_json(self._plans_path(user_id), [])
        try:
            return [dict_to_plan_record(d) for d in raw]
        except KeyError as e:
            raise ValidationError(f"Invalid plan record in {self._plans_path(user_id)}: {e}") from e

    def get_active_plan(self, user_id: str) -> PlanRecord | None:
        """The user's active plan, or None when no plan was ever assigned."""
        for record in reversed(self.load_plans(user_id)):
            if record.is_active:
                return record
        return None

    def plan_history(self, user_id: str) -> list[PlanRecord]:
        """All plans, newest import first."""
        return list(reversed(self.load_plans(user_id)))

    def import_plan(
        self,
        actor_id: str,
        plan: NormalizedPlan,
        source_file_name: str,
        target_user_id: str | None = None,
        imported_at: str | None = None,
    ) -> PlanRecord:
        """
        Store a plan as the target user's active plan.

        The previous active plan stays as read-only history.

        Args:
            actor_id: User performing the import; must be an admin
            plan: Validated normalized plan
            source_file_name: Name of the imported file
            target_user_id: User receiving the plan (default: the actor)
            imported_at: ISO timestamp (default: now)

        Raises:
            PermissionDeniedError: If the actor is not an admin
            UserNotFoundError: If actor or target is not registered
            ValidationError: If source_file_name is empty
        """
        actor = self.get_user(actor_id)
        if not actor.is_admin:
            raise PermissionDeniedError(f"User {actor_id} is not allowed to import plans.")
        target_id = target_user_id or actor_id
        self.get_user(target_id)

        name = source_file_name.strip()
        if not name:
            raise ValidationError("sourceFileName is required.")

        stamp = imported_at or plan.imported_at or datetime.now().isoformat(timespec="seconds")
        records = self.load_plans(target_id)
        for record in records:
            record.is_active = False

        stored_plan = NormalizedPlan(
            training_days=plan.training_days,
            nutrition_days=plan.nutrition_days,
            source_file_name=name,
            imported_at=stamp,
        )
        new_record = PlanRecord(
            plan_id=f"plan-{len(records) + 1}",
            source_file_name=name,
            imported_at=stamp,
            is_active=True,
            plan=stored_plan,
            assigned_by=actor_id if target_id != actor_id else None,
        )
        records.append(new_record)
        self._write_json(self._plans_path(target_id), [plan_record_to_dict(r) for r in records])
        return new_record

    # ------------------------------------------------------------------
    # settings
    # ------------------------------------------------------------------

    def _settings_path(self, user_id: str) -> Path:
        return self.user_dir(user_id) / "settings.json"

    def default_settings(self, user_id: str) -> Settings:
        """
        Settings for a user who never saved any.

        Training days: first N weekdays from Monday (N = training days of the
        active plan).  Nutrition start: Monday of the plan's import week, or
        of the current week without a plan.
        """
        active = self.get_active_plan(user_id)
        if active is None:
            return Settings(nutrition_start_date=week_start(today_iso()))
        anchor = active.imported_at[:10]
        try:
            validate_date(anchor)
        except ValidationError:
            anchor = today_iso()
        return Settings(
            nutrition_start_date=week_start(anchor),
            training_days=auto_training_weekdays(len(active.plan.training_days)),
        )

    def load_settings(self, user_id: str) -> Settings:
        """Settings of a user; defaults are created and persisted on first access."""
        self.get_user(user_id)
        path = self._settings_path(user_id)
        if path.exists():
            return dict_to_settings(self._read_json(path, {}))
        settings = self.default_settings(user_id)
        self._write_json(path, settings_to_dict(settings))
        return settings

    def save_settings(
        self,
        user_id: str,
        nutrition_start_date: str,
        training_days: list[str],
    ) -> Settings:
        """
        Validate and persist settings.

        Raises:
            ValidationError: If the date is invalid or no valid weekday is given
        """
        self.get_user(user_id)
        validate_date(nutrition_start_date)
        days = validate_training_days(training_days)
        settings = Settings(nutrition_start_date=nutrition_start_date, training_days=days)
        self._write_json(self._settings_path(user_id), settings_to_dict(settings))
        return settings

    # ------------------------------------------------------------------
    # workout sessions
    # ------------------------------------------------------------------

    def _sessions_path(self, user_id: str) -> Path:
        return self.user_dir(user_id) / "sessions.jsonl"

    def load_sessions(self, user_id: str, plan_id: str | None = None) -> list[WorkoutSession]:
        """
        Workout sessions sorted by date.

        Args:
            user_id: User
            plan_id: Restrict to sessions logged against this plan
        """
        self.get_user(user_id)
        sessions = self._read_jsonl(self._sessions_path(user_id), dict_to_session)
        if plan_id is not None:
            sessions = [s for s in sessions if s.plan_id == plan_id]
        sessions.sort(key=lambda s: s.date)
        return sessions

    def get_session(self, user_id: str, date: str) -> WorkoutSession | None:
        for session in self.load_sessions(user_id):
            if session.date == date:
                return session
        return None

    def _write_sessions(self, user_id: str, sessions: list[WorkoutSession]) -> None:
        ordered = sorted(sessions, key=lambda s: s.date)
        self._write_jsonl(self._sessions_path(user_id), (session_to_dict(s) for s in ordered))

    def _modify_session(
        self,
        user_id: str,
        date: str,
        change: Callable[[WorkoutSession], None],
    ) -> WorkoutSession:
        """Load, create if missing, apply ``change`` and write back in one pass."""
        validate_date(date)
        active = self.get_active_plan(user_id)
        plan_id = active.plan_id if active is not None else ""

        sessions = self.load_sessions(user_id)
        target = next((s for s in sessions if s.date == date), None)
        if target is None:
            target = WorkoutSession(date=date, plan_id=plan_id)
            sessions.append(target)
        elif plan_id:
            target.plan_id = plan_id

        change(target)
        self._write_sessions(user_id, sessions)
        return target

    def save_session(
        self,
        user_id: str,
        date: str,
        note: str | None = None,
        completed: bool | None = None,
    ) -> WorkoutSession:
        """Create or update the session header (note / completed) for a date."""

        def _apply(session: WorkoutSession) -> None:
            if note is not None:
                session.note = note
            if completed is not None:
                session.completed = completed

        return self._modify_session(user_id, date, _apply)

    def upsert_set_log(self, user_id: str, date: str, set_log: SetLog) -> WorkoutSession:
        """Insert or overwrite one set row keyed by (date, exercise, set number)."""
        return self._modify_session(user_id, date, lambda s: s.upsert_set(set_log))

    def save_workout(
        self,
        user_id: str,
        date: str,
        set_logs: list[SetLog],
        note: str | None = None,
        completed: bool | None = None,
    ) -> WorkoutSession:
        """
        Save several exercises of a date at once.

        All stored rows of every exercise present in ``set_logs`` are
        replaced; other exercises of the session are kept.  Duplicate
        (exercise, set number) rows keep the last one.
        """
        keys = {s.exercise_key for s in set_logs}

        def _apply(session: WorkoutSession) -> None:
            session.set_logs = [s for s in session.set_logs if s.exercise_key not in keys]
            for set_log in set_logs:
                session.upsert_set(set_log)
            if note is not None:
                session.note = note
            if completed is not None:
                session.completed = completed

        return self._modify_session(user_id, date, _apply)

    # ------------------------------------------------------------------
    # meal selections
    # ------------------------------------------------------------------

    def _meals_path(self, user_id: str) -> Path:
        return self.user_dir(user_id) / "meals.jsonl"

    def load_meal_selections(self, user_id: str) -> list[MealSelection]:
        self.get_user(user_id)
        return self._read_jsonl(self._meals_path(user_id), dict_to_meal_selection)

    def get_meal_selection(self, user_id: str, plan_id: str, date: str) -> MealSelection | None:
        for selection in self.load_meal_selections(user_id):
            if selection.plan_id == plan_id and selection.date == date:
                return selection
        return None

    def save_meal_selection(self, user_id: str, selection: MealSelection) -> MealSelection:
        """Upsert keyed by (plan, date)."""
        rows = [
            s for s in self.load_meal_selections(user_id)
            if not (s.plan_id == selection.plan_id and s.date == selection.date)
        ]
        rows.append(selection)
        rows.sort(key=lambda s: (s.date, s.plan_id))
        self._write_jsonl(self._meals_path(user_id), (meal_selection_to_dict(s) for s in rows))
        return selection

    # ------------------------------------------------------------------
    # weekly measurements
    # ------------------------------------------------------------------

    def _measures_path(self, user_id: str) -> Path:
        return self.user_dir(user_id) / "measures.jsonl"

    def list_measures(self, user_id: str) -> list[WeeklyMeasure]:
        """All measurement rows ascending by week."""
        self.get_user(user_id)
        rows = self._read_jsonl(self._measures_path(user_id), dict_to_measure)
        rows.sort(key=lambda r: r.week_start)
        return rows

    def get_measure(self, user_id: str, any_date: str) -> WeeklyMeasure | None:
        monday = week_start(validate_date(any_date))
        for row in self.list_measures(user_id):
            if row.week_start == monday:
                return row
        return None

    def save_measure(self, user_id: str, measure: WeeklyMeasure) -> WeeklyMeasure:
        """Upsert keyed by week; the week start is normalized to its Monday."""
        measure.week_start = week_start(measure.week_start)
        rows = [r for r in self.list_measures(user_id) if r.week_start != measure.week_start]
        rows.append(measure)
        rows.sort(key=lambda r: r.week_start)
        self._write_jsonl(self._measures_path(user_id), (measure_to_dict(r) for r in rows))
        return measure

    # ------------------------------------------------------------------
    # workout backup
    # ------------------------------------------------------------------

    def export_backup(self, user_id: str) -> dict[str, Any]:
        """
        Export every workout session as a workout_backup_v1 document.

        Exercises are listed from the training day each date resolves to in
        the active plan; sessions on dates that no longer resolve keep their
        rows grouped by exercise identity.
        """
        active = self.get_active_plan(user_id)
        settings = self.load_settings(user_id)
        entries: list[dict[str, Any]] = []

        for session in self.load_sessions(user_id):
            located = (
                locate_training_day(active.plan, session.date, settings) if active else None
            )
            exercises: list[dict[str, Any]] = []
            label = ""
            if located is not None:
                day = located[1]
                label = day.label
                for i, exercise in enumerate(day.exercises):
                    rows = [
                        s for s in session.set_logs
                        if (s.exercise_id == exercise.id)
                        or (s.exercise_id is None and s.exercise_index == i)
                    ]
                    exercises.append(
                        {
                            "exerciseIndex": i,
                            "exerciseName": exercise.name,
                            "sets": [_backup_set(s) for s in sorted(rows, key=lambda r: r.set_number)],
                        }
                    )
            else:
                keys: list[str] = []
                for s in session.set_logs:
                    if s.exercise_key not in keys:
                        keys.append(s.exercise_key)
                for key in keys:
                    rows = session.sets_for(key)
                    exercises.append(
                        {
                            "exerciseIndex": rows[0].exercise_index if rows[0].exercise_index is not None else -1,
                            "exerciseName": rows[0].exercise_id or "",
                            "sets": [_backup_set(s) for s in rows],
                        }
                    )

            entries.append(
                {
                    "date": session.date,
                    "note": session.note or "",
                    "trainingDayLabel": label,
                    "exercises": exercises,
                }
            )

        return {
            "version": BACKUP_VERSION,
            "source": BACKUP_SOURCE,
            "exportedAt": datetime.now().isoformat(timespec="seconds"),
            "entries": entries,
        }

    def restore_backup(self, user_id: str, payload: Any) -> dict[str, int]:
        """
        Restore sessions from a workout_backup_v1 document.

        Dates that already have a session are left untouched.  Dates that are
        invalid or resolve to a rest day are skipped.  Exercises are matched
        by position, then by normalized name.

        Returns:
            Report with totalEntries, insertedDays, skippedExistingDays,
            skippedInvalidDays and insertedSetLogs

        Raises:
            ValidationError: If the payload is malformed or no plan is active
        """
        backup = parse_backup_payload(payload)
        active = self.get_active_plan(user_id)
        if active is None:
            raise ValidationError("No active plan to restore workouts into.")
        settings = self.load_settings(user_id)

        entries = sorted(backup["entries"], key=lambda e: e["date"])
        sessions = self.load_sessions(user_id)
        existing_dates = {s.date for s in sessions}

        report = {
            "totalEntries": len(entries),
            "insertedDays": 0,
            "skippedExistingDays": 0,
            "skippedInvalidDays": 0,
            "insertedSetLogs": 0,
        }

        for entry in entries:
            try:
                validate_date(entry["date"])
            except ValidationError:
                report["skippedInvalidDays"] += 1
                continue
            if entry["date"] in existing_dates:
                report["skippedExistingDays"] += 1
                continue

            located = locate_training_day(active.plan, entry["date"], settings)
            if located is None:
                report["skippedInvalidDays"] += 1
                continue
            day = located[1]
            by_index = {i: ex for i, ex in enumerate(day.exercises)}
            by_name = {normalize_token(ex.name): ex for ex in day.exercises}

            session = WorkoutSession(
                date=entry["date"],
                plan_id=active.plan_id,
                note=entry["note"],
            )
            for backup_ex in entry["exercises"]:
                matched = by_index.get(backup_ex["exerciseIndex"])
                if matched is None:
                    matched = by_name.get(normalize_token(backup_ex["exerciseName"]))
                if matched is None:
                    continue

                dedup: dict[int, dict[str, Any]] = {}
                for row in backup_ex["sets"]:
                    set_number = row["setNumber"]
                    if set_number is None or set_number <= 0:
                        continue
                    weight = row["weightKg"]
                    if weight is not None and not math.isfinite(weight):
                        continue
                    dedup[set_number] = row

                for set_number, row in dedup.items():
                    reps = row["repsDone"]
                    session.upsert_set(
                        SetLog(
                            set_number=set_number,
                            weight_kg=row["weightKg"],
                            exercise_id=matched.id,
                            reps_done=int(reps) if reps is not None and math.isfinite(reps) else None,
                            done=row["done"],
                        )
                    )

            report["insertedSetLogs"] += len(session.set_logs)
            sessions.append(session)
            existing_dates.add(session.date)
            report["insertedDays"] += 1

        if report["insertedDays"]:
            self._write_sessions(user_id, sessions)
        return report


def _backup_set(set_log: SetLog) -> dict[str, Any]:
    weight = set_log.weight_kg
    if isinstance(weight, str):
        weight = parse_weight(weight)
    return {
        "setNumber": set_log.set_number,
        "weightKg": weight,
        "repsDone": set_log.reps_done,
        "done": set_log.done,
    }


def get_default_data_dir() -> Path:
    """
    Get the default data directory.

    ``FITPLAN_HOME`` wins over ``storage.data_dir`` from the YAML config.

    Returns:
        Default data directory
    """
    return default_data_dir(load_app_config())
