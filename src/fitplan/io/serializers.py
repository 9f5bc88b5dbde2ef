"""
JSON serialization for fitplan data models.

Handles conversion between dataclasses and JSON-compatible dicts and
validates raw data once at the persistence boundary, so the engine only
ever sees well-formed models.
"""

import json
import math
import re
import unicodedata
from datetime import datetime
from typing import Any

from ..core.config import BACKUP_SOURCE, BACKUP_VERSION, MEAL_TYPES, WEEKDAYS
from ..core.models import (
    BlockProgress,
    DayResolution,
    Exercise,
    ExerciseProgress,
    MealSelection,
    MeasureTrend,
    MenuOption,
    NormalizedPlan,
    NutritionDay,
    NutritionOption,
    PlanRecord,
    SetLog,
    Settings,
    TrainingDay,
    UserAccount,
    WeeklyMeasure,
    WorkoutSession,
)


class ValidationError(Exception):
    """Raised when data validation fails."""

    pass


def validate_date(date_str: str) -> str:
    """
    Validate an ISO date string.

    Args:
        date_str: Date string to validate

    Returns:
        The same YYYY-MM-DD string

    Raises:
        ValidationError: If date format is invalid
    """
    if not isinstance(date_str, str) or not re.match(r"^\d{4}-\d{2}-\d{2}$", date_str):
        raise ValidationError(f"Invalid date format: {date_str}. Expected YYYY-MM-DD")

    try:
        datetime.strptime(date_str, "%Y-%m-%d")
    except ValueError as e:
        raise ValidationError(f"Invalid date: {date_str}") from e

    return date_str


def validate_weekday(day: str) -> str:
    if day not in WEEKDAYS:
        raise ValidationError(f"Invalid weekday: {day!r}. Must be one of {WEEKDAYS}")
    return day


def validate_training_days(days: list[str]) -> tuple[str, ...]:
    """
    Validate a user-entered training weekday set.

    Returns:
        Weekdays sorted Monday-first, de-duplicated

    Raises:
        ValidationError: If empty or holding unknown symbols
    """
    if not days:
        raise ValidationError("trainingDays must contain at least one day.")
    for day in days:
        validate_weekday(day)
    unique = set(days)
    return tuple(d for d in WEEKDAYS if d in unique)


def parse_weekday_list(raw: str) -> list[str]:
    """Split "Tue, wed,SAT" into canonical symbols ["Tue", "Wed", "Sat"]."""
    return [p.strip().capitalize() for p in raw.split(",") if p.strip()]


def _optional_int(value: Any, name: str) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{name} must be a number, got {value!r}") from e
    if not math.isfinite(number):
        return None
    return int(number)


def _optional_float(value: Any, name: str) -> float | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{name} must be a number, got {value!r}") from e
    if not math.isfinite(number):
        raise ValidationError(f"{name} must be finite, got {value!r}")
    return number


# =============================================================================
# PLAN
# =============================================================================


def _require_mapping(value: Any, what: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise ValidationError(f"{what} must be an object, got {value!r}")
    return value


def _require_list(value: Any, what: str) -> list[Any]:
    if not isinstance(value, list):
        raise ValidationError(f"{what} must be a list, got {value!r}")
    return value


def dict_to_exercise(data: dict[str, Any], fallback_id: str) -> Exercise:
    """
    Convert dict to Exercise.

    A missing id falls back to ``fallback_id`` so plans exported without
    ids stay importable.
    """
    data = _require_mapping(data, "Exercise")
    name = str(data.get("name", "")).strip()
    if not name:
        raise ValidationError("Exercise name cannot be empty")
    series = _optional_int(data.get("series"), "series")
    rest = _optional_int(data.get("restSeconds", data.get("rest_seconds")), "restSeconds")
    try:
        return Exercise(
            id=str(data.get("id") or fallback_id),
            name=name,
            series=series if series and series > 0 else None,
            reps=str(data["reps"]) if data.get("reps") not in (None, "") else None,
            rest_seconds=rest if rest is not None and rest >= 0 else None,
            notes=str(data["notes"]) if data.get("notes") not in (None, "") else None,
        )
    except ValueError as e:
        raise ValidationError(str(e)) from e


def exercise_to_dict(exercise: Exercise) -> dict[str, Any]:
    return {
        "id": exercise.id,
        "name": exercise.name,
        "series": exercise.series,
        "reps": exercise.reps,
        "restSeconds": exercise.rest_seconds,
        "notes": exercise.notes,
    }


def dict_to_training_day(data: dict[str, Any], position: int) -> TrainingDay:
    """Convert dict to TrainingDay; a missing dayIndex defaults to position + 1."""
    data = _require_mapping(data, "Training day")
    day_index = _optional_int(data.get("dayIndex", data.get("day_index")), "dayIndex")
    if day_index is None or day_index <= 0:
        day_index = position + 1
    raw_exercises = data.get("exercises") or []
    if not isinstance(raw_exercises, list):
        raise ValidationError("training day exercises must be a list")
    exercises = tuple(
        dict_to_exercise(ex, fallback_id=f"d{position + 1}-e{i + 1}")
        for i, ex in enumerate(raw_exercises)
    )
    return TrainingDay(
        day_index=day_index,
        label=str(data.get("label", "")).strip(),
        exercises=exercises,
    )


def training_day_to_dict(day: TrainingDay) -> dict[str, Any]:
    return {
        "dayIndex": day.day_index,
        "label": day.label,
        "exercises": [exercise_to_dict(e) for e in day.exercises],
    }


def dict_to_nutrition_day(data: dict[str, Any]) -> NutritionDay:
    data = _require_mapping(data, "Nutrition day")
    week_index = _optional_int(data.get("weekIndex", data.get("week_index")), "weekIndex")
    if week_index is None or week_index <= 0:
        raise ValidationError(f"weekIndex must be a positive integer, got {week_index!r}")
    day_of_week = validate_weekday(str(data.get("dayOfWeek", data.get("day_of_week", ""))))

    raw_meals = data.get("meals") or {}
    if not isinstance(raw_meals, dict):
        raise ValidationError("meals must be a mapping of meal type to options")
    meals: dict[str, tuple[MenuOption, ...]] = {}
    for meal_type, options in raw_meals.items():
        if meal_type not in MEAL_TYPES:
            raise ValidationError(f"Invalid meal type: {meal_type!r}. Must be one of {MEAL_TYPES}")
        menu: list[MenuOption] = []
        for i, opt in enumerate(_require_list(options or [], f"{meal_type} options")):
            opt = _require_mapping(opt, f"{meal_type} option")
            menu.append(
                MenuOption(
                    option_id=str(opt.get("optionId", f"{week_index}-{day_of_week}-{meal_type}-{i + 1}")),
                    title=str(opt.get("title", meal_type)),
                    lines=tuple(str(line) for line in _require_list(opt.get("lines") or [], "Menu lines")),
                )
            )
        meals[meal_type] = tuple(menu)
    return NutritionDay(week_index=week_index, day_of_week=day_of_week, meals=meals)  # type: ignore[arg-type]


def nutrition_day_to_dict(day: NutritionDay) -> dict[str, Any]:
    return {
        "weekIndex": day.week_index,
        "dayOfWeek": day.day_of_week,
        "meals": {
            meal_type: [
                {"optionId": o.option_id, "title": o.title, "lines": list(o.lines)}
                for o in options
            ]
            for meal_type, options in day.meals.items()
        },
    }


def dict_to_plan(data: dict[str, Any]) -> NormalizedPlan:
    """
    Convert a normalized-plan dict (import file or stored record) to NormalizedPlan.

    Accepts ``{"training": {"days": [...]}, "nutrition": {"days": [...]}}``
    or the flat ``trainingDays`` / ``nutritionDays`` keys.

    Raises:
        ValidationError: If the structure is invalid
    """
    if not isinstance(data, dict):
        raise ValidationError("Plan must be a JSON object")

    training = data.get("training")
    raw_training = training.get("days") if isinstance(training, dict) else data.get("trainingDays")
    nutrition = data.get("nutrition")
    raw_nutrition = nutrition.get("days") if isinstance(nutrition, dict) else data.get("nutritionDays")

    if raw_training is None and raw_nutrition is None:
        raise ValidationError("Plan has neither training days nor nutrition days")
    if not isinstance(raw_training or [], list) or not isinstance(raw_nutrition or [], list):
        raise ValidationError("training/nutrition days must be lists")

    training_days = tuple(
        dict_to_training_day(d, i) for i, d in enumerate(raw_training or [])
    )
    nutrition_days = tuple(dict_to_nutrition_day(d) for d in raw_nutrition or [])

    try:
        return NormalizedPlan(
            training_days=training_days,
            nutrition_days=nutrition_days,
            source_file_name=str(data.get("sourceFileName", "")),
            imported_at=str(data.get("importedAt", data.get("importedAtISO", ""))),
        )
    except ValueError as e:
        raise ValidationError(str(e)) from e


def plan_to_dict(plan: NormalizedPlan) -> dict[str, Any]:
    return {
        "sourceFileName": plan.source_file_name,
        "importedAt": plan.imported_at,
        "training": {"days": [training_day_to_dict(d) for d in plan.training_days]},
        "nutrition": {
            "cycleWeeks": plan.cycle_weeks,
            "days": [nutrition_day_to_dict(d) for d in plan.nutrition_days],
        },
    }


def plan_record_to_dict(record: PlanRecord) -> dict[str, Any]:
    return {
        "planId": record.plan_id,
        "sourceFileName": record.source_file_name,
        "importedAt": record.imported_at,
        "isActive": record.is_active,
        "assignedBy": record.assigned_by,
        "plan": plan_to_dict(record.plan),
    }


def dict_to_plan_record(data: dict[str, Any]) -> PlanRecord:
    return PlanRecord(
        plan_id=str(data["planId"]),
        source_file_name=str(data.get("sourceFileName", "")),
        imported_at=str(data.get("importedAt", "")),
        is_active=bool(data.get("isActive", False)),
        plan=dict_to_plan(data["plan"]),
        assigned_by=data.get("assignedBy"),
    )


# =============================================================================
# USER STATE
# =============================================================================


def settings_to_dict(settings: Settings) -> dict[str, Any]:
    return {
        "nutritionStartDate": settings.nutrition_start_date,
        "trainingDays": list(settings.training_days),
    }


def dict_to_settings(data: dict[str, Any]) -> Settings:
    start = validate_date(str(data.get("nutritionStartDate", "")))
    days = data.get("trainingDays") or []
    if not isinstance(days, list):
        raise ValidationError("trainingDays must be a list")
    for day in days:
        validate_weekday(day)
    return Settings(nutrition_start_date=start, training_days=tuple(days))


def user_to_dict(user: UserAccount) -> dict[str, Any]:
    return {"userId": user.user_id, "role": user.role, "name": user.name}


def dict_to_user(data: dict[str, Any]) -> UserAccount:
    try:
        return UserAccount(
            user_id=str(data["userId"]),
            role=data.get("role", "user"),
            name=str(data.get("name", "")),
        )
    except (KeyError, ValueError) as e:
        raise ValidationError(f"Invalid user record: {e}") from e


def set_log_to_dict(set_log: SetLog) -> dict[str, Any]:
    d: dict[str, Any] = {"setNumber": set_log.set_number, "weightKg": set_log.weight_kg}
    if set_log.exercise_id is not None:
        d["exerciseId"] = set_log.exercise_id
    if set_log.exercise_index is not None:
        d["exerciseIndex"] = set_log.exercise_index
    if set_log.reps_done is not None:
        d["repsDone"] = set_log.reps_done
    if set_log.done is not None:
        d["done"] = set_log.done
    return d


def dict_to_set_log(data: dict[str, Any]) -> SetLog:
    """
    Convert dict to SetLog.

    ``weightKg`` is kept as stored (number, text or null); interpretation
    belongs to the progress engine.
    """
    set_number = _optional_int(data.get("setNumber"), "setNumber")
    if set_number is None or set_number <= 0:
        raise ValidationError(f"setNumber must be a positive integer, got {data.get('setNumber')!r}")
    weight = data.get("weightKg")
    if weight is not None and not isinstance(weight, (int, float, str)):
        raise ValidationError(f"weightKg must be a number, text or null, got {weight!r}")
    exercise_index = _optional_int(data.get("exerciseIndex"), "exerciseIndex")
    try:
        return SetLog(
            set_number=set_number,
            weight_kg=weight,
            exercise_id=data.get("exerciseId"),
            exercise_index=exercise_index,
            reps_done=_optional_int(data.get("repsDone"), "repsDone"),
            done=data.get("done") if isinstance(data.get("done"), bool) else None,
        )
    except ValueError as e:
        raise ValidationError(str(e)) from e


def session_to_dict(session: WorkoutSession) -> dict[str, Any]:
    return {
        "date": session.date,
        "planId": session.plan_id,
        "note": session.note,
        "completed": session.completed,
        "setLogs": [set_log_to_dict(s) for s in session.set_logs],
    }


def dict_to_session(data: dict[str, Any]) -> WorkoutSession:
    validate_date(data.get("date", ""))
    return WorkoutSession(
        date=data["date"],
        plan_id=str(data.get("planId", "")),
        note=data.get("note"),
        completed=bool(data.get("completed", False)),
        set_logs=[dict_to_set_log(s) for s in data.get("setLogs", [])],
    )


def meal_selection_to_dict(selection: MealSelection) -> dict[str, Any]:
    return {
        "date": selection.date,
        "planId": selection.plan_id,
        "selectedOptionIndex": selection.selected_option_index,
        "done": selection.done,
        "note": selection.note,
    }


def dict_to_meal_selection(data: dict[str, Any]) -> MealSelection:
    validate_date(data.get("date", ""))
    try:
        return MealSelection(
            date=data["date"],
            plan_id=str(data.get("planId", "")),
            selected_option_index=_optional_int(data.get("selectedOptionIndex"), "selectedOptionIndex"),
            done=bool(data.get("done", False)),
            note=data.get("note"),
        )
    except ValueError as e:
        raise ValidationError(str(e)) from e


_MEASURE_KEYS: dict[str, str] = {
    "weight_kg": "weightKg",
    "neck_cm": "neckCm",
    "arm_cm": "armCm",
    "waist_cm": "waistCm",
    "abdomen_cm": "abdomenCm",
    "hip_cm": "hipCm",
    "thigh_cm": "thighCm",
}


def measure_to_dict(measure: WeeklyMeasure) -> dict[str, Any]:
    d: dict[str, Any] = {"weekStart": measure.week_start}
    for attr, key in _MEASURE_KEYS.items():
        d[key] = getattr(measure, attr)
    d["note"] = measure.note
    return d


def dict_to_measure(data: dict[str, Any]) -> WeeklyMeasure:
    validate_date(data.get("weekStart", ""))
    values = {attr: _optional_float(data.get(key), key) for attr, key in _MEASURE_KEYS.items()}
    return WeeklyMeasure(week_start=data["weekStart"], note=data.get("note"), **values)


def to_json_line(data: dict[str, Any]) -> str:
    """Serialize a record to a single compact JSON line."""
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False)


# =============================================================================
# COMPACT SET ENTRY
# =============================================================================


def parse_compact_sets(spec: str) -> tuple[str, list[tuple[float | None, int | None]]]:
    """
    Parse a compact per-exercise set string.

    Format: ``EXERCISE: W[xR], W[xR], ...`` where EXERCISE is a 1-based
    exercise number or an exercise id, W a weight in kg (dot decimal, "-"
    for none) and R optional reps done.  Sets are numbered from 1.

    Examples:
        "1: 80x8, 82.5x6, 85"   → exercise 1, three sets
        "bench: -x12, 20x10"    → exercise "bench", first set without weight

    Returns:
        (exercise reference, [(weight, reps), ...])

    Raises:
        ValidationError: If the string does not follow the format
    """
    ref, sep, body = spec.partition(":")
    ref = ref.strip()
    if not sep or not ref:
        raise ValidationError(f"Invalid sets '{spec}'. Expected 'EXERCISE: W[xR], ...'")

    sets: list[tuple[float | None, int | None]] = []
    for item in (p.strip() for p in body.split(",")):
        if not item:
            continue
        m = re.fullmatch(r"(-|\d+(?:\.\d+)?)\s*(?:[xX×]\s*(\d+))?", item)
        if m is None:
            raise ValidationError(f"Invalid set '{item}' in '{spec}'. Expected W or WxR")
        weight = None if m.group(1) == "-" else float(m.group(1))
        reps = int(m.group(2)) if m.group(2) is not None else None
        sets.append((weight, reps))

    if not sets:
        raise ValidationError(f"No sets given for exercise '{ref}'")
    return ref, sets


# =============================================================================
# WORKOUT BACKUP (workout_backup_v1)
# =============================================================================


def normalize_token(value: str) -> str:
    """Accent-, case- and whitespace-insensitive form of an exercise name."""
    decomposed = unicodedata.normalize("NFD", value)
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    return re.sub(r"\s+", " ", stripped.upper()).strip()


def _lenient_float(raw: Any) -> float | None:
    """Number or None; unparseable text becomes NaN so the restorer can drop it."""
    if raw is None or isinstance(raw, bool):
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        return float("nan")


def _whole_number(raw: Any) -> int | None:
    """Integral value of raw, or None."""
    value = _lenient_float(raw)
    if value is None or not math.isfinite(value) or value != int(value):
        return None
    return int(value)


def parse_backup_payload(value: Any) -> dict[str, Any]:
    """
    Validate and normalize a workout backup payload.

    Entries that are not objects are dropped; entry fields are coerced to
    their expected types.  Date validity is checked later by the restorer
    so that invalid entries are counted in its report.

    Raises:
        ValidationError: If the payload is not a workout_backup_v1 document
    """
    if not isinstance(value, dict):
        raise ValidationError("Invalid backup: expected a JSON object.")
    if value.get("version") != BACKUP_VERSION or value.get("source") != BACKUP_SOURCE:
        raise ValidationError(f"Unsupported backup format. Expected {BACKUP_SOURCE}.")
    if not isinstance(value.get("entries"), list):
        raise ValidationError("Backup field 'entries' is required.")

    entries: list[dict[str, Any]] = []
    for item in value["entries"]:
        if not isinstance(item, dict):
            continue
        exercises = []
        for ex in item.get("exercises") or []:
            if not isinstance(ex, dict):
                continue
            sets = []
            for s in ex.get("sets") or []:
                if not isinstance(s, dict):
                    continue
                sets.append(
                    {
                        "setNumber": _whole_number(s.get("setNumber")),
                        "weightKg": _lenient_float(s.get("weightKg")),
                        "repsDone": _lenient_float(s.get("repsDone")),
                        "done": s.get("done") if isinstance(s.get("done"), bool) else None,
                    }
                )
            exercises.append(
                {
                    "exerciseIndex": _whole_number(ex.get("exerciseIndex")),
                    "exerciseName": str(ex.get("exerciseName", "")),
                    "sets": sets,
                }
            )
        entries.append(
            {
                "date": str(item.get("date", item.get("dateISO", ""))),
                "note": str(item.get("note") or ""),
                "trainingDayLabel": str(item.get("trainingDayLabel", "")),
                "exercises": exercises,
            }
        )

    return {
        "version": BACKUP_VERSION,
        "source": BACKUP_SOURCE,
        "exportedAt": str(value.get("exportedAt", value.get("exportedAtISO", ""))),
        "entries": entries,
    }


# =============================================================================
# DERIVED RESULTS (--json output)
# =============================================================================


def day_resolution_to_dict(resolution: DayResolution) -> dict[str, Any]:
    return {
        "date": resolution.date,
        "dayOfWeek": resolution.day_of_week,
        "nutritionWeek": resolution.nutrition_week,
        "isRestDay": resolution.is_rest_day,
        "trainingPosition": resolution.training_position,
        "trainingDay": (
            training_day_to_dict(resolution.training_day)
            if resolution.training_day is not None
            else None
        ),
        "nutritionDay": (
            nutrition_day_to_dict(resolution.nutrition_day)
            if resolution.nutrition_day is not None
            else None
        ),
    }


def nutrition_option_to_dict(option: NutritionOption) -> dict[str, Any]:
    return {
        "optionIndex": option.option_index,
        "optionId": option.option_id,
        "label": option.label,
        "weekIndex": option.week_index,
        "dayOfWeek": option.day_of_week,
        "meals": [{"type": meal_type, "lines": list(lines)} for meal_type, lines in option.meals],
    }


def exercise_progress_to_dict(progress: ExerciseProgress) -> dict[str, Any]:
    return {
        "exerciseId": progress.exercise_id,
        "exerciseIndex": progress.exercise_index,
        "exerciseName": progress.exercise_name,
        "points": [{"date": p.date, "weightKg": p.weight_kg} for p in progress.points],
        "weeklyDeltaPct": progress.weekly_delta_pct,
        "monthlyDeltaPct": progress.monthly_delta_pct,
        "weeklyDeltaKg": progress.weekly_delta_kg,
        "monthlyDeltaKg": progress.monthly_delta_kg,
    }


def block_progress_to_dict(block: BlockProgress, include_exercises: bool = True) -> dict[str, Any]:
    result: dict[str, Any] = {
        "blockId": block.block_id,
        "dayIndex": block.day_index,
        "position": block.position,
        "tabLabel": block.tab_label,
        "name": block.name,
        "fullLabel": block.full_label,
        "weeklyAvgPct": block.weekly_avg_pct,
        "monthlyAvgPct": block.monthly_avg_pct,
        "weeklyTotalKg": block.weekly_total_kg,
        "monthlyTotalKg": block.monthly_total_kg,
    }
    if include_exercises:
        result["exercises"] = [exercise_progress_to_dict(e) for e in block.exercises]
    return result


def measure_trend_to_dict(trend: MeasureTrend) -> dict[str, Any]:
    return {
        "metric": _MEASURE_KEYS[trend.metric],
        "label": trend.label,
        "unit": trend.unit,
        "points": [{"weekStart": week, "value": value} for week, value in trend.points],
        "weeklyDelta": trend.weekly_delta,
        "monthlyDelta": trend.monthly_delta,
    }
