"""
Data models for fitplan.

Plan structure (NormalizedPlan and its parts) is immutable: it is produced
once per import and only ever read by the engine.  Settings, sessions and
measurement rows are mutable records owned by the store.  Progress results
are derived on read and never persisted.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Mapping

from .config import DEFAULT_CYCLE_WEEKS, MEAL_TYPES, ROLES, WEEKDAYS

Weekday = Literal["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
MealType = Literal["BREAKFAST", "MID_MORNING", "LUNCH", "SNACK", "DINNER", "DESSERT"]
Role = Literal["admin", "user"]


def _validate_date(date_str: str) -> None:
    """Validate date string is ISO format YYYY-MM-DD."""
    if not isinstance(date_str, str) or not re.match(r"^\d{4}-\d{2}-\d{2}$", date_str):
        raise ValueError(f"Invalid date format: {date_str}. Expected YYYY-MM-DD")
    try:
        datetime.strptime(date_str, "%Y-%m-%d")
    except ValueError as e:
        raise ValueError(f"Invalid date: {date_str}") from e


# =============================================================================
# PLAN STRUCTURE
# =============================================================================


@dataclass(frozen=True)
class Exercise:
    """One exercise prescription inside a training day."""

    id: str
    name: str
    series: int | None = None
    reps: str | None = None  # free text, e.g. "8-10" or "AMRAP"
    rest_seconds: int | None = None
    notes: str | None = None

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Exercise.id must be non-empty")
        if self.series is not None and self.series <= 0:
            raise ValueError("Exercise.series must be positive")
        if self.rest_seconds is not None and self.rest_seconds < 0:
            raise ValueError("Exercise.rest_seconds must be non-negative")


@dataclass(frozen=True)
class TrainingDay:
    """
    One workout definition (a training block).

    Position in NormalizedPlan.training_days is the primary identity;
    ``day_index`` is a 1-based labelling hint that may have gaps.
    """

    day_index: int
    label: str
    exercises: tuple[Exercise, ...] = ()

    def __post_init__(self) -> None:
        if self.day_index <= 0:
            raise ValueError("TrainingDay.day_index must be positive")


@dataclass(frozen=True)
class MenuOption:
    """One selectable menu for a meal."""

    option_id: str
    title: str
    lines: tuple[str, ...] = ()


@dataclass(frozen=True)
class NutritionDay:
    """Meals for one (cycle week, weekday) slot."""

    week_index: int
    day_of_week: Weekday
    meals: Mapping[str, tuple[MenuOption, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.week_index <= 0:
            raise ValueError("NutritionDay.week_index must be positive")
        if self.day_of_week not in WEEKDAYS:
            raise ValueError(f"Invalid day_of_week: {self.day_of_week!r}")
        for meal_type in self.meals:
            if meal_type not in MEAL_TYPES:
                raise ValueError(f"Invalid meal type: {meal_type!r}")


@dataclass(frozen=True)
class NormalizedPlan:
    """
    Immutable snapshot of an imported plan.

    ``training_days`` order is significant (see TrainingDay).  At most one
    nutrition day exists per (week_index, day_of_week).
    """

    training_days: tuple[TrainingDay, ...] = ()
    nutrition_days: tuple[NutritionDay, ...] = ()
    source_file_name: str = ""
    imported_at: str = ""  # ISO timestamp

    def __post_init__(self) -> None:
        seen: set[tuple[int, str]] = set()
        for day in self.nutrition_days:
            key = (day.week_index, day.day_of_week)
            if key in seen:
                raise ValueError(
                    f"Duplicate nutrition day for week {day.week_index}, {day.day_of_week}"
                )
            seen.add(key)

    @property
    def cycle_weeks(self) -> int:
        """Nutrition cycle length: the highest week index observed."""
        return max((d.week_index for d in self.nutrition_days), default=DEFAULT_CYCLE_WEEKS)


# =============================================================================
# USER STATE
# =============================================================================


@dataclass
class Settings:
    """
    Per-user calendar settings.

    ``training_days`` is normalized to weekday order without duplicates.
    An empty tuple means "unset": the selector then derives the first N
    weekdays from Monday, N being the number of training days in the plan.
    """

    nutrition_start_date: str
    training_days: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        _validate_date(self.nutrition_start_date)
        for day in self.training_days:
            if day not in WEEKDAYS:
                raise ValueError(f"Invalid weekday: {day!r}")
        unique = set(self.training_days)
        self.training_days = tuple(d for d in WEEKDAYS if d in unique)


@dataclass
class SetLog:
    """
    One logged set.

    The exercise is identified by ``exercise_id`` when known, otherwise by
    ``exercise_index`` (0-based position inside its training day).
    ``weight_kg`` is kept as logged; noisy text values are tolerated and
    interpreted by the progress engine.
    """

    set_number: int
    weight_kg: float | str | None = None
    exercise_id: str | None = None
    exercise_index: int | None = None
    reps_done: int | None = None
    done: bool | None = None

    def __post_init__(self) -> None:
        if self.set_number <= 0:
            raise ValueError("set_number must be positive")
        if self.exercise_id is None and self.exercise_index is None:
            raise ValueError("SetLog needs exercise_id or exercise_index")
        if self.exercise_index is not None and self.exercise_index < 0:
            raise ValueError("exercise_index must be non-negative")

    @property
    def exercise_key(self) -> str:
        """Natural key of the exercise this set belongs to."""
        if self.exercise_id is not None:
            return f"id:{self.exercise_id}"
        return f"idx:{self.exercise_index}"


@dataclass
class WorkoutSession:
    """
    Historical record of one training date.

    At most one per (user, date).  Set rows are keyed by
    (exercise identity, set_number) and overwritten on re-save.
    """

    date: str  # ISO format: YYYY-MM-DD
    plan_id: str = ""
    note: str | None = None
    completed: bool = False
    set_logs: list[SetLog] = field(default_factory=list)

    def __post_init__(self) -> None:
        _validate_date(self.date)

    def upsert_set(self, set_log: SetLog) -> None:
        """Insert or replace the row with the same (exercise, set_number)."""
        for i, existing in enumerate(self.set_logs):
            if (
                existing.exercise_key == set_log.exercise_key
                and existing.set_number == set_log.set_number
            ):
                self.set_logs[i] = set_log
                return
        self.set_logs.append(set_log)

    def sets_for(self, exercise_key: str) -> list[SetLog]:
        """Set rows for one exercise, ordered by set number."""
        rows = [s for s in self.set_logs if s.exercise_key == exercise_key]
        return sorted(rows, key=lambda s: s.set_number)


@dataclass
class MealSelection:
    """Which nutrition day option a user followed on a date."""

    date: str
    plan_id: str = ""
    selected_option_index: int | None = None
    done: bool = False
    note: str | None = None

    def __post_init__(self) -> None:
        _validate_date(self.date)
        if self.selected_option_index is not None and self.selected_option_index <= 0:
            raise ValueError("selected_option_index must be positive")


@dataclass
class WeeklyMeasure:
    """Body measurements for one week, keyed by its Monday."""

    week_start: str
    weight_kg: float | None = None
    neck_cm: float | None = None
    arm_cm: float | None = None
    waist_cm: float | None = None
    abdomen_cm: float | None = None
    hip_cm: float | None = None
    thigh_cm: float | None = None
    note: str | None = None

    def __post_init__(self) -> None:
        _validate_date(self.week_start)


@dataclass
class UserAccount:
    """A user of the tracker.  Admins import and assign plans."""

    user_id: str
    role: Role = "user"
    name: str = ""

    def __post_init__(self) -> None:
        if not self.user_id or not self.user_id.strip():
            raise ValueError("user_id must be non-empty")
        if self.role not in ROLES:
            raise ValueError(f"Invalid role: {self.role!r}. Must be 'admin' or 'user'.")

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


@dataclass
class PlanRecord:
    """A stored plan.  Exactly one record per user is active."""

    plan_id: str
    source_file_name: str
    imported_at: str
    is_active: bool
    plan: NormalizedPlan
    assigned_by: str | None = None


# =============================================================================
# DERIVED RESULTS
# =============================================================================


@dataclass(frozen=True)
class NextTraining:
    """Result of nextTrainingDate."""

    date: str
    day_of_week: Weekday


@dataclass(frozen=True)
class DayResolution:
    """
    What the plan prescribes for one calendar date.

    ``training_day`` is None on rest days and when the plan has no day for
    the slot; ``nutrition_day`` is None when the plan has a gap there.
    """

    date: str
    day_of_week: Weekday
    nutrition_week: int
    training_day: TrainingDay | None = None
    training_position: int | None = None
    nutrition_day: NutritionDay | None = None

    @property
    def is_rest_day(self) -> bool:
        return self.training_day is None


@dataclass(frozen=True)
class NutritionOption:
    """A nutrition day presented as a numbered, selectable day option."""

    option_index: int  # 1-based
    week_index: int
    day_of_week: Weekday
    option_id: str
    label: str
    meals: tuple[tuple[str, tuple[str, ...]], ...] = ()  # (meal_type, lines)


@dataclass(frozen=True)
class ProgressPoint:
    """Representative weight of one exercise on one date."""

    date: str
    weight_kg: float


@dataclass(frozen=True)
class Delta:
    """Change between the latest point and the reference point."""

    pct: float | None = None
    kg: float | None = None


@dataclass
class ExerciseProgress:
    """Progress series and deltas for one exercise of a block."""

    exercise_id: str
    exercise_index: int
    exercise_name: str
    points: list[ProgressPoint] = field(default_factory=list)
    weekly_delta_pct: float | None = None
    monthly_delta_pct: float | None = None
    weekly_delta_kg: float | None = None
    monthly_delta_kg: float | None = None


@dataclass
class BlockProgress:
    """Progress of one training block (training day) of the active plan."""

    block_id: str
    day_index: int
    position: int
    tab_label: str
    name: str
    full_label: str
    exercises: list[ExerciseProgress] = field(default_factory=list)
    weekly_avg_pct: float | None = None
    monthly_avg_pct: float | None = None
    weekly_total_kg: float | None = None
    monthly_total_kg: float | None = None


@dataclass(frozen=True)
class MeasureTrend:
    """Trend of one body-measurement metric."""

    metric: str
    label: str
    unit: str
    points: tuple[tuple[str, float], ...] = ()  # (week_start, value)
    weekly_delta: float | None = None
    monthly_delta: float | None = None
