"""
Plan day selection.

Given a NormalizedPlan, a date and the user's Settings, pick the training
day and nutrition day that apply.  A rest day or a gap in the plan is a
normal outcome and is returned as None, never raised.

Training-day resolution is two explicit steps:
  1. position match: the slot of the weekday among the training weekdays
     indexes plan.training_days directly;
  2. day_index match: when the slot has no position (older plan revisions
     or backups), look for the day whose day_index == slot + 1.
"""

from typing import Sequence

from .calendar import (
    auto_training_weekdays,
    cycle_day_index,
    day_of_week,
    nutrition_week_index,
)
from .config import MEAL_TYPES, WEEKDAYS
from .models import (
    DayResolution,
    NormalizedPlan,
    NutritionDay,
    NutritionOption,
    Settings,
    TrainingDay,
)

# (position in plan.training_days, training day)
LocatedDay = tuple[int, TrainingDay]


def effective_training_weekdays(plan: NormalizedPlan, settings: Settings) -> tuple[str, ...]:
    """Configured training weekdays, or the auto-derived Monday-first set when unset."""
    if settings.training_days:
        return tuple(settings.training_days)
    return auto_training_weekdays(len(plan.training_days))


def training_slot(weekday: str, training_weekdays: Sequence[str]) -> int | None:
    """0-based slot of the weekday among the training weekdays, None on a rest day."""
    if weekday not in training_weekdays:
        return None
    return list(training_weekdays).index(weekday)


def match_by_position(days: Sequence[TrainingDay], slot: int) -> LocatedDay | None:
    """Step 1: the training day stored at position ``slot``."""
    if 0 <= slot < len(days):
        return slot, days[slot]
    return None


def match_by_day_index(days: Sequence[TrainingDay], slot: int) -> LocatedDay | None:
    """Step 2: the first training day labelled ``day_index == slot + 1``."""
    target = slot + 1
    for position, day in enumerate(days):
        if day.day_index == target:
            return position, day
    return None


def locate_training_day(
    plan: NormalizedPlan,
    iso_date: str,
    settings: Settings,
) -> LocatedDay | None:
    """
    Resolve the training day for a date together with its plan position.

    Returns:
        (position, TrainingDay), or None for a rest day or an unmatched slot
    """
    weekdays = effective_training_weekdays(plan, settings)
    slot = training_slot(day_of_week(iso_date), weekdays)
    if slot is None:
        return None

    located = match_by_position(plan.training_days, slot)
    if located is None:
        located = match_by_day_index(plan.training_days, slot)
    return located


def resolve_training_day(
    plan: NormalizedPlan,
    iso_date: str,
    settings: Settings,
) -> TrainingDay | None:
    """Training day prescribed for the date, or None (rest day / no such day)."""
    located = locate_training_day(plan, iso_date, settings)
    return located[1] if located is not None else None


def resolve_nutrition_day(
    plan: NormalizedPlan,
    iso_date: str,
    settings: Settings,
) -> NutritionDay | None:
    """Nutrition day for the date's (cycle week, weekday), or None if the plan has a gap."""
    week = nutrition_week_index(iso_date, settings.nutrition_start_date, plan.cycle_weeks)
    weekday = day_of_week(iso_date)
    for day in plan.nutrition_days:
        if day.week_index == week and day.day_of_week == weekday:
            return day
    return None


def resolve_day(plan: NormalizedPlan, iso_date: str, settings: Settings) -> DayResolution:
    """
    Everything the plan prescribes for one date.

    Args:
        plan: Active plan snapshot
        iso_date: Date to resolve (YYYY-MM-DD)
        settings: User calendar settings

    Returns:
        DayResolution with training_day / nutrition_day possibly None
    """
    located = locate_training_day(plan, iso_date, settings)
    return DayResolution(
        date=iso_date,
        day_of_week=day_of_week(iso_date),  # type: ignore[arg-type]
        nutrition_week=nutrition_week_index(
            iso_date, settings.nutrition_start_date, plan.cycle_weeks
        ),
        training_day=located[1] if located else None,
        training_position=located[0] if located else None,
        nutrition_day=resolve_nutrition_day(plan, iso_date, settings),
    )


def nutrition_options(plan: NormalizedPlan) -> list[NutritionOption]:
    """
    All nutrition days as numbered day options.

    Sorted by (week_index, weekday).  Each option keeps only meals with at
    least one non-blank line, in meal-type order.
    """
    ordered = sorted(
        plan.nutrition_days,
        key=lambda d: (d.week_index, WEEKDAYS.index(d.day_of_week)),
    )
    options: list[NutritionOption] = []
    for i, day in enumerate(ordered, 1):
        meals: list[tuple[str, tuple[str, ...]]] = []
        for meal_type in MEAL_TYPES:
            lines = tuple(
                line.strip()
                for option in day.meals.get(meal_type, ())
                for line in option.lines
                if line.strip()
            )
            if lines:
                meals.append((meal_type, lines))
        options.append(
            NutritionOption(
                option_index=i,
                week_index=day.week_index,
                day_of_week=day.day_of_week,
                option_id=f"{day.week_index}-{day.day_of_week}",
                label=f"Option {i}",
                meals=tuple(meals),
            )
        )
    return options


def suggested_option_index(iso_date: str, anchor_date: str, option_count: int) -> int | None:
    """1-based day option suggested for the date, cycling from the anchor; None without options."""
    if option_count <= 0:
        return None
    return cycle_day_index(iso_date, anchor_date, option_count) + 1
