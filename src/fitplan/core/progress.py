"""
Progress aggregation.

Turns logged set weights into per-exercise weight series and summary
deltas, then rolls them up per training block.  All functions are pure:
they take immutable snapshots and return fresh results.

Policy notes:
- The representative weight of a date is the heaviest logged set.
- Unparseable or missing weights are skipped, never raised.
- Rounding is to 1 decimal, half away from zero.
"""

import math
import re
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Iterable, Sequence

from .calendar import add_days
from .config import (
    BLOCK_LABEL_HAS_PREFIX_PATTERN,
    BLOCK_LABEL_PREFIX_PATTERN,
    MONTHLY_DELTA_DAYS,
    WEEKLY_DELTA_DAYS,
)
from .models import (
    BlockProgress,
    Delta,
    Exercise,
    ExerciseProgress,
    NormalizedPlan,
    ProgressPoint,
    SetLog,
    Settings,
    TrainingDay,
    WorkoutSession,
)
from .selector import locate_training_day

_NUMBER_RE = re.compile(r"-?\d+(?:[.,]\d+)?")


# =============================================================================
# NUMERIC HELPERS
# =============================================================================


def round1(value: float) -> float:
    """
    Round to 1 decimal, half away from zero.

    Uses the shortest repr of the float so 0.25 → 0.3 and -0.25 → -0.3.
    Non-finite values are returned unchanged.
    """
    if not math.isfinite(value):
        return value
    exact = Decimal(repr(value))
    with localcontext() as ctx:
        # quantize needs room for every integer digit plus one decimal
        ctx.prec = max(28, exact.adjusted() + 3)
        return float(exact.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def mean_or_none(values: Sequence[float]) -> float | None:
    """Rounded arithmetic mean, None for an empty list."""
    if not values:
        return None
    return round1(sum(values) / len(values))


def sum_or_none(values: Sequence[float]) -> float | None:
    """Rounded sum, None for an empty list."""
    if not values:
        return None
    return round1(sum(values))


def parse_weight(raw: object) -> float | None:
    """
    Interpret a logged weight.

    Numbers are accepted when finite.  Text uses its first number, with a
    comma or dot decimal separator ("82,5", "80 kg").  Anything else,
    including booleans, yields None.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
    elif isinstance(raw, str):
        match = _NUMBER_RE.search(raw)
        if match is None:
            return None
        value = float(match.group(0).replace(",", "."))
    else:
        return None
    return value if math.isfinite(value) else None


def representative_weight(raw_weights: Iterable[object]) -> float | None:
    """Heaviest parseable weight of a date, None if there is none."""
    values = [w for w in (parse_weight(r) for r in raw_weights) if w is not None]
    if not values:
        return None
    return max(values)


# =============================================================================
# DELTAS
# =============================================================================


def find_reference_point(
    points: Sequence[ProgressPoint],
    days_back: int,
) -> ProgressPoint | None:
    """
    Most recent earlier point dated on or before ``latest - days_back``.

    The latest point itself is never a reference.

    Args:
        points: Series sorted ascending by date
        days_back: Lookback window in days

    Returns:
        Reference point, or None when fewer than 2 points or none is old enough
    """
    if len(points) < 2:
        return None
    threshold = add_days(points[-1].date, -days_back)
    for point in reversed(points[:-1]):
        if point.date <= threshold:
            return point
    return None


def compute_delta(points: Sequence[ProgressPoint], days_back: int) -> Delta:
    """
    Change of the latest weight against the reference ``days_back`` earlier.

    delta_kg  = latest - reference
    delta_pct = delta_kg / reference × 100   (None when reference is 0)

    Both values are rounded to 1 decimal; both are None without a reference.
    """
    reference = find_reference_point(points, days_back)
    if reference is None:
        return Delta()

    kg = points[-1].weight_kg - reference.weight_kg
    if reference.weight_kg == 0:
        return Delta(pct=None, kg=round1(kg))
    return Delta(pct=round1(kg / reference.weight_kg * 100), kg=round1(kg))


# =============================================================================
# SERIES
# =============================================================================


def set_matches_exercise(set_log: SetLog, exercise: Exercise, exercise_index: int) -> bool:
    """Match by exercise id when the row carries one, else by position."""
    if set_log.exercise_id is not None:
        return set_log.exercise_id == exercise.id
    return set_log.exercise_index == exercise_index


def sessions_by_block(
    plan: NormalizedPlan,
    sessions: Iterable[WorkoutSession],
    settings: Settings,
) -> dict[int, list[WorkoutSession]]:
    """
    Group sessions by the block position the selector assigns to their date.

    Sessions on dates that resolve to a rest day are dropped.  Each group is
    sorted ascending by date.
    """
    groups: dict[int, list[WorkoutSession]] = {}
    for session in sessions:
        located = locate_training_day(plan, session.date, settings)
        if located is None:
            continue
        groups.setdefault(located[0], []).append(session)
    for group in groups.values():
        group.sort(key=lambda s: s.date)
    return groups


def exercise_points(
    exercise: Exercise,
    exercise_index: int,
    block_sessions: Iterable[WorkoutSession],
) -> list[ProgressPoint]:
    """
    Weight series of one exercise over the sessions of its block.

    One point per date (the heaviest set); dates without a valid weight are
    skipped.  Result is sorted ascending by date.
    """
    points: list[ProgressPoint] = []
    for session in block_sessions:
        weights = [
            s.weight_kg
            for s in session.set_logs
            if set_matches_exercise(s, exercise, exercise_index)
        ]
        rep = representative_weight(weights)
        if rep is None:
            continue
        points.append(ProgressPoint(date=session.date, weight_kg=rep))
    points.sort(key=lambda p: p.date)
    return points


def build_exercise_progress(
    exercise: Exercise,
    exercise_index: int,
    block_sessions: Sequence[WorkoutSession],
    weekly_days: int = WEEKLY_DELTA_DAYS,
    monthly_days: int = MONTHLY_DELTA_DAYS,
) -> ExerciseProgress:
    """Series plus weekly and monthly deltas for one exercise."""
    points = exercise_points(exercise, exercise_index, block_sessions)
    weekly = compute_delta(points, weekly_days)
    monthly = compute_delta(points, monthly_days)
    return ExerciseProgress(
        exercise_id=exercise.id,
        exercise_index=exercise_index,
        exercise_name=exercise.name,
        points=points,
        weekly_delta_pct=weekly.pct,
        monthly_delta_pct=monthly.pct,
        weekly_delta_kg=weekly.kg,
        monthly_delta_kg=monthly.kg,
    )


# =============================================================================
# BLOCKS
# =============================================================================


def clean_block_name(label: str) -> str:
    """Label without a leading "DAY n -" style prefix; the full label if nothing remains."""
    stripped = re.sub(BLOCK_LABEL_PREFIX_PATTERN, "", label, flags=re.IGNORECASE).strip()
    return stripped or label.strip()


def block_full_label(day_index: int, label: str) -> str:
    normalized = label.strip()
    if not normalized:
        return f"Day {day_index}"
    if re.match(BLOCK_LABEL_HAS_PREFIX_PATTERN, normalized, flags=re.IGNORECASE):
        return normalized
    return f"Day {day_index} - {normalized}"


def build_block_id(day_index: int, position: int) -> str:
    return f"block-{day_index}-{position}"


def parse_block_id(block_id: str) -> tuple[int, int] | None:
    """Return (day_index, position) for a well-formed block id, else None."""
    match = re.fullmatch(r"block-(\d+)-(\d+)", block_id.strip())
    if match is None:
        return None
    day_index, position = int(match.group(1)), int(match.group(2))
    if day_index <= 0:
        return None
    return day_index, position


def rollup_block(
    day: TrainingDay,
    position: int,
    exercises: list[ExerciseProgress],
) -> BlockProgress:
    """
    Aggregate exercise deltas of one block.

    Average of non-null percentage deltas; sum of non-null kg deltas.
    Exercises with a null delta are ignored, not counted as zero.
    """
    weekly_pcts = [e.weekly_delta_pct for e in exercises if e.weekly_delta_pct is not None]
    monthly_pcts = [e.monthly_delta_pct for e in exercises if e.monthly_delta_pct is not None]
    weekly_kgs = [e.weekly_delta_kg for e in exercises if e.weekly_delta_kg is not None]
    monthly_kgs = [e.monthly_delta_kg for e in exercises if e.monthly_delta_kg is not None]

    return BlockProgress(
        block_id=build_block_id(day.day_index, position),
        day_index=day.day_index,
        position=position,
        tab_label=f"Day {day.day_index}",
        name=clean_block_name(day.label),
        full_label=block_full_label(day.day_index, day.label),
        exercises=exercises,
        weekly_avg_pct=mean_or_none(weekly_pcts),
        monthly_avg_pct=mean_or_none(monthly_pcts),
        weekly_total_kg=sum_or_none(weekly_kgs),
        monthly_total_kg=sum_or_none(monthly_kgs),
    )


def build_progress_blocks(
    plan: NormalizedPlan,
    sessions: Iterable[WorkoutSession],
    settings: Settings,
    weekly_days: int = WEEKLY_DELTA_DAYS,
    monthly_days: int = MONTHLY_DELTA_DAYS,
) -> list[BlockProgress]:
    """
    Progress of every training block of the plan.

    Block membership of a session is decided by resolving its date through
    the plan day selector with the current settings, not by any label stored
    on the session.

    Args:
        plan: Active plan snapshot
        sessions: Historical workout sessions (any order)
        settings: User calendar settings
        weekly_days: Weekly lookback window
        monthly_days: Monthly lookback window

    Returns:
        One BlockProgress per training day, in plan order
    """
    groups = sessions_by_block(plan, sessions, settings)

    blocks: list[BlockProgress] = []
    for position, day in enumerate(plan.training_days):
        block_sessions = groups.get(position, [])
        exercises = [
            build_exercise_progress(
                exercise, i, block_sessions, weekly_days, monthly_days
            )
            for i, exercise in enumerate(day.exercises)
        ]
        blocks.append(rollup_block(day, position, exercises))
    return blocks


def get_progress_block(blocks: Sequence[BlockProgress], block_id: str) -> BlockProgress | None:
    """Block with the given id; None for unknown or malformed ids."""
    if parse_block_id(block_id) is None:
        return None
    for block in blocks:
        if block.block_id == block_id.strip():
            return block
    return None
