"""
Body-measurement trends.

Weekly measurement rows are reduced to one series per metric.  Weekly and
monthly deltas use the same reference-point search as exercise progress,
reported as absolute differences only.
"""

from typing import Sequence

from .config import MEASURE_METRICS, MONTHLY_DELTA_DAYS, WEEKLY_DELTA_DAYS
from .models import MeasureTrend, ProgressPoint, WeeklyMeasure
from .progress import compute_delta, parse_weight, round1


def metric_series(rows: Sequence[WeeklyMeasure], metric: str) -> list[tuple[str, float]]:
    """(week_start, value) pairs for one metric, ascending, skipping empty weeks."""
    series: list[tuple[str, float]] = []
    for row in sorted(rows, key=lambda r: r.week_start):
        value = parse_weight(getattr(row, metric))
        if value is not None:
            series.append((row.week_start, value))
    return series


def week_over_week(series: Sequence[tuple[str, float]]) -> list[tuple[str, float, float | None]]:
    """
    Newest-first history rows with the difference to the previous logged week.

    Returns:
        List of (week_start, value, delta or None for the oldest row)
    """
    rows: list[tuple[str, float, float | None]] = []
    for i in range(len(series) - 1, -1, -1):
        week, value = series[i]
        delta = round1(value - series[i - 1][1]) if i > 0 else None
        rows.append((week, value, delta))
    return rows


def build_measure_trends(
    rows: Sequence[WeeklyMeasure],
    weekly_days: int = WEEKLY_DELTA_DAYS,
    monthly_days: int = MONTHLY_DELTA_DAYS,
) -> list[MeasureTrend]:
    """Trend of every known metric, in display order."""
    trends: list[MeasureTrend] = []
    for metric, label, unit in MEASURE_METRICS:
        series = metric_series(rows, metric)
        points = [ProgressPoint(date=week, weight_kg=value) for week, value in series]
        trends.append(
            MeasureTrend(
                metric=metric,
                label=label,
                unit=unit,
                points=tuple(series),
                weekly_delta=compute_delta(points, weekly_days).kg,
                monthly_delta=compute_delta(points, monthly_days).kg,
            )
        )
    return trends
