"""Body measurement commands: log-measure, measures."""

import json
from typing import Annotated, Optional

import typer

from ...core.calendar import week_start
from ...core.config import MEASURE_FIELDS
from ...core.measures import build_measure_trends
from ...core.models import WeeklyMeasure
from ...io.serializers import measure_to_dict, measure_trend_to_dict
from .. import views
from ..app import (
    COMMAND_ERRORS,
    DataDirOption,
    DateOption,
    JsonOption,
    UserOption,
    app,
    get_delta_windows,
    get_store,
    resolve_date_option,
)


def _positive(value: float | None, name: str) -> float | None:
    if value is not None and value <= 0:
        views.print_error(f"{name} must be positive")
        raise typer.Exit(1)
    return value


@app.command("log-measure")
def log_measure(
    user_id: UserOption,
    weight: Annotated[Optional[float], typer.Option("--weight", "-w", help="Body weight (kg)")] = None,
    neck: Annotated[Optional[float], typer.Option("--neck", help="Neck (cm)")] = None,
    arm: Annotated[Optional[float], typer.Option("--arm", help="Arm (cm)")] = None,
    waist: Annotated[Optional[float], typer.Option("--waist", help="Waist (cm)")] = None,
    abdomen: Annotated[Optional[float], typer.Option("--abdomen", help="Abdomen (cm)")] = None,
    hip: Annotated[Optional[float], typer.Option("--hip", help="Hip (cm)")] = None,
    thigh: Annotated[Optional[float], typer.Option("--thigh", help="Thigh (cm)")] = None,
    note: Annotated[Optional[str], typer.Option("--note", "-n", help="Note")] = None,
    date: DateOption = None,
    data_dir: DataDirOption = None,
) -> None:
    """
    Record body measurements for the week containing a date.

    One row is kept per week (keyed by its Monday); values not given keep
    what was already recorded for that week.
    """
    store = get_store(data_dir)
    iso_date = resolve_date_option(date)

    given = {
        "weight_kg": _positive(weight, "Weight"),
        "neck_cm": _positive(neck, "Neck"),
        "arm_cm": _positive(arm, "Arm"),
        "waist_cm": _positive(waist, "Waist"),
        "abdomen_cm": _positive(abdomen, "Abdomen"),
        "hip_cm": _positive(hip, "Hip"),
        "thigh_cm": _positive(thigh, "Thigh"),
    }
    if all(v is None for v in given.values()) and note is None:
        views.print_error("Nothing to record. Pass at least one measurement.")
        raise typer.Exit(1)

    try:
        existing = store.get_measure(user_id, iso_date)
        values = {
            field: given[field] if given[field] is not None
            else (getattr(existing, field) if existing is not None else None)
            for field in MEASURE_FIELDS
        }
        measure = WeeklyMeasure(
            week_start=week_start(iso_date),
            note=note if note is not None else (existing.note if existing is not None else None),
            **values,
        )
        store.save_measure(user_id, measure)
    except COMMAND_ERRORS as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    views.print_measure_saved(measure)


@app.command()
def measures(
    user_id: UserOption,
    metric: Annotated[
        Optional[str],
        typer.Option(
            "--metric", "-m",
            help="Show week-by-week history of one metric: " + ", ".join(MEASURE_FIELDS),
        ),
    ] = None,
    data_dir: DataDirOption = None,
    json_out: JsonOption = False,
) -> None:
    """
    Show body measurement trends with weekly and monthly change.
    """
    if metric is not None and metric not in MEASURE_FIELDS:
        views.print_error(f"Unknown metric '{metric}'. Choose one of: {', '.join(MEASURE_FIELDS)}")
        raise typer.Exit(1)

    store = get_store(data_dir)
    weekly_days, monthly_days = get_delta_windows()
    try:
        rows = store.list_measures(user_id)
    except COMMAND_ERRORS as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    trends = build_measure_trends(rows, weekly_days, monthly_days)

    if json_out:
        print(json.dumps({
            "rows": [measure_to_dict(r) for r in rows],
            "trends": [measure_trend_to_dict(t) for t in trends],
        }, indent=2, ensure_ascii=False))
        return

    if not rows:
        views.console.print("[yellow]No measurements recorded yet.[/yellow]")
        return

    if metric is None:
        views.print_measure_trends(trends)
        return

    views.print_measure_history(next(t for t in trends if t.metric == metric))
