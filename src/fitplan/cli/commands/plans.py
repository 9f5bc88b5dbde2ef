"""Plan commands: import-plan, show-plan, plan-history, settings, today."""

import json
from pathlib import Path
from typing import Annotated, Optional

import typer

from ...core.calendar import next_training_date
from ...core.selector import effective_training_weekdays, resolve_day
from ...io.serializers import (
    ValidationError,
    day_resolution_to_dict,
    dict_to_plan,
    parse_weekday_list,
    plan_record_to_dict,
    settings_to_dict,
    validate_date,
)
from .. import views
from ..app import (
    COMMAND_ERRORS,
    DataDirOption,
    DateOption,
    JsonOption,
    UserOption,
    app,
    get_store,
    require_active_plan,
    resolve_date_option,
)


@app.command("import-plan")
def import_plan(
    plan_file: Annotated[
        Path,
        typer.Argument(help="Normalized plan JSON file"),
    ],
    user_id: UserOption,
    target_user: Annotated[
        Optional[str],
        typer.Option("--for", "-t", help="Assign the plan to this user (default: yourself)"),
    ] = None,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Replace the active plan without prompting"),
    ] = False,
    data_dir: DataDirOption = None,
) -> None:
    """
    Import a plan and make it the active plan (admins only).

    The previous active plan is kept as read-only history.  Workout logs
    and settings are not touched.
    """
    store = get_store(data_dir)

    try:
        with open(plan_file, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except FileNotFoundError:
        views.print_error(f"Plan file not found: {plan_file}")
        raise typer.Exit(1)
    except json.JSONDecodeError as e:
        views.print_error(f"Plan file is not valid JSON: {e}")
        raise typer.Exit(1)

    try:
        plan = dict_to_plan(raw)
        target = target_user or user_id
        current = store.get_active_plan(target)
        if current is not None and not force:
            if not views.confirm_action(
                f"Replace active plan '{current.source_file_name}' of {target}?"
            ):
                views.print_info("Cancelled.")
                raise typer.Exit(0)
        record = store.import_plan(
            user_id,
            plan,
            source_file_name=plan.source_file_name or plan_file.name,
            target_user_id=target,
        )
    except COMMAND_ERRORS as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    views.print_success(
        f"Imported {record.source_file_name} as {record.plan_id} for {target} "
        f"({len(record.plan.training_days)} training days, "
        f"{len(record.plan.nutrition_days)} nutrition days)."
    )


@app.command("show-plan")
def show_plan(
    user_id: UserOption,
    data_dir: DataDirOption = None,
    json_out: JsonOption = False,
) -> None:
    """
    Show the active plan: every training day and the nutrition cycle.
    """
    store = get_store(data_dir)
    record, _ = require_active_plan(store, user_id)

    if json_out:
        print(json.dumps(plan_record_to_dict(record), indent=2, ensure_ascii=False))
        return

    views.print_plan(record)


@app.command("plan-history")
def plan_history(
    user_id: UserOption,
    data_dir: DataDirOption = None,
    json_out: JsonOption = False,
) -> None:
    """
    List every imported plan, newest first.
    """
    store = get_store(data_dir)
    try:
        records = store.plan_history(user_id)
    except COMMAND_ERRORS as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    if json_out:
        print(json.dumps([
            {
                "planId": r.plan_id,
                "sourceFileName": r.source_file_name,
                "importedAt": r.imported_at,
                "isActive": r.is_active,
                "assignedBy": r.assigned_by,
                "trainingDays": len(r.plan.training_days),
            }
            for r in records
        ], indent=2))
        return

    views.print_plan_history(records)


@app.command()
def settings(
    user_id: UserOption,
    start: Annotated[
        Optional[str],
        typer.Option("--start", "-s", help="Nutrition cycle start date (YYYY-MM-DD)"),
    ] = None,
    days: Annotated[
        Optional[str],
        typer.Option("--days", help="Training weekdays, comma-separated (e.g. Tue,Wed,Sat)"),
    ] = None,
    data_dir: DataDirOption = None,
    json_out: JsonOption = False,
) -> None:
    """
    Show or update calendar settings.

    Without options the current settings are shown.  Unset training days
    are derived from the plan: its first N weekdays starting Monday.
    """
    store = get_store(data_dir)
    record, current = require_active_plan(store, user_id)

    if start is not None or days is not None:
        try:
            new_start = validate_date(start) if start is not None else current.nutrition_start_date
            new_days = (
                parse_weekday_list(days)
                if days is not None
                else list(effective_training_weekdays(record.plan, current))
            )
            current = store.save_settings(user_id, new_start, new_days)
        except COMMAND_ERRORS as e:
            views.print_error(str(e))
            raise typer.Exit(1)
        if not json_out:
            views.print_success("Settings saved.")

    effective = effective_training_weekdays(record.plan, current)
    if json_out:
        result = settings_to_dict(current)
        result["effectiveTrainingDays"] = list(effective)
        print(json.dumps(result, indent=2))
        return

    views.print_settings(current, effective)


@app.command()
def today(
    user_id: UserOption,
    date: DateOption = None,
    data_dir: DataDirOption = None,
    json_out: JsonOption = False,
) -> None:
    """
    Show the training day and meals the plan prescribes for a date.

    Rest days and dates without a nutrition day are normal results.
    """
    store = get_store(data_dir)
    iso_date = resolve_date_option(date)
    record, current = require_active_plan(store, user_id)

    try:
        resolution = resolve_day(record.plan, iso_date, current)
        weekdays = effective_training_weekdays(record.plan, current)
        upcoming = next_training_date(iso_date, weekdays) if weekdays else None
    except (ValidationError, ValueError) as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    if json_out:
        result = day_resolution_to_dict(resolution)
        result["nextTraining"] = (
            {"date": upcoming.date, "dayOfWeek": upcoming.day_of_week}
            if upcoming is not None
            else None
        )
        print(json.dumps(result, indent=2, ensure_ascii=False))
        return

    views.print_day(resolution, upcoming)
