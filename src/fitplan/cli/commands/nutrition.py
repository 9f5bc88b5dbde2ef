"""Nutrition commands: nutrition, select-menu."""

import json
from typing import Annotated, Optional

import typer

from ...core.models import MealSelection
from ...core.selector import nutrition_options, suggested_option_index
from ...io.serializers import meal_selection_to_dict, nutrition_option_to_dict
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


@app.command()
def nutrition(
    user_id: UserOption,
    date: DateOption = None,
    data_dir: DataDirOption = None,
    json_out: JsonOption = False,
) -> None:
    """
    List the plan's day options with the suggestion and choice for a date.

    The suggestion cycles through the options one per day starting at the
    nutrition start date.
    """
    store = get_store(data_dir)
    iso_date = resolve_date_option(date)
    record, settings = require_active_plan(store, user_id)

    options = nutrition_options(record.plan)
    suggested = suggested_option_index(iso_date, settings.nutrition_start_date, len(options))
    try:
        selection = store.get_meal_selection(user_id, record.plan_id, iso_date)
    except COMMAND_ERRORS as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    if json_out:
        print(json.dumps({
            "date": iso_date,
            "planId": record.plan_id,
            "suggestedOptionIndex": suggested,
            "selection": meal_selection_to_dict(selection) if selection is not None else None,
            "options": [nutrition_option_to_dict(o) for o in options],
        }, indent=2, ensure_ascii=False))
        return

    views.print_nutrition_options(options, suggested, selection)


@app.command("select-menu")
def select_menu(
    user_id: UserOption,
    option: Annotated[
        Optional[int],
        typer.Argument(help="Day option number (default: the suggested option)"),
    ] = None,
    done: Annotated[
        bool,
        typer.Option("--done/--not-done", help="Mark the day's meals as followed"),
    ] = False,
    note: Annotated[
        Optional[str],
        typer.Option("--note", "-n", help="Note"),
    ] = None,
    date: DateOption = None,
    data_dir: DataDirOption = None,
) -> None:
    """
    Record which day option was followed on a date.

    Saving again for the same date replaces the previous choice.
    """
    store = get_store(data_dir)
    iso_date = resolve_date_option(date)
    record, settings = require_active_plan(store, user_id)

    options = nutrition_options(record.plan)
    if not options:
        views.print_error("Active plan has no nutrition days.")
        raise typer.Exit(1)

    if option is None:
        option = suggested_option_index(iso_date, settings.nutrition_start_date, len(options))
    if option is None or not 1 <= option <= len(options):
        views.print_error(f"Option must be between 1 and {len(options)}.")
        raise typer.Exit(1)

    try:
        store.save_meal_selection(
            user_id,
            MealSelection(
                date=iso_date,
                plan_id=record.plan_id,
                selected_option_index=option,
                done=done,
                note=note,
            ),
        )
    except COMMAND_ERRORS as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    views.print_success(f"Selected option {option} for {iso_date}.")
