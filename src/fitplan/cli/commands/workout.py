"""Workout commands: workout, log-set, log-workout, show-history."""

import json
from typing import Annotated, Optional

import typer

from ...core.models import Exercise, SetLog, TrainingDay
from ...core.selector import locate_training_day
from ...io.serializers import parse_compact_sets, session_to_dict, training_day_to_dict
from ...io.store import FitplanStore
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


def _find_exercise(day: TrainingDay, ref: str) -> tuple[int, Exercise] | None:
    """Exercise by 1-based number or by id."""
    ref = ref.strip()
    if ref.isdigit():
        index = int(ref) - 1
        if 0 <= index < len(day.exercises):
            return index, day.exercises[index]
        return None
    for i, exercise in enumerate(day.exercises):
        if exercise.id == ref:
            return i, exercise
    return None


def _training_day_or_exit(store: FitplanStore, user_id: str, iso_date: str) -> tuple[str, TrainingDay]:
    """(plan_id, training day) for a date, exiting when it is a rest day."""
    record, settings = require_active_plan(store, user_id)
    located = locate_training_day(record.plan, iso_date, settings)
    if located is None:
        views.print_error(f"{iso_date} is a rest day; nothing to log.")
        raise typer.Exit(1)
    return record.plan_id, located[1]


@app.command()
def workout(
    user_id: UserOption,
    date: DateOption = None,
    data_dir: DataDirOption = None,
    json_out: JsonOption = False,
) -> None:
    """
    Show the workout of a date with the sets already logged.
    """
    store = get_store(data_dir)
    iso_date = resolve_date_option(date)
    record, settings = require_active_plan(store, user_id)

    located = locate_training_day(record.plan, iso_date, settings)
    day = located[1] if located is not None else None
    try:
        session = store.get_session(user_id, iso_date)
    except COMMAND_ERRORS as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    if json_out:
        print(json.dumps({
            "date": iso_date,
            "isRestDay": day is None,
            "trainingDay": training_day_to_dict(day) if day is not None else None,
            "session": session_to_dict(session) if session is not None else None,
        }, indent=2, ensure_ascii=False))
        return

    views.print_workout(iso_date, day, session)


@app.command("log-set")
def log_set(
    user_id: UserOption,
    exercise: Annotated[
        str,
        typer.Option("--exercise", "-e", help="Exercise number (1-based) or id"),
    ],
    set_number: Annotated[
        int,
        typer.Option("--set", "-s", help="Set number (1-based)"),
    ],
    weight: Annotated[
        Optional[str],
        typer.Option("--weight", "-w", help="Weight in kg (e.g. 82.5 or '82,5')"),
    ] = None,
    reps: Annotated[
        Optional[int],
        typer.Option("--reps", "-r", help="Reps done"),
    ] = None,
    done: Annotated[
        bool,
        typer.Option("--done/--not-done", help="Mark the set as done"),
    ] = True,
    date: DateOption = None,
    data_dir: DataDirOption = None,
) -> None:
    """
    Log or overwrite one set of today's (or --date's) workout.

    Logging the same exercise and set number again replaces the row.
    """
    store = get_store(data_dir)
    iso_date = resolve_date_option(date)
    _, day = _training_day_or_exit(store, user_id, iso_date)

    found = _find_exercise(day, exercise)
    if found is None:
        views.print_error(f"No exercise '{exercise}' in {day.label or f'day {day.day_index}'}.")
        raise typer.Exit(1)
    index, ex = found

    try:
        set_log = SetLog(
            set_number=set_number,
            weight_kg=weight.strip() if weight is not None else None,
            exercise_id=ex.id,
            exercise_index=index,
            reps_done=reps,
            done=done,
        )
        store.upsert_set_log(user_id, iso_date, set_log)
    except (ValueError, *COMMAND_ERRORS) as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    views.print_success(f"Logged {ex.name} set {set_number} on {iso_date}.")


@app.command("log-workout")
def log_workout(
    user_id: UserOption,
    sets: Annotated[
        Optional[list[str]],
        typer.Option(
            "--sets", "-s",
            help="Sets of one exercise: 'EXERCISE: W[xR], ...' (repeatable)",
        ),
    ] = None,
    note: Annotated[
        Optional[str],
        typer.Option("--note", "-n", help="Session note"),
    ] = None,
    completed: Annotated[
        Optional[bool],
        typer.Option("--completed/--not-completed", help="Mark the session as completed"),
    ] = None,
    date: DateOption = None,
    data_dir: DataDirOption = None,
) -> None:
    """
    Save several exercises of a workout at once.

    Each --sets replaces every stored set of that exercise for the date:

      fitplan log-workout -u ana -s "1: 60x10, 62.5x8" -s "squat: 100x5, 100x5"
    """
    store = get_store(data_dir)
    iso_date = resolve_date_option(date)
    _, day = _training_day_or_exit(store, user_id, iso_date)

    set_logs: list[SetLog] = []
    try:
        for spec in sets or []:
            ref, rows = parse_compact_sets(spec)
            found = _find_exercise(day, ref)
            if found is None:
                views.print_error(f"No exercise '{ref}' in {day.label or f'day {day.day_index}'}.")
                raise typer.Exit(1)
            index, ex = found
            for number, (weight, reps) in enumerate(rows, 1):
                set_logs.append(
                    SetLog(
                        set_number=number,
                        weight_kg=weight,
                        exercise_id=ex.id,
                        exercise_index=index,
                        reps_done=reps,
                        done=True,
                    )
                )
        session = store.save_workout(user_id, iso_date, set_logs, note=note, completed=completed)
    except (ValueError, *COMMAND_ERRORS) as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    views.print_success(f"Saved workout for {iso_date} ({len(session.set_logs)} sets).")


@app.command("show-history")
def show_history(
    user_id: UserOption,
    limit: Annotated[
        int,
        typer.Option("--limit", "-l", help="Show only the most recent N sessions (0 = all)"),
    ] = 0,
    all_plans: Annotated[
        bool,
        typer.Option("--all-plans", help="Include sessions logged against earlier plans"),
    ] = False,
    data_dir: DataDirOption = None,
    json_out: JsonOption = False,
) -> None:
    """
    Show logged workouts, oldest first.
    """
    store = get_store(data_dir)
    plan_id = None
    if not all_plans:
        record, _ = require_active_plan(store, user_id)
        plan_id = record.plan_id

    try:
        sessions = store.load_sessions(user_id, plan_id=plan_id)
    except COMMAND_ERRORS as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    if limit > 0:
        sessions = sessions[-limit:]

    if json_out:
        print(json.dumps([session_to_dict(s) for s in sessions], indent=2, ensure_ascii=False))
        return

    views.print_history(sessions)
