"""Workout backup commands: export-backup, restore-backup."""

import json
from pathlib import Path
from typing import Annotated, Optional

import typer

from .. import views
from ..app import COMMAND_ERRORS, DataDirOption, JsonOption, UserOption, app, get_store


@app.command("export-backup")
def export_backup(
    user_id: UserOption,
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Write to this file (default: stdout)"),
    ] = None,
    data_dir: DataDirOption = None,
) -> None:
    """
    Export every logged workout as a workout_backup_v1 JSON document.
    """
    store = get_store(data_dir)
    try:
        document = store.export_backup(user_id)
    except COMMAND_ERRORS as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    text = json.dumps(document, indent=2, ensure_ascii=False)
    if output is None:
        print(text)
        return

    output.write_text(text + "\n", encoding="utf-8")
    views.print_success(f"Exported {len(document['entries'])} workouts to {output}")


@app.command("restore-backup")
def restore_backup(
    backup_file: Annotated[
        Path,
        typer.Argument(help="workout_backup_v1 JSON file"),
    ],
    user_id: UserOption,
    data_dir: DataDirOption = None,
    json_out: JsonOption = False,
) -> None:
    """
    Restore workouts from a backup into the active plan.

    Dates that already have a workout are never overwritten.  Dates that
    fall on a rest day with the current settings are skipped.
    """
    store = get_store(data_dir)

    try:
        with open(backup_file, "r", encoding="utf-8") as f:
            payload = json.load(f)
    except FileNotFoundError:
        views.print_error(f"Backup file not found: {backup_file}")
        raise typer.Exit(1)
    except json.JSONDecodeError as e:
        views.print_error(f"Backup file is not valid JSON: {e}")
        raise typer.Exit(1)

    try:
        report = store.restore_backup(user_id, payload)
    except COMMAND_ERRORS as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    if json_out:
        print(json.dumps(report, indent=2))
        return

    views.print_restore_report(report)
