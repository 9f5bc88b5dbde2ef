"""Progress command: per-block weight deltas of the active plan."""

import json
from typing import Annotated, Optional

import typer

from ...core.progress import build_progress_blocks, get_progress_block
from ...io.serializers import block_progress_to_dict
from .. import views
from ..app import (
    COMMAND_ERRORS,
    DataDirOption,
    JsonOption,
    UserOption,
    app,
    get_delta_windows,
    get_store,
    require_active_plan,
)


@app.command()
def progress(
    user_id: UserOption,
    block: Annotated[
        Optional[str],
        typer.Option("--block", "-b", help="Block id (e.g. block-1-0) for per-exercise detail"),
    ] = None,
    plot: Annotated[
        Optional[int],
        typer.Option("--plot", help="Chart the weight series of exercise N of the block"),
    ] = None,
    data_dir: DataDirOption = None,
    json_out: JsonOption = False,
) -> None:
    """
    Show weekly and monthly weight change per training block.

    Each logged date belongs to the block its weekday resolves to with the
    current settings.  The heaviest set of a date is its weight.
    """
    store = get_store(data_dir)
    record, settings = require_active_plan(store, user_id)
    weekly_days, monthly_days = get_delta_windows()

    try:
        sessions = store.load_sessions(user_id, plan_id=record.plan_id)
    except COMMAND_ERRORS as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    blocks = build_progress_blocks(record.plan, sessions, settings, weekly_days, monthly_days)

    if block is None:
        if json_out:
            print(json.dumps(
                [block_progress_to_dict(b, include_exercises=False) for b in blocks],
                indent=2,
                ensure_ascii=False,
            ))
            return
        views.print_progress_blocks(blocks)
        return

    selected = get_progress_block(blocks, block)
    if selected is None:
        views.print_error(f"Unknown block: {block}")
        views.print_info("Run 'progress' without --block to list block ids.")
        raise typer.Exit(1)

    if json_out:
        print(json.dumps(block_progress_to_dict(selected), indent=2, ensure_ascii=False))
        return

    views.print_block_detail(selected, plot_exercise=plot)
