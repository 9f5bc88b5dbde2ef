"""Shared Typer app object, shared option types, and store utilities."""

from pathlib import Path
from typing import Annotated, Optional

import typer

from ..core.calendar import ConfigurationError, today_iso
from ..core.engine.config_loader import delta_windows, load_app_config
from ..core.models import PlanRecord, Settings
from ..io.serializers import ValidationError, validate_date
from ..io.store import FitplanStore, PermissionDeniedError, get_default_data_dir
from . import views

# Errors a command reports with exit status 1
COMMAND_ERRORS = (
    FileNotFoundError,
    ValidationError,
    ConfigurationError,
    PermissionDeniedError,
)

# Shared --data-dir option type used across all commands
DataDirOption = Annotated[
    Optional[Path],
    typer.Option("--data-dir", "-p", help="Data directory (default: $FITPLAN_HOME or ~/.fitplan)"),
]

# Shared --user option type used across all per-user commands
UserOption = Annotated[
    str,
    typer.Option("--user", "-u", help="User id"),
]

# Shared --date option type; omitted means today
DateOption = Annotated[
    Optional[str],
    typer.Option("--date", "-d", help="Date (YYYY-MM-DD, default: today)"),
]

# Shared --json option type used by every read command
JsonOption = Annotated[
    bool,
    typer.Option("--json", "-j", help="Output as JSON for machine processing"),
]

app = typer.Typer(
    name="fitplan",
    help="Training and nutrition plan tracker: today's workout, meals and progress.",
    no_args_is_help=True,
)


def get_store(data_dir: Path | None) -> FitplanStore:
    """Get the store at the given directory or the configured default."""
    if data_dir is None:
        data_dir = get_default_data_dir()
    return FitplanStore(data_dir)


def get_delta_windows() -> tuple[int, int]:
    """(weekly_days, monthly_days) from the merged configuration."""
    return delta_windows(load_app_config())


def resolve_date_option(raw: str | None) -> str:
    """Validated --date value, today when omitted."""
    if raw is None:
        return today_iso()
    try:
        return validate_date(raw)
    except ValidationError as e:
        views.print_error(str(e))
        raise typer.Exit(1)


def require_active_plan(store: FitplanStore, user_id: str) -> tuple[PlanRecord, Settings]:
    """
    Active plan and settings of a user, or exit with an error.

    Raises:
        typer.Exit: If the user is unknown or has no active plan
    """
    try:
        record = store.get_active_plan(user_id)
        if record is None:
            views.print_error(f"No active plan for user {user_id}.")
            views.print_info("Ask an admin to run 'import-plan' first.")
            raise typer.Exit(1)
        settings = store.load_settings(user_id)
    except COMMAND_ERRORS as e:
        views.print_error(str(e))
        raise typer.Exit(1)
    return record, settings
