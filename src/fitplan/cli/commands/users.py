"""User management commands: add-user, users."""

import json
from typing import Annotated

import typer

from ...core.config import ROLES
from ...core.models import UserAccount
from ...io.serializers import user_to_dict
from .. import views
from ..app import COMMAND_ERRORS, DataDirOption, JsonOption, app, get_store


@app.command("add-user")
def add_user(
    user_id: Annotated[str, typer.Argument(help="New user id")],
    name: Annotated[
        str,
        typer.Option("--name", "-n", help="Display name"),
    ] = "",
    role: Annotated[
        str,
        typer.Option("--role", "-r", help="Role: admin or user"),
    ] = "user",
    data_dir: DataDirOption = None,
) -> None:
    """
    Register a user, or update the name and role of an existing one.

    Only admins can import plans and assign them to other users.
    """
    if role not in ROLES:
        views.print_error(f"Role must be one of: {', '.join(ROLES)}")
        raise typer.Exit(1)

    store = get_store(data_dir)
    try:
        store.add_user(UserAccount(user_id=user_id.strip(), role=role, name=name.strip()))
    except (ValueError, *COMMAND_ERRORS) as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    views.print_success(f"User {user_id.strip()} saved ({role}).")


@app.command()
def users(
    data_dir: DataDirOption = None,
    json_out: JsonOption = False,
) -> None:
    """
    List users that plans can be assigned to, admins first.
    """
    store = get_store(data_dir)
    try:
        accounts = store.list_assignable_users()
    except COMMAND_ERRORS as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    if json_out:
        print(json.dumps([user_to_dict(u) for u in accounts], indent=2))
        return

    views.print_users(accounts)
