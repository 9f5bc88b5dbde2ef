"""
CLI entry point using Typer.

Commands are defined in cli/commands/ and registered on the shared app
when their module is imported:
- users.py: add-user, users
- plans.py: import-plan, show-plan, plan-history, settings, today
- workout.py: workout, log-set, log-workout, show-history
- nutrition.py: nutrition, select-menu
- progress.py: progress
- measures.py: log-measure, measures
- backup.py: export-backup, restore-backup
"""

from .app import app
from .commands import backup, measures, nutrition, plans, progress, users, workout  # noqa: F401

if __name__ == "__main__":
    app()
