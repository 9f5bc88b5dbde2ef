"""
CLI view formatters using Rich for pretty console output.

Handles table formatting and display of plans, workouts, meals and progress.
"""

from typing import Sequence

from rich.console import Console
from rich.table import Table

from ..core.ascii_plot import create_block_delta_chart, create_progress_plot
from ..core.calendar import format_day_label
from ..core.measures import week_over_week
from ..core.models import (
    BlockProgress,
    DayResolution,
    MealSelection,
    MeasureTrend,
    NextTraining,
    NutritionOption,
    PlanRecord,
    ProgressPoint,
    Settings,
    TrainingDay,
    UserAccount,
    WeeklyMeasure,
    WorkoutSession,
)
from ..core.progress import parse_weight, representative_weight

console = Console()


def _fmt_opt(value: object, suffix: str = "") -> str:
    if value is None or value == "":
        return "-"
    if isinstance(value, float):
        return f"{value:g}{suffix}"
    return f"{value}{suffix}"


def _fmt_delta(value: float | None, suffix: str = "") -> str:
    """Signed, colored delta; "-" when unknown."""
    if value is None:
        return "[dim]-[/dim]"
    color = "green" if value > 0 else "red" if value < 0 else "white"
    return f"[{color}]{value:+.1f}{suffix}[/{color}]"


# =============================================================================
# USERS AND PLANS
# =============================================================================


def print_users(users: Sequence[UserAccount]) -> None:
    if not users:
        console.print("[yellow]No users registered yet.[/yellow]")
        return

    table = Table(title="Users")
    table.add_column("User", style="cyan")
    table.add_column("Name")
    table.add_column("Role", style="magenta")
    for user in users:
        table.add_row(user.user_id, user.name or "-", user.role)
    console.print(table)


def format_training_day_table(day: TrainingDay, title: str | None = None) -> Table:
    """
    Table of the exercises of one training day.

    Args:
        day: Training day to show
        title: Table title (default: the day label)

    Returns:
        Rich Table
    """
    table = Table(title=title or f"Day {day.day_index} - {day.label}")
    table.add_column("#", justify="right", style="dim", width=3)
    table.add_column("Exercise", style="cyan")
    table.add_column("Series", justify="right")
    table.add_column("Reps", justify="right")
    table.add_column("Rest", justify="right")
    table.add_column("Notes", style="dim")

    for i, exercise in enumerate(day.exercises, 1):
        table.add_row(
            str(i),
            exercise.name,
            _fmt_opt(exercise.series),
            _fmt_opt(exercise.reps),
            _fmt_opt(exercise.rest_seconds, "s"),
            exercise.notes or "",
        )
    return table


def print_plan(record: PlanRecord) -> None:
    """Print every training day and a nutrition summary of a plan."""
    plan = record.plan
    console.print(
        f"[bold]{record.source_file_name}[/bold] "
        f"[dim](id {record.plan_id}, imported {record.imported_at})[/dim]"
    )
    console.print()

    if not plan.training_days:
        console.print("[yellow]Plan has no training days.[/yellow]")
    for day in plan.training_days:
        console.print(format_training_day_table(day))

    if plan.nutrition_days:
        table = Table(title=f"Nutrition ({plan.cycle_weeks}-week cycle)")
        table.add_column("Week", justify="right")
        table.add_column("Day", style="cyan")
        table.add_column("Meals")
        for day in plan.nutrition_days:
            meals = ", ".join(m.lower() for m, options in day.meals.items() if options)
            table.add_row(str(day.week_index), day.day_of_week, meals or "-")
        console.print(table)
    else:
        console.print("[dim]Plan has no nutrition days.[/dim]")


def print_plan_history(records: Sequence[PlanRecord]) -> None:
    if not records:
        console.print("[yellow]No plans imported yet.[/yellow]")
        return

    table = Table(title="Plan History")
    table.add_column("Plan", style="cyan")
    table.add_column("File")
    table.add_column("Imported", style="dim")
    table.add_column("Days", justify="right")
    table.add_column("Active", justify="center")
    for record in records:
        table.add_row(
            record.plan_id,
            record.source_file_name,
            record.imported_at,
            str(len(record.plan.training_days)),
            "[green]✓[/green]" if record.is_active else "",
        )
    console.print(table)


def print_settings(settings: Settings, effective_days: Sequence[str]) -> None:
    console.print(f"Nutrition start date: [cyan]{settings.nutrition_start_date}[/cyan]")
    if settings.training_days:
        console.print(f"Training days: [cyan]{', '.join(settings.training_days)}[/cyan]")
    else:
        console.print(
            f"Training days: [cyan]{', '.join(effective_days) or '-'}[/cyan] [dim](auto)[/dim]"
        )


# =============================================================================
# DAY AND WORKOUT
# =============================================================================


def print_day(resolution: DayResolution, next_training: NextTraining | None) -> None:
    """
    Print what the plan prescribes for a date.

    Args:
        resolution: Resolved day
        next_training: Next training date from the resolved date, if known
    """
    console.print()
    console.print(
        f"[bold cyan]{format_day_label(resolution.date)}[/bold cyan] "
        f"[dim](nutrition week {resolution.nutrition_week})[/dim]"
    )

    if resolution.training_day is None:
        console.print("[blue]Rest day.[/blue]")
    else:
        console.print(format_training_day_table(resolution.training_day))

    if resolution.nutrition_day is None:
        console.print("[dim]No nutrition day planned for this date.[/dim]")
    else:
        for meal_type, options in resolution.nutrition_day.meals.items():
            if not options:
                continue
            console.print(f"[bold]{meal_type.title().replace('_', ' ')}[/bold]")
            for option in options:
                title = f" {option.title}:" if option.title else ""
                console.print(f" •{title} " + "; ".join(l for l in option.lines if l.strip()))

    if next_training is not None and next_training.date != resolution.date:
        console.print()
        console.print(
            f"Next training: [cyan]{format_day_label(next_training.date)}[/cyan]"
        )
    console.print()


def print_workout(
    date: str,
    day: TrainingDay | None,
    session: WorkoutSession | None,
) -> None:
    """Print the training day of a date with the sets logged for it."""
    if day is None:
        console.print(f"[blue]{format_day_label(date)}: rest day.[/blue]")
        return

    table = Table(title=f"{format_day_label(date)} · Day {day.day_index} - {day.label}")
    table.add_column("#", justify="right", style="dim", width=3)
    table.add_column("Exercise", style="cyan")
    table.add_column("Plan", justify="right")
    table.add_column("Logged sets")
    table.add_column("Top (kg)", justify="right", style="bold")

    for i, exercise in enumerate(day.exercises):
        rows = []
        if session is not None:
            rows = [
                s for s in session.set_logs
                if s.exercise_id == exercise.id
                or (s.exercise_id is None and s.exercise_index == i)
            ]
            rows.sort(key=lambda s: s.set_number)
        logged = ", ".join(
            f"{s.set_number}:{_fmt_opt(s.weight_kg)}"
            + (f"×{s.reps_done}" if s.reps_done is not None else "")
            + ("✓" if s.done else "")
            for s in rows
        )
        top = representative_weight(s.weight_kg for s in rows)
        prescribed = f"{_fmt_opt(exercise.series)}×{_fmt_opt(exercise.reps)}"
        table.add_row(str(i + 1), exercise.name, prescribed, logged or "-", _fmt_opt(top))

    console.print(table)
    if session is not None:
        if session.note:
            console.print(f"[dim]Note: {session.note}[/dim]")
        if session.completed:
            console.print("[green]Completed.[/green]")


def print_history(sessions: Sequence[WorkoutSession]) -> None:
    """
    Print workout history.

    Args:
        sessions: Sessions to display
    """
    if not sessions:
        console.print("[yellow]No workouts recorded yet.[/yellow]")
        return

    table = Table(title="Workout History")
    table.add_column("#", justify="right", style="dim", width=3)
    table.add_column("Date", style="cyan")
    table.add_column("Sets", justify="right")
    table.add_column("Exercises", justify="right")
    table.add_column("Top (kg)", justify="right", style="bold")
    table.add_column("Done", justify="center")
    table.add_column("Note", style="dim")

    for i, session in enumerate(sessions, 1):
        weights = [parse_weight(s.weight_kg) for s in session.set_logs]
        top = max((w for w in weights if w is not None), default=None)
        table.add_row(
            str(i),
            session.date,
            str(len(session.set_logs)),
            str(len({s.exercise_key for s in session.set_logs})),
            _fmt_opt(top),
            "✓" if session.completed else "",
            session.note or "",
        )
    console.print(table)


# =============================================================================
# NUTRITION
# =============================================================================


def print_nutrition_options(
    options: Sequence[NutritionOption],
    suggested: int | None,
    selection: MealSelection | None = None,
) -> None:
    """
    Print the numbered day options of a plan.

    The suggested option is marked with ★, the stored choice with ✓.
    """
    if not options:
        console.print("[yellow]Plan has no nutrition days.[/yellow]")
        return

    chosen = selection.selected_option_index if selection is not None else None
    for option in options:
        marks = ""
        if option.option_index == suggested:
            marks += " [yellow]★ suggested[/yellow]"
        if option.option_index == chosen:
            marks += " [green]✓ selected[/green]"
        console.print(
            f"[bold]{option.label}[/bold] "
            f"[dim](week {option.week_index}, {option.day_of_week})[/dim]{marks}"
        )
        for meal_type, lines in option.meals:
            console.print(f"  [cyan]{meal_type.title().replace('_', ' ')}[/cyan]")
            for line in lines:
                console.print(f"    {line}")

    if selection is not None:
        state = "done" if selection.done else "pending"
        console.print(f"\nSelection for {selection.date}: {state}")
        if selection.note:
            console.print(f"[dim]Note: {selection.note}[/dim]")


# =============================================================================
# PROGRESS
# =============================================================================


def print_progress_blocks(blocks: Sequence[BlockProgress]) -> None:
    """
    Print the block summary table followed by the weekly delta chart.

    Args:
        blocks: Progress blocks in plan order
    """
    if not blocks:
        console.print("[yellow]Active plan has no training days.[/yellow]")
        return

    table = Table(title="Progress by Block")
    table.add_column("Block", style="dim")
    table.add_column("Day", style="cyan")
    table.add_column("Name")
    table.add_column("Week %", justify="right")
    table.add_column("Month %", justify="right")
    table.add_column("Week kg", justify="right")
    table.add_column("Month kg", justify="right")

    for block in blocks:
        table.add_row(
            block.block_id,
            block.tab_label,
            block.name,
            _fmt_delta(block.weekly_avg_pct, "%"),
            _fmt_delta(block.monthly_avg_pct, "%"),
            _fmt_delta(block.weekly_total_kg),
            _fmt_delta(block.monthly_total_kg),
        )
    console.print(table)
    console.print()
    console.print(create_block_delta_chart(blocks))


def print_block_detail(block: BlockProgress, plot_exercise: int | None = None) -> None:
    """
    Print per-exercise deltas of one block.

    Args:
        block: Block to show
        plot_exercise: 1-based exercise number to chart, if any
    """
    table = Table(title=block.full_label)
    table.add_column("#", justify="right", style="dim", width=3)
    table.add_column("Exercise", style="cyan")
    table.add_column("Points", justify="right")
    table.add_column("Latest", justify="right", style="bold")
    table.add_column("Week %", justify="right")
    table.add_column("Month %", justify="right")
    table.add_column("Week kg", justify="right")
    table.add_column("Month kg", justify="right")

    for exercise in block.exercises:
        latest = exercise.points[-1].weight_kg if exercise.points else None
        table.add_row(
            str(exercise.exercise_index + 1),
            exercise.exercise_name,
            str(len(exercise.points)),
            _fmt_opt(latest),
            _fmt_delta(exercise.weekly_delta_pct, "%"),
            _fmt_delta(exercise.monthly_delta_pct, "%"),
            _fmt_delta(exercise.weekly_delta_kg),
            _fmt_delta(exercise.monthly_delta_kg),
        )
    console.print(table)

    if plot_exercise is not None:
        if not 1 <= plot_exercise <= len(block.exercises):
            print_warning(f"No exercise #{plot_exercise} in {block.block_id}.")
            return
        exercise = block.exercises[plot_exercise - 1]
        console.print()
        console.print(create_progress_plot(exercise.points, title=exercise.exercise_name))


# =============================================================================
# MEASUREMENTS
# =============================================================================


def print_measure_trends(trends: Sequence[MeasureTrend]) -> None:
    table = Table(title="Body Measurements")
    table.add_column("Metric", style="cyan")
    table.add_column("Latest", justify="right", style="bold")
    table.add_column("Week", justify="right")
    table.add_column("Month", justify="right")
    table.add_column("Entries", justify="right", style="dim")

    for trend in trends:
        latest = trend.points[-1][1] if trend.points else None
        table.add_row(
            trend.label,
            _fmt_opt(latest, f" {trend.unit}"),
            _fmt_delta(trend.weekly_delta),
            _fmt_delta(trend.monthly_delta),
            str(len(trend.points)),
        )
    console.print(table)


def print_measure_history(trend: MeasureTrend) -> None:
    """Newest-first rows of one metric with the change to the previous week."""
    if not trend.points:
        console.print(f"[yellow]No {trend.label.lower()} entries yet.[/yellow]")
        return

    table = Table(title=f"{trend.label} ({trend.unit})")
    table.add_column("Week", style="cyan")
    table.add_column("Value", justify="right", style="bold")
    table.add_column("Change", justify="right")
    for week, value, delta in week_over_week(trend.points):
        table.add_row(week, f"{value:g}", _fmt_delta(delta))
    console.print(table)
    console.print()
    console.print(
        create_progress_plot(
            [ProgressPoint(date=week, weight_kg=value) for week, value in trend.points],
            title=trend.label,
            unit=trend.unit,
        )
    )


def print_measure_saved(measure: WeeklyMeasure) -> None:
    print_success(f"Measurements saved for week of {measure.week_start}")


# =============================================================================
# BACKUP
# =============================================================================


def print_restore_report(report: dict[str, int]) -> None:
    console.print(f"Entries in backup:     {report['totalEntries']}")
    console.print(f"[green]Days restored:         {report['insertedDays']}[/green]")
    console.print(f"Set logs restored:     {report['insertedSetLogs']}")
    console.print(f"[dim]Skipped (existing):    {report['skippedExistingDays']}[/dim]")
    console.print(f"[dim]Skipped (invalid):     {report['skippedInvalidDays']}[/dim]")


# =============================================================================
# MESSAGES
# =============================================================================


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]{message}[/green]")


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[red]Error: {message}[/red]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]Warning: {message}[/yellow]")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[blue]{message}[/blue]")


def confirm_action(message: str) -> bool:
    """
    Prompt user for confirmation.

    Args:
        message: Confirmation message

    Returns:
        True if confirmed, False otherwise
    """
    response = console.input(f"{message} [y/N]: ")
    return response.lower() in ("y", "yes")
