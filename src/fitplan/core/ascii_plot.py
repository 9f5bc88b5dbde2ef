"""
ASCII plotting for progress visualization.

Creates terminal-friendly plots of weight series and block deltas.
"""

from datetime import datetime
from typing import Sequence

from .models import BlockProgress, ProgressPoint


def create_progress_plot(
    points: Sequence[ProgressPoint],
    width: int = 60,
    height: int = 16,
    title: str = "",
    unit: str = "kg",
) -> str:
    """
    Create an ASCII plot of a weight series over time.

    Args:
        points: Series sorted ascending by date
        width: Plot width in characters
        height: Plot height in lines
        title: Chart title
        unit: Unit shown in the title and y labels

    Returns:
        ASCII art string
    """
    if not points:
        return "No logged weights yet."

    dated = [(datetime.strptime(p.date, "%Y-%m-%d"), p.weight_kg) for p in points]
    min_date = dated[0][0]
    date_range = (dated[-1][0] - min_date).days or 1

    values = [v for _, v in dated]
    y_min = min(values)
    y_max = max(values)
    if y_max == y_min:
        # Flat series: give it one unit of headroom each way
        y_min -= 1
        y_max += 1
    y_range = y_max - y_min

    plot_width = width - 8  # room for y-axis labels
    plot_height = height - 3  # room for x-axis and title

    grid = [[" " for _ in range(plot_width)] for _ in range(plot_height)]

    prev: tuple[int, int] | None = None
    for date, value in dated:
        x = int(((date - min_date).days / date_range) * (plot_width - 1))
        y = plot_height - 1 - int(((value - y_min) / y_range) * (plot_height - 1))
        # Dotted connector from the previous point
        if prev is not None and x - prev[0] > 1:
            for cx in range(prev[0] + 1, x):
                t = (cx - prev[0]) / (x - prev[0])
                cy = int(round(prev[1] + t * (y - prev[1])))
                if grid[cy][cx] == " ":
                    grid[cy][cx] = "·"
        grid[y][x] = "●"
        prev = (x, y)

    lines: list[str] = []
    heading = title or "Progress"
    lines.append(f"{heading} ({unit})")

    for row_idx, row in enumerate(grid):
        # Label top, middle and bottom rows
        if row_idx in (0, plot_height // 2, plot_height - 1):
            value = y_max - (row_idx / (plot_height - 1)) * y_range
            label = f"{value:6.1f} ┤"
        else:
            label = "       │"
        lines.append(label + "".join(row))

    lines.append("       └" + "─" * plot_width)
    first = dated[0][0].strftime("%m-%d")
    last = dated[-1][0].strftime("%m-%d")
    gap = max(1, plot_width - len(first) - len(last))
    lines.append("        " + first + " " * gap + last)

    return "\n".join(lines)


def create_simple_bar_chart(
    labels: list[str],
    values: list[float],
    width: int = 40,
    title: str = "",
    unit: str = "",
) -> str:
    """
    Create a simple horizontal bar chart.

    Negative values are drawn with a lighter bar so regressions stand out.

    Args:
        labels: Labels for each bar
        values: Values for each bar
        width: Maximum bar width
        title: Chart title
        unit: Suffix printed after each value

    Returns:
        ASCII bar chart string
    """
    if not values:
        return "No data to display."

    max_abs = max(abs(v) for v in values)
    max_label_len = max(len(l) for l in labels) if labels else 0

    lines = []

    if title:
        lines.append(title)
        lines.append("─" * (max_label_len + width + 5))

    for label, value in zip(labels, values):
        bar_len = int((abs(value) / max_abs) * width) if max_abs > 0 else 0
        bar = ("█" if value >= 0 else "░") * bar_len
        lines.append(f"{label:>{max_label_len}} │{bar} {value:+.1f}{unit}")

    return "\n".join(lines)


def create_block_delta_chart(blocks: Sequence[BlockProgress], monthly: bool = False) -> str:
    """
    Chart of the average percentage delta per training block.

    Blocks without any delta are left out.
    """
    labels: list[str] = []
    values: list[float] = []
    for block in blocks:
        value = block.monthly_avg_pct if monthly else block.weekly_avg_pct
        if value is None:
            continue
        labels.append(f"{block.tab_label} {block.name}")
        values.append(value)

    window = "Monthly" if monthly else "Weekly"
    if not values:
        return f"{window} change: not enough history yet."
    return create_simple_bar_chart(labels, values, title=f"{window} change per block", unit="%")
