"""ASCII trend graphs for coverage history.

Graphs are plain text meant to be embedded verbatim in a fenced Markdown
block::

    **Coverage Trend**

    ┌────────────┐
    │ 82% ●      │
    │        ●   │
    │ 80%     ●● │
    ...
    └────────────┘
           Jan 01  Jan 06
"""

from __future__ import annotations

import math
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from covtrend.models.history import TrendDataPoint

MAX_GRAPH_WIDTH = 50
GRAPH_HEIGHT = 10
MAX_LINE_WIDTH = 120

# Half-width of the synthetic band drawn around a flat series
_FLAT_BAND = 2
_MAX_PERCENTAGE = 100
_LABEL_WIDTH = 4
_AXIS_LABEL_CHARS = 8
_MARKER = "●"
_ELLIPSIS = "…"


class LabelExpansion(Enum):
    """Edge of the y-axis that absorbs leftover rows when labels are spread out."""

    EXPAND_TOP = "top"
    EXPAND_BOTTOM = "bottom"


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def select_expansion(bottom: int, top: int) -> LabelExpansion:
    """Pick the edge with room to grow.

    Coverage cannot drop below 0 or rise above 100, so a range touching 0
    grows upward and one touching 100 grows downward. Other ranges expand
    at the bottom.
    """
    if bottom == 0:
        return LabelExpansion.EXPAND_TOP
    # Also covers top == 100
    return LabelExpansion.EXPAND_BOTTOM


def distribute_rows(count: int, height: int, expansion: LabelExpansion) -> list[int]:
    """Spread ``count`` labels over rows ``0..height-1``, first and last included.

    Gaps are ``(height-1) // (count-1)`` rows wide; the remainder widens the
    gap at the ``expansion`` edge.

    Examples:
        >>> distribute_rows(4, 9, LabelExpansion.EXPAND_BOTTOM)
        [0, 2, 4, 8]
        >>> distribute_rows(4, 9, LabelExpansion.EXPAND_TOP)
        [0, 4, 6, 8]
    """
    if count <= 1:
        return [0]
    usable = height - 1
    base_gap, remainder = divmod(usable, count - 1)
    if expansion is LabelExpansion.EXPAND_TOP:
        return [0] + [base_gap + remainder + (i - 1) * base_gap for i in range(1, count)]
    return [i * base_gap for i in range(count - 1)] + [usable]


def place_labels(min_value: float, max_value: float, height: int = GRAPH_HEIGHT) -> dict[int, int]:
    """Map graph rows to integer y-axis labels.

    Row 0 always carries ``round(max_value)`` and the last row always
    carries ``round(min_value)``, even when they are equal. Interior rows
    never repeat a label.

    Returns:
        Row index -> percentage. Rows without a label are absent.
    """
    top = _round_half_up(max_value)
    bottom = _round_half_up(min_value)
    labels = {0: top, height - 1: bottom}

    distinct = top - bottom + 1
    if distinct <= 1:
        return labels

    if distinct >= height:
        span = distinct - 1
        rows = height - 1
        for row in range(1, height - 1):
            labels[row] = top - (2 * row * span + rows) // (2 * rows)
        return labels

    rows = distribute_rows(distinct, height, select_expansion(bottom, top))
    for offset, row in enumerate(rows):
        labels[row] = top - offset
    return labels


def sample_points(
    data: Sequence[TrendDataPoint], width: int = MAX_GRAPH_WIDTH
) -> list[TrendDataPoint]:
    """Downsample to ``width`` points by even stride, always ending on the newest point."""
    if len(data) <= width:
        return list(data)
    sampled = [data[i * len(data) // width] for i in range(width - 1)]
    sampled.append(data[-1])
    return sampled


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1] + _ELLIPSIS


def generate_trend_graph(data: Sequence[TrendDataPoint], title: str) -> str:
    """Render a coverage trend graph.

    Args:
        data: Points in chronological order (oldest first).
        title: Graph title, rendered in bold.

    Returns:
        Multi-line text; no line exceeds ``MAX_LINE_WIDTH`` characters.
    """
    header = f"**{_truncate(title, MAX_LINE_WIDTH - 4)}**"
    if not data:
        return f"{header}\n\nNo history data available."
    if len(data) == 1:
        point = data[0]
        return f"{header}\n\n" + _truncate(f"{point.label}: {point.value:.1f}%", MAX_LINE_WIDTH)

    sampled = sample_points(data)
    values = [point.value for point in sampled]
    low, high = min(values), max(values)
    grid = [[" "] * len(sampled) for _ in range(GRAPH_HEIGHT)]

    if high == low:
        for column in range(len(sampled)):
            grid[GRAPH_HEIGHT // 2][column] = _MARKER
        labels = place_labels(max(0, high - _FLAT_BAND), min(_MAX_PERCENTAGE, high + _FLAT_BAND))
    else:
        for column, value in enumerate(values):
            normalized = (value - low) / (high - low)
            row = GRAPH_HEIGHT - 1 - _round_half_up(normalized * (GRAPH_HEIGHT - 1))
            grid[row][column] = _MARKER
        labels = place_labels(low, high)

    border = "─" * (len(sampled) + 6)
    lines = [header, "", f"┌{border}┐"]
    for row, cells in enumerate(grid):
        label = f"{labels[row]}%" if row in labels else ""
        lines.append(f"│{label:>{_LABEL_WIDTH}} {''.join(cells)} │")
    lines.append(f"└{border}┘")

    first = sampled[0].label[:_AXIS_LABEL_CHARS]
    last = sampled[-1].label[:_AXIS_LABEL_CHARS]
    padding = " " * max(0, len(sampled) - len(first) - len(last))
    lines.append(f"       {first}{padding}{last}")

    return "\n".join(lines)
