from __future__ import annotations

import datetime as dt
from importlib import metadata
from pathlib import Path
from typing import Literal

import matplotlib

matplotlib.use("Agg")  # ensure headless, deterministic output
import matplotlib.pyplot as plt
from matplotlib.patches import Polygon

from .project_models import ChartMonth, FlatRenderRow
from .render_rows import (
    MONTH_WIDTH_PX,
    TOTAL_MONTHS_VIEW,
    duration_label,
    position_px,
    span_px,
    timeline_months,
)

ViewMode = Literal["detail", "portfolio"]

PHASE_COLORS = {
    "negotiation": "#64748b",
    "urbanism": "#8dc63f",
    "tender": "#eab308",
    "lease": "#fb923c",
    "connection": "#005a8c",
    "construction": "#0d9488",
    "operation": "#059669",
}
DEFAULT_COLOR = "#999999"
MILESTONE_COLOR = "#00263a"
TODAY_COLOR = "#ef4444"
RESTRICTED_FILL = "#f1f5f9"
MIN_SEGMENT_LABEL_PX = 30  # portfolio segments narrower than this stay unlabelled
FONT_SCALE = 1.0
TITLE_FONT = 14 * FONT_SCALE
LABEL_FONT = 10 * FONT_SCALE
BAR_FONT = 8 * FONT_SCALE
FOOTER_FONT = 8 * FONT_SCALE
TICK_FONT = 8 * FONT_SCALE
TOP_MARGIN_FRAC = 0.88
TITLE_Y = 0.985
PX_PER_INCH = 100.0


def render_gantt(
    rows: list[FlatRenderRow],
    out_path: str,
    title: str,
    start: dt.date,
    mode: ViewMode = "detail",
    subcontracted: bool = False,
    today: dt.date | None = None,
    months: int = TOTAL_MONTHS_VIEW,
) -> None:
    """
    Render a static SVG Gantt chart to `out_path`.

    - x positions come from the chart geometry in render_rows (pixels from `start`).
    - Detail mode draws one bar per phase with its milestone; restricted months
      are hatched unless the project is subcontracted.
    - Portfolio mode draws one row per project with layered sub-phase segments.
    """

    if not rows:
        raise ValueError("rows must not be empty")

    grid = timeline_months(start, months)
    view_start = grid[0].date
    chart_width = len(grid) * MONTH_WIDTH_PX
    row_height = 0.6 if mode == "detail" else 0.45

    fig_width = max(12.0, min(30.0, chart_width / PX_PER_INCH + 3.0))
    fig_height = max(3.0, 0.7 * len(rows) + 2.0)
    fig = plt.figure(figsize=(fig_width, fig_height))
    # Left column for labels, right column for the timeline.
    gs = fig.add_gridspec(1, 2, width_ratios=[1.0, 5.0], wspace=0.02, left=0.02, right=0.99, top=TOP_MARGIN_FRAC, bottom=0.08)
    label_ax = fig.add_subplot(gs[0, 0])
    ax = fig.add_subplot(gs[0, 1], sharey=label_ax)

    ax.set_ylim(-1, len(rows))
    ax.invert_yaxis()
    ax.set_xlim(0, chart_width)
    _draw_month_grid(ax, grid, view_start, hatch_restricted=mode == "detail" and not subcontracted)
    ax.set_yticks([])

    label_ax.set_xlim(0, 1)
    label_ax.axis("off")

    fig.suptitle(title, x=0.5, fontsize=TITLE_FONT, y=TITLE_Y)
    footer = f"Solar timeline planner v{_tool_version()}"
    fig.text(0.99, 0.01, footer, ha="right", va="bottom", fontsize=FOOTER_FONT, alpha=0.8)

    for y, row in enumerate(rows):
        if mode == "portfolio":
            _draw_portfolio_row(ax, label_ax, row, y, view_start, row_height)
        else:
            _draw_detail_row(ax, label_ax, row, y, view_start, row_height)

    if today is not None:
        x_today = position_px(today, view_start)
        if 0 <= x_today <= chart_width:
            ax.axvline(x_today, color=TODAY_COLOR, linestyle="--", linewidth=0.8, alpha=0.6, zorder=1)

    Path(out_path).parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out_path, format="svg", bbox_inches="tight")
    plt.close(fig)


def _draw_month_grid(ax: plt.Axes, grid: list[ChartMonth], view_start: dt.date, hatch_restricted: bool) -> None:
    ticks: list[float] = []
    for month in grid:
        left = position_px(month.date, view_start)
        ticks.append(left + MONTH_WIDTH_PX / 2)
        ax.axvline(left, color="#e5e7eb", linewidth=0.5, zorder=0)
        if hatch_restricted and month.is_restricted:
            ax.axvspan(
                left,
                left + MONTH_WIDTH_PX,
                facecolor=RESTRICTED_FILL,
                edgecolor="#cbd5e1",
                hatch="//",
                linewidth=0,
                zorder=0,
            )
    ax.xaxis.tick_top()
    ax.set_xticks(ticks)
    ax.set_xticklabels([month.label for month in grid], fontsize=TICK_FONT, rotation=90)
    ax.tick_params(axis="x", length=0, pad=4)


def _draw_detail_row(
    ax: plt.Axes,
    label_ax: plt.Axes,
    row: FlatRenderRow,
    y: int,
    view_start: dt.date,
    row_height: float,
) -> None:
    label_ax.text(0.98, y, row.name, ha="right", va="center", fontsize=LABEL_FONT, fontweight="bold")
    if row.start_date is None or row.finish_date is None:
        return

    left = position_px(row.start_date, view_start)
    width = span_px(row.start_date, row.finish_date)
    color = PHASE_COLORS.get(row.node_id, DEFAULT_COLOR)
    _bar(ax, left, y, width, row_height, color)
    ax.text(
        left + width + 4,
        y,
        f"{duration_label(row.duration_months)} mois",
        ha="left",
        va="center",
        fontsize=BAR_FONT,
        color="#334155",
        zorder=4,
    )

    if row.milestone_date is not None:
        center_x = position_px(row.milestone_date, view_start)
        half_width = MONTH_WIDTH_PX * 0.12
        half_height = row_height / 1.6
        diamond = [
            (center_x - half_width, y),
            (center_x, y - half_height),
            (center_x + half_width, y),
            (center_x, y + half_height),
        ]
        ax.add_patch(Polygon(diamond, closed=True, facecolor=MILESTONE_COLOR, edgecolor="white", zorder=5))
        if row.milestone_label:
            ax.text(
                center_x,
                y + half_height + 0.05,
                row.milestone_label,
                ha="center",
                va="top",
                fontsize=BAR_FONT - 1,
                fontweight="bold",
                color=MILESTONE_COLOR,
                zorder=5,
            )


def _draw_portfolio_row(
    ax: plt.Axes,
    label_ax: plt.Axes,
    row: FlatRenderRow,
    y: int,
    view_start: dt.date,
    row_height: float,
) -> None:
    label_ax.text(0.98, y - 0.12, row.name, ha="right", va="center", fontsize=LABEL_FONT, fontweight="bold")
    if row.subtitle:
        label_ax.text(0.98, y + 0.22, row.subtitle, ha="right", va="center", fontsize=BAR_FONT, color="#94a3b8")

    for segment in row.segments:
        if segment.start_date is None or segment.finish_date is None:
            continue
        left = position_px(segment.start_date, view_start)
        width = span_px(segment.start_date, segment.finish_date)
        phase = segment.node_id.rsplit(".", 1)[-1]
        # Later segments sit above earlier ones.
        _bar(ax, left, y, width, row_height, PHASE_COLORS.get(phase, DEFAULT_COLOR), zorder=2 + segment.order)
        if width > MIN_SEGMENT_LABEL_PX:
            ax.text(
                left + width / 2,
                y,
                f"{duration_label(segment.duration_months)}m",
                ha="center",
                va="center",
                fontsize=BAR_FONT - 1,
                color="white",
                fontweight="bold",
                zorder=3 + segment.order,
            )


def _bar(ax: plt.Axes, left: float, y: float, width: float, height: float, color: str, zorder: int = 2) -> None:
    ax.barh(
        y,
        width=width,
        left=left,
        height=height,
        color=color,
        edgecolor="white",
        linewidth=0.6,
        zorder=zorder,
    )


def _tool_version() -> str:
    try:
        return metadata.version("solar-timeline")
    except metadata.PackageNotFoundError:
        return "0.0.0"
