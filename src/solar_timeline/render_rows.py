from __future__ import annotations

from datetime import date
from typing import Iterable, List

from .dates import DAYS_PER_MONTH, add_months, is_restricted_month
from .project_models import ChartMonth, DateRange, FlatRenderRow, PhaseResult, ProjectConfig

MONTH_WIDTH_PX = 50
TOTAL_MONTHS_VIEW = 60  # five years of columns
VIEW_LEAD_MONTHS = 2  # columns shown before the earliest signature date

_FR_MONTHS = ("janv.", "févr.", "mars", "avr.", "mai", "juin", "juil.", "août", "sept.", "oct.", "nov.", "déc.")


def to_render_rows(result: PhaseResult) -> list[FlatRenderRow]:
    """
    Convert a timeline into detail-view rows, one bar per phase.

    Rows follow the lifecycle order and carry the milestone closing the phase.
    Phases absent from the result are left out.
    """

    milestones = result.milestones
    candidates = [
        ("negotiation", "Négociation", result.negotiation, milestones.loi, "LOI"),
        ("urbanism", "Urbanisme", result.urbanism, milestones.urbanism_ok, "OK"),
        ("tender", "AO CRE", result.tender, milestones.laureate, "LAURÉAT"),
        ("lease", "Sécurisation Bail", result.lease, milestones.lease_signed, "BAIL SIGNÉ"),
        ("connection", "Raccordement", result.connection, None, None),
        ("construction", "Construction", result.construction, milestones.construction_completion, "ACHÈVEMENT"),
        ("operation", "Exploitation", result.operation, milestones.cod, "COD"),
    ]

    rows: List[FlatRenderRow] = []
    for node_id, name, date_range, milestone, milestone_label in candidates:
        if date_range is None:
            continue
        rows.append(
            FlatRenderRow(
                order=len(rows),
                node_type="bar",
                node_id=node_id,
                name=name,
                start_date=date_range.start,
                finish_date=date_range.end,
                duration_months=date_range.duration_months,
                milestone_date=milestone,
                milestone_label=milestone_label if milestone else None,
            )
        )
    return rows


def to_portfolio_rows(timelines: Iterable[tuple[ProjectConfig, PhaseResult]]) -> list[FlatRenderRow]:
    """One row per project; sub-phases become segments layered on the same line."""

    rows: List[FlatRenderRow] = []
    for project, result in timelines:
        parts = [
            ("negotiation", "Nego", result.negotiation),
            ("urbanism", "Urb", result.urbanism),
            ("tender", "CRE", result.tender),
            ("lease", "Bail", result.lease),
            ("connection", "Racco", result.connection),
            ("construction", "Const", result.construction),
            ("operation", "Exp", result.operation),
        ]
        present = [(node_id, label, date_range) for node_id, label, date_range in parts if date_range is not None]
        segments = [
            FlatRenderRow(
                order=idx,
                node_type="segment",
                node_id=f"{project.id}.{node_id}",
                name=label,
                start_date=date_range.start,
                finish_date=date_range.end,
                duration_months=date_range.duration_months,
            )
            for idx, (node_id, label, date_range) in enumerate(present)
        ]
        rows.append(
            FlatRenderRow(
                order=len(rows),
                node_type="bar",
                node_id=project.id,
                name=project.name,
                start_date=min(segment.start_date for segment in segments),
                finish_date=max(segment.finish_date for segment in segments),
                subtitle=f"{_format_number(project.power_kwc)} kWc",
                segments=segments,
            )
        )
    return rows


def view_start(signature_dates: Iterable[date], fallback: date) -> date:
    """First day of the month two months before the earliest signature date."""

    dates = list(signature_dates)
    anchor = min(dates) if dates else fallback
    shifted = add_months(anchor, -VIEW_LEAD_MONTHS)
    return shifted.replace(day=1)


def timeline_months(start: date, count: int = TOTAL_MONTHS_VIEW) -> list[ChartMonth]:
    first = start.replace(day=1)
    months: list[ChartMonth] = []
    for i in range(count):
        current = add_months(first, i)
        months.append(
            ChartMonth(
                date=current,
                label=month_label(current),
                is_restricted=is_restricted_month(current),
                year=current.year,
                month_index=current.month - 1,
            )
        )
    return months


def month_label(value: date) -> str:
    return f"{_FR_MONTHS[value.month - 1]} {value.year % 100:02d}"


def position_px(value: date, start: date) -> float:
    """Horizontal offset of `value` from the view start, in pixels."""
    return (value - start).days * (MONTH_WIDTH_PX / DAYS_PER_MONTH)


def width_px(date_range: DateRange) -> float:
    """Pixel width of a range; inverted ranges collapse to zero."""
    return span_px(date_range.start, date_range.end)


def span_px(start: date, end: date) -> float:
    width = (end - start).days * (MONTH_WIDTH_PX / DAYS_PER_MONTH)
    return width if width > 0 else 0.0


def duration_label(months: float) -> str:
    """Duration rounded to one decimal, without a trailing .0."""
    return _format_number(round(months * 10) / 10)


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return str(value)
