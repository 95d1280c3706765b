import datetime as dt

import pytest

from solar_timeline.project_models import DateRange, ProjectConfig, SkippedPhases
from solar_timeline.render_gantt import render_gantt
from solar_timeline.render_rows import (
    MONTH_WIDTH_PX,
    position_px,
    timeline_months,
    to_portfolio_rows,
    to_render_rows,
    view_start,
    width_px,
)
from solar_timeline.scheduling import calculate_project_timeline


def _project(project_id="p1", **changes):
    base = dict(id=project_id, name=f"Site {project_id}", signature_date=dt.date(2025, 3, 1), power_kwc=200)
    base.update(changes)
    return ProjectConfig(**base)


def test_detail_rows_follow_lifecycle_order():
    rows = to_render_rows(calculate_project_timeline(_project()))

    assert [row.node_id for row in rows] == [
        "negotiation",
        "urbanism",
        "tender",
        "lease",
        "connection",
        "construction",
        "operation",
    ]
    assert rows[0].milestone_label == "LOI"
    assert rows[4].milestone_date is None
    assert rows[-1].milestone_label == "COD"
    assert rows[-1].milestone_date == dt.date(2026, 9, 1)


def test_detail_rows_drop_skipped_phases():
    result = calculate_project_timeline(_project(skipped=SkippedPhases(negotiation=True)))

    rows = to_render_rows(result)

    assert rows[0].node_id == "urbanism"
    assert [row.order for row in rows] == list(range(len(rows)))


def test_portfolio_rows_carry_segments():
    projects = [_project("a"), _project("b", power_kwc=36.5)]

    rows = to_portfolio_rows((project, calculate_project_timeline(project)) for project in projects)

    assert [row.node_id for row in rows] == ["a", "b"]
    assert len(rows[0].segments) == 7
    assert rows[0].subtitle == "200 kWc"
    assert rows[1].subtitle == "36.5 kWc"
    assert rows[0].start_date == dt.date(2025, 2, 14)


def test_view_start_is_two_months_before_earliest_signature():
    dates = [dt.date(2025, 6, 20), dt.date(2025, 3, 15)]

    assert view_start(dates, dt.date(2030, 1, 1)) == dt.date(2025, 1, 1)
    assert view_start([], dt.date(2025, 5, 9)) == dt.date(2025, 3, 1)


def test_timeline_months_flags_restricted_columns():
    months = timeline_months(dt.date(2025, 1, 1), 12)

    assert months[0].label == "janv. 25"
    assert months[7].label == "août 25"
    assert [month.month_index for month in months if month.is_restricted] == [0, 3, 7]


def test_pixel_geometry():
    start = dt.date(2025, 1, 1)

    assert position_px(start, start) == 0
    assert position_px(dt.date(2025, 1, 31), start) == pytest.approx(30 * MONTH_WIDTH_PX / 30.44)
    assert width_px(DateRange(dt.date(2025, 2, 1), dt.date(2025, 1, 1), 0)) == 0


def test_renderer_produces_detail_svg(tmp_path):
    project = _project()
    rows = to_render_rows(calculate_project_timeline(project))
    out_file = tmp_path / "detail.svg"

    render_gantt(
        rows,
        out_path=str(out_file),
        title=project.name,
        start=view_start([project.signature_date], project.signature_date),
        today=dt.date(2025, 6, 1),
    )

    assert out_file.exists()
    assert out_file.stat().st_size > 0


def test_renderer_produces_portfolio_svg(tmp_path):
    projects = [_project("a"), _project("b", is_subcontracted=True)]
    rows = to_portfolio_rows((project, calculate_project_timeline(project)) for project in projects)
    out_file = tmp_path / "nested" / "portfolio.svg"

    render_gantt(rows, out_path=str(out_file), title="Portfolio", start=dt.date(2025, 1, 1), mode="portfolio")

    assert out_file.stat().st_size > 0


def test_renderer_rejects_empty_rows(tmp_path):
    with pytest.raises(ValueError):
        render_gantt([], out_path=str(tmp_path / "x.svg"), title="", start=dt.date(2025, 1, 1))
