from __future__ import annotations

import csv
import datetime as dt
import re
from pathlib import Path

from .project_models import DateRange, PhaseResult, ProjectConfig

HEADER = ["Project", "Phase", "Start Date", "End Date", "Duration (Months)"]
DELIMITER = ";"
MISSING = "-"

Row = list[str]


def export_rows(project: ProjectConfig, result: PhaseResult) -> list[Row]:
    """
    Flatten a timeline into tabular rows, header first.

    Negotiation and urbanism always get a row (dashes when skipped); tender and
    lease only when they ran. The COD row carries the operation start only.
    """

    name = project.name
    rows: list[Row] = [list(HEADER)]
    rows.append(_range_row(name, "Négociation", result.negotiation))
    rows.append(_range_row(name, "Urbanisme", result.urbanism))
    if result.tender is not None:
        rows.append(_range_row(name, "AO CRE", result.tender))
    if result.lease is not None:
        rows.append(_range_row(name, "Sécurisation Bail", result.lease))
    rows.append(_range_row(name, "Raccordement", result.connection))
    rows.append(_range_row(name, "Construction", result.construction))
    rows.append([name, "COD", _format_date(result.operation.start), MISSING, MISSING])
    return rows


def write_csv(path: str | Path, project: ProjectConfig, result: PhaseResult) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("w", encoding="utf-8", newline="") as fh:
        writer = csv.writer(fh, delimiter=DELIMITER, lineterminator="\n")
        writer.writerows(export_rows(project, result))
    return target


def export_filename(project: ProjectConfig) -> str:
    slug = re.sub(r"\s", "_", project.name)
    return f"helexia_plan_{slug}.csv"


def _range_row(name: str, phase: str, date_range: DateRange | None) -> Row:
    if date_range is None:
        return [name, phase, MISSING, MISSING, "0"]
    return [
        name,
        phase,
        _format_date(date_range.start),
        _format_date(date_range.end),
        _format_months(date_range.duration_months),
    ]


def _format_date(value: dt.date) -> str:
    return value.isoformat()


def _format_months(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return str(value)
