import datetime as dt

from solar_timeline.export import export_filename, export_rows, write_csv
from solar_timeline.project_models import InvestmentModel, ProjectConfig, SkippedPhases
from solar_timeline.scheduling import calculate_project_timeline


def _project(**changes):
    base = dict(id="p1", name="Site Lyon", signature_date=dt.date(2025, 3, 1), power_kwc=200)
    base.update(changes)
    return ProjectConfig(**base)


def test_export_rows_for_reference_project():
    project = _project()
    rows = export_rows(project, calculate_project_timeline(project))

    assert rows[0] == ["Project", "Phase", "Start Date", "End Date", "Duration (Months)"]
    assert rows[1] == ["Site Lyon", "Négociation", "2025-02-14", "2025-03-01", "0.5"]
    assert rows[2] == ["Site Lyon", "Urbanisme", "2025-03-01", "2025-07-01", "4"]
    assert [row[1] for row in rows[3:]] == [
        "AO CRE",
        "Sécurisation Bail",
        "Raccordement",
        "Construction",
        "COD",
    ]
    assert rows[-1] == ["Site Lyon", "COD", "2026-09-01", "-", "-"]


def test_skipped_phases_export_placeholders():
    project = _project(
        skipped=SkippedPhases(negotiation=True, urbanism=True),
        investment_model=InvestmentModel.CLIENT_INVESTMENT,
    )
    rows = export_rows(project, calculate_project_timeline(project))

    assert rows[1] == ["Site Lyon", "Négociation", "-", "-", "0"]
    assert rows[2] == ["Site Lyon", "Urbanisme", "-", "-", "0"]
    assert "Sécurisation Bail" not in [row[1] for row in rows]


def test_write_csv_uses_semicolons(tmp_path):
    project = _project()
    out_file = write_csv(tmp_path / "plan.csv", project, calculate_project_timeline(project))

    lines = out_file.read_text(encoding="utf-8").splitlines()

    assert lines[0] == "Project;Phase;Start Date;End Date;Duration (Months)"
    assert lines[-1] == "Site Lyon;COD;2026-09-01;-;-"


def test_export_filename_replaces_whitespace():
    assert export_filename(_project(name="Mon Projet 1")) == "helexia_plan_Mon_Projet_1.csv"
