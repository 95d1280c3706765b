import contextlib
import datetime as dt
import io

from solar_timeline.__main__ import main, print_timeline
from solar_timeline.portfolio import new_project
from solar_timeline.scheduling import calculate_project_timeline

PROJECTS_YAML = """
projects:
  - id: lyon
    name: Toiture Lyon
    signature_date: 2025-03-01
    power_kwc: 200
  - id: nantes
    name: Ombrière Nantes
    signature_date: 2025-05-15
    power_kwc: 1200
    typology: SHADE
    is_subcontracted: true
"""


def _write_projects(tmp_path, content=PROJECTS_YAML):
    path = tmp_path / "projects.yaml"
    path.write_text(content, encoding="utf-8")
    return path


def test_cli_prints_detail_timeline(tmp_path, capsys):
    path = _write_projects(tmp_path)

    code = main([str(path), "--no-render"])

    out = capsys.readouterr().out
    assert code == 0
    assert "Toiture Lyon (lyon)" in out
    assert "2026-09-01" in out
    assert "Durée totale: 19 mois" in out


def test_cli_writes_svg_and_csv(tmp_path):
    path = _write_projects(tmp_path)
    svg = tmp_path / "out" / "chart.svg"
    csv_file = tmp_path / "out" / "plan.csv"

    code = main([str(path), "--project", "nantes", "--out", str(svg), "--csv", str(csv_file)])

    assert code == 0
    assert svg.stat().st_size > 0
    assert csv_file.read_text(encoding="utf-8").startswith("Project;Phase")
    assert "Ombrière Nantes" in csv_file.read_text(encoding="utf-8")


def test_cli_portfolio_mode(tmp_path, capsys):
    path = _write_projects(tmp_path)
    svg = tmp_path / "portfolio.svg"

    code = main([str(path), "--mode", "portfolio", "--out", str(svg), "--today", "2025-06-01"])

    out = capsys.readouterr().out
    assert code == 0
    assert "Toiture Lyon" in out and "Ombrière Nantes" in out
    assert svg.exists()


def test_cli_missing_file_returns_1(tmp_path, capsys):
    code = main([str(tmp_path / "missing.yaml"), "--no-render"])

    assert code == 1
    assert "not found" in capsys.readouterr().err


def test_cli_invalid_project_returns_2(tmp_path, capsys):
    path = _write_projects(tmp_path, "projects:\n  - id: x\n    name: X\n")

    code = main([str(path), "--no-render"])

    assert code == 2
    assert "signature_date" in capsys.readouterr().err


def test_cli_unknown_project_id_returns_2(tmp_path, capsys):
    path = _write_projects(tmp_path)

    code = main([str(path), "--project", "paris", "--no-render"])

    assert code == 2
    assert "paris" in capsys.readouterr().err


def test_print_timeline_follows_redirected_stdout():
    project = new_project(1, dt.date(2025, 3, 1))
    buffer = io.StringIO()

    with contextlib.redirect_stdout(buffer):
        print_timeline(project, calculate_project_timeline(project))

    assert "Nouveau Projet 1 (prj_1)" in buffer.getvalue()


def test_cli_csv_into_directory_uses_export_filename(tmp_path):
    path = _write_projects(tmp_path)
    out_dir = tmp_path / "exports"
    out_dir.mkdir()

    code = main([str(path), "--project", "nantes", "--csv", str(out_dir), "--no-render"])

    assert code == 0
    assert (out_dir / "helexia_plan_Ombrière_Nantes.csv").exists()
