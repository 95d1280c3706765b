from __future__ import annotations

import argparse
import datetime as dt
import sys
import webbrowser
from pathlib import Path
from typing import TextIO

import yaml

from .export import export_filename, write_csv
from .logger import get_logger, setup_logger
from .parse_project import ProjectValidationError, load_projects
from .portfolio import PortfolioError, PortfolioStore
from .project_models import PhaseResult, ProjectConfig
from .render_gantt import render_gantt
from .render_rows import to_portfolio_rows, to_render_rows, view_start

logger = get_logger(__name__)


def _parse_date(value: str) -> dt.date:
    try:
        return dt.date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid date '{value}', expected YYYY-MM-DD") from exc


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="solar-timeline",
        description="Solar project timeline planner",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("projects", help="Path to a YAML or JSON project list")
    parser.add_argument("--project", help="Project id for the detail view; defaults to the first project")
    parser.add_argument("--mode", choices=["detail", "portfolio"], default="detail", help="Chart view")
    parser.add_argument("--out", default="output/timeline.svg", help="Output SVG path")
    parser.add_argument("--csv", dest="csv_path", help="Also write the detail timeline as ';'-separated CSV")
    parser.add_argument("--today", type=_parse_date, help="Date of the 'today' marker (YYYY-MM-DD)")
    parser.add_argument(
        "--no-render",
        dest="render",
        action="store_false",
        default=True,
        help="Print the timeline without writing the SVG chart",
    )
    parser.add_argument(
        "--view",
        action="store_true",
        default=False,
        help="Best-effort open the output file after rendering",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase log verbosity (-v, -vv)")
    return parser


def print_timeline(project: ProjectConfig, result: PhaseResult, out: TextIO | None = None) -> None:
    """Write a plain-text phase table for one project (stdout by default)."""

    out = out if out is not None else sys.stdout

    print(f"{project.name} ({project.id}) - {project.power_kwc} kWc", file=out)
    phases = [
        ("Négociation", result.negotiation),
        ("Urbanisme", result.urbanism),
        ("AO CRE", result.tender),
        ("Sécurisation Bail", result.lease),
        ("Raccordement", result.connection),
        ("Construction", result.construction),
        ("Exploitation", result.operation),
    ]
    for label, date_range in phases:
        if date_range is None:
            print(f"  {label:<18} -", file=out)
            continue
        print(
            f"  {label:<18} {date_range.start.isoformat()} -> {date_range.end.isoformat()}"
            f"  ({date_range.duration_months:g} mois)",
            file=out,
        )
    print(f"  {'COD':<18} {result.milestones.cod.isoformat()}", file=out)
    print(f"  Durée totale: {result.total_duration_months} mois", file=out)
    if result.diagnostics.search_truncated:
        print("  Warning: seasonality search hit its step limit", file=out)


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    setup_logger(args.verbose)
    projects_path = Path(args.projects)

    try:
        projects = load_projects(str(projects_path))
    except (yaml.YAMLError, ProjectValidationError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except FileNotFoundError:
        print(f"Error: project file not found: {projects_path}", file=sys.stderr)
        return 1
    except Exception as exc:  # Unexpected
        print(f"Unexpected error while loading projects: {exc}", file=sys.stderr)
        return 1

    if not projects:
        print(f"Error: no projects in {projects_path}", file=sys.stderr)
        return 2

    store = PortfolioStore(projects)
    if args.project:
        try:
            store.select(args.project)
        except PortfolioError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 2

    selected = store.current
    timelines = store.timelines()
    result = store.timeline()

    if args.mode == "portfolio":
        for project, timeline in timelines:
            print_timeline(project, timeline)
            logger.info("%s: COD %s", project.id, timeline.milestones.cod)
    else:
        print_timeline(selected, result)

    if args.csv_path:
        csv_path = Path(args.csv_path)
        if csv_path.is_dir():
            csv_path = csv_path / export_filename(selected)
        try:
            target = write_csv(csv_path, selected, result)
        except OSError as exc:
            print(f"Error: cannot write CSV: {exc}", file=sys.stderr)
            return 1
        logger.info("CSV written to %s", target)

    if not args.render:
        return 0

    try:
        if args.mode == "portfolio":
            render_gantt(
                rows=to_portfolio_rows(timelines),
                out_path=args.out,
                title="Portfolio Master View",
                start=view_start((project.signature_date for project in store.projects), selected.signature_date),
                mode="portfolio",
                today=args.today,
            )
        else:
            render_gantt(
                rows=to_render_rows(result),
                out_path=args.out,
                title=selected.name,
                start=view_start([selected.signature_date], selected.signature_date),
                mode="detail",
                subcontracted=selected.is_subcontracted,
                today=args.today,
            )
    except Exception as exc:
        print(f"Unexpected error while rendering: {exc}", file=sys.stderr)
        return 1
    logger.info("Chart written to %s", args.out)

    if args.view:
        try:
            webbrowser.open(Path(args.out).resolve().as_uri())
        except webbrowser.Error:
            logger.warning("Could not open %s in a browser", args.out)

    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
