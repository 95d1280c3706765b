from __future__ import annotations

import dataclasses
import datetime as dt
import math
from pathlib import Path
from typing import Any

import yaml

from .logger import get_logger
from .parse_project import ProjectValidationError, load_projects, parse_project_record, project_to_record
from .project_models import PHASE_KEYS, PhaseResult, ProjectConfig
from .scheduling import calculate_project_timeline

logger = get_logger(__name__)

STORAGE_KEY = "helexia_portfolio_v2"

_EDITABLE_FIELDS = {
    "name",
    "signature_date",
    "power_kwc",
    "typology",
    "injection_type",
    "investment_model",
    "is_subcontracted",
}


class PortfolioError(Exception):
    """Raised for invalid portfolio operations (unknown project id, unknown field)."""


def new_project(index: int, today: dt.date | None = None) -> ProjectConfig:
    """Default project created when the portfolio grows by one."""

    return ProjectConfig(
        id=f"prj_{index}",
        name=f"Nouveau Projet {index}",
        signature_date=today or dt.date.today(),
        power_kwc=500,
    )


class PortfolioStore:
    """
    Ordered list of projects plus the current selection.

    Projects are immutable; every edit replaces the selected record with an
    updated copy. Timelines are recomputed on demand, never cached.
    """

    def __init__(self, projects: list[ProjectConfig] | None = None, current_id: str | None = None):
        self._projects: list[ProjectConfig] = list(projects) if projects else [new_project(1)]
        self._current_id = current_id if current_id is not None else self._projects[0].id
        self._index(self._current_id)

    @property
    def projects(self) -> list[ProjectConfig]:
        return list(self._projects)

    @property
    def current_id(self) -> str:
        return self._current_id

    @property
    def current(self) -> ProjectConfig:
        return self._projects[self._index(self._current_id)]

    def select(self, project_id: str) -> ProjectConfig:
        self._index(project_id)
        self._current_id = project_id
        return self.current

    def add_project(self, today: dt.date | None = None) -> ProjectConfig:
        """Append a default project, select it and return it."""

        index = len(self._projects) + 1
        taken = {existing.id for existing in self._projects}
        while f"prj_{index}" in taken:
            index += 1
        project = new_project(index, today)
        self._projects.append(project)
        self._current_id = project.id
        logger.info("Added project %s", project.id)
        return project

    def delete_project(self, project_id: str) -> bool:
        """
        Remove a project; the last remaining project is never deleted.

        Returns False when the deletion was refused. Deleting the current
        project selects the first remaining one.
        """

        idx = self._index(project_id)
        if len(self._projects) <= 1:
            return False
        del self._projects[idx]
        if self._current_id == project_id:
            self._current_id = self._projects[0].id
        logger.info("Deleted project %s", project_id)
        return True

    def update_field(self, field: str, value: Any) -> ProjectConfig:
        """
        Edit one field of the current project.

        Values go through the same conversion as loaded records, so form input
        such as ISO date strings, enum values and numeric strings is accepted.
        """

        if field not in _EDITABLE_FIELDS:
            raise PortfolioError(f"Field '{field}' cannot be edited")
        if field == "power_kwc" and isinstance(value, str):
            try:
                value = float(value.strip())
            except ValueError as exc:
                raise PortfolioError(f"Invalid value for '{field}': {value!r}") from exc
        try:
            parsed = parse_project_record({**project_to_record(self.current), field: value})
        except ProjectValidationError as exc:
            raise PortfolioError(f"Invalid value for '{field}': {exc}") from exc
        return self._replace_current(**{field: getattr(parsed, field)})

    def set_override(self, phase: str, value: Any) -> ProjectConfig:
        """Force a phase duration; values that are not a finite number clear the override."""

        self._check_phase(phase)
        months = _to_months(value)
        overrides = dataclasses.replace(self.current.overrides, **{phase: months})
        return self._replace_current(overrides=overrides)

    def toggle_skip(self, phase: str) -> ProjectConfig:
        self._check_phase(phase)
        skipped = self.current.skipped
        updated = dataclasses.replace(skipped, **{phase: not getattr(skipped, phase)})
        return self._replace_current(skipped=updated)

    def timeline(self) -> PhaseResult:
        return calculate_project_timeline(self.current)

    def timelines(self) -> list[tuple[ProjectConfig, PhaseResult]]:
        return [(project, calculate_project_timeline(project)) for project in self._projects]

    def to_document(self) -> dict[str, list[dict[str, Any]]]:
        return {STORAGE_KEY: [project_to_record(project) for project in self._projects]}

    def save(self, path: str | Path) -> None:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open("w", encoding="utf-8") as fh:
            yaml.safe_dump(self.to_document(), fh, sort_keys=False, allow_unicode=True)
        logger.info("Saved %d project(s) to %s", len(self._projects), target)

    @classmethod
    def load(cls, path: str | Path) -> "PortfolioStore":
        """Load a persisted portfolio; a missing file yields one default project."""

        source = Path(path)
        if not source.exists():
            logger.info("No portfolio at %s, starting with a default project", source)
            return cls()
        projects = load_projects(str(source))
        return cls(projects or None)

    def _replace_current(self, **changes: Any) -> ProjectConfig:
        idx = self._index(self._current_id)
        updated = dataclasses.replace(self._projects[idx], **changes)
        self._projects[idx] = updated
        return updated

    def _index(self, project_id: str) -> int:
        for idx, project in enumerate(self._projects):
            if project.id == project_id:
                return idx
        raise PortfolioError(f"Unknown project id '{project_id}'")

    @staticmethod
    def _check_phase(phase: str) -> None:
        if phase not in PHASE_KEYS:
            raise PortfolioError(f"Unknown phase '{phase}', expected one of {list(PHASE_KEYS)}")


def _to_months(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        months = value
    else:
        try:
            months = float(str(value).strip())
        except ValueError:
            return None
    return months if math.isfinite(months) else None
