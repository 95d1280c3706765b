from __future__ import annotations

import datetime as _dt
import math
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any

import yaml

from .project_models import (
    PHASE_KEYS,
    InjectionType,
    InvestmentModel,
    PhaseOverrides,
    ProjectConfig,
    ProjectTypology,
    SkippedPhases,
)


class ProjectValidationError(Exception):
    """Raised when a project record is structurally invalid (missing fields, bad types)."""


# Field names used by the browser-persisted portfolio, mapped to ours.
_RECORD_ALIASES = {
    "signatureDate": "signature_date",
    "powerKWc": "power_kwc",
    "injectionType": "injection_type",
    "investmentModel": "investment_model",
    "isSubcontracted": "is_subcontracted",
    "skippedPhases": "skipped",
    "skipped_phases": "skipped",
}
_PHASE_ALIASES = {
    "negotiationDuration": "negotiation",
    "urbanismDuration": "urbanism",
    "creDuration": "tender",
    "leaseDuration": "lease",
    "connectionDuration": "connection",
    "constructionDuration": "construction",
    "aoCre": "tender",
    "leaseManagement": "lease",
}
_RECORD_KEYS = {
    "id",
    "name",
    "signature_date",
    "power_kwc",
    "typology",
    "injection_type",
    "investment_model",
    "is_subcontracted",
    "overrides",
    "skipped",
}


@dataclass(frozen=True)
class _Path:
    """Helper to produce readable path strings like projects[0].overrides."""

    parts: tuple[str, ...] = ()

    def child(self, segment: str) -> "_Path":
        return _Path(self.parts + (segment,))

    def __str__(self) -> str:  # pragma: no cover - trivial
        return ".".join(self.parts) if self.parts else "root"


def load_projects(path: str) -> list[ProjectConfig]:
    """
    Load project records from a YAML (or JSON) file at the given path.

    Accepts a bare list of records, a mapping with a `projects` list, or a
    mapping with a single storage key holding the list.
    """

    with open(path, "r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)

    return parse_projects(raw)


def parse_projects(data: Any) -> list[ProjectConfig]:
    """Parse already-loaded YAML/JSON content into project configurations."""

    label = "projects"
    if isinstance(data, dict):
        if "projects" in data:
            records = data["projects"]
        elif len(data) == 1:
            key, records = next(iter(data.items()))
            label = str(key)
        else:
            raise ProjectValidationError("root: expected a 'projects' list or a single storage key")
    else:
        records = data

    if not isinstance(records, list):
        raise ProjectValidationError(f"{label}: expected list of projects")

    projects: list[ProjectConfig] = []
    ids: set[str] = set()
    for idx, record in enumerate(records):
        item_path = _Path((f"{label}[{idx}]",))
        project = _parse_project(record, item_path)
        if project.id in ids:
            raise ProjectValidationError(f"{item_path.child('id')}: duplicate project id '{project.id}'")
        ids.add(project.id)
        projects.append(project)
    return projects


def parse_project_record(data: Any) -> ProjectConfig:
    """Convert a single mapping into a ProjectConfig (no scheduling)."""
    return _parse_project(data, _Path())


def project_to_record(project: ProjectConfig) -> dict[str, Any]:
    """Inverse of parse_project_record, using the snake_case field names."""

    overrides = {f.name: getattr(project.overrides, f.name) for f in fields(PhaseOverrides)}
    skipped = {f.name: getattr(project.skipped, f.name) for f in fields(SkippedPhases)}
    return {
        "id": project.id,
        "name": project.name,
        "signature_date": project.signature_date.isoformat(),
        "power_kwc": project.power_kwc,
        "typology": project.typology.value,
        "injection_type": project.injection_type.value,
        "investment_model": project.investment_model.value,
        "is_subcontracted": project.is_subcontracted,
        "overrides": {key: value for key, value in overrides.items() if value is not None},
        "skipped": {key: value for key, value in skipped.items() if value},
    }


def _parse_project(data: Any, path: _Path) -> ProjectConfig:
    if not isinstance(data, dict):
        raise ProjectValidationError(f"{path}: expected mapping for project")

    data = {_RECORD_ALIASES.get(key, key): value for key, value in data.items()}
    _assert_allowed_keys(data, _RECORD_KEYS, path)

    return ProjectConfig(
        id=_require_str(data, "id", path),
        name=_require_str(data, "name", path),
        signature_date=_parse_date(_require_value(data, "signature_date", path), path.child("signature_date")),
        power_kwc=_require_number(data, "power_kwc", path),
        typology=_parse_enum(data, "typology", ProjectTypology, ProjectTypology.ROOF_EXISTING, path),
        injection_type=_parse_enum(data, "injection_type", InjectionType, InjectionType.TOTAL_INJECTION, path),
        investment_model=_parse_enum(
            data, "investment_model", InvestmentModel, InvestmentModel.OWN_INVESTMENT, path
        ),
        is_subcontracted=_parse_bool(data.get("is_subcontracted", False), path.child("is_subcontracted")),
        overrides=_parse_overrides(data.get("overrides"), path.child("overrides")),
        skipped=_parse_skipped(data.get("skipped"), path.child("skipped")),
    )


def _parse_overrides(value: Any, path: _Path) -> PhaseOverrides:
    values = _parse_phase_mapping(value, path)
    parsed: dict[str, float] = {}
    for key, raw in values.items():
        if raw is None:
            continue
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            raise ProjectValidationError(f"{path.child(key)}: expected number of months")
        if not math.isfinite(raw):
            raise ProjectValidationError(f"{path.child(key)}: expected finite number of months")
        parsed[key] = raw
    return PhaseOverrides(**parsed)


def _parse_skipped(value: Any, path: _Path) -> SkippedPhases:
    values = _parse_phase_mapping(value, path)
    parsed = {key: _parse_bool(raw, path.child(key)) for key, raw in values.items() if raw is not None}
    return SkippedPhases(**parsed)


def _parse_phase_mapping(value: Any, path: _Path) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ProjectValidationError(f"{path}: expected mapping keyed by phase")
    normalised = {_PHASE_ALIASES.get(key, key): raw for key, raw in value.items()}
    _assert_allowed_keys(normalised, set(PHASE_KEYS), path)
    return normalised


def _assert_allowed_keys(data: dict[str, Any], allowed: set[str], path: _Path) -> None:
    extras = sorted(str(key) for key in set(data.keys()) - allowed)
    if extras:
        raise ProjectValidationError(f"{path}: unexpected fields {extras}")


def _require_str(data: dict[str, Any], key: str, path: _Path) -> str:
    value = _require_value(data, key, path)
    if not isinstance(value, str) or not value.strip():
        raise ProjectValidationError(f"{path.child(key)}: expected non-empty string")
    return value


def _require_number(data: dict[str, Any], key: str, path: _Path) -> float:
    value = _require_value(data, key, path)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ProjectValidationError(f"{path.child(key)}: expected number")
    return value


def _require_value(data: dict[str, Any], key: str, path: _Path) -> Any:
    if key not in data:
        raise ProjectValidationError(f"{path}: missing required field '{key}'")
    return data[key]


def _parse_enum(data: dict[str, Any], key: str, enum_type: type[Enum], default: Enum, path: _Path) -> Any:
    value = data.get(key)
    if value is None:
        return default
    try:
        return enum_type(value)
    except ValueError as exc:
        allowed = [member.value for member in enum_type]
        raise ProjectValidationError(f"{path.child(key)}: expected one of {allowed}, got {value!r}") from exc


def _parse_bool(value: Any, path: _Path) -> bool:
    if not isinstance(value, bool):
        raise ProjectValidationError(f"{path}: expected boolean")
    return value


def _parse_date(value: Any, path: _Path) -> _dt.date:
    # YAML turns unquoted ISO dates into date objects already.
    if isinstance(value, _dt.datetime):
        return value.date()
    if isinstance(value, _dt.date):
        return value
    if not isinstance(value, str):
        raise ProjectValidationError(f"{path}: expected YYYY-MM-DD string")
    try:
        parsed = _dt.date.fromisoformat(value[:10])
    except ValueError as exc:
        raise ProjectValidationError(f"{path}: expected YYYY-MM-DD string") from exc
    return parsed
