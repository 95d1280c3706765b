from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Literal


NodeKind = Literal["bar", "lozenge", "segment"]
"""Allowed render node types: bar (phase), lozenge (milestone), segment (portfolio sub-phase)."""

PhaseKey = Literal["negotiation", "urbanism", "tender", "lease", "connection", "construction"]
"""Phases that accept a duration override or a skip flag."""

PHASE_KEYS: tuple[PhaseKey, ...] = ("negotiation", "urbanism", "tender", "lease", "connection", "construction")


class ProjectTypology(str, Enum):
    ROOF_NEW = "ROOF_NEW"
    ROOF_EXISTING = "ROOF_EXISTING"
    SHADE = "SHADE"  # ombrière
    GROUND = "GROUND"


class InjectionType(str, Enum):
    TOTAL_INJECTION = "TOTAL_INJECTION"
    AUTOCONSUMPTION = "AUTOCONSUMPTION"


class InvestmentModel(str, Enum):
    # Labelled "Tiers-Investissement" (third-party investment) in the portfolio UI.
    # Lease gating matches the identifier, not that label.
    OWN_INVESTMENT = "OWN_INVESTMENT"
    CLIENT_INVESTMENT = "CLIENT_INVESTMENT"


@dataclass(frozen=True)
class PhaseOverrides:
    """Forced durations in months; None keeps the rule-derived default."""

    negotiation: float | None = None
    urbanism: float | None = None
    tender: float | None = None
    lease: float | None = None
    connection: float | None = None
    construction: float | None = None


@dataclass(frozen=True)
class SkippedPhases:
    """Per-phase skip flags."""

    negotiation: bool = False
    urbanism: bool = False
    tender: bool = False
    lease: bool = False
    connection: bool = False
    construction: bool = False


@dataclass(frozen=True)
class ProjectConfig:
    """Immutable engine input describing one solar project."""

    id: str
    name: str
    signature_date: date
    power_kwc: float
    typology: ProjectTypology = ProjectTypology.ROOF_EXISTING
    injection_type: InjectionType = InjectionType.TOTAL_INJECTION
    investment_model: InvestmentModel = InvestmentModel.OWN_INVESTMENT
    is_subcontracted: bool = False
    overrides: PhaseOverrides = field(default_factory=PhaseOverrides)
    skipped: SkippedPhases = field(default_factory=SkippedPhases)


@dataclass(frozen=True)
class DateRange:
    """
    Start/end pair with the requested duration in months.

    `duration_months` is the duration asked for, not the elapsed span: do not
    expect `end - start` to match it to the day.
    """

    start: date
    end: date
    duration_months: float


@dataclass(frozen=True)
class Milestones:
    """Gate dates; optional entries are set only when their phase ran."""

    signature: date
    construction_completion: date
    cod: date
    loi: date | None = None
    urbanism_ok: date | None = None
    laureate: date | None = None
    lease_signed: date | None = None


@dataclass(frozen=True)
class ScheduleDiagnostics:
    """Extra information about the construction search; never changes the dates."""

    work_months_needed: float = 0
    productive_months_found: float = 0
    search_truncated: bool = False
    construction_repaired: bool = False


@dataclass(frozen=True)
class PhaseResult:
    """Complete derived timeline for one project."""

    connection: DateRange
    construction: DateRange
    operation: DateRange
    milestones: Milestones
    total_duration_months: int
    negotiation: DateRange | None = None
    urbanism: DateRange | None = None
    tender: DateRange | None = None
    lease: DateRange | None = None
    diagnostics: ScheduleDiagnostics = field(default_factory=ScheduleDiagnostics)


@dataclass(frozen=True)
class PhasePlan:
    """
    Per-phase settings resolved once from overrides and skip flags.

    A None duration means the phase does not run. The connection always runs
    (possibly with zero duration); `connection_skipped` keeps its window fixed
    during construction repair.
    """

    negotiation: float | None
    urbanism: float | None
    tender: float | None
    lease: float | None
    connection: float
    connection_skipped: bool
    construction: float | None


@dataclass
class ChartMonth:
    """One month column of the chart grid."""

    date: date
    label: str
    is_restricted: bool
    year: int
    month_index: int


@dataclass
class FlatRenderRow:
    """
    Flattened view of a timeline used by renderers.

    Detail rows carry one bar and an optional milestone lozenge. Portfolio rows
    carry the project label and the ordered sub-phase segments.
    """

    order: int
    node_type: NodeKind
    node_id: str
    name: str
    start_date: date | None = None
    finish_date: date | None = None
    duration_months: float = 0
    milestone_date: date | None = None
    milestone_label: str | None = None
    subtitle: str | None = None
    segments: list["FlatRenderRow"] = field(default_factory=list)
