from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from .dates import add_days, add_months, diff_months, is_restricted_month, month_days, sub_months
from .logger import get_logger
from .project_models import (
    DateRange,
    InjectionType,
    InvestmentModel,
    Milestones,
    PhasePlan,
    PhaseResult,
    ProjectConfig,
    ProjectTypology,
    ScheduleDiagnostics,
)

logger = get_logger(__name__)

# Rule defaults, in months unless stated otherwise.
NEGOTIATION_MONTHS = 0.5
URBANISM_MONTHS = 4
URBANISM_LONG_MONTHS = 6
URBANISM_LONG_POWER_KWC = 3000
TENDER_MONTHS = 4
TENDER_MIN_POWER_KWC = 100
LEASE_MONTHS = 4
AUTOCONSUMPTION_CONNECTION_MONTHS = 5
# (upper power bound in kWc, months); anything above the last bound falls back to the default.
CONNECTION_TIERS = ((36, 6), (250, 9), (1000, 12))
CONNECTION_DEFAULT_MONTHS = 18
CONSTRUCTION_BASE_MONTHS = 3
# (power above which the tier applies in kWc, months), checked in order.
CONSTRUCTION_TIERS = ((500, 4), (2000, 6))
CONSTRUCTION_BUFFER_DAYS = 15  # construction completes half a month before connection ends
SEASONALITY_MAX_STEPS = 36
COD_DELAY_MONTHS = 1
OPERATION_DISPLAY_MONTHS = 24


@dataclass(frozen=True)
class SeasonalWalk:
    """Outcome of a month-by-month seasonality walk."""

    cursor: date
    productive_months: float
    truncated: bool


@dataclass(frozen=True)
class ConstructionPlan:
    """Construction start with the connection window it is anchored to."""

    start: date
    connection_start: date
    connection_end: date
    productive_months: float
    truncated: bool = False
    repaired: bool = False


def calculate_project_timeline(config: ProjectConfig) -> PhaseResult:
    """
    Derive every phase range and milestone of a project from its configuration.

    - Negotiation runs backward from the signature date (T0); urbanism starts at T0.
    - Tender and lease run in parallel from the urbanism end; the later of the two
      is the security lock before which no physical work may start.
    - Connection starts at the security lock; construction is placed backward from
      the connection end, honouring restricted months for self-executed work.
    - When construction cannot start after the security lock, a repair pass starts
      it at the lock and slides the connection window to follow it.

    The function is pure and total: it never raises and never reads the clock.
    """

    plan = resolve_phase_plan(config)
    t0 = config.signature_date

    negotiation = _negotiation_range(t0, plan.negotiation)
    urbanism = _window(t0, plan.urbanism)
    urban_end = urbanism.end if urbanism else t0

    tender = _window(urban_end, plan.tender)
    lease = _window(urban_end, plan.lease)
    security_lock = max(tender.end if tender else urban_end, lease.end if lease else urban_end)

    connection_start = security_lock
    connection_end = add_months(connection_start, plan.connection)

    if plan.construction is None:
        construction = DateRange(start=connection_start, end=connection_start, duration_months=0)
        diagnostics = ScheduleDiagnostics()
    else:
        construction_plan = plan_construction(
            work_months=plan.construction,
            connection_start=connection_start,
            connection_end=connection_end,
            subcontracted=config.is_subcontracted,
        )
        if construction_plan.start < security_lock:
            construction_plan = repair_construction(
                construction_plan,
                security_lock=security_lock,
                work_months=plan.construction,
                connection_duration=plan.connection,
                connection_skipped=plan.connection_skipped,
                subcontracted=config.is_subcontracted,
            )
        connection_start = construction_plan.connection_start
        connection_end = construction_plan.connection_end
        construction = DateRange(
            start=construction_plan.start,
            end=add_days(connection_end, -CONSTRUCTION_BUFFER_DAYS),
            # Measured to the connection end, not the construction end.
            duration_months=diff_months(construction_plan.start, connection_end),
        )
        diagnostics = ScheduleDiagnostics(
            work_months_needed=plan.construction,
            productive_months_found=construction_plan.productive_months,
            search_truncated=construction_plan.truncated,
            construction_repaired=construction_plan.repaired,
        )

    connection = DateRange(start=connection_start, end=connection_end, duration_months=plan.connection)

    cod = add_months(connection_end, COD_DELAY_MONTHS)
    operation = DateRange(
        start=cod,
        end=add_months(cod, OPERATION_DISPLAY_MONTHS),
        duration_months=OPERATION_DISPLAY_MONTHS,
    )

    milestones = Milestones(
        signature=t0,
        construction_completion=construction.end,
        cod=cod,
        loi=t0 if negotiation else None,
        urbanism_ok=urbanism.end if urbanism else None,
        laureate=tender.end if tender else None,
        lease_signed=lease.end if lease else None,
    )

    timeline_start = negotiation.start if negotiation else t0
    return PhaseResult(
        negotiation=negotiation,
        urbanism=urbanism,
        tender=tender,
        lease=lease,
        connection=connection,
        construction=construction,
        operation=operation,
        milestones=milestones,
        total_duration_months=diff_months(timeline_start, cod),
        diagnostics=diagnostics,
    )


def resolve_phase_plan(config: ProjectConfig) -> PhasePlan:
    """Resolve skip flags, eligibility rules and duration overrides once, up front."""

    overrides = config.overrides
    skipped = config.skipped
    power = config.power_kwc

    negotiation = None
    if not skipped.negotiation:
        negotiation = _pick(overrides.negotiation, NEGOTIATION_MONTHS)

    urbanism = None
    if not skipped.urbanism:
        long_permit = power > URBANISM_LONG_POWER_KWC or config.typology == ProjectTypology.ROOF_NEW
        urbanism = _pick(overrides.urbanism, URBANISM_LONG_MONTHS if long_permit else URBANISM_MONTHS)

    tender = None
    if (
        not skipped.tender
        and power > TENDER_MIN_POWER_KWC
        and config.injection_type == InjectionType.TOTAL_INJECTION
    ):
        tender = _pick(overrides.tender, TENDER_MONTHS)

    lease = None
    if not skipped.lease and config.investment_model == InvestmentModel.OWN_INVESTMENT:
        lease = _pick(overrides.lease, LEASE_MONTHS)

    connection = 0 if skipped.connection else connection_months(config)
    construction = None if skipped.construction else _pick(overrides.construction, work_months_needed(power))

    return PhasePlan(
        negotiation=negotiation,
        urbanism=urbanism,
        tender=tender,
        lease=lease,
        connection=connection,
        connection_skipped=skipped.connection,
        construction=construction,
    )


def connection_months(config: ProjectConfig) -> float:
    """Connection duration before skip handling: override, self-consumption, then power tier."""

    if config.overrides.connection is not None:
        return config.overrides.connection
    if config.injection_type == InjectionType.AUTOCONSUMPTION:
        return AUTOCONSUMPTION_CONNECTION_MONTHS
    for upper_kwc, months in CONNECTION_TIERS:
        if config.power_kwc <= upper_kwc:
            return months
    return CONNECTION_DEFAULT_MONTHS


def work_months_needed(power_kwc: float) -> float:
    months = CONSTRUCTION_BASE_MONTHS
    for threshold_kwc, tier_months in CONSTRUCTION_TIERS:
        if power_kwc > threshold_kwc:
            months = tier_months
    return months


def plan_construction(
    work_months: float,
    connection_start: date,
    connection_end: date,
    subcontracted: bool,
) -> ConstructionPlan:
    """
    First pass: place construction backward from its target end.

    The target end sits CONSTRUCTION_BUFFER_DAYS before the connection end.
    Subcontracted work ignores seasonality; self-executed work walks back until
    enough productive (non-restricted) months have been crossed.
    """

    target_end = add_days(connection_end, -CONSTRUCTION_BUFFER_DAYS)
    if subcontracted:
        return ConstructionPlan(
            start=sub_months(target_end, work_months),
            connection_start=connection_start,
            connection_end=connection_end,
            productive_months=work_months,
        )

    walk = walk_back_productive(target_end, work_months)
    return ConstructionPlan(
        start=walk.cursor,
        connection_start=connection_start,
        connection_end=connection_end,
        productive_months=walk.productive_months,
        truncated=walk.truncated,
    )


def repair_construction(
    provisional: ConstructionPlan,
    security_lock: date,
    work_months: float,
    connection_duration: float,
    connection_skipped: bool,
    subcontracted: bool,
) -> ConstructionPlan:
    """
    Second pass: start construction at the security lock and push the connection.

    The construction end is recomputed forward from the lock. Unless the
    connection is skipped, its end moves to that end plus the buffer and its
    start follows so the connection keeps its duration.
    """

    start = security_lock
    if subcontracted:
        actual_end = add_months(start, work_months)
        productive = work_months
        truncated = False
    else:
        walk = walk_forward_productive(start, work_months)
        actual_end = walk.cursor
        productive = walk.productive_months
        truncated = provisional.truncated or walk.truncated

    connection_start = provisional.connection_start
    connection_end = provisional.connection_end
    if not connection_skipped:
        connection_end = add_days(actual_end, CONSTRUCTION_BUFFER_DAYS)
        connection_start = sub_months(connection_end, connection_duration)

    logger.debug(
        "Construction repaired: start %s -> %s, connection end %s -> %s",
        provisional.start,
        start,
        provisional.connection_end,
        connection_end,
    )
    return ConstructionPlan(
        start=start,
        connection_start=connection_start,
        connection_end=connection_end,
        productive_months=productive,
        truncated=truncated,
        repaired=True,
    )


def walk_back_productive(end: date, work_months: float) -> SeasonalWalk:
    """Step back one month at a time, counting each non-restricted month landed on."""

    cursor = end
    found = 0
    steps = 0
    while found < work_months and steps < SEASONALITY_MAX_STEPS:
        cursor = sub_months(cursor, 1)
        if not is_restricted_month(cursor):
            found += 1
        steps += 1
    return _finish_walk(cursor, found, work_months, "backward")


def walk_forward_productive(start: date, work_months: float) -> SeasonalWalk:
    """Step forward one month at a time, counting each non-restricted month left behind."""

    cursor = start
    added = 0
    steps = 0
    while added < work_months and steps < SEASONALITY_MAX_STEPS:
        if not is_restricted_month(cursor):
            added += 1
        cursor = add_months(cursor, 1)
        steps += 1
    return _finish_walk(cursor, added, work_months, "forward")


def _finish_walk(cursor: date, found: int, work_months: float, direction: str) -> SeasonalWalk:
    truncated = found < work_months
    if truncated:
        logger.debug(
            "Seasonality %s walk stopped after %d steps with %d of %s productive months",
            direction,
            SEASONALITY_MAX_STEPS,
            found,
            work_months,
        )
    return SeasonalWalk(cursor=cursor, productive_months=found, truncated=truncated)


def _negotiation_range(t0: date, months: float | None) -> DateRange | None:
    if months is None:
        return None
    return DateRange(start=add_days(t0, -month_days(months)), end=t0, duration_months=months)


def _window(start: date, months: float | None) -> DateRange | None:
    if months is None:
        return None
    return DateRange(start=start, end=add_months(start, months), duration_months=months)


def _pick(override: float | None, default: float) -> float:
    return default if override is None else override
