"""
Composite health score.

Four components, each 0-100:
- initiative_health: progress against linear expected progress, averaged
  over active initiatives with a timeline
- issue_velocity: issues resolved vs issues reported in the trailing period
- team_utilization: 100 - |average utilization - 100|; rewards teams
  allocated near capacity, penalizes both under- and over-allocation
- roi_trend: 100 while realized ROI is flat or rising over the trailing
  window, scaled toward 0 as it declines

score = round(weighted mean of components). Weights come from HealthSettings
and default to equal.

A component whose inputs are unavailable defaults to NEUTRAL_SCORE instead of
aborting the calculation.
"""

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta

from flowvision.analytics.models import (
    HealthComponents,
    HealthScore,
    HealthTrend,
    Initiative,
    Issue,
    Team,
    clamp,
    parse_timestamp,
    utcnow,
)
from flowvision.analytics.portfolio import (
    expected_progress,
    period_deltas,
    team_allocations,
    utilization_pct,
)
from flowvision.analytics.settings import HealthSettings

logger = logging.getLogger(__name__)

NEUTRAL_SCORE = 50.0


# =============================================================================
# COMPONENTS
# =============================================================================


def initiative_health_score(initiatives: Iterable[Initiative], as_of: datetime) -> float | None:
    ratios = []
    for initiative in initiatives:
        if not initiative.is_active:
            continue
        expected = expected_progress(initiative, as_of)
        if expected is None:
            continue
        if expected <= 0:
            # Not started yet: nothing is expected, so it is on track
            ratios.append(100.0)
        else:
            ratios.append(min(100.0, 100.0 * initiative.progress / expected))
    if not ratios:
        return None
    return sum(ratios) / len(ratios)


def issue_velocity_score(issues: Iterable[Issue], as_of: datetime, trailing_days: int = 30) -> float | None:
    since = as_of - timedelta(days=trailing_days)
    reported = 0
    resolved = 0
    for issue in issues:
        if issue.created_at and since <= issue.created_at <= as_of:
            reported += 1
        if issue.resolved_at and since <= issue.resolved_at <= as_of:
            resolved += 1
    if reported == 0:
        return 100.0 if resolved else None
    return clamp(100.0 * resolved / reported, 0.0, 100.0)


def team_utilization_score(teams: Iterable[Team], initiatives: Iterable[Initiative]) -> float | None:
    teams = [t for t in teams if t.capacity > 0]
    if not teams:
        return None
    allocated = team_allocations(teams, initiatives)
    utilizations = [utilization_pct(team, allocated[team.id]) for team in teams]
    average = sum(utilizations) / len(utilizations)
    return clamp(100.0 - abs(average - 100.0), 0.0, 100.0)


def roi_trend_score(historical_roi: Sequence[float], window: int = 6, decline_penalty: float = 10.0) -> float | None:
    deltas = period_deltas(list(historical_roi), window)
    if not deltas:
        return None
    slope = sum(deltas) / len(deltas)
    if slope >= 0:
        return 100.0
    return clamp(100.0 + slope * decline_penalty, 0.0, 100.0)


# =============================================================================
# COMPOSITION
# =============================================================================


def composite_score(components: HealthComponents, weights: dict[str, float]) -> int:
    values = components.as_mapping()
    total_weight = sum(weights.get(name, 0.0) for name in values)
    if total_weight <= 0:
        weighted = sum(values.values()) / len(values)
    else:
        weighted = sum(values[name] * weights.get(name, 0.0) for name in values) / total_weight
    return int(clamp(round(weighted), 0, 100))


def _history_value(entry) -> float | None:
    if entry is None:
        return None
    if isinstance(entry, HealthScore):
        return float(entry.score)
    if isinstance(entry, dict):
        value = entry.get("score")
        return float(value) if value is not None else None
    return float(entry)


def determine_trend(score: float, history: Sequence | None, epsilon: float = 2.0) -> HealthTrend:
    """Compare to the most recent previous snapshot."""
    if not history:
        return HealthTrend.STABLE
    try:
        previous = _history_value(history[-1])
    except (TypeError, ValueError):
        logger.warning("Unreadable health history entry; trend defaults to stable")
        return HealthTrend.STABLE
    if previous is None:
        return HealthTrend.STABLE
    delta = score - previous
    if delta > epsilon:
        return HealthTrend.IMPROVING
    if delta < -epsilon:
        return HealthTrend.DECLINING
    return HealthTrend.STABLE


def evaluate_health(
    initiatives: Iterable[Initiative] | None,
    issues: Iterable[Issue] | None,
    teams: Iterable[Team] | None,
    history: Sequence | None = None,
    settings: HealthSettings | None = None,
    historical_roi: Sequence[float] | None = None,
    as_of: datetime | None = None,
) -> tuple[HealthScore, dict[str, str]]:
    """
    Compute the health score and report which components fell back to neutral.

    Returns (HealthScore, {component: reason}) for every defaulted component.
    """
    settings = settings or HealthSettings()
    as_of = parse_timestamp(as_of) or utcnow()
    initiatives = list(initiatives) if initiatives is not None else None

    calculators = {
        "initiative_health": (
            lambda: initiative_health_score(initiatives, as_of),
            initiatives is not None,
        ),
        "issue_velocity": (
            lambda: issue_velocity_score(issues, as_of, settings.trailing_days),
            issues is not None,
        ),
        "team_utilization": (
            lambda: team_utilization_score(teams, initiatives or []),
            teams is not None and initiatives is not None,
        ),
        "roi_trend": (
            lambda: roi_trend_score(historical_roi, settings.roi_window, settings.roi_decline_penalty),
            historical_roi is not None,
        ),
    }

    values: dict[str, float] = {}
    unavailable: dict[str, str] = {}
    for name, (calculate, available) in calculators.items():
        if not available:
            unavailable[name] = "inputs unavailable"
            values[name] = NEUTRAL_SCORE
            continue
        try:
            value = calculate()
        except Exception as e:
            logger.warning(f"Health component {name} failed: {e}")
            unavailable[name] = f"computation failed: {e}"
            value = None
        if value is None:
            unavailable.setdefault(name, "no qualifying data")
            value = NEUTRAL_SCORE
        values[name] = clamp(value, 0.0, 100.0)

    components = HealthComponents(**values)
    score = composite_score(components, settings.weights)
    health = HealthScore(
        score=score,
        trend=determine_trend(score, history, settings.trend_epsilon),
        components=components,
        last_updated=as_of,
    )
    return health, unavailable


def compute_health_score(
    initiatives: Iterable[Initiative] | None,
    issues: Iterable[Issue] | None,
    teams: Iterable[Team] | None,
    history: Sequence | None = None,
    settings: HealthSettings | None = None,
    historical_roi: Sequence[float] | None = None,
    as_of: datetime | None = None,
) -> HealthScore:
    """Composite organisational health score. Never raises on missing inputs."""
    health, _ = evaluate_health(initiatives, issues, teams, history, settings, historical_roi, as_of)
    return health
