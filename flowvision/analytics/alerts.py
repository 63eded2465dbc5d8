"""
Predictive alert engine.

Evaluates threshold rules over a snapshot and returns ranked alerts. Rules
run independently per entity and emit at most one alert per (entity, rule):

    timeline   behind schedule (warning) / behind and near deadline (critical)
    resource   team over capacity (critical) / near capacity (warning)
               owner with too many active initiatives (warning)
    roi        budget overrun (critical / warning), low portfolio ROI (warning)
               completed initiative with low ROI (info)
    issue      high-severity cluster, emerging cluster, issue spike (warning)
               low activity (info)

Priority = base(type) + min(3, floor(overshoot / 10)), clamped to [1, 10],
where overshoot is how far (in percentage points) the metric passed its
threshold. Output is sorted by priority descending, then category, then id.

Rule groups are isolated from each other: an unavailable input (None) skips
only the rules that need it, and a rule group that fails is logged and
skipped without affecting the others. Resource rules need teams, owner
overload included: without a team roster there are no resource alerts.
"""

import logging
import math
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from flowvision.analytics.errors import InvalidConfiguration
from flowvision.analytics.models import (
    Alert,
    AlertCategory,
    AlertType,
    Initiative,
    Issue,
    Team,
    parse_timestamp,
    utcnow,
)
from flowvision.analytics.portfolio import (
    days_to_deadline,
    expected_progress,
    owner_workloads,
    realized_portfolio_roi,
    team_allocations,
    utilization_pct,
)
from flowvision.analytics.settings import AlertSettings

logger = logging.getLogger(__name__)

PRIORITY_BASE = {
    AlertType.CRITICAL: 7,
    AlertType.WARNING: 4,
    AlertType.INFO: 1,
}
MAX_OVERSHOOT_BONUS = 3
RESOURCE_WARNING_PCT = 80.0
RESOURCE_CRITICAL_PCT = 100.0

_CATEGORY_ORDER = {category: index for index, category in enumerate(AlertCategory)}


def alert_priority(alert_type: AlertType, overshoot: float = 0.0) -> int:
    if overshoot >= MAX_OVERSHOOT_BONUS * 10:
        bonus = MAX_OVERSHOOT_BONUS
    else:
        # NaN lands here and earns no bonus
        bonus = math.floor(max(0.0, overshoot) / 10.0)
    return int(max(1, min(10, PRIORITY_BASE[alert_type] + bonus)))


def _pct_over(value: float, limit: float) -> float:
    """Overshoot of a count-based rule, as percent over its limit."""
    if limit <= 0:
        return value * 100.0
    return (value - limit) / limit * 100.0


def sort_alerts(alerts: Iterable[Alert]) -> list[Alert]:
    return sorted(alerts, key=lambda a: (-a.priority, _CATEGORY_ORDER[a.category], a.id))


# =============================================================================
# TIMELINE RULES
# =============================================================================


def timeline_alerts(initiatives: Iterable[Initiative], settings: AlertSettings, as_of: datetime) -> list[Alert]:
    alerts = []
    for initiative in initiatives:
        if not initiative.is_active:
            continue
        expected = expected_progress(initiative, as_of)
        if expected is None:
            continue
        behind = expected - initiative.progress
        if behind <= settings.timeline_behind_pct:
            continue

        overshoot = behind - settings.timeline_behind_pct
        days_left = days_to_deadline(initiative, as_of)

        # Critical supersedes warning for the same initiative
        if days_left is not None and days_left <= settings.deadline_days_critical and not initiative.is_done:
            if days_left < 0:
                when = f"{math.ceil(-days_left)} day(s) past its deadline"
            else:
                when = f"{math.floor(days_left)} day(s) from its deadline"
            alerts.append(
                Alert(
                    id=f"timeline-{initiative.id}",
                    type=AlertType.CRITICAL,
                    category=AlertCategory.TIMELINE,
                    title="Deadline Risk",
                    description=(
                        f'"{initiative.title}" is {round(behind)}% behind expected progress '
                        f"and {when} at {initiative.progress:g}% completion"
                    ),
                    recommendation="Escalate immediately or negotiate a deadline extension",
                    priority=alert_priority(AlertType.CRITICAL, overshoot),
                    related_id=initiative.id,
                    related_type="initiative",
                )
            )
        else:
            alerts.append(
                Alert(
                    id=f"timeline-{initiative.id}",
                    type=AlertType.WARNING,
                    category=AlertCategory.TIMELINE,
                    title="Initiative Behind Schedule",
                    description=f'"{initiative.title}" is {round(behind)}% behind expected progress',
                    recommendation="Consider additional resources or a timeline adjustment",
                    priority=alert_priority(AlertType.WARNING, overshoot),
                    related_id=initiative.id,
                    related_type="initiative",
                )
            )
    return alerts


# =============================================================================
# RESOURCE RULES
# =============================================================================


def team_resource_alerts(
    teams: Iterable[Team], initiatives: Iterable[Initiative], settings: AlertSettings
) -> list[Alert]:
    teams = list(teams)
    allocated = team_allocations(teams, initiatives)
    alerts = []
    for team in teams:
        utilization = utilization_pct(team, allocated[team.id])
        if utilization is None:
            logger.warning("Team %s has no capacity set; skipping utilization check", team.id)
            continue
        name = team.name or team.id
        detail = f"{allocated[team.id]:g}h of {team.capacity:g}h/week"
        if utilization > RESOURCE_CRITICAL_PCT:
            alerts.append(
                Alert(
                    id=f"resource-team-{team.id}",
                    type=AlertType.CRITICAL,
                    category=AlertCategory.RESOURCE,
                    title="Team Overallocated",
                    description=f"{name} is allocated {utilization:.0f}% of capacity ({detail})",
                    recommendation="Redistribute assignments or extend timelines to bring the team under capacity",
                    priority=alert_priority(AlertType.CRITICAL, utilization - RESOURCE_CRITICAL_PCT),
                    related_id=team.id,
                    related_type="team",
                )
            )
        elif utilization > RESOURCE_WARNING_PCT:
            alerts.append(
                Alert(
                    id=f"resource-team-{team.id}",
                    type=AlertType.WARNING,
                    category=AlertCategory.RESOURCE,
                    title="Team Near Capacity",
                    description=f"{name} is allocated {utilization:.0f}% of capacity ({detail})",
                    recommendation="Avoid adding new assignments until current work lands",
                    priority=alert_priority(AlertType.WARNING, utilization - RESOURCE_WARNING_PCT),
                    related_id=team.id,
                    related_type="team",
                )
            )
    return alerts


def owner_overload_alerts(initiatives: Iterable[Initiative], settings: AlertSettings) -> list[Alert]:
    alerts = []
    for owner_id, count in owner_workloads(initiatives).items():
        if count <= settings.owner_max_active:
            continue
        alerts.append(
            Alert(
                id=f"resource-owner-{owner_id}",
                type=AlertType.WARNING,
                category=AlertCategory.RESOURCE,
                title="Owner Overloaded",
                description=f"Owner {owner_id} has {count} active initiatives (limit {settings.owner_max_active})",
                recommendation="Consider redistributing ownership or prioritizing initiatives",
                priority=alert_priority(AlertType.WARNING, _pct_over(count, settings.owner_max_active)),
                related_id=owner_id,
                related_type="owner",
            )
        )
    return alerts


# =============================================================================
# BUDGET / ROI RULES
# =============================================================================


def budget_alerts(initiatives: Iterable[Initiative], settings: AlertSettings) -> list[Alert]:
    alerts = []
    for initiative in initiatives:
        if not initiative.budget or initiative.budget <= 0 or initiative.actual_spend is None:
            continue
        overrun = (initiative.actual_spend / initiative.budget - 1.0) * 100.0
        if overrun >= settings.budget_overrun_crit_pct:
            alert_type = AlertType.CRITICAL
            overshoot = overrun - settings.budget_overrun_crit_pct
            recommendation = "Freeze discretionary spend and review scope with the sponsor"
        elif overrun >= settings.budget_overrun_warn_pct:
            alert_type = AlertType.WARNING
            overshoot = overrun - settings.budget_overrun_warn_pct
            recommendation = "Review scope and consider a budget adjustment or efficiency improvements"
        else:
            continue
        alerts.append(
            Alert(
                id=f"budget-{initiative.id}",
                type=alert_type,
                category=AlertCategory.ROI,
                title="Budget Overrun",
                description=f'"{initiative.title}" is {round(overrun)}% over budget',
                recommendation=recommendation,
                priority=alert_priority(alert_type, overshoot),
                related_id=initiative.id,
                related_type="initiative",
            )
        )
    return alerts


def low_roi_initiative_alerts(initiatives: Iterable[Initiative], settings: AlertSettings) -> list[Alert]:
    alerts = []
    for initiative in initiatives:
        if not initiative.is_done or initiative.realized_roi is None:
            continue
        if initiative.realized_roi >= settings.low_roi_pct:
            continue
        alerts.append(
            Alert(
                id=f"roi-initiative-{initiative.id}",
                type=AlertType.INFO,
                category=AlertCategory.ROI,
                title="Low ROI Initiative",
                description=f'"{initiative.title}" achieved {initiative.realized_roi:g}% ROI',
                recommendation="Analyze lessons learned and apply them to future initiative planning",
                priority=alert_priority(AlertType.INFO, settings.low_roi_pct - initiative.realized_roi),
                related_id=initiative.id,
                related_type="initiative",
            )
        )
    return alerts


def low_roi_alerts(initiatives: Iterable[Initiative], settings: AlertSettings) -> list[Alert]:
    realized = realized_portfolio_roi(initiatives)
    if realized is None or realized >= settings.low_roi_pct:
        return []
    return [
        Alert(
            id="roi-portfolio",
            type=AlertType.WARNING,
            category=AlertCategory.ROI,
            title="Low Portfolio ROI",
            description=f"Realized portfolio ROI is {realized:.1f}%, below the {settings.low_roi_pct:g}% threshold",
            recommendation="Review initiative selection criteria and apply lessons from low performers",
            priority=alert_priority(AlertType.WARNING, settings.low_roi_pct - realized),
            related_id="portfolio",
            related_type="portfolio",
        )
    ]


# =============================================================================
# ISSUE BACKLOG RULES
# =============================================================================


def issue_cluster_alerts(issues: Iterable[Issue], settings: AlertSettings) -> list[Alert]:
    hot_by_cluster: dict[str, int] = {}
    for issue in issues:
        if issue.cluster_id and issue.heatmap_score > settings.high_heatmap_score:
            hot_by_cluster[issue.cluster_id] = hot_by_cluster.get(issue.cluster_id, 0) + 1

    alerts = []
    for cluster_id, hot in hot_by_cluster.items():
        if hot <= settings.cluster_high_severity_count:
            continue
        alerts.append(
            Alert(
                id=f"issue-cluster-{cluster_id}",
                type=AlertType.WARNING,
                category=AlertCategory.ISSUE,
                title="Critical Issue Cluster",
                description=f"Cluster {cluster_id} has {hot} high-severity issues",
                recommendation="Create a dedicated initiative to address this cluster systematically",
                priority=alert_priority(
                    AlertType.WARNING, _pct_over(hot, settings.cluster_high_severity_count)
                ),
                related_id=cluster_id,
                related_type="cluster",
            )
        )
    return alerts


def issue_growth_alerts(issues: Iterable[Issue], settings: AlertSettings, as_of: datetime) -> list[Alert]:
    since = as_of - timedelta(days=settings.activity_window_days)
    recent_by_cluster: dict[str, int] = {}
    for issue in issues:
        if issue.cluster_id and issue.created_at is not None and since <= issue.created_at <= as_of:
            recent_by_cluster[issue.cluster_id] = recent_by_cluster.get(issue.cluster_id, 0) + 1

    alerts = []
    for cluster_id, recent in recent_by_cluster.items():
        if recent <= settings.cluster_growth_count:
            continue
        alerts.append(
            Alert(
                id=f"issue-growth-{cluster_id}",
                type=AlertType.WARNING,
                category=AlertCategory.ISSUE,
                title="Emerging Issue Pattern",
                description=(
                    f"Cluster {cluster_id} gained {recent} new issues "
                    f"in the last {settings.activity_window_days} days"
                ),
                recommendation="Investigate the root cause before the pattern becomes systemic",
                priority=alert_priority(AlertType.WARNING, _pct_over(recent, settings.cluster_growth_count)),
                related_id=cluster_id,
                related_type="cluster",
            )
        )
    return alerts


def issue_activity_alerts(
    issues: Iterable[Issue],
    initiatives: Iterable[Initiative] | None,
    settings: AlertSettings,
    as_of: datetime,
) -> list[Alert]:
    issues = list(issues)
    dated = [i for i in issues if i.created_at is not None]
    if not dated:
        return []

    since = as_of - timedelta(days=settings.activity_window_days)
    recent = sum(1 for i in dated if since <= i.created_at <= as_of)

    if recent > settings.issue_spike_count:
        return [
            Alert(
                id="issue-spike",
                type=AlertType.WARNING,
                category=AlertCategory.ISSUE,
                title="Unusual Issue Activity",
                description=f"{recent} new issues reported in the last {settings.activity_window_days} days",
                recommendation="Investigate potential systemic issues or process breakdowns",
                priority=alert_priority(AlertType.WARNING, _pct_over(recent, settings.issue_spike_count)),
                related_id="portfolio",
                related_type="portfolio",
            )
        ]

    new_initiatives = sum(
        1 for i in initiatives or [] if i.created_at is not None and since <= i.created_at <= as_of
    )
    if recent == 0 and new_initiatives == 0:
        return [
            Alert(
                id="issue-inactivity",
                type=AlertType.INFO,
                category=AlertCategory.ISSUE,
                title="Low Activity Period",
                description=f"No new issues or initiatives in the last {settings.activity_window_days} days",
                recommendation="Ensure teams are actively using the platform for issue reporting",
                priority=alert_priority(AlertType.INFO),
                related_id="portfolio",
                related_type="portfolio",
            )
        ]
    return []


# =============================================================================
# EVALUATION
# =============================================================================


@dataclass
class AlertRun:
    """Outcome of one evaluation pass."""

    alerts: list[Alert] = field(default_factory=list)
    skipped_rules: list[str] = field(default_factory=list)  # inputs unavailable
    failed_rules: dict[str, str] = field(default_factory=dict)  # rule -> error
    config_problems: list[InvalidConfiguration] = field(default_factory=list)


def _resolve_settings(settings) -> tuple[AlertSettings, list[InvalidConfiguration]]:
    if isinstance(settings, AlertSettings):
        return settings, []
    return AlertSettings.parse(settings)


def run_alert_rules(
    initiatives: Iterable[Initiative] | None,
    teams: Iterable[Team] | None,
    issues: Iterable[Issue] | None,
    settings: AlertSettings | dict | None,
    as_of: datetime | None = None,
) -> AlertRun:
    """Evaluate every rule group that its available inputs allow."""
    as_of = parse_timestamp(as_of) or utcnow()
    resolved, problems = _resolve_settings(settings)
    run = AlertRun(config_problems=problems)

    initiatives = list(initiatives) if initiatives is not None else None
    teams = list(teams) if teams is not None else None
    issues = list(issues) if issues is not None else None

    rules: list[tuple[str, bool, Callable[[], list[Alert]]]] = [
        ("timeline", initiatives is not None, lambda: timeline_alerts(initiatives, resolved, as_of)),
        (
            "team_resource",
            teams is not None and initiatives is not None,
            lambda: team_resource_alerts(teams, initiatives, resolved),
        ),
        (
            "owner_overload",
            teams is not None and initiatives is not None,
            lambda: owner_overload_alerts(initiatives, resolved),
        ),
        ("budget", initiatives is not None, lambda: budget_alerts(initiatives, resolved)),
        ("low_roi", initiatives is not None, lambda: low_roi_alerts(initiatives, resolved)),
        (
            "low_roi_initiative",
            initiatives is not None,
            lambda: low_roi_initiative_alerts(initiatives, resolved),
        ),
        ("issue_cluster", issues is not None, lambda: issue_cluster_alerts(issues, resolved)),
        ("issue_growth", issues is not None, lambda: issue_growth_alerts(issues, resolved, as_of)),
        (
            "issue_activity",
            issues is not None,
            lambda: issue_activity_alerts(issues, initiatives, resolved, as_of),
        ),
    ]

    for name, available, evaluate in rules:
        if not available:
            run.skipped_rules.append(name)
            continue
        try:
            run.alerts.extend(evaluate())
        except Exception as e:
            logger.error(f"Alert rule {name} failed: {e}")
            run.failed_rules[name] = str(e)

    run.alerts = sort_alerts(run.alerts)
    if run.skipped_rules:
        logger.info("Alert rules skipped for unavailable inputs: %s", ", ".join(run.skipped_rules))
    return run


def evaluate_alerts(
    initiatives: Iterable[Initiative] | None,
    teams: Iterable[Team] | None,
    issues: Iterable[Issue] | None,
    settings: AlertSettings | dict | None = None,
    as_of: datetime | None = None,
) -> list[Alert]:
    """Ranked alerts for the snapshot. Never raises."""
    return run_alert_rules(initiatives, teams, issues, settings, as_of).alerts
