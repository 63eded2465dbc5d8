"""
Cross-entity correlation for clusters and initiatives.

Given a cluster or initiative id, finds the related issues and initiatives
and proposes candidate root causes by frequency-ranking the keywords of the
related issues. No model is involved; a plain frequency ranking is enough to
surface the recurring themes.

Cluster correlation:
- related issues: issues carrying that clusterId (falls back to the
  heuristic cluster with that label when no issue carries the id)
- related initiatives: initiatives addressing any of those issues, or whose
  lead team sits in the cluster's dominant department

Initiative correlation:
- related issues: issues the initiative addresses, plus issues from its
  lead team's department
- related initiatives: other initiatives sharing an addressed issue or an
  assigned team
"""

import logging
from collections import Counter
from collections.abc import Iterable
from datetime import datetime

from flowvision.analytics.clustering import MIN_CLUSTER_SIZE, first_keyword, group_issues
from flowvision.analytics.errors import InvalidConfiguration
from flowvision.analytics.models import (
    CorrelationResult,
    Initiative,
    Issue,
    Team,
    parse_timestamp,
    utcnow,
)
from flowvision.analytics.portfolio import expected_progress, lead_team_id

logger = logging.getLogger(__name__)

ENTITY_TYPES = ("cluster", "initiative")
DEFAULT_MAX_ROOT_CAUSES = 3
HIGH_HEATMAP = 80.0
BEHIND_SCHEDULE_PCT = 20.0


# =============================================================================
# RELATION LOOKUPS
# =============================================================================


def dominant_department(issues: Iterable[Issue]) -> str | None:
    """Most frequent department; first seen wins ties."""
    counts = Counter(i.department for i in issues if i.department)
    if not counts:
        return None
    return counts.most_common(1)[0][0]


def _lead_department(initiative: Initiative, teams_by_id: dict[str, Team]) -> str | None:
    team = teams_by_id.get(lead_team_id(initiative) or "")
    return team.department if team else None


def _cluster_issues(cluster_id: str, issues: list[Issue]) -> list[Issue]:
    related = [i for i in issues if i.cluster_id == cluster_id]
    if related:
        return related
    ids = group_issues(issues).get(cluster_id, [])
    if len(ids) < MIN_CLUSTER_SIZE:
        return []
    wanted = set(ids)
    seen: set[str] = set()
    result = []
    for issue in issues:
        if issue.id in wanted and issue.id not in seen:
            seen.add(issue.id)
            result.append(issue)
    return result


def _correlate_cluster(
    cluster_id: str,
    issues: list[Issue],
    initiatives: list[Initiative],
    teams_by_id: dict[str, Team],
) -> tuple[list[Issue], list[Initiative]]:
    related_issues = _cluster_issues(cluster_id, issues)
    if not related_issues:
        return [], []

    issue_ids = {i.id for i in related_issues}
    department = dominant_department(related_issues)

    related_initiatives = []
    for initiative in initiatives:
        addresses = bool(issue_ids.intersection(initiative.addressed_issue_ids))
        same_department = department is not None and (
            _lead_department(initiative, teams_by_id) == department
        )
        if addresses or same_department:
            related_initiatives.append(initiative)
    return related_issues, related_initiatives


def _correlate_initiative(
    initiative_id: str,
    issues: list[Issue],
    initiatives: list[Initiative],
    teams_by_id: dict[str, Team],
) -> tuple[list[Issue], list[Initiative]]:
    target = next((i for i in initiatives if i.id == initiative_id), None)
    if target is None:
        return [], []

    addressed = set(target.addressed_issue_ids)
    department = _lead_department(target, teams_by_id)
    related_issues = [
        i for i in issues if i.id in addressed or (department is not None and i.department == department)
    ]

    team_ids = {a.team_id for a in target.assignments}
    related_initiatives = [
        other
        for other in initiatives
        if other.id != target.id
        and (
            addressed.intersection(other.addressed_issue_ids)
            or team_ids.intersection(a.team_id for a in other.assignments)
        )
    ]
    return related_issues, related_initiatives


# =============================================================================
# EXPLANATIONS
# =============================================================================


def rank_root_causes(issues: list[Issue], limit: int = DEFAULT_MAX_ROOT_CAUSES) -> list[str]:
    """Top keywords across the issues, as natural-language fragments."""
    terms: Counter[str] = Counter()
    for issue in issues:
        keywords = [k.strip().lower() for k in issue.keywords if k and k.strip()]
        if not keywords:
            fallback = first_keyword(issue)
            keywords = [fallback.lower()] if fallback else []
        terms.update(keywords)

    total = len(issues)
    fragments = []
    for term, count in terms.most_common(limit):
        noun = "issue" if total == 1 else "issues"
        fragments.append(f"Recurring theme “{term}” ({count} of {total} related {noun})")
    return fragments


def contributing_factors(
    issues: list[Issue],
    initiatives: list[Initiative],
    as_of: datetime,
) -> list[str]:
    factors = []

    if issues:
        hot = sum(1 for i in issues if i.heatmap_score > HIGH_HEATMAP)
        if hot:
            factors.append(
                f"{hot} of {len(issues)} related issues have a heatmap score above {HIGH_HEATMAP:.0f}"
            )

        department = dominant_department(issues)
        if department:
            share = sum(1 for i in issues if i.department == department) / len(issues)
            if share >= 0.5:
                factors.append(f"{share:.0%} of related issues come from {department}")

        votes = sum(i.votes for i in issues)
        if votes:
            factors.append(f"Related issues carry {votes} votes (average {votes / len(issues):.1f})")

    behind = 0
    overdue_milestones = 0
    for initiative in initiatives:
        if not initiative.is_active:
            continue
        expected = expected_progress(initiative, as_of)
        if expected is not None and expected - initiative.progress > BEHIND_SCHEDULE_PCT:
            behind += 1
        overdue_milestones += sum(
            1 for m in initiative.milestones if not m.is_done and m.due_date and m.due_date < as_of
        )
    if behind:
        factors.append(f"{behind} related initiative(s) are behind schedule")
    if overdue_milestones:
        factors.append(f"{overdue_milestones} milestone(s) on related initiatives are overdue")

    return factors


# =============================================================================
# ENTRY POINTS
# =============================================================================


def build_correlation(
    entity_id: str,
    entity_type: str,
    issues: Iterable[Issue] | None,
    initiatives: Iterable[Initiative] | None,
    teams: Iterable[Team] | None,
    as_of: datetime | None = None,
    max_root_causes: int = DEFAULT_MAX_ROOT_CAUSES,
) -> CorrelationResult:
    """Correlate one entity. Raises InvalidConfiguration for unknown entity types."""
    if entity_type not in ENTITY_TYPES:
        raise InvalidConfiguration("entityType", f"unsupported entity type {entity_type!r}")

    as_of = parse_timestamp(as_of) or utcnow()
    issues = list(issues or [])
    initiatives = list(initiatives or [])
    teams_by_id = {t.id: t for t in teams or []}

    if entity_type == "cluster":
        related_issues, related_initiatives = _correlate_cluster(
            entity_id, issues, initiatives, teams_by_id
        )
    else:
        related_issues, related_initiatives = _correlate_initiative(
            entity_id, issues, initiatives, teams_by_id
        )

    return CorrelationResult(
        entity_id=entity_id,
        entity_type=entity_type,
        related_issues=related_issues,
        related_initiatives=related_initiatives,
        root_causes=rank_root_causes(related_issues, max_root_causes),
        contributing_factors=contributing_factors(related_issues, related_initiatives, as_of),
    )


def correlate(
    entity_id: str,
    entity_type: str,
    issues: Iterable[Issue] | None,
    initiatives: Iterable[Initiative] | None,
    teams: Iterable[Team] | None = None,
    as_of: datetime | None = None,
) -> CorrelationResult:
    """
    Find related issues, related initiatives and candidate root causes.

    Never raises; unknown entities and faults yield empty collections.
    """
    try:
        return build_correlation(entity_id, entity_type, issues, initiatives, teams, as_of)
    except InvalidConfiguration as e:
        logger.warning("Correlation skipped: %s", e)
    except Exception as e:
        logger.error(f"Correlation failed for {entity_type}/{entity_id}: {e}")
    return CorrelationResult(entity_id=entity_id, entity_type=entity_type)
