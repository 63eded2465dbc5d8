"""
Heuristic issue clustering.

Each issue resolves to a theme key, in order of preference:
    category -> department -> first keyword -> "General"

where the first keyword is keywords[0] if present, otherwise the first
lowercase alphabetic token of five or more letters in the description.

Issues are grouped by key in first-seen order. Key order is part of the
contract: groups are emitted, and truncated to max_clusters, in the order
their key was first encountered, not ranked by size. Groups with fewer than
two issues are dropped.
"""

import logging
import re
from collections.abc import Iterable

from flowvision.analytics.models import Cluster, Issue

logger = logging.getLogger(__name__)

DEFAULT_MAX_CLUSTERS = 12
MIN_CLUSTER_SIZE = 2
FALLBACK_LABEL = "General"

_TOKEN_RE = re.compile(r"[a-z]{5,}")


def first_keyword(issue: Issue) -> str | None:
    """keywords[0], else the first 5+ letter token of the description."""
    if issue.keywords:
        return issue.keywords[0]
    match = _TOKEN_RE.search((issue.description or "").lower())
    return match.group(0) if match else None


def theme_key(issue: Issue) -> str:
    key = (issue.category or issue.department or first_keyword(issue) or FALLBACK_LABEL).strip()
    return key or FALLBACK_LABEL


def rationale_for_label(label: str) -> str:
    return f"Grouped by shared theme: “{label}”. Based on category/department/keywords."


def group_issues(issues: Iterable[Issue]) -> dict[str, list[str]]:
    """
    Group issue ids by theme key.

    Relies on dict insertion order: keys appear in the order first seen.
    An id appearing twice is only grouped at its first occurrence.
    """
    groups: dict[str, list[str]] = {}
    seen: set[str] = set()
    for issue in issues:
        if issue.id in seen:
            continue
        seen.add(issue.id)
        groups.setdefault(theme_key(issue), []).append(issue.id)
    return groups


def build_clusters(issues: Iterable[Issue], max_clusters: int = DEFAULT_MAX_CLUSTERS) -> list[Cluster]:
    """Build clusters. May raise on malformed input; see cluster_issues()."""
    clusters = [
        Cluster(label=label, issue_ids=ids, rationale=rationale_for_label(label))
        for label, ids in group_issues(issues).items()
        if len(ids) >= MIN_CLUSTER_SIZE
    ]
    return clusters[: max(0, max_clusters)]


def cluster_issues(issues: Iterable[Issue] | None, max_clusters: int = DEFAULT_MAX_CLUSTERS) -> list[Cluster]:
    """
    Group issues into labeled clusters.

    Never raises: any internal fault yields an empty list.
    """
    if not issues:
        return []
    try:
        return build_clusters(issues, max_clusters)
    except Exception as e:
        logger.error(f"Issue clustering failed: {e}")
        return []
