"""
Property-based tests for analytics invariants using Hypothesis.

These tests stress range, ordering and partition guarantees with random
portfolios to find edge cases.
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from flowvision.analytics.alerts import alert_priority, evaluate_alerts
from flowvision.analytics.clustering import MIN_CLUSTER_SIZE, cluster_issues
from flowvision.analytics.health_score import compute_health_score
from flowvision.analytics.models import AlertType, InitiativeStatus
from flowvision.analytics.roi_forecast import forecast_roi
from flowvision.analytics.settings import ForecastSettings
from tests.fixtures import AS_OF, assign, days, make_initiative, make_issue, make_team

THEMES = ["Billing", "Support", "Technology", "Operations", None]
TEAM_IDS = ["T-1", "T-2", "T-3"]

# ============================================================================
# Strategies
# ============================================================================


@st.composite
def issues(draw, max_size=25):
    count = draw(st.integers(min_value=0, max_value=max_size))
    records = []
    for _ in range(count):
        created = draw(st.one_of(st.none(), st.integers(min_value=-60, max_value=0)))
        resolved = None
        if created is not None and draw(st.booleans()):
            resolved = draw(st.integers(min_value=created, max_value=0))
        records.append(
            make_issue(
                f"ISS-{draw(st.integers(min_value=0, max_value=max_size))}",
                category=draw(st.sampled_from(THEMES)),
                department=draw(st.sampled_from(THEMES)),
                keywords=draw(st.lists(st.sampled_from(["latency", "refund", "rota"]), max_size=2)),
                heatmap_score=draw(st.floats(min_value=0, max_value=100)),
                created_at=days(created) if created is not None else None,
                resolved_at=days(resolved) if resolved is not None else None,
            )
        )
    return records


@st.composite
def initiatives(draw, max_size=10):
    count = draw(st.integers(min_value=0, max_value=max_size))
    records = []
    for n in range(count):
        start = draw(st.integers(min_value=-200, max_value=30))
        length = draw(st.integers(min_value=-10, max_value=200))
        budget = draw(st.one_of(st.none(), st.floats(min_value=0, max_value=1e6)))
        records.append(
            make_initiative(
                f"INIT-{n}",
                status=draw(st.sampled_from(list(InitiativeStatus))),
                progress=draw(st.floats(min_value=0, max_value=100)),
                timeline_start=days(start),
                timeline_end=days(start + length),
                budget=budget,
                actual_spend=draw(st.one_of(st.none(), st.floats(min_value=0, max_value=2e6))),
                realized_roi=draw(st.one_of(st.none(), st.floats(min_value=-100, max_value=300))),
                projected_roi=draw(st.one_of(st.none(), st.floats(min_value=-100, max_value=300))),
                owner_id=draw(st.sampled_from(["alice", "bob", "carol"])),
                assignments=[
                    assign(team_id, f"INIT-{n}", draw(st.floats(min_value=0, max_value=120)))
                    for team_id in draw(st.lists(st.sampled_from(TEAM_IDS), max_size=2, unique=True))
                ],
                created_at=days(start),
            )
        )
    return records


teams = st.lists(
    st.builds(lambda i, c: make_team(TEAM_IDS[i], capacity=c), st.integers(0, 2), st.floats(0, 80)),
    max_size=3,
    unique_by=lambda t: t.id,
)

roi_history = st.lists(st.floats(min_value=-1000, max_value=1000), max_size=12)


# ============================================================================
# Clustering
# ============================================================================


@given(issues(), st.integers(min_value=1, max_value=12))
def test_clusters_partition_issues(records, max_clusters):
    """Clusters are disjoint, hold at least two issues and respect the limit."""
    clusters = cluster_issues(records, max_clusters=max_clusters)
    known = {issue.id for issue in records}

    assert len(clusters) <= max_clusters
    seen: set[str] = set()
    for cluster in clusters:
        assert len(cluster.issue_ids) >= MIN_CLUSTER_SIZE
        assert seen.isdisjoint(cluster.issue_ids)
        assert set(cluster.issue_ids) <= known
        seen.update(cluster.issue_ids)


@given(issues())
def test_clustering_is_deterministic(records):
    assert cluster_issues(records) == cluster_issues(list(records))


# ============================================================================
# Health score
# ============================================================================


@settings(max_examples=50)
@given(initiatives(), issues(), teams, roi_history)
def test_health_score_in_range(initiative_records, issue_records, team_records, history):
    health = compute_health_score(
        initiative_records, issue_records, team_records, historical_roi=history, as_of=AS_OF
    )

    assert 0 <= health.score <= 100
    for value in health.components.as_mapping().values():
        assert 0 <= value <= 100


# ============================================================================
# Alerts
# ============================================================================


@given(st.sampled_from(list(AlertType)), st.floats(min_value=-1e6, max_value=1e6))
def test_alert_priority_bounded(alert_type, overshoot):
    assert 1 <= alert_priority(alert_type, overshoot) <= 10


@settings(max_examples=50)
@given(initiatives(), teams, issues())
def test_alerts_ranked_and_bounded(initiative_records, team_records, issue_records):
    alerts = evaluate_alerts(initiative_records, team_records, issue_records, as_of=AS_OF)

    priorities = [a.priority for a in alerts]
    assert priorities == sorted(priorities, reverse=True)
    assert all(1 <= p <= 10 for p in priorities)
    assert len({a.id for a in alerts}) == len(alerts)


# ============================================================================
# ROI forecast
# ============================================================================


@settings(max_examples=50)
@given(initiatives(), roi_history)
def test_forecast_bounded(initiative_records, history):
    bounds = ForecastSettings()
    projection = forecast_roi(initiative_records, history, as_of=AS_OF).forecast

    assert 0 <= projection.confidence <= 100
    for value in (projection.three_month, projection.six_month, projection.twelve_month):
        assert bounds.lower_bound <= value <= bounds.upper_bound


@given(
    st.integers(min_value=-50, max_value=50),
    st.integers(min_value=-5, max_value=5),
    st.integers(min_value=2, max_value=10),
)
def test_confidence_never_rises_as_history_shrinks(start, step, length):
    """With the spread of deltas held fixed, fewer periods never mean more confidence."""
    history = [start + step * n for n in range(length)]

    confidences = [
        forecast_roi([], history[-size:], as_of=AS_OF).forecast.confidence
        for size in range(length, 1, -1)
    ]

    assert confidences == sorted(confidences, reverse=True)
