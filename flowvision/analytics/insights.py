"""
Executive insight composer.

Merges the health score, alerts, ROI forecast and clusters into a short list
of executive insights. Each input is optional; a missing one contributes
nothing.
"""

import logging
from collections.abc import Sequence

from flowvision.analytics.models import (
    Alert,
    AlertType,
    Cluster,
    ExecutiveInsight,
    HealthScore,
    HealthTrend,
    InsightType,
    RoiForecast,
)

logger = logging.getLogger(__name__)

MAX_RISK_INSIGHTS = 3
LOW_HEALTH = 50
LOW_CONFIDENCE = 60.0


def _health_insight(health: HealthScore) -> ExecutiveInsight | None:
    declining = health.trend is HealthTrend.DECLINING
    if not declining and health.score >= LOW_HEALTH:
        return None

    components = health.components.as_mapping()
    weakest = min(components, key=components.get)
    label = weakest.replace("_", " ")
    if health.score < LOW_HEALTH:
        title = f"Organisational health is {health.classification} ({health.score}/100)"
        priority = 9 if health.score < 35 else 8
    else:
        title = f"Organisational health is declining ({health.score}/100)"
        priority = 7
    return ExecutiveInsight(
        id="insight-health",
        type=InsightType.STRATEGIC,
        title=title,
        description=f"Weakest component is {label} at {components[weakest]:.0f}/100.",
        priority=priority,
        source="health",
    )


def _alert_insights(alerts: Sequence[Alert]) -> list[ExecutiveInsight]:
    critical = [a for a in alerts if a.type is AlertType.CRITICAL]
    critical.sort(key=lambda a: -a.priority)
    return [
        ExecutiveInsight(
            id=f"insight-{alert.id}",
            type=InsightType.RISK,
            title=alert.title,
            description=f"{alert.description} {alert.recommendation}".strip(),
            priority=alert.priority,
            source="alerts",
        )
        for alert in critical[:MAX_RISK_INSIGHTS]
    ]


def _roi_insight(forecast: RoiForecast) -> ExecutiveInsight | None:
    realized = forecast.current.realized_roi
    projected = forecast.forecast.twelve_month
    confidence = forecast.forecast.confidence

    if projected < realized:
        return ExecutiveInsight(
            id="insight-roi",
            type=InsightType.FINANCIAL,
            title="ROI trajectory is negative",
            description=(
                f"Realized ROI of {realized:.1f}% is projected to reach {projected:.1f}% "
                f"in 12 months ({confidence:.0f}% confidence)."
            ),
            priority=7,
            source="roi",
        )
    if confidence < LOW_CONFIDENCE:
        return ExecutiveInsight(
            id="insight-roi",
            type=InsightType.FINANCIAL,
            title="ROI forecast has low confidence",
            description=(
                f"Forecast confidence is {confidence:.0f}%; more initiative outcome data "
                "is needed before relying on projections."
            ),
            priority=4,
            source="roi",
        )
    return None


def _cluster_insight(clusters: Sequence[Cluster]) -> ExecutiveInsight | None:
    if not clusters:
        return None
    # max() keeps the first cluster on ties
    largest = max(clusters, key=lambda c: len(c.issue_ids))
    size = len(largest.issue_ids)
    return ExecutiveInsight(
        id=f"insight-cluster-{largest.id}",
        type=InsightType.OPERATIONAL,
        title=f"Largest issue theme: {largest.label}",
        description=f"{size} reported issues share the theme “{largest.label}”.",
        priority=min(10, 3 + size // 2),
        source="clusters",
    )


def compose_insights(
    health: HealthScore | None = None,
    alerts: Sequence[Alert] | None = None,
    forecast: RoiForecast | None = None,
    clusters: Sequence[Cluster] | None = None,
) -> list[ExecutiveInsight]:
    """Executive insights sorted by priority (highest first)."""
    insights: list[ExecutiveInsight] = []
    if health is not None:
        insight = _health_insight(health)
        if insight:
            insights.append(insight)
    if alerts:
        insights.extend(_alert_insights(alerts))
    if forecast is not None:
        insight = _roi_insight(forecast)
        if insight:
            insights.append(insight)
    if clusters:
        insight = _cluster_insight(clusters)
        if insight:
            insights.append(insight)

    # stable sort keeps composition order on equal priority
    insights.sort(key=lambda i: -i.priority)
    logger.debug("Composed %d executive insights", len(insights))
    return insights
