"""
FlowVision strategic intelligence analytics.

Pure, read-only analysis over issues, initiatives and teams:
clustering, correlation, health score, predictive alerts, ROI forecast and
executive insights, behind the AnalyticsEngine facade.
"""

from flowvision.analytics.alerts import evaluate_alerts
from flowvision.analytics.clustering import cluster_issues
from flowvision.analytics.correlation import correlate
from flowvision.analytics.engine import AnalyticsEngine
from flowvision.analytics.errors import (
    AnalyticsError,
    ComputationOverflow,
    DataUnavailable,
    InvalidConfiguration,
)
from flowvision.analytics.health_score import compute_health_score
from flowvision.analytics.insights import compose_insights
from flowvision.analytics.models import (
    Alert,
    AlertCategory,
    AlertType,
    Assignment,
    Cluster,
    CorrelationResult,
    ExecutiveInsight,
    HealthScore,
    HealthTrend,
    Initiative,
    InitiativePhase,
    InitiativeStatus,
    Issue,
    Milestone,
    OwnerWorkload,
    RoiForecast,
    Team,
)
from flowvision.analytics.repository import (
    InMemoryRepository,
    JsonSnapshotRepository,
    RecordRepository,
    Snapshot,
)
from flowvision.analytics.result import EngineResult, ResultError, ResultStatus
from flowvision.analytics.roi_forecast import forecast_roi
from flowvision.analytics.settings import (
    AlertSettings,
    AnalyticsConfig,
    ForecastSettings,
    HealthSettings,
    load_analytics_config,
)

__all__ = [
    "Alert",
    "AlertCategory",
    "AlertSettings",
    "AlertType",
    "AnalyticsConfig",
    "AnalyticsEngine",
    "AnalyticsError",
    "Assignment",
    "Cluster",
    "ComputationOverflow",
    "CorrelationResult",
    "DataUnavailable",
    "EngineResult",
    "ExecutiveInsight",
    "ForecastSettings",
    "HealthScore",
    "HealthSettings",
    "HealthTrend",
    "InMemoryRepository",
    "Initiative",
    "InitiativePhase",
    "InitiativeStatus",
    "InvalidConfiguration",
    "Issue",
    "JsonSnapshotRepository",
    "Milestone",
    "OwnerWorkload",
    "RecordRepository",
    "ResultError",
    "ResultStatus",
    "RoiForecast",
    "Snapshot",
    "Team",
    "cluster_issues",
    "compose_insights",
    "compute_health_score",
    "correlate",
    "evaluate_alerts",
    "forecast_roi",
    "load_analytics_config",
]
