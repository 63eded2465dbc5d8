"""
FlowVision Strategic Intelligence.

Derived analytics over issue/initiative/team snapshots:
- Issue clustering and cross-entity correlation
- Composite health score
- Predictive alerts
- ROI forecast
- Executive insights

Usage:
    from flowvision.analytics import AnalyticsEngine, InMemoryRepository
    engine = AnalyticsEngine(InMemoryRepository.from_snapshot(snapshot))
    result = engine.get_alerts()
"""

__version__ = "1.0.0"
