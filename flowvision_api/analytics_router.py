"""
Analytics API Router - strategic intelligence endpoints.

Read-only GET endpoints over the AnalyticsEngine, plus the alert settings
store. Every response uses the AnalyticsResponse envelope; a degraded
engine result is still a 200 with status "degraded" and its errors listed.

AUTHENTICATION: All endpoints require a valid Bearer token.
Set FLOWVISION_API_TOKEN to enable auth.

Usage in server.py:
    from flowvision_api.analytics_router import analytics_router
    app.include_router(analytics_router, prefix="/api/v1/analytics")
"""

import logging
import threading
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from flowvision import config, paths
from flowvision.analytics import AnalyticsEngine, EngineResult, JsonSnapshotRepository
from flowvision.analytics.correlation import ENTITY_TYPES
from flowvision_api.auth import require_auth
from flowvision_api.response_models import AnalyticsResponse

logger = logging.getLogger(__name__)

analytics_router = APIRouter(
    tags=["Analytics"],
    dependencies=[Depends(require_auth)],
)

DEFAULT_ALERT_LIMIT = 10

_engine: AnalyticsEngine | None = None
_engine_lock = threading.Lock()


def get_engine() -> AnalyticsEngine:
    """Get or create the engine over the configured snapshot file."""
    global _engine
    with _engine_lock:
        if _engine is None:
            snapshot = config.SNAPSHOT_PATH or paths.default_snapshot_path()
            logger.info(f"Serving analytics from snapshot {snapshot}")
            _engine = AnalyticsEngine(JsonSnapshotRepository(snapshot))
        return _engine


def _wrap_result(result: EngineResult, params: dict | None = None) -> dict:
    """Wrap an engine result in the standard envelope."""
    envelope = result.to_dict()
    return {
        "status": envelope["status"],
        "data": envelope["data"],
        "computed_at": datetime.now().isoformat(),
        "params": params or {},
        "errors": envelope["errors"],
    }


# =============================================================================
# ANALYTICS ENDPOINTS
# =============================================================================


@analytics_router.get("/clusters", response_model=AnalyticsResponse)
def clusters(engine: AnalyticsEngine = Depends(get_engine)):
    """Issue clusters grouped by shared theme, in first-seen order."""
    return _wrap_result(engine.get_clusters())


@analytics_router.get("/health-score", response_model=AnalyticsResponse)
def health_score(engine: AnalyticsEngine = Depends(get_engine)):
    """Composite organisational health score with its four components."""
    return _wrap_result(engine.get_health_score())


@analytics_router.get("/alerts", response_model=AnalyticsResponse)
def alerts(
    limit: int = Query(DEFAULT_ALERT_LIMIT, ge=1, le=100, description="Maximum alerts returned"),
    engine: AnalyticsEngine = Depends(get_engine),
):
    """
    Predictive alerts, highest priority first.

    Only the top `limit` alerts are returned; params.total_count counts all of them.
    """
    result = engine.get_alerts()
    envelope = _wrap_result(result, {"limit": limit, "total_count": len(result.value or [])})
    envelope["data"] = (envelope["data"] or [])[:limit]
    return envelope


@analytics_router.get("/roi-forecast", response_model=AnalyticsResponse)
def roi_forecast(engine: AnalyticsEngine = Depends(get_engine)):
    """Current ROI position and 3/6/12-month projections."""
    return _wrap_result(engine.get_roi_forecast())


@analytics_router.get(
    "/correlations/{entity_type}/{entity_id}", response_model=AnalyticsResponse
)
def correlations(entity_type: str, entity_id: str, engine: AnalyticsEngine = Depends(get_engine)):
    """
    Related issues, initiatives and candidate root causes for one entity.

    entity_type is "cluster" or "initiative". Results are cached.
    """
    if entity_type not in ENTITY_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported entity type {entity_type!r}; expected one of {', '.join(ENTITY_TYPES)}",
        )
    return _wrap_result(
        engine.get_correlations(entity_id, entity_type),
        {"entity_type": entity_type, "entity_id": entity_id},
    )


@analytics_router.get("/insights", response_model=AnalyticsResponse)
def insights(engine: AnalyticsEngine = Depends(get_engine)):
    """Executive insights composed from every sub-engine."""
    return _wrap_result(engine.get_insights())


@analytics_router.get("/owner-utilization", response_model=AnalyticsResponse)
def owner_utilization(engine: AnalyticsEngine = Depends(get_engine)):
    """Active initiatives per owner, busiest first."""
    return _wrap_result(engine.get_owner_utilization())


# =============================================================================
# ALERT SETTINGS
# =============================================================================


@analytics_router.get("/alert-settings", response_model=AnalyticsResponse)
def get_alert_settings(engine: AnalyticsEngine = Depends(get_engine)):
    return _wrap_result(engine.get_alert_settings())


@analytics_router.put("/alert-settings", response_model=AnalyticsResponse)
def put_alert_settings(
    settings: dict[str, Any] = Body(..., description="Partial alert settings, camelCase keys"),
    engine: AnalyticsEngine = Depends(get_engine),
):
    """
    Validate and store alert thresholds.

    Omitted fields keep their current value. Invalid fields keep their
    current value and are listed under errors. Echoes the merged settings.
    """
    result = engine.store_alert_settings(settings)
    return _wrap_result(result, {"fields": sorted(settings)})
