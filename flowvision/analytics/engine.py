"""
Analytics engine facade.

Single entry point over the sub-engines. Every operation:
- fetches any argument left as None through the repository, converting a
  failed or empty read into DataUnavailable
- runs its sub-engine with error isolation, so one failing input or rule
  degrades only what depends on it
- returns an EngineResult (ok / empty / degraded) and never raises

Usage:
    from flowvision.analytics import AnalyticsEngine, JsonSnapshotRepository

    engine = AnalyticsEngine(JsonSnapshotRepository("snapshot.json"))
    alerts = engine.get_alerts()
    if alerts.degraded:
        print(alerts.failed_sources)
"""

import glob
import logging
import time
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime
from typing import Any

from flowvision import config as app_config
from flowvision.analytics.alerts import run_alert_rules
from flowvision.analytics.clustering import build_clusters
from flowvision.analytics.correlation import ENTITY_TYPES, build_correlation
from flowvision.analytics.errors import AnalyticsError, DataUnavailable, InvalidConfiguration
from flowvision.analytics.health_score import evaluate_health
from flowvision.analytics.insights import compose_insights
from flowvision.analytics.models import (
    Alert,
    Cluster,
    CorrelationResult,
    ExecutiveInsight,
    HealthComponents,
    HealthScore,
    HealthTrend,
    Initiative,
    Issue,
    OwnerWorkload,
    RoiCurrent,
    RoiForecast,
    RoiProjection,
    Team,
    parse_timestamp,
    utcnow,
)
from flowvision.analytics.portfolio import owner_workloads
from flowvision.analytics.repository import RecordRepository
from flowvision.analytics.result import EngineResult, ResultError, ResultStatus
from flowvision.analytics.roi_forecast import evaluate_forecast
from flowvision.analytics.settings import AlertSettings, AnalyticsConfig, load_analytics_config
from flowvision.cache import CacheManager

logger = logging.getLogger(__name__)

INTERNAL_ERROR = "internal_error"

# Revision markers: nothing observed yet / repository could not report one
_UNSEEN = object()
_UNREADABLE = object()


def _error_from(exc: Exception, source: str) -> ResultError:
    kind = exc.kind if isinstance(exc, AnalyticsError) else INTERNAL_ERROR
    return ResultError(kind=kind, source=source, message=str(exc))


def _status_for(value: Any, errors: list[ResultError]) -> ResultStatus:
    if errors:
        return ResultStatus.DEGRADED
    if value is None:
        return ResultStatus.EMPTY
    if isinstance(value, CorrelationResult):
        return ResultStatus.EMPTY if value.is_empty else ResultStatus.OK
    if isinstance(value, list) and not value:
        return ResultStatus.EMPTY
    return ResultStatus.OK


def _dedupe(errors: Iterable[ResultError]) -> list[ResultError]:
    seen = set()
    unique = []
    for error in errors:
        key = (error.kind, error.source, error.message)
        if key not in seen:
            seen.add(key)
            unique.append(error)
    return unique


class AnalyticsEngine:
    """Read-only analytics over a RecordRepository."""

    def __init__(
        self,
        repository: RecordRepository,
        config: AnalyticsConfig | None = None,
        cache: CacheManager | None = None,
    ):
        self.repository = repository
        self.config = config or load_analytics_config()
        self.cache = cache or CacheManager(
            max_size=app_config.CACHE_MAX_ENTRIES,
            default_ttl=self.config.cache_ttl,
        )
        self._revision: Any = _UNSEEN

    def _sync_revision(self) -> None:
        """Drop cached results when the repository's records have changed."""
        try:
            revision = getattr(self.repository, "revision", None)
        except Exception as e:
            logger.warning(f"Repository revision unavailable: {e}")
            revision = _UNREADABLE
        if revision == self._revision:
            return
        if self._revision is not _UNSEEN:
            logger.info("Repository records changed; clearing cached results")
            self.cache.clear()
        self._revision = revision

    # =========================================================================
    # INPUT RESOLUTION
    # =========================================================================

    def _fetch(self, source: str, errors: list[ResultError], required: bool = True) -> Any:
        """
        Read one section from the repository.

        Any exception, or None from a required section, is recorded as
        DataUnavailable and None is returned.
        """
        reader: Callable[[], Any] = getattr(self.repository, f"fetch_{source}")
        try:
            value = reader()
        except DataUnavailable as e:
            logger.warning(f"Repository read failed for {source}: {e}")
            errors.append(_error_from(DataUnavailable(source, e.reason or str(e)), source))
            return None
        except Exception as e:
            logger.warning(f"Repository read failed for {source}: {e}")
            errors.append(_error_from(DataUnavailable(source, str(e)), source))
            return None
        if value is None and required:
            errors.append(_error_from(DataUnavailable(source, "returned nothing"), source))
        return value

    def _resolve(self, value: Any, source: str, errors: list[ResultError], required: bool = True) -> Any:
        if value is not None:
            return value
        return self._fetch(source, errors, required)

    def _as_of(self) -> datetime:
        try:
            as_of = self.repository.as_of
        except Exception as e:
            logger.warning(f"Snapshot time unavailable, using now: {e}")
            as_of = None
        return parse_timestamp(as_of) or utcnow()

    def _resolve_alert_settings(
        self, settings: AlertSettings | dict | None, errors: list[ResultError]
    ) -> AlertSettings:
        """Explicit settings, else stored settings over deployment defaults."""
        if isinstance(settings, AlertSettings):
            return settings
        raw = settings if settings is not None else self._fetch("alert_settings", errors, required=False)
        if raw is None:
            return self.config.alerts
        resolved, problems = AlertSettings.parse(raw, base=self.config.alerts)
        errors.extend(_error_from(p, "alert_settings") for p in problems)
        return resolved

    def _finish(
        self, operation: str, value: Any, errors: list[ResultError], started: float
    ) -> EngineResult:
        errors = _dedupe(errors)
        result = EngineResult(
            operation=operation, value=value, status=_status_for(value, errors), errors=errors
        )
        elapsed_ms = (time.monotonic() - started) * 1000
        if result.degraded:
            logger.warning(
                f"{operation} degraded ({', '.join(result.failed_sources)}) in {elapsed_ms:.1f}ms"
            )
        else:
            logger.debug(f"{operation} {result.status.value} in {elapsed_ms:.1f}ms")
        return result

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    def get_clusters(self, issues: Iterable[Issue] | None = None) -> EngineResult[list[Cluster]]:
        started = time.monotonic()
        errors: list[ResultError] = []
        issues = self._resolve(issues, "issues", errors)

        clusters: list[Cluster] = []
        if issues is not None:
            try:
                clusters = build_clusters(issues, self.config.max_clusters)
            except Exception as e:
                logger.exception("Issue clustering failed")
                errors.append(_error_from(e, "clustering"))
        return self._finish("clusters", clusters, errors, started)

    def get_health_score(
        self,
        initiatives: Iterable[Initiative] | None = None,
        issues: Iterable[Issue] | None = None,
        teams: Iterable[Team] | None = None,
        history: Sequence | None = None,
    ) -> EngineResult[HealthScore]:
        started = time.monotonic()
        errors: list[ResultError] = []
        as_of = self._as_of()
        initiatives = self._resolve(initiatives, "initiatives", errors)
        issues = self._resolve(issues, "issues", errors)
        teams = self._resolve(teams, "teams", errors)
        history = self._resolve(history, "health_history", errors, required=False)
        roi_history = self._fetch("roi_history", errors, required=False)

        try:
            health, unavailable = evaluate_health(
                initiatives,
                issues,
                teams,
                history=history,
                settings=self.config.health,
                historical_roi=roi_history,
                as_of=as_of,
            )
        except Exception as e:
            logger.exception("Health score calculation failed")
            errors.append(_error_from(e, "health_score"))
            health = HealthScore(
                score=50, trend=HealthTrend.STABLE, components=HealthComponents(), last_updated=as_of
            )
        else:
            for component, reason in unavailable.items():
                if reason.startswith("computation failed"):
                    errors.append(ResultError(INTERNAL_ERROR, f"health.{component}", reason))
        return self._finish("health_score", health, errors, started)

    def get_alerts(
        self,
        initiatives: Iterable[Initiative] | None = None,
        teams: Iterable[Team] | None = None,
        issues: Iterable[Issue] | None = None,
        settings: AlertSettings | dict | None = None,
    ) -> EngineResult[list[Alert]]:
        started = time.monotonic()
        errors: list[ResultError] = []
        as_of = self._as_of()
        initiatives = self._resolve(initiatives, "initiatives", errors)
        teams = self._resolve(teams, "teams", errors)
        issues = self._resolve(issues, "issues", errors)
        resolved = self._resolve_alert_settings(settings, errors)

        alerts: list[Alert] = []
        try:
            run = run_alert_rules(initiatives, teams, issues, resolved, as_of)
        except Exception as e:
            logger.exception("Alert evaluation failed")
            errors.append(_error_from(e, "alerts"))
        else:
            alerts = run.alerts
            for rule, message in run.failed_rules.items():
                errors.append(ResultError(INTERNAL_ERROR, f"alerts.{rule}", message))
        return self._finish("alerts", alerts, errors, started)

    def get_roi_forecast(
        self,
        initiatives: Iterable[Initiative] | None = None,
        historical_roi: Sequence[float] | None = None,
    ) -> EngineResult[RoiForecast]:
        started = time.monotonic()
        errors: list[ResultError] = []
        as_of = self._as_of()
        initiatives = self._resolve(initiatives, "initiatives", errors)
        historical_roi = self._resolve(historical_roi, "roi_history", errors)

        try:
            forecast, overflows = evaluate_forecast(
                initiatives, historical_roi, self.config.forecast, as_of
            )
        except Exception as e:
            logger.exception("ROI forecast failed")
            errors.append(_error_from(e, "roi_forecast"))
            forecast = RoiForecast(current=RoiCurrent(), forecast=RoiProjection(), last_updated=as_of)
        else:
            errors.extend(_error_from(o, "roi_forecast") for o in overflows)
        return self._finish("roi_forecast", forecast, errors, started)

    def get_correlations(self, entity_id: str, entity_type: str) -> EngineResult[CorrelationResult]:
        started = time.monotonic()
        self._sync_revision()
        cache_key = f"correlation:{entity_type}:{entity_id}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.debug(f"Correlation cache hit: {cache_key}")
            return cached

        errors: list[ResultError] = []
        empty = CorrelationResult(entity_id=entity_id, entity_type=entity_type)
        if entity_type not in ENTITY_TYPES:
            problem = InvalidConfiguration("entityType", f"unsupported entity type {entity_type!r}")
            logger.warning(f"Correlation skipped: {problem}")
            return self._finish("correlations", empty, [_error_from(problem, "correlation")], started)

        as_of = self._as_of()
        issues = self._fetch("issues", errors)
        initiatives = self._fetch("initiatives", errors)
        teams = self._fetch("teams", errors)

        try:
            correlation = build_correlation(entity_id, entity_type, issues, initiatives, teams, as_of)
        except Exception as e:
            logger.exception(f"Correlation failed for {entity_type}/{entity_id}")
            errors.append(_error_from(e, "correlation"))
            correlation = empty

        result = self._finish("correlations", correlation, errors, started)
        if not result.degraded:
            self.cache.set(cache_key, result)
        return result

    def get_insights(self) -> EngineResult[list[ExecutiveInsight]]:
        """Executive insights over health, alerts, ROI forecast and clusters."""
        started = time.monotonic()
        health = self.get_health_score()
        alerts = self.get_alerts()
        forecast = self.get_roi_forecast()
        clusters = self.get_clusters()

        errors = [e for part in (health, alerts, forecast, clusters) for e in part.errors]
        insights: list[ExecutiveInsight] = []
        try:
            insights = compose_insights(health.value, alerts.value, forecast.value, clusters.value)
        except Exception as e:
            logger.exception("Insight composition failed")
            errors.append(_error_from(e, "insights"))
        return self._finish("insights", insights, errors, started)

    def get_owner_utilization(
        self,
        initiatives: Iterable[Initiative] | None = None,
        settings: AlertSettings | dict | None = None,
    ) -> EngineResult[list[OwnerWorkload]]:
        """Active initiatives per owner, busiest first, flagged against ownerMaxActive."""
        started = time.monotonic()
        errors: list[ResultError] = []
        initiatives = self._resolve(initiatives, "initiatives", errors)
        resolved = self._resolve_alert_settings(settings, errors)

        workloads: list[OwnerWorkload] = []
        if initiatives is not None:
            try:
                workloads = [
                    OwnerWorkload(owner_id, count, over_limit=count > resolved.owner_max_active)
                    for owner_id, count in owner_workloads(initiatives).items()
                ]
                # Stable: equal counts keep first-seen order
                workloads.sort(key=lambda w: -w.active_initiatives)
            except Exception as e:
                logger.exception("Owner utilization failed")
                errors.append(_error_from(e, "owner_utilization"))
                workloads = []
        return self._finish("owner_utilization", workloads, errors, started)

    # =========================================================================
    # SETTINGS / CACHE
    # =========================================================================

    def get_alert_settings(self) -> EngineResult[AlertSettings]:
        started = time.monotonic()
        errors: list[ResultError] = []
        settings = self._resolve_alert_settings(None, errors)
        return self._finish("alert_settings", settings, errors, started)

    def store_alert_settings(self, raw: dict) -> EngineResult[AlertSettings]:
        """
        Validate a (partial) settings update against the current settings.

        Fields not supplied keep their current value. Invalid fields keep
        their current value and are reported. The merged settings are handed
        to the repository when it accepts writes.
        """
        started = time.monotonic()
        errors: list[ResultError] = []
        current = self._resolve_alert_settings(None, errors)
        if not isinstance(raw, dict):
            problem = InvalidConfiguration("alertSettings", f"expected a mapping, got {type(raw).__name__}")
            return self._finish("alert_settings", current, [_error_from(problem, "alert_settings")], started)

        merged, problems = AlertSettings.parse({**current.to_dict(), **raw}, base=current)
        errors = [_error_from(p, "alert_settings") for p in problems]

        store = getattr(self.repository, "store_alert_settings", None)
        if store is not None:
            try:
                store(merged.to_dict())
            except Exception as e:
                logger.error(f"Failed to store alert settings: {e}")
                errors.append(_error_from(e, "alert_settings"))
        self.invalidate()
        return self._finish("alert_settings", merged, errors, started)

    def invalidate(self, entity_id: str | None = None) -> int:
        """Drop cached results for one entity, or everything when entity_id is None."""
        if entity_id is None:
            dropped = self.cache.stats().size
            self.cache.clear()
        else:
            dropped = self.cache.invalidate_pattern(f"correlation:*:{glob.escape(entity_id)}")
        logger.debug(f"Invalidated {dropped} cached results")
        return dropped
