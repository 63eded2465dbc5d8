"""
Typed configuration records for the analytics engine.

AlertSettings is owned and persisted by an external settings UI; the engine
treats it as immutable input per run. HealthSettings and ForecastSettings hold
tuning parameters that would otherwise be hard-coded.

Every field has a documented default. Raw mappings are validated at the
boundary: a missing or malformed field falls back to its default and is
reported as InvalidConfiguration (logged as a configuration warning), never
raised to the caller.

Defaults can be overridden per deployment in config/analytics.yaml:

    alerts:
      timelineBehindPct: 20
      deadlineDaysCritical: 7
    health:
      weights: {initiativeHealth: 0.25, issueVelocity: 0.25, ...}
      trendEpsilon: 2
    forecast:
      window: 6
"""

import logging
import math
import re
from dataclasses import dataclass, field, fields, replace
from pathlib import Path

import yaml

from flowvision import config, paths
from flowvision.analytics.errors import InvalidConfiguration

logger = logging.getLogger(__name__)


def _snake(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _normalize_keys(raw: dict, section: str) -> dict:
    """snake_case view of a settings mapping; non-string keys are ignored."""
    normalized = {}
    for key, value in raw.items():
        if not isinstance(key, str):
            logger.warning("Ignoring non-string %s key %r", section, key)
            continue
        normalized[_snake(key)] = value
    return normalized


def _coerce_number(name: str, value, integer: bool = False) -> float:
    """Validate one numeric threshold. Raises InvalidConfiguration."""
    if isinstance(value, bool) or value is None:
        raise InvalidConfiguration(name, f"expected a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidConfiguration(name, f"expected a number, got {value!r}") from None
    if math.isnan(number) or math.isinf(number):
        raise InvalidConfiguration(name, f"expected a finite number, got {value!r}")
    if number < 0:
        raise InvalidConfiguration(name, f"must be non-negative, got {value!r}")
    if integer:
        if number != int(number):
            raise InvalidConfiguration(name, f"expected a whole number, got {value!r}")
        return int(number)
    return number


# =============================================================================
# ALERT SETTINGS
# =============================================================================


@dataclass(frozen=True)
class AlertSettings:
    """Thresholds consumed by the predictive alert engine."""

    timeline_behind_pct: float = 20.0
    deadline_days_critical: float = 7.0
    owner_max_active: int = 5
    budget_overrun_warn_pct: float = 10.0
    budget_overrun_crit_pct: float = 25.0
    low_roi_pct: float = 5.0
    # Issue-backlog rules
    high_heatmap_score: float = 80.0
    cluster_high_severity_count: int = 2
    issue_spike_count: int = 10
    activity_window_days: int = 7
    cluster_growth_count: int = 3

    _INTEGER_FIELDS = frozenset(
        {
            "owner_max_active",
            "cluster_high_severity_count",
            "issue_spike_count",
            "activity_window_days",
            "cluster_growth_count",
        }
    )
    # Absent optional fields keep their default without being reported missing
    _OPTIONAL_FIELDS = frozenset({"cluster_growth_count"})

    @classmethod
    def parse(
        cls, raw: dict | None, base: "AlertSettings | None" = None
    ) -> tuple["AlertSettings", list[InvalidConfiguration]]:
        """
        Validate a raw settings mapping.

        Returns the settings (defaults substituted where needed) and the list
        of configuration problems found. Unknown keys (e.g. digest delivery
        preferences) are ignored.
        """
        defaults = base or cls()
        problems: list[InvalidConfiguration] = []

        if raw is None:
            problems.append(InvalidConfiguration("alertSettings", "missing; using defaults"))
            logger.warning("Alert settings missing; using defaults")
            return defaults, problems
        if not isinstance(raw, dict):
            problems.append(
                InvalidConfiguration("alertSettings", f"expected a mapping, got {type(raw).__name__}")
            )
            logger.warning("Alert settings malformed (%s); using defaults", type(raw).__name__)
            return defaults, problems

        normalized = _normalize_keys(raw, "alert settings")
        values = {}
        missing = []
        for f in fields(cls):
            if f.name.startswith("_"):
                continue
            if f.name not in normalized:
                if f.name not in cls._OPTIONAL_FIELDS:
                    missing.append(_camel(f.name))
                continue
            try:
                values[f.name] = _coerce_number(
                    _camel(f.name), normalized[f.name], integer=f.name in cls._INTEGER_FIELDS
                )
            except InvalidConfiguration as e:
                problems.append(e)
                logger.warning("Invalid alert setting %s; using default", e)

        if missing:
            problems.append(InvalidConfiguration(", ".join(missing), "missing; using defaults"))
            logger.warning("Alert settings missing fields %s; using defaults", ", ".join(missing))

        settings = replace(defaults, **values)

        if settings.budget_overrun_crit_pct < settings.budget_overrun_warn_pct:
            problems.append(
                InvalidConfiguration(
                    "budgetOverrunCritPct",
                    f"{settings.budget_overrun_crit_pct} is below budgetOverrunWarnPct "
                    f"{settings.budget_overrun_warn_pct}",
                )
            )
            logger.warning("Budget overrun thresholds inverted; using defaults for both")
            settings = replace(
                settings,
                budget_overrun_warn_pct=defaults.budget_overrun_warn_pct,
                budget_overrun_crit_pct=defaults.budget_overrun_crit_pct,
            )

        return settings, problems

    @classmethod
    def from_mapping(cls, raw: dict | None, base: "AlertSettings | None" = None) -> "AlertSettings":
        settings, _ = cls.parse(raw, base)
        return settings

    def to_dict(self) -> dict:
        return {_camel(f.name): getattr(self, f.name) for f in fields(self) if not f.name.startswith("_")}


# =============================================================================
# HEALTH SETTINGS
# =============================================================================

HEALTH_COMPONENTS = ("initiative_health", "issue_velocity", "team_utilization", "roi_trend")


def _equal_weights() -> dict[str, float]:
    return {name: 0.25 for name in HEALTH_COMPONENTS}


@dataclass(frozen=True)
class HealthSettings:
    """Tuning for the health score calculator."""

    weights: dict[str, float] = field(default_factory=_equal_weights)
    trend_epsilon: float = 2.0
    trailing_days: int = 30
    roi_window: int = 6
    roi_decline_penalty: float = 10.0  # points lost per ROI point of decline per period

    @classmethod
    def from_mapping(cls, raw: dict | None) -> "HealthSettings":
        base = cls()
        if not raw:
            return base
        normalized = _normalize_keys(raw, "health settings")
        values = {}
        for name in ("trend_epsilon", "trailing_days", "roi_window", "roi_decline_penalty"):
            if name not in normalized:
                continue
            try:
                values[name] = _coerce_number(
                    _camel(name), normalized[name], integer=name in ("trailing_days", "roi_window")
                )
            except InvalidConfiguration as e:
                logger.warning("Invalid health setting %s; using default", e)
        if "weights" in normalized:
            try:
                values["weights"] = _parse_weights(normalized["weights"])
            except InvalidConfiguration as e:
                logger.warning("Invalid health weights %s; using equal weights", e)
        return replace(base, **values)


def _parse_weights(raw) -> dict[str, float]:
    if not isinstance(raw, dict):
        raise InvalidConfiguration("weights", "expected a mapping")
    weights = _equal_weights()
    for key, value in raw.items():
        name = _snake(key) if isinstance(key, str) else key
        if name not in weights:
            raise InvalidConfiguration("weights", f"unknown component {key!r}")
        weights[name] = _coerce_number(f"weights.{key}", value)
    if sum(weights.values()) <= 0:
        raise InvalidConfiguration("weights", "weights must not all be zero")
    return weights


# =============================================================================
# FORECAST SETTINGS
# =============================================================================


@dataclass(frozen=True)
class ForecastSettings:
    """Tuning for the ROI forecast model."""

    window: int = 6  # trailing periods used for the slope
    min_window: int = 6  # below this many periods confidence is penalised
    variance_scale: float = 5.0  # confidence points per point of delta stdev
    overflow_penalty: float = 20.0  # confidence lost when a horizon is clamped
    lower_bound: float = -100.0
    upper_bound: float = 500.0
    top_performers: int = 5
    max_recommendations: int = 4
    low_confidence: float = 60.0

    _INTEGER_FIELDS = frozenset({"window", "min_window", "top_performers", "max_recommendations"})

    @classmethod
    def from_mapping(cls, raw: dict | None) -> "ForecastSettings":
        base = cls()
        if not raw:
            return base
        normalized = _normalize_keys(raw, "forecast settings")
        values = {}
        for f in fields(cls):
            if f.name.startswith("_") or f.name not in normalized:
                continue
            if f.name == "lower_bound":
                # The only field allowed to be negative
                try:
                    values[f.name] = float(normalized[f.name])
                except (TypeError, ValueError):
                    logger.warning("Invalid forecast setting lowerBound; using default")
                continue
            try:
                values[f.name] = _coerce_number(
                    _camel(f.name), normalized[f.name], integer=f.name in cls._INTEGER_FIELDS
                )
            except InvalidConfiguration as e:
                logger.warning("Invalid forecast setting %s; using default", e)
        settings = replace(base, **values)
        if settings.window < 2 or settings.min_window < 1:
            logger.warning("Forecast window too small; using defaults")
            return base
        return settings


# =============================================================================
# FILE LOADING
# =============================================================================


@dataclass(frozen=True)
class AnalyticsConfig:
    """Deployment-level defaults loaded from config/analytics.yaml."""

    alerts: AlertSettings = field(default_factory=AlertSettings)
    health: HealthSettings = field(default_factory=HealthSettings)
    forecast: ForecastSettings = field(default_factory=ForecastSettings)
    max_clusters: int = 12
    cache_ttl: int = config.CACHE_TTL_SECONDS


def default_config_path() -> Path:
    if config.CONFIG_PATH:
        return Path(config.CONFIG_PATH).expanduser()
    return paths.project_root() / "config" / "analytics.yaml"


def _load_yaml(config_path: Path) -> dict:
    """Load YAML config, return empty dict on failure."""
    if not config_path.exists():
        logger.warning("Analytics config not found at %s, using defaults", config_path)
        return {}
    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except (yaml.YAMLError, OSError) as exc:
        logger.error("Failed to load analytics config: %s", exc)
        return {}
    if not isinstance(data, dict):
        logger.error("Analytics config at %s is not a mapping, using defaults", config_path)
        return {}
    return data


def load_analytics_config(config_path: Path | None = None) -> AnalyticsConfig:
    """Build AnalyticsConfig from YAML, falling back to built-in defaults."""
    data = _load_yaml(config_path or default_config_path())

    alerts = AlertSettings()
    if data.get("alerts") is not None:
        alerts = AlertSettings.from_mapping({**alerts.to_dict(), **(data.get("alerts") or {})})

    max_clusters = AnalyticsConfig.max_clusters
    cache_ttl = config.CACHE_TTL_SECONDS
    clustering = data.get("clustering") or {}
    try:
        if "maxClusters" in clustering:
            max_clusters = _coerce_number("maxClusters", clustering["maxClusters"], integer=True)
        if "cacheTtlSeconds" in data:
            cache_ttl = _coerce_number("cacheTtlSeconds", data["cacheTtlSeconds"], integer=True)
    except InvalidConfiguration as e:
        logger.warning("Invalid analytics setting %s; using default", e)

    return AnalyticsConfig(
        alerts=alerts,
        health=HealthSettings.from_mapping(data.get("health")),
        forecast=ForecastSettings.from_mapping(data.get("forecast")),
        max_clusters=max_clusters,
        cache_ttl=cache_ttl,
    )
