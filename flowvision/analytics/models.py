"""
Record and result types for the FlowVision analytics engine.

Source records (Issue, Initiative, Assignment, Milestone, Team) are read-only
snapshots supplied by the record access layer. Result records (Cluster, Alert,
HealthScore, RoiForecast, CorrelationResult, ExecutiveInsight) are derived per
invocation and never persisted as a source of truth.

Every record accepts camelCase or snake_case keys in from_dict() and emits the
camelCase wire shape from to_dict().
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

# =============================================================================
# ENUMS
# =============================================================================


class InitiativeStatus(Enum):
    """Board state of an initiative."""

    DEFINE = "Define"
    PRIORITIZE = "Prioritize"
    IN_PROGRESS = "InProgress"
    DONE = "Done"


class InitiativePhase(Enum):
    """Workflow state of an initiative (independent of board status)."""

    IDENTIFY = "IDENTIFY"
    PLAN = "PLAN"
    EXECUTE = "EXECUTE"
    ANALYZE = "ANALYZE"


class AlertType(Enum):
    """Alert severity."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class AlertCategory(Enum):
    """Alert category, in presentation order."""

    TIMELINE = "timeline"
    RESOURCE = "resource"
    ROI = "roi"
    ISSUE = "issue"


class HealthTrend(Enum):
    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"


class InsightType(Enum):
    STRATEGIC = "strategic"
    OPERATIONAL = "operational"
    FINANCIAL = "financial"
    RISK = "risk"


# Legacy board states seen in older exports
_STATUS_ALIASES = {
    "define": InitiativeStatus.DEFINE,
    "prioritize": InitiativeStatus.PRIORITIZE,
    "inprogress": InitiativeStatus.IN_PROGRESS,
    "in_progress": InitiativeStatus.IN_PROGRESS,
    "active": InitiativeStatus.IN_PROGRESS,
    "approved": InitiativeStatus.PRIORITIZE,
    "done": InitiativeStatus.DONE,
    "completed": InitiativeStatus.DONE,
}


# =============================================================================
# HELPERS
# =============================================================================


def utcnow() -> datetime:
    """Naive UTC now. All engine timestamps are naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 string or datetime into a naive UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def format_timestamp(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _normalize_times(record: Any, *names: str) -> None:
    """Convert aware datetimes on a frozen record to naive UTC in place."""
    for name in names:
        value = getattr(record, name)
        if isinstance(value, datetime) and value.tzinfo is not None:
            object.__setattr__(record, name, parse_timestamp(value))


def _pick(data: dict, *keys: str, default: Any = None) -> Any:
    """Return the first present key (camelCase or snake_case spelling)."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _optional_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    return float(value)


def parse_status(value: Any) -> InitiativeStatus:
    if isinstance(value, InitiativeStatus):
        return value
    key = str(value or "define").replace(" ", "").replace("-", "_").lower()
    try:
        return _STATUS_ALIASES[key]
    except KeyError:
        raise ValueError(f"Unknown initiative status: {value!r}") from None


def parse_phase(value: Any) -> InitiativePhase:
    if isinstance(value, InitiativePhase):
        return value
    return InitiativePhase(str(value or "IDENTIFY").upper())


# =============================================================================
# SOURCE RECORDS
# =============================================================================


@dataclass(frozen=True)
class Issue:
    """A reported operational issue."""

    id: str
    description: str = ""
    votes: int = 0
    heatmap_score: float = 0.0
    department: str | None = None
    category: str | None = None
    keywords: tuple[str, ...] = ()
    cluster_id: str | None = None
    created_at: datetime | None = None
    resolved_at: datetime | None = None

    def __post_init__(self):
        _normalize_times(self, "created_at", "resolved_at")

    @classmethod
    def from_dict(cls, data: dict) -> "Issue":
        return cls(
            id=str(data["id"]),
            description=data.get("description") or "",
            votes=max(0, int(data.get("votes") or 0)),
            heatmap_score=clamp(float(_pick(data, "heatmapScore", "heatmap_score", default=0)), 0, 100),
            department=data.get("department"),
            category=data.get("category"),
            keywords=tuple(data.get("keywords") or ()),
            cluster_id=_pick(data, "clusterId", "cluster_id"),
            created_at=parse_timestamp(_pick(data, "createdAt", "created_at")),
            resolved_at=parse_timestamp(_pick(data, "resolvedAt", "resolved_at")),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "description": self.description,
            "votes": self.votes,
            "heatmapScore": self.heatmap_score,
            "department": self.department,
            "category": self.category,
            "keywords": list(self.keywords),
            "clusterId": self.cluster_id,
            "createdAt": format_timestamp(self.created_at),
            "resolvedAt": format_timestamp(self.resolved_at),
        }


@dataclass(frozen=True)
class Assignment:
    """Hours a team commits to an initiative."""

    team_id: str
    initiative_id: str
    hours_allocated: float = 0.0
    role: str = ""

    @classmethod
    def from_dict(cls, data: dict, initiative_id: str = "") -> "Assignment":
        return cls(
            team_id=str(_pick(data, "teamId", "team_id")),
            initiative_id=str(_pick(data, "initiativeId", "initiative_id", default=initiative_id)),
            hours_allocated=max(0.0, float(_pick(data, "hoursAllocated", "hours_allocated", default=0))),
            role=data.get("role") or "",
        )

    def to_dict(self) -> dict:
        return {
            "teamId": self.team_id,
            "initiativeId": self.initiative_id,
            "hoursAllocated": self.hours_allocated,
            "role": self.role,
        }


@dataclass(frozen=True)
class Milestone:
    id: str
    title: str = ""
    due_date: datetime | None = None
    status: str = "open"

    def __post_init__(self):
        _normalize_times(self, "due_date")

    @property
    def is_done(self) -> bool:
        return self.status.lower() in ("done", "completed", "complete")

    @classmethod
    def from_dict(cls, data: dict) -> "Milestone":
        return cls(
            id=str(data["id"]),
            title=data.get("title") or "",
            due_date=parse_timestamp(_pick(data, "dueDate", "due_date")),
            status=data.get("status") or "open",
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "dueDate": format_timestamp(self.due_date),
            "status": self.status,
        }


@dataclass(frozen=True)
class Initiative:
    """
    An improvement initiative.

    status (board state) and phase (workflow state) are orthogonal; no pairing
    between them is enforced.
    """

    id: str
    title: str
    status: InitiativeStatus = InitiativeStatus.DEFINE
    phase: InitiativePhase = InitiativePhase.IDENTIFY
    progress: float = 0.0
    budget: float | None = None
    actual_spend: float | None = None
    realized_roi: float | None = None
    projected_roi: float | None = None
    timeline_start: datetime | None = None
    timeline_end: datetime | None = None
    owner_id: str = ""
    assignments: tuple[Assignment, ...] = ()
    addressed_issue_ids: tuple[str, ...] = ()
    milestones: tuple[Milestone, ...] = ()
    created_at: datetime | None = None
    completed_at: datetime | None = None

    def __post_init__(self):
        # Directly built records may carry aware datetimes; compare as naive UTC
        _normalize_times(self, "timeline_start", "timeline_end", "created_at", "completed_at")

    @property
    def is_active(self) -> bool:
        return self.status is not InitiativeStatus.DONE

    @property
    def is_done(self) -> bool:
        return self.status is InitiativeStatus.DONE

    @property
    def has_timeline(self) -> bool:
        return (
            self.timeline_start is not None
            and self.timeline_end is not None
            and self.timeline_end > self.timeline_start
        )

    @classmethod
    def from_dict(cls, data: dict) -> "Initiative":
        initiative_id = str(data["id"])
        return cls(
            id=initiative_id,
            title=data.get("title") or "",
            status=parse_status(data.get("status")),
            phase=parse_phase(data.get("phase")),
            progress=clamp(float(data.get("progress") or 0), 0, 100),
            budget=_optional_float(data.get("budget")),
            actual_spend=_optional_float(_pick(data, "actualSpend", "actual_spend")),
            realized_roi=_optional_float(_pick(data, "realizedRoi", "realized_roi")),
            projected_roi=_optional_float(_pick(data, "projectedRoi", "projected_roi")),
            timeline_start=parse_timestamp(_pick(data, "timelineStart", "timeline_start")),
            timeline_end=parse_timestamp(_pick(data, "timelineEnd", "timeline_end")),
            owner_id=str(_pick(data, "ownerId", "owner_id", default="")),
            assignments=tuple(
                Assignment.from_dict(a, initiative_id) for a in data.get("assignments") or ()
            ),
            addressed_issue_ids=tuple(
                str(i) for i in _pick(data, "addressedIssueIds", "addressed_issue_ids", default=())
            ),
            milestones=tuple(Milestone.from_dict(m) for m in data.get("milestones") or ()),
            created_at=parse_timestamp(_pick(data, "createdAt", "created_at")),
            completed_at=parse_timestamp(_pick(data, "completedAt", "completed_at")),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "status": self.status.value,
            "phase": self.phase.value,
            "progress": self.progress,
            "budget": self.budget,
            "actualSpend": self.actual_spend,
            "realizedRoi": self.realized_roi,
            "projectedRoi": self.projected_roi,
            "timelineStart": format_timestamp(self.timeline_start),
            "timelineEnd": format_timestamp(self.timeline_end),
            "ownerId": self.owner_id,
            "assignments": [a.to_dict() for a in self.assignments],
            "addressedIssueIds": list(self.addressed_issue_ids),
            "milestones": [m.to_dict() for m in self.milestones],
            "createdAt": format_timestamp(self.created_at),
            "completedAt": format_timestamp(self.completed_at),
        }


@dataclass(frozen=True)
class Team:
    id: str
    name: str = ""
    department: str | None = None
    capacity: float = 40.0  # hours/week

    @classmethod
    def from_dict(cls, data: dict) -> "Team":
        return cls(
            id=str(data["id"]),
            name=data.get("name") or "",
            department=data.get("department"),
            capacity=float(data.get("capacity") or 0),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "department": self.department,
            "capacity": self.capacity,
        }


# =============================================================================
# DERIVED RECORDS
# =============================================================================


@dataclass
class Cluster:
    """A group of at least two issues sharing a theme."""

    label: str
    issue_ids: list[str] = field(default_factory=list)
    rationale: str = ""

    @property
    def id(self) -> str:
        return self.label

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "label": self.label,
            "issueIds": list(self.issue_ids),
            "rationale": self.rationale,
        }


@dataclass
class OwnerWorkload:
    """Active initiatives carried by one owner."""

    owner_id: str
    active_initiatives: int
    over_limit: bool = False

    def to_dict(self) -> dict:
        return {
            "ownerId": self.owner_id,
            "activeInitiatives": self.active_initiatives,
            "overLimit": self.over_limit,
        }


@dataclass
class Alert:
    """A ranked, rule-triggered risk notice."""

    id: str
    type: AlertType
    category: AlertCategory
    title: str
    description: str
    recommendation: str
    priority: int
    related_id: str | None = None
    related_type: str | None = None  # initiative | team | owner | cluster | portfolio

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "category": self.category.value,
            "title": self.title,
            "description": self.description,
            "recommendation": self.recommendation,
            "priority": self.priority,
            "relatedId": self.related_id,
            "relatedType": self.related_type,
        }


@dataclass
class HealthComponents:
    initiative_health: float = 50.0
    issue_velocity: float = 50.0
    team_utilization: float = 50.0
    roi_trend: float = 50.0

    def as_mapping(self) -> dict[str, float]:
        return {
            "initiative_health": self.initiative_health,
            "issue_velocity": self.issue_velocity,
            "team_utilization": self.team_utilization,
            "roi_trend": self.roi_trend,
        }

    def to_dict(self) -> dict:
        return {
            "initiativeHealth": round(self.initiative_health, 1),
            "issueVelocity": round(self.issue_velocity, 1),
            "teamUtilization": round(self.team_utilization, 1),
            "roiTrend": round(self.roi_trend, 1),
        }


@dataclass
class HealthScore:
    """Composite organisational health score."""

    score: int
    trend: HealthTrend
    components: HealthComponents
    last_updated: datetime

    @property
    def classification(self) -> str:
        """Map numeric score to health classification."""
        if self.score >= 80:
            return "excellent"
        if self.score >= 65:
            return "good"
        if self.score >= 50:
            return "fair"
        if self.score >= 35:
            return "poor"
        return "critical"

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "trend": self.trend.value,
            "components": self.components.to_dict(),
            "classification": self.classification,
            "lastUpdated": format_timestamp(self.last_updated),
        }


@dataclass
class RoiCurrent:
    total_investment: float = 0.0
    realized_roi: float = 0.0
    pending_roi: float = 0.0
    portfolio_value: float = 0.0

    def to_dict(self) -> dict:
        return {
            "totalInvestment": round(self.total_investment),
            "realizedRoi": round(self.realized_roi, 2),
            "pendingRoi": round(self.pending_roi, 2),
            "portfolioValue": round(self.portfolio_value),
        }


@dataclass
class RoiProjection:
    three_month: float = 0.0
    six_month: float = 0.0
    twelve_month: float = 0.0
    confidence: float = 0.0  # 0-100

    def to_dict(self) -> dict:
        return {
            "threeMonth": round(self.three_month, 2),
            "sixMonth": round(self.six_month, 2),
            "twelveMonth": round(self.twelve_month, 2),
            "confidence": round(self.confidence, 1),
        }


@dataclass
class TopPerformer:
    id: str
    title: str
    roi: float
    status: str

    def to_dict(self) -> dict:
        return {"id": self.id, "title": self.title, "roi": round(self.roi, 2), "status": self.status}


@dataclass
class RoiForecast:
    current: RoiCurrent
    forecast: RoiProjection
    top_performers: list[TopPerformer] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    last_updated: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "current": self.current.to_dict(),
            "forecast": self.forecast.to_dict(),
            "topPerformers": [p.to_dict() for p in self.top_performers],
            "recommendations": list(self.recommendations),
            "lastUpdated": format_timestamp(self.last_updated),
        }


@dataclass
class CorrelationResult:
    """Related entities and candidate root causes for one cluster or initiative."""

    entity_id: str
    entity_type: str
    related_issues: list[Issue] = field(default_factory=list)
    related_initiatives: list[Initiative] = field(default_factory=list)
    root_causes: list[str] = field(default_factory=list)
    contributing_factors: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.related_issues or self.related_initiatives)

    def to_dict(self) -> dict:
        return {
            "entityId": self.entity_id,
            "entityType": self.entity_type,
            "relatedIssues": [
                {
                    "id": i.id,
                    "description": i.description,
                    "department": i.department,
                    "heatmapScore": i.heatmap_score,
                }
                for i in self.related_issues
            ],
            "relatedInitiatives": [
                {
                    "id": i.id,
                    "title": i.title,
                    "status": i.status.value,
                    "progress": i.progress,
                }
                for i in self.related_initiatives
            ],
            "rootCauses": list(self.root_causes),
            "contributingFactors": list(self.contributing_factors),
        }


@dataclass
class ExecutiveInsight:
    id: str
    type: InsightType
    title: str
    description: str
    priority: int
    source: str  # health | alerts | roi | clusters

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "title": self.title,
            "description": self.description,
            "priority": self.priority,
            "source": self.source,
        }
