"""
Record access layer.

The engine reads its inputs through a RecordRepository. Two implementations:

- InMemoryRepository: records handed over directly (tests, embedding)
- JsonSnapshotRepository: a JSON snapshot file exported by the record store

Snapshot file shape (camelCase, snake_case also accepted):

    {
      "asOf": "2026-03-01T00:00:00Z",
      "issues": [...],
      "initiatives": [...],
      "teams": [...],
      "alertSettings": {...},
      "roiHistory": [12.0, 14.5, ...],
      "healthHistory": [{"score": 61}, ...]
    }

A section that is absent reads as None ("returned nothing"), which the engine
reports as DataUnavailable. An empty list is a valid, empty section.
"""

import json
import logging
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol, TypeVar

from flowvision.analytics.errors import DataUnavailable
from flowvision.analytics.models import Initiative, Issue, Team, parse_timestamp

logger = logging.getLogger(__name__)

R = TypeVar("R")


# =============================================================================
# PROTOCOL
# =============================================================================


class RecordRepository(Protocol):
    """
    Read-only access to the records the engine analyses.

    Implementations may also expose an integer `revision` that changes when
    the served records change; the engine drops cached results when it does.
    """

    @property
    def as_of(self) -> datetime | None:
        """Time the records were captured; None means "now"."""
        ...

    def fetch_issues(self) -> list[Issue] | None: ...

    def fetch_initiatives(self) -> list[Initiative] | None: ...

    def fetch_teams(self) -> list[Team] | None: ...

    def fetch_alert_settings(self) -> dict | None: ...

    def fetch_roi_history(self) -> list[float] | None: ...

    def fetch_health_history(self) -> list | None: ...


# =============================================================================
# SNAPSHOT
# =============================================================================


def _parse_records(name: str, raw: Any, factory: Callable[[dict], R]) -> list[R] | None:
    """Parse one record section; malformed records are skipped with a warning."""
    if raw is None:
        return None
    if not isinstance(raw, list):
        raise DataUnavailable(name, f"expected a list, got {type(raw).__name__}")
    records = []
    for index, item in enumerate(raw):
        try:
            records.append(factory(item))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping malformed {name} record #{index}: {e}")
    return records


def _parse_roi_history(raw: Any) -> list[float] | None:
    if raw is None:
        return None
    if not isinstance(raw, list):
        raise DataUnavailable("roiHistory", f"expected a list, got {type(raw).__name__}")
    values = []
    for item in raw:
        # Either bare numbers or {"period": ..., "roi": ...}
        value = item.get("roi") if isinstance(item, dict) else item
        try:
            values.append(float(value))
        except (TypeError, ValueError):
            logger.warning(f"Skipping malformed ROI history entry: {item!r}")
    return values


@dataclass(frozen=True)
class Snapshot:
    """An immutable bundle of records plus the time it was captured."""

    issues: tuple[Issue, ...] | None = ()
    initiatives: tuple[Initiative, ...] | None = ()
    teams: tuple[Team, ...] | None = ()
    alert_settings: dict | None = None
    roi_history: tuple[float, ...] | None = ()
    health_history: tuple = ()
    as_of: datetime | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "Snapshot":
        def section(*keys: str) -> Any:
            for key in keys:
                if key in data:
                    return data[key]
            return None

        issues = _parse_records("issues", section("issues"), Issue.from_dict)
        initiatives = _parse_records("initiatives", section("initiatives"), Initiative.from_dict)
        teams = _parse_records("teams", section("teams"), Team.from_dict)
        roi_history = _parse_roi_history(section("roiHistory", "roi_history"))
        health_history = section("healthHistory", "health_history") or []

        return cls(
            issues=tuple(issues) if issues is not None else None,
            initiatives=tuple(initiatives) if initiatives is not None else None,
            teams=tuple(teams) if teams is not None else None,
            alert_settings=section("alertSettings", "alert_settings"),
            roi_history=tuple(roi_history) if roi_history is not None else None,
            health_history=tuple(health_history),
            as_of=parse_timestamp(section("asOf", "as_of")),
        )


def _as_list(records: Iterable | None) -> list | None:
    return list(records) if records is not None else None


# =============================================================================
# IMPLEMENTATIONS
# =============================================================================


class InMemoryRepository:
    """Serves records held in memory. Sections left as None read as missing."""

    def __init__(
        self,
        issues: Iterable[Issue] | None = (),
        initiatives: Iterable[Initiative] | None = (),
        teams: Iterable[Team] | None = (),
        alert_settings: dict | None = None,
        roi_history: Iterable[float] | None = (),
        health_history: Iterable | None = (),
        as_of: datetime | None = None,
    ):
        self._lock = threading.RLock()
        self._issues = _as_list(issues)
        self._initiatives = _as_list(initiatives)
        self._teams = _as_list(teams)
        self._alert_settings = alert_settings
        self._roi_history = _as_list(roi_history)
        self._health_history = _as_list(health_history)
        self._as_of = as_of
        self._revision = 0

    @classmethod
    def from_snapshot(cls, snapshot: Snapshot) -> "InMemoryRepository":
        return cls(
            issues=snapshot.issues,
            initiatives=snapshot.initiatives,
            teams=snapshot.teams,
            alert_settings=snapshot.alert_settings,
            roi_history=snapshot.roi_history,
            health_history=snapshot.health_history,
            as_of=snapshot.as_of,
        )

    @property
    def as_of(self) -> datetime | None:
        return self._as_of

    @property
    def revision(self) -> int:
        """Bumped whenever the served records change."""
        with self._lock:
            return self._revision

    def fetch_issues(self) -> list[Issue] | None:
        return _as_list(self._issues)

    def fetch_initiatives(self) -> list[Initiative] | None:
        return _as_list(self._initiatives)

    def fetch_teams(self) -> list[Team] | None:
        return _as_list(self._teams)

    def fetch_alert_settings(self) -> dict | None:
        with self._lock:
            settings = self._alert_settings
            # Malformed values pass through; AlertSettings.parse reports them
            return dict(settings) if isinstance(settings, dict) else settings

    def fetch_roi_history(self) -> list[float] | None:
        return _as_list(self._roi_history)

    def fetch_health_history(self) -> list | None:
        return _as_list(self._health_history)

    def store_alert_settings(self, settings: dict) -> None:
        """Replace the stored alert settings (settings UI write path)."""
        with self._lock:
            self._alert_settings = dict(settings)
            self._revision += 1


class JsonSnapshotRepository(InMemoryRepository):
    """
    Serves records from a JSON snapshot file.

    The file is read lazily and read again whenever its modification time or
    size changes, so every fetch reflects the snapshot currently on disk. A
    missing or unreadable file makes every fetch raise DataUnavailable.
    Alert settings stored through this repository are held in memory and
    survive re-reads of the file.
    """

    def __init__(self, path: Path | str):
        super().__init__()
        self.path = Path(path)
        self._signature: tuple[int, int] | None = None
        self._stored_settings: dict | None = None

    def reload(self) -> None:
        """Force a re-read on the next fetch."""
        with self._lock:
            self._signature = None

    def _ensure_loaded(self) -> None:
        with self._lock:
            try:
                stat = self.path.stat()
            except FileNotFoundError:
                raise DataUnavailable("snapshot", f"file not found: {self.path}") from None
            except OSError as e:
                raise DataUnavailable("snapshot", str(e)) from e
            signature = (stat.st_mtime_ns, stat.st_size)
            if signature == self._signature:
                return

            try:
                data = json.loads(self.path.read_text())
            except (OSError, json.JSONDecodeError) as e:
                logger.error(f"Failed to read snapshot {self.path}: {e}")
                raise DataUnavailable("snapshot", str(e)) from e
            if not isinstance(data, dict):
                raise DataUnavailable("snapshot", "top-level JSON value is not an object")

            snapshot = Snapshot.from_dict(data)
            self._issues = _as_list(snapshot.issues)
            self._initiatives = _as_list(snapshot.initiatives)
            self._teams = _as_list(snapshot.teams)
            self._alert_settings = (
                self._stored_settings if self._stored_settings is not None else snapshot.alert_settings
            )
            self._roi_history = _as_list(snapshot.roi_history)
            self._health_history = _as_list(snapshot.health_history)
            self._as_of = snapshot.as_of
            self._signature = signature
            self._revision += 1
            logger.info(f"Loaded snapshot {self.path} (revision {self._revision})")

    @property
    def revision(self) -> int:
        self._ensure_loaded()
        return super().revision

    @property
    def as_of(self) -> datetime | None:
        self._ensure_loaded()
        return self._as_of

    def fetch_issues(self) -> list[Issue] | None:
        self._ensure_loaded()
        return super().fetch_issues()

    def fetch_initiatives(self) -> list[Initiative] | None:
        self._ensure_loaded()
        return super().fetch_initiatives()

    def fetch_teams(self) -> list[Team] | None:
        self._ensure_loaded()
        return super().fetch_teams()

    def fetch_alert_settings(self) -> dict | None:
        self._ensure_loaded()
        return super().fetch_alert_settings()

    def fetch_roi_history(self) -> list[float] | None:
        self._ensure_loaded()
        return super().fetch_roi_history()

    def fetch_health_history(self) -> list | None:
        self._ensure_loaded()
        return super().fetch_health_history()

    def store_alert_settings(self, settings: dict) -> None:
        # Held in memory only; the snapshot file is never written
        self._ensure_loaded()
        with self._lock:
            self._stored_settings = dict(settings)
        super().store_alert_settings(settings)
