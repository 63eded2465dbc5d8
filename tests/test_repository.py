"""Tests for snapshot parsing and the record repositories."""

import json
import os

import pytest

from flowvision.analytics.errors import DataUnavailable
from flowvision.analytics.models import InitiativeStatus
from flowvision.analytics.repository import InMemoryRepository, JsonSnapshotRepository, Snapshot
from tests.fixtures import AS_OF, ROI_HISTORY, portfolio_snapshot_dict


@pytest.fixture
def snapshot_file(tmp_path):
    path = tmp_path / "snapshot.json"
    path.write_text(json.dumps(portfolio_snapshot_dict()))
    return path


class TestSnapshot:
    def test_from_dict_round_trips_reference_portfolio(self):
        snapshot = Snapshot.from_dict(portfolio_snapshot_dict())

        assert [i.id for i in snapshot.issues] == ["ISS-1", "ISS-2", "ISS-3", "ISS-4", "ISS-5"]
        assert [i.id for i in snapshot.initiatives] == ["INIT-1", "INIT-2", "INIT-3", "INIT-4"]
        assert snapshot.initiatives[2].status is InitiativeStatus.DONE
        assert snapshot.initiatives[1].assignments[1].team_id == "T-PLAT"
        assert list(snapshot.roi_history) == ROI_HISTORY
        assert snapshot.as_of == AS_OF

    def test_missing_sections_read_as_none(self):
        snapshot = Snapshot.from_dict({"issues": []})
        assert snapshot.issues == ()
        assert snapshot.initiatives is None
        assert snapshot.teams is None
        assert snapshot.roi_history is None
        assert snapshot.alert_settings is None

    def test_snake_case_sections(self):
        snapshot = Snapshot.from_dict({"roi_history": [1, 2], "as_of": "2026-03-02T12:00:00"})
        assert snapshot.roi_history == (1.0, 2.0)
        assert snapshot.as_of == AS_OF

    def test_malformed_records_are_skipped(self):
        data = {
            "issues": [{"id": "ok"}, {"description": "no id"}, "not a record"],
            "initiatives": [{"id": "A", "title": "x", "status": "bogus"}, {"id": "B", "status": "in progress"}],
        }

        snapshot = Snapshot.from_dict(data)

        assert [i.id for i in snapshot.issues] == ["ok"]
        assert [i.id for i in snapshot.initiatives] == ["B"]
        assert snapshot.initiatives[0].status is InitiativeStatus.IN_PROGRESS

    def test_roi_history_accepts_period_records(self):
        data = {"roiHistory": [{"period": "2026-01", "roi": 12}, 14.5, "junk"]}
        assert Snapshot.from_dict(data).roi_history == (12.0, 14.5)

    def test_section_of_wrong_type_is_unavailable(self):
        with pytest.raises(DataUnavailable):
            Snapshot.from_dict({"teams": {"T-1": {}}})

    def test_timestamps_normalised_to_naive_utc(self):
        snapshot = Snapshot.from_dict({"asOf": "2026-03-02T14:00:00+02:00"})
        assert snapshot.as_of == AS_OF
        assert snapshot.as_of.tzinfo is None


class TestInMemoryRepository:
    def test_returns_copies(self):
        repo = InMemoryRepository(roi_history=[1.0, 2.0])
        repo.fetch_roi_history().append(99)
        assert repo.fetch_roi_history() == [1.0, 2.0]

    def test_none_sections_read_as_missing(self):
        repo = InMemoryRepository(teams=None)
        assert repo.fetch_teams() is None
        assert repo.fetch_issues() == []

    def test_alert_settings_round_trip(self):
        repo = InMemoryRepository()
        assert repo.fetch_alert_settings() is None
        repo.store_alert_settings({"lowRoiPct": 3})
        assert repo.fetch_alert_settings() == {"lowRoiPct": 3}

    def test_malformed_settings_pass_through(self):
        repo = InMemoryRepository(alert_settings="nonsense")
        assert repo.fetch_alert_settings() == "nonsense"


class TestJsonSnapshotRepository:
    def test_reads_file_lazily(self, snapshot_file):
        repo = JsonSnapshotRepository(snapshot_file)

        assert repo.as_of == AS_OF
        assert len(repo.fetch_initiatives()) == 4
        assert repo.fetch_alert_settings()["timelineBehindPct"] == 20

    def test_missing_file_is_unavailable(self, tmp_path):
        repo = JsonSnapshotRepository(tmp_path / "missing.json")
        with pytest.raises(DataUnavailable) as exc_info:
            repo.fetch_issues()
        assert exc_info.value.source == "snapshot"

    def test_invalid_json_is_unavailable(self, tmp_path):
        path = tmp_path / "snapshot.json"
        path.write_text("{not json")
        with pytest.raises(DataUnavailable):
            JsonSnapshotRepository(path).fetch_teams()

    def test_top_level_list_is_unavailable(self, tmp_path):
        path = tmp_path / "snapshot.json"
        path.write_text("[]")
        with pytest.raises(DataUnavailable):
            JsonSnapshotRepository(path).fetch_teams()

    def test_rewritten_file_is_picked_up(self, snapshot_file):
        repo = JsonSnapshotRepository(snapshot_file)
        assert len(repo.fetch_teams()) == 2

        data = portfolio_snapshot_dict()
        data["teams"] = data["teams"][:1]
        snapshot_file.write_text(json.dumps(data))

        assert len(repo.fetch_teams()) == 1

    def test_reload_forces_a_read(self, snapshot_file):
        repo = JsonSnapshotRepository(snapshot_file)
        assert repo.fetch_teams()[0].name == "Platform"
        stat = snapshot_file.stat()

        # same size and mtime, so only an explicit reload sees the edit
        snapshot_file.write_text(snapshot_file.read_text().replace('"Platform"', '"Platfrom"'))
        os.utime(snapshot_file, ns=(stat.st_atime_ns, stat.st_mtime_ns))

        assert repo.fetch_teams()[0].name == "Platform"
        repo.reload()
        assert repo.fetch_teams()[0].name == "Platfrom"

    def test_revision_bumps_on_change(self, snapshot_file):
        repo = JsonSnapshotRepository(snapshot_file)
        first = repo.revision
        assert repo.revision == first

        data = portfolio_snapshot_dict()
        data["issues"] = []
        snapshot_file.write_text(json.dumps(data))

        assert repo.revision > first

    def test_file_removed_after_load_is_unavailable(self, snapshot_file):
        repo = JsonSnapshotRepository(snapshot_file)
        repo.fetch_issues()
        snapshot_file.unlink()

        with pytest.raises(DataUnavailable):
            repo.fetch_issues()

    def test_stored_settings_survive_rewrite(self, snapshot_file):
        repo = JsonSnapshotRepository(snapshot_file)
        repo.store_alert_settings({"lowRoiPct": 1})

        data = portfolio_snapshot_dict()
        data["teams"] = []
        snapshot_file.write_text(json.dumps(data))

        assert repo.fetch_teams() == []
        assert repo.fetch_alert_settings() == {"lowRoiPct": 1}

    def test_stored_settings_stay_in_memory(self, snapshot_file):
        before = snapshot_file.read_text()
        repo = JsonSnapshotRepository(snapshot_file)

        repo.store_alert_settings({"lowRoiPct": 1})

        assert repo.fetch_alert_settings() == {"lowRoiPct": 1}
        assert snapshot_file.read_text() == before
