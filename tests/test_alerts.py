"""
Tests for the predictive alert engine.

Covers every rule group, priority and ordering, settings fallback and rule
isolation when inputs are missing.
"""

from datetime import timezone

from flowvision.analytics.alerts import (
    alert_priority,
    evaluate_alerts,
    run_alert_rules,
    sort_alerts,
)
from flowvision.analytics.models import AlertCategory, AlertType, InitiativeStatus
from flowvision.analytics.settings import AlertSettings
from tests.fixtures import (
    AS_OF,
    assign,
    days,
    make_initiative,
    make_issue,
    make_team,
    portfolio_initiatives,
    portfolio_issues,
    portfolio_teams,
)

DEFAULTS = AlertSettings()


def _alerts(initiatives=(), teams=(), issues=(), settings=DEFAULTS):
    return evaluate_alerts(list(initiatives), list(teams), list(issues), settings, as_of=AS_OF)


def _by_id(alerts):
    return {a.id: a for a in alerts}


class TestTimelineRules:
    def test_behind_and_past_deadline_is_one_critical_alert(self):
        initiative = make_initiative(
            "A", progress=40, timeline_start=days(-30), timeline_end=days(-1)
        )

        alerts = [a for a in _alerts([initiative]) if a.related_id == "A"]

        assert len(alerts) == 1
        assert alerts[0].type is AlertType.CRITICAL
        assert alerts[0].category is AlertCategory.TIMELINE
        assert alerts[0].title == "Deadline Risk"

    def test_behind_with_time_left_is_a_warning(self):
        initiative = make_initiative("A", progress=20, timeline_start=days(-60), timeline_end=days(60))

        (alert,) = _alerts([initiative])

        assert alert.type is AlertType.WARNING
        assert alert.title == "Initiative Behind Schedule"
        # 30 behind, 10 over the threshold
        assert alert.priority == 5

    def test_within_threshold_is_quiet(self):
        initiative = make_initiative("A", progress=35, timeline_start=days(-60), timeline_end=days(60))
        assert _alerts([initiative]) == []

    def test_exactly_at_threshold_is_quiet(self):
        initiative = make_initiative("A", progress=30, timeline_start=days(-60), timeline_end=days(60))
        assert _alerts([initiative]) == []

    def test_done_and_untimed_initiatives_are_skipped(self):
        initiatives = [
            make_initiative(
                "done",
                status=InitiativeStatus.DONE,
                progress=0,
                timeline_start=days(-30),
                timeline_end=days(-1),
            ),
            make_initiative("untimed", progress=0),
            make_initiative("inverted", progress=0, timeline_start=days(10), timeline_end=days(-10)),
        ]
        assert _alerts(initiatives) == []

    def test_custom_threshold(self):
        initiative = make_initiative("A", progress=35, timeline_start=days(-60), timeline_end=days(60))
        settings = AlertSettings(timeline_behind_pct=10)
        assert [a.id for a in _alerts([initiative], settings=settings)] == ["timeline-A"]


class TestResourceRules:
    def test_team_over_capacity_is_critical(self):
        team = make_team("T", capacity=40)
        initiatives = [
            make_initiative("A", assignments=[assign("T", "A", 28)]),
            make_initiative("B", assignments=[assign("T", "B", 20)]),
        ]

        alerts = [a for a in _alerts(initiatives, [team]) if a.category is AlertCategory.RESOURCE]

        assert len(alerts) == 1
        assert alerts[0].type is AlertType.CRITICAL
        assert alerts[0].related_id == "T"
        assert "120%" in alerts[0].description
        # 48h of 40h: 20 points over capacity
        assert alerts[0].priority == 9

    def test_team_near_capacity_is_a_warning(self):
        team = make_team("T", capacity=40)
        initiatives = [make_initiative("A", assignments=[assign("T", "A", 36)])]
        (alert,) = _alerts(initiatives, [team])
        assert alert.type is AlertType.WARNING
        assert alert.id == "resource-team-T"

    def test_exactly_full_team_is_a_warning_not_critical(self):
        team = make_team("T", capacity=40)
        initiatives = [make_initiative("A", assignments=[assign("T", "A", 40)])]
        (alert,) = _alerts(initiatives, [team])
        assert alert.type is AlertType.WARNING

    def test_done_initiatives_free_their_hours(self):
        team = make_team("T", capacity=40)
        initiatives = [
            make_initiative("A", status=InitiativeStatus.DONE, assignments=[assign("T", "A", 60)]),
        ]
        assert _alerts(initiatives, [team]) == []

    def test_zero_capacity_team_is_skipped(self):
        team = make_team("T", capacity=0)
        initiatives = [make_initiative("A", assignments=[assign("T", "A", 10)])]
        assert _alerts(initiatives, [team]) == []

    def test_owner_overload(self):
        initiatives = [make_initiative(f"I{n}", owner_id="carol") for n in range(7)]

        (alert,) = _alerts(initiatives)

        assert alert.id == "resource-owner-carol"
        assert alert.type is AlertType.WARNING
        # 7 vs limit 5 is 40% over -> +3 (capped)
        assert alert.priority == 7

    def test_owner_at_limit_is_quiet(self):
        initiatives = [make_initiative(f"I{n}", owner_id="carol") for n in range(5)]
        assert _alerts(initiatives) == []


class TestRoiRules:
    def test_budget_overrun_critical(self):
        initiative = make_initiative("A", budget=100, actual_spend=130)
        (alert,) = _alerts([initiative])
        assert alert.id == "budget-A"
        assert alert.type is AlertType.CRITICAL
        assert alert.category is AlertCategory.ROI
        assert alert.priority == 7

    def test_budget_overrun_warning(self):
        initiative = make_initiative("A", budget=100, actual_spend=115)
        (alert,) = _alerts([initiative])
        assert alert.type is AlertType.WARNING

    def test_under_budget_or_unknown_spend_is_quiet(self):
        initiatives = [
            make_initiative("A", budget=100, actual_spend=105),
            make_initiative("B", budget=100),
            make_initiative("C", budget=0, actual_spend=50),
        ]
        assert _alerts(initiatives) == []

    def test_low_portfolio_roi(self):
        initiatives = [
            make_initiative("A", status=InitiativeStatus.DONE, budget=100, actual_spend=100, realized_roi=2),
        ]
        alerts = _by_id(_alerts(initiatives))
        assert alerts["roi-portfolio"].type is AlertType.WARNING

    def test_healthy_roi_is_quiet(self):
        assert not [a for a in _alerts(portfolio_initiatives()) if a.id == "roi-portfolio"]

    def test_low_roi_initiative(self):
        initiatives = [
            make_initiative("A", status=InitiativeStatus.DONE, budget=100, actual_spend=100, realized_roi=2),
        ]

        alert = _by_id(_alerts(initiatives))["roi-initiative-A"]

        assert alert.type is AlertType.INFO
        assert alert.category is AlertCategory.ROI
        assert alert.title == "Low ROI Initiative"
        assert alert.related_type == "initiative"
        assert alert.priority == 1

    def test_negative_roi_initiative_ranks_higher(self):
        initiatives = [make_initiative("A", status=InitiativeStatus.DONE, realized_roi=-30)]
        # 35 points under the threshold -> +3
        assert _by_id(_alerts(initiatives))["roi-initiative-A"].priority == 4

    def test_roi_at_threshold_or_still_running_is_quiet(self):
        initiatives = [
            make_initiative("A", status=InitiativeStatus.DONE, realized_roi=5),
            make_initiative("B", realized_roi=-10),
        ]
        assert not [a for a in _alerts(initiatives) if a.id.startswith("roi-initiative")]


class TestIssueRules:
    def test_hot_cluster(self):
        issues = [make_issue(str(n), cluster_id="C1", heatmap_score=90) for n in range(3)]
        alerts = _by_id(_alerts(issues=issues))
        assert alerts["issue-cluster-C1"].type is AlertType.WARNING
        assert alerts["issue-cluster-C1"].related_type == "cluster"

    def test_two_hot_issues_are_not_enough(self):
        issues = [make_issue(str(n), cluster_id="C1", heatmap_score=90) for n in range(2)]
        assert "issue-cluster-C1" not in _by_id(_alerts(issues=issues))

    def test_issue_spike(self):
        issues = [make_issue(str(n), created_at=days(-1)) for n in range(11)]
        alerts = _by_id(_alerts(issues=issues))
        assert alerts["issue-spike"].type is AlertType.WARNING

    def test_low_activity(self):
        issues = [make_issue("1", created_at=days(-30))]
        alerts = _by_id(_alerts(issues=issues))
        assert alerts["issue-inactivity"].type is AlertType.INFO
        assert alerts["issue-inactivity"].priority == 1

    def test_new_initiative_counts_as_activity(self):
        issues = [make_issue("1", created_at=days(-30))]
        initiatives = [make_initiative("A", created_at=days(-2))]
        assert "issue-inactivity" not in _by_id(_alerts(initiatives, issues=issues))

    def test_undated_issues_produce_no_activity_alerts(self):
        assert _alerts(issues=[make_issue("1")]) == []

    def test_emerging_cluster(self):
        issues = [make_issue(str(n), cluster_id="C1", created_at=days(-n - 1)) for n in range(4)]

        alert = _by_id(_alerts(issues=issues))["issue-growth-C1"]

        assert alert.type is AlertType.WARNING
        assert alert.category is AlertCategory.ISSUE
        assert alert.title == "Emerging Issue Pattern"
        assert alert.related_type == "cluster"
        # 4 vs limit 3 is 33% over -> +3
        assert alert.priority == 7

    def test_old_issues_do_not_count_as_growth(self):
        issues = [make_issue(str(n), cluster_id="C1", created_at=days(-1)) for n in range(3)]
        issues.append(make_issue("old", cluster_id="C1", created_at=days(-20)))
        assert "issue-growth-C1" not in _by_id(_alerts(issues=issues))

    def test_growth_threshold_from_settings(self):
        issues = [make_issue(str(n), cluster_id="C1", created_at=days(-1)) for n in range(2)]
        settings = AlertSettings(cluster_growth_count=1)
        assert "issue-growth-C1" in _by_id(_alerts(issues=issues, settings=settings))


class TestPriorityAndOrdering:
    def test_priority_bounds(self):
        assert alert_priority(AlertType.INFO) == 1
        assert alert_priority(AlertType.CRITICAL, 1000) == 10
        assert alert_priority(AlertType.WARNING, -50) == 4

    def test_sorted_by_priority_then_category_then_id(self):
        team = make_team("T", capacity=40)
        initiatives = [
            make_initiative("late", progress=0, timeline_start=days(-30), timeline_end=days(-1)),
            make_initiative("over", budget=100, actual_spend=200, assignments=[assign("T", "over", 44)]),
        ]

        alerts = _alerts(initiatives, [team])

        priorities = [a.priority for a in alerts]
        assert priorities == sorted(priorities, reverse=True)
        assert [a.id for a in alerts] == ["timeline-late", "budget-over", "resource-team-T"]

    def test_sort_is_stable_across_calls(self):
        alerts = _alerts(portfolio_initiatives(), portfolio_teams(), portfolio_issues())
        assert sort_alerts(reversed(alerts)) == alerts


class TestSettingsAndIsolation:
    def test_missing_settings_use_defaults(self):
        initiative = make_initiative("A", progress=20, timeline_start=days(-60), timeline_end=days(60))

        run = run_alert_rules([initiative], [], [], None, as_of=AS_OF)

        assert [a.id for a in run.alerts] == ["timeline-A"]
        assert run.config_problems

    def test_raw_settings_mapping_is_validated(self):
        initiative = make_initiative("A", progress=35, timeline_start=days(-60), timeline_end=days(60))

        run = run_alert_rules([initiative], [], [], {"timelineBehindPct": 10}, as_of=AS_OF)

        assert [a.id for a in run.alerts] == ["timeline-A"]
        # every other field is missing and reported
        assert run.config_problems

    def test_missing_teams_skip_every_resource_rule(self):
        initiatives = [
            make_initiative("late", progress=0, timeline_start=days(-30), timeline_end=days(-1)),
            make_initiative("over", budget=100, actual_spend=200, assignments=[assign("T", "over", 80)]),
        ]
        # one owner well past the active initiative limit
        initiatives += [make_initiative(f"I{n}", owner_id="carol") for n in range(7)]

        run = run_alert_rules(initiatives, None, [], DEFAULTS, as_of=AS_OF)

        assert run.skipped_rules == ["team_resource", "owner_overload"]
        assert {a.category for a in run.alerts} == {AlertCategory.TIMELINE, AlertCategory.ROI}

    def test_aware_datetimes_compare_as_utc(self):
        initiative = make_initiative(
            "A",
            progress=0,
            timeline_start=days(-30).replace(tzinfo=timezone.utc),
            timeline_end=days(-1).replace(tzinfo=timezone.utc),
        )

        alerts = evaluate_alerts([initiative], [], [], DEFAULTS, as_of=AS_OF.replace(tzinfo=timezone.utc))

        assert initiative.timeline_end == days(-1)
        assert _by_id(alerts)["timeline-A"].type is AlertType.CRITICAL

    def test_non_string_settings_keys_are_ignored(self):
        initiative = make_initiative("A", progress=20, timeline_start=days(-60), timeline_end=days(60))

        run = run_alert_rules([initiative], [], [], {1: 5, "timelineBehindPct": 10}, as_of=AS_OF)

        assert [a.id for a in run.alerts] == ["timeline-A"]

    def test_failing_rule_is_contained(self):
        issues = [make_issue("1", cluster_id="C1", heatmap_score=90), None]
        initiative = make_initiative("A", progress=20, timeline_start=days(-60), timeline_end=days(60))

        run = run_alert_rules([initiative], [], issues, DEFAULTS, as_of=AS_OF)

        assert "issue_cluster" in run.failed_rules
        assert [a.id for a in run.alerts] == ["timeline-A"]

    def test_reference_portfolio(self):
        alerts = _alerts(portfolio_initiatives(), portfolio_teams(), portfolio_issues())
        assert [a.id for a in alerts] == ["timeline-INIT-1"]
