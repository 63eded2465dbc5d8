"""
Shared portfolio measurements.

Small pure helpers used by more than one sub-engine: schedule position of an
initiative, hours allocated per team, active initiatives per owner, lead team
and realized ROI across completed initiatives.
"""

from collections.abc import Iterable
from datetime import datetime

from flowvision.analytics.models import Initiative, Team, clamp

SECONDS_PER_DAY = 86400.0


def expected_progress(initiative: Initiative, as_of: datetime) -> float | None:
    """
    Linear expected progress (0-100) between timeline start and end.

    None when the initiative has no usable timeline.
    """
    if not initiative.has_timeline:
        return None
    total = (initiative.timeline_end - initiative.timeline_start).total_seconds()
    elapsed = (as_of - initiative.timeline_start).total_seconds()
    return clamp(elapsed / total * 100.0, 0.0, 100.0)


def days_to_deadline(initiative: Initiative, as_of: datetime) -> float | None:
    if initiative.timeline_end is None:
        return None
    return (initiative.timeline_end - as_of).total_seconds() / SECONDS_PER_DAY


def team_allocations(teams: Iterable[Team], initiatives: Iterable[Initiative]) -> dict[str, float]:
    """Hours allocated to each team by active initiatives, keyed by team id."""
    allocated = {team.id: 0.0 for team in teams}
    for initiative in initiatives:
        if not initiative.is_active:
            continue
        for assignment in initiative.assignments:
            if assignment.team_id in allocated:
                allocated[assignment.team_id] += assignment.hours_allocated
    return allocated


def owner_workloads(initiatives: Iterable[Initiative]) -> dict[str, int]:
    """Active initiative count per owner, in first-seen order. Unowned work is skipped."""
    workload: dict[str, int] = {}
    for initiative in initiatives:
        if initiative.is_active and initiative.owner_id:
            workload[initiative.owner_id] = workload.get(initiative.owner_id, 0) + 1
    return workload


def utilization_pct(team: Team, allocated_hours: float) -> float | None:
    if team.capacity <= 0:
        return None
    return 100.0 * allocated_hours / team.capacity


def lead_team_id(initiative: Initiative) -> str | None:
    """Team of the lead assignment: role "lead", else the largest allocation."""
    if not initiative.assignments:
        return None
    for assignment in initiative.assignments:
        if assignment.role.strip().lower() == "lead":
            return assignment.team_id
    # max() keeps the first of equal allocations
    return max(initiative.assignments, key=lambda a: a.hours_allocated).team_id


def realized_portfolio_roi(initiatives: Iterable[Initiative]) -> float | None:
    """
    Realized ROI (%) over completed initiatives: sum(benefit) / sum(cost).

    Cost is actual spend, else budget; benefit = cost * realized_roi / 100.
    Falls back to the plain mean when no completed initiative has a cost.
    None when no completed initiative reports a realized ROI.
    """
    completed = [i for i in initiatives if i.is_done and i.realized_roi is not None]
    if not completed:
        return None

    total_cost = 0.0
    total_benefit = 0.0
    for initiative in completed:
        cost = initiative.actual_spend if initiative.actual_spend is not None else initiative.budget
        if cost is None or cost <= 0:
            continue
        total_cost += cost
        total_benefit += cost * initiative.realized_roi / 100.0

    if total_cost > 0:
        return total_benefit / total_cost * 100.0
    return sum(i.realized_roi for i in completed) / len(completed)


def period_deltas(values: list[float], window: int) -> list[float]:
    """Period-over-period deltas over the trailing `window` values."""
    tail = list(values)[-window:] if window > 0 else list(values)
    return [tail[i] - tail[i - 1] for i in range(1, len(tail))]
