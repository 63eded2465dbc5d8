"""Shared record builders and snapshots for tests."""

from tests.fixtures.snapshot import (
    AS_OF,
    HEALTH_HISTORY,
    ROI_HISTORY,
    assign,
    days,
    make_initiative,
    make_issue,
    make_team,
    portfolio_initiatives,
    portfolio_issues,
    portfolio_repository,
    portfolio_snapshot,
    portfolio_snapshot_dict,
    portfolio_teams,
)

__all__ = [
    "AS_OF",
    "HEALTH_HISTORY",
    "ROI_HISTORY",
    "assign",
    "days",
    "make_initiative",
    "make_issue",
    "make_team",
    "portfolio_initiatives",
    "portfolio_issues",
    "portfolio_repository",
    "portfolio_snapshot",
    "portfolio_snapshot_dict",
    "portfolio_teams",
]
