#!/usr/bin/env python3
"""
FlowVision CLI

Run one analytics operation over a JSON snapshot and print the result
envelope as JSON.

Usage:
    flowvision clusters  --snapshot snapshot.json
    flowvision health    --snapshot snapshot.json
    flowvision alerts    --snapshot snapshot.json
    flowvision roi       --snapshot snapshot.json
    flowvision correlate --snapshot snapshot.json --entity-type cluster --entity-id Technology
    flowvision insights  --snapshot snapshot.json
    flowvision owners    --snapshot snapshot.json

Exit status is 0 for ok/empty results and 1 for degraded ones.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from flowvision import config, paths
from flowvision.analytics import AnalyticsEngine, JsonSnapshotRepository
from flowvision.analytics.correlation import ENTITY_TYPES
from flowvision.analytics.settings import load_analytics_config
from flowvision.observability import RequestContext, configure_logging

logger = logging.getLogger(__name__)


def cmd_clusters(engine, args):
    return engine.get_clusters()


def cmd_health(engine, args):
    return engine.get_health_score()


def cmd_alerts(engine, args):
    return engine.get_alerts()


def cmd_roi(engine, args):
    return engine.get_roi_forecast()


def cmd_correlate(engine, args):
    return engine.get_correlations(args.entity_id, args.entity_type)


def cmd_insights(engine, args):
    return engine.get_insights()


def cmd_owners(engine, args):
    return engine.get_owner_utilization()


COMMANDS = {
    "clusters": (cmd_clusters, "Issue clusters"),
    "health": (cmd_health, "Composite health score"),
    "alerts": (cmd_alerts, "Predictive alerts"),
    "roi": (cmd_roi, "ROI forecast"),
    "correlate": (cmd_correlate, "Correlate a cluster or initiative"),
    "insights": (cmd_insights, "Executive insights"),
    "owners": (cmd_owners, "Active initiatives per owner"),
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="flowvision", description="FlowVision analytics CLI")
    parser.add_argument("--log-level", default=config.LOG_LEVEL, help="Log level (default: %(default)s)")
    parser.add_argument("--config", type=Path, help="analytics.yaml to use instead of the default")
    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, (_handler, help_text) in COMMANDS.items():
        p = subparsers.add_parser(name, help=help_text)
        p.add_argument(
            "--snapshot",
            type=Path,
            default=Path(config.SNAPSHOT_PATH) if config.SNAPSHOT_PATH else paths.default_snapshot_path(),
            help="JSON snapshot file",
        )
        p.add_argument("--indent", type=int, default=2, help="JSON indent (0 for compact)")
        if name == "correlate":
            p.add_argument("--entity-id", required=True, help="Cluster label or initiative id")
            p.add_argument("--entity-type", required=True, choices=ENTITY_TYPES)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    with RequestContext(prefix="cli"):
        logger.info(f"Running {args.command} over {args.snapshot}")
        engine = AnalyticsEngine(
            JsonSnapshotRepository(args.snapshot),
            config=load_analytics_config(args.config),
        )
        handler, _help = COMMANDS[args.command]
        result = handler(engine, args)

    print(json.dumps(result.to_dict(), indent=args.indent or None, ensure_ascii=False))
    return 1 if result.degraded else 0


if __name__ == "__main__":
    sys.exit(main())
