"""
Tether CLI - inspect and steer an agent's autonomy governor.

Usage:
    tether trust show [--json]
    tether trust signal {positive,negative} VALUE --source S
    tether trust fail DESCRIPTION
    tether proposals list [--pending] [--json]
    tether proposals approve ID
    tether proposals reject ID
    tether actions log [--limit N] [--json]
    tether actions classify CATEGORY
    tether attention [--json]
    tether proactive scan [--stale-hours H] [--shadow]
    tether proactive sent THREAD_ID
    tether proactive ignored THREAD_ID
    tether proactive status [--json]
"""

import argparse
import logging
import os
import sys
from pathlib import Path

from tether import Governor
from tether.cli.commands import (
    cmd_actions,
    cmd_attention,
    cmd_proactive,
    cmd_proposals,
    cmd_trust,
)
from tether.config import GovernorConfig
from tether.logging_config import setup_tether_logging
from tether.protocols import TetherError
from tether.types import ActionCategory, SignalType

# Set up logging
logging.basicConfig(level=logging.WARNING)
logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tether",
        description="Autonomy governor for personal agents",
    )
    parser.add_argument("--workspace", "-w", help="Workspace root (default: $TETHER_WORKSPACE)")
    parser.add_argument("--agent", "-a", help="Agent ID", default=None)

    subparsers = parser.add_subparsers(dest="command", required=True)

    # trust
    p_trust = subparsers.add_parser("trust", help="Trust score")
    trust_sub = p_trust.add_subparsers(dest="trust_action")

    trust_show = trust_sub.add_parser("show", help="Show trust score and scope")
    trust_show.add_argument("--json", "-j", action="store_true")

    trust_signal = trust_sub.add_parser("signal", help="Record a trust signal")
    trust_signal.add_argument("type", choices=[t.value for t in SignalType])
    trust_signal.add_argument("value", type=float, help="Signal weight (>= 0)")
    trust_signal.add_argument("--source", "-s", required=True, help="What produced the signal")

    trust_fail = trust_sub.add_parser("fail", help="Record a critical failure (14-day freeze)")
    trust_fail.add_argument("description", help="What went wrong")

    # proposals
    p_proposals = subparsers.add_parser("proposals", help="Proposal queue")
    prop_sub = p_proposals.add_subparsers(dest="proposals_action")

    prop_list = prop_sub.add_parser("list", help="List proposals")
    prop_list.add_argument("--pending", "-p", action="store_true", help="Only pending")
    prop_list.add_argument("--json", "-j", action="store_true")

    prop_approve = prop_sub.add_parser("approve", help="Approve a proposal")
    prop_approve.add_argument("id", help="Proposal ID")

    prop_reject = prop_sub.add_parser("reject", help="Reject a proposal")
    prop_reject.add_argument("id", help="Proposal ID")

    # actions
    p_actions = subparsers.add_parser("actions", help="Action log and classification")
    act_sub = p_actions.add_subparsers(dest="actions_action")

    act_log = act_sub.add_parser("log", help="Show recent actions")
    act_log.add_argument("--limit", "-l", type=int, default=20)
    act_log.add_argument("--json", "-j", action="store_true")

    act_classify = act_sub.add_parser("classify", help="Show the tier for a category")
    act_classify.add_argument(
        "category", help=f"One of: {', '.join(c.value for c in ActionCategory)}"
    )

    # attention
    p_attention = subparsers.add_parser("attention", help="Evaluate attention once")
    p_attention.add_argument("--json", "-j", action="store_true")

    # proactive
    p_proactive = subparsers.add_parser("proactive", help="Proactive follow-ups")
    pro_sub = p_proactive.add_subparsers(dest="proactive_action")

    pro_scan = pro_sub.add_parser("scan", help="Score stale threads for follow-up")
    pro_scan.add_argument("--stale-hours", type=float, default=None, help="Minimum idle hours")
    pro_scan.add_argument("--shadow", action="store_true", help="Score without sending")

    pro_sent = pro_sub.add_parser("sent", help="Record a dispatched follow-up")
    pro_sent.add_argument("thread_id")

    pro_ignored = pro_sub.add_parser("ignored", help="Mark a follow-up as ignored")
    pro_ignored.add_argument("thread_id")

    pro_status = pro_sub.add_parser("status", help="Show rate-limit headroom")
    pro_status.add_argument("--json", "-j", action="store_true")

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = GovernorConfig.from_env(
            workspace=Path(args.workspace).expanduser() if args.workspace else None,
            agent_id=args.agent,
        )
        setup_tether_logging(config.agent_id, os.environ.get("TETHER_LOG_LEVEL", "INFO"))
        g = Governor(config=config)
    except (ValueError, TypeError) as e:
        logger.error(f"Failed to initialize tether: {e}")
        sys.exit(1)

    if args.command == "proactive" and getattr(args, "stale_hours", None) is None:
        args.stale_hours = config.stale_after_hours

    try:
        if args.command == "trust":
            cmd_trust(args, g)
        elif args.command == "proposals":
            if not args.proposals_action:
                args.proposals_action = "list"
                args.pending = False
                args.json = False
            cmd_proposals(args, g)
        elif args.command == "actions":
            if not args.actions_action:
                args.actions_action = "log"
                args.limit = 20
                args.json = False
            cmd_actions(args, g)
        elif args.command == "attention":
            cmd_attention(args, g)
        elif args.command == "proactive":
            cmd_proactive(args, g)
    except (ValueError, TypeError) as e:
        logger.error(f"Input validation error: {e}")
        sys.exit(1)
    except TetherError as e:
        logger.error(f"Command failed: {e}")
        sys.exit(1)
    except OSError as e:
        logger.error(f"Workspace error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
