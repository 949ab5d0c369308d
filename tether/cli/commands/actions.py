"""Action log and classification CLI commands for tether."""

import json
from typing import TYPE_CHECKING

from tether.autonomy.authority import classify_action, get_default_tier_map
from tether.types import ActionCategory

if TYPE_CHECKING:
    from tether import Governor


def cmd_actions(args, g: "Governor"):
    """Inspect the action log or classify a category."""
    action = getattr(args, "actions_action", None) or "log"

    if action == "log":
        entries = g.action_log.get_recent(args.limit)
        if args.json:
            print(json.dumps([e.to_dict() for e in entries], indent=2))
            return
        if not entries:
            print("No actions logged.")
            return

        print(f"Recent actions ({len(entries)} of {g.action_log.count()}):")
        for e in entries:
            when = e.timestamp.strftime("%Y-%m-%d %H:%M") if e.timestamp else "?"
            verdict = "approved" if e.approved else f"blocked ({e.reason.value})"
            print(f"  {when}  {e.category:<26} {e.tier.value:<10} {verdict}")
            if e.description:
                print(f"      {e.description[:100]}")

    elif action == "classify":
        metrics = g.trust.get_metrics()
        effective = classify_action(args.category, metrics)
        try:
            default = get_default_tier_map().get(ActionCategory(args.category))
        except ValueError:
            default = None

        if default is None:
            print(f"{args.category}: unknown category -> {effective.value}")
        elif default == effective:
            print(f"{args.category}: {effective.value}")
        else:
            print(
                f"{args.category}: {effective.value} "
                f"(default {default.value}, tightened at trust {metrics.score:.2f})"
            )
