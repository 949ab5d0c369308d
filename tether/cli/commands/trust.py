"""Trust CLI commands for tether."""

import json
from typing import TYPE_CHECKING

from tether.types import SignalType, TrustSignal

if TYPE_CHECKING:
    from tether import Governor


def _score_bar(score: float) -> str:
    pct = int(round(score * 100))
    return "█" * (pct // 10) + "░" * (10 - pct // 10)


def cmd_trust(args, g: "Governor"):
    """Show or adjust the trust score."""
    action = getattr(args, "trust_action", None) or "show"
    trust = g.trust

    if action == "show":
        if getattr(args, "json", False):
            print(json.dumps(g.status()["trust"], indent=2))
            return
        score = trust.get_score()
        print(f"Trust: [{_score_bar(score)}] {score:.2f}")
        print()
        print(trust.get_observable_summary())

    elif action == "signal":
        if args.value < 0:
            raise ValueError("Signal value must be >= 0")
        before = trust.get_score()
        after = g.record_trust_signal(
            TrustSignal(type=SignalType(args.type), value=args.value, source=args.source)
        )
        print(f"Trust {before:.2f} -> {after:.2f} ({args.type} {args.value:g} from {args.source})")
        if trust.is_frozen():
            print("Scope remains frozen to autonomous actions.")

    elif action == "fail":
        g.record_critical_failure(args.description)
        state = trust.get_state()
        print(f"Critical failure recorded: {args.description}")
        print(f"Trust set to {state.trust_score:.2f}; scope frozen until {state.frozen_until:%Y-%m-%d}")
