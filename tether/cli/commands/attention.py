"""Attention snapshot CLI command for tether."""

import json
from typing import TYPE_CHECKING

from tether.autonomy.attention import attention_to_dict

if TYPE_CHECKING:
    from tether import Governor


def cmd_attention(args, g: "Governor"):
    """Evaluate attention once and show what the loop would decide."""
    loop = g.loop
    state = loop.evaluate_attention()
    would_think = loop.should_think(state)

    if args.json:
        data = attention_to_dict(state)
        data["would_think"] = would_think
        data["threshold"] = loop.urgency_threshold
        data["next_interval_s"] = round(loop.adapt_interval(state.urgency_score), 1)
        print(json.dumps(data, indent=2))
        return

    tc = state.time_context
    print(f"Urgency: {state.urgency_score:.2f} (threshold {loop.urgency_threshold:.2f})")
    print(f"Time: {tc.period.value} ({tc.hour_of_day:02d}h){', quiet period' if tc.is_quiet_period else ''}")
    print(f"Active concerns: {len(state.active_concerns)} of {len(state.concerns)}")
    for c in state.active_concerns:
        print(f"  - {c.text}")
    print(f"Pending actions: {state.pending_actions_count}")
    print(f"Stale threads: {'yes' if state.has_stale_threads else 'no'}")
    print()
    if would_think:
        print(f"Would reflect now: {loop.build_reason(state)}")
    else:
        print(f"Would wait {loop.adapt_interval(state.urgency_score):.0f}s before re-evaluating.")
