"""Proactive follow-up CLI commands for tether."""

import json
import logging
import sys
from typing import TYPE_CHECKING, Optional

from tether.models import auto_configure_model, model_invoker
from tether.proactive import ProactiveEvaluator
from tether.protocols import ModelInvoker

if TYPE_CHECKING:
    from tether import Governor

logger = logging.getLogger(__name__)


def _no_model(prompt: str) -> Optional[str]:
    return None


def _evaluator(g: "Governor", invoker: ModelInvoker = _no_model, shadow: bool = False):
    return ProactiveEvaluator(
        g.workspace,
        invoker,
        g.threads,
        shadow=shadow or g.config.proactive_shadow,
        agent_id=g.config.agent_id,
    )


def cmd_proactive(args, g: "Governor"):
    """Scan stale threads or update follow-up bookkeeping."""
    action = getattr(args, "proactive_action", None) or "status"

    if action == "scan":
        model = auto_configure_model()
        if model is None:
            logger.error(
                "No model configured. Set ANTHROPIC_API_KEY, OPENAI_API_KEY or TETHER_MODEL_PROVIDER."
            )
            sys.exit(1)

        evaluator = _evaluator(g, model_invoker(model), shadow=args.shadow)
        results = evaluator.evaluate_active_threads(args.stale_hours)
        if not results:
            print(f"No threads idle for {args.stale_hours:g}h or more.")
            return

        for r in results:
            score = f"{r.score.weighted:.2f}" if r.score else "-"
            tag = " [shadow]" if r.shadow else ""
            print(f"  {r.action.value:<8} {score:>5}  {r.topic}{tag}")
            if r.rate_limit_reason:
                print(f"      rate limited: {r.rate_limit_reason}")
            elif r.score and r.score.reasoning:
                print(f"      {r.score.reasoning}")
            if r.draft:
                print(f"      draft: {r.draft.message}")

    elif action == "sent":
        _evaluator(g).record_follow_up_sent(args.thread_id)
        print(f"Recorded follow-up sent on {args.thread_id}.")

    elif action == "ignored":
        _evaluator(g).record_follow_up_ignored(args.thread_id)
        print(f"Marked follow-up on {args.thread_id} as ignored.")

    elif action == "status":
        status = _evaluator(g).get_status()
        if getattr(args, "json", False):
            print(json.dumps(status, indent=2))
            return
        print(f"Sent in last 24h: {status['sent_last_24h']}/{status['daily_limit']}")
        print(f"Last sent: {status['last_sent_at'] or 'never'}")
        ignored = status["ignored_threads"]
        print(f"Ignored threads: {', '.join(ignored) if ignored else 'none'}")
        if status["shadow"]:
            print("Shadow mode: on")
