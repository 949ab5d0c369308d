"""Governor: one workspace's autonomy components, wired together.

Typical use from an agent runtime::

    governor = Governor(workspace, invoker=model_invoker(model), think=reflect)
    governor.start()

    outcome = governor.submit_action(
        ActionCategory.OUTBOUND_MESSAGE,
        "Send the weekly summary",
        target="telegram:42",
    )
    if outcome.result.approved:
        ...
    elif outcome.proposal_id:
        ...  # surfaced to the human for approval
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

from tether.autonomy.action_log import ActionLog
from tether.autonomy.authority import ActionAuthority, classify_action
from tether.autonomy.cognitive_loop import STALE_THREAD_AGE, CognitiveLoop
from tether.autonomy.proposals import ProposalQueue
from tether.autonomy.trust import TrustManager
from tether.config import GovernorConfig
from tether.proactive import ProactiveEvaluator
from tether.protocols import Clock, ModelInvoker, ThinkCallback, ThreadSource
from tether.threads import ThreadStore
from tether.types import (
    ActionCategory,
    ActionRequest,
    ActionResult,
    Proposal,
    ProposalStatus,
    RejectionReason,
    TrustSignal,
    utc_now,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmissionResult:
    """Outcome of :meth:`Governor.submit_action`.

    ``proposal_id`` is set when the action was queued for approval.
    """

    result: ActionResult
    proposal_id: Optional[str] = None


def _skip_think(reason: str) -> None:
    logger.debug("[governor] reflection due (%s) but no think callback is configured", reason)


class Governor:
    """Owns the trust manager, authority, proposal queue, loop and evaluator.

    Args:
        workspace: Workspace root; defaults to ``config.workspace``
        config: Loop and evaluator settings (``GovernorConfig.from_env()``
            when omitted)
        invoker: Model backend for proactive scoring; without one
            ``proactive`` is None
        think: Reflection callback for the cognitive loop
        threads: Thread source; defaults to the workspace's ``threads.json``
        clock: Source of the current time for every component
    """

    def __init__(
        self,
        workspace: Optional[Path] = None,
        config: Optional[GovernorConfig] = None,
        invoker: Optional[ModelInvoker] = None,
        think: Optional[ThinkCallback] = None,
        *,
        threads: Optional[ThreadSource] = None,
        clock: Clock = utc_now,
    ) -> None:
        config = config or GovernorConfig.from_env()
        if workspace is not None:
            config = config.with_workspace(workspace)
        self.config = config
        self.workspace = config.workspace
        self._clock = clock
        agent_id = config.agent_id

        self.trust = TrustManager(self.workspace, clock=clock, agent_id=agent_id)
        self.trust.load()

        self.action_log = ActionLog(self.workspace, clock=clock)
        self.authority = ActionAuthority(
            clock=clock, action_log=self.action_log, agent_id=agent_id
        )

        self.proposals = ProposalQueue(self.workspace, clock=clock, agent_id=agent_id)
        self.proposals.load()

        self.threads = threads if threads is not None else ThreadStore(self.workspace)

        self.proactive: Optional[ProactiveEvaluator] = None
        if invoker is not None:
            self.proactive = ProactiveEvaluator(
                self.workspace,
                invoker,
                self.threads,
                shadow=config.proactive_shadow,
                clock=clock,
                agent_id=agent_id,
            )

        self.loop = CognitiveLoop.from_config(
            think or _skip_think,
            config,
            stale_threads_source=self._has_stale_threads,
            clock=clock,
        )

    # ---- Actions ----

    def submit_action(
        self,
        category: Union[ActionCategory, str],
        description: str,
        *,
        reasoning: str = "",
        target: str = "",
        context: str = "",
        payload: Optional[Dict[str, Any]] = None,
    ) -> SubmissionResult:
        """Classify, enforce and log an action; queue it if it needs approval.

        Classification uses the current trust metrics, so a frozen or
        low-trust agent has its proposable categories tightened to
        restricted.
        """
        self.trust.load()
        metrics = self.trust.get_metrics()
        tier = classify_action(category, metrics)
        request = ActionRequest(
            category=category,
            tier=tier,
            description=description,
            reasoning=reasoning,
            payload=dict(payload or {}),
        )
        result = self.authority.request_action(request, metrics)

        proposal_id = None
        if result.reason == RejectionReason.PENDING_PROPOSAL:
            category_name = (
                category.value if isinstance(category, ActionCategory) else str(category)
            )
            action = {"type": category_name, "target": target, "description": description}
            action.update(request.payload)
            self.proposals.load()
            proposal_id = self.proposals.enqueue(action, reason=reasoning, context=context)
            self.proposals.save()

        return SubmissionResult(result=result, proposal_id=proposal_id)

    def resolve_proposal(
        self, proposal_id: str, status: Union[ProposalStatus, str]
    ) -> Proposal:
        """Approve or reject a queued proposal and persist the queue."""
        self.proposals.load()
        proposal = self.proposals.resolve(proposal_id, status)
        self.proposals.save()
        return proposal

    # ---- Trust ----

    def record_trust_signal(self, signal: TrustSignal) -> float:
        """Apply a trust signal against the latest persisted state and save it."""
        self.trust.load()
        score = self.trust.record_signal(signal)
        self.trust.save()
        return score

    def record_critical_failure(self, description: str) -> None:
        self.trust.load()
        self.trust.record_critical_failure(description)
        self.trust.save()

    # ---- Loop ----

    def start(self) -> None:
        self.loop.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self.loop.stop(timeout)

    def record_user_message(self) -> None:
        self.loop.record_user_message()

    # ---- Status ----

    def status(self) -> Dict[str, Any]:
        self.trust.load()
        self.proposals.load()
        scope = self.trust.evaluate_scope()
        state = self.trust.get_state()
        summary: Dict[str, Any] = {
            "workspace": str(self.workspace),
            "trust": {
                "score": round(state.trust_score, 4),
                "frozen": scope.frozen,
                "frozen_until": state.frozen_until.isoformat() if scope.frozen else None,
                "allowed_tiers": [t.value for t in scope.allowed_tiers],
            },
            "proposals": {"pending": self.proposals.pending_count()},
            "action_log": {"entries": self.action_log.count()},
            "loop": self.loop.get_status(),
        }
        if self.proactive is not None:
            summary["proactive"] = self.proactive.get_status()
        return summary

    def _has_stale_threads(self, now: datetime) -> bool:
        if isinstance(self.threads, ThreadStore):
            self.threads.load()
            return self.threads.has_stale_threads(now, STALE_THREAD_AGE)
        return any(now - t.last_activity > STALE_THREAD_AGE for t in self.threads.get_active_threads())
