"""Action tier classification and enforcement.

Three tiers:

- autonomous: the action is approved and executes immediately
- propose: the action is held for human approval (the caller enqueues it)
- restricted: the action is refused; there is no path that approves it

Classification is a lookup in :data:`DEFAULT_TIER_MAP`, optionally tightened
by per-category overrides from the trust manager. Categories the table does
not know are restricted.
"""

import logging
from collections import deque
from typing import Callable, Deque, Dict, List, Optional, Union

from tether.autonomy.action_log import MAX_LOG_ENTRIES, ActionLog
from tether.logging_config import log_decision
from tether.protocols import Clock
from tether.types import (
    ActionCategory,
    ActionLogEntry,
    ActionRequest,
    ActionResult,
    ActionTier,
    RejectionReason,
    TrustMetrics,
    stricter_tier,
    utc_now,
)

logger = logging.getLogger(__name__)

DEFAULT_TIER_MAP: Dict[ActionCategory, ActionTier] = {
    # Act without asking
    ActionCategory.WORKSPACE_READ: ActionTier.AUTONOMOUS,
    ActionCategory.MEMORY_WRITE: ActionTier.AUTONOMOUS,
    ActionCategory.CONTEXT_GATHER: ActionTier.AUTONOMOUS,
    ActionCategory.MESSAGE_DRAFT: ActionTier.AUTONOMOUS,
    ActionCategory.REFLECTION: ActionTier.AUTONOMOUS,
    # Draft and present for approval
    ActionCategory.WORKSPACE_WRITE: ActionTier.PROPOSE,
    ActionCategory.WORKSPACE_FILE_CREATE: ActionTier.PROPOSE,
    ActionCategory.OUTBOUND_MESSAGE: ActionTier.PROPOSE,
    ActionCategory.PROJECT_DECISION: ActionTier.PROPOSE,
    # Never executed
    ActionCategory.FILE_DELETE: ActionTier.RESTRICTED,
    ActionCategory.EXTERNAL_API_SIDE_EFFECT: ActionTier.RESTRICTED,
    ActionCategory.FINANCIAL_ACTION: ActionTier.RESTRICTED,
}


def _as_category(category: Union[ActionCategory, str]) -> Optional[ActionCategory]:
    if isinstance(category, ActionCategory):
        return category
    try:
        return ActionCategory(category)
    except ValueError:
        return None


def classify_action(
    category: Union[ActionCategory, str],
    trust_metrics: Optional[TrustMetrics] = None,
) -> ActionTier:
    """Tier for an action category.

    An override in ``trust_metrics.scope_map`` wins over the default table,
    except that restricted categories stay restricted.

    Args:
        category: An ``ActionCategory`` or its string value
        trust_metrics: Optional trust view carrying per-category overrides

    Returns:
        The tier; unknown categories are ``RESTRICTED``
    """
    known = _as_category(category)
    if known is None:
        return ActionTier.RESTRICTED

    default = DEFAULT_TIER_MAP.get(known, ActionTier.RESTRICTED)
    if default == ActionTier.RESTRICTED:
        return ActionTier.RESTRICTED

    if trust_metrics is not None and known in trust_metrics.scope_map:
        return trust_metrics.scope_map[known]
    return default


def get_default_tier_map() -> Dict[ActionCategory, ActionTier]:
    return dict(DEFAULT_TIER_MAP)


class ActionAuthority:
    """Enforces tiers and keeps the decision log.

    Args:
        clock: Source of timestamps for log entries and ``executed_at``
        action_log: Optional persistent log mirrored on every decision
        on_entry: Optional hook called with each new log entry
        agent_id: Agent name written to the governor event log
    """

    def __init__(
        self,
        *,
        clock: Clock = utc_now,
        action_log: Optional[ActionLog] = None,
        on_entry: Optional[Callable[[ActionLogEntry], None]] = None,
        agent_id: str = "default",
    ) -> None:
        self._clock = clock
        self._action_log = action_log
        self._on_entry = on_entry
        self._agent_id = agent_id
        self._entries: Deque[ActionLogEntry] = deque(maxlen=MAX_LOG_ENTRIES)

    def request_action(
        self,
        request: ActionRequest,
        trust_metrics: Optional[TrustMetrics] = None,
    ) -> ActionResult:
        """Decide one action request and log it.

        The effective tier is the stricter of the tier on the request and the
        category's classification, so a request cannot talk its way out of
        its category.
        """
        tier = stricter_tier(request.tier, classify_action(request.category, trust_metrics))
        now = self._clock()

        if tier == ActionTier.AUTONOMOUS:
            result = ActionResult(approved=True, executed_at=now)
        elif tier == ActionTier.PROPOSE:
            result = ActionResult(approved=False, reason=RejectionReason.PENDING_PROPOSAL)
        else:
            result = ActionResult(approved=False, reason=RejectionReason.RESTRICTED)

        category = (
            request.category.value
            if isinstance(request.category, ActionCategory)
            else str(request.category)
        )
        self._append(
            ActionLogEntry(
                category=category,
                tier=tier,
                description=request.description,
                approved=result.approved,
                reason=result.reason,
                timestamp=now,
            )
        )
        return result

    def get_action_log(self) -> List[ActionLogEntry]:
        """The most recent decisions made in this process, oldest first."""
        return list(self._entries)

    def _append(self, entry: ActionLogEntry) -> None:
        self._entries.append(entry)
        reason = entry.reason.value if entry.reason else ""
        logger.info(
            "[authority] %s (%s): %s%s",
            entry.category,
            entry.tier.value,
            "approved" if entry.approved else "not approved",
            f" [{reason}]" if reason else "",
        )
        log_decision(self._agent_id, entry.category, entry.tier.value, entry.approved, reason)

        if self._on_entry is not None:
            self._on_entry(entry)
        if self._action_log is not None:
            try:
                self._action_log.record(entry)
            except OSError as e:
                logger.error("[authority] failed to persist action log entry: %s", e)
