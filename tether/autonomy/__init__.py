"""Autonomy components: trust, action authority, proposals, reflection loop."""

from tether.autonomy.action_log import ActionLog
from tether.autonomy.attention import (
    compute_urgency_score,
    count_substantive_items,
    get_time_context,
    parse_concerns,
)
from tether.autonomy.authority import (
    DEFAULT_TIER_MAP,
    ActionAuthority,
    classify_action,
    get_default_tier_map,
)
from tether.autonomy.cognitive_loop import CognitiveLoop
from tether.autonomy.proposals import ProposalQueue
from tether.autonomy.trust import TrustManager

__all__ = [
    "ActionAuthority",
    "ActionLog",
    "CognitiveLoop",
    "DEFAULT_TIER_MAP",
    "ProposalQueue",
    "TrustManager",
    "classify_action",
    "compute_urgency_score",
    "count_substantive_items",
    "get_default_tier_map",
    "get_time_context",
    "parse_concerns",
]
