"""
Shared types for tether.

These dataclasses are the vocabulary between the governor's components:
the trust manager, action authority, proposal queue, cognitive loop and
proactive evaluator all speak in these shapes. Persisted shapes carry
``to_dict``/``from_dict`` pairs that map to the camelCase JSON documents
stored in the workspace.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

# === Shared Utility Functions ===


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_datetime(dt: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime as ISO-8601, assuming UTC for naive values."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


def parse_datetime(s: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 string. Returns None for empty or invalid input."""
    if not s or not isinstance(s, str):
        return None
    try:
        dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


# === Enums ===


class ActionTier(str, Enum):
    """Permission level that determines how an action is handled."""

    AUTONOMOUS = "autonomous"  # act without asking
    PROPOSE = "propose"  # draft and wait for approval
    RESTRICTED = "restricted"  # structurally blocked


# Strictness order used when two tiers disagree.
TIER_STRICTNESS = {
    ActionTier.AUTONOMOUS: 0,
    ActionTier.PROPOSE: 1,
    ActionTier.RESTRICTED: 2,
}


def stricter_tier(a: ActionTier, b: ActionTier) -> ActionTier:
    """Return whichever of two tiers is more restrictive."""
    return a if TIER_STRICTNESS[a] >= TIER_STRICTNESS[b] else b


class ActionCategory(str, Enum):
    """Concrete kinds of action the agent can attempt."""

    WORKSPACE_READ = "workspace-read"
    WORKSPACE_WRITE = "workspace-write"
    MEMORY_WRITE = "memory-write"
    CONTEXT_GATHER = "context-gather"
    MESSAGE_DRAFT = "message-draft"
    REFLECTION = "reflection"
    WORKSPACE_FILE_CREATE = "workspace-file-create"
    OUTBOUND_MESSAGE = "outbound-message"
    PROJECT_DECISION = "project-decision"
    FILE_DELETE = "file-delete"
    EXTERNAL_API_SIDE_EFFECT = "external-api-side-effect"
    FINANCIAL_ACTION = "financial-action"


class RejectionReason(str, Enum):
    """Closed set of reasons an action request is not approved."""

    PENDING_PROPOSAL = "pending_proposal"
    RESTRICTED = "restricted"


class SignalType(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"


class ProposalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ConcernPriority(str, Enum):
    ACTIVE = "active"
    RADAR = "radar"


class DayPeriod(str, Enum):
    MORNING = "morning"
    DAYTIME = "daytime"
    EVENING = "evening"
    NIGHT = "night"


class FollowUpAction(str, Enum):
    """What the proactive evaluator recommends for a stale thread."""

    SEND = "send"
    NOTE = "note"
    SILENCE = "silence"


class ThreadStatus(str, Enum):
    ACTIVE = "active"
    AWAITING_RESPONSE = "awaiting-response"
    RESOLVED = "resolved"
    PARKED = "parked"


# === Trust ===


@dataclass
class TrustSignal:
    """A signed piece of feedback that moves the trust score."""

    type: SignalType
    value: float
    source: str
    timestamp: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "value": self.value,
            "source": self.source,
            "timestamp": format_datetime(self.timestamp),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrustSignal":
        return cls(
            type=SignalType(data["type"]),
            value=float(data["value"]),
            source=str(data.get("source", "")),
            timestamp=parse_datetime(data.get("timestamp")),
        )


@dataclass
class TrustState:
    """Persisted trust state for one workspace."""

    trust_score: float
    signals: List[TrustSignal] = field(default_factory=list)
    frozen_until: Optional[datetime] = None
    last_updated: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trustScore": self.trust_score,
            "signals": [s.to_dict() for s in self.signals],
            "frozenUntil": format_datetime(self.frozen_until),
            "lastUpdated": format_datetime(self.last_updated),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrustState":
        return cls(
            trust_score=float(data["trustScore"]),
            signals=[TrustSignal.from_dict(s) for s in data.get("signals", [])],
            frozen_until=parse_datetime(data.get("frozenUntil")),
            last_updated=parse_datetime(data.get("lastUpdated")),
        )


@dataclass(frozen=True)
class TrustScope:
    """Result of evaluating which tiers the current trust permits."""

    allowed_tiers: List[ActionTier]
    frozen: bool = False


@dataclass(frozen=True)
class TrustMetrics:
    """Read-only trust view consumed by action classification.

    ``scope_map`` holds per-category tier overrides; categories absent from
    the map fall back to the default tier table.
    """

    score: float
    allowed_tiers: List[ActionTier]
    scope_map: Dict[ActionCategory, ActionTier] = field(default_factory=dict)


# === Actions ===


@dataclass
class ActionRequest:
    """A request to perform an action, with its claimed tier."""

    category: ActionCategory
    tier: ActionTier
    description: str
    reasoning: str = ""
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ActionResult:
    """Outcome of an action request after enforcement."""

    approved: bool
    reason: Optional[RejectionReason] = None
    executed_at: Optional[datetime] = None


@dataclass(frozen=True)
class ActionLogEntry:
    """Audit record produced for every action request."""

    category: str
    tier: ActionTier
    description: str
    approved: bool
    reason: Optional[RejectionReason] = None
    timestamp: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "category": self.category,
            "tier": self.tier.value,
            "description": self.description,
            "approved": self.approved,
            "timestamp": format_datetime(self.timestamp),
        }
        if self.reason is not None:
            data["reason"] = self.reason.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ActionLogEntry":
        reason = data.get("reason")
        return cls(
            category=str(data["category"]),
            tier=ActionTier(data["tier"]),
            description=str(data.get("description", "")),
            approved=bool(data.get("approved", False)),
            reason=RejectionReason(reason) if reason else None,
            timestamp=parse_datetime(data.get("timestamp")),
        )


# === Proposals ===


@dataclass
class Proposal:
    """An action awaiting human approval.

    ``action`` is a free-form mapping that always carries ``type`` and
    ``target`` keys.
    """

    id: str
    action: Dict[str, Any]
    reason: str
    context: str
    status: ProposalStatus = ProposalStatus.PENDING
    created_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "action": dict(self.action),
            "reason": self.reason,
            "context": self.context,
            "status": self.status.value,
            "createdAt": format_datetime(self.created_at),
        }
        if self.resolved_at is not None:
            data["resolvedAt"] = format_datetime(self.resolved_at)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Proposal":
        return cls(
            id=str(data["id"]),
            action=dict(data.get("action") or {}),
            reason=str(data.get("reason", "")),
            context=str(data.get("context", "")),
            status=ProposalStatus(data.get("status", "pending")),
            created_at=parse_datetime(data.get("createdAt")),
            resolved_at=parse_datetime(data.get("resolvedAt")),
        )


# === Attention ===


@dataclass(frozen=True)
class Concern:
    text: str
    priority: ConcernPriority = ConcernPriority.ACTIVE


@dataclass(frozen=True)
class TimeContext:
    """Time-of-day context for rhythm-based reflection timing."""

    period: DayPeriod
    is_quiet_period: bool
    hour_of_day: int


@dataclass(frozen=True)
class AttentionState:
    """Snapshot of what the agent is paying attention to.

    Durations are in seconds. ``time_since_last_user_message`` is
    ``math.inf`` when no user message has been recorded.
    """

    concerns: List[Concern]
    time_since_last_reflection: float
    time_since_last_user_message: float
    pending_actions_count: int
    has_stale_threads: bool
    urgency_score: float
    time_context: TimeContext

    @property
    def active_concerns(self) -> List[Concern]:
        return [c for c in self.concerns if c.priority == ConcernPriority.ACTIVE]


# === Threads & proactive follow-ups ===


@dataclass(frozen=True)
class Thread:
    """A tracked conversation thread (owned by the thread store)."""

    id: str
    topic: str
    status: ThreadStatus
    last_activity: datetime
    participants: List[str] = field(default_factory=list)
    message_count: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Thread":
        last_activity = parse_datetime(data.get("lastActivity"))
        if last_activity is None:
            raise ValueError(f"Thread {data.get('id')!r} has no valid lastActivity")
        return cls(
            id=str(data["id"]),
            topic=str(data.get("topic", "")),
            status=ThreadStatus(data.get("status", "active")),
            last_activity=last_activity,
            participants=[str(p) for p in data.get("participants", [])],
            message_count=int(data.get("messageCount", 0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "topic": self.topic,
            "status": self.status.value,
            "lastActivity": format_datetime(self.last_activity),
            "participants": list(self.participants),
            "messageCount": self.message_count,
        }


@dataclass
class SentRecord:
    thread_id: str
    sent_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {"threadId": self.thread_id, "sentAt": format_datetime(self.sent_at)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SentRecord":
        sent_at = parse_datetime(data.get("sentAt"))
        if sent_at is None:
            raise ValueError(f"Sent record for {data.get('threadId')!r} has no valid sentAt")
        return cls(thread_id=str(data["threadId"]), sent_at=sent_at)


@dataclass
class ThreadFollowUpState:
    follow_up_count: int = 0
    last_follow_up_at: Optional[datetime] = None
    ignored: bool = False  # last follow-up went unanswered

    def to_dict(self) -> Dict[str, Any]:
        return {
            "followUpCount": self.follow_up_count,
            "lastFollowUpAt": format_datetime(self.last_follow_up_at),
            "ignored": self.ignored,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ThreadFollowUpState":
        return cls(
            follow_up_count=int(data.get("followUpCount", 0)),
            last_follow_up_at=parse_datetime(data.get("lastFollowUpAt")),
            ignored=bool(data.get("ignored", False)),
        )


@dataclass
class ProactiveState:
    """Persisted rate-limit bookkeeping for proactive follow-ups."""

    sent_today: List[SentRecord] = field(default_factory=list)
    follow_ups_by_thread: Dict[str, ThreadFollowUpState] = field(default_factory=dict)
    last_updated: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sentToday": [r.to_dict() for r in self.sent_today],
            "followUpsByThread": {k: v.to_dict() for k, v in self.follow_ups_by_thread.items()},
            "lastUpdated": format_datetime(self.last_updated),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProactiveState":
        return cls(
            sent_today=[SentRecord.from_dict(r) for r in data.get("sentToday", [])],
            follow_ups_by_thread={
                str(k): ThreadFollowUpState.from_dict(v)
                for k, v in (data.get("followUpsByThread") or {}).items()
            },
            last_updated=parse_datetime(data.get("lastUpdated")),
        )


@dataclass(frozen=True)
class SignificanceScore:
    """Model judgment of whether a stale thread deserves a follow-up."""

    importance: float  # weight 40%
    novelty: float  # weight 25%
    timing: float  # weight 20%
    confidence: float  # weight 15%
    weighted: float
    reasoning: str = ""


@dataclass(frozen=True)
class FollowUpDraft:
    thread_id: str
    topic: str
    message: str
    score: SignificanceScore
    drafted_at: datetime


@dataclass(frozen=True)
class EvaluationResult:
    """What the proactive evaluator decided for one thread."""

    thread_id: str
    topic: str
    action: FollowUpAction
    score: Optional[SignificanceScore] = None
    draft: Optional[FollowUpDraft] = None
    rate_limit_reason: Optional[str] = None
    shadow: bool = False
