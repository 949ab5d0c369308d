"""Proactive follow-ups on stale conversation threads.

For each stale thread the evaluator first checks rate limits (no model
call when any fails), then asks the model to score the thread on four
0-10 dimensions and turns the weighted score into an action:

- weighted >= 7.0: send (with the model's draft message)
- 4.0 <= weighted < 7.0: note
- otherwise: silence

Rate limits, checked in this order:

- at most 3 sends in any 24 hours
- at least 2 hours since the last send to any thread
- at most 1 follow-up per thread
- no follow-up on a thread whose last follow-up was ignored

Rate-limit bookkeeping is stored at ``memory/proactive-state.json``. The
evaluator never sends anything itself; the dispatcher that does must call
:meth:`ProactiveEvaluator.record_follow_up_sent` afterwards.
"""

import json
import logging
import math
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from tether.logging_config import log_follow_up
from tether.protocols import Clock, ModelInvoker, ThreadSource
from tether.storage.documents import (
    PROACTIVE_STATE_FILE,
    PROACTIVE_STATE_SCHEMA,
    read_document,
    validate_document,
    write_document,
)
from tether.types import (
    EvaluationResult,
    FollowUpAction,
    FollowUpDraft,
    ProactiveState,
    SentRecord,
    SignificanceScore,
    Thread,
    ThreadFollowUpState,
    utc_now,
)

logger = logging.getLogger(__name__)

MAX_PROACTIVE_PER_DAY = 3
MIN_GAP = timedelta(hours=2)
MAX_FOLLOWUPS_PER_THREAD = 1
SENT_RECORD_TTL = timedelta(hours=24)
SEND_THRESHOLD = 7.0
NOTE_THRESHOLD = 4.0
DEFAULT_STALE_AFTER_HOURS = 4.0

SCORE_WEIGHTS = {
    "importance": 0.4,
    "novelty": 0.25,
    "timing": 0.2,
    "confidence": 0.15,
}

_SUB_SCORE = {"type": "number", "minimum": 0, "maximum": 10}

SCORE_RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": list(SCORE_WEIGHTS),
    "properties": {
        "importance": _SUB_SCORE,
        "novelty": _SUB_SCORE,
        "timing": _SUB_SCORE,
        "confidence": _SUB_SCORE,
        "reasoning": {"type": ["string", "null"]},
        "draft_message": {"type": ["string", "null"]},
    },
}

SCORING_PROMPT = """You are evaluating whether a stale conversation thread deserves a proactive follow-up message from {agent} (an autonomous agent) to {user} (its human collaborator).

Score the thread on four dimensions (each 0-10):

1. **importance** (weight 40%): How much does this matter to {user}? Is it blocking other work? Does it have a deadline? Is it a commitment {agent} made?
2. **novelty** (weight 25%): Would a follow-up add value beyond what {user} already knows? A follow-up that just restates the thread topic scores low.
3. **timing** (weight 20%): Is now a good time to follow up? Consider how long the thread has been stale, whether it is business hours, and whether {user} seems busy.
4. **confidence** (weight 15%): How confident is {agent} that following up is the right call?

Respond ONLY with valid JSON matching this schema (no markdown fencing, no extra text):
{{
  "importance": <number 0-10>,
  "novelty": <number 0-10>,
  "timing": <number 0-10>,
  "confidence": <number 0-10>,
  "reasoning": "<one sentence explaining the score>",
  "draft_message": "<the follow-up message {agent} would send, or empty string if the score is too low>"
}}

Thread to evaluate:
"""


# === Pure helpers ===


def prune_sent_records(state: ProactiveState, now: datetime) -> ProactiveState:
    """Drop sent records older than 24 hours. Mutates and returns ``state``."""
    cutoff = now - SENT_RECORD_TTL
    state.sent_today = [r for r in state.sent_today if r.sent_at > cutoff]
    return state


def check_rate_limits(state: ProactiveState, thread_id: str, now: datetime) -> Optional[str]:
    """Return why a follow-up to ``thread_id`` is not allowed now, or None.

    Prunes expired sent records from ``state`` as a side effect.
    """
    prune_sent_records(state, now)

    if len(state.sent_today) >= MAX_PROACTIVE_PER_DAY:
        return f"daily limit reached ({MAX_PROACTIVE_PER_DAY}/day)"

    if state.sent_today:
        last_sent = max(r.sent_at for r in state.sent_today)
        elapsed = now - last_sent
        if elapsed < MIN_GAP:
            remaining = math.ceil((MIN_GAP - elapsed).total_seconds() / 60)
            return f"minimum gap not met ({remaining}min remaining)"

    thread_state = state.follow_ups_by_thread.get(thread_id)
    if thread_state is not None:
        if thread_state.follow_up_count >= MAX_FOLLOWUPS_PER_THREAD:
            return f"thread follow-up limit reached ({MAX_FOLLOWUPS_PER_THREAD} max)"
        if thread_state.ignored:
            return "previous follow-up on this thread was ignored"

    return None


def build_scoring_prompt(
    thread: Thread,
    now: datetime,
    *,
    agent_name: str = "the agent",
    user_name: str = "the user",
) -> str:
    stale_hours = round((now - thread.last_activity).total_seconds() / 3600)
    participants = ", ".join(thread.participants) or "(none)"
    return (
        SCORING_PROMPT.format(agent=agent_name, user=user_name)
        + f"- Topic: {thread.topic}\n"
        + f"- Status: {thread.status.value}\n"
        + f"- Last activity: {thread.last_activity.isoformat()} ({stale_hours} hours ago)\n"
        + f"- Message count: {thread.message_count}\n"
        + f"- Participants: {participants}\n"
    )


def _strip_code_fence(raw: str) -> str:
    cleaned = raw.strip()
    if cleaned.startswith("```"):
        first_newline = cleaned.find("\n")
        cleaned = cleaned[first_newline + 1 :] if first_newline != -1 else cleaned[3:]
        if cleaned.rstrip().endswith("```"):
            cleaned = cleaned.rstrip()[:-3]
    return cleaned.strip()


def parse_score_response(raw: str) -> Optional[Tuple[SignificanceScore, str]]:
    """Parse the model's JSON judgment.

    Returns:
        ``(score, draft_message)``, or None when the text is not JSON or any
        sub-score is missing, non-finite or outside [0, 10]
    """
    try:
        data = json.loads(_strip_code_fence(raw))
    except json.JSONDecodeError as e:
        logger.warning("[proactive] failed to parse score response: %s", e)
        return None

    problem = validate_document(data, SCORE_RESPONSE_SCHEMA)
    if problem is not None:
        logger.warning("[proactive] rejecting score response: %s", problem)
        return None

    subs = {name: float(data[name]) for name in SCORE_WEIGHTS}
    if not all(math.isfinite(value) for value in subs.values()):
        logger.warning("[proactive] rejecting score response: non-finite sub-score")
        return None

    weighted = sum(subs[name] * weight for name, weight in SCORE_WEIGHTS.items())
    score = SignificanceScore(
        importance=subs["importance"],
        novelty=subs["novelty"],
        timing=subs["timing"],
        confidence=subs["confidence"],
        weighted=round(weighted, 2),
        reasoning=data.get("reasoning") or "",
    )
    return score, data.get("draft_message") or ""


def determine_action(weighted: float) -> FollowUpAction:
    if weighted >= SEND_THRESHOLD:
        return FollowUpAction.SEND
    if weighted >= NOTE_THRESHOLD:
        return FollowUpAction.NOTE
    return FollowUpAction.SILENCE


# === Evaluator ===


class ProactiveEvaluator:
    """Decides which stale threads deserve an unsolicited follow-up.

    Args:
        workspace: Workspace holding ``memory/proactive-state.json``
        invoker: Model backend, ``prompt -> text or None``
        threads: Source of active threads for batch evaluation
        shadow: Score normally but tag results so nothing is sent
        clock: Source of the current time
        agent_id: Agent name written to the governor event log
    """

    def __init__(
        self,
        workspace: Path,
        invoker: ModelInvoker,
        threads: Optional[ThreadSource] = None,
        *,
        shadow: bool = False,
        clock: Clock = utc_now,
        agent_id: str = "default",
        agent_name: str = "the agent",
        user_name: str = "the user",
    ) -> None:
        self.workspace = Path(workspace)
        self._invoker = invoker
        self._threads = threads
        self.shadow = shadow
        self._clock = clock
        self._agent_id = agent_id
        self._agent_name = agent_name
        self._user_name = user_name

    @property
    def path(self) -> Path:
        return self.workspace / PROACTIVE_STATE_FILE

    # ---- State ----

    def load_state(self) -> ProactiveState:
        """Read rate-limit state fresh from disk; bad documents mean empty state."""
        data = read_document(self.path, PROACTIVE_STATE_SCHEMA, "proactive")
        if data is not None:
            try:
                return ProactiveState.from_dict(data)
            except (KeyError, ValueError) as e:
                logger.warning("[proactive] unusable proactive-state.json, using empty state: %s", e)
        return ProactiveState(last_updated=self._clock())

    def save_state(self, state: ProactiveState) -> None:
        write_document(self.path, state.to_dict())

    # ---- Evaluation ----

    def evaluate_thread_for_follow_up(self, thread: Thread) -> EvaluationResult:
        now = self._clock()
        state = self.load_state()

        reason = check_rate_limits(state, thread.id, now)
        if reason is not None:
            logger.info("[proactive] skipping thread=%r: %s", thread.topic, reason)
            log_follow_up(self._agent_id, thread.id, "rate-limited", shadow=self.shadow)
            return self._silence(thread, rate_limit_reason=reason)

        prompt = build_scoring_prompt(
            thread, now, agent_name=self._agent_name, user_name=self._user_name
        )
        try:
            response = self._invoker(prompt)
        except Exception as e:
            logger.error("[proactive] model invocation failed for thread=%r: %s", thread.topic, e)
            return self._silence(thread)

        if not response or not response.strip():
            logger.warning("[proactive] model returned no response for thread=%r", thread.topic)
            return self._silence(thread)

        parsed = parse_score_response(response)
        if parsed is None:
            logger.warning("[proactive] failed to parse model score for thread=%r", thread.topic)
            return self._silence(thread)

        score, draft_message = parsed
        action = determine_action(score.weighted)
        draft = None
        if action == FollowUpAction.SEND and draft_message:
            draft = FollowUpDraft(
                thread_id=thread.id,
                topic=thread.topic,
                message=draft_message,
                score=score,
                drafted_at=now,
            )

        logger.info(
            "[proactive] thread=%r score=%.2f action=%s%s",
            thread.topic,
            score.weighted,
            action.value,
            " (shadow mode)" if self.shadow else "",
        )
        log_follow_up(self._agent_id, thread.id, action.value, score.weighted, self.shadow)
        return EvaluationResult(
            thread_id=thread.id,
            topic=thread.topic,
            action=action,
            score=score,
            draft=draft,
            shadow=self.shadow,
        )

    def evaluate_active_threads(
        self, stale_after_hours: float = DEFAULT_STALE_AFTER_HOURS
    ) -> List[EvaluationResult]:
        """Evaluate every active thread idle for at least ``stale_after_hours``.

        Stops after the first rate-limited result (included in the output),
        since the remaining threads would hit the same limit.
        """
        if self._threads is None:
            raise ValueError("evaluate_active_threads requires a thread source")

        now = self._clock()
        min_age = timedelta(hours=stale_after_hours)
        stale = [t for t in self._threads.get_active_threads() if now - t.last_activity >= min_age]
        if not stale:
            return []

        logger.info("[proactive] evaluating %d stale threads", len(stale))
        results = []
        for thread in stale:
            result = self.evaluate_thread_for_follow_up(thread)
            results.append(result)
            if result.rate_limit_reason:
                break
        return results

    # ---- Bookkeeping ----

    def record_follow_up_sent(self, thread_id: str, now: Optional[datetime] = None) -> None:
        """Count a dispatched follow-up against the daily and per-thread limits."""
        now = now or self._clock()
        state = self.load_state()
        state.sent_today.append(SentRecord(thread_id=thread_id, sent_at=now))
        thread_state = state.follow_ups_by_thread.setdefault(thread_id, ThreadFollowUpState())
        thread_state.follow_up_count += 1
        thread_state.last_follow_up_at = now
        state.last_updated = now
        self.save_state(state)
        log_follow_up(self._agent_id, thread_id, "sent", shadow=self.shadow)

    def record_follow_up_ignored(self, thread_id: str) -> None:
        """Suppress future follow-ups on a thread whose last one went unanswered."""
        state = self.load_state()
        state.follow_ups_by_thread.setdefault(thread_id, ThreadFollowUpState()).ignored = True
        state.last_updated = self._clock()
        self.save_state(state)
        log_follow_up(self._agent_id, thread_id, "ignored")

    def get_status(self) -> Dict[str, Any]:
        """Rate-limit headroom as of now."""
        now = self._clock()
        state = prune_sent_records(self.load_state(), now)
        last_sent = max((r.sent_at for r in state.sent_today), default=None)
        return {
            "sent_last_24h": len(state.sent_today),
            "daily_limit": MAX_PROACTIVE_PER_DAY,
            "last_sent_at": last_sent.isoformat() if last_sent else None,
            "ignored_threads": sorted(
                tid for tid, s in state.follow_ups_by_thread.items() if s.ignored
            ),
            "shadow": self.shadow,
        }

    def _silence(self, thread: Thread, rate_limit_reason: Optional[str] = None) -> EvaluationResult:
        return EvaluationResult(
            thread_id=thread.id,
            topic=thread.topic,
            action=FollowUpAction.SILENCE,
            rate_limit_reason=rate_limit_reason,
            shadow=self.shadow,
        )
