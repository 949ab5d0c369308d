"""Self-invoked reflection scheduling.

The cognitive loop wakes up on a background thread, gathers attention
signals (concerns, pending actions, stale threads, time of day), scores
urgency and calls the ``think`` callback when the score reaches the
threshold or when too long has passed without a reflection. Higher urgency
shortens the wait before the next evaluation.

Usage::

    loop = CognitiveLoop(think, workspace=Path("workspace"))
    loop.start()
    ...
    loop.record_user_message()
    ...
    loop.stop()
"""

import logging
import math
import threading
from datetime import datetime, timedelta, tzinfo
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from zoneinfo import ZoneInfo

from tether.autonomy.attention import (
    EVENING_REVIEW_AFTER_S,
    MORNING_REVIEW_AFTER_S,
    attention_to_dict,
    compute_urgency_score,
    count_substantive_items,
    get_time_context,
    parse_concerns,
)
from tether.config import (
    DEFAULT_MAX_INTERVAL_S,
    DEFAULT_MIN_INTERVAL_S,
    DEFAULT_URGENCY_THRESHOLD,
    GovernorConfig,
)
from tether.protocols import Clock, ThinkCallback
from tether.storage.documents import CONCERNS_FILE, PENDING_ACTIONS_FILE
from tether.threads import ThreadStore
from tether.types import AttentionState, Concern, DayPeriod, format_datetime, utc_now

logger = logging.getLogger(__name__)

STALE_THREAD_AGE = timedelta(hours=2)

ConcernsSource = Callable[[], List[Concern]]
PendingActionsSource = Callable[[], int]
StaleThreadsSource = Callable[[datetime], bool]


def resolve_timezone(name: Optional[str]) -> Optional[tzinfo]:
    """``ZoneInfo`` for an IANA name, or None for the system local zone."""
    if not name:
        return None
    return ZoneInfo(name)


def _read_text(path: Path) -> Optional[str]:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("[cognitive-loop] cannot read %s: %s", path.name, e)
        return None


def workspace_concerns(workspace: Path) -> ConcernsSource:
    """Concerns source reading ``concerns.md`` on every call."""

    def load() -> List[Concern]:
        content = _read_text(Path(workspace) / CONCERNS_FILE)
        return parse_concerns(content) if content else []

    return load


def workspace_pending_actions(workspace: Path) -> PendingActionsSource:
    """Pending-actions source counting ``pending-actions.md`` items."""

    def count() -> int:
        content = _read_text(Path(workspace) / PENDING_ACTIONS_FILE)
        return count_substantive_items(content) if content else 0

    return count


def workspace_stale_threads(workspace: Path) -> StaleThreadsSource:
    """Stale-thread source: any active thread idle for more than 2 hours."""
    store = ThreadStore(workspace)

    def check(now: datetime) -> bool:
        store.load()
        return store.has_stale_threads(now, STALE_THREAD_AGE)

    return check


class CognitiveLoop:
    """Periodic attention evaluation that decides when to reflect.

    Args:
        think: Called with a reason string when a reflection is due. Runs on
            the loop thread; the next tick waits for it to return.
        workspace: Workspace used for the default attention sources
        min_interval_s: Minimum seconds between reflections
        max_interval_s: Longest wait between evaluations, and the elapsed
            time that forces a reflection
        urgency_threshold: Score at which ``think`` is called
        concerns_source: Overrides reading ``concerns.md``
        pending_actions_source: Overrides counting ``pending-actions.md``
        stale_threads_source: Overrides the thread store check
        clock: Source of the current time
        tz: Zone for time-of-day rhythm (system local when None)
    """

    def __init__(
        self,
        think: ThinkCallback,
        *,
        workspace: Optional[Path] = None,
        min_interval_s: float = DEFAULT_MIN_INTERVAL_S,
        max_interval_s: float = DEFAULT_MAX_INTERVAL_S,
        urgency_threshold: float = DEFAULT_URGENCY_THRESHOLD,
        concerns_source: Optional[ConcernsSource] = None,
        pending_actions_source: Optional[PendingActionsSource] = None,
        stale_threads_source: Optional[StaleThreadsSource] = None,
        clock: Clock = utc_now,
        tz: Optional[tzinfo] = None,
    ) -> None:
        if min_interval_s <= 0:
            raise ValueError("min_interval_s must be positive")
        if max_interval_s < min_interval_s:
            raise ValueError("max_interval_s must be >= min_interval_s")

        self._think = think
        self.min_interval_s = float(min_interval_s)
        self.max_interval_s = float(max_interval_s)
        self.urgency_threshold = urgency_threshold
        self._clock = clock
        self._tz = tz

        if workspace is not None:
            concerns_source = concerns_source or workspace_concerns(workspace)
            pending_actions_source = pending_actions_source or workspace_pending_actions(workspace)
            stale_threads_source = stale_threads_source or workspace_stale_threads(workspace)
        self._concerns_source = concerns_source or (lambda: [])
        self._pending_actions_source = pending_actions_source or (lambda: 0)
        self._stale_threads_source = stale_threads_source or (lambda now: False)

        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None
        self._running = False

        self._created_at = clock()
        self._started_at: Optional[datetime] = None
        self._last_reflection: Optional[datetime] = None
        self._last_user_message: Optional[datetime] = None
        self._last_evaluation: Optional[datetime] = None
        self._next_evaluation_at: Optional[datetime] = None
        self._interval_s: Optional[float] = None
        self._last_state: Optional[AttentionState] = None

    @classmethod
    def from_config(
        cls, think: ThinkCallback, config: GovernorConfig, **kwargs: Any
    ) -> "CognitiveLoop":
        kwargs.setdefault("workspace", config.workspace)
        kwargs.setdefault("tz", resolve_timezone(config.timezone))
        return cls(
            think,
            min_interval_s=config.min_interval_s,
            max_interval_s=config.max_interval_s,
            urgency_threshold=config.urgency_threshold,
            **kwargs,
        )

    # ---- Lifecycle ----

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Begin evaluating on a daemon thread. A second call only warns."""
        with self._lock:
            if self._running:
                logger.warning("[cognitive-loop] already running")
                return
            self._running = True
            self._started_at = self._clock()
            self._stop_event = threading.Event()
            self._next_evaluation_at = self._started_at + timedelta(seconds=self.min_interval_s)
            self._thread = threading.Thread(
                target=self._run,
                args=(self._stop_event,),
                name="tether-cognitive-loop",
                daemon=True,
            )
            self._thread.start()

        logger.info(
            "[cognitive-loop] starting (min=%.0fs, max=%.0fs, threshold=%.2f)",
            self.min_interval_s,
            self.max_interval_s,
            self.urgency_threshold,
        )

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop scheduling. An in-flight ``think`` call is allowed to finish.

        Waits up to ``timeout`` seconds for the loop thread, unless called
        from the loop thread itself.
        """
        with self._lock:
            if not self._running:
                return
            self._running = False
            self._next_evaluation_at = None
            if self._stop_event is not None:
                self._stop_event.set()
            thread = self._thread
            self._thread = None

        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        logger.info("[cognitive-loop] stopped")

    def record_user_message(self, at: Optional[datetime] = None) -> None:
        self._last_user_message = at or self._clock()

    # ---- Evaluation ----

    def evaluate_attention(self) -> AttentionState:
        """Gather attention signals and score them. No model calls."""
        now = self._clock()
        concerns = self._concerns_source()
        pending = self._pending_actions_source()
        stale = self._stale_threads_source(now)

        since_reflection = (now - self._reflection_anchor()).total_seconds()
        if self._last_user_message is not None:
            since_user = (now - self._last_user_message).total_seconds()
        else:
            since_user = math.inf

        time_context = get_time_context(now, since_user, self._tz)
        urgency = compute_urgency_score(
            concerns,
            pending,
            since_reflection,
            self.max_interval_s,
            stale,
            time_context,
        )
        return AttentionState(
            concerns=concerns,
            time_since_last_reflection=since_reflection,
            time_since_last_user_message=since_user,
            pending_actions_count=pending,
            has_stale_threads=stale,
            urgency_score=urgency,
            time_context=time_context,
        )

    def should_think(self, state: AttentionState) -> bool:
        return state.urgency_score >= self.urgency_threshold

    def adapt_interval(self, urgency: float) -> float:
        """Seconds until the next evaluation: max at urgency 0, min at 1."""
        urgency = max(0.0, min(urgency, 1.0))
        span = self.max_interval_s - self.min_interval_s
        return self.max_interval_s - urgency * span

    def build_reason(self, state: AttentionState) -> str:
        parts = []
        active = len(state.active_concerns)
        if active:
            parts.append(f"{active} active concern(s)")
        if state.pending_actions_count > 0:
            parts.append(f"{state.pending_actions_count} pending action(s)")
        if state.urgency_score >= self.urgency_threshold:
            parts.append(f"urgency={state.urgency_score:.2f}")

        tc = state.time_context
        if tc.period == DayPeriod.MORNING and state.time_since_last_reflection > MORNING_REVIEW_AFTER_S:
            parts.append("morning review")
        if tc.period == DayPeriod.EVENING and state.time_since_last_reflection > EVENING_REVIEW_AFTER_S:
            parts.append("evening review")
        if tc.is_quiet_period:
            parts.append("quiet period")

        return ", ".join(parts) if parts else "periodic evaluation"

    def tick(self) -> float:
        """Run one evaluation, calling ``think`` if due.

        Returns:
            Seconds to wait before the next evaluation
        """
        try:
            state = self.evaluate_attention()
        except Exception as e:
            logger.error("[cognitive-loop] evaluation error: %s", e, exc_info=True)
            return self._schedule(self.max_interval_s)

        now = self._clock()
        self._last_evaluation = now
        self._last_state = state

        reason = None
        if self.should_think(state):
            reason = self.build_reason(state)
        elif state.time_since_last_reflection >= self.max_interval_s:
            reason = "max interval elapsed"

        if reason is not None and self._min_interval_elapsed(now):
            self._last_reflection = now
            logger.info("[cognitive-loop] self-invoking: %s", reason)
            try:
                self._think(reason)
            except Exception as e:
                logger.error("[cognitive-loop] self-invocation failed: %s", e, exc_info=True)
        else:
            logger.debug(
                "[cognitive-loop] tick: urgency=%.2f (threshold=%.2f), skipping",
                state.urgency_score,
                self.urgency_threshold,
            )

        return self._schedule(self.adapt_interval(state.urgency_score))

    def get_status(self) -> Dict[str, Any]:
        return {
            "is_running": self._running,
            "last_evaluation": format_datetime(self._last_evaluation),
            "next_evaluation_at": format_datetime(self._next_evaluation_at),
            "interval_s": self._interval_s,
            "attention_state": (
                attention_to_dict(self._last_state) if self._last_state is not None else None
            ),
        }

    # ---- Internal ----

    def _run(self, stop_event: threading.Event) -> None:
        delay = self.min_interval_s
        while not stop_event.wait(delay):
            delay = self.tick()

    def _schedule(self, delay: float) -> float:
        self._interval_s = delay
        if self._running:
            self._next_evaluation_at = self._clock() + timedelta(seconds=delay)
        return delay

    def _reflection_anchor(self) -> datetime:
        return self._last_reflection or self._started_at or self._created_at

    def _min_interval_elapsed(self, now: datetime) -> bool:
        if self._last_reflection is None:
            return True
        return (now - self._last_reflection).total_seconds() >= self.min_interval_s
