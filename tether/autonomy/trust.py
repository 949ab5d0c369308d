"""Trust scoring for the autonomy governor.

The trust score is a single number in [0, 1] that moves with feedback from
the human operator. It decides how wide the agent's action scope is:

- score < 0.4: autonomous actions only
- 0.4 <= score <= 0.7: autonomous + propose
- score > 0.7: autonomous + propose + restricted

A critical failure drops the score to 0.1 and freezes scope to
autonomous-only for 14 days. Positive feedback during the freeze still
moves the score, but the scope stays narrow until the freeze expires.
"""

import copy
import logging
from datetime import timedelta
from pathlib import Path
from typing import Dict, List, Optional

from tether.autonomy.authority import DEFAULT_TIER_MAP
from tether.logging_config import log_trust_change
from tether.protocols import Clock, StateNotLoadedError
from tether.storage.documents import TRUST_FILE, TRUST_SCHEMA, read_document, write_document
from tether.types import (
    ActionCategory,
    ActionTier,
    SignalType,
    TrustMetrics,
    TrustScope,
    TrustSignal,
    TrustState,
    utc_now,
)

logger = logging.getLogger(__name__)

DEFAULT_TRUST_SCORE = 0.5
SIGNAL_WINDOW_SIZE = 50
FREEZE_DURATION = timedelta(days=14)
CRITICAL_FAILURE_SCORE = 0.1
CRITICAL_FAILURE_WEIGHT = 0.4
CRITICAL_FAILURE_PREFIX = "critical-failure:"

PROPOSE_THRESHOLD = 0.4
RESTRICTED_THRESHOLD = 0.7


def clamp_score(score: float) -> float:
    return max(0.0, min(1.0, score))


def tiers_for_score(score: float) -> List[ActionTier]:
    """Map a trust score to the ordered list of allowed tiers."""
    if score > RESTRICTED_THRESHOLD:
        return [ActionTier.AUTONOMOUS, ActionTier.PROPOSE, ActionTier.RESTRICTED]
    if score >= PROPOSE_THRESHOLD:
        return [ActionTier.AUTONOMOUS, ActionTier.PROPOSE]
    return [ActionTier.AUTONOMOUS]


class TrustManager:
    """Owns the persisted trust state for one workspace.

    Usage::

        trust = TrustManager(workspace)
        trust.load()
        trust.record_signal(TrustSignal(SignalType.POSITIVE, 0.05, "engaged"))
        trust.save()
    """

    def __init__(
        self,
        workspace: Path,
        *,
        clock: Clock = utc_now,
        agent_id: str = "default",
    ) -> None:
        self.workspace = Path(workspace)
        self._clock = clock
        self._agent_id = agent_id
        self._state: Optional[TrustState] = None

    @property
    def path(self) -> Path:
        return self.workspace / TRUST_FILE

    @property
    def loaded(self) -> bool:
        return self._state is not None

    # ---- Persistence ----

    def load(self) -> TrustState:
        """Load persisted trust, or start from the default score.

        Missing or malformed documents yield the default state (0.5, no
        signals, not frozen).
        """
        data = read_document(self.path, TRUST_SCHEMA, "trust")
        state: Optional[TrustState] = None
        if data is not None:
            try:
                state = TrustState.from_dict(data)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("[trust] unusable trust-metrics.json, using default state: %s", e)

        if state is None:
            state = self._default_state()
        else:
            state.trust_score = clamp_score(state.trust_score)
            if state.frozen_until is None and "frozenUntil" not in data:
                state.frozen_until = self._legacy_freeze(state.signals)

        self._state = state
        return self.get_state()

    def save(self) -> None:
        """Write the trust document atomically."""
        state = self._require("save")
        write_document(self.path, state.to_dict())

    # ---- Accessors ----

    def get_score(self) -> float:
        return self._require("read score").trust_score

    def get_signal_history(self) -> List[TrustSignal]:
        return copy.deepcopy(self._require("read signals").signals)

    def get_state(self) -> TrustState:
        return copy.deepcopy(self._require("read state"))

    def is_frozen(self) -> bool:
        """True while a critical-failure freeze is in effect."""
        state = self._require("check freeze")
        return state.frozen_until is not None and self._clock() < state.frozen_until

    def evaluate_scope(self) -> TrustScope:
        """Allowed tiers under the current score and freeze."""
        state = self._require("evaluate scope")
        if self.is_frozen():
            return TrustScope(allowed_tiers=[ActionTier.AUTONOMOUS], frozen=True)
        return TrustScope(allowed_tiers=tiers_for_score(state.trust_score))

    def get_metrics(self) -> TrustMetrics:
        """Trust view for action classification.

        When proposing is out of scope, every category that would normally
        be proposed is tightened to restricted.
        """
        scope = self.evaluate_scope()
        scope_map: Dict[ActionCategory, ActionTier] = {}
        if ActionTier.PROPOSE not in scope.allowed_tiers:
            scope_map = {
                category: ActionTier.RESTRICTED
                for category, tier in DEFAULT_TIER_MAP.items()
                if tier == ActionTier.PROPOSE
            }
        return TrustMetrics(
            score=self.get_score(),
            allowed_tiers=list(scope.allowed_tiers),
            scope_map=scope_map,
        )

    # ---- Mutations ----

    def record_signal(self, signal: TrustSignal) -> float:
        """Apply a signal to the score and append it to the history.

        Returns:
            The new trust score
        """
        state = self._require("record signal")
        if signal.value < 0:
            raise ValueError(f"Signal value must be >= 0, got {signal.value}")

        now = self._clock()
        record = TrustSignal(
            type=signal.type,
            value=float(signal.value),
            source=signal.source,
            timestamp=signal.timestamp or now,
        )
        self._append_signal(state, record)

        delta = record.value if record.type == SignalType.POSITIVE else -record.value
        state.trust_score = clamp_score(state.trust_score + delta)
        state.last_updated = now

        frozen = self.is_frozen()
        logger.debug(
            "[trust] %s %.2f from %s -> score=%.2f%s",
            record.type.value,
            record.value,
            record.source,
            state.trust_score,
            " (frozen)" if frozen else "",
        )
        log_trust_change(self._agent_id, state.trust_score, record.source, frozen=frozen)
        return state.trust_score

    def record_critical_failure(self, description: str) -> None:
        """Drop trust to 0.1 and freeze scope for 14 days."""
        state = self._require("record critical failure")
        now = self._clock()

        state.trust_score = CRITICAL_FAILURE_SCORE
        self._append_signal(
            state,
            TrustSignal(
                type=SignalType.NEGATIVE,
                value=CRITICAL_FAILURE_WEIGHT,
                source=f"{CRITICAL_FAILURE_PREFIX} {description}",
                timestamp=now,
            ),
        )
        state.frozen_until = now + FREEZE_DURATION
        state.last_updated = now

        logger.warning(
            "[trust] critical failure: %s; scope frozen until %s",
            description,
            state.frozen_until.isoformat(),
        )
        log_trust_change(
            self._agent_id, state.trust_score, f"critical-failure: {description}", frozen=True
        )

    # ---- Presentation ----

    def get_observable_summary(self) -> str:
        """Markdown summary suitable for a system prompt."""
        if self._state is None:
            return "Trust state: not loaded."

        state = self._state
        scope = self.evaluate_scope()
        lines = [
            "## Autonomy Trust State",
            "",
            f"Overall trust score: {state.trust_score:.2f}",
            f"Allowed tiers: {', '.join(t.value for t in scope.allowed_tiers)}",
        ]

        if scope.frozen and state.frozen_until is not None:
            lifts = state.frozen_until.date().isoformat()
            lines.extend(
                [
                    "",
                    "Scope frozen: a critical failure triggered a 14-day freeze "
                    f"(autonomous actions only). Freeze lifts on {lifts}.",
                ]
            )

        if state.signals:
            positive = sum(1 for s in state.signals if s.type == SignalType.POSITIVE)
            negative = len(state.signals) - positive
            lines.extend(
                [
                    "",
                    f"Recent signals: {len(state.signals)} ({positive} positive, {negative} negative)",
                ]
            )

        return "\n".join(lines)

    # ---- Internal ----

    def _require(self, operation: str) -> TrustState:
        if self._state is None:
            raise StateNotLoadedError("trust", operation)
        return self._state

    def _default_state(self) -> TrustState:
        return TrustState(trust_score=DEFAULT_TRUST_SCORE, signals=[], last_updated=self._clock())

    @staticmethod
    def _append_signal(state: TrustState, record: TrustSignal) -> None:
        state.signals.append(record)
        if len(state.signals) > SIGNAL_WINDOW_SIZE:
            state.signals = state.signals[-SIGNAL_WINDOW_SIZE:]

    @staticmethod
    def _legacy_freeze(signals: List[TrustSignal]):
        """Derive a freeze from the newest critical-failure signal, if any."""
        critical = [
            s
            for s in signals
            if s.source.startswith(CRITICAL_FAILURE_PREFIX) and s.timestamp is not None
        ]
        if not critical:
            return None
        return max(s.timestamp for s in critical) + FREEZE_DURATION
