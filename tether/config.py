"""Runtime configuration for the governor.

Defaults live on :class:`GovernorConfig`; :meth:`GovernorConfig.from_env`
overlays ``TETHER_*`` environment variables.

Environment variables:
    TETHER_WORKSPACE: Workspace root holding the persisted documents.
    TETHER_AGENT_ID: Agent name used in the governor event log.
    TETHER_MIN_INTERVAL: Minimum seconds between self-invoked reflections.
    TETHER_MAX_INTERVAL: Maximum seconds without a reflection.
    TETHER_URGENCY_THRESHOLD: Urgency score that triggers a reflection.
    TETHER_STALE_AFTER_HOURS: Idle hours before a thread is a follow-up candidate.
    TETHER_PROACTIVE_SHADOW: "true" to score follow-ups without sending.
    TETHER_TIMEZONE: IANA zone for time-of-day rhythm (default: system local).
"""

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_MIN_INTERVAL_S = 60.0
DEFAULT_MAX_INTERVAL_S = 900.0
DEFAULT_URGENCY_THRESHOLD = 0.6
DEFAULT_STALE_AFTER_HOURS = 4.0

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class GovernorConfig:
    """Knobs for the cognitive loop and proactive evaluator."""

    workspace: Path = field(default_factory=lambda: Path.cwd() / "workspace")
    agent_id: str = "default"
    min_interval_s: float = DEFAULT_MIN_INTERVAL_S
    max_interval_s: float = DEFAULT_MAX_INTERVAL_S
    urgency_threshold: float = DEFAULT_URGENCY_THRESHOLD
    stale_after_hours: float = DEFAULT_STALE_AFTER_HOURS
    proactive_shadow: bool = False
    timezone: Optional[str] = None

    def __post_init__(self) -> None:
        if self.min_interval_s <= 0:
            raise ValueError("min_interval_s must be positive")
        if self.max_interval_s < self.min_interval_s:
            raise ValueError("max_interval_s must be >= min_interval_s")
        if not 0.0 <= self.urgency_threshold <= 1.0:
            raise ValueError("urgency_threshold must be between 0.0 and 1.0")
        if self.stale_after_hours < 0:
            raise ValueError("stale_after_hours must be >= 0")

    @classmethod
    def from_env(cls, **overrides: Any) -> "GovernorConfig":
        """Build a config from ``TETHER_*`` variables, then apply ``overrides``.

        Unparseable numeric values are logged and the default is kept.
        """
        values: Dict[str, Any] = {}

        workspace = os.environ.get("TETHER_WORKSPACE", "").strip()
        if workspace:
            values["workspace"] = Path(workspace).expanduser()

        agent_id = os.environ.get("TETHER_AGENT_ID", "").strip()
        if agent_id:
            values["agent_id"] = agent_id

        for env_name, key in (
            ("TETHER_MIN_INTERVAL", "min_interval_s"),
            ("TETHER_MAX_INTERVAL", "max_interval_s"),
            ("TETHER_URGENCY_THRESHOLD", "urgency_threshold"),
            ("TETHER_STALE_AFTER_HOURS", "stale_after_hours"),
        ):
            parsed = _env_float(env_name)
            if parsed is not None:
                values[key] = parsed

        shadow = os.environ.get("TETHER_PROACTIVE_SHADOW")
        if shadow is not None:
            values["proactive_shadow"] = shadow.strip().lower() in _TRUTHY

        tz = os.environ.get("TETHER_TIMEZONE", "").strip()
        if tz:
            values["timezone"] = tz

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def with_workspace(self, workspace: Path) -> "GovernorConfig":
        return replace(self, workspace=Path(workspace))


def _env_float(name: str) -> Optional[float]:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return None
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not a number", name, raw)
        return None
