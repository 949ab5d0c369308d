"""Logging setup for tether.

Two channels:

- the ``tether`` logger, configured by :func:`setup_tether_logging`, which
  writes ``local-YYYY-MM-DD.log`` under ``<data_dir>/logs``;
- a governor event log (``governor-events-YYYY-MM-DD.log``) holding one
  line per decision, trust change, proposal transition or follow-up, so an
  operator can audit what the agent did without reading debug output.

``<data_dir>`` is ``$TETHER_DATA_DIR`` or ``~/.tether``.
"""

import logging
import os
from datetime import datetime
from pathlib import Path

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

logger = logging.getLogger(__name__)


def get_data_dir() -> Path:
    """Directory holding tether's logs."""
    configured = os.environ.get("TETHER_DATA_DIR")
    if configured:
        return Path(configured).expanduser()
    return Path.home() / ".tether"


def get_log_dir() -> Path:
    return get_data_dir() / "logs"


def setup_tether_logging(agent_id: str = "default", level: str = "INFO") -> logging.Logger:
    """Configure the ``tether`` logger.

    Adds a file handler (and a console handler at DEBUG). Safe to call more
    than once: existing handlers are left alone.

    Args:
        agent_id: Agent the process is governing, recorded in the first line
        level: Logging level name, case-insensitive; invalid names mean INFO

    Returns:
        The configured ``tether`` logger
    """
    tether_logger = logging.getLogger("tether")
    resolved = getattr(logging, str(level).upper(), None)
    if not isinstance(resolved, int):
        resolved = logging.INFO
    tether_logger.setLevel(resolved)

    if any(isinstance(h, logging.FileHandler) for h in tether_logger.handlers):
        return tether_logger

    log_dir = get_log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"local-{datetime.now().strftime('%Y-%m-%d')}.log"

    formatter = logging.Formatter(LOG_FORMAT)
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setFormatter(formatter)
    tether_logger.addHandler(file_handler)

    if resolved <= logging.DEBUG:
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        tether_logger.addHandler(console)

    tether_logger.debug("Logging configured for agent=%s", agent_id)
    return tether_logger


def log_governor_event(event_type: str, details: str, agent_id: str = "default") -> None:
    """Append one line to the governor event log.

    Failures to write are reported through the regular logger and otherwise
    ignored; auditing must never break a decision.
    """
    try:
        log_dir = get_log_dir()
        log_dir.mkdir(parents=True, exist_ok=True)
        event_file = log_dir / f"governor-events-{datetime.now().strftime('%Y-%m-%d')}.log"
        timestamp = datetime.now().isoformat(timespec="seconds")
        with open(event_file, "a", encoding="utf-8") as f:
            f.write(f"{timestamp} | {event_type} | agent={agent_id} | {details}\n")
    except OSError as e:
        logger.warning("Failed to write governor event: %s", e)


def log_decision(
    agent_id: str, category: str, tier: str, approved: bool, reason: str = ""
) -> None:
    details = f"category={category}, tier={tier}, approved={approved}"
    if reason:
        details += f", reason={reason}"
    log_governor_event("decision", details, agent_id=agent_id)


def log_trust_change(agent_id: str, score: float, source: str, frozen: bool = False) -> None:
    log_governor_event(
        "trust",
        f"score={score:.2f}, source={source}, frozen={frozen}",
        agent_id=agent_id,
    )


def log_proposal(agent_id: str, proposal_id: str, status: str, summary: str = "") -> None:
    details = f"id={proposal_id[:8]}..., status={status}"
    if summary:
        details += f", summary={summary[:60]}"
    log_governor_event("proposal", details, agent_id=agent_id)


def log_follow_up(agent_id: str, thread_id: str, action: str, score=None, shadow=False) -> None:
    score_str = "none" if score is None else f"{score:.2f}"
    log_governor_event(
        "follow-up",
        f"thread={thread_id}, action={action}, score={score_str}, shadow={shadow}",
        agent_id=agent_id,
    )
