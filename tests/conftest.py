"""
Pytest fixtures and test configuration for tether tests.
"""

import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List

import pytest

# Monday, daytime in UTC
START = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic clock: returns a fixed time until advanced."""

    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, when: datetime) -> None:
        self.now = when


@pytest.fixture(autouse=True)
def isolated_data_dir(tmp_path, monkeypatch):
    """Keep logs and env-driven config out of the real home directory."""
    data_dir = tmp_path / "tether-data"
    monkeypatch.setenv("TETHER_DATA_DIR", str(data_dir))
    for var in (
        "TETHER_WORKSPACE",
        "TETHER_AGENT_ID",
        "TETHER_MIN_INTERVAL",
        "TETHER_MAX_INTERVAL",
        "TETHER_URGENCY_THRESHOLD",
        "TETHER_STALE_AFTER_HOURS",
        "TETHER_PROACTIVE_SHADOW",
        "TETHER_TIMEZONE",
        "TETHER_LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)
    return data_dir


@pytest.fixture(autouse=True)
def clean_tether_logger():
    """Remove handlers added to the tether logger by a test."""
    logger = logging.getLogger("tether")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    yield
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def workspace(tmp_path):
    ws = tmp_path / "workspace"
    ws.mkdir()
    return ws


def write_json(path: Path, data: Any) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def thread_dict(
    thread_id: str,
    last_activity: datetime,
    *,
    topic: str = "",
    status: str = "active",
    participants: List[str] = None,
    message_count: int = 3,
) -> Dict[str, Any]:
    return {
        "id": thread_id,
        "topic": topic or f"Topic {thread_id}",
        "status": status,
        "lastActivity": last_activity.isoformat(),
        "participants": participants if participants is not None else ["user", "agent"],
        "messageCount": message_count,
    }


@pytest.fixture
def write_threads(workspace):
    """Write ``memory/threads.json`` for the workspace."""

    def _write(threads: List[Dict[str, Any]]) -> Path:
        return write_json(
            workspace / "memory" / "threads.json",
            {"threads": threads, "lastUpdated": START.isoformat()},
        )

    return _write


@pytest.fixture
def make_thread():
    return thread_dict


@pytest.fixture
def json_file():
    return write_json
