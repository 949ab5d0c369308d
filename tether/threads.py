"""Read-only access to tracked conversation threads.

Threads are written by the chat front end to ``memory/threads.json``; the
governor only reads them to find stale conversations. Follow-up bookkeeping
lives in the proactive evaluator's own state, never in this file.
"""

import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Optional

from tether.storage.documents import THREADS_FILE, THREADS_SCHEMA, read_document
from tether.types import Thread, ThreadStatus

logger = logging.getLogger(__name__)


class ThreadStore:
    """Thread source backed by the workspace's ``threads.json``."""

    def __init__(self, workspace: Path) -> None:
        self.workspace = Path(workspace)
        self._threads: Optional[List[Thread]] = None

    @property
    def path(self) -> Path:
        return self.workspace / THREADS_FILE

    def load(self) -> List[Thread]:
        """Re-read the threads document. Missing or invalid files mean no threads."""
        data = read_document(self.path, THREADS_SCHEMA, "threads")
        threads: List[Thread] = []
        if data is not None:
            for raw in data["threads"]:
                try:
                    threads.append(Thread.from_dict(raw))
                except (KeyError, ValueError) as e:
                    logger.warning("[threads] skipping unreadable thread: %s", e)
        self._threads = threads
        return list(threads)

    def get_threads(self) -> List[Thread]:
        if self._threads is None:
            self.load()
        return list(self._threads or [])

    def get_active_threads(self) -> List[Thread]:
        """Threads whose status is anything but resolved."""
        return [t for t in self.get_threads() if t.status != ThreadStatus.RESOLVED]

    def get_thread(self, thread_id: str) -> Optional[Thread]:
        for thread in self.get_threads():
            if thread.id == thread_id:
                return thread
        return None

    def has_stale_threads(self, now: datetime, older_than: timedelta) -> bool:
        """True if any active thread has been idle longer than ``older_than``."""
        return any(now - t.last_activity > older_than for t in self.get_active_threads())
