"""Persistent action audit log.

Every decision made by :class:`~tether.autonomy.authority.ActionAuthority`
can be mirrored here so that trust analysis and the CLI can see what the
agent attempted across restarts. Stored at ``memory/action-log.json`` and
capped at 500 entries (oldest dropped).
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Union

from tether.protocols import Clock
from tether.storage.documents import (
    ACTION_LOG_FILE,
    ACTION_LOG_SCHEMA,
    read_document,
    write_document,
)
from tether.types import ActionCategory, ActionLogEntry, format_datetime, utc_now

logger = logging.getLogger(__name__)

MAX_LOG_ENTRIES = 500


class ActionLog:
    """Append-only log backed by a JSON document.

    Each call reads the document fresh, so several processes appending to
    the same workspace see each other's entries (last writer wins on a
    simultaneous append).
    """

    def __init__(self, workspace: Path, *, clock: Clock = utc_now) -> None:
        self.workspace = Path(workspace)
        self._clock = clock

    @property
    def path(self) -> Path:
        return self.workspace / ACTION_LOG_FILE

    def record(self, entry: ActionLogEntry) -> None:
        data = self._load()
        data["entries"].append(entry.to_dict())
        if len(data["entries"]) > MAX_LOG_ENTRIES:
            data["entries"] = data["entries"][-MAX_LOG_ENTRIES:]
        data["lastUpdated"] = format_datetime(self._clock())
        write_document(self.path, data)
        logger.debug(
            "[action-log] recorded: category=%s tier=%s approved=%s",
            entry.category,
            entry.tier.value,
            entry.approved,
        )

    def get_recent(self, count: int = 20) -> List[ActionLogEntry]:
        """Most recent entries, newest first."""
        if count <= 0:
            return []
        entries = self._entries()
        return list(reversed(entries[-count:]))

    def get_by_category(self, category: Union[ActionCategory, str]) -> List[ActionLogEntry]:
        """Entries for one category, newest first."""
        wanted = category.value if isinstance(category, ActionCategory) else str(category)
        return [e for e in reversed(self._entries()) if e.category == wanted]

    def count(self) -> int:
        return len(self._load()["entries"])

    def _entries(self) -> List[ActionLogEntry]:
        entries = []
        for raw in self._load()["entries"]:
            try:
                entries.append(ActionLogEntry.from_dict(raw))
            except (KeyError, ValueError) as e:
                logger.warning("[action-log] skipping unreadable entry: %s", e)
        return entries

    def _load(self) -> Dict[str, Any]:
        data = read_document(self.path, ACTION_LOG_SCHEMA, "action-log")
        if data is None:
            return {"entries": [], "lastUpdated": format_datetime(self._clock())}
        return data
