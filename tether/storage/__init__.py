"""Workspace persistence for tether."""

from tether.storage.documents import (
    ACTION_LOG_FILE,
    CONCERNS_FILE,
    PENDING_ACTIONS_FILE,
    PROACTIVE_STATE_FILE,
    PROPOSAL_QUEUE_FILE,
    THREADS_FILE,
    TRUST_FILE,
    read_document,
    validate_document,
    write_document,
)

__all__ = [
    "ACTION_LOG_FILE",
    "CONCERNS_FILE",
    "PENDING_ACTIONS_FILE",
    "PROACTIVE_STATE_FILE",
    "PROPOSAL_QUEUE_FILE",
    "THREADS_FILE",
    "TRUST_FILE",
    "read_document",
    "validate_document",
    "write_document",
]
