"""JSON documents in the workspace.

Every persisted component owns exactly one JSON document at a fixed path
under the workspace root. Reads validate against a JSON Schema and treat a
missing, unreadable or invalid document as "no state" (the caller falls
back to defaults). Writes go to a sibling temp file and are renamed over the
target so a crash mid-save never leaves a truncated document behind.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from jsonschema import Draft7Validator

logger = logging.getLogger(__name__)

TRUST_FILE = "working-memory/trust-metrics.json"
PROPOSAL_QUEUE_FILE = "working-memory/proposal-queue.json"
PENDING_ACTIONS_FILE = "working-memory/pending-actions.md"
PROACTIVE_STATE_FILE = "memory/proactive-state.json"
ACTION_LOG_FILE = "memory/action-log.json"
THREADS_FILE = "memory/threads.json"
CONCERNS_FILE = "concerns.md"

_TIMESTAMP = {"type": ["string", "null"]}

TRUST_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["trustScore", "signals", "lastUpdated"],
    "properties": {
        "trustScore": {"type": "number"},
        "signals": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["type", "value"],
                "properties": {
                    "type": {"enum": ["positive", "negative"]},
                    "value": {"type": "number", "minimum": 0},
                    "source": {"type": "string"},
                    "timestamp": _TIMESTAMP,
                },
            },
        },
        "frozenUntil": _TIMESTAMP,
        "lastUpdated": {"type": "string"},
    },
}

PROPOSAL_QUEUE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["proposals"],
    "properties": {
        "proposals": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["id", "action", "status"],
                "properties": {
                    "id": {"type": "string"},
                    "action": {"type": "object"},
                    "status": {"enum": ["pending", "approved", "rejected"]},
                    "createdAt": _TIMESTAMP,
                    "resolvedAt": _TIMESTAMP,
                },
            },
        },
        "lastUpdated": {"type": "string"},
    },
}

PROACTIVE_STATE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["sentToday"],
    "properties": {
        "sentToday": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["threadId", "sentAt"],
                "properties": {"threadId": {"type": "string"}, "sentAt": {"type": "string"}},
            },
        },
        "followUpsByThread": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "properties": {
                    "followUpCount": {"type": "integer", "minimum": 0},
                    "lastFollowUpAt": _TIMESTAMP,
                    "ignored": {"type": "boolean"},
                },
            },
        },
        "lastUpdated": {"type": "string"},
    },
}

ACTION_LOG_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["entries"],
    "properties": {
        "entries": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["category", "tier", "approved"],
                "properties": {
                    "category": {"type": "string"},
                    "tier": {"enum": ["autonomous", "propose", "restricted"]},
                    "approved": {"type": "boolean"},
                    "reason": {"enum": ["pending_proposal", "restricted"]},
                },
            },
        },
        "lastUpdated": {"type": "string"},
    },
}

THREADS_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["threads"],
    "properties": {
        "threads": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["id", "lastActivity"],
                "properties": {
                    "id": {"type": "string"},
                    "topic": {"type": "string"},
                    "status": {"enum": ["active", "awaiting-response", "resolved", "parked"]},
                    "lastActivity": {"type": "string"},
                    "participants": {"type": "array", "items": {"type": "string"}},
                    "messageCount": {"type": "integer"},
                },
            },
        },
        "lastUpdated": {"type": "string"},
    },
}

_validators: Dict[int, Draft7Validator] = {}


def _validator_for(schema: Dict[str, Any]) -> Draft7Validator:
    key = id(schema)
    validator = _validators.get(key)
    if validator is None:
        Draft7Validator.check_schema(schema)
        validator = Draft7Validator(schema)
        _validators[key] = validator
    return validator


def validate_document(data: Any, schema: Dict[str, Any]) -> Optional[str]:
    """Return a description of the first schema violation, or None if valid."""
    errors = sorted(_validator_for(schema).iter_errors(data), key=lambda err: list(err.path))
    if not errors:
        return None
    first = errors[0]
    path = ".".join(str(part) for part in first.path) or "(root)"
    return f"{path}: {first.message}"


def read_document(path: Path, schema: Dict[str, Any], label: str) -> Optional[Dict[str, Any]]:
    """Load and validate a JSON document.

    Args:
        path: Absolute path to the document
        schema: JSON Schema the document must satisfy
        label: Short name used in log messages

    Returns:
        The parsed document, or None when it is missing, unreadable or
        invalid (the latter two are logged as warnings).
    """
    if not path.exists():
        return None
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning("[%s] malformed %s, using default state: %s", label, path.name, e)
        return None
    except OSError as e:
        logger.warning("[%s] cannot read %s, using default state: %s", label, path.name, e)
        return None

    problem = validate_document(data, schema)
    if problem is not None:
        logger.warning("[%s] invalid %s (%s), using default state", label, path.name, problem)
        return None
    return data


def write_document(path: Path, data: Dict[str, Any]) -> None:
    """Atomically replace ``path`` with ``data`` serialized as JSON."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + ".tmp")
    try:
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except OSError:
        try:
            tmp_path.unlink()
        except FileNotFoundError:
            pass
        raise
