"""Error hierarchy and collaborator interfaces for tether.

The governor talks to the outside world through a handful of narrow
interfaces: a model backend that turns a prompt into text, a thread source
that lists tracked conversations, and a clock. Everything else is owned by
the governor itself.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Callable, List, Optional, Protocol, runtime_checkable

if TYPE_CHECKING:
    from tether.types import Thread

# === Errors ===


class TetherError(Exception):
    """Base for all tether errors."""

    pass


class StateNotLoadedError(TetherError):
    """Raised when a persisted component is used before ``load()``."""

    def __init__(self, component: str, operation: str) -> None:
        super().__init__(f"Cannot {operation}: {component} state not loaded. Call load() first.")
        self.component = component
        self.operation = operation


class ProposalError(TetherError):
    """Raised when the proposal queue is misused."""

    pass


class ProposalNotFoundError(ProposalError):
    """Raised when resolving a proposal id the queue has never seen."""

    def __init__(self, proposal_id: str) -> None:
        super().__init__(f"Proposal not found: {proposal_id}")
        self.proposal_id = proposal_id


class ProposalAlreadyResolvedError(ProposalError):
    """Raised when resolving a proposal that already left ``pending``."""

    def __init__(self, proposal_id: str, status: str) -> None:
        super().__init__(f"Proposal {proposal_id} already resolved (status: {status})")
        self.proposal_id = proposal_id
        self.status = status


class ModelError(TetherError):
    """Raised by model adapters when the provider reports an error.

    ``error_class`` is one of ``rate_limit``, ``auth``, ``timeout``,
    ``server`` or ``unknown``.
    """

    def __init__(self, error_class: str, message: str) -> None:
        super().__init__(message)
        self.error_class = error_class


# === Collaborator interfaces ===

# Model backend: prompt in, text out. ``None`` means "nothing usable".
ModelInvoker = Callable[[str], Optional[str]]

# Think callback invoked by the cognitive loop with a reason string.
ThinkCallback = Callable[[str], None]

# Returns the current time as a timezone-aware datetime.
Clock = Callable[[], datetime]


@runtime_checkable
class ThreadSource(Protocol):
    """Read access to tracked conversation threads."""

    def get_active_threads(self) -> List["Thread"]:
        """Return every thread whose status is not ``resolved``."""
        ...


@runtime_checkable
class TextModel(Protocol):
    """What the governor needs from a language model: one-shot completion."""

    @property
    def model_id(self) -> str: ...

    def complete(self, prompt: str, *, system: Optional[str] = None) -> str:
        """Return the model's text for ``prompt``. Raises ``ModelError``."""
        ...
