"""Durable queue of actions awaiting human approval.

Stored at ``working-memory/proposal-queue.json``. A proposal moves from
``pending`` to ``approved`` or ``rejected`` exactly once. At most 100
resolved proposals are kept (oldest dropped); pending proposals are never
pruned.
"""

import copy
import logging
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from tether.logging_config import log_proposal
from tether.protocols import (
    Clock,
    ProposalAlreadyResolvedError,
    ProposalNotFoundError,
    StateNotLoadedError,
)
from tether.storage.documents import (
    PROPOSAL_QUEUE_FILE,
    PROPOSAL_QUEUE_SCHEMA,
    read_document,
    write_document,
)
from tether.types import Proposal, ProposalStatus, format_datetime, utc_now

logger = logging.getLogger(__name__)

MAX_RESOLVED_PROPOSALS = 100


class ProposalQueue:
    """Pending/approved/rejected proposals for one workspace."""

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
        self._proposals: Optional[List[Proposal]] = None

    @property
    def path(self) -> Path:
        return self.workspace / PROPOSAL_QUEUE_FILE

    def load(self) -> None:
        """(Re)read the queue from disk. Bad documents yield an empty queue."""
        data = read_document(self.path, PROPOSAL_QUEUE_SCHEMA, "proposal-queue")
        proposals: List[Proposal] = []
        if data is not None:
            for raw in data["proposals"]:
                try:
                    proposals.append(Proposal.from_dict(raw))
                except (KeyError, ValueError) as e:
                    logger.warning("[proposal-queue] skipping unreadable proposal: %s", e)
        self._proposals = proposals

    def save(self) -> None:
        proposals = self._require("save")
        write_document(
            self.path,
            {
                "proposals": [p.to_dict() for p in proposals],
                "lastUpdated": format_datetime(self._clock()),
            },
        )

    def enqueue(
        self,
        action: Dict[str, Any],
        reason: str = "",
        context: str = "",
    ) -> str:
        """Add a pending proposal.

        Args:
            action: Mapping with at least ``type`` and ``target``; extra keys
                are kept as-is
            reason: Why the agent wants to take the action
            context: What it was doing when it decided to

        Returns:
            The new proposal's id
        """
        proposals = self._require("enqueue")
        for key in ("type", "target"):
            if key not in action:
                raise ValueError(f"Proposal action requires a '{key}' field")

        proposal = Proposal(
            id=str(uuid.uuid4()),
            action=dict(action),
            reason=reason,
            context=context,
            status=ProposalStatus.PENDING,
            created_at=self._clock(),
        )
        proposals.append(proposal)
        logger.info("[proposal-queue] enqueued %s: %s", proposal.id, action.get("type"))
        log_proposal(self._agent_id, proposal.id, ProposalStatus.PENDING.value, reason)
        return proposal.id

    def list(self) -> List[Proposal]:
        return copy.deepcopy(self._require("list"))

    def pending(self) -> List[Proposal]:
        return [p for p in self.list() if p.status == ProposalStatus.PENDING]

    def get(self, proposal_id: str) -> Optional[Proposal]:
        for proposal in self._require("get"):
            if proposal.id == proposal_id:
                return copy.deepcopy(proposal)
        return None

    def resolve(self, proposal_id: str, status: Union[ProposalStatus, str]) -> Proposal:
        """Approve or reject a pending proposal.

        Raises:
            ValueError: If ``status`` is not approved or rejected
            ProposalNotFoundError: If the id is unknown
            ProposalAlreadyResolvedError: If the proposal is not pending
        """
        proposals = self._require("resolve")
        status = ProposalStatus(status)
        if status == ProposalStatus.PENDING:
            raise ValueError("Proposals can only be resolved to approved or rejected")

        proposal = next((p for p in proposals if p.id == proposal_id), None)
        if proposal is None:
            raise ProposalNotFoundError(proposal_id)
        if proposal.status != ProposalStatus.PENDING:
            raise ProposalAlreadyResolvedError(proposal_id, proposal.status.value)

        proposal.status = status
        proposal.resolved_at = self._clock()
        logger.info("[proposal-queue] %s %s", status.value, proposal_id)
        log_proposal(self._agent_id, proposal_id, status.value)

        resolved = copy.deepcopy(proposal)
        self._prune_resolved()
        return resolved

    def pending_count(self) -> int:
        return sum(1 for p in self._require("count") if p.status == ProposalStatus.PENDING)

    def _prune_resolved(self) -> None:
        proposals = self._require("prune")
        excess = sum(1 for p in proposals if p.status != ProposalStatus.PENDING)
        excess -= MAX_RESOLVED_PROPOSALS
        if excess <= 0:
            return
        kept = []
        for p in proposals:
            if p.status != ProposalStatus.PENDING and excess > 0:
                excess -= 1
                continue
            kept.append(p)
        self._proposals = kept

    def _require(self, operation: str) -> List[Proposal]:
        if self._proposals is None:
            raise StateNotLoadedError("proposal queue", operation)
        return self._proposals
