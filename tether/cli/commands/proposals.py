"""Proposal queue CLI commands for tether."""

import json
from typing import TYPE_CHECKING

from tether.types import ProposalStatus

if TYPE_CHECKING:
    from tether import Governor


def cmd_proposals(args, g: "Governor"):
    """List, approve or reject queued proposals."""
    action = getattr(args, "proposals_action", None) or "list"

    if action == "list":
        proposals = g.proposals.pending() if args.pending else g.proposals.list()
        if args.json:
            print(json.dumps([p.to_dict() for p in proposals], indent=2))
            return
        if not proposals:
            print("No pending proposals." if args.pending else "Proposal queue is empty.")
            return

        print(f"Proposals ({len(proposals)}):")
        print()
        for p in proposals:
            created = p.created_at.strftime("%Y-%m-%d %H:%M") if p.created_at else "?"
            print(f"  [{p.status.value}] {p.id}")
            print(f"    {p.action.get('type', '?')} -> {p.action.get('target') or '(no target)'}")
            if p.action.get("description"):
                print(f"    {p.action['description']}")
            if p.reason:
                print(f"    Reason: {p.reason}")
            print(f"    Created: {created}")
            print()

    elif action in ("approve", "reject"):
        status = ProposalStatus.APPROVED if action == "approve" else ProposalStatus.REJECTED
        proposal = g.resolve_proposal(args.id, status)
        print(f"Proposal {proposal.id} {proposal.status.value}.")
