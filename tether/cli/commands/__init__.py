"""CLI command modules for tether.

Each module holds the handlers for one top-level command.
"""

from tether.cli.commands.actions import cmd_actions
from tether.cli.commands.attention import cmd_attention
from tether.cli.commands.proactive import cmd_proactive
from tether.cli.commands.proposals import cmd_proposals
from tether.cli.commands.trust import cmd_trust

__all__ = [
    "cmd_actions",
    "cmd_attention",
    "cmd_proactive",
    "cmd_proposals",
    "cmd_trust",
]
