"""
Tether - an autonomy governor for personal agents.

Keeps a self-directed agent on a leash its operator can lengthen or shorten:
trust-gated action tiers, an approval queue, urgency-driven reflection and
rate-limited proactive follow-ups.
"""

from .governor import Governor, SubmissionResult

try:
    from importlib.metadata import version

    __version__ = version("tether")
except Exception:
    __version__ = "0.0.0"

__all__ = ["Governor", "SubmissionResult"]
