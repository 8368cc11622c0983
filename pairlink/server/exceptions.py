from __future__ import annotations


class PairlinkError(Exception):
    """Base class for pairlink errors."""


class InvariantViolation(PairlinkError):
    """Raised by consistency checks when queue and session state disagree.

    Nothing on the event path raises this; the component contracts keep the
    state consistent and the check exists to prove it.
    """
