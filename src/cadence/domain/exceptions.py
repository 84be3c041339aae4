"""Errors raised by the scheduling core.

ValidationError and NotFoundError are user-facing. InvariantViolation marks an
internal bug and is never mapped to a client error.
"""


class DrillError(Exception):
    """Base class for every error raised by cadence."""


class ValidationError(DrillError):
    """Input is malformed (rating outside 1-4, unknown tier or drill kind)."""


class NotFoundError(DrillError):
    """The requested content item does not exist, or nothing is left to learn."""


class InvariantViolation(DrillError):
    """A computed memory state broke a scheduling invariant."""
