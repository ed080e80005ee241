"""
Maxflow client exceptions.
"""

from __future__ import annotations


class MaxflowError(Exception):
    """
    Base class for errors raised by the Maxflow client itself.

    Notes
    -----
    Transport and remote failures are not wrapped: they surface as the
    ``httpx`` exception raised by the request.
    """


class MaxflowConfigError(MaxflowError, ValueError):
    """
    Raised when a required credential is missing before a network call.

    Parameters
    ----------
    field : str
        Name of the missing configuration field.
    message : str
        Human-readable error message.
    """

    def __init__(self, *, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field


class QueueClosedError(MaxflowError, RuntimeError):
    """Raised when pushing to a push queue that has been closed."""
