"""
Narrative error types.
"""

from __future__ import annotations


class NarrativeError(Exception):
    """Base class for narrative engine errors."""


class ContentError(NarrativeError):
    """
    Story content is broken in a way that halts the playthrough.

    Raised for unknown non-sentinel targets, dead-end scenes and
    runaway auto-transition chains.
    """

    def __init__(self, message: str, offending_id: str | None = None):
        super().__init__(message)
        self.offending_id = offending_id


class ConfigurationWarning(UserWarning):
    """
    Recoverable content or asset problem.

    Logged at runtime. Content validation also issues it through warnings.warn.
    """


class PersistenceError(NarrativeError):
    """A slot could not be written or read."""


class EngineBusyError(PersistenceError):
    """A snapshot was requested while effects were being applied."""
