"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/errors.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Error taxonomy shared by all core components. Each class maps
                to a response code of the (external) HTTP layer.
------------------------------------------------------------------------------
"""

from enum import Enum


class FailureKind(str, Enum):
    TRANSIENT = "transient"
    PERMANENT = "permanent"


class PaperMindError(Exception):
    """Base class for all domain errors."""

    http_status: int = 500


class ValidationError(PaperMindError):
    """Missing or malformed caller input. Never retried."""

    http_status = 422


class NotFoundError(PaperMindError):
    """A referenced document, rule, signature or token does not exist."""

    http_status = 404


class ConflictError(PaperMindError):
    """Token reused or expired, duplicate pair, or a run already in flight."""

    http_status = 409


class TransientInfraError(PaperMindError):
    """Timeout or unavailable infrastructure. Safe to retry later."""

    kind = FailureKind.TRANSIENT


class PermanentProcessingError(PaperMindError):
    """The content cannot be processed as-is. Needs a fix and a reprocess."""

    kind = FailureKind.PERMANENT


class ModelError(PaperMindError):
    """
    Failure reported by the AI gateway.

    Args:
        message: Human readable reason.
        kind: Whether the failure is worth retrying.
    """

    def __init__(self, message: str, kind: FailureKind = FailureKind.TRANSIENT) -> None:
        super().__init__(message)
        self.kind = FailureKind(kind)

    @property
    def transient(self) -> bool:
        return self.kind == FailureKind.TRANSIENT

    def __repr__(self) -> str:
        return f"ModelError({str(self)!r}, kind={self.kind.value})"


def failure_kind(exc: BaseException) -> FailureKind:
    """Classifies an arbitrary exception for retry bookkeeping."""
    kind = getattr(exc, "kind", None)
    if isinstance(kind, FailureKind):
        return kind
    if isinstance(exc, (ValidationError, NotFoundError)):
        return FailureKind.PERMANENT
    # IO, timeouts and unknown infrastructure problems are retried
    return FailureKind.TRANSIENT
