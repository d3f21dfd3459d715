"""
Tutor Errors

Only upstream failures are surfaced to callers as recoverable errors.
Bad input is reported so the caller can re-prompt; everything else degrades
to a sensible default inside the engine.
"""

from typing import List, Optional


class TutorError(Exception):
    """Base class for errors raised by the tutoring engine."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.message = message
        self.original_error = original_error
        super().__init__(message)


class InvalidInputError(TutorError):
    """Empty utterance or otherwise unusable input. Caller should re-prompt."""


class InvalidProblemError(InvalidInputError):
    """Problem text failed parsing; the session cannot start."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = list(errors or [])


class UpstreamUnavailableError(TutorError):
    """Completion or image service failed or timed out. Safe to retry the same turn."""
