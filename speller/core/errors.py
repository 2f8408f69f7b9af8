"""
Speller exception hierarchy.

Not-found and no-candidates conditions are hard failures surfaced to the
caller. Invalid state-machine transitions are never raised (they are reported
as a `transitioned` flag instead), and store errors propagate untouched.
"""

from __future__ import annotations


class SpellerError(Exception):
    """Base class for every error raised by the engine."""
    pass


class NotFoundError(SpellerError):
    """A referenced record does not exist."""

    def __init__(self, kind: str, record_id: str):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} not found: {record_id}")


class WordNotFoundError(NotFoundError):
    def __init__(self, word_id: str):
        super().__init__("Word", word_id)


class SessionNotFoundError(NotFoundError):
    def __init__(self, session_id: str):
        super().__init__("Session", session_id)


class LearnerNotFoundError(NotFoundError):
    def __init__(self, learner_id: str):
        super().__init__("Learner", learner_id)


class NoCandidatesError(SpellerError):
    """Word selection could not fill a mini-set."""
    pass


class SessionBusyError(SpellerError):
    """Another caller holds the lease on this session."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session is busy, try again: {session_id}")


class InvalidSubmissionError(SpellerError):
    """A request does not fit the session's current position."""
    pass
