"""
Session State Machine.

IDLE -> IN_MINISET -> BREAK -> IN_MINISET (loop) ... -> COMPLETE

Actions that do not apply to the current state are ignored. Callers learn
about it from the returned `transitioned` flag instead of an exception.
"""

from __future__ import annotations

from loguru import logger

from speller.core.models import SessionAction, SessionState

DEFAULT_MINI_SET_SIZE = 5


def next_state(
    state: SessionState,
    word_index: int,
    action: SessionAction,
    mini_set_size: int = DEFAULT_MINI_SET_SIZE,
) -> tuple[SessionState, int, bool]:
    """
    Pure transition function.

    Returns:
        (new_state, new_word_index, transitioned)
    """
    if state == SessionState.IDLE:
        if action == SessionAction.START:
            return SessionState.IN_MINISET, 0, True

    elif state == SessionState.IN_MINISET:
        if action == SessionAction.SUBMIT_WORD:
            index = word_index + 1
            if index >= mini_set_size:
                return SessionState.BREAK, index, True
            return SessionState.IN_MINISET, index, True
        if action == SessionAction.REACH_BREAK:
            return SessionState.BREAK, word_index, True

    elif state == SessionState.BREAK:
        if action == SessionAction.CONTINUE:
            return SessionState.IN_MINISET, 0, True
        if action == SessionAction.FINISH:
            return SessionState.COMPLETE, word_index, True

    # COMPLETE is terminal
    return state, word_index, False


class SessionStateMachine:
    """Mutable wrapper around `next_state` for callers that keep a machine around."""

    def __init__(
        self,
        state: SessionState = SessionState.IDLE,
        word_index: int = 0,
        mini_set_size: int = DEFAULT_MINI_SET_SIZE,
    ):
        self.state = state
        self.word_index = word_index
        self.mini_set_size = mini_set_size

    def transition(self, action: SessionAction) -> bool:
        """Apply `action`; returns False (and changes nothing) if it does not apply."""
        state, index, transitioned = next_state(
            self.state, self.word_index, action, self.mini_set_size
        )
        if not transitioned:
            logger.warning(f"Ignored {action.value} in state {self.state.value}")
            return False
        self.state = state
        self.word_index = index
        return True

    def sync(self, state: SessionState, word_index: int) -> None:
        """Resynchronize with a loaded snapshot."""
        self.state = state
        self.word_index = word_index

    def reset(self) -> None:
        self.state = SessionState.IDLE
        self.word_index = 0

    @property
    def is_complete(self) -> bool:
        return self.state == SessionState.COMPLETE
