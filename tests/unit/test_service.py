"""
Unit tests for the practice service (locking, checkpointing, validation).

Run: pytest tests/unit/test_service.py -v
"""

import pytest

from speller.core.errors import (
    InvalidSubmissionError,
    LearnerNotFoundError,
    SessionBusyError,
    SessionNotFoundError,
    WordNotFoundError,
)
from speller.core.models import MiniSetAction, NextStep, SessionState
from speller.session.service import PracticeService

PRESET = ["w-their", "w-friend", "w-because", "w-people", "w-little"]


@pytest.fixture
def service(stores, settings, rng):
    return PracticeService(stores, settings=settings, rng=rng)


def _spell_current(service, store, session_id, typed=None):
    state = service.get_state(session_id)
    word_id = state["current_word_ids"][state["word_index"]]
    return service.submit(session_id, word_id, typed or store.get_word(word_id).text, 800)


class TestStart:
    def test_unknown_learner(self, service):
        with pytest.raises(LearnerNotFoundError):
            service.start("nobody")

    def test_starts_from_stored_learner(self, service, store, learner):
        result = service.start(learner.id)
        state = service.get_state(result.session_id)
        assert state["state"] == SessionState.IN_MINISET.value
        assert state["rating"] == 1500
        assert state["tier"] == 3
        # Capped by the hardest tier in the bank
        assert state["max_tier"] == 4
        assert store.load_snapshot(result.session_id) is not None

    def test_preset_words_keep_their_order(self, service, learner):
        result = service.start(learner.id, ["w-phone", "w-watch"])
        assert result.current_word.id == "w-phone"

    @pytest.mark.parametrize(
        "word_ids",
        [
            PRESET + ["w-watch"],
            ["w-their", "w-their"],
        ],
    )
    def test_malformed_preset(self, service, learner, word_ids):
        with pytest.raises(InvalidSubmissionError):
            service.start(learner.id, word_ids)

    def test_preset_with_unknown_word(self, service, learner):
        with pytest.raises(WordNotFoundError):
            service.start(learner.id, ["w-their", "w-missing"])

    def test_assessment_flag_is_checkpointed(self, service, learner):
        result = service.start(learner.id, PRESET, assessment=True)
        assert service.get_state(result.session_id)["assessment_mode"] is True


class TestSubmit:
    def test_wrong_word_is_rejected(self, service, store, learner):
        session_id = service.start(learner.id, PRESET).session_id
        with pytest.raises(InvalidSubmissionError):
            service.submit(session_id, "w-friend", "friend")
        # The lease is released even when the call fails
        assert store.acquire_lock(session_id, 1000) is not None

    def test_submit_advances_checkpoint(self, service, store, learner):
        session_id = service.start(learner.id, PRESET).session_id
        result = service.submit(session_id, "w-their", "their", 700)
        assert result.next_step == NextStep.NEXT_WORD
        assert store.load_snapshot(session_id).word_index == 1

    def test_diagnostic_submit_keeps_position(self, service, learner):
        session_id = service.start(learner.id, PRESET).session_id
        result = service.submit(session_id, "w-their", "thier", advance=False)
        assert result.next_step == NextStep.RETRY
        assert service.get_state(session_id)["word_index"] == 0

    def test_unknown_session(self, service):
        with pytest.raises(SessionNotFoundError):
            service.submit("missing", "w-their", "their")


class TestLocking:
    def test_busy_session(self, service, store, learner, settings):
        session_id = service.start(learner.id, PRESET).session_id
        store.acquire_lock(session_id, settings.session_lock_ttl_ms)
        with pytest.raises(SessionBusyError):
            service.submit(session_id, "w-their", "their")

    def test_expired_lease_is_taken_over(self, service, store, learner, settings, clock):
        session_id = service.start(learner.id, PRESET).session_id
        store.acquire_lock(session_id, settings.session_lock_ttl_ms)
        clock.advance(seconds=31)
        assert service.submit(session_id, "w-their", "their").correct


class TestLifecycle:
    def test_full_session(self, service, store, learner):
        session_id = service.start(learner.id, PRESET).session_id
        for _ in range(4):
            assert _spell_current(service, store, session_id).next_step == NextStep.NEXT_WORD
        result = _spell_current(service, store, session_id, typed="litle")
        assert result.next_step == NextStep.BREAK
        assert result.break_summary.missed[0].word == "little"

        completion = service.complete_mini_set(session_id, MiniSetAction.CONTINUE)
        assert completion.transitioned
        assert len(completion.next_words) == 5

        finish = service.finish(session_id)
        assert finish.transitioned
        assert finish.attempts_total == 5
        assert store.load_snapshot(session_id) is None
        assert service.get_state(session_id)["state"] == SessionState.COMPLETE.value

    def test_rebuild_without_checkpoint(self, service, store, learner):
        session_id = service.start(learner.id, PRESET).session_id
        service.submit(session_id, "w-their", "their")
        service.submit(session_id, "w-friend", "frend")
        store.delete_snapshot(session_id)

        state = service.get_state(session_id)
        assert state["word_index"] == 2
        assert len(state["attempts"]) == 2
        assert service.submit(session_id, "w-because", "because").correct

    def test_rebuild_at_a_break(self, service, store, learner):
        session_id = service.start(learner.id, PRESET).session_id
        for _ in range(5):
            _spell_current(service, store, session_id)
        store.delete_snapshot(session_id)

        assert service.get_state(session_id)["state"] == SessionState.BREAK.value
        assert service.complete_mini_set(session_id).transitioned

    def test_finish_twice_is_a_no_op(self, service, learner):
        session_id = service.start(learner.id, PRESET).session_id
        assert service.finish(session_id).transitioned
        assert service.finish(session_id).transitioned is False
