"""Tests for session state machine and store."""

import asyncio

import pytest

from policybot.core.session.models import DocumentKind, UserSession
from policybot.core.session.state import (
    STEP_SEQUENCE,
    Step,
    is_document_step,
    next_step,
    previous_step,
)
from policybot.core.session.store import SessionStore


class TestStep:
    """Test step ordering."""

    def test_sequence_order(self):
        """Test the fixed order of steps."""
        assert [step.value for step in STEP_SEQUENCE] == [
            "start",
            "awaiting_first_document",
            "confirming_first_document",
            "awaiting_second_document",
            "confirming_second_document",
            "confirming_price",
            "generating_deliverable",
            "completed",
        ]

    def test_next_step(self):
        assert next_step(Step.START) == Step.AWAITING_FIRST_DOCUMENT
        assert next_step(Step.CONFIRMING_PRICE) == Step.GENERATING_DELIVERABLE

    def test_next_step_saturates(self):
        """Test advancing from the terminal step stays there."""
        assert next_step(Step.COMPLETED) == Step.COMPLETED

    def test_previous_step(self):
        assert previous_step(Step.CONFIRMING_FIRST_DOCUMENT) == Step.AWAITING_FIRST_DOCUMENT

    def test_previous_step_saturates(self):
        """Test retreating from the initial step stays there."""
        assert previous_step(Step.START) == Step.START

    def test_is_document_step(self):
        assert is_document_step(Step.AWAITING_SECOND_DOCUMENT)
        assert not is_document_step(Step.CONFIRMING_SECOND_DOCUMENT)


class TestUserSession:
    """Test UserSession model."""

    def test_defaults(self):
        session = UserSession(user_id=7)

        assert session.step == Step.START
        assert session.transcript == []
        assert session.first_document is None
        assert session.second_document is None
        assert session.awaiting_manual_input is False

    def test_advance_through_all_steps(self):
        """Test step is always a member of the sequence while advancing."""
        session = UserSession()

        for _ in range(len(STEP_SEQUENCE) + 3):
            session.advance()
            assert session.step in STEP_SEQUENCE

        assert session.step == Step.COMPLETED

    def test_retreat_at_start_is_noop(self):
        session = UserSession()

        assert session.retreat() == Step.START
        assert session.step == Step.START

    def test_advance_at_completed_is_noop(self):
        session = UserSession(step=Step.COMPLETED)

        assert session.advance() == Step.COMPLETED

    def test_documents_by_kind(self):
        session = UserSession()

        session.set_document(DocumentKind.PASSPORT, {"Name": "JOHN"})
        session.set_document(DocumentKind.DRIVERS_LICENSE, "typed manually")

        assert session.first_document == {"Name": "JOHN"}
        assert session.second_document == "typed manually"
        assert session.get_document(DocumentKind.DRIVERS_LICENSE) == "typed manually"
        assert session.has_document(DocumentKind.PASSPORT)

    def test_clear_document(self):
        session = UserSession(first_document={"Name": "JOHN"})

        session.set_document(DocumentKind.PASSPORT, None)

        assert session.first_document is None
        assert not session.has_document(DocumentKind.PASSPORT)

    def test_transcript_append_and_replace(self):
        session = UserSession()

        session.add_to_transcript("hello", "user")
        session.add_to_transcript("hi there", "assistant")
        assert session.transcript == [
            {"role": "user", "content": "hello"},
            {"role": "assistant", "content": "hi there"},
        ]

        session.set_transcript([{"role": "user", "content": "replaced"}])
        assert session.transcript == [{"role": "user", "content": "replaced"}]

    def test_discard_last_reply(self):
        session = UserSession()
        session.add_to_transcript("photo", "user")
        session.add_to_transcript("unsent", "assistant")

        session.discard_last_reply()
        assert session.transcript == [{"role": "user", "content": "photo"}]

        # Nothing to drop after a user entry
        session.discard_last_reply()
        assert session.transcript == [{"role": "user", "content": "photo"}]

    def test_get_transcript_returns_copy(self):
        session = UserSession()
        session.add_to_transcript("hello", "user")

        copy = session.get_transcript()
        copy.append({"role": "assistant", "content": "not stored"})

        assert len(session.transcript) == 1

    def test_to_dict(self):
        session = UserSession(user_id=7, step=Step.CONFIRMING_PRICE)

        d = session.to_dict()

        assert d["user_id"] == 7
        assert d["step"] == "confirming_price"
        assert d["transcript_length"] == 0


class TestSessionStore:
    """Test in-memory session store."""

    def test_lazy_creation(self):
        store = SessionStore()

        assert 42 not in store
        session = store.get(42)

        assert session.user_id == 42
        assert session.step == Step.START
        assert 42 in store
        assert len(store) == 1

    def test_get_returns_same_session(self):
        store = SessionStore()

        first = store.get(42)
        first.advance()

        assert store.get(42) is first
        assert store.get(42).step == Step.AWAITING_FIRST_DOCUMENT

    def test_peek_does_not_create(self):
        store = SessionStore()

        assert store.peek(42) is None
        assert len(store) == 0

    def test_lock_per_user(self):
        store = SessionStore()

        assert store.lock(1) is store.lock(1)
        assert store.lock(1) is not store.lock(2)
        assert isinstance(store.lock(1), asyncio.Lock)

    @pytest.mark.asyncio
    async def test_concurrent_first_contact_creates_one_session(self):
        """Test concurrent lookups for a new user share one session."""
        store = SessionStore()

        async def lookup():
            await asyncio.sleep(0)
            return store.get(99)

        sessions = await asyncio.gather(*(lookup() for _ in range(10)))

        assert all(s is sessions[0] for s in sessions)
        assert len(store) == 1
