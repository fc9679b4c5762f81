"""Unit tests for SessionEngine reconciliation."""

import asyncio

import pytest
from unittest.mock import MagicMock, patch

from connect_auth.schemas.auth import Subject
from connect_auth.session.engine import SessionEngine, SessionState, EngineState
from tests.fakes import FakeProvider


@pytest.fixture
def engine(fake_provider, session_store):
    return SessionEngine(fake_provider, session_store)


class TestStartup:
    def test_initial_state(self, engine):
        assert engine.status is SessionState.INITIALIZING
        assert engine.state == EngineState(subject=None, loading=True)

    @pytest.mark.asyncio
    async def test_first_notification_ends_loading(self, engine):
        await engine.start()
        try:
            assert engine.loading is False
            assert engine.status is SessionState.UNAUTHENTICATED
        finally:
            await engine.close()

    @pytest.mark.asyncio
    async def test_loading_never_reverts(self, engine, fake_provider, sample_subject):
        seen = []
        engine.subscribe(lambda state: seen.append(state.loading))

        async with engine:
            for subject in [sample_subject, None, sample_subject, None, None]:
                fake_provider.emit(subject)
                await engine.settle()

        assert seen[0] is False
        assert all(loading is False for loading in seen)

    @pytest.mark.asyncio
    async def test_start_twice_rejected(self, engine):
        async with engine:
            with pytest.raises(RuntimeError):
                await engine.start()

    @pytest.mark.asyncio
    async def test_single_subscription_released_on_close(self, engine, fake_provider):
        await engine.start()
        assert fake_provider.subscriber_count == 1

        await engine.close()
        await engine.close()

        assert fake_provider.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_subscription_released_when_body_raises(self, engine, fake_provider):
        with pytest.raises(ValueError):
            async with engine:
                raise ValueError("boom")
        assert fake_provider.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_failed_start_stops_worker(self, session_store):
        class RefusingProvider(FakeProvider):
            def subscribe_auth_state(self, callback):
                raise RuntimeError("provider unavailable")

        engine = SessionEngine(RefusingProvider(), session_store)

        with pytest.raises(RuntimeError):
            await engine.start()

        assert engine._worker.done()
        assert engine.started is False


class TestNotifications:
    @pytest.mark.asyncio
    async def test_subject_commits_and_writes_record(self, engine, fake_provider, session_store, sample_subject):
        async with engine:
            fake_provider.emit(sample_subject)
            await engine.settle()

            assert engine.user == sample_subject
            assert engine.status is SessionState.AUTHENTICATED
            assert session_store.read().subject_id == "u1"

    @pytest.mark.asyncio
    async def test_none_without_record_clears_without_recovery(self, engine, fake_provider):
        with patch.object(engine, "refresh_session", wraps=engine.refresh_session) as refresh:
            async with engine:
                fake_provider.emit(None)
                await engine.settle()

                assert engine.user is None
                refresh.assert_not_called()

    @pytest.mark.asyncio
    async def test_none_with_record_recovers_once(self, engine, fake_provider, session_store, sample_subject):
        session_store.write("u1")
        fake_provider.snapshot = sample_subject
        fake_provider.replay_none = True

        with patch.object(engine, "refresh_session", wraps=engine.refresh_session) as refresh:
            await engine.start()
            try:
                refresh.assert_called_once()
                assert engine.user == sample_subject
                assert engine.loading is False
                assert engine.status is SessionState.AUTHENTICATED
            finally:
                await engine.close()

    @pytest.mark.asyncio
    async def test_recovery_with_no_snapshot_keeps_state_and_record(
        self, engine, fake_provider, session_store, sample_subject,
    ):
        async with engine:
            fake_provider.emit(sample_subject)
            await engine.settle()

            fake_provider.snapshot = None
            fake_provider.emit(None)
            await engine.settle()

            assert engine.user == sample_subject
            assert session_store.exists()

    @pytest.mark.asyncio
    async def test_recovery_on_reload_with_no_snapshot(self, engine, session_store):
        session_store.write("u1")

        async with engine:
            assert engine.user is None
            assert engine.loading is False
            assert engine.status is SessionState.UNAUTHENTICATED
            assert session_store.exists()

    @pytest.mark.asyncio
    async def test_recovery_failure_is_logged_not_raised(self, session_store, sample_subject):
        class BrokenSnapshot(FakeProvider):
            @property
            def current_subject(self):
                if self.broken:
                    raise RuntimeError("snapshot unavailable")
                return self.snapshot

        provider = BrokenSnapshot()
        provider.broken = False
        engine = SessionEngine(provider, session_store)

        async with engine:
            provider.emit(sample_subject)
            await engine.settle()

            provider.broken = True
            provider.emit(None)
            await engine.settle()

            assert engine.user == sample_subject
            assert engine.status is SessionState.AUTHENTICATED

    @pytest.mark.asyncio
    async def test_notifications_are_serialized(self, engine, fake_provider, session_store, sample_subject):
        other = Subject(subject_id="u2", email="b@x.com")
        session_store.write("u1")
        order = []
        gate = asyncio.Event()

        async def slow_refresh():
            order.append("recovery-start")
            await gate.wait()
            order.append("recovery-end")

        async with engine:
            with patch.object(engine, "refresh_session", side_effect=slow_refresh):
                engine.subscribe(lambda state: order.append(state.subject.subject_id if state.subject else None))
                fake_provider.emit(None)
                fake_provider.emit(other)
                await asyncio.sleep(0)
                await asyncio.sleep(0)

                assert order == ["recovery-start"]
                gate.set()
                await engine.settle()

        assert order == ["recovery-start", "recovery-end", "u2"]

    @pytest.mark.asyncio
    async def test_notifications_after_close_are_ignored(self, engine, fake_provider, sample_subject):
        await engine.start()
        await engine.close()

        fake_provider.emit(sample_subject)

        assert engine.user is None


class TestExplicitTransitions:
    @pytest.mark.asyncio
    async def test_end_session_clears_everything(self, engine, fake_provider, session_store, sample_subject):
        async with engine:
            fake_provider.emit(sample_subject)
            await engine.settle()

            await engine.end_session()

            assert engine.user is None
            assert not session_store.exists()
            assert engine.status is SessionState.UNAUTHENTICATED

    @pytest.mark.asyncio
    async def test_end_session_waits_for_pending_notifications(
        self, engine, fake_provider, session_store, sample_subject,
    ):
        async with engine:
            fake_provider.emit(sample_subject)
            fake_provider.emit(None)

            await engine.end_session()

            assert engine.user is None
            assert engine.status is SessionState.UNAUTHENTICATED
            assert not session_store.exists()

            # A late "nobody" finds no marker and does not recover
            with patch.object(engine, "refresh_session", wraps=engine.refresh_session) as refresh:
                fake_provider.emit(None)
                await engine.settle()
                refresh.assert_not_called()
            assert engine.user is None

    @pytest.mark.asyncio
    async def test_end_session_before_start(self, engine, session_store, sample_subject):
        session_store.write(sample_subject.subject_id)

        await engine.end_session()

        assert not session_store.exists()
        assert engine.status is SessionState.UNAUTHENTICATED

    @pytest.mark.asyncio
    async def test_refresh_session_commits_snapshot(self, engine, fake_provider, session_store, sample_subject):
        async with engine:
            fake_provider.snapshot = sample_subject
            assert await engine.refresh_session() == sample_subject
            assert engine.user == sample_subject
            assert session_store.read().subject_id == "u1"

    def test_listener_failures_are_contained(self, engine, sample_subject):
        good = MagicMock()
        engine.subscribe(MagicMock(side_effect=RuntimeError("boom")))
        engine.subscribe(good)

        engine._commit(sample_subject, SessionState.AUTHENTICATED)

        good.assert_called_once()
