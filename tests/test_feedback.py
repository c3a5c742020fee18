"""FeedbackLoop state machine and its log/suggest side effects."""

from datetime import datetime

import pytest

from conftest import FakeLogStore, FakeSuggester
from focus_engine.config import FALLBACK_BREAK_SUGGESTION
from focus_engine.errors import InvalidRating, NoticeKind
from focus_engine.feedback import CompletedSessionInfo, FeedbackLoop, FeedbackState
from focus_engine.services import time_of_day


def make_loop(**kwargs):
    notices = []
    defaults = dict(
        suggester=FakeSuggester(),
        log_store=FakeLogStore(),
        user_id="alice",
        now=lambda: datetime(2026, 2, 11, 22, 15),
        on_notice=notices.append,
    )
    defaults.update(kwargs)
    return FeedbackLoop(**defaults), notices


class TestTimeOfDay:
    @pytest.mark.parametrize("hour,bucket", [
        (4, "night"), (5, "morning"), (11, "morning"), (12, "afternoon"),
        (16, "afternoon"), (17, "evening"), (20, "evening"), (21, "night"), (0, "night"),
    ])
    def test_buckets(self, hour, bucket):
        assert time_of_day(datetime(2026, 1, 1, hour)) == bucket


class TestFeedbackLoop:
    def test_begin_opens_prompt(self):
        loop, _ = make_loop()
        loop.begin(CompletedSessionInfo(25, "t1", "Write"))
        assert loop.state is FeedbackState.AWAITING_RATING
        assert loop.prompt_pending
        assert loop.active

    def test_begin_twice_rejected(self):
        loop, _ = make_loop()
        loop.begin(CompletedSessionInfo(25))
        with pytest.raises(RuntimeError):
            loop.begin(CompletedSessionInfo(25))

    @pytest.mark.asyncio
    async def test_submit_logs_and_suggests(self):
        store = FakeLogStore()
        suggester = FakeSuggester("Do ten squats.")
        loop, notices = make_loop(log_store=store, suggester=suggester)
        loop.begin(CompletedSessionInfo(30, "t1", "Write"))

        result = await loop.submit(2)

        assert result.rating == 2
        assert result.logged is True
        assert result.suggestion == "Do ten squats."
        assert loop.state is FeedbackState.IDLE
        assert store.records[0].time_of_day == "night"
        assert suggester.calls == [("Write", 30)]
        assert [n.kind for n in notices] == [NoticeKind.FOCUS_RATED]

    @pytest.mark.asyncio
    async def test_submit_without_prompt(self):
        loop, _ = make_loop()
        with pytest.raises(RuntimeError):
            await loop.submit(3)

    @pytest.mark.asyncio
    async def test_invalid_rating(self):
        loop, _ = make_loop()
        loop.begin(CompletedSessionInfo(25))
        with pytest.raises(InvalidRating):
            await loop.submit(9)
        assert loop.prompt_pending

    @pytest.mark.asyncio
    async def test_both_failures_still_return_to_idle(self):
        loop, notices = make_loop(log_store=FakeLogStore(fail=True), suggester=FakeSuggester(fail=True))
        loop.begin(CompletedSessionInfo(25))

        result = await loop.submit(4)

        assert result.logged is False
        assert result.suggestion == FALLBACK_BREAK_SUGGESTION
        assert loop.state is FeedbackState.IDLE
        assert {n.kind for n in notices} == {NoticeKind.LOGGING_FAILED, NoticeKind.SUGGESTION_UNAVAILABLE}

    @pytest.mark.asyncio
    async def test_blank_suggestion_uses_fallback(self):
        loop, _ = make_loop(suggester=FakeSuggester("   "))
        assert await loop.suggest(None, 25) == FALLBACK_BREAK_SUGGESTION
        assert loop.is_suggesting is False
