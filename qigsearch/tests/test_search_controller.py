"""Tests for search sessions: chunking, early exit, isolation and cancellation."""

import pytest
from loguru import logger

from qigsearch.daemon.error_handling import (
    BatchValidationError, EmptyBatchError, SearchAlreadyRunningError, WordCountError
)
from qigsearch.daemon.search import (
    CancellationToken, RateSampler, SearchState, format_runtime
)

from .helpers import FakeClock, MATCH_ADDRESS, StubDeriver, StubScorer, make_phrase


class TestBatchSessions:
    """Full sessions driven through run_batch."""

    @pytest.mark.asyncio
    async def test_completes_without_match(self, make_controller):
        controller = make_controller()
        phrases = [make_phrase(i) for i in range(25)]

        outcome = await controller.run_batch(phrases)

        assert outcome.state == SearchState.COMPLETED
        assert controller.state == SearchState.COMPLETED
        assert outcome.tested == 25
        assert outcome.to_dict()['stopped'] is False

    @pytest.mark.asyncio
    async def test_stops_at_first_match(self, make_controller):
        """No phrase after the matching one is derived."""
        phrases = [make_phrase(i) for i in range(25)]
        deriver = StubDeriver(matches={phrases[13]: MATCH_ADDRESS})
        controller = make_controller(deriver=deriver)

        outcome = await controller.run_batch(phrases)

        assert outcome.state == SearchState.FOUND
        assert len(deriver.calls) == 14
        assert deriver.calls[-1] == phrases[13]
        assert outcome.to_dict() == {
            'found': True,
            'phrase': phrases[13],
            'address': MATCH_ADDRESS,
            'score': 10.0,
        }
        assert controller.status()['found']['match'] is True

    @pytest.mark.asyncio
    async def test_match_is_never_stored_as_candidate(self, make_controller, store):
        phrase = make_phrase(0)
        controller = make_controller(
            deriver=StubDeriver(matches={phrase: MATCH_ADDRESS}),
            scorer=StubScorer({phrase: 99.0})
        )

        await controller.run_batch([phrase])

        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_threshold_is_inclusive(self, make_controller, store):
        at, below = make_phrase(1), make_phrase(2)
        controller = make_controller(scorer=StubScorer({at: 75.0, below: 74.99}))

        outcome = await controller.run_batch([at, below])

        assert outcome.high_phi_count == 1
        assert [c.phrase for c in store.list()] == [at]
        assert [c.phrase for c in outcome.candidates] == [at]

    @pytest.mark.asyncio
    async def test_derivation_failure_is_isolated(self, make_controller):
        phrases = [make_phrase(i) for i in range(5)]
        controller = make_controller(deriver=StubDeriver(failures={phrases[2]}))

        outcome = await controller.run_batch(phrases)

        assert outcome.state == SearchState.COMPLETED
        assert outcome.tested == 4
        assert outcome.errors == 1

        status = controller.status()
        assert status['errors']['total_errors'] == 1
        assert len(status['events']) == 1
        assert status['events'][0]['service'] == "deriver"

    @pytest.mark.asyncio
    async def test_malformed_batch_does_no_work(self, make_controller):
        deriver = StubDeriver()
        controller = make_controller(deriver=deriver)

        with pytest.raises(BatchValidationError) as exc_info:
            await controller.run_batch([make_phrase(0), "only three words", make_phrase(1)])

        assert exc_info.value.to_dict()['invalid'] == [{'index': 1, 'expected': 12, 'actual': 3}]
        assert deriver.calls == []
        assert controller.state == SearchState.IDLE

    @pytest.mark.asyncio
    async def test_blank_batch_rejected(self, make_controller):
        controller = make_controller()
        with pytest.raises(EmptyBatchError):
            await controller.run_batch(["", "   "])


class TestCancellation:
    """Stop requests take effect only between chunks."""

    @pytest.mark.asyncio
    async def test_stop_finishes_current_chunk(self, make_controller):
        holder = {}

        def stop_on_third(count):
            if count == 3:
                holder['controller'].stop()

        deriver = StubDeriver(on_derive=stop_on_third)
        controller = make_controller(deriver=deriver, chunk_size=10)
        holder['controller'] = controller

        outcome = await controller.run_batch([make_phrase(i) for i in range(30)])

        assert outcome.state == SearchState.STOPPED
        assert outcome.tested == 10
        assert len(deriver.calls) == 10
        assert outcome.to_dict()['stopped'] is True

    @pytest.mark.asyncio
    async def test_pre_cancelled_token_tests_nothing(self, make_controller):
        token = CancellationToken()
        token.cancel()
        controller = make_controller()

        outcome = await controller.run_batch([make_phrase(0)], token=token)

        assert outcome.state == SearchState.STOPPED
        assert outcome.tested == 0

    @pytest.mark.asyncio
    async def test_stop_when_idle_is_noop(self, make_controller):
        controller = make_controller()
        assert controller.stop() is False
        assert controller.state == SearchState.IDLE


class TestBackgroundSessions:

    @pytest.mark.asyncio
    async def test_second_session_rejected_while_running(self, make_controller):
        controller = make_controller(chunk_size=1, chunk_yield_ms=50)
        controller.start([make_phrase(i) for i in range(5)])
        assert controller.is_running

        with pytest.raises(SearchAlreadyRunningError):
            await controller.run_batch([make_phrase(99)])
        with pytest.raises(SearchAlreadyRunningError):
            controller.start([make_phrase(98)])

        await controller.close()
        assert controller.state == SearchState.STOPPED

    @pytest.mark.asyncio
    async def test_background_session_runs_to_completion(self, make_controller, store):
        phrase = make_phrase(3)
        controller = make_controller(scorer=StubScorer({phrase: 80.0}))
        controller.start([make_phrase(i) for i in range(12)])

        outcome = await controller.wait()

        assert outcome.state == SearchState.COMPLETED
        assert outcome.tested == 12
        assert store.list()[0].phrase == phrase

    @pytest.mark.asyncio
    async def test_unexpected_error_is_logged_and_recorded(self, make_controller):
        class BrokenScorer:
            def score(self, phrase):
                raise RuntimeError("scorer exploded")

        messages = []
        sink_id = logger.add(messages.append, level="ERROR")
        try:
            controller = make_controller(scorer=BrokenScorer())
            controller.start([make_phrase(i) for i in range(3)])
            outcome = await controller.wait()
        finally:
            logger.remove(sink_id)

        assert outcome.state == SearchState.STOPPED
        assert outcome.errors == 1
        assert controller._task.exception() is None

        [event] = controller.status()['events']
        assert event['service'] == "search"
        assert event['error_type'] == "RuntimeError"
        assert "scorer exploded" in event['message']
        assert any("Search session aborted" in m for m in messages)

    @pytest.mark.asyncio
    async def test_new_session_resets_counters(self, make_controller):
        controller = make_controller()
        await controller.run_batch([make_phrase(i) for i in range(4)])
        outcome = await controller.run_batch([make_phrase(i) for i in range(2)])

        assert outcome.tested == 2
        assert controller.stats().tested == 2


class TestEvaluatePhrase:

    @pytest.mark.asyncio
    async def test_single_phrase_outside_session(self, make_controller, store):
        phrase = make_phrase(7)
        controller = make_controller(scorer=StubScorer({phrase: 90.0}))

        result = await controller.evaluate_phrase(f"  {phrase}  ")

        assert result.match is False
        assert result.phrase.text == phrase
        assert result.to_dict()['qigScore']['totalScore'] == 90.0
        assert len(store) == 1
        assert controller.state == SearchState.IDLE

    @pytest.mark.asyncio
    async def test_single_phrase_word_count(self, make_controller):
        controller = make_controller()
        with pytest.raises(WordCountError):
            await controller.evaluate_phrase("one two three")


class TestTelemetry:

    def test_rate_sampler_windows(self):
        sampler = RateSampler(window_s=1.0)
        sampler.reset(0.0)

        assert sampler.sample(5, 0.5) == 0.0
        assert sampler.sample(10, 2.0) == 5.0
        # Within the window the previous rate is reported
        assert sampler.sample(12, 2.5) == 5.0
        assert sampler.sample(22, 4.0) == 6.0

    def test_format_runtime(self):
        assert format_runtime(0) == "00:00:00"
        assert format_runtime(59.9) == "00:00:59"
        assert format_runtime(3725) == "01:02:05"
        assert format_runtime(-3) == "00:00:00"

    def test_stats_before_any_session(self, make_controller):
        stats = make_controller().stats()
        assert stats.to_dict() == {
            'tested': 0,
            'rate': 0.0,
            'highPhiCount': 0,
            'runtime': "00:00:00",
            'isSearching': False,
        }

    @pytest.mark.asyncio
    async def test_runtime_freezes_after_session(self, make_controller):
        clock = FakeClock(100.0)
        controller = make_controller(clock=clock)

        await controller.run_batch([make_phrase(i) for i in range(3)])
        clock.now = 5000.0
        stats = controller.stats()

        assert stats.runtime == "00:00:00"
        assert stats.rate == 0.0
        assert stats.is_searching is False
        assert stats.tested == 3
