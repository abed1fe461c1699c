"""Search session controller.

Drives evaluation of single phrases and batches:
- Structural validation of the whole batch before any work starts
- Sequential validate -> derive -> match -> score -> store units
- Chunked batches with a short yield between chunks
- Cooperative cancellation checked at chunk boundaries
- Early exit the moment a derived address matches a target
- On-demand stats sampling (tested, rate, high-phi count, runtime)
"""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Any, Iterable, List, Optional

from loguru import logger

from .config import SearchConfig
from .deriver import AddressDeriver
from .error_handling import (
    DerivationError, ErrorAggregator, ErrorEvent, ErrorSeverity,
    SearchAlreadyRunningError
)
from .metrics import MetricsCollector, LatencyTimer, get_metrics
from .models import Candidate, Phrase, QIGScore, SearchStats, TargetAddress
from .scoring import HeuristicScorer
from .store import CandidateStore
from .targets import TargetRegistry
from .validator import PhraseValidator


class SearchState(Enum):
    """Lifecycle of a search session."""
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"
    FOUND = "found"
    COMPLETED = "completed"


class CancellationToken:
    """Advisory stop signal, honoured only between chunks."""

    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class RateSampler:
    """Throughput over windows of at least ``window_s`` seconds.

    Within a window the previously reported rate is returned unchanged.
    """

    def __init__(self, window_s: float = 1.0):
        self.window_s = window_s
        self.rate = 0.0
        self._last_count = 0
        self._last_time = 0.0

    def reset(self, now: float) -> None:
        self.rate = 0.0
        self._last_count = 0
        self._last_time = now

    def sample(self, count: int, now: float) -> float:
        elapsed = now - self._last_time
        if elapsed >= self.window_s:
            self.rate = round((count - self._last_count) / elapsed, 1)
            self._last_count = count
            self._last_time = now
        return self.rate


def format_runtime(seconds: float) -> str:
    """Format a duration as HH:MM:SS."""
    total = int(max(0.0, seconds))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


@dataclass
class UnitResult:
    """Outcome of evaluating one phrase."""
    phrase: Phrase
    address: str
    qig_score: QIGScore
    target: Optional[TargetAddress] = None
    candidate: Optional[Candidate] = None

    @property
    def match(self) -> bool:
        return self.target is not None

    @property
    def score(self) -> float:
        return self.qig_score.total_score

    def to_dict(self) -> Dict[str, Any]:
        return {
            'phrase': self.phrase.text,
            'address': self.address,
            'match': self.match,
            'score': self.score,
            'qigScore': self.qig_score.to_dict(),
        }


@dataclass
class SearchOutcome:
    """Aggregated result of a finished session."""
    state: SearchState
    tested: int
    high_phi_count: int
    candidates: List[Candidate] = field(default_factory=list)
    found: Optional[UnitResult] = None
    errors: int = 0

    def to_dict(self) -> Dict[str, Any]:
        if self.found is not None:
            return {
                'found': True,
                'phrase': self.found.phrase.text,
                'address': self.found.address,
                'score': self.found.score,
            }
        return {
            'tested': self.tested,
            'highPhiCandidates': self.high_phi_count,
            'candidates': [c.to_dict() for c in self.candidates],
            'errors': self.errors,
            'stopped': self.state == SearchState.STOPPED,
        }


class SearchController:
    """Runs at most one search session at a time over injected collaborators."""

    def __init__(self,
                 store: CandidateStore,
                 targets: TargetRegistry,
                 deriver: AddressDeriver,
                 scorer: Optional[HeuristicScorer] = None,
                 validator: Optional[PhraseValidator] = None,
                 config: Optional[SearchConfig] = None,
                 metrics: Optional[MetricsCollector] = None,
                 clock: Callable[[], float] = time.monotonic):
        """
        Initialize the search controller.

        Args:
            store: Candidate store receiving high-phi phrases
            targets: Registry of addresses to match
            deriver: Phrase -> address function
            scorer: Heuristic scorer
            validator: Structural phrase validator
            config: Chunking, threshold and telemetry settings
            metrics: Metrics collector, the process-wide one by default
            clock: Monotonic time source in seconds
        """
        self.store = store
        self.targets = targets
        self.deriver = deriver
        self.scorer = scorer or HeuristicScorer()
        self.validator = validator or PhraseValidator()
        self.config = config or SearchConfig()
        self.metrics = metrics or get_metrics()
        self.clock = clock

        self.errors = ErrorAggregator(window_size=self.config.event_log_size)
        self._sampler = RateSampler(self.config.rate_window_s)
        self._state = SearchState.IDLE
        self._token: Optional[CancellationToken] = None
        self._task: Optional[asyncio.Task] = None
        self._reset_session()

    @property
    def state(self) -> SearchState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == SearchState.RUNNING

    @property
    def found(self) -> Optional[UnitResult]:
        return self._found

    # Single evaluation

    async def evaluate_phrase(self, text: str) -> UnitResult:
        """
        Validate and evaluate one phrase outside of any session.

        Raises:
            WordCountError: phrase is not exactly twelve words
            DerivationError: the deriver failed
        """
        phrase = self.validator.validate_single(text)
        result = await self._evaluate(phrase)
        self.metrics.increment_counter("phrases.tested")
        return result

    # Sessions

    async def run_batch(self,
                        texts: Iterable[str],
                        token: Optional[CancellationToken] = None) -> SearchOutcome:
        """
        Run a full session over a batch and wait for its terminal state.

        Raises:
            SearchAlreadyRunningError: another session is running
            ValidationError: the batch is empty or any phrase is malformed
        """
        phrases = self._admit(texts)
        self._begin_session(token or CancellationToken(), len(phrases))
        return await self._run_session(phrases)

    def start(self, texts: Iterable[str]) -> CancellationToken:
        """Validate a batch and run its session in the background."""
        phrases = self._admit(texts)
        token = CancellationToken()
        self._begin_session(token, len(phrases))
        self._task = asyncio.create_task(self._run_session(phrases))
        return token

    def stop(self) -> bool:
        """Signal the running session to stop at the next chunk boundary."""
        if not self.is_running or self._token is None:
            return False
        self._token.cancel()
        logger.info("Search stop requested")
        return True

    async def wait(self) -> Optional[SearchOutcome]:
        """Wait for the background session, if any."""
        if self._task is None:
            return None
        return await self._task

    async def close(self) -> None:
        """Stop and await any background session."""
        self.stop()
        if self._task is not None and not self._task.done():
            await self._task

    # Telemetry

    def stats(self) -> SearchStats:
        """Sample session statistics now."""
        if self._started_at is None:
            return SearchStats()

        now = self.clock()
        running = self.is_running
        end = now if running or self._finished_at is None else self._finished_at
        rate = self._sampler.sample(self._tested, now) if running else 0.0

        return SearchStats(
            tested=self._tested,
            rate=rate,
            high_phi_count=self._high_phi_count,
            runtime=format_runtime(end - self._started_at),
            is_searching=running
        )

    def status(self) -> Dict[str, Any]:
        data = {
            'state': self._state.value,
            'stats': self.stats().to_dict(),
            'total': self._total,
            'errors': self.errors.get_error_summary(),
            'events': [e.to_dict() for e in self.errors.events()],
        }
        if self._found is not None:
            data['found'] = self._found.to_dict()
        return data

    # Internals

    def _admit(self, texts: Iterable[str]) -> List[Phrase]:
        if self.is_running:
            raise SearchAlreadyRunningError("A search session is already running")
        return self.validator.require_valid_batch(texts)

    def _reset_session(self) -> None:
        self._tested = 0
        self._high_phi_count = 0
        self._total = 0
        self._candidates: List[Candidate] = []
        self._found: Optional[UnitResult] = None
        self._started_at: Optional[float] = None
        self._finished_at: Optional[float] = None

    def _begin_session(self, token: CancellationToken, total: int) -> None:
        self._state = SearchState.IDLE
        self._reset_session()
        self.errors.clear()

        self._token = token
        self._total = total
        self._started_at = self.clock()
        self._sampler.reset(self._started_at)
        self._state = SearchState.RUNNING
        self.metrics.increment_counter("sessions.started")
        logger.info(f"Search session started: {total} phrases")

    async def _run_session(self, phrases: List[Phrase]) -> SearchOutcome:
        chunk_size = self.config.chunk_size
        pause = self.config.chunk_yield_ms / 1000

        try:
            for start in range(0, len(phrases), chunk_size):
                if self._token.cancelled:
                    self._state = SearchState.STOPPED
                    break

                for phrase in phrases[start:start + chunk_size]:
                    result = await self._evaluate_isolated(phrase)
                    if result is not None and result.match:
                        self._found = result
                        self._state = SearchState.FOUND
                        break

                if self._state == SearchState.FOUND:
                    break

                if start + chunk_size < len(phrases):
                    await asyncio.sleep(pause)
            else:
                self._state = SearchState.COMPLETED
        except Exception as e:
            logger.exception(f"Search session aborted after {self._tested} phrases: {e}")
            self.errors.record_error(ErrorEvent.from_exception(
                "search", e, ErrorSeverity.HIGH, tested=self._tested
            ))
            self.metrics.increment_counter("sessions.aborted")
            self._state = SearchState.STOPPED
        finally:
            if self._state == SearchState.RUNNING:
                # Interrupted by task cancellation
                self._state = SearchState.STOPPED
            self._finished_at = self.clock()

        outcome = SearchOutcome(
            state=self._state,
            tested=self._tested,
            high_phi_count=self._high_phi_count,
            candidates=list(self._candidates),
            found=self._found,
            errors=self.errors.total_errors
        )
        self.metrics.increment_counter(f"sessions.{self._state.value}")

        if self._state == SearchState.FOUND:
            logger.success(f"MATCH FOUND after {self._tested} phrases: {self._found.address}")
        else:
            logger.info(
                f"Search session {self._state.value}: {self._tested} tested, "
                f"{self._high_phi_count} high-phi, {outcome.errors} errors"
            )
        return outcome

    async def _evaluate_isolated(self, phrase: Phrase) -> Optional[UnitResult]:
        """Evaluate one unit, recording runtime failures instead of raising."""
        try:
            result = await self._evaluate(phrase)
        except DerivationError as e:
            logger.error(f"Derivation failed for phrase '{phrase.text[:30]}...': {e}")
            self.errors.record_error(ErrorEvent.from_exception(
                "deriver", e, ErrorSeverity.MEDIUM, phrase=phrase.text
            ))
            self.metrics.increment_counter("derive.error")
            return None

        self._tested += 1
        self.metrics.increment_counter("phrases.tested")
        if result.candidate is not None:
            self._high_phi_count += 1
            self._candidates.append(result.candidate)
        return result

    async def _evaluate(self, phrase: Phrase) -> UnitResult:
        loop = asyncio.get_running_loop()
        with LatencyTimer("derive", self.metrics):
            address = await loop.run_in_executor(None, self._derive, phrase)

        target = self.targets.match(address)
        with LatencyTimer("score", self.metrics):
            qig_score = self.scorer.score(phrase)

        candidate = None
        if target is None and qig_score.total_score >= self.config.high_phi_threshold:
            candidate = Candidate(phrase=phrase.text, address=address, qig_score=qig_score)
            self.store.add(candidate)
            self.metrics.increment_counter("candidates.admitted")
            logger.info(f"High-phi candidate {qig_score.total_score:.2f}: {phrase.text[:50]}")
        else:
            logger.debug(f"Tested {phrase.text[:30]}... ({qig_score.total_score:.2f})")

        return UnitResult(
            phrase=phrase,
            address=address,
            qig_score=qig_score,
            target=target,
            candidate=candidate
        )

    def _derive(self, phrase: Phrase) -> str:
        try:
            return self.deriver.derive(phrase)
        except DerivationError:
            raise
        except Exception as e:
            raise DerivationError(f"Address derivation failed: {e}") from e
