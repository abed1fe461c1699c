"""Shared fixtures for the QIG search tests."""

import pytest

from qigsearch.daemon.config import SearchConfig
from qigsearch.daemon.metrics import MetricsCollector
from qigsearch.daemon.search import SearchController
from qigsearch.daemon.store import CandidateStore
from qigsearch.daemon.targets import TargetRegistry

from .helpers import MATCH_ADDRESS, StubDeriver, StubScorer


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def store():
    return CandidateStore(capacity=100)


@pytest.fixture
def targets():
    registry = TargetRegistry()
    registry.add(MATCH_ADDRESS, "test")
    return registry


@pytest.fixture
def make_controller(store, targets, metrics):
    """Factory for controllers with stub collaborators and no chunk pause."""
    def factory(deriver=None, scorer=None, clock=None, **search):
        search.setdefault('chunk_yield_ms', 0)
        kwargs = {}
        if clock is not None:
            kwargs['clock'] = clock
        return SearchController(
            store=store,
            targets=targets,
            deriver=deriver or StubDeriver(),
            scorer=scorer or StubScorer(),
            config=SearchConfig(**search),
            metrics=metrics,
            **kwargs
        )
    return factory
