"""Shared pytest fixtures: a controllable clock and in-memory ledgers."""

from __future__ import annotations

import pytest

from clock_in.ledger import Ledger
from clock_in.models import Tag
from clock_in.storage import MemoryStore
from helpers import FakeClock, at, default_tags


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(at(9))


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def tags() -> dict[str, Tag]:
    return {tag.name: tag for tag in default_tags()}


@pytest.fixture
def make_ledger(store, clock, tags):
    """Build a ledger over the default tags and the given segments, no repairs run."""
    created: list[Ledger] = []

    def factory(segments=()) -> Ledger:
        ledger = Ledger(store=store, clock=clock, segments=segments, tags=tags.values())
        created.append(ledger)
        return ledger

    yield factory
    for ledger in created:
        ledger.close()


@pytest.fixture
def ledger(make_ledger) -> Ledger:
    return make_ledger()
