"""
Studio kernel test configuration.

Kernel tests use MemoryStorage and function-scoped event loops.
PostgresStorage tests that need DATABASE_URL are skipped automatically when not set.
"""

import itertools

import pytest

from studio.kernel.blocks import load_block_library
from studio.kernel.mutations import MutationEngine


def sequential_ids(prefix: str = "c"):
    """Deterministic id factory: c1, c2, c3, ..."""
    counter = itertools.count(1)
    return lambda: f"{prefix}{next(counter)}"


@pytest.fixture
def registry():
    return load_block_library()


@pytest.fixture
def engine(registry):
    return MutationEngine(registry, id_factory=sequential_ids())


@pytest.fixture
def make_engine(registry):
    """Engine factory with deterministic ids; defaults to the block library."""

    def _make(reg=None, document=None, **kwargs):
        kwargs.setdefault("id_factory", sequential_ids())
        return MutationEngine(reg if reg is not None else registry, document, **kwargs)

    return _make
