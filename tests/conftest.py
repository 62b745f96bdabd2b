"""Shared fixtures for ResourceV2 tests."""

import itertools

import pytest


@pytest.fixture
def sequential_uids():
    """Deterministic identifier source yielding uid-0, uid-1, ..."""
    counter = itertools.count()
    return lambda: f"uid-{next(counter)}"
