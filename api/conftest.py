"""
Shared pytest fixtures for api tests.
"""
import pytest
from django.core.cache import cache


@pytest.fixture(autouse=True)
def clear_cache():
    """Change-feed counters live in the cache; start every test from zero."""
    cache.clear()
    yield
    cache.clear()
