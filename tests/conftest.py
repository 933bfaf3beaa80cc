import pytest

from detour.low.core import SearchContext
from search_helpers import FakeClock, Recorder


@pytest.fixture(scope="function")
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture(scope="function")
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(scope="function")
def context() -> SearchContext:
    return SearchContext(max_fruit_percent=10.0)
