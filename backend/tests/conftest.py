import pytest

from helpers import FakeClock, make_settings


@pytest.fixture
def config():
    return make_settings()


@pytest.fixture
def clock():
    return FakeClock()
