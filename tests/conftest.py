import pytest

from event_fixtures import make_gateway


@pytest.fixture
def gateway():
    return make_gateway()
