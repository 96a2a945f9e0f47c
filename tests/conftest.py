import pytest

from .fixtures import make_ctx, make_engine


@pytest.fixture
def engine():
    return make_engine()


@pytest.fixture
def ctx():
    return make_ctx()
