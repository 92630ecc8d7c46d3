import pytest

from storytrace.config import Settings
from storytrace.main import create_app


@pytest.fixture
def settings(tmp_path):
    return Settings(TRACE_DATA_DIR=str(tmp_path / "trace"), LOG_JSON=False)


@pytest.fixture
def app(settings):
    return create_app(settings)
