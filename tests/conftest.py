import pytest

from solar_timeline.logger import reset_logger


@pytest.fixture(autouse=True)
def _clean_logger():
    yield
    reset_logger()
