import logging

import pytest


def pytest_configure(config):
    config.addinivalue_line('markers', 'slow: long integration runs (deselect with -m "not slow")')


@pytest.fixture(autouse=True)
def _reset_crowdflow_logger():
    """Drop handlers installed by `configure_logging` so they never outlive a captured stream."""
    yield
    log = logging.getLogger('crowdflow')
    for h in list(log.handlers):
        log.removeHandler(h)
    log.setLevel(logging.NOTSET)
