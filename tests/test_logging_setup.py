import logging

import pytest

from shopit.logging_setup import HANDLER_NAME, setup_logging


@pytest.fixture
def root_logger():
    root = logging.getLogger()
    level, handlers = root.level, list(root.handlers)
    yield root
    root.setLevel(level)
    root.handlers[:] = handlers


def test_setup_logging_adds_one_named_handler(root_logger):
    setup_logging("debug")
    setup_logging("warning")

    named = [h for h in root_logger.handlers if h.get_name() == HANDLER_NAME]
    assert len(named) == 1
    assert root_logger.level == logging.WARNING
