import logging

from whoareyou.logging_setup import setup_logging


def test_setup_logging_is_idempotent():
    root = setup_logging('debug')
    handlers = list(root.handlers)

    setup_logging('WARNING')

    assert list(logging.getLogger().handlers) == handlers
    assert logging.getLogger().level == logging.WARNING
