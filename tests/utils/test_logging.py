"""Tests for utils/logging.py - root logger configuration."""

import logging

import pytest

from utils.logging import HANDLER_NAME, setup_logging


@pytest.fixture
def root_logger():
    root = logging.getLogger()
    level, handlers = root.level, list(root.handlers)
    yield root
    root.setLevel(level)
    root.handlers[:] = handlers


class TestSetupLogging:

    def test_sets_level(self, root_logger):
        setup_logging("debug")

        assert root_logger.level == logging.DEBUG

    def test_adds_one_handler(self, root_logger):
        setup_logging()
        setup_logging("WARNING")

        named = [h for h in root_logger.handlers if h.get_name() == HANDLER_NAME]
        assert len(named) == 1
        assert root_logger.level == logging.WARNING
