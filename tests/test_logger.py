"""
Tests for core.logger
"""
import logging

from core.logger import logger


def test_logger_named_after_module():
    assert logger.name == "core.logger"
    assert logger is logging.getLogger("core.logger")
