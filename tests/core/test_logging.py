"""Tests for somnus.core.utils.logging."""

import os

from loguru import logger

from somnus.core.utils.logging import setup_logging


class TestSetupLogging:
    def test_file_sink(self, tmp_dir):
        log_path = os.path.join(tmp_dir, "somnus.log")
        setup_logging(level="DEBUG", log_file=log_path)
        logger.debug("hypnogram built")
        logger.remove()
        with open(log_path) as f:
            assert "hypnogram built" in f.read()

    def test_level_filters(self, tmp_dir):
        log_path = os.path.join(tmp_dir, "somnus.log")
        setup_logging(level="WARNING", log_file=log_path)
        logger.debug("too chatty")
        logger.warning("empty distribution")
        logger.remove()
        with open(log_path) as f:
            content = f.read()
        assert "too chatty" not in content
        assert "empty distribution" in content
