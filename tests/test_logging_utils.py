"""Tests for logging_utils module."""

import io
import logging

from flatctl.logging_utils import DETAIL_LOGGER_NAME, REPO_LOGGER_NAME, setup_logging


def _emit(stream_logger_name, level, message):
    logging.getLogger(stream_logger_name).log(level, message)


class TestSetupLogging:
    """Test debug channel selection."""

    def test_info_by_default(self):
        stream = io.StringIO()
        logger = setup_logging(0, stream=stream)

        logger.info("shown")
        logger.debug("hidden")

        assert stream.getvalue() == "F: shown\n"

    def test_single_verbose_enables_app_channel(self):
        stream = io.StringIO()
        setup_logging(1, stream=stream)

        _emit("flatctl", logging.DEBUG, "app")
        _emit(DETAIL_LOGGER_NAME, logging.DEBUG, "detail")
        _emit(REPO_LOGGER_NAME, logging.DEBUG, "repo")

        assert stream.getvalue() == "F: app\n"

    def test_double_verbose_enables_detail_channel(self):
        stream = io.StringIO()
        setup_logging(2, stream=stream)

        _emit(DETAIL_LOGGER_NAME, logging.DEBUG, "detail")

        assert stream.getvalue() == "F: detail\n"

    def test_verbosity_is_capped(self):
        stream = io.StringIO()
        setup_logging(7, stream=stream)

        _emit(DETAIL_LOGGER_NAME, logging.DEBUG, "detail")

        assert "F: detail" in stream.getvalue()

    def test_repo_channel(self):
        stream = io.StringIO()
        setup_logging(0, repo_verbose=True, stream=stream)

        _emit(REPO_LOGGER_NAME, logging.DEBUG, "repo")
        _emit("flatctl", logging.DEBUG, "app")

        assert stream.getvalue() == "F: repo\n"

    def test_reconfiguring_replaces_handler(self):
        first = io.StringIO()
        second = io.StringIO()
        setup_logging(0, stream=first)
        logger = setup_logging(0, stream=second)

        logger.info("once")

        assert first.getvalue() == ""
        assert second.getvalue() == "F: once\n"
        assert len([h for h in logger.handlers if not isinstance(h, logging.NullHandler)]) == 1
