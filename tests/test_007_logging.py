"""
Unit tests for native_pack logging module.
Tests the logging API, output modes and trace IDs.
"""
import logging
import os
import shutil
import tempfile

import pytest

from native_pack.logging import BOTH, FILE, LOG_DIR_NAME, STDOUT, logger, setup_logging, NativePackLogger


@pytest.fixture
def temp_log_dir():
    """Create a temporary directory for log files"""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


def _reset():
    logger._logger.setLevel(logging.CRITICAL)
    for handler in logger._logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)
    logger._handlers_initialized = False
    logger._custom_log_path = None
    logger._output_mode = FILE
    logger._log_file = None
    logger.clear_trace_id()


@pytest.fixture
def cleanup_logger(tmp_path, monkeypatch):
    """Reset logger state before and after each test, with cwd in tmp_path"""
    monkeypatch.chdir(tmp_path)
    _reset()
    yield
    _reset()


class TestLoggingBasics:
    """Test basic logging functionality"""

    def test_logger_disabled_by_default(self, cleanup_logger):
        assert logger.getLevel() == logging.CRITICAL
        assert not logger.isEnabledFor(logging.DEBUG)

    def test_singleton_behavior(self, cleanup_logger):
        assert NativePackLogger() is logger

    def test_setup_logging_enables_debug(self, cleanup_logger):
        setup_logging(output=STDOUT)
        assert logger.level == logging.DEBUG
        assert logger.isEnabledFor(logging.DEBUG)

    def test_stdout_mode_no_file_created(self, cleanup_logger, tmp_path):
        setup_logging(output=STDOUT)
        assert logger.log_file is None
        assert not (tmp_path / LOG_DIR_NAME).exists()

    def test_default_file_created_in_log_folder(self, cleanup_logger, tmp_path):
        setup_logging()
        assert logger.output == FILE
        assert os.path.dirname(logger.log_file) == str(tmp_path / LOG_DIR_NAME)
        assert os.path.basename(logger.log_file).startswith("native_pack_")

    def test_invalid_output_mode_raises_error(self, cleanup_logger):
        with pytest.raises(ValueError, match="Invalid output mode"):
            setup_logging(output="syslog")


class TestLogOutput:
    """Test what ends up in the log file"""

    def test_custom_log_file_path_creates_directory(self, cleanup_logger, temp_log_dir):
        path = os.path.join(temp_log_dir, "nested", "pack.log")
        setup_logging(log_file_path=path)
        logger.info("packaging %s", "3.45.0")
        for handler in logger.handlers:
            handler.flush()

        with open(path, encoding="utf-8") as f:
            content = f.read()
        assert "[native_pack] packaging 3.45.0" in content
        assert "INFO" in content

    def test_both_mode_creates_file_and_stdout(self, cleanup_logger, temp_log_dir):
        setup_logging(output=BOTH, log_file_path=os.path.join(temp_log_dir, "both.log"))
        assert len(logger.handlers) == 2

    def test_messages_below_level_are_dropped(self, cleanup_logger, temp_log_dir):
        path = os.path.join(temp_log_dir, "warn.log")
        setup_logging(log_file_path=path, level=logging.WARNING)
        logger.debug("hidden")
        logger.warning("shown")
        for handler in logger.handlers:
            handler.flush()
        with open(path, encoding="utf-8") as f:
            content = f.read()
        assert "hidden" not in content
        assert "shown" in content

    def test_trace_id_in_records(self, cleanup_logger, temp_log_dir):
        path = os.path.join(temp_log_dir, "trace.log")
        setup_logging(log_file_path=path)
        trace_id = logger.generate_trace_id("BUILD-x64-release")
        logger.set_trace_id(trace_id)
        logger.debug("compiling")
        logger.clear_trace_id()
        logger.debug("idle")
        for handler in logger.handlers:
            handler.flush()

        with open(path, encoding="utf-8") as f:
            lines = f.read().splitlines()
        assert f"[{trace_id}]" in lines[0]
        assert "[-]" in lines[1]


class TestTraceIds:
    def test_trace_ids_are_unique(self, cleanup_logger):
        ids = {logger.generate_trace_id("PLACE") for _ in range(50)}
        assert len(ids) == 50

    def test_trace_id_format(self, cleanup_logger):
        parts = logger.generate_trace_id("PLACE").split("-")
        assert parts[0] == "PLACE"
        assert parts[1] == str(os.getpid())


class TestHandlers:
    def test_added_handler_receives_prefixed_records(self, cleanup_logger):
        records = []

        class ListHandler(logging.Handler):
            def emit(self, record):
                records.append(record.getMessage())

        handler = ListHandler()
        logger._setLevel(logging.INFO)
        logger.addHandler(handler)
        try:
            logger.info("placed %s", "x64-release")
        finally:
            logger.removeHandler(handler)
        logger.info("after removal")

        assert records == ["[native_pack] placed x64-release"]
        assert handler not in logger.handlers
