"""Unit tests for logging infrastructure."""
import pytest
import logging
from vqueue.infrastructure.logging import setup_logging


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_setup_logging_returns_logger():
    """Test that setup_logging returns a usable logger."""
    logger = setup_logging(debug=False)

    assert logger is not None
    assert isinstance(logger, logging.Logger)


def test_setup_logging_debug_mode():
    """Test setup_logging in debug mode."""
    logger = setup_logging(debug=True)

    assert logger.getEffectiveLevel() == logging.DEBUG


def test_setup_logging_normal_mode():
    """Test setup_logging in normal mode."""
    logger = setup_logging(debug=False)

    assert logger.getEffectiveLevel() == logging.INFO


def test_setup_logging_writes_to_stderr(capsys):
    """Diagnostics go to stderr, never stdout."""
    logger = setup_logging(debug=False)
    logger.info("stderr message")

    captured = capsys.readouterr()
    assert "stderr message" in captured.err
    assert "stderr message" not in captured.out


def test_setup_logging_creates_log_file(tmp_path):
    """Test that a log_path creates the file and its parent directory."""
    log_file = tmp_path / "logs" / "nested" / "vqueue.log"

    setup_logging(debug=False, log_path=log_file)

    assert log_file.exists()


def test_setup_logging_writes_to_file(tmp_path):
    """Test that logger actually writes to file."""
    log_file = tmp_path / "vqueue.log"
    logger = setup_logging(debug=False, log_path=log_file)

    test_message = "Test log message for verification"
    logger.info(test_message)

    for handler in logging.getLogger().handlers:
        handler.flush()

    log_content = log_file.read_text()
    assert test_message in log_content


def test_setup_logging_format_includes_level(tmp_path):
    """Test that log format includes timestamp separator and level name."""
    log_file = tmp_path / "vqueue.log"
    logger = setup_logging(debug=False, log_path=log_file)

    logger.info("Info message")
    logger.warning("Warning message")

    for handler in logging.getLogger().handlers:
        handler.flush()

    log_content = log_file.read_text()
    assert " - INFO - Info message" in log_content
    assert " - WARNING - Warning message" in log_content


def test_setup_logging_debug_messages_filtered_in_normal_mode(tmp_path):
    log_file = tmp_path / "vqueue.log"
    logger = setup_logging(debug=False, log_path=log_file)

    logger.debug("hidden debug")

    for handler in logging.getLogger().handlers:
        handler.flush()

    assert "hidden debug" not in log_file.read_text()
