import logging

import pytest

from dyelot_logging import configure_logging


@pytest.fixture(autouse=True)
def _reset_root_logging():
    yield
    configure_logging(logging.WARNING, include_console=False)
    logging.captureWarnings(False)


def test_configure_logging_writes_log_file(tmp_path):
    log_path = tmp_path / "logs" / "dyelot.log"

    root = configure_logging(logging.INFO, log_file=log_path, include_console=False)
    logging.getLogger(__name__).info("file handler works")

    assert root is logging.getLogger()
    assert root.level == logging.INFO
    assert log_path.exists()
    assert "file handler works" in log_path.read_text()


def test_configure_logging_replaces_previous_handlers(tmp_path):
    first_path = tmp_path / "first.log"
    second_path = tmp_path / "alt" / "second.log"

    configure_logging(log_file=first_path, include_console=False)
    logging.getLogger(__name__).info("first run entry")
    assert "first run entry" in first_path.read_text()

    root = configure_logging(log_file=second_path, include_console=False)
    logging.getLogger(__name__).info("second run entry")
    assert "second run entry" in second_path.read_text()

    # The first log is not appended to after reconfiguration
    assert "second run entry" not in first_path.read_text()
    managed = [h for h in root.handlers if getattr(h, "_dyelot_managed_handler", False)]
    assert len(managed) == 1


def test_level_filters_messages(tmp_path):
    log_path = tmp_path / "quiet.log"
    configure_logging(logging.WARNING, log_file=log_path, include_console=False)
    logging.getLogger("dyelot_pipeline").info("hidden")
    logging.getLogger("dyelot_pipeline").warning("shown")

    text = log_path.read_text()
    assert "hidden" not in text
    assert "[WARNING] dyelot_pipeline: shown" in text


def test_console_handler_is_optional():
    root = configure_logging(include_console=True)
    managed = [h for h in root.handlers if getattr(h, "_dyelot_managed_handler", False)]
    assert len(managed) == 1
    assert isinstance(managed[0], logging.StreamHandler)

    root = configure_logging(include_console=False)
    assert not any(getattr(h, "_dyelot_managed_handler", False) for h in root.handlers)
