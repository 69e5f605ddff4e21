"""Tests for placement logging setup."""

import logging

import pytest

from fpga_place.utils.logging import setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.getLogger("fpga_place.anneal").setLevel(logging.NOTSET)


def test_log_file_receives_records(tmp_path):
    log_file = tmp_path / "place.log"
    setup_logging(logging.INFO, str(log_file))
    logging.getLogger("fpga_place.placer").info("Final placement: cost=1")
    for handler in logging.getLogger().handlers:
        handler.flush()
    assert "fpga_place.placer - INFO - Final placement: cost=1" in log_file.read_text()


def test_anneal_level():
    setup_logging(logging.DEBUG, anneal_level=logging.WARNING)
    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("fpga_place.anneal").level == logging.WARNING
