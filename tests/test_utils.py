"""Tests for small time and formatting helpers."""

import datetime
import logging
from logging.handlers import RotatingFileHandler

import pytest

from stat_keeper.utils import (
    format_category_name,
    format_countdown,
    parse_iso,
    split_duration_ms,
    to_iso,
)


UTC = datetime.timezone.utc


class TestIso:
    def test_to_iso_uses_z_and_milliseconds(self):
        dt = datetime.datetime(2026, 3, 1, 12, 30, 5, 123456, tzinfo=UTC)
        assert to_iso(dt) == "2026-03-01T12:30:05.123Z"

    def test_to_iso_converts_offsets(self):
        dt = datetime.datetime(2026, 3, 1, 14, 0, tzinfo=datetime.timezone(datetime.timedelta(hours=2)))
        assert to_iso(dt) == "2026-03-01T12:00:00.000Z"

    @pytest.mark.parametrize("text", [
        "2026-03-01T12:00:00.000Z",
        "2026-03-01T12:00:00+00:00",
        "2026-03-01T12:00:00",
    ])
    def test_parse_iso(self, text):
        assert parse_iso(text) == datetime.datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

    def test_parse_iso_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_iso("last tuesday")


class TestFormatting:
    def test_split_duration(self):
        ms = ((2 * 24 + 3) * 60 + 15) * 60 * 1000 + 999
        assert split_duration_ms(ms) == (2, 3, 15)
        assert split_duration_ms(-5) == (0, 0, 0)

    def test_format_countdown(self):
        assert format_countdown((2, 3, 15)) == "2d 03h"
        assert format_countdown((0, 5, 7)) == "05h 07m"
        assert format_countdown(None) == "-"

    def test_format_category_name(self):
        assert format_category_name("deep-WORK") == "Deep Work"
        assert format_category_name("mind") == "Mind"


class TestLogging:
    def test_setup_logger_is_idempotent(self, tmp_path):
        from stat_keeper.logging_setup import setup_logger

        log_dir = tmp_path / "logs"
        first = setup_logger(str(log_dir), str(log_dir / "app.log"), name="StatKeeperIdempotent")
        handlers = list(first.handlers)
        second = setup_logger(str(log_dir), str(log_dir / "app.log"), name="StatKeeperIdempotent")
        assert second is first
        assert second.handlers == handlers

    def test_console_handler_and_level_change(self, tmp_path):
        from stat_keeper.logging_setup import setup_logger

        log_dir = tmp_path / "logs"
        log = setup_logger(str(log_dir), str(log_dir / "app.log"), console=True, name="StatKeeperConsole")
        assert {type(h) for h in log.handlers} == {logging.StreamHandler, RotatingFileHandler}

        setup_logger(str(log_dir), str(log_dir / "app.log"), level=logging.DEBUG, name="StatKeeperConsole")
        assert log.level == logging.DEBUG
        assert all(h.level == logging.DEBUG for h in log.handlers)
        assert len(log.handlers) == 2

    def test_file_lines_carry_logger_name(self, tmp_path):
        from stat_keeper.logging_setup import setup_logger

        log_dir = tmp_path / "logs"
        log = setup_logger(str(log_dir), str(log_dir / "app.log"), name="StatKeeperFormat")
        log.info("DECAY loaded settings=0")
        for h in log.handlers:
            h.flush()
        line = (log_dir / "app.log").read_text(encoding="utf-8").strip()
        assert " | StatKeeperFormat | INFO | DECAY loaded settings=0" in line

    def test_tk_callback_errors_are_logged(self, logger, caplog):
        from types import SimpleNamespace
        from stat_keeper.logging_setup import log_tk_callback_errors

        root = SimpleNamespace()
        log_tk_callback_errors(root, logger)
        try:
            raise RuntimeError("boom")
        except RuntimeError as exc:
            root.report_callback_exception(type(exc), exc, exc.__traceback__)
        assert "Unhandled error in UI callback" in caplog.text
