"""Tests for firmware response classification."""

import pytest

from printer_link.gcode.responses import (
    ResponseKind,
    classify_response,
    is_error,
    is_ok,
    is_resend,
    is_reset_sentinel,
    resend_line_number,
)


class TestClassifyResponse:
    """Tests for classify_response()."""

    @pytest.mark.parametrize("line", ["ok", "OK", "ok T:210.0 /210.0", "Ok 12"])
    def test_ok(self, line):
        assert classify_response(line) is ResponseKind.OK

    @pytest.mark.parametrize(
        "line",
        [
            "Error:Line Number is not Last Line Number+1",
            "error: checksum mismatch",
            "FATAL: heater failure",
            "!! thermal runaway",
            "Invalid M code: M999",
            "Unknown G code: G999",
            "unknown d code",
        ],
    )
    def test_error(self, line):
        assert classify_response(line) is ResponseKind.ERROR

    @pytest.mark.parametrize("line", ["Resend: 1", "rs: 12", "RESEND:3", "Resend:   42"])
    def test_resend(self, line):
        assert classify_response(line) is ResponseKind.RESEND

    def test_reset_sentinel(self):
        assert classify_response("INT4") is ResponseKind.RESET_SENTINEL
        assert classify_response("  INT4  ") is ResponseKind.RESET_SENTINEL

    @pytest.mark.parametrize("line", ["echo:busy: processing", "start", "T:21.0 /0.0", ""])
    def test_unrecognized(self, line):
        assert classify_response(line) is ResponseKind.UNRECOGNIZED

    def test_sentinel_is_case_sensitive(self):
        """Test that only the exact sentinel text counts."""
        assert classify_response("int4") is ResponseKind.UNRECOGNIZED

    def test_resend_with_trailing_text_is_not_resend(self):
        """Test that resend requests must match as a whole line."""
        assert not is_resend("Resend: 1 please")
        assert classify_response("Resend: 1 please") is ResponseKind.UNRECOGNIZED


class TestPredicates:
    """Tests for the individual response predicates."""

    def test_is_ok(self):
        assert is_ok("ok")
        assert not is_ok("not ok")

    def test_is_error(self):
        assert is_error("Error:Printer halted")
        assert not is_error("echo: error-free")

    def test_is_reset_sentinel(self):
        assert is_reset_sentinel("INT4")
        assert not is_reset_sentinel("INT45")

    def test_resend_line_number(self):
        assert resend_line_number("Resend: 17") == 17
        assert resend_line_number("rs:3") == 3
        assert resend_line_number("ok") is None
