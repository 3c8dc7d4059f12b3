"""
Classification of firmware response lines.

Firmware replies in free-form text. Every line the engine reads while a command
is in flight is sorted into one of the ResponseKind buckets below; the order of
the checks matters (a reset sentinel wins over everything, a resend request is
recognised before an error).
"""

import re
from enum import Enum

RESET_SENTINEL = "INT4"

OK_RE = re.compile(r"^OK.*", re.IGNORECASE)
RESEND_RE = re.compile(r"^(RS|RESEND):\s*([0-9]+)", re.IGNORECASE)

ERROR_PREFIXES = ("ERROR", "FATAL", "!!")

# Prusa firmware reports some rejected codes without an "Error:" prefix
FIRMWARE_QUIRK_ERROR_PREFIXES = (
    "INVALID M CODE",
    "UNKNOWN M CODE",
    "INVALID G CODE",
    "UNKNOWN G CODE",
    "INVALID D CODE",
    "UNKNOWN D CODE",
)


class ResponseKind(str, Enum):
    """The kinds of response lines the engine distinguishes."""

    OK = "ok"
    ERROR = "error"
    RESEND = "resend"
    RESET_SENTINEL = "reset-sentinel"
    UNRECOGNIZED = "unrecognized"

    def __str__(self) -> str:
        """Return the string value of the enum."""
        return self.value


def is_reset_sentinel(line: str) -> bool:
    return line.strip() == RESET_SENTINEL


def is_ok(line: str) -> bool:
    return bool(OK_RE.fullmatch(line.strip()))


def is_resend(line: str) -> bool:
    return bool(RESEND_RE.fullmatch(line.strip()))


def resend_line_number(line: str) -> int | None:
    """
    Return the line number a resend request asks for, or None if the line is
    not a resend request.

    The engine only logs this; it always resends the command in flight.
    """
    match = RESEND_RE.fullmatch(line.strip())
    if not match:
        return None
    return int(match.group(2))


def is_error(line: str) -> bool:
    upper = line.strip().upper()
    if upper.startswith(ERROR_PREFIXES):
        return True
    return upper.startswith(FIRMWARE_QUIRK_ERROR_PREFIXES)


def classify_response(line: str) -> ResponseKind:
    """
    Classify a single response line.

    Args:
        line: A raw response line; surrounding whitespace is ignored.

    Returns:
        The ResponseKind of the line.
    """
    if is_reset_sentinel(line):
        return ResponseKind.RESET_SENTINEL
    if is_resend(line):
        return ResponseKind.RESEND
    if is_error(line):
        return ResponseKind.ERROR
    if is_ok(line):
        return ResponseKind.OK
    return ResponseKind.UNRECOGNIZED
