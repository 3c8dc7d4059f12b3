"""
G-Code package - Pure functions over the G-Code wire format.

This package provides:
- Command, CommandStyle, compile_command, checksum: Command framing
- ResponseKind, classify_response: Firmware response classification
- Temperature, Temperatures, parse_temperatures: Temperature telemetry parsing
"""

from .command import Command, CommandStyle, checksum, compile_command
from .responses import (
    ResponseKind,
    classify_response,
    is_error,
    is_ok,
    is_resend,
    is_reset_sentinel,
    resend_line_number,
)
from .temperature import Temperature, Temperatures, parse_temperatures

__all__ = [
    "Command",
    "CommandStyle",
    "checksum",
    "compile_command",
    "ResponseKind",
    "classify_response",
    "is_error",
    "is_ok",
    "is_resend",
    "is_reset_sentinel",
    "resend_line_number",
    "Temperature",
    "Temperatures",
    "parse_temperatures",
]
