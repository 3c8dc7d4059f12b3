"""
G-Code command compilation.

Commands are compiled once into the exact text that goes over the wire. A
compiled command never changes afterwards; resends transmit the identical
text.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum


class CommandStyle(str, Enum):
    """How a command's line number and checksum are framed into wire text."""

    WITHOUT_LINE = "without-line"
    """The command text is sent unchanged."""

    WITH_LINE = "with-line"
    """The command text is prefixed with 'N<line> '."""

    WITH_LINE_AND_CHECKSUM = "with-line-and-checksum"
    """As WITH_LINE, followed by '*<checksum>' computed over the prefixed text."""

    def __str__(self) -> str:
        """Return the string value of the enum."""
        return self.value

    @property
    def has_line_number(self) -> bool:
        return self is not CommandStyle.WITHOUT_LINE


@dataclass(frozen=True)
class Command:
    """
    A compiled G-Code command.

    Attributes:
        text: The exact text written to the printer (without line terminator).
        line_number: The line number, if the command carries one.
        checksum: Whether the text ends with a checksum suffix.
        id: Unique identity of this compilation.
    """

    text: str
    line_number: int | None = None
    checksum: bool = False
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    def __post_init__(self) -> None:
        # Raises UnicodeEncodeError, a ValueError, for text the firmware cannot read
        self.text.encode("ascii")
        if self.line_number is not None and not self.text.startswith("N"):
            raise ValueError(f"Command text must start with N: {self.text!r}")
        if self.checksum and "*" not in self.text:
            raise ValueError(f"Command text must contain *: {self.text!r}")

    def show(self) -> str:
        """Return a human-readable description of the command."""
        line = self.line_number if self.line_number is not None else -1
        return f'[{self.id} {line} : "{self.text.strip()}"]'


def checksum(text: str) -> int:
    """
    Compute the firmware checksum of a line: the XOR of its ASCII bytes.

    Example:
        >>> checksum("N1 M115")
        39
    """
    value = 0
    for byte in text.encode("ascii"):
        value = (value ^ byte) & 0xFF
    return value


def compile_command(line_number: int, text: str, style: CommandStyle) -> Command:
    """
    Compile a command body into wire text.

    Args:
        line_number: The line number to use when the style carries one.
        text: The command body (opaque G-Code).
        style: The framing style.

    Returns:
        A new Command with a fresh id.

    Raises:
        UnicodeEncodeError: If a checksum is requested for non-ASCII text.
    """
    if style is CommandStyle.WITHOUT_LINE:
        return Command(text=text)

    framed = f"N{line_number} {text}"

    if style is CommandStyle.WITH_LINE_AND_CHECKSUM:
        framed = f"{framed}*{checksum(framed)}"
        return Command(text=framed, line_number=line_number, checksum=True)

    return Command(text=framed, line_number=line_number)
