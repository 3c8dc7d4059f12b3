"""
Temperature telemetry parsing.

Parses the sensor readings firmware appends to `ok` lines and to M105 replies,
for example:

    ok T:210.0 /210.0 B:60.1 /60.0 T0:210.0 /210.0 @:64 B@:0 P:35.2 A:28.4
"""

import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

OK_PREFIX_RE = re.compile(r"^ok\s*", re.IGNORECASE)
SLASH_RE = re.compile(r"\s+/")
WHITESPACE_RE = re.compile(r"\s+")

_DECIMAL = r"(\d+(?:\.\d*)?|\.\d+)"
TEMPERATURE_RE = re.compile(r"([A-Za-z0-9@]+):" + _DECIMAL)
TEMPERATURE_AND_TARGET_RE = re.compile(r"([A-Za-z0-9@]+):" + _DECIMAL + "/" + _DECIMAL)


@dataclass(frozen=True)
class Temperature:
    """
    A single sensor reading.

    Attributes:
        code: The sensor code reported by the firmware (T, T0, B, C, A, P, ...).
        current: The current temperature in degrees Celsius.
        target: The target temperature in degrees Celsius, if reported.
    """

    code: str
    current: float
    target: float | None = None


@dataclass(frozen=True)
class Temperatures(Mapping[str, Temperature]):
    """
    A set of sensor readings keyed by sensor code.

    Conventions: "T"/"T<n>" extruders, "B" bed, "C" chamber, "A" ambient,
    "P" auxiliary probe. The derived views are projections of the mapping.
    """

    readings: Mapping[str, Temperature] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "readings", MappingProxyType(dict(self.readings)))

    def __getitem__(self, code: str) -> Temperature:
        return self.readings[code]

    def __iter__(self) -> Iterator[str]:
        return iter(self.readings)

    def __len__(self) -> int:
        return len(self.readings)

    def __hash__(self) -> int:
        return hash(frozenset(self.readings.items()))

    def __repr__(self) -> str:
        return f"Temperatures({dict(self.readings)!r})"

    @property
    def extruder(self) -> Temperature | None:
        return self.readings.get("T")

    @property
    def extruders(self) -> list[Temperature]:
        return [t for code, t in self.readings.items() if code.startswith("T")]

    @property
    def bed(self) -> Temperature | None:
        return self.readings.get("B")

    @property
    def chamber(self) -> Temperature | None:
        return self.readings.get("C")

    @property
    def ambient(self) -> Temperature | None:
        return self.readings.get("A")

    @property
    def probe(self) -> Temperature | None:
        return self.readings.get("P")


def parse_temperatures(line: str) -> Temperatures | None:
    """
    Parse the temperature readings out of a telemetry line.

    A leading "ok" is ignored. Tokens that are not readings are skipped, and a
    later reading for the same sensor code replaces an earlier one.

    Args:
        line: The raw response line.

    Returns:
        The readings found (possibly empty), or None if the line carries no
        text beyond an optional "ok".
    """
    text = OK_PREFIX_RE.sub("", line.strip(), count=1).strip()
    if not text:
        return None

    readings: dict[str, Temperature] = {}
    for token in WHITESPACE_RE.split(SLASH_RE.sub("/", text)):
        match = TEMPERATURE_AND_TARGET_RE.fullmatch(token)
        if match:
            code, current, target = match.groups()
            readings[code] = Temperature(code, float(current), float(target))
            continue

        match = TEMPERATURE_RE.fullmatch(token)
        if match:
            code, current = match.groups()
            readings[code] = Temperature(code, float(current))

    return Temperatures(readings)
