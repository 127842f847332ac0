"""
Parsing of human quantities: sizes ("512MB", "80%") and durations ("30s", "1h30m").
"""
import enum
import re
from dataclasses import dataclass
from typing import Union

from stressload.errors import (
    InvalidDuration,
    InvalidPercentage,
    InvalidSizeFormat,
    UnsupportedUnit,
)

MB = 1024 * 1024

UNIT_MULTIPLIERS = {
    "": 1,
    "B": 1,
    "K": 1024,
    "KB": 1024,
    "M": 1024 ** 2,
    "MB": 1024 ** 2,
    "G": 1024 ** 3,
    "GB": 1024 ** 3,
    "T": 1024 ** 4,
    "TB": 1024 ** 4,
}

DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}

_SIZE_RE = re.compile(r"^(\d+(?:\.\d+)?)\s*([A-Za-z]*)$")
_DURATION_TERM_RE = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")


class ResourceKind(enum.Enum):
    CPU = "cpu"
    MEMORY = "memory"
    STORAGE = "storage"


@dataclass(frozen=True)
class AbsoluteBytes:
    value: int


@dataclass(frozen=True)
class PercentageOfFree:
    value: float


Magnitude = Union[AbsoluteBytes, PercentageOfFree]


@dataclass(frozen=True)
class LoadRequest:
    kind: ResourceKind
    magnitude: Magnitude

    @property
    def is_dynamic(self) -> bool:
        return isinstance(self.magnitude, PercentageOfFree)

    def describe(self) -> str:
        if self.is_dynamic:
            return f"{self.magnitude.value:g}% of free {self.kind.value}"
        return f"{self.magnitude.value / MB:.1f} MB"


def parse_size(text: str) -> Magnitude:
    """Parse an absolute size (1024-based units) or a percentage of free space."""
    text = text.strip()

    if text.endswith("%"):
        raw = text[:-1].strip()
        try:
            percent = float(raw)
        except ValueError:
            raise InvalidPercentage(f"invalid percentage: {raw!r}") from None
        # NaN fails both comparisons
        if not 0 <= percent <= 100:
            raise InvalidPercentage(f"percentage must be in range 0-100: {raw}")
        return PercentageOfFree(percent)

    match = _SIZE_RE.match(text)
    if match is None:
        raise InvalidSizeFormat(f"invalid size format: {text!r}")

    number, unit = match.groups()
    multiplier = UNIT_MULTIPLIERS.get(unit.upper())
    if multiplier is None:
        raise UnsupportedUnit(f"unsupported unit: {unit}")

    return AbsoluteBytes(int(round(float(number) * multiplier)))


def parse_duration(text: str) -> float:
    """Parse a duration such as "30s", "5m", "1h30m" or "250ms" into seconds."""
    text = text.strip()
    if not text:
        raise InvalidDuration("empty duration")

    seconds = 0.0
    pos = 0
    for match in _DURATION_TERM_RE.finditer(text):
        if match.start() != pos:
            break
        seconds += float(match.group(1)) * DURATION_UNITS[match.group(2)]
        pos = match.end()

    if pos != len(text):
        raise InvalidDuration(f"invalid time format: {text!r}")
    if seconds <= 0:
        raise InvalidDuration(f"duration must be positive: {text!r}")
    return seconds
