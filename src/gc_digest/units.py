"""Memory quantities and JVM time arithmetic.

Every number read from a log goes through :class:`~decimal.Decimal` so that
values such as ``1.767`` convert to exact integers instead of binary floating
point approximations. Conversions into finer units round half-even; the single
conversion back to a coarser unit (microseconds to milliseconds) truncates.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from decimal import ROUND_DOWN, ROUND_HALF_EVEN, Decimal, InvalidOperation
from enum import Enum
from typing import TypeAlias

from pydantic import BaseModel, ConfigDict, Field

# ============================================================
# TYPE ALIASES
# ============================================================

KilobytesValue: TypeAlias = int
MillisValue: TypeAlias = int
MicrosValue: TypeAlias = int
CentisValue: TypeAlias = int

# Parallelism reported when wall clock time rounds to zero but CPU time does not.
PARALLELISM_MAX = 2**31 - 1

DATESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%f%z"

SIZE_TOKEN_PATTERN: re.Pattern[str] = re.compile(
    r"(?P<value>\d+(?:[.,]\d+)?)(?P<unit>[BKMGbkmg])"
)

# ============================================================
# MEMORY
# ============================================================


class Unit(str, Enum):
    """Memory units used by JVM logging (powers of 1024)."""

    BYTES = "B"
    KILOBYTES = "K"
    MEGABYTES = "M"
    GIGABYTES = "G"

    @property
    def bytes(self) -> int:
        return _UNIT_BYTES[self]


_UNIT_BYTES: dict[Unit, int] = {
    Unit.BYTES: 1,
    Unit.KILOBYTES: 1024,
    Unit.MEGABYTES: 1024**2,
    Unit.GIGABYTES: 1024**3,
}


class Memory(BaseModel):
    """Non-negative memory quantity with its unit."""

    model_config = ConfigDict(frozen=True)

    value: int = Field(ge=0)
    unit: Unit = Unit.KILOBYTES

    @classmethod
    def parse(cls, text: str) -> Memory:
        """Parse a JVM size token like '1024K', '1019.6M', '0.0B' into kilobytes."""
        match = SIZE_TOKEN_PATTERN.fullmatch(text.strip())
        if not match:
            raise ValueError(f"Unrecognized size token: {text}")
        value = to_decimal(match.group("value"))
        unit = Unit(match.group("unit").upper())
        kilobytes = (value * unit.bytes / _UNIT_BYTES[Unit.KILOBYTES]).to_integral_value(
            rounding=ROUND_DOWN
        )
        return cls(value=int(kilobytes))

    @classmethod
    def kb(cls, value: int) -> Memory:
        return cls(value=value)

    def convert_to(self, unit: Unit) -> Memory:
        """Re-express this quantity in another unit, rounding down."""
        return Memory(value=self.value * self.unit.bytes // unit.bytes, unit=unit)

    @property
    def kilobytes(self) -> KilobytesValue:
        return self.convert_to(Unit.KILOBYTES).value

    def plus(self, other: Memory | None) -> Memory:
        return add_memory(self, other)

    def __str__(self) -> str:
        return f"{self.value}{self.unit.value}"


ZERO_MEMORY = Memory(value=0)


def add_memory(first: Memory | None, second: Memory | None) -> Memory:
    """Add two quantities in kilobytes, treating an absent quantity as zero."""
    total = 0
    if first is not None:
        total += first.kilobytes
    if second is not None:
        total += second.kilobytes
    return Memory(value=total)


def max_memory(first: Memory | None, second: Memory | None) -> Memory | None:
    if first is None:
        return second
    if second is None:
        return first
    return first if first.kilobytes >= second.kilobytes else second


def subtract_memory(total: Memory | None, part: Memory | None) -> Memory | None:
    """Derive ``total - part`` clamped at zero; absent if either side is absent."""
    if total is None or part is None:
        return None
    return Memory(value=max(0, total.kilobytes - part.kilobytes))


# ============================================================
# TIME
# ============================================================


def to_decimal(text: str) -> Decimal:
    """Parse a log number, accepting either '.' or ',' as decimal separator."""
    try:
        return Decimal(text.strip().replace(",", "."))
    except InvalidOperation as exc:
        raise ValueError(f"Malformed number: {text!r}") from exc


def _to_int(value: Decimal, rounding: str = ROUND_HALF_EVEN) -> int:
    return int(value.to_integral_value(rounding=rounding))


def secs_to_millis(text: str) -> MillisValue:
    return _to_int(to_decimal(text).scaleb(3))


def secs_to_micros(text: str) -> MicrosValue:
    return _to_int(to_decimal(text).scaleb(6))


def secs_to_centis(text: str) -> CentisValue:
    return _to_int(to_decimal(text).scaleb(2))


def millis_to_micros(text: str) -> MicrosValue:
    return _to_int(to_decimal(text).scaleb(3))


def nanos_to_micros(text: str) -> MicrosValue:
    return _to_int(to_decimal(text).scaleb(-3))


def micros_to_millis(micros: MicrosValue) -> MillisValue:
    """Convert microseconds to milliseconds, truncating any remainder."""
    return _to_int(Decimal(micros).scaleb(-3), ROUND_DOWN)


def calc_parallelism(user: CentisValue, sys: CentisValue, real: CentisValue) -> int:
    """Percentage of CPU time relative to wall clock time.

    Values above 100 mean several threads worked in parallel; values below 100
    mean the collector got less than one CPU's worth of time (inverted).
    """
    if real == 0:
        return 100 if user + sys == 0 else PARALLELISM_MAX
    return _to_int(Decimal((user + sys) * 100) / Decimal(real))


def parse_datestamp(text: str) -> datetime:
    """Parse a JVM datestamp such as '2021-03-09T14:45:02.441-0300'."""
    return datetime.strptime(text.strip().replace(",", "."), DATESTAMP_FORMAT)


def ensure_aware(moment: datetime) -> datetime:
    """Attach UTC to naive datetimes so they compare with log datestamps."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def millis_between(start: datetime, end: datetime) -> MillisValue:
    delta = ensure_aware(end) - ensure_aware(start)
    return (delta.days * 86_400 + delta.seconds) * 1000 + delta.microseconds // 1000
