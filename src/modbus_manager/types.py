"""Core data model: access classes, datatype tags, RegisterDescriptor and the TypedValue union."""

import math
import struct
from dataclasses import dataclass
from enum import Enum

U64_MAX = 2**64 - 1


class AccessClass(str, Enum):
    """Register family a descriptor belongs to."""

    DISCRETE = "discrete"
    INPUT = "input"
    HOLDING = "holding"


class Action(str, Enum):
    """Declared intent of a definition statement."""

    READ = "read"
    WRITE = "write"


class Datatype(str, Enum):
    """Datatype tags with built-in decode/encode rules (the tag set itself is open)."""

    BOOL = "BOOL"
    U64_WIDE = "U64-WIDE"
    F32_WIDE = "F32-WIDE"


@dataclass(frozen=True)
class RegisterDescriptor:
    """One addressable coil/register on one device, as declared in its definition source."""

    device: str
    slave_address: int
    access_class: AccessClass
    action: Action
    address: int
    datatype: str

    def __post_init__(self) -> None:
        if not 0 <= self.slave_address <= 0xFF:
            raise ValueError(f"slave_address must be 0..255, got {self.slave_address}")
        if not 0 <= self.address <= 0xFFFF:
            raise ValueError(f"address must be 0..0xFFFF, got {self.address}")

    @property
    def writable(self) -> bool:
        return self.action == Action.WRITE and self.access_class != AccessClass.INPUT


# TypedValue variants. Consumers dispatch with isinstance() on the concrete class.


@dataclass(frozen=True)
class Bool:
    value: bool

    def __str__(self) -> str:
        return str(self.value).lower()


@dataclass(frozen=True)
class U64:
    value: int

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise TypeError(f"U64 requires an int, got {type(self.value).__name__}")
        if not 0 <= self.value <= U64_MAX:
            raise ValueError(f"U64 out of range: {self.value}")

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class F32:
    """IEEE-754 binary32 value; the payload is rounded to single precision on construction."""

    value: float

    def __post_init__(self) -> None:
        v = float(self.value)
        if math.isfinite(v):
            try:
                v = struct.unpack(">f", struct.pack(">f", v))[0]
            except OverflowError:
                raise ValueError(f"F32 out of range: {self.value}") from None
        object.__setattr__(self, "value", v)

    def __str__(self) -> str:
        return f"{self.value:g}"


@dataclass(frozen=True)
class Unset:
    """No value read or written yet."""

    def __str__(self) -> str:
        return "-"


UNSET = Unset()

TypedValue = Bool | U64 | F32 | Unset
