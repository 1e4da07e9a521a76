"""Datatype tag resolution, register-level decode/encode and user-text coercion."""

import logging
import re

from pymodbus.client.mixin import ModbusClientMixin

from .errors import ValueFormatError
from .types import F32, U64, U64_MAX, Bool, Datatype, TypedValue

logger = logging.getLogger(__name__)

# Tags used by older definition files; word order 1234 is big-endian, same as the -WIDE tags.
_ALIASES: dict[str, Datatype] = {
    "T64T1234": Datatype.U64_WIDE,
    "F32T1234": Datatype.F32_WIDE,
}

# Numeric datatype -> (16-bit register count, pymodbus conversion type)
_NUMERIC: dict[Datatype, tuple[int, ModbusClientMixin.DATATYPE]] = {
    Datatype.U64_WIDE: (4, ModbusClientMixin.DATATYPE.UINT64),
    Datatype.F32_WIDE: (2, ModbusClientMixin.DATATYPE.FLOAT32),
}

_WORD_ORDER = "big"

_DECIMAL = re.compile(r"^\d+$")
_FLOAT = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")

_TRUE = frozenset({"true", "1", "on", "yes"})
_FALSE = frozenset({"false", "0", "off", "no"})


def resolve_datatype(tag: str) -> Datatype | None:
    """Map a declared datatype tag (or a legacy alias) to a known Datatype; None if unknown."""
    key = tag.strip().upper()
    try:
        return Datatype(key)
    except ValueError:
        return _ALIASES.get(key)


def is_numeric(tag: str) -> bool:
    return resolve_datatype(tag) in _NUMERIC


def register_count(tag: str) -> int:
    """Number of 16-bit registers a numeric datatype spans on the wire."""
    dt = resolve_datatype(tag)
    if dt not in _NUMERIC:
        raise ValueError(f"Not a numeric datatype: {tag!r}")
    return _NUMERIC[dt][0]


def decode_registers(tag: str, registers: list[int]) -> TypedValue:
    """Decode raw 16-bit registers into the TypedValue for a numeric datatype."""
    dt = resolve_datatype(tag)
    if dt not in _NUMERIC:
        raise ValueError(f"Not a numeric datatype: {tag!r}")
    count, data_type = _NUMERIC[dt]
    if len(registers) != count:
        raise ValueError(f"{dt.value} needs {count} registers, got {len(registers)}")
    raw = ModbusClientMixin.convert_from_registers(list(registers), data_type, word_order=_WORD_ORDER)
    if dt == Datatype.U64_WIDE:
        return U64(int(raw))
    return F32(float(raw))


def encode_value(value: TypedValue) -> list[int]:
    """Encode a numeric TypedValue into the register words written to the bus."""
    if isinstance(value, U64):
        data_type = _NUMERIC[Datatype.U64_WIDE][1]
    elif isinstance(value, F32):
        data_type = _NUMERIC[Datatype.F32_WIDE][1]
    else:
        raise ValueError(f"Cannot encode {value!r} as registers")
    return list(ModbusClientMixin.convert_to_registers(value.value, data_type, word_order=_WORD_ORDER))


def parse_bool(text: str) -> bool:
    """Parse a boolean literal (true/false, 1/0, on/off, yes/no; case-insensitive)."""
    v = text.strip().lower()
    if v in _TRUE:
        return True
    if v in _FALSE:
        return False
    raise ValueError(f"Invalid boolean value: {text!r}")


def parse_u64(text: str) -> int:
    """Parse an unsigned 64-bit decimal integer; signs, hex and separators are rejected."""
    v = text.strip()
    if not _DECIMAL.match(v):
        raise ValueError(f"Invalid unsigned integer: {text!r}")
    num = int(v)
    if num > U64_MAX:
        raise ValueError(f"Unsigned 64-bit integer out of range: {num}")
    return num


def parse_f32(text: str) -> float:
    """Parse a finite decimal floating-point literal that fits IEEE-754 single precision."""
    s = text.strip()
    if not _FLOAT.match(s):
        raise ValueError(f"Not a decimal float: {text!r}")
    return F32(float(s)).value


def coerce_text(tag: str, text: str) -> TypedValue:
    """
    Coerce user text into the TypedValue for datatype `tag`.

    Raises ValueFormatError when the text does not parse, and ValueError for a datatype
    that has no coercion rule.
    """
    dt = resolve_datatype(tag)
    try:
        if dt == Datatype.BOOL:
            return Bool(parse_bool(text))
        if dt == Datatype.U64_WIDE:
            return U64(parse_u64(text))
        if dt == Datatype.F32_WIDE:
            return F32(parse_f32(text))
    except ValueError as e:
        logger.debug("Coercion of %r as %s failed: %s", text, tag, e)
        raise ValueFormatError(text, tag) from e
    raise ValueError(f"No coercion rule for datatype {tag!r}")
