"""Parse register-definition text (one statement per line) into RegisterDescriptors."""

import logging
import re
from typing import Iterable, TextIO

from .errors import MalformedStatementError
from .types import AccessClass, Action, RegisterDescriptor

logger = logging.getLogger(__name__)

# Optional 0x prefix + 1-4 hex digits
_HEX_ADDRESS = re.compile(r"^(?:0[xX])?([0-9A-Fa-f]{1,4})$")

_FIELD_COUNT = 6


def _lines(source: str | TextIO | Iterable[str]) -> Iterable[str]:
    if isinstance(source, str):
        return source.splitlines()
    return (line.rstrip("\r\n") for line in source)


def parse_address(field: str) -> int:
    """Parse an unsigned 16-bit hex address such as '0x0A' or '0A'."""
    m = _HEX_ADDRESS.match(field)
    if not m:
        raise ValueError(f"Invalid hex address: {field!r}")
    return int(m.group(1), 16)


def parse_statement(line: str, slave_address: int, device: str = "") -> RegisterDescriptor:
    """
    Parse one non-blank statement:

        <read|write> <marker> <hex address> <marker> <datatype> <discrete|input|holding>

    Fields 2 and 4 are positional placeholders and are not interpreted.
    Raises MalformedStatementError.
    """
    stmt = line.strip()
    fields = stmt.split()
    if len(fields) != _FIELD_COUNT:
        raise MalformedStatementError(
            stmt, f"Statement {stmt!r} must have {_FIELD_COUNT} fields, got {len(fields)}"
        )

    action_str, _marker, address_str, _as, datatype, class_str = fields
    try:
        action = Action(action_str)
    except ValueError:
        raise MalformedStatementError(stmt, f"Statement {stmt!r} doesn't start with 'read' or 'write'") from None
    try:
        address = parse_address(address_str)
    except ValueError as e:
        raise MalformedStatementError(stmt, f"Statement {stmt!r}: {e}") from None
    try:
        access_class = AccessClass(class_str.lower())
    except ValueError:
        raise MalformedStatementError(
            stmt, f"Statement {stmt!r}: unknown access class {class_str!r}"
        ) from None

    return RegisterDescriptor(
        device=device,
        slave_address=slave_address,
        access_class=access_class,
        action=action,
        address=address,
        datatype=datatype,
    )


def parse_register_definitions(
    source: str | TextIO | Iterable[str],
    slave_address: int,
    device: str = "",
    *,
    source_name: str | None = None,
) -> list[RegisterDescriptor]:
    """
    Compile one device's definition source into descriptors, in source line order.

    Blank lines are skipped. The first bad statement aborts the whole source with
    MalformedStatementError carrying the line text and its 1-based number.
    """
    if not 0 <= slave_address <= 0xFF:
        raise ValueError(f"slave_address must be 0..255, got {slave_address}")

    descriptors: list[RegisterDescriptor] = []
    for number, raw in enumerate(_lines(source), start=1):
        if not raw.strip():
            continue
        try:
            descriptors.append(parse_statement(raw, slave_address, device))
        except MalformedStatementError as e:
            raise MalformedStatementError(
                e.line, e._msg, line_number=number, source=source_name or device or None
            ) from None

    logger.debug("Parsed %d statements for device %r (slave %d)", len(descriptors), device, slave_address)
    return descriptors
