"""Tests for register-definition parsing."""

import io

import pytest

from modbus_manager import parse_register_definitions
from modbus_manager.dsl import parse_address
from modbus_manager.errors import ConfigurationError, MalformedStatementError
from modbus_manager.types import AccessClass, Action, RegisterDescriptor

SOURCE = """\
read at 0x0A as F32-WIDE holding

write at 0x0B as U64-WIDE holding
read at 0x01 as BOOL discrete
   read at 0x20 as U64-WIDE input
write at 0x02 as BOOL discrete
"""


def test_parse_example_statement() -> None:
    result = parse_register_definitions("read at 0x0A as F32-WIDE holding", 7, "D1")
    assert result == [
        RegisterDescriptor(
            device="D1",
            slave_address=7,
            access_class=AccessClass.HOLDING,
            action=Action.READ,
            address=10,
            datatype="F32-WIDE",
        )
    ]


def test_parse_keeps_source_order_and_skips_blank_lines() -> None:
    result = parse_register_definitions(SOURCE, 3, "boiler")
    assert [(d.action, d.address, d.access_class) for d in result] == [
        (Action.READ, 0x0A, AccessClass.HOLDING),
        (Action.WRITE, 0x0B, AccessClass.HOLDING),
        (Action.READ, 0x01, AccessClass.DISCRETE),
        (Action.READ, 0x20, AccessClass.INPUT),
        (Action.WRITE, 0x02, AccessClass.DISCRETE),
    ]
    assert all(d.slave_address == 3 and d.device == "boiler" for d in result)


def test_parse_is_deterministic() -> None:
    assert parse_register_definitions(SOURCE, 3, "boiler") == parse_register_definitions(SOURCE, 3, "boiler")


def test_parse_accepts_text_stream() -> None:
    assert parse_register_definitions(io.StringIO(SOURCE), 3, "boiler") == parse_register_definitions(
        SOURCE, 3, "boiler"
    )


def test_parse_empty_source() -> None:
    assert parse_register_definitions("", 1) == []
    assert parse_register_definitions("\n   \n", 1) == []


def test_datatype_kept_verbatim() -> None:
    (d,) = parse_register_definitions("read at 0x10 as F32T1234 input", 1)
    assert d.datatype == "F32T1234"
    (d,) = parse_register_definitions("read at 0x10 as FUTURE-TYPE input", 1)
    assert d.datatype == "FUTURE-TYPE"


def test_five_fields_is_malformed_and_names_the_line() -> None:
    line = "read at 0x0A F32-WIDE holding"
    with pytest.raises(MalformedStatementError) as exc_info:
        parse_register_definitions(line, 7, "D1")
    assert exc_info.value.line == line
    assert line in str(exc_info.value)
    assert exc_info.value.line_number == 1


@pytest.mark.parametrize(
    "line",
    [
        "fetch at 0x0A as F32-WIDE holding",
        "READ at 0x0A as F32-WIDE holding",
        "read at 0x0A as F32-WIDE holding extra",
        "read at 0xZZ as F32-WIDE holding",
        "read at 0x10000 as F32-WIDE holding",
        "read at -1 as F32-WIDE holding",
        "read at 0x0A as F32-WIDE coil",
    ],
)
def test_malformed_statements_raise(line: str) -> None:
    with pytest.raises(MalformedStatementError):
        parse_register_definitions(line, 1)


def test_first_bad_line_aborts_whole_source() -> None:
    text = "read at 0x01 as BOOL discrete\nread at 0x02 BOOL discrete\nread at 0x03 as BOOL discrete\n"
    with pytest.raises(MalformedStatementError) as exc_info:
        parse_register_definitions(text, 1, source_name="acme/register.dsl")
    assert exc_info.value.line_number == 2
    assert "acme/register.dsl:2" in str(exc_info.value)


def test_malformed_statement_is_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        parse_register_definitions("nonsense", 1)


def test_access_class_case_insensitive() -> None:
    (d,) = parse_register_definitions("write at 0x05 as BOOL Discrete", 1)
    assert d.access_class == AccessClass.DISCRETE


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("0x0A", 10), ("0X0a", 10), ("0A", 10), ("ffff", 0xFFFF), ("0x0", 0)],
)
def test_parse_address(raw: str, expected: int) -> None:
    assert parse_address(raw) == expected


def test_slave_address_out_of_range() -> None:
    with pytest.raises(ValueError):
        parse_register_definitions("read at 0x01 as BOOL discrete", 256)
