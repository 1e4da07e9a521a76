"""Tests for WriteCoordinator policy, coercion and registry update (mocked pymodbus client)."""

from unittest.mock import MagicMock

import pytest

from modbus_manager import DeviceSource, Registry, WriteCoordinator
from modbus_manager.bus import BusClient
from modbus_manager.config import BusConfig
from modbus_manager.errors import (
    BusError,
    UnknownRegisterError,
    ValueFormatError,
    WritePolicyError,
)
from modbus_manager.types import F32, U64, UNSET, AccessClass, Action, Bool, RegisterDescriptor

DEFINITIONS = """\
write at 0x0A as F32-WIDE holding
write at 0x0B as U64-WIDE holding
write at 0x0C as T64T1234 holding
read at 0x0D as F32-WIDE holding
write at 0x0E as BOOL holding
write at 0x0F as S16 holding
write at 0x02 as BOOL discrete
read at 0x03 as BOOL discrete
write at 0x04 as XYZ-FUTURE discrete
write at 0x05 as F32-WIDE discrete
write at 0x20 as F32-WIDE input
"""


@pytest.fixture
def mock_modbus_client() -> MagicMock:
    client = MagicMock()
    client.connect.return_value = True
    client.write_coil.return_value = MagicMock(isError=lambda: False)
    client.write_registers.return_value = MagicMock(isError=lambda: False)
    return client


@pytest.fixture
def registry() -> Registry:
    return Registry.build([DeviceSource(name="D1", slave_address=7, load=lambda: DEFINITIONS)])


@pytest.fixture
def writer(registry: Registry, mock_modbus_client: MagicMock) -> WriteCoordinator:
    bus = BusClient(BusConfig(url="tcp://127.0.0.1"))
    bus._client = mock_modbus_client
    return WriteCoordinator(registry, bus)


def test_write_f32_example(writer: WriteCoordinator, registry: Registry, mock_modbus_client: MagicMock) -> None:
    target = registry.find("D1", AccessClass.HOLDING, 0x0A)
    value = writer.write(target, "3.5")
    assert value == F32(3.5)
    assert registry.value(target) == F32(3.5)
    mock_modbus_client.write_registers.assert_called_once()
    args = mock_modbus_client.write_registers.call_args
    assert args[0] == (0x0A, [0x4060, 0x0000])
    assert args[1]["device_id"] == 7


def test_write_u64(writer: WriteCoordinator, registry: Registry, mock_modbus_client: MagicMock) -> None:
    target = registry.find("D1", AccessClass.HOLDING, 0x0B)
    assert writer.write(target, "65536") == U64(65536)
    assert mock_modbus_client.write_registers.call_args[0] == (0x0B, [0, 0, 1, 0])
    assert registry.value(target) == U64(65536)


def test_write_legacy_alias(writer: WriteCoordinator, registry: Registry) -> None:
    target = registry.find("D1", AccessClass.HOLDING, 0x0C)
    assert writer.write(target, "12") == U64(12)


def test_write_discrete_bool(writer: WriteCoordinator, registry: Registry, mock_modbus_client: MagicMock) -> None:
    target = registry.find("D1", AccessClass.DISCRETE, 0x02)
    assert writer.write(target, "TRUE") == Bool(True)
    assert mock_modbus_client.write_coil.call_args[0] == (0x02, True)
    assert registry.value(target) == Bool(True)


@pytest.mark.parametrize(
    ("access_class", "address", "text"),
    [
        (AccessClass.HOLDING, 0x0A, "three"),
        (AccessClass.HOLDING, 0x0B, "-1"),
        (AccessClass.HOLDING, 0x0B, "1.5"),
        (AccessClass.DISCRETE, 0x02, "maybe"),
    ],
)
def test_unparsable_text_never_reaches_bus(
    writer: WriteCoordinator,
    registry: Registry,
    mock_modbus_client: MagicMock,
    access_class: AccessClass,
    address: int,
    text: str,
) -> None:
    target = registry.find("D1", access_class, address)
    before = registry.snapshot()
    with pytest.raises(ValueFormatError):
        writer.write(target, text)
    assert mock_modbus_client.method_calls == []
    assert registry.snapshot() == before


@pytest.mark.parametrize(
    ("access_class", "address", "match"),
    [
        (AccessClass.HOLDING, 0x0D, "declared 'read'"),
        (AccessClass.HOLDING, 0x0E, "BOOL"),
        (AccessClass.HOLDING, 0x0F, "not defined"),
        (AccessClass.DISCRETE, 0x03, "declared 'read'"),
        (AccessClass.DISCRETE, 0x04, "not defined"),
        (AccessClass.DISCRETE, 0x05, "only accept BOOL"),
        (AccessClass.INPUT, 0x20, "read-only"),
    ],
)
def test_write_policy_violations(
    writer: WriteCoordinator,
    registry: Registry,
    mock_modbus_client: MagicMock,
    access_class: AccessClass,
    address: int,
    match: str,
) -> None:
    target = registry.find("D1", access_class, address)
    with pytest.raises(WritePolicyError, match=match):
        writer.write(target, "1")
    assert mock_modbus_client.method_calls == []


def test_unknown_discrete_tag_rejected_for_any_text(writer: WriteCoordinator, registry: Registry) -> None:
    target = registry.find("D1", AccessClass.DISCRETE, 0x04)
    for text in ("true", "0", "on"):
        with pytest.raises(WritePolicyError):
            writer.write(target, text)
    assert registry.value(target) is UNSET


def test_bus_failure_keeps_previous_value(
    writer: WriteCoordinator, registry: Registry, mock_modbus_client: MagicMock
) -> None:
    target = registry.find("D1", AccessClass.HOLDING, 0x0A)
    registry.update({target: F32(1.0)})
    mock_modbus_client.write_registers.return_value = MagicMock(isError=lambda: True)
    with pytest.raises(BusError):
        writer.write(target, "2.0")
    assert registry.value(target) == F32(1.0)


def test_write_to_foreign_descriptor_rejected(writer: WriteCoordinator, mock_modbus_client: MagicMock) -> None:
    stranger = RegisterDescriptor(
        device="other",
        slave_address=1,
        access_class=AccessClass.HOLDING,
        action=Action.WRITE,
        address=0x0A,
        datatype="F32-WIDE",
    )
    with pytest.raises(UnknownRegisterError):
        writer.write(stranger, "1.0")
    assert mock_modbus_client.method_calls == []


def test_coerce_does_not_touch_registry(writer: WriteCoordinator, registry: Registry) -> None:
    target = registry.find("D1", AccessClass.HOLDING, 0x0A)
    assert writer.coerce(target, "0.5") == F32(0.5)
    assert registry.value(target) is UNSET
