"""modbus-manager: inspect and modify Modbus device registers from per-device definition files."""

__version__ = "0.1.0"

from .bus import BusClient
from .config import Config, load_config
from .dsl import parse_register_definitions
from .errors import (
    BusConnectionError,
    BusError,
    BusTimeoutError,
    ConfigurationError,
    DuplicateAddressError,
    MalformedStatementError,
    ModbusManagerError,
    UnknownRegisterError,
    ValueFormatError,
    WriteError,
    WritePolicyError,
)
from .poller import PollingEngine, PollReport
from .registry import Device, DeviceSource, Registry
from .types import F32, U64, UNSET, AccessClass, Action, Bool, Datatype, RegisterDescriptor, TypedValue, Unset
from .writer import WriteCoordinator

__all__ = [
    "__version__",
    "BusClient",
    "Config",
    "load_config",
    "parse_register_definitions",
    "BusConnectionError",
    "BusError",
    "BusTimeoutError",
    "ConfigurationError",
    "DuplicateAddressError",
    "MalformedStatementError",
    "ModbusManagerError",
    "UnknownRegisterError",
    "ValueFormatError",
    "WriteError",
    "WritePolicyError",
    "PollingEngine",
    "PollReport",
    "Device",
    "DeviceSource",
    "Registry",
    "F32",
    "U64",
    "UNSET",
    "AccessClass",
    "Action",
    "Bool",
    "Datatype",
    "RegisterDescriptor",
    "TypedValue",
    "Unset",
    "WriteCoordinator",
]
