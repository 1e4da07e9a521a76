"""Exceptions for modbus-manager: configuration, definition parsing, bus I/O and write errors."""

from typing import Any


class ModbusManagerError(Exception):
    """Base exception for modbus-manager."""

    pass


class ConfigurationError(ModbusManagerError):
    """Raised when the device list or a device's register definitions cannot be used."""

    pass


class MalformedStatementError(ConfigurationError):
    """Raised when a register-definition statement fails to parse."""

    def __init__(
        self,
        line: str,
        message: str | None = None,
        *,
        line_number: int | None = None,
        source: str | None = None,
    ) -> None:
        self.line = line
        self.line_number = line_number
        self.source = source
        where = f"{source}:{line_number}: " if source and line_number else ""
        self._msg = message or f"Malformed statement: {line!r}"
        super().__init__(f"{where}{self._msg}")


class DuplicateAddressError(ConfigurationError):
    """Raised when two descriptors of one device share an address within an access class."""

    def __init__(self, device: str, access_class: str, address: int) -> None:
        self.device = device
        self.access_class = access_class
        self.address = address
        super().__init__(f"Duplicate {access_class} address 0x{address:04X} on device {device!r}")


class UnknownRegisterError(ModbusManagerError):
    """Raised when a device/class/address lookup has no matching descriptor."""

    def __init__(self, device: str, access_class: str, address: int) -> None:
        self.device = device
        self.access_class = access_class
        self.address = address
        super().__init__(f"Unknown register: {device!r} {access_class} 0x{address:04X}")


class BusError(ModbusManagerError):
    """Raised when a bus read/write fails (wraps pymodbus errors and error responses)."""

    def __init__(
        self,
        message: str,
        *,
        device: int | None = None,
        access_class: str | None = None,
        address: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.device = device
        self.access_class = access_class
        self.address = address
        self.cause = cause
        super().__init__(message)


class BusTimeoutError(BusError):
    """Raised when the device does not answer within the configured timeout."""

    pass


class BusConnectionError(BusError):
    """Raised when the serial port or TCP connection cannot be opened."""

    pass


class WriteError(ModbusManagerError):
    """Base for rejected write requests; the registry is never touched."""

    pass


class ValueFormatError(WriteError):
    """Raised when user text cannot be coerced into the register's datatype."""

    def __init__(self, text: str, datatype: str, message: str | None = None) -> None:
        self.text = text
        self.datatype = datatype
        super().__init__(message or f"Invalid {datatype} value: {text!r}")


class WritePolicyError(WriteError):
    """Raised when a write is not allowed for the target descriptor."""

    def __init__(self, descriptor: Any, message: str) -> None:
        self.descriptor = descriptor
        super().__init__(message)
