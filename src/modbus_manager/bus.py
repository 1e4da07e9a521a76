"""BusClient: serialized pymodbus access with batched per-class reads and single writes."""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Iterator, Sequence

from pymodbus import FramerType
from pymodbus.client import ModbusSerialClient, ModbusTcpClient
from pymodbus.exceptions import ConnectionException, ModbusException, ModbusIOException

from .codec import decode_registers, encode_value, is_numeric, register_count
from .config import BusConfig
from .errors import BusConnectionError, BusError, BusTimeoutError
from .types import F32, U64, AccessClass, Bool, TypedValue

logger = logging.getLogger(__name__)

# Highest unit id a Modbus serial line can address
MAX_UNIT_ID = 247


class BusClient:
    """
    The one connection to the fieldbus, shared by polling and writes.

    All traffic must run inside `session(slave_address)`, which holds the bus lock for its
    whole duration, so no two requests are ever in flight on the shared line.
    """

    def __init__(self, config: BusConfig) -> None:
        self._config = config
        self._client: ModbusSerialClient | ModbusTcpClient | None = None
        self._lock = threading.Lock()
        self._unit_id: int | None = None

    def _make_client(self) -> ModbusSerialClient | ModbusTcpClient:
        cfg = self._config
        if cfg.scheme == "rtu":
            return ModbusSerialClient(
                port=cfg.serial_port,
                framer=FramerType.RTU,
                baudrate=cfg.speed,
                bytesize=cfg.data_bits,
                parity=cfg.parity,
                stopbits=cfg.stop_bits,
                timeout=cfg.timeout,
                retries=cfg.retries,
            )
        framer = FramerType.RTU if cfg.scheme == "rtuovertcp" else FramerType.SOCKET
        return ModbusTcpClient(
            host=cfg.host,
            port=cfg.port,
            framer=framer,
            timeout=cfg.timeout,
            retries=cfg.retries,
        )

    def _get_client(self) -> ModbusSerialClient | ModbusTcpClient:
        if self._client is None:
            client = self._make_client()
            if not client.connect():
                raise BusConnectionError(f"Failed to connect to {self._config.url}")
            logger.debug("Connected to %s", self._config.url)
            self._client = client
        return self._client

    def open(self) -> None:
        """Open the serial port / TCP connection."""
        self._get_client()

    def close(self) -> None:
        """Close the connection."""
        if self._client is not None:
            try:
                self._client.close()
            except Exception as e:
                logger.warning("Error closing Modbus client: %s", e)
            self._client = None

    def __enter__(self) -> "BusClient":
        self.open()
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    @property
    def config(self) -> BusConfig:
        return self._config

    def select_device(self, slave_address: int) -> None:
        """Address subsequent requests to `slave_address`."""
        if not 0 <= slave_address <= MAX_UNIT_ID:
            raise BusError(f"Invalid slave address for Modbus: {slave_address}", device=slave_address)
        self._unit_id = slave_address

    @contextmanager
    def session(self, slave_address: int) -> Iterator["BusClient"]:
        """Hold the bus exclusively and address `slave_address` until the block exits."""
        with self._lock:
            self.select_device(slave_address)
            yield self

    def _request(self, method: str, address: int, access_class: AccessClass, *args: Any, **kwargs: Any) -> Any:
        if self._unit_id is None:
            raise BusError("No device selected", address=address, access_class=access_class.value)
        client = self._get_client()
        try:
            rr = getattr(client, method)(address, *args, device_id=self._unit_id, **kwargs)
        except ModbusIOException as e:
            raise BusTimeoutError(
                f"No response from device {self._unit_id} at 0x{address:04X}: {e}",
                device=self._unit_id,
                access_class=access_class.value,
                address=address,
                cause=e,
            ) from e
        except ConnectionException as e:
            raise BusConnectionError(
                str(e), device=self._unit_id, access_class=access_class.value, address=address, cause=e
            ) from e
        except ModbusException as e:
            raise BusError(
                str(e), device=self._unit_id, access_class=access_class.value, address=address, cause=e
            ) from e
        if rr.isError():
            raise BusError(
                str(rr),
                device=self._unit_id,
                access_class=access_class.value,
                address=address,
                cause=getattr(rr, "exception", None),
            )
        return rr

    def read_discrete_batch(self, addresses: Sequence[int], coils: Sequence[bool] | None = None) -> list[bool]:
        """
        Read one bit per address. Entries flagged in `coils` are read as coils (FC1),
        the rest as discrete inputs (FC2).
        """
        if coils is not None and len(coils) != len(addresses):
            raise ValueError("coils must have one flag per address")
        out: list[bool] = []
        for i, addr in enumerate(addresses):
            method = "read_coils" if coils is not None and coils[i] else "read_discrete_inputs"
            rr = self._request(method, addr, AccessClass.DISCRETE, count=1)
            bits = getattr(rr, "bits", None)
            if not bits:
                raise BusError(
                    "Empty bit response", device=self._unit_id, access_class=AccessClass.DISCRETE.value, address=addr
                )
            out.append(bool(bits[0]))
        return out

    def read_numeric_batch(
        self,
        addresses: Sequence[int],
        datatypes: Sequence[str],
        access_class: AccessClass,
    ) -> list[TypedValue]:
        """Read and decode one numeric value per address from input or holding registers."""
        if len(datatypes) != len(addresses):
            raise ValueError("datatypes must have one entry per address")
        if access_class == AccessClass.INPUT:
            method = "read_input_registers"
        elif access_class == AccessClass.HOLDING:
            method = "read_holding_registers"
        else:
            raise ValueError(f"Not a register class: {access_class.value}")

        out: list[TypedValue] = []
        for addr, datatype in zip(addresses, datatypes):
            if not is_numeric(datatype):
                raise ValueError(f"Not a numeric datatype: {datatype!r}")
            count = register_count(datatype)
            rr = self._request(method, addr, access_class, count=count)
            registers = getattr(rr, "registers", None)
            if not registers or len(registers) < count:
                raise BusError(
                    "Short register response",
                    device=self._unit_id,
                    access_class=access_class.value,
                    address=addr,
                )
            out.append(decode_registers(datatype, list(registers[:count])))
        return out

    def write_single(self, address: int, value: TypedValue) -> None:
        """Write one value; the variant selects coil write or multi-word register write."""
        if isinstance(value, Bool):
            self._request("write_coil", address, AccessClass.DISCRETE, value.value)
        elif isinstance(value, (U64, F32)):
            self._request("write_registers", address, AccessClass.HOLDING, encode_value(value))
        else:
            raise ValueError(f"Cannot write {value!r}")
        logger.debug("Wrote %s to device %s at 0x%04X", value, self._unit_id, address)
