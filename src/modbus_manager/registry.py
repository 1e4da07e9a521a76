"""Registry: devices, their descriptors partitioned by access class, and last-known values."""

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, Mapping, TextIO

from .dsl import parse_register_definitions
from .errors import ConfigurationError, DuplicateAddressError, UnknownRegisterError
from .types import UNSET, AccessClass, RegisterDescriptor, TypedValue

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeviceSource:
    """Where to find one device's register definitions."""

    name: str
    slave_address: int
    load: Callable[[], str | TextIO]
    source_name: str | None = None


@dataclass(frozen=True)
class Device:
    """One physical slave and its three disjoint descriptor sets."""

    name: str
    slave_address: int
    discrete: tuple[RegisterDescriptor, ...] = ()
    inputs: tuple[RegisterDescriptor, ...] = ()
    holding: tuple[RegisterDescriptor, ...] = ()

    def descriptors(self, access_class: AccessClass) -> tuple[RegisterDescriptor, ...]:
        if access_class == AccessClass.DISCRETE:
            return self.discrete
        if access_class == AccessClass.INPUT:
            return self.inputs
        return self.holding

    def __iter__(self) -> Iterator[RegisterDescriptor]:
        yield from self.discrete
        yield from self.inputs
        yield from self.holding

    def __len__(self) -> int:
        return len(self.discrete) + len(self.inputs) + len(self.holding)


def build_device(name: str, slave_address: int, descriptors: Iterable[RegisterDescriptor]) -> Device:
    """Partition descriptors by access class; duplicate addresses within a class are an error."""
    by_class: dict[AccessClass, dict[int, RegisterDescriptor]] = {ac: {} for ac in AccessClass}
    for d in descriptors:
        seen = by_class[d.access_class]
        if d.address in seen:
            raise DuplicateAddressError(name, d.access_class.value, d.address)
        seen[d.address] = d
    return Device(
        name=name,
        slave_address=slave_address,
        discrete=tuple(by_class[AccessClass.DISCRETE].values()),
        inputs=tuple(by_class[AccessClass.INPUT].values()),
        holding=tuple(by_class[AccessClass.HOLDING].values()),
    )


class Registry:
    """
    The full set of devices plus the last-known TypedValue of every descriptor.

    Descriptors are fixed after construction. Values start UNSET and are replaced by the
    polling engine and the write coordinator, both of which do so inside a bus session.
    """

    def __init__(self, devices: Iterable[Device]) -> None:
        self._devices: tuple[Device, ...] = tuple(devices)
        self._by_name: dict[str, Device] = {}
        self._values: dict[RegisterDescriptor, TypedValue] = {}
        for device in self._devices:
            if device.name in self._by_name:
                raise ConfigurationError(f"Duplicate device name: {device.name!r}")
            self._by_name[device.name] = device
            for d in device:
                self._values[d] = UNSET
        logger.debug("Registry built: %d devices, %d registers", len(self._devices), len(self._values))

    @classmethod
    def build(cls, sources: Iterable[DeviceSource]) -> "Registry":
        """Parse each source in order and build the registry; raises ConfigurationError."""
        devices: list[Device] = []
        for src in sources:
            try:
                text = src.load()
            except (OSError, UnicodeDecodeError) as e:
                raise ConfigurationError(
                    f"Cannot read register definitions for {src.name!r}: {e}"
                ) from e
            descriptors = parse_register_definitions(
                text, src.slave_address, src.name, source_name=src.source_name
            )
            devices.append(build_device(src.name, src.slave_address, descriptors))
        return cls(devices)

    @property
    def devices(self) -> tuple[Device, ...]:
        return self._devices

    def __iter__(self) -> Iterator[Device]:
        return iter(self._devices)

    def __len__(self) -> int:
        return len(self._devices)

    def device(self, name: str) -> Device:
        if name not in self._by_name:
            raise ConfigurationError(f"Unknown device: {name!r}")
        return self._by_name[name]

    def find(self, device: str, access_class: AccessClass, address: int) -> RegisterDescriptor:
        """Return the descriptor at `address` in the given device/class; raise UnknownRegisterError."""
        dev = self._by_name.get(device)
        if dev is not None:
            for d in dev.descriptors(access_class):
                if d.address == address:
                    return d
        raise UnknownRegisterError(device, access_class.value, address)

    def __contains__(self, descriptor: object) -> bool:
        return descriptor in self._values

    def value(self, descriptor: RegisterDescriptor) -> TypedValue:
        return self._values[descriptor]

    def snapshot(self) -> dict[RegisterDescriptor, TypedValue]:
        return dict(self._values)

    def update(self, values: Mapping[RegisterDescriptor, TypedValue]) -> None:
        """Store new values; every key must be a descriptor owned by this registry."""
        unknown = [d for d in values if d not in self._values]
        if unknown:
            raise KeyError(f"Descriptor not in registry: {unknown[0]!r}")
        self._values.update(values)

    def rows(self) -> list[dict[str, str]]:
        """Flat presentation rows, one per descriptor, in registry order."""
        rows: list[dict[str, str]] = []
        for device in self._devices:
            for d in device:
                rows.append(
                    {
                        "device": device.name,
                        "slave": f"0x{d.slave_address:X}",
                        "address": f"0x{d.address:X}",
                        "action": d.action.value,
                        "datatype": d.datatype,
                        "type": d.access_class.value,
                        "value": str(self._values[d]),
                    }
                )
        return rows
