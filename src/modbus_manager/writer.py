"""WriteCoordinator: validate, coerce and write one user-entered value."""

import logging

from .bus import BusClient
from .codec import coerce_text, resolve_datatype
from .errors import UnknownRegisterError, WritePolicyError
from .registry import Registry
from .types import AccessClass, Action, Datatype, RegisterDescriptor, TypedValue

logger = logging.getLogger(__name__)


def check_write_policy(descriptor: RegisterDescriptor) -> Datatype:
    """Return the datatype the text will be coerced to; raise WritePolicyError if not writable."""
    where = f"{descriptor.device} {descriptor.access_class.value} 0x{descriptor.address:04X}"
    if descriptor.access_class == AccessClass.INPUT:
        raise WritePolicyError(descriptor, f"{where}: input registers are read-only")
    if descriptor.action != Action.WRITE:
        raise WritePolicyError(descriptor, f"{where}: declared 'read', not 'write'")

    dt = resolve_datatype(descriptor.datatype)
    if dt is None:
        raise WritePolicyError(descriptor, f"{where}: writes are not defined for datatype {descriptor.datatype!r}")
    if descriptor.access_class == AccessClass.DISCRETE:
        # Coils carry one bit; a numeric tag on a discrete register is not writable.
        if dt != Datatype.BOOL:
            raise WritePolicyError(descriptor, f"{where}: discrete registers only accept BOOL writes")
        return dt
    if dt == Datatype.BOOL:
        raise WritePolicyError(descriptor, f"{where}: BOOL is only writable on discrete registers")
    return dt


class WriteCoordinator:
    """Applies single writes; the registry changes only after the bus acknowledges."""

    def __init__(self, registry: Registry, bus: BusClient) -> None:
        self._registry = registry
        self._bus = bus

    def coerce(self, descriptor: RegisterDescriptor, text: str) -> TypedValue:
        """Policy check plus text coercion, without touching the bus."""
        datatype = check_write_policy(descriptor)
        return coerce_text(datatype.value, text)

    def write(self, descriptor: RegisterDescriptor, text: str) -> TypedValue:
        """
        Coerce `text` and write it to `descriptor`.

        Raises WritePolicyError or ValueFormatError before any bus traffic, and BusError
        if the device rejects the write. Returns the value now stored in the registry.
        """
        if descriptor not in self._registry:
            raise UnknownRegisterError(descriptor.device, descriptor.access_class.value, descriptor.address)
        value = self.coerce(descriptor, text)
        with self._bus.session(descriptor.slave_address):
            self._bus.write_single(descriptor.address, value)
            self._registry.update({descriptor: value})
        logger.info("Wrote %s to %s %s 0x%04X", value, descriptor.device, descriptor.access_class.value, descriptor.address)
        return value
