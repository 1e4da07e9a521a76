"""PollingEngine: one batched read per device and access class, on a fixed cadence."""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Iterator

from .bus import BusClient
from .codec import is_numeric
from .errors import BusError
from .registry import Device, Registry
from .types import AccessClass, Action, Bool, RegisterDescriptor, TypedValue

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_S = 1.0


@dataclass
class PollReport:
    """Outcome of one poll cycle."""

    cycle: int
    updated: int = 0
    errors: dict[str, BusError] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors


class PollingEngine:
    """
    Advances every device's values by one poll cycle per tick.

    A device's batches are read inside one bus session and committed together; if any batch
    fails, none of that device's values change and the next device is polled as usual.
    """

    def __init__(self, registry: Registry, bus: BusClient, interval_s: float = DEFAULT_INTERVAL_S) -> None:
        if interval_s <= 0:
            raise ValueError(f"interval_s must be positive, got {interval_s}")
        self._registry = registry
        self._bus = bus
        self._interval_s = interval_s
        self._cycle = 0
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def interval_s(self) -> float:
        return self._interval_s

    def _read_device(self, device: Device) -> dict[RegisterDescriptor, TypedValue]:
        values: dict[RegisterDescriptor, TypedValue] = {}

        if device.discrete:
            bits = self._bus.read_discrete_batch(
                [d.address for d in device.discrete],
                coils=[d.action == Action.WRITE for d in device.discrete],
            )
            for d, bit in zip(device.discrete, bits):
                values[d] = Bool(bit)

        for access_class in (AccessClass.INPUT, AccessClass.HOLDING):
            # Unknown datatypes are left alone so newer definition files still load on older builds.
            numeric = [d for d in device.descriptors(access_class) if is_numeric(d.datatype)]
            if not numeric:
                continue
            decoded = self._bus.read_numeric_batch(
                [d.address for d in numeric],
                [d.datatype for d in numeric],
                access_class,
            )
            values.update(zip(numeric, decoded))
        return values

    def poll_device(self, device: Device) -> int:
        """Read and commit one device; raises BusError with the registry untouched."""
        if not len(device):
            return 0
        with self._bus.session(device.slave_address):
            values = self._read_device(device)
            self._registry.update(values)
        return len(values)

    def poll_once(self) -> PollReport:
        """Run one cycle over all devices in registry order."""
        self._cycle += 1
        report = PollReport(cycle=self._cycle)
        for device in self._registry:
            try:
                report.updated += self.poll_device(device)
            except BusError as e:
                logger.warning("Poll of %s (slave %d) failed: %s", device.name, device.slave_address, e)
                report.errors[device.name] = e
        logger.debug("Poll cycle %d: %d values updated, %d errors", report.cycle, report.updated, len(report.errors))
        return report

    def poll_iter(self, stop: threading.Event | None = None) -> Iterator[PollReport]:
        """
        Yield a PollReport every interval until `stop` is set.

        Ticks are scheduled on a fixed grid from the first cycle; a slow cycle skips the
        ticks it overran instead of running them back to back.
        """
        stop = stop or self._stop
        next_tick = time.monotonic()
        while not stop.is_set():
            yield self.poll_once()
            next_tick += self._interval_s
            now = time.monotonic()
            if next_tick < now:
                missed = int((now - next_tick) // self._interval_s) + 1
                next_tick += missed * self._interval_s
            if stop.wait(next_tick - now):
                break

    def run(self, stop: threading.Event | None = None, cycles: int | None = None) -> None:
        """Poll until `stop` is set or `cycles` cycles have run."""
        for n, _report in enumerate(self.poll_iter(stop), start=1):
            if cycles is not None and n >= cycles:
                break

    def start(self) -> threading.Thread:
        """Run the poll loop on a daemon thread."""
        if self._thread is not None and self._thread.is_alive():
            return self._thread
        self._stop.clear()
        self._thread = threading.Thread(target=self.run, name="modbus-poller", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
