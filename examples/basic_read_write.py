#!/usr/bin/env python3
"""Example: load the config, read every device once, then write one holding register."""

import sys

from modbus_manager import AccessClass, BusClient, PollingEngine, WriteCoordinator, load_config
from modbus_manager.errors import BusError, ConfigurationError, WriteError


def main() -> None:
    config_dir = "examples/config"

    try:
        config = load_config(config_dir)
        registry = config.build_registry()
        with BusClient(config.bus) as bus:
            report = PollingEngine(registry, bus).poll_once()
            print(f"cycle {report.cycle}: {report.updated} values, errors: {list(report.errors)}")
            for row in registry.rows():
                print(row)

            # Setpoint declared as "write at 0x0C as F32-WIDE holding"
            target = registry.find("Boiler", AccessClass.HOLDING, 0x0C)
            written = WriteCoordinator(registry, bus).write(target, "21.5")
            print(f"wrote {written} -> registry now {registry.value(target)}")
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)
    except WriteError as e:
        print(f"Write rejected: {e}", file=sys.stderr)
        sys.exit(1)
    except BusError as e:
        print(f"Modbus/connection error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
