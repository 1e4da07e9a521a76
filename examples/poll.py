#!/usr/bin/env python3
"""Example: poll every configured device once a second; graceful shutdown on Ctrl+C."""

import sys

from modbus_manager import BusClient, PollingEngine, load_config
from modbus_manager.errors import BusError, ConfigurationError


def main() -> None:
    config_dir = sys.argv[1] if len(sys.argv) > 1 else "examples/config"

    try:
        config = load_config(config_dir)
        registry = config.build_registry()
        with BusClient(config.bus) as bus:
            engine = PollingEngine(registry, bus, interval_s=1.0)
            print(f"Polling {len(registry)} device(s) on {config.bus.url} (Ctrl+C to stop)...")
            for report in engine.poll_iter():
                for device, error in report.errors.items():
                    print(f"{device}: {error}", file=sys.stderr)
                for row in registry.rows():
                    print(f"{row['device']} {row['type']} {row['address']} = {row['value']}")
    except KeyboardInterrupt:
        print("\nStopped.")
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)
    except BusError as e:
        print(f"Modbus/connection error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
