#!/usr/bin/env python3
"""Command-line front end for modbus-manager using Typer."""

import csv
import io
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import typer
from typing_extensions import Annotated

from . import __version__  # type: ignore
from .bus import BusClient
from .config import Config, load_config
from .errors import BusError, ConfigurationError, UnknownRegisterError, WriteError
from .poller import PollingEngine, PollReport
from .registry import Registry
from .types import F32, U64, AccessClass, Bool, TypedValue
from .writer import WriteCoordinator

app = typer.Typer(
    name="modbus-manager",
    help="Inspect and modify Modbus device registers described by register.dsl files.",
    no_args_is_help=True,
)

logger = logging.getLogger(__name__)

# ============================================================================
# Shared options and helpers
# ============================================================================

ConfigOption = Annotated[
    Path,
    typer.Option("--config", "-c", help="Configuration base directory (holds modbus.json)", envvar="MODBUS_MANAGER_CONFIG"),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Enable debug logging"),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", help="Output as JSON"),
]

DEFAULT_CONFIG = Path("config")

ROW_COLUMNS = ("device", "slave", "address", "action", "datatype", "type", "value")


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbose flag."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s" if not verbose else "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def load(config_dir: Path) -> tuple[Config, Registry]:
    """Load configuration and build the registry from every device's definitions."""
    config = load_config(config_dir)
    return config, config.build_registry()


def parse_address(value: str) -> int:
    """Parse a register address: 0x-prefixed hex or decimal, 0..0xFFFF."""
    v = value.strip()
    num = int(v, 16) if v.lower().startswith("0x") else int(v)
    if not 0 <= num <= 0xFFFF:
        raise ValueError(f"Address out of range 0..0xFFFF: {value!r}")
    return num


def to_python(value: TypedValue) -> bool | int | float | None:
    """Plain JSON-friendly value for a TypedValue."""
    if isinstance(value, (Bool, U64, F32)):
        return value.value
    return None


def format_value(value: TypedValue) -> str:
    """Format value for display."""
    return str(value)


def row_name(row: dict[str, str]) -> str:
    return f"{row['device']}:{row['type']}:{row['address']}"


def format_table(rows: list[dict[str, str]], columns: tuple[str, ...] = ROW_COLUMNS) -> str:
    widths = {c: max([len(c)] + [len(r[c]) for r in rows]) for c in columns}
    lines = ["  ".join(c.title().ljust(widths[c]) for c in columns)]
    for r in rows:
        lines.append("  ".join(r[c].ljust(widths[c]) for c in columns))
    return "\n".join(line.rstrip() for line in lines)


def report_errors(report: PollReport) -> None:
    for device, error in report.errors.items():
        typer.echo(f"Error: Poll of {device} failed: {error}", err=True)


def _fail(message: str, code: int, verbose: bool = False) -> typer.Exit:
    typer.echo(f"Error: {message}", err=True)
    if verbose and code == 4:
        import traceback

        traceback.print_exc()
    return typer.Exit(code)


# ============================================================================
# Commands
# ============================================================================


@app.command()
def info(
    config_dir: ConfigOption = DEFAULT_CONFIG,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """
    Show package version and a summary of the configuration.

    Does not touch the bus.
    """
    setup_logging(verbose)

    info_data: dict[str, Any] = {"version": __version__, "config": str(config_dir)}
    try:
        config, registry = load(config_dir)
        info_data["bus"] = config.bus.url
        info_data["devices"] = [
            {"name": d.name, "slave_address": d.slave_address, "registers": len(d)} for d in registry
        ]
    except ConfigurationError as e:
        info_data["error"] = str(e)

    if json_output:
        typer.echo(json.dumps(info_data, indent=2))
        return
    typer.echo(f"modbus-manager version: {info_data['version']}")
    typer.echo(f"Config: {info_data['config']}")
    if "error" in info_data:
        typer.echo(f"Config error: {info_data['error']}")
        return
    typer.echo(f"Bus: {info_data['bus']}")
    for d in info_data["devices"]:
        typer.echo(f"Device: {d['name']} (slave {d['slave_address']}, {d['registers']} registers)")


@app.command()
def check(
    config_dir: ConfigOption = DEFAULT_CONFIG,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """
    Parse the configuration and every register.dsl, then list the registers.

    Exits with code 2 on the first configuration or definition error.
    """
    setup_logging(verbose)

    try:
        _config, registry = load(config_dir)
    except ConfigurationError as e:
        raise _fail(f"Configuration error: {e}", 2)

    columns = ROW_COLUMNS[:-1]
    rows = [{c: r[c] for c in columns} for r in registry.rows()]
    if json_output:
        typer.echo(json.dumps(rows, indent=2))
    else:
        typer.echo(format_table(rows, columns))


@app.command()
def poll(
    config_dir: ConfigOption = DEFAULT_CONFIG,
    verbose: VerboseOption = False,
    interval: Annotated[float, typer.Option("--interval", "-i", help="Polling interval in seconds")] = 1.0,
    once: Annotated[bool, typer.Option("--once", help="Poll once and exit")] = False,
    format: Annotated[str, typer.Option("--format", "-f", help="Output format: text, json, csv")] = "text",
) -> None:
    """
    Poll every configured device on a fixed interval and print its register values.

    Each cycle issues one batched read per device and register class. A device that fails
    is reported on stderr and keeps its previous values; the other devices are unaffected.

    Outputs format:
    - text: register table per cycle, preceded by a timestamp
    - json: NDJSON with {"timestamp": "...", "values": {...}, "errors": {...}} per line
    - csv: device:type:address as columns, one row per poll cycle

    Press Ctrl+C to stop.
    """
    setup_logging(verbose)

    if format not in ("text", "json", "csv"):
        raise _fail(f"Invalid format '{format}'. Must be text, json, or csv.", 2)
    if interval <= 0:
        raise _fail(f"Interval must be positive, got {interval}", 2)

    try:
        config, registry = load(config_dir)
    except ConfigurationError as e:
        raise _fail(f"Configuration error: {e}", 2)

    names = [row_name(r) for r in registry.rows()]
    if format == "csv":
        typer.echo("timestamp," + ",".join(names))

    def emit(report: PollReport) -> None:
        report_errors(report)
        timestamp = datetime.now(timezone.utc).isoformat()
        rows = registry.rows()
        if format == "text":
            typer.echo(timestamp)
            typer.echo(format_table(rows))
        elif format == "json":
            snapshot = registry.snapshot()
            values = {
                f"{d.device}:{d.access_class.value}:0x{d.address:X}": to_python(v) for d, v in snapshot.items()
            }
            errors = {name: str(e) for name, e in report.errors.items()}
            typer.echo(json.dumps({"timestamp": timestamp, "values": values, "errors": errors}))
        else:
            buf = io.StringIO()
            csv.writer(buf, lineterminator="").writerow([timestamp] + [r["value"] for r in rows])
            typer.echo(buf.getvalue())

    try:
        with BusClient(config.bus) as bus:
            engine = PollingEngine(registry, bus, interval_s=interval)
            if once:
                emit(engine.poll_once())
            else:
                for report in engine.poll_iter():
                    emit(report)
    except BusError as e:
        raise _fail(f"Connection/Modbus error: {e}", 3)
    except KeyboardInterrupt:
        typer.echo("\nStopped by user", err=True)
        raise typer.Exit(0)
    except Exception as e:
        raise _fail(f"Unexpected error: {e}", 4, verbose)


@app.command()
def write(
    device: Annotated[str, typer.Argument(help="Device name as configured")],
    address: Annotated[str, typer.Argument(help="Register address (0x0A hex or decimal)")],
    value: Annotated[str, typer.Argument(help="Value (bool: true/false/1/0/on/off/yes/no; U64: decimal; F32: float)")],
    config_dir: ConfigOption = DEFAULT_CONFIG,
    verbose: VerboseOption = False,
    access_class: Annotated[
        AccessClass, typer.Option("--class", help="Register class of the target", case_sensitive=False)
    ] = AccessClass.HOLDING,
) -> None:
    """
    Write a single value to one register declared with 'write'.

    The value is coerced according to the register's datatype before anything is sent;
    a value that does not parse is rejected without bus traffic.
    """
    setup_logging(verbose)

    try:
        addr = parse_address(address)
    except ValueError as e:
        raise _fail(f"Invalid address: {e}", 2)

    try:
        config, registry = load(config_dir)
        descriptor = registry.find(device, access_class, addr)
        bus = BusClient(config.bus)
        writer = WriteCoordinator(registry, bus)
        writer.coerce(descriptor, value)
        with bus:
            written = writer.write(descriptor, value)
        typer.echo(f"OK: Wrote {device} {access_class.value} 0x{addr:X} = {format_value(written)}")
    except ConfigurationError as e:
        raise _fail(f"Configuration error: {e}", 2)
    except UnknownRegisterError as e:
        raise _fail(str(e), 2)
    except WriteError as e:
        raise _fail(f"Write rejected: {e}", 2)
    except BusError as e:
        raise _fail(f"Connection/Modbus error: {e}", 3)
    except Exception as e:
        raise _fail(f"Unexpected error: {e}", 4, verbose)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        typer.echo(f"modbus-manager {__version__}")
        raise typer.Exit(0)


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option("--version", callback=version_callback, is_eager=True, help="Show version and exit"),
    ] = None,
) -> None:
    """modbus-manager - inspect and modify Modbus device registers."""
    pass


if __name__ == "__main__":
    app()
