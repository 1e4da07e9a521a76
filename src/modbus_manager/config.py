"""Load modbus.json: bus connection parameters and the ordered slave list."""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

from .errors import ConfigurationError
from .registry import DeviceSource, Registry

logger = logging.getLogger(__name__)

CONFIG_FILE = "modbus.json"
DEFINITION_FILE = "register.dsl"

SCHEMES = ("rtu", "tcp", "rtuovertcp")

_PARITY: dict[Any, str] = {
    0: "N",
    1: "E",
    2: "O",
    "n": "N",
    "e": "E",
    "o": "O",
    "none": "N",
    "even": "E",
    "odd": "O",
}


@dataclass(frozen=True)
class SlaveConfig:
    address: int
    name: str
    hardware_maker: str

    @property
    def display_name(self) -> str:
        return self.name or self.hardware_maker


@dataclass(frozen=True)
class BusConfig:
    """Connection parameters for one bus. `timeout` is in seconds."""

    url: str
    timeout: float = 1.0
    speed: int = 19200
    data_bits: int = 8
    parity: str = "N"
    stop_bits: int = 1
    retries: int = 0

    @property
    def scheme(self) -> str:
        return urlsplit(self.url).scheme.lower()

    @property
    def serial_port(self) -> str:
        """Device path for rtu:// URLs (rtu:///dev/ttyUSB0 -> /dev/ttyUSB0)."""
        parts = urlsplit(self.url)
        return parts.netloc + parts.path

    @property
    def host(self) -> str:
        return urlsplit(self.url).hostname or ""

    @property
    def port(self) -> int:
        return urlsplit(self.url).port or 502


@dataclass(frozen=True)
class Config:
    base_dir: Path
    bus: BusConfig
    slaves: tuple[SlaveConfig, ...]

    def definition_path(self, slave: SlaveConfig) -> Path:
        return self.base_dir / slave.hardware_maker / DEFINITION_FILE

    def device_sources(self) -> list[DeviceSource]:
        sources: list[DeviceSource] = []
        for slave in self.slaves:
            path = self.definition_path(slave)
            sources.append(
                DeviceSource(
                    name=slave.display_name,
                    slave_address=slave.address,
                    load=lambda p=path: p.read_text(encoding="utf-8"),
                    source_name=str(path),
                )
            )
        return sources

    def build_registry(self) -> Registry:
        return Registry.build(self.device_sources())


def _int_field(raw: dict[str, Any], key: str, default: int) -> int:
    value = raw.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{key!r} must be an integer, got {value!r}")
    return value


def _parse_parity(value: Any) -> str:
    key = value.lower() if isinstance(value, str) else value
    if isinstance(key, bool) or key not in _PARITY:
        raise ConfigurationError(f"Invalid parity: {value!r}")
    return _PARITY[key]


def _parse_bus(raw: dict[str, Any]) -> BusConfig:
    url = raw.get("url")
    if not isinstance(url, str) or not url:
        raise ConfigurationError("Bus entry needs a 'url'")
    scheme = urlsplit(url).scheme.lower()
    if scheme not in SCHEMES:
        raise ConfigurationError(f"Unsupported url scheme {scheme!r} in {url!r}; expected one of {SCHEMES}")

    timeout_ms = _int_field(raw, "timeout", 1000)
    if timeout_ms <= 0:
        raise ConfigurationError(f"'timeout' must be positive, got {timeout_ms}")
    # 0 means "driver default" in older files
    stop_bits = _int_field(raw, "stop_bits", 1) or 1
    data_bits = _int_field(raw, "data_bits", 8) or 8
    return BusConfig(
        url=url,
        timeout=timeout_ms / 1000.0,
        speed=_int_field(raw, "speed", 19200) or 19200,
        data_bits=data_bits,
        parity=_parse_parity(raw.get("parity", 0)),
        stop_bits=stop_bits,
        retries=_int_field(raw, "retries", 0),
    )


def _parse_slave(raw: Any) -> SlaveConfig:
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Slave entry must be an object, got {raw!r}")
    address = _int_field(raw, "address", 0)
    if not 0 <= address <= 0xFF:
        raise ConfigurationError(f"Slave address out of range 0-255: {address}")
    maker = raw.get("hardware_maker") or ""
    name = raw.get("name") or ""
    if not maker:
        raise ConfigurationError(f"Slave {name or address!r} needs a 'hardware_maker'")
    return SlaveConfig(address=address, name=name, hardware_maker=maker)


def parse_config(data: Any, base_dir: Path) -> Config:
    """Validate the decoded JSON document and build a Config."""
    if not isinstance(data, dict) or not isinstance(data.get("serial"), list):
        raise ConfigurationError("Configuration must contain a 'serial' list")
    serial = data["serial"]
    if len(serial) != 1:
        raise ConfigurationError(f"Exactly one bus entry is supported, got {len(serial)}")
    entry = serial[0]
    if not isinstance(entry, dict):
        raise ConfigurationError("Bus entry must be an object")
    bus = _parse_bus(entry)
    slaves = tuple(_parse_slave(s) for s in entry.get("slaves") or [])
    logger.debug("Config loaded: %s, %d slaves", bus.url, len(slaves))
    return Config(base_dir=base_dir, bus=bus, slaves=slaves)


def load_config(config_dir: str | Path) -> Config:
    """Read <config_dir>/modbus.json; raises ConfigurationError on any problem."""
    base = Path(config_dir)
    path = base / CONFIG_FILE
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ConfigurationError(f"Configuration file not found: {path}") from None
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot read {path}: {e}") from e
    return parse_config(data, base)
