from __future__ import annotations
import json
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

import yaml

from .models import AddressFamily, Protocol
from .utils.path import to_abs_path

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


class ConfigError(ValueError):
    """Startup configuration is missing or malformed; the monitor must not start."""


@dataclass
class CFG:
    minimum_connection_count: Any = None
    monitor_interval_seconds: Any = None
    protocols: List[Any] = field(default_factory=lambda: [Protocol.TCP])
    families: List[Any] = field(default_factory=lambda: [AddressFamily.IPV4])
    port: Optional[int] = None
    log_level: str = "INFO"
    log_file: Optional[str] = None

    def validate(self) -> "CFG":
        """Parse every field in place. Raises ConfigError on the first bad value."""
        self.minimum_connection_count = parse_int("minimum_connection_count",
                                                  self.minimum_connection_count, minimum=0)
        self.monitor_interval_seconds = parse_int("monitor_interval_seconds",
                                                  self.monitor_interval_seconds, minimum=1)
        self.protocols = _unique([parse_protocol(p) for p in _as_list("protocols", self.protocols)])
        self.families = _unique([parse_family(f) for f in _as_list("families", self.families)])
        if self.port is not None:
            self.port = parse_int("port", self.port, minimum=1, maximum=65535)
        self.log_level = str(self.log_level).strip().upper()
        if self.log_level not in LOG_LEVELS:
            raise ConfigError(f"log_level must be one of {', '.join(LOG_LEVELS)}, got {self.log_level!r}")
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "minimum_connection_count": self.minimum_connection_count,
            "monitor_interval_seconds": self.monitor_interval_seconds,
            "protocols": [Protocol(p).value for p in self.protocols],
            "families": [AddressFamily(f).name.lower() for f in self.families],
        }


def parse_int(name: str, value: Any, minimum: Optional[int] = None, maximum: Optional[int] = None) -> int:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ConfigError(f"{name} is required")
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    try:
        parsed = int(value.strip()) if isinstance(value, str) else int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer, got {value!r}") from None
    if isinstance(value, float) and parsed != value:
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    if minimum is not None and parsed < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {parsed}")
    if maximum is not None and parsed > maximum:
        raise ConfigError(f"{name} must be <= {maximum}, got {parsed}")
    return parsed


def parse_protocol(value: Any) -> Protocol:
    try:
        return Protocol(str(getattr(value, "value", value)).strip().lower())
    except ValueError:
        raise ConfigError(f"unknown protocol {value!r} (expected tcp or udp)") from None


def parse_family(value: Any) -> AddressFamily:
    if isinstance(value, AddressFamily):
        return value
    try:
        return AddressFamily[str(value).strip().upper()]
    except KeyError:
        raise ConfigError(f"unknown address family {value!r} (expected ipv4 or ipv6)") from None


def _as_list(name: str, value: Any) -> list:
    if isinstance(value, str):
        value = [x for x in value.split(",") if x.strip()]
    if not value:
        raise ConfigError(f"{name} must name at least one entry")
    return list(value)


def _unique(items: list) -> list:
    return list(dict.fromkeys(items))


def load_config_file(path: str) -> Dict[str, Any]:
    p = to_abs_path(path)
    if not p or not p.exists():
        raise ConfigError(f"config not found: {p or path}")
    txt = p.read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(txt) if p.suffix in (".yaml", ".yml") else json.loads(txt)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigError(f"cannot parse {p}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{p} must hold a mapping of settings")
    known = {f.name for f in fields(CFG)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"unknown settings in {p}: {', '.join(unknown)}")
    return data


def init_cfg_from_args(args) -> CFG:
    data = load_config_file(args.config) if getattr(args, "config", None) else {}
    cfg = CFG(**data)
    if getattr(args, "min_connections", None) is not None:
        cfg.minimum_connection_count = args.min_connections
    if getattr(args, "interval", None) is not None:
        cfg.monitor_interval_seconds = args.interval
    if getattr(args, "udp", False):
        cfg.protocols = list(_as_list("protocols", cfg.protocols)) + [Protocol.UDP]
    if getattr(args, "ipv6", False):
        cfg.families = list(_as_list("families", cfg.families)) + [AddressFamily.IPV6]
    if getattr(args, "port", None) is not None:
        cfg.port = args.port
    if getattr(args, "log_level", None):
        cfg.log_level = args.log_level
    if getattr(args, "log_file", None):
        cfg.log_file = args.log_file
    return cfg.validate()
