"""
Session configuration loaded from a YAML file.

Example::

    port: Arduino
    baudrate: 57600
    rate_hz: 60
    authorized_ports: [/dev/ttyACM0]
    mapping: click_target
    channels:
      pan:
        min: 0
        max: 180
        initial: 90
        duration_ms: 1000
      tilt:
        min: 180          # inverted mounting
        max: 0
        mode: direct

Channels go on the wire in the order they appear in the file.  Calibration
lives only in this file; nothing is written back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from .constants import (
    DEFAULT_BAUD,
    DEFAULT_DURATION_MS,
    DEFAULT_PORT_NAME,
    DEFAULT_RATE_HZ,
    SERVO_MAX,
    SERVO_MIN,
)
from .exceptions import ValidationError
from .signals import MAPPERS

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Configuration data model
# ---------------------------------------------------------------------------


class ChannelMode(Enum):
    """How a channel reaches its mapped value."""

    INTERPOLATED = "interpolated"
    DIRECT = "direct"


@dataclass(frozen=True)
class ChannelConfig:
    """Validated configuration for a single output channel."""

    name: str
    min: float = SERVO_MIN
    max: float = SERVO_MAX
    initial: float | None = None
    duration_ms: float = DEFAULT_DURATION_MS
    mode: ChannelMode = ChannelMode.INTERPOLATED

    @property
    def start_value(self) -> float:
        """Initial value, defaulting to the middle of the range."""
        if self.initial is not None:
            return self.initial
        return (self.min + self.max) / 2


@dataclass(frozen=True)
class SessionConfig:
    """Top-level configuration loaded from a YAML file."""

    port: str = DEFAULT_PORT_NAME
    baudrate: int = DEFAULT_BAUD
    rate_hz: float = DEFAULT_RATE_HZ
    authorized_ports: tuple[str, ...] = ()
    mapping: str = "pointer"
    mapping_options: dict[str, Any] = field(default_factory=dict)
    channels: tuple[ChannelConfig, ...] = ()


# ---------------------------------------------------------------------------
# Config loading & validation
# ---------------------------------------------------------------------------


def load_config(path: str | Path) -> SessionConfig:
    """Load and validate a session configuration from a YAML file.

    Raises:
        FileNotFoundError: If *path* does not exist.
        ValidationError: If the config is malformed or contains invalid values.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        raw = yaml.safe_load(f)

    config = parse_config(raw)
    logger.info(
        "Loaded %s: %d channel(s), mapping %r",
        path,
        len(config.channels),
        config.mapping,
    )
    return config


def parse_config(raw: Any) -> SessionConfig:
    """Validate an already-parsed YAML document."""
    if not isinstance(raw, dict):
        raise ValidationError(f"Config file must be a YAML mapping, got {type(raw).__name__}")

    # -- Top-level fields ---------------------------------------------------
    port = raw.get("port", DEFAULT_PORT_NAME)
    if not isinstance(port, str) or not port:
        raise ValidationError("'port' must be a non-empty string")

    baudrate = raw.get("baudrate", DEFAULT_BAUD)
    if not isinstance(baudrate, int) or isinstance(baudrate, bool) or baudrate <= 0:
        raise ValidationError(f"'baudrate' must be a positive integer, got {baudrate!r}")

    rate_hz = _require_number(raw, "rate_hz", DEFAULT_RATE_HZ, "config")
    if rate_hz <= 0:
        raise ValidationError(f"'rate_hz' must be positive, got {rate_hz}")

    authorized = raw.get("authorized_ports", [])
    if not isinstance(authorized, list) or not all(isinstance(p, str) for p in authorized):
        raise ValidationError("'authorized_ports' must be a list of strings")

    mapping = raw.get("mapping", "pointer")
    if mapping not in MAPPERS:
        raise ValidationError(f"Unknown mapping {mapping!r}; expected one of {sorted(MAPPERS)}")

    mapping_options = raw.get("mapping_options", {}) or {}
    if not isinstance(mapping_options, dict):
        raise ValidationError("'mapping_options' must be a mapping")

    # -- Channels -----------------------------------------------------------
    raw_channels = raw.get("channels")
    if not isinstance(raw_channels, dict) or not raw_channels:
        raise ValidationError("Config must contain a non-empty 'channels' mapping")

    channels = tuple(_parse_channel(name, data) for name, data in raw_channels.items())

    return SessionConfig(
        port=port,
        baudrate=baudrate,
        rate_hz=float(rate_hz),
        authorized_ports=tuple(authorized),
        mapping=mapping,
        mapping_options=dict(mapping_options),
        channels=channels,
    )


def _parse_channel(name: Any, data: Any) -> ChannelConfig:
    """Parse and validate a single channel entry from the config."""
    name = str(name)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError(f"Channel {name!r} config must be a mapping")

    lo = _require_number(data, "min", SERVO_MIN, name)
    hi = _require_number(data, "max", SERVO_MAX, name)

    initial = data.get("initial")
    if initial is not None:
        initial = _require_number(data, "initial", None, name)

    duration_ms = _require_number(data, "duration_ms", DEFAULT_DURATION_MS, name)
    if duration_ms < 0:
        raise ValidationError(f"Channel {name!r}: 'duration_ms' must be >= 0, got {duration_ms}")

    mode_str = data.get("mode", ChannelMode.INTERPOLATED.value)
    try:
        mode = ChannelMode(mode_str)
    except ValueError as exc:
        raise ValidationError(
            f"Channel {name!r}: mode must be one of "
            f"{[m.value for m in ChannelMode]}, got {mode_str!r}"
        ) from exc

    return ChannelConfig(
        name=name,
        min=float(lo),
        max=float(hi),
        initial=None if initial is None else float(initial),
        duration_ms=float(duration_ms),
        mode=mode,
    )


def _require_number(data: dict, key: str, default: float | None, owner: str) -> float:
    val = data.get(key, default)
    if isinstance(val, bool) or not isinstance(val, (int, float)):
        raise ValidationError(f"{owner}: '{key}' must be a number, got {val!r}")
    return val
