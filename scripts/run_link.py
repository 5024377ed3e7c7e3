#!/usr/bin/env python3
"""
Run Link — drive a CSV serial link from a YAML session config, headless.

No canvas or camera is attached, so the signal comes from a synthetic
pointer that sweeps across a 640x480 canvas and clicks once per sweep.
That is enough to exercise pointer, click, zone and wave mappings against
a real board.

Usage:
    python scripts/run_link.py                              # default config
    python scripts/run_link.py --config config/led_fade.yaml
    python scripts/run_link.py --port /dev/ttyACM0          # skip auto-connect
    python scripts/run_link.py --list-ports                 # show ports and exit
    python scripts/run_link.py --ticks 600 -v               # 10 s at 60 Hz, debug log
"""

from __future__ import annotations

import argparse
import logging
import math
import sys
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from serial.tools import list_ports

from csvlink import Command, ControlLoop, CsvLinkError, SessionConfig, load_config
from csvlink.signals import PointerSignal

# ---------------------------------------------------------------------------
# Default config location (relative to this script)
# ---------------------------------------------------------------------------

DEFAULT_CONFIG = Path(__file__).resolve().parent.parent / "config" / "servo_click.yaml"

HEADLESS_MAPPINGS = {"pointer", "click_target", "zone_blink", "zone_wave", "wave"}

# ---------------------------------------------------------------------------
# Terminal helpers
# ---------------------------------------------------------------------------


class C:
    """ANSI color codes (no-op on non-TTY)."""

    if sys.stdout.isatty():
        BOLD = "\033[1m"
        DIM = "\033[2m"
        GREEN = "\033[32m"
        YELLOW = "\033[33m"
        RED = "\033[31m"
        RESET = "\033[0m"
    else:
        BOLD = DIM = GREEN = YELLOW = RED = RESET = ""


def ok(text: str) -> None:
    print(f"  {C.GREEN}✓{C.RESET} {text}")


def fail(text: str) -> None:
    print(f"  {C.RED}✗{C.RESET} {text}")


def warn(text: str) -> None:
    print(f"  {C.YELLOW}⚠{C.RESET} {text}")


def banner(text: str) -> None:
    print(f"\n{C.BOLD}{'═' * 60}")
    print(f"  {text}")
    print(f"{'═' * 60}{C.RESET}")


# ---------------------------------------------------------------------------
# Synthetic signal source
# ---------------------------------------------------------------------------


class SweepPointer:
    """Pointer sweeping left-right (and slower top-bottom), clicking each sweep."""

    def __init__(self, width: float = 640, height: float = 480, period_s: float = 4.0) -> None:
        self.width = width
        self.height = height
        self.period_s = period_s
        self._t0 = time.monotonic()
        self._last_sweep = -1

    def __call__(self) -> PointerSignal:
        t = (time.monotonic() - self._t0) / self.period_s
        sweep = int(t)
        pressed = sweep != self._last_sweep
        self._last_sweep = sweep
        x = (math.sin(2 * math.pi * t) + 1) / 2 * self.width
        y = (math.sin(math.pi * t / 2) + 1) / 2 * self.height
        return PointerSignal(x=x, y=y, width=self.width, height=self.height, pressed=pressed)


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


def print_ports(config: SessionConfig) -> None:
    banner("Serial Ports")
    ports = list(list_ports.comports())
    if not ports:
        warn("No serial ports found")
        return
    for info in ports:
        mark = f"{C.GREEN}*{C.RESET}" if info.device in config.authorized_ports else " "
        print(f"  {mark} {info.device:20s} {C.DIM}{info.description}{C.RESET}")


def print_config_summary(config: SessionConfig) -> None:
    print(f"  Port:     {config.port} @ {config.baudrate} baud")
    print(f"  Rate:     {config.rate_hz:g} Hz")
    print(f"  Mapping:  {config.mapping}")
    for ch in config.channels:
        print(
            f"  {ch.name:10s} [{ch.min:g}, {ch.max:g}] start {ch.start_value:g}  "
            f"{ch.mode.value}, {ch.duration_ms:g} ms"
        )


def run(config: SessionConfig, port: str | None, ticks: int | None) -> int:
    banner(f"CSV Link  ({config.mapping})")
    print_config_summary(config)
    print()

    loop = ControlLoop.from_config(config, source=SweepPointer())
    session = loop.session

    if port:
        session.port = port
        session.submit(Command.CONNECT)
    elif session.start():
        ok(f"Reconnected to {session.link.port}")
    else:
        # Headless: stands in for the user pressing Connect
        session.submit(Command.CONNECT)

    loop.tick()
    if session.connected:
        ok(f"Link open on {session.link.port}")
    else:
        warn(f"Link closed ({session.last_error or 'no port'}); running without output")

    try:
        loop.run(max_ticks=ticks)
    except KeyboardInterrupt:
        print(f"\n\n  {C.YELLOW}Interrupted!{C.RESET}")
    finally:
        session.close()
        ok(f"{loop.tick_count} tick(s); last values {session.rounded_values()}")
    return 0


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Stream CSV channel values to a microcontroller from a YAML config.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help=f"Path to YAML config file (default: {DEFAULT_CONFIG.name})",
    )
    parser.add_argument("--port", help="Open this port instead of auto-connecting")
    parser.add_argument("--ticks", type=int, help="Stop after this many ticks")
    parser.add_argument("--list-ports", action="store_true", help="List serial ports and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )

    try:
        config = load_config(args.config)
    except (FileNotFoundError, CsvLinkError) as exc:
        print(f"{C.RED}✗{C.RESET} Config error: {exc}", file=sys.stderr)
        return 1

    if args.list_ports:
        print_ports(config)
        return 0

    if config.mapping not in HEADLESS_MAPPINGS:
        fail(f"Mapping {config.mapping!r} needs a live signal source; not runnable headless")
        return 1

    return run(config, args.port, args.ticks)


if __name__ == "__main__":
    sys.exit(main())
