"""
Session and control loop.

:class:`Session` is the one object that owns the serial link, the named
output channels and the queue of UI commands.  :class:`ControlLoop` drives
it once per tick::

    session = Session.from_config(load_config("config/servos.yaml"))
    loop = ControlLoop(session, source=read_pointer, mapper=click_target_mapper())
    session.start()          # one-shot auto-connect
    loop.run()

Everything happens on the caller's thread.  UI callbacks never touch the
link directly; they :meth:`Session.submit` a :class:`Command`, which is
applied at the start of the next tick.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .config import ChannelMode, SessionConfig
from .constants import DEFAULT_PORT_NAME, DEFAULT_RATE_HZ, NUM_KEYPOINTS
from .exceptions import ConnectionError, ValidationError
from .interpolator import ChannelInterpolator, monotonic_ms
from .protocol import LineProtocolCodec
from .signals import Mapper, TickContext, get_mapper
from .transport import SerialLink

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Commands & results
# ---------------------------------------------------------------------------


class Command(Enum):
    """Discrete UI messages consumed at the start of the next tick."""

    CONNECT = "connect"
    DISCONNECT = "disconnect"
    TOGGLE_CONNECTION = "toggle_connection"
    CYCLE_CHANNEL_UP = "cycle_channel_up"
    CYCLE_CHANNEL_DOWN = "cycle_channel_down"
    TOGGLE_OVERLAY = "toggle_overlay"


@dataclass(frozen=True)
class TickResult:
    """Outcome of one :meth:`ControlLoop.tick`."""

    values: tuple[int, ...] | None
    line: str | None
    sent: bool

    @property
    def skipped(self) -> bool:
        """``True`` when the source had no value this tick."""
        return self.values is None


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class Session:
    """Owns one :class:`SerialLink` and an ordered set of named channels.

    Args:
        link: The serial link.
        channels: Channels in wire order.  Each is either interpolated
            (``set_target`` + ``advance``) or direct (``assign``), per *modes*.
        modes: Channel name -> :class:`ChannelMode`; missing names are
            interpolated.
        port: Port name the Connect command opens.
        num_points: Number of trackable keypoints for the cycle commands.
    """

    def __init__(
        self,
        link: SerialLink,
        channels: Iterable[ChannelInterpolator],
        modes: dict[str, ChannelMode] | None = None,
        port: str = DEFAULT_PORT_NAME,
        num_points: int = NUM_KEYPOINTS,
    ) -> None:
        self.link = link
        self.channels: dict[str, ChannelInterpolator] = {}
        for i, channel in enumerate(channels):
            name = channel.name or f"channel_{i}"
            if name in self.channels:
                raise ValidationError(f"Duplicate channel name {name!r}")
            self.channels[name] = channel
        if not self.channels:
            raise ValidationError("A session needs at least one channel")

        self.modes = {name: ChannelMode.INTERPOLATED for name in self.channels}
        self.modes.update(modes or {})
        self.port = port
        self.num_points = num_points

        self.point_index = 0
        self.show_overlay = True
        self.last_error: str | None = None
        self._commands: deque[Command] = deque()

    @classmethod
    def from_config(cls, config: SessionConfig, clock=monotonic_ms) -> Session:
        """Build a session (link and channels) from a :class:`SessionConfig`."""
        link = SerialLink(authorized=config.authorized_ports, baudrate=config.baudrate)
        channels = [
            ChannelInterpolator(
                initial=ch.start_value,
                duration_ms=ch.duration_ms,
                bounds=(ch.min, ch.max),
                name=ch.name,
                clock=clock,
            )
            for ch in config.channels
        ]
        modes = {ch.name: ch.mode for ch in config.channels}
        return cls(link, channels, modes=modes, port=config.port)

    # -- Connection ---------------------------------------------------------

    def start(self) -> bool:
        """Attempt the one-shot startup connection to the first authorized port."""
        return self.link.auto_connect()

    def close(self) -> None:
        self.link.close()

    @property
    def connected(self) -> bool:
        return self.link.is_open()

    @property
    def connection_label(self) -> str:
        """Button label derived purely from the link state."""
        return "Disconnect" if self.link.is_open() else "Connect"

    # -- Commands -----------------------------------------------------------

    def submit(self, command: Command) -> None:
        """Queue *command* for the next tick."""
        self._commands.append(command)

    def process_commands(self) -> None:
        """Apply every queued command in arrival order."""
        while self._commands:
            self._apply(self._commands.popleft())

    def _apply(self, command: Command) -> None:
        logger.debug("Command: %s", command.name)
        if command is Command.TOGGLE_CONNECTION:
            command = Command.DISCONNECT if self.link.is_open() else Command.CONNECT

        if command is Command.CONNECT:
            self._connect()
        elif command is Command.DISCONNECT:
            self.link.close()
        elif command is Command.CYCLE_CHANNEL_UP:
            self.point_index = (self.point_index + 1) % self.num_points
        elif command is Command.CYCLE_CHANNEL_DOWN:
            self.point_index = (self.point_index - 1) % self.num_points
        elif command is Command.TOGGLE_OVERLAY:
            self.show_overlay = not self.show_overlay

    def _connect(self) -> None:
        if self.link.is_open():
            return
        try:
            self.link.open(self.port)
        except ConnectionError as exc:
            self.last_error = str(exc)
            logger.warning("Connect failed: %s", exc)
        else:
            self.last_error = None

    # -- Channels -----------------------------------------------------------

    def apply_targets(self, targets: Sequence[float], now: float) -> None:
        """Feed one mapped value per channel, in wire order."""
        if len(targets) != len(self.channels):
            raise ValidationError(
                f"Mapper produced {len(targets)} value(s) for {len(self.channels)} channel(s)"
            )
        for (name, channel), target in zip(self.channels.items(), targets):
            if self.modes[name] is ChannelMode.DIRECT:
                channel.assign(target)
            else:
                channel.set_target(target, now)

    def advance(self, now: float) -> None:
        for channel in self.channels.values():
            channel.advance(now)

    def rounded_values(self) -> tuple[int, ...]:
        return tuple(channel.current_rounded() for channel in self.channels.values())

    def context(self, now: float) -> TickContext:
        return TickContext(now_ms=now, point_index=self.point_index, show_overlay=self.show_overlay)


# ---------------------------------------------------------------------------
# Control loop
# ---------------------------------------------------------------------------


class ControlLoop:
    """Per-tick driver: commands, signal, channels, encode, write.

    Args:
        session: The session to drive.
        source: Polled once per tick; returns the current signal or ``None``.
        mapper: Turns the signal into one target per channel, or ``None``.
        codec: Line encoder (defaults to a pass-through codec).
        rate_hz: Tick rate used by :meth:`run`.
        clock: Millisecond clock for ticks without an explicit ``now``.
    """

    def __init__(
        self,
        session: Session,
        source: Callable[[], Any],
        mapper: Mapper,
        codec: LineProtocolCodec | None = None,
        rate_hz: float = DEFAULT_RATE_HZ,
        clock=monotonic_ms,
    ) -> None:
        if rate_hz <= 0:
            raise ValidationError(f"rate_hz must be positive, got {rate_hz}")
        self.session = session
        self.source = source
        self.mapper = mapper
        self.codec = codec or LineProtocolCodec()
        self.rate_hz = rate_hz
        self._clock = clock
        self._running = False
        self.tick_count = 0
        self._mapping_error: str | None = None

    @classmethod
    def from_config(
        cls,
        config: SessionConfig,
        source: Callable[[], Any],
        codec: LineProtocolCodec | None = None,
        clock=monotonic_ms,
    ) -> ControlLoop:
        """Build session, mapper and loop from a :class:`SessionConfig`."""
        session = Session.from_config(config, clock=clock)
        mapper = get_mapper(config.mapping, **config.mapping_options)
        return cls(session, source, mapper, codec=codec, rate_hz=config.rate_hz, clock=clock)

    def tick(self, now: float | None = None) -> TickResult:
        """Run one iteration of the loop.

        A signal source or mapper with nothing to say skips the write for
        this tick; interpolated channels keep moving regardless.
        """
        if now is None:
            now = self._clock()
        self.tick_count += 1
        session = self.session

        session.process_commands()

        signal = self.source()
        targets = self.mapper(signal, session.context(now)) if signal is not None else None
        if targets is not None:
            targets = self._apply_targets(targets, now)
        session.advance(now)

        if targets is None:
            return TickResult(values=None, line=None, sent=False)

        values = session.rounded_values()
        line = self.codec.encode(values)
        if not session.link.is_open():
            return TickResult(values=values, line=line, sent=False)

        session.link.write(self.codec.encode_bytes(values))
        return TickResult(values=values, line=line, sent=True)

    def _apply_targets(self, targets: Sequence[float], now: float) -> Sequence[float] | None:
        """Apply mapped targets; a mapper/channel mismatch skips the tick."""
        session = self.session
        try:
            session.apply_targets(targets, now)
        except ValidationError as exc:
            message = str(exc)
            if message != self._mapping_error:
                logger.error("Skipping writes: %s", message)
            self._mapping_error = message
            session.last_error = message
            return None
        if self._mapping_error is not None:
            logger.info("Mapper output matches the channels again")
            if session.last_error == self._mapping_error:
                session.last_error = None
            self._mapping_error = None
        return targets

    def run(self, max_ticks: int | None = None, sleep=time.sleep) -> int:
        """Tick at :attr:`rate_hz` until :meth:`stop` or *max_ticks*.

        Returns:
            The number of ticks run.
        """
        period_s = 1.0 / self.rate_hz
        ran = 0
        self._running = True
        logger.info("Control loop running at %.1f Hz", self.rate_hz)
        try:
            while self._running and (max_ticks is None or ran < max_ticks):
                started = time.monotonic()
                self.tick()
                ran += 1
                remaining = period_s - (time.monotonic() - started)
                if remaining > 0:
                    sleep(remaining)
        finally:
            self._running = False
            logger.info("Control loop stopped after %d tick(s)", ran)
        return ran

    def stop(self) -> None:
        self._running = False
