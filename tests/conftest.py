"""Shared pytest fixtures for csvlink tests."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import patch

import pytest
import serial

from csvlink import ChannelInterpolator, SerialLink, Session


class FakeSerial:
    """Lightweight stand-in for ``serial.Serial``.

    Implements the subset of the pyserial API used by
    :class:`~csvlink.transport.SerialLink`: ``write``, ``close`` and
    ``is_open``.  Every write is recorded in :attr:`written`.

    Call :meth:`fail_next_write` to make the next write raise, e.g. to
    simulate a board being unplugged mid-session, or :meth:`accept_next`
    to make the next write a short one.
    """

    def __init__(self) -> None:
        self.is_open: bool = True
        self.written: list[bytes] = []
        self._fail_with: Exception | None = None
        self._accept: int | None = None

    # -- Helpers for tests --------------------------------------------------

    def fail_next_write(self, exc: Exception) -> None:
        self._fail_with = exc

    def accept_next(self, count: int) -> None:
        self._accept = count

    @property
    def lines(self) -> list[str]:
        return [w.decode("ascii") for w in self.written]

    # -- pyserial interface -------------------------------------------------

    def write(self, data: bytes) -> int:
        if self._fail_with is not None:
            exc, self._fail_with = self._fail_with, None
            raise exc
        if self._accept is not None:
            data, self._accept = data[: self._accept], None
        self.written.append(data)
        return len(data)

    def close(self) -> None:
        self.is_open = False


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> float:
        self.now += ms
        return self.now


def port_info(device: str, description: str = "n/a", manufacturer: str | None = None):
    """Build a ``ListPortInfo``-like record."""
    return SimpleNamespace(
        device=device, description=description, manufacturer=manufacturer, product=None
    )


PORTS = [
    port_info("/dev/ttyS0", "ttyS0"),
    port_info("/dev/ttyACM0", "Arduino Uno", "Arduino (www.arduino.cc)"),
    port_info("/dev/ttyACM1", "USB Serial Device"),
]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def fake_serial() -> FakeSerial:
    """Return a fresh ``FakeSerial`` instance."""
    return FakeSerial()


@pytest.fixture()
def comports():
    """Patch port discovery to report :data:`PORTS`."""
    with patch("csvlink.transport.list_ports.comports", return_value=list(PORTS)) as mock:
        yield mock


@pytest.fixture()
def serial_factory(fake_serial: FakeSerial, comports):
    """Patch ``serial.Serial`` to hand out *fake_serial*."""
    with patch("csvlink.transport.serial.Serial", return_value=fake_serial) as mock:
        yield mock


@pytest.fixture()
def link(serial_factory) -> SerialLink:
    """Return a closed ``SerialLink`` whose ports are all fake."""
    return SerialLink(authorized=["/dev/ttyACM0"])


@pytest.fixture()
def open_link(link: SerialLink) -> SerialLink:
    """Return a ``SerialLink`` already open on ``/dev/ttyACM0``."""
    link.open("/dev/ttyACM0")
    return link


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def session(link: SerialLink, clock: FakeClock) -> Session:
    """Two interpolated servo channels on a closed fake link."""
    channels = [
        ChannelInterpolator(90, 1000, (0, 180), name="servo1", clock=clock),
        ChannelInterpolator(90, 1000, (0, 180), name="servo2", clock=clock),
    ]
    return Session(link, channels)


@pytest.fixture()
def port_busy():
    """Patch ``serial.Serial`` to fail like a port held by another program."""
    with patch(
        "csvlink.transport.serial.Serial",
        side_effect=serial.SerialException("[Errno 16] Device or resource busy"),
    ) as mock:
        yield mock
