"""
Serial link layer for csvlink.

Handles port discovery, the open/close lifecycle and fire-and-forget
writes.  Knows nothing about what the bytes mean; that's
:mod:`protocol`'s job.

Typical usage (via :class:`~csvlink.session.Session`)::

    link = SerialLink(authorized=["/dev/ttyACM0"])
    link.auto_connect()
    if link.is_open():
        link.write(b"90,90\\n")
    link.close()
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from contextlib import suppress

import serial
from serial.tools import list_ports

from .constants import DEFAULT_BAUD, ENCODING
from .exceptions import ConnectionError

logger = logging.getLogger(__name__)


class SerialLink:
    """A single host-to-device serial connection.

    Args:
        authorized: Ports the user has already granted (e.g. from config).
            Ports opened successfully during the session are added to it.
        baudrate: Default baud rate for :meth:`open` and :meth:`auto_connect`.
    """

    def __init__(
        self,
        authorized: Iterable[str] = (),
        baudrate: int = DEFAULT_BAUD,
    ) -> None:
        self.baudrate = baudrate
        self.port: str | None = None
        self._authorized: list[str] = list(authorized)
        self._ser: serial.Serial | None = None
        self._unsent = b""

    # -- Context manager ----------------------------------------------------

    def __enter__(self) -> SerialLink:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # -- Discovery ----------------------------------------------------------

    def list_authorized_ports(self) -> list[str]:
        """Return authorized ports that are present, in platform order."""
        present = [p.device for p in list_ports.comports()]
        return [device for device in present if device in self._authorized]

    def resolve_port(self, port: str) -> str:
        """Map a device path or a generic name (``"Arduino"``) to a device.

        Present devices match on their path first, then on a
        case-insensitive substring of description, manufacturer or product.
        Anything that looks like a path or URL is returned unchanged so
        pyserial can try it directly.

        Raises:
            ConnectionError: If *port* names no present device.
        """
        infos = list(list_ports.comports())
        for info in infos:
            if info.device == port:
                return info.device

        needle = port.lower()
        for info in infos:
            fields = (info.description, info.manufacturer, info.product)
            if any(f and needle in f.lower() for f in fields):
                logger.info("Resolved %r to %s (%s)", port, info.device, info.description)
                return info.device

        if "/" in port or "://" in port or port.upper().startswith("COM"):
            return port
        raise ConnectionError(f"No serial port matching '{port}'")

    # -- Lifecycle ----------------------------------------------------------

    def open(self, port: str, baudrate: int | None = None) -> None:
        """Open *port* for exclusive use at *baudrate* (8-N-1).

        An already-open link is closed first.  Success is observable through
        :meth:`is_open`.

        Raises:
            ConnectionError: If the port is missing, busy or access is denied.
        """
        baudrate = baudrate or self.baudrate
        device = self.resolve_port(port)
        self.close()

        logger.info("Opening serial port %s at %d baud", device, baudrate)
        try:
            self._ser = serial.Serial(
                port=device,
                baudrate=baudrate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=0,
                write_timeout=0,
                exclusive=True,
            )
        except (serial.SerialException, ValueError) as exc:
            self._ser = None
            raise ConnectionError(f"Cannot open {device}: {exc}") from exc

        self.port = device
        self.baudrate = baudrate
        if device not in self._authorized:
            self._authorized.append(device)

    def auto_connect(self) -> bool:
        """Try the first authorized port once; stay closed on failure.

        Returns:
            ``True`` if the link is open afterwards.
        """
        ports = self.list_authorized_ports()
        if not ports:
            logger.info("No previously authorized ports; waiting for Connect")
            return False
        try:
            self.open(ports[0])
        except ConnectionError as exc:
            logger.warning("Auto-connect to %s failed: %s", ports[0], exc)
            return False
        return self.is_open()

    def close(self) -> None:
        """Close the serial port (safe to call multiple times)."""
        if self._ser and self._ser.is_open:
            self._ser.close()
            logger.info("Serial port %s closed", self.port)
        self._ser = None
        self._unsent = b""

    def is_open(self) -> bool:
        """Return ``True`` if the serial port is currently open."""
        return self._ser is not None and self._ser.is_open

    # -- I/O ----------------------------------------------------------------

    def write(self, data: bytes | str) -> None:
        """Queue *data* for transmission without waiting for it to leave.

        Dropped silently when the link is closed or the OS buffer is full.
        Bytes a short write leaves behind are sent before the next line, so
        lines never arrive interleaved.  A port that vanished mid-session
        closes the link.
        """
        if isinstance(data, str):
            data = data.encode(ENCODING)
        if not self.is_open():
            logger.debug("Link closed; dropped %d bytes", len(data))
            return

        assert self._ser is not None  # for type-checker
        # The tail of a short write goes out ahead of the next line.
        payload = self._unsent + data
        try:
            sent = self._ser.write(payload)
        except serial.SerialTimeoutException:
            logger.debug("Output buffer full; dropped %r", data)
        except serial.SerialException as exc:
            logger.warning("Serial port %s lost: %s", self.port, exc)
            with suppress(serial.SerialException, OSError):
                self._ser.close()
            self._ser = None
            self._unsent = b""
        else:
            if sent is not None and sent < len(payload):
                self._unsent = payload[sent:]
                logger.warning(
                    "Short write on %s: %d of %d bytes sent", self.port, sent, len(payload)
                )
            else:
                self._unsent = b""
            logger.debug("TX: %r", payload[:sent])
