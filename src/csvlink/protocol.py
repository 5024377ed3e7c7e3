"""
CSV line protocol: one line of comma-separated integers per tick.

Wire format::

    v1,v2[,...,vN]\\n

Values are base-10 integers, joined by a single ``,`` and terminated by a
single ``\\n``.  There is no framing, checksum, length prefix or escaping,
and the link is host-to-device only, so there is no decode path.

This module does **not** own the serial port; that belongs to
:class:`~csvlink.transport.SerialLink`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from enum import Enum

from .constants import DELIMITER, ENCODING, LED_MAX, LED_MIN, SERVO_MAX, SERVO_MIN, TERMINATOR

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Value domains
# ---------------------------------------------------------------------------


class ValueDomain(Enum):
    """Legal integer range of a deployment's channel values."""

    LED = (LED_MIN, LED_MAX)
    SERVO = (SERVO_MIN, SERVO_MAX)

    @property
    def low(self) -> int:
        return self.value[0]

    @property
    def high(self) -> int:
        return self.value[1]

    def clamp(self, value: int) -> int:
        return max(self.low, min(self.high, value))


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


def encode(values: Iterable[int]) -> str:
    """Join *values* with ``,`` and append ``\\n``.

    >>> encode([10, 255])
    '10,255\\n'
    """
    return DELIMITER.join(str(int(v)) for v in values) + TERMINATOR


def encode_bytes(values: Iterable[int]) -> bytes:
    """Return the ASCII wire form of :func:`encode`."""
    return encode(values).encode(ENCODING)


class LineProtocolCodec:
    """Encoder bound to an optional :class:`ValueDomain`.

    With a domain, values are clamped into its range before encoding so a
    mis-scaled mapper can never put an out-of-range number on the wire.

    Args:
        domain: Value domain to clamp into, or ``None`` to pass values through.
    """

    def __init__(self, domain: ValueDomain | None = None) -> None:
        self.domain = domain

    def encode(self, values: Iterable[int]) -> str:
        if self.domain is not None:
            values = [self.domain.clamp(int(v)) for v in values]
        return encode(values)

    def encode_bytes(self, values: Iterable[int]) -> bytes:
        return self.encode(values).encode(ENCODING)
