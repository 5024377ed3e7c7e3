"""
Time-based channel interpolation.

A :class:`ChannelInterpolator` moves one output value toward a target in a
fixed time budget, regardless of the distance travelled, so abrupt input
changes become continuous motion commands.  Bounds may be declared in
either order; a declared ``(180, 0)`` range describes a flipped mechanical
orientation and clamps exactly like ``(0, 180)``.

Typical usage (driven by :class:`~csvlink.session.ControlLoop`)::

    pan = ChannelInterpolator(initial=90, duration_ms=1000, bounds=(0, 180))
    pan.set_target(135)
    pan.advance()
    line_value = pan.current_rounded()
"""

from __future__ import annotations

import logging
import math
import time

from .constants import DEFAULT_DURATION_MS, SERVO_MAX, SERVO_MIN
from .exceptions import ValidationError

logger = logging.getLogger(__name__)


def monotonic_ms() -> float:
    """Return a monotonic timestamp in milliseconds."""
    return time.monotonic() * 1000.0


def round_half_away(value: float) -> int:
    """Round to the nearest integer, ties away from zero (``112.5 -> 113``)."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def clamp(value: float, lo: float, hi: float) -> float:
    """Clamp *value* to ``[lo, hi]``; the bounds may be given in either order."""
    if lo > hi:
        lo, hi = hi, lo
    return max(lo, min(hi, value))


def lerp(start: float, stop: float, amount: float) -> float:
    return start + (stop - start) * amount


class ChannelInterpolator:
    """Linear, fixed-duration interpolation of a single output channel.

    Args:
        initial: Starting value (clamped to the bounds).
        duration_ms: Time any single movement takes.  ``0`` jumps on the
            next :meth:`advance`.
        bounds: Declared ``(min, max)`` range; may be inverted.
        name: Optional label used in log messages.
        clock: Millisecond clock used when ``now`` is omitted.
    """

    def __init__(
        self,
        initial: float = 90.0,
        duration_ms: float = DEFAULT_DURATION_MS,
        bounds: tuple[float, float] = (SERVO_MIN, SERVO_MAX),
        name: str = "",
        clock=monotonic_ms,
    ) -> None:
        if duration_ms < 0:
            raise ValidationError(f"duration_ms must be >= 0, got {duration_ms}")
        self.name = name
        self.duration_ms = float(duration_ms)
        self.bounds = (float(bounds[0]), float(bounds[1]))
        self._clock = clock

        start = self._clamp(initial)
        self.current_value = start
        self.target_value = start
        self.start_value = start
        self.move_start_time = 0.0
        self.moving = False

    def __repr__(self) -> str:
        return (
            f"ChannelInterpolator(name={self.name!r}, current={self.current_value:.2f}, "
            f"target={self.target_value:.2f}, moving={self.moving})"
        )

    # -- Bounds -------------------------------------------------------------

    @property
    def effective_bounds(self) -> tuple[float, float]:
        """The declared bounds sorted into ``(low, high)``."""
        lo, hi = self.bounds
        return (min(lo, hi), max(lo, hi))

    @property
    def center(self) -> float:
        lo, hi = self.effective_bounds
        return (lo + hi) / 2

    def _clamp(self, value: float) -> float:
        lo, hi = self.effective_bounds
        return clamp(float(value), lo, hi)

    # -- Motion -------------------------------------------------------------

    def set_target(self, new_target: float, now: float | None = None) -> None:
        """Aim the channel at *new_target* (clamped to the effective bounds).

        A new motion segment starts from the *current* value only when the
        clamped target differs from both the current value and the
        destination already being approached.  Requesting the destination
        of an in-progress move again does not restart it.

        A target equal to the current value is a no-op at rest.  Mid-move it
        is *not* a no-op: the move ends where the channel stands, so the
        stored target always equals the clamped request.
        """
        target = self._clamp(new_target)

        if target == self.current_value:
            # Already there: no segment.  An in-progress move ends here.
            self.target_value = target
            self.moving = False
            return

        if self.moving and target == self.target_value:
            return

        self.start_value = self.current_value
        self.target_value = target
        self.move_start_time = self._clock() if now is None else now
        self.moving = True
        logger.debug(
            "Channel %s: %.2f -> %.2f over %.0f ms",
            self.name or "?",
            self.start_value,
            self.target_value,
            self.duration_ms,
        )

    def progress(self, now: float | None = None) -> float:
        """Return segment progress in ``[0, 1]`` (``1.0`` when at rest)."""
        if not self.moving:
            return 1.0
        if now is None:
            now = self._clock()
        elapsed = now - self.move_start_time
        if self.duration_ms == 0:
            return 1.0 if elapsed >= 0 else 0.0
        return clamp(elapsed / self.duration_ms, 0.0, 1.0)

    def advance(self, now: float | None = None) -> float:
        """Recompute :attr:`current_value` for time *now* and return it."""
        if not self.moving:
            return self.current_value

        progress = self.progress(now)
        if progress >= 1.0:
            self.current_value = self.target_value
            self.moving = False
        else:
            self.current_value = lerp(self.start_value, self.target_value, progress)
        return self.current_value

    def assign(self, value: float) -> None:
        """Jump straight to *value* (clamped), bypassing interpolation."""
        value = self._clamp(value)
        self.current_value = value
        self.target_value = value
        self.start_value = value
        self.moving = False

    # -- Transmission -------------------------------------------------------

    def current_rounded(self) -> int:
        """Current value rounded half away from zero, ready for the wire."""
        return round_half_away(self.current_value)

    def target_rounded(self) -> int:
        return round_half_away(self.target_value)
