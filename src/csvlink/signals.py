"""
Signal types and mapping functions.

The presentation layer (canvas, sliders, pose model, window manager) hands
the control loop a *signal*: a snapshot of whatever it observed this tick,
or ``None`` when it has nothing.  A *mapper* is a pure function from that
signal and the :class:`TickContext` to one target per channel, in wire
order.  A mapper returning ``None`` means "no value this tick" and the
loop skips the write.

Each deployment differs only in its mapper::

    loop = ControlLoop(session, source=read_pointer, mapper=pointer_mapper(0, 255))
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Optional

from .constants import (
    DEFAULT_BLINK_PERIOD_MS,
    DEFAULT_CONFIDENCE_THRESHOLD,
    DEFAULT_WAVE_PERIOD_MS,
    LED_MAX,
    LED_MIN,
    SERVO_MAX,
    SERVO_MIN,
)
from .exceptions import ValidationError
from .interpolator import clamp

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Signals & context
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PointerSignal:
    """Pointer position on a canvas of ``width`` x ``height`` pixels."""

    x: float
    y: float
    width: float
    height: float
    pressed: bool = False


@dataclass(frozen=True)
class SliderSignal:
    """Raw slider values, already in the channel domain."""

    values: tuple[float, ...]


@dataclass(frozen=True)
class WindowSignal:
    """Window position on screen, plus the screen and window sizes."""

    x: float
    y: float
    screen_width: float
    screen_height: float
    width: float
    height: float


@dataclass(frozen=True)
class Keypoint:
    x: float
    y: float
    confidence: float


@dataclass(frozen=True)
class PoseSignal:
    """Keypoints of the first detected person on a ``width`` x ``height`` frame."""

    keypoints: tuple[Keypoint, ...]
    width: float
    height: float

    def keypoint(self, index: int) -> Keypoint | None:
        if 0 <= index < len(self.keypoints):
            return self.keypoints[index]
        return None


@dataclass(frozen=True)
class TickContext:
    """Session state visible to mappers during one tick."""

    now_ms: float
    point_index: int = 0
    show_overlay: bool = True


Mapper = Callable[[Any, TickContext], Optional[Sequence[float]]]

# ---------------------------------------------------------------------------
# Scaling helpers
# ---------------------------------------------------------------------------


def map_range(
    value: float,
    in_lo: float,
    in_hi: float,
    out_lo: float,
    out_hi: float,
) -> float:
    """Re-map *value* from ``[in_lo, in_hi]`` to ``[out_lo, out_hi]``.

    Linear and unclamped; either range may be inverted.  A degenerate input
    range maps everything to *out_lo*.
    """
    span = in_hi - in_lo
    if span == 0:
        return out_lo
    return out_lo + (value - in_lo) * (out_hi - out_lo) / span


def constrain(value: float, lo: float, hi: float) -> float:
    """Clamp *value* between *lo* and *hi*, in either order."""
    return clamp(value, lo, hi)


# ---------------------------------------------------------------------------
# Waveforms
# ---------------------------------------------------------------------------


def blink_value(now_ms: float, period_ms: float = DEFAULT_BLINK_PERIOD_MS) -> int:
    """Sine brightness in ``0..255`` completing one cycle per *period_ms*."""
    value = math.sin(2 * math.pi * (now_ms / period_ms)) * 127.5 + 127.5
    return int(math.floor(value + 0.5))


def wave_angle(
    now_ms: float,
    period_ms: float = DEFAULT_WAVE_PERIOD_MS,
    lo: float = SERVO_MIN,
    hi: float = SERVO_MAX,
) -> float:
    """Sine oscillation between *lo* and *hi*, centred on their midpoint."""
    amplitude = (hi - lo) / 2
    center = (lo + hi) / 2
    value = math.sin(2 * math.pi * (now_ms / period_ms)) * amplitude + center
    return constrain(value, lo, hi)


# ---------------------------------------------------------------------------
# Mapper factories
# ---------------------------------------------------------------------------


def pointer_mapper(lo: float = LED_MIN, hi: float = LED_MAX) -> Mapper:
    """Pointer x/y across the canvas -> two channels in ``[lo, hi]``."""

    def mapper(signal: PointerSignal | None, ctx: TickContext) -> list[float] | None:
        if signal is None:
            return None
        return [
            constrain(map_range(signal.x, 0, signal.width, lo, hi), lo, hi),
            constrain(map_range(signal.y, 0, signal.height, lo, hi), lo, hi),
        ]

    return mapper


def click_target_mapper(
    lo: float = SERVO_MIN,
    hi: float = SERVO_MAX,
    initial: Sequence[float] | None = None,
) -> Mapper:
    """Latch pointer x/y as targets on each press; repeat the latch between presses.

    Until the first press the latch holds *initial* (default: the centre of
    ``lo..hi`` on both channels), so a line goes out on every tick.
    Intended for interpolated channels: the repeated target does not
    restart a move that is already heading there.
    """
    if initial is None:
        initial = ((lo + hi) / 2, (lo + hi) / 2)
    latched: list[float] = [float(v) for v in initial]

    def mapper(signal: PointerSignal | None, ctx: TickContext) -> list[float] | None:
        if signal is not None and signal.pressed:
            latched[:] = [
                map_range(signal.x, 0, signal.width, lo, hi),
                map_range(signal.y, 0, signal.height, lo, hi),
            ]
        return list(latched)

    return mapper


def slider_mapper() -> Mapper:
    """Pass slider values straight through."""

    def mapper(signal: SliderSignal | None, ctx: TickContext) -> list[float] | None:
        if signal is None:
            return None
        return list(signal.values)

    return mapper


def window_mapper(lo: float = LED_MIN, hi: float = LED_MAX) -> Mapper:
    """Window position within the free screen area -> two channels."""

    def mapper(signal: WindowSignal | None, ctx: TickContext) -> list[float] | None:
        if signal is None:
            return None
        return [
            map_range(signal.x, 0, signal.screen_width - signal.width, lo, hi),
            map_range(signal.y, 0, signal.screen_height - signal.height, lo, hi),
        ]

    return mapper


def keypoint_mapper(
    lo: float = LED_MIN,
    hi: float = LED_MAX,
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
) -> Mapper:
    """Tracked body point x/y -> two channels; ``None`` below the threshold."""

    def mapper(signal: PoseSignal | None, ctx: TickContext) -> list[float] | None:
        point = _confident_keypoint(signal, ctx.point_index, confidence_threshold)
        if point is None:
            return None
        return [
            map_range(point.x, 0, signal.width, lo, hi),
            map_range(point.y, 0, signal.height, lo, hi),
        ]

    return mapper


def point_at_mapper(
    servo_min: float = SERVO_MIN,
    servo_max: float = SERVO_MAX,
    fixed: float = 90,
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
) -> Mapper:
    """Aim one servo at the tracked body point's x; second channel held at *fixed*.

    *servo_min* may exceed *servo_max* for a servo mounted the other way
    round; the mapping direction flips with it.
    """

    def mapper(signal: PoseSignal | None, ctx: TickContext) -> list[float] | None:
        point = _confident_keypoint(signal, ctx.point_index, confidence_threshold)
        if point is None:
            return None
        angle = map_range(point.x, 0, signal.width, servo_min, servo_max)
        return [constrain(angle, servo_min, servo_max), fixed]

    return mapper


def zone_blink_mapper(
    period_left_ms: float = DEFAULT_BLINK_PERIOD_MS,
    period_right_ms: float = DEFAULT_BLINK_PERIOD_MS,
) -> Mapper:
    """Blink the LED on the side of the canvas holding the pointer; the other is off."""

    def mapper(signal: PointerSignal | None, ctx: TickContext) -> list[float] | None:
        if signal is None:
            return None
        if signal.x < signal.width / 2:
            return [blink_value(ctx.now_ms, period_left_ms), 0]
        return [0, blink_value(ctx.now_ms, period_right_ms)]

    return mapper


def zone_wave_mapper(
    left_bounds: tuple[float, float] = (45, 135),
    right_bounds: tuple[float, float] = (30, 150),
    period_ms: float = DEFAULT_WAVE_PERIOD_MS,
) -> Mapper:
    """Wiggle the servo on the pointer's side; centre the other one."""

    def mapper(signal: PointerSignal | None, ctx: TickContext) -> list[float] | None:
        if signal is None:
            return None
        left_center = sum(left_bounds) / 2
        right_center = sum(right_bounds) / 2
        if signal.x < signal.width / 2:
            return [wave_angle(ctx.now_ms, period_ms, *left_bounds), right_center]
        return [left_center, wave_angle(ctx.now_ms, period_ms, *right_bounds)]

    return mapper


def wave_mapper(
    period_ms: float = DEFAULT_WAVE_PERIOD_MS,
    lo: float = SERVO_MIN,
    hi: float = SERVO_MAX,
    channels: int = 2,
) -> Mapper:
    """Procedural sine on every channel; ignores the signal entirely."""

    def mapper(signal: Any, ctx: TickContext) -> list[float]:
        return [wave_angle(ctx.now_ms, period_ms, lo, hi)] * channels

    return mapper


def _confident_keypoint(
    signal: PoseSignal | None, index: int, threshold: float
) -> Keypoint | None:
    if signal is None:
        return None
    point = signal.keypoint(index)
    if point is None or point.confidence <= threshold:
        return None
    return point


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

MAPPERS: dict[str, Callable[..., Mapper]] = {
    "pointer": pointer_mapper,
    "click_target": click_target_mapper,
    "slider": slider_mapper,
    "window": window_mapper,
    "keypoint": keypoint_mapper,
    "point_at": point_at_mapper,
    "zone_blink": zone_blink_mapper,
    "zone_wave": zone_wave_mapper,
    "wave": wave_mapper,
}


def get_mapper(name: str, **options: Any) -> Mapper:
    """Build the mapper registered as *name* with keyword *options*.

    Raises:
        ValidationError: If *name* is unknown or *options* don't fit it.
    """
    try:
        factory = MAPPERS[name]
    except KeyError as exc:
        raise ValidationError(
            f"Unknown mapping {name!r}; expected one of {sorted(MAPPERS)}"
        ) from exc
    logger.debug("Building mapping %r with %r", name, options)
    try:
        return factory(**options)
    except TypeError as exc:
        raise ValidationError(f"Bad options for mapping {name!r}: {exc}") from exc
