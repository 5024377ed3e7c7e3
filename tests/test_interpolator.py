"""
Tests for time-based channel interpolation.

Covers:
* Bounds and clamping (including inverted declarations)
* Motion segments: progress, completion, re-basing mid-move
* Zero-duration jumps and direct assignment
* Rounding for transmission
"""

from __future__ import annotations

import pytest

from csvlink import ChannelInterpolator, ValidationError
from csvlink.interpolator import clamp, lerp, round_half_away


def make(initial=90, duration_ms=1000, bounds=(0, 180)) -> ChannelInterpolator:
    return ChannelInterpolator(initial=initial, duration_ms=duration_ms, bounds=bounds)


# ══════════════════════════════════════════════════════════════════════════
#  Helpers
# ══════════════════════════════════════════════════════════════════════════


class TestHelpers:
    @pytest.mark.parametrize(
        "value, expected",
        [(112.5, 113), (112.4, 112), (0.5, 1), (-0.5, -1), (-2.5, -3), (179.5, 180), (7.0, 7)],
    )
    def test_round_half_away(self, value, expected):
        assert round_half_away(value) == expected

    def test_clamp_accepts_inverted_bounds(self):
        assert clamp(200, 180, 0) == 180
        assert clamp(-10, 180, 0) == 0

    def test_lerp(self):
        assert lerp(90, 135, 0.5) == 112.5


# ══════════════════════════════════════════════════════════════════════════
#  Bounds
# ══════════════════════════════════════════════════════════════════════════


class TestBounds:
    @pytest.mark.parametrize("bounds", [(0, 180), (180, 0), (45, 135), (135, 45), (0, 255)])
    @pytest.mark.parametrize("target", [-50, 0, 44, 90, 136, 180, 300])
    def test_stored_target_is_clamped(self, bounds, target):
        ch = make(initial=min(bounds), bounds=bounds)
        ch.set_target(target, now=0)
        assert ch.target_value == clamp(target, min(bounds), max(bounds))

    def test_inverted_bounds_accept_midpoint(self):
        ch = make(initial=0, bounds=(180, 0))
        ch.set_target(90, now=0)
        assert ch.target_value == 90
        assert ch.effective_bounds == (0, 180)

    def test_initial_value_is_clamped(self):
        assert make(initial=500, bounds=(45, 135)).current_value == 135

    def test_center(self):
        assert make(bounds=(30, 150)).center == 90

    def test_current_stays_in_bounds_during_motion(self):
        ch = make(initial=45, bounds=(135, 45))
        ch.set_target(1000, now=0)
        for t in range(0, 1200, 50):
            ch.advance(t)
            assert 45 <= ch.current_value <= 135


# ══════════════════════════════════════════════════════════════════════════
#  Motion segments
# ══════════════════════════════════════════════════════════════════════════


class TestMotion:
    def test_starts_at_rest(self):
        ch = make()
        assert not ch.moving
        assert ch.current_value == ch.target_value == 90

    def test_set_target_starts_segment(self):
        ch = make()
        ch.set_target(135, now=500)
        assert ch.moving
        assert ch.start_value == 90
        assert ch.move_start_time == 500
        assert ch.current_value == 90

    def test_halfway(self):
        ch = make(bounds=(45, 135))
        ch.set_target(200, now=0)
        assert ch.target_value == 135
        ch.advance(500)
        assert ch.current_value == pytest.approx(112.5)
        assert ch.current_rounded() == 113
        assert ch.moving

    @pytest.mark.parametrize("duration", [1, 16, 250, 1000, 5000])
    @pytest.mark.parametrize("start, target", [(0, 180), (180, 0), (90, 91), (10.25, 99.75)])
    def test_arrives_exactly_at_duration(self, duration, start, target):
        ch = make(initial=start, duration_ms=duration)
        ch.set_target(target, now=0)
        ch.advance(duration)
        assert ch.current_value == target
        assert not ch.moving

    def test_overshooting_time_lands_on_target(self):
        ch = make()
        ch.set_target(0, now=0)
        ch.advance(10_000)
        assert ch.current_value == 0
        assert not ch.moving

    def test_advance_after_arrival_is_idempotent(self):
        ch = make()
        ch.set_target(150, now=0)
        ch.advance(1000)
        ch.advance(1500)
        ch.advance(99_999)
        assert ch.current_value == 150

    def test_advance_at_rest_is_noop(self):
        ch = make()
        assert ch.advance(12345) == 90
        assert not ch.moving

    def test_advance_before_start_stays_put(self):
        ch = make()
        ch.set_target(180, now=1000)
        ch.advance(900)
        assert ch.current_value == 90
        assert ch.moving

    def test_progress(self):
        ch = make()
        assert ch.progress(0) == 1.0
        ch.set_target(180, now=0)
        assert ch.progress(250) == 0.25

    def test_uses_clock_when_now_omitted(self, clock):
        ch = ChannelInterpolator(90, 1000, (0, 180), clock=clock)
        clock.now = 2000
        ch.set_target(180)
        clock.advance(1000)
        ch.advance()
        assert ch.current_value == 180

    def test_negative_duration_rejected(self):
        with pytest.raises(ValidationError, match="duration_ms"):
            make(duration_ms=-1)


class TestRebase:
    def test_new_destination_rebases_from_current_value(self):
        ch = make(initial=0)
        ch.set_target(100, now=0)
        ch.advance(500)  # at 50
        ch.set_target(150, now=500)
        assert ch.start_value == 50
        assert ch.move_start_time == 500
        ch.advance(1000)
        assert ch.current_value == pytest.approx(100)
        ch.advance(1500)
        assert ch.current_value == 150

    def test_same_destination_mid_move_does_not_restart(self):
        ch = make(initial=0)
        ch.set_target(100, now=0)
        ch.advance(500)
        ch.set_target(100, now=500)
        assert ch.move_start_time == 0
        assert ch.start_value == 0
        ch.advance(1000)
        assert ch.current_value == 100
        assert not ch.moving

    def test_clamped_same_destination_mid_move_does_not_restart(self):
        ch = make(initial=0, bounds=(0, 100))
        ch.set_target(250, now=0)
        ch.advance(300)
        ch.set_target(999, now=300)
        assert ch.move_start_time == 0

    def test_target_equal_to_current_at_rest_is_noop(self):
        ch = make()
        ch.set_target(90, now=700)
        assert not ch.moving
        assert ch.move_start_time == 0

    def test_target_equal_to_current_mid_move_stops_there(self):
        ch = make(initial=0)
        ch.set_target(100, now=0)
        ch.advance(500)  # at 50
        ch.set_target(50, now=500)
        assert not ch.moving
        assert ch.target_value == 50
        ch.advance(2000)
        assert ch.current_value == 50

    def test_return_to_start_mid_move_rebases(self):
        ch = make(initial=0)
        ch.set_target(100, now=0)
        ch.advance(250)  # at 25
        ch.set_target(0, now=250)
        assert ch.start_value == 25
        ch.advance(750)
        assert ch.current_value == pytest.approx(12.5)


# ══════════════════════════════════════════════════════════════════════════
#  Zero duration & direct assignment
# ══════════════════════════════════════════════════════════════════════════


class TestZeroDuration:
    def test_jumps_on_first_advance(self):
        ch = make(duration_ms=0)
        ch.set_target(45, now=10)
        ch.advance(10)
        assert ch.current_value == 45
        assert not ch.moving

    def test_waits_for_start_time(self):
        ch = make(duration_ms=0)
        ch.set_target(45, now=10)
        ch.advance(9)
        assert ch.current_value == 90
        assert ch.moving


class TestAssign:
    def test_assign_jumps_and_clamps(self):
        ch = make(bounds=(30, 150))
        ch.assign(10)
        assert ch.current_value == ch.target_value == 30
        assert not ch.moving

    def test_assign_cancels_motion(self):
        ch = make()
        ch.set_target(180, now=0)
        ch.assign(20)
        ch.advance(1000)
        assert ch.current_value == 20

    def test_rounded_values(self):
        ch = make()
        ch.assign(44.5)
        assert ch.current_rounded() == 45
        assert ch.target_rounded() == 45
