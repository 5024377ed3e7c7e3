"""Shared runtime constants for csvlink.

This is the canonical source of truth for protocol framing, value domains
and loop defaults.  Other modules should import from here rather than
defining their own copies.
"""

# ---------------------------------------------------------------------------
# Wire protocol
# ---------------------------------------------------------------------------

DELIMITER = ","
TERMINATOR = "\n"
ENCODING = "ascii"

LED_MIN = 0
LED_MAX = 255
SERVO_MIN = 0
SERVO_MAX = 180

# ---------------------------------------------------------------------------
# Serial link defaults
# ---------------------------------------------------------------------------

DEFAULT_BAUD = 57600
DEFAULT_PORT_NAME = "Arduino"  # generic name used by the Connect command

# ---------------------------------------------------------------------------
# Motion / control loop defaults
# ---------------------------------------------------------------------------

DEFAULT_DURATION_MS = 1000.0
DEFAULT_RATE_HZ = 60.0
DEFAULT_BLINK_PERIOD_MS = 1000.0
DEFAULT_WAVE_PERIOD_MS = 2000.0

# ---------------------------------------------------------------------------
# Pose tracking
# ---------------------------------------------------------------------------

NUM_KEYPOINTS = 17  # MoveNet body points 0-16
DEFAULT_CONFIDENCE_THRESHOLD = 0.2
