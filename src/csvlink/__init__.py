"""csvlink: serial CSV link and motion interpolation for microcontroller sketches"""

from .config import ChannelConfig, ChannelMode, SessionConfig, load_config
from .constants import DEFAULT_BAUD, LED_MAX, SERVO_MAX
from .exceptions import ConnectionError, CsvLinkError, ValidationError
from .interpolator import ChannelInterpolator
from .protocol import LineProtocolCodec, ValueDomain, encode
from .session import Command, ControlLoop, Session, TickResult
from .transport import SerialLink

__all__ = [
    "ChannelConfig",
    "ChannelInterpolator",
    "ChannelMode",
    "Command",
    "ConnectionError",
    "ControlLoop",
    "CsvLinkError",
    "DEFAULT_BAUD",
    "LED_MAX",
    "LineProtocolCodec",
    "SERVO_MAX",
    "SerialLink",
    "Session",
    "SessionConfig",
    "TickResult",
    "ValidationError",
    "ValueDomain",
    "encode",
    "load_config",
]
__version__ = "0.1.0"
