"""Serial Link package.

A connection manager that owns one serial device, reads it on a background
thread and reports status, received lines and open/closed state to subscribers.
"""

__all__ = [
    "LinkManager",
    "LinkConfiguration",
    "Parity",
    "StopBits",
    "Handshake",
    "Signal",
    "LinkError",
    "DeviceNotFound",
    "DeviceBusy",
    "OpenFailure",
    "WriteFailure",
    "load_config",
    "get_available_ports",
    "get_likely_ports",
]

from .config import Handshake, LinkConfiguration, Parity, StopBits, load_config
from .discovery import get_available_ports, get_likely_ports
from .errors import DeviceBusy, DeviceNotFound, LinkError, OpenFailure, WriteFailure
from .events import Signal
from .manager import LinkManager

__version__ = "0.1.0"
