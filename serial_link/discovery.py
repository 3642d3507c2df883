"""
Serial port enumeration.

Lists the ports pyserial can see, ordering the ones that look like USB-serial
adapters for the current platform first.
"""

from __future__ import annotations

import platform
from typing import List, Optional, Tuple

from serial.tools import list_ports  # type: ignore

_LINUX_PATTERNS = ("/dev/ttyUSB", "/dev/ttyACM")
_DARWIN_PATTERNS = ("/dev/cu.usbserial", "/dev/cu.usbmodem", "/dev/cu.SLAB_USBtoUART", "/dev/cu.wchusbserial")


def describe_ports() -> List[Tuple[str, str]]:
    """
    Returns:
        List of (device, description) tuples sorted by device name
    """
    ports = [(info.device, info.description) for info in list_ports.comports()]
    ports.sort(key=lambda p: p[0])
    return ports


def get_available_ports() -> List[str]:
    """Sorted device names of every port on this machine."""
    return [device for device, _ in describe_ports()]


def _com_number(port: str) -> int:
    return int(port[3:]) if port[3:].isdigit() else 999


def get_likely_ports(system: Optional[str] = None, ports: Optional[List[str]] = None) -> List[str]:
    """
    Order ports so that likely USB-serial adapters come first.
    Args:
        system: Platform name as from platform.system(); defaults to this machine
        ports: Device names to order; defaults to get_available_ports()
    Returns:
        All ports, likely ones first
    """
    system = (system or platform.system()).lower()
    all_ports = sorted(ports) if ports is not None else get_available_ports()

    if system == "linux":
        likely = [p for p in all_ports if p.startswith(_LINUX_PATTERNS)]
    elif system == "darwin":
        likely = [p for p in all_ports if p.startswith(_DARWIN_PATTERNS)]
        # usbserial/usbmodem before vendor-specific names
        likely.sort(key=lambda x: (0 if "usbserial" in x or "usbmodem" in x else 1, x))
    elif system == "windows":
        likely = [p for p in all_ports if p.upper().startswith("COM")]
        likely.sort(key=_com_number)
    else:
        likely = list(all_ports)

    other_ports = [p for p in all_ports if p not in likely]
    return likely + other_ports
