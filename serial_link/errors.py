from __future__ import annotations

import errno

__all__ = [
    "LinkError",
    "DeviceNotFound",
    "DeviceBusy",
    "OpenFailure",
    "WriteFailure",
    "classify_open_error",
]

_NOT_FOUND_ERRNOS = frozenset({errno.ENOENT, errno.ENODEV, errno.ENXIO})
_BUSY_ERRNOS = frozenset({errno.EACCES, errno.EBUSY, errno.EAGAIN, errno.EWOULDBLOCK, errno.EPERM})

# pyserial on Windows reports open failures as text without setting errno
_NOT_FOUND_TEXT = ("filenotfounderror", "no such file", "cannot find the file", "does not exist")
_BUSY_TEXT = ("permissionerror", "access is denied", "permission denied", "resource busy", "exclusively lock")


class LinkError(Exception):
    """Base class for link failures. The message is the user-facing status text."""


class DeviceNotFound(LinkError):
    def __init__(self, port: str) -> None:
        super().__init__(f"{port} does not exist.")
        self.port = port


class DeviceBusy(LinkError):
    """Access denied, already claimed, or opened but not usable."""

    def __init__(self, port: str) -> None:
        super().__init__(f"{port} already in use.")
        self.port = port


class OpenFailure(LinkError):
    def __init__(self, cause: BaseException) -> None:
        super().__init__(f"Error: {cause}")
        self.cause = cause


class WriteFailure(LinkError):
    def __init__(self, cause: BaseException) -> None:
        super().__init__(f"Failed to send string: {cause}")
        self.cause = cause


def classify_open_error(port: str, exc: BaseException) -> LinkError:
    """
    Map an exception raised while acquiring a device to the link taxonomy.
    Args:
        port (str): Device name used in the status text
        exc (BaseException): Exception raised by the device factory
    Returns:
        LinkError: DeviceNotFound, DeviceBusy or OpenFailure
    """
    if isinstance(exc, LinkError):
        return exc
    if isinstance(exc, FileNotFoundError):
        return DeviceNotFound(port)
    if isinstance(exc, PermissionError):
        return DeviceBusy(port)

    code = getattr(exc, "errno", None)
    if code in _NOT_FOUND_ERRNOS:
        return DeviceNotFound(port)
    if code in _BUSY_ERRNOS:
        return DeviceBusy(port)

    if isinstance(exc, OSError):
        text = str(exc).lower()
        if any(marker in text for marker in _NOT_FOUND_TEXT):
            return DeviceNotFound(port)
        if any(marker in text for marker in _BUSY_TEXT):
            return DeviceBusy(port)
    return OpenFailure(exc)
