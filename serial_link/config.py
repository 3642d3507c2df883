from __future__ import annotations

import codecs
import logging
import tomllib
from dataclasses import dataclass, fields
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Final, Union

import serial

_logger = logging.getLogger(__name__)

READ_TIMEOUT: Final[float] = 0.05
WRITE_TIMEOUT: Final[float] = 0.05
IDLE_INTERVAL: Final[float] = 0.05
MAX_LINE: Final[int] = 4096

DEFAULT_PORT: Final[str] = "COM1"
DEFAULT_BAUDRATE: Final[int] = 9600
DEFAULT_DATABITS: Final[int] = 8


class _ParsableEnum(Enum):
    """Enum that can be parsed from config files and command line text."""

    @classmethod
    def _aliases(cls) -> Dict[str, "_ParsableEnum"]:
        return {}

    @classmethod
    def parse(cls, value: Union[str, "_ParsableEnum"]):
        """
        Look up a member by name, value or alias (case-insensitive).
        Raises:
            ValueError: If the text names no member
        """
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower().replace("-", "_").replace(" ", "_")
        for member in cls:
            if key == member.name.lower() or key == str(member.value).lower():
                return member
        alias = cls._aliases().get(key)
        if alias is not None:
            return alias
        choices = ", ".join(m.name.lower() for m in cls)
        raise ValueError(f"invalid {cls.__name__.lower()} {value!r} (expected one of: {choices})")


class Parity(_ParsableEnum):
    """
    Parity modes. Values are pyserial's parity constants, which are also the
    letter used in the "8N1" shorthand.
    """
    NONE = serial.PARITY_NONE
    ODD = serial.PARITY_ODD
    EVEN = serial.PARITY_EVEN
    MARK = serial.PARITY_MARK
    SPACE = serial.PARITY_SPACE

    @property
    def shorthand(self) -> str:
        return str(self.value)


class StopBits(_ParsableEnum):
    """
    Stop bit settings. NONE exists for completeness but no UART accepts it,
    so applying it to a device fails validation.
    """
    NONE = 0
    ONE = serial.STOPBITS_ONE
    ONE_POINT_FIVE = serial.STOPBITS_ONE_POINT_FIVE
    TWO = serial.STOPBITS_TWO

    @classmethod
    def _aliases(cls) -> Dict[str, "_ParsableEnum"]:
        return {"0": cls.NONE, "1": cls.ONE, "1.5": cls.ONE_POINT_FIVE, "onepointfive": cls.ONE_POINT_FIVE, "2": cls.TWO}

    @property
    def shorthand(self) -> str:
        return {StopBits.NONE: "0", StopBits.ONE: "1", StopBits.ONE_POINT_FIVE: "1.5", StopBits.TWO: "2"}[self]


class Handshake(_ParsableEnum):
    """Flow control modes."""
    NONE = "none"
    SOFTWARE = "xonxoff"
    HARDWARE = "rtscts"
    BOTH = "both"

    @classmethod
    def _aliases(cls) -> Dict[str, "_ParsableEnum"]:
        return {"xon_xoff": cls.SOFTWARE, "rts": cls.HARDWARE, "rts_cts": cls.HARDWARE}

    @property
    def xonxoff(self) -> bool:
        return self in (Handshake.SOFTWARE, Handshake.BOTH)

    @property
    def rtscts(self) -> bool:
        return self in (Handshake.HARDWARE, Handshake.BOTH)


@dataclass(frozen=True)
class LinkConfiguration:
    """
    Transmission parameters for one serial link.
    Fields:
        port: Device name or pyserial URL (e.g. /dev/ttyUSB0, COM3, loop://)
        baudrate: Baud rate
        parity: Parity mode
        databits: Data bits per character (5-8)
        stopbits: Stop bits
        handshake: Flow control
        encoding: Text encoding for sent strings and received lines
        newline: Line terminator appended by send_line
    """
    port: str = DEFAULT_PORT
    baudrate: int = DEFAULT_BAUDRATE
    parity: Parity = Parity.NONE
    databits: int = DEFAULT_DATABITS
    stopbits: StopBits = StopBits.ONE
    handshake: Handshake = Handshake.NONE
    encoding: str = "utf-8"
    newline: str = "\n"

    def validate(self) -> None:
        """
        Check that the parameters can be applied to a device.
        Raises:
            ValueError: If any parameter is out of range
        """
        if not self.port:
            raise ValueError("port name is empty")
        if self.baudrate <= 0:
            raise ValueError(f"baud rate must be positive, got {self.baudrate}")
        if not (5 <= self.databits <= 8):
            raise ValueError(f"data bits must be between 5 and 8, got {self.databits}")
        if self.stopbits is StopBits.NONE:
            raise ValueError("stop bits 'none' is not supported by the serial driver")
        try:
            codecs.lookup(self.encoding)
        except LookupError as e:
            raise ValueError(f"unknown encoding {self.encoding!r}") from e

    def serial_kwargs(self) -> Dict[str, Any]:
        """
        Keyword arguments for serial.Serial / serial.serial_for_url.
        Raises:
            ValueError: If the configuration does not validate
        """
        self.validate()
        return {
            "baudrate": self.baudrate,
            "bytesize": self.databits,
            "parity": self.parity.value,
            "stopbits": self.stopbits.value,
            "xonxoff": self.handshake.xonxoff,
            "rtscts": self.handshake.rtscts,
        }

    def summary(self) -> str:
        """Human-readable description, e.g. 'COM1 opened: 9600 baud, 8N1, handshake none'."""
        frame = f"{self.databits}{self.parity.shorthand}{self.stopbits.shorthand}"
        return f"{self.port} opened: {self.baudrate} baud, {frame}, handshake {self.handshake.name.lower()}"

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "LinkConfiguration":
        """
        Build a configuration from a dict such as the [serial] table of a TOML file.
        Unknown keys are ignored; missing keys take the defaults.
        Raises:
            ValueError: If a value cannot be converted
        """
        known = {f.name for f in fields(cls)}
        values: Dict[str, Any] = {k: v for k, v in data.items() if k in known}
        if "baud" in data and "baudrate" not in values:
            values["baudrate"] = data["baud"]
        try:
            if "baudrate" in values:
                values["baudrate"] = int(values["baudrate"])
            if "databits" in values:
                values["databits"] = int(values["databits"])
        except (TypeError, ValueError) as e:
            raise ValueError(f"invalid numeric setting: {e}") from e
        if "parity" in values:
            values["parity"] = Parity.parse(values["parity"])
        if "stopbits" in values:
            values["stopbits"] = StopBits.parse(str(values["stopbits"]))
        if "handshake" in values:
            values["handshake"] = Handshake.parse(values["handshake"])
        if "port" in values:
            values["port"] = str(values["port"])
        return cls(**values)


def load_config(config_path: Union[str, Path] = "config.toml") -> LinkConfiguration:
    """
    Load a LinkConfiguration from the [serial] table of a TOML file.
    Args:
        config_path: Path to the TOML file
    Returns:
        LinkConfiguration: Parsed configuration, or the defaults if the file is missing
    Raises:
        ValueError: If the file is not valid TOML or holds invalid values
    """
    path = Path(config_path)
    try:
        with path.open("rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError:
        _logger.warning("Config file %s not found. Using default values.", path)
        return LinkConfiguration()
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"failed to parse {path}: {e}") from e
    return LinkConfiguration.from_mapping(data.get("serial", {}))
