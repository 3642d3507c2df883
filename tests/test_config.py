from __future__ import annotations

import dataclasses

import pytest

import serial  # type: ignore

from serial_link.config import (
    Handshake,
    LinkConfiguration,
    Parity,
    StopBits,
    load_config,
)


def test_defaults() -> None:
    config = LinkConfiguration()
    assert config.port == "COM1"
    assert config.baudrate == 9600
    assert config.parity is Parity.NONE
    assert config.databits == 8
    assert config.stopbits is StopBits.ONE
    assert config.handshake is Handshake.NONE


def test_configuration_is_immutable() -> None:
    config = LinkConfiguration()
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.baudrate = 115200  # type: ignore[misc]


@pytest.mark.parametrize(
    "config, expected",
    [
        (LinkConfiguration(), "COM1 opened: 9600 baud, 8N1, handshake none"),
        (LinkConfiguration(port="/dev/ttyUSB0", baudrate=115200, parity=Parity.MARK, databits=7,
                           stopbits=StopBits.ONE_POINT_FIVE, handshake=Handshake.SOFTWARE),
         "/dev/ttyUSB0 opened: 115200 baud, 7M1.5, handshake software"),
        (LinkConfiguration(parity=Parity.SPACE, databits=5, stopbits=StopBits.TWO, handshake=Handshake.BOTH),
         "COM1 opened: 9600 baud, 5S2, handshake both"),
    ],
)
def test_summary(config, expected) -> None:
    assert config.summary() == expected


def test_serial_kwargs_maps_to_pyserial_constants() -> None:
    config = LinkConfiguration(baudrate=38400, parity=Parity.EVEN, databits=7,
                               stopbits=StopBits.TWO, handshake=Handshake.HARDWARE)
    assert config.serial_kwargs() == {
        "baudrate": 38400,
        "bytesize": serial.SEVENBITS,
        "parity": serial.PARITY_EVEN,
        "stopbits": serial.STOPBITS_TWO,
        "xonxoff": False,
        "rtscts": True,
    }


@pytest.mark.parametrize(
    "handshake, xonxoff, rtscts",
    [
        (Handshake.NONE, False, False),
        (Handshake.SOFTWARE, True, False),
        (Handshake.HARDWARE, False, True),
        (Handshake.BOTH, True, True),
    ],
)
def test_handshake_flags(handshake, xonxoff, rtscts) -> None:
    kwargs = LinkConfiguration(handshake=handshake).serial_kwargs()
    assert kwargs["xonxoff"] is xonxoff
    assert kwargs["rtscts"] is rtscts


@pytest.mark.parametrize(
    "config, message",
    [
        (LinkConfiguration(databits=4), "data bits"),
        (LinkConfiguration(databits=9), "data bits"),
        (LinkConfiguration(stopbits=StopBits.NONE), "stop bits"),
        (LinkConfiguration(baudrate=0), "baud rate"),
        (LinkConfiguration(port=""), "port"),
        (LinkConfiguration(encoding="no-such-codec"), "encoding"),
    ],
)
def test_validate_rejects(config, message) -> None:
    with pytest.raises(ValueError, match=message):
        config.validate()


@pytest.mark.parametrize(
    "text, expected",
    [
        ("none", Parity.NONE),
        ("Odd", Parity.ODD),
        ("E", Parity.EVEN),
        ("mark", Parity.MARK),
        ("SPACE", Parity.SPACE),
    ],
)
def test_parity_parse(text, expected) -> None:
    assert Parity.parse(text) is expected


@pytest.mark.parametrize(
    "text, expected",
    [
        ("1", StopBits.ONE),
        ("one", StopBits.ONE),
        ("1.5", StopBits.ONE_POINT_FIVE),
        ("OnePointFive", StopBits.ONE_POINT_FIVE),
        ("one-point-five", StopBits.ONE_POINT_FIVE),
        ("2", StopBits.TWO),
        ("none", StopBits.NONE),
    ],
)
def test_stopbits_parse(text, expected) -> None:
    assert StopBits.parse(text) is expected


@pytest.mark.parametrize(
    "text, expected",
    [
        ("none", Handshake.NONE),
        ("software", Handshake.SOFTWARE),
        ("XonXoff", Handshake.SOFTWARE),
        ("rts-cts", Handshake.HARDWARE),
        ("both", Handshake.BOTH),
    ],
)
def test_handshake_parse(text, expected) -> None:
    assert Handshake.parse(text) is expected


def test_parse_rejects_unknown_names() -> None:
    with pytest.raises(ValueError, match="expected one of"):
        Parity.parse("sometimes")


def test_from_mapping() -> None:
    config = LinkConfiguration.from_mapping({
        "port": "/dev/ttyACM0",
        "baud": "115200",
        "parity": "odd",
        "databits": 7,
        "stopbits": 2,
        "handshake": "hardware",
        "unrelated": True,
    })
    assert config == LinkConfiguration(port="/dev/ttyACM0", baudrate=115200, parity=Parity.ODD,
                                       databits=7, stopbits=StopBits.TWO, handshake=Handshake.HARDWARE)


def test_from_mapping_rejects_bad_numbers() -> None:
    with pytest.raises(ValueError, match="numeric"):
        LinkConfiguration.from_mapping({"baudrate": "fast"})


def test_load_config(tmp_path) -> None:
    path = tmp_path / "config.toml"
    path.write_text(
        '[serial]\nport = "loop://"\nbaudrate = 57600\nparity = "even"\nstopbits = 1.5\n',
        encoding="utf-8",
    )
    config = load_config(path)
    assert config.port == "loop://"
    assert config.baudrate == 57600
    assert config.parity is Parity.EVEN
    assert config.stopbits is StopBits.ONE_POINT_FIVE
    assert config.handshake is Handshake.NONE


def test_load_config_missing_file_uses_defaults(tmp_path, caplog) -> None:
    config = load_config(tmp_path / "absent.toml")
    assert config == LinkConfiguration()
    assert "not found" in caplog.text


def test_load_config_invalid_toml(tmp_path) -> None:
    path = tmp_path / "broken.toml"
    path.write_text("[serial\nport = ", encoding="utf-8")
    with pytest.raises(ValueError, match="failed to parse"):
        load_config(path)
