from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Optional

import serial

from .config import (
    DEFAULT_BAUDRATE,
    DEFAULT_DATABITS,
    DEFAULT_PORT,
    IDLE_INTERVAL,
    MAX_LINE,
    READ_TIMEOUT,
    WRITE_TIMEOUT,
    Handshake,
    LinkConfiguration,
    Parity,
    StopBits,
)
from .errors import DeviceBusy, WriteFailure, classify_open_error
from .events import Signal

_logger = logging.getLogger(__name__)

# Called as factory(port, timeout=..., write_timeout=..., exclusive=..., **config.serial_kwargs())
DeviceFactory = Callable[..., Any]

CLOSED_STATUS = "Connection closed."


class LinkManager:
    """
    Owns one serial device handle and the background thread that reads it.

    Notifications:
        status_changed(text): human-readable status, including every failure
        data_received(line): one inbound line, without its line terminator
        link_opened(bool): True after a successful open, False after a failed open or any close

    Handlers run synchronously on the producing thread: data_received on the
    reader thread, everything else on the thread that called open/close/send.
    Marshalling to a UI thread is the subscriber's job.

    Public operations never raise; failures arrive as status_changed text.
    open/close/send are meant to be driven from a single caller thread.
    """

    def __init__(
        self,
        device_factory: Optional[DeviceFactory] = None,
        *,
        read_timeout: float = READ_TIMEOUT,
        write_timeout: float = WRITE_TIMEOUT,
        idle_interval: float = IDLE_INTERVAL,
        max_line: int = MAX_LINE,
    ) -> None:
        """
        Args:
            device_factory: Callable that opens a device; defaults to serial.serial_for_url
            read_timeout: Bound on each reader attempt, and so on close() latency
            write_timeout: Bound on each write
            idle_interval: Reader back-off while the device reports closed or failing
            max_line: Most bytes held while waiting for a line terminator
        """
        self._factory: DeviceFactory = device_factory or serial.serial_for_url
        self._read_timeout = read_timeout
        self._write_timeout = write_timeout
        self._idle_interval = idle_interval
        self._max_line = max(1, max_line)

        self.status_changed = Signal("status_changed")
        self.data_received = Signal("data_received")
        self.link_opened = Signal("link_opened")

        self._device: Optional[Any] = None
        self._config: Optional[LinkConfiguration] = None
        self._reader: Optional[threading.Thread] = None
        self._keep_reading: Optional[threading.Event] = None

        self._readers_lock = threading.Lock()
        self._active_readers = 0

    @property
    def is_open(self) -> bool:
        device = self._device
        return device is not None and bool(device.is_open)

    @property
    def configuration(self) -> Optional[LinkConfiguration]:
        """Configuration of the open link, or None."""
        return self._config

    @property
    def active_readers(self) -> int:
        """Number of reader loops still running."""
        with self._readers_lock:
            return self._active_readers

    def open(
        self,
        port: str = DEFAULT_PORT,
        baudrate: int = DEFAULT_BAUDRATE,
        parity: Parity = Parity.NONE,
        databits: int = DEFAULT_DATABITS,
        stopbits: StopBits = StopBits.ONE,
        handshake: Handshake = Handshake.NONE,
    ) -> bool:
        """
        Open (or re-open) the link. See open_with().
        Returns:
            bool: True if the link is open
        """
        config = LinkConfiguration(
            port=port,
            baudrate=baudrate,
            parity=parity,
            databits=databits,
            stopbits=stopbits,
            handshake=handshake,
        )
        return self.open_with(config)

    def open_with(self, config: LinkConfiguration) -> bool:
        """
        Close any current link, then acquire the device described by config and
        start the reader thread.

        Failures are reported as status_changed ("<port> does not exist.",
        "<port> already in use." or "Error: <message>") followed by
        link_opened(False). On success the status is the parameter summary,
        followed by link_opened(True).
        Returns:
            bool: True if the link is open
        """
        self.close()

        try:
            device = self._acquire(config)
        except Exception as e:
            failure = classify_open_error(config.port, e)
            _logger.warning("Failed to open %s: %s", config.port, e)
            self.status_changed.emit(str(failure))
            self.link_opened.emit(False)
            return False

        keep_reading = threading.Event()
        keep_reading.set()
        reader = threading.Thread(
            target=self._read_loop,
            args=(device, config, keep_reading),
            name=f"link-reader:{config.port}",
            daemon=True,
        )
        self._device = device
        self._config = config
        self._keep_reading = keep_reading
        self._reader = reader
        with self._readers_lock:
            self._active_readers += 1
        reader.start()

        summary = config.summary()
        _logger.info(summary)
        self.status_changed.emit(summary)
        self.link_opened.emit(True)
        return True

    def close(self) -> None:
        """
        Stop the reader thread, wait for it to exit, then release the device.
        Idempotent; always emits "Connection closed." and link_opened(False).
        """
        reader, keep_reading, device = self._reader, self._keep_reading, self._device
        self._reader = None
        self._keep_reading = None
        self._device = None
        self._config = None

        if keep_reading is not None:
            keep_reading.clear()
        if reader is not None:
            if reader is threading.current_thread():
                # Called from a data_received handler: the reader is not inside
                # a read, and it exits as soon as the handler returns.
                _logger.debug("close() called from the reader thread; not joining")
            else:
                reader.join()

        if device is not None:
            try:
                device.close()
            except Exception as e:
                _logger.warning("Error closing device: %s", e)
            _logger.info("Link closed")

        self.status_changed.emit(CLOSED_STATUS)
        self.link_opened.emit(False)

    def send_string(self, message: str) -> bool:
        """
        Write message as-is. Does nothing if the link is not open.
        Returns:
            bool: True if the write succeeded
        """
        return self._send(message)

    def send_line(self, message: str) -> bool:
        """Write message followed by the configured line terminator."""
        return self._send(message, terminate=True)

    def _send(self, message: str, terminate: bool = False) -> bool:
        device, config = self._device, self._config
        if device is None or config is None or not device.is_open:
            _logger.debug("Not open; dropping %r", message)
            return False
        try:
            text = message + config.newline if terminate else message
            device.write(text.encode(config.encoding))
        except Exception as e:
            failure = WriteFailure(e)
            _logger.warning("Write to %s failed: %s", config.port, e)
            self.status_changed.emit(str(failure))
            return False
        _logger.debug("Sent %r to %s", text, config.port)
        self.status_changed.emit(f"Message sent: {message}")
        return True

    def _acquire(self, config: LinkConfiguration) -> Any:
        """
        Open and configure the device.
        Raises:
            ValueError: If the configuration is invalid
            DeviceBusy: If the device was created but is not open
            serial.SerialException, OSError: From the device factory
        """
        kwargs = config.serial_kwargs()
        device = self._factory(
            config.port,
            timeout=self._read_timeout,
            write_timeout=self._write_timeout,
            exclusive=True,
            **kwargs,
        )
        if not device.is_open:
            try:
                device.close()
            except Exception as e:
                _logger.debug("Error discarding unopened device: %s", e)
            raise DeviceBusy(config.port)
        return device

    def _read_loop(self, device: Any, config: LinkConfiguration, keep_reading: threading.Event) -> None:
        """
        Reader thread body. Touches only the device it was started with and
        only ever reads from it. Each readline() is bounded by the read
        timeout, which is what lets the loop notice keep_reading being cleared,
        and by the room left under max_line, so a peer that never sends a
        newline cannot grow the buffer.
        """
        pending = bytearray()
        failing = False
        try:
            while keep_reading.is_set():
                if not device.is_open:
                    time.sleep(self._idle_interval)
                    continue
                try:
                    chunk = device.readline(self._max_line - len(pending))
                except (serial.SerialException, OSError) as e:
                    if not failing:
                        failing = True
                        _logger.warning("Read from %s failed: %s", config.port, e)
                        self.status_changed.emit(f"Read failed: {e}")
                    time.sleep(self._idle_interval)
                    continue
                failing = False
                if not chunk:
                    continue
                # a timeout can hand back the start of a line; keep it until the rest arrives
                pending += chunk
                if not pending.endswith(b"\n"):
                    if len(pending) < self._max_line:
                        continue
                    _logger.warning("No line terminator from %s within %d bytes; delivering them as a line",
                                    config.port, self._max_line)
                line = pending.decode(config.encoding, errors="replace").rstrip("\r\n")
                pending.clear()
                if keep_reading.is_set():
                    self.data_received.emit(line)
        except Exception:
            _logger.exception("Reader for %s stopped unexpectedly", config.port)
        finally:
            with self._readers_lock:
                self._active_readers -= 1

    def __enter__(self) -> "LinkManager":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        config = self._config
        target = config.port if config is not None else None
        return f"LinkManager(port={target!r}, open={self.is_open})"
