from __future__ import annotations

import queue
import threading
import time
from typing import Callable, List, Optional

import pytest

import serial  # type: ignore

from serial_link import LinkManager


class FakeDevice:
    """
    In-memory stand-in for serial.Serial.

    readline() waits up to `timeout` for queued data and otherwise returns
    `idle_data` (b"" by default, like a pyserial read timeout).
    """

    def __init__(self, port: str, *, timeout: Optional[float] = 0.05, idle_data: bytes = b"",
                 echo: bool = False, write_error: Optional[Exception] = None,
                 read_error: Optional[Exception] = None, **kwargs) -> None:
        self.port = port
        self.timeout = timeout
        self.kwargs = kwargs
        self.idle_data = idle_data
        self.echo = echo
        self.write_error = write_error
        self.read_error = read_error
        self.is_open = True
        self.written: List[bytes] = []
        self.reads = 0
        self.close_calls = 0
        self.closed_during_read = False
        self._incoming: "queue.Queue[bytes]" = queue.Queue()
        self._leftover = b""
        self.largest_request = -1
        self._reading = threading.Event()

    def feed(self, data: bytes) -> None:
        self._incoming.put(data)

    def readline(self, size: int = -1) -> bytes:
        if not self.is_open:
            raise serial.SerialException("Attempting to use a port that is not open")
        self._reading.set()
        try:
            self.reads += 1
            self.largest_request = max(self.largest_request, size)
            if self.read_error is not None:
                raise self.read_error
            if self._leftover:
                data, self._leftover = self._leftover, b""
            else:
                try:
                    data = self._incoming.get(timeout=self.timeout)
                except queue.Empty:
                    data = self.idle_data
            if size >= 0 and len(data) > size:
                # like pyserial, bytes past the limit stay buffered for the next read
                data, self._leftover = data[:size], data[size:]
            return data
        finally:
            self._reading.clear()

    def write(self, data: bytes) -> int:
        if self.write_error is not None:
            raise self.write_error
        self.written.append(bytes(data))
        if self.echo:
            self.feed(bytes(data))
        return len(data)

    def close(self) -> None:
        if self._reading.is_set():
            self.closed_during_read = True
        self.close_calls += 1
        self.is_open = False


class FakeFactory:
    """Device factory handing out FakeDevice instances, or raising `error`."""

    def __init__(self, error: Optional[BaseException] = None, **device_kwargs) -> None:
        self.error = error
        self.device_kwargs = device_kwargs
        self.devices: List[FakeDevice] = []
        self.calls: List[dict] = []

    def __call__(self, port: str, **kwargs) -> FakeDevice:
        self.calls.append(dict(kwargs, port=port))
        if self.error is not None:
            raise self.error
        device = FakeDevice(port, timeout=kwargs.get("timeout"), **self.device_kwargs)
        device.kwargs = kwargs
        self.devices.append(device)
        return device

    @property
    def last(self) -> FakeDevice:
        return self.devices[-1]


class Recorder:
    """Collects every notification a LinkManager emits."""

    def __init__(self, manager: LinkManager) -> None:
        self.statuses: List[str] = []
        self.lines: List[str] = []
        self.opened: List[bool] = []
        self.line_threads: List[str] = []
        manager.status_changed.connect(self.statuses.append)
        manager.data_received.connect(self._on_line)
        manager.link_opened.connect(self.opened.append)

    def _on_line(self, line: str) -> None:
        self.line_threads.append(threading.current_thread().name)
        self.lines.append(line)


def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def factory() -> FakeFactory:
    return FakeFactory()


@pytest.fixture
def manager(factory):
    m = LinkManager(device_factory=factory)
    yield m
    m.close()


@pytest.fixture
def recorder(manager) -> Recorder:
    return Recorder(manager)
