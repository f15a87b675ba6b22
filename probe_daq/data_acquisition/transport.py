"""Serial transport for probe boxes."""

import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Optional

import serial
from loguru import logger

from ..core.config import SerialConfig
from ..core.exceptions import (
    AlreadyOpenError,
    OwnershipError,
    PortUnavailableError,
    TransportError,
    WriteTimeoutError,
)


class Transport(ABC):
    """
    Byte transport shared by every box on one serial line.

    A transport is owned by at most one acquisition session at a time;
    sessions claim it with acquire() before opening it and hand it back
    with release().
    """

    def __init__(self):
        self._owner: Optional[Any] = None
        self._owner_lock = threading.Lock()

    @property
    def owner(self) -> Optional[Any]:
        """Session currently owning the transport."""
        return self._owner

    def acquire(self, owner: Any) -> None:
        """
        Claim exclusive ownership.

        Raises:
            OwnershipError: If another owner holds the transport, or it was
                opened outside of a session
        """
        with self._owner_lock:
            if self._owner is owner:
                return
            if self._owner is not None:
                raise OwnershipError(f"Transport is already owned by {self._owner!r}")
            if self.is_open:
                raise OwnershipError("Transport is already open outside of a session")
            self._owner = owner

    def release(self, owner: Any) -> None:
        """Give up ownership. Releasing a transport you do not own is a no-op."""
        with self._owner_lock:
            if self._owner is owner:
                self._owner = None

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """Check whether a handle is open."""

    @abstractmethod
    def open(self, port: Optional[str] = None, baudrate: Optional[int] = None) -> None:
        """Open the underlying handle."""

    @abstractmethod
    def write(self, data: bytes) -> None:
        """Write a command."""

    @abstractmethod
    def read_until_or_timeout(self, terminator: bytes, timeout: float,
                              cancel: Optional[threading.Event] = None) -> bytes:
        """
        Read until the terminator arrives, the timeout expires or cancel is set.

        Returns whatever was accumulated, even without a terminator.
        """

    @abstractmethod
    def discard_buffers(self) -> None:
        """Drop pending input and output."""

    @abstractmethod
    def close(self) -> None:
        """Close the handle. Closing a closed transport is a no-op."""

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class SerialTransport(Transport):
    """Transport backed by a pyserial port."""

    def __init__(self, config: SerialConfig, poll_interval: float = 0.001):
        """
        Initialize serial transport.

        Args:
            config: Serial configuration
            poll_interval: Sleep between input polls while waiting for a reply
        """
        super().__init__()
        self.config = config
        self.poll_interval = poll_interval
        self._serial: Optional[serial.SerialBase] = None

    @property
    def is_open(self) -> bool:
        return self._serial is not None and self._serial.is_open

    def open(self, port: Optional[str] = None, baudrate: Optional[int] = None) -> None:
        """
        Open the serial port.

        Args:
            port: Port name or pyserial URL, defaults to the configured port
            baudrate: Baud rate, defaults to the configured baud rate

        Raises:
            AlreadyOpenError: If the port is already open
            PortUnavailableError: If the port cannot be opened
        """
        if self.is_open:
            raise AlreadyOpenError(f"Serial port {self.config.port} is already open")

        port = port or self.config.port
        baudrate = baudrate or self.config.baudrate
        try:
            self._serial = serial.serial_for_url(
                port,
                baudrate=baudrate,
                bytesize=self.config.bytesize,
                parity=self.config.parity,
                stopbits=self.config.stopbits,
                timeout=0,
                write_timeout=self.config.write_timeout,
            )
        except (serial.SerialException, ValueError, OSError) as e:
            self._serial = None
            raise PortUnavailableError(f"Failed to open {port}: {e}") from e

        logger.info("Opened serial port {} @ {} baud", port, baudrate)

    def _require_open(self) -> serial.SerialBase:
        if not self.is_open:
            raise TransportError("Serial port is not open")
        return self._serial

    def write(self, data: bytes) -> None:
        """
        Write a command to the port.

        Raises:
            WriteTimeoutError: If the write did not complete in time
            TransportError: If the port is closed or the write fails
        """
        port = self._require_open()
        try:
            port.write(data)
        except serial.SerialTimeoutException as e:
            raise WriteTimeoutError(f"Write timed out: {e}") from e
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"Write failed: {e}") from e

    def read_until_or_timeout(self, terminator: bytes, timeout: float,
                              cancel: Optional[threading.Event] = None) -> bytes:
        port = self._require_open()
        deadline = time.monotonic() + timeout
        buffer = bytearray()

        try:
            while True:
                if cancel is not None and cancel.is_set():
                    break

                waiting = port.in_waiting
                if waiting:
                    buffer.extend(port.read(waiting))
                    if terminator in buffer:
                        break

                if time.monotonic() >= deadline:
                    break
                if not waiting:
                    time.sleep(self.poll_interval)
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"Read failed: {e}") from e

        return bytes(buffer)

    def discard_buffers(self) -> None:
        port = self._require_open()
        try:
            port.reset_input_buffer()
            port.reset_output_buffer()
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"Failed to discard buffers: {e}") from e

    def close(self) -> None:
        if self._serial is None:
            return
        try:
            self._serial.close()
            logger.info("Closed serial port {}", self._serial.port)
        except (serial.SerialException, OSError) as e:
            logger.warning("Error while closing serial port: {}", e)
        finally:
            self._serial = None
