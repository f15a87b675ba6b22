"""Acquisition sessions."""

import threading
import time
from typing import Optional

from loguru import logger

from ..core.exceptions import ConfigurationError
from ..core.models import AcquisitionMode
from .registry import ParameterRegistry
from .transport import Transport


class AcquisitionSession:
    """
    One acquisition run.

    The session owns its transport exclusively from claim_transport() until
    release_transport(); releasing is idempotent and closes the port.
    """

    def __init__(self, mode: AcquisitionMode, registry: ParameterRegistry,
                 transport: Transport, target_count: Optional[int] = None):
        """
        Initialize acquisition session.

        Args:
            mode: Continuous or bounded acquisition
            registry: Parameter bindings polled by this session
            transport: Transport the session will own
            target_count: Samples per buffer in bounded mode
        """
        if mode == AcquisitionMode.BOUNDED and (target_count is None or target_count < 1):
            raise ConfigurationError("Bounded acquisition needs a target count of at least 1")

        self.mode = mode
        self.registry = registry
        self.transport = transport
        self.target_count = target_count if mode == AcquisitionMode.BOUNDED else None

        self.cancel_event = threading.Event()
        self.finished = threading.Event()
        self.complete = False

        # Statistics
        self.ticks = 0
        self.write_errors = 0
        self.read_errors = 0
        self.decode_errors = 0
        self.channel_errors = 0
        self.last_error: Optional[str] = None
        self.failing_boxes = set()
        self.started_at: Optional[float] = None
        self.stopped_at: Optional[float] = None

        self._release_lock = threading.Lock()
        self._claimed = False

    def __repr__(self) -> str:
        return f"<AcquisitionSession {self.mode.value} boxes={list(self.registry.all_boxes())}>"

    @property
    def cancelled(self) -> bool:
        """Check whether cancellation was requested."""
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        """Request the polling loop to stop."""
        self.cancel_event.set()

    @property
    def uptime(self) -> float:
        """Session uptime in seconds."""
        if self.started_at is None:
            return 0.0
        end = self.stopped_at if self.stopped_at is not None else time.time()
        return end - self.started_at

    def claim_transport(self, port: Optional[str] = None, baudrate: Optional[int] = None) -> None:
        """
        Take ownership of the transport and open it.

        Raises:
            OwnershipError: If the transport is owned or open elsewhere
            TransportError: If the port cannot be opened
        """
        self.transport.acquire(self)
        try:
            self.transport.open(port, baudrate)
        except Exception:
            self.transport.release(self)
            raise
        self._claimed = True
        self.started_at = time.time()

    def release_transport(self) -> None:
        """Close the transport and give up ownership."""
        with self._release_lock:
            if not self._claimed:
                return
            self._claimed = False
            if self.stopped_at is None:
                self.stopped_at = time.time()
            try:
                self.transport.close()
            finally:
                self.transport.release(self)
        logger.debug("{} released its transport", self)

    def record_error(self, message: str) -> None:
        """Remember the most recent error."""
        self.last_error = message
