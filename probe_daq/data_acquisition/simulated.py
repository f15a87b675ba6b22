"""In-process probe box simulation.

SimulatedTransport answers VALL poll commands the way a chain of boxes on a
serial line would, formatting replies with the configured dialect. It backs
the test-suite, the --simulate option of the monitor and mock_probe_boxes.py.
"""

import math
import threading
import time
from collections import deque
from typing import Deque, Dict, Iterable, List, Optional, Sequence

import numpy as np
from loguru import logger

from ..core.exceptions import (
    AlreadyOpenError,
    PortUnavailableError,
    ProtocolError,
    TransportError,
    WriteTimeoutError,
)
from ..core.models import CHANNELS_PER_BOX
from ..protocols.commands import decode_poll_command
from ..protocols.dialects import ReplyDialect
from .transport import Transport


def _pad(values: Sequence[float]) -> List[float]:
    padded = [float(v) for v in values][:CHANNELS_PER_BOX]
    return padded + [math.nan] * (CHANNELS_PER_BOX - len(padded))


class SimulatedBox:
    """A signal-conditioning unit with four probe channels."""

    def __init__(self, box: int, values: Optional[Sequence[float]] = None,
                 script: Optional[Iterable[Sequence[float]]] = None,
                 noise: float = 0.0, seed: Optional[int] = None):
        """
        Initialize simulated box.

        Args:
            box: Box identifier
            values: Resting channel values (mm); missing channels read as invalid
            script: Channel values returned by successive polls; the last
                entry repeats once the script is exhausted
            noise: Standard deviation of gaussian noise added to resting values
            seed: Seed of the noise generator
        """
        self.box = box
        self.values = _pad(values if values is not None else [0.5, 0.6, 0.7, 0.8])
        self.script = [_pad(step) for step in script] if script is not None else []
        self.noise = noise
        self.polls = 0
        self._rng = np.random.default_rng(seed)

    def next_values(self) -> List[float]:
        """Channel values for the next poll."""
        index = self.polls
        self.polls += 1

        if self.script:
            return list(self.script[min(index, len(self.script) - 1)])

        if self.noise <= 0:
            return list(self.values)
        jitter = self._rng.normal(0.0, self.noise, CHANNELS_PER_BOX)
        return [round(v + j, 3) for v, j in zip(self.values, jitter)]


class SimulatedTransport(Transport):
    """Transport that answers poll commands from simulated boxes."""

    COMMAND_LOG_SIZE = 1000

    def __init__(self, dialect: ReplyDialect, boxes: Optional[Iterable[SimulatedBox]] = None,
                 reply_delay: float = 0.0):
        """
        Initialize simulated transport.

        Args:
            dialect: Dialect used to format replies
            boxes: Simulated boxes on the line
            reply_delay: Time a box takes to answer
        """
        super().__init__()
        self.dialect = dialect
        self.boxes: Dict[int, SimulatedBox] = {b.box: b for b in (boxes or [])}
        self.reply_delay = reply_delay
        self.fail_writes = set()
        self.silent_boxes = set()
        self.fail_open = False
        self.port: Optional[str] = None
        self.commands: Deque[bytes] = deque(maxlen=self.COMMAND_LOG_SIZE)
        self._writes = 0
        self._open = False
        self._pending = b""
        self._lock = threading.Lock()

    def add_box(self, box: int, **kwargs) -> SimulatedBox:
        """Add a box to the line."""
        sim = SimulatedBox(box, **kwargs)
        self.boxes[box] = sim
        return sim

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def write_count(self) -> int:
        """Number of commands written so far."""
        with self._lock:
            return self._writes

    def open(self, port: Optional[str] = None, baudrate: Optional[int] = None) -> None:
        if self._open:
            raise AlreadyOpenError("Simulated transport is already open")
        if self.fail_open:
            raise PortUnavailableError(f"Simulated port {port} is unavailable")
        self.port = port or "sim://"
        self._open = True
        logger.debug("Simulated transport opened with boxes {}", sorted(self.boxes))

    def write(self, data: bytes) -> None:
        if not self._open:
            raise TransportError("Simulated transport is not open")
        try:
            box = decode_poll_command(data)
        except ProtocolError as e:
            raise TransportError(f"Box line rejected command: {e}") from e

        with self._lock:
            self.commands.append(bytes(data))
            self._writes += 1
        if box in self.fail_writes:
            raise WriteTimeoutError(f"Write to box {box} timed out")

        sim = self.boxes.get(box)
        if sim is None or box in self.silent_boxes:
            self._pending = b""
            return
        reply = self.dialect.format_reply(box, sim.next_values())
        self._pending = reply.encode("ascii")

    def read_until_or_timeout(self, terminator: bytes, timeout: float,
                              cancel: Optional[threading.Event] = None) -> bytes:
        if not self._open:
            raise TransportError("Simulated transport is not open")

        pending, self._pending = self._pending, b""
        if self.reply_delay > timeout:
            pending = b""
        wait = self.reply_delay if pending else timeout
        if wait > 0:
            if cancel is not None:
                if cancel.wait(wait):
                    return b""
            else:
                time.sleep(wait)
        return pending

    def discard_buffers(self) -> None:
        if not self._open:
            raise TransportError("Simulated transport is not open")
        self._pending = b""

    def close(self) -> None:
        self._open = False
        self._pending = b""
