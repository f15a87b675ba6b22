"""Per-parameter live cells and bounded sample buffers."""

import math
import threading
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np

from ..core.models import LiveCell, SampleSummary

BufferKey = Tuple[str, int]


class SampleStore:
    """
    Shared state between the polling loop (single writer) and consumers.

    Every access goes through one lock. Live cells are immutable and replaced
    whole, and sample reads return copies, so a reader sees either the
    previous or the new entry, never a partial update.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._live: Dict[str, LiveCell] = {}
        self._buffers: Dict[BufferKey, List[float]] = {}
        self._target: Optional[int] = None

    @property
    def target_count(self) -> Optional[int]:
        """Bounded target count, None outside bounded mode."""
        return self._target

    def prepare_live(self, names: Iterable[str]) -> None:
        """Reset the live cells for a continuous session."""
        with self._lock:
            self._live = {name: LiveCell.empty(name) for name in names}

    def prepare_bounded(self, keys: Iterable[BufferKey], target: int) -> None:
        """Reset the sample buffers for a bounded session."""
        if target < 1:
            raise ValueError("Target count must be at least 1")
        with self._lock:
            self._target = target
            self._buffers = {key: [] for key in keys}

    def clear_samples(self) -> None:
        """Drop every sample buffer and the bounded target."""
        with self._lock:
            self._target = None
            self._buffers = {}

    def update_live(self, parameter: str, cell: LiveCell) -> None:
        """Replace the live cell of a parameter."""
        with self._lock:
            self._live[parameter] = cell

    def live_value(self, parameter: str) -> LiveCell:
        """Latest live cell of a parameter."""
        with self._lock:
            cell = self._live.get(parameter)
        return cell if cell is not None else LiveCell.empty(parameter)

    def live_snapshot(self) -> Dict[str, LiveCell]:
        """Latest live cell of every parameter."""
        with self._lock:
            return dict(self._live)

    def try_append(self, key: BufferKey, value: float) -> bool:
        """
        Append a bounded-mode sample.

        The value is accepted only if it is valid, the buffer is below the
        target count, and it differs from the last accepted value.

        Returns:
            True if the value was appended
        """
        if value is None or math.isnan(value):
            return False

        with self._lock:
            buffer = self._buffers.setdefault(key, [])
            if self._target is not None and len(buffer) >= self._target:
                return False
            if buffer and buffer[-1] == value:
                return False
            buffer.append(value)
            return True

    def samples(self, key: BufferKey) -> List[float]:
        """Copy of the accepted samples of a buffer."""
        with self._lock:
            return list(self._buffers.get(key, ()))

    def samples_array(self, key: BufferKey) -> np.ndarray:
        """Accepted samples of a buffer as a numpy array."""
        return np.array(self.samples(key), dtype=np.float64)

    def summary(self, key: BufferKey) -> SampleSummary:
        """Statistics of the accepted samples of a buffer."""
        return SampleSummary.from_values(self.samples_array(key))

    def counts(self) -> Dict[BufferKey, int]:
        """Number of accepted samples per buffer."""
        with self._lock:
            return {key: len(buffer) for key, buffer in self._buffers.items()}

    def is_complete(self, keys: Optional[Iterable[BufferKey]] = None) -> bool:
        """Check whether every buffer holds exactly the target count."""
        with self._lock:
            if self._target is None:
                return False
            keys = list(self._buffers) if keys is None else list(keys)
            return all(len(self._buffers.get(key, ())) == self._target for key in keys)

    def reset(self, parameter: str) -> None:
        """Clear the live cell and every sample buffer of a parameter."""
        with self._lock:
            if parameter in self._live:
                self._live[parameter] = LiveCell.empty(parameter)
            for key in self._buffers:
                if key[0] == parameter:
                    self._buffers[key] = []

    def reset_all(self) -> None:
        """Clear every live cell and sample buffer."""
        with self._lock:
            self._live = {name: LiveCell.empty(name) for name in self._live}
            self._buffers = {key: [] for key in self._buffers}
