"""Consumer-facing acquisition API."""

from typing import Dict, List, Optional

import numpy as np
from loguru import logger

from ..core.config import Config
from ..core.exceptions import AlreadyRunningError, ConfigurationError
from ..core.models import AcquisitionMode, LiveCell, SampleSummary, SchedulerState, SessionStatus, buffer_label
from ..protocols.dialects import ReplyDialect, make_dialect
from .registry import ParameterRegistry
from .sample_store import SampleStore
from .scheduler import AcquisitionScheduler
from .session import AcquisitionSession
from .transport import SerialTransport, Transport


class SessionHandle:
    """Handle returned to the consumer that started a session."""

    def __init__(self, engine: 'ProbeAcquisition', session: AcquisitionSession):
        self._engine = engine
        self._session = session

    @property
    def session(self) -> AcquisitionSession:
        return self._session

    @property
    def mode(self) -> AcquisitionMode:
        return self._session.mode

    @property
    def is_running(self) -> bool:
        """Check if this session is still polling."""
        scheduler = self._engine.scheduler
        return scheduler.session is self._session and scheduler.is_running

    @property
    def is_complete(self) -> bool:
        """Check if a bounded session reached its target for every buffer."""
        return self._session.complete

    def stop(self) -> None:
        self._engine.stop(self)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the session to finish.

        Bounded sessions on a permanently failing channel never finish on
        their own; pass a timeout and check is_complete.
        """
        return self._session.finished.wait(timeout)

    def live_value(self, parameter: str) -> LiveCell:
        """Latest live cell. Live cells and samples belong to the engine's most recent session."""
        return self._engine.live_value(parameter)

    def samples(self, parameter: str, channel: Optional[int] = None) -> List[float]:
        return self._engine.samples(parameter, channel)

    def summary(self, parameter: str, channel: Optional[int] = None) -> SampleSummary:
        return self._engine.summary(parameter, channel)

    def status(self) -> SessionStatus:
        """Status of this session, even after a newer session started."""
        return self._engine.session_status(self._session)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()


class ProbeAcquisition:
    """
    Probe acquisition engine.

    Example:
        >>> acq = ProbeAcquisition(Config.from_file("line3.json"))
        >>> handle = acq.start_bounded(target_count=40)
        >>> handle.wait(timeout=30)
        >>> acq.samples("OD_1")
    """

    def __init__(self, config: Config, transport: Optional[Transport] = None,
                 registry: Optional[ParameterRegistry] = None, dialect: Optional[ReplyDialect] = None):
        """
        Initialize acquisition engine.

        Args:
            config: Configuration object
            transport: Transport to the boxes, a SerialTransport on the configured port by default
            registry: Parameter bindings, built from the configuration by default
            dialect: Reply dialect, selected by the protocol configuration by default
        """
        self.config = config
        self.transport = transport or SerialTransport(
            config.serial, poll_interval=config.acquisition.read_poll_interval
        )
        self.registry = registry if registry is not None else ParameterRegistry.from_config(config)
        self.dialect = dialect or make_dialect(config.protocol)
        self.store = SampleStore()
        self.scheduler = AcquisitionScheduler(self.dialect, self.store, config.acquisition)

    def start_continuous(self, registry: Optional[ParameterRegistry] = None) -> SessionHandle:
        """Start live sampling until stopped."""
        return self._start(AcquisitionMode.CONTINUOUS, registry, None)

    def start_bounded(self, target_count: Optional[int] = None,
                      registry: Optional[ParameterRegistry] = None) -> SessionHandle:
        """Collect target_count distinct samples per parameter channel, then stop."""
        target = target_count if target_count is not None else self.config.acquisition.target_count
        return self._start(AcquisitionMode.BOUNDED, registry, target)

    def _start(self, mode: AcquisitionMode, registry: Optional[ParameterRegistry],
               target_count: Optional[int]) -> SessionHandle:
        if self.scheduler.is_running:
            raise AlreadyRunningError("An acquisition session is already running")

        registry = registry if registry is not None else self.registry
        if not len(registry):
            raise ConfigurationError("No parameters are bound to any box")
        self.registry = registry

        session = AcquisitionSession(mode, registry, self.transport, target_count)
        session.claim_transport(self.config.serial.port, self.config.serial.baudrate)
        try:
            self.scheduler.start(session)
        except Exception:
            session.release_transport()
            raise
        return SessionHandle(self, session)

    def stop(self, handle: Optional[SessionHandle] = None) -> None:
        """
        Stop acquisition and release the transport.

        Stopping twice, or stopping a handle whose session already ended,
        is a no-op.
        """
        if handle is not None and handle.session is not self.scheduler.session:
            handle.session.release_transport()
            return
        self.scheduler.stop()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait for the current session to finish."""
        return self.scheduler.wait(timeout)

    @property
    def is_running(self) -> bool:
        return self.scheduler.is_running

    def _buffer_key(self, parameter: str, channel: Optional[int]):
        binding = self.registry[parameter]
        if channel is None:
            channel = binding.channels[0]
        elif channel not in binding.channels:
            raise KeyError(f"Parameter '{parameter}' is not bound to channel {channel}")
        return parameter, channel

    def live_value(self, parameter: str) -> LiveCell:
        """Latest live cell of a parameter."""
        if parameter not in self.registry:
            raise KeyError(f"Unknown parameter '{parameter}'")
        return self.store.live_value(parameter)

    def live_values(self) -> Dict[str, LiveCell]:
        """Latest live cell of every parameter."""
        return self.store.live_snapshot()

    def samples(self, parameter: str, channel: Optional[int] = None) -> List[float]:
        """
        Copy of the accepted bounded-mode samples of a parameter.

        Args:
            parameter: Parameter name
            channel: Bound channel, defaults to the first bound channel
        """
        return self.store.samples(self._buffer_key(parameter, channel))

    def samples_array(self, parameter: str, channel: Optional[int] = None) -> np.ndarray:
        """Accepted samples as a numpy array."""
        return self.store.samples_array(self._buffer_key(parameter, channel))

    def summary(self, parameter: str, channel: Optional[int] = None) -> SampleSummary:
        """Statistics of the accepted samples of a parameter."""
        return self.store.summary(self._buffer_key(parameter, channel))

    def status(self) -> SessionStatus:
        """Get current status."""
        session = self.scheduler.session
        if session is None:
            return SessionStatus(state=self.scheduler.state)
        return self.session_status(session)

    def session_status(self, session: AcquisitionSession) -> SessionStatus:
        """Status of a session started by this engine."""
        current = session is self.scheduler.session
        state = self.scheduler.state if current else SchedulerState.STOPPED

        progress = {}
        if current and session.mode == AcquisitionMode.BOUNDED:
            progress = {buffer_label(name, ch): count for (name, ch), count in self.store.counts().items()}

        return SessionStatus(
            state=state,
            mode=session.mode,
            is_running=current and self.scheduler.is_running,
            complete=session.complete,
            target_count=session.target_count,
            ticks=session.ticks,
            write_errors=session.write_errors,
            read_errors=session.read_errors,
            decode_errors=session.decode_errors,
            channel_errors=session.channel_errors,
            uptime=session.uptime,
            progress=progress,
            last_error=session.last_error,
        )

    def close(self) -> None:
        """Stop any session and close the transport."""
        self.scheduler.stop()
        if self.transport.owner is None:
            self.transport.close()
        logger.debug("Probe acquisition closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
