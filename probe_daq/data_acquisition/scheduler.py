"""Polling loop driving the probe boxes."""

import math
import threading
from typing import List, Optional, Sequence

from loguru import logger

from ..core.config import AcquisitionConfig
from ..core.exceptions import AlreadyRunningError, ChannelConfigError, DecodeError, TransportError
from ..core.models import AcquisitionMode, LiveCell, ParameterBinding, ProbeStatus, Reading, SchedulerState
from ..protocols.commands import encode_poll_command
from ..protocols.dialects import ReplyDialect, channel_value
from .sample_store import SampleStore
from .session import AcquisitionSession

NAN = float("nan")


class AcquisitionScheduler:
    """
    Background polling loop of an acquisition session.

    One tick polls every box of the registry in ascending order: discard
    stale input, write the VALL command, read the reply up to the
    terminator, decode it and dispatch the channel values to the sample
    store. A failing box never aborts the tick for the other boxes.

    The loop runs on a dedicated thread and is the only writer of the
    transport and the sample store. Cancellation is checked before every
    box and after every read, and the inter-tick delay waits on the cancel
    event, so stop() returns within one box timeout plus one delay.
    """

    def __init__(self, dialect: ReplyDialect, store: SampleStore, config: Optional[AcquisitionConfig] = None):
        """
        Initialize acquisition scheduler.

        Args:
            dialect: Reply dialect of the boxes
            store: Store receiving live values and samples
            config: Timing and classification configuration
        """
        self.dialect = dialect
        self.store = store
        self.config = config or AcquisitionConfig()
        self._terminator = dialect.terminator.encode("ascii")

        self._state = SchedulerState.IDLE
        self._session: Optional[AcquisitionSession] = None
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def state(self) -> SchedulerState:
        """Current scheduler state."""
        return self._state

    @property
    def is_running(self) -> bool:
        """Check if the polling loop is running."""
        return self._state == SchedulerState.RUNNING

    @property
    def session(self) -> Optional[AcquisitionSession]:
        """Current or last session."""
        return self._session

    def start(self, session: AcquisitionSession) -> None:
        """
        Start polling for a session whose transport is already claimed.

        Raises:
            AlreadyRunningError: If a session is already running
        """
        with self._lock:
            if self._state == SchedulerState.RUNNING:
                raise AlreadyRunningError("Acquisition scheduler is already running")

            if session.mode == AcquisitionMode.BOUNDED:
                self.store.prepare_bounded(session.registry.buffer_keys(), session.target_count)
            else:
                self.store.clear_samples()
            self.store.prepare_live(session.registry.names)

            self._session = session
            self._state = SchedulerState.RUNNING
            self._thread = threading.Thread(
                target=self._run,
                args=(session,),
                name=f"probe-acquisition-{session.mode.value}",
                daemon=True,
            )
            self._thread.start()

    def stop(self) -> None:
        """
        Stop the polling loop and release the transport.

        Calling stop() on a scheduler that is not running is a no-op apart
        from moving it to the stopped state.
        """
        with self._lock:
            session = self._session
            thread = self._thread
            if self._state != SchedulerState.RUNNING:
                self._state = SchedulerState.STOPPED
                if session is not None:
                    session.release_transport()
                return
            session.cancel()

        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self._join_timeout())
            if thread.is_alive():
                logger.warning("Polling loop did not stop in time; closing the transport anyway")

        session.release_transport()
        with self._lock:
            self._state = SchedulerState.STOPPED

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the polling loop to finish.

        Returns:
            True if the loop finished, False on timeout or if never started
        """
        session = self._session
        if session is None:
            return False
        return session.finished.wait(timeout)

    def _join_timeout(self) -> float:
        return (self.config.box_timeout + self.config.inter_tick_delay
                + self.config.inter_box_delay + self.config.stop_timeout)

    def _run(self, session: AcquisitionSession) -> None:
        logger.info("Acquisition started: {}", session)
        try:
            self._loop(session)
        except Exception as e:
            session.record_error(f"{type(e).__name__}: {e}")
            logger.exception("Acquisition loop failed")
        finally:
            session.release_transport()
            with self._lock:
                if self._session is session:
                    self._state = SchedulerState.STOPPED
            session.finished.set()
            if session.complete:
                logger.info("Acquisition complete after {} ticks", session.ticks)
            else:
                logger.info("Acquisition stopped after {} ticks", session.ticks)

    def _loop(self, session: AcquisitionSession) -> None:
        cancel = session.cancel_event
        buffer_keys = session.registry.buffer_keys()

        while not cancel.is_set():
            if not self.run_tick(session):
                return

            if session.mode == AcquisitionMode.BOUNDED and self.store.is_complete(buffer_keys):
                session.complete = True
                return

            if cancel.wait(self.config.inter_tick_delay):
                return

    def run_tick(self, session: AcquisitionSession) -> bool:
        """
        Poll every box of the session once.

        Returns:
            False if the tick was cut short by cancellation
        """
        cancel = session.cancel_event
        tick = session.ticks + 1

        for index, box in enumerate(session.registry.all_boxes()):
            if cancel.is_set():
                return False
            if index and self.config.inter_box_delay > 0:
                if cancel.wait(self.config.inter_box_delay):
                    return False
            self.poll_box(session, box, tick)

        if cancel.is_set():
            return False
        session.ticks = tick
        return True

    def poll_box(self, session: AcquisitionSession, box: int, tick: int) -> None:
        """Poll one box and dispatch its channel values."""
        bindings = session.registry.bindings_for_box(box)
        transport = session.transport

        try:
            transport.discard_buffers()
            transport.write(encode_poll_command(box))
        except TransportError as e:
            session.write_errors += 1
            self._box_failed(session, box, bindings, tick, e)
            return

        try:
            raw = transport.read_until_or_timeout(self._terminator, self.config.box_timeout, session.cancel_event)
        except TransportError as e:
            session.read_errors += 1
            self._box_failed(session, box, bindings, tick, e)
            return

        # A reply cut short by cancellation is not dispatched.
        if session.cancelled:
            return

        if not raw.strip():
            session.read_errors += 1
            self._box_failed(session, box, bindings, tick, DecodeError(f"Box {box} did not answer"))
            return

        try:
            values = self.decode(box, raw)
        except DecodeError as e:
            session.decode_errors += 1
            self._box_failed(session, box, bindings, tick, e)
            return

        if box in session.failing_boxes:
            session.failing_boxes.discard(box)
            logger.info("Box {} is answering again", box)

        self._dispatch(session, box, bindings, values, tick)

    def decode(self, box: int, raw: bytes) -> List[float]:
        """
        Decode a reply with the configured dialect.

        Raises:
            DecodeError: If no channel of the reply is valid
        """
        values = self.dialect.decode_bytes(raw)
        if all(math.isnan(v) for v in values):
            raise DecodeError(f"Box {box} reply has no valid channel: {raw!r}")
        logger.trace("Box {} -> {}", box, values)
        return values

    def _box_failed(self, session: AcquisitionSession, box: int,
                    bindings: Sequence[ParameterBinding], tick: int, error: Exception) -> None:
        message = f"{type(error).__name__}: {error}"
        session.record_error(message)

        if box not in session.failing_boxes:
            session.failing_boxes.add(box)
            logger.warning("Box {} failed: {}", box, message)
        else:
            logger.debug("Box {} still failing: {}", box, message)

        # Bounded sessions simply skip the samples of a failed box.
        for binding in bindings:
            self.store.update_live(binding.name, LiveCell(
                parameter=binding.name,
                value=NAN,
                values=tuple(NAN for _ in binding.channels),
                status=ProbeStatus.ERROR,
                in_range=False,
                text="ERR",
                tick=tick,
                error=message,
            ))

    def _dispatch(self, session: AcquisitionSession, box: int,
                  bindings: Sequence[ParameterBinding], values: Sequence[float], tick: int) -> None:
        for binding in bindings:
            readings = []
            channel_error = None
            for channel in binding.channels:
                try:
                    value = channel_value(values, channel)
                except ChannelConfigError as e:
                    channel_error = e
                    value = NAN
                readings.append(Reading(box=box, channel=channel, value=value, tick=tick))

            if channel_error is not None:
                session.channel_errors += 1
                session.record_error(f"{binding.name}: {channel_error}")

            self.store.update_live(binding.name, self.classify(binding, readings, tick, channel_error))

            if session.mode == AcquisitionMode.BOUNDED and channel_error is None:
                for reading in readings:
                    self.store.try_append((binding.name, reading.channel), reading.value)

    def classify(self, binding: ParameterBinding, readings: Sequence[Reading], tick: int,
                 channel_error: Optional[ChannelConfigError] = None) -> LiveCell:
        """Build the live cell of a parameter from its readings."""
        values = tuple(r.value for r in readings)
        first = values[0] if values else NAN

        if channel_error is not None:
            return LiveCell(parameter=binding.name, value=NAN, values=values, status=ProbeStatus.ERROR,
                            in_range=False, text="CH ERR", tick=tick, error=str(channel_error))

        if not all(r.is_valid for r in readings):
            return LiveCell(parameter=binding.name, value=first, values=values, status=ProbeStatus.ERROR,
                            in_range=False, text="ERR", tick=tick, error="Invalid channel reading")

        lower = binding.lower_limit if binding.lower_limit is not None else self.config.lower_limit
        upper = binding.upper_limit if binding.upper_limit is not None else self.config.upper_limit

        if any(v < lower for v in values):
            status = ProbeStatus.UNDER
        elif any(v > upper for v in values):
            status = ProbeStatus.OVER
        else:
            status = ProbeStatus.IN_RANGE

        return LiveCell(
            parameter=binding.name,
            value=first,
            values=values,
            status=status,
            in_range=status == ProbeStatus.IN_RANGE,
            text=", ".join(f"{v:.3f}" for v in values),
            tick=tick,
        )
