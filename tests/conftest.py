"""Shared fixtures for the probe DAQ tests."""

import pytest

from probe_daq.core.config import AcquisitionConfig, Config, DialectName, ProtocolConfig, SerialConfig
from probe_daq.core.logging import setup_logging
from probe_daq.core.models import AcquisitionMode, ParameterBinding
from probe_daq.data_acquisition.engine import ProbeAcquisition
from probe_daq.data_acquisition.registry import ParameterRegistry
from probe_daq.data_acquisition.sample_store import SampleStore
from probe_daq.data_acquisition.scheduler import AcquisitionScheduler
from probe_daq.data_acquisition.session import AcquisitionSession
from probe_daq.data_acquisition.simulated import SimulatedTransport
from probe_daq.protocols.dialects import FixedOffsetDialect, TaggedDialect


@pytest.fixture(autouse=True, scope="session")
def quiet_logging():
    setup_logging("WARNING", enabled=False)


@pytest.fixture
def fixed_dialect():
    return FixedOffsetDialect()


@pytest.fixture
def tagged_dialect():
    return TaggedDialect()


@pytest.fixture
def bindings():
    return [
        ParameterBinding(name="OD_TOP", box=1, channels=[1]),
        ParameterBinding(name="RUNOUT", box=1, channels=[2, 3]),
        ParameterBinding(name="OD_MID", box=2, channels=[1]),
        ParameterBinding(name="OD_BOTTOM", box=3, channels=[4]),
    ]


@pytest.fixture
def config(bindings):
    return Config(
        serial=SerialConfig(port="sim://"),
        protocol=ProtocolConfig(dialect=DialectName.FIXED_OFFSET),
        acquisition=AcquisitionConfig(
            box_timeout=0.05,
            inter_tick_delay=0.0,
            stop_timeout=1.0,
            target_count=5,
        ),
        parameters=bindings,
    )


@pytest.fixture
def transport(fixed_dialect):
    """Three boxes answering with constant in-range values."""
    line = SimulatedTransport(fixed_dialect)
    line.add_box(1, values=[0.5, 0.6, 0.7, 0.8])
    line.add_box(2, values=[0.9, 1.0, 1.1, 1.15])
    line.add_box(3, values=[0.3, 0.4, 0.45, 0.55])
    return line


@pytest.fixture
def engine(config, transport):
    acq = ProbeAcquisition(config, transport=transport)
    yield acq
    acq.close()


@pytest.fixture
def make_session(config, fixed_dialect):
    """Build a scheduler and a claimed session for driving ticks by hand."""
    sessions = []

    def _make(transport, mode=AcquisitionMode.CONTINUOUS, bindings=None, target_count=None):
        registry = ParameterRegistry(bindings if bindings is not None else config.parameters)
        store = SampleStore()
        scheduler = AcquisitionScheduler(fixed_dialect, store, config.acquisition)
        session = AcquisitionSession(mode, registry, transport, target_count)
        if mode == AcquisitionMode.BOUNDED:
            store.prepare_bounded(registry.buffer_keys(), target_count)
        store.prepare_live(registry.names)
        session.claim_transport()
        sessions.append(session)
        return scheduler, session, store

    yield _make

    for session in sessions:
        session.release_transport()
