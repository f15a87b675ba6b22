"""Probe DAQ - multiplexed serial probe acquisition for dimensional inspection."""

__version__ = "0.1.0"
__author__ = "Mehrshad"
__email__ = "mehrshad@example.com"

# Core imports for easy access
from .core.config import Config, SerialConfig, ProtocolConfig, AcquisitionConfig, DialectName
from .core.models import (
    ParameterBinding,
    Reading,
    LiveCell,
    ProbeStatus,
    AcquisitionMode,
    SchedulerState,
    SampleSummary,
    SessionStatus,
)
from .core.exceptions import (
    ProbeDAQError,
    ConfigurationError,
    ProtocolError,
    DecodeError,
    ChannelConfigError,
    TransportError,
    PortUnavailableError,
    WriteTimeoutError,
    AlreadyOpenError,
    AcquisitionError,
    OwnershipError,
    AlreadyRunningError,
)
from .core.logging import setup_logging
from .data_acquisition.transport import Transport, SerialTransport
from .data_acquisition.simulated import SimulatedBox, SimulatedTransport
from .data_acquisition.registry import ParameterRegistry
from .data_acquisition.sample_store import SampleStore
from .data_acquisition.engine import ProbeAcquisition, SessionHandle
from .protocols.commands import encode_poll_command
from .protocols.dialects import FixedOffsetDialect, TaggedDialect, make_dialect

__all__ = [
    # Version info
    "__version__",
    "__author__",
    "__email__",

    # Configuration
    "Config",
    "SerialConfig",
    "ProtocolConfig",
    "AcquisitionConfig",
    "DialectName",

    # Data models
    "ParameterBinding",
    "Reading",
    "LiveCell",
    "ProbeStatus",
    "AcquisitionMode",
    "SchedulerState",
    "SampleSummary",
    "SessionStatus",

    # Exceptions
    "ProbeDAQError",
    "ConfigurationError",
    "ProtocolError",
    "DecodeError",
    "ChannelConfigError",
    "TransportError",
    "PortUnavailableError",
    "WriteTimeoutError",
    "AlreadyOpenError",
    "AcquisitionError",
    "OwnershipError",
    "AlreadyRunningError",

    # Core components
    "Transport",
    "SerialTransport",
    "SimulatedBox",
    "SimulatedTransport",
    "ParameterRegistry",
    "SampleStore",
    "ProbeAcquisition",
    "SessionHandle",

    # Protocol utilities
    "encode_poll_command",
    "FixedOffsetDialect",
    "TaggedDialect",
    "make_dialect",
    "setup_logging",
]
