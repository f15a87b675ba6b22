"""Core module for the probe DAQ system."""

from .config import Config, SerialConfig, ProtocolConfig, AcquisitionConfig, DialectName
from .models import ParameterBinding, Reading, LiveCell, ProbeStatus, SessionStatus, SampleSummary
from .exceptions import ProbeDAQError, ConfigurationError, ProtocolError, TransportError, AcquisitionError

__all__ = [
    "Config", "SerialConfig", "ProtocolConfig", "AcquisitionConfig", "DialectName",
    "ParameterBinding", "Reading", "LiveCell", "ProbeStatus", "SessionStatus", "SampleSummary",
    "ProbeDAQError", "ConfigurationError", "ProtocolError", "TransportError", "AcquisitionError",
]
