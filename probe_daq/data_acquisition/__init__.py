"""Data acquisition module for the probe DAQ system."""

from .transport import Transport, SerialTransport
from .simulated import SimulatedBox, SimulatedTransport
from .registry import ParameterRegistry
from .sample_store import SampleStore
from .session import AcquisitionSession
from .scheduler import AcquisitionScheduler
from .engine import ProbeAcquisition, SessionHandle

__all__ = [
    "Transport",
    "SerialTransport",
    "SimulatedBox",
    "SimulatedTransport",
    "ParameterRegistry",
    "SampleStore",
    "AcquisitionSession",
    "AcquisitionScheduler",
    "ProbeAcquisition",
    "SessionHandle",
]
