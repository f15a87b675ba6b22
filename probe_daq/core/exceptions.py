"""Custom exceptions for the probe DAQ system."""


class ProbeDAQError(Exception):
    """Base exception for the probe DAQ system."""
    pass


class ConfigurationError(ProbeDAQError):
    """Raised when there's a configuration error."""
    pass


class ProtocolError(ProbeDAQError):
    """Raised when there's a protocol violation."""
    pass


class DecodeError(ProtocolError):
    """Raised when a box reply yields no valid channel."""
    pass


class ChannelConfigError(ProtocolError):
    """Raised when a binding references a channel outside 1..4."""

    def __init__(self, channel: int):
        super().__init__(f"Channel {channel} is outside 1..4")
        self.channel = channel


class TransportError(ProbeDAQError):
    """Raised when the serial transport fails."""
    pass


class PortUnavailableError(TransportError):
    """Raised when the serial port cannot be opened."""
    pass


class WriteTimeoutError(TransportError):
    """Raised when a write to the serial port times out."""
    pass


class AlreadyOpenError(TransportError):
    """Raised when opening a transport that already holds a handle."""
    pass


class AcquisitionError(ProbeDAQError):
    """Raised when there's an error in data acquisition."""
    pass


class OwnershipError(AcquisitionError):
    """Raised when a transport is already owned by another session."""
    pass


class AlreadyRunningError(AcquisitionError):
    """Raised when starting a scheduler that is already running."""
    pass
