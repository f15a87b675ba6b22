"""Data models for the probe DAQ system."""

import math
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


CHANNELS_PER_BOX = 4


class ProbeStatus(str, Enum):
    """Classification of a live probe value."""
    UNDER = "Under"
    OVER = "Over"
    IN_RANGE = "InRange"
    ERROR = "Error"


class AcquisitionMode(str, Enum):
    """Acquisition session modes."""
    CONTINUOUS = "continuous"
    BOUNDED = "bounded"


class SchedulerState(str, Enum):
    """Lifecycle states of the acquisition scheduler."""
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


def buffer_label(name: str, channel: int) -> str:
    """Human readable label of a (parameter, channel) sample buffer."""
    return f"{name}/CH{channel}"


class ParameterBinding(BaseModel):
    """A logical measurement bound to one or more channels of a single box."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Logical parameter name")
    box: int = Field(..., ge=1, le=999, description="Box identifier")
    channels: Tuple[int, ...] = Field(..., min_length=1, description="Bound channel numbers, in report order")
    lower_limit: Optional[float] = Field(default=None, description="Lower classification bound (mm)")
    upper_limit: Optional[float] = Field(default=None, description="Upper classification bound (mm)")

    @field_validator('channels', mode='before')
    @classmethod
    def split_channel_list(cls, v):
        """Accept "1,2" style channel lists as stored by the setup screens."""
        if isinstance(v, int):
            return (v,)
        if isinstance(v, str):
            parts = v.replace(';', ',').replace(' ', ',').split(',')
            return tuple(int(p) for p in parts if p.strip())
        return v

    @model_validator(mode='after')
    def validate_limits(self):
        """Validate limit ordering."""
        if (self.lower_limit is not None and self.upper_limit is not None
                and self.lower_limit > self.upper_limit):
            raise ValueError(
                f"lower_limit {self.lower_limit} is above upper_limit {self.upper_limit} for '{self.name}'"
            )
        return self

    @property
    def buffer_keys(self) -> List[Tuple[str, int]]:
        """Sample buffer keys owned by this parameter."""
        return [(self.name, ch) for ch in self.channels]

    @property
    def has_valid_channels(self) -> bool:
        """Check whether every bound channel is addressable."""
        return all(1 <= ch <= CHANNELS_PER_BOX for ch in self.channels)


class Reading(BaseModel):
    """One decoded channel value of one box for one tick."""
    model_config = ConfigDict(frozen=True)

    box: int = Field(..., ge=1, le=999)
    channel: int
    value: float = Field(..., description="Channel value (mm), NaN when invalid")
    tick: int = Field(..., ge=0, description="Tick the value was captured in")

    @property
    def is_valid(self) -> bool:
        """Check whether the value was decoded."""
        return not math.isnan(self.value)


class LiveCell(BaseModel):
    """Latest value and classification of a parameter in continuous mode.

    Cells are immutable; the sample store swaps the whole cell on every
    update so readers never observe a half-written entry.
    """
    model_config = ConfigDict(frozen=True)

    parameter: str
    value: float = Field(default=0.0, description="First bound channel value")
    values: Tuple[float, ...] = Field(default=(), description="All bound channel values")
    status: Optional[ProbeStatus] = Field(default=None, description="None until the first update")
    in_range: bool = False
    text: str = "Ready"
    tick: int = 0
    error: Optional[str] = None

    @classmethod
    def empty(cls, parameter: str) -> 'LiveCell':
        """Create a cell that has not been written yet."""
        return cls(parameter=parameter)

    @property
    def is_error(self) -> bool:
        """Check whether the last update failed."""
        return self.status == ProbeStatus.ERROR


class SampleSummary(BaseModel):
    """Statistics of an accepted sample buffer."""
    count: int = 0
    minimum: float = math.nan
    maximum: float = math.nan
    mean: float = math.nan
    std: float = math.nan

    @property
    def spread(self) -> float:
        """Max minus min of the accepted samples."""
        return self.maximum - self.minimum

    @classmethod
    def from_values(cls, values: Union[Sequence[float], np.ndarray]) -> 'SampleSummary':
        """Summarise a sequence of samples."""
        data = np.asarray(values, dtype=np.float64)
        if data.size == 0:
            return cls()
        return cls(
            count=int(data.size),
            minimum=float(np.min(data)),
            maximum=float(np.max(data)),
            mean=float(np.mean(data)),
            std=float(np.std(data)),
        )


class SessionStatus(BaseModel):
    """Acquisition session status information."""
    state: SchedulerState = Field(default=SchedulerState.IDLE)
    mode: Optional[AcquisitionMode] = Field(default=None, description="Mode of the current or last session")
    is_running: bool = Field(default=False, description="Polling loop running")
    complete: bool = Field(default=False, description="Bounded target reached for every buffer")
    target_count: Optional[int] = Field(default=None, description="Bounded target count")
    ticks: int = Field(default=0, description="Completed ticks")
    write_errors: int = Field(default=0, description="Failed command writes")
    read_errors: int = Field(default=0, description="Failed or empty reads")
    decode_errors: int = Field(default=0, description="Replies without a valid channel")
    channel_errors: int = Field(default=0, description="Bindings referencing channels outside 1..4")
    uptime: float = Field(default=0.0, description="Session uptime in seconds")
    progress: Dict[str, int] = Field(default_factory=dict, description="Accepted samples per buffer")
    last_error: Optional[str] = None

    @property
    def errors_count(self) -> int:
        """Get total error count."""
        return self.write_errors + self.read_errors + self.decode_errors + self.channel_errors
