"""Configuration management for the probe DAQ system."""

import json
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .exceptions import ConfigurationError
from .models import ParameterBinding


class DialectName(str, Enum):
    """Available box reply dialects."""
    FIXED_OFFSET = "fixed_offset"
    TAGGED = "tagged"


class SerialConfig(BaseModel):
    """Serial communication configuration."""
    port: str = Field(..., description="Serial port or pyserial URL (e.g., COM3, /dev/ttyUSB0, loop://)")
    baudrate: int = Field(default=115200, ge=1200, le=4000000, description="Baud rate")
    bytesize: int = Field(default=8, ge=5, le=8, description="Data bits")
    parity: str = Field(default="N", pattern="^[NOEMS]$", description="Parity")
    stopbits: float = Field(default=1.0, ge=1.0, le=2.0, description="Stop bits")
    write_timeout: float = Field(default=0.4, gt=0, description="Write timeout in seconds")


class ProtocolConfig(BaseModel):
    """Box protocol configuration."""
    dialect: DialectName = Field(default=DialectName.FIXED_OFFSET, description="Reply dialect of the box firmware")
    field_offsets: List[int] = Field(default=[4, 16, 28, 40], description="One-indexed start of each channel field")
    field_width: int = Field(default=8, ge=1, description="Width of a fixed-offset channel field")
    marker: str = Field(default="VALL", min_length=1, description="Marker preceding the channel values")
    terminator: str = Field(default="#", min_length=1, max_length=1, description="Reply terminator")

    @field_validator('field_offsets')
    @classmethod
    def validate_offsets(cls, v):
        """Validate fixed-offset field positions."""
        if len(v) != 4:
            raise ValueError("Exactly 4 field offsets are required")
        if any(offset < 1 for offset in v):
            raise ValueError("Field offsets are one-indexed")
        if list(v) != sorted(v):
            raise ValueError("Field offsets must be ascending")
        return v


class AcquisitionConfig(BaseModel):
    """Polling loop configuration."""
    box_timeout: float = Field(default=0.2, gt=0, le=5.0, description="Reply timeout per box in seconds")
    inter_tick_delay: float = Field(default=0.06, ge=0, description="Delay between ticks in seconds")
    inter_box_delay: float = Field(default=0.0, ge=0, description="Delay between boxes in seconds")
    read_poll_interval: float = Field(default=0.001, gt=0, description="Input polling slice in seconds")
    target_count: int = Field(default=40, ge=1, description="Bounded mode samples per buffer")
    lower_limit: float = Field(default=0.2, description="Default lower classification bound (mm)")
    upper_limit: float = Field(default=1.2, description="Default upper classification bound (mm)")
    stop_timeout: float = Field(default=2.0, gt=0, description="Extra time to wait for the loop on stop")

    @model_validator(mode='after')
    def validate_limits(self):
        """Validate limit ordering."""
        if self.lower_limit > self.upper_limit:
            raise ValueError("lower_limit must not exceed upper_limit")
        return self


class Config(BaseModel):
    """Main configuration for the probe DAQ system."""
    model_config = ConfigDict(validate_assignment=True)

    serial: SerialConfig
    protocol: ProtocolConfig = Field(default_factory=ProtocolConfig)
    acquisition: AcquisitionConfig = Field(default_factory=AcquisitionConfig)
    parameters: List[ParameterBinding] = Field(default_factory=list)

    # Advanced options
    log_level: str = Field(default="INFO", pattern="^(TRACE|DEBUG|INFO|SUCCESS|WARNING|ERROR|CRITICAL)$")
    enable_logging: bool = Field(default=True)
    log_file: Optional[str] = Field(default=None, description="Optional log file path")

    @field_validator('serial')
    @classmethod
    def validate_serial_config(cls, v):
        """Validate serial configuration."""
        if not v.port:
            raise ValueError("Serial port must be specified")
        return v

    @field_validator('parameters')
    @classmethod
    def validate_unique_names(cls, v):
        """Validate parameter names are unique."""
        names = [binding.name for binding in v]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate parameter names: {', '.join(duplicates)}")
        return v

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        """Create configuration from dictionary."""
        return cls(**data)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> 'Config':
        """Load configuration from a JSON file."""
        path = Path(path)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot read configuration {path}: {e}") from e
        return cls.from_dict(data)

    @classmethod
    def create_default(cls, port: str) -> 'Config':
        """Create default configuration for a given port."""
        return cls(
            serial=SerialConfig(port=port),
            protocol=ProtocolConfig(),
            acquisition=AcquisitionConfig()
        )
