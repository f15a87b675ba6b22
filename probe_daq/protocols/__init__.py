"""Protocol implementations for the probe DAQ system."""

from .commands import encode_poll_command, decode_poll_command
from .dialects import (
    ReplyDialect,
    FixedOffsetDialect,
    TaggedDialect,
    make_dialect,
    channel_value,
    parse_field,
)

__all__ = [
    "encode_poll_command",
    "decode_poll_command",
    "ReplyDialect",
    "FixedOffsetDialect",
    "TaggedDialect",
    "make_dialect",
    "channel_value",
    "parse_field",
]
