"""Box reply dialects.

Two firmware variants answer the VALL poll command with incompatible reply
layouts. The deployment selects one through configuration; replies are never
auto-detected.

Fixed-offset::

    *001VALL   +0.512      -0.033      +1.204      +0.998#

    Channel i occupies a fixed-width field starting at a one-indexed offset
    of the text following the marker.

Tagged::

    *001VALL C01+012.345C02-001.200C03+000.000C04+099.999#

    Up to four "C<2 digits><signed decimal>" groups, assigned to channels
    1..4 in the order they appear.

Both dialects always decode to exactly four floats; a channel that cannot be
read is NaN.
"""

import math
import re
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from ..core.config import DialectName, ProtocolConfig
from ..core.exceptions import ChannelConfigError, ConfigurationError
from ..core.models import CHANNELS_PER_BOX

NAN = float("nan")

_NUMBER_RE = re.compile(r"[-+]?(?:\d+\.?\d*|\.\d+)")
_NUMERIC_RUN_RE = re.compile(r"[0-9+\-.]+")
_TAGGED_VALUE_RE = re.compile(r"C\d{2}([-+]?\d*\.?\d+)")


def invalid_channels() -> List[float]:
    """Channel values of a box that did not answer."""
    return [NAN] * CHANNELS_PER_BOX


def parse_field(text: str) -> float:
    """
    Parse one channel field.

    The trimmed field is parsed directly; when that fails the first run of
    numeric characters is parsed instead.

    Returns:
        Channel value, NaN if nothing numeric could be read
    """
    text = text.strip()
    if _NUMBER_RE.fullmatch(text):
        return float(text)

    match = _NUMERIC_RUN_RE.search(text)
    if match is None:
        return NAN
    try:
        return float(match.group())
    except ValueError:
        return NAN


def channel_value(values: Sequence[float], channel: int) -> float:
    """
    Get the value of a 1-based channel from decoded box values.

    Raises:
        ChannelConfigError: If the channel is outside 1..4
    """
    if not 1 <= channel <= CHANNELS_PER_BOX:
        raise ChannelConfigError(channel)
    if channel > len(values):
        return NAN
    return values[channel - 1]


class ReplyDialect(ABC):
    """Base class of the box reply dialects."""

    name: DialectName

    def __init__(self, marker: str = "VALL", terminator: str = "#"):
        self.marker = marker
        self.terminator = terminator

    def normalize(self, reply: str) -> str:
        """Drop everything up to the marker and the framing characters."""
        idx = reply.upper().find(self.marker.upper())
        if idx >= 0:
            reply = reply[idx + len(self.marker):]
        for char in (self.terminator, "\r", "\n"):
            reply = reply.replace(char, "")
        return reply

    def decode_bytes(self, data: bytes) -> List[float]:
        """Decode a raw reply as read from the transport."""
        return self.decode(data.decode("ascii", errors="replace"))

    @abstractmethod
    def decode(self, reply: str) -> List[float]:
        """Decode a reply into four channel values."""

    @abstractmethod
    def format_reply(self, box: int, values: Sequence[float]) -> str:
        """Format a reply carrying the given channel values."""

    def _header(self, box: int) -> str:
        return f"*{box:03d}{self.marker}"


class FixedOffsetDialect(ReplyDialect):
    """Channel values at fixed character offsets."""

    name = DialectName.FIXED_OFFSET

    def __init__(self, offsets: Sequence[int] = (4, 16, 28, 40), width: int = 8, **kwargs):
        super().__init__(**kwargs)
        if len(offsets) != CHANNELS_PER_BOX:
            raise ConfigurationError(f"Expected {CHANNELS_PER_BOX} field offsets, got {len(offsets)}")
        self.offsets = tuple(offsets)
        self.width = width

    @property
    def min_length(self) -> int:
        """Shortest normalised reply that can carry every field."""
        return self.offsets[-1]

    def decode(self, reply: str) -> List[float]:
        text = self.normalize(reply or "")
        if len(text) < self.min_length:
            return invalid_channels()

        values = []
        for offset in self.offsets:
            start = offset - 1
            values.append(parse_field(text[start:start + self.width]))
        return values

    def format_reply(self, box: int, values: Sequence[float]) -> str:
        body = [" "] * (self.offsets[-1] - 1 + self.width)
        for offset, value in zip(self.offsets, values):
            field = "" if math.isnan(value) else f"{value:+.3f}"
            if len(field) > self.width:
                raise ValueError(f"Value {value} does not fit a {self.width}-character field")
            start = offset - 1
            body[start:start + self.width] = field.rjust(self.width)
        return self._header(box) + "".join(body) + self.terminator


class TaggedDialect(ReplyDialect):
    """Channel values prefixed by a two-digit channel tag."""

    name = DialectName.TAGGED

    def decode(self, reply: str) -> List[float]:
        values = invalid_channels()
        text = self.normalize(reply or "").strip()
        if not text:
            return values

        for i, number in enumerate(_TAGGED_VALUE_RE.findall(text)[:CHANNELS_PER_BOX]):
            try:
                values[i] = float(number)
            except ValueError:
                pass
        return values

    def format_reply(self, box: int, values: Sequence[float]) -> str:
        # Invalid channels are left out; the decoder assigns values by order.
        groups = [
            f"C{channel:02d}{value:+08.3f}"
            for channel, value in enumerate(values, start=1)
            if not math.isnan(value)
        ]
        return self._header(box) + " " + "".join(groups) + self.terminator


def make_dialect(config: Optional[ProtocolConfig] = None) -> ReplyDialect:
    """Create the dialect selected by a protocol configuration."""
    config = config or ProtocolConfig()
    if config.dialect == DialectName.FIXED_OFFSET:
        return FixedOffsetDialect(
            offsets=config.field_offsets,
            width=config.field_width,
            marker=config.marker,
            terminator=config.terminator,
        )
    if config.dialect == DialectName.TAGGED:
        return TaggedDialect(marker=config.marker, terminator=config.terminator)
    raise ConfigurationError(f"Unknown reply dialect: {config.dialect}")
