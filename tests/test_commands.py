"""Tests for poll command encoding."""

import pytest

from probe_daq.core.exceptions import ConfigurationError, ProtocolError
from probe_daq.protocols.commands import decode_poll_command, encode_poll_command


@pytest.mark.parametrize("box, expected", [
    (1, b"*001VALL#\r"),
    (42, b"*042VALL#\r"),
    (999, b"*999VALL#\r"),
])
def test_encode_poll_command(box, expected):
    assert encode_poll_command(box) == expected


@pytest.mark.parametrize("box", [0, 1000, -3, True, "7", 1.0])
def test_encode_rejects_unaddressable_box(box):
    with pytest.raises(ConfigurationError):
        encode_poll_command(box)


def test_decode_poll_command():
    assert decode_poll_command(b"*017VALL#\r") == 17
    assert decode_poll_command(encode_poll_command(305)) == 305


@pytest.mark.parametrize("data", [b"", b"017VALL#\r", b"*17VALL#\r", b"*0a7VALL#\r", b"*017VAL#\r"])
def test_decode_rejects_other_data(data):
    with pytest.raises(ProtocolError):
        decode_poll_command(data)
