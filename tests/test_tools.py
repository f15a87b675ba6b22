"""Tests for the console monitor and the serial box simulator."""

import argparse
import csv
import math
import signal

import pytest

from mock_probe_boxes import MockProbeBoxes
from probe_daq.examples import live_monitor
from probe_daq.examples.live_monitor import build_config, parse_binding


class TestMockProbeBoxes:

    def test_answers_known_boxes(self, fixed_dialect):
        mock = MockProbeBoxes("loop://", fixed_dialect, boxes=[1, 3], values=[0.5, 0.6, 0.7, 0.8])

        reply = mock.handle_command(b"*003VALL#\r")
        assert reply.startswith(b"*003VALL")
        assert fixed_dialect.decode_bytes(reply) == [0.5, 0.6, 0.7, 0.8]

    def test_ignores_other_traffic(self, fixed_dialect):
        mock = MockProbeBoxes("loop://", fixed_dialect, boxes=[1])
        assert mock.handle_command(b"*002VALL#\r") is None
        assert mock.handle_command(b"hello\r") is None

    def test_tagged_replies(self, tagged_dialect):
        mock = MockProbeBoxes("loop://", tagged_dialect, boxes=[1], values=[1.5, -0.25])
        values = tagged_dialect.decode_bytes(mock.handle_command(b"*001VALL#\r"))
        assert values[:2] == [1.5, -0.25]
        assert math.isnan(values[2])


class TestLiveMonitor:

    def test_parse_binding(self):
        binding = parse_binding("RUNOUT:5:1,2")
        assert binding.name == "RUNOUT"
        assert binding.box == 5
        assert binding.channels == (1, 2)

    @pytest.mark.parametrize("text", ["OD:1", "OD:x:1", "OD:1:a", "OD:0:1"])
    def test_parse_bad_binding(self, text):
        with pytest.raises(argparse.ArgumentTypeError):
            parse_binding(text)

    def test_build_config(self):
        args = argparse.Namespace(
            config=None, port="COM4", baudrate=9600, dialect="tagged", box_timeout=0.3,
            delay=0.1, param=[parse_binding("OD:2:1")], log_level="DEBUG",
        )
        config = build_config(args)
        assert config.serial.port == "COM4"
        assert config.serial.baudrate == 9600
        assert config.protocol.dialect.value == "tagged"
        assert config.acquisition.box_timeout == 0.3
        assert config.acquisition.inter_tick_delay == 0.1
        assert [p.name for p in config.parameters] == ["OD"]

    def test_simulated_bounded_capture(self, tmp_path, monkeypatch):
        monkeypatch.setattr(signal, "signal", lambda *args: None)
        output = tmp_path / "capture.csv"

        code = live_monitor.main([
            "--simulate", "--param", "OD:1:1", "--param", "RUNOUT:2:2,3",
            "--bounded", "3", "--delay", "0", "--output", str(output), "--log-level", "ERROR",
        ])

        assert code == 0
        with open(output, newline="") as f:
            rows = list(csv.DictReader(f))
        assert len(rows) == 9
        assert {(r["parameter"], r["channel"]) for r in rows} == {("OD", "1"), ("RUNOUT", "2"), ("RUNOUT", "3")}

    def test_requires_a_port(self):
        with pytest.raises(SystemExit):
            live_monitor.main([])
