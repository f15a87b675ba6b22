"""Tests for the polling loop, driven one tick at a time."""

import math

import pytest

from probe_daq.core.exceptions import DecodeError
from probe_daq.core.models import AcquisitionMode, ParameterBinding, ProbeStatus, Reading
from probe_daq.data_acquisition.simulated import SimulatedTransport
from probe_daq.protocols.commands import encode_poll_command


def run_until_complete(scheduler, session, store, max_ticks=50):
    keys = session.registry.buffer_keys()
    for _ in range(max_ticks):
        assert scheduler.run_tick(session)
        if store.is_complete(keys):
            return True
    return False


class TestContinuous:

    def test_tick_updates_every_parameter(self, make_session, transport):
        scheduler, session, store = make_session(transport)

        assert scheduler.run_tick(session)

        assert session.ticks == 1
        assert list(transport.commands) == [encode_poll_command(b) for b in (1, 2, 3)]
        top = store.live_value("OD_TOP")
        assert top.status == ProbeStatus.IN_RANGE
        assert top.in_range
        assert top.value == 0.5
        assert top.text == "0.500"
        assert top.tick == 1

        runout = store.live_value("RUNOUT")
        assert runout.values == (0.6, 0.7)
        assert runout.text == "0.600, 0.700"
        assert store.live_value("OD_BOTTOM").value == 0.55

    def test_write_failure_is_isolated_to_its_box(self, make_session, transport):
        transport.fail_writes.add(2)
        scheduler, session, store = make_session(transport)

        assert scheduler.run_tick(session)

        assert session.write_errors == 1
        mid = store.live_value("OD_MID")
        assert mid.status == ProbeStatus.ERROR
        assert mid.text == "ERR"
        assert math.isnan(mid.value)
        assert store.live_value("OD_TOP").status == ProbeStatus.IN_RANGE
        assert store.live_value("OD_BOTTOM").status == ProbeStatus.IN_RANGE
        assert transport.commands[-1] == encode_poll_command(3)

    def test_silent_box(self, make_session, transport):
        transport.silent_boxes.add(1)
        scheduler, session, store = make_session(transport)

        scheduler.run_tick(session)

        assert session.read_errors == 1
        assert store.live_value("OD_TOP").is_error
        assert store.live_value("RUNOUT").is_error
        assert store.live_value("OD_MID").status == ProbeStatus.IN_RANGE

    def test_reply_without_valid_channel(self, make_session, fixed_dialect):
        line = SimulatedTransport(fixed_dialect)
        line.add_box(4, values=[])
        scheduler, session, store = make_session(
            line, bindings=[ParameterBinding(name="DEAD", box=4, channels=[1])]
        )

        scheduler.run_tick(session)

        assert session.decode_errors == 1
        assert store.live_value("DEAD").is_error
        assert "DecodeError" in session.last_error

    def test_box_recovers(self, make_session, transport):
        transport.fail_writes.add(2)
        scheduler, session, store = make_session(transport)

        scheduler.run_tick(session)
        scheduler.run_tick(session)
        assert session.failing_boxes == {2}
        assert session.write_errors == 2

        transport.fail_writes.clear()
        scheduler.run_tick(session)
        assert session.failing_boxes == set()
        assert store.live_value("OD_MID").status == ProbeStatus.IN_RANGE
        assert store.live_value("OD_MID").tick == 3

    @pytest.mark.parametrize("channel", [0, 5])
    def test_channel_outside_box(self, make_session, transport, channel):
        bindings = [
            ParameterBinding(name="BAD", box=1, channels=[channel]),
            ParameterBinding(name="GOOD", box=1, channels=[2]),
        ]
        scheduler, session, store = make_session(transport, bindings=bindings)

        scheduler.run_tick(session)

        bad = store.live_value("BAD")
        assert bad.status == ProbeStatus.ERROR
        assert bad.text == "CH ERR"
        assert f"Channel {channel}" in bad.error
        assert session.channel_errors == 1
        assert store.live_value("GOOD").value == 0.6

    def test_invalid_bound_channel(self, make_session, fixed_dialect):
        line = SimulatedTransport(fixed_dialect)
        line.add_box(1, values=[0.5, math.nan, 0.7, 0.8])
        scheduler, session, store = make_session(
            line, bindings=[ParameterBinding(name="RUNOUT", box=1, channels=[2, 3])]
        )

        scheduler.run_tick(session)

        cell = store.live_value("RUNOUT")
        assert cell.status == ProbeStatus.ERROR
        assert cell.text == "ERR"
        assert session.decode_errors == 0

    def test_cancelled_tick_writes_nothing(self, make_session, transport):
        scheduler, session, store = make_session(transport)
        session.cancel()

        assert not scheduler.run_tick(session)
        assert transport.write_count == 0
        assert session.ticks == 0


class TestBounded:

    def test_dedup_sequence(self, make_session, fixed_dialect):
        line = SimulatedTransport(fixed_dialect)
        line.add_box(1, script=[[v] for v in [1, 1, 2, 2, 3, 4, 5, 5, 6]])
        scheduler, session, store = make_session(
            line, mode=AcquisitionMode.BOUNDED, target_count=5,
            bindings=[ParameterBinding(name="OD", box=1, channels=[1])],
        )

        assert run_until_complete(scheduler, session, store)

        assert store.samples(("OD", 1)) == [1.0, 2.0, 3.0, 4.0, 5.0]
        assert session.ticks == 7
        assert line.boxes[1].polls == 7

    def test_live_cells_follow_bounded_ticks(self, make_session, fixed_dialect):
        line = SimulatedTransport(fixed_dialect)
        line.add_box(1, script=[[0.4], [0.5]])
        scheduler, session, store = make_session(
            line, mode=AcquisitionMode.BOUNDED, target_count=5,
            bindings=[ParameterBinding(name="OD", box=1, channels=[1])],
        )

        scheduler.run_tick(session)
        scheduler.run_tick(session)

        assert store.live_value("OD").value == 0.5

    def test_failed_box_appends_nothing(self, make_session, transport):
        transport.fail_writes.add(2)
        scheduler, session, store = make_session(
            transport, mode=AcquisitionMode.BOUNDED, target_count=5
        )

        scheduler.run_tick(session)

        assert store.samples(("OD_MID", 1)) == []
        assert store.samples(("OD_TOP", 1)) == [0.5]
        assert store.samples(("RUNOUT", 2)) == [0.6]
        assert store.samples(("RUNOUT", 3)) == [0.7]

    def test_each_channel_has_its_own_buffer(self, make_session, fixed_dialect):
        line = SimulatedTransport(fixed_dialect)
        line.add_box(1, script=[[0, 0.1, 0.5], [0, 0.2, 0.5], [0, 0.3, 0.6]])
        scheduler, session, store = make_session(
            line, mode=AcquisitionMode.BOUNDED, target_count=3,
            bindings=[ParameterBinding(name="RUNOUT", box=1, channels=[2, 3])],
        )

        for _ in range(3):
            scheduler.run_tick(session)

        assert store.samples(("RUNOUT", 2)) == [0.1, 0.2, 0.3]
        assert store.samples(("RUNOUT", 3)) == [0.5, 0.6]
        assert not store.is_complete(session.registry.buffer_keys())

    def test_channel_error_never_completes(self, make_session, transport):
        scheduler, session, store = make_session(
            transport, mode=AcquisitionMode.BOUNDED, target_count=1,
            bindings=[ParameterBinding(name="BAD", box=1, channels=[5])],
        )

        assert not run_until_complete(scheduler, session, store, max_ticks=3)
        assert store.counts() == {("BAD", 5): 0}


class TestClassify:

    def make_readings(self, *values):
        return [Reading(box=1, channel=i, value=v, tick=1) for i, v in enumerate(values, start=1)]

    @pytest.mark.parametrize("value, status", [
        (0.1, ProbeStatus.UNDER),
        (0.2, ProbeStatus.IN_RANGE),
        (0.8, ProbeStatus.IN_RANGE),
        (1.2, ProbeStatus.IN_RANGE),
        (1.25, ProbeStatus.OVER),
    ])
    def test_default_limits(self, make_session, transport, value, status):
        scheduler, _, _ = make_session(transport)
        binding = ParameterBinding(name="OD", box=1, channels=[1])
        cell = scheduler.classify(binding, self.make_readings(value), tick=1)
        assert cell.status == status
        assert cell.in_range == (status == ProbeStatus.IN_RANGE)

    def test_binding_limits(self, make_session, transport):
        scheduler, _, _ = make_session(transport)
        binding = ParameterBinding(name="FACE", box=1, channels=[1], lower_limit=0.0, upper_limit=0.05)
        assert scheduler.classify(binding, self.make_readings(0.08), tick=1).status == ProbeStatus.OVER
        assert scheduler.classify(binding, self.make_readings(0.01), tick=1).status == ProbeStatus.IN_RANGE

    def test_any_channel_out_of_range(self, make_session, transport):
        scheduler, _, _ = make_session(transport)
        binding = ParameterBinding(name="RUNOUT", box=1, channels=[1, 2])
        cell = scheduler.classify(binding, self.make_readings(0.5, 1.5), tick=1)
        assert cell.status == ProbeStatus.OVER
        assert cell.value == 0.5


def test_decode_rejects_reply_without_valid_channel(make_session, transport):
    scheduler, _, _ = make_session(transport)
    with pytest.raises(DecodeError):
        scheduler.decode(1, b"*001VALL garbage#")
    assert scheduler.decode(1, b"*001VALL   +0.512      -0.033      +1.204      +0.998#") == [
        0.512, -0.033, 1.204, 0.998,
    ]


def test_command_log_is_bounded(make_session, transport):
    scheduler, session, _ = make_session(transport)
    rounds = transport.COMMAND_LOG_SIZE // 3 + 10

    for _ in range(rounds):
        scheduler.run_tick(session)

    assert transport.write_count == rounds * 3
    assert len(transport.commands) == transport.COMMAND_LOG_SIZE
    assert transport.commands[-1] == encode_poll_command(3)
