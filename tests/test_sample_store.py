"""Tests for the sample store."""

import math
import threading

import numpy as np
import pytest

from probe_daq.core.models import LiveCell, ProbeStatus
from probe_daq.data_acquisition.sample_store import SampleStore

KEY = ("OD", 1)


@pytest.fixture
def store():
    store = SampleStore()
    store.prepare_live(["OD"])
    store.prepare_bounded([KEY, ("OD", 2)], target=5)
    return store


def test_dedup_and_cap(store):
    accepted = [v for v in [1, 1, 2, 2, 3, 4, 5, 5, 6] if store.try_append(KEY, float(v))]
    assert accepted == [1, 2, 3, 4, 5]
    assert store.samples(KEY) == [1.0, 2.0, 3.0, 4.0, 5.0]


def test_dedup_only_compares_last_value(store):
    for v in [1.0, 2.0, 1.0]:
        assert store.try_append(KEY, v)
    assert store.samples(KEY) == [1.0, 2.0, 1.0]


def test_invalid_values_rejected(store):
    assert not store.try_append(KEY, math.nan)
    assert not store.try_append(KEY, None)
    assert store.samples(KEY) == []


def test_samples_are_copies(store):
    store.try_append(KEY, 0.5)
    samples = store.samples(KEY)
    samples.append(99.0)
    assert store.samples(KEY) == [0.5]


def test_completion(store):
    for v in range(5):
        store.try_append(KEY, float(v))
    assert not store.is_complete()
    assert store.is_complete([KEY])
    for v in range(5):
        store.try_append(("OD", 2), float(v))
    assert store.is_complete()
    assert store.counts() == {KEY: 5, ("OD", 2): 5}


def test_not_complete_without_target():
    store = SampleStore()
    assert not store.is_complete([])


def test_prepare_bounded_rejects_zero_target():
    with pytest.raises(ValueError):
        SampleStore().prepare_bounded([KEY], 0)


def test_live_value(store):
    assert store.live_value("OD").text == "Ready"
    assert store.live_value("UNKNOWN").status is None

    cell = LiveCell(parameter="OD", value=0.5, values=(0.5,), status=ProbeStatus.IN_RANGE,
                    in_range=True, text="0.500", tick=3)
    store.update_live("OD", cell)
    assert store.live_value("OD") is cell
    assert store.live_snapshot() == {"OD": cell}


def test_reset_parameter(store):
    store.try_append(KEY, 0.5)
    store.try_append(("OD", 2), 0.6)
    store.update_live("OD", LiveCell(parameter="OD", value=0.5, status=ProbeStatus.OVER))

    store.reset("OD")

    assert store.samples(KEY) == []
    assert store.samples(("OD", 2)) == []
    assert store.live_value("OD").status is None
    assert store.live_value("OD").value == 0.0


def test_reset_all(store):
    store.try_append(KEY, 0.5)
    store.reset_all()
    assert store.counts() == {KEY: 0, ("OD", 2): 0}


def test_summary(store):
    for v in [0.5, 0.7, 0.6]:
        store.try_append(KEY, v)
    summary = store.summary(KEY)
    assert summary.count == 3
    assert summary.minimum == 0.5
    assert summary.maximum == 0.7
    assert summary.mean == pytest.approx(0.6)
    assert summary.spread == pytest.approx(0.2)
    assert isinstance(store.samples_array(KEY), np.ndarray)


def test_empty_summary(store):
    summary = store.summary(KEY)
    assert summary.count == 0
    assert math.isnan(summary.mean)


def test_concurrent_appends_respect_cap():
    store = SampleStore()
    store.prepare_bounded([KEY], target=50)

    def writer(offset):
        for i in range(100):
            store.try_append(KEY, offset + i * 0.001)

    threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(store.samples(KEY)) == 50


def test_clear_samples(store):
    store.try_append(KEY, 0.5)
    store.clear_samples()
    assert store.samples(KEY) == []
    assert store.counts() == {}
    assert store.target_count is None
    assert not store.is_complete([KEY])
