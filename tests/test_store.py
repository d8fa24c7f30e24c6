"""Aggregation store ordering and queries."""

import threading

import pytest

from gc_digest.events import CollectorFamily, CpuTimes, GCEvent, LogEventType, MemoryRegion
from gc_digest.store import (
    SWAP_NOT_REPORTED,
    JvmStore,
    heap_after_gc,
    heap_occupancy,
    heap_space,
)
from gc_digest.units import Memory


def remark(timestamp, duration=1767, combined=None):
    return GCEvent(
        kind=LogEventType.UNIFIED_REMARK,
        log_entry="remark",
        timestamp=timestamp,
        duration=duration,
        combined=combined,
    )


def region(init, end, space):
    return MemoryRegion(
        occupancy_init=Memory.kb(init), occupancy_end=Memory.kb(end), space=Memory.kb(space)
    )


def test_blocking_events_sorted_by_timestamp():
    store = JvmStore()
    for timestamp in (50, 10, 30, 10, 0):
        store.insert(remark(timestamp))
    timestamps = [event.timestamp for event in store.blocking_events()]
    assert timestamps == sorted(timestamps)
    assert store.first_gc_event.timestamp == 0
    assert store.last_gc_event.timestamp == 50


def test_equal_timestamps_keep_arrival_order():
    store = JvmStore()
    first = remark(10, duration=1)
    second = remark(10, duration=2)
    store.insert(first)
    store.insert(second)
    assert store.blocking_events() == [first, second]


def test_total_pause_truncates_after_summing():
    store = JvmStore()
    store.insert(remark(1))
    store.insert(remark(2))
    assert store.total_gc_pause == 3
    assert store.max_gc_pause == 1


def test_empty_store_queries():
    store = JvmStore()
    assert store.first_gc_event is None
    assert store.last_gc_event is None
    assert store.max_gc_pause == 0
    assert store.total_gc_pause == 0
    assert store.max_heap_occupancy == 0
    assert store.max_perm_space == 0
    assert store.safepoints.count == 0
    assert store.stopped_time.max == 0
    assert store.stopped_time.first is None
    assert store.swap == SWAP_NOT_REPORTED


def test_non_reportable_events_are_ignored():
    store = JvmStore()
    store.insert(GCEvent(kind=LogEventType.BLANK_LINE, log_entry=""))
    assert store.event_types == []
    assert store.is_fresh


def test_kinds_and_families_recorded_in_insertion_order():
    store = JvmStore()
    store.insert(
        GCEvent(kind=LogEventType.USING_G1, log_entry="x", family=CollectorFamily.G1)
    )
    store.insert(GCEvent(kind=LogEventType.TENURING_DISTRIBUTION, log_entry="y"))
    store.insert(remark(5))
    store.insert(remark(6))
    assert store.event_types == [LogEventType.TENURING_DISTRIBUTION, LogEventType.UNIFIED_REMARK]
    store.add_collector_family(CollectorFamily.G1)
    store.add_collector_family(CollectorFamily.UNKNOWN)
    assert store.collector_families == [CollectorFamily.G1]


def test_heap_prefers_separate_regions():
    event = GCEvent(
        kind=LogEventType.PARALLEL_SCAVENGE,
        log_entry="x",
        young=region(100, 10, 200),
        old=region(50, 60, 300),
        combined=region(150, 70, 500),
    )
    assert heap_occupancy(event) == 150
    store = JvmStore()
    store.insert(event)
    assert store.max_heap_space == 500
    assert store.max_heap_after_gc == 70
    assert store.max_young_space == 200
    assert store.max_old_space == 300


def test_heap_after_gc_takes_larger_of_generations_and_combined():
    event = GCEvent(
        kind=LogEventType.PARALLEL_SCAVENGE,
        log_entry="x",
        young=region(100, 10, 200),
        old=region(50, 60, 300),
        combined=region(150, 90, 500),
    )
    assert heap_after_gc(event) == 90
    assert heap_occupancy(event) == 150


def test_single_generation_falls_back_to_combined():
    event = GCEvent(
        kind=LogEventType.PAR_NEW,
        log_entry="x",
        young=region(100, 10, 200),
        combined=region(400, 310, 900),
    )
    assert heap_occupancy(event) == 400
    assert heap_space(event) == 900
    assert heap_after_gc(event) == 310


def test_non_blocking_maxima():
    store = JvmStore()
    store.insert(
        GCEvent(
            kind=LogEventType.Z_GARBAGE_COLLECTION,
            log_entry="z",
            combined=MemoryRegion(occupancy_init=Memory.kb(4096), occupancy_end=Memory.kb(1024)),
        )
    )
    assert store.blocking_event_count == 0
    assert store.max_heap_occupancy_non_blocking == 4096
    store.set_max_heap_occupancy_non_blocking(10)
    assert store.max_heap_occupancy_non_blocking == 4096


def test_stop_events_go_to_their_own_lists():
    store = JvmStore()
    for duration in (1500, 2500):
        store.insert(
            GCEvent(kind=LogEventType.UNIFIED_SAFEPOINT, log_entry="s", duration=duration)
        )
    store.insert(
        GCEvent(kind=LogEventType.APPLICATION_STOPPED_TIME, log_entry="t", duration=1296)
    )
    assert store.blocking_event_count == 0
    assert store.safepoints.count == 2
    assert store.safepoints.max == 2
    assert store.safepoints.total == 4
    assert store.stopped_time.total == 1
    assert len(store.stopped_time_events()) == 1


def test_add_analysis_deduplicates():
    store = JvmStore()
    store.add_analysis("gc.stopped.ratio")
    store.add_analysis("explicit.gc.serial")
    store.add_analysis("gc.stopped.ratio")
    assert store.analysis == ["gc.stopped.ratio", "explicit.gc.serial"]


def test_reset_clears_blocking_events_only():
    store = JvmStore()
    store.insert(remark(1))
    store.add_unidentified("junk")
    store.add_analysis("gc.stopped.ratio")
    assert not store.is_fresh
    store.reset()
    assert store.is_fresh
    assert store.blocking_event_count == 0
    assert store.unidentified_log_lines == ["junk"]
    assert store.analysis == ["gc.stopped.ratio"]


@pytest.mark.parametrize("parallelism_real, inverted", [(1, 0), (4, 1)])
def test_record_parallelism(parallelism_real, inverted):
    store = JvmStore()
    event = remark(1).model_copy(update={"times": CpuTimes(user=2, sys=0, real=parallelism_real)})
    store.record_parallelism(event, low_threshold=100)
    assert store.parallel_count == 1
    assert store.inverted_parallelism_count == inverted
    assert (store.worst_inverted_parallelism_event is event) == bool(inverted)


def test_concurrent_inserts_stay_sorted():
    store = JvmStore()

    def worker(offset):
        for timestamp in range(offset, 400, 4):
            store.insert(remark(timestamp))

    threads = [threading.Thread(target=worker, args=(offset,)) for offset in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    timestamps = [event.timestamp for event in store.blocking_events()]
    assert timestamps == list(range(400))
