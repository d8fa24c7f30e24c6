"""End-to-end runs over small logs."""

from datetime import datetime, timezone

import pytest

from gc_digest.analysis import Analysis, run_analysis
from gc_digest.errors import StoreNotFreshError
from gc_digest.events import CollectorFamily, LogEventType
from gc_digest.pipeline import Pipeline, analyze_lines
from gc_digest.settings import AnalysisSettings
from gc_digest.store import JvmStore
from gc_digest.triggers import GcTrigger

UNIFIED_G1_LOG = [
    "[0.004s][info][gc] Using G1",
    "[0.005s][info][gc,init] Version: 17.0.1+12-LTS (release)",
    "[0.005s][info][gc,init] Memory: 31907M",
    "[0.013s][info][gc,start    ] GC(0) Pause Young (Normal) (G1 Evacuation Pause)",
    "[0.014s][info][gc,task     ] GC(0) Using 2 workers of 2 for evacuation",
    "[0.020s][info][gc,heap     ] GC(0) Eden regions: 1->0(1)",
    "[0.020s][info][gc,metaspace] GC(0) Metaspace: 1150K(1280K)->1150K(1280K) "
    "NonClass: 1027K(1088K)->1027K(1088K) Class: 123K(192K)->123K(192K)",
    "[0.020s][info][gc          ] GC(0) Pause Young (Normal) (G1 Evacuation Pause) "
    "1M->1M(8M) 6.123ms",
    "[0.020s][info][gc,cpu      ] GC(0) User=0.01s Sys=0.00s Real=0.04s",
    '[0.021s][info][safepoint   ] Safepoint "G1CollectForAllocation", '
    "Time since last: 16245012 ns, Reaching safepoint: 2403 ns, At safepoint: 7207186 ns, "
    "Total: 7209589 ns",
    "[0.075s][info][gc] GC(1) Pause Full (System.gc()) 8M->7M(24M) 16.870ms",
    "[0.080s][info][gc] something the catalog does not know",
]


def test_unified_g1_run():
    store = analyze_lines(UNIFIED_G1_LOG)

    assert store.collector_families == [CollectorFamily.G1]
    assert store.version == "17.0.1+12-LTS (release)"
    assert store.memory == "31907M"

    kinds = [event.kind for event in store.blocking_events()]
    assert kinds == [LogEventType.UNIFIED_G1_YOUNG_PAUSE, LogEventType.UNIFIED_G1_FULL_GC]

    young = store.first_gc_event
    assert young.timestamp == 13
    assert young.duration == 6123
    assert young.perm.space.kilobytes == 1280
    assert young.parallelism == 25

    full = store.last_gc_event
    assert full.timestamp == 75 - 16
    assert full.trigger.cause is GcTrigger.SYSTEM_GC

    assert store.max_gc_pause == 16
    assert store.total_gc_pause == 22
    assert store.safepoints.count == 1
    assert store.safepoints.total == 7
    # The full collection logged no CPU times
    assert store.parallel_count == 1
    assert store.inverted_parallelism_count == 1
    assert store.worst_inverted_parallelism_event is young
    assert store.unidentified_log_lines == [
        "[0.080s][info][gc] something the catalog does not know"
    ]


def test_store_must_be_fresh():
    store = JvmStore()
    Pipeline(store)
    with pytest.raises(StoreNotFreshError):
        Pipeline(store)
    store.reset()
    Pipeline(store)


def test_z_cycle_backfills_trigger_and_metaspace():
    store = analyze_lines(
        [
            "[0.002s][info][gc,init] Initializing The Z Garbage Collector",
            "[0.100s][info][gc,start    ] GC(0) Garbage Collection (Warmup)",
            "[0.101s][info][gc,phases   ] GC(0) Pause Mark Start 0.009ms",
            "[0.110s][info][gc,phases   ] GC(0) Pause Mark End 0.005ms",
            "[0.130s][info][gc,phases   ] GC(0) Pause Relocate Start 0.006ms",
            "[0.135s][info][gc,metaspace] GC(0) Metaspace: 20M used, 20M committed, "
            "1088M reserved",
            "[0.140s][info][gc          ] GC(0) Garbage Collection (Warmup) "
            "1284M(16%)->270M(3%)",
        ]
    )
    pauses = store.blocking_events()
    assert [event.kind for event in pauses] == [
        LogEventType.Z_MARK_START,
        LogEventType.Z_MARK_END,
        LogEventType.Z_RELOCATE_START,
    ]
    assert [event.timestamp for event in pauses] == [101, 110, 130]
    assert all(event.trigger.cause is GcTrigger.WARMUP for event in pauses)
    assert all(event.perm.space.kilobytes == 20 * 1024 for event in pauses)
    assert store.max_perm_space == 20 * 1024
    assert store.max_heap_occupancy_non_blocking == 1284 * 1024
    assert store.collector_families == [CollectorFamily.Z]


def test_legacy_run_with_headers_and_settings():
    settings = AnalysisSettings(swap=2048, low_parallelism_threshold=50)
    store = analyze_lines(
        [
            "OpenJDK 64-Bit Server VM (25.292-b10) for linux-amd64 JRE (1.8.0_292-b10), "
            'built on Apr 20 2021 by "mockbuild" with gcc 4.8.5',
            "Memory: 4k page, physical 16777216k(8388608k free), swap 0k(0k free)",
            "CommandLine flags: -XX:InitialHeapSize=268435456 -XX:MaxHeapSize=4294967296 "
            "-XX:+UseParallelGC",
            "10.392: [GC (Allocation Failure) [PSYoungGen: 6144K->512K(6656K)] "
            "6144K->1024K(19968K), 0.0040140 secs] [Times: user=0.01 sys=0.00, real=0.00 secs]",
            "2.225: Total time for which application threads were stopped: 0.0012960 seconds, "
            "Stopping threads took: 0.0000240 seconds",
            "Desired survivor size 2228224 bytes, new threshold 1 (max 15)",
            "",
        ],
        settings,
    )
    assert store.version.startswith("OpenJDK 64-Bit Server VM")
    assert store.options.endswith("-XX:+UseParallelGC")
    assert store.physical_memory == 16777216 * 1024
    # Configured swap wins over the header
    assert store.swap == 2048
    assert store.collector_families == [CollectorFamily.PARALLEL]
    assert store.blocking_event_count == 1
    assert store.stopped_time.count == 1
    assert LogEventType.TENURING_DISTRIBUTION in store.event_types
    assert store.parallel_count == 1
    assert store.inverted_parallelism_count == 0
    assert store.unidentified_log_lines == []


def test_datestamps_measured_from_configured_start():
    start = datetime(2021, 3, 9, 17, 45, 0, tzinfo=timezone.utc)
    settings = AnalysisSettings(jvm_start_time=start)
    store = analyze_lines(
        ["[2021-03-09T14:45:02.441-0300][info][gc,phases   ] GC(2) O: Pause Mark End 0.005ms"],
        settings,
    )
    assert store.first_gc_event.timestamp == 2441


def test_truncated_log_lines_become_unidentified():
    lines = [
        "[0.013s][info][gc,start    ] GC(0) Pause Young (Normal) (G1 Evacuation Pause)",
        "[0.020s][info][gc,heap     ] GC(0) Eden regions: 1->0(1)",
    ]
    store = analyze_lines(lines)
    assert store.blocking_event_count == 0
    assert store.unidentified_log_lines == lines


def test_malformed_value_is_contained():
    bad_date = "[2021-13-09T14:45:02.441-0300][info][gc,phases   ] GC(2) O: Pause Mark End 0.005ms"
    store = analyze_lines(
        ["[7.944s][info][gc] GC(6432) Pause Remark 8M->8M(10M) 1.767ms", bad_date]
    )
    assert store.blocking_event_count == 1
    assert store.unidentified_log_lines == [bad_date]


def test_pause_keeps_cpu_times_across_interleaved_concurrent_line():
    store = analyze_lines(
        [
            "[0.004s][info][gc] Using G1",
            "[0.100s][info][gc,start    ] GC(7) Pause Young (Normal) (G1 Evacuation Pause)",
            "[0.101s][info][gc          ] GC(7) Pause Young (Normal) (G1 Evacuation Pause) "
            "24M->4M(256M) 1.000ms",
            "[0.101s][info][gc,marking  ] GC(6) Concurrent Mark From Roots 5.200ms",
            "[0.102s][info][gc,cpu      ] GC(7) User=0.01s Sys=0.00s Real=0.01s",
        ]
    )
    young = store.first_gc_event
    assert young.kind is LogEventType.UNIFIED_G1_YOUNG_PAUSE
    assert young.parallelism == 100
    assert store.parallel_count == 1
    assert store.unidentified_log_lines == []


def test_plain_full_gc_does_not_imply_g1():
    store = analyze_lines(
        [
            "1.000: [GC (Allocation Failure)  6144K->1024K(19968K), 0.0040140 secs]",
            "2.000: [Full GC (Ergonomics)  3280K->2768K(8192K), 0.0414530 secs]",
        ]
    )
    assert [event.kind for event in store.blocking_events()] == [
        LogEventType.VERBOSE_GC_YOUNG,
        LogEventType.VERBOSE_GC_OLD,
    ]
    assert store.collector_families == []
    assert Analysis.G1_SERIAL_GC.value not in run_analysis(store)
