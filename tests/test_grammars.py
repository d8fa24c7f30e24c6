"""Field extraction from matched lines."""

from datetime import datetime, timedelta, timezone

import pytest

from gc_digest.classifier import Classifier
from gc_digest.events import CollectorFamily, LogEventType
from gc_digest.grammars import Grammar, GrammarRegistry
from gc_digest.patterns import TimestampResolver
from gc_digest.triggers import GcTrigger
from gc_digest.units import PARALLELISM_MAX

classifier = Classifier()


def parse(line, resolver=None, families=()):
    classification = classifier.classify(line, families)
    assert classification is not None, f"No grammar for: {line}"
    return classification.grammar.extract(classification.match, resolver or TimestampResolver())


def test_unified_remark_end_stamp():
    event = parse("[7.944s][info][gc] GC(6432) Pause Remark 8M->8M(10M) 1.767ms")
    assert event.kind is LogEventType.UNIFIED_REMARK
    assert event.timestamp == 7944 - 1
    assert event.duration == 1767
    assert event.gc_id == 6432
    assert event.endstamp
    assert event.combined.occupancy_init.kilobytes == 8 * 1024
    assert event.combined.occupancy_end.kilobytes == 8 * 1024
    assert event.combined.space.kilobytes == 10 * 1024
    assert event.blocking


def test_uptime_millis_decorator_matches_uptime_seconds():
    seconds = parse("[7.944s][info][gc] GC(6432) Pause Remark 8M->8M(10M) 1.767ms")
    millis = parse("[7944ms][info][gc] GC(6432) Pause Remark 8M->8M(10M) 1.767ms")
    assert millis.timestamp == seconds.timestamp == 7943


def test_unified_remark_with_cpu_times():
    event = parse(
        "[16.053s][info][gc            ] GC(969) Pause Remark 29M->29M(46M) 2.328ms "
        "User=0.01s Sys=0.00s Real=0.00s"
    )
    assert event.timestamp == 16051
    assert event.duration == 2328
    assert event.times.user == 1
    assert event.times.real == 0
    assert event.parallelism == PARALLELISM_MAX


@pytest.mark.parametrize(
    "line",
    [
        "[0.213s][info][gc,phases   ] GC(2) O: Pause Mark End 0.005ms",
        "[0.213s][info][gc,phases   ] GC(2) O: Pause Mark End 0.005ms   ",
        "[2021-03-09T14:45:02.441-0300][0.213s][info][gc,phases   ] "
        "GC(2) O: Pause Mark End 0.005ms",
    ],
)
def test_z_mark_end_old(line):
    event = parse(line)
    assert event.kind is LogEventType.Z_MARK_END_OLD
    assert event.timestamp == 213
    assert event.duration == 5
    assert event.family is CollectorFamily.Z


def test_start_tagged_line_keeps_its_timestamp():
    event = parse(
        "[0.083s][info][gc,start     ] GC(3) Pause Full (Ergonomics) "
        "PSYoungGen: 502K->496K(1536K) ParOldGen: 472K->432K(2048K) "
        "Metaspace: 701K->701K(1056768K) 0M->0M(3M) 4.336ms User=0.01s Sys=0.00s Real=0.01s"
    )
    assert event.kind is LogEventType.UNIFIED_PARALLEL_COMPACTING_OLD
    assert event.timestamp == 83
    assert not event.endstamp
    assert event.duration == 4336
    assert event.trigger.cause is GcTrigger.ERGONOMICS
    assert event.young.occupancy_init.kilobytes == 502
    assert event.young.space.kilobytes == 1536
    assert event.old.occupancy_end.kilobytes == 432
    assert event.perm.space.kilobytes == 1056768
    assert event.combined.space.kilobytes == 3 * 1024
    assert event.parallelism == 100


def test_capacity_before_transition():
    event = parse(
        "[0.058s][info][gc,start    ] GC(3) Pause Full (Ergonomics) "
        "PSYoungGen: 499K(1536K)->497K(1536K) ParOldGen: 400K(512K)->366K(2048K) "
        "Metaspace: 666K(832K)->666K(832K) 0M->0M(3M) 2.095ms User=0.00s Sys=0.00s Real=0.00s"
    )
    assert event.old.occupancy_init.kilobytes == 400
    assert event.old.space.kilobytes == 2048
    assert event.perm.occupancy_end.kilobytes == 666


def test_datestamp_only_line_without_jvm_start():
    line = (
        "[2022-10-25T08:41:22.776-0400] GC(0) Pause Young (Allocation Failure) "
        "ParNew: 935K->128K(1152K) CMS: 0K->486K(960K) Metaspace: 244K(4480K)->244K(4480K) "
        "0M->0M(2M) 1.944ms User=0.00s Sys=0.00s Real=0.00s"
    )
    event = parse(line)
    assert event.kind is LogEventType.UNIFIED_PAR_NEW
    # First datestamp becomes the reference; the end-stamp correction clamps at zero
    assert event.timestamp == 0


def test_datestamp_only_line_with_jvm_start():
    line = (
        "[2022-10-25T08:41:22.776-0400] GC(0) Pause Young (Allocation Failure) "
        "ParNew: 935K->128K(1152K) CMS: 0K->486K(960K) Metaspace: 244K(4480K)->244K(4480K) "
        "0M->0M(2M) 1.944ms User=0.00s Sys=0.00s Real=0.00s"
    )
    start = datetime(2022, 10, 25, 8, 41, 20, tzinfo=timezone(timedelta(hours=-4)))
    event = parse(line, TimestampResolver(start))
    assert event.timestamp == 2776 - 1


def test_legacy_parallel_scavenge_derives_old():
    event = parse(
        "10.392: [GC (Allocation Failure) [PSYoungGen: 6144K->512K(6656K)] "
        "6144K->1024K(19968K), 0.0040140 secs] [Times: user=0.01 sys=0.00, real=0.00 secs]"
    )
    assert event.kind is LogEventType.PARALLEL_SCAVENGE
    assert event.timestamp == 10392
    assert not event.endstamp
    assert event.duration == 4014
    assert event.trigger.cause is GcTrigger.ALLOCATION_FAILURE
    assert event.old.occupancy_init.kilobytes == 0
    assert event.old.occupancy_end.kilobytes == 512
    assert event.old.space.kilobytes == 19968 - 6656
    assert event.parallelism == PARALLELISM_MAX


def test_legacy_g1_young_pause():
    event = parse(
        "2.847: [GC pause (G1 Evacuation Pause) (young) 3280.0K->2768.0K(8192.0K), "
        "0.0414530 secs] [Times: user=0.15 sys=0.01, real=0.04 secs]"
    )
    assert event.kind is LogEventType.G1_YOUNG_PAUSE
    assert event.timestamp == 2847
    assert event.duration == 41453
    assert event.combined.occupancy_init.kilobytes == 3280
    assert event.parallelism == 400


def test_cms_concurrent_mode_failure_trigger():
    event = parse(
        "44.684: [Full GC (Allocation Failure) 44.684: [CMS (concurrent mode failure): "
        "1218548K->413373K(1465840K), 1.3656970 secs] 1581637K->413373K(2044736K), "
        "[Metaspace: 74837K->74837K(1118208K)], 1.3661220 secs] "
        "[Times: user=1.36 sys=0.00, real=1.37 secs]"
    )
    assert event.kind is LogEventType.CMS_SERIAL_OLD
    assert event.trigger.cause is GcTrigger.CMS_CONCURRENT_MODE_FAILURE
    assert event.young.occupancy_init.kilobytes == 1581637 - 1218548


def test_safepoint_duration_in_micros():
    event = parse(
        '[0.192s][info][safepoint   ] Safepoint "GenCollectForAllocation", '
        "Time since last: 16245012 ns, Reaching safepoint: 2403 ns, At safepoint: 3207186 ns, "
        "Total: 3209589 ns"
    )
    assert event.kind is LogEventType.UNIFIED_SAFEPOINT
    assert event.duration == 3210
    assert event.timestamp == 192 - 3


def test_z_collection_summary():
    event = parse(
        "[3.596s][info][gc          ] GC(3) Garbage Collection (Warmup) 1284M(16%)->270M(3%)"
    )
    assert event.kind is LogEventType.Z_GARBAGE_COLLECTION
    assert event.trigger.cause is GcTrigger.WARMUP
    assert event.combined.occupancy_init.kilobytes == 1284 * 1024
    assert event.combined.occupancy_end.kilobytes == 270 * 1024
    assert not event.blocking


def test_z_metaspace():
    event = parse(
        "[3.596s][info][gc,metaspace] GC(3) Metaspace: 20M used, 20M committed, 1088M reserved"
    )
    assert event.kind is LogEventType.Z_METASPACE
    assert event.perm.occupancy_end.kilobytes == 20 * 1024
    assert event.perm.space.kilobytes == 20 * 1024


def test_command_line_header_sets_family():
    event = parse("CommandLine flags: -XX:InitialHeapSize=2147483648 -XX:+UseParallelGC")
    assert event.kind is LogEventType.HEADER_COMMAND_LINE_FLAGS
    assert event.family is CollectorFamily.PARALLEL
    assert event.attributes["options"].endswith("-XX:+UseParallelGC")


def test_memory_header_in_bytes():
    event = parse("Memory: 4k page, physical 16777216k(8388608k free), swap 0k(0k free)")
    assert event.kind is LogEventType.HEADER_MEMORY
    assert event.attributes["physical_memory"] == str(16777216 * 1024)
    assert event.attributes["swap"] == "0"


def test_malformed_size_raises_value_error():
    registry = GrammarRegistry(
        [Grammar(LogEventType.UNIFIED_CONCURRENT, r"^size=(?P<combined_init>\S+)$")]
    )
    line = "size=12Q"
    classification = Classifier(registry).classify(line)
    with pytest.raises(ValueError):
        classification.grammar.extract(classification.match, TimestampResolver())


def test_registry_rejects_duplicate_kind():
    registry = GrammarRegistry([Grammar(LogEventType.BLANK_LINE, r"^$")])
    with pytest.raises(ValueError):
        registry.register(Grammar(LogEventType.BLANK_LINE, r"^\s*$"))
