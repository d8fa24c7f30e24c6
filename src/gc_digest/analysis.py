"""Diagnostic rules run over a populated store."""

from __future__ import annotations

import logging
import re
from enum import Enum

from pydantic import BaseModel

from gc_digest.events import CollectorFamily, GCEvent, LogEventType
from gc_digest.settings import AnalysisSettings
from gc_digest.store import JvmStore

logger = logging.getLogger(__name__)


class Analysis(str, Enum):
    """Analysis keys in the order rules are evaluated."""

    FIRST_TIMESTAMP_THRESHOLD_EXCEEDED = "first.timestamp.threshold.exceeded"
    EXPLICIT_GC_UNNECESSARY_CMS_G1 = "explicit.gc.unnecessary.cms.g1"
    EXPLICIT_GC_UNNECESSARY = "explicit.gc.unnecessary"
    EXPLICIT_GC_SERIAL = "explicit.gc.serial"
    EXPLICIT_GC_DISABLED = "explicit.gc.disabled"
    APPLICATION_STOPPED_TIME_MISSING = "application.stopped.time.missing"
    GC_STOPPED_RATIO = "gc.stopped.ratio"
    THREAD_STACK_SIZE_NOT_SET = "thread.stack.size.not.set"
    THREAD_STACK_SIZE_LARGE = "thread.stack.size.large"
    MIN_HEAP_NOT_EQUAL_MAX_HEAP = "min.heap.not.equal.max.heap"
    PERM_METASPACE_NOT_SET = "perm.metaspace.not.set"
    MIN_PERM_NOT_EQUAL_MAX_PERM = "min.perm.not.equal.max.perm"
    MIN_METASPACE_NOT_EQUAL_MAX_METASPACE = "min.metaspace.not.equal.max.metaspace"
    THROUGHPUT_SERIAL_GC = "throughput.serial.gc"
    CMS_SERIAL_GC = "cms.serial.gc"
    G1_SERIAL_GC = "g1.serial.gc"
    PARALLELISM_INVERTED = "parallelism.inverted"
    SWAP_DISABLED = "info.swap.disabled"


# ============================================================
# JVM OPTIONS
# ============================================================


class JvmOptions(BaseModel):
    """Sizing flags read from the JVM command line, in bytes unless noted."""

    min_heap_bytes: int | None = None
    max_heap_bytes: int | None = None
    perm_size_bytes: int | None = None
    max_perm_size_bytes: int | None = None
    metaspace_size_bytes: int | None = None
    max_metaspace_size_bytes: int | None = None
    thread_stack_size_kb: int | None = None
    disable_explicit_gc: bool = False
    explicit_gc_invokes_concurrent: bool = False


def parse_jvm_size_to_bytes(value: str, unit: str | None) -> int:
    """Convert JVM size notation (``512m``, ``2G``, ``1024``) to bytes."""
    num = int(value)
    if unit is None:
        return num

    unit_lower = unit.lower()
    if unit_lower == "k":
        return num * 1024
    elif unit_lower == "m":
        return num * 1024 * 1024
    elif unit_lower == "g":
        return num * 1024 * 1024 * 1024
    return num


_SIZE_FLAG = r"(\d+)([kmgKMG])?\b"

_BYTE_PATTERNS: dict[str, list[re.Pattern[str]]] = {
    "min_heap_bytes": [
        re.compile(r"-Xms" + _SIZE_FLAG),
        re.compile(r"-XX:InitialHeapSize=" + _SIZE_FLAG),
    ],
    "max_heap_bytes": [
        re.compile(r"-Xmx" + _SIZE_FLAG),
        re.compile(r"-XX:MaxHeapSize=" + _SIZE_FLAG),
    ],
    "perm_size_bytes": [re.compile(r"-XX:PermSize=" + _SIZE_FLAG)],
    "max_perm_size_bytes": [re.compile(r"-XX:MaxPermSize=" + _SIZE_FLAG)],
    "metaspace_size_bytes": [re.compile(r"-XX:MetaspaceSize=" + _SIZE_FLAG)],
    "max_metaspace_size_bytes": [re.compile(r"-XX:MaxMetaspaceSize=" + _SIZE_FLAG)],
}

_XSS_PATTERN = re.compile(r"-Xss" + _SIZE_FLAG)
_THREAD_STACK_SIZE_PATTERN = re.compile(r"-XX:ThreadStackSize=(\d+)\b")


def parse_jvm_options(options: str) -> JvmOptions:
    """Extract sizing flags; the last occurrence of a flag wins, as on the JVM."""
    values: dict[str, int] = {}
    for field, patterns in _BYTE_PATTERNS.items():
        for pattern in patterns:
            for match in pattern.finditer(options):
                values[field] = parse_jvm_size_to_bytes(match.group(1), match.group(2))

    thread_stack_size_kb = None
    if xss_matches := list(_XSS_PATTERN.finditer(options)):
        last = xss_matches[-1]
        thread_stack_size_kb = parse_jvm_size_to_bytes(last.group(1), last.group(2)) // 1024
    if stack_matches := list(_THREAD_STACK_SIZE_PATTERN.finditer(options)):
        # ThreadStackSize is already expressed in kilobytes
        thread_stack_size_kb = int(stack_matches[-1].group(1))

    return JvmOptions(
        **values,
        thread_stack_size_kb=thread_stack_size_kb,
        disable_explicit_gc="-XX:+DisableExplicitGC" in options,
        explicit_gc_invokes_concurrent="-XX:+ExplicitGCInvokesConcurrent" in options,
    )


# ============================================================
# RULES
# ============================================================

_SERIAL_COLLECTIONS_BY_FAMILY: dict[CollectorFamily, tuple[LogEventType, Analysis]] = {
    CollectorFamily.PARALLEL: (LogEventType.PARALLEL_SERIAL_OLD, Analysis.THROUGHPUT_SERIAL_GC),
    CollectorFamily.CMS: (LogEventType.CMS_SERIAL_OLD, Analysis.CMS_SERIAL_GC),
    CollectorFamily.G1: (LogEventType.G1_FULL_GC_SERIAL, Analysis.G1_SERIAL_GC),
}

_EXPLICIT_SERIAL_KINDS = frozenset(
    {
        LogEventType.SERIAL_OLD,
        LogEventType.PARALLEL_SERIAL_OLD,
        LogEventType.CMS_SERIAL_OLD,
        LogEventType.G1_FULL_GC_SERIAL,
        LogEventType.UNIFIED_SERIAL_OLD,
    }
)


def _is_explicit(event: GCEvent) -> bool:
    return event.trigger is not None and event.trigger.is_explicit


def _check_first_timestamp(store: JvmStore, settings: AnalysisSettings) -> list[Analysis]:
    first = store.first_gc_event
    if first is not None and first.timestamp > settings.thresholds.first_timestamp_threshold_ms:
        return [Analysis.FIRST_TIMESTAMP_THRESHOLD_EXCEEDED]
    return []


def _check_explicit_gc(store: JvmStore, options: JvmOptions | None) -> list[Analysis]:
    if options is not None and options.disable_explicit_gc:
        return [Analysis.EXPLICIT_GC_DISABLED]

    explicit = [event for event in store.blocking_events() if _is_explicit(event)]
    if not explicit:
        return []

    found: list[Analysis] = []
    families = set(store.collector_families)
    concurrent = options is not None and options.explicit_gc_invokes_concurrent
    if families & {CollectorFamily.CMS, CollectorFamily.G1} and not concurrent:
        found.append(Analysis.EXPLICIT_GC_UNNECESSARY_CMS_G1)
    else:
        found.append(Analysis.EXPLICIT_GC_UNNECESSARY)
    if any(event.kind in _EXPLICIT_SERIAL_KINDS for event in explicit):
        found.append(Analysis.EXPLICIT_GC_SERIAL)
    return found


def _check_stopped_time(store: JvmStore, settings: AnalysisSettings) -> list[Analysis]:
    if store.blocking_event_count == 0:
        return []
    stopped = store.stopped_time
    if stopped.count == 0 and store.safepoints.count == 0:
        return [Analysis.APPLICATION_STOPPED_TIME_MISSING]
    if stopped.total > 0:
        ratio = store.total_gc_pause * 100 // stopped.total
        if ratio < settings.thresholds.gc_stopped_ratio_percentage:
            return [Analysis.GC_STOPPED_RATIO]
    return []


def _check_options(options: JvmOptions, settings: AnalysisSettings) -> list[Analysis]:
    found: list[Analysis] = []

    if options.thread_stack_size_kb is None:
        found.append(Analysis.THREAD_STACK_SIZE_NOT_SET)
    elif options.thread_stack_size_kb > settings.thresholds.thread_stack_size_large_kb:
        found.append(Analysis.THREAD_STACK_SIZE_LARGE)

    if (
        options.min_heap_bytes is not None
        and options.max_heap_bytes is not None
        and options.min_heap_bytes != options.max_heap_bytes
    ):
        found.append(Analysis.MIN_HEAP_NOT_EQUAL_MAX_HEAP)

    if options.max_perm_size_bytes is None and options.max_metaspace_size_bytes is None:
        found.append(Analysis.PERM_METASPACE_NOT_SET)

    if (
        options.perm_size_bytes is not None
        and options.max_perm_size_bytes is not None
        and options.perm_size_bytes != options.max_perm_size_bytes
    ):
        found.append(Analysis.MIN_PERM_NOT_EQUAL_MAX_PERM)

    if (
        options.metaspace_size_bytes is not None
        and options.max_metaspace_size_bytes is not None
        and options.metaspace_size_bytes != options.max_metaspace_size_bytes
    ):
        found.append(Analysis.MIN_METASPACE_NOT_EQUAL_MAX_METASPACE)

    return found


def _check_serial_collections(store: JvmStore) -> list[Analysis]:
    """Serial old collections not caused by System.gc() under a parallel/concurrent collector."""
    found: list[Analysis] = []
    families = store.collector_families
    for family, (kind, key) in _SERIAL_COLLECTIONS_BY_FAMILY.items():
        if family not in families:
            continue
        if any(not _is_explicit(event) for event in store.blocking_events(kind)):
            found.append(key)
    return found


def run_analysis(store: JvmStore, settings: AnalysisSettings | None = None) -> list[str]:
    """Evaluate every rule and record the resulting keys on the store."""
    settings = settings if settings is not None else AnalysisSettings()
    options = parse_jvm_options(store.options) if store.options else None

    found = _check_first_timestamp(store, settings)
    found += _check_explicit_gc(store, options)
    found += _check_stopped_time(store, settings)
    if options is not None:
        found += _check_options(options, settings)
    found += _check_serial_collections(store)
    if store.inverted_parallelism_count > 0:
        found.append(Analysis.PARALLELISM_INVERTED)
    if store.swap == 0:
        found.append(Analysis.SWAP_DISABLED)

    for key in found:
        store.add_analysis(key.value)
    logger.debug("Analysis keys: %s", ", ".join(key.value for key in found) or "none")
    return store.analysis
