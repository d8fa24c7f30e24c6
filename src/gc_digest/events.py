"""Event kinds, collector families and the normalized GC event model.

Every grammar produces exactly one :class:`LogEventType`. Behavior that
depends on the kind (blocking, reportable, parallel, unified) is answered by
the free functions below rather than by a class hierarchy, so an event is a
single flat model whose capability fields are simply present or absent.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from gc_digest.triggers import Trigger
from gc_digest.units import (
    CentisValue,
    Memory,
    MicrosValue,
    MillisValue,
    calc_parallelism,
    micros_to_millis,
)

# ============================================================
# ENUMERATIONS
# ============================================================


class CollectorFamily(str, Enum):
    SERIAL = "SERIAL"
    PARALLEL = "PARALLEL"
    CMS = "CMS"
    G1 = "G1"
    SHENANDOAH = "SHENANDOAH"
    Z = "Z"
    UNKNOWN = "UNKNOWN"


class LogEventType(str, Enum):
    """Every log grammar the classifier knows, plus UNKNOWN."""

    # Legacy (JDK8 and earlier) collections
    SERIAL_NEW = "SERIAL_NEW"
    SERIAL_OLD = "SERIAL_OLD"
    PARALLEL_SCAVENGE = "PARALLEL_SCAVENGE"
    PARALLEL_COMPACTING_OLD = "PARALLEL_COMPACTING_OLD"
    PARALLEL_SERIAL_OLD = "PARALLEL_SERIAL_OLD"
    PAR_NEW = "PAR_NEW"
    CMS_SERIAL_OLD = "CMS_SERIAL_OLD"
    CMS_INITIAL_MARK = "CMS_INITIAL_MARK"
    CMS_REMARK = "CMS_REMARK"
    CMS_CONCURRENT = "CMS_CONCURRENT"
    G1_YOUNG_PAUSE = "G1_YOUNG_PAUSE"
    G1_MIXED_PAUSE = "G1_MIXED_PAUSE"
    G1_YOUNG_INITIAL_MARK = "G1_YOUNG_INITIAL_MARK"
    G1_FULL_GC_SERIAL = "G1_FULL_GC_SERIAL"
    G1_REMARK = "G1_REMARK"
    G1_CLEANUP = "G1_CLEANUP"
    G1_CONCURRENT = "G1_CONCURRENT"
    VERBOSE_GC_YOUNG = "VERBOSE_GC_YOUNG"
    VERBOSE_GC_OLD = "VERBOSE_GC_OLD"

    # Legacy safepoint and housekeeping output
    APPLICATION_STOPPED_TIME = "APPLICATION_STOPPED_TIME"
    APPLICATION_CONCURRENT_TIME = "APPLICATION_CONCURRENT_TIME"
    HEADER_VERSION = "HEADER_VERSION"
    HEADER_MEMORY = "HEADER_MEMORY"
    HEADER_COMMAND_LINE_FLAGS = "HEADER_COMMAND_LINE_FLAGS"
    HEAP_AT_GC = "HEAP_AT_GC"
    TENURING_DISTRIBUTION = "TENURING_DISTRIBUTION"
    BLANK_LINE = "BLANK_LINE"

    # Unified (JDK9+) logging
    USING_SERIAL = "USING_SERIAL"
    USING_PARALLEL = "USING_PARALLEL"
    USING_CMS = "USING_CMS"
    USING_G1 = "USING_G1"
    USING_SHENANDOAH = "USING_SHENANDOAH"
    USING_Z = "USING_Z"
    UNIFIED_HEADER = "UNIFIED_HEADER"
    UNIFIED_HEAP_EXIT = "UNIFIED_HEAP_EXIT"
    UNIFIED_BLANK_LINE = "UNIFIED_BLANK_LINE"
    GC_INFO = "GC_INFO"
    UNIFIED_YOUNG = "UNIFIED_YOUNG"
    UNIFIED_OLD = "UNIFIED_OLD"
    UNIFIED_SERIAL_NEW = "UNIFIED_SERIAL_NEW"
    UNIFIED_SERIAL_OLD = "UNIFIED_SERIAL_OLD"
    UNIFIED_PARALLEL_SCAVENGE = "UNIFIED_PARALLEL_SCAVENGE"
    UNIFIED_PARALLEL_COMPACTING_OLD = "UNIFIED_PARALLEL_COMPACTING_OLD"
    UNIFIED_PAR_NEW = "UNIFIED_PAR_NEW"
    UNIFIED_CMS_INITIAL_MARK = "UNIFIED_CMS_INITIAL_MARK"
    UNIFIED_REMARK = "UNIFIED_REMARK"
    UNIFIED_G1_YOUNG_PAUSE = "UNIFIED_G1_YOUNG_PAUSE"
    UNIFIED_G1_YOUNG_PREPARE_MIXED = "UNIFIED_G1_YOUNG_PREPARE_MIXED"
    UNIFIED_G1_MIXED_PAUSE = "UNIFIED_G1_MIXED_PAUSE"
    UNIFIED_G1_YOUNG_INITIAL_MARK = "UNIFIED_G1_YOUNG_INITIAL_MARK"
    UNIFIED_G1_FULL_GC = "UNIFIED_G1_FULL_GC"
    UNIFIED_G1_CLEANUP = "UNIFIED_G1_CLEANUP"
    UNIFIED_CONCURRENT = "UNIFIED_CONCURRENT"
    SHENANDOAH_INIT_MARK = "SHENANDOAH_INIT_MARK"
    SHENANDOAH_FINAL_MARK = "SHENANDOAH_FINAL_MARK"
    SHENANDOAH_INIT_UPDATE = "SHENANDOAH_INIT_UPDATE"
    SHENANDOAH_FINAL_UPDATE = "SHENANDOAH_FINAL_UPDATE"
    SHENANDOAH_DEGENERATED_GC = "SHENANDOAH_DEGENERATED_GC"
    SHENANDOAH_FULL_GC = "SHENANDOAH_FULL_GC"
    SHENANDOAH_TRIGGER = "SHENANDOAH_TRIGGER"
    Z_MARK_START = "Z_MARK_START"
    Z_MARK_END = "Z_MARK_END"
    Z_RELOCATE_START = "Z_RELOCATE_START"
    Z_MARK_START_YOUNG = "Z_MARK_START_YOUNG"
    Z_MARK_END_YOUNG = "Z_MARK_END_YOUNG"
    Z_RELOCATE_START_YOUNG = "Z_RELOCATE_START_YOUNG"
    Z_MARK_START_OLD = "Z_MARK_START_OLD"
    Z_MARK_END_OLD = "Z_MARK_END_OLD"
    Z_RELOCATE_START_OLD = "Z_RELOCATE_START_OLD"
    Z_MARK_START_YOUNG_AND_OLD = "Z_MARK_START_YOUNG_AND_OLD"
    Z_GARBAGE_COLLECTION = "Z_GARBAGE_COLLECTION"
    Z_MAJOR_COLLECTION = "Z_MAJOR_COLLECTION"
    Z_MINOR_COLLECTION = "Z_MINOR_COLLECTION"
    Z_METASPACE = "Z_METASPACE"
    UNIFIED_SAFEPOINT = "UNIFIED_SAFEPOINT"
    UNIFIED_APPLICATION_STOPPED_TIME = "UNIFIED_APPLICATION_STOPPED_TIME"

    UNKNOWN = "UNKNOWN"


class EventCategory(str, Enum):
    """Which store collection (if any) an event kind belongs to."""

    BLOCKING = "BLOCKING"
    SAFEPOINT = "SAFEPOINT"
    STOPPED_TIME = "STOPPED_TIME"
    OTHER = "OTHER"


# ============================================================
# KIND PROPERTIES
# ============================================================

Z_PAUSE_KINDS: frozenset[LogEventType] = frozenset(
    {
        LogEventType.Z_MARK_START,
        LogEventType.Z_MARK_END,
        LogEventType.Z_RELOCATE_START,
        LogEventType.Z_MARK_START_YOUNG,
        LogEventType.Z_MARK_END_YOUNG,
        LogEventType.Z_RELOCATE_START_YOUNG,
        LogEventType.Z_MARK_START_OLD,
        LogEventType.Z_MARK_END_OLD,
        LogEventType.Z_RELOCATE_START_OLD,
        LogEventType.Z_MARK_START_YOUNG_AND_OLD,
    }
)

Z_COLLECTION_KINDS: frozenset[LogEventType] = frozenset(
    {
        LogEventType.Z_GARBAGE_COLLECTION,
        LogEventType.Z_MAJOR_COLLECTION,
        LogEventType.Z_MINOR_COLLECTION,
    }
)

SERIAL_COLLECTION_KINDS: frozenset[LogEventType] = frozenset(
    {
        LogEventType.SERIAL_NEW,
        LogEventType.SERIAL_OLD,
        LogEventType.PARALLEL_SERIAL_OLD,
        LogEventType.CMS_SERIAL_OLD,
        LogEventType.G1_FULL_GC_SERIAL,
        LogEventType.UNIFIED_SERIAL_NEW,
        LogEventType.UNIFIED_SERIAL_OLD,
    }
)

_PARALLEL_KINDS: frozenset[LogEventType] = frozenset(
    {
        LogEventType.PARALLEL_SCAVENGE,
        LogEventType.PARALLEL_COMPACTING_OLD,
        LogEventType.PAR_NEW,
        LogEventType.CMS_INITIAL_MARK,
        LogEventType.CMS_REMARK,
        LogEventType.G1_YOUNG_PAUSE,
        LogEventType.G1_MIXED_PAUSE,
        LogEventType.G1_YOUNG_INITIAL_MARK,
        LogEventType.G1_REMARK,
        LogEventType.G1_CLEANUP,
        LogEventType.UNIFIED_PARALLEL_SCAVENGE,
        LogEventType.UNIFIED_PARALLEL_COMPACTING_OLD,
        LogEventType.UNIFIED_PAR_NEW,
        LogEventType.UNIFIED_CMS_INITIAL_MARK,
        LogEventType.UNIFIED_REMARK,
        LogEventType.UNIFIED_G1_YOUNG_PAUSE,
        LogEventType.UNIFIED_G1_YOUNG_PREPARE_MIXED,
        LogEventType.UNIFIED_G1_MIXED_PAUSE,
        LogEventType.UNIFIED_G1_YOUNG_INITIAL_MARK,
        LogEventType.UNIFIED_G1_FULL_GC,
        LogEventType.UNIFIED_G1_CLEANUP,
        LogEventType.SHENANDOAH_INIT_MARK,
        LogEventType.SHENANDOAH_FINAL_MARK,
        LogEventType.SHENANDOAH_INIT_UPDATE,
        LogEventType.SHENANDOAH_FINAL_UPDATE,
        LogEventType.SHENANDOAH_DEGENERATED_GC,
        LogEventType.SHENANDOAH_FULL_GC,
    }
)

_BLOCKING_KINDS: frozenset[LogEventType] = (
    SERIAL_COLLECTION_KINDS
    | Z_PAUSE_KINDS
    | _PARALLEL_KINDS
    | frozenset(
        {
            LogEventType.VERBOSE_GC_YOUNG,
            LogEventType.VERBOSE_GC_OLD,
            LogEventType.UNIFIED_YOUNG,
            LogEventType.UNIFIED_OLD,
        }
    )
)

_NON_REPORTABLE_KINDS: frozenset[LogEventType] = frozenset(
    {
        LogEventType.APPLICATION_CONCURRENT_TIME,
        LogEventType.HEADER_VERSION,
        LogEventType.HEADER_MEMORY,
        LogEventType.HEADER_COMMAND_LINE_FLAGS,
        LogEventType.HEAP_AT_GC,
        LogEventType.BLANK_LINE,
        LogEventType.USING_SERIAL,
        LogEventType.USING_PARALLEL,
        LogEventType.USING_CMS,
        LogEventType.USING_G1,
        LogEventType.USING_SHENANDOAH,
        LogEventType.USING_Z,
        LogEventType.UNIFIED_HEADER,
        LogEventType.UNIFIED_HEAP_EXIT,
        LogEventType.UNIFIED_BLANK_LINE,
        LogEventType.GC_INFO,
        LogEventType.SHENANDOAH_TRIGGER,
        LogEventType.UNKNOWN,
    }
)

_UNIFIED_PREFIXES = ("UNIFIED_", "USING_", "SHENANDOAH_", "Z_")


def is_blocking(kind: LogEventType) -> bool:
    return kind in _BLOCKING_KINDS


def is_reportable(kind: LogEventType) -> bool:
    return kind not in _NON_REPORTABLE_KINDS


def is_parallel(kind: LogEventType) -> bool:
    """Kinds whose collector runs multiple GC threads during the pause."""
    return kind in _PARALLEL_KINDS


def is_unified(kind: LogEventType) -> bool:
    return kind is LogEventType.GC_INFO or kind.value.startswith(_UNIFIED_PREFIXES)


def event_category(kind: LogEventType) -> EventCategory:
    if kind is LogEventType.UNIFIED_SAFEPOINT:
        return EventCategory.SAFEPOINT
    if kind in (
        LogEventType.APPLICATION_STOPPED_TIME,
        LogEventType.UNIFIED_APPLICATION_STOPPED_TIME,
    ):
        return EventCategory.STOPPED_TIME
    if is_blocking(kind):
        return EventCategory.BLOCKING
    return EventCategory.OTHER


# ============================================================
# EVENT MODEL
# ============================================================


class MemoryRegion(BaseModel):
    """Occupancy before/after a collection and the region's capacity."""

    model_config = ConfigDict(frozen=True)

    occupancy_init: Memory | None = None
    occupancy_end: Memory | None = None
    space: Memory | None = None

    def is_empty(self) -> bool:
        return self.occupancy_init is None and self.occupancy_end is None and self.space is None


class CpuTimes(BaseModel):
    """User, sys and wall clock time of a collection, in centiseconds."""

    model_config = ConfigDict(frozen=True)

    user: CentisValue = Field(ge=0)
    sys: CentisValue = Field(ge=0)
    real: CentisValue = Field(ge=0)

    @property
    def parallelism(self) -> int:
        return calc_parallelism(self.user, self.sys, self.real)


class GCEvent(BaseModel):
    """Normalized log event.

    ``duration`` is in microseconds and is ``None`` when the line carries no
    duration at all. ``timestamp`` is milliseconds since JVM start and marks
    the beginning of the event even when the log stamped its end.
    """

    model_config = ConfigDict(validate_assignment=True)

    kind: LogEventType
    log_entry: str
    timestamp: MillisValue = Field(default=0, ge=0)
    duration: MicrosValue | None = Field(default=None, ge=0)
    family: CollectorFamily = CollectorFamily.UNKNOWN
    gc_id: int | None = None
    endstamp: bool = False

    young: MemoryRegion | None = None
    old: MemoryRegion | None = None
    perm: MemoryRegion | None = None
    combined: MemoryRegion | None = None

    trigger: Trigger | None = None
    times: CpuTimes | None = None

    # Opaque header data (version text, command line options, physical memory)
    attributes: dict[str, str] = Field(default_factory=dict)

    @property
    def blocking(self) -> bool:
        return is_blocking(self.kind)

    @property
    def reportable(self) -> bool:
        return is_reportable(self.kind)

    @property
    def parallel(self) -> bool:
        return is_parallel(self.kind)

    @property
    def unified(self) -> bool:
        return is_unified(self.kind)

    @property
    def category(self) -> EventCategory:
        return event_category(self.kind)

    @property
    def parallelism(self) -> int | None:
        return self.times.parallelism if self.times is not None else None

    @property
    def duration_millis(self) -> MillisValue:
        return micros_to_millis(self.duration) if self.duration is not None else 0

    def set_trigger(self, trigger: Trigger) -> None:
        self.trigger = trigger

    def set_perm_metaspace(self, region: MemoryRegion) -> None:
        self.perm = region
