"""Collection triggers (GC causes) as printed by HotSpot."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class GcTrigger(str, Enum):
    """Closed set of known GC causes; values are the literal log text."""

    ALLOCATION_FAILURE = "Allocation Failure"
    ERGONOMICS = "Ergonomics"
    SYSTEM_GC = "System.gc()"
    METADATA_GC_THRESHOLD = "Metadata GC Threshold"
    METADATA_GC_CLEAR_SOFT_REFERENCES = "Metadata GC Clear Soft References"
    HEAP_DUMP_INITIATED_GC = "Heap Dump Initiated GC"
    HEAP_INSPECTION_INITIATED_GC = "Heap Inspection Initiated GC"
    GCLOCKER_INITIATED_GC = "GCLocker Initiated GC"
    G1_EVACUATION_PAUSE = "G1 Evacuation Pause"
    G1_HUMONGOUS_ALLOCATION = "G1 Humongous Allocation"
    G1_PREVENTIVE_COLLECTION = "G1 Preventive Collection"
    G1_COMPACTION_PAUSE = "G1 Compaction Pause"
    G1_PERIODIC_COLLECTION = "G1 Periodic Collection"
    CMS_INITIAL_MARK = "CMS Initial Mark"
    CMS_FINAL_REMARK = "CMS Final Remark"
    CMS_CONCURRENT_MODE_FAILURE = "concurrent mode failure"
    CMS_CONCURRENT_MODE_INTERRUPTED = "concurrent mode interrupted"
    ALLOCATION_RATE = "Allocation Rate"
    ALLOCATION_STALL = "Allocation Stall"
    WARMUP = "Warmup"
    PROACTIVE = "Proactive"
    HIGH_USAGE = "High Usage"
    TIMER = "Timer"
    JVMTI_FORCE_GC = "JvmtiEnv ForceGarbageCollection"
    LAST_DITCH_COLLECTION = "Last ditch collection"
    CLASS_HISTOGRAM = "Class Histogram"
    WHITEBOX_INITIATED_YOUNG_GC = "WhiteBox Initiated Young GC"
    WHITEBOX_INITIATED_CONCURRENT_MARK = "WhiteBox Initiated Concurrent Mark"
    WHITEBOX_INITIATED_FULL_GC = "WhiteBox Initiated Full GC"
    UPDATE_ALLOCATION_CONTEXT_STATS = "Update Allocation Context Stats"
    UNKNOWN = "Unknown"


_TRIGGERS_BY_TEXT: dict[str, GcTrigger] = {
    trigger.value.lower(): trigger for trigger in GcTrigger if trigger is not GcTrigger.UNKNOWN
}

EXPLICIT_TRIGGERS: frozenset[GcTrigger] = frozenset(
    {GcTrigger.SYSTEM_GC, GcTrigger.JVMTI_FORCE_GC}
)


class Trigger(BaseModel):
    """A resolved trigger plus the text it was read from."""

    model_config = ConfigDict(frozen=True)

    cause: GcTrigger
    text: str

    @classmethod
    def parse(cls, text: str) -> Trigger:
        """Resolve trigger text; anything unrecognized becomes UNKNOWN with its raw text."""
        normalized = text.strip()
        return cls(
            cause=_TRIGGERS_BY_TEXT.get(normalized.lower(), GcTrigger.UNKNOWN), text=normalized
        )

    @classmethod
    def of(cls, cause: GcTrigger) -> Trigger:
        return cls(cause=cause, text=cause.value)

    @property
    def is_explicit(self) -> bool:
        return self.cause in EXPLICIT_TRIGGERS

    def __str__(self) -> str:
        return self.text
