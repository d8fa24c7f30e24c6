"""Ordered storage and aggregate queries for one analysis run."""

from __future__ import annotations

import bisect
import threading
from collections.abc import Callable, Iterable
from functools import wraps
from typing import Any, TypeVar

from gc_digest.events import (
    CollectorFamily,
    EventCategory,
    GCEvent,
    LogEventType,
    MemoryRegion,
)
from gc_digest.units import (
    KilobytesValue,
    MicrosValue,
    MillisValue,
    micros_to_millis,
)

F = TypeVar("F", bound=Callable[..., Any])

# Physical swap size when the log header never reported it.
SWAP_NOT_REPORTED = -1


def _locked(method: F) -> F:
    """Serialize a mutating method on the instance lock."""

    @wraps(method)
    def wrapper(self: JvmStore, *args: Any, **kwargs: Any) -> Any:
        with self._lock:
            return method(self, *args, **kwargs)

    return wrapper  # type: ignore[return-value]


def _kb(memory_region: MemoryRegion | None, field: str) -> KilobytesValue | None:
    if memory_region is None or (memory := getattr(memory_region, field)) is None:
        return None
    return memory.kilobytes


def _max_kb(values: Iterable[KilobytesValue | None]) -> KilobytesValue:
    return max((value for value in values if value is not None), default=0)


def _generations_kb(event: GCEvent, field: str) -> KilobytesValue | None:
    """Young plus old, only when the event reports both generations."""
    young = _kb(event.young, field)
    old = _kb(event.old, field)
    if young is None or old is None:
        return None
    return young + old


def _heap_kb(event: GCEvent, field: str) -> KilobytesValue | None:
    if (generations := _generations_kb(event, field)) is not None:
        return generations
    if (combined := _kb(event.combined, field)) is not None:
        return combined
    # A single generation is all that was logged
    return _kb(event.young, field) or _kb(event.old, field)


def heap_occupancy(event: GCEvent) -> KilobytesValue | None:
    """Heap occupancy at the start of the event.

    Young plus old when the event reports both generations, combined
    otherwise.
    """
    return _heap_kb(event, "occupancy_init")


def heap_space(event: GCEvent) -> KilobytesValue | None:
    return _heap_kb(event, "space")


def heap_after_gc(event: GCEvent) -> KilobytesValue | None:
    """The larger of young plus old and combined when both are logged."""
    generations = _generations_kb(event, "occupancy_end")
    combined = _kb(event.combined, "occupancy_end")
    if generations is not None and combined is not None:
        return max(generations, combined)
    return _heap_kb(event, "occupancy_end")


class StopStats:
    """Max/total/first/last/count over a list of stop events (safepoint or stopped time)."""

    def __init__(self, events: list[GCEvent]) -> None:
        self._events = events

    @property
    def count(self) -> int:
        return len(self._events)

    @property
    def max(self) -> MillisValue:
        return micros_to_millis(max((event.duration or 0 for event in self._events), default=0))

    @property
    def total(self) -> MillisValue:
        return micros_to_millis(sum(event.duration or 0 for event in self._events))

    @property
    def first(self) -> GCEvent | None:
        return self._events[0] if self._events else None

    @property
    def last(self) -> GCEvent | None:
        return self._events[-1] if self._events else None


class JvmStore:
    """Aggregation store for one analysis run.

    Blocking events are kept sorted by start timestamp; safepoint and stopped
    time events are kept in arrival order. All queries tolerate an empty store.
    A store must be fresh (or :meth:`reset`) before a pipeline writes to it.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._blocking: list[GCEvent] = []
        self._safepoints: list[GCEvent] = []
        self._stopped: list[GCEvent] = []
        self._in_use = False

        self._collector_families: list[CollectorFamily] = []
        self._event_types: list[LogEventType] = []
        self._analysis: list[str] = []
        self.unidentified_log_lines: list[str] = []

        # Maxima from events that do not stop the application (Z summaries, concurrent cycles)
        self.max_heap_occupancy_non_blocking: KilobytesValue = 0
        self.max_heap_space_non_blocking: KilobytesValue = 0
        self.max_perm_occupancy_non_blocking: KilobytesValue = 0
        self.max_perm_space_non_blocking: KilobytesValue = 0

        # Fed by the caller while processing events
        self.parallel_count = 0
        self.inverted_parallelism_count = 0
        self.worst_inverted_parallelism_event: GCEvent | None = None

        # Environment metadata, opaque to the aggregation logic
        self.version: str | None = None
        self.options: str | None = None
        self.memory: str | None = None
        self.physical_memory: int = 0
        self.physical_memory_free: int = 0
        self.swap: int = SWAP_NOT_REPORTED
        self.swap_free: int = 0

    # ------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------

    @property
    def is_fresh(self) -> bool:
        return not self._in_use

    @_locked
    def claim(self) -> None:
        """Mark the store as owned by a run."""
        self._in_use = True

    @_locked
    def reset(self) -> None:
        """Drop blocking events and release the store for another run."""
        self._blocking.clear()
        self._in_use = False

    # ------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------

    @_locked
    def insert(self, event: GCEvent) -> None:
        """Route an event to its collection and record its kind and family."""
        if not event.reportable:
            return
        self._in_use = True
        if event.kind not in self._event_types:
            self._event_types.append(event.kind)
        self._record_family(event.family)

        category = event.category
        if category is EventCategory.BLOCKING:
            # Equal timestamps keep arrival order
            bisect.insort_right(self._blocking, event, key=lambda stored: stored.timestamp)
        elif category is EventCategory.SAFEPOINT:
            self._safepoints.append(event)
        elif category is EventCategory.STOPPED_TIME:
            self._stopped.append(event)
        else:
            self._track_non_blocking(event)

    @_locked
    def add_collector_family(self, family: CollectorFamily) -> None:
        self._record_family(family)

    @_locked
    def add_analysis(self, key: str) -> None:
        if key not in self._analysis:
            self._analysis.append(key)

    @_locked
    def add_unidentified(self, line: str) -> None:
        self.unidentified_log_lines.append(line)

    @_locked
    def record_parallelism(self, event: GCEvent, low_threshold: int) -> None:
        """Count a parallel event and track it when its parallelism is inverted."""
        if (parallelism := event.parallelism) is None:
            return
        self.parallel_count += 1
        if parallelism < low_threshold:
            self.inverted_parallelism_count += 1
            worst = self.worst_inverted_parallelism_event
            if worst is None or parallelism < (worst.parallelism or 0):
                self.worst_inverted_parallelism_event = event

    @_locked
    def set_max_heap_occupancy_non_blocking(self, kilobytes: KilobytesValue) -> None:
        self.max_heap_occupancy_non_blocking = max(self.max_heap_occupancy_non_blocking, kilobytes)

    @_locked
    def set_max_heap_space_non_blocking(self, kilobytes: KilobytesValue) -> None:
        self.max_heap_space_non_blocking = max(self.max_heap_space_non_blocking, kilobytes)

    @_locked
    def set_max_perm_occupancy_non_blocking(self, kilobytes: KilobytesValue) -> None:
        self.max_perm_occupancy_non_blocking = max(self.max_perm_occupancy_non_blocking, kilobytes)

    @_locked
    def set_max_perm_space_non_blocking(self, kilobytes: KilobytesValue) -> None:
        self.max_perm_space_non_blocking = max(self.max_perm_space_non_blocking, kilobytes)

    def _record_family(self, family: CollectorFamily) -> None:
        if family is not CollectorFamily.UNKNOWN and family not in self._collector_families:
            self._collector_families.append(family)

    def _track_non_blocking(self, event: GCEvent) -> None:
        if (occupancy := heap_occupancy(event)) is not None:
            self.max_heap_occupancy_non_blocking = max(
                self.max_heap_occupancy_non_blocking, occupancy
            )
        if (space := heap_space(event)) is not None:
            self.max_heap_space_non_blocking = max(self.max_heap_space_non_blocking, space)
        if (perm_occupancy := _kb(event.perm, "occupancy_init")) is not None:
            self.max_perm_occupancy_non_blocking = max(
                self.max_perm_occupancy_non_blocking, perm_occupancy
            )
        if (perm_space := _kb(event.perm, "space")) is not None:
            self.max_perm_space_non_blocking = max(self.max_perm_space_non_blocking, perm_space)

    # ------------------------------------------------------------
    # Blocking event queries
    # ------------------------------------------------------------

    def blocking_events(self, kind: LogEventType | None = None) -> list[GCEvent]:
        if kind is None:
            return list(self._blocking)
        return [event for event in self._blocking if event.kind is kind]

    @property
    def blocking_event_count(self) -> int:
        return len(self._blocking)

    @property
    def first_gc_event(self) -> GCEvent | None:
        return self._blocking[0] if self._blocking else None

    @property
    def last_gc_event(self) -> GCEvent | None:
        return self._blocking[-1] if self._blocking else None

    @property
    def max_gc_pause(self) -> MillisValue:
        longest: MicrosValue = max((event.duration or 0 for event in self._blocking), default=0)
        return micros_to_millis(longest)

    @property
    def total_gc_pause(self) -> MillisValue:
        return micros_to_millis(sum(event.duration or 0 for event in self._blocking))

    @property
    def max_heap_occupancy(self) -> KilobytesValue:
        return _max_kb(heap_occupancy(event) for event in self._blocking)

    @property
    def max_heap_space(self) -> KilobytesValue:
        return _max_kb(heap_space(event) for event in self._blocking)

    @property
    def max_heap_after_gc(self) -> KilobytesValue:
        return _max_kb(heap_after_gc(event) for event in self._blocking)

    @property
    def max_young_space(self) -> KilobytesValue:
        return _max_kb(_kb(event.young, "space") for event in self._blocking)

    @property
    def max_old_space(self) -> KilobytesValue:
        return _max_kb(_kb(event.old, "space") for event in self._blocking)

    @property
    def max_perm_occupancy(self) -> KilobytesValue:
        return _max_kb(_kb(event.perm, "occupancy_init") for event in self._blocking)

    @property
    def max_perm_space(self) -> KilobytesValue:
        return _max_kb(_kb(event.perm, "space") for event in self._blocking)

    @property
    def max_perm_after_gc(self) -> KilobytesValue:
        return _max_kb(_kb(event.perm, "occupancy_end") for event in self._blocking)

    # ------------------------------------------------------------
    # Safepoint and stopped time queries
    # ------------------------------------------------------------

    @property
    def safepoints(self) -> StopStats:
        return StopStats(self._safepoints)

    @property
    def stopped_time(self) -> StopStats:
        return StopStats(self._stopped)

    def safepoint_events(self) -> list[GCEvent]:
        return list(self._safepoints)

    def stopped_time_events(self) -> list[GCEvent]:
        return list(self._stopped)

    # ------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------

    @property
    def collector_families(self) -> list[CollectorFamily]:
        return list(self._collector_families)

    @property
    def event_types(self) -> list[LogEventType]:
        return list(self._event_types)

    @property
    def analysis(self) -> list[str]:
        return list(self._analysis)
