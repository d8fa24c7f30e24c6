"""Grammar definition, registry and field extraction.

A grammar couples one compiled pattern with the event kind it produces. The
default extractor reads the shared named groups (see :mod:`gc_digest.patterns`)
so most grammars need no code of their own; grammars with unusual payloads
(headers, metaspace summaries) supply a dedicated extractor.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Iterator
from typing import Any, Literal, TypeAlias

from gc_digest.events import (
    CollectorFamily,
    CpuTimes,
    GCEvent,
    LogEventType,
    MemoryRegion,
    is_reportable,
)
from gc_digest.patterns import TimestampResolver, is_start_tagged
from gc_digest.triggers import GcTrigger, Trigger
from gc_digest.units import (
    Memory,
    MicrosValue,
    micros_to_millis,
    millis_to_micros,
    nanos_to_micros,
    secs_to_centis,
    secs_to_micros,
    subtract_memory,
)

DurationUnit: TypeAlias = Literal["ms", "secs", "ns"]
Derivation: TypeAlias = Literal["old", "young"]
Extractor: TypeAlias = "Callable[[Grammar, re.Match[str], TimestampResolver], GCEvent]"

REGIONS = ("young", "old", "perm", "combined")

_DURATION_CONVERTERS: dict[str, Callable[[str], MicrosValue]] = {
    "ms": millis_to_micros,
    "secs": secs_to_micros,
    "ns": nanos_to_micros,
}


class Grammar:
    """One log line shape and how to turn it into a :class:`GCEvent`."""

    def __init__(
        self,
        kind: LogEventType,
        pattern: str,
        *,
        guard: str | None = None,
        families: Iterable[CollectorFamily] = (),
        unified: bool = True,
        duration_unit: DurationUnit = "ms",
        derive: Derivation | None = None,
        fixed_trigger: GcTrigger | None = None,
        extractor: Extractor | None = None,
    ) -> None:
        self.kind = kind
        self.pattern: re.Pattern[str] = re.compile(pattern)
        self.guard = guard
        self.families: frozenset[CollectorFamily] = frozenset(families)
        self.unified = unified
        self.duration_unit = duration_unit
        self.derive = derive
        self.fixed_trigger = fixed_trigger
        self.extractor = extractor

    def __repr__(self) -> str:
        return f"Grammar({self.kind.value})"

    @property
    def family(self) -> CollectorFamily:
        """The collector family, when the grammar belongs to exactly one."""
        if len(self.families) == 1:
            return next(iter(self.families))
        return CollectorFamily.UNKNOWN

    @property
    def reportable(self) -> bool:
        return is_reportable(self.kind)

    def match(self, line: str) -> re.Match[str] | None:
        # Substring guard: only run the regex when the literal is present
        if self.guard is not None and self.guard not in line:
            return None
        return self.pattern.match(line)

    def extract(self, match: re.Match[str], resolver: TimestampResolver) -> GCEvent:
        """Build the event for a matched line; raises ValueError on malformed values."""
        if self.extractor is not None:
            return self.extractor(self, match, resolver)
        return extract_event(self, match, resolver)


class GrammarRegistry:
    """Ordered collection of grammars; registration order is match priority."""

    def __init__(self, grammars: Iterable[Grammar] = ()) -> None:
        self._grammars: list[Grammar] = []
        self._by_kind: dict[LogEventType, Grammar] = {}
        for grammar in grammars:
            self.register(grammar)

    def register(self, grammar: Grammar) -> None:
        if grammar.kind in self._by_kind:
            raise ValueError(f"Grammar already registered for {grammar.kind.value}")
        self._grammars.append(grammar)
        self._by_kind[grammar.kind] = grammar

    def get(self, kind: LogEventType) -> Grammar:
        return self._by_kind[kind]

    def __iter__(self) -> Iterator[Grammar]:
        return iter(self._grammars)

    def __len__(self) -> int:
        return len(self._grammars)

    def __contains__(self, kind: object) -> bool:
        return kind in self._by_kind


# ============================================================
# EXTRACTION
# ============================================================


def parse_memory(text: str | None) -> Memory | None:
    return Memory.parse(text) if text is not None else None


def extract_region(groups: dict[str, Any], region: str) -> MemoryRegion | None:
    """Collect ``<region>_init/_end/_space`` groups; None if all are absent."""
    memory_region = MemoryRegion(
        occupancy_init=parse_memory(groups.get(f"{region}_init")),
        occupancy_end=parse_memory(groups.get(f"{region}_end")),
        space=parse_memory(groups.get(f"{region}_space")),
    )
    return None if memory_region.is_empty() else memory_region


def derive_region(
    combined: MemoryRegion | None, known: MemoryRegion | None
) -> MemoryRegion | None:
    """Derive the missing generation as combined minus the known one, clamped at zero."""
    if combined is None or known is None:
        return None
    return MemoryRegion(
        occupancy_init=subtract_memory(combined.occupancy_init, known.occupancy_init),
        occupancy_end=subtract_memory(combined.occupancy_end, known.occupancy_end),
        space=subtract_memory(combined.space, known.space),
    )


def extract_times(groups: dict[str, Any]) -> CpuTimes | None:
    if groups.get("user") is None or groups.get("real") is None:
        return None
    return CpuTimes(
        user=secs_to_centis(groups["user"]),
        sys=secs_to_centis(groups.get("sys") or "0"),
        real=secs_to_centis(groups["real"]),
    )


def extract_trigger(grammar: Grammar, groups: dict[str, Any]) -> Trigger | None:
    if (failure := groups.get("cmf")) is not None:
        return Trigger.parse(failure)
    if grammar.fixed_trigger is not None:
        return Trigger.of(grammar.fixed_trigger)
    if (text := groups.get("trigger")) is not None:
        return Trigger.parse(text)
    return None


def resolve_start(
    grammar: Grammar,
    groups: dict[str, Any],
    resolver: TimestampResolver,
    duration: MicrosValue | None,
) -> tuple[int, bool]:
    """Resolve the event start timestamp and whether the log stamped the end."""
    resolved = resolver.resolve(
        groups.get("datestamp"), groups.get("uptime"), groups.get("uptimemillis")
    )
    endstamp = grammar.unified and not is_start_tagged(groups.get("tags"))
    if endstamp and duration is not None:
        resolved -= micros_to_millis(duration)
    return max(0, resolved), endstamp


def base_fields(
    grammar: Grammar, match: re.Match[str], resolver: TimestampResolver
) -> dict[str, Any]:
    """Fields every event carries: kind, timing, family, sequence id and raw entry."""
    groups = match.groupdict()
    duration = None
    if (duration_text := groups.get("duration")) is not None:
        duration = _DURATION_CONVERTERS[grammar.duration_unit](duration_text)
    timestamp, endstamp = resolve_start(grammar, groups, resolver, duration)
    gc_id = groups.get("gc_id")
    return {
        "kind": grammar.kind,
        "log_entry": match.string,
        "timestamp": timestamp,
        "duration": duration,
        "family": grammar.family,
        "gc_id": int(gc_id) if gc_id is not None else None,
        "endstamp": endstamp,
    }


def extract_event(grammar: Grammar, match: re.Match[str], resolver: TimestampResolver) -> GCEvent:
    """Default extractor driven entirely by named groups."""
    groups = match.groupdict()
    regions = {region: extract_region(groups, region) for region in REGIONS}

    if grammar.derive == "old" and regions["old"] is None:
        regions["old"] = derive_region(regions["combined"], regions["young"])
    elif grammar.derive == "young" and regions["young"] is None:
        regions["young"] = derive_region(regions["combined"], regions["old"])

    return GCEvent(
        **base_fields(grammar, match, resolver),
        **regions,
        trigger=extract_trigger(grammar, groups),
        times=extract_times(groups),
    )
