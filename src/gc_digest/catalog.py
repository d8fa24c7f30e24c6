"""The built-in grammar catalog.

Registration order is match priority. Grammars that can produce the same text
for different collectors (``Pause Full (...)`` without region detail, or a legacy
``[Full GC (...)`` without details) are listed generic-first. Both members of
such a pair carry their collector families, so a line seen before the collector
is known never records a family from a guess, and the classifier re-ranks the
pair once the collector in use is known.
"""

from __future__ import annotations

import re
from typing import Any

from gc_digest.events import CollectorFamily, GCEvent, LogEventType, MemoryRegion
from gc_digest.grammars import Grammar, GrammarRegistry, base_fields, parse_memory
from gc_digest.patterns import (
    DECIMAL,
    END,
    INNER_TIMESTAMP,
    LEGACY_DECORATOR,
    LEGACY_TIMES,
    SIZE,
    TRIGGER,
    UNIFIED_DECORATOR,
    UNIFIED_TIMES,
    TimestampResolver,
    duration,
    occupancy,
    size,
    transition,
)
from gc_digest.triggers import GcTrigger

SERIAL = CollectorFamily.SERIAL
PARALLEL = CollectorFamily.PARALLEL
CMS = CollectorFamily.CMS
G1 = CollectorFamily.G1
SHENANDOAH = CollectorFamily.SHENANDOAH
Z = CollectorFamily.Z

# ============================================================
# SHARED BODY FRAGMENTS
# ============================================================

LEGACY_SECS = r", " + duration(r" secs") + r"\]"
NESTED_SECS = r", " + DECIMAL + r" secs\]"
TRIGGER_OPT = r"(?: \(" + TRIGGER + r"\))?"

G1_LEGACY_METASPACE = r"(?:, \[Metaspace: " + transition("perm") + r"\])?"
G1_TO_SPACE = r"(?:--)?(?: \(to-space (?:exhausted|overflow)\))?"

UNIFIED_COMBINED = r" " + transition("combined", capacity_before=True)
UNIFIED_MS = r" " + duration("ms")
METASPACE_OPT = r"(?: Metaspace: " + transition("perm", capacity_before=True) + r")?"
EVACUATION_FAILURE = r"(?: \((?:Evacuation Failure|To-space exhausted)\))?"
PHASE_NOTES = r"(?: \([a-z ]+\))*"


def _unified_regions(young: str, old: str) -> str:
    return (
        r" " + young + r": " + transition("young", capacity_before=True)
        + r" " + old + r": " + transition("old", capacity_before=True)
        + METASPACE_OPT
    )


def legacy(kind: LogEventType, body: str, **kwargs: Any) -> Grammar:
    """Legacy collection line: start-stamped, ``secs`` durations, ``[Times: ...]`` suffix."""
    kwargs.setdefault("duration_unit", "secs")
    return Grammar(kind, LEGACY_DECORATOR + body + LEGACY_TIMES + END, unified=False, **kwargs)


def legacy_plain(kind: LogEventType, pattern: str, **kwargs: Any) -> Grammar:
    """Undecorated legacy output (headers, heap printouts)."""
    return Grammar(kind, pattern, unified=False, **kwargs)


def unified(kind: LogEventType, body: str, **kwargs: Any) -> Grammar:
    return Grammar(kind, UNIFIED_DECORATOR + body + UNIFIED_TIMES + END, **kwargs)


# ============================================================
# EXTRACTORS
# ============================================================

_FLAG_FAMILIES: dict[str, CollectorFamily] = {
    "-XX:+UseSerialGC": SERIAL,
    "-XX:+UseParallelGC": PARALLEL,
    "-XX:+UseParallelOldGC": PARALLEL,
    "-XX:+UseConcMarkSweepGC": CMS,
    "-XX:+UseParNewGC": CMS,
    "-XX:+UseG1GC": G1,
    "-XX:+UseShenandoahGC": SHENANDOAH,
    "-XX:+UseZGC": Z,
}


def family_from_options(options: str) -> CollectorFamily:
    """Collector family selected on the command line, UNKNOWN if none is named."""
    for flag in options.split():
        if (family := _FLAG_FAMILIES.get(flag)) is not None:
            return family
    return CollectorFamily.UNKNOWN


def _extract_version(
    grammar: Grammar, match: re.Match[str], resolver: TimestampResolver
) -> GCEvent:
    attributes = {"version": match.string.strip()}
    return GCEvent(**base_fields(grammar, match, resolver), attributes=attributes)


def _extract_command_line(
    grammar: Grammar, match: re.Match[str], resolver: TimestampResolver
) -> GCEvent:
    options = match.group("options")
    fields = base_fields(grammar, match, resolver)
    fields["family"] = family_from_options(options)
    return GCEvent(**fields, attributes={"options": options})


def _extract_physical_memory(
    grammar: Grammar, match: re.Match[str], resolver: TimestampResolver
) -> GCEvent:
    attributes = {
        name: str(int(value) * 1024)
        for name in ("physical_memory", "physical_memory_free", "swap", "swap_free")
        if (value := match.group(name)) is not None
    }
    return GCEvent(**base_fields(grammar, match, resolver), attributes=attributes)


def _extract_unified_header(
    grammar: Grammar, match: re.Match[str], resolver: TimestampResolver
) -> GCEvent:
    attributes: dict[str, str] = {}
    if (version := match.group("version")) is not None:
        attributes["version"] = version
    if (memory := match.group("memory")) is not None:
        attributes["memory"] = memory
    return GCEvent(**base_fields(grammar, match, resolver), attributes=attributes)


def _extract_z_metaspace(
    grammar: Grammar, match: re.Match[str], resolver: TimestampResolver
) -> GCEvent:
    used = parse_memory(match.group("perm_end"))
    committed = parse_memory(match.group("perm_space"))
    perm = MemoryRegion(occupancy_init=used, occupancy_end=used, space=committed)
    return GCEvent(**base_fields(grammar, match, resolver), perm=perm)


# ============================================================
# LEGACY CATALOG
# ============================================================


def legacy_grammars() -> list[Grammar]:
    kind = LogEventType
    return [
        legacy_plain(kind.BLANK_LINE, r"^\s*$"),
        legacy(
            kind.SERIAL_NEW,
            r"\[GC" + TRIGGER_OPT + r" " + INNER_TIMESTAMP
            + r"\[DefNew: " + transition("young") + NESTED_SECS
            + r" " + transition("combined") + LEGACY_SECS,
            guard="[DefNew:",
            families=[SERIAL],
            derive="old",
        ),
        legacy(
            kind.SERIAL_OLD,
            r"\[Full GC" + TRIGGER_OPT + r" " + INNER_TIMESTAMP
            + r"\[Tenured: " + transition("old") + NESTED_SECS
            + r" " + transition("combined")
            + r", \[(?:Perm |Metaspace): " + transition("perm") + r"\]" + LEGACY_SECS,
            guard="[Tenured:",
            families=[SERIAL],
            derive="young",
        ),
        legacy(
            kind.PARALLEL_SCAVENGE,
            r"\[GC" + TRIGGER_OPT + r" \[PSYoungGen: " + transition("young") + r"\]"
            + r" " + transition("combined") + LEGACY_SECS,
            guard="[PSYoungGen:",
            families=[PARALLEL],
            derive="old",
        ),
        legacy(
            kind.PARALLEL_COMPACTING_OLD,
            r"\[Full GC" + TRIGGER_OPT + r" \[PSYoungGen: " + transition("young") + r"\]"
            + r" \[ParOldGen: " + transition("old") + r"\]"
            + r" " + transition("combined")
            + r", \[(?:PSPermGen|Metaspace): " + transition("perm") + r"\]" + LEGACY_SECS,
            guard="[ParOldGen:",
            families=[PARALLEL],
        ),
        legacy(
            kind.PARALLEL_SERIAL_OLD,
            r"\[Full GC" + TRIGGER_OPT + r" \[PSYoungGen: " + transition("young") + r"\]"
            + r" \[PSOldGen: " + transition("old") + r"\]"
            + r" " + transition("combined")
            + r", \[(?:PSPermGen|Metaspace): " + transition("perm") + r"\]" + LEGACY_SECS,
            guard="[PSOldGen:",
            families=[PARALLEL],
        ),
        legacy(
            kind.PAR_NEW,
            r"\[GC" + TRIGGER_OPT + r" " + INNER_TIMESTAMP
            + r"\[ParNew: " + transition("young") + NESTED_SECS
            + r" " + transition("combined") + LEGACY_SECS,
            guard="[ParNew:",
            families=[CMS],
            derive="old",
        ),
        legacy(
            kind.CMS_SERIAL_OLD,
            r"\[Full GC" + TRIGGER_OPT + r" " + INNER_TIMESTAMP
            + r"\[CMS(?: \((?P<cmf>concurrent mode (?:failure|interrupted))\))?: "
            + transition("old") + NESTED_SECS
            + r" " + transition("combined")
            + r", \[(?:CMS Perm |Metaspace): " + transition("perm") + r"\]" + LEGACY_SECS,
            guard="[CMS",
            families=[CMS],
            derive="young",
        ),
        legacy(
            kind.CMS_INITIAL_MARK,
            r"\[GC (?:\(CMS Initial Mark\) )?\[1 CMS-initial-mark: " + occupancy("old") + r"\]"
            + r" " + occupancy("combined") + LEGACY_SECS,
            guard="CMS-initial-mark",
            families=[CMS],
            fixed_trigger=GcTrigger.CMS_INITIAL_MARK,
        ),
        legacy(
            kind.CMS_REMARK,
            r"\[GC (?:\(CMS Final Remark\) )?.*?\[1 CMS-remark: " + occupancy("old") + r"\]"
            + r" " + occupancy("combined") + LEGACY_SECS,
            guard="CMS-remark",
            families=[CMS],
            fixed_trigger=GcTrigger.CMS_FINAL_REMARK,
        ),
        legacy(
            kind.CMS_CONCURRENT,
            r"\[CMS-concurrent-(?P<phase>[a-z-]+?)"
            r"(?:-start\]|: " + DECIMAL + r"/" + duration(r" secs") + r"\])",
            guard="[CMS-concurrent-",
            families=[CMS],
        ),
        legacy(
            kind.G1_YOUNG_PAUSE,
            r"\[GC pause \(" + TRIGGER + r"\) \(young\)" + G1_TO_SPACE
            + r" " + transition("combined") + G1_LEGACY_METASPACE + LEGACY_SECS,
            guard="(young)",
            families=[G1],
        ),
        legacy(
            kind.G1_MIXED_PAUSE,
            r"\[GC pause \(" + TRIGGER + r"\) \(mixed\)" + G1_TO_SPACE
            + r" " + transition("combined") + G1_LEGACY_METASPACE + LEGACY_SECS,
            guard="(mixed)",
            families=[G1],
        ),
        legacy(
            kind.G1_YOUNG_INITIAL_MARK,
            r"\[GC pause \(" + TRIGGER + r"\) \(young\) \(initial-mark\)" + G1_TO_SPACE
            + r" " + transition("combined") + G1_LEGACY_METASPACE + LEGACY_SECS,
            guard="(initial-mark)",
            families=[G1],
        ),
        legacy(
            kind.VERBOSE_GC_OLD,
            r"\[Full GC" + TRIGGER_OPT + r"\s+" + transition("combined") + LEGACY_SECS,
            guard="[Full GC",
            families=[SERIAL, PARALLEL, CMS],
        ),
        legacy(
            kind.G1_FULL_GC_SERIAL,
            r"\[Full GC \(" + TRIGGER + r"\)\s+" + transition("combined")
            + G1_LEGACY_METASPACE + LEGACY_SECS,
            guard="[Full GC",
            families=[G1],
        ),
        legacy(
            kind.G1_REMARK,
            r"\[GC remark(?: .*?)?" + LEGACY_SECS,
            guard="[GC remark",
            families=[G1],
        ),
        legacy(
            kind.G1_CLEANUP,
            r"\[GC cleanup(?: " + transition("combined") + r")?" + LEGACY_SECS,
            guard="[GC cleanup",
            families=[G1],
        ),
        legacy(
            kind.G1_CONCURRENT,
            r"\[GC concurrent-(?P<phase>[a-z-]+?)"
            r"(?:-start|-end, " + duration(r" secs") + r"|-abort)\]",
            guard="[GC concurrent-",
            families=[G1],
        ),
        legacy(
            kind.VERBOSE_GC_YOUNG,
            r"\[GC" + TRIGGER_OPT + r"\s+" + transition("combined") + LEGACY_SECS,
            guard="[GC",
        ),
        legacy(
            kind.APPLICATION_STOPPED_TIME,
            r"Total time for which application threads were stopped: " + duration(r" seconds")
            + r"(?:, Stopping threads took: " + DECIMAL + r" seconds)?",
            guard="Total time for which",
        ),
        legacy(
            kind.APPLICATION_CONCURRENT_TIME,
            r"Application time: " + DECIMAL + r" seconds",
            guard="Application time:",
        ),
        legacy_plain(
            kind.HEADER_VERSION,
            r"^(?:OpenJDK|Java HotSpot\(TM\)) .+? VM \(.+?\) for .+$",
            guard=" VM (",
            extractor=_extract_version,
        ),
        legacy_plain(
            kind.HEADER_MEMORY,
            r"^Memory: \d+k page, physical (?P<physical_memory>\d+)k"
            r"\((?P<physical_memory_free>\d+)k free\)"
            r"(?:, swap (?P<swap>\d+)k\((?P<swap_free>\d+)k free\))?" + END,
            guard="Memory: ",
            extractor=_extract_physical_memory,
        ),
        legacy_plain(
            kind.HEADER_COMMAND_LINE_FLAGS,
            r"^CommandLine flags: (?P<options>.+?)" + END,
            guard="CommandLine flags:",
            extractor=_extract_command_line,
        ),
        legacy_plain(
            kind.HEAP_AT_GC,
            r"^(?:\{?Heap(?: (?:before|after) GC invocations=\d+ \(full \d+\):)?|\}"
            r"|\s+(?:par new generation|def new generation|tenured generation|PSYoungGen"
            r"|ParOldGen|PSOldGen|PSPermGen|concurrent mark-sweep generation"
            r"|concurrent-mark-sweep perm gen|compacting perm gen|garbage-first heap"
            r"|region size|eden space|from space|to   space|object space|the space"
            r"|Metaspace|class space|ro space|rw space)\b.*)" + END,
        ),
        legacy_plain(
            kind.TENURING_DISTRIBUTION,
            r"^(?:Desired survivor size \d+ bytes, new threshold \d+ \(max \d+\)"
            r"|- age\s+\d+:\s+\d+ bytes,\s+\d+ total)" + END,
        ),
    ]


# ============================================================
# UNIFIED CATALOG
# ============================================================

_USING_COLLECTORS: list[tuple[LogEventType, str, CollectorFamily]] = [
    (LogEventType.USING_SERIAL, r"Using Serial", SERIAL),
    (LogEventType.USING_PARALLEL, r"Using Parallel", PARALLEL),
    (LogEventType.USING_CMS, r"Using Concurrent Mark Sweep", CMS),
    (LogEventType.USING_G1, r"Using G1", G1),
    (LogEventType.USING_SHENANDOAH, r"Using Shenandoah", SHENANDOAH),
    (
        LogEventType.USING_Z,
        r"(?:Using The Z Garbage Collector|Initializing The Z Garbage Collector)",
        Z,
    ),
]

_Z_PAUSES: list[tuple[LogEventType, str]] = [
    (LogEventType.Z_MARK_START_YOUNG_AND_OLD, r"Y: Pause Mark Start \(Major\)"),
    (LogEventType.Z_MARK_START_YOUNG, r"Y: Pause Mark Start"),
    (LogEventType.Z_MARK_END_YOUNG, r"Y: Pause Mark End"),
    (LogEventType.Z_RELOCATE_START_YOUNG, r"Y: Pause Relocate Start"),
    (LogEventType.Z_MARK_START_OLD, r"O: Pause Mark Start"),
    (LogEventType.Z_MARK_END_OLD, r"O: Pause Mark End"),
    (LogEventType.Z_RELOCATE_START_OLD, r"O: Pause Relocate Start"),
    (LogEventType.Z_MARK_START, r"Pause Mark Start"),
    (LogEventType.Z_MARK_END, r"Pause Mark End"),
    (LogEventType.Z_RELOCATE_START, r"Pause Relocate Start"),
]

_Z_COLLECTIONS: list[tuple[LogEventType, str]] = [
    (LogEventType.Z_GARBAGE_COLLECTION, r"Garbage Collection"),
    (LogEventType.Z_MAJOR_COLLECTION, r"Major Collection"),
    (LogEventType.Z_MINOR_COLLECTION, r"Minor Collection"),
]

_HEADER_BODIES = (
    r"Version: (?P<version>.+?)",
    r"CPUs: \d+ total, \d+ available",
    r"Memory: (?P<memory>\d+[BKMG])",
    r"Large Page Support: .+",
    r"NUMA Support: .+",
    r"Compressed Oops: .+",
    r"Heap Region Size: .+",
    r"Heap (?:Min|Initial|Max) Capacity: .+",
    r"(?:Min|Initial|Max|Soft Max) Capacity: .+",
    r"Pre-touch: .+",
    r"Parallel Workers: \d+",
    r"Concurrent Workers: \d+",
    r"Concurrent Refinement Workers: \d+",
    r"Periodic GC: .+",
    r"CardTable entry size: \d+",
    r"Card Set container configuration: .+",
    r"Heap Backing .+",
    r"Address Space .+",
    r"Medium Page Size: .+",
    r"Runtime Workers: .+",
    r"GC Workers.+",
    r"Probing address space .+",
    r"Available space on backing filesystem: .+",
    r"Mode: .+",
    r"Heuristics: .+",
    r"Humongous object threshold: .+",
    r"Max TLAB size: .+",
    r"Reference Processing: .+",
    r"Region size: .+",
    r"Initialize mark stack with .+",
    r"Uncommit: .+",
)

_INFO_BODIES = (
    r"Using \d+ (?:workers )?of \d+(?: workers)? for .+",
    r"[YO]: Using \d+ Workers for .+",
    r"[YO]: (?:Young|Old) Generation",
    r"Pacer for .+",
    r"Free: .+",
    r"Evacuation Reserve: .+",
    r"Collectable Garbage: .+",
    r"Immediate Garbage: .+",
    r"Good progress for .+",
    r"Adaptive CSet Selection\..+",
    r"Cancelling GC: .+",
    r"Failed to allocate .+",
    r"Uncommitted .+",
    r"Heuristics ergonomically sets .+",
)


def unified_grammars() -> list[Grammar]:
    kind = LogEventType
    grammars = [
        unified(
            using_kind,
            text,
            guard="Garbage Collector" if family is Z else "Using ",
            families=[family],
        )
        for using_kind, text, family in _USING_COLLECTORS
    ]
    grammars += [
        unified(
            kind.UNIFIED_HEADER,
            r"(?:" + "|".join(_HEADER_BODIES) + r")",
            extractor=_extract_unified_header,
        ),
        Grammar(
            kind.UNIFIED_HEAP_EXIT,
            r"(?=.*\[gc,heap,exit\s*\])" + UNIFIED_DECORATOR + r".*" + END,
            guard="exit",
        ),
        Grammar(kind.UNIFIED_BLANK_LINE, UNIFIED_DECORATOR + END),
        unified(kind.GC_INFO, r"(?:" + "|".join(_INFO_BODIES) + r")"),
        # Region-detailed pauses assembled by the preprocessor
        unified(
            kind.UNIFIED_SERIAL_NEW,
            r"Pause Young \(" + TRIGGER + r"\)" + _unified_regions("DefNew", "Tenured")
            + UNIFIED_COMBINED + UNIFIED_MS,
            guard="DefNew:",
            families=[SERIAL],
        ),
        unified(
            kind.UNIFIED_SERIAL_OLD,
            r"Pause Full \(" + TRIGGER + r"\)" + _unified_regions("DefNew", "Tenured")
            + UNIFIED_COMBINED + UNIFIED_MS,
            guard="Tenured:",
            families=[SERIAL],
        ),
        unified(
            kind.UNIFIED_PARALLEL_SCAVENGE,
            r"Pause Young \(" + TRIGGER + r"\)" + _unified_regions("PSYoungGen", "ParOldGen")
            + UNIFIED_COMBINED + UNIFIED_MS,
            guard="PSYoungGen:",
            families=[PARALLEL],
        ),
        unified(
            kind.UNIFIED_PARALLEL_COMPACTING_OLD,
            r"Pause Full \(" + TRIGGER + r"\)" + _unified_regions("PSYoungGen", "ParOldGen")
            + UNIFIED_COMBINED + UNIFIED_MS,
            guard="ParOldGen:",
            families=[PARALLEL],
        ),
        unified(
            kind.UNIFIED_PAR_NEW,
            r"Pause Young \(" + TRIGGER + r"\)" + _unified_regions("ParNew", "CMS")
            + UNIFIED_COMBINED + UNIFIED_MS,
            guard="ParNew:",
            families=[CMS],
        ),
        # Summary-only pauses shared by several collectors
        unified(
            kind.UNIFIED_YOUNG,
            r"Pause Young \((?!G1 )" + TRIGGER + r"\)" + UNIFIED_COMBINED + UNIFIED_MS,
            guard="Pause Young",
            families=[SERIAL, PARALLEL, CMS],
        ),
        unified(
            kind.UNIFIED_OLD,
            r"Pause Full \(" + TRIGGER + r"\)" + UNIFIED_COMBINED + UNIFIED_MS,
            guard="Pause Full",
            families=[SERIAL, PARALLEL, CMS],
        ),
        unified(
            kind.UNIFIED_CMS_INITIAL_MARK,
            r"Pause Initial Mark" + UNIFIED_COMBINED + UNIFIED_MS,
            guard="Pause Initial Mark",
            families=[CMS],
        ),
        unified(
            kind.UNIFIED_REMARK,
            r"Pause Remark" + METASPACE_OPT + UNIFIED_COMBINED + UNIFIED_MS,
            guard="Pause Remark",
            families=[CMS, G1],
        ),
        unified(
            kind.UNIFIED_G1_YOUNG_PREPARE_MIXED,
            r"Pause Young \(Prepare Mixed\) \(" + TRIGGER + r"\)" + EVACUATION_FAILURE
            + METASPACE_OPT + UNIFIED_COMBINED + UNIFIED_MS,
            guard="Prepare Mixed",
            families=[G1],
        ),
        unified(
            kind.UNIFIED_G1_MIXED_PAUSE,
            r"Pause (?:Young \(Mixed\)|Mixed) \(" + TRIGGER + r"\)" + EVACUATION_FAILURE
            + METASPACE_OPT + UNIFIED_COMBINED + UNIFIED_MS,
            guard="Mixed",
            families=[G1],
        ),
        unified(
            kind.UNIFIED_G1_YOUNG_INITIAL_MARK,
            r"Pause (?:Young \(Concurrent Start\)|Initial Mark) \(" + TRIGGER + r"\)"
            + EVACUATION_FAILURE + METASPACE_OPT + UNIFIED_COMBINED + UNIFIED_MS,
            guard="Pause ",
            families=[G1],
        ),
        unified(
            kind.UNIFIED_G1_YOUNG_PAUSE,
            r"Pause Young (?:\(Normal\) )?\(" + TRIGGER + r"\)" + EVACUATION_FAILURE
            + METASPACE_OPT + UNIFIED_COMBINED + UNIFIED_MS,
            guard="Pause Young",
            families=[G1],
        ),
        unified(
            kind.UNIFIED_G1_FULL_GC,
            r"Pause Full \(" + TRIGGER + r"\)" + METASPACE_OPT + UNIFIED_COMBINED + UNIFIED_MS,
            guard="Pause Full",
            families=[G1],
        ),
        unified(
            kind.UNIFIED_G1_CLEANUP,
            r"Pause Cleanup" + UNIFIED_COMBINED + UNIFIED_MS,
            guard="Pause Cleanup",
            families=[G1],
        ),
        unified(
            kind.SHENANDOAH_INIT_MARK,
            r"Pause Init Mark" + PHASE_NOTES + UNIFIED_MS,
            guard="Pause Init Mark",
            families=[SHENANDOAH],
        ),
        unified(
            kind.SHENANDOAH_FINAL_MARK,
            r"Pause Final Mark" + PHASE_NOTES + r"(?:" + UNIFIED_COMBINED + r")?" + UNIFIED_MS,
            guard="Pause Final Mark",
            families=[SHENANDOAH],
        ),
        unified(
            kind.SHENANDOAH_INIT_UPDATE,
            r"Pause Init Update Refs(?:" + UNIFIED_COMBINED + r")?" + UNIFIED_MS,
            guard="Pause Init Update Refs",
            families=[SHENANDOAH],
        ),
        unified(
            kind.SHENANDOAH_FINAL_UPDATE,
            r"Pause Final Update Refs(?:" + UNIFIED_COMBINED + r")?" + UNIFIED_MS,
            guard="Pause Final Update Refs",
            families=[SHENANDOAH],
        ),
        unified(
            kind.SHENANDOAH_DEGENERATED_GC,
            r"Pause Degenerated GC \((?P<phase>[A-Za-z ]+)\)" + METASPACE_OPT
            + UNIFIED_COMBINED + UNIFIED_MS,
            guard="Pause Degenerated GC",
            families=[SHENANDOAH],
        ),
        unified(
            kind.SHENANDOAH_FULL_GC,
            r"Pause Full" + METASPACE_OPT + UNIFIED_COMBINED + UNIFIED_MS,
            guard="Pause Full",
            families=[SHENANDOAH],
        ),
        unified(
            kind.SHENANDOAH_TRIGGER,
            r"Trigger(?: \([A-Z]+\))?: .+",
            guard="Trigger",
            families=[SHENANDOAH],
        ),
    ]
    grammars += [
        unified(z_kind, body + UNIFIED_MS, guard="Pause ", families=[Z])
        for z_kind, body in _Z_PAUSES
    ]
    grammars += [
        unified(
            z_kind,
            body + r" \(" + TRIGGER + r"\)"
            r"(?: " + size("combined_init") + r"\(\d+%\)->" + size("combined_end") + r"\(\d+%\))?"
            r"(?: " + duration("s") + r")?",
            guard="Collection",
            families=[Z],
            duration_unit="secs",
        )
        for z_kind, body in _Z_COLLECTIONS
    ]
    grammars += [
        unified(
            kind.Z_METASPACE,
            r"Metaspace: " + size("perm_end") + r" used, " + size("perm_space")
            + r" committed, " + SIZE + r" reserved",
            guard="reserved",
            families=[Z],
            extractor=_extract_z_metaspace,
        ),
        unified(
            kind.UNIFIED_CONCURRENT,
            r"(?:[YO]: )?Concurrent (?P<phase>[A-Za-z][A-Za-z\- ]*?)(?: \([^)]*\))?"
            r"(?: " + transition("combined") + r")?(?: " + duration("ms") + r")?",
            guard="Concurrent ",
        ),
        unified(
            kind.UNIFIED_SAFEPOINT,
            r'Safepoint "(?P<operation>[A-Za-z0-9_]+)", Time since last: \d+ ns,'
            r" Reaching safepoint: \d+ ns,(?: Cleanup: \d+ ns,)? At safepoint: \d+ ns,"
            r" Total: (?P<duration>\d+) ns",
            guard='Safepoint "',
            duration_unit="ns",
        ),
        unified(
            kind.UNIFIED_APPLICATION_STOPPED_TIME,
            r"Total time for which application threads were stopped: " + duration(r" seconds")
            + r"(?:, Stopping threads took: " + DECIMAL + r" seconds)?",
            guard="Total time for which",
            duration_unit="secs",
        ),
    ]
    return grammars


def build_default_registry() -> GrammarRegistry:
    """Unified grammars first: their bracketed decorator never matches legacy text."""
    return GrammarRegistry([*unified_grammars(), *legacy_grammars()])


DEFAULT_REGISTRY = build_default_registry()
