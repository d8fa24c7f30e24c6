"""Reassemble collection events that the JVM logs across several lines.

Unified logging (JDK9+) spreads one pause over a ``gc,start`` line, per-region
``gc,heap`` lines, a ``gc,metaspace`` line, the pause summary and a ``gc,cpu``
line, all sharing the same ``GC(n)`` sequence id. Legacy G1 logging with
``-XX:+PrintGCDetails`` prints a pause header followed by indented detail lines
and a ``[Times: ...]`` line. Both are folded here into one logical line that a
single grammar can match.
"""

from __future__ import annotations

import logging
import re

from pydantic import BaseModel, ConfigDict

from gc_digest.classifier import Classifier
from gc_digest.patterns import (
    DECIMAL,
    LEGACY_DECORATOR,
    SIZE,
    UNIFIED_DECORATOR,
    is_start_tagged,
)

logger = logging.getLogger(__name__)

TRANSITION = SIZE + r"(?:\(" + SIZE + r"\))?->" + SIZE + r"\(" + SIZE + r"\)"

UNIFIED_LINE_PATTERN: re.Pattern[str] = re.compile(UNIFIED_DECORATOR + r"(?P<body>.*?)\s*$")

START_BODY_PATTERN: re.Pattern[str] = re.compile(
    r"Pause (?:Young|Full|Remark|Cleanup|Initial Mark|Mixed|Init Mark|Final Mark"
    r"|Init Update Refs|Final Update Refs|Degenerated GC)"
    r"(?: \([^()]*(?:\(\))?\))*$"
)
SUMMARY_BODY_PATTERN: re.Pattern[str] = re.compile(
    r"(?P<head>Pause .+?) (?P<tail>(?:" + TRANSITION + r" )?" + DECIMAL + r"ms)$"
)
CPU_BODY_PATTERN: re.Pattern[str] = re.compile(
    r"User=" + DECIMAL + r"s Sys=" + DECIMAL + r"s Real=" + DECIMAL + r"s$"
)
HEAP_BODY_PATTERN: re.Pattern[str] = re.compile(
    r"(?P<name>DefNew|PSYoungGen|ParNew|Tenured|ParOldGen|CMS): "
    r"(?P<transition>" + TRANSITION + r")"
)
METASPACE_BODY_PATTERN: re.Pattern[str] = re.compile(
    r"Metaspace: (?P<transition>" + TRANSITION + r")"
)

YOUNG_REGIONS = frozenset({"DefNew", "PSYoungGen", "ParNew"})

LEGACY_G1_HEADER_PATTERN: re.Pattern[str] = re.compile(
    LEGACY_DECORATOR + r"\[(?:GC pause \(|Full GC \()"
)
LEGACY_DETAIL_PATTERN: re.Pattern[str] = re.compile(r"^\s+\[")
LEGACY_TIMES_PATTERN: re.Pattern[str] = re.compile(r"^\s*(?P<times>\[Times: user=.+ secs\])\s*$")
LEGACY_HEAP_PATTERN: re.Pattern[str] = re.compile(
    r"\[Eden: .*?Heap: (?P<init>" + SIZE + r")\(" + SIZE + r"\)->"
    r"(?P<end>" + SIZE + r")\((?P<space>" + SIZE + r")\)\]"
    r"(?:, \[Metaspace: (?P<metaspace>" + SIZE + r"->" + SIZE + r"\(" + SIZE + r"\))\])?"
)
LEGACY_HEADER_TAIL_PATTERN: re.Pattern[str] = re.compile(r", " + DECIMAL + r" secs\]$")


class LogicalLine(BaseModel):
    """One line handed to the classifier.

    ``unidentified`` marks fragments of an event that never completed; they go
    straight to the unidentified bucket.
    """

    model_config = ConfigDict(frozen=True)

    text: str
    unidentified: bool = False


class _PauseSlot:
    """Fragments collected for one unified pause."""

    def __init__(self, gc_id: int, prefix: str) -> None:
        self.gc_id = gc_id
        self.prefix = prefix
        self.head: str | None = None
        self.tail: str | None = None
        self.summary_line: str | None = None
        self.young: str | None = None
        self.old: str | None = None
        self.metaspace: str | None = None
        self.cpu: str | None = None
        self.started = False
        self.raw: list[str] = []

    @property
    def summarized(self) -> bool:
        return self.tail is not None

    def render(self) -> str:
        if not self.started and self.summary_line is not None and not self._has_extras():
            return self.summary_line
        parts = [self.head, self.young, self.old, self.metaspace, self.tail, self.cpu]
        return f"{self.prefix}GC({self.gc_id}) " + " ".join(part for part in parts if part)

    def _has_extras(self) -> bool:
        return any(part is not None for part in (self.young, self.old, self.metaspace, self.cpu))


class _LegacyG1Slot:
    """A legacy G1 pause header waiting for its detail lines."""

    def __init__(self, header: str) -> None:
        self.header = header.rstrip()
        self.heap: str | None = None
        self.metaspace: str | None = None
        self.times: str | None = None

    def render(self) -> str:
        text = self.header
        if (tail := LEGACY_HEADER_TAIL_PATTERN.search(text)) is not None:
            inserted = ""
            if self.heap is not None and "->" not in text:
                inserted += " " + self.heap
            if self.metaspace is not None:
                inserted += f", [Metaspace: {self.metaspace}]"
            text = text[: tail.start()] + inserted + text[tail.start() :]
        if self.times is not None:
            text += " " + self.times
        return text


class Preprocessor:
    """Turn raw lines into logical lines, one per event.

    Feed lines in order with :meth:`feed` and call :meth:`finish` at end of
    stream. Each call returns the logical lines that became complete. Pause
    fragments are collected per ``GC(n)`` id, so a concurrent phase logged by
    another cycle in the middle of a pause neither splits nor closes it.
    """

    def __init__(self, classifier: Classifier | None = None) -> None:
        self.classifier = classifier if classifier is not None else Classifier()
        self._slots: dict[int, _PauseSlot] = {}
        self._legacy: _LegacyG1Slot | None = None

    def feed(self, line: str) -> list[LogicalLine]:
        line = line.rstrip("\r\n")
        if (match := UNIFIED_LINE_PATTERN.match(line)) is not None:
            return self._release_legacy() + self._feed_unified(line, match)
        return self._feed_legacy(line)

    def finish(self) -> list[LogicalLine]:
        """Emit completed events still buffered and flush incomplete fragments."""
        return self._release_legacy() + self._release_all()

    # ------------------------------------------------------------
    # Unified logging
    # ------------------------------------------------------------

    def _feed_unified(self, line: str, match: re.Match[str]) -> list[LogicalLine]:
        if match.group("gc_id") is None:
            return [LogicalLine(text=line)]

        gc_id = int(match.group("gc_id"))
        body = match.group("body")
        prefix = line[: match.start("gc_id") - len("GC(")]

        if is_start_tagged(match.group("tags")) and START_BODY_PATTERN.match(body):
            # Pauses never overlap: a new pause ends every earlier one
            released = self._release_all()
            slot = self._slots[gc_id] = _PauseSlot(gc_id, prefix)
            slot.started = True
            slot.raw.append(line)
            return released

        if (slot := self._slots.get(gc_id)) is not None:
            return self._feed_same_id(slot, line, body)

        if (summary := SUMMARY_BODY_PATTERN.match(body)) is not None:
            slot = self._slots[gc_id] = _PauseSlot(gc_id, prefix)
            self._record_summary(slot, line, summary)
            return []

        return [LogicalLine(text=line)]

    def _feed_same_id(self, slot: _PauseSlot, line: str, body: str) -> list[LogicalLine]:
        if not slot.summarized and (summary := SUMMARY_BODY_PATTERN.match(body)) is not None:
            self._record_summary(slot, line, summary)
            return []
        if (heap := HEAP_BODY_PATTERN.match(body)) is not None:
            segment = f"{heap.group('name')}: {heap.group('transition')}"
            if heap.group("name") in YOUNG_REGIONS:
                slot.young = segment
            else:
                slot.old = segment
            slot.raw.append(line)
            return []
        if (metaspace := METASPACE_BODY_PATTERN.match(body)) is not None:
            slot.metaspace = f"Metaspace: {metaspace.group('transition')}"
            slot.raw.append(line)
            return []
        if CPU_BODY_PATTERN.match(body):
            slot.cpu = body
            slot.raw.append(line)
            return self._release(slot.gc_id) if slot.summarized else []
        if self._is_standalone(line):
            released = self._release(slot.gc_id) if slot.summarized else []
            return released + [LogicalLine(text=line)]
        slot.raw.append(line)
        return []

    @staticmethod
    def _record_summary(slot: _PauseSlot, line: str, summary: re.Match[str]) -> None:
        slot.head = summary.group("head")
        slot.tail = summary.group("tail")
        slot.summary_line = line
        slot.raw.append(line)

    def _is_standalone(self, line: str) -> bool:
        classification = self.classifier.classify(line)
        return classification is not None and classification.grammar.reportable

    def _release_all(self) -> list[LogicalLine]:
        released: list[LogicalLine] = []
        for gc_id in list(self._slots):
            released += self._release(gc_id)
        return released

    def _release(self, gc_id: int) -> list[LogicalLine]:
        slot = self._slots.pop(gc_id)
        if slot.summarized:
            return [LogicalLine(text=slot.render())]
        logger.debug("Flushing %d fragments of incomplete GC(%d)", len(slot.raw), slot.gc_id)
        return [LogicalLine(text=raw, unidentified=True) for raw in slot.raw]

    # ------------------------------------------------------------
    # Legacy G1 details
    # ------------------------------------------------------------

    def _feed_legacy(self, line: str) -> list[LogicalLine]:
        if (legacy := self._legacy) is not None:
            if (times := LEGACY_TIMES_PATTERN.match(line)) is not None:
                legacy.times = times.group("times")
                return self._release_legacy()
            if LEGACY_DETAIL_PATTERN.match(line):
                if "[Eden:" in line and (heap := LEGACY_HEAP_PATTERN.search(line)):
                    init, end, space = heap.group("init", "end", "space")
                    legacy.heap = f"{init}->{end}({space})"
                    legacy.metaspace = heap.group("metaspace")
                return []
        released = self._release_legacy()
        if LEGACY_G1_HEADER_PATTERN.match(line) and "[Times:" not in line:
            self._legacy = _LegacyG1Slot(line)
            return released
        return released + [LogicalLine(text=line)]

    def _release_legacy(self) -> list[LogicalLine]:
        legacy, self._legacy = self._legacy, None
        if legacy is None:
            return []
        return [LogicalLine(text=legacy.render())]
