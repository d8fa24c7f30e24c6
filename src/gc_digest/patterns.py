"""Shared regular expression fragments and timestamp resolution.

Grammars are assembled from these fragments so that every memory, duration and
decorator token is captured through a named group with a predictable name:
``<region>_init``, ``<region>_end``, ``<region>_space`` for memory,
``duration`` for the event duration, ``user``/``sys``/``real`` for CPU times.
"""

from __future__ import annotations

from datetime import datetime

from gc_digest.units import (
    MillisValue,
    ensure_aware,
    millis_between,
    parse_datestamp,
    secs_to_millis,
)

# ============================================================
# TOKENS
# ============================================================

SIZE = r"\d+(?:[.,]\d+)?[BKMG]"
DECIMAL = r"\d+[.,]\d+"
DATESTAMP = r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}[.,]\d{3}(?:[-+]\d{2}:?\d{2}|Z)"
UPTIME = r"\d+[.,]\d{3}"

# Trigger text inside parentheses; System.gc() is the only cause containing parentheses.
TRIGGER = r"(?P<trigger>System\.gc\(\)|[^()]+)"

END = r"\s*$"

# ============================================================
# DECORATORS
# ============================================================

UNIFIED_DECORATOR = (
    r"^(?=\[)"
    r"(?:\[(?P<datestamp>" + DATESTAMP + r")\])?"
    r"(?:\[(?P<uptime>" + UPTIME + r")s\])?"
    r"(?:\[(?P<uptimemillis>\d+)ms\])?"
    r"(?:\[\d+ns\])?"
    r"(?:\[\d+\]){0,2}"  # pid, tid
    r"(?:\[(?:trace|debug|info|warning|error)\s*\])?"
    r"(?:\[(?P<tags>[a-z0-9_,+]+?)\s*\])?"
    r" (?:GC\((?P<gc_id>\d+)\) )?"
)

LEGACY_DECORATOR = (
    r"^(?:(?P<datestamp>" + DATESTAMP + r"): )?"
    r"(?:(?P<uptime>" + UPTIME + r"): )?"
)

# Nested timestamps inside legacy lines, e.g. "[GC (Allocation Failure) 2.345: [DefNew: ..."
INNER_TIMESTAMP = r"(?:" + DATESTAMP + r": )?(?:" + UPTIME + r": )?"

UNIFIED_TIMES = (
    r"(?: User=(?P<user>" + DECIMAL + r")s"
    r" Sys=(?P<sys>" + DECIMAL + r")s"
    r" Real=(?P<real>" + DECIMAL + r")s)?"
)

LEGACY_TIMES = (
    r"(?: \[Times: user=(?P<user>" + DECIMAL + r")"
    r" sys=(?P<sys>" + DECIMAL + r"),"
    r" real=(?P<real>" + DECIMAL + r") secs\])?"
)


def size(name: str) -> str:
    return r"(?P<" + name + r">" + SIZE + r")"


def transition(region: str, *, capacity_before: bool = False) -> str:
    """``init->end(space)``; unified JDK17 output also allows ``init(cap)->end(space)``."""
    before = r"(?:\(" + SIZE + r"\))?" if capacity_before else ""
    return (
        size(region + "_init")
        + before
        + r"->"
        + size(region + "_end")
        + r"\("
        + size(region + "_space")
        + r"\)"
    )


def occupancy(region: str) -> str:
    """Snapshot ``end(space)`` without a before value."""
    return size(region + "_end") + r"\(" + size(region + "_space") + r"\)"


def duration(unit: str) -> str:
    """Duration token followed by its unit suffix (``ms``, `` secs``, ``s``)."""
    return r"(?P<duration>" + DECIMAL + r")" + unit


def is_start_tagged(tags: str | None) -> bool:
    return tags is not None and "start" in tags.split(",")


# ============================================================
# TIMESTAMPS
# ============================================================


class TimestampResolver:
    """Resolve decorator timestamps to milliseconds since JVM start.

    Precedence is uptime millis, then uptime seconds, then datestamp. A
    datestamp-only line is measured against the configured JVM start; with no
    start configured, the first datestamp seen becomes the reference.
    """

    def __init__(self, jvm_start: datetime | None = None) -> None:
        self.jvm_start = ensure_aware(jvm_start) if jvm_start is not None else None

    def resolve(
        self,
        datestamp: str | None = None,
        uptime: str | None = None,
        uptimemillis: str | None = None,
    ) -> MillisValue:
        if uptimemillis is not None:
            return int(uptimemillis)
        if uptime is not None:
            return secs_to_millis(uptime)
        if datestamp is not None:
            moment = parse_datestamp(datestamp)
            if self.jvm_start is None:
                self.jvm_start = moment
            return millis_between(self.jvm_start, moment)
        return 0
