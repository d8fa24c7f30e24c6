"""Drive raw log lines through preprocessing, classification, extraction and storage."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from gc_digest.classifier import Classifier
from gc_digest.errors import StoreNotFreshError
from gc_digest.events import (
    Z_COLLECTION_KINDS,
    Z_PAUSE_KINDS,
    GCEvent,
    LogEventType,
    MemoryRegion,
)
from gc_digest.grammars import GrammarRegistry
from gc_digest.patterns import TimestampResolver
from gc_digest.preprocess import LogicalLine, Preprocessor
from gc_digest.settings import AnalysisSettings
from gc_digest.store import JvmStore
from gc_digest.triggers import Trigger

logger = logging.getLogger(__name__)


class ZCycleTracker:
    """Backfill trigger and metaspace onto Z pauses of the same cycle.

    Z logs the cycle trigger on its ``gc,start`` line and again on the closing
    summary, and logs metaspace only once per cycle. Pauses seen in between are
    completed through the event setters once that information arrives.
    """

    def __init__(self) -> None:
        self._triggers: dict[int, Trigger] = {}
        self._pauses: dict[int, list[GCEvent]] = {}
        self._metaspace: dict[int, MemoryRegion] = {}

    def observe(self, event: GCEvent) -> None:
        if event.gc_id is None:
            return
        if event.kind in Z_PAUSE_KINDS:
            if event.trigger is None and (trigger := self._triggers.get(event.gc_id)):
                event.set_trigger(trigger)
            if event.perm is None and (metaspace := self._metaspace.get(event.gc_id)):
                event.set_perm_metaspace(metaspace)
            self._pauses.setdefault(event.gc_id, []).append(event)
        elif event.kind is LogEventType.Z_METASPACE and event.perm is not None:
            self._metaspace[event.gc_id] = event.perm
            for pause in self._pauses.get(event.gc_id, []):
                if pause.perm is None:
                    pause.set_perm_metaspace(event.perm)
        elif event.kind in Z_COLLECTION_KINDS and event.trigger is not None:
            self._triggers[event.gc_id] = event.trigger
            for pause in self._pauses.get(event.gc_id, []):
                if pause.trigger is None:
                    pause.set_trigger(event.trigger)
            if event.combined is not None and event.combined.occupancy_end is not None:
                # Summary line closes the cycle
                self._pauses.pop(event.gc_id, None)
                self._triggers.pop(event.gc_id, None)
                self._metaspace.pop(event.gc_id, None)


class Pipeline:
    """One analysis run over one log into one store."""

    def __init__(
        self,
        store: JvmStore | None = None,
        settings: AnalysisSettings | None = None,
        registry: GrammarRegistry | None = None,
    ) -> None:
        self.store = store if store is not None else JvmStore()
        if not self.store.is_fresh:
            raise StoreNotFreshError("Store already holds a run; call reset() before reusing it")
        self.store.claim()
        self.settings = settings if settings is not None else AnalysisSettings()
        self.classifier = Classifier(registry)
        self.preprocessor = Preprocessor(self.classifier)
        self.resolver = TimestampResolver(self.settings.jvm_start_time)
        self.z_cycles = ZCycleTracker()
        self.lines_read = 0
        self._apply_configured_metadata()

    def feed(self, line: str) -> None:
        self.lines_read += 1
        for logical in self.preprocessor.feed(line):
            self._process(logical)

    def feed_all(self, lines: Iterable[str]) -> JvmStore:
        for line in lines:
            self.feed(line)
        return self.finish()

    def finish(self) -> JvmStore:
        for logical in self.preprocessor.finish():
            self._process(logical)
        logger.info(
            "Processed %d lines: %d blocking events, %d unidentified",
            self.lines_read,
            self.store.blocking_event_count,
            len(self.store.unidentified_log_lines),
        )
        return self.store

    def _process(self, logical: LogicalLine) -> None:
        if logical.unidentified:
            self.store.add_unidentified(logical.text)
            return

        classification = self.classifier.classify(logical.text, self.store.collector_families)
        if classification is None:
            logger.debug("Unidentified line: %s", logical.text)
            self.store.add_unidentified(logical.text)
            return

        try:
            event = classification.grammar.extract(classification.match, self.resolver)
        except ValueError as exc:
            logger.debug("Could not extract %s: %s", classification.kind.value, exc)
            self.store.add_unidentified(logical.text)
            return

        self._capture_metadata(event)
        self.z_cycles.observe(event)
        if event.parallel:
            self.store.record_parallelism(event, self.settings.low_parallelism_threshold)
        self.store.insert(event)

    def _capture_metadata(self, event: GCEvent) -> None:
        """Keep header facts the settings did not already provide."""
        store = self.store
        store.add_collector_family(event.family)
        attributes = event.attributes
        if not attributes:
            return
        if store.version is None and (version := attributes.get("version")):
            store.version = version
        if store.options is None and (options := attributes.get("options")):
            store.options = options
        if store.memory is None and (memory := attributes.get("memory")):
            store.memory = memory
        if self.settings.physical_memory is None and "physical_memory" in attributes:
            store.physical_memory = int(attributes["physical_memory"])
            store.physical_memory_free = int(attributes.get("physical_memory_free", 0))
        if self.settings.swap is None and "swap" in attributes:
            store.swap = int(attributes["swap"])
            store.swap_free = int(attributes.get("swap_free", 0))

    def _apply_configured_metadata(self) -> None:
        settings, store = self.settings, self.store
        if settings.version is not None:
            store.version = settings.version
        if settings.options is not None:
            store.options = settings.options
        if settings.physical_memory is not None:
            store.physical_memory = settings.physical_memory
        if settings.physical_memory_free is not None:
            store.physical_memory_free = settings.physical_memory_free
        if settings.swap is not None:
            store.swap = settings.swap
        if settings.swap_free is not None:
            store.swap_free = settings.swap_free


def analyze_lines(
    lines: Iterable[str],
    settings: AnalysisSettings | None = None,
    store: JvmStore | None = None,
) -> JvmStore:
    """Run a complete pass over ``lines`` and return the populated store."""
    return Pipeline(store, settings).feed_all(lines)
