"""Identify which grammar a logical line belongs to."""

from __future__ import annotations

import re
from collections.abc import Collection
from typing import NamedTuple

from gc_digest.catalog import DEFAULT_REGISTRY
from gc_digest.events import CollectorFamily, LogEventType
from gc_digest.grammars import Grammar, GrammarRegistry


class Classification(NamedTuple):
    grammar: Grammar
    match: re.Match[str]

    @property
    def kind(self) -> LogEventType:
        return self.grammar.kind


class Classifier:
    """Apply grammars in priority order; the first match wins.

    When the collector family is already known, a first match that belongs only
    to other families yields to the first later match that agrees with the
    known family. This settles lines whose text is identical across
    collectors, e.g. ``Pause Full (System.gc()) 8M->7M(24M) 16.870ms``.
    """

    def __init__(self, registry: GrammarRegistry | None = None) -> None:
        self.registry = registry if registry is not None else DEFAULT_REGISTRY

    def classify(
        self, line: str, families: Collection[CollectorFamily] = ()
    ) -> Classification | None:
        known = {family for family in families if family is not CollectorFamily.UNKNOWN}
        first: Classification | None = None
        for grammar in self.registry:
            if (match := grammar.match(line)) is None:
                continue
            candidate = Classification(grammar, match)
            if not known or not grammar.families or grammar.families & known:
                return candidate
            if first is None:
                first = candidate
        return first

    def identify(self, line: str, families: Collection[CollectorFamily] = ()) -> LogEventType:
        """Kind of the line, UNKNOWN when no grammar matches."""
        if (classification := self.classify(line, families)) is None:
            return LogEventType.UNKNOWN
        return classification.kind
