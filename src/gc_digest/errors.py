"""Errors raised to callers of the library."""

from __future__ import annotations


class GcDigestError(Exception):
    """Base class for errors a caller is expected to handle."""


class StoreNotFreshError(GcDigestError):
    """A run was started against a store that already holds another run's events."""


class LogReadError(GcDigestError):
    """The log file could not be opened or decoded."""
