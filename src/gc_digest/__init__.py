"""Parse JVM garbage collection logs into an ordered event store."""

from __future__ import annotations

from gc_digest.analysis import Analysis, run_analysis
from gc_digest.errors import GcDigestError, StoreNotFreshError
from gc_digest.pipeline import Pipeline, analyze_lines
from gc_digest.settings import AnalysisSettings, DiagnosticThresholds
from gc_digest.store import JvmStore

__version__ = "1.0.0"

__all__ = [
    "Analysis",
    "AnalysisSettings",
    "DiagnosticThresholds",
    "GcDigestError",
    "JvmStore",
    "Pipeline",
    "StoreNotFreshError",
    "analyze_lines",
    "run_analysis",
]
