"""Run configuration."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from gc_digest.units import ensure_aware


class DiagnosticThresholds(BaseModel):
    """Configurable thresholds for the analysis rules."""

    # First blocking event later than this means the log does not start at JVM start
    first_timestamp_threshold_ms: int = Field(default=60 * 60 * 1000, ge=0)

    # GC pause time as a percentage of total stopped time below which stops are not GC-driven
    gc_stopped_ratio_percentage: int = Field(default=80, ge=0, le=100)

    thread_stack_size_large_kb: int = Field(default=1024, ge=0)


class AnalysisSettings(BaseModel):
    """Inputs that do not come from the log itself."""

    model_config = ConfigDict(frozen=True)

    # Parallelism (percent of CPU over wall time) below which an event counts as inverted
    low_parallelism_threshold: int = Field(default=100, ge=0)

    jvm_start_time: datetime | None = None

    # Environment metadata; values read from the log header are used when these are unset
    version: str | None = None
    options: str | None = None
    physical_memory: int | None = Field(default=None, ge=0)
    physical_memory_free: int | None = Field(default=None, ge=0)
    swap: int | None = Field(default=None, ge=0)
    swap_free: int | None = Field(default=None, ge=0)

    thresholds: DiagnosticThresholds = Field(default_factory=DiagnosticThresholds)

    @field_validator("jvm_start_time")
    @classmethod
    def _attach_timezone(cls, value: datetime | None) -> datetime | None:
        return ensure_aware(value) if value is not None else None
