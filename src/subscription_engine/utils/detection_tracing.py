"""
Observability utilities for subscription detection runs.

The detection algorithm never writes diagnostics directly. Instead it emits
structured events to an injected tracer, and records per-stage timings in a
DetectionRunMetrics object:
- Normalization time
- Grouping time
- Group analysis time
- Total execution time
- Input, normalized, group and candidate counts
"""

import time
import logging
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

SLOW_RUN_WARNING_MS = 2000
SLOW_RUN_ERROR_MS = 10000


@dataclass
class TraceEvent:
    """A single structured event emitted during detection."""
    name: str
    fields: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class DetectionTracer:
    """
    Collaborator that receives structured events from the detection engine.

    Subclasses decide where events go. The base implementation discards them.
    """

    def emit(self, event: str, **fields: Any) -> None:
        pass


class NullTracer(DetectionTracer):
    """Tracer that ignores every event."""


class LoggingTracer(DetectionTracer):
    """
    Forwards events to the standard logging module.

    Run-level events are logged at INFO, per-group events at DEBUG.
    """

    RUN_EVENTS = frozenset({'detection_started', 'detection_completed'})

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logger

    def emit(self, event: str, **fields: Any) -> None:
        level = logging.INFO if event in self.RUN_EVENTS else logging.DEBUG
        if not self.log.isEnabledFor(level):
            return
        summary = ", ".join(f"{key}={value}" for key, value in fields.items())
        self.log.log(level, f"{event}: {summary}", extra={'detection_event': {'event': event, **fields}})


class RecordingTracer(DetectionTracer):
    """Keeps every event in memory, in emission order."""

    def __init__(self):
        self.events: List[TraceEvent] = []

    def emit(self, event: str, **fields: Any) -> None:
        self.events.append(TraceEvent(name=event, fields=dict(fields)))

    def named(self, event: str) -> List[TraceEvent]:
        return [e for e in self.events if e.name == event]


@dataclass
class DetectionRunMetrics:
    """Container for detection run performance metrics."""
    operation_name: str = "subscription_detection"
    start_time: float = field(default_factory=time.time)
    end_time: Optional[float] = None
    elapsed_ms: Optional[float] = None
    transaction_count: int = 0
    normalized_count: int = 0
    group_count: int = 0
    candidate_count: int = 0
    stage_ms: Dict[str, float] = field(default_factory=dict)

    def finish(self):
        """Mark the run as finished and calculate elapsed time."""
        self.end_time = time.time()
        self.elapsed_ms = (self.end_time - self.start_time) * 1000

    def stage(self, stage_name: str) -> "StageTimer":
        """
        Context manager timing one stage of the run.

        Usage:
            with metrics.stage('normalization'):
                normalized = normalize(transactions)
        """
        return StageTimer(self, stage_name)

    def to_dict(self) -> Dict[str, Any]:
        """Convert metrics to dictionary for logging."""
        return {
            'operation_name': self.operation_name,
            'elapsed_ms': self.elapsed_ms,
            'transaction_count': self.transaction_count,
            'normalized_count': self.normalized_count,
            'group_count': self.group_count,
            'candidate_count': self.candidate_count,
            'stage_ms': dict(self.stage_ms),
            'timestamp': datetime.now(timezone.utc).isoformat()
        }

    def log_metrics(self):
        """Log the run metrics, escalating the level for slow runs."""
        metrics = self.to_dict()
        elapsed = self.elapsed_ms or 0.0

        if elapsed > SLOW_RUN_ERROR_MS:
            logger.error(
                f"SLOW DETECTION RUN: {self.operation_name} took {elapsed:.2f}ms "
                f"for {self.transaction_count} transactions",
                extra={'detection_metrics': metrics}
            )
        elif elapsed > SLOW_RUN_WARNING_MS:
            logger.warning(
                f"Slow detection run: {self.operation_name} took {elapsed:.2f}ms "
                f"for {self.transaction_count} transactions",
                extra={'detection_metrics': metrics}
            )
        else:
            logger.info(
                f"Detection run completed: {self.operation_name} in {elapsed:.2f}ms",
                extra={'detection_metrics': metrics}
            )

        if self.stage_ms:
            breakdown = ", ".join(f"{name}: {ms:.2f}ms" for name, ms in self.stage_ms.items())
            logger.debug(
                f"Detection run breakdown for {self.operation_name}: {breakdown}",
                extra={'detection_metrics': metrics}
            )


class StageTimer:
    """Times one named stage and stores the result on the owning metrics."""

    def __init__(self, metrics: DetectionRunMetrics, stage: str):
        self.metrics = metrics
        self.stage = stage
        self.start_time: float = 0.0

    def __enter__(self):
        self.start_time = time.time()
        logger.debug(f"Starting stage: {self.stage}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        elapsed_ms = (time.time() - self.start_time) * 1000
        self.metrics.stage_ms[self.stage] = elapsed_ms
        logger.debug(f"Completed stage {self.stage} in {elapsed_ms:.2f}ms")
