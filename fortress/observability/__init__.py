"""
Observability & Audit Layer

RESPONSIBILITY: Diagnostics, metrics and the command audit trail
ALLOWED INPUTS: Copies of commands, events and errors from the engine
OUTPUTS: DebugError history, MetricPoints, AuditEntries

WHAT THIS LAYER MUST NOT DO:
============================
- Modify game behavior
- Append to, or read from, any event log
- Make decisions based on recorded data
- Be shared between sessions (every session gets its own DiagnosticsContext)

Collectors are append-only and bounded: the oldest points and entries
are dropped first. Readers get copies.
"""

from __future__ import annotations
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Deque, Dict, List, Optional, Tuple
import hashlib
import logging
import threading

from ..contracts.base import Error, Timestamp
from ..contracts.events import Event

logger = logging.getLogger(__name__)


# =============================================================================
# DIAGNOSTICS (per session)
# =============================================================================

@dataclass(frozen=True)
class DebugError:
    """One recorded failure."""
    message: str
    timestamp: str
    context: Optional[str] = None
    error: Optional[Error] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "message": self.message,
            "timestamp": self.timestamp,
            "context": self.context,
            "code": self.error.code.name if self.error else None,
        }


class DiagnosticsContext:
    """
    Bounded error history and debug output for one session.

    Injected by the engine when a session is created and closed with it.
    Once closed, debug output is dropped; recorded errors stay readable
    until cleared.
    """

    def __init__(self, session_id: str, debug: bool = False, max_error_history: int = 20):
        self.session_id = session_id
        self.debug = debug
        self._errors: Deque[DebugError] = deque(maxlen=max_error_history)
        self._closed = False
        self._logger = logger.getChild(session_id)

    @property
    def closed(self) -> bool:
        return self._closed

    def record_error(self, message: str, context: Optional[str] = None, error: Optional[Error] = None) -> DebugError:
        entry = DebugError(
            message=message,
            timestamp=Timestamp.now().to_iso(),
            context=context,
            error=error,
        )
        self._errors.append(entry)
        if self.debug and not self._closed:
            prefix = f"[{context}] " if context else ""
            self._logger.error("%s%s", prefix, message)
        return entry

    def last_error(self) -> Optional[DebugError]:
        return self._errors[-1] if self._errors else None

    def error_history(self) -> List[DebugError]:
        return list(self._errors)

    def clear(self) -> None:
        self._errors.clear()

    def debug_log(self, message: str, *args: object) -> None:
        if self.debug and not self._closed:
            self._logger.debug(message, *args)

    def debug_event(self, event: Event) -> None:
        if self.debug and not self._closed:
            self._logger.debug("event %s %s", event.type.value, event.data)

    def close(self) -> None:
        self._closed = True


# =============================================================================
# METRICS COLLECTOR
# =============================================================================

class MetricType(Enum):
    """Types of metrics collected."""
    COUNTER = "counter"
    GAUGE = "gauge"
    TIMING = "timing"


@dataclass
class MetricDefinition:
    """Definition of a metric to collect."""
    name: str
    metric_type: MetricType
    description: str
    labels: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class MetricPoint:
    """Immutable metric data point."""
    metric_name: str
    value: float
    timestamp: Timestamp
    labels: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)


DEFAULT_METRICS: Tuple[MetricDefinition, ...] = (
    MetricDefinition(
        name="commands_accepted_total",
        metric_type=MetricType.COUNTER,
        description="Commands that produced an appended event batch",
        labels=("command_type",)
    ),
    MetricDefinition(
        name="commands_rejected_total",
        metric_type=MetricType.COUNTER,
        description="Commands that failed validation; nothing was appended",
        labels=("command_type", "code")
    ),
    MetricDefinition(
        name="events_appended_total",
        metric_type=MetricType.COUNTER,
        description="Events appended to session logs",
    ),
    MetricDefinition(
        name="command_duration_ms",
        metric_type=MetricType.TIMING,
        description="Time spent validating and appending one command",
        labels=("command_type",)
    ),
)


class MetricsCollector:
    """
    Collect and aggregate engine metrics.

    Metrics are append-only time series data points.
    """

    def __init__(self, max_points_per_metric: int = 10000):
        self._max_points = max_points_per_metric
        self._metrics: Dict[str, Deque[MetricPoint]] = {}
        self._definitions: Dict[str, MetricDefinition] = {}
        self._lock = threading.Lock()
        for definition in DEFAULT_METRICS:
            self.register_metric(definition)

    def register_metric(self, definition: MetricDefinition):
        self._definitions[definition.name] = definition
        with self._lock:
            self._series(definition.name)

    def _series(self, metric_name: str) -> Deque[MetricPoint]:
        if metric_name not in self._metrics:
            self._metrics[metric_name] = deque(maxlen=self._max_points)
        return self._metrics[metric_name]

    def definition(self, metric_name: str) -> Optional[MetricDefinition]:
        return self._definitions.get(metric_name)

    def record(
        self,
        metric_name: str,
        value: float,
        labels: Optional[Dict[str, str]] = None
    ):
        """Record a metric data point."""
        label_tuple = tuple(sorted(labels.items())) if labels else ()
        point = MetricPoint(
            metric_name=metric_name,
            value=value,
            timestamp=Timestamp.now(),
            labels=label_tuple
        )
        with self._lock:
            self._series(metric_name).append(point)

    def get_metric(
        self,
        metric_name: str,
        labels: Optional[Dict[str, str]] = None
    ) -> List[MetricPoint]:
        """Get metric data points, optionally only those carrying every given label."""
        with self._lock:
            points = list(self._metrics.get(metric_name, ()))
        if labels:
            wanted = set(labels.items())
            points = [p for p in points if wanted.issubset(p.labels)]
        return points

    def get_latest(self, metric_name: str) -> Optional[MetricPoint]:
        with self._lock:
            points = self._metrics.get(metric_name)
            return points[-1] if points else None

    def get_all_metrics(self) -> Dict[str, List[MetricPoint]]:
        with self._lock:
            return {k: list(v) for k, v in self._metrics.items()}

    def compute_aggregates(
        self,
        metric_name: str,
        labels: Optional[Dict[str, str]] = None
    ) -> Dict[str, float]:
        """Compute aggregate statistics for a metric."""
        points = self.get_metric(metric_name, labels)

        if not points:
            return {}

        values = [p.value for p in points]

        return {
            'count': len(values),
            'sum': sum(values),
            'min': min(values),
            'max': max(values),
            'avg': sum(values) / len(values),
        }


# =============================================================================
# AUDIT TRAIL
# =============================================================================

class AuditOutcome(Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    SYSTEM = "system"


@dataclass(frozen=True)
class AuditEntry:
    """Immutable audit log entry."""
    entry_id: str
    session_id: str
    action: str
    outcome: AuditOutcome
    timestamp: str
    details: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    def detail(self, key: str) -> Optional[str]:
        for k, v in self.details:
            if k == key:
                return v
        return None


class AuditCollector:
    """Append-only record of every command dispatched to the engine."""

    def __init__(self, max_entries: int = 10000):
        self._entries: Deque[AuditEntry] = deque(maxlen=max_entries)
        self._sequence: int = 0
        self._lock = threading.Lock()

    def log(
        self,
        session_id: str,
        action: str,
        outcome: AuditOutcome,
        timestamp: str,
        details: Optional[Dict[str, object]] = None
    ) -> AuditEntry:
        details_tuple = tuple((k, str(v)) for k, v in (details or {}).items() if v is not None)
        with self._lock:
            self._sequence += 1
            entry_id = hashlib.sha256(
                f"audit|{self._sequence}|{session_id}|{action}|{timestamp}".encode('utf-8')
            ).hexdigest()[:16]
            entry = AuditEntry(
                entry_id=entry_id,
                session_id=session_id,
                action=action,
                outcome=outcome,
                timestamp=timestamp,
                details=details_tuple,
            )
            self._entries.append(entry)
        return entry

    def get_entries(
        self,
        session_id: Optional[str] = None,
        action: Optional[str] = None,
        outcome: Optional[AuditOutcome] = None
    ) -> List[AuditEntry]:
        """Get entries, optionally filtered."""
        with self._lock:
            entries = list(self._entries)
        if session_id:
            entries = [e for e in entries if e.session_id == session_id]
        if action:
            entries = [e for e in entries if e.action == action]
        if outcome:
            entries = [e for e in entries if e.outcome == outcome]
        return entries

    @property
    def entry_count(self) -> int:
        return len(self._entries)


__all__ = [
    "DebugError", "DiagnosticsContext",
    "MetricType", "MetricDefinition", "MetricPoint", "MetricsCollector", "DEFAULT_METRICS",
    "AuditOutcome", "AuditEntry", "AuditCollector",
]
