import time
from datetime import datetime
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, asdict
from contextlib import contextmanager
import threading


@dataclass
class CallMetrics:
    """Metrics for a single remote call."""
    operation: str
    success: bool
    duration_ms: int
    start_time: datetime
    error_kind: Optional[str] = None


@dataclass
class OperationMetrics:
    """Aggregated metrics for one operation name."""
    operation: str
    total_calls: int = 0
    success_count: int = 0
    error_count: int = 0
    total_duration_ms: int = 0
    last_error_kind: Optional[str] = None

    @property
    def error_rate(self) -> float:
        """Calculate error rate for this operation."""
        if self.total_calls == 0:
            return 0.0
        return self.error_count / self.total_calls

    @property
    def average_duration_ms(self) -> float:
        """Calculate average call duration."""
        if self.total_calls == 0:
            return 0.0
        return self.total_duration_ms / self.total_calls


class MetricsCollector:
    """Collects metrics for remote API calls made on behalf of the session."""

    def __init__(self, history_size: int = 100):
        """Initialize metrics collector."""
        self.history_size = history_size
        self.started_at = datetime.now()
        self._operations: Dict[str, OperationMetrics] = {}
        self._history: List[CallMetrics] = []
        self._lock = threading.Lock()

    def record_call(self, operation: str, success: bool, duration_ms: int,
                    error_kind: Optional[str] = None,
                    start_time: Optional[datetime] = None) -> None:
        """Record one finished remote call."""
        call = CallMetrics(
            operation=operation,
            success=success,
            duration_ms=duration_ms,
            start_time=start_time or datetime.now(),
            error_kind=error_kind,
        )
        with self._lock:
            stats = self._operations.setdefault(operation, OperationMetrics(operation=operation))
            stats.total_calls += 1
            stats.total_duration_ms += duration_ms
            if success:
                stats.success_count += 1
            else:
                stats.error_count += 1
                stats.last_error_kind = error_kind

            self._history.append(call)
            if len(self._history) > self.history_size:
                del self._history[0]

    @contextmanager
    def call_context(self, operation: str):
        """Context manager timing a remote call.

        The yielded dict may receive 'success' and 'error_kind' keys; a call
        leaving the block through an exception counts as failed.
        """
        outcome: Dict[str, Any] = {'success': True, 'error_kind': None}
        start = datetime.now()
        started = time.monotonic()
        try:
            yield outcome
        except Exception as e:
            outcome['success'] = False
            outcome['error_kind'] = getattr(e, 'kind', type(e).__name__)
            raise
        finally:
            duration_ms = int((time.monotonic() - started) * 1000)
            self.record_call(operation, outcome['success'], duration_ms,
                             outcome['error_kind'], start_time=start)

    def to_dict(self) -> Dict[str, Any]:
        """Convert metrics to dictionary for JSON serialization."""
        with self._lock:
            operations = {}
            for name, stats in self._operations.items():
                entry = asdict(stats)
                entry['error_rate'] = stats.error_rate
                entry['average_duration_ms'] = stats.average_duration_ms
                operations[name] = entry

            history = []
            for call in self._history:
                entry = asdict(call)
                entry['start_time'] = call.start_time.isoformat()
                history.append(entry)

            return {
                'started_at': self.started_at.isoformat(),
                'operations': operations,
                'history': history,
            }
