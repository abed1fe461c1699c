"""Error taxonomy and error tracking for the search daemon.

This module defines:
- The exception hierarchy raised by the core (validation, derivation,
  session and orchestrator errors)
- Error events recorded when a unit of work fails at runtime
- A bounded aggregator that keeps the visible event log of a session
- Service health tracking for remote collaborators
"""

import traceback
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any, List, Tuple

from loguru import logger


class QIGSearchError(Exception):
    """Base class for all errors raised by the search core."""


class ValidationError(QIGSearchError, ValueError):
    """Structural problem with caller input. Never retried."""


class WordCountError(ValidationError):
    """A phrase does not contain the required number of words."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Phrase must contain exactly {expected} words (found {actual})"
        )


class EmptyBatchError(ValidationError):
    """A batch contained no non-blank phrases."""

    def __init__(self, message: str = "No phrases provided"):
        super().__init__(message)


class BatchValidationError(ValidationError):
    """One or more phrases of a batch failed structural validation."""

    def __init__(self, failures: List[Tuple[int, WordCountError]]):
        self.failures = failures
        super().__init__(
            f"{len(failures)} phrases do not have exactly "
            f"{failures[0][1].expected} words"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'invalid_count': len(self.failures),
            'invalid': [
                {'index': index, 'expected': err.expected, 'actual': err.actual}
                for index, err in self.failures
            ],
        }


class InvalidAddressError(ValidationError):
    """A target address is malformed."""


class DuplicateTargetError(QIGSearchError):
    """A target address is already registered."""


class DerivationError(QIGSearchError):
    """The address deriver failed for a phrase."""


class SearchAlreadyRunningError(QIGSearchError):
    """A session was requested while another one is running."""


class OrchestratorUnavailableError(QIGSearchError):
    """The remote orchestrator did not pass its health check."""


class OrchestratorTimeoutError(QIGSearchError, TimeoutError):
    """A call to the remote orchestrator exceeded its time budget."""


class ServiceState(Enum):
    """Service health states."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Error severity levels."""
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4


@dataclass
class ErrorEvent:
    """Represents an error event."""
    timestamp: datetime
    service: str
    error_type: str
    message: str
    severity: ErrorSeverity
    traceback: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_exception(cls,
                       service: str,
                       error: BaseException,
                       severity: ErrorSeverity = ErrorSeverity.MEDIUM,
                       **context) -> "ErrorEvent":
        cause = error.__cause__ or error
        return cls(
            timestamp=datetime.now(),
            service=service,
            error_type=type(cause).__name__,
            message=str(error),
            severity=severity,
            traceback="".join(traceback.format_exception(type(error), error, error.__traceback__)),
            context=context
        )

    def to_dict(self) -> Dict:
        return {
            'timestamp': self.timestamp.isoformat(),
            'service': self.service,
            'error_type': self.error_type,
            'message': self.message,
            'severity': self.severity.value,
            'context': self.context
        }


@dataclass
class ServiceHealth:
    """Tracks health of a service."""
    name: str
    state: ServiceState = ServiceState.UNKNOWN
    error_count: int = 0
    success_count: int = 0
    last_error: Optional[ErrorEvent] = None
    last_success: Optional[datetime] = None
    consecutive_failures: int = 0

    @property
    def error_rate(self) -> float:
        """Calculate error rate."""
        total = self.error_count + self.success_count
        if total == 0:
            return 0.0
        return self.error_count / total

    @property
    def is_available(self) -> bool:
        return self.state in (ServiceState.HEALTHY, ServiceState.DEGRADED)

    def record_success(self) -> None:
        self.success_count += 1
        self.consecutive_failures = 0
        self.last_success = datetime.now()
        self.state = ServiceState.HEALTHY if self.error_rate < 0.2 else ServiceState.DEGRADED

    def record_failure(self, event: ErrorEvent) -> None:
        self.error_count += 1
        self.consecutive_failures += 1
        self.last_error = event
        self.state = ServiceState.UNHEALTHY

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'state': self.state.value,
            'error_rate': self.error_rate,
            'consecutive_failures': self.consecutive_failures,
            'last_error': self.last_error.message if self.last_error else None,
        }


class ErrorAggregator:
    """Aggregates error events into a bounded, visible event log."""

    def __init__(self, window_size: int = 100):
        """
        Initialize error aggregator.

        Args:
            window_size: Number of errors to keep
        """
        self.window_size = window_size
        self.errors: deque = deque(maxlen=window_size)
        self.error_counts: Dict[str, int] = {}
        self.total_errors = 0

    def record_error(self, error_event: ErrorEvent) -> None:
        """Record an error event."""
        self.errors.append(error_event)
        self.total_errors += 1

        key = f"{error_event.service}:{error_event.error_type}"
        self.error_counts[key] = self.error_counts.get(key, 0) + 1

        if len(self.errors) == self.window_size:
            logger.debug(f"Error log at capacity ({self.window_size}), oldest events are dropped")

    def clear(self) -> None:
        self.errors.clear()
        self.error_counts.clear()
        self.total_errors = 0

    def events(self) -> List[ErrorEvent]:
        return list(self.errors)

    def get_error_summary(self) -> Dict[str, Any]:
        """Get error summary."""
        top_errors = sorted(
            self.error_counts.items(),
            key=lambda x: x[1],
            reverse=True
        )[:5]

        by_severity = {'low': 0, 'medium': 0, 'high': 0, 'critical': 0}
        for error in self.errors:
            by_severity[error.severity.name.lower()] += 1

        return {
            'total_errors': self.total_errors,
            'retained_errors': len(self.errors),
            'by_severity': by_severity,
            'top_errors': [{'error': k, 'count': v} for k, v in top_errors],
        }
