"""Job runtime contract used by drift pipelines and their hosts."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol

JOB_STATUS_PENDING = "pending"
JOB_STATUS_RUNNING = "running"
JOB_STATUS_SUCCEEDED = "succeeded"
JOB_STATUS_FAILED = "failed"


class JobContext(Protocol):
    """Protocol for the host that runs a pipeline and receives its outcome."""

    def payload(self) -> Mapping[str, Any]:
        """Return the job payload."""
        ...

    def progress(self, phase: str, pct: int, message: str) -> None:
        """Report intermediate progress."""
        ...

    def succeed(self, phase: str, summary: Mapping[str, Any]) -> None:
        """Mark the job as succeeded with a result summary."""
        ...

    def fail(self, phase: str, error: BaseException) -> None:
        """Mark the job as failed."""
        ...

    def is_cancelled(self) -> bool:
        """Return True when the job should stop."""
        ...

    def trace_id(self) -> str:
        """Return the ambient trace identifier, or an empty string."""
        ...


class CancellationToken:
    """Thread-safe cancellation flag shared between a host and a running job."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    def is_cancelled(self) -> bool:
        """Return True once cancellation was requested."""
        return self._event.is_set()


@dataclass(frozen=True)
class ProgressEvent:
    """One progress report emitted by a job."""

    phase: str
    pct: int
    message: str


@dataclass
class RecordingJobContext:
    """In-memory job context that keeps a transcript of the run."""

    job_payload: Mapping[str, Any] = field(default_factory=dict)
    ambient_trace_id: str = ""
    token: CancellationToken = field(default_factory=CancellationToken)
    status: str = JOB_STATUS_PENDING
    phase: str | None = None
    result: dict[str, Any] | None = None
    error: BaseException | None = None
    events: list[ProgressEvent] = field(default_factory=list)

    def payload(self) -> Mapping[str, Any]:
        """Return the job payload."""
        return self.job_payload

    def progress(self, phase: str, pct: int, message: str) -> None:
        """Record a progress event."""
        self.status = JOB_STATUS_RUNNING
        self.phase = phase
        self.events.append(ProgressEvent(phase=phase, pct=pct, message=message))

    def succeed(self, phase: str, summary: Mapping[str, Any]) -> None:
        """Record success and the result summary."""
        self.status = JOB_STATUS_SUCCEEDED
        self.phase = phase
        self.result = dict(summary)

    def fail(self, phase: str, error: BaseException) -> None:
        """Record failure and the error that caused it."""
        self.status = JOB_STATUS_FAILED
        self.phase = phase
        self.error = error

    def is_cancelled(self) -> bool:
        """Return True once the cancellation token fired."""
        return self.token.is_cancelled()

    def trace_id(self) -> str:
        """Return the ambient trace identifier."""
        return self.ambient_trace_id

    @property
    def succeeded(self) -> bool:
        return self.status == JOB_STATUS_SUCCEEDED

    @property
    def failed(self) -> bool:
        return self.status == JOB_STATUS_FAILED

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable transcript of the run."""
        return {
            "status": self.status,
            "phase": self.phase,
            "result": self.result,
            "error": str(self.error) if self.error is not None else None,
            "progress": [
                {"phase": event.phase, "pct": event.pct, "message": event.message}
                for event in self.events
            ],
        }
