"""Error types for structural drift runs."""

from __future__ import annotations


class DriftError(RuntimeError):
    """Base error for a failed drift run."""


class DriftDependencyError(DriftError):
    """Raised when required collaborators are missing."""


class DriftConfigurationError(DriftError):
    """Raised when the run cannot be configured, e.g. no graph version resolves."""


class DriftSamplingError(DriftError):
    """Raised when decision traces cannot be listed."""


class DriftPersistenceError(DriftError):
    """Raised when the metric batch cannot be written."""


class DriftCancelledError(DriftError):
    """Raised when the ambient cancellation token fires mid-run."""

    def __init__(self, stage: str) -> None:
        """Initialize the error with the stage that observed cancellation."""
        super().__init__(f"drift run cancelled before {stage}")
        self.stage = stage


class GraphProbeError(DriftError):
    """Raised when a graph aggregate query fails part-way through a probe."""

    def __init__(self, probe: str, samples: int, cause: Exception) -> None:
        """Initialize the error with the probe name and samples counted so far."""
        super().__init__(f"{probe} probe failed: {cause}")
        self.probe = probe
        self.samples = samples
        self.cause = cause
