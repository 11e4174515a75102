"""Structural drift job pipeline."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Mapping

from sqlalchemy.orm import Session

from drift.alerts import report_structural_drift
from drift.compute import AlertReporter, ComputeDeps, compute
from drift.errors import DriftDependencyError
from drift.repository import RollbackEventRepository, StructuralDriftMetricRepository
from drift.run_config import resolve_run
from jobs.runtime import JobContext
from time_utils import utc_now

if TYPE_CHECKING:
    from config import Settings

logger = logging.getLogger(__name__)


class StructuralDriftPipeline:
    """Run drift computation for one job and report the outcome on its context."""

    def __init__(
        self,
        session_factory: Callable[[], Session] | None,
        settings: "Settings",
        *,
        metrics_repo: StructuralDriftMetricRepository | None = None,
        rollback_repo: RollbackEventRepository | None = None,
        alert_reporter: AlertReporter | None = None,
        now_provider: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the pipeline; repositories default to ones on ``session_factory``."""
        self._session_factory = session_factory
        self._settings = settings
        self._metrics_repo = metrics_repo
        self._rollback_repo = rollback_repo
        if session_factory is not None:
            self._metrics_repo = metrics_repo or StructuralDriftMetricRepository(session_factory)
            self._rollback_repo = rollback_repo or RollbackEventRepository(session_factory)
        self._alert_reporter = alert_reporter or report_structural_drift
        self._now_provider = now_provider or utc_now

    def run(self, jc: JobContext) -> None:
        """Execute the job against ``jc``; outcomes are reported, never raised."""
        payload = jc.payload()
        if payload is not None and not isinstance(payload, Mapping):
            jc.fail("payload", ValueError("structural drift payload must be a mapping"))
            return
        plan = resolve_run(self._settings.drift, payload, ambient_trace_id=jc.trace_id())
        if plan.disabled:
            logger.info("Structural drift job disabled; skipping run.")
            jc.succeed("disabled", {"disabled": True})
            return
        if self._session_factory is None or self._metrics_repo is None:
            jc.fail("deps", DriftDependencyError("structural drift: missing deps"))
            return

        jc.progress("compute", 10, "Computing structural drift metrics")
        deps = ComputeDeps(
            session_factory=self._session_factory,
            metrics_repo=self._metrics_repo,
            rollback_repo=self._rollback_repo,
            alert_reporter=self._alert_reporter,
            logger=logger,
            now_provider=self._now_provider,
            should_cancel=jc.is_cancelled,
        )
        try:
            output = compute(deps, plan.compute_input)
        except DriftDependencyError as exc:
            jc.fail("deps", exc)
            return
        except Exception as exc:
            logger.exception("Structural drift job failed.")
            jc.fail("compute", exc)
            return
        jc.succeed("done", output.to_summary())
