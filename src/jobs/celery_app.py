"""Celery entry point for structural drift jobs."""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

from celery import Celery
from sqlalchemy.orm import Session

from config import settings
from jobs.runtime import RecordingJobContext
from jobs.structural_drift import StructuralDriftPipeline
from services.database import get_sync_session

LOGGER = logging.getLogger(__name__)

COMPUTE_TASK_NAME = "structural_drift.compute"

celery_app = Celery("structural_drift")
celery_app.conf.broker_url = settings.celery.broker_url
celery_app.conf.result_backend = settings.celery.result_backend
celery_app.conf.task_default_queue = settings.celery.queue
celery_app.conf.task_serializer = "json"
celery_app.conf.result_serializer = "json"
celery_app.conf.accept_content = ["json"]
celery_app.conf.enable_utc = True
celery_app.conf.timezone = "UTC"

beat_schedule = celery_app.conf.get("beat_schedule")
if beat_schedule is None:
    beat_schedule = {}
if settings.celery.drift_interval_seconds > 0:
    beat_schedule[COMPUTE_TASK_NAME] = {
        "task": COMPUTE_TASK_NAME,
        "schedule": float(settings.celery.drift_interval_seconds),
    }
celery_app.conf.beat_schedule = beat_schedule


def _session_factory() -> Session:
    """Return a new synchronous SQLAlchemy session for drift tasks."""
    return get_sync_session()


def run_structural_drift(
    payload: Mapping[str, Any] | None,
    *,
    trace_id: str = "",
    session_factory: Callable[[], Session] | None = None,
    pipeline_factory: Callable[[], StructuralDriftPipeline] | None = None,
) -> dict[str, Any]:
    """Run the drift pipeline synchronously and return the job transcript."""
    if pipeline_factory is not None:
        pipeline = pipeline_factory()
    else:
        pipeline = StructuralDriftPipeline(session_factory or _session_factory, settings)
    context = RecordingJobContext(job_payload=dict(payload or {}), ambient_trace_id=trace_id)
    pipeline.run(context)
    LOGGER.info(
        "Structural drift task completed: status=%s phase=%s",
        context.status,
        context.phase,
    )
    return context.to_dict()


@celery_app.task(bind=True, name=COMPUTE_TASK_NAME)
def compute_structural_drift(self, payload: dict[str, Any] | None = None) -> dict[str, Any]:
    """Celery task that runs one structural drift computation."""
    trace_id = getattr(self.request, "id", None) or ""
    return run_structural_drift(payload, trace_id=str(trace_id))
