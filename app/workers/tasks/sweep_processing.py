"""
Celery task for the polling ingress path: beat runs sweep_processing_jobs
every sweep_interval_seconds.
"""
from app.core.celery_app import celery_app
from app.services.generations.builder import get_generation_services


@celery_app.task(
    name="app.workers.tasks.sweep_processing.sweep_processing_jobs",
    time_limit=600,
    soft_time_limit=570,
)
def sweep_processing_jobs() -> dict:
    """One bounded sweep tick over processing jobs."""
    report = get_generation_services().sweep.run_once()
    return {"ok": True, **report.as_dict()}
