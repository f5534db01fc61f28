# portfolio_engine/workers/celery_app.py
from __future__ import annotations

from celery import Celery

from ..config import settings

BROKER = settings.celery_broker_url or "redis://localhost:6379/0"
BACKEND = settings.celery_result_backend or "redis://localhost:6379/1"

celery_app = Celery(
    "portfolio_engine",
    broker=BROKER,
    backend=BACKEND,
    include=["portfolio_engine.workers.report_tasks"],
)

celery_app.conf.update(
    task_acks_late=True,
    worker_prefetch_multiplier=1,  # reports are heavy; one at a time per worker process
    task_reject_on_worker_lost=True,
    task_track_started=True,
    task_always_eager=bool(settings.celery_task_always_eager),
    timezone="UTC",
)

celery_app.conf.task_routes = {
    "portfolio_engine.workers.report_tasks.process_financial_report": {"queue": "reports"},
    "portfolio_engine.workers.report_tasks.sweep_*": {"queue": "maintenance"},
    "portfolio_engine.workers.report_tasks.expire_*": {"queue": "maintenance"},
    "portfolio_engine.workers.report_tasks.mark_*": {"queue": "maintenance"},
}

celery_app.conf.beat_schedule = {
    "sweep-stuck-financial-reports": {
        "task": "portfolio_engine.workers.report_tasks.sweep_stuck_financial_reports",
        "schedule": float(settings.report_sweep_interval_seconds),
    },
    "expire-due-tenancies": {
        "task": "portfolio_engine.workers.report_tasks.expire_tenancies",
        "schedule": 60.0 * 60.0,
    },
    "mark-overdue-payments": {
        "task": "portfolio_engine.workers.report_tasks.mark_overdue_rent_payments",
        "schedule": 60.0 * 60.0,
    },
}
