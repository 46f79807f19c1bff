"""Outbox projection tasks."""

import asyncio
import logging
from typing import Optional

from celery import Task

from api.services.outbox import project_event, project_pending_events
from core.config import settings
from database.engine import build_engine, build_sessionmaker
from database.store import DocumentStore
from workers.celery_app import celery_app

logger = logging.getLogger(__name__)


async def _run_projection(event_id: Optional[str], limit: Optional[int]) -> dict:
    # Each task run owns its engine: the worker has no long-lived event loop
    engine = build_engine(settings.database_url, echo=settings.database_echo)
    try:
        store = DocumentStore(build_sessionmaker(engine))
        if event_id is not None:
            return {"id": event_id, "projected": await project_event(store, event_id)}
        return await project_pending_events(store, limit)
    finally:
        await engine.dispose()


@celery_app.task(name="workers.tasks.outbox.project_pending", bind=True)
def project_pending(self: Task, limit: Optional[int] = None) -> dict:
    """Project every pending outbox event.

    Failed events stay pending; there is no automatic retry, the task is
    re-triggered operationally.

    Args:
        limit: Maximum number of events in this run (defaults to OUTBOX_BATCH_SIZE)

    Returns:
        Summary with pending/projected/failed counts
    """
    summary = asyncio.run(_run_projection(None, limit or settings.outbox_batch_size))
    logger.info(f"Outbox task {self.request.id}: {summary}")
    return summary


@celery_app.task(name="workers.tasks.outbox.project_one")
def project_one(event_id: str) -> dict:
    """Project a single outbox event by id."""
    return asyncio.run(_run_projection(event_id, None))
