"""Celery app factory."""

from celery import Celery

celery_app = Celery("ranaojobs", include=["workers.tasks.outbox"])
celery_app.config_from_object("workers.celery_config")
