"""Celery configuration for background outbox projection."""

from kombu import Exchange, Queue

from core.config import settings

# Broker configuration (Redis)
broker_url = settings.celery_broker_url
result_backend = settings.celery_result_backend

# Task routing and serialization
task_serializer = "json"
accept_content = ["json"]
result_serializer = "json"
timezone = "UTC"
enable_utc = True

# Task execution settings
task_track_started = True
task_time_limit = 10 * 60  # 10 minutes hard limit
task_soft_time_limit = 9 * 60  # 9 minutes soft limit

# Worker settings
worker_prefetch_multiplier = 1
worker_max_tasks_per_child = 1000

# Queue configuration with routing
default_exchange = Exchange("ranaojobs", type="direct")
task_default_queue = "default"
task_queues = (
    Queue("default", exchange=default_exchange, routing_key="default"),
    Queue("outbox", exchange=default_exchange, routing_key="outbox"),
)

# Task routing
task_routes = {
    "workers.tasks.outbox.*": {"queue": "outbox"},
}

# Result backend settings
result_expires = 3600  # Results expire after 1 hour
