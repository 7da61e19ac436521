"""Celery configuration for background notification work."""

from kombu import Exchange, Queue

from core.config import settings

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
task_soft_time_limit = 8 * 60

# Worker settings
worker_prefetch_multiplier = 1
worker_max_tasks_per_child = 1000

# Queue configuration with routing
default_exchange = Exchange("scholarship", type="direct")
task_default_queue = "default"
task_queues = (
    Queue("default", exchange=default_exchange, routing_key="default"),
    Queue("notifications", exchange=default_exchange, routing_key="notifications"),
)

task_routes = {
    "workers.tasks.notifications.*": {"queue": "notifications"},
}

# Daily cleanup of old read notifications
beat_schedule = {
    "purge-read-notifications": {
        "task": "workers.tasks.notifications.purge_read_notifications",
        "schedule": 24 * 60 * 60,
        "kwargs": {"older_than_days": settings.notification_retention_days},
    },
}

# Result backend settings
result_expires = 3600  # Results expire after 1 hour
