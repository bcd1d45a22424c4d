"""Celery application configuration."""

from celery import Celery

from src.config import get_settings

settings = get_settings()

app = Celery(
    "uniplug_notifications",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["src.tasks.notifications"],
)

app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    # A dispatch is bounded by push_timeout_seconds per endpoint plus one email
    task_time_limit=120,
    task_soft_time_limit=90,
)
