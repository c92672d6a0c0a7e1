"""Celery application configuration for asynchronous email processing."""

import os

from celery import Celery
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv(override=False)

# Initialize Celery
celery_app = Celery(
    "optical_tasks",
    broker=os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0"),
    backend=os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/0"),
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=600,  # 10 minutes hard limit
    task_soft_time_limit=540,  # 9 minutes soft limit (sends warning)
    result_expires=3600,  # Keep results for 1 hour
    task_always_eager=os.getenv("CELERY_TASK_ALWAYS_EAGER", "").lower() in ("true", "1"),
)

# Tasks are registered via @celery_app.task decorators in their respective modules
celery_app.conf.imports = ("tasks.email_tasks",)
