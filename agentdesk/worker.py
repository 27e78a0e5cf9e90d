"""
Celery worker configuration
Task queue for agent training and knowledge gap classification
"""

from celery import Celery
from agentdesk.config import settings

celery_app = Celery(
    "agentdesk",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=[
        "agentdesk.tasks.train_agent",
        "agentdesk.tasks.classify_knowledge_gap",
    ]
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=3600,
    task_soft_time_limit=3300,
    worker_max_tasks_per_child=1000,
    worker_prefetch_multiplier=4,
)
