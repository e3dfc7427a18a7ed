### app/worker/config.py

"""
Celery configuration settings

Broker and result backend settings plus task serialization.
"""

# Local imports
from app.core.config import settings

# Broker and result backend configurations
broker_url = settings.celery_broker
result_backend = settings.celery_backend

# Task serialization
task_serializer = "json"
accept_content = ["json"]
result_serializer = "json"
timezone = "UTC"
enable_utc = True

# Task settings
task_track_started = True
task_time_limit = 5 * 60
task_soft_time_limit = 4 * 60
worker_prefetch_multiplier = 1
task_acks_late = True
task_default_queue = "users"
