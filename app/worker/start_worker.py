### app/worker/start_worker.py

"""
Celery worker startup script

Starts the worker that consumes user provisioning events.
"""

# Local imports
from app.core.config import settings
from app.core.celery_app import app
from app.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


def start_worker():
    """Start the celery worker."""
    setup_logging(log_level=settings.log_level, environment=settings.environment)

    argv = [
        "worker",
        f"--loglevel={settings.log_level.lower()}",
        "--concurrency=2",
        "--max-tasks-per-child=100",
        "--prefetch-multiplier=1",
        "--queues=users",
    ]

    logger.info("Starting Celery worker", broker=settings.celery_broker, modules=["app.users.tasks"])
    app.worker_main(argv)


if __name__ == "__main__":
    start_worker()
