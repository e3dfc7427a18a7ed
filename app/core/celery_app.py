## app/core/celery_app.py

"""
Main Celery Application Configuration

Sets up the Celery application with Redis as broker and result backend.
The worker consumes the user provisioning events published by the
identity side of the platform.
"""

# Third party imports
from celery import Celery

# Create Celery Instance
app = Celery("signatures")

# Configure celery from separate config file
app.config_from_object("app.worker.config")

# This will look for tasks.py files in specified modules/packages
app.autodiscover_tasks([
    "app.users",
])

if __name__ == "__main__":
    app.start()
