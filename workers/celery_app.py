import os
from celery import Celery
from dotenv import load_dotenv

load_dotenv()

broker = os.getenv("REDIS_URL", "redis://localhost:6379/0")
backend = broker

celery = Celery("composer_workers", broker=broker, backend=backend, include=["workers.tasks"])
celery.conf.task_routes = {
    "tasks.render_snapshot": {"queue": "snapshots"},
}
# snapshots are small PNGs returned inline; drop them from the backend quickly
celery.conf.result_expires = 300
