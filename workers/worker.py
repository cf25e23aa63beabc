"""Worker script to run Celery workers."""

from core.middleware.logging import setup_logging
from core.config import settings
from workers.celery_app import celery_app
import workers.tasks.emails  # noqa: F401  registers tasks

setup_logging(log_level=settings.log_level, json_logs=settings.json_logs)

if __name__ == "__main__":
    celery_app.worker_main(
        argv=[
            "worker",
            "--loglevel=info",
            "--concurrency=2",
            "-Q",
            "default,notifications",
        ]
    )
