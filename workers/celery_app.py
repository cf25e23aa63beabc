"""Celery app factory."""

from celery import Celery

celery_app = Celery("ats")
celery_app.config_from_object("workers.celery_config")
celery_app.autodiscover_tasks(["workers.tasks"], related_name="emails")
