"""
Background Tasks
Celery app and scheduled maintenance jobs.
"""

from .celery_app import app as celery_app

__all__ = ["celery_app"]
