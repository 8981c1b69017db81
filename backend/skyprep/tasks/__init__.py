"""Celery tasks for the SkyPrep session backend."""

from .celery_app import celery_app

__all__ = ["celery_app"]
