"""Celery worker package: application, periodic schedule and batch task."""
