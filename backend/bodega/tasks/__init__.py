"""Bodega WMS - Celery tasks."""
