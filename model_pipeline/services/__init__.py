"""Persistence and notification services used by the job handlers."""

from model_pipeline.services.notifications import ProductNotifier

__all__ = [
    "ProductNotifier",
]
