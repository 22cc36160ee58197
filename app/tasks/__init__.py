"""
Celery tasks package.

- conversation_tasks: processing of inbound chat messages (routing, dialogue,
  CV ingestion, scoring)
"""

from app.tasks import conversation_tasks

__all__ = ["conversation_tasks"]
