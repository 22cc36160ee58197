"""
CRUD operations (Create, Read, Update, Delete) for database models.

This layer provides a clean separation between services and database operations,
following the Repository pattern.
"""

from app.crud import job, candidate, conversation

__all__ = ["job", "candidate", "conversation"]
