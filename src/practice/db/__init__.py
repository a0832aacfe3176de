"""Database module for SQLite persistence.

Provides:
- Database connection management
- Schema initialization
- Repository functions per table (users, problems, contests, todos,
  flashcards and learning paths, cached suggestions)
"""

from practice.db.database import (
    DuplicateError,
    NotFoundError,
    RepositoryError,
    get_db,
    init_db,
)

__all__ = ["DuplicateError", "NotFoundError", "RepositoryError", "get_db", "init_db"]
