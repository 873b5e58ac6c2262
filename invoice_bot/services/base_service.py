"""Shared base for the catalog, invoice and payment services."""

from __future__ import annotations

from sqlalchemy.orm import Session


class BaseService:
    """Wraps the caller's session; the caller owns its lifetime."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def commit(self) -> None:
        """Commit, rolling back first if the flush fails."""
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
