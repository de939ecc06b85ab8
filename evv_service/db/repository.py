"""Shared repository base helpers."""
from contextlib import asynccontextmanager
from typing import AsyncIterator
from sqlalchemy.ext.asyncio import AsyncSession


class BaseRepository:
    """Base repository with common DB helpers."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Commit everything written inside the block, or roll it all back."""
        try:
            yield
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
