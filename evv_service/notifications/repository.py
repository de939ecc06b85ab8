"""Recipient directory backed by the users and clients tables"""
from typing import List, Optional, Sequence
from uuid import UUID
from sqlalchemy import select

from evv_service.db.models import Client, User
from evv_service.db.repository import BaseRepository


class RecipientRepository(BaseRepository):
    """Resolves notification recipients to user ids"""

    async def list_user_ids_by_roles(self, company_id: UUID, roles: Sequence[str]) -> List[UUID]:
        """Active users of the company holding any of the given roles"""
        stmt = select(User.id).where(
            User.company_id == company_id,
            User.role.in_(list(roles)),
            User.is_active.is_(True),
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_sponsor_user_id(self, client_id: UUID) -> Optional[UUID]:
        """Sponsor (family contact) of a client, if one is linked"""
        stmt = select(Client.sponsor_id).where(Client.id == client_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()
