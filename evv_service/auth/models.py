"""JWT Payload Models"""
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime


class JWTPayload(BaseModel):
    """Caller identity extracted from a verified Keycloak token"""
    model_config = ConfigDict(populate_by_name=True)

    user_id: UUID = Field(..., alias="sub")
    company_id: UUID
    roles: list[str] = []
    permissions: list[str] = []
    iat: Optional[datetime] = None
    exp: Optional[datetime] = None

    def has_role(self, *roles: str) -> bool:
        return any(role in self.roles for role in roles)
