from uuid import UUID
from datetime import datetime

from evv_service.utils.schemas import CamelModel


class CredentialSweepResults(CamelModel):
    credentials_checked: int = 0
    status_updated: int = 0
    alerts_created: int = 0
    errors: list[str] = []


class CredentialSweepResponse(CamelModel):
    success: bool = True
    timestamp: datetime
    results: CredentialSweepResults


class CredentialAlertResponse(CamelModel):
    id: UUID
    credential_id: UUID
    alert_type: str
    severity: str
    message: str
    created_at: datetime
