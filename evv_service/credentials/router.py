from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from evv_service.audit.repository import AuditLogRepository
from evv_service.auth.middleware import JWTPayload, verify_cron_secret, verify_token, check_permission
from evv_service.credentials.repository import CredentialRepository
from evv_service.credentials.schemas import CredentialAlertResponse, CredentialSweepResponse
from evv_service.credentials.service import CredentialAlertService
from evv_service.db.postgres import get_db
from evv_service.notifications.dispatcher import build_notification_dispatcher
from evv_service.utils.clock import utcnow


def get_credential_alert_service(db: AsyncSession = Depends(get_db)) -> CredentialAlertService:
    """Dependency to get CredentialAlertService"""
    return CredentialAlertService(
        repository=CredentialRepository(db),
        audit=AuditLogRepository(db),
        notifier=build_notification_dispatcher(db),
    )


router = APIRouter(
    prefix="/credentials",
    tags=["credentials"],
)

cron_router = APIRouter(
    prefix="/cron",
    tags=["cron"],
)


@cron_router.get(
    "/check-credentials",
    response_model=CredentialSweepResponse,
    response_model_by_alias=True,
    dependencies=[Depends(verify_cron_secret)],
)
async def check_credentials(
    service: CredentialAlertService = Depends(get_credential_alert_service),
):
    """
    Daily credential expiry sweep, called by the scheduler.

    Workflow:
    1. Recomputes each credential's status from its expiration date
    2. Creates reminder alerts for thresholds whose window contains today
    3. Creates one expiry alert per expired credential
    4. Notifies the caregiver and company admins after each company commits

    Requires Authorization: Bearer $CRON_SECRET
    """
    results = await service.check_all_credentials()
    return CredentialSweepResponse(timestamp=utcnow(), results=results)


@router.get("/alerts", response_model=list[CredentialAlertResponse], response_model_by_alias=True)
async def list_credential_alerts(
    limit: int = Query(50, ge=1, le=500),
    service: CredentialAlertService = Depends(get_credential_alert_service),
    jwt_payload: JWTPayload = Depends(verify_token),
):
    """List the company's most recent credential alerts"""
    check_permission(jwt_payload, "credentials:read")
    return await service.list_alerts(jwt_payload.company_id, limit)
