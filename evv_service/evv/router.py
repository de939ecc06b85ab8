from uuid import UUID
from datetime import date
from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from evv_service.auth.middleware import JWTPayload, verify_token, check_permission
from evv_service.db.postgres import get_db
from evv_service.evv.exceptions import UnsupportedReportFormatException
from evv_service.evv.repository import EVVReportRepository
from evv_service.evv.schemas import ComplianceFilter, EVVDashboard, EVVReport
from evv_service.evv.service import EVVReportService


def get_evv_report_service(db: AsyncSession = Depends(get_db)) -> EVVReportService:
    """Dependency to get EVVReportService"""
    return EVVReportService(EVVReportRepository(db))


router = APIRouter(
    prefix="/evv",
    tags=["evv"],
)


@router.get("/dashboard", response_model=EVVDashboard, response_model_by_alias=True)
async def get_evv_dashboard(
    service: EVVReportService = Depends(get_evv_report_service),
    jwt_payload: JWTPayload = Depends(verify_token),
):
    """Active shifts with their EVV verdicts, today's compliance metrics and recent out-of-range alerts"""
    check_permission(jwt_payload, "evv:read")
    return await service.get_dashboard(jwt_payload.company_id)


@router.get("/reports", response_model=EVVReport, response_model_by_alias=True)
async def get_evv_report(
    start_date: date | None = Query(None, alias="startDate"),
    end_date: date | None = Query(None, alias="endDate"),
    carer_id: UUID | None = Query(None, alias="carerId"),
    client_id: UUID | None = Query(None, alias="clientId"),
    compliance_status: ComplianceFilter = Query(ComplianceFilter.ALL, alias="complianceStatus"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    service: EVVReportService = Depends(get_evv_report_service),
    jwt_payload: JWTPayload = Depends(verify_token),
):
    """EVV compliance report for completed shifts (defaults to the last 7 days)"""
    check_permission(jwt_payload, "evv:read")
    return await service.get_report(
        jwt_payload.company_id,
        start_date=start_date,
        end_date=end_date,
        carer_id=carer_id,
        client_id=client_id,
        compliance=compliance_status,
        page=page,
        limit=limit,
    )


@router.get("/reports/download")
async def download_evv_report(
    start_date: date | None = Query(None, alias="startDate"),
    end_date: date | None = Query(None, alias="endDate"),
    carer_id: UUID | None = Query(None, alias="carerId"),
    client_id: UUID | None = Query(None, alias="clientId"),
    compliance_status: ComplianceFilter = Query(ComplianceFilter.ALL, alias="complianceStatus"),
    format: str = Query("csv"),
    service: EVVReportService = Depends(get_evv_report_service),
    jwt_payload: JWTPayload = Depends(verify_token),
):
    """Download the EVV compliance report"""
    check_permission(jwt_payload, "evv:read")
    if format != "csv":
        raise UnsupportedReportFormatException(format)

    rows = await service.build_report_rows(
        jwt_payload.company_id,
        start_date=start_date,
        end_date=end_date,
        carer_id=carer_id,
        client_id=client_id,
        compliance=compliance_status,
    )
    csv_buffer = service.generate_csv(rows)
    return StreamingResponse(
        csv_buffer,
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=evv_report.csv"},
    )
