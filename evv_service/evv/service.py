import logging
import math
from uuid import UUID
from datetime import date, datetime, timedelta
from io import BytesIO
from typing import List, Optional, Tuple
import pandas as pd

from evv_service.db.models import Client, Shift, User
from evv_service.evv.exceptions import InvalidReportRangeException
from evv_service.evv.geofence import EVVStatus
from evv_service.evv.location import EVVLocationData, parse_evv_location_data
from evv_service.evv.repository import EVVReportRepository
from evv_service.evv.schemas import (
    ActiveShift,
    CheckStatus,
    CheckVerdict,
    ClientRef,
    ComplianceFilter,
    DashboardMetrics,
    EVVDashboard,
    EVVReport,
    OutOfRangeAlert,
    OverallStatus,
    Pagination,
    PersonRef,
    ReportShift,
    ReportSummary,
)
from evv_service.utils.clock import Clock, start_of_day, utcnow

logger = logging.getLogger(__name__)

MAX_DASHBOARD_ALERTS = 20
DEFAULT_REPORT_DAYS = 7


def format_distance(meters: Optional[int]) -> Optional[str]:
    """150 -> "150 m", 1234 -> "1.2 km"."""
    if meters is None:
        return None
    if meters < 1000:
        return f"{meters} m"
    return f"{meters / 1000:.1f} km"


def check_status(location: Optional[EVVLocationData]) -> CheckStatus:
    if location is None:
        return CheckStatus.MISSING
    return CheckStatus.COMPLIANT if location.is_within_geofence else CheckStatus.OUT_OF_RANGE


def overall_status(check_in: CheckStatus, check_out: CheckStatus) -> OverallStatus:
    if check_in == CheckStatus.COMPLIANT and check_out == CheckStatus.COMPLIANT:
        return OverallStatus.FULLY_COMPLIANT
    if CheckStatus.COMPLIANT in (check_in, check_out):
        return OverallStatus.PARTIALLY_COMPLIANT
    if check_in == CheckStatus.MISSING and check_out == CheckStatus.MISSING:
        return OverallStatus.NO_DATA
    return OverallStatus.NON_COMPLIANT


def matches_filter(row: ReportShift, compliance: ComplianceFilter) -> bool:
    if compliance == ComplianceFilter.COMPLIANT:
        return row.overall_status == OverallStatus.FULLY_COMPLIANT
    if compliance == ComplianceFilter.OUT_OF_RANGE:
        return CheckStatus.OUT_OF_RANGE in (row.check_in.status, row.check_out.status)
    if compliance == ComplianceFilter.MISSING:
        return row.overall_status == OverallStatus.NO_DATA
    return True


def _client_ref(client: Client) -> ClientRef:
    return ClientRef(
        id=client.id,
        name=client.full_name,
        address=client.address,
        latitude=client.latitude,
        longitude=client.longitude,
        geofence_radius=client.geofence_radius,
    )


def _carer_ref(carer: User) -> PersonRef:
    return PersonRef(id=carer.id, name=carer.full_name)


def _verdict(location: Optional[EVVLocationData], fallback_time: Optional[datetime]) -> CheckVerdict:
    return CheckVerdict(
        status=check_status(location),
        time=location.timestamp if location else fallback_time,
        distance=location.distance_from_client if location else None,
        distance_formatted=format_distance(location.distance_from_client) if location else None,
        accuracy=location.accuracy if location else None,
        source=location.source.value if location else None,
    )


class EVVReportService:
    """EVV compliance dashboard and reports"""

    def __init__(self, repository: EVVReportRepository, clock: Clock = utcnow):
        self.repository = repository
        self.clock = clock

    async def get_dashboard(self, company_id: UUID) -> EVVDashboard:
        """
        Live EVV view: active shifts, today's check metrics, recent alerts.

        Metrics count the check-in of every active shift and both checks of
        shifts completed today (UTC). With no checks the rate is 100.
        """
        now = self.clock()
        today = start_of_day(now)

        compliant = out_of_range = missing = 0

        active_rows = await self.repository.list_active_shifts(company_id)
        active_shifts = []
        for shift, client, carer in active_rows:
            check_in = parse_evv_location_data(shift.check_in_location)
            status = check_status(check_in)
            if status == CheckStatus.COMPLIANT:
                compliant += 1
            elif status == CheckStatus.OUT_OF_RANGE:
                out_of_range += 1
            elif shift.actual_start:
                missing += 1

            active_shifts.append(ActiveShift(
                id=shift.id,
                client=_client_ref(client),
                carer=_carer_ref(carer),
                scheduled_start=shift.scheduled_start,
                scheduled_end=shift.scheduled_end,
                actual_start=shift.actual_start,
                check_in_location=check_in,
                evv_status=EVVStatus(status.value) if check_in else EVVStatus.LOCATION_UNAVAILABLE,
            ))

        completed_rows = await self.repository.list_completed_shifts(company_id, today, today + timedelta(days=1))
        for shift, _, _ in completed_rows:
            in_status = check_status(parse_evv_location_data(shift.check_in_location))
            out_location = parse_evv_location_data(shift.check_out_location)
            for status in (in_status, check_status(out_location) if out_location else None):
                if status == CheckStatus.COMPLIANT:
                    compliant += 1
                elif status == CheckStatus.OUT_OF_RANGE:
                    out_of_range += 1
                elif status == CheckStatus.MISSING:
                    missing += 1

        total_checks = compliant + out_of_range + missing
        compliance_rate = round(compliant / total_checks * 100) if total_checks else 100

        return EVVDashboard(
            active_shifts=active_shifts,
            metrics=DashboardMetrics(
                total_active=len(active_rows),
                compliant_count=compliant,
                out_of_range_count=out_of_range,
                missing_location_count=missing,
                compliance_rate=compliance_rate,
                today_completed_count=len(completed_rows),
            ),
            alerts=await self._recent_alerts(company_id, now - timedelta(days=1)),
        )

    async def _recent_alerts(self, company_id: UUID, since: datetime) -> List[OutOfRangeAlert]:
        alerts: List[OutOfRangeAlert] = []
        for shift, client, carer in await self.repository.list_recent_shifts(company_id, since):
            for suffix, alert_type, raw in (
                ("checkin", "CHECK_IN_OUT_OF_RANGE", shift.check_in_location),
                ("checkout", "CHECK_OUT_OUT_OF_RANGE", shift.check_out_location),
            ):
                location = parse_evv_location_data(raw)
                if location and not location.is_within_geofence:
                    alerts.append(OutOfRangeAlert(
                        id=f"{shift.id}-{suffix}",
                        shift_id=shift.id,
                        type=alert_type,
                        carer_name=carer.full_name,
                        client_name=client.full_name,
                        distance=location.distance_from_client,
                        timestamp=location.timestamp,
                    ))
            if len(alerts) >= MAX_DASHBOARD_ALERTS:
                break
        return alerts[:MAX_DASHBOARD_ALERTS]

    def _report_range(self, start_date: Optional[date], end_date: Optional[date]) -> Tuple[datetime, datetime]:
        now = self.clock()
        start = datetime.combine(start_date, datetime.min.time()) if start_date else now - timedelta(days=DEFAULT_REPORT_DAYS)
        # end_date is inclusive of the whole day
        end = datetime.combine(end_date, datetime.min.time()) + timedelta(days=1) if end_date else now + timedelta(seconds=1)
        if end <= start:
            raise InvalidReportRangeException()
        return start, end

    def _report_row(self, shift: Shift, client: Client, carer: User) -> ReportShift:
        check_in = _verdict(parse_evv_location_data(shift.check_in_location), shift.actual_start)
        check_out = _verdict(parse_evv_location_data(shift.check_out_location), shift.actual_end)
        hours = 0.0
        if shift.actual_start and shift.actual_end:
            hours = round((shift.actual_end - shift.actual_start).total_seconds() / 3600, 2)
        return ReportShift(
            id=shift.id,
            date=shift.actual_start.date().isoformat() if shift.actual_start else "",
            client=_client_ref(client),
            carer=_carer_ref(carer),
            scheduled_start=shift.scheduled_start,
            scheduled_end=shift.scheduled_end,
            actual_start=shift.actual_start,
            actual_end=shift.actual_end,
            hours_worked=hours,
            check_in=check_in,
            check_out=check_out,
            overall_status=overall_status(check_in.status, check_out.status),
        )

    async def build_report_rows(
        self,
        company_id: UUID,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        carer_id: Optional[UUID] = None,
        client_id: Optional[UUID] = None,
        compliance: ComplianceFilter = ComplianceFilter.ALL,
    ) -> List[ReportShift]:
        """Completed shifts in range with their EVV verdicts, after filtering"""
        start, end = self._report_range(start_date, end_date)
        rows = await self.repository.list_completed_shifts(company_id, start, end, carer_id, client_id)
        report_rows = [self._report_row(*row) for row in rows]
        return [r for r in report_rows if matches_filter(r, compliance)]

    async def get_report(
        self,
        company_id: UUID,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        carer_id: Optional[UUID] = None,
        client_id: Optional[UUID] = None,
        compliance: ComplianceFilter = ComplianceFilter.ALL,
        page: int = 1,
        limit: int = 50,
    ) -> EVVReport:
        """Paginated compliance report; the summary covers every filtered row"""
        rows = await self.build_report_rows(company_id, start_date, end_date, carer_id, client_id, compliance)

        def count(status: OverallStatus) -> int:
            return sum(1 for r in rows if r.overall_status == status)

        compliant_rows = count(OverallStatus.FULLY_COMPLIANT) + count(OverallStatus.PARTIALLY_COMPLIANT)
        summary = ReportSummary(
            total_shifts=len(rows),
            fully_compliant=count(OverallStatus.FULLY_COMPLIANT),
            partially_compliant=count(OverallStatus.PARTIALLY_COMPLIANT),
            non_compliant=count(OverallStatus.NON_COMPLIANT),
            no_data=count(OverallStatus.NO_DATA),
            compliance_rate=round(compliant_rows / len(rows) * 100) if rows else 0,
        )

        offset = (page - 1) * limit
        return EVVReport(
            shifts=rows[offset:offset + limit],
            summary=summary,
            pagination=Pagination(
                page=page,
                limit=limit,
                total=len(rows),
                total_pages=math.ceil(len(rows) / limit),
            ),
        )

    def generate_csv(self, rows: List[ReportShift]) -> BytesIO:
        """Generate CSV file from report rows"""
        data = []
        for row in rows:
            data.append({
                'Shift ID': str(row.id),
                'Date': row.date,
                'Client': row.client.name,
                'Carer': row.carer.name,
                'Scheduled Start': row.scheduled_start.isoformat(),
                'Scheduled End': row.scheduled_end.isoformat(),
                'Actual Start': row.actual_start.isoformat() if row.actual_start else '',
                'Actual End': row.actual_end.isoformat() if row.actual_end else '',
                'Hours Worked': row.hours_worked,
                'Check-In Status': row.check_in.status.value,
                'Check-In Distance': row.check_in.distance_formatted or '',
                'Check-Out Status': row.check_out.status.value,
                'Check-Out Distance': row.check_out.distance_formatted or '',
                'Overall Status': row.overall_status.value,
            })
        df = pd.DataFrame(data, columns=[
            'Shift ID', 'Date', 'Client', 'Carer', 'Scheduled Start', 'Scheduled End',
            'Actual Start', 'Actual End', 'Hours Worked', 'Check-In Status', 'Check-In Distance',
            'Check-Out Status', 'Check-Out Distance', 'Overall Status',
        ])
        buffer = BytesIO()
        df.to_csv(buffer, index=False)
        buffer.seek(0)
        return buffer
