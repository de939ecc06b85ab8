from uuid import UUID
from datetime import datetime
from enum import Enum

from evv_service.evv.geofence import EVVStatus
from evv_service.evv.location import EVVLocationData
from evv_service.utils.schemas import CamelModel


class CheckStatus(str, Enum):
    COMPLIANT = "COMPLIANT"
    OUT_OF_RANGE = "OUT_OF_RANGE"
    MISSING = "MISSING"


class OverallStatus(str, Enum):
    FULLY_COMPLIANT = "FULLY_COMPLIANT"
    PARTIALLY_COMPLIANT = "PARTIALLY_COMPLIANT"
    NON_COMPLIANT = "NON_COMPLIANT"
    NO_DATA = "NO_DATA"


class ComplianceFilter(str, Enum):
    ALL = "all"
    COMPLIANT = "compliant"
    OUT_OF_RANGE = "out_of_range"
    MISSING = "missing"


class PersonRef(CamelModel):
    id: UUID
    name: str


class ClientRef(PersonRef):
    address: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    geofence_radius: int | None = None


class ActiveShift(CamelModel):
    id: UUID
    client: ClientRef
    carer: PersonRef
    scheduled_start: datetime
    scheduled_end: datetime
    actual_start: datetime | None = None
    check_in_location: EVVLocationData | None = None
    evv_status: EVVStatus


class DashboardMetrics(CamelModel):
    total_active: int
    compliant_count: int
    out_of_range_count: int
    missing_location_count: int
    compliance_rate: int  # percent
    today_completed_count: int


class OutOfRangeAlert(CamelModel):
    id: str
    shift_id: UUID
    type: str  # CHECK_IN_OUT_OF_RANGE | CHECK_OUT_OUT_OF_RANGE
    carer_name: str
    client_name: str
    distance: int
    timestamp: datetime


class EVVDashboard(CamelModel):
    active_shifts: list[ActiveShift]
    metrics: DashboardMetrics
    alerts: list[OutOfRangeAlert]


class CheckVerdict(CamelModel):
    status: CheckStatus
    time: datetime | None = None
    distance: int | None = None
    distance_formatted: str | None = None
    accuracy: float | None = None
    source: str | None = None


class ReportShift(CamelModel):
    id: UUID
    date: str
    client: ClientRef
    carer: PersonRef
    scheduled_start: datetime
    scheduled_end: datetime
    actual_start: datetime | None = None
    actual_end: datetime | None = None
    hours_worked: float
    check_in: CheckVerdict
    check_out: CheckVerdict
    overall_status: OverallStatus


class ReportSummary(CamelModel):
    total_shifts: int
    fully_compliant: int
    partially_compliant: int
    non_compliant: int
    no_data: int
    compliance_rate: int


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int


class EVVReport(CamelModel):
    shifts: list[ReportShift]
    summary: ReportSummary
    pagination: Pagination
