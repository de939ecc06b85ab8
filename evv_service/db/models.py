from enum import Enum
from uuid import uuid4
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, UUID

from evv_service.db.base import Base
from evv_service.utils.clock import utcnow


class ShiftStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class UnitType(str, Enum):
    HOURLY = "HOURLY"
    QUARTER_HOURLY = "QUARTER_HOURLY"
    DAILY = "DAILY"


class AuthorizationStatus(str, Enum):
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    EXHAUSTED = "EXHAUSTED"
    CANCELLED = "CANCELLED"


class CredentialStatus(str, Enum):
    ACTIVE = "ACTIVE"
    EXPIRING_SOON = "EXPIRING_SOON"
    EXPIRED = "EXPIRED"
    REVOKED = "REVOKED"


class Company(Base):
    """Home-care agency (tenant)"""
    __tablename__ = "companies"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class User(Base):
    """
    Staff and sponsor accounts.
    Roles: CARER | SUPERVISOR | SCHEDULER | OPS_MANAGER | ADMIN | SPONSOR
    """
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    company_id = Column(UUID(as_uuid=True), ForeignKey("companies.id"), nullable=False, index=True)
    first_name = Column(String(100), nullable=False, default="")
    last_name = Column(String(100), nullable=False, default="")
    email = Column(String(255), nullable=True)
    role = Column(String(50), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    @property
    def full_name(self) -> str:
        return " ".join(name for name in [self.first_name, self.last_name] if name)


class Client(Base):
    """Care recipient with the registered EVV location"""
    __tablename__ = "clients"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    company_id = Column(UUID(as_uuid=True), ForeignKey("companies.id"), nullable=False, index=True)
    first_name = Column(String(100), nullable=False, default="")
    last_name = Column(String(100), nullable=False, default="")
    address = Column(Text, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    geofence_radius = Column(Integer, nullable=True)  # meters; falls back to DEFAULT_GEOFENCE_RADIUS
    sponsor_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    @property
    def full_name(self) -> str:
        return " ".join(name for name in [self.first_name, self.last_name] if name)


class Shift(Base):
    """One scheduled caregiver visit to a client"""
    __tablename__ = "shifts"
    __table_args__ = (
        CheckConstraint("scheduled_end > scheduled_start", name="ck_shifts_scheduled_window"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    company_id = Column(UUID(as_uuid=True), ForeignKey("companies.id"), nullable=False, index=True)
    carer_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    client_id = Column(UUID(as_uuid=True), ForeignKey("clients.id"), nullable=False, index=True)
    scheduled_start = Column(DateTime, nullable=False, index=True)
    scheduled_end = Column(DateTime, nullable=False)
    actual_start = Column(DateTime, nullable=True)
    actual_end = Column(DateTime, nullable=True)
    status = Column(String(20), nullable=False, default=ShiftStatus.SCHEDULED.value, index=True)
    check_in_location = Column(Text, nullable=True)  # serialized EVVLocationData
    check_out_location = Column(Text, nullable=True)  # serialized EVVLocationData
    reminders_sent_minutes = Column(ARRAY(Integer), nullable=False, default=list)  # 1440, 60
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class ShiftAttendance(Base):
    """Check-in/check-out for one (shift, UTC day)"""
    __tablename__ = "shift_attendance"
    __table_args__ = (
        UniqueConstraint("shift_id", "date", name="uq_shift_attendance_shift_date"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    shift_id = Column(UUID(as_uuid=True), ForeignKey("shifts.id"), nullable=False, index=True)
    date = Column(DateTime, nullable=False)  # UTC midnight
    check_in_time = Column(DateTime, nullable=True)
    check_out_time = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class Authorization(Base):
    """Payer authorization limiting service units for a client"""
    __tablename__ = "authorizations"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    company_id = Column(UUID(as_uuid=True), ForeignKey("companies.id"), nullable=False, index=True)
    client_id = Column(UUID(as_uuid=True), ForeignKey("clients.id"), nullable=False, index=True)
    auth_number = Column(String(100), nullable=True)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    authorized_units = Column(Numeric(10, 2), nullable=False, default=0)
    used_units = Column(Numeric(10, 2), nullable=False, default=0)
    unit_type = Column(String(20), nullable=False, default=UnitType.HOURLY.value)
    status = Column(String(20), nullable=False, default=AuthorizationStatus.ACTIVE.value, index=True)

    @property
    def remaining_units(self) -> float:
        return float(self.authorized_units or 0) - float(self.used_units or 0)


class CredentialType(Base):
    """Licence/certification kind with its reminder thresholds"""
    __tablename__ = "credential_types"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    company_id = Column(UUID(as_uuid=True), ForeignKey("companies.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    reminder_days = Column(ARRAY(Integer), nullable=False, default=list)


class CaregiverCredential(Base):
    """A caregiver's credential with its expiration tracking"""
    __tablename__ = "caregiver_credentials"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    caregiver_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    credential_type_id = Column(UUID(as_uuid=True), ForeignKey("credential_types.id"), nullable=False)
    expiration_date = Column(DateTime, nullable=False)
    status = Column(String(20), nullable=False, default=CredentialStatus.ACTIVE.value)
    reminders_sent_days = Column(ARRAY(Integer), nullable=False, default=list)
    expired_alert_sent = Column(Boolean, nullable=False, default=False)
    last_reminder_sent = Column(DateTime, nullable=True)


class CredentialAlert(Base):
    """Immutable record of a credential reminder or expiry alert"""
    __tablename__ = "credential_alerts"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    company_id = Column(UUID(as_uuid=True), ForeignKey("companies.id"), nullable=False, index=True)
    credential_id = Column(UUID(as_uuid=True), ForeignKey("caregiver_credentials.id"), nullable=False, index=True)
    alert_type = Column(String(50), nullable=False)
    severity = Column(String(20), nullable=False)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)


class AuditLog(Base):
    """Activity/audit trail entry"""
    __tablename__ = "audit_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    company_id = Column(UUID(as_uuid=True), ForeignKey("companies.id"), nullable=False, index=True)
    user_id = Column(UUID(as_uuid=True), nullable=True)
    action = Column(String(100), nullable=False)
    entity_type = Column(String(100), nullable=False)
    entity_id = Column(String(100), nullable=False)
    changes = Column(JSONB, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
