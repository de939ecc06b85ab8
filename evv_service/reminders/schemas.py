from datetime import datetime
from pydantic import Field

from evv_service.utils.schemas import CamelModel


class ShiftReminderResults(CamelModel):
    shifts_checked: int = 0
    reminders_24h_sent: int = Field(0, alias="reminders24hSent")
    reminders_1h_sent: int = Field(0, alias="reminders1hSent")
    errors: list[str] = []


class ShiftReminderResponse(CamelModel):
    success: bool = True
    timestamp: datetime
    results: ShiftReminderResults
