"""Custom exceptions for scheduling"""
from datetime import date
from fastapi import HTTPException, status


class InvalidBulkScheduleException(HTTPException):
    """Raised when a bulk schedule request fails validation"""
    def __init__(self, message: str, field: str = None):
        detail = {"error": message}
        if field:
            detail["field"] = field
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class ScheduleConflictException(HTTPException):
    """Raised when a strict bulk create hits an overlapping shift"""
    def __init__(self, conflict_date: date):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Carer has a conflicting shift on {conflict_date.isoformat()}"
        )


class ClientNotFoundException(HTTPException):
    def __init__(self, client_id: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Client {client_id} not found"
        )


class CarerNotFoundException(HTTPException):
    def __init__(self, carer_id: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Carer {carer_id} not found"
        )
