"""Custom exceptions for shift attendance"""
from fastapi import HTTPException, status


class ShiftNotFoundException(HTTPException):
    """Raised when a shift is not found in the caller's company"""
    def __init__(self, shift_id: str = None):
        detail = "Shift not found"
        if shift_id:
            detail = f"Shift {shift_id} not found"
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class UnauthorizedCaregiverException(HTTPException):
    """Raised when a caregiver acts on a shift assigned to someone else"""
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not assigned to this shift"
        )


class ShiftClosedException(HTTPException):
    """Raised when checking in or out of a completed or cancelled shift"""
    def __init__(self, current_status: str, action: str = "check in to"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot {action} a shift with status: {current_status}"
        )


class AlreadyCheckedInException(HTTPException):
    """Raised when today's attendance already has a check-in"""
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail="Already checked in for today"
        )


class AlreadyCheckedOutException(HTTPException):
    """Raised when today's attendance already has a check-out"""
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail="Already checked out for today"
        )


class NotCheckedInException(HTTPException):
    """Raised when checking out of a day that has no check-in"""
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Must check in before checking out"
        )
