"""Custom exceptions for EVV"""
from fastapi import HTTPException, status


class InvalidLocationException(HTTPException):
    """Raised when a reading or the client's coordinates cannot be validated"""
    def __init__(self, message: str):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": message, "field": "location"}
        )


class InvalidReportRangeException(HTTPException):
    """Raised when a report's end date precedes its start date"""
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "endDate must not be before startDate", "field": "endDate"}
        )


class UnsupportedReportFormatException(HTTPException):
    """Raised when a download format other than CSV is requested"""
    def __init__(self, report_format: str):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported report format: {report_format}"
        )
