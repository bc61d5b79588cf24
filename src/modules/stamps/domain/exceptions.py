"""Stamp domain exceptions."""

from fastapi import status

from src.core.domain.exceptions import DomainException


class InvalidStampError(DomainException):
    """Raised when a server stamp cannot be built or decoded."""

    http_status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    error_code = "INVALID_STAMP"
