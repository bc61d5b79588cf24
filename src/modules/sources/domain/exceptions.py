"""Source domain exceptions."""

from fastapi import status

from src.core.domain.exceptions import (
    DomainException,
    EntityNotFoundError,
    ValidationError,
)


class SourceNotFoundError(EntityNotFoundError):
    """Raised when no configured source has the given name."""

    def __init__(self, name: str):
        super().__init__("Source", name)


class UnsupportedSourceFormatError(ValidationError):
    """Raised when the format selector is neither v1 nor v2."""

    error_code = "UNSUPPORTED_SOURCE_FORMAT"

    def __init__(self, format_name: str):
        super().__init__(f"Unsupported source format: [{format_name}]")


class InvalidPublicKeyError(ValidationError):
    """Raised when the verification key cannot be parsed."""

    error_code = "INVALID_PUBLIC_KEY"

    def __init__(self, reason: str):
        super().__init__(f"Invalid public key: {reason}")


class SourceFetchError(DomainException):
    """Raised when a catalog or signature cannot be downloaded."""

    http_status_code = status.HTTP_502_BAD_GATEWAY
    error_code = "SOURCE_FETCH_FAILED"

    def __init__(self, url: str, reason: str, status_code: int | None = None):
        self.url = url
        self.status_code = status_code
        super().__init__(f"Unable to fetch [{url}]: {reason}")


class SourceTrustError(DomainException):
    """Base class for signature failures; always invalidates the cache."""

    http_status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    error_code = "SOURCE_UNTRUSTED"


class SignatureDecodeError(SourceTrustError):
    """Raised when the detached signature text is malformed."""

    error_code = "SIGNATURE_MALFORMED"


class SignatureVerificationError(SourceTrustError):
    """Raised when the signature does not match the content."""

    error_code = "SIGNATURE_MISMATCH"


class SourceFormatError(DomainException):
    """Raised when a verified catalog cannot be parsed."""

    http_status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    error_code = "SOURCE_FORMAT_ERROR"


class CacheReadError(DomainException):
    """Raised when a cache file exists but cannot be read."""

    http_status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "CACHE_READ_ERROR"


class CachePersistError(DomainException):
    """Raised when a cache file cannot be written."""

    http_status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "CACHE_PERSIST_ERROR"
