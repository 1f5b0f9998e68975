"""Error handling module for nfsusers.

This module defines error codes, exception classes, and response models.
Every provisioning failure is surfaced to the caller as one of these classes,
with the underlying exception chained as ``__cause__``. None are retried here.

Error Response Format:
{
    "error": {
        "code": "IDENTITY_LOOKUP_FAILED",
        "message": "No directory entry for user 'alice'"
    }
}

Usage:
    from nfsusers.errors import AllocationError

    try:
        os.makedirs(path)
    except OSError as e:
        raise AllocationError("Failed to create directory", path=path, cause=e) from e
"""

from enum import Enum

from pydantic import BaseModel


class ErrorCode(str, Enum):
    """Error codes."""

    MISSING_OWNER_ANNOTATION = "MISSING_OWNER_ANNOTATION"
    IDENTITY_LOOKUP_FAILED = "IDENTITY_LOOKUP_FAILED"
    ALLOCATION_FAILED = "ALLOCATION_FAILED"
    UNSUPPORTED_FORMAT = "UNSUPPORTED_FORMAT"
    DECOMPRESSION_FAILED = "DECOMPRESSION_FAILED"
    EXTRACTION_FAILED = "EXTRACTION_FAILED"
    ARCHIVAL_FAILED = "ARCHIVAL_FAILED"


class ErrorDetail(BaseModel):
    """Error detail containing code and message."""

    code: str
    message: str


class ErrorResponse(BaseModel):
    """Error response format."""

    error: ErrorDetail


class ProvisionerError(Exception):
    """Base exception for nfsusers.

    Attributes:
        code: The error code from ErrorCode enum
        message: Human-readable error message
        status_code: HTTP status code to return
        owner: Owner the failing operation was acting for, if known
        path: Filesystem path involved, if any
        cause: Underlying exception, if any
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status_code: int,
        *,
        owner: str | None = None,
        path: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.owner = owner
        self.path = path
        self.cause = cause
        super().__init__(self._render())

    def _render(self) -> str:
        text = self.message
        if self.path:
            text = f"{text} (path: {self.path})"
        if self.cause is not None:
            text = f"{text}: {self.cause}"
        return text

    def to_response(self) -> ErrorResponse:
        """Convert exception to ErrorResponse model."""
        return ErrorResponse(error=ErrorDetail(code=self.code.value, message=str(self)))


class MissingOwnerAnnotationError(ProvisionerError):
    """400 Bad Request - Claim has no owner annotation."""

    def __init__(self, annotation: str) -> None:
        self.annotation = annotation
        super().__init__(
            ErrorCode.MISSING_OWNER_ANNOTATION,
            f"missing '{annotation}' annotation",
            400,
        )


class IdentityLookupError(ProvisionerError):
    """502 Bad Gateway - Directory service unreachable, no match or bad attributes."""

    def __init__(
        self,
        message: str = "Identity lookup failed",
        *,
        owner: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(
            ErrorCode.IDENTITY_LOOKUP_FAILED, message, 502, owner=owner, cause=cause
        )


class AllocationError(ProvisionerError):
    """500 Internal Server Error - Backing directory allocation or cleanup failed."""

    def __init__(
        self,
        message: str = "Allocation failed",
        *,
        owner: str | None = None,
        path: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(
            ErrorCode.ALLOCATION_FAILED, message, 500, owner=owner, path=path, cause=cause
        )


class UnsupportedFormatError(ProvisionerError):
    """422 Unprocessable Entity - Seed archive is not a gzip-compressed tar."""

    def __init__(self, path: str) -> None:
        super().__init__(
            ErrorCode.UNSUPPORTED_FORMAT,
            "unsupported archive format (only .tar.gz is supported)",
            422,
            path=path,
        )


class DecompressionError(ProvisionerError):
    """500 Internal Server Error - gzip stream could not be decompressed."""

    def __init__(
        self,
        message: str = "Decompression failed",
        *,
        owner: str | None = None,
        path: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(
            ErrorCode.DECOMPRESSION_FAILED, message, 500, owner=owner, path=path, cause=cause
        )


class ExtractionError(ProvisionerError):
    """500 Internal Server Error - tar stream could not be unpacked."""

    def __init__(
        self,
        message: str = "Extraction failed",
        *,
        owner: str | None = None,
        path: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(
            ErrorCode.EXTRACTION_FAILED, message, 500, owner=owner, path=path, cause=cause
        )


class ArchivalError(ProvisionerError):
    """500 Internal Server Error - Soft delete rename failed."""

    def __init__(
        self,
        message: str = "Archival failed",
        *,
        owner: str | None = None,
        path: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(
            ErrorCode.ARCHIVAL_FAILED, message, 500, owner=owner, path=path, cause=cause
        )
