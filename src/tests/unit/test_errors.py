"""Tests for error handling classes."""

import pytest

from nfsusers.errors import (
    AllocationError,
    ArchivalError,
    DecompressionError,
    ErrorCode,
    ExtractionError,
    IdentityLookupError,
    MissingOwnerAnnotationError,
    ProvisionerError,
    UnsupportedFormatError,
)


class TestMissingOwnerAnnotationError:

    def test_message_names_annotation(self) -> None:
        exc = MissingOwnerAnnotationError("storage.example.com/owner")

        assert exc.message == "missing 'storage.example.com/owner' annotation"
        assert exc.annotation == "storage.example.com/owner"
        assert exc.status_code == 400

    def test_to_response(self) -> None:
        resp = MissingOwnerAnnotationError("owner").to_response()

        assert resp.error.code == "MISSING_OWNER_ANNOTATION"
        assert resp.error.message == "missing 'owner' annotation"


class TestStructuredContext:

    def test_path_and_cause_rendered(self) -> None:
        cause = PermissionError("denied")
        exc = AllocationError(
            "Failed to create directory", owner="alice", path="/data/pv-alice", cause=cause
        )

        assert exc.owner == "alice"
        assert exc.path == "/data/pv-alice"
        assert exc.cause is cause
        assert str(exc) == "Failed to create directory (path: /data/pv-alice): denied"

    def test_unsupported_format_carries_path(self) -> None:
        exc = UnsupportedFormatError("/data/base.zip")

        assert exc.path == "/data/base.zip"
        assert exc.status_code == 422


class TestErrorClasses:

    @pytest.mark.parametrize(
        "exc,code,status",
        [
            (IdentityLookupError(), ErrorCode.IDENTITY_LOOKUP_FAILED, 502),
            (AllocationError(), ErrorCode.ALLOCATION_FAILED, 500),
            (UnsupportedFormatError("x.zip"), ErrorCode.UNSUPPORTED_FORMAT, 422),
            (DecompressionError(), ErrorCode.DECOMPRESSION_FAILED, 500),
            (ExtractionError(), ErrorCode.EXTRACTION_FAILED, 500),
            (ArchivalError(), ErrorCode.ARCHIVAL_FAILED, 500),
        ],
    )
    def test_code_and_status(self, exc: ProvisionerError, code: ErrorCode, status: int) -> None:
        assert isinstance(exc, ProvisionerError)
        assert exc.code == code
        assert exc.status_code == status
        assert exc.to_response().error.code == code.value

    def test_all_error_codes(self) -> None:
        assert {code.value for code in ErrorCode} == {
            "MISSING_OWNER_ANNOTATION",
            "IDENTITY_LOOKUP_FAILED",
            "ALLOCATION_FAILED",
            "UNSUPPORTED_FORMAT",
            "DECOMPRESSION_FAILED",
            "EXTRACTION_FAILED",
            "ARCHIVAL_FAILED",
        }
