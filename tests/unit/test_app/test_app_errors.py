"""
test_app_errors.py - PipelineError → HTTP 매핑 테스트
"""

import pytest

from src.app.errors import status_for, to_http_exception
from src.domain.errors import (
    DatasetError,
    ErrorCodes,
    GenerationError,
    PackagingError,
    PipelineError,
    RenderError,
    SessionError,
    StorageError,
    TemplateIssue,
    TemplateParseError,
    UploadError,
)


class TestStatusFor:
    """status_for 매핑."""

    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (SessionError(ErrorCodes.SESSION_NOT_FOUND, session_id="x"), 404),
            (SessionError(ErrorCodes.SESSION_LOCK_TIMEOUT, session_id="x"), 409),
            (SessionError(ErrorCodes.SESSION_CORRUPT, session_id="x"), 500),
            (StorageError(ErrorCodes.STORAGE_NOT_FOUND, key="k"), 404),
            (StorageError(ErrorCodes.STORAGE_INVALID_KEY, key="../k"), 400),
            (StorageError(ErrorCodes.STORAGE_WRITE_FAILED, key="k"), 500),
            (UploadError(ErrorCodes.INVALID_UPLOAD, error="Empty file"), 400),
            (DatasetError(ErrorCodes.NO_DATA_ROWS), 400),
            (TemplateParseError([TemplateIssue(id="unclosed_tag", message="Unclosed tag")]), 400),
            (RenderError([TemplateIssue(id=None, message="boom")]), 400),
            (GenerationError(["Row 1: boom"]), 422),
            (PackagingError("upload failed"), 500),
            (PipelineError("SOMETHING_ELSE"), 500),
        ],
    )
    def test_mapping(self, error: PipelineError, expected: int):
        assert status_for(error) == expected


class TestToHttpException:
    """to_http_exception detail 형식."""

    def test_error_message_from_context(self):
        exc = to_http_exception(UploadError(ErrorCodes.INVALID_UPLOAD, error="Empty file"))

        assert exc.status_code == 400
        assert exc.detail == {
            "success": False,
            "code": ErrorCodes.INVALID_UPLOAD,
            "error": "Empty file",
        }

    def test_message_falls_back_to_str(self):
        err = SessionError(ErrorCodes.SESSION_NOT_FOUND, session_id="abc")

        exc = to_http_exception(err)

        assert exc.status_code == 404
        assert exc.detail["error"] == str(err)
        assert exc.detail["session_id"] == "abc"

    def test_generation_error_lists_rows(self):
        exc = to_http_exception(GenerationError(["Row 2: boom"], session_id="s1"))

        assert exc.status_code == 422
        assert exc.detail["errors"] == ["Row 2: boom"]
        assert exc.detail["failed_rows"] == 1
