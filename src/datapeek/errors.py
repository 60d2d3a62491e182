"""Error taxonomy for the sampling pipeline.

Every caller-visible failure is one of the SampleError subclasses below.
Each carries a machine-readable ErrorCode alongside a human-readable
message that names the offending source. Library exceptions are caught
at component boundaries and re-raised as one of these; nothing else is
allowed to reach the HTTP layer.

None of these are retried. The pipeline reports the first failure and
discards whatever partial sample it had collected.
"""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """Machine codes surfaced in the error response body."""
    # validation
    MISSING_SOURCE = "MissingSource"
    UNPARSABLE_URL = "UnparsableURL"
    BAD_SIZE = "BadSize"
    BAD_OFFSET = "BadOffset"
    UNSUPPORTED_TYPE = "UnsupportedType"
    # connection
    HTTP_STATUS = "HTTPStatus"
    AUTH_FAILED = "AuthFailed"
    CONNECTION_FAILED = "ConnectionFailed"
    TIMEOUT = "Timeout"
    # decoding
    MALFORMED_JSON = "MalformedJSON"
    CSV_PARSE = "CSVParse"
    DBF_PARSE = "DBFParse"
    BAD_ARCHIVE = "BadArchive"
    NO_RECOGNIZED_ENTRY = "NoRecognizedEntry"


class SampleError(Exception):
    """Base class for every terminal failure of a sampling request."""

    def __init__(self, code: ErrorCode, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    def to_body(self, status: int = 400) -> dict[str, object]:
        """Render the JSON error object returned to callers."""
        return {
            "error": {
                "code": status,
                "reason": self.code.value,
                "message": self.message,
            }
        }


class SampleValidationError(SampleError):
    """Bad or missing request input. Raised before any network activity."""


class UnsupportedTypeError(SampleValidationError):
    """The source URL matched none of the supported formats."""

    def __init__(self, message: str = "Unsupported type"):
        super().__init__(ErrorCode.UNSUPPORTED_TYPE, message)


class SourceConnectionError(SampleError):
    """Transport-level failure: refused, timed out, auth, non-2xx status."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status: int | None = None,
        body: str | None = None,
    ):
        super().__init__(code, message)
        self.status = status
        self.body = body


class DecodeError(SampleError):
    """The payload could not be decoded as its detected format."""


def describe(exc: BaseException) -> str:
    """Short description of a library exception for error messages.

    Many network exceptions stringify to an empty message, in which
    case the exception class name is the most useful thing to show.
    """
    text = str(exc).strip()
    return text or type(exc).__name__
