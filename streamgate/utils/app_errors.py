"""Application error codes and the exception raised across domain services."""

import inspect
from enum import IntEnum, StrEnum
from uuid import uuid4


class HttpStatusCode(IntEnum):
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    CONFLICT = 409
    UNPROCESSABLE_ENTITY = 422
    INTERNAL_SERVER_ERROR = 500


class AppErrorCode(StrEnum):
    # Ingest: unknown channel and wrong key share one code
    E_USER_NOT_FOUND = "E_USER_NOT_FOUND"

    # Registry
    E_CONFLICT = "E_CONFLICT"
    E_NOT_FOUND = "E_NOT_FOUND"
    E_STORE_FAILURE = "E_STORE_FAILURE"

    # Login flow
    E_STATE_MISMATCH = "E_STATE_MISMATCH"
    E_MISSING_CODE = "E_MISSING_CODE"
    E_CONFIGURATION = "E_CONFIGURATION"
    E_UPSTREAM_FAILURE = "E_UPSTREAM_FAILURE"
    E_NOT_AUTHORIZED = "E_NOT_AUTHORIZED"

    # Generic
    E_BAD_API_KEY = "E_BAD_API_KEY"
    E_INVALID_PARAMS = "E_INVALID_PARAMS"
    E_INTERNAL_ERROR = "E_INTERNAL_ERROR"


class AppError(Exception):
    """Error carrying a client-facing code, message and HTTP status.

    The caller location is captured at construction so the exception handler
    can log where the error was raised, not where it was caught.
    """

    def __init__(
        self,
        errcode: AppErrorCode | str = AppErrorCode.E_INTERNAL_ERROR,
        errmesg: str = "We are sorry, an error occurred.",
        status_code: HttpStatusCode | int = HttpStatusCode.INTERNAL_SERVER_ERROR,
    ):
        super().__init__(errmesg)
        self.errcode = str(errcode)
        self.errmesg = errmesg
        self.status_code = int(status_code)
        self.erresid = uuid4().hex[:10]
        self.caller_info = self._caller_info()

    @staticmethod
    def _caller_info() -> str:
        frame = inspect.currentframe()
        # skip _caller_info and __init__ (plus subclass __init__ frames)
        while frame is not None and frame.f_code.co_name in ("_caller_info", "__init__"):
            frame = frame.f_back
        if frame is None:
            return "unknown"
        module = frame.f_globals.get("__name__", "")
        return f"{module}:{frame.f_code.co_name}:{frame.f_lineno}"

    def __repr__(self) -> str:
        return f"AppError({self.errcode!r}, {self.errmesg!r}, {self.status_code})"
