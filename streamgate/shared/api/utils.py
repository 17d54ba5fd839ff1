import inspect
from functools import lru_cache
from os import environ
from pathlib import Path
from typing import Any, Literal
from uuid import uuid4

from fastapi import Header, Request
from fastapi.responses import ORJSONResponse
from loguru import logger
from pydantic import BaseModel, Field

from streamgate.utils.app_errors import AppError, AppErrorCode, HttpStatusCode


class ApiResponse(BaseModel):
    version: str | None = Field(default_factory=lambda: environ.get("BUILD_COMMIT", "dev"))


class ApiSuccess(ApiResponse):
    success: Literal[True] = True
    results: Any = "OK"


class ApiFailure(ApiResponse):
    success: Literal[False] = False
    errcode: str = AppErrorCode.E_INTERNAL_ERROR.value
    erresid: str = Field(default_factory=lambda: uuid4().hex[:10])
    errmesg: str = "We are sorry, an error occurred."


def api_failure(errcode: str | None = None, errmesg: str | None = None):
    if not errcode:
        errcode = ApiFailure.model_fields["errcode"].default

    if not errmesg:
        errmesg = ApiFailure.model_fields["errmesg"].default

    failure = ApiFailure(errcode=errcode, errmesg=errmesg)

    caller_frame = inspect.stack()[1]
    module = inspect.getmodule(caller_frame.frame)
    module_name = module.__name__ if module and getattr(module, "__name__", None) else caller_frame.filename
    caller_info = f"{module_name}:{caller_frame.function}:{caller_frame.lineno}"

    logger.warning(f"{failure.errcode} {failure.erresid}\n{failure.errmesg} caller={caller_info}")

    return failure


def make_response(results, *, status_code: int | None = None) -> ORJSONResponse:
    if isinstance(results, ApiFailure):
        if status_code is None:
            status_code = 500 if results.errcode == AppErrorCode.E_INTERNAL_ERROR else 400
    elif status_code is None:
        status_code = 200

    return ORJSONResponse(
        status_code=status_code,
        content=results.model_dump() if hasattr(results, "model_dump") else results,
    )


def get_remote_addr(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


async def verify_api_key(request: Request, x_api_key: str = Header(default="")):
    import hmac

    from streamgate.app_config import get_app_environ_config

    expected = get_app_environ_config().INTERNAL_API_KEY
    if not expected or not hmac.compare_digest(x_api_key.encode(), expected.encode()):
        logger.warning("Invalid API key attempt from {}", get_remote_addr(request))
        raise AppError(
            errcode=AppErrorCode.E_BAD_API_KEY,
            errmesg="Invalid API key",
            status_code=HttpStatusCode.UNAUTHORIZED,
        )


@lru_cache
def get_worker_info():
    project_root = Path(__file__).parent.parent.parent.parent
    worker_name = environ.get("WORKER_NAME", project_root.name)

    parts = environ.get("BUILD_COMMIT", "").split("-")
    commit_id = parts[1] if len(parts) > 1 else "dev"

    return worker_name, commit_id


def init_logger(debug: bool = False):
    import sys

    logger.remove()

    worker_name, commit_id = get_worker_info()

    if debug:
        logger_level = "DEBUG"
        logger_format = (
            f"<yellow>{worker_name}:{commit_id}</yellow> | "
            "<green>{time:MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
            "<level>{message}</level>"
        )
    else:
        logger_level = "INFO"
        logger_format = (
            f"{worker_name}:{commit_id} | "
            "{time:MM-DD HH:mm:ss.SSS} | "
            "{level: <8} | "
            "{name}:{function}:{line} | "
            "{message}"
        )
    logger.add(sys.stderr, level=logger_level, format=logger_format)
