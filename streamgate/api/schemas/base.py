from typing import Generic, TypeVar

from streamgate.shared.api.utils import ApiSuccess

T = TypeVar("T")


class ApiOut(ApiSuccess, Generic[T]):
    """Standard API envelope used by owner and ingest routers."""

    results: T  # type: ignore[valid-type]
