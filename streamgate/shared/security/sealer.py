"""Tamper-evident, time-limited cookie payloads.

Tokens are itsdangerous timed signatures salted with the cookie purpose, so a
token minted for one cookie never unseals as another. The TTL travels inside
the signed body and is checked against the signature timestamp on unseal.
"""

import time
from typing import Any

from itsdangerous import BadSignature, URLSafeTimedSerializer
from pydantic import BaseModel


class SealError(Exception):
    """Token is missing, forged, for another purpose, or expired."""


class CookieDirective(BaseModel):
    """A cookie the HTTP layer must set (or clear when max_age is 0)."""

    name: str
    value: str = ""
    max_age: int = 0

    @property
    def clears(self) -> bool:
        return self.max_age <= 0


class CookieSealer:
    def __init__(self, secret: str):
        if not secret:
            raise ValueError("cookie secret must not be empty")
        self._secret = secret
        self._serializers: dict[str, URLSafeTimedSerializer] = {}

    def _serializer(self, purpose: str) -> URLSafeTimedSerializer:
        serializer = self._serializers.get(purpose)
        if serializer is None:
            serializer = URLSafeTimedSerializer(self._secret, salt=f"streamgate.{purpose}")
            self._serializers[purpose] = serializer
        return serializer

    def seal(self, payload: Any, ttl: int, purpose: str) -> str:
        return self._serializer(purpose).dumps({"v": payload, "ttl": int(ttl)})

    def unseal(self, token: str | None, purpose: str) -> Any:
        if not token:
            raise SealError("missing token")
        try:
            body, signed_at = self._serializer(purpose).loads(token, return_timestamp=True)
        except BadSignature as exc:
            raise SealError("bad signature") from exc

        if not isinstance(body, dict) or "v" not in body:
            raise SealError("malformed payload")
        ttl = int(body.get("ttl", 0))
        if ttl <= 0 or time.time() - signed_at.timestamp() > ttl:
            raise SealError("expired")
        return body["v"]

    def cookie(self, name: str, payload: Any, ttl: int) -> CookieDirective:
        return CookieDirective(name=name, value=self.seal(payload, ttl, name), max_age=ttl)

    @staticmethod
    def clear(name: str) -> CookieDirective:
        return CookieDirective(name=name, value="", max_age=0)
