"""Set-Cookie ヘッダーのシリアライズと HMAC 署名"""

from __future__ import annotations

import base64
import hashlib
import hmac
from collections.abc import Callable
from datetime import timezone
from email.utils import format_datetime
from urllib.parse import quote

from .exceptions import SessionError, SessionErrorCodes
from .models import CookieAttributes, normalize_expires

_SAME_SITE = {"lax": "Lax", "strict": "Strict", "none": "None"}


def _default_encode(value: str) -> str:
    return quote(value, safe="")


def serialize_cookie(
    name: str,
    value: str,
    cookie: CookieAttributes,
    *,
    encode: Callable[[str], str] | None = None,
    sign: Callable[[str], str] | None = None,
) -> str:
    """Set-Cookie ヘッダー値を組み立てる。

    値は sign → encode の順に変換する。属性の順序は
    Domain, Path, Expires, HttpOnly, Secure, SameSite。
    """
    if sign is not None:
        value = sign(value)
    value = (encode or _default_encode)(value)

    parts = [f"{name}={value}"]
    if cookie.domain:
        parts.append(f"Domain={cookie.domain}")
    if cookie.path:
        parts.append(f"Path={cookie.path}")
    expires = normalize_expires(cookie.expires)
    if expires is not None:
        expires_utc = expires.astimezone(timezone.utc)
        parts.append(f"Expires={format_datetime(expires_utc, usegmt=True)}")
    if cookie.http_only:
        parts.append("HttpOnly")
    if cookie.secure:
        parts.append("Secure")
    same_site = cookie.same_site
    if same_site is True:
        parts.append("SameSite=Strict")
    elif isinstance(same_site, str):
        parts.append(f"SameSite={_SAME_SITE[same_site.lower()]}")
    return "; ".join(parts)


class HmacSigner:
    """HMAC-SHA256 による Cookie 値の署名と検証。

    署名済みの値は ``<value>.<base64url(hmac)>`` 形式。
    """

    def __init__(self, secret: str) -> None:
        if not secret:
            raise ValueError("secret cannot be empty")
        self._secret = secret.encode()

    def _digest(self, value: str) -> str:
        mac = hmac.new(self._secret, value.encode(), hashlib.sha256).digest()
        return base64.urlsafe_b64encode(mac).rstrip(b"=").decode()

    def sign(self, value: str) -> str:
        return f"{value}.{self._digest(value)}"

    def unsign(self, signed: str) -> str:
        value, sep, signature = signed.rpartition(".")
        if not sep or not hmac.compare_digest(self._digest(value), signature):
            raise SessionError(
                code=SessionErrorCodes.INVALID_SIGNATURE,
                message="Cookie signature mismatch",
            )
        return value
