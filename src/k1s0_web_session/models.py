"""セッションのデータモデル"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, Union

SameSite = Union[Literal["lax", "strict", "none"], bool, None]

RESERVED_KEY = "cookie"


def normalize_expires(value: datetime | str | None) -> datetime | None:
    """expires を aware な UTC datetime に正規化する。

    テキスト形式で往復するストアは ISO-8601 文字列を返すため、ここで datetime に戻す。
    """
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass
class CookieAttributes:
    """セッション Cookie の属性。

    max_age と expires は両方設定されるか、両方未設定のどちらか。
    """

    path: str = "/"
    http_only: bool = True
    domain: str | None = None
    same_site: SameSite = None
    secure: bool = False
    max_age: int | None = None
    expires: datetime | str | None = None

    def to_dict(self) -> dict[str, Any]:
        expires = self.expires
        if isinstance(expires, datetime):
            expires = expires.isoformat()
        return {
            "path": self.path,
            "httpOnly": self.http_only,
            "domain": self.domain,
            "sameSite": self.same_site,
            "secure": self.secure,
            "maxAge": self.max_age,
            "expires": expires,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CookieAttributes:
        return cls(
            path=data.get("path") or "/",
            http_only=bool(data.get("httpOnly", True)),
            domain=data.get("domain"),
            same_site=data.get("sameSite"),
            secure=bool(data.get("secure", False)),
            max_age=data.get("maxAge"),
            expires=data.get("expires"),
        )


@dataclass
class SessionRecord:
    """ストアに永続化されるセッションレコード。"""

    payload: dict[str, Any] = field(default_factory=dict)
    cookie: CookieAttributes = field(default_factory=CookieAttributes)

    def to_dict(self) -> dict[str, Any]:
        return {**self.payload, RESERVED_KEY: self.cookie.to_dict()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionRecord:
        payload = {k: v for k, v in data.items() if k != RESERVED_KEY}
        return cls(
            payload=payload,
            cookie=CookieAttributes.from_dict(data.get(RESERVED_KEY) or {}),
        )


@dataclass
class SessionFlags:
    """リクエストスコープのライフサイクルフラグ。永続化されない。"""

    is_new: bool = False
    is_touched: bool = False
    is_destroyed: bool = False
    is_modified: bool = False
