"""リクエストスコープのセッションハンドル"""

from __future__ import annotations

from collections.abc import Awaitable, Iterator, MutableMapping
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Any, TypeVar

import structlog

from .exceptions import SessionError, SessionErrorCodes
from .models import RESERVED_KEY, CookieAttributes, SessionFlags, SessionRecord
from .transport import SessionTransport

logger = structlog.stdlib.get_logger(__name__)

# クライアントに Cookie 削除を指示するための経過済み時刻
EXPIRED_AT = datetime(1970, 1, 1, tzinfo=timezone.utc) + timedelta(milliseconds=1)

_T = TypeVar("_T")


async def call_store(operation: str, awaitable: Awaitable[_T]) -> _T:
    """ストア操作を実行し、失敗を SessionError(STORE_ERROR) として伝播する。"""
    try:
        return await awaitable
    except SessionError:
        raise
    except Exception as e:
        logger.warning("session store operation failed", operation=operation, error=str(e))
        raise SessionError(
            code=SessionErrorCodes.STORE,
            message=f"Session store {operation} failed: {e}",
            cause=e,
        ) from e


@dataclass
class SessionContext:
    """セッション操作が参照する解決時のコンテキスト。"""

    store: Any
    now: datetime
    transport: SessionTransport | None = None


class Session(MutableMapping[str, Any]):
    """Cookie の ID で識別されるセッション。

    アプリケーションデータは dict と同様に読み書きできる。``cookie`` キーは予約済み。
    ライフサイクルフラグは ``flags`` に分離され、永続化されない。
    """

    def __init__(
        self,
        session_id: str,
        record: SessionRecord,
        context: SessionContext,
        *,
        is_new: bool = False,
    ) -> None:
        self._id = session_id
        self._payload: dict[str, Any] = dict(record.payload)
        self.cookie: CookieAttributes = record.cookie
        self.flags = SessionFlags(is_new=is_new)
        self._context = context

    @property
    def id(self) -> str:
        return self._id

    def __getitem__(self, key: str) -> Any:
        return self._payload[key]

    def __setitem__(self, key: str, value: Any) -> None:
        if key == RESERVED_KEY:
            raise KeyError(f"'{RESERVED_KEY}' is reserved for cookie attributes")
        self._payload[key] = value
        self.flags.is_modified = True

    def __delitem__(self, key: str) -> None:
        del self._payload[key]
        self.flags.is_modified = True

    def __iter__(self) -> Iterator[str]:
        return iter(self._payload)

    def __len__(self) -> int:
        return len(self._payload)

    def __repr__(self) -> str:
        return f"Session(keys={list(self._payload)!r}, flags={self.flags!r})"

    def to_record(self) -> SessionRecord:
        """フラグを除いた永続化用スナップショットを返す。"""
        return SessionRecord(payload=dict(self._payload), cookie=replace(self.cookie))

    async def commit(self) -> None:
        """現在のデータをストアに保存する。何度呼んでもよい。"""
        await call_store("set", self._context.store.set(self._id, self.to_record()))

    async def touch(self) -> None:
        """有効期限を解決時刻 + max_age に延長する。"""
        if self.cookie.max_age is not None:
            self.cookie.expires = self._context.now + timedelta(seconds=self.cookie.max_age)
        store_touch = getattr(self._context.store, "touch", None)
        if store_touch is not None:
            await call_store("touch", store_touch(self._id, self.to_record()))
        self.flags.is_touched = True

    async def destroy(self) -> None:
        """セッションを破棄し、リクエストから切り離す。"""
        self.flags.is_destroyed = True
        self.cookie.expires = EXPIRED_AT
        await call_store("destroy", self._context.store.destroy(self._id))
        transport = self._context.transport
        if transport is not None and transport.session is self:
            transport.session = None
        logger.debug("session destroyed")
