"""InMemorySessionStore 実装"""

from __future__ import annotations

import json
from datetime import datetime, timezone

from .models import SessionRecord, normalize_expires
from .store import SessionStore


class InMemorySessionStore(SessionStore):
    """開発・テスト用インメモリセッションストア。

    レコードは JSON 文字列として保持するため、呼び出し元の変更から隔離される。
    読み出し時の expires は文字列のまま返る。複数プロセス間では共有されない。
    """

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, id: object) -> bool:
        return id in self._store

    async def get(self, id: str) -> SessionRecord | None:
        raw = self._store.get(id)
        if raw is None:
            return None
        record = SessionRecord.from_dict(json.loads(raw))
        expires = normalize_expires(record.cookie.expires)
        if expires is not None and expires <= datetime.now(timezone.utc):
            del self._store[id]
            return None
        return record

    async def set(self, id: str, record: SessionRecord) -> None:
        self._store[id] = json.dumps(record.to_dict())

    async def destroy(self, id: str) -> None:
        self._store.pop(id, None)

    async def touch(self, id: str, record: SessionRecord) -> None:
        raw = self._store.get(id)
        if raw is None:
            return
        # ペイロードは保存済みのまま、cookie 属性だけを差し替える
        data = json.loads(raw)
        data["cookie"] = record.cookie.to_dict()
        self._store[id] = json.dumps(data)
