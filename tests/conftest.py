"""web_session テスト共通フィクスチャ"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from k1s0_web_session import CookieAttributes, SessionRecord

NOW = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeTransport:
    """テスト用トランスポート。send_headers でヘッダー送信を模擬する。"""

    def __init__(self, cookies: dict[str, str] | None = None) -> None:
        self.cookies = dict(cookies or {})
        self.session = None
        self.hooks: dict[str, Callable[[], None]] = {}
        self.headers: list[tuple[str, str]] = []
        self.sent = False

    def get_request_cookie(self, name: str) -> str | None:
        return self.cookies.get(name)

    def register_pre_header_hook(self, key: str, hook: Callable[[], None]) -> None:
        self.hooks[key] = hook

    def append_response_header(self, name: str, value: str) -> None:
        self.headers.append((name, value))

    def headers_already_sent(self) -> bool:
        return self.sent

    def send_headers(self) -> None:
        for hook in list(self.hooks.values()):
            hook()
        self.sent = True

    def set_cookies(self) -> list[str]:
        return [value for name, value in self.headers if name == "Set-Cookie"]


class MockStore:
    """get / set / destroy のみを持つストア（touch 非対応）。"""

    def __init__(self, record: SessionRecord | None = None) -> None:
        self.get = AsyncMock(return_value=record)
        self.set = AsyncMock(return_value=None)
        self.destroy = AsyncMock(return_value=None)


class TouchableMockStore(MockStore):
    """touch に対応したストア。"""

    def __init__(self, record: SessionRecord | None = None) -> None:
        super().__init__(record)
        self.touch = AsyncMock(return_value=None)


def make_record(payload: dict | None = None, **cookie: object) -> SessionRecord:
    return SessionRecord(payload=dict(payload or {}), cookie=CookieAttributes(**cookie))


@pytest.fixture
def clock() -> Callable[[], datetime]:
    return lambda: NOW


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()
