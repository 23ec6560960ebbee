"""ASGI セッションミドルウェア（starlette）"""

from __future__ import annotations

from collections.abc import Callable

from starlette.datastructures import MutableHeaders
from starlette.requests import HTTPConnection
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from .options import SessionOptions
from .resolver import SessionResolver
from .session import Session

TRANSPORT_SCOPE_KEY = "k1s0_web_session.transport"
RESOLVER_SCOPE_KEY = "k1s0_web_session.resolver"


class ASGISessionTransport:
    """ASGI の 1 リクエストを SessionTransport として扱うアダプター。"""

    def __init__(self, scope: Scope) -> None:
        self._cookies = HTTPConnection(scope).cookies
        self.session: Session | None = None
        self._hooks: dict[str, Callable[[], None]] = {}
        self._pending: list[tuple[str, str]] = []
        self._headers_sent = False

    def get_request_cookie(self, name: str) -> str | None:
        return self._cookies.get(name)

    def register_pre_header_hook(self, key: str, hook: Callable[[], None]) -> None:
        self._hooks[key] = hook

    def append_response_header(self, name: str, value: str) -> None:
        self._pending.append((name, value))

    def headers_already_sent(self) -> bool:
        return self._headers_sent

    def flush(self, message: Message) -> None:
        """フックを実行し、溜まったヘッダーを http.response.start メッセージに追加する。"""
        for hook in list(self._hooks.values()):
            hook()
        message.setdefault("headers", [])
        headers = MutableHeaders(scope=message)
        for name, value in self._pending:
            headers.append(name, value)
        self._pending.clear()
        self._headers_sent = True


class SessionMiddleware:
    """リクエストごとにトランスポートを用意し、ヘッダー送信直前に Cookie を送出する。

    セッションはエンドポイントで ``await get_session(request)`` を呼んだときに解決される。
    ``auto_commit`` が有効な場合、変更のあるセッションをヘッダー送信前に保存する。
    """

    def __init__(
        self,
        app: ASGIApp,
        resolver: SessionResolver | None = None,
        options: SessionOptions | None = None,
    ) -> None:
        self.app = app
        self.resolver = resolver or SessionResolver(options)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        transport = ASGISessionTransport(scope)
        scope[TRANSPORT_SCOPE_KEY] = transport
        scope[RESOLVER_SCOPE_KEY] = self.resolver

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start" and not transport.headers_already_sent():
                if self.resolver.options.auto_commit:
                    await self._auto_commit(transport)
                transport.flush(message)
            await send(message)

        await self.app(scope, receive, send_wrapper)

    @staticmethod
    async def _auto_commit(transport: ASGISessionTransport) -> None:
        session = transport.session
        if session is None or session.flags.is_destroyed:
            return
        if session.flags.is_modified:
            await session.commit()


async def get_session(request: HTTPConnection) -> Session:
    """エンドポイントからリクエストのセッションを取得する。

    Raises:
        RuntimeError: SessionMiddleware が組み込まれていない場合
    """
    try:
        transport = request.scope[TRANSPORT_SCOPE_KEY]
        resolver = request.scope[RESOLVER_SCOPE_KEY]
    except KeyError as e:
        raise RuntimeError("SessionMiddleware is not installed") from e
    return await resolver.resolve(transport)
