"""リクエスト/レスポンスのトランスポート抽象"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from .session import Session

SET_COOKIE = "Set-Cookie"


class SessionTransport(Protocol):
    """セッションリゾルバーが利用する HTTP トランスポートのプロトコル。

    ``session`` はリクエストに紐づくセッションの格納先。
    ``register_pre_header_hook`` はレスポンスヘッダー送信直前に 1 回だけ呼ばれる
    フックを登録する。同じ key で再登録すると前のフックを置き換える。
    このメソッドを持たないトランスポートでは Cookie の遅延送出を行わない。
    """

    session: Session | None

    def get_request_cookie(self, name: str) -> str | None: ...

    def register_pre_header_hook(self, key: str, hook: Callable[[], None]) -> None: ...

    def append_response_header(self, name: str, value: str) -> None: ...

    def headers_already_sent(self) -> bool: ...


@dataclass(frozen=True)
class CookieDecision:
    """ヘッダー送信時点での Cookie 送出判定。"""

    emit: bool
    header: str | None = None
