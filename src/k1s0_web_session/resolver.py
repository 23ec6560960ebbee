"""SessionResolver — リクエストごとのセッション解決と Cookie 送出判定"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import structlog

from .cookies import serialize_cookie
from .exceptions import SessionError, SessionErrorCodes
from .memory import InMemorySessionStore
from .models import CookieAttributes, SessionRecord, normalize_expires
from .options import SessionOptions
from .session import Session, SessionContext, call_store
from .store import SessionStore
from .transport import SET_COOKIE, CookieDecision, SessionTransport

logger = structlog.stdlib.get_logger(__name__)

LATE_HOOK_KEY = "k1s0_web_session.set_cookie"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _LateCookieHook:
    """ヘッダー送信直前に 1 回だけ Cookie を送出するフック。"""

    def __init__(
        self,
        resolver: SessionResolver,
        transport: SessionTransport,
        session: Session,
    ) -> None:
        self._resolver = resolver
        self._transport = transport
        self._session = session
        self._fired = False

    def __call__(self) -> None:
        if self._fired:
            return
        self._fired = True
        if self._transport.headers_already_sent():
            return
        decision = self._resolver.finalize(self._session)
        if decision.emit and decision.header is not None:
            self._transport.append_response_header(SET_COOKIE, decision.header)


class SessionResolver:
    """Cookie からセッションを解決し、ライフサイクル操作付きのハンドルを返す。

    Args:
        options: セッション設定。省略時はデフォルト設定。
        clock: 現在時刻を返す関数（aware datetime）。テスト用に差し替え可能。
    """

    def __init__(
        self,
        options: SessionOptions | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._options = options or SessionOptions()
        store = self._options.store
        self._store = store if store is not None else InMemorySessionStore()
        self._clock = clock or _utcnow

    @property
    def options(self) -> SessionOptions:
        return self._options

    @property
    def store(self) -> SessionStore:
        return self._store

    async def resolve(self, transport: SessionTransport) -> Session:
        """リクエストのセッションを返す。同一リクエスト内では同じインスタンスを返す。

        Raises:
            SessionError: ストアの読み書きに失敗した場合 (STORE_ERROR)
        """
        existing = getattr(transport, "session", None)
        if existing is not None:
            return existing

        now = self._clock()
        context = SessionContext(store=self._store, now=now, transport=transport)

        session_id = self._read_session_id(transport)
        record = None
        if session_id:
            record = await call_store("get", self._store.get(session_id))

        if record is not None:
            try:
                record.cookie.expires = normalize_expires(record.cookie.expires)
            except (TypeError, ValueError) as e:
                raise SessionError(
                    code=SessionErrorCodes.STORE,
                    message=f"Stored session has an invalid expires: {record.cookie.expires!r}",
                    cause=e,
                ) from e
            session = Session(session_id, record, context)
            if self._should_touch(session.cookie, now):
                logger.debug("session auto-touch", touch_after=self._options.touch_after)
                await session.touch()
        else:
            session = Session(
                self._options.gen_id(),
                SessionRecord(cookie=self._new_cookie(now)),
                context,
                is_new=True,
            )
            logger.debug("session created")

        transport.session = session

        register = getattr(transport, "register_pre_header_hook", None)
        if register is not None:
            register(LATE_HOOK_KEY, _LateCookieHook(self, transport, session))
        return session

    def finalize(self, session: Session) -> CookieDecision:
        """ヘッダー送信時点のフラグと内容から Cookie の送出を判定する。

        破棄・touch 済み・データ入りの新規セッションのみ Cookie を送出する。
        """
        flags = session.flags
        populated_new = flags.is_new and len(session) > 0
        if not (flags.is_destroyed or flags.is_touched or populated_new):
            return CookieDecision(emit=False)
        cookie_opts = self._options.cookie
        header = serialize_cookie(
            self._options.name,
            session.id,
            session.cookie,
            encode=cookie_opts.encode,
            sign=cookie_opts.sign,
        )
        return CookieDecision(emit=True, header=header)

    def _read_session_id(self, transport: SessionTransport) -> str | None:
        raw = transport.get_request_cookie(self._options.name)
        if not raw:
            return None
        cookie_opts = self._options.cookie
        try:
            value = cookie_opts.decode(raw)
            if cookie_opts.unsign is None:
                return value or None
            return cookie_opts.unsign(value)
        except Exception as e:
            # 改ざん・破損 Cookie は新規セッション扱い
            logger.debug("discarding session cookie", reason=str(e))
            return None

    def _should_touch(self, cookie: CookieAttributes, now: datetime) -> bool:
        touch_after = self._options.touch_after
        if touch_after < 0 or not isinstance(cookie.expires, datetime):
            return False
        if cookie.max_age is None:
            return False
        last_touched = cookie.expires - timedelta(seconds=cookie.max_age)
        return now - last_touched >= timedelta(seconds=touch_after)

    def _new_cookie(self, now: datetime) -> CookieAttributes:
        opts = self._options.cookie
        cookie = CookieAttributes(
            path=opts.path or "/",
            http_only=opts.http_only,
            domain=opts.domain or None,
            same_site=opts.same_site,
            secure=opts.secure,
        )
        if opts.max_age:
            cookie.max_age = opts.max_age
            cookie.expires = now + timedelta(seconds=opts.max_age)
        return cookie
