"""Session ハンドルのユニットテスト"""

from datetime import timedelta

import pytest
from conftest import NOW, FakeTransport, MockStore, TouchableMockStore, make_record

from k1s0_web_session import (
    CookieAttributes,
    CookieOptions,
    SessionError,
    SessionErrorCodes,
    SessionOptions,
    SessionRecord,
    SessionResolver,
)
from k1s0_web_session.session import EXPIRED_AT, Session, SessionContext


def make_session(store, **cookie) -> Session:
    context = SessionContext(store=store, now=NOW)
    return Session("sid-1", SessionRecord(cookie=CookieAttributes(**cookie)), context, is_new=True)


async def test_mapping_access() -> None:
    """dict と同様にデータを読み書きできること。"""
    session = make_session(MockStore())
    session["foo"] = "bar"
    assert session["foo"] == "bar"
    assert session.get("missing") is None
    assert "foo" in session
    assert dict(session) == {"foo": "bar"}
    del session["foo"]
    assert len(session) == 0


async def test_modified_flag() -> None:
    """データの書き込み・削除で is_modified が立つこと。"""
    session = make_session(MockStore())
    assert session.flags.is_modified is False
    session["foo"] = 1
    assert session.flags.is_modified is True


async def test_reserved_cookie_key() -> None:
    """cookie キーへの書き込みは KeyError になること。"""
    session = make_session(MockStore())
    with pytest.raises(KeyError):
        session["cookie"] = {}


async def test_id_is_read_only() -> None:
    """id は変更できないこと。"""
    session = make_session(MockStore())
    with pytest.raises(AttributeError):
        session.id = "other"  # type: ignore[misc]


async def test_commit_persists_snapshot() -> None:
    """commit がフラグを含まないレコードを保存すること。"""
    store = MockStore()
    session = make_session(store)
    session["foo"] = "bar"
    await session.commit()
    store.set.assert_awaited_once()
    saved_id, record = store.set.await_args.args
    assert saved_id == "sid-1"
    assert record == SessionRecord(payload={"foo": "bar"}, cookie=CookieAttributes())
    assert record.to_dict() == {
        "foo": "bar",
        "cookie": {
            "path": "/",
            "httpOnly": True,
            "domain": None,
            "sameSite": None,
            "secure": False,
            "maxAge": None,
            "expires": None,
        },
    }


async def test_commit_is_repeatable_and_keeps_flags() -> None:
    """commit は何度でも呼べ、フラグを変更しないこと。"""
    store = MockStore()
    session = make_session(store)
    session["foo"] = "bar"
    await session.commit()
    session["foo"] = "baz"
    await session.commit()
    assert store.set.await_count == 2
    assert store.set.await_args.args[1].payload == {"foo": "baz"}
    assert session.flags.is_new is True
    assert session.flags.is_touched is False


async def test_commit_snapshot_isolated_from_later_changes() -> None:
    """保存済みスナップショットは後の変更の影響を受けないこと。"""
    store = MockStore()
    session = make_session(store)
    session["foo"] = "bar"
    await session.commit()
    session["foo"] = "changed"
    assert store.set.await_args.args[1].payload == {"foo": "bar"}


async def test_touch_extends_expiry() -> None:
    """touch で expires が解決時刻 + max_age になり store.touch が呼ばれること。"""
    store = TouchableMockStore()
    session = make_session(store, max_age=30, expires=NOW - timedelta(seconds=5))
    await session.touch()
    assert session.cookie.expires == NOW + timedelta(seconds=30)
    assert session.flags.is_touched is True
    store.touch.assert_awaited_once()
    assert store.touch.await_args.args[0] == "sid-1"


async def test_touch_without_max_age() -> None:
    """max_age がない場合 expires は変わらず touched フラグだけ立つこと。"""
    store = TouchableMockStore()
    session = make_session(store)
    await session.touch()
    assert session.cookie.expires is None
    assert session.flags.is_touched is True
    store.touch.assert_awaited_once()


async def test_touch_without_store_support() -> None:
    """touch 非対応ストアでもエラーにならないこと。"""
    session = make_session(MockStore(), max_age=30, expires=NOW)
    await session.touch()
    assert session.cookie.expires == NOW + timedelta(seconds=30)
    assert session.flags.is_touched is True


async def test_destroy() -> None:
    """destroy がフラグ・期限切れ expires・ストア削除を行うこと。"""
    store = MockStore()
    transport = FakeTransport()
    context = SessionContext(store=store, now=NOW, transport=transport)
    session = Session("sid-1", make_record({"foo": "bar"}), context)
    transport.session = session
    await session.destroy()
    assert session.flags.is_destroyed is True
    assert session.cookie.expires == EXPIRED_AT
    store.destroy.assert_awaited_once_with("sid-1")
    assert transport.session is None


async def test_commit_store_failure() -> None:
    """ストアの set 失敗は STORE_ERROR として伝播すること。"""
    store = MockStore()
    store.set.side_effect = TimeoutError("slow")
    session = make_session(store)
    with pytest.raises(SessionError) as exc_info:
        await session.commit()
    assert exc_info.value.code == SessionErrorCodes.STORE
    assert isinstance(exc_info.value.__cause__, TimeoutError)


async def test_store_session_error_passes_through() -> None:
    """ストアが送出した SessionError はそのまま伝播すること。"""
    store = MockStore()
    original = SessionError(SessionErrorCodes.STORE, "custom")
    store.destroy.side_effect = original
    session = make_session(store)
    with pytest.raises(SessionError) as exc_info:
        await session.destroy()
    assert exc_info.value is original


async def test_touch_store_failure_keeps_flag_unset() -> None:
    """store.touch が失敗した場合は touched フラグが立たないこと。"""
    store = TouchableMockStore()
    store.touch.side_effect = ConnectionError("down")
    session = make_session(store, max_age=30, expires=NOW)
    with pytest.raises(SessionError):
        await session.touch()
    assert session.flags.is_touched is False


async def test_touch_uses_resolution_time() -> None:
    """touch はリゾルバーの解決時刻を基準に expires を計算すること。"""
    times = iter([NOW, NOW + timedelta(hours=1)])
    resolver = SessionResolver(
        SessionOptions(store=MockStore(), cookie=CookieOptions(max_age=60)),
        clock=lambda: next(times),
    )
    session = await resolver.resolve(FakeTransport())
    await session.touch()
    assert session.cookie.expires == NOW + timedelta(seconds=60)
