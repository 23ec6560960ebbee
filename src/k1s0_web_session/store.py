"""SessionStore 抽象基底クラス"""

from __future__ import annotations

from abc import ABC, abstractmethod

from .models import SessionRecord


class SessionStore(ABC):
    """セッションストア抽象基底クラス。

    有効期限の延長 ``touch(id, record)`` は任意の機能。実装しないストアには
    呼び出されない。
    """

    @abstractmethod
    async def get(self, id: str) -> SessionRecord | None:
        """ID に対応するレコードを取得する。存在しなければ None。"""
        ...

    @abstractmethod
    async def set(self, id: str, record: SessionRecord) -> None:
        """レコードを保存する。既存レコードは丸ごと置き換える。"""
        ...

    @abstractmethod
    async def destroy(self, id: str) -> None:
        """レコードを削除する。存在しない ID でもエラーにしない。"""
        ...
