"""セッション設定型定義（pydantic BaseModel）と YAML 読み込み"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any, Literal, Union
from urllib.parse import unquote

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import SessionError, SessionErrorCodes
from .generator import generate_session_id
from .store import SessionStore

_STORE_METHODS = ("get", "set", "destroy")


class CookieOptions(BaseModel):
    """セッション Cookie の設定。"""

    path: str = "/"
    http_only: bool = True
    domain: str | None = None
    same_site: Union[Literal["lax", "strict", "none"], bool, None] = None
    secure: bool = False
    max_age: int | None = Field(default=None, ge=0)
    sign: Callable[[str], str] | None = None
    unsign: Callable[[str], str] | None = None
    encode: Callable[[str], str] | None = None
    decode: Callable[[str], str] = unquote


class SessionOptions(BaseModel):
    """セッションリゾルバーの設定。

    store を省略するとリゾルバーごとに InMemorySessionStore を生成する。
    touch_after は秒単位で、-1 は自動 touch の無効化。
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str = Field(default="sid", min_length=1)
    store: SessionStore | None = None
    gen_id: Callable[[], str] = generate_session_id
    touch_after: int = Field(default=-1, ge=-1)
    auto_commit: bool = False
    cookie: CookieOptions = Field(default_factory=CookieOptions)

    @field_validator("store", mode="plain")
    @classmethod
    def _check_store(cls, value: Any) -> Any:
        # SessionStore を継承しないストアも get / set / destroy があれば受け付ける
        if value is None:
            return value
        missing = [m for m in _STORE_METHODS if not callable(getattr(value, m, None))]
        if missing:
            raise ValueError(f"store is missing methods: {', '.join(missing)}")
        return value


def _read_yaml(path: Path) -> dict[str, Any]:
    """YAML ファイルを読み込む。"""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise SessionError(
            code=SessionErrorCodes.READ_FILE,
            message=f"Failed to read session config file: {path}",
            cause=e,
        ) from e
    try:
        data: dict[str, Any] = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise SessionError(
            code=SessionErrorCodes.PARSE_YAML,
            message=f"Failed to parse YAML: {path}",
            cause=e,
        ) from e
    return data


def load_options(path: Path) -> SessionOptions:
    """設定ファイルの ``session`` セクションを読み込んで SessionOptions を返す。

    コールバック（sign / unsign / encode / decode / gen_id）とストアはファイルからは設定できない。
    """
    data = _read_yaml(path)
    section = data.get("session") if isinstance(data, dict) else data
    try:
        return SessionOptions.model_validate(section or {})
    except ValidationError as e:
        raise SessionError(
            code=SessionErrorCodes.VALIDATION,
            message=f"Session config validation failed: {e}",
            cause=e,
        ) from e
