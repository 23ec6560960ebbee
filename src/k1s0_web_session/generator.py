"""セッション ID 生成ユーティリティ"""

from __future__ import annotations

import secrets
import string

_ALPHABET = string.ascii_letters + string.digits + "_-"
_ID_LENGTH = 21


def generate_session_id() -> str:
    """21 文字の URL セーフなランダム ID を生成する。"""
    return "".join(secrets.choice(_ALPHABET) for _ in range(_ID_LENGTH))
