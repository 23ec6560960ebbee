"""k1s0 web session library."""

from .cookies import HmacSigner, serialize_cookie
from .exceptions import SessionError, SessionErrorCodes
from .generator import generate_session_id
from .memory import InMemorySessionStore
from .middleware import ASGISessionTransport, SessionMiddleware, get_session
from .models import CookieAttributes, SessionFlags, SessionRecord, normalize_expires
from .options import CookieOptions, SessionOptions, load_options
from .resolver import SessionResolver
from .session import Session
from .store import SessionStore
from .transport import CookieDecision, SessionTransport

__all__ = [
    "ASGISessionTransport",
    "CookieAttributes",
    "CookieDecision",
    "CookieOptions",
    "HmacSigner",
    "InMemorySessionStore",
    "Session",
    "SessionError",
    "SessionErrorCodes",
    "SessionFlags",
    "SessionMiddleware",
    "SessionOptions",
    "SessionRecord",
    "SessionResolver",
    "SessionStore",
    "SessionTransport",
    "generate_session_id",
    "get_session",
    "load_options",
    "normalize_expires",
    "serialize_cookie",
]
