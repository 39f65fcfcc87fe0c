"""
FarmaGenius Backend — Authentication Primitives
================================================

What:  Password hashing (bcrypt) and the principal resolver (signed session
       tokens via PyJWT).
How:   PrincipalResolver reads `Authorization: Bearer <token>` or the
       session cookie, verifies the HS256 signature and expiry, and returns
       a Principal. Any failure yields None: resolution never raises and
       never touches the database.
Who:   The instance lives on `app.state.principal_resolver`; dependencies.py
       exposes `get_principal` / `require_principal`. POST /auth/login mints
       tokens with issue_token().

Token claims:
    sub   user id (UUID string)
    email lower-cased email
    name  display name
    iat / exp issued-at and expiry (UNIX seconds)
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import bcrypt
import jwt
from starlette.requests import Request

logger = logging.getLogger(__name__)

TOKEN_ALGORITHM = "HS256"


# ══════════════════════════════════════════════════════════════════════════
# Password Hashing
# ══════════════════════════════════════════════════════════════════════════

async def hash_password(password: str, rounds: int) -> str:
    """bcrypt-hash `password` off the event loop (cost grows 2^rounds)."""
    def _hash() -> str:
        return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")

    return await asyncio.to_thread(_hash)


async def verify_password(password: str, password_hash: str) -> bool:
    """Constant-time check of `password` against a stored bcrypt hash."""
    def _check() -> bool:
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except ValueError:
            # Malformed stored hash
            logger.warning("Stored password hash is not a valid bcrypt hash")
            return False

    return await asyncio.to_thread(_check)


# ══════════════════════════════════════════════════════════════════════════
# Principal Resolution
# ══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Principal:
    """The authenticated identity attached to a request."""

    id: uuid.UUID
    email: str
    name: str


class PrincipalResolver:
    """
    Turns a request's session token into a Principal, or None.

    Args:
        secret_key:  HS256 signing key
        ttl_seconds: Lifetime of tokens minted by issue_token()
        cookie_name: Cookie consulted when no bearer token is present
        clock:       Returns UNIX seconds (injectable for tests)
    """

    def __init__(
        self,
        secret_key: str,
        ttl_seconds: int = 7 * 24 * 3600,
        cookie_name: str = "session",
        clock: Optional[Callable[[], float]] = None,
    ):
        self._secret_key = secret_key
        self._ttl_seconds = ttl_seconds
        self._cookie_name = cookie_name
        self._clock = clock or time.time

    @property
    def cookie_name(self) -> str:
        return self._cookie_name

    def issue_token(self, user_id: uuid.UUID, email: str, name: str) -> str:
        now = int(self._clock())
        claims: Dict[str, Any] = {
            "sub": str(user_id),
            "email": email,
            "name": name,
            "iat": now,
            "exp": now + self._ttl_seconds,
        }
        return jwt.encode(claims, self._secret_key, algorithm=TOKEN_ALGORITHM)

    def decode(self, token: str) -> Optional[Principal]:
        """Verify `token`; None for bad signature, expiry or malformed claims."""
        try:
            claims = jwt.decode(
                token,
                self._secret_key,
                algorithms=[TOKEN_ALGORITHM],
                options={"require": ["sub", "exp"], "verify_exp": False},
            )
        except jwt.PyJWTError as exc:
            logger.debug("Rejected session token: %s", type(exc).__name__)
            return None

        # Expiry checked against the injected clock rather than wall time
        if int(claims["exp"]) <= int(self._clock()):
            logger.debug("Rejected session token: expired")
            return None

        try:
            user_id = uuid.UUID(str(claims["sub"]))
        except ValueError:
            return None
        return Principal(id=user_id, email=str(claims.get("email", "")), name=str(claims.get("name", "")))

    def resolve(self, request: Request) -> Optional[Principal]:
        """Bearer header first, then the session cookie. No side effects."""
        token = None
        authorization = request.headers.get("authorization", "")
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == "bearer" and credentials.strip():
            token = credentials.strip()
        elif self._cookie_name in request.cookies:
            token = request.cookies[self._cookie_name]

        if not token:
            return None
        return self.decode(token)
