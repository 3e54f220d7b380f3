"""
Service: Token Codec

Purpose:
- Issue and verify compact HS256 JWTs for the three token purposes used by the
  auth flow: short-lived access tokens, long-lived refresh tokens and
  one-hour password reset tokens.

Claims:
- sub: user id
- purpose: "access" | "refresh" | "reset" (checked on every verify)
- iat / exp: issue and expiry time (seconds since epoch)
- jti: random id so two tokens issued in the same second never collide

Key functions:
- TokenCodec.issue(purpose, subject_id, ttl=None) -> str
- TokenCodec.verify(token, purpose) -> TokenCheck
    - Never raises for bad tokens; TokenCheck.error is TokenError.EXPIRED when
      the signature is valid but exp has passed, TokenError.INVALID for a bad
      signature, malformed structure or a token issued for another purpose.

Example usage:
        codec = TokenCodec.from_settings(settings)
        token = codec.issue(TokenPurpose.access, user.id)
        check = codec.verify(token, TokenPurpose.access)
        if check.ok:
            user_id = check.subject
"""
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Dict, Optional

import jwt

from ..config import Settings

RESET_TOKEN_TTL = timedelta(hours=1)


class TokenPurpose(str, Enum):
    access = "access"
    refresh = "refresh"
    reset = "reset"


class TokenError(str, Enum):
    EXPIRED = "expired"
    INVALID = "invalid"


@dataclass(frozen=True)
class TokenCheck:
    subject: Optional[str] = None
    error: Optional[TokenError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.subject is not None

    @property
    def expired(self) -> bool:
        return self.error is TokenError.EXPIRED


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenCodec:
    def __init__(
        self,
        secrets: Dict[TokenPurpose, str],
        ttls: Dict[TokenPurpose, timedelta],
        algorithm: str = "HS256",
        clock: Callable[[], datetime] = _utcnow,
    ):
        missing = [p.value for p in TokenPurpose if not secrets.get(p)]
        if missing:
            raise ValueError(f"Missing signing secret for: {', '.join(missing)}")
        self._secrets = dict(secrets)
        self._ttls = dict(ttls)
        self._algorithm = algorithm
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings, clock: Callable[[], datetime] = _utcnow) -> "TokenCodec":
        return cls(
            secrets={
                TokenPurpose.access: settings.jwt_secret,
                TokenPurpose.refresh: settings.jwt_refresh_secret,
                TokenPurpose.reset: settings.reset_secret,
            },
            ttls={
                TokenPurpose.access: timedelta(minutes=settings.access_token_expire_minutes),
                TokenPurpose.refresh: timedelta(days=settings.refresh_token_expire_days),
                TokenPurpose.reset: RESET_TOKEN_TTL,
            },
            algorithm=settings.jwt_algorithm,
            clock=clock,
        )

    def ttl(self, purpose: TokenPurpose) -> timedelta:
        return self._ttls[purpose]

    def now(self) -> datetime:
        return self._clock()

    def issue(self, purpose: TokenPurpose, subject_id: str, ttl: Optional[timedelta] = None) -> str:
        issued_at = self._clock()
        expire = issued_at + (ttl if ttl is not None else self._ttls[purpose])
        to_encode = {
            "sub": str(subject_id),
            "purpose": purpose.value,
            "iat": issued_at,
            "exp": expire,
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(to_encode, self._secrets[purpose], algorithm=self._algorithm)

    def verify(self, token: Optional[str], purpose: TokenPurpose) -> TokenCheck:
        if not token:
            return TokenCheck(error=TokenError.INVALID)
        try:
            payload = jwt.decode(
                token,
                self._secrets[purpose],
                algorithms=[self._algorithm],
                # expiry is checked below against the codec clock
                options={"require": ["exp", "sub", "purpose"], "verify_exp": False, "verify_iat": False},
            )
        except jwt.PyJWTError:
            return TokenCheck(error=TokenError.INVALID)

        exp = payload.get("exp")
        if isinstance(exp, bool) or not isinstance(exp, (int, float)):
            return TokenCheck(error=TokenError.INVALID)
        if self._clock().timestamp() >= exp:
            return TokenCheck(error=TokenError.EXPIRED)

        # access and reset tokens may share a secret; the claim keeps them apart
        if payload.get("purpose") != purpose.value:
            return TokenCheck(error=TokenError.INVALID)
        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject:
            return TokenCheck(error=TokenError.INVALID)
        return TokenCheck(subject=subject)
