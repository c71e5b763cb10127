"""
Token Service

Issues and verifies signed, time-bound JWTs. Every token carries a subject
and a ``token_class`` claim; verification checks the class so an access
token can never be used as a refresh token and vice versa.

The service is a pure function of the signing secret, the configured
lifetimes and a clock. The clock is injectable so expiry can be tested
without sleeping.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from jose import JWTError, jwt

from app.exceptions import MalformedTokenError, TokenExpiredError, WrongTokenClassError

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
CLASS_CLAIM = "token_class"


class TokenClass(str, enum.Enum):
    ACCESS = "ACCESS"
    REFRESH = "REFRESH"
    PENDING_EXTERNAL = "PENDING_EXTERNAL"


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str = "Bearer"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    def __init__(
        self,
        secret_key: str,
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
        pending_ttl: timedelta = timedelta(minutes=15),
        clock: Callable[[], datetime] = _utcnow,
        algorithm: str = ALGORITHM,
    ):
        if not secret_key:
            raise ValueError("A signing secret is required")
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._clock = clock
        self._ttls = {
            TokenClass.ACCESS: access_ttl,
            TokenClass.REFRESH: refresh_ttl,
            TokenClass.PENDING_EXTERNAL: pending_ttl,
        }

    def issue(self, subject: str, token_class: TokenClass, extra_claims: dict[str, Any] | None = None) -> str:
        now = self._clock()
        claims = dict(extra_claims or {})
        claims.update(
            {
                "sub": str(subject),
                CLASS_CLAIM: token_class.value,
                "iat": int(now.timestamp()),
                "exp": int((now + self._ttls[token_class]).timestamp()),
            }
        )
        return jwt.encode(claims, self._secret_key, algorithm=self._algorithm)

    def issue_pair(self, user_id: str) -> TokenPair:
        """Issue an access/refresh pair for ``user_id``."""
        return TokenPair(
            access_token=self.issue(user_id, TokenClass.ACCESS),
            refresh_token=self.issue(user_id, TokenClass.REFRESH),
            expires_in=int(self._ttls[TokenClass.ACCESS].total_seconds()),
        )

    def decode(self, token: str, expected_class: TokenClass) -> dict[str, Any]:
        """
        Return the verified claims of ``token``.

        Raises:
            MalformedTokenError: bad signature, bad encoding or missing claims
            TokenExpiredError: expiry is at or before the current clock time
            WrongTokenClassError: signature is valid but the class differs
        """
        if not token or not isinstance(token, str):
            raise MalformedTokenError()
        try:
            # Expiry is checked below against the injected clock
            claims = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                options={"verify_exp": False},
            )
        except JWTError as e:
            logger.info(f"Token rejected: {e}")
            raise MalformedTokenError() from e

        subject = claims.get("sub")
        expires_at = claims.get("exp")
        if not subject or not isinstance(expires_at, (int, float)):
            raise MalformedTokenError()

        if self._clock().timestamp() >= expires_at:
            raise TokenExpiredError()

        actual_class = claims.get(CLASS_CLAIM)
        if actual_class != expected_class.value:
            raise WrongTokenClassError(expected=expected_class.value, actual=actual_class)

        return claims

    def verify(self, token: str, expected_class: TokenClass) -> str:
        """Verify ``token`` and return its subject (the user id)."""
        return self.decode(token, expected_class)["sub"]
