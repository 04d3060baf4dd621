"""Per-request ES256 bearer token minting."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Final

import jwt
from pydantic import BaseModel, ConfigDict, Field

from src.features.auth.errors import SigningError
from src.features.auth.identity import Identity


TOKEN_AUDIENCE: Final[str] = "appstoreconnect-v1"
TOKEN_ALGORITHM: Final[str] = "ES256"
# Shorter than the 20 minute maximum the API accepts.
TOKEN_LIFETIME: Final[timedelta] = timedelta(minutes=10)


class AuthToken(BaseModel):
    """A signed token valid for a single request."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    issuer: str
    audience: str
    issued_at: datetime
    expires_at: datetime
    key_id: str
    encoded: str = Field(repr=False, description="Compact JWS")

    @property
    def signature(self) -> str:
        """Base64url signature segment of the compact JWS."""
        return self.encoded.rsplit(".", 1)[-1]

    @property
    def authorization_header(self) -> str:
        """Value for the Authorization header."""
        return f"Bearer {self.encoded}"


class TokenIssuer:
    """Mints a fresh token for every outbound request.

    Tokens are never cached, so no caller can observe one that expired
    between being minted and being sent.
    """

    def __init__(
        self,
        lifetime: timedelta = TOKEN_LIFETIME,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the issuer.

        Args:
            lifetime: Validity window of each token.
            clock: Source of the current UTC time (default: system clock).
        """
        self._lifetime = lifetime
        self._clock = clock or (lambda: datetime.now(UTC))

    def issue(self, identity: Identity, now: datetime | None = None) -> AuthToken:
        """Sign a new token for ``identity``.

        Args:
            identity: Credentials to sign with.
            now: Issue time override; defaults to the issuer's clock.

        Returns:
            The signed token.

        Raises:
            SigningError: If the key is malformed or signing fails.
        """
        issued_at = (now or self._clock()).replace(microsecond=0)
        expires_at = issued_at + self._lifetime
        claims = {
            "iss": identity.issuer_id,
            "aud": TOKEN_AUDIENCE,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }

        try:
            encoded = jwt.encode(
                claims,
                identity.private_key,
                algorithm=TOKEN_ALGORITHM,
                headers={"kid": identity.key_id},
            )
        except (jwt.PyJWTError, ValueError, TypeError) as e:
            msg = f"failed to sign token: {e}"
            raise SigningError(msg) from e

        return AuthToken(
            issuer=identity.issuer_id,
            audience=TOKEN_AUDIENCE,
            issued_at=issued_at,
            expires_at=expires_at,
            key_id=identity.key_id,
            encoded=encoded,
        )
