"""Credential loading and per-request token minting."""

from src.features.auth.errors import (
    AuthError,
    CredentialsNotFoundError,
    PrivateKeyError,
    SigningError,
)
from src.features.auth.identity import (
    Identity,
    load_identity,
    load_private_key,
    load_private_key_pem,
)
from src.features.auth.tokens import (
    TOKEN_AUDIENCE,
    TOKEN_LIFETIME,
    AuthToken,
    TokenIssuer,
)


__all__ = [
    "TOKEN_AUDIENCE",
    "TOKEN_LIFETIME",
    "AuthError",
    "AuthToken",
    "CredentialsNotFoundError",
    "Identity",
    "PrivateKeyError",
    "SigningError",
    "TokenIssuer",
    "load_identity",
    "load_private_key",
    "load_private_key_pem",
]
