"""Domain-specific error types for request authentication."""


class AuthError(Exception):
    """Base exception for credential handling failures."""


class PrivateKeyError(AuthError):
    """The private key could not be read or is not an EC key."""


class CredentialsNotFoundError(AuthError):
    """No complete identity could be assembled from environment or config."""


class SigningError(AuthError):
    """Token minting failed.

    Raised only when the key is malformed or the signing primitive fails;
    never retried.
    """
