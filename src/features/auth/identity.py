"""Signing identity and private key loading."""

import base64
import binascii
from dataclasses import dataclass, field
from pathlib import Path

import structlog
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import load_pem_private_key

from src.features.auth.errors import CredentialsNotFoundError, PrivateKeyError
from src.features.config.models import ConfigFile
from src.settings.app import AppSettings


logger = structlog.get_logger()


@dataclass(frozen=True)
class Identity:
    """Fixed credentials used to sign every request.

    Attributes:
        issuer_id: Issuer identifier from the API keys page.
        key_id: Identifier of the private key.
        private_key: EC private key used for ES256 signatures.
    """

    issuer_id: str
    key_id: str
    private_key: ec.EllipticCurvePrivateKey = field(repr=False)

    def __post_init__(self) -> None:
        """Reject blank identifiers early."""
        if not self.issuer_id.strip():
            msg = "issuer_id must not be empty"
            raise ValueError(msg)
        if not self.key_id.strip():
            msg = "key_id must not be empty"
            raise ValueError(msg)


def load_private_key_pem(data: bytes) -> ec.EllipticCurvePrivateKey:
    """Parse a PEM-encoded EC private key.

    Both PKCS#8 (``BEGIN PRIVATE KEY``) and SEC1 (``BEGIN EC PRIVATE KEY``)
    encodings are accepted.

    Args:
        data: PEM bytes.

    Returns:
        The EC private key.

    Raises:
        PrivateKeyError: If the data is not a PEM EC private key.
    """
    try:
        key = load_pem_private_key(data, password=None)
    except (ValueError, TypeError) as e:
        msg = f"invalid private key: {e}"
        raise PrivateKeyError(msg) from e

    if not isinstance(key, ec.EllipticCurvePrivateKey):
        msg = "private key is not ECDSA"
        raise PrivateKeyError(msg)
    return key


def load_private_key(path: str | Path) -> ec.EllipticCurvePrivateKey:
    """Load an EC private key from a ``.p8`` file.

    Args:
        path: Location of the key file.

    Returns:
        The EC private key.

    Raises:
        PrivateKeyError: If the file cannot be read or parsed.
    """
    try:
        data = Path(path).expanduser().read_bytes()
    except OSError as e:
        msg = f"failed to read key file: {e}"
        raise PrivateKeyError(msg) from e
    return load_private_key_pem(data)


def _decode_base64_key(value: str) -> bytes:
    try:
        return base64.b64decode(value.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        msg = f"ASC_PRIVATE_KEY_B64: invalid base64: {e}"
        raise PrivateKeyError(msg) from e


def _first_non_blank(*values: str | None) -> str:
    for value in values:
        if value and value.strip():
            return value.strip()
    return ""


def load_identity(settings: AppSettings, config: ConfigFile | None = None) -> Identity:
    """Assemble an Identity from the environment, then the config file.

    Key material is taken from the first available of ``ASC_PRIVATE_KEY_PATH``,
    ``ASC_PRIVATE_KEY`` (inline PEM), ``ASC_PRIVATE_KEY_B64`` and the config
    file's ``private_key_path``.

    Args:
        settings: Environment settings.
        config: Persisted configuration, if any.

    Returns:
        A complete Identity.

    Raises:
        CredentialsNotFoundError: If any part of the identity is missing.
        PrivateKeyError: If the key material is invalid.
    """
    key_id = _first_non_blank(settings.key_id, config.key_id if config else None)
    issuer_id = _first_non_blank(
        settings.issuer_id, config.issuer_id if config else None
    )
    if not key_id or not issuer_id:
        msg = "missing credentials: set ASC_KEY_ID and ASC_ISSUER_ID or configure a profile"
        raise CredentialsNotFoundError(msg)

    if settings.private_key_path and settings.private_key_path.strip():
        key = load_private_key(settings.private_key_path.strip())
        source = "env_path"
    elif settings.private_key and settings.private_key.strip():
        key = load_private_key_pem(settings.private_key.strip().encode("utf-8"))
        source = "env_pem"
    elif settings.private_key_b64 and settings.private_key_b64.strip():
        key = load_private_key_pem(_decode_base64_key(settings.private_key_b64))
        source = "env_base64"
    elif config is not None and config.private_key_path.strip():
        key = load_private_key(config.private_key_path.strip())
        source = "config_path"
    else:
        msg = (
            "missing private key: set one of ASC_PRIVATE_KEY_PATH, "
            "ASC_PRIVATE_KEY or ASC_PRIVATE_KEY_B64"
        )
        raise CredentialsNotFoundError(msg)

    logger.debug("identity_loaded", component="auth", key_id=key_id, key_source=source)
    return Identity(issuer_id=issuer_id, key_id=key_id, private_key=key)
