"""Trust checks for URLs the client is about to dereference.

Two independent policies are enforced:

- Pagination and other absolute API targets receive the bearer token, so
  they must stay on the API host over HTTPS.
- Analytics report downloads are fetched without the token but may live on
  third-party CDNs, so they must come from first-party hosts or carry a
  signed-URL query parameter.
"""

from urllib.parse import parse_qsl, urlsplit

from pydantic import BaseModel, ConfigDict, Field

from src.features.client.constants import BASE_URL, SIGNED_QUERY_KEYS
from src.features.client.errors import SecurityError
from src.features.client.sanitize import sanitize_terminal


DEFAULT_ANALYTICS_HOSTS: tuple[str, ...] = (
    "itunes.apple.com",
    "apps.apple.com",
    "apple.com",
    "mzstatic.com",
    "cdn-apple.com",
)

DEFAULT_ANALYTICS_CDN_HOSTS: tuple[str, ...] = (
    "cloudfront.net",
    "amazonaws.com",
    "s3.amazonaws.com",
    "azureedge.net",
)


def _host_matches(host: str, allowed: tuple[str, ...]) -> bool:
    return any(host == entry or host.endswith(f".{entry}") for entry in allowed)


def _quote(value: str) -> str:
    return f'"{sanitize_terminal(value)}"'


class TrustedHostPolicy(BaseModel):
    """Read-only trust tables for outbound URLs."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    api_base_url: str = BASE_URL
    analytics_hosts: tuple[str, ...] = DEFAULT_ANALYTICS_HOSTS
    analytics_cdn_hosts: tuple[str, ...] = DEFAULT_ANALYTICS_CDN_HOSTS
    signed_query_keys: frozenset[str] = Field(default=SIGNED_QUERY_KEYS)

    @property
    def api_host(self) -> str:
        """Network location of the API base URL."""
        return urlsplit(self.api_base_url).netloc.lower()

    def is_analytics_host(self, host: str) -> bool:
        """Check a host against the first-party allow-list."""
        return _host_matches(host, self.analytics_hosts)

    def is_analytics_cdn_host(self, host: str) -> bool:
        """Check a host against the CDN suffix allow-list."""
        return _host_matches(host, self.analytics_cdn_hosts)

    def has_signed_query(self, query: str) -> bool:
        """Check a raw query string for a non-blank signed-URL parameter."""
        return any(
            key.lower() in self.signed_query_keys and value.strip()
            for key, value in parse_qsl(query, keep_blank_values=True)
        )


def is_absolute_url(url: str) -> bool:
    """Check whether a URL names its own scheme or host.

    Scheme-relative links (``//host/path``) count as absolute since they
    leave the API host as easily as a full URL.
    """
    try:
        parts = urlsplit(url)
    except ValueError:
        return True
    return bool(parts.scheme or parts.netloc)


class URLGuard:
    """Applies a TrustedHostPolicy to candidate request targets."""

    def __init__(self, policy: TrustedHostPolicy | None = None) -> None:
        """Initialize the guard.

        Args:
            policy: Trust tables (default: the production tables).
        """
        self._policy = policy or TrustedHostPolicy()

    @property
    def policy(self) -> TrustedHostPolicy:
        """Trust tables in use."""
        return self._policy

    def validate_next_url(self, url: str) -> None:
        """Validate a pagination link or other target that will carry the token.

        Args:
            url: Relative path or absolute URL.

        Raises:
            SecurityError: If an absolute URL is not HTTPS on the API host.
        """
        if not url or not is_absolute_url(url):
            return

        try:
            parts = urlsplit(url)
        except ValueError as e:
            msg = "invalid pagination URL"
            raise SecurityError(msg) from e

        expected = self._policy.api_host
        if parts.netloc.lower() != expected:
            msg = (
                f"rejected pagination URL from untrusted host {_quote(parts.netloc)} "
                f"(expected {_quote(expected)})"
            )
            raise SecurityError(msg)

        if parts.scheme.lower() != "https":
            msg = (
                f"rejected pagination URL with insecure scheme {_quote(parts.scheme)} "
                "(expected https)"
            )
            raise SecurityError(msg)

    def validate_analytics_download_url(self, url: str) -> None:
        """Validate an out-of-band analytics report link.

        Args:
            url: Absolute download URL returned by the API.

        Raises:
            SecurityError: If the URL is not HTTPS, or is on an untrusted host,
                or is on a CDN host without a signed query.
        """
        if not url:
            msg = "empty analytics download URL"
            raise SecurityError(msg)

        try:
            parts = urlsplit(url)
            host = (parts.hostname or "").lower()
        except ValueError as e:
            msg = "invalid analytics download URL"
            raise SecurityError(msg) from e

        if parts.scheme.lower() != "https":
            msg = (
                "rejected analytics download URL with insecure scheme "
                f"{_quote(parts.scheme)} (expected https)"
            )
            raise SecurityError(msg)

        if not host:
            msg = "rejected analytics download URL with empty host"
            raise SecurityError(msg)

        if self._policy.is_analytics_host(host):
            return

        if self._policy.is_analytics_cdn_host(host):
            if not self._policy.has_signed_query(parts.query):
                msg = (
                    "rejected analytics download URL from CDN host "
                    f"{_quote(host)} without signed query"
                )
                raise SecurityError(msg)
            return

        msg = f"rejected analytics download URL from untrusted host {_quote(host)}"
        raise SecurityError(msg)


_default_guard = URLGuard()


def validate_next_url(url: str) -> None:
    """Validate a pagination link against the production trust tables."""
    _default_guard.validate_next_url(url)


def validate_analytics_download_url(url: str) -> None:
    """Validate an analytics download link against the production trust tables."""
    _default_guard.validate_analytics_download_url(url)
