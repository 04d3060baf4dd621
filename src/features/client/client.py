"""App Store Connect API client.

``AscClient`` is the entry point: it owns the HTTP connection pool, resolves
retry behavior per call, and routes each request through the executor.
Only GET and HEAD are retried automatically.
"""

import json
import random
from collections.abc import Callable
from functools import partial
from types import TracebackType
from typing import IO, Any

import httpx
import structlog

from src.features.auth.identity import Identity, load_identity
from src.features.auth.tokens import TokenIssuer
from src.features.client.constants import (
    COMPONENT_CLIENT,
    DEFAULT_MAX_RESPONSE_SIZE_BYTES,
    JSON_CONTENT_TYPE,
)
from src.features.client.context import RequestContext
from src.features.client.executor import RequestDescriptor, RequestExecutor
from src.features.client.redact import sanitize_url_for_log
from src.features.client.retry import RetryCoordinator, should_retry_method
from src.features.client.settings import (
    ConfigSources,
    RetryOverrides,
    resolve_debug_settings,
    resolve_retry_log_enabled,
    resolve_retry_policy,
    resolve_timeout,
)
from src.features.client.url_guard import URLGuard


logger = structlog.get_logger()

RequestBody = bytes | bytearray | str | IO[bytes] | IO[str] | dict[str, Any] | list[Any]


def build_request_body(data: Any) -> bytes:
    """Encode a JSON:API document as a request body.

    Args:
        data: JSON-serializable document (typically ``{"data": {...}}``).

    Returns:
        UTF-8 encoded JSON.

    Raises:
        TypeError: If the document is not JSON-serializable.
    """
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def materialize_body(body: RequestBody | None) -> bytes | None:
    """Read a request body into bytes exactly once.

    Accepts raw bytes, text, readable file objects, or a JSON document.
    """
    if body is None:
        return None
    if isinstance(body, bytes):
        return body
    if isinstance(body, bytearray):
        return bytes(body)
    if isinstance(body, str):
        return body.encode("utf-8")
    if isinstance(body, dict | list):
        return build_request_body(body)
    if hasattr(body, "read"):
        content = body.read()
        return content.encode("utf-8") if isinstance(content, str) else bytes(content)
    msg = f"unsupported request body type: {type(body).__name__}"
    raise TypeError(msg)


class AscClient:
    """Typed access to the App Store Connect REST API.

    Use as a context manager so the connection pool is released:

        with AscClient.from_environment() as client:
            apps = client.get("/v1/apps")
    """

    def __init__(
        self,
        identity: Identity,
        *,
        http_client: httpx.Client | None = None,
        transport: httpx.BaseTransport | None = None,
        token_issuer: TokenIssuer | None = None,
        url_guard: URLGuard | None = None,
        retry_overrides: RetryOverrides | None = None,
        timeout: float | None = None,
        sources: ConfigSources | None = None,
        max_response_size_bytes: int = DEFAULT_MAX_RESPONSE_SIZE_BYTES,
        sleep: Callable[[RequestContext, float], bool] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            identity: API key credentials.
            http_client: Pre-built httpx client (takes precedence over
                ``transport``).
            transport: httpx transport for the owned client (tests pass an
                ``httpx.MockTransport``).
            token_issuer: Per-request token minting.
            url_guard: Trust policy for absolute URLs.
            retry_overrides: Explicit retry settings, winning over env/config.
            timeout: Per-request timeout in seconds (default: resolved from
                env/config).
            sources: Fixed environment/config snapshot. When omitted, the
                environment and config file are re-read for every call.
            max_response_size_bytes: Cap for streamed bodies and downloads.
            sleep: Wait used between retries (tests inject a fake).
            rng: Random source for backoff jitter.
        """
        self._sources = sources
        self._retry_overrides = retry_overrides
        self._max_response_size_bytes = max_response_size_bytes
        self._sleep = sleep
        self._rng = rng
        self._log = logger.bind(component=COMPONENT_CLIENT)

        self._owns_http = http_client is None
        self._http = http_client or httpx.Client(transport=transport)

        startup_sources = self._current_sources()
        resolved_timeout = (
            timeout if timeout is not None else resolve_timeout(sources=startup_sources)
        )
        debug = resolve_debug_settings(startup_sources)
        self._executor = RequestExecutor(
            identity,
            self._http,
            token_issuer=token_issuer,
            url_guard=url_guard,
            timeout=resolved_timeout,
            verbose_http=debug.verbose_http,
        )

    @classmethod
    def from_environment(cls, **kwargs: Any) -> "AscClient":
        """Build a client from ``ASC_*`` variables and the config file.

        Args:
            **kwargs: Forwarded to the constructor.

        Raises:
            CredentialsNotFoundError: If no complete identity is configured.
            PrivateKeyError: If the key cannot be loaded.
        """
        sources = kwargs.get("sources") or ConfigSources.load()
        identity = load_identity(sources.settings, sources.config)
        return cls(identity, **kwargs)

    def __enter__(self) -> "AscClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Release the connection pool if the client owns it."""
        if self._owns_http:
            self._http.close()

    @property
    def url_guard(self) -> URLGuard:
        """Trust policy in use."""
        return self._executor.url_guard

    def _current_sources(self) -> ConfigSources:
        return self._sources or ConfigSources.load()

    def do(
        self,
        method: str,
        path: str,
        body: RequestBody | None = None,
        ctx: RequestContext | None = None,
    ) -> bytes:
        """Send a request and return the response body.

        GET and HEAD are retried on 429/503 under the retry policy resolved
        for this call; every other method is attempted exactly once.

        Args:
            method: HTTP method.
            path: API path (``/v1/apps``) or absolute URL on the API host.
            body: Request payload, read once and replayed on every attempt.
            ctx: Cancellation context (default: never cancelled).

        Returns:
            Raw 2xx response body.

        Raises:
            RetryExhaustedError: If every attempt of a GET/HEAD was rate limited.
            RetryableError: If a non-idempotent request was rate limited.
            PermanentError: For other non-2xx responses.
            TransportError: If no response was received.
            SecurityError: If an absolute URL is not trusted.
            RequestCancelledError: If ``ctx`` ended first.
        """
        descriptor = RequestDescriptor(
            method=method, target=path, body=materialize_body(body)
        )
        ctx = ctx or RequestContext.background()
        operation = partial(self._executor.attempt, descriptor, ctx)

        if not should_retry_method(descriptor.method):
            return operation()

        sources = self._current_sources()
        coordinator = RetryCoordinator(
            retry_log_enabled=resolve_retry_log_enabled(sources),
            sleep=self._sleep,
            rng=self._rng,
        )
        policy = resolve_retry_policy(self._retry_overrides, sources)
        return coordinator.run(operation, policy, ctx)

    def get(self, path: str, ctx: RequestContext | None = None) -> bytes:
        """GET a resource (retried on 429/503)."""
        return self.do("GET", path, ctx=ctx)

    def head(self, path: str, ctx: RequestContext | None = None) -> bytes:
        """HEAD a resource (retried on 429/503)."""
        return self.do("HEAD", path, ctx=ctx)

    def post(
        self, path: str, body: RequestBody | None = None, ctx: RequestContext | None = None
    ) -> bytes:
        """POST a payload (never retried)."""
        return self.do("POST", path, body, ctx)

    def patch(
        self, path: str, body: RequestBody | None = None, ctx: RequestContext | None = None
    ) -> bytes:
        """PATCH a payload (never retried)."""
        return self.do("PATCH", path, body, ctx)

    def delete(
        self, path: str, body: RequestBody | None = None, ctx: RequestContext | None = None
    ) -> bytes:
        """DELETE a resource (never retried)."""
        return self.do("DELETE", path, body, ctx)

    def get_json(self, path: str, ctx: RequestContext | None = None) -> Any:
        """GET a resource and decode its JSON document."""
        return json.loads(self.get(path, ctx))

    def get_next_page(self, next_url: str, ctx: RequestContext | None = None) -> bytes:
        """Fetch a pagination continuation link.

        The link is validated before the bearer token is attached to it.

        Args:
            next_url: ``links.next`` value from the previous page.
            ctx: Cancellation context.

        Raises:
            SecurityError: If the link is off the API host or not HTTPS.
            ValueError: If the link is empty.
        """
        if not next_url or not next_url.strip():
            msg = "next URL is required"
            raise ValueError(msg)
        self.url_guard.validate_next_url(next_url)
        return self.get(next_url, ctx)

    def do_stream(
        self,
        method: str,
        path: str,
        accept: str = "",
        body: RequestBody | None = None,
        ctx: RequestContext | None = None,
    ) -> bytes:
        """Send an authenticated request whose body may be large.

        The response is read in chunks and capped at the client's maximum
        response size. Streams are attempted once.

        Args:
            method: HTTP method.
            path: API path or absolute URL on the API host.
            accept: Accept header override (e.g. ``application/a-gzip``).
            body: Request payload.
            ctx: Cancellation context.

        Raises:
            ResponseSizeExceededError: If the body exceeds the cap.
        """
        descriptor = RequestDescriptor(
            method=method,
            target=path,
            body=materialize_body(body),
            accept=accept.strip() or JSON_CONTENT_TYPE,
        )
        return self._executor.attempt_stream(
            descriptor,
            ctx or RequestContext.background(),
            max_size_bytes=self._max_response_size_bytes,
        )

    def download_analytics_report(
        self,
        url: str,
        accept: str = "",
        ctx: RequestContext | None = None,
    ) -> bytes:
        """Download an analytics report segment from its out-of-band URL.

        The URL must pass the analytics download policy. No bearer token is
        sent, since the URL is usually pre-signed and may live on a CDN.

        Args:
            url: Segment URL returned by the API.
            accept: Accept header override.
            ctx: Cancellation context.

        Raises:
            SecurityError: If the URL is not trusted.
            ResponseSizeExceededError: If the report exceeds the cap.
        """
        self.url_guard.validate_analytics_download_url(url)
        self._log.debug("analytics_download", url=sanitize_url_for_log(url))
        descriptor = RequestDescriptor(
            method="GET",
            target=url,
            accept=accept.strip() or "*/*",
        )
        return self._executor.attempt_stream(
            descriptor,
            ctx or RequestContext.background(),
            max_size_bytes=self._max_response_size_bytes,
            authenticate=False,
        )
