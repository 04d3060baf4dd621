"""Single HTTP attempts against the API, buffered or streamed."""

import time
from io import BytesIO

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.features.auth.identity import Identity
from src.features.auth.tokens import TokenIssuer
from src.features.client.classifier import classify_response
from src.features.client.constants import (
    COMPONENT_CLIENT,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_MAX_RESPONSE_SIZE_BYTES,
    DEFAULT_TIMEOUT_SECONDS,
    HTTP_STATUS_OK_MAX,
    HTTP_STATUS_OK_MIN,
    JSON_CONTENT_TYPE,
)
from src.features.client.context import RequestContext
from src.features.client.errors import (
    ResponseSizeExceededError,
    RetryableError,
    TransportError,
)
from src.features.client.metrics import ClientMetrics
from src.features.client.redact import (
    redact_headers,
    sanitize_auth_header,
    sanitize_url_for_log,
)
from src.features.client.url_guard import URLGuard, is_absolute_url


logger = structlog.get_logger()


class RequestDescriptor(BaseModel):
    """Everything needed to (re)send one logical request.

    The body is fully materialized so each attempt sends identical bytes.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    method: str = Field(min_length=1)
    target: str = Field(min_length=1, description="API path or absolute URL")
    body: bytes | None = None
    accept: str = JSON_CONTENT_TYPE

    @field_validator("method")
    @classmethod
    def normalize_method(cls, v: str) -> str:
        """Upper-case the HTTP method."""
        return v.strip().upper()


class RequestExecutor:
    """Performs exactly one attempt of a request."""

    def __init__(
        self,
        identity: Identity,
        http_client: httpx.Client,
        token_issuer: TokenIssuer | None = None,
        url_guard: URLGuard | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        verbose_http: bool = False,
    ) -> None:
        """Initialize the executor.

        Args:
            identity: Credentials used to sign each attempt.
            http_client: Transport shared across attempts.
            token_issuer: Mints the per-attempt bearer token.
            url_guard: Trust policy for absolute targets.
            timeout: Per-attempt timeout in seconds.
            verbose_http: Log every request and response (redacted).
        """
        self._identity = identity
        self._http = http_client
        self._issuer = token_issuer or TokenIssuer()
        self._guard = url_guard or URLGuard()
        self._timeout = timeout
        self._verbose_http = verbose_http
        self._metrics = ClientMetrics.get_instance()
        self._log = logger.bind(component=COMPONENT_CLIENT, subcomponent="executor")

    @property
    def url_guard(self) -> URLGuard:
        """Trust policy applied to absolute targets."""
        return self._guard

    def resolve_url(self, target: str) -> str:
        """Turn a request target into the URL that will receive the token.

        Args:
            target: API path or absolute URL.

        Returns:
            Absolute URL on the API host.

        Raises:
            SecurityError: If an absolute target is not trusted.
        """
        if is_absolute_url(target):
            self._guard.validate_next_url(target)
            return target
        base_url = self._guard.policy.api_base_url.rstrip("/")
        path = target if target.startswith("/") else f"/{target}"
        return f"{base_url}{path}"

    def build_headers(self, accept: str) -> dict[str, str]:
        """Build headers for one attempt, including a freshly minted token.

        Raises:
            SigningError: If the token cannot be signed.
        """
        token = self._issuer.issue(self._identity)
        return {
            "Authorization": token.authorization_header,
            "Content-Type": JSON_CONTENT_TYPE,
            "Accept": accept or JSON_CONTENT_TYPE,
        }

    def _effective_timeout(self, ctx: RequestContext) -> float:
        remaining = ctx.remaining()
        if remaining is None:
            return self._timeout
        return min(self._timeout, remaining)

    def attempt(self, descriptor: RequestDescriptor, ctx: RequestContext) -> bytes:
        """Send the request once.

        Args:
            descriptor: What to send.
            ctx: Cancellation context for the call.

        Returns:
            The response body of a 2xx response.

        Raises:
            RequestCancelledError: If the context is already done.
            SecurityError: If an absolute target is untrusted.
            SigningError: If the token cannot be minted.
            TransportError: If no response was received.
            RetryableError: For 429/503 responses.
            PermanentError: For any other non-2xx response.
        """
        ctx.raise_if_done()
        url = self.resolve_url(descriptor.target)
        headers = self.build_headers(descriptor.accept)
        log = self._log.bind(method=descriptor.method, url=sanitize_url_for_log(url))

        if self._verbose_http:
            log.info(
                "http_request",
                content_type=headers["Content-Type"],
                authorization=sanitize_auth_header(headers["Authorization"]),
            )

        start_ns = time.perf_counter_ns()
        try:
            response = self._http.request(
                descriptor.method,
                url,
                content=descriptor.body,
                headers=headers,
                timeout=self._effective_timeout(ctx),
            )
        except httpx.HTTPError as e:
            elapsed_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
            if self._verbose_http:
                log.info("http_error", error=str(e), elapsed_ms=round(elapsed_ms, 2))
            self._metrics.record_failure("transport")
            msg = f"request failed: {e}"
            raise TransportError(msg) from e

        body = response.content
        elapsed_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
        self._metrics.record_request(response.status_code, len(body), elapsed_ms)

        if self._verbose_http:
            log.info(
                "http_response",
                status_code=response.status_code,
                elapsed_ms=round(elapsed_ms, 2),
                content_type=response.headers.get("content-type"),
                content_length=response.headers.get("content-length"),
            )

        if HTTP_STATUS_OK_MIN <= response.status_code < HTTP_STATUS_OK_MAX:
            return body

        error = classify_response(response.status_code, response.headers, body)
        if not isinstance(error, RetryableError):
            self._metrics.record_failure("permanent")
        raise error

    def attempt_stream(
        self,
        descriptor: RequestDescriptor,
        ctx: RequestContext,
        max_size_bytes: int = DEFAULT_MAX_RESPONSE_SIZE_BYTES,
        authenticate: bool = True,
    ) -> bytes:
        """Send the request once and read the body incrementally under a cap.

        Unauthenticated requests are sent to ``descriptor.target`` as given
        and may follow redirects; the caller is responsible for vetting the
        URL beforehand.

        Args:
            descriptor: What to send; ``accept`` overrides the Accept header.
            ctx: Cancellation context for the call.
            max_size_bytes: Largest body accepted.
            authenticate: Attach a bearer token and resolve the target
                against the API host.

        Returns:
            The response body of a 2xx response.

        Raises:
            ResponseSizeExceededError: If the body exceeds ``max_size_bytes``.
            TransportError: If the connection fails before or during the read.
            RetryableError: For 429/503 responses (not retried here).
            PermanentError: For any other non-2xx response.
        """
        ctx.raise_if_done()
        if authenticate:
            url = self.resolve_url(descriptor.target)
            headers = self.build_headers(descriptor.accept)
        else:
            url = descriptor.target
            headers = {"Accept": descriptor.accept or JSON_CONTENT_TYPE}
        log = self._log.bind(
            method=descriptor.method,
            url=sanitize_url_for_log(url),
            authenticated=authenticate,
        )

        if self._verbose_http:
            log.info("http_stream_request", headers=redact_headers(headers))

        start_ns = time.perf_counter_ns()
        try:
            with self._http.stream(
                descriptor.method,
                url,
                content=descriptor.body,
                headers=headers,
                timeout=self._effective_timeout(ctx),
                follow_redirects=not authenticate,
            ) as response:
                if not HTTP_STATUS_OK_MIN <= response.status_code < HTTP_STATUS_OK_MAX:
                    error_body = response.read()
                    self._metrics.record_request(
                        response.status_code,
                        len(error_body),
                        (time.perf_counter_ns() - start_ns) / 1_000_000,
                    )
                    raise classify_response(
                        response.status_code, response.headers, error_body
                    )
                body = self._read_body_with_limit(response, max_size_bytes)
        except httpx.HTTPError as e:
            self._metrics.record_failure("transport")
            msg = f"request failed: {e}"
            raise TransportError(msg) from e
        except ResponseSizeExceededError:
            self._metrics.record_failure("response_size_exceeded")
            raise

        elapsed_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
        self._metrics.record_request(response.status_code, len(body), elapsed_ms)
        if self._verbose_http:
            log.info(
                "http_stream_response",
                status_code=response.status_code,
                bytes_received=len(body),
                elapsed_ms=round(elapsed_ms, 2),
            )
        return body

    def _read_body_with_limit(self, response: httpx.Response, max_size: int) -> bytes:
        """Read response body with size limit.

        Args:
            response: Streaming HTTP response.
            max_size: Largest body accepted, in bytes.

        Returns:
            Response body bytes.

        Raises:
            ResponseSizeExceededError: If the size limit is exceeded.
        """
        content_length = response.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > max_size:
            msg = f"Response size {content_length} exceeds limit {max_size}"
            raise ResponseSizeExceededError(msg)

        buffer = BytesIO()
        total_read = 0
        for chunk in response.iter_bytes(chunk_size=DEFAULT_CHUNK_SIZE):
            total_read += len(chunk)
            if total_read > max_size:
                msg = (
                    f"Response size exceeded limit of {max_size} bytes "
                    f"(read {total_read} bytes)"
                )
                raise ResponseSizeExceededError(msg)
            buffer.write(chunk)

        return buffer.getvalue()
