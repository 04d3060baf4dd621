"""Unit tests for outbound URL trust checks."""

import pytest

from src.features.client.errors import SecurityError
from src.features.client.url_guard import (
    TrustedHostPolicy,
    URLGuard,
    is_absolute_url,
    validate_analytics_download_url,
    validate_next_url,
)


class TestValidateNextUrl:
    """Tests for pagination link validation."""

    @pytest.mark.parametrize(
        "url",
        [
            "",
            "/v1/apps?cursor=abc",
            "v1/apps",
            "https://api.appstoreconnect.apple.com/v1/apps?cursor=abc",
            "HTTPS://API.APPSTORECONNECT.APPLE.COM/v1/apps",
        ],
    )
    def test_accepted(self, url: str) -> None:
        """Test relative links and HTTPS links on the API host pass."""
        validate_next_url(url)

    def test_insecure_scheme_rejected(self) -> None:
        """Test plain HTTP on the API host is rejected."""
        with pytest.raises(SecurityError, match="insecure scheme"):
            validate_next_url("http://api.appstoreconnect.apple.com/v1/apps")

    @pytest.mark.parametrize(
        "url",
        [
            "https://evil.example/v1/apps",
            "https://api.appstoreconnect.apple.com.evil.example/v1/apps",
            "https://api.appstoreconnect.apple.com:8443/v1/apps",
            "https://user@api.appstoreconnect.apple.com/v1/apps",
            "//evil.example/v1/apps",
        ],
    )
    def test_untrusted_host_rejected(self, url: str) -> None:
        """Test any other network location is rejected."""
        with pytest.raises(SecurityError, match="untrusted host"):
            validate_next_url(url)

    def test_message_is_sanitized(self) -> None:
        """Test hostile hosts cannot inject control characters."""
        with pytest.raises(SecurityError) as exc_info:
            validate_next_url("https://evil\x1b.example/v1")

        assert "\x1b" not in str(exc_info.value)

    def test_custom_base_url(self) -> None:
        """Test the API host comes from the policy."""
        guard = URLGuard(TrustedHostPolicy(api_base_url="https://api.test.local"))

        guard.validate_next_url("https://api.test.local/v1/apps")
        with pytest.raises(SecurityError):
            guard.validate_next_url("https://api.appstoreconnect.apple.com/v1/apps")


class TestValidateAnalyticsDownloadUrl:
    """Tests for analytics report URL validation."""

    @pytest.mark.parametrize(
        "url",
        [
            "https://apps.apple.com/report.csv",
            "https://reports.itunes.apple.com/report.csv",
            "https://is1-ssl.mzstatic.com/r.gz",
            "https://abc.cloudfront.net/file?X-Amz-Signature=deadbeef",
            "https://bucket.s3.amazonaws.com/file?x-amz-credential=AKIA",
            "https://abc.cloudfront.net/file?Key-Pair-Id=K1&Policy=p&Signature=s",
            "https://files.azureedge.net/r.csv?sig=abc",
        ],
    )
    def test_accepted(self, url: str) -> None:
        """Test first-party hosts and signed CDN links pass."""
        validate_analytics_download_url(url)

    @pytest.mark.parametrize(
        ("url", "reason"),
        [
            ("", "empty"),
            ("http://apps.apple.com/report.csv", "insecure scheme"),
            ("https:///report.csv", "empty host"),
            ("https://abc.cloudfront.net/file", "without signed query"),
            ("https://abc.cloudfront.net/file?X-Amz-Signature=", "without signed query"),
            ("https://abc.cloudfront.net/file?download=1", "without signed query"),
            ("https://evil.example/report.csv", "untrusted host"),
            ("https://evilapple.com/report.csv", "untrusted host"),
            ("https://evil.example/report.csv?X-Amz-Signature=abc", "untrusted host"),
        ],
    )
    def test_rejected(self, url: str, reason: str) -> None:
        """Test insecure, unsigned or foreign links are rejected."""
        with pytest.raises(SecurityError, match=reason):
            validate_analytics_download_url(url)


class TestTrustedHostPolicy:
    """Tests for the trust tables."""

    def test_api_host(self) -> None:
        """Test the API host is derived from the base URL."""
        assert TrustedHostPolicy().api_host == "api.appstoreconnect.apple.com"

    def test_policy_is_frozen(self) -> None:
        """Test the policy cannot be mutated after construction."""
        policy = TrustedHostPolicy()

        with pytest.raises(ValueError):
            policy.api_base_url = "https://evil.example"  # type: ignore[misc]

    def test_signed_query_keys_case_insensitive(self) -> None:
        """Test signature parameters are matched without regard to case."""
        assert TrustedHostPolicy().has_signed_query("X-AMZ-SIGNATURE=abc")


class TestIsAbsoluteUrl:
    """Tests for absolute URL detection."""

    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            ("/v1/apps", False),
            ("v1/apps?limit=5", False),
            ("https://host/path", True),
            ("//host/path", True),
        ],
    )
    def test_detection(self, url: str, expected: bool) -> None:
        """Test relative and absolute forms."""
        assert is_absolute_url(url) is expected
