import pytest

from flowly.core.errors import InvalidEndpointError, InvalidModelNameError
from flowly.core.guard import (
    is_internal_host,
    validate_endpoint,
    validate_model_name,
)


class TestValidateEndpoint:
    @pytest.mark.parametrize(
        "url, expected",
        [
            ("https://openrouter.ai/api/v1", "https://openrouter.ai/api/v1"),
            ("https://openrouter.ai/api/v1/", "https://openrouter.ai/api/v1"),
            ("https://API.OpenAI.com:443/v1", "https://api.openai.com/v1"),
            ("https://api.anthropic.com/v1?x=1#frag", "https://api.anthropic.com/v1"),
            (
                "https://generativelanguage.googleapis.com/v1beta",
                "https://generativelanguage.googleapis.com/v1beta",
            ),
            (
                "https://us-central1-aiplatform.googleapis.com/v1",
                "https://us-central1-aiplatform.googleapis.com/v1",
            ),
        ],
    )
    def test_accepts_and_canonicalizes(self, url, expected):
        assert validate_endpoint(url) == expected

    def test_rejects_plain_http(self):
        with pytest.raises(InvalidEndpointError) as excinfo:
            validate_endpoint("http://api.openai.com")
        assert excinfo.value.user_message == "Only HTTPS URLs allowed"

    @pytest.mark.parametrize(
        "url, message",
        [
            ("not a url", "Invalid URL format"),
            ("https://", "Invalid URL format"),
            ("https://api.openai.com:99999/v1", "Invalid URL format"),
            ("https://evil.example.com/v1", "Host not allowed"),
            ("https://localhost/v1", "Host not allowed"),
            ("https://127.0.0.1/v1", "Host not allowed"),
            ("https://[::1]/v1", "Host not allowed"),
            ("https://api.openai.com:8443/v1", "Only standard HTTPS port 443 is allowed"),
            ("https://my-resource.openai.azure.com/openai", "Unsupported AI provider host"),
            ("https://bedrock-runtime.us-east-1.amazonaws.com", "Unsupported AI provider host"),
            ("https://user:pw@api.openai.com/v1", "Credentials in the URL are not allowed"),
        ],
    )
    def test_rejects(self, url, message):
        with pytest.raises(InvalidEndpointError) as excinfo:
            validate_endpoint(url)
        assert excinfo.value.user_message == message

    def test_accepted_urls_are_always_https_on_the_allow_list(self):
        candidates = [
            "https://openrouter.ai/api/v1",
            "http://openrouter.ai/api/v1",
            "ftp://api.openai.com",
            "https://10.0.0.8/v1",
            "https://api.openai.com.evil.com/v1",
            "https://api.openai.com/v1",
        ]
        for url in candidates:
            try:
                canonical = validate_endpoint(url)
            except InvalidEndpointError:
                continue
            assert canonical.startswith("https://")
            assert not is_internal_host(canonical.split("/")[2])


class TestIsInternalHost:
    @pytest.mark.parametrize(
        "host",
        [
            "localhost",
            "db.localhost",
            "10.1.2.3",
            "127.0.0.1",
            "172.16.0.1",
            "172.31.255.255",
            "192.168.1.1",
            "169.254.169.254",
            "0.0.0.0",
            "::1",
            "fd00::1",
            "fe80::1",
            "::ffff:127.0.0.1",
        ],
    )
    def test_internal(self, host):
        assert is_internal_host(host)

    @pytest.mark.parametrize("host", ["api.openai.com", "8.8.8.8", "172.32.0.1"])
    def test_public(self, host):
        assert not is_internal_host(host)


class TestValidateModelName:
    @pytest.mark.parametrize("name", ["gemini-1.5-pro", " gemini-pro ", "claude-3.5"])
    def test_accepts(self, name):
        assert validate_model_name(name) == name.strip()

    @pytest.mark.parametrize(
        "name",
        ["", "   ", None, "../secrets", "/etc/passwd", "C:\\models", "model/x", "a" * 101, "m?x=1"],
    )
    def test_rejects(self, name):
        with pytest.raises(InvalidModelNameError):
            validate_model_name(name)
