"""Unit tests for RelayConfig."""

import pytest
from pydantic import ValidationError

from change_relay.config import RelayConfig

REQUIRED = {"collection_path": "requests", "api_url": "https://api.example.com/v1/process"}


class TestDefaults:
    """Default values."""

    def test_defaults(self) -> None:
        config = RelayConfig(**REQUIRED)
        assert config.input_field_name == "input"
        assert config.output_field_name == "output"
        assert config.template_path is None
        assert config.response_field is None
        assert config.bearer_access_token is None
        assert config.request_timeout_seconds == 30
        assert config.strict_rendering is True
        assert config.log_level == "INFO"
        assert config.json_logs is True

    @pytest.mark.parametrize("missing", ["collection_path", "api_url"])
    def test_required_fields(self, missing: str) -> None:
        values = {k: v for k, v in REQUIRED.items() if k != missing}
        with pytest.raises(ValidationError):
            RelayConfig(**values)

    def test_frozen(self) -> None:
        config = RelayConfig(**REQUIRED)
        with pytest.raises(ValidationError):
            config.input_field_name = "other"


class TestValidation:
    """Field validators."""

    def test_field_names_are_stripped(self) -> None:
        config = RelayConfig(**REQUIRED, input_field_name=" url ", output_field_name="short.link")
        assert config.input_field_name == "url"
        assert config.output_field_name == "short.link"

    @pytest.mark.parametrize("name", ["", "   ", "metadata", "metadata.status"])
    def test_invalid_field_names(self, name: str) -> None:
        with pytest.raises(ValidationError):
            RelayConfig(**REQUIRED, input_field_name=name)

    def test_equal_field_names_are_accepted_here(self) -> None:
        """The processor rejects them; the config only carries them."""
        config = RelayConfig(**REQUIRED, input_field_name="x", output_field_name="x")
        assert config.input_field_name == config.output_field_name

    def test_empty_optional_strings_are_unset(self) -> None:
        config = RelayConfig(
            **REQUIRED, template_path="", response_field="  ", bearer_access_token=""
        )
        assert config.template_path is None
        assert config.response_field is None
        assert config.bearer_access_token is None

    @pytest.mark.parametrize("timeout", [0, 301, -5])
    def test_timeout_out_of_range(self, timeout: int) -> None:
        with pytest.raises(ValidationError):
            RelayConfig(**REQUIRED, request_timeout_seconds=timeout)

    @pytest.mark.parametrize("timeout", [1, 300])
    def test_timeout_bounds(self, timeout: int) -> None:
        assert RelayConfig(**REQUIRED, request_timeout_seconds=timeout).request_timeout_seconds == timeout

    def test_log_level_normalized(self) -> None:
        assert RelayConfig(**REQUIRED, log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level(self) -> None:
        with pytest.raises(ValidationError):
            RelayConfig(**REQUIRED, log_level="LOUD")


class TestLoading:
    """from_env() and from_dict()."""

    def test_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RELAY_COLLECTION_PATH", "links")
        monkeypatch.setenv("RELAY_API_URL", "https://short.example.com")
        monkeypatch.setenv("RELAY_INPUT_FIELD_NAME", "url")
        monkeypatch.setenv("RELAY_REQUEST_TIMEOUT_SECONDS", "10")
        monkeypatch.setenv("RELAY_STRICT_RENDERING", "false")
        monkeypatch.setenv("RELAY_TEMPLATE_PATH", "")

        config = RelayConfig.from_env()

        assert config.collection_path == "links"
        assert config.api_url == "https://short.example.com"
        assert config.input_field_name == "url"
        assert config.request_timeout_seconds == 10
        assert config.strict_rendering is False
        assert config.template_path is None

    def test_from_env_custom_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SHORTENER_COLLECTION_PATH", "links")
        monkeypatch.setenv("SHORTENER_API_URL", "https://short.example.com")
        assert RelayConfig.from_env(prefix="SHORTENER_").collection_path == "links"

    def test_from_env_missing_required(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("RELAY_COLLECTION_PATH", raising=False)
        monkeypatch.delenv("RELAY_API_URL", raising=False)
        with pytest.raises(ValidationError):
            RelayConfig.from_env()

    def test_from_dict(self) -> None:
        config = RelayConfig.from_dict({**REQUIRED, "response_field": "data.link"})
        assert config.response_field == "data.link"
