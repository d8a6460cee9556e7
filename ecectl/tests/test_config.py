import pytest

from ecectl.config import Config
from ecectl.errors import ConfigurationError
from ecectl.utils import redact_sensitive_data

ENV_KEYS = [
    "ECE_URL", "ECE_USERNAME", "ECE_PASSWORD", "ECE_AUTH_MODE", "ECE_INSECURE",
    "ECE_TIMEOUT", "ECE_API_TIMEOUT", "ECE_POLL_INTERVAL", "ECE_SETTLE_DELAY",
    "ECE_COMBINED_CREATE", "ECE_COMPANION_TEARDOWN", "ECE_STATE_PATH", "LOG_LEVEL",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    # setenv first so values loaded from the .env file are undone too
    for key in ENV_KEYS:
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
    return tmp_path / "empty.env"


def test_from_env_defaults(clean_env):
    clean_env.write_text("")

    config = Config.from_env(str(clean_env))

    assert config.auth_mode == "basic"
    assert config.timeout == 3600
    assert config.poll_interval == 10.0
    assert config.settle_delay == 5.0
    assert not config.insecure
    assert not config.combined_create
    assert config.state_path == ".ecectl/state.json"


def test_from_env_reads_values(clean_env, monkeypatch):
    clean_env.write_text("ECE_PASSWORD=from-dotenv\n")
    monkeypatch.setenv("ECE_URL", "https://ece.example.com:12443")
    monkeypatch.setenv("ECE_USERNAME", "admin")
    monkeypatch.setenv("ECE_AUTH_MODE", "Bearer")
    monkeypatch.setenv("ECE_INSECURE", "true")
    monkeypatch.setenv("ECE_TIMEOUT", "120")
    monkeypatch.setenv("ECE_COMPANION_TEARDOWN", "yes")

    config = Config.from_env(str(clean_env))
    config.validate()

    assert config.password == "from-dotenv"
    assert config.uses_bearer_token
    assert config.insecure
    assert config.timeout == 120
    assert config.companion_teardown


@pytest.mark.parametrize("key", ["ECE_TIMEOUT", "ECE_API_TIMEOUT", "ECE_POLL_INTERVAL"])
def test_from_env_rejects_non_numeric_values(clean_env, monkeypatch, key):
    clean_env.write_text("")
    monkeypatch.setenv(key, "abc")

    with pytest.raises(ConfigurationError, match=key):
        Config.from_env(str(clean_env))


def test_validate_lists_missing_settings():
    with pytest.raises(ConfigurationError) as exc:
        Config(url="https://ece.example.com").validate()

    assert "ECE_USERNAME" in str(exc.value)
    assert "ECE_PASSWORD" in str(exc.value)
    assert "ECE_URL" not in str(exc.value)


def test_validate_rejects_unknown_auth_mode():
    with pytest.raises(ConfigurationError):
        Config(url="https://ece.example.com", username="a", password="b", auth_mode="apikey").validate()


def test_validate_rejects_non_positive_timeout():
    with pytest.raises(ConfigurationError):
        Config(url="https://ece.example.com", username="a", password="b", timeout=0).validate()


def test_redact_sensitive_data():
    data = {
        "username": "elastic",
        "credentials": {"password": "changeme"},
        "headers": [{"Authorization": "Basic abc"}],
    }

    redacted = redact_sensitive_data(data)

    assert redacted["username"] == "elastic"
    assert redacted["credentials"]["password"] == "[REDACTED]"
    assert redacted["headers"][0]["Authorization"] == "[REDACTED]"
