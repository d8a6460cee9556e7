"""Configuration management for the ecectl application."""
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import find_dotenv, load_dotenv

from .errors import ConfigurationError

AUTH_MODES = ("basic", "bearer")


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_number(name: str, default: str, cast=int):
    raw = os.getenv(name, default)
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(f"Invalid {name} '{raw}', expected a number")


@dataclass
class Config:
    """Connection and convergence settings for one control-plane target.

    Built once (usually through ``from_env``) and handed to the client.
    """

    # Control-plane API
    url: str = ""
    username: str = ""
    password: str = ""
    auth_mode: str = "basic"
    insecure: bool = False

    # Timeouts (in seconds)
    timeout: int = 3600  # 1 hour overall convergence timeout
    api_timeout: int = 30
    poll_interval: float = 10.0
    settle_delay: float = 5.0

    # Capability flags of the target API variant
    combined_create: bool = False
    companion_teardown: bool = False

    # Local state
    state_path: str = ".ecectl/state.json"

    # Logging
    log_level: str = "INFO"

    # Security
    REDACT_KEYS = ("password", "secret", "token", "authorization")

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "Config":
        """Load configuration from the environment and a .env file.

        Without ``env_file`` the .env file is looked up from the working
        directory upwards. Values already in the environment win.
        """
        load_dotenv(env_file or find_dotenv(usecwd=True))
        return cls(
            url=os.getenv("ECE_URL", ""),
            username=os.getenv("ECE_USERNAME", ""),
            password=os.getenv("ECE_PASSWORD", ""),
            auth_mode=os.getenv("ECE_AUTH_MODE", "basic").lower(),
            insecure=_env_bool("ECE_INSECURE"),
            timeout=_env_number("ECE_TIMEOUT", "3600"),
            api_timeout=_env_number("ECE_API_TIMEOUT", "30"),
            poll_interval=_env_number("ECE_POLL_INTERVAL", "10", float),
            settle_delay=_env_number("ECE_SETTLE_DELAY", "5", float),
            combined_create=_env_bool("ECE_COMBINED_CREATE"),
            companion_teardown=_env_bool("ECE_COMPANION_TEARDOWN"),
            state_path=os.getenv("ECE_STATE_PATH", ".ecectl/state.json"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    @property
    def uses_bearer_token(self) -> bool:
        return self.auth_mode == "bearer"

    def validate(self) -> None:
        """Validate required configuration."""
        required = {
            "ECE_URL": self.url,
            "ECE_USERNAME": self.username,
            "ECE_PASSWORD": self.password,
        }
        missing = [k for k, v in required.items() if not v]
        if missing:
            raise ConfigurationError(f"Missing required configuration: {', '.join(missing)}")
        if self.auth_mode not in AUTH_MODES:
            raise ConfigurationError(
                f"Invalid ECE_AUTH_MODE '{self.auth_mode}', expected one of: {', '.join(AUTH_MODES)}"
            )
        if self.timeout <= 0:
            raise ConfigurationError("ECE_TIMEOUT must be positive")
