from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Any

from pydantic import Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from src.phone_journal.logging.logger import setup_logger

logger = setup_logger(__name__)

# Url path the provider POSTs recording completion callbacks to
RECORDING_PATH = "/recording"


class Settings(BaseSettings):
    # App
    app_log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 80

    # Public hostname the provider reaches us on (no scheme)
    external_hostname: str = Field(min_length=1)

    # Callers allowed to record a memo, e.g. "+15551234567,+15557654321"
    caller_whitelist: Annotated[list[str], NoDecode] = Field(min_length=1)

    # Twilio
    twilio_account_sid: str = Field(min_length=1)
    twilio_auth_token: SecretStr
    # Twilio signs webhooks with the auth token unless a separate one is configured
    twilio_signing_token: SecretStr | None = None

    # Notion
    notion_auth_token: SecretStr
    notion_database_id: str = Field(min_length=1)

    # Speech engine
    model_file: str = Field(min_length=1)
    whisper_device: str = "cpu"
    whisper_compute_type: str = "int8"
    whisper_language: str | None = "en"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("caller_whitelist", mode="before")
    @classmethod
    def _split_caller_whitelist(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    @field_validator("twilio_auth_token", "twilio_signing_token", "notion_auth_token")
    @classmethod
    def _require_non_empty_secret(cls, value: SecretStr | None) -> SecretStr | None:
        if value is not None and not value.get_secret_value().strip():
            raise ValueError("must not be empty")
        return value

    @property
    def caller_allow_list(self) -> frozenset[str]:
        return frozenset(self.caller_whitelist)

    @property
    def signing_token(self) -> str:
        token = self.twilio_signing_token or self.twilio_auth_token
        return token.get_secret_value()

    @property
    def recording_callback_url(self) -> str:
        return f"https://{self.external_hostname}{RECORDING_PATH}"


def load_settings(**overrides: Any) -> Settings:
    """
    Build the configuration snapshot from the environment.

    Missing or unparseable configuration is fatal: the process exits.
    """
    try:
        return Settings(**overrides)
    except ValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
        logger.error("Invalid configuration | fields=%s | error=%s", fields, exc)
        raise SystemExit(1) from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
