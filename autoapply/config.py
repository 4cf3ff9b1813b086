"""Centralized config loading — read once at import time."""

from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from autoapply.errors import ConfigurationError

# Load .env from project root (parent of autoapply/)
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

CONFIG_PATH = Path(__file__).resolve().parent / "config.yaml"

_config = yaml.safe_load(CONFIG_PATH.read_text())


def get_config() -> dict:
    """Return the loaded config dictionary."""
    return _config


class EnvSettings(BaseSettings):
    """Secrets and account details read from the environment."""

    model_name: str = Field(validation_alias="MODEL_NAME")
    ai_api_key: str = Field(validation_alias="AI_API_KEY")
    account_email: str | None = Field(default=None, validation_alias="ACCOUNT_EMAIL")
    account_password: str | None = Field(default=None, validation_alias="ACCOUNT_PASSWORD")
    automation_agent_url: str | None = Field(default=None, validation_alias="AUTOMATION_AGENT_URL")

    # The project .env is already in os.environ via load_dotenv above.
    model_config = SettingsConfigDict(extra="ignore")

    @field_validator("model_name", "ai_api_key")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value.strip()

    @field_validator("account_email")
    @classmethod
    def _looks_like_email(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        value = value.strip()
        if "@" not in value:
            raise ValueError(f"'{value}' is not an email address")
        return value


def _variable_name(loc: tuple) -> str:
    name = str(loc[0]) if loc else "?"
    field = EnvSettings.model_fields.get(name)
    return field.validation_alias if field and field.validation_alias else name


def get_env(env_file: Path | str | None = None) -> EnvSettings:
    """Validate the environment and return the settings.

    ``env_file`` names an extra dotenv file; process environment values win
    over it.
    Raises ConfigurationError naming every missing or invalid variable.
    """
    try:
        return EnvSettings(_env_file=env_file)
    except ValidationError as exc:
        problems = [f"{_variable_name(error['loc'])}: {error['msg']}" for error in exc.errors()]
        raise ConfigurationError(
            "Invalid environment configuration: " + "; ".join(problems)
        ) from exc
