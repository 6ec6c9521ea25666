"""Settings for a verification run.

Values come from the CLI's YAML config mapping. Any field can also be set
through an ``IMGTRUST_`` environment variable, e.g. ``IMGTRUST_TRANSPORT=crane``
or ``IMGTRUST_TIMEOUTS__VERIFY=120``. Explicit config values win.
"""

from __future__ import annotations

from typing import Any, Literal, Mapping

from pydantic import BaseModel, ConfigDict, PositiveInt, ValidationError, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from imgtrust_verify.constants import (
    DEFAULT_BLOB_TIMEOUT,
    DEFAULT_IDENTITY_REGEXP,
    DEFAULT_MANIFEST_TIMEOUT,
    DEFAULT_REGISTRY,
    DEFAULT_REPOSITORY,
    DEFAULT_VERIFY_TIMEOUT,
    GITHUB_ACTIONS_ISSUER,
)


class ConfigError(ValueError):
    """The config mapping did not validate."""


class Timeouts(BaseModel):
    """Per-operation timeouts in seconds."""

    model_config = ConfigDict(frozen=True)

    verify: PositiveInt = DEFAULT_VERIFY_TIMEOUT
    manifest: PositiveInt = DEFAULT_MANIFEST_TIMEOUT
    blob: PositiveInt = DEFAULT_BLOB_TIMEOUT


class Settings(BaseSettings):
    """Imgtrust settings.

    ``identity_regexp`` may contain ``{repository}``, which is replaced with
    the configured repository.
    """

    registry: str = DEFAULT_REGISTRY
    repository: str = DEFAULT_REPOSITORY
    identity_regexp: str = DEFAULT_IDENTITY_REGEXP
    oidc_issuer: str = GITHUB_ACTIONS_ISSUER
    transport: Literal["http", "crane"] = "http"
    output: Literal["text", "json"] = "text"
    max_workers: PositiveInt = 1
    timeouts: Timeouts = Timeouts()

    model_config = SettingsConfigDict(
        env_prefix="IMGTRUST_",
        env_nested_delimiter="__",
        extra="ignore",
        frozen=True,
        validate_default=True,
    )

    @field_validator("repository")
    @classmethod
    def _strip_slashes(cls, value: str) -> str:
        return value.strip("/")

    @field_validator("identity_regexp")
    @classmethod
    def _substitute_repository(cls, value: str, info: ValidationInfo) -> str:
        repository = info.data.get("repository", DEFAULT_REPOSITORY)
        return value.replace("{repository}", repository)

    @property
    def verify_timeout(self) -> int:
        return self.timeouts.verify

    @property
    def manifest_timeout(self) -> int:
        return self.timeouts.manifest

    @property
    def blob_timeout(self) -> int:
        return self.timeouts.blob

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> "Settings":
        """
        Build settings from a config mapping, applying env overrides and defaults.

        Raises:
            ConfigError: One line naming every invalid field.
        """
        values = {key: value for key, value in config.items() if key in cls.model_fields}
        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigError(_summarize(e)) from e


def _summarize(error: ValidationError) -> str:
    problems = [
        f"{'.'.join(str(part) for part in item['loc']) or 'config'}: {item['msg']}"
        for item in error.errors()
    ]
    return "invalid config: " + "; ".join(problems)
