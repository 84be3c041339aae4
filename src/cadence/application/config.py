from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from cadence.domain.calendar import load_timezone
from cadence.domain.constants import (
    DEFAULT_DESIRED_RETENTION,
    DEFAULT_MAXIMUM_INTERVAL_DAYS,
    DEFAULT_TIMEZONE,
    DEFAULT_WRITE_RETRIES,
    MAX_DESIRED_RETENTION,
    MIN_DESIRED_RETENTION,
)
from cadence.domain.exceptions import ValidationError


def config_files() -> list[Path]:
    return [
        Path.home() / ".config/cadence/config.toml",
        Path.home() / ".cadence.toml",
    ]


class AppConfig(BaseSettings):
    """
    Configuration model for cadence.
    Supports loading from:
    1. Environment variables (CADENCE_*)
    2. Config file (~/.config/cadence/config.toml)
    3. Manual overrides (CLI / HTTP)
    """

    model_config = SettingsConfigDict(
        env_prefix="CADENCE_",
        extra="ignore",
    )

    # Paths
    data_dir: Path = Field(default_factory=lambda: Path.home() / ".local/share/cadence")
    content_file: Path | None = None
    log_dir: Path = Field(default_factory=lambda: Path.home() / ".config/cadence/logs")

    # Storage
    backend: Literal["json", "memory"] = "json"
    owner_id: str = "default"
    write_retries: int = Field(default=DEFAULT_WRITE_RETRIES, ge=0)

    # Scheduling
    timezone: str = DEFAULT_TIMEZONE
    desired_retention: float = DEFAULT_DESIRED_RETENTION
    maximum_interval_days: float = Field(default=DEFAULT_MAXIMUM_INTERVAL_DAYS, gt=1)

    verbose: int = 1

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        from pydantic_settings import TomlConfigSettingsSource

        # Find the first existing file
        toml_file = next((f for f in config_files() if f.exists()), None)

        # Overrides beat env, env beats the file
        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (init_settings, env_settings)

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, v: str) -> str:
        try:
            load_timezone(v)
        except ValidationError as e:
            raise ValueError(str(e)) from None
        return v

    @field_validator("desired_retention")
    @classmethod
    def clamp_retention(cls, v: float) -> float:
        return max(MIN_DESIRED_RETENTION, min(MAX_DESIRED_RETENTION, v))

    @field_validator("data_dir", "log_dir", mode="before")
    @classmethod
    def expand_dir(cls, v: Any) -> Path:
        return Path(v).expanduser()

    @field_validator("content_file", mode="before")
    @classmethod
    def resolve_content_file(cls, v: Any) -> Path | None:
        if not v:
            return None
        return Path(v).expanduser().resolve()


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/cadence/config.toml (if exists)
    3. Environment variables (CADENCE_*)
    4. cli_overrides (passed from Typer or the HTTP layer), None values dropped
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return AppConfig(**overrides)
