"""Zombies stats server configuration via environment variables."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings

from shared.validators import StringListEnvSettingsSource, parse_string_list

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource


class ZombiesServerSettings(BaseSettings):
    model_config = {"env_prefix": "ZOMBIES_"}

    database_path: str = "backend/zombies.db"
    log_dir: str = "backend/logs/zombies"
    cors_origins: list[str] = []
    default_page_size: int = Field(default=10, ge=1)
    max_page_size: int = Field(default=100, ge=1)
    event_queue_size: int = Field(default=1000, ge=1)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        return parse_string_list(v, allow_empty=True)

    @model_validator(mode="after")
    def validate_page_sizes(self) -> ZombiesServerSettings:
        if self.default_page_size > self.max_page_size:
            raise ValueError("default_page_size must not exceed max_page_size")
        return self

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        env_source = StringListEnvSettingsSource(settings_cls, string_list_fields=frozenset({"cors_origins"}))
        return (init_settings, env_source, dotenv_settings, file_secret_settings)
