import logging
import os
from pathlib import Path

from pydantic import Field, computed_field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)


class LoggingYamlConfigSettingsSource(YamlConfigSettingsSource):
    """YAML config source that logs whether the file was found."""

    def __init__(self, settings_cls: type[BaseSettings]):
        yaml_file = settings_cls.model_config.get("yaml_file")
        super().__init__(settings_cls)

        # print, because logging is configured from these very settings
        if yaml_file and Path(yaml_file).exists():
            print(f"INFO: Loading configuration from YAML file: {yaml_file}")
        elif yaml_file:
            print(
                f"WARNING: YAML config file not found: {yaml_file} (using defaults and env vars)"
            )


class Settings(BaseSettings):
    """
    Settings class manages configuration options.

    precedence: kwargs > ENVVARS > env_file > yaml_file > defaults
    ENVVARS are prefixed with "EWELINK_NODES_" (but are not case sensitive)

    :var log_level: Logging level. "info", "debug", etc.
    :type log_level: str

    :var api_url_template: eWeLink API base url, ``{region}`` is substituted
        with the account region.
    :type api_url_template: str

    :var evict_failed_connections: Drop a failed login from the connection
        cache so the next request retries it. When False the failure is kept
        and re-raised to every later caller.
    :type evict_failed_connections: bool
    """

    log_level: str | int = "info"  # Input is str, but we convert to int for actual use

    project_root: str = "."
    credential_file: str = "credentials.yml"

    # eWeLink cloud
    api_region: str = "us"
    api_url_template: str = "https://{region}-api.coolkit.cc:8080/api"
    api_version: int = 8
    app_id: str = ""
    app_secret: str = Field("", repr=False)
    request_timeout: float = 10.0

    evict_failed_connections: bool = True

    model_config = SettingsConfigDict(
        env_prefix="EWELINK_NODES_",
        env_file=os.getenv("EWELINK_NODES_ENV_FILE", ".env"),
        yaml_file=os.getenv("EWELINK_NODES_CONFIG_FILE", "ewelink_nodes_config.yaml"),
        case_sensitive=False,
        extra="ignore",
    )

    @computed_field
    @property
    def credential_path(self) -> str:
        return str(Path(self.project_root) / self.credential_file)

    def api_url(self, region: str | None = None) -> str:
        return self.api_url_template.format(region=region or self.api_region)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v) -> int:
        if isinstance(v, int):
            return v
        return logging.getLevelName(v.upper())

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            LoggingYamlConfigSettingsSource(settings_cls),
        )
