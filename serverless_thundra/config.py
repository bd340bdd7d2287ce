"""
Plugin configuration definition.

Loads process-level settings from environment variables (and `.env`).
Per-service settings live under `custom.thundra` in the service declaration
and are modelled in `models.py`.
"""

import sys

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_LAYER_ACCOUNT_NO = 269863060030
DEFAULT_HANDLER_DIR = "thundra_handlers"


class PluginConfig(BaseSettings):
    """
    Configuration management for the plugin process.
    """

    LOG_LEVEL: str = Field(default="INFO", description="Log level")
    LOG_CONFIG_PATH: str = Field(
        default="logging.yml", description="YAML logging config (dictConfig schema)"
    )

    # Layer publishing
    THUNDRA_LAYER_ACCOUNT_NO: int = Field(
        default=DEFAULT_LAYER_ACCOUNT_NO, description="AWS account that publishes Thundra layers"
    )
    THUNDRA_HANDLER_DIR: str = Field(
        default=DEFAULT_HANDLER_DIR, description="Default directory for generated wrappers"
    )
    DEFAULT_REGION: str = Field(
        default="us-east-1", description="Region used when provider.region is not set"
    )
    LAYER_LOOKUP_TIMEOUT: float = Field(
        default=10.0, description="Read timeout for latest layer lookups (seconds)"
    )

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore"
    )


try:
    config = PluginConfig()
except Exception as e:
    sys.stderr.write(f"Failed to load configuration: {e}\n")
    raise
