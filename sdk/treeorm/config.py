"""
Configuration for treeorm stores.

Settings are read from TREEORM_* environment variables by default and
can be passed explicitly to Store.from_settings().

The library itself never installs log handlers; applications that want
the same log output as the command-line tools call setup_logging().
"""

import logging
from typing import Dict, Optional

import json_log_formatter
from pydantic import Field
from pydantic_settings import BaseSettings


class StoreSettings(BaseSettings):
    """Store configuration."""

    # Paths
    base_path: str = Field(default="", description="Path prepended to every record path")
    path_prefix: Dict[str, str] = Field(
        default_factory=dict,
        description="Prefix group name -> path segment",
    )

    # Id generation: push, uuid1 or uuid4
    id_mode: str = Field(default="push")

    # Database; no URL = in-memory database
    database_url: Optional[str] = Field(default=None)
    auth_token: Optional[str] = Field(default=None, repr=False)
    request_timeout: float = Field(default=10.0, description="Request timeout in seconds")

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="text", description="json or text")

    model_config = {"env_prefix": "TREEORM_"}


def setup_logging(settings: Optional[StoreSettings] = None) -> None:
    """Configure the root logger from settings.

    Args:
        settings: Store settings; read from the environment if omitted
    """
    settings = settings or StoreSettings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.log_format == "json":
        formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Request logs from the REST backend are noisy below WARNING
    logging.getLogger("httpx").setLevel(logging.WARNING)
