"""
httphelpers/utils/settings.py

WHAT THIS FILE IS FOR
---------------------
This module defines the optional runtime configuration for processes that
build their REST clients from settings rather than wiring them by hand.

It is responsible for:
- Defining all supported configuration fields (via Pydantic BaseSettings)
- Loading default values from parameters/parameters.yaml
- Overriding defaults with environment variables (HTTPHELPERS_*)
- Validating required settings (the service base URL)
- Exposing a cached, fully-validated Settings object

Clients never read settings implicitly. StandardClient and
FireAndForgetClient take their base address and timeout as constructor
arguments; `from_settings()` is only a convenience on top of that.

LOAD & PRECEDENCE MODEL
-----------------------
Configuration is loaded in the following order (last wins):

1) YAML defaults from:
       parameters/parameters.yaml
2) Environment variables:
       HTTPHELPERS_*

WHAT THIS FILE IS NOT FOR
-------------------------
This module is NOT responsible for:
- HTTP calls
- Session / credential lookup
- Logging configuration (left to the host application)
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
import yaml
from pydantic import AnyHttpUrl, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from httphelpers.utils.errors import ConfigurationError

logger = structlog.get_logger(__name__)

PARAMETERS_PATH = Path(__file__).resolve().parents[2] / "parameters" / "parameters.yaml"

DEFAULT_TIMEOUT_SECONDS = 100.0


class Settings(BaseSettings):
    """
    Runtime settings for REST clients.

    Load order / precedence:
        1) YAML defaults (parameters/parameters.yaml)
        2) Environment variables (HTTPHELPERS_*), overriding YAML
    """

    model_config = SettingsConfigDict(
        env_prefix="HTTPHELPERS_",
        extra="ignore",
    )

    # Service metadata
    service_name: str = "httphelpers"
    environment: str = "local"
    log_level: str = "INFO"

    # Downstream REST API
    # Optional at the model level to allow partial env loading;
    # enforced explicitly in get_settings().
    base_url: Optional[AnyHttpUrl] = None

    # Deadline for StandardClient calls. FireAndForgetClient ignores it.
    timeout_seconds: float = Field(
        default=DEFAULT_TIMEOUT_SECONDS,
        gt=0,
        description="Per-call deadline (seconds) applied by StandardClient.",
    )


@lru_cache(maxsize=1)
def _load_yaml_parameters() -> Dict[str, Any]:
    """
    Load base configuration from parameters/parameters.yaml.

    Cached to:
    - Avoid repeated disk I/O
    - Guarantee consistent config during process lifetime
    """
    if not PARAMETERS_PATH.exists():
        logger.warning("parameters_yaml_missing", expected=str(PARAMETERS_PATH))
        return {}

    try:
        with PARAMETERS_PATH.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            logger.warning(
                "parameters_yaml_not_dict",
                path=str(PARAMETERS_PATH),
                type=type(data).__name__,
            )
            return {}
        logger.info("parameters_yaml_loaded", path=str(PARAMETERS_PATH))
        return data
    except (OSError, yaml.YAMLError) as exc:
        logger.error("parameters_yaml_load_error", path=str(PARAMETERS_PATH), error=str(exc))
        return {}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Construct and return the final validated Settings object.

    Cached (singleton per process). Raises ConfigurationError when the
    base URL is missing or any merged value fails validation.
    """
    # 1) YAML defaults
    yaml_data = _load_yaml_parameters()

    # 2) env overrides (partial)
    try:
        env_settings = Settings()
        env_data = env_settings.model_dump(exclude_unset=True)
        logger.info("settings_loaded_env_only_partial", fields=list(env_data.keys()))
    except ValidationError as exc:
        logger.warning("settings_env_validation_error", errors=exc.errors())
        env_data = {}

    # 3) merge
    merged: Dict[str, Any] = {**yaml_data, **env_data}

    # 4) enforce required URL
    if not merged.get("base_url"):
        logger.error("settings_missing_base_url", yaml_path=str(PARAMETERS_PATH))
        raise ConfigurationError(
            "Missing required setting: base_url. "
            "Set it either in the HTTPHELPERS_BASE_URL environment variable "
            f"or in {PARAMETERS_PATH}."
        )

    # 5) final validation
    try:
        settings = Settings.model_validate(merged)
    except ValidationError as exc:
        logger.error("settings_validation_error", errors=exc.errors())
        raise ConfigurationError(f"Invalid settings: {exc}") from exc

    logger.info(
        "settings_loaded",
        environment=settings.environment,
        service_name=settings.service_name,
        base_url=str(settings.base_url),
        timeout_seconds=settings.timeout_seconds,
    )

    return settings
