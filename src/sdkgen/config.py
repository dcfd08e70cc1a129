"""Runtime configuration for sdkgen.

Settings come from ``SDKGEN_*`` environment variables with defaults suitable
for the Azure SDK for Java repository layout.

Design follows Function Core / Imperative Shell:
- Pure function: parse_settings (takes a mapping)
- I/O shell: load_settings (reads os.environ)
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping

from pydantic import BaseModel, Field, ValidationError

from sdkgen.errors import SdkgenError

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_URL = "https://repo1.maven.org/maven2"
DEFAULT_PROCESS_TIMEOUT_SECONDS = 600.0
DEFAULT_HTTP_TIMEOUT_SECONDS = 60.0
DEFAULT_EMITTER_PACKAGE = "@azure-tools/typespec-java"

ENV_PREFIX = "SDKGEN_"

_ENV_FIELDS = {
    "REGISTRY_URL": "registry_url",
    "PROCESS_TIMEOUT": "process_timeout_seconds",
    "HTTP_TIMEOUT": "http_timeout_seconds",
    "DIFF_TOOL_JAR": "diff_tool_jar",
    "EMITTER_PACKAGE": "emitter_package",
    "EMITTER_OUTPUT_DIR": "emitter_output_dir",
}


class ConfigError(SdkgenError):
    """Configuration values could not be parsed."""


class Settings(BaseModel):
    """Configuration shared by the pipeline, resolver and changelog driver."""

    registry_url: str = DEFAULT_REGISTRY_URL
    process_timeout_seconds: float = Field(default=DEFAULT_PROCESS_TIMEOUT_SECONDS, gt=0)
    http_timeout_seconds: float = Field(default=DEFAULT_HTTP_TIMEOUT_SECONDS, gt=0)
    diff_tool_jar: str = Field(
        default="japicmp.jar",
        description="Path to the japicmp command-line jar used for changelogs.",
    )
    emitter_package: str = DEFAULT_EMITTER_PACKAGE
    emitter_output_dir: str = "{project-root}/java-sdk"
    build_skip_flags: tuple[str, ...] = (
        "-Dmaven.javadoc.skip",
        "-Dcodesnippet.skip",
        "-Dgpg.skip",
        "-Drevapi.skip",
    )


def parse_settings(environ: Mapping[str, str]) -> Settings:
    """Build Settings from an environment-like mapping.

    Only ``SDKGEN_*`` keys are consulted; unknown keys are ignored.

    Raises:
        ConfigError: If a value fails validation.
    """
    values: dict[str, str] = {}
    for suffix, field_name in _ENV_FIELDS.items():
        raw = environ.get(ENV_PREFIX + suffix)
        if raw is not None and raw != "":
            values[field_name] = raw

    try:
        settings = Settings.model_validate(values)
    except ValidationError as e:
        msg = f"Invalid sdkgen configuration: {e}"
        raise ConfigError(msg) from e

    settings = settings.model_copy(update={"registry_url": settings.registry_url.rstrip("/")})
    return settings


def load_settings() -> Settings:
    """Load Settings from the process environment."""
    settings = parse_settings(os.environ)
    logger.debug("Loaded settings: %s", settings.model_dump())
    return settings
