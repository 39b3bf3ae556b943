"""
Configuration management for trx-reporter.
"""

import secrets
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

HASH_PLACEHOLDER = "[hash]"


class Settings(BaseSettings):
    """Environment driven settings."""

    # Fallback output path used when no explicit output option is given
    trx_reporter_file: Optional[str] = Field(default=None, json_schema_extra={"env": "TRX_REPORTER_FILE"})

    # Logging settings
    trx_log_level: str = Field(default="INFO", json_schema_extra={"env": "TRX_LOG_LEVEL"})

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore unexpected environment variables
    )


class ReporterOptions(BaseModel):
    """Options recognized by the report builder.

    Accepts both the Python field names and the camelCase names used by
    reporter option strings (``excludePending=true``).
    """

    output: Optional[str] = None
    exclude_pending: bool = Field(default=False, alias="excludePending")
    warn_excluded_pending: bool = Field(default=False, alias="warnExcludedPending")
    treat_pending_as_not_executed: bool = Field(default=False, alias="treatPendingAsNotExecuted")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


OptionsLike = Union[ReporterOptions, Mapping[str, Any], None]


def get_settings() -> Settings:
    """Load settings from the current environment."""
    return Settings()


def coerce_options(options: OptionsLike) -> ReporterOptions:
    """Return ``options`` as a :class:`ReporterOptions` instance."""
    if options is None:
        return ReporterOptions()
    if isinstance(options, ReporterOptions):
        return options
    return ReporterOptions.model_validate(dict(options))


def resolve_output_path(options: OptionsLike, settings: Optional[Settings] = None) -> Optional[str]:
    """Resolve the report file path.

    The explicit ``output`` option takes priority over the ``TRX_REPORTER_FILE``
    environment variable. Every ``[hash]`` token is replaced with one random
    32 character hex string so templated locations stay unique across runs.

    Returns:
        The file path, or None when the report should go to standard output.
    """
    opts = coerce_options(options)
    file_path = opts.output
    if not file_path:
        file_path = (settings or get_settings()).trx_reporter_file
    if not file_path:
        return None

    if HASH_PLACEHOLDER in file_path:
        file_path = file_path.replace(HASH_PLACEHOLDER, secrets.token_hex(16))
    return file_path
