from datetime import date, datetime, time, timedelta, UTC
from pathlib import Path
from typing import Any, Dict, Optional, Union
import os

import yaml
from dotenv import find_dotenv, load_dotenv
from loguru import logger
from pydantic import BaseModel, Field, field_validator, model_validator

from dogfetch.core.types import OutputFormat, resolve_format

MIN_PAGE_SIZE = 1
MAX_PAGE_SIZE = 5000
DEFAULT_LOOKBACK = timedelta(hours=24)

API_KEY_ENV = "DD_API_KEY"
APP_KEY_ENV = "DD_APP_KEY"
SITE_ENV = "DD_SITE"


def default_from() -> datetime:
    """Default start of the time window: 24 hours ago."""
    return datetime.now(UTC) - DEFAULT_LOOKBACK


def parse_time(value: Union[str, int, float, date, None]) -> Optional[datetime]:
    """Parse a time given as RFC3339/ISO-8601 or as Unix seconds.

    Args:
        value: Time string, Unix seconds, datetime or date, or None

    Returns:
        Timezone-aware datetime (UTC when no offset was given), or None
        for an empty value

    Raises:
        ValueError: If the value cannot be read as a time
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    # YAML loads bare dates and numbers as native types
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=UTC)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value, tz=UTC)
        except (ValueError, OverflowError, OSError):
            raise ValueError(f"unable to parse time '{value}': timestamp out of range")
    if not isinstance(value, str):
        raise ValueError(
            f"unable to parse time '{value}': expected RFC3339 or Unix timestamp"
        )

    text = value.strip()
    try:
        # Bare digits are Unix seconds, never a compact ISO date
        if text.lstrip('-').isdigit():
            return datetime.fromtimestamp(int(text), tz=UTC)
        # fromisoformat handles a trailing 'Z' from 3.11 on
        parsed = datetime.fromisoformat(text)
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    except (ValueError, OverflowError, OSError):
        raise ValueError(
            f"unable to parse time '{value}': expected RFC3339 or Unix timestamp"
        )


class FetchConfig(BaseModel):
    """Validated configuration for one fetch session."""
    # Query parameters
    query: str = Field("", validate_default=True)           # Search query
    index: str = "main"                                     # Log index to read from
    time_from: datetime = Field(default_factory=default_from)
    time_to: Optional[datetime] = None                      # None means "now", never sent

    # Pagination
    page_size: int = 1000                                   # Records per page
    cursor: str = ""                                        # Resume cursor, empty for the start

    # Output
    output_format: OutputFormat = OutputFormat.JSON
    append: bool = False                                    # Streaming format only
    output_path: str = ""                                   # Empty means standard output

    # Credentials
    api_key: str = Field("", validate_default=True)
    app_key: str = Field("", validate_default=True)
    site: Optional[str] = None                              # e.g. datadoghq.eu

    @field_validator('query')
    @classmethod
    def validate_query(cls, v):
        if not v or not v.strip():
            raise ValueError("query is required")
        return v

    @field_validator('time_from', 'time_to', mode='before')
    @classmethod
    def validate_times(cls, v):
        return parse_time(v)

    @field_validator('page_size')
    @classmethod
    def validate_page_size(cls, v):
        if v < MIN_PAGE_SIZE or v > MAX_PAGE_SIZE:
            raise ValueError(
                f"pageSize must be between {MIN_PAGE_SIZE} and {MAX_PAGE_SIZE}, got {v}"
            )
        return v

    @field_validator('output_format', mode='before')
    @classmethod
    def validate_output_format(cls, v):
        if isinstance(v, OutputFormat):
            return v
        return resolve_format(str(v))

    @field_validator('output_path')
    @classmethod
    def validate_output_path(cls, v):
        # "-" means standard output
        return "" if v.strip() == "-" else v

    @field_validator('api_key')
    @classmethod
    def validate_api_key(cls, v):
        if not v:
            raise ValueError(f"{API_KEY_ENV} environment variable is required")
        return v

    @field_validator('app_key')
    @classmethod
    def validate_app_key(cls, v):
        if not v:
            raise ValueError(f"{APP_KEY_ENV} environment variable is required")
        return v

    @model_validator(mode='after')
    def validate_combinations(self) -> 'FetchConfig':
        if self.append and self.output_format != OutputFormat.NDJSON:
            raise ValueError("--append only works with --format ndjson")
        if self.cursor and self.output_format != OutputFormat.NDJSON:
            raise ValueError("--cursor only works with --format ndjson")
        if self.time_to is not None and self.time_from > self.time_to:
            raise ValueError(
                f"--from ({self.time_from.isoformat()}) must be before "
                f"--to ({self.time_to.isoformat()})"
            )
        return self

    @staticmethod
    def _credentials_from_env(dotenv_path: Optional[str] = None) -> Dict[str, Any]:
        load_dotenv(dotenv_path or find_dotenv(usecwd=True))
        credentials = {
            'api_key': os.getenv(API_KEY_ENV, ""),
            'app_key': os.getenv(APP_KEY_ENV, ""),
        }
        site = os.getenv(SITE_ENV)
        if site:
            credentials['site'] = site
        return credentials

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None, **overrides: Any) -> 'FetchConfig':
        """Build a configuration with credentials taken from the environment.

        A ``.env`` file is loaded first; variables already set win over it.
        """
        values = cls._credentials_from_env(dotenv_path)
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    @classmethod
    def from_yaml(
        cls,
        file_path: Union[str, Path],
        defaults: Optional[Dict[str, Any]] = None,
        **overrides: Any
    ) -> 'FetchConfig':
        """Load configuration from a YAML file.

        Args:
            file_path: Path to a YAML mapping of FetchConfig fields
            defaults: Values used when neither the file nor an override sets them
            **overrides: Values that take precedence over the file (None is ignored)

        Returns:
            Validated FetchConfig
        """
        logger.info(f"Loading configuration from {file_path}")
        try:
            with open(file_path, 'r') as f:
                config_dict = yaml.safe_load(f) or {}
        except Exception as e:
            logger.error(f"Error loading configuration: {str(e)}")
            raise

        if not isinstance(config_dict, dict):
            raise ValueError(f"Configuration file {file_path} must contain a mapping")

        values = cls._credentials_from_env()
        values.update(defaults or {})
        values.update(config_dict)
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def describe_time_to(self) -> str:
        """Human form of the window end for progress output."""
        if self.time_to is None:
            return "now"
        return self.time_to.isoformat()
