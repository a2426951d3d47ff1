from __future__ import annotations

import os
from pathlib import Path
from typing import Literal, Optional, Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .errors import ConfigError

DEFAULT_CREDENTIALS_KEY = "SA_CREDENTIALS_PATH"
DEFAULT_TIMEZONE = "Asia/Kolkata"


class SecretProvider(Protocol):
    """Anything with a mapping-style ``get``; ``os.environ`` and dicts both qualify."""

    def get(self, key: str, /) -> Optional[str]: ...


class SheetsConfig(BaseModel):
    spreadsheet_id: str | None = Field(
        None, description="ID of the spreadsheet that holds the attendance log"
    )
    spreadsheet_id_env: str | None = Field(
        None,
        description="Environment variable with the spreadsheet ID",
    )
    timezone: str = Field(
        DEFAULT_TIMEZONE,
        description="Timezone used to decide which day's tab a record belongs to",
    )
    layout: Literal["open", "legacy"] = Field(
        "open",
        description="'open' appends below existing rows (A:F); 'legacy' targets the fixed 1:6 window",
    )
    header_rows: int = Field(
        0,
        ge=0,
        description="Number of header rows at the top of each day's tab",
    )

    @field_validator("timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone '{value}'") from exc
        return value

    @model_validator(mode="after")
    def _ensure_spreadsheet_source(self) -> "SheetsConfig":
        if not self.spreadsheet_id and not self.spreadsheet_id_env:
            raise ValueError("Sheets config must define 'spreadsheet_id' or 'spreadsheet_id_env'")
        return self

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def resolve_spreadsheet_id(self, environ: SecretProvider | None = None) -> str:
        """Return the explicit spreadsheet ID or read it from the configured variable."""

        if self.spreadsheet_id:
            return self.spreadsheet_id
        source = os.environ if environ is None else environ
        value = source.get(self.spreadsheet_id_env or "")
        if not value:
            raise ConfigError(
                f"Spreadsheet ID is not configured: set {self.spreadsheet_id_env}"
            )
        return value


class AppConfig(BaseModel):
    sheets: SheetsConfig
    credentials_key: str = Field(
        DEFAULT_CREDENTIALS_KEY,
        description="Secret name holding the path to the service account JSON key",
    )
    request_timeout: float = Field(
        30.0,
        gt=0,
        description="Timeout in seconds for each Sheets API call",
    )
    lock_timeout: float | None = Field(
        60.0,
        gt=0,
        description="Seconds to wait for another append to the same tab; null waits forever",
    )


def load_config(path: str | Path) -> AppConfig:
    """Load configuration from a YAML file and return a validated object."""

    config_path = Path(path).expanduser().resolve()
    if not config_path.exists():
        msg = f"Configuration file not found: {config_path}"
        raise FileNotFoundError(msg)

    with config_path.open("r", encoding="utf-8") as fh:
        try:
            data = yaml.safe_load(fh)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Configuration file is not valid YAML: {exc}") from exc

    if data is None:
        raise ConfigError(f"Configuration file is empty: {config_path}")

    try:
        return AppConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
