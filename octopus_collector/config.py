"""Configuration management for the Octopus meter collector."""

import logging
import os
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from .models import MeterIdentity, MeterSide

logger = logging.getLogger(__name__)

# Upstream rate limit floor for polling
MIN_POLL_SECONDS = 60
DEFAULT_POLL_SECONDS = 300


class ConfigError(Exception):
    """Configuration is missing something a meter needs to run."""
    pass


def load_secrets_file(secrets_path: str = ".secrets") -> dict:
    """Load secrets from a separate secrets file.

    The secrets file uses the same format as .env files.
    Returns a dict of key-value pairs.
    """
    secrets = {}

    path = Path(secrets_path)
    if path.exists():
        with open(path, "r") as f:
            for line in f:
                line = line.strip()
                # Skip comments and empty lines
                if not line or line.startswith("#"):
                    continue
                if "=" in line:
                    key, value = line.split("=", 1)
                    secrets[key.strip()] = value.strip()

    return secrets


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Octopus API
    # API key is normally kept in the .secrets file, not the environment
    octopus_api_key: Optional[str] = Field(default=None, alias="OCTOPUS_API_KEY")
    poll_seconds: int = Field(default=DEFAULT_POLL_SECONDS, alias="OCTOPUS_POLL_SECONDS")
    today_page_size: int = Field(default=250, alias="OCTOPUS_TODAY_PAGE_SIZE")
    http_timeout: int = Field(default=30, alias="OCTOPUS_HTTP_TIMEOUT")

    # Import meter (required)
    import_mpan: Optional[str] = Field(default=None, alias="OCTOPUS_IMPORT_MPAN")
    import_serial: Optional[str] = Field(default=None, alias="OCTOPUS_IMPORT_SERIAL")
    import_name: Optional[str] = Field(default=None, alias="OCTOPUS_IMPORT_NAME")

    # Export meter (optional, only used when both mpan and serial are set)
    export_mpan: Optional[str] = Field(default=None, alias="OCTOPUS_EXPORT_MPAN")
    export_serial: Optional[str] = Field(default=None, alias="OCTOPUS_EXPORT_SERIAL")
    export_name: Optional[str] = Field(default=None, alias="OCTOPUS_EXPORT_NAME")

    # Cached values across restarts; empty string keeps them in memory only
    state_cache_path: str = Field(default=".octopus_state.json", alias="STATE_CACHE_PATH")

    # InfluxDB
    influxdb_enabled: bool = Field(default=False, alias="INFLUXDB_ENABLED")
    influxdb_url: str = Field(default="http://localhost:8086", alias="INFLUXDB_URL")
    influxdb_token: str = Field(default="octopus-collector-token", alias="INFLUXDB_TOKEN")
    influxdb_org: str = Field(default="home", alias="INFLUXDB_ORG")
    influxdb_bucket: str = Field(default="octopus_energy", alias="INFLUXDB_BUCKET")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    class Config:
        env_file = ".env"
        extra = "ignore"

    @field_validator("poll_seconds", mode="before")
    @classmethod
    def fallback_poll_seconds(cls, value):
        try:
            return int(float(value))
        except (TypeError, ValueError, OverflowError):
            logger.warning(f"Invalid OCTOPUS_POLL_SECONDS {value!r}, using {DEFAULT_POLL_SECONDS}s")
            return DEFAULT_POLL_SECONDS

    @property
    def poll_interval(self) -> int:
        """Polling interval in seconds, never below the upstream floor."""
        return max(MIN_POLL_SECONDS, self.poll_seconds)

    def meters(self) -> List[MeterIdentity]:
        """Build meter identities from the configured import/export entries.

        Returns:
            The import meter, followed by the export meter if fully configured

        Raises:
            ConfigError: API key or import meter missing
        """
        if not self.octopus_api_key:
            raise ConfigError("Missing OCTOPUS_API_KEY in configuration")

        if not self.import_mpan or not self.import_serial:
            raise ConfigError("Import meter configuration missing (OCTOPUS_IMPORT_MPAN / OCTOPUS_IMPORT_SERIAL)")

        meters = [_meter(MeterSide.IMPORT, self.import_mpan, self.import_serial, self.import_name)]

        if self.export_mpan and self.export_serial:
            meters.append(_meter(MeterSide.EXPORT, self.export_mpan, self.export_serial, self.export_name))
        elif self.export_mpan or self.export_serial:
            logger.warning("Export configuration incomplete; skipping export meter.")

        return meters


def _meter(side: MeterSide, mpan: str, serial: str, name: Optional[str]) -> MeterIdentity:
    return MeterIdentity(
        mpan=mpan.strip(),
        serial=serial.strip(),
        side=side,
        name=name or side.default_name,
    )


def create_settings() -> Settings:
    """Create settings instance, loading secrets from .secrets file."""
    secrets = load_secrets_file()

    # The .secrets file is authoritative for sensitive values
    for key, value in secrets.items():
        if key == "OCTOPUS_API_KEY" or key.endswith("_TOKEN"):
            os.environ[key] = value

    return Settings()


# Global settings instance
settings = create_settings()
