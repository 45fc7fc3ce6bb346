"""Node configuration — env-driven, network-aware.

Centralized config using pydantic-settings for environment variable
support. Reads from .env file and PEPPOLGATE_* environment variables.

Every external call in the transmission pipeline (DNS, metadata publisher,
validation, AS4 send, plugin POST, webhook POST) takes its bound from the
``*_timeout_seconds`` fields below.
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class NodeConfig(BaseSettings):
    """Access point node configuration with environment variable overrides.

    All settings can be overridden via PEPPOLGATE_* environment variables
    or a .env file in the project root.

    Examples
    --------
    Override via environment::

        export PEPPOLGATE_ENVIRONMENT=staging
        export PEPPOLGATE_LOG_LEVEL=DEBUG
        export PEPPOLGATE_AS4_BASE_URL=https://ap.example.com

    Or via .env file::

        PEPPOLGATE_ENVIRONMENT=production
        PEPPOLGATE_AS4_TOKEN=...
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="PEPPOLGATE_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Runtime environment
    environment: str = "development"
    log_level: str = "INFO"
    debug: bool = False

    # Storage
    database_path: Path = Path(".peppolgate/node.db")

    # Network discovery (SML / SMP)
    participant_scheme: str = "iso6523-actorid-upis"
    document_scheme: str = "busdox-docid-qns"
    sml_zone: str = "edelivery.tech.ec.europa.eu"
    sml_test_zone: str = "acc.edelivery.tech.ec.europa.eu"
    default_address_scheme: str = "0208"

    # Collaborators
    as4_base_url: str = ""
    as4_token: str = ""
    validation_url: str = ""
    telegram_bot_token: str = ""
    telegram_chat_ids: list[str] = []
    notification_sender: str = "noreply@peppolgate.local"

    # Bounded timeouts for every external call
    dns_timeout_seconds: float = 5.0
    metadata_timeout_seconds: float = 10.0
    validation_timeout_seconds: float = 30.0
    transport_timeout_seconds: float = 60.0
    plugin_timeout_seconds: float = 30.0
    webhook_timeout_seconds: float = 10.0

    # Integration cron
    cron_enabled: bool = False
    cron_tick_seconds: float = 30.0

    @property
    def is_production(self) -> bool:
        """Whether running in production mode."""
        return self.environment == "production"


# Module-level singleton: import as `from peppolgate.config import config`
config = NodeConfig()
