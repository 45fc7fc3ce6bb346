"""Tests for NodeConfig and the production configuration guard."""

from __future__ import annotations

import pytest

from peppolgate.config import NodeConfig
from peppolgate.core.production_guard import (
    ProductionConfigError,
    enforce_production_constraints,
)


class TestNodeConfig:
    def test_defaults(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        config = NodeConfig()
        assert config.environment == "development"
        assert not config.is_production
        assert config.sml_zone == "edelivery.tech.ec.europa.eu"
        assert config.sml_test_zone == "acc.edelivery.tech.ec.europa.eu"

    def test_environment_overrides(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("PEPPOLGATE_ENVIRONMENT", "production")
        monkeypatch.setenv("PEPPOLGATE_DNS_TIMEOUT_SECONDS", "1.5")
        monkeypatch.setenv("PEPPOLGATE_TELEGRAM_CHAT_IDS", '["100", "200"]')
        config = NodeConfig()
        assert config.is_production
        assert config.dns_timeout_seconds == 1.5
        assert config.telegram_chat_ids == ["100", "200"]

    def test_dotenv_file(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        (tmp_path / ".env").write_text("PEPPOLGATE_AS4_BASE_URL=https://ap.test\n")
        assert NodeConfig().as4_base_url == "https://ap.test"


class TestProductionGuard:
    def test_non_production_is_not_checked(self):
        enforce_production_constraints(NodeConfig(environment="development", debug=True))

    def test_complete_production_config_passes(self):
        enforce_production_constraints(
            NodeConfig(
                environment="production",
                as4_base_url="https://ap.test",
                as4_token="token",
            )
        )

    def test_every_violation_is_reported(self):
        config = NodeConfig(environment="production", debug=True, as4_base_url="", as4_token="")
        with pytest.raises(ProductionConfigError, match="Production configuration guard failed") as exc_info:
            enforce_production_constraints(config)
        message = str(exc_info.value)
        assert "debug=True" in message
        assert "PEPPOLGATE_AS4_BASE_URL" in message
        assert "PEPPOLGATE_AS4_TOKEN" in message
