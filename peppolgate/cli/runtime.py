"""Wiring shared by the CLI commands: logging and node components."""

from __future__ import annotations

import logging

from rich.logging import RichHandler

from peppolgate.bridge.transport import As4Transport
from peppolgate.config import NodeConfig
from peppolgate.core.entities import EntityDirectory
from peppolgate.core.orchestrator import TransmissionOrchestrator
from peppolgate.core.production_guard import enforce_production_constraints
from peppolgate.core.store import NodeStore
from peppolgate.documents.validation import ValidationClient
from peppolgate.notifications.email import EmailNotifier
from peppolgate.notifications.telegram import TelegramAlerter
from peppolgate.plugins.client import IntegrationClient
from peppolgate.resolver.smp import SmpClient
from peppolgate.resolver.verifier import RecipientVerifier
from peppolgate.routing.dispatcher import EventDispatcher
from peppolgate.routing.sinks.integration import IntegrationSink
from peppolgate.routing.sinks.webhook import WebhookSink


def configure_logging(level: str = "INFO") -> None:
    """Route the ``peppolgate`` loggers through a Rich handler."""
    handler = RichHandler(rich_tracebacks=True, show_path=False)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    root = logging.getLogger("peppolgate")
    root.handlers[:] = [handler]
    root.setLevel(level.upper())
    root.propagate = False


def build_verifier(cfg: NodeConfig) -> RecipientVerifier:
    smp = SmpClient(
        timeout=cfg.metadata_timeout_seconds,
        participant_scheme=cfg.participant_scheme,
        document_scheme=cfg.document_scheme,
    )
    return RecipientVerifier(
        smp,
        sml_zone=cfg.sml_zone,
        sml_test_zone=cfg.sml_test_zone,
        dns_timeout=cfg.dns_timeout_seconds,
    )


def build_alerter(cfg: NodeConfig) -> TelegramAlerter:
    return TelegramAlerter(cfg.telegram_bot_token, cfg.telegram_chat_ids)


def build_orchestrator(
    cfg: NodeConfig, entities: EntityDirectory, store: NodeStore
) -> TransmissionOrchestrator:
    """Assemble the full send pipeline from configuration."""
    enforce_production_constraints(cfg)
    alerter = build_alerter(cfg)

    dispatcher = EventDispatcher()
    dispatcher.register_sink(WebhookSink(store, timeout=cfg.webhook_timeout_seconds))
    dispatcher.register_sink(
        IntegrationSink(store, IntegrationClient(store, timeout=cfg.plugin_timeout_seconds))
    )

    live = (
        As4Transport(cfg.as4_base_url, cfg.as4_token, timeout=cfg.transport_timeout_seconds)
        if cfg.as4_base_url
        else None
    )
    return TransmissionOrchestrator(
        store,
        entities,
        live_transport=live,
        validator=ValidationClient(
            cfg.validation_url, alerter=alerter, timeout=cfg.validation_timeout_seconds
        ),
        dispatcher=dispatcher,
        notifier=EmailNotifier(cfg.notification_sender),
        alerter=alerter,
        default_address_scheme=cfg.default_address_scheme,
    )
