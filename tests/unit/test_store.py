"""Tests for NodeStore — documents, usage events, webhooks and integrations."""

from __future__ import annotations

import pytest

from peppolgate.core.store import NodeStore
from peppolgate.documents.classifier import parse_document
from peppolgate.models.documents import (
    Direction,
    DocumentKind,
    TransmittedDocument,
    ValidationResult,
    ValidationStatus,
)
from peppolgate.models.integrations import IntegrationTaskLog
from peppolgate.models.transmission import TransferEvent
from peppolgate.models.webhooks import Webhook
from peppolgate.resolver.doctypes import INVOICE


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def make_document(make_invoice_xml):
    def _factory(
        tenant_id: str = "team-1",
        entity_id: str = "ent-seller",
        direction: Direction = Direction.OUTGOING,
        number: str = "INV-001",
        **overrides,
    ) -> TransmittedDocument:
        body = make_invoice_xml(number=number)
        classified = parse_document(INVOICE.document_type_id, body)
        defaults = {
            "tenant_id": tenant_id,
            "entity_id": entity_id,
            "direction": direction,
            "sender_address": "0208:0123456789",
            "receiver_address": "0208:0987654321",
            "document_type_id": INVOICE.document_type_id,
            "process_id": INVOICE.process_id,
            "country_code": "BE",
            "body": body,
            "kind": classified.kind,
            "parsed": classified.parsed,
        }
        defaults.update(overrides)
        return TransmittedDocument(**defaults)

    return _factory


class TestDocuments:
    def test_insert_and_get(self, store: NodeStore, make_document):
        validation = ValidationResult(status=ValidationStatus.VALID)
        document = store.insert_document(
            make_document(validation=validation, network_message_id="msg-1")
        )
        loaded = store.get_document("team-1", document.document_id)
        assert loaded is not None
        assert loaded.document_id == document.document_id
        assert loaded.kind == DocumentKind.INVOICE
        assert loaded.parsed == document.parsed
        assert loaded.validation == validation
        assert loaded.network_message_id == "msg-1"
        assert loaded.read_at is None

    def test_documents_are_tenant_scoped(self, store: NodeStore, make_document):
        document = store.insert_document(make_document())
        assert store.get_document("team-2", document.document_id) is None
        assert store.list_documents("team-2") == []

    def test_list_is_newest_first_with_filters(self, store: NodeStore, make_document):
        first = store.insert_document(make_document(number="INV-001"))
        second = store.insert_document(make_document(number="INV-002"))
        incoming = store.insert_document(make_document(direction=Direction.INCOMING))
        listed = store.list_documents("team-1")
        assert [d.document_id for d in listed] == [
            incoming.document_id,
            second.document_id,
            first.document_id,
        ]
        outgoing = store.list_documents("team-1", direction=Direction.OUTGOING, limit=1)
        assert [d.document_id for d in outgoing] == [second.document_id]
        assert store.list_documents("team-1", kind=DocumentKind.CREDIT_NOTE) == []

    def test_mark_as_read_is_reversible(self, store: NodeStore, make_document):
        document = store.insert_document(make_document())
        read = store.mark_as_read("team-1", document.document_id)
        assert read is not None and read.read_at is not None
        unread = store.mark_as_read("team-1", document.document_id, read=False)
        assert unread is not None and unread.read_at is None

    def test_delete_document(self, store: NodeStore, make_document):
        document = store.insert_document(make_document())
        assert store.delete_document("team-1", document.document_id) is True
        assert store.delete_document("team-1", document.document_id) is False

    def test_next_document_number(self, store: NodeStore, make_document):
        assert store.next_document_number("team-1", "ent-seller", DocumentKind.INVOICE) is None
        store.insert_document(make_document(number="INV-009"))
        store.insert_document(make_document(number="INV-010"))
        store.insert_document(make_document(direction=Direction.INCOMING, number="X-500"))
        assert store.next_document_number("team-1", "ent-seller", DocumentKind.INVOICE) == (
            "INV-011"
        )


class TestTransferEvents:
    def test_record_and_list(self, store: NodeStore):
        store.record_transfer_event(
            TransferEvent(
                tenant_id="team-1",
                entity_id="ent-seller",
                direction=Direction.OUTGOING,
                document_id="doc-1",
            )
        )
        store.record_transfer_event(
            TransferEvent(
                tenant_id="team-1",
                entity_id="ent-seller",
                direction=Direction.INCOMING,
                document_id="doc-2",
            )
        )
        assert len(store.list_transfer_events("team-1")) == 2
        [event] = store.list_transfer_events("team-1", document_id="doc-2")
        assert event.direction == Direction.INCOMING
        assert store.list_transfer_events("team-2") == []


class TestWebhooks:
    def test_crud(self, store: NodeStore):
        webhook = store.create_webhook(Webhook(tenant_id="team-1", url="https://hooks.test/a"))
        loaded = store.get_webhook("team-1", webhook.webhook_id)
        assert loaded is not None and loaded.url == webhook.url
        moved = store.update_webhook(webhook.model_copy(update={"url": "https://hooks.test/b"}))
        assert moved is not None and moved.url == "https://hooks.test/b"
        assert [w.webhook_id for w in store.list_webhooks("team-1")] == [webhook.webhook_id]
        assert store.delete_webhook("team-1", webhook.webhook_id) is True
        assert store.get_webhook("team-1", webhook.webhook_id) is None

    def test_update_missing_webhook(self, store: NodeStore):
        assert store.update_webhook(Webhook(tenant_id="team-1", url="https://x.test")) is None

    def test_entity_and_tenant_wide_subscriptions(self, store: NodeStore):
        tenant_wide = store.create_webhook(Webhook(tenant_id="team-1", url="https://h.test/all"))
        scoped = store.create_webhook(
            Webhook(tenant_id="team-1", url="https://h.test/one", entity_id="ent-seller")
        )
        store.create_webhook(
            Webhook(tenant_id="team-1", url="https://h.test/other", entity_id="ent-other")
        )
        store.create_webhook(Webhook(tenant_id="team-2", url="https://h.test/foreign"))
        matched = {w.webhook_id for w in store.webhooks_for_entity("team-1", "ent-seller")}
        assert matched == {tenant_wide.webhook_id, scoped.webhook_id}


class TestIntegrations:
    def test_save_is_an_upsert(self, store: NodeStore, make_integration):
        integration = store.save_integration(make_integration())
        store.save_integration(integration.model_copy(update={"entity_id": "ent-other"}))
        [loaded] = store.list_integrations("team-1")
        assert loaded.entity_id == "ent-other"
        assert loaded.manifest == integration.manifest
        assert loaded.configuration == integration.configuration

    def test_integrations_for_entity(self, store: NodeStore, make_integration):
        mine = store.save_integration(make_integration())
        store.save_integration(make_integration(entity_id="ent-other"))
        assert [i.integration_id for i in store.integrations_for_entity("team-1", "ent-seller")] == [
            mine.integration_id
        ]

    def test_integrations_with_capability_spans_tenants(
        self, store: NodeStore, make_integration, make_configuration
    ):
        a = store.save_integration(make_integration(tenant_id="team-1"))
        b = store.save_integration(make_integration(tenant_id="team-2"))
        store.save_integration(
            make_integration(
                tenant_id="team-3",
                configuration=make_configuration(
                    capabilities=[{"event": "integration.cron.short", "enabled": False}]
                ),
            )
        )
        found = {i.integration_id for i in store.integrations_with_capability("integration.cron.short")}
        assert found == {a.integration_id, b.integration_id}

    def test_state_is_replaced_wholesale(self, store: NodeStore, make_integration):
        integration = store.save_integration(make_integration(state={"cursor": 1, "keep": True}))
        store.update_integration_state("team-1", integration.integration_id, {"cursor": 2})
        loaded = store.get_integration("team-1", integration.integration_id)
        assert loaded is not None
        assert loaded.state == {"cursor": 2}

    def test_delete_removes_task_logs(self, store: NodeStore, make_integration):
        integration = store.save_integration(make_integration())
        store.create_task_log(
            IntegrationTaskLog(
                integration_id=integration.integration_id,
                event="document.received",
                task="sync",
                success=True,
            )
        )
        assert store.delete_integration("team-1", integration.integration_id) is True
        assert store.get_integration("team-1", integration.integration_id) is None
        assert store.list_task_logs(integration.integration_id) == []

    def test_task_logs_newest_first(self, store: NodeStore, make_integration):
        integration = store.save_integration(make_integration())
        store.create_task_logs(
            IntegrationTaskLog(
                integration_id=integration.integration_id,
                event="integration.cron.short",
                task=f"task-{n}",
                success=n % 2 == 0,
            )
            for n in range(3)
        )
        logs = store.list_task_logs(integration.integration_id)
        assert [log.task for log in logs] == ["task-2", "task-1", "task-0"]
        assert [log.task for log in store.list_task_logs(integration.integration_id, limit=1)] == [
            "task-2"
        ]
