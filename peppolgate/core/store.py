"""Node persistence backed by SQLite.

Holds the rows the transmission pipeline owns: transmitted documents,
usage (transfer) events, webhooks, activated integrations and their task
logs.  Every read and write is keyed by tenant so one tenant can never
see another's rows.

Design:
- A transmitted document is written exactly once; only its read marker
  changes afterwards.
- Structured columns (parsed document, validation, manifest,
  configuration, state) are stored as JSON text.
- WAL journal mode for concurrent readers.
"""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from peppolgate.core.numbering import extract_document_number, increment_document_number
from peppolgate.models.documents import (
    Direction,
    DocumentKind,
    ParsedBillingDocument,
    TransmittedDocument,
    ValidationResult,
)
from peppolgate.models.integrations import (
    ActivatedIntegration,
    IntegrationConfiguration,
    IntegrationManifest,
    IntegrationTaskLog,
)
from peppolgate.models.transmission import TransferEvent
from peppolgate.models.webhooks import Webhook

# ---------------------------------------------------------------------------
# DDL
# ---------------------------------------------------------------------------

_CREATE_DOCUMENTS = """
CREATE TABLE IF NOT EXISTS transmitted_documents (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    document_id         TEXT NOT NULL UNIQUE,
    tenant_id           TEXT NOT NULL,
    entity_id           TEXT NOT NULL,
    direction           TEXT NOT NULL,
    sender_address      TEXT NOT NULL,
    receiver_address    TEXT NOT NULL,
    document_type_id    TEXT NOT NULL,
    process_id          TEXT NOT NULL,
    country_code        TEXT NOT NULL DEFAULT '',
    body                TEXT NOT NULL,
    kind                TEXT NOT NULL,
    parsed_json         TEXT,
    validation_json     TEXT,
    sent_over_network   INTEGER NOT NULL DEFAULT 0,
    network_message_id  TEXT,
    envelope_id         TEXT,
    read_at             TEXT,
    created_at          TEXT NOT NULL
);
"""

_CREATE_TRANSFER_EVENTS = """
CREATE TABLE IF NOT EXISTS transfer_events (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    tenant_id       TEXT NOT NULL,
    entity_id       TEXT NOT NULL,
    direction       TEXT NOT NULL,
    document_id     TEXT NOT NULL,
    created_at      TEXT NOT NULL
);
"""

_CREATE_WEBHOOKS = """
CREATE TABLE IF NOT EXISTS webhooks (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    webhook_id      TEXT NOT NULL UNIQUE,
    tenant_id       TEXT NOT NULL,
    entity_id       TEXT,
    url             TEXT NOT NULL,
    created_at      TEXT NOT NULL
);
"""

_CREATE_INTEGRATIONS = """
CREATE TABLE IF NOT EXISTS activated_integrations (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    integration_id      TEXT NOT NULL UNIQUE,
    tenant_id           TEXT NOT NULL,
    entity_id           TEXT NOT NULL,
    manifest_json       TEXT NOT NULL,
    configuration_json  TEXT NOT NULL,
    state_json          TEXT NOT NULL DEFAULT '{}',
    created_at          TEXT NOT NULL,
    updated_at          TEXT NOT NULL
);
"""

_CREATE_TASK_LOGS = """
CREATE TABLE IF NOT EXISTS integration_task_logs (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    log_id          TEXT NOT NULL UNIQUE,
    integration_id  TEXT NOT NULL,
    event           TEXT NOT NULL,
    task            TEXT NOT NULL,
    success         INTEGER NOT NULL,
    message         TEXT NOT NULL DEFAULT '',
    context         TEXT NOT NULL DEFAULT '',
    created_at      TEXT NOT NULL
);
"""

_CREATE_INDEXES = (
    "CREATE INDEX IF NOT EXISTS idx_docs_tenant ON transmitted_documents(tenant_id, entity_id, id);",
    "CREATE INDEX IF NOT EXISTS idx_webhooks_tenant ON webhooks(tenant_id, entity_id);",
    "CREATE INDEX IF NOT EXISTS idx_integrations_tenant ON activated_integrations(tenant_id, entity_id);",
    "CREATE INDEX IF NOT EXISTS idx_task_logs ON integration_task_logs(integration_id, id);",
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class NodeStore:
    """Tenant-scoped row store for the transmission pipeline.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file. Created if it does not exist.
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            for ddl in (
                _CREATE_DOCUMENTS,
                _CREATE_TRANSFER_EVENTS,
                _CREATE_WEBHOOKS,
                _CREATE_INTEGRATIONS,
                _CREATE_TASK_LOGS,
                *_CREATE_INDEXES,
            ):
                conn.execute(ddl)
            conn.commit()

    # ------------------------------------------------------------------
    # Transmitted documents
    # ------------------------------------------------------------------

    def insert_document(self, document: TransmittedDocument) -> TransmittedDocument:
        """Persist a transmitted document.  Each document is written once."""
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO transmitted_documents
                    (document_id, tenant_id, entity_id, direction, sender_address,
                     receiver_address, document_type_id, process_id, country_code,
                     body, kind, parsed_json, validation_json, sent_over_network,
                     network_message_id, envelope_id, read_at, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    document.document_id,
                    document.tenant_id,
                    document.entity_id,
                    document.direction.value,
                    document.sender_address,
                    document.receiver_address,
                    document.document_type_id,
                    document.process_id,
                    document.country_code,
                    document.body,
                    document.kind.value,
                    document.parsed.model_dump_json() if document.parsed else None,
                    document.validation.model_dump_json() if document.validation else None,
                    int(document.sent_over_network),
                    document.network_message_id,
                    document.envelope_id,
                    document.read_at.isoformat() if document.read_at else None,
                    document.created_at.isoformat(),
                ),
            )
            conn.commit()
        return document

    def get_document(self, tenant_id: str, document_id: str) -> TransmittedDocument | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM transmitted_documents WHERE tenant_id = ? AND document_id = ?",
                (tenant_id, document_id),
            ).fetchone()
        return self._row_to_document(row) if row else None

    def list_documents(
        self,
        tenant_id: str,
        *,
        entity_id: str | None = None,
        direction: Direction | None = None,
        kind: DocumentKind | None = None,
        limit: int | None = None,
    ) -> list[TransmittedDocument]:
        """Return a tenant's documents, newest first, with optional filters."""
        clauses = ["tenant_id = ?"]
        params: list[Any] = [tenant_id]
        if entity_id is not None:
            clauses.append("entity_id = ?")
            params.append(entity_id)
        if direction is not None:
            clauses.append("direction = ?")
            params.append(direction.value)
        if kind is not None:
            clauses.append("kind = ?")
            params.append(kind.value)
        sql = (
            "SELECT * FROM transmitted_documents WHERE "
            + " AND ".join(clauses)
            + " ORDER BY id DESC"
        )
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._row_to_document(row) for row in rows]

    def mark_as_read(
        self, tenant_id: str, document_id: str, *, read: bool = True
    ) -> TransmittedDocument | None:
        """Set or clear the read marker.  The only mutable document field."""
        with self._connect() as conn:
            conn.execute(
                "UPDATE transmitted_documents SET read_at = ? WHERE tenant_id = ? AND document_id = ?",
                (_now() if read else None, tenant_id, document_id),
            )
            conn.commit()
        return self.get_document(tenant_id, document_id)

    def delete_document(self, tenant_id: str, document_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM transmitted_documents WHERE tenant_id = ? AND document_id = ?",
                (tenant_id, document_id),
            )
            conn.commit()
        return cursor.rowcount > 0

    def next_document_number(
        self, tenant_id: str, entity_id: str, kind: DocumentKind
    ) -> str | None:
        """Suggest the next outgoing number from the latest parsed document."""
        for document in self.list_documents(
            tenant_id, entity_id=entity_id, direction=Direction.OUTGOING, kind=kind, limit=20
        ):
            number = extract_document_number(document.parsed, document.kind)
            if number:
                return increment_document_number(number)
        return None

    @staticmethod
    def _row_to_document(row: sqlite3.Row) -> TransmittedDocument:
        return TransmittedDocument(
            document_id=row["document_id"],
            tenant_id=row["tenant_id"],
            entity_id=row["entity_id"],
            direction=Direction(row["direction"]),
            sender_address=row["sender_address"],
            receiver_address=row["receiver_address"],
            document_type_id=row["document_type_id"],
            process_id=row["process_id"],
            country_code=row["country_code"],
            body=row["body"],
            kind=DocumentKind(row["kind"]),
            parsed=ParsedBillingDocument.model_validate_json(row["parsed_json"])
            if row["parsed_json"] else None,
            validation=ValidationResult.model_validate_json(row["validation_json"])
            if row["validation_json"] else None,
            sent_over_network=bool(row["sent_over_network"]),
            network_message_id=row["network_message_id"],
            envelope_id=row["envelope_id"],
            read_at=_parse_ts(row["read_at"]),
            created_at=_parse_ts(row["created_at"]),
        )

    # ------------------------------------------------------------------
    # Transfer (usage) events
    # ------------------------------------------------------------------

    def record_transfer_event(self, event: TransferEvent) -> TransferEvent:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO transfer_events
                    (tenant_id, entity_id, direction, document_id, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    event.tenant_id,
                    event.entity_id,
                    event.direction.value,
                    event.document_id,
                    event.created_at.isoformat(),
                ),
            )
            conn.commit()
        return event

    def list_transfer_events(
        self, tenant_id: str, *, document_id: str | None = None
    ) -> list[TransferEvent]:
        sql = "SELECT * FROM transfer_events WHERE tenant_id = ?"
        params: list[Any] = [tenant_id]
        if document_id is not None:
            sql += " AND document_id = ?"
            params.append(document_id)
        with self._connect() as conn:
            rows = conn.execute(sql + " ORDER BY id ASC", params).fetchall()
        return [
            TransferEvent(
                tenant_id=row["tenant_id"],
                entity_id=row["entity_id"],
                direction=Direction(row["direction"]),
                document_id=row["document_id"],
                created_at=_parse_ts(row["created_at"]),
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------

    def create_webhook(self, webhook: Webhook) -> Webhook:
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO webhooks (webhook_id, tenant_id, entity_id, url, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (
                    webhook.webhook_id,
                    webhook.tenant_id,
                    webhook.entity_id,
                    webhook.url,
                    webhook.created_at.isoformat(),
                ),
            )
            conn.commit()
        return webhook

    def update_webhook(self, webhook: Webhook) -> Webhook | None:
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE webhooks SET entity_id = ?, url = ? WHERE tenant_id = ? AND webhook_id = ?",
                (webhook.entity_id, webhook.url, webhook.tenant_id, webhook.webhook_id),
            )
            conn.commit()
        return webhook if cursor.rowcount else None

    def get_webhook(self, tenant_id: str, webhook_id: str) -> Webhook | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM webhooks WHERE tenant_id = ? AND webhook_id = ?",
                (tenant_id, webhook_id),
            ).fetchone()
        return self._row_to_webhook(row) if row else None

    def list_webhooks(self, tenant_id: str) -> list[Webhook]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM webhooks WHERE tenant_id = ? ORDER BY id ASC", (tenant_id,)
            ).fetchall()
        return [self._row_to_webhook(row) for row in rows]

    def webhooks_for_entity(self, tenant_id: str, entity_id: str) -> list[Webhook]:
        """Entity-scoped webhooks plus the tenant's unscoped webhooks."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM webhooks WHERE tenant_id = ? "
                "AND (entity_id = ? OR entity_id IS NULL) ORDER BY id ASC",
                (tenant_id, entity_id),
            ).fetchall()
        return [self._row_to_webhook(row) for row in rows]

    def delete_webhook(self, tenant_id: str, webhook_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM webhooks WHERE tenant_id = ? AND webhook_id = ?",
                (tenant_id, webhook_id),
            )
            conn.commit()
        return cursor.rowcount > 0

    @staticmethod
    def _row_to_webhook(row: sqlite3.Row) -> Webhook:
        return Webhook(
            webhook_id=row["webhook_id"],
            tenant_id=row["tenant_id"],
            entity_id=row["entity_id"],
            url=row["url"],
            created_at=_parse_ts(row["created_at"]),
        )

    # ------------------------------------------------------------------
    # Activated integrations
    # ------------------------------------------------------------------

    def save_integration(self, integration: ActivatedIntegration) -> ActivatedIntegration:
        """Insert or replace an integration row (keyed by integration_id)."""
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO activated_integrations
                    (integration_id, tenant_id, entity_id, manifest_json,
                     configuration_json, state_json, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(integration_id) DO UPDATE SET
                    entity_id = excluded.entity_id,
                    manifest_json = excluded.manifest_json,
                    configuration_json = excluded.configuration_json,
                    state_json = excluded.state_json,
                    updated_at = excluded.updated_at
                """,
                (
                    integration.integration_id,
                    integration.tenant_id,
                    integration.entity_id,
                    integration.manifest.model_dump_json(by_alias=True),
                    integration.configuration.model_dump_json(),
                    json.dumps(integration.state),
                    integration.created_at.isoformat(),
                    integration.updated_at.isoformat(),
                ),
            )
            conn.commit()
        return integration

    def get_integration(self, tenant_id: str, integration_id: str) -> ActivatedIntegration | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM activated_integrations WHERE tenant_id = ? AND integration_id = ?",
                (tenant_id, integration_id),
            ).fetchone()
        return self._row_to_integration(row) if row else None

    def list_integrations(self, tenant_id: str) -> list[ActivatedIntegration]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM activated_integrations WHERE tenant_id = ? ORDER BY id ASC",
                (tenant_id,),
            ).fetchall()
        return [self._row_to_integration(row) for row in rows]

    def integrations_for_entity(self, tenant_id: str, entity_id: str) -> list[ActivatedIntegration]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM activated_integrations WHERE tenant_id = ? AND entity_id = ? "
                "ORDER BY id ASC",
                (tenant_id, entity_id),
            ).fetchall()
        return [self._row_to_integration(row) for row in rows]

    def integrations_with_capability(self, event: str) -> list[ActivatedIntegration]:
        """All integrations, across tenants, whose configuration enables *event*."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM activated_integrations ORDER BY id ASC"
            ).fetchall()
        integrations = (self._row_to_integration(row) for row in rows)
        return [i for i in integrations if i.configuration.is_enabled(event)]

    def update_integration_state(
        self, tenant_id: str, integration_id: str, state: dict[str, Any]
    ) -> None:
        """Replace the stored state wholesale (never merged)."""
        with self._connect() as conn:
            conn.execute(
                "UPDATE activated_integrations SET state_json = ?, updated_at = ? "
                "WHERE tenant_id = ? AND integration_id = ?",
                (json.dumps(state), _now(), tenant_id, integration_id),
            )
            conn.commit()

    def delete_integration(self, tenant_id: str, integration_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM activated_integrations WHERE tenant_id = ? AND integration_id = ?",
                (tenant_id, integration_id),
            )
            if cursor.rowcount:
                conn.execute(
                    "DELETE FROM integration_task_logs WHERE integration_id = ?",
                    (integration_id,),
                )
            conn.commit()
        return cursor.rowcount > 0

    @staticmethod
    def _row_to_integration(row: sqlite3.Row) -> ActivatedIntegration:
        return ActivatedIntegration(
            integration_id=row["integration_id"],
            tenant_id=row["tenant_id"],
            entity_id=row["entity_id"],
            manifest=IntegrationManifest.model_validate_json(row["manifest_json"]),
            configuration=IntegrationConfiguration.model_validate_json(
                row["configuration_json"]
            ),
            state=json.loads(row["state_json"] or "{}"),
            created_at=_parse_ts(row["created_at"]),
            updated_at=_parse_ts(row["updated_at"]),
        )

    # ------------------------------------------------------------------
    # Integration task logs
    # ------------------------------------------------------------------

    def create_task_logs(self, logs: Iterable[IntegrationTaskLog]) -> list[IntegrationTaskLog]:
        items = list(logs)
        with self._connect() as conn:
            conn.executemany(
                """
                INSERT INTO integration_task_logs
                    (log_id, integration_id, event, task, success, message, context, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        log.log_id,
                        log.integration_id,
                        log.event,
                        log.task,
                        int(log.success),
                        log.message,
                        log.context,
                        log.created_at.isoformat(),
                    )
                    for log in items
                ],
            )
            conn.commit()
        return items

    def create_task_log(self, log: IntegrationTaskLog) -> IntegrationTaskLog:
        return self.create_task_logs([log])[0]

    def list_task_logs(
        self, integration_id: str, *, limit: int | None = None
    ) -> list[IntegrationTaskLog]:
        """Task logs for an integration, newest first."""
        sql = "SELECT * FROM integration_task_logs WHERE integration_id = ? ORDER BY id DESC"
        params: list[Any] = [integration_id]
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [
            IntegrationTaskLog(
                log_id=row["log_id"],
                integration_id=row["integration_id"],
                event=row["event"],
                task=row["task"],
                success=bool(row["success"]),
                message=row["message"],
                context=row["context"],
                created_at=_parse_ts(row["created_at"]),
            )
            for row in rows
        ]
