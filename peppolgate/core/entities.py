"""Business-entity lookups used by the transmission pipeline.

Account, tenant and entity management live outside this node; the
pipeline only needs read access through ``EntityDirectory``.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from peppolgate.models.addresses import AddressFormatError, ParticipantAddress
from peppolgate.models.entities import BusinessEntity


@runtime_checkable
class EntityDirectory(Protocol):
    """Read-only view of the tenants' business entities."""

    def get(self, entity_id: str) -> BusinessEntity | None: ...

    def find_by_send_email(self, email: str) -> BusinessEntity | None: ...

    def find_by_address(
        self, address: str, *, tenant_id: str | None = None
    ) -> BusinessEntity | None: ...


class InMemoryEntityDirectory:
    """Dictionary-backed ``EntityDirectory`` for the CLI and tests."""

    def __init__(self, entities: Iterable[BusinessEntity] = ()) -> None:
        self._entities: dict[str, BusinessEntity] = {}
        for entity in entities:
            self.add(entity)

    def add(self, entity: BusinessEntity) -> None:
        self._entities[entity.entity_id] = entity

    def remove(self, entity_id: str) -> None:
        self._entities.pop(entity_id, None)

    def __len__(self) -> int:
        return len(self._entities)

    def get(self, entity_id: str) -> BusinessEntity | None:
        return self._entities.get(entity_id)

    def find_by_send_email(self, email: str) -> BusinessEntity | None:
        """Match the entity whose submission mailbox is *email* (case-insensitive)."""
        wanted = email.strip().lower()
        for entity in self._entities.values():
            if entity.send_email and entity.send_email.lower() == wanted:
                return entity
        return None

    def find_by_address(
        self, address: str, *, tenant_id: str | None = None
    ) -> BusinessEntity | None:
        """Match by participant identifier, optionally within one tenant."""
        try:
            wanted = ParticipantAddress.parse(address)
        except AddressFormatError:
            return None
        for entity in self._entities.values():
            if tenant_id is not None and entity.tenant_id != tenant_id:
                continue
            if (
                entity.identifier.scheme == wanted.scheme
                and entity.identifier.identifier.lower() == wanted.identifier.lower()
            ):
                return entity
        return None
