"""Recipient verification — address → publisher → capabilities.

The default call answers only "is this address registered, and which
document types does it claim?".  Per-type metadata and the business card
are separate opt-ins so a plain registration check costs one DNS lookup
and one HTTP request.
"""

from __future__ import annotations

import logging

from peppolgate.models.addresses import ParticipantAddress
from peppolgate.models.metadata import (
    BusinessCard,
    DocumentSupport,
    RecipientVerification,
    SupportedDocumentType,
)
from peppolgate.resolver.doctypes import get_document_type_name
from peppolgate.resolver.naptr import NaptrLookup, resolve_publisher
from peppolgate.resolver.sml import participant_dns_name
from peppolgate.resolver.smp import (
    ServiceMetadataError,
    SmpClient,
    SmpError,
    document_type_from_reference,
)

logger = logging.getLogger(__name__)


class RecipientVerifier:
    """Resolves participants on the live or the test network.

    Parameters
    ----------
    smp:
        Publisher client used for service groups, metadata and cards.
    sml_zone, sml_test_zone:
        DNS zones of the live and the test network.
    lookup:
        Optional NAPTR lookup override (see ``resolver.naptr``).
    dns_timeout:
        Bound in seconds for the DNS step.
    """

    def __init__(
        self,
        smp: SmpClient,
        *,
        sml_zone: str = "edelivery.tech.ec.europa.eu",
        sml_test_zone: str = "acc.edelivery.tech.ec.europa.eu",
        lookup: NaptrLookup | None = None,
        dns_timeout: float = 5.0,
    ) -> None:
        self._smp = smp
        self._sml_zone = sml_zone
        self._sml_test_zone = sml_test_zone
        self._lookup = lookup
        self._dns_timeout = dns_timeout

    def dns_name(self, address: ParticipantAddress, *, use_test_network: bool = False) -> str:
        zone = self._sml_test_zone if use_test_network else self._sml_zone
        return participant_dns_name(
            address, zone=zone, participant_scheme=self._smp.participant_scheme
        )

    async def resolve_publisher_url(
        self, address: ParticipantAddress, *, use_test_network: bool = False
    ) -> str | None:
        return await resolve_publisher(
            self.dns_name(address, use_test_network=use_test_network),
            lookup=self._lookup,
            timeout=self._dns_timeout,
        )

    async def verify_recipient(
        self,
        address: ParticipantAddress | str,
        *,
        include_metadata: bool = False,
        include_business_card: bool = False,
        use_test_network: bool = False,
    ) -> RecipientVerification:
        """Verify that *address* is registered and list what it supports.

        An unregistered or unreachable participant yields
        ``is_valid=False``; this method does not raise for that case.
        """
        participant = (
            address if isinstance(address, ParticipantAddress)
            else ParticipantAddress.parse(address)
        )
        dns_name = self.dns_name(participant, use_test_network=use_test_network)
        negative = RecipientVerification(
            address=str(participant), is_valid=False, dns_name=dns_name
        )

        publisher_url = await resolve_publisher(
            dns_name, lookup=self._lookup, timeout=self._dns_timeout
        )
        if publisher_url is None:
            logger.info("Participant %s is not registered (no publisher)", participant)
            return negative

        try:
            references = await self._smp.fetch_service_group(publisher_url, participant)
        except SmpError as exc:
            logger.warning("Service group lookup for %s failed: %s", participant, exc)
            return negative.model_copy(update={"publisher_url": publisher_url})
        if references is None:
            return negative.model_copy(update={"publisher_url": publisher_url})

        supported: list[SupportedDocumentType] = []
        for reference in references:
            document_type_id = document_type_from_reference(
                reference, self._smp.document_scheme
            )
            entry = SupportedDocumentType(
                document_type_id=document_type_id,
                name=get_document_type_name(document_type_id),
                reference_url=reference,
            )
            if include_metadata:
                try:
                    metadata = await self._smp.fetch_service_metadata(reference)
                    entry = entry.model_copy(update={"metadata": metadata})
                except ServiceMetadataError as exc:
                    logger.warning(
                        "Metadata for %s / %s unavailable: %s",
                        participant,
                        document_type_id,
                        exc,
                    )
                    entry = entry.model_copy(update={"error": str(exc)})
            supported.append(entry)

        business_card: BusinessCard | None = None
        if include_business_card:
            business_card = await self.fetch_business_card(
                participant, publisher_url=publisher_url
            )

        return RecipientVerification(
            address=str(participant),
            is_valid=True,
            dns_name=dns_name,
            publisher_url=publisher_url,
            service_metadata_references=references,
            supported_document_types=supported,
            business_card=business_card,
        )

    async def fetch_business_card(
        self,
        address: ParticipantAddress,
        *,
        publisher_url: str | None = None,
        use_test_network: bool = False,
    ) -> BusinessCard | None:
        """Fetch the directory entry for *address*, or ``None``."""
        if publisher_url is None:
            publisher_url = await self.resolve_publisher_url(
                address, use_test_network=use_test_network
            )
            if publisher_url is None:
                return None
        try:
            return await self._smp.fetch_business_card(publisher_url, address)
        except SmpError as exc:
            logger.warning("Business card for %s unavailable: %s", address, exc)
            return None

    async def verify_document_support(
        self,
        address: ParticipantAddress | str,
        document_type_id: str,
        *,
        use_test_network: bool = False,
    ) -> DocumentSupport:
        """Whether *address* declares support for *document_type_id*."""
        participant = (
            address if isinstance(address, ParticipantAddress)
            else ParticipantAddress.parse(address)
        )
        unsupported = DocumentSupport(
            address=str(participant),
            document_type_id=document_type_id,
            is_supported=False,
        )
        publisher_url = await self.resolve_publisher_url(
            participant, use_test_network=use_test_network
        )
        if publisher_url is None:
            return unsupported

        url = self._smp.service_metadata_url(publisher_url, participant, document_type_id)
        try:
            metadata = await self._smp.fetch_service_metadata(url)
        except ServiceMetadataError as exc:
            logger.info(
                "%s does not support %s: %s", participant, document_type_id, exc
            )
            return unsupported
        return unsupported.model_copy(update={"is_supported": True, "metadata": metadata})
