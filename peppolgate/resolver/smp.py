"""Service metadata publisher (SMP) client.

Reads the three publisher documents this node needs:

- the **service group** listing one reference URL per document type,
- the **service metadata** for one document type (endpoint, transport
  profile, technical contact, certificate),
- the optional **business card** (display name and country).

Network and parse failures raise ``SmpError`` subclasses.  They are
recoverable: the verifier decides whether a failure means "not
registered", "this type is unsupported", or an aborted verification.
"""

from __future__ import annotations

import logging
from urllib.parse import quote, unquote

import httpx
from lxml import etree

from peppolgate.models.addresses import ParticipantAddress
from peppolgate.models.metadata import BusinessCard, ServiceMetadata
from peppolgate.resolver.certificates import parse_certificate_expiry

logger = logging.getLogger(__name__)

_SAFE_PARSER = etree.XMLParser(
    resolve_entities=False,
    no_network=True,
    remove_blank_text=True,
    huge_tree=False,
)


class SmpError(RuntimeError):
    """Raised when a publisher request fails or returns unusable content."""


class ServiceMetadataError(SmpError):
    """Raised when one document type's service metadata cannot be read."""


def _parse_xml(content: bytes, url: str, error_cls: type[SmpError]) -> etree._Element:
    try:
        return etree.fromstring(content, parser=_SAFE_PARSER)
    except etree.XMLSyntaxError as exc:
        raise error_cls(f"Malformed XML from {url}: {exc}") from exc


def _text(element: etree._Element | None) -> str:
    if element is None or element.text is None:
        return ""
    return element.text.strip()


def document_type_from_reference(reference_url: str, document_scheme: str) -> str:
    """Extract the document type identifier from a service reference URL."""
    _, _, tail = reference_url.partition("/services/")
    decoded = unquote(tail or reference_url.rsplit("/", 1)[-1])
    prefix = f"{document_scheme}::"
    return decoded[len(prefix):] if decoded.startswith(prefix) else decoded


class SmpClient:
    """Async HTTP client for one network's metadata publishers.

    Parameters
    ----------
    client:
        Shared ``httpx.AsyncClient``.  When omitted, a short-lived client
        is created per request with *timeout*.
    timeout:
        Bound in seconds for each publisher request.
    participant_scheme, document_scheme:
        Identifier schemes used to build publisher paths.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        timeout: float = 10.0,
        participant_scheme: str = "iso6523-actorid-upis",
        document_scheme: str = "busdox-docid-qns",
    ) -> None:
        self._client = client
        self._timeout = timeout
        self.participant_scheme = participant_scheme
        self.document_scheme = document_scheme

    # ------------------------------------------------------------------
    # URL construction
    # ------------------------------------------------------------------

    def service_group_url(self, publisher_url: str, address: ParticipantAddress) -> str:
        participant = quote(f"{self.participant_scheme}::{address}", safe="")
        return f"{publisher_url.rstrip('/')}/{participant}"

    def service_metadata_url(
        self,
        publisher_url: str,
        address: ParticipantAddress,
        document_type_id: str,
    ) -> str:
        document = quote(f"{self.document_scheme}::{document_type_id}", safe="")
        return f"{self.service_group_url(publisher_url, address)}/services/{document}"

    def business_card_url(self, publisher_url: str, address: ParticipantAddress) -> str:
        participant = quote(f"{self.participant_scheme}::{address}", safe="")
        return f"{publisher_url.rstrip('/')}/businesscard/{participant}"

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    async def _get(self, url: str, error_cls: type[SmpError]) -> httpx.Response:
        try:
            if self._client is not None:
                return await self._client.get(url, timeout=self._timeout)
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                return await client.get(url)
        except httpx.HTTPError as exc:
            raise error_cls(f"Request to {url} failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def fetch_service_group(
        self,
        publisher_url: str,
        address: ParticipantAddress,
    ) -> list[str] | None:
        """Return the service metadata reference URLs for *address*.

        Returns ``None`` when the publisher does not know the participant.

        Raises
        ------
        SmpError
            On transport failure, an unexpected status, or malformed XML.
        """
        url = self.service_group_url(publisher_url, address)
        response = await self._get(url, SmpError)
        if response.status_code == 404:
            logger.info("Publisher %s does not list participant %s", publisher_url, address)
            return None
        if response.status_code != 200:
            raise SmpError(f"Service group request to {url} returned HTTP {response.status_code}")

        root = _parse_xml(response.content, url, SmpError)
        references = [
            ref.get("href", "").strip()
            for ref in root.iter("{*}ServiceMetadataReference")
        ]
        return [ref for ref in references if ref]

    async def fetch_service_metadata(self, reference_url: str) -> ServiceMetadata:
        """Fetch and parse the service metadata behind *reference_url*.

        Raises
        ------
        ServiceMetadataError
            On transport failure, a non-200 status, malformed XML, or a
            document without a service endpoint.
        """
        response = await self._get(reference_url, ServiceMetadataError)
        if response.status_code != 200:
            raise ServiceMetadataError(
                f"Service metadata request to {reference_url} returned HTTP {response.status_code}"
            )

        root = _parse_xml(response.content, reference_url, ServiceMetadataError)
        information = next(root.iter("{*}ServiceInformation"), None)
        if information is None:
            raise ServiceMetadataError(f"No ServiceInformation in metadata from {reference_url}")

        endpoint = next(information.iter("{*}Endpoint"), None)
        if endpoint is None:
            raise ServiceMetadataError(f"No service endpoint in metadata from {reference_url}")

        certificate = _text(endpoint.find("{*}Certificate"))
        return ServiceMetadata(
            document_type_id=_text(information.find("{*}DocumentIdentifier"))
            or document_type_from_reference(reference_url, self.document_scheme),
            endpoint_url=_text(endpoint.find("{*}EndpointReference/{*}Address")),
            transport_profile=endpoint.get("transportProfile", ""),
            technical_contact_url=_text(endpoint.find("{*}TechnicalContactUrl")),
            certificate_expiry=parse_certificate_expiry(certificate) if certificate else None,
            description=_text(endpoint.find("{*}ServiceDescription")),
            process_ids=[
                _text(p) for p in information.iter("{*}ProcessIdentifier") if _text(p)
            ],
        )

    async def fetch_business_card(
        self,
        publisher_url: str,
        address: ParticipantAddress,
    ) -> BusinessCard | None:
        """Return the participant's business card, or ``None`` if absent."""
        url = self.business_card_url(publisher_url, address)
        response = await self._get(url, SmpError)
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise SmpError(f"Business card request to {url} returned HTTP {response.status_code}")

        root = _parse_xml(response.content, url, SmpError)
        entity = next(root.iter("{*}BusinessEntity"), None)
        if entity is None:
            return None
        return BusinessCard(
            name=_text(entity.find("{*}Name")),
            country_code=_text(entity.find("{*}CountryCode")),
        )
