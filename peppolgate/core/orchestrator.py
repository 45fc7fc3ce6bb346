"""Transmission orchestrator: the end-to-end send and receive pipeline.

One ``transmit`` call is one attempt: classify, validate, address, pick
a transport, send, persist, announce.  Nothing is retried.  Persisting
the ``TransmittedDocument`` is the durability boundary; everything after
it (webhooks, integrations) is best-effort and never changes the result.

Sandbox entities that have not opted into the live test network use the
simulated transport.  When the simulated recipient is a business entity
in the same sandbox tenant, the document is received there as an
incoming document, the way a real access point would deliver it.
"""

from __future__ import annotations

import logging

from peppolgate.bridge.transport import (
    DocumentTransport,
    SendRequest,
    SimulatedTransport,
    TransportError,
)
from peppolgate.core.entities import EntityDirectory
from peppolgate.core.errors import (
    InvalidDocumentType,
    MissingRecipientAddress,
    ProcessIdentifierUnavailable,
    TransmissionError,
    TransmissionFailed,
    UnknownBusinessEntity,
    UserFacingError,
)
from peppolgate.core.store import NodeStore
from peppolgate.core.transmission_machine import TransmissionMachine
from peppolgate.documents.classifier import detect_document_type, parse_document
from peppolgate.documents.validation import ValidationClient, enforce_validation_policy
from peppolgate.models.addresses import (
    PARTICIPANT_PREFIX,
    AddressFormatError,
    ParticipantAddress,
)
from peppolgate.models.documents import (
    Direction,
    DocumentKind,
    ParsedBillingDocument,
    TransmittedDocument,
    ValidationResult,
    ValidationStatus,
)
from peppolgate.models.entities import BusinessEntity
from peppolgate.models.events import (
    DOCUMENT_LABEL_ASSIGNED,
    DOCUMENT_LABEL_UNASSIGNED,
    DOCUMENT_RECEIVED,
    DOCUMENT_SENT,
    NodeEvent,
)
from peppolgate.models.transmission import (
    SenderContext,
    SubmissionSource,
    TransferEvent,
    TransmissionResult,
    TransmissionState,
)
from peppolgate.notifications.email import EmailNotifier
from peppolgate.notifications.telegram import TelegramAlerter
from peppolgate.resolver.doctypes import (
    UnknownDocumentTypeError,
    find_by_document_type_id,
    get_document_type_info,
)
from peppolgate.routing.dispatcher import EventDispatcher, SinkDispatchError

logger = logging.getLogger(__name__)

SEND_FAILED = "Failed to send document over Peppol"


def _strip_participant_prefix(value: str) -> str:
    return value[len(PARTICIPANT_PREFIX):] if value.startswith(PARTICIPANT_PREFIX) else value


def recipient_party_section(kind: DocumentKind) -> str:
    """The XML party expected to carry the recipient's endpoint."""
    return "AccountingSupplierParty" if kind.is_self_billing else "AccountingCustomerParty"


def recipient_from_document(
    parsed: ParsedBillingDocument | None, kind: DocumentKind
) -> str | None:
    """Read the addressed party's endpoint: the seller for self-billing, else the buyer."""
    if parsed is None:
        return None
    party = parsed.seller if kind.is_self_billing else parsed.buyer
    return party.address


class TransmissionOrchestrator:
    """Runs transmissions and receptions for the tenants' business entities.

    Parameters
    ----------
    store:
        Persists documents and usage events.
    entities:
        Resolves the sending or receiving business entity.
    live_transport:
        Used for every non-sandbox entity and for sandbox entities on the
        test network.
    simulated_transport:
        Used for sandbox entities.  A fresh one is created when omitted.
    validator:
        Rules-engine client.  Without one, validation is ``not_supported``.
    dispatcher:
        Fans out ``document.*`` events.
    notifier:
        Receives submitter diagnostics for email submissions.
    alerter:
        Receives operator alerts when event dispatch fails entirely.
    default_address_scheme:
        Scheme given to caller-supplied recipients that lack one.
    """

    def __init__(
        self,
        store: NodeStore,
        entities: EntityDirectory,
        *,
        live_transport: DocumentTransport | None = None,
        simulated_transport: SimulatedTransport | None = None,
        validator: ValidationClient | None = None,
        dispatcher: EventDispatcher | None = None,
        notifier: EmailNotifier | None = None,
        alerter: TelegramAlerter | None = None,
        default_address_scheme: str = "0208",
    ) -> None:
        self._store = store
        self._entities = entities
        self._live = live_transport
        self._simulated = simulated_transport or SimulatedTransport()
        self._simulated.set_delivery_callback(self._deliver_in_sandbox)
        self._validator = validator
        self._dispatcher = dispatcher
        self._notifier = notifier
        self._alerter = alerter
        self._default_scheme = default_address_scheme

    @property
    def simulated_transport(self) -> SimulatedTransport:
        return self._simulated

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    async def transmit(self, sender: SenderContext, raw_body: str) -> TransmissionResult:
        """Send *raw_body* on behalf of the entity described by *sender*.

        Returns
        -------
        TransmissionResult
            ``success=True`` with the stored document id, or the error
            result of the first failing step.  Email submissions also get
            a diagnostic sent to ``sender.reply_to`` on failure.
        """
        result = TransmissionResult(success=False, state=TransmissionState.RECEIVED)
        machine = TransmissionMachine(result.attempt_id)

        entity: BusinessEntity | None = None
        kind: DocumentKind | None = None
        sender_address: str | None = None
        recipient: str | None = None
        validation: ValidationResult | None = None

        try:
            entity = self._resolve_sender(sender)
            sender_address = str(entity.identifier)

            # received -> classified
            document_type_id = sender.document_type_id or detect_document_type(raw_body)
            if not document_type_id:
                raise InvalidDocumentType(
                    "Invalid document type",
                    details=(
                        "Document type could not be detected automatically. Please ensure "
                        "you're sending a valid Peppol XML document."
                    ),
                )
            classified = parse_document(
                document_type_id,
                raw_body,
                {"entity": entity.name, "sender": sender_address},
            )
            kind = classified.kind
            machine.transition(TransmissionState.CLASSIFIED)

            validation = await self._validate(raw_body)
            enforce_validation_policy(validation, sender.source)

            # classified -> addressed
            recipient = self._resolve_recipient(sender, classified.parsed, kind)
            process_id = self._resolve_process_id(sender, document_type_id, kind)
            machine.transition(TransmissionState.ADDRESSED)

            request = SendRequest(
                sender_id=sender_address,
                receiver_id=recipient,
                document_type_id=document_type_id,
                process_id=process_id,
                country_code=entity.country_code,
                body=raw_body,
                use_test_network=entity.use_test_network,
                tenant_id=entity.tenant_id,
            )
            network_message_id, envelope_id = await self._send(entity, request)
            machine.transition(TransmissionState.SENT)
        except TransmissionError as exc:
            machine.fail()
            logger.warning(
                "Transmission %s failed at %s: %s",
                result.attempt_id,
                exc.code,
                exc.message,
            )
            await self._notify_submitter(sender, exc, entity)
            return TransmissionResult.from_error(
                exc,
                entity_name=entity.name if entity else None,
                kind=kind,
                sender=sender_address,
                recipient=recipient,
                validation=validation,
                simulated=bool(entity and entity.uses_simulated_transport),
            ).model_copy(update={"attempt_id": result.attempt_id})
        except Exception:
            machine.fail()
            logger.exception("Transmission %s failed unexpectedly", result.attempt_id)
            raise

        document = self._store.insert_document(
            TransmittedDocument(
                tenant_id=entity.tenant_id,
                entity_id=entity.entity_id,
                direction=Direction.OUTGOING,
                sender_address=sender_address,
                receiver_address=recipient,
                document_type_id=document_type_id,
                process_id=process_id,
                country_code=entity.country_code,
                body=raw_body,
                kind=kind,
                parsed=classified.parsed,
                validation=validation,
                sent_over_network=True,
                network_message_id=network_message_id,
                envelope_id=envelope_id,
            )
        )
        if not entity.is_sandbox:
            self._store.record_transfer_event(
                TransferEvent(
                    tenant_id=entity.tenant_id,
                    entity_id=entity.entity_id,
                    direction=Direction.OUTGOING,
                    document_id=document.document_id,
                )
            )
        logger.info(
            "Transmission %s sent %s %s -> %s as %s",
            result.attempt_id,
            kind.value,
            sender_address,
            recipient,
            document.document_id,
        )

        await self._announce(
            NodeEvent(
                event_type=DOCUMENT_SENT,
                tenant_id=entity.tenant_id,
                entity_id=entity.entity_id,
                document_id=document.document_id,
                data=document.event_data(),
            )
        )

        return result.model_copy(
            update={
                "success": True,
                "state": machine.state,
                "document_id": document.document_id,
                "entity_name": entity.name,
                "kind": kind,
                "sender": sender_address,
                "recipient": recipient,
                "simulated": entity.uses_simulated_transport,
                "validation": validation,
            }
        )

    def _resolve_sender(self, sender: SenderContext) -> BusinessEntity:
        if sender.source == SubmissionSource.EMAIL:
            send_address = sender.send_address or ""
            entity = self._entities.find_by_send_email(send_address)
            if entity is None:
                raise UnknownBusinessEntity(
                    "Unknown recipient address",
                    details=(
                        f"The email address {send_address} is not configured for document "
                        "processing. Please check the email address and try again."
                    ),
                )
            return entity

        entity = self._entities.get(sender.entity_id or "")
        if entity is None or (sender.tenant_id and entity.tenant_id != sender.tenant_id):
            raise UnknownBusinessEntity(
                "Business entity not found",
                details=f"No business entity '{sender.entity_id}' exists for this tenant.",
            )
        return entity

    async def _validate(self, raw_body: str) -> ValidationResult:
        if self._validator is None:
            return ValidationResult(status=ValidationStatus.NOT_SUPPORTED)
        return await self._validator.validate(raw_body)

    def _resolve_recipient(
        self,
        sender: SenderContext,
        parsed: ParsedBillingDocument | None,
        kind: DocumentKind,
    ) -> str:
        if sender.recipient:
            try:
                return str(ParticipantAddress.coerce(sender.recipient, self._default_scheme))
            except AddressFormatError as exc:
                raise TransmissionError("Invalid recipient address", details=str(exc)) from exc

        recipient = recipient_from_document(parsed, kind)
        if not recipient:
            section = recipient_party_section(kind)
            raise MissingRecipientAddress(
                "Recipient Peppol address not found",
                party_section=section,
                details=(
                    "Please ensure the document includes the recipient's Peppol ID "
                    f"(EndpointID) in the {section} section."
                ),
            )
        return recipient

    @staticmethod
    def _resolve_process_id(
        sender: SenderContext, document_type_id: str, kind: DocumentKind
    ) -> str:
        if sender.process_id:
            return sender.process_id
        preset = find_by_document_type_id(document_type_id)
        if preset is not None:
            return preset.process_id
        try:
            return get_document_type_info(kind).process_id
        except UnknownDocumentTypeError as exc:
            raise ProcessIdentifierUnavailable(
                "Process ID detection failed",
                details=(
                    f"Document type detected: {kind.value}. Please contact support if "
                    "this issue persists."
                ),
            ) from exc

    async def _send(
        self, entity: BusinessEntity, request: SendRequest
    ) -> tuple[str | None, str | None]:
        """Deliver through the entity's transport.  Returns ``(message id, envelope id)``."""
        transport: DocumentTransport | None = (
            self._simulated if entity.uses_simulated_transport else self._live
        )
        if transport is None:
            raise TransmissionFailed(
                SEND_FAILED,
                details="No live transport is configured on this node.",
                additional_context="No live transport is configured on this node.",
            )

        try:
            outcome = await transport.send(request)
        except (TransportError, UserFacingError) as exc:
            raise TransmissionFailed(
                SEND_FAILED, details=str(exc), additional_context=str(exc)
            ) from exc

        if not outcome.ok:
            raise TransmissionFailed(
                SEND_FAILED,
                details=outcome.diagnostic,
                additional_context=outcome.diagnostic,
            )
        return outcome.network_message_id, outcome.envelope_id

    async def _notify_submitter(
        self,
        sender: SenderContext,
        exc: TransmissionError,
        entity: BusinessEntity | None,
    ) -> None:
        if sender.source != SubmissionSource.EMAIL or not sender.reply_to:
            return
        if self._notifier is None:
            return
        try:
            await self._notifier.notify_submission_error(
                sender.reply_to,
                error=exc.message,
                details=exc.details,
                entity_name=entity.name if entity else None,
            )
        except Exception:  # noqa: BLE001
            logger.exception("Failed to notify submitter %s", sender.reply_to)

    # ------------------------------------------------------------------
    # Receiving
    # ------------------------------------------------------------------

    async def receive(
        self,
        sender_id: str,
        receiver_id: str,
        document_type_id: str,
        process_id: str,
        country_code: str,
        body: str,
        *,
        skip_billing: bool = False,
        tenant_id: str | None = None,
    ) -> TransmittedDocument:
        """Store an incoming document for the entity registered as *receiver_id*.

        Raises
        ------
        UserFacingError
            If no business entity is registered under *receiver_id*.
        """
        sender_id = _strip_participant_prefix(sender_id)
        receiver_id = _strip_participant_prefix(receiver_id)

        entity = self._entities.find_by_address(receiver_id, tenant_id=tenant_id)
        if entity is None:
            raise UserFacingError("Business entity not found")

        classified = parse_document(
            document_type_id, body, {"entity": entity.name, "sender": sender_id}
        )
        document = self._store.insert_document(
            TransmittedDocument(
                tenant_id=entity.tenant_id,
                entity_id=entity.entity_id,
                direction=Direction.INCOMING,
                sender_address=sender_id,
                receiver_address=receiver_id,
                document_type_id=document_type_id,
                process_id=process_id,
                country_code=country_code,
                body=body,
                kind=classified.kind,
                parsed=classified.parsed,
            )
        )
        if not skip_billing and not entity.is_sandbox:
            self._store.record_transfer_event(
                TransferEvent(
                    tenant_id=entity.tenant_id,
                    entity_id=entity.entity_id,
                    direction=Direction.INCOMING,
                    document_id=document.document_id,
                )
            )
        logger.info("Received %s for %s as %s", classified.kind.value, receiver_id, document.document_id)

        await self._announce(
            NodeEvent(
                event_type=DOCUMENT_RECEIVED,
                tenant_id=entity.tenant_id,
                entity_id=entity.entity_id,
                document_id=document.document_id,
                data=document.event_data(),
            )
        )
        return document

    async def _deliver_in_sandbox(self, request: SendRequest) -> None:
        """Hand a simulated send to a sandbox recipient in the same tenant, if there is one."""
        if request.tenant_id is None:
            return
        recipient = self._entities.find_by_address(request.receiver_id, tenant_id=request.tenant_id)
        if recipient is None or not recipient.is_smp_recipient:
            logger.debug(
                "Simulated recipient %s is not registered in tenant %s; nothing to deliver",
                request.receiver_id,
                request.tenant_id,
            )
            return
        await self.receive(
            request.sender_id,
            request.receiver_id,
            request.document_type_id,
            request.process_id,
            request.country_code,
            request.body,
            skip_billing=True,
            tenant_id=request.tenant_id,
        )

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    async def announce_label_change(
        self, tenant_id: str, document_id: str, label_id: str, *, assigned: bool
    ) -> None:
        """Announce that a label was assigned to or removed from a document.

        Raises
        ------
        UserFacingError
            If the document does not exist for *tenant_id*.
        """
        document = self._store.get_document(tenant_id, document_id)
        if document is None:
            raise UserFacingError("Document not found")
        await self._announce(
            NodeEvent(
                event_type=DOCUMENT_LABEL_ASSIGNED if assigned else DOCUMENT_LABEL_UNASSIGNED,
                tenant_id=tenant_id,
                entity_id=document.entity_id,
                document_id=document_id,
                data={"labelId": label_id},
            )
        )

    async def _announce(self, event: NodeEvent) -> None:
        """Dispatch *event*.  Failures are logged and alerted, never raised."""
        if self._dispatcher is None:
            return
        try:
            await self._dispatcher.dispatch(event)
        except SinkDispatchError as exc:
            logger.error("Event dispatch failed for %s: %s", event.event_type, exc)
            if self._alerter is not None:
                await self._alerter.send_system_alert("Event dispatch failed", str(exc), "error")
        except Exception:  # noqa: BLE001
            logger.exception("Unexpected error dispatching %s", event.event_type)
