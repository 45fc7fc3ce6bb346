"""Business entity model — the sending or receiving company of a tenant."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from peppolgate.models.addresses import ParticipantAddress


class BusinessEntity(BaseModel):
    """A company registered under a tenant.

    ``is_sandbox`` marks a playground tenant whose documents are not
    billed.  Sandbox entities use the simulated transport unless
    ``use_test_network`` opts them into the live test network.
    """

    model_config = ConfigDict(frozen=True)

    entity_id: str
    tenant_id: str
    name: str
    country_code: str
    identifier: ParticipantAddress
    send_email: str | None = None
    is_sandbox: bool = False
    use_test_network: bool = False
    is_smp_recipient: bool = True

    @property
    def uses_simulated_transport(self) -> bool:
        return self.is_sandbox and not self.use_test_network
