from __future__ import annotations

from typing import Any

from pydantic import Field

from app.models.portal import DomainAvailability, DomainStatus, RegistrarLockStatus
from app.schemas.common import EntityModel, PortalModel


class Domain(EntityModel):
    id: str
    account_id: str
    domain_name: str
    status: DomainStatus
    registration_date: str
    expiry_date: str
    registrar: str
    nameservers: list[str]
    registrar_lock: bool
    registrar_lock_status: RegistrarLockStatus
    first_payment_amount: str | None = None
    recurring_amount: str | None = None
    payment_method: str | None = None


class NameserverUpdateRequest(PortalModel):
    ns1: str | None = None
    ns2: str | None = None
    ns3: str | None = None
    ns4: str | None = None
    ns5: str | None = None

    def as_list(self) -> list[str]:
        values = [self.ns1, self.ns2, self.ns3, self.ns4, self.ns5]
        return [value.strip() for value in values if value and value.strip()]


class LockUpdateRequest(PortalModel):
    lockstatus: Any = None


class LockUpdateResponse(PortalModel):
    message: str = "Registrar Lock updated successfully."
    new_status: RegistrarLockStatus


class DomainPricing(EntityModel):
    register_price: str = Field(alias="register")
    period: str


class DomainCheckResult(EntityModel):
    domain_name: str
    status: DomainAvailability
    pricing: DomainPricing | None = None


class DomainCheckResponse(PortalModel):
    result: DomainCheckResult


class DomainNameservers(PortalModel):
    ns1: str | None = None
    ns2: str | None = None
    ns3: str | None = None
    ns4: str | None = None


class DomainConfiguration(PortalModel):
    domain_name: str | None = Field(default=None, max_length=253)
    registration_period: int | None = None
    id_protection: bool = False
    dns_management: bool = False
    email_forwarding: bool = False
    nameservers: DomainNameservers = DomainNameservers()
    payment_method: str | None = None


class DomainOrderResult(PortalModel):
    message: str = "Order placed successfully."
    orderid: str
    invoiceid: str
    invoice_url: str


class DomainListResponse(PortalModel):
    domains: list[Domain]


class DomainResponse(PortalModel):
    domain: Domain
