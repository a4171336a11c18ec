from __future__ import annotations

from app.models.portal import ServiceStatus
from app.schemas.common import EntityModel, PortalModel


class ServerInfo(EntityModel):
    hostname: str
    ip_address: str


class Service(EntityModel):
    id: str
    account_id: str
    name: str
    group_name: str | None = None
    status: ServiceStatus
    registration_date: str
    next_due_date: str
    billing_cycle: str
    amount: str
    domain: str | None = None
    server_info: ServerInfo | None = None
    username: str | None = None
    # Raw counters as reported by the billing system (MB)
    disk_usage: str | None = None
    disk_limit: str | None = None
    bw_usage: str | None = None
    bw_limit: str | None = None
    last_update: str | None = None
    # Derived for the detail view
    disk_usage_percent: float | None = None
    bandwidth_usage_percent: float | None = None
    disk_usage_raw: str | None = None
    bandwidth_usage_raw: str | None = None
    control_panel_link: str | None = None


class PricingCycle(EntityModel):
    cycle_name: str
    display_price: str
    whmcs_cycle: str
    setup_fee: str | None = None


class Product(EntityModel):
    pid: str
    gid: str
    group_name: str | None = None
    type: str | None = None
    name: str
    description: str = ""
    module: str | None = None
    paytype: str | None = None
    parsed_pricing_cycles: list[PricingCycle] = []


class ProductGroup(EntityModel):
    id: str
    name: str
    headline: str | None = None
    tagline: str | None = None
    order: int | None = None


class ProductGroupListing(PortalModel):
    groups: list[ProductGroup]
    source: str
    all_products: list[Product] | None = None
    message: str | None = None


class ServiceListResponse(PortalModel):
    services: list[Service]


class ServiceResponse(PortalModel):
    service: Service


class ProductListResponse(PortalModel):
    products: list[Product]
