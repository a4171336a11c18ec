from __future__ import annotations

from app.schemas.billing import Invoice
from app.schemas.common import PortalModel
from app.schemas.hosting import Service
from app.schemas.support import Ticket


class DashboardStats(PortalModel):
    active_services: int
    domains_count: int
    pending_renewals: int
    unpaid_invoices: int
    open_tickets: int


class Dashboard(PortalModel):
    stats: DashboardStats
    upcoming_renewals: list[Service]
    recent_invoices: list[Invoice]
    recent_tickets: list[Ticket]
