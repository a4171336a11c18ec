"""Dashboard: one concurrent read of an account's lists, condensed into counters
and short "what needs attention" lists.
"""

from __future__ import annotations

import asyncio
from datetime import date, datetime, timedelta

from app.models.portal import (
    ACTIVE_TICKET_STATUSES,
    OUTSTANDING_INVOICE_STATUSES,
    DomainStatus,
    ServiceStatus,
)
from app.schemas.billing import Invoice
from app.schemas.dashboard import Dashboard, DashboardStats
from app.schemas.domains import Domain
from app.schemas.hosting import Service
from app.schemas.support import Ticket
from app.services import billing_proxy
from app.services.whmcs import BillingBackend

RENEWAL_WINDOW_DAYS = 30
RECENT_LIMIT = 3


def _parse_date(value: str) -> date | None:
    try:
        return datetime.strptime(value[:10], "%Y-%m-%d").date()
    except (TypeError, ValueError):
        return None


def _due_within(service: Service, today: date, days: int) -> bool:
    due = _parse_date(service.next_due_date)
    return due is not None and today <= due <= today + timedelta(days=days)


def summarize(
    services: list[Service],
    domains: list[Domain],
    invoices: list[Invoice],
    tickets: list[Ticket],
    today: date | None = None,
) -> Dashboard:
    """Fold the account's lists into dashboard counters and short lists."""
    today = today or date.today()
    active = [s for s in services if s.status == ServiceStatus.active]
    renewals = sorted(
        (s for s in active if _due_within(s, today, RENEWAL_WINDOW_DAYS)),
        key=lambda s: s.next_due_date,
    )
    unpaid = [i for i in invoices if i.status in OUTSTANDING_INVOICE_STATUSES]
    open_tickets = [t for t in tickets if t.status in ACTIVE_TICKET_STATUSES]
    stats = DashboardStats(
        active_services=len(active),
        domains_count=sum(1 for d in domains if d.status == DomainStatus.active),
        pending_renewals=len(renewals),
        unpaid_invoices=len(unpaid),
        open_tickets=len(open_tickets),
    )
    return Dashboard(
        stats=stats,
        upcoming_renewals=renewals[:RECENT_LIMIT],
        recent_invoices=unpaid[:RECENT_LIMIT],
        recent_tickets=open_tickets[:RECENT_LIMIT],
    )


async def build_dashboard(backend: BillingBackend, account_id: str) -> Dashboard:
    # Independent reads, issued together
    services, domains, invoices, tickets = await asyncio.gather(
        billing_proxy.services.list(backend, account_id),
        billing_proxy.domains.list(backend, account_id),
        billing_proxy.invoices.list(backend, account_id),
        billing_proxy.tickets.list(backend, account_id),
    )
    return summarize(services, domains, invoices, tickets)
