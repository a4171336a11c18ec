from fastapi import APIRouter, Depends, Query, status

from app.api.deps import get_backend, require_account
from app.schemas.billing import InvoiceListResponse
from app.schemas.dashboard import Dashboard
from app.schemas.domains import DomainListResponse
from app.schemas.hosting import (
    ProductGroupListing,
    ProductListResponse,
    ServiceListResponse,
    ServiceResponse,
)
from app.schemas.support import (
    DepartmentListResponse,
    OpenTicketRequest,
    OpenTicketResult,
    TicketListResponse,
    TicketReplyRequest,
    TicketReplyResponse,
    TicketResponse,
)
from app.services import billing_proxy
from app.services.dashboard import build_dashboard
from app.services.whmcs import BillingBackend

router = APIRouter(prefix="/data", tags=["data"])


@router.get("/services", response_model=ServiceListResponse)
async def list_services(
    account_id: str = Depends(require_account),
    backend: BillingBackend = Depends(get_backend),
):
    return ServiceListResponse(services=await billing_proxy.services.list(backend, account_id))


@router.get("/service-details/{service_id}", response_model=ServiceResponse)
async def get_service(
    service_id: str,
    account_id: str = Depends(require_account),
    backend: BillingBackend = Depends(get_backend),
):
    return ServiceResponse(
        service=await billing_proxy.services.get(backend, account_id, service_id)
    )


@router.get("/domains", response_model=DomainListResponse)
async def list_domains(
    account_id: str = Depends(require_account),
    backend: BillingBackend = Depends(get_backend),
):
    return DomainListResponse(domains=await billing_proxy.domains.list(backend, account_id))


@router.get("/invoices", response_model=InvoiceListResponse)
async def list_invoices(
    status_filter: str | None = Query(default=None, alias="status"),
    account_id: str = Depends(require_account),
    backend: BillingBackend = Depends(get_backend),
):
    invoices = await billing_proxy.invoices.list(backend, account_id, status_filter)
    return InvoiceListResponse(invoices=invoices)


@router.get("/tickets", response_model=TicketListResponse)
async def list_tickets(
    status_filter: str | None = Query(default=None, alias="status"),
    account_id: str = Depends(require_account),
    backend: BillingBackend = Depends(get_backend),
):
    tickets = await billing_proxy.tickets.list(backend, account_id, status_filter)
    return TicketListResponse(tickets=tickets)


@router.post("/tickets", response_model=OpenTicketResult, status_code=status.HTTP_201_CREATED)
async def open_ticket(
    payload: OpenTicketRequest,
    account_id: str = Depends(require_account),
    backend: BillingBackend = Depends(get_backend),
):
    return await billing_proxy.tickets.open(backend, account_id, payload)


@router.get("/ticket-details/{ticket_id}", response_model=TicketResponse)
async def get_ticket(
    ticket_id: str,
    account_id: str = Depends(require_account),
    backend: BillingBackend = Depends(get_backend),
):
    return TicketResponse(ticket=await billing_proxy.tickets.get(backend, account_id, ticket_id))


@router.post("/ticket-replies/{ticket_id}", response_model=TicketReplyResponse)
async def reply_to_ticket(
    ticket_id: str,
    payload: TicketReplyRequest,
    account_id: str = Depends(require_account),
    backend: BillingBackend = Depends(get_backend),
):
    reply = await billing_proxy.tickets.reply(backend, account_id, ticket_id, payload.message)
    return TicketReplyResponse(reply=reply)


@router.get("/departments", response_model=DepartmentListResponse)
async def list_departments(
    account_id: str = Depends(require_account),
    backend: BillingBackend = Depends(get_backend),
):
    return DepartmentListResponse(departments=await billing_proxy.tickets.departments(backend))


@router.get("/products", response_model=ProductListResponse)
async def list_products(
    gid: str | None = Query(default=None),
    backend: BillingBackend = Depends(get_backend),
):
    return ProductListResponse(products=await billing_proxy.catalog.products(backend, gid))


@router.get("/product-groups", response_model=ProductGroupListing)
async def list_product_groups(backend: BillingBackend = Depends(get_backend)):
    return await billing_proxy.catalog.product_groups(backend)


@router.get("/dashboard", response_model=Dashboard)
async def dashboard(
    account_id: str = Depends(require_account),
    backend: BillingBackend = Depends(get_backend),
):
    return await build_dashboard(backend, account_id)
