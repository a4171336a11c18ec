from fastapi import APIRouter, Depends, Query, status

from app.api.deps import get_backend, require_account
from app.schemas.common import MessageResponse
from app.schemas.domains import (
    DomainCheckResponse,
    DomainConfiguration,
    DomainOrderResult,
    DomainResponse,
    LockUpdateRequest,
    LockUpdateResponse,
    NameserverUpdateRequest,
)
from app.services import billing_proxy
from app.services.whmcs import BillingBackend

router = APIRouter(prefix="/domains", tags=["domains"])


# Static paths first so they are not captured by /{domain_id}
@router.get("/check", response_model=DomainCheckResponse)
async def check_domain(
    domain: str | None = Query(default=None),
    backend: BillingBackend = Depends(get_backend),
):
    return DomainCheckResponse(result=await billing_proxy.domains.check(backend, domain))


@router.post("/order", response_model=DomainOrderResult, status_code=status.HTTP_201_CREATED)
async def place_order(
    payload: DomainConfiguration,
    account_id: str = Depends(require_account),
    backend: BillingBackend = Depends(get_backend),
):
    return await billing_proxy.domains.place_order(backend, account_id, payload)


@router.get("/{domain_id}", response_model=DomainResponse)
async def get_domain(
    domain_id: str,
    account_id: str = Depends(require_account),
    backend: BillingBackend = Depends(get_backend),
):
    return DomainResponse(domain=await billing_proxy.domains.get(backend, account_id, domain_id))


@router.post("/{domain_id}", response_model=MessageResponse)
async def update_nameservers(
    domain_id: str,
    payload: NameserverUpdateRequest,
    account_id: str = Depends(require_account),
    backend: BillingBackend = Depends(get_backend),
):
    await billing_proxy.domains.update_nameservers(
        backend, account_id, domain_id, payload.as_list()
    )
    return MessageResponse(message="Nameservers updated successfully.")


@router.post("/{domain_id}/lock", response_model=LockUpdateResponse)
async def update_lock(
    domain_id: str,
    payload: LockUpdateRequest,
    account_id: str = Depends(require_account),
    backend: BillingBackend = Depends(get_backend),
):
    return await billing_proxy.domains.update_lock(
        backend, account_id, domain_id, payload.lockstatus
    )
