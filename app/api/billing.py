from fastapi import APIRouter, Depends, status

from app.api.deps import get_backend, require_account
from app.schemas.billing import AddFundsRequest, AddFundsResult, PaymentMethodListResponse
from app.services import billing_proxy
from app.services.whmcs import BillingBackend

router = APIRouter(prefix="/billing", tags=["billing"])


@router.get("/payment-methods", response_model=PaymentMethodListResponse)
async def list_payment_methods(
    account_id: str = Depends(require_account),
    backend: BillingBackend = Depends(get_backend),
):
    methods = await billing_proxy.payments.methods(backend)
    return PaymentMethodListResponse(payment_methods=methods)


@router.post("/add-funds", response_model=AddFundsResult, status_code=status.HTTP_201_CREATED)
async def add_funds(
    payload: AddFundsRequest,
    account_id: str = Depends(require_account),
    backend: BillingBackend = Depends(get_backend),
):
    return await billing_proxy.payments.add_funds(
        backend, account_id, payload.amount, payload.payment_method
    )
