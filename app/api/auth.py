from fastapi import APIRouter, Depends, Request, status
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.api.deps import get_backend, require_account
from app.config import settings
from app.schemas.account import (
    AccountResponse,
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    RegisterResponse,
)
from app.schemas.common import MessageResponse
from app.services import billing_proxy
from app.services.whmcs import BillingBackend

router = APIRouter(prefix="/auth", tags=["auth"])
limiter = Limiter(key_func=get_remote_address)


@router.post("/login", response_model=LoginResponse, status_code=status.HTTP_200_OK)
@limiter.limit(settings.login_rate_limit)
async def login(
    request: Request,
    payload: LoginRequest,
    backend: BillingBackend = Depends(get_backend),
):
    return await billing_proxy.accounts.authenticate(backend, payload.email, payload.password)


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterRequest, backend: BillingBackend = Depends(get_backend)):
    return await billing_proxy.accounts.register(backend, payload)


@router.get("/user", response_model=AccountResponse)
async def current_user(
    account_id: str = Depends(require_account),
    backend: BillingBackend = Depends(get_backend),
):
    return AccountResponse(user=await billing_proxy.accounts.get(backend, account_id))


@router.post("/resend-verification", response_model=MessageResponse)
async def resend_verification(
    account_id: str = Depends(require_account),
    backend: BillingBackend = Depends(get_backend),
):
    await billing_proxy.accounts.resend_verification(backend, account_id)
    return MessageResponse(message="Verification email sent.")
