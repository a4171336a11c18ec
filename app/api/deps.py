from fastapi import Header, Request

from app.errors import Unauthorized
from app.services.ai_helpers import TextModel
from app.services.auth_tokens import account_id_from_header
from app.services.whmcs import BillingBackend


def get_backend(request: Request) -> BillingBackend:
    return request.app.state.billing


def get_text_model(request: Request) -> TextModel:
    return request.app.state.text_model


def require_account(authorization: str | None = Header(default=None)) -> str:
    """Resolve the bearer credential to an account id or fail with 401."""
    account_id = account_id_from_header(authorization)
    if account_id is None:
        raise Unauthorized("Unauthorized: Invalid or missing token.")
    return account_id


__all__ = ["get_backend", "get_text_model", "require_account"]
