"""Bearer credential parsing for the customer portal.

The session credential is a placeholder: a fixed prefix followed by the
account id. It carries no signature or expiry, so it resolves identity only
and must be replaced by a verifiable token before production use. Real
authentication happens against the billing system at login.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

SESSION_TOKEN_PREFIX = "whmcs-session-for-"
LEGACY_TOKEN_PREFIX = "mock-jwt-token-for-"
_TOKEN_PREFIXES = (SESSION_TOKEN_PREFIX, LEGACY_TOKEN_PREFIX)


def _extract_bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    parts = authorization.split(" ", 1)
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1].strip()
    return None


def account_id_from_token(token: str | None) -> str | None:
    """Return the account id carried by ``token``, or None when unrecognized."""
    if not token:
        return None
    for prefix in _TOKEN_PREFIXES:
        if token.startswith(prefix):
            account_id = token[len(prefix):]
            if account_id and not any(ch.isspace() for ch in account_id):
                return account_id
            return None
    return None


def account_id_from_header(authorization: str | None) -> str | None:
    token = _extract_bearer_token(authorization)
    if token is None:
        logger.debug("Authorization header missing or not Bearer type")
        return None
    account_id = account_id_from_token(token)
    if account_id is None:
        logger.debug("Bearer token format not recognized")
    return account_id


def issue_session_token(account_id: str) -> str:
    return f"{SESSION_TOKEN_PREFIX}{account_id}"
