import pytest

from app.services.auth_tokens import (
    LEGACY_TOKEN_PREFIX,
    SESSION_TOKEN_PREFIX,
    account_id_from_header,
    account_id_from_token,
    issue_session_token,
)


@pytest.mark.parametrize("prefix", [SESSION_TOKEN_PREFIX, LEGACY_TOKEN_PREFIX])
@pytest.mark.parametrize("account_id", ["1", "42", "abc-123"])
def test_known_prefix_yields_suffix(prefix, account_id):
    assert account_id_from_token(f"{prefix}{account_id}") == account_id


@pytest.mark.parametrize(
    "token",
    [
        None,
        "",
        SESSION_TOKEN_PREFIX,
        LEGACY_TOKEN_PREFIX,
        "jwt-token-for-1",
        "1",
        f"x{SESSION_TOKEN_PREFIX}1",
        f"{SESSION_TOKEN_PREFIX}1 2",
    ],
)
def test_unrecognized_token_is_rejected(token):
    assert account_id_from_token(token) is None


def test_issued_token_round_trips():
    assert account_id_from_token(issue_session_token("7")) == "7"


def test_header_requires_bearer_scheme():
    token = issue_session_token("5")
    assert account_id_from_header(f"Bearer {token}") == "5"
    assert account_id_from_header(f"bearer {token}") == "5"
    assert account_id_from_header(f"Basic {token}") is None
    assert account_id_from_header(token) is None
    assert account_id_from_header(None) is None
