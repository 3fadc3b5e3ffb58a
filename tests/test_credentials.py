from fleet_drift.clients.credentials import (
    TokenCredentials,
    UsernamePasswordCredentials,
    auth_headers,
    credentials_from_authorization,
    is_token_credentials,
)


def test_only_token_credentials_produce_bearer_header() -> None:
    assert auth_headers(TokenCredentials("abc")) == {"Authorization": "Bearer abc"}
    assert auth_headers(UsernamePasswordCredentials("u", "p")) == {}
    assert auth_headers(None) == {}


def test_reprs_do_not_leak_secrets() -> None:
    assert "abc" not in repr(TokenCredentials("abc"))
    assert "hunter2" not in repr(UsernamePasswordCredentials("u", "hunter2"))


def test_credentials_from_authorization_header() -> None:
    creds = credentials_from_authorization("Bearer  xyz ")

    assert is_token_credentials(creds)
    assert creds.token == "xyz"
    assert credentials_from_authorization("Basic dTpw") is None
    assert credentials_from_authorization(None) is None
