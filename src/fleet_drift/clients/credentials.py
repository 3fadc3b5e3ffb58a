"""Caller credentials forwarded into extraction."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class TokenCredentials:
    token: str

    def __repr__(self) -> str:
        return "TokenCredentials(token='***')"


@dataclass(frozen=True)
class UsernamePasswordCredentials:
    username: str
    password: str

    def __repr__(self) -> str:
        return f"UsernamePasswordCredentials(username={self.username!r}, password='***')"


Credentials = Union[TokenCredentials, UsernamePasswordCredentials]


def is_token_credentials(credentials: object) -> bool:
    return isinstance(credentials, TokenCredentials) and bool(credentials.token)


def auth_headers(credentials: Optional[Credentials]) -> dict[str, str]:
    """Bearer header for token credentials; empty for anything else."""

    if credentials is not None and is_token_credentials(credentials):
        return {"Authorization": f"Bearer {credentials.token}"}
    return {}


def credentials_from_authorization(header: Optional[str]) -> Optional[Credentials]:
    """Parse an incoming `Authorization: Bearer <token>` header."""

    if not header:
        return None
    scheme, _, value = header.partition(" ")
    if scheme.lower() != "bearer" or not value.strip():
        return None
    return TokenCredentials(token=value.strip())
