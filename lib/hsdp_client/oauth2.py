from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Token:
    """An issued OAuth2 access token and its validity window.

    ``issued_at`` and ``expires_at`` are epoch seconds. A token without
    ``expires_in`` never expires on the client side.
    """

    access_token: str = field(repr=False)
    token_type: str = "bearer"
    expires_in: float | None = None
    issued_at: float = 0.0
    refresh_token: str | None = field(default=None, repr=False)
    scope: tuple[str, ...] = ()
    id_token: str | None = field(default=None, repr=False)

    @property
    def expires_at(self) -> float | None:
        if self.expires_in is None:
            return None
        return self.issued_at + self.expires_in

    def is_expired(self, now: float, margin_s: float = 0.0) -> bool:
        expires_at = self.expires_at
        if expires_at is None:
            return False
        return now >= expires_at - margin_s

    @classmethod
    def from_response(cls, data: Any, *, issued_at: float) -> Token:
        if not isinstance(data, dict):
            raise ValueError("token response is not a JSON object")
        access_token = data.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise ValueError("token response has no access_token")

        expires_in = data.get("expires_in")
        if expires_in is not None:
            expires_in = float(expires_in)

        refresh_token = data.get("refresh_token")
        id_token = data.get("id_token")
        scope_raw = data.get("scope") or ""
        if isinstance(scope_raw, list):
            scope = tuple(str(s) for s in scope_raw)
        else:
            scope = tuple(str(scope_raw).split())

        return cls(
            access_token=access_token,
            token_type=str(data.get("token_type") or "bearer"),
            expires_in=expires_in,
            issued_at=float(issued_at),
            refresh_token=refresh_token if isinstance(refresh_token, str) and refresh_token else None,
            scope=scope,
            id_token=id_token if isinstance(id_token, str) and id_token else None,
        )


@dataclass(frozen=True)
class PasswordGrant:
    username: str
    password: str = field(repr=False)

    def form(self) -> dict[str, str]:
        return {"grant_type": "password", "username": self.username, "password": self.password}


@dataclass(frozen=True)
class ClientCredentialsGrant:
    scopes: tuple[str, ...] = ()

    def form(self) -> dict[str, str]:
        data = {"grant_type": "client_credentials"}
        if self.scopes:
            data["scope"] = " ".join(self.scopes)
        return data


Grant = PasswordGrant | ClientCredentialsGrant
