from __future__ import annotations

import httpx

from .auth import TokenRefresher
from .cdr import CDR
from .config_types import ClientConfig, ServiceEndpoints
from .iam_user import IamUser
from .tdr import TDR
from .transport import HttpClient


class HsdpClient:
    """All service clients sharing one HttpClient and token refresher."""

    def __init__(
            self,
            endpoints: ServiceEndpoints,
            token_refresher: TokenRefresher,
            cfg: ClientConfig | None = None,
            *,
            transport: httpx.BaseTransport | None = None,
    ):
        self._endpoints = endpoints
        self._tokens = token_refresher
        self._t = HttpClient(cfg or ClientConfig(), token_refresher, transport=transport)

    @property
    def http(self) -> HttpClient:
        return self._t

    @property
    def users(self) -> IamUser:
        return IamUser(self._require("idm_url"), self._t)

    @property
    def cdr(self) -> CDR:
        return CDR(self._require("cdr_url"), self._t)

    @property
    def tdr(self) -> TDR:
        return TDR(self._require("tdr_url"), self._t)

    def close(self) -> None:
        """Close the HTTP client and the token refresher, if it can be closed."""
        self._t.close()
        close_refresher = getattr(self._tokens, "close", None)
        if callable(close_refresher):
            close_refresher()

    def _require(self, name: str) -> str:
        value = getattr(self._endpoints, name)
        if not value:
            raise ValueError(f"{name} is not configured")
        return value
