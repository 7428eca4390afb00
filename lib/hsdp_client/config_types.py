from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

JSON_UTF8 = "application/json; charset=utf-8"

DEFAULT_HEADERS: Mapping[str, str] = MappingProxyType({"Accept": JSON_UTF8})


@dataclass(frozen=True)
class ClientConfig:
    base_url: str = ""
    timeout_s: float = 15.0
    default_headers: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_HEADERS))
    user_agent: str = "hsdp-client/0.1.0"
    trust_env: bool = True

    def __post_init__(self) -> None:
        if self.timeout_s <= 0:
            raise ValueError("timeout_s must be positive")
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))
        object.__setattr__(self, "default_headers", MappingProxyType(dict(self.default_headers)))


@dataclass(frozen=True)
class OAuthClientConfig:
    iam_url: str
    client_id: str
    client_secret: str = field(default="", repr=False)
    timeout_s: float = 15.0
    expiry_margin_s: float = 60.0


@dataclass(frozen=True)
class ServiceEndpoints:
    iam_url: str = ""
    idm_url: str = ""
    cdr_url: str = ""
    tdr_url: str = ""
