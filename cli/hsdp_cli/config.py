from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from typing import Any

import tomli_w
from platformdirs import user_config_dir

from hsdp_client import Token
from hsdp_client.config_types import OAuthClientConfig, ServiceEndpoints

from . import console

APP_NAME = "hsdp"
CONFIG_FILENAME = "config.toml"
DEFAULT_TIMEOUT_S = 15.0
ENV_CLIENT_ID = "HSDP_CLIENT_ID"
ENV_CLIENT_SECRET = "HSDP_CLIENT_SECRET"

_WARNED_BASE_URL_SCHEME = False


@dataclass
class AuthConfig:
    access_token: str = ""
    refresh_token: str = ""
    token_type: str = "bearer"
    expires_in: float | None = None
    issued_at: float | None = None

    def to_token(self) -> Token | None:
        if not self.access_token:
            return None
        return Token(
            access_token=self.access_token,
            token_type=self.token_type,
            expires_in=self.expires_in,
            issued_at=self.issued_at or 0.0,
            refresh_token=self.refresh_token or None,
        )

    @classmethod
    def from_token(cls, token: Token) -> AuthConfig:
        return cls(
            access_token=token.access_token,
            refresh_token=token.refresh_token or "",
            token_type=token.token_type,
            expires_in=token.expires_in,
            issued_at=token.issued_at,
        )


@dataclass
class AppConfig:
    iam_url: str = ""
    idm_url: str = ""
    cdr_url: str = ""
    tdr_url: str = ""
    client_id: str = ""
    client_secret: str = ""
    timeout_s: float = DEFAULT_TIMEOUT_S
    auth: AuthConfig = field(default_factory=AuthConfig)

    def endpoints(self) -> ServiceEndpoints:
        return ServiceEndpoints(
            iam_url=self.iam_url,
            idm_url=self.idm_url or self.iam_url,
            cdr_url=self.cdr_url,
            tdr_url=self.tdr_url,
        )

    def oauth_client(self) -> OAuthClientConfig:
        return OAuthClientConfig(
            iam_url=self.iam_url,
            client_id=os.getenv(ENV_CLIENT_ID, "").strip() or self.client_id,
            client_secret=os.getenv(ENV_CLIENT_SECRET, "").strip() or self.client_secret,
            timeout_s=self.timeout_s,
        )


def config_path() -> str:
    return f"{user_config_dir(APP_NAME)}/{CONFIG_FILENAME}"


def default_config() -> AppConfig:
    return AppConfig()


def normalize_base_url(raw: str | None, *, warn: bool = False) -> str:
    value = (raw or "").strip()
    if not value:
        return ""
    value = value.rstrip("/")
    lowered = value.lower()
    if lowered.startswith("http://") or lowered.startswith("https://"):
        return value

    host = value.split("/", 1)[0]
    host = host.split(":", 1)[0].lower()
    scheme = "http://" if host in {"localhost", "127.0.0.1"} else "https://"
    normalized = f"{scheme}{value}"
    if warn:
        _warn_missing_scheme(normalized)
    return normalized


def _warn_missing_scheme(normalized: str) -> None:
    global _WARNED_BASE_URL_SCHEME
    if _WARNED_BASE_URL_SCHEME:
        return
    console.warn(f"URL missing scheme, assuming {normalized}")
    _WARNED_BASE_URL_SCHEME = True


def to_toml(cfg: AppConfig) -> dict[str, Any]:
    return _prune_none(
        {
            "iam_url": cfg.iam_url,
            "idm_url": cfg.idm_url,
            "cdr_url": cfg.cdr_url,
            "tdr_url": cfg.tdr_url,
            "client_id": cfg.client_id,
            "client_secret": cfg.client_secret,
            "timeout_s": cfg.timeout_s,
            "auth": {
                "access_token": cfg.auth.access_token,
                "refresh_token": cfg.auth.refresh_token,
                "token_type": cfg.auth.token_type,
                "expires_in": cfg.auth.expires_in,
                "issued_at": cfg.auth.issued_at,
            },
        }
    )


def _prune_none(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _prune_none(v) for k, v in value.items() if v is not None}
    return value


def _as_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def from_toml(data: dict[str, Any]) -> AppConfig:
    auth_raw = data.get("auth") or {}
    auth = AuthConfig()
    if isinstance(auth_raw, dict):
        auth = AuthConfig(
            access_token=str(auth_raw.get("access_token") or ""),
            refresh_token=str(auth_raw.get("refresh_token") or ""),
            token_type=str(auth_raw.get("token_type") or "bearer"),
            expires_in=_as_float(auth_raw.get("expires_in")),
            issued_at=_as_float(auth_raw.get("issued_at")),
        )
    timeout_s = _as_float(data.get("timeout_s"))
    return AppConfig(
        iam_url=normalize_base_url(str(data.get("iam_url") or ""), warn=True),
        idm_url=normalize_base_url(str(data.get("idm_url") or ""), warn=True),
        cdr_url=normalize_base_url(str(data.get("cdr_url") or ""), warn=True),
        tdr_url=normalize_base_url(str(data.get("tdr_url") or ""), warn=True),
        client_id=str(data.get("client_id") or ""),
        client_secret=str(data.get("client_secret") or ""),
        timeout_s=timeout_s if timeout_s and timeout_s > 0 else DEFAULT_TIMEOUT_S,
        auth=auth,
    )


def load_config() -> AppConfig:
    path = config_path()
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
        return from_toml(data)
    except FileNotFoundError:
        return default_config()


def save_config(cfg: AppConfig) -> str:
    path = config_path()
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "wb") as f:
        f.write(tomli_w.dumps(to_toml(cfg)).encode("utf-8"))
    os.chmod(path, 0o600)
    return path
