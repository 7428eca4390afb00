from __future__ import annotations

import logging
from typing import NoReturn

import typer

from hsdp_client import HsdpClient, IamTokenRefresher, StaticTokenRefresher, Token
from hsdp_client.auth import TokenRefresher
from hsdp_client.config_types import ClientConfig
from hsdp_client.errors import AuthError, HsdpClientError, HttpError
from hsdp_client.oauth2 import Grant

from . import console
from .config import AppConfig, AuthConfig, save_config

logger = logging.getLogger(__name__)


def make_refresher(cfg: AppConfig, grant: Grant | None = None) -> TokenRefresher:
    token = cfg.auth.to_token()
    if not cfg.iam_url or not cfg.client_id:
        if token is None:
            console.err("Not logged in and no IAM client configured. Run 'hsdp config set' and 'hsdp auth login'.")
            raise typer.Exit(code=1)
        return StaticTokenRefresher(token)

    def _persist(new_token: Token) -> None:
        cfg.auth = AuthConfig.from_token(new_token)
        path = save_config(cfg)
        logger.debug("token saved to %s", path)

    return IamTokenRefresher(cfg.oauth_client(), grant, token=token, on_refresh=_persist)


def make_client(cfg: AppConfig) -> HsdpClient:
    return HsdpClient(
        cfg.endpoints(),
        make_refresher(cfg),
        ClientConfig(timeout_s=cfg.timeout_s),
    )


def fail(action: str, exc: Exception) -> NoReturn:
    if isinstance(exc, HttpError):
        console.err(f"{action} failed with HTTP {exc.status_code}")
        if exc.body:
            console.print(exc.text, markup=False, highlight=False)
        raise typer.Exit(code=2)
    if isinstance(exc, AuthError):
        console.err(f"{action} failed: not authorized ({exc}). Run 'hsdp auth login'.")
        raise typer.Exit(code=2)
    if isinstance(exc, HsdpClientError):
        console.err(f"{action} failed: {exc}")
        raise typer.Exit(code=2)
    console.err(f"{action} failed: {exc}")
    raise typer.Exit(code=1)
