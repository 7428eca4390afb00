from __future__ import annotations

import typer

from hsdp_client import IamTokenRefresher, PasswordGrant
from hsdp_client.errors import AuthError

from .. import console
from ..auth_state import resolve_auth_context
from ..config import AuthConfig, load_config, save_config
from ..formatting import format_remaining
from ..http import fail

app = typer.Typer(help="Log in to IAM and manage the stored token.")

_STATE_MESSAGES = {
    "no_iam_url": "IAM URL is not configured. Run 'hsdp config set --iam-url ...'.",
    "no_token": "Not logged in.",
    "expired": "Token expired and cannot be refreshed. Run 'hsdp auth login'.",
    "refreshable": "Token expired; it will be refreshed on the next call.",
}


def _require_client(cfg) -> None:
    if not cfg.iam_url or not cfg.client_id:
        console.err("IAM URL and client id are required. Run 'hsdp config set'.")
        raise typer.Exit(code=1)


@app.command("login")
def login(
        username: str = typer.Option(..., "--username", prompt=True, help="IAM login id."),
        password: str = typer.Option(..., "--password", prompt=True, hide_input=True, help="IAM password."),
):
    cfg = load_config()
    _require_client(cfg)
    refresher = IamTokenRefresher(cfg.oauth_client(), PasswordGrant(username, password))
    try:
        token = refresher.login()
    except AuthError as e:
        fail("Login", e)
    finally:
        refresher.close()

    cfg.auth = AuthConfig.from_token(token)
    save_path = save_config(cfg)
    console.ok(f"Login successful, token valid for {format_remaining(token.expires_in)}. Saved to {save_path}.")


@app.command("logout", help="Revoke the stored token and remove it from the config.")
def logout(
        revoke: bool = typer.Option(True, "--revoke/--no-revoke", help="Revoke the token at IAM as well."),
):
    cfg = load_config()
    token = cfg.auth.to_token()
    if token is not None and revoke and cfg.iam_url and cfg.client_id:
        refresher = IamTokenRefresher(cfg.oauth_client(), token=token)
        try:
            refresher.revoke()
        except AuthError as e:
            console.warn(f"Token revoke failed: {e}")
        finally:
            refresher.close()

    cfg.auth = AuthConfig()
    save_path = save_config(cfg)
    console.ok(f"Token cleared from {save_path}.")


@app.command("status")
def status():
    cfg = load_config()
    ctx = resolve_auth_context(cfg)
    if ctx.state == "authed":
        console.ok(f"Logged in to {cfg.iam_url}, token expires in {format_remaining(ctx.expires_in_s)}.")
        return
    message = _STATE_MESSAGES.get(ctx.state, ctx.state)
    if ctx.state == "refreshable":
        console.info(message)
        return
    console.warn(message)
    raise typer.Exit(code=2)
