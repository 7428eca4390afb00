from __future__ import annotations

import typer

from .. import console
from ..config import config_path, load_config, normalize_base_url, save_config

app = typer.Typer(help="Show or change service URLs and IAM client settings.")


@app.command("show")
def show():
    cfg = load_config()
    secret_state = "(set)" if cfg.client_secret else "(empty)"
    token_state = "(set)" if cfg.auth.access_token else "(empty)"
    console.print(f"config={config_path()}", markup=False)
    console.print(f"iam_url={cfg.iam_url or '-'}", markup=False)
    console.print(f"idm_url={cfg.idm_url or '-'}", markup=False)
    console.print(f"cdr_url={cfg.cdr_url or '-'}", markup=False)
    console.print(f"tdr_url={cfg.tdr_url or '-'}", markup=False)
    console.print(f"client_id={cfg.client_id or '-'} client_secret={secret_state}", markup=False)
    console.print(f"timeout_s={cfg.timeout_s} token={token_state}", markup=False)


@app.command("set")
def set_values(
        iam_url: str | None = typer.Option(None, "--iam-url", help="IAM (OAuth2) base URL."),
        idm_url: str | None = typer.Option(None, "--idm-url", help="IDM (identity) base URL; defaults to the IAM URL."),
        cdr_url: str | None = typer.Option(None, "--cdr-url", help="CDR FHIR base URL, including the tenant path."),
        tdr_url: str | None = typer.Option(None, "--tdr-url", help="TDR base URL."),
        client_id: str | None = typer.Option(None, "--client-id", help="OAuth2 client id."),
        client_secret: str | None = typer.Option(None, "--client-secret", help="OAuth2 client secret."),
        timeout_s: float | None = typer.Option(None, "--timeout", help="Default call timeout in seconds."),
):
    cfg = load_config()
    if iam_url is not None:
        cfg.iam_url = normalize_base_url(iam_url, warn=True)
    if idm_url is not None:
        cfg.idm_url = normalize_base_url(idm_url, warn=True)
    if cdr_url is not None:
        cfg.cdr_url = normalize_base_url(cdr_url, warn=True)
    if tdr_url is not None:
        cfg.tdr_url = normalize_base_url(tdr_url, warn=True)
    if client_id is not None:
        cfg.client_id = client_id.strip()
    if client_secret is not None:
        cfg.client_secret = client_secret
    if timeout_s is not None:
        if timeout_s <= 0:
            console.err("--timeout must be positive.")
            raise typer.Exit(code=1)
        cfg.timeout_s = timeout_s

    save_config(cfg)
    console.ok("Config updated.")
