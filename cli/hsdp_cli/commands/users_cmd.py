from __future__ import annotations

import typer
from rich.table import Table

from hsdp_client.errors import HsdpClientError

from .. import console
from ..config import load_config
from ..formatting import or_dash
from ..http import fail, make_client

app = typer.Typer(help="IAM user commands.")


@app.command("search")
def search(
        login_id: str = typer.Argument(..., help="Login id, email address or user UUID."),
        profile_type: str = typer.Option("all", "--profile-type", help="Profile detail level (all, membership, ...)."),
        json_out: bool = typer.Option(False, "--json", help="Print raw JSON."),
):
    cfg = load_config()
    client = make_client(cfg)
    try:
        users = client.users.search_user(login_id, profile_type=profile_type)
    except (HsdpClientError, ValueError) as e:
        fail("User search", e)
    finally:
        client.close()

    if json_out:
        console.print_json([u.model_dump(mode="json", by_alias=True, exclude_none=True) for u in users])
        return

    if not users:
        console.info(f"No user found for '{login_id}'.")
        return

    table = Table(title="Users")
    table.add_column("id", style="bold")
    table.add_column("loginId")
    table.add_column("email")
    table.add_column("organization")
    table.add_column("organizations")
    table.add_column("disabled")

    for u in users:
        disabled = u.account_status.disabled if u.account_status else None
        table.add_row(
            str(u.id),
            u.login_id,
            or_dash(u.email_address),
            or_dash(u.managing_organization),
            or_dash([m.organization_name or m.organization_id for m in u.memberships]),
            or_dash(disabled),
        )

    console.print(table)
