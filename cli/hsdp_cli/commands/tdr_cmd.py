from __future__ import annotations

import typer
from rich.table import Table

from hsdp_client.errors import HsdpClientError
from hsdp_client.retry import with_retries

from .. import console
from ..config import load_config
from ..formatting import or_dash
from ..http import fail, make_client

app = typer.Typer(help="Tenant Data Repository commands.")


def _data_type_label(data_type: dict | None) -> str:
    if not data_type:
        return "-"
    system = data_type.get("system")
    code = data_type.get("code")
    return f"{system}|{code}" if system else or_dash(code)


@app.command("search")
def search(
        organization: str = typer.Option(..., "--organization", help="Organization id."),
        data_type: str | None = typer.Option(None, "--data-type", help="Data type as system|code."),
        user: str | None = typer.Option(None, "--user", help="User reference as system|value."),
        count: int | None = typer.Option(None, "--count", help="Page size."),
        all_pages: bool = typer.Option(False, "--all", help="Follow next links until the last page."),
        retries: int = typer.Option(1, "--retries", help="Attempts per page on timeouts and connection errors."),
        json_out: bool = typer.Option(False, "--json", help="Print raw JSON."),
):
    cfg = load_config()
    client = make_client(cfg)
    bundles = []
    try:
        tdr = client.tdr
        bundle = with_retries(
            lambda: tdr.search_data_items(organization=organization, data_type=data_type, user=user, count=count),
            attempts=retries,
        )
        bundles.append(bundle)
        while all_pages:
            current = bundles[-1]
            bundle = with_retries(lambda: tdr.next_page(current), attempts=retries)
            if bundle is None:
                break
            bundles.append(bundle)
    except (HsdpClientError, ValueError) as e:
        fail("Data item search", e)
    finally:
        client.close()

    items = [entry.resource for b in bundles for entry in b.entry]
    if json_out:
        console.print_json([i.model_dump(mode="json", by_alias=True, exclude_none=True) for i in items])
        return

    total = bundles[0].total if bundles else None
    console.info(f"total={or_dash(total)} shown={len(items)} pages={len(bundles)}")
    table = Table(title="Data items")
    table.add_column("id", style="bold")
    table.add_column("dataType")
    table.add_column("timestamp")
    table.add_column("creation")
    for item in items:
        table.add_row(
            or_dash(item.id),
            _data_type_label(item.data_type),
            or_dash(item.timestamp),
            or_dash(item.creation_timestamp),
        )
    console.print(table)
