from __future__ import annotations

import json

import typer

from hsdp_client.cdr import FormatParameter
from hsdp_client.errors import HsdpClientError

from .. import console
from ..config import load_config
from ..http import fail, make_client

app = typer.Typer(help="Clinical Data Repository (FHIR) commands.")


def _parse_query(values: list[str]) -> list[tuple[str, str]]:
    pairs: list[tuple[str, str]] = []
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key:
            console.err(f"Invalid query parameter '{item}', expected key=value.")
            raise typer.Exit(code=1)
        pairs.append((key, value))
    return pairs


def _print_body(body: str, fmt: FormatParameter) -> None:
    if fmt is FormatParameter.JSON:
        console.print_json(json.loads(body))
    else:
        console.print(body, markup=False, highlight=False)


@app.command("search")
def search(
        resource_type: str = typer.Argument(..., help="FHIR resource type, e.g. Patient."),
        query: list[str] = typer.Option([], "-q", "--query", help="Search parameter as key=value (repeatable)."),
        fmt: FormatParameter = typer.Option(FormatParameter.JSON, "--format", help="Response format."),
):
    params = _parse_query(query)
    cfg = load_config()
    client = make_client(cfg)
    try:
        result = client.cdr.search(resource_type, params, format=fmt)
    except (HsdpClientError, ValueError) as e:
        fail("Resource search", e)
    finally:
        client.close()

    _print_body(result.body, fmt)


@app.command("read")
def read(
        resource_type: str = typer.Argument(..., help="FHIR resource type, e.g. Patient."),
        resource_id: str = typer.Argument(..., help="Resource id."),
        fmt: FormatParameter = typer.Option(FormatParameter.JSON, "--format", help="Response format."),
):
    cfg = load_config()
    client = make_client(cfg)
    try:
        result = client.cdr.read(resource_type, resource_id, format=fmt)
    except (HsdpClientError, ValueError) as e:
        fail("Resource read", e)
    finally:
        client.close()

    _print_body(result.body, fmt)
