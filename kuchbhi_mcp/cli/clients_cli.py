# kuchbhi_mcp/cli/clients_cli.py
from typing import Annotated, List, Optional

import typer

from .utils_cli import make_api_request

app = typer.Typer(
    name="clients",
    help="Register MCP clients with the authorization server.",
    no_args_is_help=True
)


@app.command("register")
def register_client(
    redirect_uri: Annotated[
        List[str],
        typer.Option("--redirect-uri", help="Redirect URI of the client. Repeat for several.")
    ],
    name: Annotated[
        Optional[str],
        typer.Option("--name", help="Display name shown on the consent screen.")
    ] = None,
    confidential: Annotated[
        bool,
        typer.Option("--confidential", help="Issue a client secret (client_secret_post).")
    ] = False,
):
    """Register a client through dynamic client registration."""
    payload = {
        "redirect_uris": redirect_uri,
        "token_endpoint_auth_method": "client_secret_post" if confidential else "none",
    }
    if name:
        payload["client_name"] = name
    data = make_api_request("POST", "/register", json_payload=payload, expected_status=201)
    if confidential and data.get("client_secret"):
        typer.secho("Store the client secret now; it cannot be shown again.", fg=typer.colors.YELLOW)
