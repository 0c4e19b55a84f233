# kuchbhi_mcp/cli/waitlist_cli.py
from typing import Annotated

import typer

from .utils_cli import make_api_request

app = typer.Typer(
    name="waitlist",
    help="Manage the waitlist.",
    no_args_is_help=True
)


@app.command("add")
def add_signup(
    email: Annotated[str, typer.Argument(help="Email address to add to the waitlist.")]
):
    """Add an email address to the waitlist."""
    make_api_request("POST", "/api/waitlist", json_payload={"email": email})


@app.command("count")
def count_signups():
    """Show how many addresses are on the waitlist."""
    data = make_api_request("GET", "/api/waitlist")
    typer.secho(f"Waitlist signups: {data.get('count', 0)}", fg=typer.colors.GREEN)
