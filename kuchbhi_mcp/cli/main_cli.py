# kuchbhi_mcp/cli/main_cli.py
import typer
from . import clients_cli, keys_cli, waitlist_cli

app = typer.Typer(
    name="kuchbhi",
    help="KuchBhi Google Workspace MCP Command Line Interface.",
    no_args_is_help=True
)

app.add_typer(keys_cli.app, name="keys")
app.add_typer(clients_cli.app, name="clients")
app.add_typer(waitlist_cli.app, name="waitlist")


@app.callback()
def main_callback():
    """
    KuchBhi MCP server CLI. Commands other than 'keys' talk to a running
    server at KUCHBHI_CLI_API_BASE_URL.
    """
    pass


def cli_entry_point():
    """Entry point function for console script registration in pyproject.toml"""
    app()


if __name__ == "__main__":
    cli_entry_point()
