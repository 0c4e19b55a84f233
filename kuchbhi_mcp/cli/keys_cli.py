# kuchbhi_mcp/cli/keys_cli.py
import typer

from ..utils.security import generate_fernet_key

app = typer.Typer(
    name="keys",
    help="Generate encryption keys for the server configuration.",
    no_args_is_help=True
)


@app.command("generate")
def generate_key():
    """Print a new Fernet key for COOKIE_ENCRYPTION_KEY or GRANT_ENCRYPTION_KEY."""
    typer.echo(generate_fernet_key())
