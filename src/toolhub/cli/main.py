import asyncio
import sys

from rich.console import Console
from rich.table import Table
import typer

from toolhub.cli.client import open_components
from toolhub.cli.commands import servers
from toolhub.exceptions import HubError
from toolhub.hub import AccessibleServer
from toolhub.logging_config import setup_logging

app = typer.Typer()


@app.callback()
def callback():
    """
    Tool hub CLI
    """
    # stdout carries command output only.
    setup_logging(service_name="toolhub-cli", stream=sys.stderr)


app.add_typer(servers.app, name="servers")


async def list_tools_command(user_id: str) -> list[str]:
    async with open_components() as components:
        return await components.hub.list_tools(user_id, components.passphrase)


async def access_command(user_id: str, require_auth: bool) -> list[AccessibleServer]:
    async with open_components() as components:
        return await components.hub.accessible_servers(
            user_id, components.passphrase, require_auth=require_auth
        )


async def oauth_url_command(user_id: str, service: str) -> str:
    async with open_components() as components:
        return await components.oauth.start(user_id, service)


@app.command()
def tools(user_id: str = typer.Argument(..., help="User id")):
    """List tool names the user can reach"""
    console = Console()
    try:
        names = asyncio.run(list_tools_command(user_id))
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e!s}")
        raise typer.Exit(code=1) from None

    if not names:
        console.print("No tools available.")
        return
    for name in names:
        console.print(f"• {name}")


@app.command()
def access(
    user_id: str = typer.Argument(..., help="User id"),
    require_auth: bool = typer.Option(
        False, "--require-auth", help="Only servers the user is authenticated with"
    ),
):
    """Show registered servers and whether the user is authenticated"""
    console = Console()
    entries = asyncio.run(access_command(user_id, require_auth))
    if not entries:
        console.print("No servers.")
        return

    table = Table("Name", "URL", "Auth")
    for entry in entries:
        table.add_row(entry.name, entry.url, "yes" if entry.has_auth else "no")
    console.print(table)


@app.command("oauth-url")
def oauth_url(
    user_id: str = typer.Argument(..., help="User id"),
    service: str = typer.Argument(..., help="OAuth service, e.g. github"),
):
    """Start an OAuth flow and print the authorization URL"""
    console = Console()
    try:
        url = asyncio.run(oauth_url_command(user_id, service))
    except HubError as e:
        console.print(f"[bold red]Error:[/bold red] {e.user_message}")
        raise typer.Exit(code=1) from None
    # Plain echo so the URL is not wrapped.
    typer.echo(url)


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind address"),
    port: int = typer.Option(8000, help="Bind port"),
):
    """Run the HTTP API"""
    import uvicorn

    uvicorn.run("toolhub.api.main:app", host=host, port=port)
