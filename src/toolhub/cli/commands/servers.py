import asyncio

from rich.console import Console
from rich.table import Table
import typer

from toolhub.cli.client import open_components
from toolhub.exceptions import HubError

app = typer.Typer(help="Manage the shared server registry")


async def list_servers_command() -> dict[str, str]:
    async with open_components() as components:
        return await components.hub.list_servers()


async def add_server_command(
    name: str, url: str, user_id: str | None = None, api_key: str | None = None
) -> None:
    async with open_components() as components:
        await components.hub.add_server(name, url)
        if api_key:
            await components.hub.add_user_api_key(user_id, name, api_key, components.passphrase)


async def remove_server_command(name: str) -> None:
    async with open_components() as components:
        await components.hub.remove_server(name)


@app.command("list")
def list_servers():
    """List registered servers"""
    console = Console()
    servers = asyncio.run(list_servers_command())
    if not servers:
        console.print("No servers configured.")
        return

    table = Table("Name", "URL")
    for name, url in servers.items():
        table.add_row(name, url)
    console.print(table)


@app.command()
def add(
    name: str = typer.Argument(..., help="Server name (stored lowercase)"),
    url: str = typer.Argument(..., help="MCP endpoint URL (stored lowercase)"),
    user_id: str | None = typer.Option(None, "--user", "-u", help="User owning --api-key"),
    api_key: str | None = typer.Option(None, "--api-key", help="API key to store for --user"),
):
    """Register or update a server"""
    console = Console()
    if api_key and not user_id:
        console.print("[bold red]Error:[/bold red] --api-key requires --user")
        raise typer.Exit(code=1)
    try:
        asyncio.run(add_server_command(name, url, user_id, api_key))
    except HubError as e:
        console.print(f"[bold red]Error:[/bold red] {e.user_message}")
        raise typer.Exit(code=1) from None
    console.print(f"[bold green]✓ Server {name.lower()} saved[/bold green]")


@app.command()
def remove(name: str = typer.Argument(..., help="Server name")):
    """Remove a server"""
    console = Console()
    try:
        asyncio.run(remove_server_command(name))
    except HubError as e:
        console.print(f"[bold red]Error:[/bold red] {e.user_message}")
        raise typer.Exit(code=1) from None
    console.print(f"[bold green]✓ Server {name.lower()} removed[/bold green]")
