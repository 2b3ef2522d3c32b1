"""Command-line interface using Typer."""

from pathlib import Path
from typing import Optional
from uuid import UUID

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from animagenius import __version__
from animagenius.domain.enums import SubscriptionTier
from animagenius.domain.tiers import parse_tier
from animagenius.logging import setup_logging

# Setup logging
setup_logging()

app = typer.Typer(
    name="animagenius",
    help="AnimaGenius - document to video pipeline CLI",
    add_completion=False,
)

# Subcommand groups
users_app = typer.Typer(help="User management commands")
app.add_typer(users_app, name="users")

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"AnimaGenius v{__version__}")
        raise typer.Exit()


def _parse_tier(value: str) -> SubscriptionTier:
    try:
        return parse_tier(value)
    except ValueError as e:
        console.print(f"[bold red]{e}[/bold red]")
        raise typer.Exit(code=1)


def _limit(value: int) -> str:
    return "unlimited" if value == -1 else str(value)


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """AnimaGenius - turn documents into AI-generated videos."""
    pass


@app.command()
def tiers() -> None:
    """Show subscription tiers and their limits."""
    from animagenius.domain.tiers import TierPolicy

    policy = TierPolicy()
    table = Table(title="Subscription Tiers")
    table.add_column("Tier", style="cyan")
    table.add_column("Price", justify="right")
    table.add_column("Videos/month", justify="right")
    table.add_column("Max duration (s)", justify="right")
    table.add_column("File limit (MB)", justify="right")
    table.add_column("Watermark")
    table.add_column("Priority", justify="right")
    table.add_column("API")

    for tier in policy.table:
        limits = policy.get_limits(tier)
        table.add_row(
            tier.value,
            f"${limits.price:.0f}",
            _limit(limits.videos_per_month),
            _limit(limits.max_duration),
            str(limits.file_limit_mb),
            "Yes" if limits.watermark else "No",
            str(limits.priority),
            "Yes" if limits.api_access else "No",
        )

    console.print(table)


@app.command()
def quote(
    from_tier: str = typer.Argument(..., help="Current tier"),
    to_tier: str = typer.Argument(..., help="Target tier"),
    days: float = typer.Option(30, "--days", "-d", min=0, help="Days left in the period"),
) -> None:
    """Quote the prorated cost of switching tiers."""
    from animagenius.domain.tiers import TierPolicy

    policy = TierPolicy()
    source, target = _parse_tier(from_tier), _parse_tier(to_tier)
    cost = policy.prorated_upgrade_cost(source, target, days)
    console.print(
        f"[cyan]{source.value}[/cyan] -> [cyan]{target.value}[/cyan] "
        f"with {days:g} days left: [bold]${cost:.2f}[/bold]"
    )


@app.command()
def extract(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="File to extract"),
    mime_type: str = typer.Option("application/octet-stream", "--mime", "-m", help="MIME type"),
) -> None:
    """Run the ingestion router on a local file."""
    from animagenius.ingestion import FileIngestionRouter

    result = FileIngestionRouter().process(path.read_bytes(), path.name, mime_type)
    if not result.success:
        console.print(f"[bold red]✗ {result.error_code}: {result.error}[/bold red]")
        raise typer.Exit(code=1)

    details = "\n".join(f"[cyan]{k}:[/cyan] {v}" for k, v in result.metadata.items())
    if result.processing_required:
        details += f"\n[yellow]Needs:[/yellow] {result.processing_required.value}"
    console.print(Panel.fit(details, title=path.name, border_style="blue"))

    insights = result.extracted_data.get("insights")
    if insights:
        for sheet, columns in insights["column_types"].items():
            table = Table(title=f"Sheet: {sheet}")
            table.add_column("Column", style="cyan")
            table.add_column("Type")
            for column, column_type in columns.items():
                table.add_row(column, column_type)
            console.print(table)

    preview = (result.content or "")[:500]
    console.print(Panel(preview or "[dim](no text)[/dim]", title="Content preview"))


@app.command("init-db")
def init_db(
    create_tables: bool = typer.Option(
        True, "--create-tables/--check-only", help="Create missing tables"
    ),
) -> None:
    """Check the database connection and create tables."""
    from animagenius.db.session import init_db as _init_db

    _init_db(create_tables=create_tables)
    console.print("[bold green]✓ Database ready[/bold green]")


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind host"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on code changes"),
) -> None:
    """Run the API server."""
    import uvicorn

    from animagenius.config import settings

    uvicorn.run(
        "animagenius.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload or settings.api_reload,
    )


@app.command()
def health() -> None:
    """Check the health of the running API."""
    import httpx

    from animagenius.config import settings

    url = f"http://{settings.api_host}:{settings.api_port}/health/ready"

    try:
        response = httpx.get(url, timeout=10)
        data = response.json()
    except httpx.RequestError as e:
        console.print(f"[bold red]Cannot connect to API: {e}[/bold red]")
        console.print("[dim]Is the API server running?[/dim]")
        raise typer.Exit(code=1)

    table = Table(title="Service Health")
    table.add_column("Component", style="cyan")
    table.add_column("Status")
    table.add_row("Database", "✓" if data.get("database") else "✗")
    table.add_row("AI provider", "✓" if data.get("ai") else "✗")
    table.add_row("Billing provider", "✓" if data.get("billing") else "✗")
    console.print(table)

    if not data.get("ready"):
        console.print("[bold yellow]Some services unhealthy[/bold yellow]")
        raise typer.Exit(code=1)
    console.print("[bold green]All services healthy![/bold green]")


# =============================================================================
# USERS COMMANDS
# =============================================================================


@users_app.command("create")
def users_create(
    email: str = typer.Option(..., "--email", "-e", help="Email address"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Display name"),
    tier: str = typer.Option("FREE", "--tier", "-t", help="Subscription tier"),
    admin: bool = typer.Option(False, "--admin", help="Grant admin access"),
    super_admin: bool = typer.Option(False, "--super-admin", help="Grant super admin access"),
) -> None:
    """Create a user (send its ID as the X-User-Id header)."""
    from animagenius.services.store import PipelineStore

    user = PipelineStore().create_user(
        email=email,
        name=name,
        tier=_parse_tier(tier),
        is_admin=admin or super_admin,
        is_super_admin=super_admin,
    )
    console.print("[bold green]User created![/bold green]")
    console.print(f"[cyan]ID:[/cyan] {user.id}")
    console.print(f"[cyan]Tier:[/cyan] {user.subscription_tier}")


@users_app.command("list")
def users_list(
    search: Optional[str] = typer.Option(None, "--search", "-s", help="Email or name filter"),
    limit: int = typer.Option(50, "--limit", "-l", min=1, max=500),
) -> None:
    """List users."""
    from animagenius.services.store import PipelineStore

    users, total = PipelineStore().list_users(search=search, limit=limit)
    if not users:
        console.print("[dim]No users found. Create one with 'animagenius users create'[/dim]")
        return

    table = Table(title=f"Users ({total})")
    table.add_column("ID", style="dim")
    table.add_column("Email", style="cyan")
    table.add_column("Tier")
    table.add_column("Admin")
    table.add_column("Created")
    for user in users:
        table.add_row(
            str(user.id),
            user.email,
            user.subscription_tier,
            "super" if user.is_super_admin else ("yes" if user.is_admin else "-"),
            user.created_at.strftime("%Y-%m-%d") if user.created_at else "-",
        )
    console.print(table)


@users_app.command("usage")
def users_usage(user_id: str = typer.Argument(..., help="User ID (UUID)")) -> None:
    """Show a user's usage for the current month."""
    from animagenius.services.store import PipelineStore
    from animagenius.services.usage import UsageMeter

    try:
        user_uuid = UUID(user_id)
    except ValueError:
        console.print(f"[bold red]Invalid user ID: {user_id}[/bold red]")
        raise typer.Exit(code=1)

    store = PipelineStore()
    user = store.get_user(user_uuid)
    if user is None:
        console.print(f"[bold red]User not found: {user_id}[/bold red]")
        raise typer.Exit(code=1)

    summary = UsageMeter(store).usage_summary(user.id, SubscriptionTier(user.subscription_tier))
    console.print(
        Panel.fit(
            "\n".join(f"[cyan]{k}:[/cyan] {v}" for k, v in summary.items()),
            title=user.email,
            border_style="blue",
        )
    )


if __name__ == "__main__":
    app()
