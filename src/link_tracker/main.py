import asyncio
import logging
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from .api import Transport
from .core.config import settings
from .dashboard import Dashboard
from .services.table_controller import PaginatedTable, ViewStatus

app = typer.Typer(add_completion=False, help=f"{settings.APP_NAME} operator dashboard")
console = Console()
err_console = Console(stderr=True)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def build_dashboard(ctx: typer.Context, page_size: int | None = None) -> Dashboard:
    transport = Transport(base_url=ctx.obj.get("api_url"))
    return Dashboard(transport=transport, page_size=page_size)


def run_with(dashboard: Dashboard, coro_fn):
    """Run ``coro_fn(dashboard)`` on a fresh loop and release the dashboard."""
    try:
        return asyncio.run(coro_fn(dashboard))
    finally:
        dashboard.close()


def check_status(table: PaginatedTable, what: str) -> None:
    status = table.status
    if status is ViewStatus.ERROR:
        err_console.print(f"[red]Error loading {what} data: {escape(table.state.error.reason)}[/red]")
        raise typer.Exit(code=1)
    if status is ViewStatus.EMPTY:
        console.print(f"[yellow]No {what} found.[/yellow]")
        raise typer.Exit()


def page_footer(table: PaginatedTable) -> str:
    return f"Page {table.page} · {len(table.rows)} of {table.total} · {table.page_size} per page"


@app.callback()
def main(
    ctx: typer.Context,
    api_url: Optional[str] = typer.Option(None, "--api-url", help="API base URL (defaults to LINK_TRACKER_API_URL)"),
    log_level: str = typer.Option(settings.LOG_LEVEL, "--log-level", help="Logging level"),
):
    """Browse links and clicks, inspect link statistics and create links."""
    configure_logging(log_level)
    ctx.obj = {"api_url": api_url}


@app.command()
def links(
    ctx: typer.Context,
    page: int = typer.Option(1, min=1, help="Page to show"),
    page_size: Optional[int] = typer.Option(None, "--page-size", min=1, help="Rows per page"),
):
    """Link management table."""
    dashboard = build_dashboard(ctx, page_size)

    async def load(dashboard: Dashboard):
        dashboard.links.set_page(page)
        await dashboard.links.load()

    run_with(dashboard, load)
    check_status(dashboard.links, "links")

    table = Table(title="Link Management", caption=page_footer(dashboard.links))
    table.add_column("ID", justify="right", no_wrap=True)
    table.add_column("Code", no_wrap=True)
    table.add_column("White URL", overflow="ellipsis")
    table.add_column("Black URL", overflow="ellipsis")
    table.add_column("Created", no_wrap=True)

    for link in dashboard.links.rows:
        table.add_row(
            str(link.id),
            link.code,
            escape(link.white_url),
            escape(link.black_url),
            link.created_at.strftime("%Y-%m-%d %H:%M:%S"),
        )

    console.print(table)


@app.command()
def clicks(
    ctx: typer.Context,
    page: int = typer.Option(1, min=1, help="Page to show"),
    page_size: Optional[int] = typer.Option(None, "--page-size", min=1, help="Rows per page"),
    country: Optional[str] = typer.Option(None, "--country", help="Only clicks from this country code"),
    is_bot: Optional[bool] = typer.Option(None, "--bot/--human", help="Only bot or only human traffic"),
):
    """Clicks analytics table."""
    dashboard = build_dashboard(ctx, page_size)

    async def load(dashboard: Dashboard):
        dashboard.clicks.set_filter("country", country)
        dashboard.clicks.set_filter("is_bot", is_bot)
        dashboard.clicks.set_page(page)
        await dashboard.clicks.load()

    run_with(dashboard, load)

    countries = dashboard.clicks.available_filters.get("countries", [])
    if countries:
        console.print("Countries: " + ", ".join(c or "Unknown" for c in countries))

    check_status(dashboard.clicks, "clicks")

    table = Table(title="Clicks Analytics", caption=page_footer(dashboard.clicks))
    table.add_column("ID", justify="right", no_wrap=True)
    table.add_column("IP")
    table.add_column("Country")
    table.add_column("Bot")
    table.add_column("Link ID", justify="right")
    table.add_column("User Agent", overflow="ellipsis", max_width=40)
    table.add_column("Date", no_wrap=True)

    for click in dashboard.clicks.rows:
        table.add_row(
            str(click.id),
            click.ip,
            f"[blue]{click.country or 'Unknown'}[/blue]",
            "[red]Yes[/red]" if click.is_bot else "[green]No[/green]",
            str(click.link_id),
            escape(click.user_agent),
            click.created_at.strftime("%Y-%m-%d %H:%M:%S"),
        )

    console.print(table)


@app.command()
def stats(
    ctx: typer.Context,
    link_id: int = typer.Argument(..., help="Link id"),
):
    """Statistics of one link."""
    dashboard = build_dashboard(ctx)

    async def load(dashboard: Dashboard):
        dashboard.link.select(link_id)
        dashboard.link_stats.open(link_id)
        await asyncio.gather(dashboard.link.load(), dashboard.link_stats.load())

    run_with(dashboard, load)

    detail = dashboard.link_stats
    if detail.is_error:
        err_console.print(f"[red]Error loading statistics: {escape(detail.state.error.reason)}[/red]")
        raise typer.Exit(code=1)

    link_stats = detail.data
    if link_stats is None:
        console.print("No statistics available")
        raise typer.Exit()

    link = dashboard.link.data
    label = f"{link.code}, link {link_id}" if link is not None else f"link {link_id}"
    console.print(f"[bold]Link Statistics[/bold] ({label})")
    console.print(f"Total Clicks: [blue]{link_stats.total_clicks}[/blue]")
    console.print(f"Bot Clicks:   [red]{link_stats.bot_clicks}[/red]")
    console.print(f"Human Clicks: [green]{link_stats.human_clicks}[/green]")

    table = Table(title="Clicks by Country")
    table.add_column("Country")
    table.add_column("Clicks", justify="right")
    for entry in link_stats.country_stats:
        table.add_row(entry.country or "Unknown", str(entry.count))

    console.print(table)


@app.command()
def create(
    ctx: typer.Context,
    white_url: str = typer.Argument(..., help="White URL (main traffic)"),
    black_url: str = typer.Argument(..., help="Black URL (bot traffic)"),
):
    """Create a new tracking link."""
    dashboard = build_dashboard(ctx)

    async def submit(dashboard: Dashboard):
        return await dashboard.create_link.submit({"white_url": white_url, "black_url": black_url})

    run_with(dashboard, submit)
    mutation = dashboard.create_link

    if mutation.is_error:
        for field, message in mutation.field_errors.items():
            err_console.print(f"[red]{field}: {message}[/red]")
        if not mutation.field_errors:
            err_console.print(f"[red]Failed to create link: {escape(mutation.error.reason)}[/red]")
        raise typer.Exit(code=1)

    link = mutation.data
    console.print("[green]✔ Link created successfully![/green]")
    console.print(f"Your new tracking code is: [bold]{link.code}[/bold]")
    console.print(f"White URL: {link.white_url}")
    console.print(f"Black URL: {link.black_url}")


if __name__ == "__main__":
    app()
