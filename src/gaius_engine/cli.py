"""Typer CLI for Gaius-Engine."""

import asyncio

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(name="gaius", help="Gaius-Engine: loyalty plan subscriptions and entitlements")
console = Console()


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind host"),
    port: int = typer.Option(8080, help="Bind port"),
):
    """Start the Gaius-Engine API server."""
    import uvicorn
    from gaius_engine.app import create_app

    console.print(f"[bold green]Starting Gaius-Engine on {host}:{port}[/bold green]")
    uvicorn.run(create_app(), host=host, port=port)


@app.command()
def plans():
    """List subscription plans."""
    from gaius_engine.plans.catalog import format_limit, list_plans

    table = Table(title="Subscription plans")
    table.add_column("Plan")
    table.add_column("Price (ALGO/month)", justify="right")
    table.add_column("Members", justify="right")
    table.add_column("Programs", justify="right")
    table.add_column("Features")
    for plan in list_plans():
        name = f"{plan.name} [cyan](recommended)[/cyan]" if plan.recommended else plan.name
        table.add_row(
            name,
            str(plan.price),
            format_limit(plan.member_limit),
            format_limit(plan.program_limit),
            ", ".join(plan.features),
        )
    console.print(table)


@app.command("init-db")
def init_db():
    """Create database tables."""
    from gaius_engine.deps import get_db

    async def _run():
        db = get_db()
        await db.init()
        await db.create_all()
        await db.close()

    asyncio.run(_run())
    console.print("[bold green]Database ready[/bold green]")


@app.command()
def status(
    wallet: str = typer.Argument(..., help="Wallet address"),
):
    """Show a wallet's subscription and program entitlement."""
    from gaius_engine.common.logging import setup_logging
    from gaius_engine.common.config import get_settings
    from gaius_engine.deps import close_ledger, get_db, get_entitlement_service
    from gaius_engine.plans.catalog import format_limit
    from gaius_engine.subscriptions.resolver import format_expiry_date

    setup_logging(get_settings().log_level)

    async def _run():
        db = get_db()
        await db.init()
        await db.create_all()
        try:
            return await get_entitlement_service().status(wallet)
        finally:
            await db.close()
            await close_ledger()

    result = asyncio.run(_run())
    sub = result.subscription
    if sub is None:
        console.print("[yellow]No subscription[/yellow]")
    else:
        state = "[green]active[/green]" if sub.is_active else "[red]expired[/red]"
        plan_name = result.plan.name if result.plan else sub.plan
        console.print(
            f"{plan_name} plan {state} until {format_expiry_date(sub.expiry_date)} "
            f"({result.days_remaining} days remaining)"
        )

    decision = result.decision
    if result.program_count is not None:
        console.print(f"  Programs: {result.program_count}")
    if decision.allowed:
        console.print(f"[bold green]ALLOWED[/bold green] ({format_limit(decision.remaining)} remaining)")
    else:
        console.print(f"[bold red]DENIED[/bold red] {decision.reason.value}")
        raise typer.Exit(1)


@app.command()
def reconcile(
    wallet: str = typer.Argument(..., help="Wallet address that paid"),
    tx_id: str = typer.Argument(..., help="Confirmed payment transaction ID"),
    plan: str = typer.Argument(..., help="Plan the payment was for"),
):
    """Record a confirmed payment whose subscription write failed."""
    from gaius_engine.deps import close_ledger, get_db, get_payment_processor

    async def _run():
        db = get_db()
        await db.init()
        await db.create_all()
        try:
            return await get_payment_processor().reconcile(wallet, tx_id, plan)
        finally:
            await db.close()
            await close_ledger()

    result = asyncio.run(_run())
    if result.success:
        console.print(f"[bold green]OK[/bold green] {result.message}")
    else:
        console.print(f"[bold red]{result.reason.value}[/bold red] {result.message}")
        raise typer.Exit(1)


@app.command()
def health(
    url: str = typer.Option("http://localhost:8080", help="Server URL"),
):
    """Check Gaius-Engine server health."""
    import httpx

    try:
        resp = httpx.get(f"{url}/health", timeout=5)
        data = resp.json()
        console.print(f"[bold green]{data['status']}[/bold green] v{data['version']} ({data['network']})")
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
