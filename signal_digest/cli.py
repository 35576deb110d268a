"""
Command-line interface for signal-digest.

Provides commands to run the API, initialize the database, trigger
dispatches by hand, and run diagnostic checks.

Usage:
    signal-digest serve             # Run the API server
    signal-digest init-db           # Initialize database
    signal-digest dispatch EMAIL    # Produce one briefing now
    signal-digest tick              # Run one scheduler tick
    signal-digest search QUERY      # Discover sources
    signal-digest resolve URL       # Classify a URL
    signal-digest health            # Check service health
"""

import asyncio
import json
import sys

import click

from signal_digest.config.settings import get_settings
from signal_digest.observability.logging import setup_logging
from signal_digest.observability.metrics import get_metrics


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """Signal Digest - feed aggregation and daily briefings."""
    if debug:
        import os
        os.environ["LOG_LEVEL"] = "DEBUG"
        get_settings.cache_clear()

    setup_logging()


@main.command()
@click.option("--host", default=None, help="API server host")
@click.option("--port", default=None, type=int, help="API server port")
@click.option("--reload", is_flag=True, help="Enable auto-reload (dev only)")
@click.option("--metrics-port", default=None, type=int, help="Metrics server port")
def serve(host: str | None, port: int | None, reload: bool, metrics_port: int | None) -> None:
    """Start the API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port
    metrics_port = metrics_port or settings.metrics_port

    # Start metrics server on separate port
    get_metrics().start_server(port=metrics_port)

    click.echo(f"Starting API server on {host}:{port}")
    click.echo(f"Metrics available on http://localhost:{metrics_port}/metrics")
    click.echo(f"API docs available on http://localhost:{port}/docs")

    uvicorn.run(
        "signal_digest.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )


@main.command("init-db")
def init_db() -> None:
    """Initialize the database schema."""
    from signal_digest.accounting.repository import AccountingRepository
    from signal_digest.storage.database import Database
    from signal_digest.subscribers.repository import SubscriberRepository

    async def run():
        db = Database()
        await db.connect()
        try:
            await SubscriberRepository(db).create_tables()
            await AccountingRepository(db).create_tables()
        finally:
            await db.close()

        click.echo(f"Database initialized ({db.target})")

    asyncio.run(run())


@main.command()
@click.argument("email")
@click.option("--force", is_flag=True, help="Use the wider lookback window")
@click.option("--dry-run", is_flag=True, help="Synthesize without delivering or recording")
def dispatch(email: str, force: bool, dry_run: bool) -> None:
    """Produce one subscriber's briefing and wait for it to finish."""
    from signal_digest.accounting.repository import AccountingRepository
    from signal_digest.dispatch.orchestrator import DispatchOrchestrator
    from signal_digest.dispatch.schemas import DispatchRequest
    from signal_digest.storage.database import Database
    from signal_digest.subscribers.repository import SubscriberRepository

    async def run() -> int:
        db = Database()
        await db.connect()
        try:
            orchestrator = DispatchOrchestrator(
                subscribers=SubscriberRepository(db),
                accounting=AccountingRepository(db),
            )
            request = DispatchRequest(email=email, force=force, dry_run=dry_run)

            ack, subscriber = await orchestrator.admit(request)
            if subscriber is None:
                click.echo(click.style(f"Skipped: {ack.detail}", fg="yellow"))
                return 0

            outcome = await orchestrator.run(request, subscriber)
        finally:
            await db.close()

        color = "red" if outcome.status == "failed" else "green"
        click.echo(click.style(f"{outcome.status}: {outcome.item_count} items", fg=color))
        if outcome.error:
            click.echo(f"  error: {outcome.error}")
        if outcome.briefing is not None and dry_run:
            click.echo(f"\n{outcome.briefing.subject}\n")
            click.echo(outcome.briefing.narrative)
        return 1 if outcome.status == "failed" else 0

    sys.exit(asyncio.run(run()))


@main.command()
@click.option("--force", is_flag=True, help="Ignore delivery times")
@click.option("--email", default=None, help="Only consider this subscriber")
def tick(force: bool, email: str | None) -> None:
    """Run one scheduler tick and wait for the dispatched briefings."""
    from signal_digest.accounting.repository import AccountingRepository
    from signal_digest.dispatch.orchestrator import DispatchOrchestrator
    from signal_digest.dispatch.scheduler import DeliveryScheduler
    from signal_digest.dispatch.tasks import TaskSupervisor
    from signal_digest.storage.database import Database
    from signal_digest.subscribers.repository import SubscriberRepository

    async def run():
        db = Database()
        await db.connect()
        supervisor = TaskSupervisor()
        try:
            subscribers = SubscriberRepository(db)
            orchestrator = DispatchOrchestrator(
                subscribers=subscribers,
                accounting=AccountingRepository(db),
                supervisor=supervisor,
            )
            try:
                results = await DeliveryScheduler(subscribers, orchestrator).tick(
                    force=force,
                    email=email,
                )
            finally:
                # Detached runs still hold pool connections
                await supervisor.join()
        finally:
            await db.close()

        for result in results:
            line = f"  {result.email}: {result.status}"
            if result.detail:
                line += f" ({result.detail})"
            click.echo(line)
        click.echo(f"{sum(1 for r in results if r.status == 'dispatched')} dispatched")

    asyncio.run(run())


@main.command()
@click.argument("query")
@click.option("--type", "type_filter", default=None, help="Source type filter")
def search(query: str, type_filter: str | None) -> None:
    """Discover sources matching a query."""
    from signal_digest.discovery.engine import DiscoveryEngine
    from signal_digest.errors import InvalidSearchType

    async def run():
        return await DiscoveryEngine().search(query, type_filter=type_filter)

    try:
        results = asyncio.run(run())
    except InvalidSearchType as e:
        raise click.BadParameter(str(e), param_hint="--type")

    if not results:
        click.echo("No results")
        return

    for result in results:
        click.echo(f"[{result.type.value}] {result.title}")
        click.echo(f"    {result.url}")


@main.command()
@click.argument("url")
def resolve(url: str) -> None:
    """Classify a URL and print its canonical feed endpoint."""
    from signal_digest.ingestion.resolver import resolve as resolve_url

    detected = resolve_url(url)
    if detected is None:
        click.echo(click.style("Not a usable URL", fg="red"))
        sys.exit(1)

    click.echo(json.dumps(detected.model_dump(mode="json"), indent=2))


@main.command()
def health() -> None:
    """Check health of all dependencies."""
    import structlog
    logger = structlog.get_logger()

    async def check():
        results: dict[str, bool] = {}

        # Check PostgreSQL
        try:
            from signal_digest.storage.database import Database
            db = Database()
            await db.connect()
            results["postgres"] = await db.health_check()
            await db.close()
        except Exception as e:
            results["postgres"] = False
            logger.error("Postgres health check failed", error=str(e))

        settings = get_settings()
        results["delivery_configured"] = settings.delivery_configured
        results["api_keys_configured"] = bool(settings.api_keys)
        results["cron_secret_configured"] = bool(settings.cron_secret)

        click.echo("\nHealth Check Results:")
        click.echo("-" * 40)

        all_healthy = True
        for name, status in results.items():
            icon = "✓" if status else "✗"
            color = "green" if status else "red"
            click.echo(click.style(f"  {icon} {name}: {status}", fg=color))
            if name == "postgres" and not status:
                all_healthy = False

        click.echo("-" * 40)

        if all_healthy:
            click.echo(click.style("All core services healthy!", fg="green"))
            sys.exit(0)
        else:
            click.echo(click.style("Some services unhealthy!", fg="red"))
            sys.exit(1)

    asyncio.run(check())


if __name__ == "__main__":
    main()
