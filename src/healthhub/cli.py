"""healthhub CLI entry point."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import httpx
import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

app = typer.Typer(
    name="healthhub",
    help="healthhub — service registration and health polling",
    no_args_is_help=True,
)
console = Console()

DEFAULT_HUB = "http://localhost:8080"

HEALTH_STYLES = {
    "healthy": "green",
    "degraded": "yellow",
    "unhealthy": "red",
    "dead": "red bold",
}


def _parse_attributes(pairs: list[str] | None) -> dict[str, str]:
    attributes: dict[str, str] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected key=value, got {pair!r}", param_hint="--attr")
        attributes[key] = value
    return attributes


@app.command()
def serve(
    host: str | None = typer.Option(None, help="Bind host (default: server.host from config)"),
    port: int | None = typer.Option(None, help="Bind port (default: server.port from config)"),
    log_level: str = typer.Option("info", help="Log level"),
) -> None:
    """Start the hub: registration/metrics API plus the background poller."""
    import uvicorn

    from healthhub.config.loader import load_config_or_default

    if host is None or port is None:
        server = load_config_or_default().server
        host = host or server.host
        port = port or server.port

    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    console.print(f"[bold]healthhub[/bold] starting on http://{host}:{port}")
    uvicorn.run("healthhub.api.app:app", host=host, port=port, reload=False, log_level=log_level)


@app.command()
def status(
    hub: str = typer.Option(DEFAULT_HUB, "--hub", help="Hub base URL"),
) -> None:
    """Show all registered services and their latest metrics."""
    try:
        resp = httpx.get(hub.rstrip("/") + "/metrics", timeout=5.0)
        resp.raise_for_status()
    except httpx.HTTPError as exc:
        console.print(f"[red]Could not fetch metrics from {hub}: {exc}[/red]")
        raise typer.Exit(1)

    table = Table(title="healthhub Service Status")
    table.add_column("Service", style="bold")
    table.add_column("Status")
    table.add_column("Health")
    table.add_column("Checked")
    table.add_column("Errors", justify="right")
    table.add_column("Uptime", justify="right")
    table.add_column("Attributes")

    for s in resp.json():
        up_style = "green" if s["status"] == "UP" else "red"
        health_style = HEALTH_STYLES.get(s["health"], "white")
        attrs = ", ".join(f"{k}={v}" for k, v in sorted(s["attributes"].items()))
        table.add_row(
            s["service"],
            f"[{up_style}]{s['status']}[/{up_style}]",
            f"[{health_style}]{s['health']}[/{health_style}]",
            s["last_checked"],
            f"{s['error_rate']:.1%}",
            f"{s['uptime_sec']}s",
            attrs or "—",
        )

    console.print(table)


@app.command()
def register(
    service_id: str = typer.Argument(help="Unique service id"),
    endpoint: str = typer.Argument(help="Base URL the hub should probe"),
    interval: int = typer.Option(0, "--interval", "-i", min=0, help="Poll interval in seconds (0 = hub default)"),
    attr: list[str] | None = typer.Option(None, "--attr", "-a", help="Attribute as key=value (repeatable)"),
    hub: str = typer.Option(DEFAULT_HUB, "--hub", help="Hub base URL"),
    api_key: str = typer.Option("", "--api-key", envvar="HEALTHHUB_API_KEY", help="Hub API key"),
) -> None:
    """Register a service with a running hub."""
    from healthhub.demo import register_with_hub

    attributes = _parse_attributes(attr)
    try:
        asyncio.run(register_with_hub(hub, service_id, endpoint, interval, attributes, api_key=api_key))
    except httpx.HTTPStatusError as exc:
        console.print(f"[red]Hub rejected registration ({exc.response.status_code}): {exc.response.text}[/red]")
        raise typer.Exit(1)
    except httpx.HTTPError as exc:
        console.print(f"[red]Could not reach hub at {hub}: {exc}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Registered {service_id} -> {endpoint}")


@app.command()
def probe(
    endpoint: str = typer.Argument(help="Base URL of the service to check"),
    timeout: float = typer.Option(2.0, help="Per-request timeout in seconds"),
    retries: int = typer.Option(2, min=0, help="Retries on connection failure"),
) -> None:
    """Run a single health check against ENDPOINT and print the classification."""
    from healthhub.config.models import PollerConfig
    from healthhub.registry.prober import HealthProber

    prober = HealthProber(PollerConfig(request_timeout=timeout, max_retries=retries))
    metrics = asyncio.run(prober.probe_endpoint(endpoint))

    style = HEALTH_STYLES.get(metrics.health.value, "white")
    console.print(f"{prober.health_url(endpoint)}: [{style}]{metrics.health.value}[/{style}]")
    if metrics.ready:
        console.print(f"  Uptime: {metrics.uptime_sec}s")
        console.print(f"  Requests: {metrics.request_count} ({metrics.error_count} errors, {metrics.error_rate:.1%})")
        for key, value in sorted(metrics.attributes.items()):
            console.print(f"  {key}: {value}")
    else:
        raise typer.Exit(1)


@app.command()
def demo(
    name: str = typer.Argument(help="Service id the demo reports and registers as"),
    port: int = typer.Option(9001, help="Bind port"),
    error_rate: float = typer.Option(0.05, min=0.0, max=1.0, help="Share of health requests answered with HTTP 500"),
    hub: str | None = typer.Option(None, "--hub", help="Hub to register with on startup"),
    interval: int = typer.Option(0, "--interval", "-i", min=0, help="Poll interval to register with"),
    attr: list[str] | None = typer.Option(None, "--attr", "-a", help="Registration attribute key=value"),
) -> None:
    """Run a synthetic dependent service exposing /health."""
    import uvicorn

    from healthhub.demo import create_demo_app

    demo_app = create_demo_app(
        name,
        port,
        error_rate=error_rate,
        hub_url=hub,
        poll_interval_sec=interval,
        registration_attributes=_parse_attributes(attr),
    )
    console.print(f"[bold]{name}[/bold] demo service on http://0.0.0.0:{port}")
    uvicorn.run(demo_app, host="0.0.0.0", port=port)


config_app = typer.Typer(name="config", help="Configuration commands")
app.add_typer(config_app)


@config_app.command("validate")
def config_validate(
    path: Path | None = typer.Option(None, "--path", "-p", help="Path to .healthhub.yaml"),
) -> None:
    """Validate configuration file."""
    import yaml

    from healthhub.config.loader import load_config

    try:
        config = load_config(path=path)
    except FileNotFoundError as exc:
        console.print(f"[red]✗ {exc}[/red]")
        raise typer.Exit(1)
    except yaml.YAMLError as exc:
        console.print(f"[red]✗ YAML parsing failed: {exc}[/red]")
        raise typer.Exit(1)
    except ValueError as exc:
        console.print("[green]✓[/green] YAML parses correctly")
        console.print(f"[red]✗ {escape(str(exc))}[/red]")
        raise typer.Exit(1)

    console.print("[green]✓[/green] YAML parses correctly")
    console.print("[green]✓[/green] Pydantic validation passes")
    for entry in config.services:
        console.print(f"[green]✓[/green] Service '{entry.id}' -> {entry.endpoint}")

    if config.poller.cycle_period > config.poller.default_interval:
        console.print(
            "[yellow]! poller.cycle_period exceeds default_interval; "
            "services will be polled once per cycle[/yellow]"
        )
    console.print("\n[green bold]Configuration is valid.[/green bold]")


@config_app.command("show")
def config_show(
    path: Path | None = typer.Option(None, "--path", "-p", help="Path to .healthhub.yaml"),
) -> None:
    """Print resolved configuration."""
    from healthhub.config.loader import load_config

    try:
        config = load_config(path=path)
    except FileNotFoundError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)

    console.print(f"[bold]{config.hub.name}[/bold] v{config.hub.version}\n")

    poller = config.poller
    console.print("[bold]Poller:[/bold]")
    console.print(f"  Cycle period: {poller.cycle_period}s")
    console.print(f"  Default interval: {poller.default_interval}s")
    console.print(f"  Workers: {poller.max_workers}")
    console.print(f"  Request timeout: {poller.request_timeout}s")
    console.print(f"  Retries: {poller.max_retries}")
    console.print(f"  Degraded above error rate: {poller.error_threshold}\n")

    console.print("[bold]Services:[/bold]")
    for entry in config.services:
        interval = f"every {entry.poll_interval_sec}s" if entry.poll_interval_sec else "default interval"
        console.print(f"  {entry.id}: {entry.endpoint} ({interval})")
        if entry.attributes:
            attrs = ", ".join(f"{k}={v}" for k, v in entry.attributes.items())
            console.print(f"    Attributes: {attrs}")


def main() -> None:
    app()
