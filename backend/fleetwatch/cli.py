"""FleetWatch CLI: real-time vessel tracking and route analytics.

Commands:
  serve     run the API server
  stream    consume the aisstream.io feed for a fixed duration
  seed      load the demo dataset into the configured store
  status    store contents and configuration summary
  search    vessel lookup by station id, registry id or name
  eta       arrival-time prediction for one or all vessels
  history   historical route analysis for a vessel

With the default in-memory store every invocation starts empty; pass --demo
to load the sample dataset first, or set STORE_BACKEND=sql to persist.
"""
from __future__ import annotations

import asyncio
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from fleetwatch.config import settings
from fleetwatch.errors import ConfigurationError, UpstreamConnectionError
from fleetwatch.modules.sample_data import load_sample_data
from fleetwatch.modules.tracking_service import TrackingService

app = typer.Typer(
    name="fleetwatch",
    help="Real-time vessel tracking: AIS ingestion, geofencing, ETA and route analytics.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8000, "--port"),
    reload: bool = typer.Option(False, "--reload", hidden=True),
):
    """Run the API server (REST under /api/v1, live events on /ws)."""
    import uvicorn

    console.print(f"FleetWatch API running at [cyan]http://{host}:{port}[/cyan] (press Ctrl+C to stop)")
    uvicorn.run("fleetwatch.main:app", host=host, port=port, reload=reload)


@app.command("stream")
def stream(
    stream_time: str = typer.Option("5m", "--stream-time", help="Stream duration (e.g. 30s, 5m, 1h; 0 = until failure)"),
):
    """Stream AIS reports from aisstream.io into the store."""
    service = _service()
    try:
        feed = service.make_feed(settings)
    except ConfigurationError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)

    duration_s = _parse_duration(stream_time)
    try:
        with console.status(f"[bold]Streaming for {stream_time}..."):
            summary = asyncio.run(feed.run(duration_seconds=duration_s))
    except UpstreamConnectionError as exc:
        console.print(f"[red]Feed failed:[/red] {exc}")
        raise typer.Exit(2)

    table = Table(title="aisstream.io session")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    for key in ("messages_received", "position_reports", "static_data_msgs",
                "reports_applied", "dropped", "reconnects", "stations_seen"):
        table.add_row(key.replace("_", " "), f"{summary[key]:,}")
    console.print(table)
    console.print(f"Vessels in store: [green]{len(service.list_vessels())}[/green]")


@app.command("seed")
def seed(
    rng_seed: int = typer.Option(42, "--seed", help="Random seed for trail jitter"),
):
    """Load the demo dataset (5 vessels, 3 zones, 2 alerts)."""
    service = _service()
    stats = load_sample_data(service.store, seed=rng_seed)
    console.print(
        f"[green]Loaded[/green] {stats['vessels']} vessels, {stats['track_points']} track points, "
        f"{stats['zones']} zones, {stats['alerts']} alerts"
    )


@app.command("status")
def status(demo: bool = typer.Option(False, "--demo", help="Load sample data first")):
    """Show store contents and configuration."""
    service = _service(demo)

    console.print("[bold]System[/bold]")
    console.print(f"  Store backend: {settings.STORE_BACKEND}")
    console.print(f"  Reference ports: {len(service.gazetteer)}")
    feed_state = "[green]enabled[/green]" if settings.AISSTREAM_ENABLED else "[yellow]disabled[/yellow]"
    console.print(f"  aisstream.io feed: {feed_state}")
    if settings.AISSTREAM_ENABLED and not settings.AISSTREAM_API_KEY:
        console.print("  [red]AISSTREAM_API_KEY is not set[/red]")

    vessels = service.list_vessels()
    active_alerts = [a for a in service.list_alerts() if a.is_active]
    console.print("\n[bold]Data[/bold]")
    console.print(f"  Vessels: {len(vessels)}")
    console.print(f"  Zones: {len(service.list_zones())}")
    console.print(f"  Active alerts: {len(active_alerts)}")

    if vessels:
        latest = max(v.last_update for v in vessels)
        console.print(f"  Last update: {latest:%Y-%m-%d %H:%M:%S} UTC")


@app.command("search")
def search_vessel(
    query: str = typer.Argument(..., help="Station id, registry id or name fragment"),
    demo: bool = typer.Option(False, "--demo", help="Load sample data first"),
):
    """Find vessels by station id, registry id or name."""
    service = _service(demo)
    vessels = service.search(query)
    if not vessels:
        console.print("[yellow]No vessels found[/yellow]")
        return

    for v in vessels[:10]:
        console.print(
            f"\n[bold cyan]Station:[/bold cyan] {v.station_id}  [bold cyan]Registry:[/bold cyan] {v.registry_id}"
            f"  [bold]Name:[/bold] {v.name}"
        )
        console.print(f"  Flag: {v.flag}  Type: {v.vessel_type}  Status: {v.status}")
        console.print(f"  Position: ({v.lat:.4f}, {v.lon:.4f})  Speed: {v.speed:.1f} kn  Destination: {v.destination}")


@app.command("eta")
def eta(
    vessel_id: Optional[int] = typer.Argument(None, help="Vessel id (omit for all under-way vessels)"),
    demo: bool = typer.Option(False, "--demo", help="Load sample data first"),
):
    """Predict arrival times."""
    service = _service(demo)
    if vessel_id is None:
        predictions = service.predict_all_etas()
    else:
        prediction = service.predict_eta(vessel_id)
        if prediction is None:
            console.print(f"[yellow]No ETA available for vessel {vessel_id}[/yellow]")
            raise typer.Exit(1)
        predictions = [prediction]

    if not predictions:
        console.print("[yellow]No predictions available[/yellow]")
        return

    table = Table(title="ETA predictions")
    for col in ("Vessel", "Destination", "Arrival (UTC)", "Remaining km", "Speed kn", "Confidence"):
        table.add_column(col)
    for p in predictions:
        table.add_row(
            str(p.vessel_id),
            p.destination,
            f"{p.estimated_arrival:%Y-%m-%d %H:%M}",
            f"{p.remaining_distance_km:.1f}",
            f"{p.average_speed_kn:.1f}",
            f"{p.confidence:.2f}",
        )
    console.print(table)


@app.command("history")
def history(
    vessel_id: int = typer.Argument(..., help="Vessel id"),
    days: int = typer.Option(settings.HISTORY_LOOKBACK_DAYS, "--days"),
    demo: bool = typer.Option(False, "--demo", help="Load sample data first"),
):
    """Historical route analysis and performance metrics."""
    service = _service(demo)
    analysis = service.analyze_history(vessel_id, days=days)
    if analysis is None:
        console.print(f"[yellow]Not enough history for vessel {vessel_id} in the last {days} days[/yellow]")
        raise typer.Exit(1)

    console.print(f"[bold]{analysis.vessel_name}[/bold]: last {analysis.days} days, {analysis.point_count} points")
    console.print(f"  Distance: {analysis.total_distance_km:.1f} km")
    console.print(
        f"  Speed: avg {analysis.average_speed_kn:.1f} / max {analysis.max_speed_kn:.1f}"
        f" / min {analysis.min_speed_kn:.1f} kn"
    )
    console.print(f"  Route efficiency: {analysis.route_efficiency:.1f}%")
    if analysis.time_at_ports:
        for port, hours in analysis.time_at_ports.items():
            console.print(f"  At {port}: {hours:.1f} h")
    else:
        console.print("  Ports visited: none")

    metrics = service.performance_metrics(vessel_id)
    if metrics is not None:
        console.print(f"  Fuel efficiency score: {metrics.fuel_efficiency:.0f}")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _service(demo: bool = False) -> TrackingService:
    service = TrackingService.from_settings(settings)
    if demo:
        load_sample_data(service.store)
    return service


def _parse_duration(s: str) -> int:
    """Parse duration string (30s, 5m, 1h) to seconds."""
    s = s.strip().lower()
    if s == "0":
        return 0
    if s.endswith("s"):
        return int(s[:-1])
    if s.endswith("m"):
        return int(s[:-1]) * 60
    if s.endswith("h"):
        return int(s[:-1]) * 3600
    try:
        return int(s)
    except ValueError:
        return 300
