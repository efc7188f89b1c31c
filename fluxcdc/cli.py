"""Command line interface for the CDC pipeline and the external task worker."""

from __future__ import annotations

import asyncio
import logging
import signal
from pathlib import Path
from typing import Optional

import typer

from fluxcdc.checkpoint import get_checkpoint_store
from fluxcdc.config import FluxCdcConfig, load_config
from fluxcdc.contracts import Watermark
from fluxcdc.engine import EngineClient, HistoryClient
from fluxcdc.errors import FatalStartupError, FluxCdcError, TransportError
from fluxcdc.pipeline import CycleReport, Pipeline
from fluxcdc.timefmt import parse_engine_time
from fluxcdc.worker import TaskDispatcher, load_registry

app = typer.Typer(help="CLI for fluxcdc")

# Command groups
pipeline_app = typer.Typer(help="Commands for the history CDC pipeline")
worker_app = typer.Typer(help="Commands for the external task worker")
checkpoint_app = typer.Typer(help="Commands for inspecting and restoring the watermark")
engine_app = typer.Typer(help="Commands for talking to the engine")
history_app = typer.Typer(help="Commands for browsing engine history")

app.add_typer(pipeline_app, name="pipeline")
app.add_typer(worker_app, name="worker")
app.add_typer(checkpoint_app, name="checkpoint")
app.add_typer(engine_app, name="engine")
app.add_typer(history_app, name="history")


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to config.yaml (default: FLUXCDC_CONFIG)"
    ),
) -> None:
    """fluxcdc CLI entry point."""
    cfg = load_config(str(config) if config else None)
    logging.basicConfig(
        level=cfg.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = cfg


def _engine_client(config: FluxCdcConfig) -> EngineClient:
    return EngineClient.from_config(config.engine)


def _install_stop_handlers(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:  # pragma: no cover - Windows event loops
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(stop_event.set))


@pipeline_app.command("run")
def pipeline_run(
    ctx: typer.Context,
    once: bool = typer.Option(False, help="Run a single poll-and-publish cycle and exit"),
) -> None:
    """
    Capture engine history into the processes and events streams.

    Polls the engine every ``pipeline.poll_interval`` seconds, publishes new
    process instances and their activities, and persists the watermark to
    the configured checkpoint store. Stops cleanly on SIGINT/SIGTERM.

    Example:
        fluxcdc pipeline run
        fluxcdc --config ./config.yaml pipeline run --once
    """
    config: FluxCdcConfig = ctx.obj

    async def _run() -> Optional[CycleReport]:
        async with _engine_client(config) as engine:
            pipeline = Pipeline.from_config(config, engine=engine)
            if once:
                await pipeline.connect()
                try:
                    return await pipeline.run_cycle()
                finally:
                    await pipeline.drain()
            stop_event = asyncio.Event()
            _install_stop_handlers(stop_event)
            await pipeline.run(stop_event)
            return None

    typer.echo(f"Starting CDC pipeline against {config.engine.base_url}")
    try:
        report = asyncio.run(_run())
    except FatalStartupError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)

    if report is not None:
        typer.echo(f"Polled {report.polled} process instances")
        if report.published is not None:
            typer.echo(
                f"Published {len(report.published.processes)} processes, "
                f"{len(report.published.events)} activities, "
                f"{len(report.published.failures)} failures"
            )
        if report.error is not None:
            typer.secho(f"Poll failed: {report.error}", fg=typer.colors.RED)
            raise typer.Exit(code=1)


@worker_app.command("run")
def worker_run(ctx: typer.Context, handlers: str) -> None:
    """
    Run the external task worker for a registry of topic handlers.

    Args:
        handlers: Import path of a TopicRegistry, as ``package.module:attribute``

    Example:
        fluxcdc worker run guides.customer_service_worker:registry
    """
    config: FluxCdcConfig = ctx.obj
    try:
        registry = load_registry(handlers)
    except (ImportError, ValueError) as exc:
        typer.secho(f"Cannot load handlers: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    async def _run() -> None:
        async with _engine_client(config) as engine:
            dispatcher = TaskDispatcher.from_config(registry, config=config, engine=engine)
            stop_event = asyncio.Event()
            _install_stop_handlers(stop_event)
            await dispatcher.run(stop_event)

    typer.echo(f"Starting worker {config.worker.worker_id} for: {', '.join(registry.topics)}")
    asyncio.run(_run())


@checkpoint_app.command("show")
def checkpoint_show(ctx: typer.Context) -> None:
    """Print the persisted watermark."""
    store = get_checkpoint_store(config=ctx.obj)
    watermark = asyncio.run(store.load())
    if watermark is None or watermark.is_initial:
        typer.echo("No checkpoint saved")
        return
    typer.echo(f"started_after: {watermark.started_after.isoformat()}")
    typer.echo(f"updated_at: {watermark.updated_at.isoformat()}")


@checkpoint_app.command("set")
def checkpoint_set(ctx: typer.Context, timestamp: str) -> None:
    """
    Restore the watermark to an explicit start time.

    The next pipeline cycle fetches process instances started after
    ``timestamp``; anything already captured after it is delivered again.

    Example:
        fluxcdc checkpoint set 2024-05-01T10:00:00.000+0000
    """
    try:
        started_after = parse_engine_time(timestamp)
    except ValueError as exc:
        typer.secho(f"Invalid timestamp: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    store = get_checkpoint_store(config=ctx.obj)
    asyncio.run(store.save(Watermark(started_after=started_after)))
    typer.echo(f"Checkpoint set to {started_after.isoformat()}")


@checkpoint_app.command("reset")
def checkpoint_reset(ctx: typer.Context) -> None:
    """Forget the watermark; the next run captures history from the start."""
    store = get_checkpoint_store(config=ctx.obj)
    asyncio.run(store.reset())
    typer.echo("Checkpoint reset")


@engine_app.command("ping")
def engine_ping(ctx: typer.Context) -> None:
    """Check that the engine REST API is reachable."""
    config: FluxCdcConfig = ctx.obj

    async def _ping() -> None:
        async with _engine_client(config) as engine:
            await engine.ping()

    try:
        asyncio.run(_ping())
    except TransportError as exc:
        typer.secho(f"Engine unreachable: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.echo(f"Engine reachable at {config.engine.base_url}")


@history_app.command("show")
def history_show(ctx: typer.Context, process_instance_id: str) -> None:
    """
    Show the activities, variables and audit log of one process instance.

    Example:
        fluxcdc history show 8f2c5a1e-0a4b-11ef-9a3f-0242ac120002
    """
    config: FluxCdcConfig = ctx.obj

    async def _fetch():
        async with _engine_client(config) as engine:
            history = HistoryClient(engine)
            return (
                await history.activity_instances(process_instance_id),
                await history.variable_instances(process_instance_id),
                await history.details(process_instance_id),
            )

    try:
        activities, variables, details = asyncio.run(_fetch())
    except FluxCdcError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)

    typer.echo(f"Process instance {process_instance_id}")
    typer.echo("Activities:")
    for activity in activities:
        name = activity.activity_name or activity.activity_id
        status = "canceled" if activity.canceled else ("done" if activity.end_time else "running")
        typer.echo(f"- {name} [{activity.activity_type}] {status} ({activity.start_time.isoformat()})")
    typer.echo("Variables:")
    for variable in variables:
        typer.echo(f"- {variable.name} = {variable.value!r}")
    typer.echo("Audit log:")
    for detail in details:
        when = detail.time.isoformat() if detail.time else "-"
        typer.echo(f"- {when} {detail.type} {detail.variable_name or ''} = {detail.value!r}")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
