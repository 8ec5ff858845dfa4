"""Command line interface for the distributed calculator."""

from __future__ import annotations

import logging
import os
import time
from dataclasses import replace
from pathlib import Path
from typing import Optional

import typer
import uvicorn
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .agent import Agent, OrchestratorClient, TransportError
from .calculator import CalculatorError, compile_expression
from .config import AgentConfig, ConfigError, OrchestratorConfig
from .web.server import create_app

app = typer.Typer(help="Distributed calculator CLI")
console = Console()

TERMINAL_STATUSES = {"done", "failed"}


@app.callback()
def main(log_level: str = typer.Option("INFO", help="Logging level")) -> None:
    logging.basicConfig(
        level=log_level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _render_tasks(expression: str, tasks) -> None:
    plan = Table(title=f"Tasks for {expression}", show_lines=True)
    plan.add_column("#")
    plan.add_column("Arg1")
    plan.add_column("Op")
    plan.add_column("Arg2")
    for task in tasks:
        plan.add_row(str(task.seq), f"{task.arg1:g}", task.operation, f"{task.arg2:g}")
    console.print(plan)


@app.command()
def calc(expression: str = typer.Argument(..., help="Infix arithmetic expression")) -> None:
    """Compile an expression locally and print its task plan and value."""

    try:
        compiled = compile_expression(0, expression)
    except CalculatorError as exc:
        console.print(f"[bold red]Error:[/] {exc}")
        raise typer.Exit(code=1) from exc
    _render_tasks(expression, compiled.tasks)
    console.print(f"[bold green]Result[/] {compiled.value:g}")


@app.command()
def orchestrator(
    config_path: Optional[Path] = typer.Option(None, "--config", help="YAML configuration file"),
    host: Optional[str] = typer.Option(None, help="Interface to bind"),
    port: Optional[int] = typer.Option(None, help="Port to listen on"),
    operation_time_ms: Optional[int] = typer.Option(None, help="Nominal duration stamped on tasks"),
) -> None:
    """Serve the orchestrator HTTP API."""

    try:
        config = OrchestratorConfig.from_file(config_path) if config_path else OrchestratorConfig.from_env(os.environ)
    except ConfigError as exc:
        console.print(f"[bold red]Invalid configuration:[/] {exc}")
        raise typer.Exit(code=2) from exc
    if host is not None:
        config.host = host
    if port is not None:
        config.port = port
    if operation_time_ms is not None:
        config.operation_time_ms = operation_time_ms
    console.print(f"[bold green]Orchestrator listening on[/] {config.host}:{config.port}")
    uvicorn.run(create_app(config=config), host=config.host, port=config.port, log_config=None)


@app.command()
def agent(
    config_path: Optional[Path] = typer.Option(None, "--config", help="YAML configuration file"),
    url: Optional[str] = typer.Option(None, help="Orchestrator base URL"),
    workers: Optional[int] = typer.Option(None, help="Number of concurrent workers"),
    dispatch_mode: Optional[str] = typer.Option(None, help="barrier or parallel"),
) -> None:
    """Run an agent that executes tasks until interrupted."""

    try:
        config = AgentConfig.from_file(config_path) if config_path else AgentConfig.from_env(os.environ)
        overrides = {
            key: value
            for key, value in (
                ("orchestrator_url", url),
                ("computing_power", workers),
                ("dispatch_mode", dispatch_mode),
            )
            if value is not None
        }
        config = replace(config, **overrides)
    except ConfigError as exc:
        console.print(f"[bold red]Invalid configuration:[/] {exc}")
        raise typer.Exit(code=2) from exc

    worker_pool = Agent(config)
    worker_pool.start()
    try:
        while worker_pool.running:
            worker_pool.join(0.5)
    except KeyboardInterrupt:
        console.print("[yellow]Stopping agent...[/]")
        worker_pool.stop()
        worker_pool.join(5)
    stats = worker_pool.stats
    console.print(
        f"fetched={stats.fetched} succeeded={stats.succeeded} "
        f"failed={stats.failed} fetch_errors={stats.fetch_errors}"
    )


@app.command()
def submit(
    expression: str = typer.Argument(..., help="Infix arithmetic expression"),
    url: str = typer.Option("http://localhost:8080", help="Orchestrator base URL"),
    wait: bool = typer.Option(True, help="Poll until the expression is done or failed"),
    poll_interval: float = typer.Option(1.0, help="Seconds between status polls"),
) -> None:
    """Submit an expression to an orchestrator."""

    client = OrchestratorClient(url)
    try:
        expression_id = client.calculate(expression)
        console.print(f"[bold green]Submitted[/] {expression} as id {expression_id}")
        status = client.get_expression(expression_id)
        while wait and status["status"] not in TERMINAL_STATUSES:
            time.sleep(poll_interval)
            status = client.get_expression(expression_id)
    except TransportError as exc:
        console.print(f"[bold red]Error:[/] {exc}")
        raise typer.Exit(code=1) from exc

    table = Table(title="Expression", show_lines=True)
    for key in ("id", "status", "result", "error"):
        table.add_column(key)
    table.add_row(*(str(status.get(key, "")) for key in ("id", "status", "result", "error")))
    console.print(table)


if __name__ == "__main__":  # pragma: no cover
    app()
