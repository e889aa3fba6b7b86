"""Typer CLI for running and inspecting the NIM proxy."""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from .gateway.config import GatewayConfig
from .gateway.config_loader import list_env_overrides
from .logging_utils import configure_logging

app = typer.Typer(help="OpenAI-compatible gateway for NVIDIA NIM style APIs")
console = Console()


def _mask(value: str) -> str:
    if not value:
        return "(not set)"
    return value[:4] + "…" if len(value) > 8 else "***"


@app.command("serve")
def cmd_serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", help="Listen port"),
    log_level: str = typer.Option("INFO", "--log-level", help="Root log level"),
    access_log: bool = typer.Option(
        True, "--access-log/--no-access-log", help="Log one line per request"
    ),
):
    """Run the gateway with uvicorn."""
    import uvicorn

    from .gateway.app import create_app

    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        typer.echo(f"Unknown log level: {log_level}")
        raise typer.Exit(1)
    log_path = configure_logging("nim_proxy", level=level, access_log=access_log)

    cfg = GatewayConfig.load()
    if host:
        cfg.host = host
    if port:
        cfg.port = port
    if not cfg.default_api_key:
        logging.getLogger(__name__).info(
            "No default API key configured; callers must send their own."
        )
    console.print(
        f"NIM proxy on [bold]{cfg.host}:{cfg.port}[/bold] -> {cfg.base_url} "
        f"(log: {log_path})"
    )
    uvicorn.run(
        create_app(cfg),
        host=cfg.host,
        port=cfg.port,
        log_config=None,
        access_log=access_log,
    )


@app.command("config")
def cmd_config():
    """Show the effective configuration and the environment overrides in use."""
    cfg = GatewayConfig.load()
    values = asdict(cfg)
    values["default_api_key"] = _mask(cfg.default_api_key)

    table = Table(title="Effective configuration")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for key, value in values.items():
        table.add_row(key, str(value))
    console.print(table)

    overrides = list_env_overrides()
    if overrides:
        env_table = Table(title="Environment overrides")
        env_table.add_column("Variable", style="cyan")
        env_table.add_column("Value")
        for key, value in sorted(overrides.items()):
            env_table.add_row(key, value)
        console.print(env_table)
    else:
        console.print("No environment overrides set.")


if __name__ == "__main__":  # pragma: no cover
    app()
