"""CLI interface for Agent Studio.

Provides commands for:
- Starting the API server
- Applying database migrations
- Inspecting industry presets and an owner's agents
"""

import asyncio

import click
import uvicorn

from agentstudio import __version__
from agentstudio.config import get_settings


def _run_server(host: str | None, port: int | None, reload: bool) -> None:
    settings = get_settings()

    actual_host = host or settings.host
    actual_port = port or settings.port

    click.echo(f"Starting Agent Studio on {actual_host}:{actual_port}")

    uvicorn.run(
        "agentstudio.server:app",
        host=actual_host,
        port=actual_port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


async def _migrate() -> list[int]:
    from agentstudio.db.engine import close_db, get_engine
    from agentstudio.db.migrations import run_migrations

    try:
        return await run_migrations(get_engine())
    finally:
        await close_db()


async def _list_agents(owner_id: str):
    from agentstudio.catalog import AgentCatalog
    from agentstudio.db.engine import build_session_factory, close_db, get_engine

    try:
        catalog = AgentCatalog(build_session_factory(get_engine()))
        return await catalog.list_agents_for_owner(owner_id)
    finally:
        await close_db()


@click.group()
@click.version_option(version=__version__, prog_name="agentstudio")
def cli() -> None:
    """Agent Studio - provision and deploy conversational agents."""
    pass


@cli.command()
@click.option("--host", "-h", default=None, help="Host to bind to")
@click.option("--port", "-p", default=None, type=int, help="Port to bind to")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
def serve(host: str | None, port: int | None, reload: bool) -> None:
    """Start the API server."""
    _run_server(host, port, reload)


@cli.group()
def db() -> None:
    """Database commands."""
    pass


@db.command("migrate")
def migrate() -> None:
    """Apply pending schema migrations."""
    applied = asyncio.run(_migrate())
    if not applied:
        click.echo("Database is up to date.")
        return
    for version in applied:
        click.echo(f"Applied migration {click.style(str(version), fg='green')}")


@cli.group()
def presets() -> None:
    """Industry preset commands."""
    pass


@presets.command("list")
def list_presets() -> None:
    """List industry presets."""
    from agentstudio.presets import INDUSTRY_PRESETS

    click.echo(f"Industry presets ({len(INDUSTRY_PRESETS)}):\n")
    for industry, preset in INDUSTRY_PRESETS.items():
        click.echo(f"  {click.style(industry, fg='green', bold=True)}")
        click.echo(f"    Persona: {preset.persona}")
        click.echo(f"    Task:    {preset.task}")
        click.echo()


@cli.group()
def agents() -> None:
    """Agent catalog commands."""
    pass


@agents.command("list")
@click.argument("owner_id")
def list_agents(owner_id: str) -> None:
    """List the agents owned by OWNER_ID."""
    found = asyncio.run(_list_agents(owner_id))
    if not found:
        click.echo("No agents found.")
        return
    for agent in found:
        click.echo(
            f"  {click.style(agent.agent_name, fg='green', bold=True)}"
            f"  [{agent.trigger_code}]  {agent.status}  ({agent.business_name})"
        )


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
