"""Command-line entry point for SlimClaw."""

import asyncio

import typer
from rich.console import Console
from rich.markup import escape

from slim_claw.agent import Agent
from slim_claw.config import Config, set_config
from slim_claw.exceptions import ConfigurationError, LLMError
from slim_claw.llm import MessageStop, StreamEvent, TextDelta, ToolEnd, ToolStart, create_client
from slim_claw.logging import configure_logging, log
from slim_claw.session import SessionManager

app = typer.Typer(help="SlimClaw - a streaming, tool-using agent")
console = Console()

_RESULT_PREVIEW_CHARS = 200


def _print_event(event: StreamEvent) -> None:
    if isinstance(event, TextDelta):
        console.print(event.text, end="", markup=False, highlight=False)
    elif isinstance(event, ToolStart):
        console.print(f"\n[cyan]> {escape(event.name)}[/cyan] {escape(str(event.input))}")
    elif isinstance(event, ToolEnd):
        preview = event.result[:_RESULT_PREVIEW_CHARS]
        if len(event.result) > _RESULT_PREVIEW_CHARS:
            preview += "..."
        console.print(f"[dim]< {escape(event.name)}: {escape(preview)}[/dim]")
    elif isinstance(event, MessageStop):
        console.print()


async def _chat(cfg: Config, message: str, session_id: str) -> None:
    client = create_client(
        provider=cfg.resolved_provider(),
        api_key=cfg.resolved_api_key(),
        base_url=cfg.model.base_url or None,
    )
    manager = SessionManager(db_path=cfg.session.path)
    try:
        session = await manager.get_or_create_session(session_id)
        agent = Agent(client=client, tools=[], session_manager=manager)
        await agent.run(session, message, on_event=_print_event)
    finally:
        await client.close()
        await manager.close()


@app.command()
def chat(
    message: str = typer.Argument(..., help="Message to send"),
    session: str = typer.Option("default", "-s", "--session", help="Session id"),
    config: str = typer.Option("", "-c", "--config", help="Path to config file"),
    model: str = typer.Option("", "-m", "--model", help="Override model"),
    provider: str = typer.Option("", "-p", "--provider", help="Override provider"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Debug logging"),
) -> None:
    """Send one message and stream the agent's turn."""
    cfg = Config.load(config or None)
    if model:
        cfg.model.model = model
    if provider:
        cfg.model.provider = provider
    set_config(cfg)
    configure_logging("DEBUG" if verbose else None)

    try:
        asyncio.run(_chat(cfg, message, session))
    except (ConfigurationError, LLMError) as e:
        log.error("Turn failed", error=str(e))
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)


@app.command()
def sessions(
    config: str = typer.Option("", "-c", "--config", help="Path to config file"),
    limit: int = typer.Option(20, "-n", "--limit", help="Number of sessions"),
) -> None:
    """List stored sessions, most recently active first."""
    cfg = Config.load(config or None)
    set_config(cfg)

    async def _list() -> None:
        manager = SessionManager(db_path=cfg.session.path)
        try:
            for info in await manager.list_sessions(limit=limit):
                console.print(f"{info.id}  {info.last_active}  ({info.message_count} messages)")
        finally:
            await manager.close()

    asyncio.run(_list())


def main() -> None:
    app()


if __name__ == "__main__":
    main()
