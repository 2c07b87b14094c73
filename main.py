"""
Agent Core — Main CLI Entrypoint.

Wires all layers and runs the interactive CLI loop.
"""

import argparse
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich import box

from commands.interface import CommandInterface, HttpCommandInterface, InMemoryCommandInterface
from conversation.session_engine import SessionStore
from domains.catalog import build_capabilities
from entry.cli import CLIAdapter
from execution.batch_processor import BatchProcessor
from execution.workflow_engine import WorkflowEngine
from intent.router import IntentRouter
from observability.tracker import ExecutionTracker
from orchestrator.orchestrator import Orchestrator
from registry.capability_registry import CapabilityRegistry
from shared.models import CapabilityOutput, RoutingDecision, utc_now
from shared.response_formatter import format_output
from shared.settings import AgentSettings, load_settings

# ─── Configuration ──────────────────────────────────────────────

logger = logging.getLogger(__name__)

# Ensure local .env is loaded before reading runtime configuration.
load_dotenv(override=False)

# ─── Rich Console ───────────────────────────────────────────────

console = Console()


def setup_logging(level: str = "INFO") -> None:
    """Configure logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


@dataclass
class Pipeline:
    settings: AgentSettings
    commands: CommandInterface
    registry: CapabilityRegistry
    router: IntentRouter
    tracker: ExecutionTracker
    session_store: SessionStore
    batch_processor: BatchProcessor
    workflow_engine: WorkflowEngine
    orchestrator: Orchestrator


def build_commands(settings: AgentSettings) -> CommandInterface:
    if settings.command_backend_url:
        logger.info("Using HTTP command backend at %s", settings.command_backend_url)
        return HttpCommandInterface(
            settings.command_backend_url,
            auth_token=settings.command_backend_token or None,
            timeout=settings.command_backend_timeout_seconds,
        )
    logger.info("Using in-memory command backend")
    return InMemoryCommandInterface()


def build_pipeline(
    settings: AgentSettings | None = None,
    commands: CommandInterface | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> Pipeline:
    """Wire all layers together."""
    settings = settings or load_settings()
    commands = commands or build_commands(settings)

    session_store = SessionStore()
    batch_processor = BatchProcessor(
        batch_size=settings.batch_size,
        delay_seconds=settings.batch_delay_seconds,
    )
    tracker = ExecutionTracker(
        error_log_limit=settings.error_log_limit,
        history_limit=settings.execution_history_limit,
        clock=clock,
    )

    registry = CapabilityRegistry()
    for capability in build_capabilities(
        batch_processor=batch_processor,
        store=session_store,
        clock=clock,
        session_timeout_seconds=settings.session_timeout_seconds,
    ):
        registry.register(capability)
        tracker.register_capability(capability.id, capability.name)

    router = IntentRouter(
        registry,
        auto_execute_threshold=settings.auto_execute_threshold,
        disambiguate_threshold=settings.disambiguate_threshold,
    )
    workflow_engine = WorkflowEngine(registry, router=router, tracker=tracker, clock=clock)
    orchestrator = Orchestrator(
        registry=registry,
        router=router,
        tracker=tracker,
        workflow_engine=workflow_engine,
        session_store=session_store,
        store_messages=settings.store_messages,
        clock=clock,
    )
    return Pipeline(
        settings=settings,
        commands=commands,
        registry=registry,
        router=router,
        tracker=tracker,
        session_store=session_store,
        batch_processor=batch_processor,
        workflow_engine=workflow_engine,
        orchestrator=orchestrator,
    )


def render_result(output: CapabilityOutput) -> None:
    """Render CapabilityOutput to the CLI using Rich."""
    console.print()
    if output.status == "success":
        console.print(Panel(
            Text(format_output(output), style="bold green"),
            title="✅ Result",
            border_style="green",
            box=box.ROUNDED,
        ))
    elif output.status == "clarification":
        console.print(Panel(
            Text(format_output(output), style="bold yellow"),
            title="❓ Needs Input",
            border_style="yellow",
            box=box.ROUNDED,
        ))
    else:
        console.print(Panel(
            Text(format_output(output), style="bold red"),
            title="❌ Failed",
            border_style="red",
            box=box.ROUNDED,
        ))

    routed_by = output.metadata.get("routed_by")
    if routed_by:
        detail = f"  {output.metadata.get('capability_id', '')} via {routed_by}"
        if "route_confidence" in output.metadata:
            detail += f" ({output.metadata['route_confidence']:.0%})"
        console.print(Text(detail, style="dim"))


async def run_agent_loop(pipeline: Pipeline | None = None) -> None:
    """Interactive Agent Loop."""
    pipeline = pipeline or build_pipeline()
    cli = CLIAdapter()

    console.print(Panel(
        Text.from_markup(
            "[bold cyan]Agent Core[/bold cyan]\n"
            f"[dim]{len(pipeline.registry.registered_capabilities)} capabilities • session {cli.session_id}[/dim]\n"
            "[dim]Type /help for commands, /new for a fresh session or 'exit' to quit[/dim]"
        ),
        title="🤖",
        border_style="cyan",
        box=box.DOUBLE,
    ))

    while True:
        try:
            raw = console.input("[bold cyan]you ›[/bold cyan] ")
            if raw.strip().lower() in ("exit", "quit"):
                console.print("[dim]Goodbye! 👋[/dim]")
                break
            if not raw.strip():
                continue
            if cli.is_reset(raw):
                console.print(f"[dim]New session {cli.reset()}[/dim]")
                continue

            request = cli.read_input(raw)
            with console.status("[green]Working...[/green]", spinner="dots"):
                output = await pipeline.orchestrator.handle(request, pipeline.commands)
            render_result(output)
            console.print()

        except KeyboardInterrupt:
            console.print("\n[dim]Interrupted. Goodbye! 👋[/dim]")
            break
        except EOFError:
            console.print("\n[dim]Goodbye! 👋[/dim]")
            break


# ─── Admin Commands ─────────────────────────────────────────────

def list_capabilities(pipeline: Pipeline | None = None) -> None:
    pipeline = pipeline or build_pipeline()

    table = Table(title="Registered Capabilities")
    table.add_column("Capability", style="cyan")
    table.add_column("Command", style="magenta")
    table.add_column("Operation", style="white")
    table.add_column("Description", style="dim")

    for info in pipeline.registry.describe_all():
        for operation in info.operations:
            table.add_row(info.id, operation.command, operation.id, operation.description)
    console.print(table)


def show_route(text: str, pipeline: Pipeline | None = None) -> RoutingDecision:
    pipeline = pipeline or build_pipeline()
    candidates = pipeline.router.route(text)
    decision = pipeline.router.decide_from(candidates)

    table = Table(title=f"Routing: {decision.action}", box=box.SIMPLE_HEAVY, header_style="bold cyan")
    table.add_column("#", style="dim")
    table.add_column("Capability", style="cyan")
    table.add_column("Command", style="magenta")
    table.add_column("Confidence", style="green")
    table.add_column("Reason", style="dim")
    for index, candidate in enumerate(candidates, start=1):
        table.add_row(
            str(index),
            candidate.capability_id,
            candidate.command,
            f"{candidate.confidence:.0%}",
            candidate.reason,
        )
    console.print(table)
    return decision


def serve(host: str | None = None, port: int | None = None) -> None:
    import uvicorn

    settings = load_settings()
    uvicorn.run(
        "api.server:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        log_level=settings.log_level.lower(),
    )


def main() -> None:
    """Entrypoint with CLI args."""
    settings = load_settings()
    setup_logging(settings.log_level)

    parser = argparse.ArgumentParser(description="Agent Core")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    subparsers.add_parser("run", help="Run interactive agent")
    subparsers.add_parser("capabilities", help="List registered capabilities")

    route_parser = subparsers.add_parser("route", help="Show ranked routing candidates for a text")
    route_parser.add_argument("text", help="Free-text input to route")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default=None, help=f"Bind address (default: {settings.api_host})")
    serve_parser.add_argument("--port", type=int, default=None, help=f"Port (default: {settings.api_port})")

    args = parser.parse_args()

    if args.command == "capabilities":
        list_capabilities(build_pipeline(settings))
    elif args.command == "route":
        show_route(args.text, build_pipeline(settings))
    elif args.command == "serve":
        serve(args.host, args.port)
    elif args.command == "run" or args.command is None:
        try:
            asyncio.run(run_agent_loop(build_pipeline(settings)))
        except KeyboardInterrupt:
            pass
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
