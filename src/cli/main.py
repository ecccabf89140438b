"""
Typer CLI for the knowledge-cards service.

Commands:
    cards serve                       - Run the HTTP API with uvicorn
    cards ask QUESTION                - Generate one card in the terminal
    cards ask QUESTION --image out.png - Also render and save its illustration
    cards providers                   - Show provider configuration

Usage:
    cards --help
    cards ask 恐龙为什么会灭绝
    cards serve --port 8100
"""

from __future__ import annotations

import asyncio
import base64
import os
import sys

# Fix Windows encoding issues for Chinese text and emoji
if sys.platform == "win32":
    os.environ.setdefault("PYTHONIOENCODING", "utf-8")
    if hasattr(sys.stdout, "reconfigure"):
        sys.stdout.reconfigure(encoding="utf-8", errors="replace")
    if hasattr(sys.stderr, "reconfigure"):
        sys.stderr.reconfigure(encoding="utf-8", errors="replace")

from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from config import get_settings
from src.api.dependencies import get_card_pipeline, get_card_rate_limiter, get_provider_registry
from src.core.errors import ConfigurationError, coarse_user_message
from src.core.logging_config import configure_logging
from src.generation.models import CardSource, KnowledgeCard

app = typer.Typer(
    help="knowledge-cards CLI: child-friendly science cards from LLM providers",
    no_args_is_help=True,
)
console = Console()

CLI_CLIENT_KEY = "cli"

SOURCE_STYLES = {
    CardSource.PRIMARY: "green",
    CardSource.SECONDARY: "yellow",
    CardSource.MOCK: "magenta",
}


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs"),
) -> None:
    configure_logging(get_settings(), level="DEBUG" if verbose else "WARNING")


def render_card(card: KnowledgeCard, provider: str | None) -> Panel:
    lines = [f"[italic]{card.introduction}[/italic]", ""]
    for point in card.points:
        lines.append(f"[bold]{point.title}[/bold]")
        lines.append(point.content)
        lines.append("")
    lines.append(f"[bold cyan]{card.summary}[/bold cyan]")

    style = SOURCE_STYLES.get(card.source, "white")
    return Panel(
        "\n".join(lines),
        title=f"[bold]{card.title}[/bold]",
        subtitle=f"[{style}]{card.source.value}[/{style}] via {provider or '-'}",
        border_style=style,
    )


async def _generate(question: str, image_path: Optional[Path]) -> int:
    registry = get_provider_registry()
    pipeline = get_card_pipeline(registry=registry, rate_limiter=get_card_rate_limiter())

    outcome = await pipeline.run(question, CLI_CLIENT_KEY)
    if not outcome.succeeded:
        rprint(f"[red]✗[/red] {outcome.error.user_message}")
        return 1

    console.print(render_card(outcome.card, outcome.provider))
    for error in outcome.provider_errors:
        rprint(f"[dim]  fallback: {error}[/dim]")

    if image_path is None:
        return 0

    try:
        client = registry.image_client()
    except ConfigurationError as e:
        rprint(f"[red]✗[/red] {coarse_user_message(e)} ({e})")
        return 1

    with console.status("Drawing illustration..."):
        result = await client.generate_image(outcome.card.model_dump(mode="json"))
    if not result.ok:
        rprint(f"[red]✗[/red] {coarse_user_message(result.error)} ({result.error})")
        return 1

    image_path.parent.mkdir(parents=True, exist_ok=True)
    image_path.write_bytes(base64.b64decode(result.value.base64_data))
    rprint(f"[green]✓[/green] Illustration saved to {image_path} ({result.value.mime_type})")
    return 0


@app.command("ask")
def ask(
    question: str = typer.Argument(..., help="The child's question"),
    image: Optional[Path] = typer.Option(
        None, "--image", "-i", help="Also generate an illustration and save it here"
    ),
) -> None:
    """Generate a knowledge card for QUESTION."""
    exit_code = asyncio.run(_generate(question, image))
    raise typer.Exit(code=exit_code)


@app.command("providers")
def show_providers() -> None:
    """Show provider configuration (keys are never printed)."""
    settings = get_settings()
    configured = settings.get_configured_providers()

    table = Table(title="Providers")
    table.add_column("Provider", style="cyan")
    table.add_column("Role")
    table.add_column("API Key")
    table.add_column("Model", style="dim")

    roles: dict[str, list[str]] = {name: [] for name in configured}
    slots = (settings.card_primary_provider, settings.card_secondary_provider)
    for source, name in zip(("primary", "secondary"), slots):
        if name in roles and not any(r.startswith("card") for r in roles[name]):
            roles[name].append(f"card {source}")
    roles["gemini"].append("image")

    models = {
        "glm": settings.glm_model,
        "gemini": f"{settings.gemini_text_model} / {settings.gemini_image_model}",
    }
    for name, is_set in configured.items():
        table.add_row(
            name,
            ", ".join(roles[name]) or "-",
            "[green]set[/green]" if is_set else "[red]not set[/red]",
            models[name],
        )

    console.print(table)
    rprint(
        f"Rate limit: {settings.rate_limit_requests} requests / "
        f"{settings.rate_limit_window_seconds:g}s, length policy: {settings.card_length_policy}"
    )


@app.command("serve")
def serve(
    host: Optional[str] = typer.Option(None, help="Bind address (default from settings)"),
    port: Optional[int] = typer.Option(None, help="Port (default from settings)"),
    reload: bool = typer.Option(False, help="Auto-reload on code changes"),
) -> None:
    """Run the HTTP API."""
    import uvicorn

    settings = get_settings()
    logger.info("Starting API server")
    uvicorn.run(
        "src.api.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
