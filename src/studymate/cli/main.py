"""Main CLI commands — config show, doctor."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from studymate.cli.ai_cmd import ai_app

app = typer.Typer(
    name="studymate",
    help="StudyMate — developer tooling for the study assistant AI layer.",
    add_completion=False,
    rich_markup_mode="rich",
)
app.add_typer(ai_app, name="ai", help="Run AI builders against the configured providers")

config_app = typer.Typer(help="Inspect configuration")
app.add_typer(config_app, name="config")

console = Console()


def _setup_logging(verbose: bool = False) -> None:
    from studymate.config import get_settings
    from studymate.logging_config import configure_logging

    settings = get_settings()
    level = "DEBUG" if verbose else settings.log_level
    configure_logging(level=level, log_file=settings.log_file, json_format=settings.log_json)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """StudyMate CLI root."""
    _setup_logging(verbose)


# ── config show ───────────────────────────────────────────────────────

@config_app.command(name="show")
def config_show() -> None:
    """Print resolved configuration (API keys masked)."""
    from studymate.config import get_settings

    display = get_settings().as_display_dict()

    table = Table(title="StudyMate Configuration", show_lines=True, header_style="bold cyan")
    table.add_column("Setting", style="bold yellow", no_wrap=True)
    table.add_column("Value")
    for key, val in display.items():
        table.add_row(key, val)

    console.print(table)


# ── doctor ────────────────────────────────────────────────────────────

@app.command()
def doctor() -> None:
    """Check feature flags and provider resolution for every capability (no network)."""
    from studymate.ai import Capability, ConfigError, ConfigResolver, Task
    from studymate.config import get_settings

    settings = get_settings()
    resolver = ConfigResolver(settings)

    console.print(Panel("🩺 [bold]StudyMate Doctor[/bold]", style="cyan"))

    console.print("\n[bold]Feature flags:[/bold]")
    flag = "✅" if settings.ai_features_enabled else "❌"
    console.print(f"  {flag} AI features enabled: {settings.ai_features_enabled}")
    flag = "✅" if settings.voice_control_enabled else "⚠️ "
    console.print(f"  {flag} Voice control enabled: {settings.voice_control_enabled}")

    console.print("\n[bold]Providers:[/bold]")
    problems = 0
    for capability in Capability:
        try:
            provider = resolver.get_active_provider_config(capability)
        except ConfigError as exc:
            problems += 1
            console.print(f"  ❌ {capability.value}: {exc}")
            continue
        tasks = [t for t in Task if t.capability is capability]
        models = ", ".join(f"{t.value.lower()}={provider.models[t].model}" for t in tasks)
        console.print(f"  ✅ {capability.value}: {provider.provider.value} ({provider.base_url}) {models}")

    if problems:
        console.print(f"\n[yellow]{problems} capability(ies) unavailable. Check your .env.[/yellow]")
        raise typer.Exit(1)
