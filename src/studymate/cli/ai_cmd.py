"""CLI AI commands — status, chat, summarize, quiz, flashcards, plan, image, transcribe."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Awaitable

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

ai_app = typer.Typer(help="Run AI builders against the configured providers")
console = Console()


def _run(coro: Awaitable[Any]) -> Any:
    """Run a builder coroutine, printing the user-safe message on failure."""
    from studymate.ai import StudyMateAIError

    try:
        return asyncio.run(coro)
    except StudyMateAIError as exc:
        console.print(f"[bold red]❌ {exc.user_message}[/bold red]")
        console.print("[yellow]Run with -v or check 'studymate doctor' for details.[/yellow]")
        raise typer.Exit(1)


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        console.print(f"[red]Cannot read {path}:[/red] {exc}")
        raise typer.Exit(1)


def _assistant():
    from studymate.ai import get_assistant

    return get_assistant()


# ── status ────────────────────────────────────────────────────────────

@ai_app.command()
def status() -> None:
    """Show the active text provider and model (no network call)."""
    from studymate.ai import ConfigError

    try:
        info = _assistant().get_api_config()
    except ConfigError as exc:
        console.print(f"[bold red]❌ {exc}[/bold red]")
        raise typer.Exit(1)

    table = Table(title="AI Status", show_lines=True, header_style="bold cyan")
    table.add_column("Property", style="bold yellow")
    table.add_column("Value")
    table.add_row("AI Enabled", "[green]yes[/green]" if info["is_ai_enabled"] else "[red]no[/red]")
    table.add_row("Provider", info["provider"])
    table.add_row("API Key", "[green]set[/green]" if info["configured"] else "[red]not set[/red]")
    table.add_row("Chat Model", info["model"])
    table.add_row("Max Tokens", str(info["max_tokens"]))
    table.add_row("Temperature", str(info["temperature"]))
    table.add_row("Base URL", info["base_url"])
    console.print(table)


# ── text builders ─────────────────────────────────────────────────────

@ai_app.command()
def chat(message: str = typer.Argument(help="Message to send to the study assistant")) -> None:
    """Send a single chat message."""
    reply = _run(_assistant().get_ai_chat_response([{"role": "user", "content": message}]))
    console.print(Panel(reply, title="StudyMate", style="cyan"))


@ai_app.command()
def summarize(path: Path = typer.Argument(help="Text file with notes to summarize")) -> None:
    """Summarize a notes file into key bullet points."""
    summary = _run(_assistant().summarize_text(_read_text(path)))
    console.print(Panel(summary, title="Summary", style="cyan"))


@ai_app.command()
def quiz(
    path: Path = typer.Argument(help="Text file to base the quiz on"),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON"),
) -> None:
    """Generate a multiple-choice quiz from a text file."""
    data = _run(_assistant().generate_quiz(_read_text(path)))
    if as_json:
        console.print_json(json.dumps(data))
        return

    for i, q in enumerate(data["questions"], start=1):
        options = q.get("options") or []
        answer = q.get("answer")
        lines = [f"[bold]{q.get('question', '?')}[/bold]"]
        for j, opt in enumerate(options):
            marker = "✅" if j == answer else "  "
            lines.append(f" {marker} {chr(65 + j)}. {opt}")
        if q.get("explanation"):
            lines.append(f"\n[dim]{q['explanation']}[/dim]")
        console.print(Panel("\n".join(lines), title=f"Question {i}", style="green"))


@ai_app.command()
def flashcards(path: Path = typer.Argument(help="Study material file")) -> None:
    """Generate flashcards from study material."""
    cards = _run(_assistant().generate_flashcards(_read_text(path)))

    table = Table(title="Flashcards", show_lines=True, header_style="bold cyan")
    table.add_column("Front", style="bold yellow")
    table.add_column("Back")
    for card in cards:
        table.add_row(str(card.get("front", "")), str(card.get("back", "")))
    console.print(table)


@ai_app.command()
def plan(
    subjects: str = typer.Option(..., "--subjects", "-s", help="Comma-separated subjects"),
    goals: str = typer.Option(..., "--goals", "-g", help="What you want to achieve today"),
) -> None:
    """Generate a study plan for today."""
    items = _run(_assistant().generate_study_plan(subjects, goals))

    table = Table(title="Your Study Plan for Today", show_lines=True, header_style="bold cyan")
    table.add_column("Time", style="bold yellow", no_wrap=True)
    table.add_column("Subject")
    table.add_column("Task")
    for item in items:
        if isinstance(item, dict):
            table.add_row(str(item.get("time", "")), str(item.get("subject", "")), str(item.get("task", "")))
    console.print(table)


# ── image / audio ─────────────────────────────────────────────────────

@ai_app.command()
def image(
    prompt: str = typer.Argument(help="Description of the image"),
    size: str = typer.Option("1024x1024", "--size", help="Image size"),
) -> None:
    """Generate an image and print its URL."""
    url = _run(_assistant().generate_image(prompt, size=size))
    console.print(f"🖼️  {url}")


@ai_app.command()
def transcribe(
    path: Path = typer.Argument(help="Audio file (m4a, mp3, wav, webm)"),
    language: str = typer.Option("en", "--language", "-l", help="Spoken language (ISO-639-1)"),
    prompt: str = typer.Option(None, "--prompt", help="Optional context to guide transcription"),
) -> None:
    """Transcribe an audio recording."""
    text = _run(_assistant().transcribe_audio(path, language=language, prompt=prompt))
    console.print(Panel(text or "(no speech detected)", title="Transcript", style="cyan"))
