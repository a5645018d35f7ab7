"""
Study Item Generator - CLI Entry Point
---------------------------------------
Exposes Typer commands for each generator and for inspecting chunk plans.

Usage:
    python -m studygen.main quiz notes.txt --count 10
    python -m studygen.main quiz notes.txt --type multi-select --translate
    python -m studygen.main flashcards notes.txt --count 20 --out cards.json
    python -m studygen.main plan notes.txt --count 18      # no remote calls
"""
from __future__ import annotations

import sys

# Windows cp1252 terminal fix: force UTF-8 so Arabic output does not crash
# the Rich console renderer.
if sys.platform == "win32":
    sys.stdout.reconfigure(encoding="utf-8", errors="replace")
    sys.stderr.reconfigure(encoding="utf-8", errors="replace")

import asyncio
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from studygen.chunking.chunker import ChunkBuilder
from studygen.chunking.planner import ChunkPlanner
from studygen.generation.generator import build_item_generator
from studygen.schemas import GenerationParams, GenerationResult, QuestionType, QuizQuestion
from studygen.utils.helpers import clean_text, load_config, save_json, truncate_text
from studygen.utils.logger import setup_logger

app = typer.Typer(
    name="studygen",
    help="Chunked quiz and flashcard generation from study material",
    add_completion=False,
)
console = Console()


# --- Helpers ------------------------------------------------------------------

def _read_source(path: Path) -> str:
    if not path.exists():
        console.print(f"[red]File not found:[/red] {path}")
        raise typer.Exit(1)
    text = clean_text(path.read_text(encoding="utf-8", errors="replace"))
    if not text:
        console.print(f"[red]File is empty:[/red] {path}")
        raise typer.Exit(1)
    return text


def _setup(config_path: str) -> dict:
    load_dotenv()
    cfg = load_config(config_path)
    log_cfg = cfg.get("logging", {})
    setup_logger(log_cfg.get("level", "INFO"), log_cfg.get("file", "logs/studygen.log"))
    return cfg


def _run(
    kind: str,
    path: Path,
    count: int,
    params: GenerationParams,
    translate: bool,
    out: Optional[Path],
    config_path: str,
) -> None:
    cfg = _setup(config_path)
    text = _read_source(path)
    generator = build_item_generator(kind, cfg)

    with console.status(f"[cyan]Generating {count} {generator.kind.noun}...[/cyan]"):
        result = asyncio.run(generator.generate(text, count, params, translate=translate))

    _print_result(result)
    if out is not None:
        save_json(result.to_dict(), out)
        console.print(f"[green]Saved[/green] {out}")


def _print_result(result: GenerationResult) -> None:
    """Render items and run metadata to the terminal using Rich."""
    for index, item in enumerate(result.items, start=1):
        if isinstance(item, QuizQuestion):
            answers = set(item.correct_answers)
            lines = [f"[bold]{item.text}[/bold]", ""]
            for opt in item.options:
                mark = "[green]*[/green]" if opt.id in answers else " "
                lines.append(f" {mark} {opt.id}) {opt.text}")
            lines += ["", f"[dim]{item.explanation}[/dim]"]
            title = f"Q{index} | {item.type.value}"
        else:
            lines = [f"[bold]{item.question}[/bold]", "", item.answer]
            title = f"Card {index}"
        if item.translation_error:
            lines.append(f"[yellow]translation: {item.translation_error}[/yellow]")
        console.print(Panel("\n".join(lines), title=title, border_style="cyan", expand=True))

    meta = result.metadata
    method_style = "green" if meta.generation_method.value == "hybrid" else "red"
    console.print(
        f"[dim]"
        f"strategy={meta.chunking_strategy}  "
        f"chunks={meta.chunks_processed} (failed {meta.chunks_failed})  "
        f"structured={meta.structured_count}  fallback={meta.fallback_items}  "
        f"total={meta.total_time_ms / 1000:.1f}s"
        f"[/dim]  method=[{method_style}]{meta.generation_method.value}[/{method_style}]"
    )
    if meta.translation is not None:
        console.print(
            f"[dim]translation: {meta.translation.translated}/{meta.translation.total} "
            f"({meta.translation.success_rate}%)[/dim]"
        )
    if meta.error:
        console.print(f"[red]error:[/red] {meta.error}")


# --- Commands -----------------------------------------------------------------

@app.command()
def quiz(
    path: Path = typer.Argument(..., help="Text file with the study material"),
    count: int = typer.Option(5, "--count", "-n", min=1, help="Number of questions"),
    difficulty: str = typer.Option("medium", "--difficulty", "-d", help="easy | medium | hard"),
    question_type: QuestionType = typer.Option(
        QuestionType.MULTIPLE_CHOICE, "--type", "-t", help="Question type"
    ),
    translate: bool = typer.Option(False, "--translate", help="Translate items to Arabic"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write result JSON here"),
    config: str = typer.Option("config/config.yaml", "--config", "-c", help="Config YAML"),
) -> None:
    """Generate quiz questions from a text file."""
    params = GenerationParams(item_type=question_type.value, difficulty=difficulty)
    _run("quiz", path, count, params, translate, out, config)


@app.command()
def flashcards(
    path: Path = typer.Argument(..., help="Text file with the study material"),
    count: int = typer.Option(10, "--count", "-n", min=1, help="Number of flashcards"),
    difficulty: str = typer.Option("medium", "--difficulty", "-d", help="easy | medium | hard"),
    translate: bool = typer.Option(False, "--translate", help="Translate items to Arabic"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write result JSON here"),
    config: str = typer.Option("config/config.yaml", "--config", "-c", help="Config YAML"),
) -> None:
    """Generate flashcards from a text file."""
    params = GenerationParams(item_type="flashcard", difficulty=difficulty)
    _run("flashcard", path, count, params, translate, out, config)


@app.command()
def plan(
    path: Path = typer.Argument(..., help="Text file with the study material"),
    count: int = typer.Option(10, "--count", "-n", min=1, help="Target item count"),
    config: str = typer.Option("config/config.yaml", "--config", "-c", help="Config YAML"),
) -> None:
    """Show the chunking strategy and chunks for a file (no remote calls)."""
    cfg = load_config(config)
    text = _read_source(path)
    chunk_cfg = cfg.get("chunking", {})

    strategy = ChunkPlanner(chunk_cfg).plan(text, count)
    chunks = ChunkBuilder(chunk_cfg).build(text, strategy)

    console.print()
    console.print(
        f"[bold]{strategy.label.value}[/bold]  {len(text):,} chars  "
        f"chunk_size={strategy.chunk_size:,}  overlap={strategy.overlap_size:,}"
    )
    table = Table(
        "No.", "Start", "End", "Chars", "Tokens", "Preview",
        box=box.SIMPLE,
        show_header=True,
        header_style="bold dim",
    )
    for chunk in chunks:
        table.add_row(
            str(chunk.id),
            f"{chunk.start_offset:,}",
            f"{chunk.end_offset:,}",
            f"{len(chunk.text):,}",
            str(chunk.estimated_tokens),
            truncate_text(chunk.text.replace("\n", " "), 50),
        )
    console.print(table)


# --- Entry Point --------------------------------------------------------------

if __name__ == "__main__":
    app()
