"""CLI commands for aula-docente.

- init-db: Create the SQLite schema
- create-docente: Register a docente account
- serve: Run the HTTP API with uvicorn
- worker: Drain the job queues (``--loop`` to keep polling)
- crossword / word-search: Preview puzzle layouts from a word file
"""

import csv
import json
import time
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from aula.config import load_app_config
from aula.core import cuentas, worker
from aula.db import init_db
from aula.errors import AulaError
from aula.llm.client import LLMClient
from aula.puzzles import generate_crossword, generate_word_search
from aula.scripts.client import ScriptClient

app = typer.Typer(
    name="aula",
    help="Course management backend for university teachers.",
    no_args_is_help=True,
)

console = Console()


def _init_configured_db() -> Path:
    db_path = Path(load_app_config().database.path)
    init_db(db_path)
    return db_path


def _read_word_file(path: Path) -> list[Any]:
    """Rows of a JSON list or a CSV file (header optional, first columns used)."""
    if not path.exists():
        console.print(f"[red]✗ No existe el archivo: {path}[/red]")
        raise typer.Exit(code=1)

    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            console.print(f"[red]✗ JSON inválido: {e}[/red]")
            raise typer.Exit(code=1)
        if not isinstance(data, list):
            console.print("[red]✗ El JSON debe ser una lista.[/red]")
            raise typer.Exit(code=1)
        return data

    rows = [row for row in csv.reader(text.splitlines()) if any(c.strip() for c in row)]
    if rows and [c.strip().lower() for c in rows[0]][:2] in (["clue", "answer"], ["pista", "palabra"]):
        rows = rows[1:]
    return rows


def _print_grid(grid: list[list[str | None]]) -> None:
    for row in grid:
        console.print(" ".join(cell or "·" for cell in row))


@app.command(name="init-db")
def init_db_command() -> None:
    """Create the database schema (idempotent)."""
    db_path = _init_configured_db()
    console.print(f"[green]✓ Base de datos lista:[/green] {db_path}")


@app.command(name="create-docente")
def create_docente(
    email: str = typer.Argument(..., help="Login email"),
    nombre: str = typer.Option(..., "--nombre", "-n", help="Display name"),
    password: str = typer.Option(
        ..., "--password", "-p", prompt=True, hide_input=True, confirmation_prompt=True
    ),
) -> None:
    """Register a docente account."""
    _init_configured_db()
    try:
        docente = cuentas.register_docente(email, nombre, password)
    except AulaError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)
    console.print(f"[green]✓ Docente creado[/green] (id={docente.id}, {docente.email})")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", help="Port"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on code changes"),
) -> None:
    """Run the HTTP API."""
    import uvicorn

    uvicorn.run("aula.web.api:app", host=host, port=port, reload=reload)


@app.command(name="worker")
def run_worker(
    loop: bool = typer.Option(False, "--loop", help="Keep polling instead of exiting when idle"),
    interval: float | None = typer.Option(
        None, "--interval", "-i", help="Seconds between polls (default from config)"
    ),
) -> None:
    """Process every queue stage until there is no work left.

    With --loop the queues are polled forever, replacing the per-stage
    cron triggers.
    """
    config = load_app_config()
    _init_configured_db()
    if interval is None:
        interval = config.grading.worker_poll_seconds

    llm = LLMClient()
    script = ScriptClient.from_config()
    if not script.is_configured:
        console.print("[yellow]⚠ Script remoto no configurado: las etapas remotas fallarán.[/yellow]")

    while True:
        processed = worker.run_once(llm, script)
        total = sum(processed.values())
        if total:
            summary = ", ".join(f"{k}={v}" for k, v in processed.items() if v)
            console.print(f"[green]✓ {total} trabajos procesados[/green] ({summary})")
        elif not loop:
            console.print("[dim]No hay trabajos pendientes.[/dim]")
        if not loop:
            break
        time.sleep(interval)


@app.command()
def crossword(
    file: Path = typer.Argument(..., help="JSON list of {clue, answer} or CSV clue,answer"),
    as_json: bool = typer.Option(False, "--json", help="Print the layout as JSON"),
) -> None:
    """Preview a crossword layout."""
    rows = _read_word_file(file)
    entries = [
        row if isinstance(row, dict) else {"clue": row[0], "answer": row[1] if len(row) > 1 else ""}
        for row in rows
    ]
    limits = load_app_config().puzzles
    layout = generate_crossword(
        entries,
        max_retries=limits.crossword_max_retries,
        max_passes=limits.crossword_max_passes,
        margin=limits.crossword_margin,
    )
    if not layout.words:
        console.print("[red]✗ No se pudo colocar ninguna palabra.[/red]")
        raise typer.Exit(code=1)

    if as_json:
        console.print_json(json.dumps(layout.to_dict(), ensure_ascii=False))
        return

    _print_grid(layout.table)
    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Dir")
    table.add_column("Respuesta")
    table.add_column("Pista")
    for word in layout.words:
        table.add_row(str(word.number), word.orientation, word.answer, word.clue)
    console.print(table)
    if layout.unplaced:
        console.print(f"[yellow]⚠ Sin colocar: {', '.join(layout.unplaced)}[/yellow]")


@app.command(name="word-search")
def word_search(
    file: Path = typer.Argument(..., help="JSON list of words or CSV with one word per row"),
    rows: int = typer.Option(10, "--rows", "-r", help="Requested rows"),
    cols: int = typer.Option(10, "--cols", "-c", help="Requested columns"),
    no_fill: bool = typer.Option(False, "--no-fill", help="Leave empty cells blank"),
    seed: int | None = typer.Option(None, "--seed", help="Seed for a reproducible grid"),
) -> None:
    """Preview a word search grid."""
    data = _read_word_file(file)
    words = [row if isinstance(row, str) else row[0] for row in data if row]
    limits = load_app_config().puzzles
    try:
        layout = generate_word_search(
            words,
            rows,
            cols,
            backtrack_limit=limits.word_search_backtrack_limit,
            fill_random=not no_fill,
            max_retries=limits.word_search_max_retries,
            seed=seed,
        )
    except AulaError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    _print_grid(layout.grid)
    console.print(f"[dim]{layout.final_rows}x{layout.final_cols}, {len(layout.words)} palabras[/dim]")
    if layout.error:
        console.print(f"[yellow]⚠ {layout.error}[/yellow]")


if __name__ == "__main__":
    app()
