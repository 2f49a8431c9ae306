from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from .config import load_settings
from .llm import OpenAIChatBackend, is_valid_gguf
from .logging import configure_logging
from .models import FileType, ParsedData
from .service import AnalysisError, AnalyticsService, ImportFailure, ImportProgress, ImportSuccess
from .utils import write_json

app = typer.Typer(add_completion=False, help="Analytics Context (CSV/JSON/log -> LLM prompt context)")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at INFO level")) -> None:
    settings = load_settings()
    configure_logging(
        log_level="INFO" if verbose else settings.log_level,
        log_format=settings.log_format,
    )


def _load(service: AnalyticsService, path: Path, file_type: Optional[FileType], max_rows: Optional[int]) -> ParsedData:
    """Run an import to completion; progress goes to stderr."""
    for event in service.import_file(path, file_type=file_type, max_rows=max_rows):
        if isinstance(event, ImportProgress):
            if event.message:
                typer.echo(f"[{event.progress:>4.0%}] {event.message}", err=True)
        elif isinstance(event, ImportSuccess):
            return event.parsed_data
        elif isinstance(event, ImportFailure):
            raise AnalysisError(event.message)
    raise AnalysisError("Import finished without a result")


@app.command()
def inspect(
    file: Path = typer.Argument(..., help="CSV, JSON/JSONL or log file"),
    file_type: Optional[FileType] = typer.Option(None, "--type", help="Override type detected from the extension", case_sensitive=False),
    max_rows: Optional[int] = typer.Option(None, "--max-rows", min=1, help="Preview row cap"),
    preview: int = typer.Option(0, "--preview", min=0, help="Print the first N loaded rows"),
):
    """
    Parse a file and print its schema and column statistics.
    """
    try:
        if not file.exists():
            raise FileNotFoundError(f"File not found: {file}")
        service = AnalyticsService()
        data = _load(service, file, file_type, max_rows)
        stats = service.compute_statistics(data)

        typer.echo(f"File: {file.name}")
        sampled = f" (showing first {data.loaded_row_count})" if data.is_sampled else ""
        typer.echo(f"Rows: {data.total_row_count}{sampled}")
        typer.echo("")
        typer.echo("Schema:")
        typer.echo(data.schema.to_schema_string())
        typer.echo("")
        typer.echo(stats.to_summary_string().rstrip())
        if preview:
            typer.echo("")
            typer.echo(data.to_frame().head(preview).to_string(index=False))
    except FileNotFoundError as e:
        typer.echo(f"ERROR: {e}")
        raise typer.Exit(code=2)
    except Exception as e:  # noqa: BLE001
        typer.echo(f"ERROR: {e}")
        raise typer.Exit(code=1)


@app.command()
def context(
    file: Path = typer.Argument(..., help="CSV, JSON/JSONL or log file"),
    file_type: Optional[FileType] = typer.Option(None, "--type", help="Override type detected from the extension", case_sensitive=False),
    max_rows: Optional[int] = typer.Option(None, "--max-rows", min=1, help="Preview row cap"),
    out: Optional[Path] = typer.Option(None, "--out", help="Also write the context as JSON to this path"),
):
    """
    Build the token-budgeted prompt context for a file.
    """
    try:
        if not file.exists():
            raise FileNotFoundError(f"File not found: {file}")
        service = AnalyticsService()
        data = _load(service, file, file_type, max_rows)
        ctx = service.build_context(data, service.compute_statistics(data))

        typer.echo(ctx.to_prompt_context().rstrip())
        typer.echo("")
        typer.echo(f"Estimated tokens: {ctx.estimated_tokens}")
        if out is not None:
            write_json(out, ctx.model_dump(mode="json"))
            typer.echo(f"Context written: {out}")
    except FileNotFoundError as e:
        typer.echo(f"ERROR: {e}")
        raise typer.Exit(code=2)
    except Exception as e:  # noqa: BLE001
        typer.echo(f"ERROR: {e}")
        raise typer.Exit(code=1)


@app.command()
def ask(
    file: Path = typer.Argument(..., help="CSV, JSON/JSONL or log file"),
    question: str = typer.Option(..., "--question", help="Question about the data"),
    file_type: Optional[FileType] = typer.Option(None, "--type", help="Override type detected from the extension", case_sensitive=False),
    llm: bool = typer.Option(True, "--llm/--no-llm", help="Use LLM if configured (default: on)"),
):
    """Ask a question about a file.

    Behavior:
    - With OPENAI_API_KEY set (and --llm), streams the model's answer.
    - Otherwise prints the full prompt that would be sent.
    """
    try:
        if not file.exists():
            raise FileNotFoundError(f"File not found: {file}")
        service = AnalyticsService()
        data = _load(service, file, file_type, None)
        ctx = service.build_context(data, service.compute_statistics(data))

        backend = OpenAIChatBackend.from_env(service.settings.llm_model) if llm else None
        if backend is None:
            typer.echo(ctx.system_prompt)
            typer.echo("")
            typer.echo(service.build_prompt(ctx, question).rstrip())
            return

        for chunk in service.ask(question, ctx, backend):
            typer.echo(chunk, nl=False)
        typer.echo("")
    except FileNotFoundError as e:
        typer.echo(f"ERROR: {e}")
        raise typer.Exit(code=2)
    except Exception as e:  # noqa: BLE001
        typer.echo(f"ERROR: {e}")
        raise typer.Exit(code=1)


@app.command("validate-model")
def validate_model(path: Path = typer.Argument(..., help="Path to a .gguf model file")):
    """
    Check that a local model file carries the GGUF magic header.
    """
    if not is_valid_gguf(path):
        typer.echo(f"ERROR: not a valid GGUF model: {path}")
        raise typer.Exit(code=1)
    typer.echo(f"OK: {path}")


if __name__ == "__main__":
    app()
