"""Command-line interface using Typer."""

from typing import Optional
from uuid import UUID

import typer
from rich.console import Console
from rich.table import Table

from movie_engine import __version__
from movie_engine.logging import setup_logging

# Setup logging
setup_logging()

app = typer.Typer(
    name="movie-engine",
    help="Movie Engine - movie generation pipeline CLI",
    add_completion=False,
)

providers_app = typer.Typer(help="Provider binding commands")
app.add_typer(providers_app, name="providers")

console = Console()

STATUS_STYLES = {
    "pending": "dim",
    "running": "yellow",
    "completed": "green",
    "failed": "red",
}


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"Movie Engine v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Movie Engine - generate movies from a prompt."""
    pass


@providers_app.command("status")
def providers_status(
    probe: bool = typer.Option(False, "--probe", help="Call each live provider's health endpoint"),
) -> None:
    """Validate provider bindings for every capability."""
    from movie_engine.db.session import get_session_context
    from movie_engine.domain.enums import Capability
    from movie_engine.services.providers import RUN_CAPABILITIES, ProviderRegistry, ProviderSet
    from movie_engine.utils.async_utils import run_async

    with get_session_context() as session:
        registry = ProviderRegistry.from_session(session)
    validation = registry.validate(RUN_CAPABILITIES)
    providers = ProviderSet(registry)

    table = Table(title="Provider Capabilities")
    table.add_column("Capability", style="cyan")
    table.add_column("Primary")
    table.add_column("Fallback", style="dim")
    table.add_column("Status")

    for capability in Capability:
        binding = registry.binding(capability)
        if capability in validation.configured:
            state = "[yellow]simulated[/yellow]" if registry.is_simulated(capability) else "[green]ready[/green]"
            if probe and not registry.is_simulated(capability) and capability is not Capability.STORAGE:
                reachable = run_async(providers.get(capability).health_check())
                state += " (reachable)" if reachable else " [red](unreachable)[/red]"
        elif capability in validation.missing:
            state = "[red]missing (required)[/red]"
        else:
            state = "[dim]not configured[/dim]"
        table.add_row(
            capability.value,
            binding.primary_provider_id if binding else "-",
            (binding.fallback_provider_id or "-") if binding else "-",
            state,
        )

    console.print(table)
    for warning in validation.warnings:
        console.print(f"[dim]- {warning}[/dim]")

    if not validation.ok:
        console.print(f"[bold red]{validation.describe_missing()}[/bold red]")
        raise typer.Exit(code=1)
    console.print("[bold green]Required capabilities are configured[/bold green]")


@providers_app.command("add")
def providers_add(
    capability: str = typer.Argument(..., help="Capability (script, video, voice, lip_sync, music, image, storage)"),
    provider_id: str = typer.Argument(..., help="Provider adapter id, e.g. runway, openai, stub"),
    api_key: Optional[str] = typer.Option(None, "--api-key", help="Provider API key (stored encrypted)"),
    api_url: Optional[str] = typer.Option(None, "--api-url", help="Override the provider base URL"),
    model: Optional[str] = typer.Option(None, "--model", help="Provider model"),
    priority: int = typer.Option(0, "--priority", "-p", help="Lower wins; the next one is the fallback"),
    simulate: bool = typer.Option(False, "--simulate", help="Return synthetic results, no paid calls"),
) -> None:
    """Add a provider binding."""
    from movie_engine.db.models import ProviderBindingModel
    from movie_engine.db.session import get_session_context
    from movie_engine.domain.enums import Capability
    from movie_engine.services.encryption import encrypt_secret
    from movie_engine.services.providers import ADAPTERS

    try:
        cap = Capability(capability)
    except ValueError:
        console.print(f"[red]Unknown capability: {capability}[/red]")
        raise typer.Exit(code=1)
    if provider_id not in ADAPTERS[cap]:
        known = ", ".join(sorted(ADAPTERS[cap]))
        console.print(f"[red]Unknown provider '{provider_id}' for {cap.value} (known: {known})[/red]")
        raise typer.Exit(code=1)

    with get_session_context() as session:
        binding = ProviderBindingModel(
            capability=cap.value,
            provider_id=provider_id,
            name=f"{cap.value}:{provider_id}",
            api_key_encrypted=encrypt_secret(api_key) if api_key else None,
            api_url=api_url,
            config={"model": model} if model else {},
            simulation_mode=simulate,
            is_active=True,
            priority=priority,
        )
        session.add(binding)
        session.flush()
        binding_id = binding.id

    console.print(f"[green]Binding added: {binding_id}[/green]")


@providers_app.command("generate-key")
def providers_generate_key() -> None:
    """Generate an ENCRYPTION_MASTER_KEY for provider credentials."""
    from movie_engine.services.encryption import generate_master_key

    console.print(generate_master_key())


@providers_app.command("rotate-keys")
def providers_rotate_keys() -> None:
    """Re-encrypt stored credentials under the first ENCRYPTION_MASTER_KEY."""
    from movie_engine.db.models import ProviderBindingModel
    from movie_engine.db.session import get_session_context
    from movie_engine.services.encryption import EncryptionError, rotate_secret

    rotated = 0
    unreadable: list[str] = []
    with get_session_context() as session:
        bindings = (
            session.query(ProviderBindingModel)
            .filter(ProviderBindingModel.api_key_encrypted.is_not(None))
            .all()
        )
        for binding in bindings:
            try:
                binding.api_key_encrypted = rotate_secret(binding.api_key_encrypted)
            except EncryptionError:
                unreadable.append(binding.name or str(binding.id))
                continue
            rotated += 1

    console.print(f"[green]Re-encrypted {rotated} credential(s)[/green]")
    if unreadable:
        console.print(f"[red]Unreadable with current keys: {', '.join(unreadable)}[/red]")
        raise typer.Exit(code=1)


@app.command()
def create(
    prompt: str = typer.Argument(..., help="The movie idea"),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="Movie title"),
    genre: Optional[str] = typer.Option(None, "--genre", "-g", help="Genre"),
    duration: Optional[int] = typer.Option(None, "--duration", "-d", help="Target duration in seconds"),
    quality: Optional[list[str]] = typer.Option(None, "--quality", "-q", help="Quality tier (repeatable)"),
    aspect_ratio: Optional[str] = typer.Option(None, "--aspect-ratio", help="e.g. 16:9"),
    run_now: bool = typer.Option(False, "--run-now", help="Execute inline instead of triggering"),
) -> None:
    """Create a movie run and start it."""
    from movie_engine.db.models import MovieModel
    from movie_engine.db.session import get_session_context
    from movie_engine.services.trigger import dispatch_pipeline
    from movie_engine.utils.async_utils import run_async

    options = {}
    if quality:
        options["quality_tiers"] = quality
    if aspect_ratio:
        options["aspect_ratio"] = aspect_ratio

    with get_session_context() as session:
        movie = MovieModel(
            title=title,
            user_prompt=prompt,
            genre=genre,
            target_duration_seconds=duration,
            options=options,
            status="queued",
            progress=0,
        )
        session.add(movie)
        session.flush()
        movie_id = movie.id

    console.print(f"[green]Movie created: {movie_id}[/green]")

    if run_now:
        _run_inline(movie_id)
        return

    started = run_async(dispatch_pipeline(movie_id))
    if started:
        console.print(f"[dim]Pipeline started. Use 'movie-engine progress {movie_id}' to follow it[/dim]")
    else:
        console.print("[yellow]Pipeline was not started (run already claimed)[/yellow]")


@app.command()
def run(
    movie_id: str = typer.Argument(..., help="Movie ID (UUID) of a queued run"),
) -> None:
    """Execute a queued run inline."""
    _run_inline(UUID(movie_id))


def _run_inline(movie_id: UUID) -> None:
    from movie_engine.db.session import get_session_context
    from movie_engine.errors import PipelineStageError, RunNotFoundError, RunNotQueuedError
    from movie_engine.services.orchestrator import PipelineOrchestrator
    from movie_engine.services.trigger import claim_run
    from movie_engine.utils.async_utils import run_async

    with get_session_context() as session:
        claimed = claim_run(session, movie_id)
    if not claimed:
        console.print("[red]Run is not queued or was already claimed[/red]")
        raise typer.Exit(code=1)

    console.print("[bold blue]Running pipeline...[/bold blue]")
    try:
        run_async(PipelineOrchestrator(movie_id).execute())
    except (RunNotFoundError, RunNotQueuedError) as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)
    except PipelineStageError as e:
        _show_progress(movie_id)
        console.print(f"[bold red]Pipeline failed at {e.stage}: {e.message}[/bold red]")
        raise typer.Exit(code=1)

    _show_progress(movie_id)
    console.print("[bold green]Movie ready[/bold green]")


@app.command()
def serve() -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    from movie_engine.config import settings

    uvicorn.run(
        "movie_engine.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )


@app.command()
def health() -> None:
    """Ask a running API whether it is ready to accept movies."""
    import httpx

    from movie_engine.config import settings

    url = f"http://{settings.api_host}:{settings.api_port}/health/ready"
    try:
        data = httpx.get(url, timeout=10).json()
    except httpx.RequestError as e:
        console.print(f"[bold red]Cannot connect to API: {e}[/bold red]")
        raise typer.Exit(code=1)

    table = Table(title="Readiness")
    table.add_column("Component", style="cyan")
    table.add_column("Status")
    for label, key in (("Database", "database"), ("Broker", "broker"), ("Providers", "providers")):
        table.add_row(label, "[green]ok[/green]" if data.get(key) else "[red]down[/red]")
    console.print(table)

    if data.get("missing_capabilities"):
        console.print(f"[yellow]Missing: {', '.join(data['missing_capabilities'])}[/yellow]")
    if not data.get("ready"):
        raise typer.Exit(code=1)


@app.command()
def progress(
    movie_id: str = typer.Argument(..., help="Movie ID (UUID)"),
) -> None:
    """Show a run's progress."""
    from movie_engine.errors import RunNotFoundError

    try:
        _show_progress(UUID(movie_id))
    except RunNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)


def _show_progress(movie_id: UUID) -> None:
    """Display a run's progress view."""
    from movie_engine.services.progress import ProgressLedger

    view = ProgressLedger().read(movie_id)

    console.print(f"\n[bold]Movie {movie_id}[/bold]")
    console.print(f"[cyan]Status:[/cyan] {view.overall_status.value} ({view.overall_progress}%)")
    console.print(f"[cyan]Stage:[/cyan] {view.current_stage} - {view.current_stage_detail or ''}")
    if view.reconstructed:
        console.print("[dim]Reconstructed from the movie row (no progress ledger)[/dim]")

    table = Table(title="Stages")
    table.add_column("Stage", style="cyan")
    table.add_column("Status")
    table.add_column("Progress", justify="right")
    table.add_column("Detail")

    for name, record in view.stages.items():
        style = STATUS_STYLES.get(record.status.value, "")
        table.add_row(
            name,
            f"[{style}]{record.status.value}[/{style}]" if style else record.status.value,
            f"{record.progress}%",
            (record.detail or "")[:60],
        )
    console.print(table)

    stats = view.stats
    console.print(
        f"[dim]Scenes: {stats.scenes_completed}/{stats.total_scenes}"
        + (f", elapsed {stats.elapsed_time:.0f}s" if stats.elapsed_time is not None else "")
        + "[/dim]"
    )
    for error in view.errors:
        console.print(f"[red]{error.stage}: {error.message}[/red]")


if __name__ == "__main__":
    app()
