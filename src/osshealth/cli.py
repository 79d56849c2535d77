"""CLI entry point for osshealth."""

import asyncio
import logging
from pathlib import Path

# Load .env file if it exists
from dotenv import load_dotenv
load_dotenv()

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from osshealth.adapters.base import parse_repo_target
from osshealth.analyzers.github import RepositoryAccessDeniedError, RepositoryNotFoundError
from osshealth.analyzers.insights import InsightType, generate_insights, health_status
from osshealth.analyzers.pipeline import AnalysisPipeline
from osshealth.config import Settings
from osshealth.export import write_csv, write_json_report
from osshealth.models.schemas import AnalysisResult

app = typer.Typer(help="Open source repository health scoring tool.")

console = Console()
logger = logging.getLogger(__name__)


def build_pipeline(settings: Settings) -> AnalysisPipeline:
    """Build the pipeline used by every command."""
    return AnalysisPipeline.from_settings(settings)


def _load_settings() -> Settings:
    settings = Settings.from_env()
    if not settings.github_token:
        logger.warning("GITHUB_TOKEN is not set; GitHub rate limits will be low")
    return settings


def _parse_target(target: str) -> tuple[str, str]:
    ref = parse_repo_target(target)
    if ref is None:
        console.print(f"[red]Not a repository: {target} (expected OWNER/REPO or a URL)[/red]")
        raise typer.Exit(1)
    return ref.owner, ref.repo


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Configure logging for all commands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
        force=True,
    )


@app.command()
def analyze(
    target: str = typer.Argument(..., help="Repository as OWNER/REPO or a GitHub URL"),
    json_path: Path | None = typer.Option(None, "--json", help="Write a JSON health report"),
    no_cache: bool = typer.Option(False, "--no-cache", help="Ignore cached results"),
) -> None:
    """Analyze the health of one repository."""
    owner, repo = _parse_target(target)
    result = asyncio.run(_analyze(owner, repo, use_cache=not no_cache))
    _print_result(result)

    if json_path:
        write_json_report(result, json_path)
        console.print(f"\n[green]Saved to {json_path}[/green]")


async def _analyze(owner: str, repo: str, use_cache: bool) -> AnalysisResult:
    """Async implementation of analyze."""
    async with build_pipeline(_load_settings()) as pipeline:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            progress.add_task(f"Analyzing {owner}/{repo}...", total=None)
            return await _run_analysis(pipeline, owner, repo, use_cache)


async def _run_analysis(
    pipeline: AnalysisPipeline, owner: str, repo: str, use_cache: bool = True
) -> AnalysisResult:
    try:
        return await pipeline.analyze(owner, repo, use_cache=use_cache)
    except RepositoryNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    except RepositoryAccessDeniedError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    except Exception as e:
        logger.debug("Analysis failed", exc_info=True)
        console.print(f"[red]Error analyzing {owner}/{repo}: {e}[/red]")
        raise typer.Exit(1)


def _score_color(score: int) -> str:
    return "green" if score >= 80 else "yellow" if score >= 60 else "red"


def _score_bar(score: float, width: int = 20) -> str:
    """Create a visual score bar."""
    filled = int(score / 100 * width)
    empty = width - filled
    color = _score_color(score)
    return f"[{color}]{'█' * filled}[/{color}][dim]{'░' * empty}[/dim]"


def _print_result(result: AnalysisResult) -> None:
    repo = result.repository
    metrics = result.metrics

    console.print()
    console.print(f"[bold cyan]{repo.full_name}[/bold cyan]")
    if repo.description:
        console.print(f"[dim]{repo.description}[/dim]")
    console.print(
        f"Stars: {repo.stargazers_count:,}  Forks: {repo.forks_count:,}  "
        f"Language: {repo.language or 'N/A'}  "
        f"License: {(repo.license.name if repo.license else None) or 'N/A'}"
    )
    console.print()

    color = _score_color(metrics.overall)
    console.print(
        Panel(
            f"[bold][{color}]{metrics.overall}[/{color}][/bold] / 100  "
            f"Status: [bold]{health_status(metrics.overall)}[/bold]",
            title="Overall Health Score",
            expand=False,
        )
    )
    console.print()

    table = Table(title="Score Breakdown", show_header=True)
    table.add_column("Category", style="bold")
    table.add_column("Score", justify="right")
    table.add_column("Status")
    table.add_column("Bar", width=20)

    for name, score in metrics.sub_scores().items():
        c = _score_color(score)
        table.add_row(name.title(), f"[{c}]{score}[/{c}]", health_status(score), _score_bar(score))

    console.print(table)

    insights = generate_insights(result)
    if insights:
        console.print()
        console.print("[bold]Insights:[/bold]")
        markers = {
            InsightType.SUCCESS: "[green]+[/green]",
            InsightType.WARNING: "[yellow]![/yellow]",
            InsightType.INFO: "[blue]i[/blue]",
        }
        for insight in insights:
            console.print(f"  {markers[insight.type]} [bold]{insight.category}:[/bold] {insight.message}")


@app.command()
def compare(
    targets: list[str] = typer.Argument(..., help="Repositories as OWNER/REPO or URLs"),
    csv_path: Path | None = typer.Option(None, "--csv", help="Write the comparison as CSV"),
) -> None:
    """Compare the health of several repositories side by side."""
    parsed = [_parse_target(t) for t in targets]
    results = asyncio.run(_compare(parsed))

    table = Table(title="Repository Comparison")
    table.add_column("Repository", style="cyan")
    table.add_column("Overall", justify="right")
    for name in ("Popularity", "Activity", "Maintenance", "Security", "Community"):
        table.add_column(name, justify="right")

    for result in results:
        scores = result.metrics.sub_scores()
        c = _score_color(result.metrics.overall)
        table.add_row(
            result.repository.full_name,
            f"[{c}]{result.metrics.overall}[/{c}]",
            *(str(score) for score in scores.values()),
        )
    console.print(table)

    if csv_path:
        with csv_path.open("w", newline="") as f:
            write_csv(results, f)
        console.print(f"\n[green]Saved to {csv_path}[/green]")


async def _compare(targets: list[tuple[str, str]]) -> list[AnalysisResult]:
    """Async implementation of compare."""
    results = []
    async with build_pipeline(_load_settings()) as pipeline:
        for owner, repo in targets:
            console.print(f"[dim]Analyzing {owner}/{repo}...[/dim]")
            results.append(await _run_analysis(pipeline, owner, repo))
    return results


@app.command()
def trending(
    language: str | None = typer.Option(None, "--language", "-l", help="Filter by language"),
) -> None:
    """List the most-starred repositories on GitHub."""
    repos = asyncio.run(_trending(language))

    title = f"Top {language} Repositories" if language else "Top Repositories"
    table = Table(title=title)
    table.add_column("Rank", style="dim", width=6)
    table.add_column("Repository", style="cyan")
    table.add_column("Description", max_width=60)
    table.add_column("Stars", justify="right", style="green")

    for i, repo in enumerate(repos, 1):
        table.add_row(
            str(i),
            repo.get("full_name", ""),
            (repo.get("description") or "")[:60],
            f"{repo.get('stargazers_count', 0):,}",
        )
    console.print(table)


async def _trending(language: str | None) -> list[dict]:
    """Async implementation of trending."""
    async with build_pipeline(_load_settings()) as pipeline:
        try:
            return await pipeline.trending(language)
        except Exception as e:
            console.print(f"[red]Error fetching trending repositories: {e}[/red]")
            raise typer.Exit(1)


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", help="Bind address (default: HOST or 127.0.0.1)"),
    port: int | None = typer.Option(None, "--port", "-p", help="Port (default: PORT or 5000)"),
) -> None:
    """Run the HTTP API server."""
    import uvicorn

    from osshealth.server import create_app

    settings = _load_settings()
    bind_host = host or settings.host
    bind_port = port or settings.port
    console.print(f"Serving on http://{bind_host}:{bind_port}")
    uvicorn.run(create_app(settings=settings), host=bind_host, port=bind_port)


@app.command()
def version() -> None:
    """Show version information."""
    from osshealth import __version__

    console.print(f"osshealth v{__version__}")


if __name__ == "__main__":
    app()
