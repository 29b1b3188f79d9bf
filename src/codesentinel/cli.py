"""CLI entry point for codesentinel."""

import asyncio
import json
import os
from pathlib import Path

# Load .env file if it exists
from dotenv import load_dotenv
load_dotenv()

import httpx
import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from codesentinel.analyzers.llm import AnthropicAdapter, LLMAdapter, OllamaAdapter
from codesentinel.analyzers.pipeline import DEFAULT_LLM_TIMEOUT, AnalysisPipeline
from codesentinel.analyzers.scorer import Scorer
from codesentinel.exceptions import InvalidSnapshotInput, SnapshotNotFoundError
from codesentinel.logging_config import setup_logging
from codesentinel.models.schemas import AnalysisResult, RepositorySnapshot, Severity
from codesentinel.sources import GitHubSnapshotSource, load_snapshot, parse_repo_slug

app = typer.Typer(help="Repository code-quality analysis tool.")

console = Console()

PROVIDERS = ("anthropic", "ollama")

SEVERITY_ORDER = {
    Severity.CRITICAL: 0,
    Severity.HIGH: 1,
    Severity.MEDIUM: 2,
    Severity.LOW: 3,
}

SEVERITY_COLORS = {
    Severity.CRITICAL: "bold red",
    Severity.HIGH: "red",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "dim",
}


def get_llm(provider: str | None, model: str | None) -> LLMAdapter:
    """Build the LLM adapter for a provider.

    Args:
        provider: "anthropic" or "ollama". Defaults to CODESENTINEL_LLM_PROVIDER,
            then to anthropic when an API key is set, else ollama.
        model: Model name override. Defaults to CODESENTINEL_LLM_MODEL.

    Returns:
        Configured adapter.

    Raises:
        ValueError: If the provider is not supported.
    """
    api_key = os.environ.get("ANTHROPIC_API_KEY")
    provider = provider or os.environ.get("CODESENTINEL_LLM_PROVIDER")
    if not provider:
        provider = "anthropic" if api_key else "ollama"
    model = model or os.environ.get("CODESENTINEL_LLM_MODEL")

    provider = provider.lower()
    if provider == "anthropic":
        return AnthropicAdapter(api_key=api_key, model=model) if model else AnthropicAdapter(api_key=api_key)
    if provider == "ollama":
        base_url = os.environ.get("OLLAMA_URL")
        return OllamaAdapter(model=model, base_url=base_url) if model else OllamaAdapter(base_url=base_url)

    supported = ", ".join(PROVIDERS)
    raise ValueError(f"Unsupported LLM provider: {provider}. Supported: {supported}")


def _resolve_timeout(timeout: float | None) -> float:
    if timeout is not None:
        return timeout
    value = os.environ.get("CODESENTINEL_LLM_TIMEOUT")
    if not value:
        return DEFAULT_LLM_TIMEOUT
    try:
        return float(value)
    except ValueError:
        console.print(f"[red]CODESENTINEL_LLM_TIMEOUT must be a number, got {value!r}[/red]")
        raise typer.Exit(1)


def _build_pipeline(
    no_ai: bool,
    provider: str | None,
    model: str | None,
    timeout: float | None,
) -> AnalysisPipeline:
    llm = None
    if not no_ai:
        try:
            llm = get_llm(provider, model)
        except ValueError as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(1)
    return AnalysisPipeline(llm=llm, ai_enabled=not no_ai, llm_timeout=_resolve_timeout(timeout))


@app.command()
def analyze(
    snapshot_file: Path = typer.Argument(..., help="Repository snapshot JSON file"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Output JSON file"),
    no_ai: bool = typer.Option(False, "--no-ai", help="Only run rule-based analysis"),
    provider: str | None = typer.Option(None, "--provider", "-p", help="LLM provider (anthropic, ollama)"),
    model: str | None = typer.Option(None, "--model", "-m", help="LLM model name"),
    timeout: float | None = typer.Option(None, "--timeout", "-t", help="Seconds to wait for the LLM"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs"),
) -> None:
    """Analyze a repository snapshot file."""
    setup_logging(verbose=verbose)
    pipeline = _build_pipeline(no_ai, provider, model, timeout)

    try:
        snapshot = load_snapshot(snapshot_file)
    except InvalidSnapshotInput as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(1)

    result = asyncio.run(_run_analysis(pipeline, snapshot))
    _print_result(snapshot.name or snapshot_file.stem, result)
    _save_result(result, output)


@app.command()
def scan(
    repository: str = typer.Argument(..., help="Repository as owner/repo or GitHub URL"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Output JSON file"),
    no_ai: bool = typer.Option(False, "--no-ai", help="Only run rule-based analysis"),
    provider: str | None = typer.Option(None, "--provider", "-p", help="LLM provider (anthropic, ollama)"),
    model: str | None = typer.Option(None, "--model", "-m", help="LLM model name"),
    timeout: float | None = typer.Option(None, "--timeout", "-t", help="Seconds to wait for the LLM"),
    max_files: int = typer.Option(40, "--max-files", help="Maximum file contents to download"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs"),
) -> None:
    """Fetch a GitHub repository and analyze it."""
    setup_logging(verbose=verbose)

    parsed = parse_repo_slug(repository)
    if parsed is None:
        console.print(f"[red]Cannot parse repository: {escape(repository)}[/red]")
        raise typer.Exit(1)
    owner, repo = parsed

    pipeline = _build_pipeline(no_ai, provider, model, timeout)
    source = GitHubSnapshotSource(token=os.environ.get("GITHUB_TOKEN"), max_files=max_files)

    snapshot, result = asyncio.run(_scan(source, pipeline, owner, repo))
    _print_result(snapshot.name, result)
    _save_result(result, output)


async def _scan(
    source: GitHubSnapshotSource,
    pipeline: AnalysisPipeline,
    owner: str,
    repo: str,
) -> tuple[RepositorySnapshot, AnalysisResult]:
    """Async implementation of scan."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        progress.add_task(f"Fetching {owner}/{repo}...", total=None)
        try:
            snapshot = await source.fetch_snapshot(owner, repo)
        except SnapshotNotFoundError as e:
            console.print(f"[red]{escape(str(e))}[/red]")
            raise typer.Exit(1)
        except httpx.HTTPError as e:
            console.print(f"[red]GitHub request failed: {escape(str(e))}[/red]")
            raise typer.Exit(1)

    return snapshot, await _run_analysis(pipeline, snapshot)


async def _run_analysis(pipeline: AnalysisPipeline, snapshot: RepositorySnapshot) -> AnalysisResult:
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        progress.add_task("Analyzing repository...", total=None)
        try:
            return await pipeline.analyze(snapshot)
        except InvalidSnapshotInput as e:
            console.print(f"[red]{escape(str(e))}[/red]")
            raise typer.Exit(1)


def _print_result(name: str, result: AnalysisResult) -> None:
    """Render scores, issues and recommendations."""
    console.print()
    mode = "AI-assisted" if result.is_ai_powered else "rule-based"
    console.print(f"[bold cyan]{escape(name)}[/bold cyan] [dim]({mode} analysis)[/dim]")
    console.print()

    score = result.overall_score
    score_color = _score_color(score)
    console.print(
        Panel(
            f"[bold][{score_color}]{score}[/{score_color}][/bold] / 100  "
            f"Grade: [bold]{Scorer.score_to_grade(score)}[/bold]",
            title="Overall Score",
            expand=False,
        )
    )
    console.print()

    scores_table = Table(title="Score Breakdown", show_header=True)
    scores_table.add_column("Category", style="bold")
    scores_table.add_column("Score", justify="right")
    scores_table.add_column("Weight", justify="right", style="dim")
    scores_table.add_column("Bar", width=20)

    components = [
        ("Security", result.security_score, Scorer.WEIGHTS["security"]),
        ("Performance", result.performance_score, Scorer.WEIGHTS["performance"]),
        ("Maintainability", result.maintainability_score, Scorer.WEIGHTS["maintainability"]),
    ]
    for label, value, weight in components:
        color = _score_color(value)
        scores_table.add_row(label, f"[{color}]{value}[/{color}]", f"{weight}%", _score_bar(value))

    console.print(scores_table)
    console.print(f"[bold]Technical debt:[/bold] {result.tech_debt_score}")

    if result.issues:
        console.print()
        issues_table = Table(title=f"Issues ({len(result.issues)})", show_header=True)
        issues_table.add_column("Severity")
        issues_table.add_column("Type", style="dim")
        issues_table.add_column("Issue", style="white", max_width=50)
        issues_table.add_column("Location", style="cyan", max_width=40)

        for issue in sorted(result.issues, key=lambda i: SEVERITY_ORDER[i.severity]):
            color = SEVERITY_COLORS[issue.severity]
            location = issue.file or "-"
            if issue.file and issue.line:
                location = f"{issue.file}:{issue.line}"
            issues_table.add_row(
                f"[{color}]{issue.severity.value}[/{color}]",
                issue.type.value,
                escape(issue.title),
                escape(location),
            )

        console.print(issues_table)

    if result.recommendations:
        console.print()
        console.print("[bold green]Recommendations:[/bold green]")
        for rec in result.recommendations:
            console.print(
                f"  [green]{rec.priority:>2}[/green] {escape(rec.title)} "
                f"[dim]({rec.type.value}, {rec.effort} effort)[/dim]"
            )


def _save_result(result: AnalysisResult, output: Path | None) -> None:
    if output:
        output.write_text(json.dumps(result.to_record(), indent=2))
        console.print(f"\n[green]Saved to {output}[/green]")


def _score_color(score: float) -> str:
    return "green" if score >= 80 else "yellow" if score >= 60 else "red"


def _score_bar(score: float, width: int = 20) -> str:
    """Create a visual score bar."""
    filled = int(score / 100 * width)
    empty = width - filled
    color = _score_color(score)
    return f"[{color}]{'█' * filled}[/{color}][dim]{'░' * empty}[/dim]"


@app.command()
def version() -> None:
    """Show version information."""
    from codesentinel import __version__

    console.print(f"codesentinel v{__version__}")


if __name__ == "__main__":
    app()
