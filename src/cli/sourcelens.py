"""CLI commands for SourceLens."""

import json
import sys
from pathlib import Path

import click
import structlog

from src.data_model import DocumentMetadata
from src.features.llm.models import DEFAULT_MODEL_ID, MODELS, get_models_by_provider
from src.features.orchestrator import (
    AnalysisApiClient,
    AnalysisOrchestrator,
    AppStore,
    ProcessingStep,
    default_strategies,
)
from src.features.orchestrator import store as actions
from src.features.storage import LocalStorage, safe_get_item, safe_set_item
from src.observability.logging import configure_logging, level_from_name
from src.settings import get_settings


logger = structlog.get_logger()

LAST_ANALYSIS_KEY = "lastAnalysis"
RECENT_MODEL_KEY = "selectedModel"


def _setup_logging(verbose: bool) -> None:
    settings = get_settings()
    level = level_from_name("debug" if verbose else settings.log_level)
    configure_logging(level=level, json_format=settings.log_format == "json")


@click.group()
@click.version_option(version="0.1.0")
def cli() -> None:
    """SourceLens primary source analysis CLI."""


@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True, help="Bind address.")
@click.option("--port", default=5000, show_default=True, type=int, help="Bind port.")
@click.option("--debug", is_flag=True, default=False, help="Enable Flask debug mode.")
def serve(host: str, port: int, debug: bool) -> None:
    """Run the analysis API server."""
    from src.features.api import create_app

    _setup_logging(debug)
    app = create_app()
    logger.info("api_server_starting", component="cli", host=host, port=port)
    app.run(host=host, port=port, debug=debug)


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--metadata",
    "metadata_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON file with document metadata (author, date, researchGoals, ...).",
)
@click.option("--author", default="", help="Author of the source.")
@click.option("--date", default="", help="Date of the source.")
@click.option("--title", default="", help="Title of the source.")
@click.option("--research-goals", default="", help="What you want to learn.")
@click.option("--model", default=None, help="Model id (see `sourcelens models`).")
@click.option("--perspective", default="", help="Interpretive lens for the analysis.")
@click.option("--api-url", default=None, help="API base URL; overrides settings.")
@click.option("--json", "json_output", is_flag=True, default=False, help="Output JSON.")
@click.option("--verbose", is_flag=True, default=False, help="Enable debug logging.")
def analyze(
    file: Path,
    metadata_path: Path | None,
    author: str,
    date: str,
    title: str,
    research_goals: str,
    model: str | None,
    perspective: str,
    api_url: str | None,
    json_output: bool,
    verbose: bool,
) -> None:
    """Run a preliminary analysis of FILE through the API.

    The primary endpoint is tried first and the fallback endpoint second.
    The result is stored for later sessions.
    """
    _setup_logging(verbose)
    settings = get_settings()
    storage = LocalStorage(settings.storage_path)

    try:
        source_text = file.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        click.echo(f"Error: Source file is not valid UTF-8: {e}", err=True)
        sys.exit(1)
    raw_metadata: dict[str, object] = {}
    if metadata_path is not None:
        try:
            raw_metadata = json.loads(metadata_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            click.echo(f"Error: Invalid metadata JSON: {e}", err=True)
            sys.exit(1)
    overrides = {
        "author": author,
        "date": date,
        "title": title,
        "researchGoals": research_goals,
    }
    raw_metadata.update({k: v for k, v in overrides.items() if v})
    metadata = DocumentMetadata.model_validate(raw_metadata)

    if not source_text.strip() or metadata.is_empty():
        click.echo("Error: Source text and at least one metadata field are required.", err=True)
        sys.exit(1)

    selected_model = model or safe_get_item(RECENT_MODEL_KEY, DEFAULT_MODEL_ID, storage)

    store = AppStore()
    store.dispatch(actions.set_source_text, source_text)
    store.dispatch(actions.set_metadata, metadata)
    store.dispatch(actions.select_model, selected_model)
    store.dispatch(actions.select_perspective, perspective)

    with AnalysisApiClient(
        api_url or settings.api_url, timeout=settings.request_timeout
    ) as client:
        orchestrator = AnalysisOrchestrator(store, default_strategies(client))
        orchestrator.mount()
        orchestrator.run_pending()
        orchestrator.close()

    state = store.state
    if state.processing_step == ProcessingStep.ANALYSIS_FAILED or state.initial_analysis is None:
        click.echo("Error: Analysis failed on both endpoints.", err=True)
        sys.exit(1)

    analysis = state.initial_analysis.to_wire()
    safe_set_item(LAST_ANALYSIS_KEY, analysis, storage)
    safe_set_item(RECENT_MODEL_KEY, state.selected_model, storage)

    if json_output:
        output = {
            "analysis": analysis,
            "rawPrompt": state.raw_prompt,
            "rawResponse": state.raw_response,
            "model": state.selected_model,
        }
        click.echo(json.dumps(output, indent=2, ensure_ascii=False))
        return

    click.echo("Summary")
    click.echo("=" * 40)
    click.echo(state.initial_analysis.summary)
    click.echo("")
    click.echo("Analysis")
    click.echo("=" * 40)
    click.echo(state.initial_analysis.analysis_body)
    click.echo("")
    click.echo("Follow-up questions")
    click.echo("=" * 40)
    for index, question in enumerate(state.initial_analysis.followup_questions, 1):
        click.echo(f"  {index}. {question}")


@cli.command()
@click.option(
    "--provider",
    type=click.Choice(["anthropic", "openai", "google"]),
    default=None,
    help="Only list models from this provider.",
)
@click.option("--json", "json_output", is_flag=True, default=False, help="Output JSON.")
def models(provider: str | None, json_output: bool) -> None:
    """List the available models."""
    selected = get_models_by_provider(provider) if provider else list(MODELS)  # type: ignore[arg-type]

    if json_output:
        click.echo(json.dumps([m.to_dict() for m in selected], indent=2))
        return

    for model in selected:
        marker = "*" if model.id == DEFAULT_MODEL_ID else " "
        click.echo(f"{marker} {model.id:<20} {model.provider:<10} {model.name}")


if __name__ == "__main__":
    cli()
