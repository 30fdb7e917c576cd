"""Click CLI: loads config, picks a provider, and streams one panel discussion."""

import asyncio
import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from config.config_loader import AppConfig, load_config
from thinktank.discussion import TurnCallback, effective_rounds, run_discussion, validate_request
from thinktank.errors import RequestValidationError
from thinktank.healthcheck import run_health_checks
from thinktank.models import Discipline, DiscussionRequest, DiscussionState, Transcript
from thinktank.output import ConsoleRenderer, RawFrameWriter, save_transcript
from thinktank.providers.anthropic import AnthropicProvider
from thinktank.providers.base import AIProvider, ProviderError
from thinktank.providers.gemini import GeminiProvider
from thinktank.providers.openai_provider import OpenAIProvider
from thinktank.questions import parse_file
from thinktank.registry import PersonaRegistry

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)
err_console = Console(stderr=True, legacy_windows=False)

PROVIDER_CLASSES: dict[str, type[AIProvider]] = {
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "gemini": GeminiProvider,
}


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True, show_path=False)],
    )


def _build_provider(config: AppConfig, name: str) -> AIProvider:
    """Instantiate the configured provider ``name``.

    Raises:
        ProviderError: Unknown provider, unknown sdk, or missing API key.
    """
    model_cfg = config.models.get(name)
    if model_cfg is None:
        raise ProviderError(name, f"Not configured. Known: {', '.join(sorted(config.models))}")
    cls = PROVIDER_CLASSES.get(model_cfg.sdk)
    if cls is None:
        raise ProviderError(name, f"Unknown sdk '{model_cfg.sdk}'")
    return cls(model_cfg)


def _split_ids(value: str | None) -> list[str] | None:
    if value is None:
        return None
    return [v.strip() for v in value.split(",") if v.strip()]


def _build_request(
    question: str,
    meta: dict,
    config: AppConfig,
    personas_cli: str | None,
    discipline_cli: str | None,
    rounds_cli: int | None,
    timing_cli: str | None,
    context_text: str,
) -> DiscussionRequest:
    """Assemble the request. Precedence: CLI flag > frontmatter > config default."""
    persona_ids = _split_ids(personas_cli)
    if persona_ids is None:
        persona_ids = list(meta.get("personas") or config.defaults.default_personas)

    discipline = discipline_cli or str(meta.get("discipline") or config.defaults.discipline)
    rounds = rounds_cli
    if rounds is None and meta.get("rounds") is not None:
        try:
            rounds = int(meta["rounds"])
        except (TypeError, ValueError):
            raise click.BadParameter(f"rounds must be an integer, got {meta['rounds']!r}", param_hint="rounds")
    timing = timing_cli or meta.get("timing")
    external_context = context_text or str(meta.get("context") or "")

    try:
        discipline_value = Discipline(discipline)
    except ValueError:
        raise click.BadParameter(f"Unknown discipline '{discipline}'", param_hint="--discipline")

    return DiscussionRequest(
        message=question,
        persona_ids=persona_ids,
        discipline=discipline_value,
        round_count=rounds,
        participation_timing=timing,
        external_context=external_context,
    )


def _print_personas(registry: PersonaRegistry) -> None:
    table = Table(title="Personas")
    table.add_column("id", style="cyan")
    table.add_column("name")
    table.add_column("role")
    for p in registry.all():
        table.add_row(p.id, p.name, p.role)
    console.print(table)


def _check_provider(provider: AIProvider) -> bool:
    err_console.print("\n[bold]Checking provider...[/bold]")
    results = asyncio.run(run_health_checks({provider.name(): provider}))
    ok, err = results[provider.name()]
    if ok:
        err_console.print(f"  [green]OK  [/green] {provider.name()} ({provider.model_string()})")
    else:
        short_err = err.splitlines()[0][:120] if err else "unknown error"
        err_console.print(f"  [red]FAIL[/red] {provider.name()}: {escape(short_err)}")
    return ok


async def _run_single(
    request: DiscussionRequest,
    config: AppConfig,
    registry: PersonaRegistry,
    provider: AIProvider,
    raw: bool,
    on_turn_complete: TurnCallback | None = None,
) -> Transcript:
    sink = RawFrameWriter() if raw else ConsoleRenderer(console)
    return await run_discussion(
        request=request,
        registry=registry,
        provider=provider,
        sink=sink,
        settings=config.discussion,
        prompts=config.prompts,
        on_turn_complete=on_turn_complete,
    )


@click.command()
@click.argument("question", required=False)
@click.option("--file", "question_file", type=click.Path(exists=True, dir_okay=False),
              help="Read question (and frontmatter options) from a .md file")
@click.option("--personas", default=None, help="Comma-separated persona ids, in speaking order")
@click.option("--discipline", type=click.Choice([d.value for d in Discipline]), default=None,
              help="sequential, moderated or free (default: from config)")
@click.option("--rounds", default=None, type=int, help="Rounds for the free discipline (default: from config)")
@click.option("--timing", default=None,
              type=click.Choice(["after_each_round", "on_key_points", "before_summary"]),
              help="When the moderator involves the user (moderated discipline)")
@click.option("--context", "context_text", default="", help="Background text added to every speaker's instructions")
@click.option("--context-file", type=click.Path(exists=True, dir_okay=False),
              help="Read background text from a file")
@click.option("--provider", "provider_name", default=None, help="Model entry from settings (default: from config)")
@click.option("--raw", is_flag=True, help="Print wire frames instead of rendering")
@click.option("--output", "output_path", default=None, help="Save the transcript as markdown in this directory")
@click.option("--settings", "settings_path", type=click.Path(dir_okay=False), default=None,
              help="Path to settings.yaml (default: bundled config)")
@click.option("--list-personas", is_flag=True, help="List available personas and exit")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip the API connectivity check at startup")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
def main(
    question: str | None,
    question_file: str | None,
    personas: str | None,
    discipline: str | None,
    rounds: int | None,
    timing: str | None,
    context_text: str,
    context_file: str | None,
    provider_name: str | None,
    raw: bool,
    output_path: str | None,
    settings_path: str | None,
    list_personas: bool,
    skip_health_check: bool,
    verbose: bool,
) -> None:
    """Think Tank -- stream a discussion between expert personas.

    \b
    Examples:
      thinktank "Is a subscription model viable?" --personas strategist,investor
      thinktank "Build or buy auth?" --personas tech,legal --discipline moderated
      thinktank "Go to market plan?" --discipline free --rounds 2 --personas strategist,marketing,investor
      thinktank --file question.md --output ./output
      thinktank --list-personas
    """
    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config(Path(settings_path)) if settings_path else load_config()
    except FileNotFoundError as exc:
        err_console.print(f"[bold red]Config error:[/bold red] {escape(str(exc))}")
        sys.exit(1)

    registry = PersonaRegistry.from_config(config.personas)

    if list_personas:
        _print_personas(registry)
        return

    meta: dict = {}
    if question_file:
        question_text, meta = parse_file(Path(question_file))
    elif question:
        question_text = question
    else:
        err_console.print("[bold red]Error:[/bold red] Provide a QUESTION argument or --file.")
        sys.exit(1)

    if context_file:
        context_text = Path(context_file).read_text(encoding="utf-8")

    request = _build_request(
        question_text, meta, config, personas, discipline, rounds, timing, context_text,
    )

    try:
        selected = validate_request(request, registry, config.discussion)
    except RequestValidationError as exc:
        err_console.print(f"[bold red]Invalid request:[/bold red] {escape(str(exc))}")
        sys.exit(2)

    try:
        provider = _build_provider(config, provider_name or config.defaults.provider)
    except ProviderError as exc:
        err_console.print(f"[bold red]Provider error:[/bold red] {escape(str(exc))}")
        sys.exit(1)

    if not skip_health_check and not _check_provider(provider):
        sys.exit(1)

    summary = f"{request.discipline.value}, {len(selected)} personas"
    if request.discipline == Discipline.FREE:
        summary += f", {effective_rounds(request, config.discussion)} rounds"
    err_console.print(f"[bold cyan]Think Tank[/bold cyan] ({summary}) via {provider.name()} ({provider.model_string()})")

    # Committed turns, kept here so an interrupted run can still be saved
    partial = Transcript(discipline=request.discipline, status=DiscussionState.CANCELLED)

    def save(result: Transcript) -> None:
        if not output_path:
            return
        saved = save_transcript(
            result,
            request.message,
            Path(output_path),
            provider_label=f"{provider.name()} ({provider.model_string()})",
            slug_override=Path(question_file).stem if question_file else None,
        )
        err_console.print(f"\n[dim]Saved to: {saved}[/dim]")

    try:
        transcript = asyncio.run(_run_single(request, config, registry, provider, raw, partial.append))
    except KeyboardInterrupt:
        err_console.print("\n[yellow]Cancelled.[/yellow]")
        save(partial)
        sys.exit(130)

    save(transcript)

    if transcript.status != DiscussionState.FINISHED:
        sys.exit(1)


if __name__ == "__main__":
    main()
