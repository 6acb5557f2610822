"""Click CLI: loads setup, checks providers, runs the conversation and takes user input."""

import asyncio
import logging
import sys
import threading
from collections.abc import Iterable
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler

from config.config_loader import AppConfig, load_config
from src.credentials import check_credentials
from src.healthcheck import run_health_checks
from src.models import ConversationConfig, ConversationStatus, ProviderKind
from src.moderator import Moderator
from src.output import print_record, print_roster, print_status, save_transcript
from src.providers.base import AIProvider, GenerationError
from src.providers.gemini import GeminiProvider
from src.providers.openai_provider import OpenAIProvider
from src.responder import AgentResponder
from src.roster import ConfigInvalid, build_config, load_conversation_file, parse_agent_option, save_conversation_file
from src.scheduler import ConversationScheduler

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

PROVIDER_CLASSES: dict[ProviderKind, type[AIProvider]] = {
    ProviderKind.OPENAI: OpenAIProvider,
    ProviderKind.GEMINI: GeminiProvider,
}


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _resolve_conversation(
    conversation_file: Path | None,
    topic: str | None,
    agent_options: Iterable[str],
    max_turns: int | None,
    instructions: str | None,
    config: AppConfig,
) -> ConversationConfig:
    """Build the conversation from a file and/or CLI flags. CLI flags win.

    Raises ConfigInvalid when the result cannot be started.
    """
    base = load_conversation_file(conversation_file) if conversation_file else None
    agent_options = list(agent_options)

    agents = [parse_agent_option(o) for o in agent_options] if agent_options else list(base.agents if base else ())
    effective_topic = topic if topic else (base.topic if base else "")
    effective_instructions = instructions if instructions is not None else (base.instructions if base else None)
    effective_max_turns = (
        max_turns if max_turns is not None
        else base.max_turns_per_agent if base and base.max_turns_per_agent
        else config.defaults.max_turns_per_agent
    )

    return build_config(
        topic=effective_topic,
        agents=agents,
        instructions=effective_instructions,
        max_turns_per_agent=effective_max_turns,
    )


def _required_kinds(conversation: ConversationConfig, moderator_kind: ProviderKind) -> set[ProviderKind]:
    return {a.provider for a in conversation.agents} | {moderator_kind}


def _build_providers(config: AppConfig, kinds: Iterable[ProviderKind]) -> dict[ProviderKind, AIProvider]:
    """Instantiate one provider per kind. Raises GenerationError if one cannot be built."""
    providers: dict[ProviderKind, AIProvider] = {}
    for kind in kinds:
        model_cfg = config.models.get(kind.value)
        if model_cfg is None or kind not in PROVIDER_CLASSES:
            raise click.ClickException(f"No model configured for provider '{kind.value}' in settings.yaml")
        providers[kind] = PROVIDER_CLASSES[kind](model_cfg)
    return providers


def _check_providers(providers: dict[ProviderKind, AIProvider]) -> None:
    """Ping the providers, print the results and ask whether to go on after failures."""
    console.print("\n[bold]Checking providers...[/bold]")
    results = asyncio.run(run_health_checks(providers))

    failed = False
    for kind in sorted(results, key=lambda k: k.value):
        ok, message = results[kind]
        if ok:
            console.print(f"  [green]OK  [/green] {kind.value}: {message}")
        else:
            short_err = message.splitlines()[0][:160] if message else "unknown error"
            console.print(f"  [red]FAIL[/red] {kind.value}: {short_err}")
            failed = True

    if failed and not click.confirm("Some providers failed. Start the conversation anyway?", default=False):
        sys.exit(1)
    console.print()


def _start_stdin_reader(loop: asyncio.AbstractEventLoop, lines: "asyncio.Queue[str | None]") -> threading.Thread:
    """Read stdin on a daemon thread and hand lines to the loop. None marks EOF."""

    def _hand_over(item: str | None) -> bool:
        if loop.is_closed():
            return False
        try:
            loop.call_soon_threadsafe(lines.put_nowait, item)
        except RuntimeError:
            # Loop closed after the check above
            return False
        return True

    def _read() -> None:
        for line in sys.stdin:
            if not _hand_over(line.rstrip("\n")):
                return
        _hand_over(None)

    thread = threading.Thread(target=_read, name="stdin_reader", daemon=True)
    thread.start()
    return thread


async def _run_conversation(
    conversation: ConversationConfig,
    config: AppConfig,
    providers: dict[ProviderKind, AIProvider],
    moderator_kind: ProviderKind,
    interval: float,
    output_dir: Path | None,
) -> None:
    """Run the conversation until the user stops it (EOF or Ctrl-C)."""
    commands = config.commands
    hint = f"Commands: {commands.pause} (pause), {commands.resume} (resume). Ctrl-D or Ctrl-C stops."

    scheduler = ConversationScheduler(
        Moderator(providers[moderator_kind], config.prompts),
        AgentResponder(providers, config.prompts),
        tick_interval_sec=interval,
        messages=config.messages,
        commands=commands,
        on_record=print_record,
        on_status=lambda status: print_status(status, hint),
    )

    lines: asyncio.Queue[str | None] = asyncio.Queue()
    _start_stdin_reader(asyncio.get_running_loop(), lines)

    scheduler.initialize(conversation)
    try:
        while scheduler.status is not ConversationStatus.STOPPED:
            line = await lines.get()
            if line is None:
                break
            scheduler.submit_input(line)
    finally:
        scheduler.stop()
        scheduler.teardown()
        if scheduler.turn_in_flight:
            console.print("[dim]Waiting for the turn in progress to finish...[/dim]")
        await scheduler.wait_idle()
        if output_dir is not None:
            saved = save_transcript(conversation, scheduler.transcript, output_dir)
            console.print(f"\n[dim]Saved to: {saved}[/dim]")


@click.command()
@click.option("--file", "conversation_file", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help="Read topic, agents and instructions from a .md file with frontmatter")
@click.option("--topic", default=None, help="Conversation topic (overrides the file)")
@click.option("--agent", "agent_options", multiple=True,
              help="Agent as 'Name:provider:persona' (provider: openai or gemini, optionally openai/<model>). Repeatable.")
@click.option("--max-turns", default=None, type=click.IntRange(min=1),
              help="Turns each agent may take before the conversation pauses")
@click.option("--instructions", default=None, help="Shared instruction text added to every agent prompt")
@click.option("--moderator", default=None, type=click.Choice([k.value for k in ProviderKind]),
              help="Provider that picks the next speaker (default: from config)")
@click.option("--interval", default=None, type=float, help="Seconds between turns (default: from config)")
@click.option("--save-setup", "save_setup_path", default=None, type=click.Path(dir_okay=False, path_type=Path),
              help="Write the resolved setup to this .md file for reuse with --file")
@click.option("--export/--no-export", default=True, help="Save the transcript as markdown when the conversation ends")
@click.option("--output", "output_path", default=None, help="Output directory (default: from config)")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip the API connectivity check at startup")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
def main(
    conversation_file: Path | None,
    topic: str | None,
    agent_options: tuple[str, ...],
    max_turns: int | None,
    instructions: str | None,
    moderator: str | None,
    interval: float | None,
    save_setup_path: Path | None,
    export: bool,
    output_path: str | None,
    skip_health_check: bool,
    verbose: bool,
) -> None:
    """Agent Round Table -- a moderated conversation between AI agents.

    \b
    Examples:
      python -m src.cli --file conversations/coffee.md
      python -m src.cli --topic "Is coffee good for you?" \\
          --agent "Nutritionist:openai:Evidence-driven dietitian" \\
          --agent "Barista:gemini:Passionate about coffee" --max-turns 3
    """
    # Reconfigure stdout/stderr to UTF-8 on Windows so model output with
    # non-ASCII characters does not crash the ANSI render path.
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")

    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config()
    except FileNotFoundError as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    try:
        conversation = _resolve_conversation(
            conversation_file, topic, agent_options, max_turns, instructions, config
        )
    except ConfigInvalid as exc:
        console.print(f"[bold red]Setup error:[/bold red] {exc}")
        sys.exit(1)

    if save_setup_path:
        save_conversation_file(conversation, save_setup_path)
        console.print(f"[dim]Setup saved to: {save_setup_path}[/dim]")

    moderator_kind = ProviderKind(moderator or config.defaults.moderator)
    kinds = _required_kinds(conversation, moderator_kind)

    failures = check_credentials(config, kinds)
    if failures:
        for kind, problem in sorted(failures.items(), key=lambda item: item[0].value):
            console.print(f"[bold red]Key error:[/bold red] {kind.value}: {problem}")
        sys.exit(1)

    try:
        providers = _build_providers(config, kinds)
    except GenerationError as exc:
        console.print(f"[bold red]Provider error:[/bold red] {exc}")
        sys.exit(1)

    if not skip_health_check:
        _check_providers(providers)

    print_roster(conversation)

    effective_interval = interval if interval is not None else config.defaults.tick_interval_sec
    output_dir = (Path(output_path) if output_path else config.defaults.output_dir) if export else None

    try:
        asyncio.run(
            _run_conversation(
                conversation=conversation,
                config=config,
                providers=providers,
                moderator_kind=moderator_kind,
                interval=effective_interval,
                output_dir=output_dir,
            )
        )
    except KeyboardInterrupt:
        console.print("\n[dim]Conversation stopped.[/dim]")


if __name__ == "__main__":
    main()
