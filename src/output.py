"""Rich console rendering of the transcript and markdown export."""

import logging
import re
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.text import Text

from src.models import ConversationConfig, ConversationStatus, TurnKind, TurnRecord

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

_AGENT_COLORS = [
    "#FF6B6B", "#4ECDC4", "#45B7D1", "#96CEB4", "#FFEAA7",
    "#DDA0DD", "#98D8C8", "#F7DC6F", "#BB8FCE", "#85C1E9",
]

_STATUS_LABELS = {
    ConversationStatus.SETUP: "Waiting",
    ConversationStatus.RUNNING: "Conversation running",
    ConversationStatus.PAUSED: "Paused",
    ConversationStatus.STOPPED: "Stopped",
}


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def agent_color(agent_name: str | None) -> str:
    """Stable colour per agent name (same 32-bit string hash on every run)."""
    if not agent_name:
        return "#666666"
    h = 0
    for ch in agent_name:
        h = ((h << 5) - h + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return _AGENT_COLORS[abs(h) % len(_AGENT_COLORS)]


def print_record(record: TurnRecord) -> None:
    """Print one transcript record to the console."""
    time_str = record.timestamp.strftime("%H:%M:%S")
    if record.kind is TurnKind.AGENT:
        color = agent_color(record.agent_name)
        console.print(
            Panel(
                Markdown(record.content),
                title=f"[bold {color}]{escape(record.agent_name or '')}[/bold {color}]",
                title_align="left",
                subtitle=time_str,
                subtitle_align="right",
                border_style=color,
            )
        )
    elif record.kind is TurnKind.USER:
        console.print(
            Panel(
                Text(record.content),
                title="[bold]You[/bold]",
                title_align="right",
                subtitle=time_str,
                border_style="blue",
            )
        )
    else:
        console.print(Text(f"[{time_str}] {record.content}", style="dim italic"))


def print_status(status: ConversationStatus, commands_hint: str = "") -> None:
    label = _STATUS_LABELS.get(status, status.value)
    console.print(Rule(f"[bold cyan]{label}[/bold cyan]"))
    if commands_hint and status in (ConversationStatus.RUNNING, ConversationStatus.PAUSED):
        console.print(Text(commands_hint, style="dim"))


def print_roster(config: ConversationConfig) -> None:
    console.print(f"\n[bold cyan]Agent Round Table[/bold cyan]: {len(config.agents)} agents")
    for agent in config.agents:
        color = agent_color(agent.name)
        model = f" ({escape(agent.model)})" if agent.model else ""
        console.print(f"  [{color}]{escape(agent.name)}[/{color}] [dim]{agent.provider.value}{model}[/dim]: {escape(agent.persona)}")
    if config.max_turns_per_agent:
        console.print(f"Turn limit: {config.max_turns_per_agent} per agent")
    topic = config.topic[:80] + ("..." if len(config.topic) > 80 else "")
    console.print(f"Topic: [italic]{escape(topic)}[/italic]\n")


def save_transcript(
    config: ConversationConfig,
    records: Iterable[TurnRecord],
    output_dir: Path,
) -> Path:
    """Save the transcript as a markdown file.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filepath = output_dir / f"{timestamp}_{_slug(config.topic)}.md"

    roster = ", ".join(f"{a.name} ({a.provider.value})" for a in config.agents)
    lines: list[str] = [
        f"# Agent Round Table: {config.topic[:80]}",
        "",
        f"**Date:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Agents:** {roster}",
        f"**Turn limit:** {config.max_turns_per_agent or 'none'}",
        "",
        "---",
        "",
    ]

    for record in records:
        time_str = record.timestamp.strftime("%H:%M:%S")
        if record.kind is TurnKind.AGENT:
            lines.append(f"### {record.agent_name} ({time_str})")
            lines.append("")
            lines.append(record.content)
        elif record.kind is TurnKind.USER:
            lines.append(f"### You ({time_str})")
            lines.append("")
            lines.append(record.content)
        else:
            lines.append(f"> *{time_str}* {record.content}".replace("\n", "\n> "))
        lines.append("")

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Transcript saved to: %s", filepath)
    return filepath
