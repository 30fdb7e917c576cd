"""Rich console rendering of discussion frames and markdown file save for transcripts."""

import logging
import re
import sys
from datetime import datetime
from pathlib import Path
from typing import TextIO

from rich.console import Console
from rich.markup import escape
from rich.rule import Rule
from rich.text import Text

from thinktank.events import parse_frame
from thinktank.models import DiscussionState, Transcript

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


class ConsoleRenderer:
    """Frame sink that renders a discussion live on a Rich console."""

    def __init__(self, target: Console | None = None) -> None:
        self._console = target or console

    async def __call__(self, frame: str) -> None:
        event = parse_frame(frame)
        kind = event["type"]
        if kind == "start":
            self._console.print(Rule(f"[bold cyan]Discussion ({event['discipline']})[/bold cyan]"))
        elif kind == "round":
            self._console.print(Rule(f"[bold]Round {event['round']}/{event['totalRounds']}[/bold]", style="dim"))
        elif kind == "turn_start":
            header = Text()
            header.append(event["speakerName"], style="bold")
            header.append(f" ({event['speakerRole']})", style="dim")
            self._console.print()
            self._console.print(header)
        elif kind == "content":
            # Fragments arrive mid-sentence; print them without line breaks or markup
            self._console.print(event["content"], end="", markup=False, highlight=False, soft_wrap=True)
        elif kind == "turn_end":
            self._console.print()
        elif kind == "error":
            self._console.print(f"\n[bold red]Error:[/bold red] {escape(event['message'])}")
        elif kind == "end":
            self._console.print(Rule("[bold green]End of discussion[/bold green]"))


class RawFrameWriter:
    """Frame sink that writes wire frames unchanged, flushing after each one."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream or sys.stdout

    async def __call__(self, frame: str) -> None:
        self._stream.write(frame)
        self._stream.flush()


def save_transcript(
    transcript: Transcript,
    question: str,
    output_dir: Path,
    provider_label: str = "",
    slug_override: str | None = None,
) -> Path:
    """Save the committed turns of a discussion as a markdown file.

    Args:
        transcript: The transcript returned by the discussion.
        question: The user question the panel discussed.
        output_dir: Directory to save the file in.
        provider_label: Optional "provider (model)" string for the header.
        slug_override: If provided, use this as the filename stem instead of
            deriving one from the question text.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    slug = slug_override if slug_override is not None else _slug(question)
    filepath = output_dir / f"{timestamp}_{slug}.md"

    panel = []
    for turn in transcript.persona_turns():
        label = f"{turn.speaker_name} ({turn.speaker_role})"
        if label not in panel:
            panel.append(label)

    lines: list[str] = [
        f"# Panel Discussion: {question[:80]}",
        "",
        f"**Date:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Discipline:** {transcript.discipline.value}",
        f"**Panel:** {', '.join(panel)}",
    ]
    if provider_label:
        lines.append(f"**Model:** {provider_label}")
    lines.append(f"**Status:** {transcript.status.value}")
    if transcript.status == DiscussionState.ERRORED and transcript.error:
        lines.append(f"**Error:** {transcript.error}")
    lines += ["", "---", ""]

    current_round: int | None = None
    for turn in transcript.turns:
        if turn.round_number is not None and turn.round_number != current_round:
            current_round = turn.round_number
            lines += [f"## Round {current_round}", ""]
        lines += [f"### {turn.speaker_name} ({turn.speaker_role})", "", turn.content, ""]

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Transcript saved to: %s", filepath)
    return filepath
