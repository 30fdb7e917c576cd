"""Dataclasses for the discussion pipeline. No I/O, no provider deps."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from thinktank.errors import InvalidRequestError

# Synthetic speakers used for the non-persona phases
MODERATOR_ID = "moderator"
MODERATOR_SUMMARY_ID = "moderator_summary"
SUMMARY_ID = "summary"

SYNTHETIC_SPEAKER_IDS = frozenset({MODERATOR_ID, MODERATOR_SUMMARY_ID, SUMMARY_ID})

PromptMessages = list[dict[str, str]]


class Discipline(str, Enum):
    SEQUENTIAL = "sequential"
    MODERATED = "moderated"
    FREE = "free"


class DiscussionState(str, Enum):
    INIT = "init"
    RUNNING = "running"
    FINISHED = "finished"
    ERRORED = "errored"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Persona:
    id: str
    name: str              # display name
    role: str              # role label shown next to the name
    system_prompt: str     # instruction preamble


@dataclass
class DiscussionRequest:
    message: str
    persona_ids: list[str]
    discipline: Discipline = Discipline.SEQUENTIAL
    round_count: int | None = None            # free only
    participation_timing: str | None = None   # moderated only
    external_context: str = ""
    history: PromptMessages = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "DiscussionRequest":
        """Build a request from the inbound camelCase JSON shape.

        A missing or zero ``roundCount`` means the configured default.

        Raises:
            InvalidRequestError: Unknown ``discipline`` or a non-integer ``roundCount``.
        """
        raw_discipline = payload.get("discipline") or Discipline.SEQUENTIAL.value
        try:
            discipline = Discipline(raw_discipline)
        except ValueError as exc:
            raise InvalidRequestError(f"Unknown discipline: {raw_discipline!r}") from exc
        try:
            round_count = int(payload.get("roundCount") or 0) or None
        except (TypeError, ValueError) as exc:
            raise InvalidRequestError(f"Round count must be an integer, got {payload.get('roundCount')!r}") from exc
        return cls(
            message=str(payload.get("message") or ""),
            persona_ids=[str(p) for p in payload.get("personaIds") or []],
            discipline=discipline,
            round_count=round_count,
            participation_timing=payload.get("participationTiming"),
            external_context=str(payload.get("externalContext") or ""),
            history=list(payload.get("history") or []),
        )


@dataclass
class Turn:
    speaker_id: str
    speaker_name: str
    speaker_role: str
    content: str
    round_number: int | None = None


@dataclass
class Transcript:
    discipline: Discipline
    turns: list[Turn] = field(default_factory=list)
    status: DiscussionState = DiscussionState.INIT
    error: str | None = None

    def append(self, turn: Turn) -> None:
        self.turns.append(turn)

    def persona_turns(self) -> list[Turn]:
        return [t for t in self.turns if t.speaker_id not in SYNTHETIC_SPEAKER_IDS]

    def speaker_ids(self) -> list[str]:
        return [t.speaker_id for t in self.turns]


@dataclass
class StreamEvent:
    type: str
    discipline: str | None = None
    speaker_id: str | None = None
    speaker_name: str | None = None
    speaker_role: str | None = None
    round: int | None = None
    total_rounds: int | None = None
    content: str | None = None
    message: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """Return the wire dict: ``type`` first, camelCase keys, unset fields dropped."""
        pairs = [
            ("type", self.type),
            ("discipline", self.discipline),
            ("speakerId", self.speaker_id),
            ("speakerName", self.speaker_name),
            ("speakerRole", self.speaker_role),
            ("round", self.round),
            ("totalRounds", self.total_rounds),
            ("content", self.content),
            ("message", self.message),
        ]
        return {k: v for k, v in pairs if v is not None}
