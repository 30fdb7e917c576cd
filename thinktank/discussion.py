"""Discussion orchestration: validate, then drive turns for one of three disciplines.

    sequential  every persona once, in selection order
    moderated   moderator opening, every persona, moderator summary
    free        R rounds of every persona, then a secretary summary

Turns never overlap: each prompt is built from the transcript as it stands
after the previous turn was committed.
"""

import asyncio
import logging
from collections.abc import Callable

from config.config_loader import DiscussionConfig, PromptsConfig
from thinktank.context import build_prompt
from thinktank.errors import (
    GenerationError,
    InsufficientParticipantsError,
    InvalidRequestError,
    TooManyParticipantsError,
    TransportClosedError,
)
from thinktank.events import EventStream, FrameSink
from thinktank.executor import TurnExecutor
from thinktank.models import (
    Discipline,
    DiscussionRequest,
    DiscussionState,
    Persona,
    Transcript,
    Turn,
)
from thinktank.providers.base import AIProvider
from thinktank.registry import (
    PersonaRegistry,
    moderator_persona,
    moderator_summary_persona,
    secretary_persona,
)

logger = logging.getLogger(__name__)

MIN_PARTICIPANTS = 2

TurnCallback = Callable[[Turn], None]


def validate_request(
    request: DiscussionRequest,
    registry: PersonaRegistry,
    settings: DiscussionConfig,
) -> list[Persona]:
    """Check the request and resolve its personas. Writes nothing.

    Raises:
        InvalidRequestError: Empty message, unknown discipline, duplicate ids,
            or a round count below 1.
        InsufficientParticipantsError: Fewer than two personas selected.
        TooManyParticipantsError: More personas than ``settings.max_experts``.
        UnknownPersonaError: An id is not in the registry.
    """
    if not request.message or not request.message.strip():
        raise InvalidRequestError("Message must not be empty")
    try:
        Discipline(request.discipline)
    except ValueError as exc:
        raise InvalidRequestError(f"Unknown discipline: {request.discipline!r}") from exc

    ids = request.persona_ids
    if len(ids) < MIN_PARTICIPANTS:
        raise InsufficientParticipantsError(len(ids), MIN_PARTICIPANTS)
    # Reject, never truncate, an oversized selection
    if settings.max_experts > 0 and len(ids) > settings.max_experts:
        raise TooManyParticipantsError(len(ids), settings.max_experts)
    duplicates = sorted({i for i in ids if ids.count(i) > 1})
    if duplicates:
        raise InvalidRequestError(f"Persona(s) selected more than once: {', '.join(duplicates)}")
    if request.round_count is not None and request.round_count < 1:
        raise InvalidRequestError(f"Round count must be at least 1, got {request.round_count}")

    return registry.get(ids)


def effective_rounds(request: DiscussionRequest, settings: DiscussionConfig) -> int:
    """Requested round count (or the configured default), clamped to the configured maximum."""
    rounds = request.round_count if request.round_count is not None else settings.default_discussion_rounds
    if settings.max_discussion_rounds > 0 and rounds > settings.max_discussion_rounds:
        logger.info("Round count %d clamped to maximum %d", rounds, settings.max_discussion_rounds)
        rounds = settings.max_discussion_rounds
    return rounds


class Discussion:
    """State machine for one discussion request.

    Owns the transcript for the lifetime of the request. ``run()`` may be
    called once.
    """

    def __init__(
        self,
        request: DiscussionRequest,
        personas: list[Persona],
        provider: AIProvider,
        stream: EventStream,
        settings: DiscussionConfig,
        prompts: PromptsConfig,
        on_turn_complete: TurnCallback | None = None,
    ) -> None:
        self._request = request
        self._personas = personas
        self._stream = stream
        self._settings = settings
        self._prompts = prompts
        self._on_turn_complete = on_turn_complete
        self._executor = TurnExecutor(provider, stream)
        self.transcript = Transcript(discipline=Discipline(request.discipline))

    @property
    def state(self) -> DiscussionState:
        return self.transcript.status

    async def run(self) -> Transcript:
        """Emit the whole discussion and return the committed transcript.

        Any failure after ``start`` (generation, prompt templates, the turn
        callback) becomes a single ``error`` frame; a closed transport stops
        all work silently. Either way the returned transcript holds only
        fully completed turns.
        """
        if self.transcript.status != DiscussionState.INIT:
            raise RuntimeError(f"Discussion already {self.transcript.status.value}")
        self.transcript.status = DiscussionState.RUNNING
        discipline = self.transcript.discipline
        logger.info(
            "Discussion started: %s, %d personas (%s)",
            discipline.value,
            len(self._personas),
            ", ".join(p.id for p in self._personas),
        )

        try:
            await self._stream.start(discipline.value)
            if discipline == Discipline.SEQUENTIAL:
                await self._run_sequential()
            elif discipline == Discipline.MODERATED:
                await self._run_moderated()
            else:
                await self._run_free()
            await self._stream.end()
        except GenerationError as exc:
            logger.warning("Discussion aborted during %s turn: %s", exc.speaker_id, exc)
            await self._abort(str(exc))
            return self.transcript
        except TransportClosedError as exc:
            self.transcript.status = DiscussionState.CANCELLED
            logger.info("Discussion cancelled after %d turns: %s", len(self.transcript.turns), exc)
            return self.transcript
        except asyncio.CancelledError:
            self.transcript.status = DiscussionState.CANCELLED
            logger.info("Discussion task cancelled after %d turns", len(self.transcript.turns))
            raise
        except Exception as exc:
            logger.exception("Discussion failed after %d turns", len(self.transcript.turns))
            await self._abort(f"{type(exc).__name__}: {exc}")
            return self.transcript

        self.transcript.status = DiscussionState.FINISHED
        logger.info("Discussion finished: %d turns", len(self.transcript.turns))
        return self.transcript

    async def _abort(self, message: str) -> None:
        self.transcript.status = DiscussionState.ERRORED
        self.transcript.error = message
        try:
            await self._stream.error(message)
        except TransportClosedError:
            logger.info("Transport closed before error frame could be written")

    async def _take_turn(
        self,
        speaker: Persona,
        max_tokens: int,
        temperature: float,
        round_number: int | None = None,
    ) -> Turn:
        messages = build_prompt(
            speaker,
            self.transcript,
            self._request,
            self._prompts,
            round_number=round_number,
            participants=self._personas,
        )
        content = await self._executor.run_turn(speaker, messages, max_tokens, temperature, round_number)
        turn = Turn(
            speaker_id=speaker.id,
            speaker_name=speaker.name,
            speaker_role=speaker.role,
            content=content,
            round_number=round_number,
        )
        self.transcript.append(turn)
        if self._on_turn_complete:
            self._on_turn_complete(turn)
        return turn

    async def _run_sequential(self) -> None:
        for persona in self._personas:
            await self._take_turn(persona, self._settings.max_tokens, self._settings.temperature)

    async def _run_moderated(self) -> None:
        await self._take_turn(
            moderator_persona(self._prompts),
            self._settings.opening_max_tokens,
            self._settings.temperature,
        )
        for persona in self._personas:
            await self._take_turn(persona, self._settings.max_tokens, self._settings.temperature)
        await self._take_turn(
            moderator_summary_persona(self._prompts),
            self._settings.moderator_summary_max_tokens,
            self._settings.temperature,
        )

    async def _run_free(self) -> None:
        total_rounds = effective_rounds(self._request, self._settings)
        # One round of the whole panel shares a single max_tokens budget
        per_turn_tokens = max(1, self._settings.max_tokens // len(self._personas))

        for round_number in range(1, total_rounds + 1):
            await self._stream.round(round_number, total_rounds)
            logger.debug("Round %d/%d", round_number, total_rounds)
            for persona in self._personas:
                await self._take_turn(
                    persona,
                    per_turn_tokens,
                    self._settings.temperature,
                    round_number=round_number,
                )

        await self._take_turn(
            secretary_persona(self._prompts),
            self._settings.summary_max_tokens,
            self._settings.summary_temperature,
        )


async def run_discussion(
    request: DiscussionRequest,
    registry: PersonaRegistry,
    provider: AIProvider,
    sink: FrameSink,
    settings: DiscussionConfig,
    prompts: PromptsConfig,
    on_turn_complete: TurnCallback | None = None,
) -> Transcript:
    """Validate ``request`` and stream the discussion to ``sink``.

    Args:
        request: The caller's question, discipline and persona selection.
        registry: Persona catalog.
        provider: Streaming text-generation provider.
        sink: Async callable that writes one frame to the caller.
        settings: Configuration snapshot for this request.
        prompts: Prompt templates from config.
        on_turn_complete: Optional callback invoked after each committed turn.

    Returns:
        The transcript; check ``status`` for finished, errored or cancelled.

    Raises:
        RequestValidationError: Before any frame is written.
    """
    personas = validate_request(request, registry, settings)
    discussion = Discussion(
        request=request,
        personas=personas,
        provider=provider,
        stream=EventStream(sink),
        settings=settings,
        prompts=prompts,
        on_turn_complete=on_turn_complete,
    )
    return await discussion.run()
