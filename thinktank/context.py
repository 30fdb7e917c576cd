"""Prompt construction for each speaker, derived only from the transcript so far.

Every builder is a pure function: the same transcript snapshot and request
always give the same message list.
"""

from config.config_loader import PromptsConfig
from thinktank.models import (
    MODERATOR_ID,
    MODERATOR_SUMMARY_ID,
    SUMMARY_ID,
    Discipline,
    DiscussionRequest,
    Persona,
    PromptMessages,
    Transcript,
    Turn,
)


def _system_message(speaker: Persona, request: DiscussionRequest, clause: str = "") -> dict[str, str]:
    parts = [speaker.system_prompt]
    if request.external_context:
        parts.append(request.external_context)
    if clause:
        parts.append(clause)
    return {"role": "system", "content": "\n\n".join(parts)}


def _user_message(content: str) -> dict[str, str]:
    return {"role": "user", "content": content}


def format_sequential_turns(turns: list[Turn]) -> str:
    return "\n".join(f"**{t.speaker_name}**: {t.content}" for t in turns)


def format_moderated_background(turns: list[Turn]) -> str:
    lines = []
    for t in turns:
        if t.speaker_id == MODERATOR_ID:
            lines.append(f"{t.speaker_name} opening: {t.content}")
        else:
            lines.append(f"{t.speaker_name}: {t.content}")
    return "\n\n".join(lines)


def format_free_transcript(turns: list[Turn]) -> str:
    return "\n\n".join(
        f"**{t.speaker_name} (round {t.round_number})**: {t.content}" for t in turns
    )


def format_participants(participants: list[Persona]) -> str:
    return ", ".join(f"{p.name} ({p.role})" for p in participants)


def build_sequential_prompt(
    speaker: Persona,
    transcript: Transcript,
    request: DiscussionRequest,
    prompts: PromptsConfig,
) -> PromptMessages:
    clause = ""
    if transcript.turns:
        clause = prompts.sequential_context.format(
            previous_turns=format_sequential_turns(transcript.turns),
        )
    return [
        _system_message(speaker, request, clause),
        *({"role": m["role"], "content": m["content"]} for m in request.history),
        _user_message(request.message),
    ]


def build_moderator_opening_prompt(
    speaker: Persona,
    request: DiscussionRequest,
    prompts: PromptsConfig,
    participants: list[Persona],
) -> PromptMessages:
    return [
        _system_message(speaker, request),
        _user_message(
            prompts.moderator_opening.format(
                question=request.message,
                participants=format_participants(participants),
            )
        ),
    ]


def build_moderated_prompt(
    speaker: Persona,
    transcript: Transcript,
    request: DiscussionRequest,
    prompts: PromptsConfig,
) -> PromptMessages:
    clause = ""
    if transcript.turns:
        clause = prompts.moderated_background.format(
            background=format_moderated_background(transcript.turns),
        )
    return [_system_message(speaker, request, clause), _user_message(request.message)]


def build_moderator_summary_prompt(
    speaker: Persona,
    transcript: Transcript,
    request: DiscussionRequest,
    prompts: PromptsConfig,
) -> PromptMessages:
    before_summary = ""
    if request.participation_timing == "before_summary":
        before_summary = "\n\n" + prompts.before_summary
    return [
        _system_message(speaker, request),
        _user_message(
            prompts.moderator_summary.format(
                question=request.message,
                background=format_moderated_background(transcript.turns),
                before_summary=before_summary,
            )
        ),
    ]


def build_free_prompt(
    speaker: Persona,
    transcript: Transcript,
    request: DiscussionRequest,
    prompts: PromptsConfig,
    round_number: int,
) -> PromptMessages:
    # Round 1 is an unconditioned opening statement from every persona
    clause = ""
    if round_number > 1 and transcript.turns:
        clause = prompts.free_context.format(
            background=format_free_transcript(transcript.turns),
            round=round_number,
        )
    return [_system_message(speaker, request, clause), _user_message(request.message)]


def build_free_summary_prompt(
    speaker: Persona,
    transcript: Transcript,
    request: DiscussionRequest,
    prompts: PromptsConfig,
) -> PromptMessages:
    return [
        _system_message(speaker, request),
        _user_message(
            prompts.free_summary.format(
                question=request.message,
                transcript=format_free_transcript(transcript.turns),
            )
        ),
    ]


def build_prompt(
    speaker: Persona,
    transcript: Transcript,
    request: DiscussionRequest,
    prompts: PromptsConfig,
    *,
    round_number: int | None = None,
    participants: list[Persona] | None = None,
) -> PromptMessages:
    """Return the message list for the next turn of ``speaker``.

    Args:
        speaker: Persona about to speak; synthetic speakers are recognized by id.
        transcript: Turns committed so far. Not modified.
        request: The discussion request (question, external context, history).
        prompts: Prompt templates from config.
        round_number: Current round, required for ``free`` persona turns.
        participants: Selected personas, required for the moderator opening.

    Returns:
        OpenAI-style messages: one system message, then (sequential only) the
        prior conversation history, then the user question last.
    """
    discipline = request.discipline
    if discipline == Discipline.SEQUENTIAL:
        return build_sequential_prompt(speaker, transcript, request, prompts)

    if discipline == Discipline.MODERATED:
        if speaker.id == MODERATOR_ID:
            return build_moderator_opening_prompt(speaker, request, prompts, participants or [])
        if speaker.id == MODERATOR_SUMMARY_ID:
            return build_moderator_summary_prompt(speaker, transcript, request, prompts)
        return build_moderated_prompt(speaker, transcript, request, prompts)

    if speaker.id == SUMMARY_ID:
        return build_free_summary_prompt(speaker, transcript, request, prompts)
    if round_number is None:
        raise ValueError("round_number is required for free discussion turns")
    return build_free_prompt(speaker, transcript, request, prompts, round_number)
