"""Tests for thinktank/context.py."""

import pytest

from thinktank.context import (
    build_prompt,
    format_free_transcript,
    format_moderated_background,
    format_participants,
    format_sequential_turns,
)
from thinktank.models import Discipline, DiscussionRequest, Transcript, Turn
from thinktank.registry import moderator_persona, moderator_summary_persona, secretary_persona


def _turn(speaker_id: str, name: str, content: str, round_number: int | None = None) -> Turn:
    return Turn(speaker_id=speaker_id, speaker_name=name, speaker_role="r", content=content, round_number=round_number)


def _request(discipline: Discipline, **kwargs) -> DiscussionRequest:
    return DiscussionRequest(message="Is X viable?", persona_ids=["a", "b"], discipline=discipline, **kwargs)


def test_format_sequential_turns():
    turns = [_turn("a", "Alice", "Yes."), _turn("b", "Bob", "No.")]
    assert format_sequential_turns(turns) == "**Alice**: Yes.\n**Bob**: No."


def test_format_moderated_background_labels_opening():
    turns = [_turn("moderator", "Moderator", "Welcome."), _turn("a", "Alice", "Yes.")]
    assert format_moderated_background(turns) == "Moderator opening: Welcome.\n\nAlice: Yes."


def test_format_free_transcript_includes_rounds():
    turns = [_turn("a", "Alice", "One.", 1), _turn("a", "Alice", "Two.", 2)]
    assert format_free_transcript(turns) == "**Alice (round 1)**: One.\n\n**Alice (round 2)**: Two."


def test_format_participants(persona_a, persona_b):
    assert format_participants([persona_a, persona_b]) == "Alice (Strategist), Bob (Engineer)"


def test_first_sequential_speaker_has_no_clause(persona_a, sample_prompts_config):
    messages = build_prompt(persona_a, Transcript(Discipline.SEQUENTIAL), _request(Discipline.SEQUENTIAL), sample_prompts_config)
    assert messages == [
        {"role": "system", "content": "You are Alice, a strategist."},
        {"role": "user", "content": "Is X viable?"},
    ]


def test_external_context_follows_preamble(persona_a, sample_prompts_config):
    transcript = Transcript(Discipline.SEQUENTIAL, turns=[_turn("b", "Bob", "Cheap to build.")])
    request = _request(Discipline.SEQUENTIAL, external_context="Project: Nebula")
    system = build_prompt(persona_a, transcript, request, sample_prompts_config)[0]["content"]

    assert system.startswith("You are Alice, a strategist.\n\nProject: Nebula\n\n")
    assert system.endswith("Earlier experts said:\n**Bob**: Cheap to build.\nBuild on it.")


def test_sequential_history_passed_as_literal_turns(persona_a, sample_prompts_config):
    history = [
        {"role": "user", "content": "Earlier question"},
        {"role": "assistant", "content": "Earlier answer"},
    ]
    messages = build_prompt(
        persona_a,
        Transcript(Discipline.SEQUENTIAL),
        _request(Discipline.SEQUENTIAL, history=history),
        sample_prompts_config,
    )
    assert [m["role"] for m in messages] == ["system", "user", "assistant", "user"]
    assert messages[1:3] == history
    assert messages[-1]["content"] == "Is X viable?"


def test_history_ignored_outside_sequential(persona_a, sample_prompts_config):
    history = [{"role": "user", "content": "Earlier question"}]
    messages = build_prompt(
        persona_a,
        Transcript(Discipline.FREE),
        _request(Discipline.FREE, history=history),
        sample_prompts_config,
        round_number=1,
    )
    assert len(messages) == 2


def test_moderator_opening_lists_participants(persona_a, persona_b, sample_prompts_config):
    messages = build_prompt(
        moderator_persona(sample_prompts_config),
        Transcript(Discipline.MODERATED),
        _request(Discipline.MODERATED),
        sample_prompts_config,
        participants=[persona_a, persona_b],
    )
    assert messages[0]["content"] == "You moderate."
    assert messages[1]["content"] == 'Question: "Is X viable?"\nPanel: Alice (Strategist), Bob (Engineer)\nOpen briefly.'


def test_moderated_persona_sees_opening_and_prior_personas(persona_b, sample_prompts_config):
    transcript = Transcript(
        Discipline.MODERATED,
        turns=[_turn("moderator", "Moderator", "Welcome."), _turn("a", "Alice", "Yes.")],
    )
    system = build_prompt(persona_b, transcript, _request(Discipline.MODERATED), sample_prompts_config)[0]["content"]
    assert system == "You are Bob, an engineer.\n\nBackground:\nModerator opening: Welcome.\n\nAlice: Yes."


@pytest.mark.parametrize(("timing", "expected"), [(None, False), ("on_key_points", False), ("before_summary", True)])
def test_moderator_summary_timing(sample_prompts_config, timing, expected):
    transcript = Transcript(Discipline.MODERATED, turns=[_turn("a", "Alice", "Yes.")])
    messages = build_prompt(
        moderator_summary_persona(sample_prompts_config),
        transcript,
        _request(Discipline.MODERATED, participation_timing=timing),
        sample_prompts_config,
    )
    assert ("Ask clarifying questions first." in messages[-1]["content"]) is expected
    assert "Alice: Yes." in messages[-1]["content"]


def test_free_round_one_ignores_earlier_speakers(persona_b, sample_prompts_config):
    transcript = Transcript(Discipline.FREE, turns=[_turn("a", "Alice", "Opening.", 1)])
    system = build_prompt(persona_b, transcript, _request(Discipline.FREE), sample_prompts_config, round_number=1)[0]["content"]
    assert system == "You are Bob, an engineer."


def test_free_later_round_includes_everything(persona_a, sample_prompts_config):
    transcript = Transcript(
        Discipline.FREE,
        turns=[_turn("a", "Alice", "A1", 1), _turn("b", "Bob", "B1", 1)],
    )
    system = build_prompt(persona_a, transcript, _request(Discipline.FREE), sample_prompts_config, round_number=2)[0]["content"]
    assert "**Alice (round 1)**: A1\n\n**Bob (round 1)**: B1" in system
    assert system.endswith("Round 2, go deeper.")


def test_free_requires_round_number(persona_a, sample_prompts_config):
    with pytest.raises(ValueError, match="round_number"):
        build_prompt(persona_a, Transcript(Discipline.FREE), _request(Discipline.FREE), sample_prompts_config)


def test_free_summary_gets_whole_transcript(sample_prompts_config):
    transcript = Transcript(Discipline.FREE, turns=[_turn("a", "Alice", "A1", 1), _turn("b", "Bob", "B1", 1)])
    messages = build_prompt(
        secretary_persona(sample_prompts_config),
        transcript,
        _request(Discipline.FREE),
        sample_prompts_config,
    )
    assert messages[0]["content"] == "You take minutes."
    assert messages[1]["content"] == (
        "Question: Is X viable?\nDiscussion:\n**Alice (round 1)**: A1\n\n**Bob (round 1)**: B1"
    )


def test_build_prompt_is_deterministic_and_pure(persona_a, sample_prompts_config):
    transcript = Transcript(Discipline.SEQUENTIAL, turns=[_turn("b", "Bob", "B")])
    request = _request(Discipline.SEQUENTIAL)
    first = build_prompt(persona_a, transcript, request, sample_prompts_config)
    second = build_prompt(persona_a, transcript, request, sample_prompts_config)
    assert first == second
    assert len(transcript.turns) == 1
