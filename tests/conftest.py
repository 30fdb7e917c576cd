"""Shared pytest fixtures."""

import asyncio
from collections.abc import AsyncIterator
from pathlib import Path

import pytest

from config.config_loader import DiscussionConfig, ModelConfig, PersonaConfig, PromptsConfig
from thinktank.events import parse_frame
from thinktank.models import Discipline, DiscussionRequest, Persona, PromptMessages
from thinktank.providers.base import AIProvider, ProviderError
from thinktank.registry import PersonaRegistry


@pytest.fixture
def sample_model_config() -> ModelConfig:
    return ModelConfig(
        name="test_model",
        sdk="openai",
        model="test-model-1",
        api_key_env="TEST_API_KEY",
        timeout_sec=30,
        base_url=None,
    )


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(
        moderator="You moderate.",
        secretary="You take minutes.",
        sequential_context="Earlier experts said:\n{previous_turns}\nBuild on it.",
        moderated_background="Background:\n{background}",
        moderator_opening='Question: "{question}"\nPanel: {participants}\nOpen briefly.',
        moderator_summary="Question: {question}\nDiscussion:\n{background}\nSummarize.{before_summary}",
        before_summary="Ask clarifying questions first.",
        free_context="Earlier:\n{background}\nRound {round}, go deeper.",
        free_summary="Question: {question}\nDiscussion:\n{transcript}",
        moderator_name="Moderator",
        moderator_role="Facilitator",
        moderator_summary_role="Summary",
        secretary_name="Secretary",
        secretary_role="Minutes",
    )


@pytest.fixture
def sample_discussion_config() -> DiscussionConfig:
    return DiscussionConfig(
        max_tokens=1000,
        temperature=0.7,
        max_experts=0,
        max_discussion_rounds=0,
        default_discussion_rounds=3,
        opening_max_tokens=500,
        moderator_summary_max_tokens=800,
        summary_max_tokens=1500,
        summary_temperature=0.5,
    )


@pytest.fixture
def persona_a() -> Persona:
    return Persona(id="a", name="Alice", role="Strategist", system_prompt="You are Alice, a strategist.")


@pytest.fixture
def persona_b() -> Persona:
    return Persona(id="b", name="Bob", role="Engineer", system_prompt="You are Bob, an engineer.")


@pytest.fixture
def persona_c() -> Persona:
    return Persona(id="c", name="Carol", role="Lawyer", system_prompt="You are Carol, a lawyer.")


@pytest.fixture
def registry(persona_a: Persona, persona_b: Persona, persona_c: Persona) -> PersonaRegistry:
    return PersonaRegistry([persona_a, persona_b, persona_c])


@pytest.fixture
def sample_personas_config() -> list[PersonaConfig]:
    return [
        PersonaConfig(id="a", name="Alice", role="Strategist", system_prompt="You are Alice."),
        PersonaConfig(id="b", name="Bob", role="Engineer", system_prompt="You are Bob."),
    ]


@pytest.fixture
def sample_request() -> DiscussionRequest:
    return DiscussionRequest(
        message="Is X viable?",
        persona_ids=["a", "b"],
        discipline=Discipline.SEQUENTIAL,
    )


class FakeProvider(AIProvider):
    """Scripted streaming provider that records every call.

    Each call streams the next script entry (a list of fragments). When the
    script runs out, replies are generated from the call index so every turn
    has distinct text.
    """

    def __init__(
        self,
        provider_name: str = "fake",
        script: list[list[str]] | None = None,
        fail_on_call: int | None = None,
        fail_after_fragments: int = 1,
    ) -> None:
        self._name = provider_name
        self._script = list(script or [])
        self._fail_on_call = fail_on_call
        self._fail_after = fail_after_fragments
        self.calls: list[dict] = []
        self.closed_streams = 0

    def name(self) -> str:
        return self._name

    def model_string(self) -> str:
        return "fake-model"

    def fragments_for(self, call_index: int) -> list[str]:
        if call_index < len(self._script):
            return self._script[call_index]
        return [f"reply {call_index} ", "part two ", "end."]

    async def stream_completion(
        self,
        messages: PromptMessages,
        max_tokens: int,
        temperature: float,
    ) -> AsyncIterator[str]:
        index = len(self.calls)
        self.calls.append({"messages": messages, "max_tokens": max_tokens, "temperature": temperature})
        try:
            for i, fragment in enumerate(self.fragments_for(index)):
                if self._fail_on_call == index and i == self._fail_after:
                    raise ProviderError(self._name, "connection reset mid-stream")
                await asyncio.sleep(0)
                yield fragment
        finally:
            self.closed_streams += 1

    def system_prompt(self, call_index: int) -> str:
        return self.calls[call_index]["messages"][0]["content"]

    def last_user_message(self, call_index: int) -> str:
        return self.calls[call_index]["messages"][-1]["content"]


class RecordingSink:
    """Frame sink that keeps every frame; can simulate the caller disconnecting."""

    def __init__(self, close_after: int | None = None, error: type[BaseException] = ConnectionResetError) -> None:
        self.frames: list[str] = []
        self._close_after = close_after
        self._error = error

    async def __call__(self, frame: str) -> None:
        if self._close_after is not None and len(self.frames) >= self._close_after:
            raise self._error("client disconnected")
        self.frames.append(frame)

    @property
    def events(self) -> list[dict]:
        return [parse_frame(f) for f in self.frames]

    @property
    def types(self) -> list[str]:
        return [e["type"] for e in self.events]

    def turns(self) -> list[tuple[dict, str]]:
        """Return (turn_start event, concatenated content) for each completed turn."""
        result: list[tuple[dict, str]] = []
        current: dict | None = None
        parts: list[str] = []
        for event in self.events:
            if event["type"] == "turn_start":
                current, parts = event, []
            elif event["type"] == "content":
                parts.append(event["content"])
            elif event["type"] == "turn_end":
                assert current is not None
                result.append((current, "".join(parts)))
                current = None
        return result


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def settings_file(tmp_path: Path) -> Path:
    """Copy of the bundled settings, for tests that load from disk."""
    bundled = Path(__file__).parent.parent / "config" / "settings.yaml"
    path = tmp_path / "settings.yaml"
    path.write_text(bundled.read_text(encoding="utf-8"), encoding="utf-8")
    return path
