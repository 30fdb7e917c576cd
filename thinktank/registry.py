"""Persona catalog: loaded once at startup, shared read-only across discussions."""

import logging
from collections.abc import Iterable

from config.config_loader import PersonaConfig, PromptsConfig
from thinktank.errors import UnknownPersonaError
from thinktank.models import MODERATOR_ID, MODERATOR_SUMMARY_ID, SUMMARY_ID, Persona

logger = logging.getLogger(__name__)


class PersonaRegistry:
    """Immutable lookup of selectable personas by id."""

    def __init__(self, personas: Iterable[Persona]) -> None:
        self._personas: dict[str, Persona] = {}
        for persona in personas:
            if persona.id in self._personas:
                raise ValueError(f"Duplicate persona id in catalog: {persona.id}")
            self._personas[persona.id] = persona

    @classmethod
    def from_config(cls, personas: list[PersonaConfig]) -> "PersonaRegistry":
        registry = cls(
            Persona(id=p.id, name=p.name, role=p.role, system_prompt=p.system_prompt)
            for p in personas
        )
        logger.debug("Loaded %d personas: %s", len(registry), ", ".join(registry.ids()))
        return registry

    def get(self, ids: list[str]) -> list[Persona]:
        """Resolve ids in the given order.

        Raises:
            UnknownPersonaError: If any id is not in the catalog.
        """
        missing = [i for i in ids if i not in self._personas]
        if missing:
            raise UnknownPersonaError(missing)
        return [self._personas[i] for i in ids]

    def all(self) -> list[Persona]:
        return list(self._personas.values())

    def ids(self) -> list[str]:
        return list(self._personas)

    def __contains__(self, persona_id: object) -> bool:
        return persona_id in self._personas

    def __len__(self) -> int:
        return len(self._personas)


def moderator_persona(prompts: PromptsConfig) -> Persona:
    return Persona(
        id=MODERATOR_ID,
        name=prompts.moderator_name,
        role=prompts.moderator_role,
        system_prompt=prompts.moderator.strip(),
    )


def moderator_summary_persona(prompts: PromptsConfig) -> Persona:
    return Persona(
        id=MODERATOR_SUMMARY_ID,
        name=prompts.moderator_name,
        role=prompts.moderator_summary_role,
        system_prompt=prompts.moderator.strip(),
    )


def secretary_persona(prompts: PromptsConfig) -> Persona:
    return Persona(
        id=SUMMARY_ID,
        name=prompts.secretary_name,
        role=prompts.secretary_role,
        system_prompt=prompts.secretary.strip(),
    )
