"""Turn execution: stream one speaker's response to the caller while keeping the full text."""

import logging
import time
from contextlib import aclosing

from thinktank.errors import GenerationError, StreamProtocolError, TransportClosedError
from thinktank.events import EventStream
from thinktank.models import Persona, PromptMessages
from thinktank.providers.base import AIProvider

logger = logging.getLogger(__name__)


class TurnExecutor:
    """Runs single turns against one provider, writing frames to one stream."""

    def __init__(self, provider: AIProvider, stream: EventStream) -> None:
        self._provider = provider
        self._stream = stream

    async def run_turn(
        self,
        speaker: Persona,
        messages: PromptMessages,
        max_tokens: int,
        temperature: float,
        round_number: int | None = None,
    ) -> str:
        """Stream a turn and return its full text.

        Each fragment goes to two consumers: the event stream (forwarded
        immediately) and a local accumulator whose joined value is returned.
        ``turn_end`` is written only when the provider stream completes.

        Raises:
            GenerationError: The provider failed mid-turn. No ``turn_end`` is written.
            TransportClosedError: The caller went away. The provider stream is closed.
        """
        await self._stream.turn_start(speaker, round_number)

        start = time.monotonic()
        fragments: list[str] = []
        fragment_stream = self._provider.stream_completion(messages, max_tokens, temperature)
        try:
            async with aclosing(fragment_stream) as fragment_iter:
                async for fragment in fragment_iter:
                    if not fragment:
                        continue
                    await self._stream.content(fragment)
                    fragments.append(fragment)
        except TransportClosedError:
            logger.info("Transport closed during %s turn, provider stream released", speaker.id)
            raise
        except StreamProtocolError:
            raise
        except Exception as exc:
            logger.warning("Generation failed for %s after %d fragments: %s", speaker.id, len(fragments), exc)
            raise GenerationError(speaker.id, str(exc)) from exc

        await self._stream.turn_end(speaker.id)

        full_text = "".join(fragments)
        logger.info(
            "Turn %s%s: %d fragments, %d chars, %.2fs",
            speaker.id,
            f" (round {round_number})" if round_number is not None else "",
            len(fragments),
            len(full_text),
            time.monotonic() - start,
        )
        return full_text
