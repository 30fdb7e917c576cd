"""Event multiplexer: serializes discussion events into wire frames.

Frames use server-sent-event framing, one JSON object per frame:

    data: {"type": "content", "content": "..."}\\n\\n

This module owns the only I/O boundary of the orchestrator. Everything
upstream calls the typed methods below in order; each call writes exactly one
frame to the sink and awaits it before returning.
"""

import json
import logging
from collections.abc import Awaitable, Callable

from thinktank.errors import StreamProtocolError, TransportClosedError
from thinktank.models import Persona, StreamEvent

logger = logging.getLogger(__name__)

FrameSink = Callable[[str], Awaitable[None]]

_FRAME_PREFIX = "data: "
_FRAME_SUFFIX = "\n\n"


def encode_frame(event: StreamEvent) -> str:
    return _FRAME_PREFIX + json.dumps(event.to_payload(), ensure_ascii=False) + _FRAME_SUFFIX


def parse_frame(frame: str) -> dict:
    """Decode one frame back into its JSON payload.

    Raises:
        ValueError: If the text is not a single ``data:`` frame.
    """
    text = frame.strip()
    if not text.startswith(_FRAME_PREFIX.strip()):
        raise ValueError(f"Not a data frame: {frame[:40]!r}")
    return json.loads(text[len(_FRAME_PREFIX.strip()):].strip())


class EventStream:
    """Ordered, unbuffered writer of discussion frames.

    Tracks the open turn so content can never leak outside a
    ``turn_start``/``turn_end`` pair. Once ``end`` or ``error`` is written, or
    the sink fails, the stream is closed and every further write raises.
    """

    def __init__(self, sink: FrameSink) -> None:
        self._sink = sink
        self._open_turn: str | None = None
        self._closed = False
        self.frames_written = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def open_turn(self) -> str | None:
        return self._open_turn

    async def _write(self, event: StreamEvent) -> None:
        if self._closed:
            raise TransportClosedError(f"Stream already closed, cannot write {event.type!r}")
        try:
            await self._sink(encode_frame(event))
        except TransportClosedError:
            self._closed = True
            raise
        except (ConnectionError, BrokenPipeError) as exc:
            self._closed = True
            raise TransportClosedError(f"Transport closed while writing {event.type!r}: {exc}") from exc
        except Exception:
            self._closed = True
            raise
        self.frames_written += 1

    async def start(self, discipline: str) -> None:
        await self._write(StreamEvent(type="start", discipline=discipline))

    async def round(self, round_number: int, total_rounds: int) -> None:
        if self._open_turn is not None:
            raise StreamProtocolError("round marker inside an open turn")
        await self._write(StreamEvent(type="round", round=round_number, total_rounds=total_rounds))

    async def turn_start(self, speaker: Persona, round_number: int | None = None) -> None:
        if self._open_turn is not None:
            raise StreamProtocolError(
                f"turn_start for {speaker.id!r} while {self._open_turn!r} is still open"
            )
        await self._write(
            StreamEvent(
                type="turn_start",
                speaker_id=speaker.id,
                speaker_name=speaker.name,
                speaker_role=speaker.role,
                round=round_number,
            )
        )
        self._open_turn = speaker.id

    async def content(self, text: str) -> None:
        if self._open_turn is None:
            raise StreamProtocolError("content outside of a turn")
        await self._write(StreamEvent(type="content", content=text))

    async def turn_end(self, speaker_id: str) -> None:
        if self._open_turn != speaker_id:
            raise StreamProtocolError(f"turn_end for {speaker_id!r}, open turn is {self._open_turn!r}")
        await self._write(StreamEvent(type="turn_end", speaker_id=speaker_id))
        self._open_turn = None

    async def error(self, message: str) -> None:
        await self._write(StreamEvent(type="error", message=message))
        self._open_turn = None
        self._closed = True

    async def end(self) -> None:
        if self._open_turn is not None:
            raise StreamProtocolError(f"end while turn {self._open_turn!r} is still open")
        await self._write(StreamEvent(type="end"))
        self._closed = True
