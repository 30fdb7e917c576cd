"""Exception taxonomy for discussion orchestration."""


class DiscussionError(Exception):
    """Base class for every failure raised by the orchestrator."""


class RequestValidationError(DiscussionError):
    """Raised before the first frame is written; the stream never starts."""


class InvalidRequestError(RequestValidationError):
    """Request is malformed (empty message, bad round count, duplicate ids)."""


class UnknownPersonaError(RequestValidationError):
    def __init__(self, persona_ids: list[str]) -> None:
        self.persona_ids = persona_ids
        super().__init__(f"Unknown persona(s): {', '.join(persona_ids)}")


class InsufficientParticipantsError(RequestValidationError):
    def __init__(self, count: int, minimum: int) -> None:
        self.count = count
        self.minimum = minimum
        super().__init__(f"Select at least {minimum} personas, got {count}")


class TooManyParticipantsError(RequestValidationError):
    def __init__(self, count: int, maximum: int) -> None:
        self.count = count
        self.maximum = maximum
        super().__init__(f"Select at most {maximum} personas, got {count}")


class GenerationError(DiscussionError):
    """The text-generation capability failed mid-turn."""

    def __init__(self, speaker_id: str, message: str) -> None:
        self.speaker_id = speaker_id
        super().__init__(message)


class TransportClosedError(DiscussionError):
    """The caller's output transport went away."""


class StreamProtocolError(DiscussionError):
    """A frame was written out of order (e.g. content outside a turn)."""
