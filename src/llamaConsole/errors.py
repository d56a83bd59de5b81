"""Exceptions raised by the session manager and the console."""


class ChatError(Exception):
    """Base class for every error this package raises on purpose."""


class ModelLoadError(ChatError):
    """The model file is missing, unreadable, or rejected by the engine."""


class SessionStateError(ChatError):
    """An operation was called in the wrong order."""


class NotInitializedError(SessionStateError):
    """No model is loaded (initialize() never succeeded, or dispose() ran)."""


class NotReadyError(SessionStateError):
    """No chat session is bound (setup_session() never ran, or dispose() ran)."""


class GenerationError(ChatError):
    """The engine failed while streaming a response."""


class SessionBusyError(GenerationError):
    """A response is already being streamed."""
