"""Console chat client for local GGUF models."""

from .core import ModelSession, Role
from .errors import (
    ChatError,
    GenerationError,
    ModelLoadError,
    NotInitializedError,
    NotReadyError,
    SessionBusyError,
    SessionStateError,
)

__version__ = "0.1.0"

__all__ = [
    "ModelSession",
    "Role",
    "ChatError",
    "GenerationError",
    "ModelLoadError",
    "NotInitializedError",
    "NotReadyError",
    "SessionBusyError",
    "SessionStateError",
]
