"""Session manager, chat history and the inference-engine seam."""

from .engine import InferenceEngine, LlamaCppEngine
from .history import ChatHistory, ChatMessage, Role
from .session import GenerationRequest, ModelSession, SessionState

__all__ = [
    "InferenceEngine",
    "LlamaCppEngine",
    "ChatHistory",
    "ChatMessage",
    "Role",
    "GenerationRequest",
    "ModelSession",
    "SessionState",
]
