"""Model session manager.

Owns the model weights, the inference context and the chat history for the
lifetime of the process, and turns one user message at a time into a stream
of text fragments.
"""

import asyncio
import os
import time
import weakref
from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path
from typing import AsyncIterator, Callable, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from loguru import logger

from ..config import SessionConfig, defaults
from ..errors import (
    GenerationError,
    ModelLoadError,
    NotInitializedError,
    NotReadyError,
    SessionBusyError,
    SessionStateError,
)
from .engine import InferenceEngine, LlamaCppEngine
from .history import ChatHistory, ChatMessage, Role


class SessionState(Enum):
    UNINITIALIZED = auto(); INITIALIZED = auto(); READY = auto(); GENERATING = auto(); DISPOSED = auto()


@dataclass(frozen=True)
class GenerationRequest:
    prompt: str
    max_tokens: int
    stop: Tuple[str, ...] = ()

    def __post_init__(self):
        if self.max_tokens <= 0:
            raise ValueError(f"max_tokens must be positive, got {self.max_tokens}.")


def check_model_file(model_path: str) -> Path:
    """Raise ModelLoadError unless ``model_path`` is a readable regular file."""
    path = Path(model_path)
    if not path.exists():
        raise ModelLoadError(f"Model file '{model_path}' does not exist.")
    if not path.is_file():
        raise ModelLoadError(f"Model path '{model_path}' is not a file.")
    if not os.access(path, os.R_OK):
        raise ModelLoadError(f"Model file '{model_path}' is not readable.")
    return path


def _ends_with_stop(text: str, new_chars: int, stop: Sequence[str]) -> bool:
    # Only matches ending inside the newest fragment count; earlier ones were already checked.
    for sequence in stop:
        if sequence and sequence in text[max(0, len(text) - new_chars - len(sequence) + 1):]:
            return True
    return False


class ModelSession:
    """Model Session Manager.

    Call ``initialize`` once, then ``setup_session``, then ``generate`` (or
    ``complete``) once per user turn. ``dispose`` releases everything and may
    be called any number of times.
    """

    def __init__(self, engine_factory: Callable[[], InferenceEngine] = LlamaCppEngine):
        self._engine_factory = engine_factory
        self._engine: Optional[InferenceEngine] = None
        self._config: Optional[SessionConfig] = None
        self._history: Optional[ChatHistory] = None
        self._pending_stream = None
        self.state = SessionState.UNINITIALIZED

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.dispose()

    @property
    def config(self) -> Optional[SessionConfig]:
        return self._config

    @property
    def history(self) -> List[ChatMessage]:
        return self._history.messages if self._history is not None else []

    @property
    def is_ready(self) -> bool:
        return self.state is SessionState.READY

    def _transition_to(self, new_state: SessionState):
        logger.debug(f"State transition: {self.state.name} -> {new_state.name}")
        self.state = new_state

    def initialize(self, model_path: str, context_size: int = 1024, gpu_layers: int = 10) -> None:
        if self.state is SessionState.DISPOSED:
            raise NotInitializedError("ModelSession has been disposed. Create a new one.")
        if self.state is not SessionState.UNINITIALIZED:
            raise SessionStateError("ModelSession is already initialized.")

        check_model_file(model_path)
        config = SessionConfig(model_path, context_size, gpu_layers)
        engine = self._engine_factory()
        try:
            engine.load(config)
        except ModelLoadError:
            raise
        except Exception as e:
            raise ModelLoadError(f"Failed to load model '{model_path}': {e}") from e

        self._engine = engine
        self._config = config
        self._transition_to(SessionState.INITIALIZED)
        logger.success(f"Model session initialized (n_ctx={context_size}, n_gpu_layers={gpu_layers}).")

    def setup_session(self, initial_history: Iterable[Tuple[Union[Role, str], str]] = ()) -> None:
        """Bind a fresh chat history, seeded with ``(role, text)`` pairs."""
        if self.state in (SessionState.UNINITIALIZED, SessionState.DISPOSED):
            raise NotInitializedError("ModelSession is not initialized. Call initialize() first.")
        if self.state is SessionState.GENERATING:
            raise SessionBusyError("Cannot reset the chat session while a response is streaming.")
        self._history = ChatHistory(initial_history)
        self._transition_to(SessionState.READY)
        logger.info(f"Chat session set up with {len(self._history)} seed message(s).")

    def _require_ready(self):
        if self.state is SessionState.GENERATING:
            raise SessionBusyError("A response is already being generated.")
        if self.state is not SessionState.READY:
            raise NotReadyError("Chat session is not set up. Call setup_session() first.")

    def _has_pending_stream(self) -> bool:
        """True while a stream handed out by generate() is neither finished nor discarded."""
        stream = self._pending_stream() if self._pending_stream is not None else None
        return stream is not None and stream.gi_frame is not None

    def generate(
        self,
        user_text: str,
        max_tokens: int = defaults.max_tokens,
        stop: Optional[Sequence[str]] = None,
    ) -> Iterator[str]:
        """Stream the reply to ``user_text`` as text fragments.

        The stream ends after ``max_tokens`` fragments or right after the
        fragment that completes one of the ``stop`` sequences. ``stop=None``
        uses the default stop list; pass ``[]`` to disable stop sequences.
        The full reply is the concatenation of the fragments.
        """
        self._require_ready()
        if self._has_pending_stream():
            raise SessionBusyError("Another response stream is still pending.")
        request = GenerationRequest(user_text, max_tokens, tuple(defaults.stop if stop is None else stop))
        stream = self._stream(request)
        self._pending_stream = weakref.ref(stream)
        return stream

    def _stream(self, request: GenerationRequest) -> Iterator[str]:
        self._require_ready()
        self._transition_to(SessionState.GENERATING)
        history = self._history
        history.add(Role.USER, request.prompt)

        logger.info(f"Starting LLM stream for prompt: '{request.prompt}'")
        start_time = time.time()
        stream = None
        fragments: List[str] = []
        text = ""
        failed = False
        try:
            try:
                stream = iter(self._engine.stream_chat(history.to_messages(), request.max_tokens, request.stop))
            except Exception as e:
                failed = True
                raise GenerationError(f"Generation failed: {e}") from e

            while len(fragments) < request.max_tokens:
                try:
                    fragment = next(stream)
                except StopIteration:
                    break
                except Exception as e:
                    failed = True
                    raise GenerationError(f"Generation failed: {e}") from e
                fragments.append(fragment)
                text += fragment
                yield fragment
                if _ends_with_stop(text, len(fragment), request.stop):
                    logger.debug("Stop sequence matched; ending stream.")
                    break
        finally:
            close = getattr(stream, "close", None)
            if close is not None:
                close()
            if failed:
                history.pop_last()
                logger.error(f"LLM stream failed after {len(fragments)} fragment(s); user turn discarded.")
            else:
                history.add(Role.ASSISTANT, text)
                logger.success(f"LLM stream finished in {time.time() - start_time:.2f}s ({len(fragments)} fragments).")
            if self.state is SessionState.GENERATING:
                self._transition_to(SessionState.READY)

    def complete(
        self,
        user_text: str,
        max_tokens: int = defaults.max_tokens,
        stop: Optional[Sequence[str]] = None,
    ) -> str:
        """Blocking variant of ``generate`` that returns the whole reply."""
        return "".join(self.generate(user_text, max_tokens, stop))

    async def agenerate(
        self,
        user_text: str,
        max_tokens: int = defaults.max_tokens,
        stop: Optional[Sequence[str]] = None,
    ) -> AsyncIterator[str]:
        """Async view of ``generate``; each fragment is pulled on the default executor."""
        stream = self.generate(user_text, max_tokens, stop)
        loop = asyncio.get_running_loop()
        try:
            while True:
                fragment = await loop.run_in_executor(None, next, stream, None)
                if fragment is None:  # Sentinel value signals the end of the stream
                    break
                yield fragment
        finally:
            stream.close()

    async def acomplete(
        self,
        user_text: str,
        max_tokens: int = defaults.max_tokens,
        stop: Optional[Sequence[str]] = None,
    ) -> str:
        return "".join([fragment async for fragment in self.agenerate(user_text, max_tokens, stop)])

    def dispose(self) -> None:
        if self.state is SessionState.DISPOSED:
            return
        engine = self._engine
        self._engine = None
        self._history = None
        self._transition_to(SessionState.DISPOSED)
        if engine is not None:
            engine.close()
        logger.info("Model session disposed.")
