"""The seam between the session manager and the native inference engine."""

import time
from abc import ABC, abstractmethod
from typing import Iterator, List, Sequence

from loguru import logger

from ..config import SessionConfig
from ..errors import ModelLoadError


class InferenceEngine(ABC):
    """Owns model weights, the inference context and the executor."""

    @abstractmethod
    def load(self, config: SessionConfig) -> None:
        """Load weights and allocate a context. Raise on any failure."""
        ...

    @abstractmethod
    def stream_chat(
        self,
        messages: List[dict],
        max_tokens: int,
        stop: Sequence[str],
    ) -> Iterator[str]:
        """Yield the assistant's reply to ``messages`` one token at a time."""
        ...

    @abstractmethod
    def close(self) -> None:
        """Release the context and the weights."""
        ...


class LlamaCppEngine(InferenceEngine):
    """InferenceEngine backed by llama-cpp-python."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self._llm = None

    def load(self, config: SessionConfig) -> None:
        logger.info(f"Loading LLM from '{config.model_path}'... (This may take a moment)")
        start_time = time.time()
        from llama_cpp import Llama

        try:
            self._llm = Llama(
                model_path=config.model_path,
                n_ctx=config.context_size,
                n_gpu_layers=config.gpu_layers,
                verbose=self.verbose,
            )
        except Exception as e:
            raise ModelLoadError(f"Failed to load model '{config.model_path}': {e}") from e
        logger.success(f"LLM loaded into memory in {time.time() - start_time:.2f}s.")

    def stream_chat(self, messages, max_tokens, stop) -> Iterator[str]:
        if self._llm is None:
            raise RuntimeError("LlamaCppEngine.load() has not been called.")
        stream = self._llm.create_chat_completion(
            messages=messages,
            max_tokens=max_tokens,
            stop=list(stop) or None,
            stream=True,
        )
        for chunk in stream:
            delta = chunk["choices"][0]["delta"]
            if delta.get("content"):
                yield delta["content"]

    def close(self) -> None:
        llm = self._llm
        self._llm = None
        if llm is not None:
            llm.close()
            logger.info("LLM context and weights released.")
