"""Interactive console loop: read a line, stream the reply, repeat."""

import sys
from contextlib import aclosing
from pathlib import Path
from typing import Callable, TextIO

from loguru import logger

from .config import ChatDefaults, defaults
from .core.session import ModelSession
from .errors import ModelLoadError


def resolve_model_path(
    default_path: str = defaults.model_path,
    input_fn: Callable[[], str] = input,
    output: TextIO = sys.stdout,
) -> str:
    """Return ``default_path`` if it exists, otherwise ask the user for one."""
    if Path(default_path).is_file():
        return default_path

    output.write("The model file does not exist. Please provide the path to the model file:\n")
    output.flush()
    try:
        answer = input_fn()
    except EOFError:
        answer = ""
    model_path = answer.strip().strip("'\"")
    if not model_path:
        raise ModelLoadError("No model path was given.")
    if not Path(model_path).is_file():
        raise ModelLoadError(f"Model file '{model_path}' does not exist or is not a file.")
    return model_path


class ChatConsole:
    def __init__(
        self,
        session: ModelSession,
        input_fn: Callable[[], str] = input,
        output: TextIO = sys.stdout,
        settings: ChatDefaults = defaults,
    ):
        self.session = session
        self.input_fn = input_fn
        self.output = output
        self.settings = settings

    def _write(self, text: str):
        self.output.write(text)
        self.output.flush()

    def _read_line(self):
        self._write(self.settings.prompt_marker)
        try:
            return self.input_fn()
        except EOFError:
            return None

    def is_exit(self, line: str) -> bool:
        return line.strip().lower() == self.settings.exit_command

    def start(self):
        """Seed the chat history with the preamble."""
        self.session.setup_session(self.settings.preamble)

    async def run_turn(self, user_text: str):
        stream = self.session.agenerate(user_text, max_tokens=self.settings.max_tokens, stop=self.settings.stop)
        # Closing releases the session even when writing a fragment fails.
        async with aclosing(stream):
            async for fragment in stream:
                self._write(fragment)
        self._write("\n")

    async def run(self):
        self._write(self.settings.banner + "\n")
        while True:
            line = self._read_line()
            if line is None:
                self._write("\n")
                logger.info("End of input. Leaving the chat loop.")
                break
            if self.is_exit(line):
                logger.info("Exit command received.")
                break
            if not line.strip():
                continue
            try:
                await self.run_turn(line)
            except Exception as e:
                logger.exception(f"Turn failed: {e}")
                self._write(f"\nError: {e}\n")
