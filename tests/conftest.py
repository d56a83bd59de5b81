from typing import List, Optional

import pytest

from llamaConsole.core.engine import InferenceEngine
from llamaConsole.core.session import ModelSession


class FakeEngine(InferenceEngine):
    """Echoes the last user message one character per token, or replays ``fragments``."""

    def __init__(self, fragments: Optional[List[str]] = None, fail_on_load: Exception = None,
                 fail_after: Optional[int] = None):
        self.fragments = fragments
        self.fail_on_load = fail_on_load
        self.fail_after = fail_after
        self.config = None
        self.calls = []
        self.close_count = 0
        self.pulled = 0

    def load(self, config):
        if self.fail_on_load is not None:
            raise self.fail_on_load
        self.config = config

    def stream_chat(self, messages, max_tokens, stop):
        self.calls.append({"messages": messages, "max_tokens": max_tokens, "stop": tuple(stop)})
        tokens = self.fragments if self.fragments is not None else list(messages[-1]["content"])
        for index, token in enumerate(tokens):
            if self.fail_after is not None and index == self.fail_after:
                raise RuntimeError("engine fault")
            self.pulled += 1
            yield token

    def close(self):
        self.close_count += 1


@pytest.fixture
def model_file(tmp_path):
    path = tmp_path / "model.gguf"
    path.write_bytes(b"GGUF\x00fake")
    return str(path)


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def session(engine, model_file):
    s = ModelSession(engine_factory=lambda: engine)
    s.initialize(model_file)
    s.setup_session([("system", "You are a test.")])
    yield s
    s.dispose()
