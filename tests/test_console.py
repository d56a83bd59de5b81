import asyncio
import io

import pytest

from llamaConsole.__main__ import main
from llamaConsole.config import defaults
from llamaConsole.console import ChatConsole, resolve_model_path
from llamaConsole.core.session import ModelSession, SessionState
from llamaConsole.errors import ModelLoadError

from conftest import FakeEngine


class ScriptedInput:
    """Stands in for input(); raises EOFError once the script runs out."""

    def __init__(self, *lines):
        self.lines = list(lines)

    def __call__(self):
        if not self.lines:
            raise EOFError
        return self.lines.pop(0)


def run_console(session, *lines):
    output = io.StringIO()
    console = ChatConsole(session, ScriptedInput(*lines), output)
    asyncio.run(console.run())
    return output.getvalue()


# --- resolve_model_path ---

def test_resolve_returns_existing_default(model_file):
    assert resolve_model_path(model_file, ScriptedInput(), io.StringIO()) == model_file


def test_resolve_prompts_when_default_missing(tmp_path, model_file):
    output = io.StringIO()
    path = resolve_model_path(str(tmp_path / "missing.gguf"), ScriptedInput(f'  "{model_file}" '), output)
    assert path == model_file
    assert "Please provide the path" in output.getvalue()


@pytest.mark.parametrize("answer", [[], [""], ["/definitely/not/here.gguf"]])
def test_resolve_fails_without_a_usable_path(tmp_path, answer):
    with pytest.raises(ModelLoadError):
        resolve_model_path(str(tmp_path / "missing.gguf"), ScriptedInput(*answer), io.StringIO())


def test_resolve_rejects_a_directory(tmp_path):
    with pytest.raises(ModelLoadError, match="not a file"):
        resolve_model_path(str(tmp_path / "missing.gguf"), ScriptedInput(str(tmp_path)), io.StringIO())


# --- ChatConsole ---

@pytest.mark.parametrize("command", ["exit", "Exit", "EXIT", "  eXiT  "])
def test_exit_command_ends_loop_without_generating(engine, session, command):
    output = run_console(session, command, "never read")
    assert engine.calls == []
    assert defaults.banner in output


def test_turn_streams_reply_and_newline(engine, session):
    engine.fragments = ["Hi", " there"]
    output = run_console(session, "hello", "exit")
    assert "User: Hi there\nUser: " in output
    assert len(engine.calls) == 1
    assert engine.calls[0]["max_tokens"] == defaults.max_tokens
    assert engine.calls[0]["stop"] == defaults.stop


def test_blank_lines_are_skipped(engine, session):
    run_console(session, "", "   ", "exit")
    assert engine.calls == []


def test_end_of_input_ends_loop(engine, session):
    engine.fragments = ["ok"]
    output = run_console(session, "hello")
    assert output.endswith("ok\nUser: \n")


def test_failed_turn_is_reported_and_loop_continues(engine, session):
    engine.fragments = ["ok"]
    engine.fail_after = 0
    turns = ScriptedInput("boom", "fine", "exit")

    def input_fn():
        line = turns()
        if line == "fine":
            engine.fail_after = None
        return line

    output = io.StringIO()
    asyncio.run(ChatConsole(session, input_fn, output).run())
    text = output.getvalue()
    assert "Error: Generation failed: engine fault" in text
    assert "User: ok\n" in text
    assert session.state is SessionState.READY


class AsciiOutput(io.StringIO):
    """A terminal that cannot print non-ASCII characters."""

    def write(self, text):
        text.encode("ascii")
        return super().write(text)


def test_unprintable_fragment_does_not_leave_session_busy(engine, session):
    output = AsciiOutput()
    asyncio.run(ChatConsole(session, ScriptedInput("ok \U0001F600", "plain", "exit"), output).run())
    text = output.getvalue()
    assert "Error: 'ascii' codec can't encode" in text
    assert "already being generated" not in text
    assert "User: plain\n" in text
    assert len(engine.calls) == 2
    assert session.state is SessionState.READY


def test_start_seeds_preamble(engine, model_file):
    session = ModelSession(engine_factory=lambda: engine)
    session.initialize(model_file)
    ChatConsole(session, ScriptedInput(), io.StringIO()).start()
    assert [m.text for m in session.history] == [text for _, text in defaults.preamble]


# --- entry point ---

def test_main_returns_zero_on_exit(monkeypatch, tmp_path, model_file):
    monkeypatch.chdir(tmp_path)
    engine = FakeEngine(fragments=["Hello."])
    output = io.StringIO()
    code = main(
        session_factory=lambda: ModelSession(engine_factory=lambda: engine),
        input_fn=ScriptedInput(model_file, "hi Bob", "exit"),
        output=output,
        log_dir=None,
    )
    assert code == 0
    assert "User: Hello.\n" in output.getvalue()
    assert engine.close_count == 1
    sent = engine.calls[0]["messages"]
    assert [m["content"] for m in sent[1:]] == ["Hello, Bob.", "Hello. How may I help you today?", "hi Bob"]


def test_main_returns_nonzero_when_model_missing(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    engine = FakeEngine()
    output = io.StringIO()
    code = main(
        session_factory=lambda: ModelSession(engine_factory=lambda: engine),
        input_fn=ScriptedInput(str(tmp_path / "missing.gguf")),
        output=output,
        log_dir=None,
    )
    assert code == 1
    assert "Error:" in output.getvalue()
    assert engine.calls == []


def test_main_returns_nonzero_when_engine_rejects_model(monkeypatch, tmp_path, model_file):
    monkeypatch.chdir(tmp_path)
    code = main(
        session_factory=lambda: ModelSession(engine_factory=lambda: FakeEngine(fail_on_load=ValueError("bad"))),
        input_fn=ScriptedInput(model_file),
        output=io.StringIO(),
        log_dir=None,
    )
    assert code == 1


def test_main_returns_130_on_ctrl_c_and_disposes(monkeypatch, tmp_path, model_file):
    monkeypatch.chdir(tmp_path)
    engine = FakeEngine()
    answers = ScriptedInput(model_file)

    def input_fn():
        if answers.lines:
            return answers()
        raise KeyboardInterrupt

    code = main(
        session_factory=lambda: ModelSession(engine_factory=lambda: engine),
        input_fn=input_fn,
        output=io.StringIO(),
        log_dir=None,
    )
    assert code == 130
    assert engine.close_count == 1
    assert engine.calls == []
