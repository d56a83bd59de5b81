"""Session configuration and the console's hardcoded defaults."""

from dataclasses import dataclass


@dataclass(frozen=True)
class SessionConfig:
    """Immutable parameters for one loaded model."""

    model_path: str
    context_size: int = 1024  # upper bound on retained token history
    gpu_layers: int = 10  # layers offloaded to the accelerator

    def __post_init__(self):
        if not self.model_path:
            raise ValueError("model_path must not be empty.")
        if self.context_size <= 0:
            raise ValueError(f"context_size must be positive, got {self.context_size}.")
        if self.gpu_layers < 0:
            raise ValueError(f"gpu_layers must be non-negative, got {self.gpu_layers}.")


SYSTEM_PROMPT = (
    "Transcript of a dialog, where the User interacts with an Assistant named Bob. "
    "Bob is helpful, kind, honest, good at writing, and never fails to answer the "
    "User's requests immediately and with precision."
)


@dataclass(frozen=True)
class ChatDefaults:
    model_path: str = "models/phi-4-Q8_0.gguf"
    context_size: int = 1024
    gpu_layers: int = 10
    max_tokens: int = 256
    stop: tuple = ("User:",)
    preamble: tuple = (
        ("system", SYSTEM_PROMPT),
        ("user", "Hello, Bob."),
        ("assistant", "Hello. How may I help you today?"),
    )
    prompt_marker: str = "User: "
    banner: str = "The chat session has started. Type 'exit' to quit."
    exit_command: str = "exit"


defaults = ChatDefaults()
