"""Chat history kept by the session manager."""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Tuple, Union


class Role(Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class ChatMessage:
    role: Role
    text: str

    def to_dict(self) -> dict:
        return {"role": self.role.value, "content": self.text}


class ChatHistory:
    """Append-only list of chat turns.

    Truncating old turns is left to the inference engine; this class only
    ever grows, except for ``pop_last`` which undoes a turn that failed.
    """

    def __init__(self, turns: Iterable[Tuple[Union[Role, str], str]] = ()):
        self._messages: List[ChatMessage] = []
        for role, text in turns:
            self.add(role, text)

    def add(self, role: Union[Role, str], text: str) -> ChatMessage:
        message = ChatMessage(Role(role), text)
        self._messages.append(message)
        return message

    def pop_last(self) -> ChatMessage:
        return self._messages.pop()

    @property
    def messages(self) -> List[ChatMessage]:
        return list(self._messages)

    def to_messages(self) -> List[dict]:
        """Render in the ``[{"role": ..., "content": ...}]`` chat-completion format."""
        return [message.to_dict() for message in self._messages]

    def __len__(self):
        return len(self._messages)

    def __iter__(self):
        return iter(self.messages)
