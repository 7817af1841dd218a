from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Tuple

SYSTEM = "system"
USER = "user"
ASSISTANT = "assistant"

ROLES = (SYSTEM, USER, ASSISTANT)


@dataclass(frozen=True)
class Message:
    role: str
    content: str

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"unknown role: {self.role!r}")

    def as_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


class Conversation:
    """
    Append-only message log seeded with one system message.

    The whole log, system message included, is the prompt history sent to
    the completion endpoint. Index 0 is never rendered and never removed.
    """

    def __init__(self, system_prompt: str) -> None:
        self._messages: List[Message] = [Message(SYSTEM, system_prompt.strip())]

    def __len__(self) -> int:
        return len(self._messages)

    @property
    def messages(self) -> Tuple[Message, ...]:
        return tuple(self._messages)

    def append_user(self, text: str) -> Message:
        return self._append(Message(USER, text))

    def append_assistant(self, text: str) -> Message:
        return self._append(Message(ASSISTANT, text))

    def _append(self, message: Message) -> Message:
        self._messages.append(message)
        return message

    def visible(self) -> List[Message]:
        """Messages shown to the user (everything after the system seed)."""
        return self._messages[1:]


@dataclass
class SessionState:
    """Transient UI flags; only the pipeline mutates these."""

    input_text: str = ""
    busy: bool = False
    recording: bool = False
    speech_enabled: bool = True
    speaking: bool = False
