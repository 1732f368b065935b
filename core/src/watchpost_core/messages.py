"""Per-request message collection.

Services report problems and notices into a `MessageCollector` handed to them by
the caller. The request handler drains it once per logical operation and puts
the texts into its response.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

MessageType = Literal["error", "info"]


@dataclass(frozen=True)
class Message:
    type: MessageType
    message: str


@dataclass
class MessageCollector:
    _items: list[Message] = field(default_factory=list)

    def error(self, message: str) -> None:
        self._items.append(Message(type="error", message=message))

    def info(self, message: str) -> None:
        self._items.append(Message(type="info", message=message))

    @property
    def has_errors(self) -> bool:
        return any(m.type == "error" for m in self._items)

    def __len__(self) -> int:
        return len(self._items)

    def drain(self) -> list[Message]:
        """Return all accumulated messages and clear the collector."""

        items, self._items = self._items, []
        return items

    def drain_texts(self) -> list[str]:
        return [m.message for m in self.drain()]


def get_messages() -> MessageCollector:
    """FastAPI dependency: a fresh collector for each request."""

    return MessageCollector()
