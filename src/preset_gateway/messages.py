"""
Read-only view of an inbound chat request.

Only the parts the gateway needs are decoded: each message's role and
content, plus the ``stream`` flag. Shapes that don't fit decode to
"nothing", never to an error.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional, Union


@dataclass(frozen=True)
class TextContent:
    text: str


@dataclass(frozen=True)
class PartsContent:
    parts: List[dict]

    def first_text(self) -> Optional[str]:
        for part in self.parts:
            if part.get("type") == "text":
                text = part.get("text")
                return text if isinstance(text, str) else None
        return None


Content = Union[TextContent, PartsContent]


def decode_content(raw: Any) -> Optional[Content]:
    """Decode a message ``content`` field; anything else is None."""
    if isinstance(raw, str):
        return TextContent(raw)
    if isinstance(raw, list):
        return PartsContent([p for p in raw if isinstance(p, dict)])
    return None


@dataclass(frozen=True)
class ChatMessage:
    role: Optional[str]
    content: Optional[Content]

    def text(self) -> Optional[str]:
        if isinstance(self.content, TextContent):
            return self.content.text
        if isinstance(self.content, PartsContent):
            return self.content.first_text()
        return None


@dataclass
class ChatRequest:
    messages: List[ChatMessage] = field(default_factory=list)
    stream: bool = False

    @classmethod
    def from_body(cls, body: Any) -> "ChatRequest":
        """Build a view of a parsed JSON body. Never raises."""
        if not isinstance(body, dict):
            return cls()

        raw_messages = body.get("messages")
        messages = []
        if isinstance(raw_messages, list):
            for msg in raw_messages:
                if not isinstance(msg, dict):
                    continue
                role = msg.get("role")
                messages.append(ChatMessage(
                    role=role if isinstance(role, str) else None,
                    content=decode_content(msg.get("content")),
                ))

        return cls(messages=messages, stream=body.get("stream") is True)

    def latest_user_text(self) -> Optional[str]:
        """Text of the most recent user message, if it has any."""
        for msg in reversed(self.messages):
            if msg.role == "user":
                return msg.text()
        return None
