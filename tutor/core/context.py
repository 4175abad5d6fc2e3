from __future__ import annotations

"""No server-side memory.

The client sends the recent conversation turns with every request; this
module turns them plus the current turn into the message list sent to the
model.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from pydantic import BaseModel, ConfigDict

from tutor.core.attachments import AttachmentReference


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


_ASSISTANT_ROLES = {"assistant", "model", "ai", "bot"}


class Turn(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Role
    text: str = ""


class ConversationRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    prior_turns: List[Turn]
    current_text: Optional[str] = None
    current_attachments: List[AttachmentReference] = []

    def current_parts(self) -> List[Dict[str, Any]]:
        """Attachment parts first, then the text part if there is any text."""
        parts: List[Dict[str, Any]] = [
            {"type": "media", "file_uri": ref.uri, "mime_type": ref.mime_type}
            for ref in self.current_attachments
        ]
        if self.current_text:
            parts.append({"type": "text", "text": self.current_text})
        return parts

    def to_messages(self, system_instruction: Optional[str] = None) -> List[BaseMessage]:
        messages: List[BaseMessage] = []
        if system_instruction:
            messages.append(SystemMessage(content=system_instruction))
        for turn in self.prior_turns:
            # Gemini rejects empty parts.
            if not turn.text:
                continue
            if turn.role is Role.ASSISTANT:
                messages.append(AIMessage(content=turn.text))
            else:
                messages.append(HumanMessage(content=turn.text))
        messages.append(HumanMessage(content=self.current_parts()))
        return messages


def parse_history(history: Optional[Sequence[Any]]) -> List[Turn]:
    turns: List[Turn] = []
    for item in history or []:
        if isinstance(item, Turn):
            turns.append(item)
            continue
        if not isinstance(item, dict):
            continue
        role = str(item.get("role") or "").lower()
        text = item.get("text")
        if text is None:
            text = item.get("content")
        turns.append(
            Turn(
                role=Role.ASSISTANT if role in _ASSISTANT_ROLES else Role.USER,
                text=str(text or ""),
            )
        )
    return turns


def build(
    history: Sequence[Turn],
    window_size: int,
    current_text: Optional[str],
    current_attachments: Sequence[AttachmentReference],
) -> ConversationRequest:
    """Keep the last ``window_size`` turns and attach the current turn.

    Does not check that the current turn has content; callers do that.
    """
    window = list(history)[-window_size:] if window_size > 0 else []
    return ConversationRequest(
        prior_turns=window,
        current_text=current_text or None,
        current_attachments=list(current_attachments),
    )
