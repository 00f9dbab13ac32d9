"""Chat transcript schemas."""

import uuid
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from booking_widget.schemas.ui_schema import UIComponent


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ChatMessage(BaseModel):
    """A single message in the widget transcript."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    role: Role
    content: str
    ui_component: Optional[UIComponent] = None
    is_greeting: bool = False

    def to_wire(self) -> dict[str, str]:
        """Shape sent to the gateway; UI payloads and IDs stay local."""
        return {"role": self.role.value, "content": self.content}
