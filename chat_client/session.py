"""Per-conversation state: messages, active tax data and the pending confirmation."""

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from chat_client.models import Message, PendingToolData

logger = logging.getLogger(__name__)

WELCOME_MESSAGE = (
    "Hallo! I'm your Swiss tax assistant for Canton Zurich. "
    "How can I help you with your tax return today?"
)
NO_RESPONSE_ERROR = "No response received from assistant"


@dataclass
class ConversationSession:
    messages: list[Message] = field(default_factory=list)
    tax_data: dict[str, Any] | None = None
    pending: PendingToolData | None = None
    modal_open: bool = False
    is_loading: bool = False
    error: str | None = None
    show_tool_activity: bool = False

    def __post_init__(self) -> None:
        if not self.messages:
            self.messages.append(Message(role="assistant", content=WELCOME_MESSAGE))

    # -- message list --------------------------------------------------------

    def history(self) -> list[dict[str, str]]:
        return [message.to_wire() for message in self.messages]

    def add_message(self, role: str, content: str) -> Message:
        message = Message(role=role, content=content)
        self.messages.append(message)
        return message

    def add_placeholder(self) -> Message:
        return self.add_message("assistant", "")

    def remove_message(self, message: Message) -> None:
        for index, candidate in enumerate(self.messages):
            if candidate is message:
                del self.messages[index]
                return

    def clear(self) -> None:
        self.messages = [Message(role="assistant", content=WELCOME_MESSAGE)]
        self.error = None

    def dismiss_error(self) -> None:
        self.error = None

    # -- tax data confirmation -----------------------------------------------

    def offer_tax_data(self, data: dict[str, Any], scenario: str, tool_call_id: str | None = None) -> None:
        """Hold loaded tax data until the user confirms it. Last offer wins."""
        self.pending = PendingToolData(data=data, scenario=scenario, tool_call_id=tool_call_id)
        self.modal_open = True
        logger.info("Tax data for scenario %s awaiting confirmation", scenario)

    def confirm_tax_data(self) -> Message | None:
        self.modal_open = False
        if self.pending is None:
            return None

        pending, self.pending = self.pending, None
        self.tax_data = pending.data
        return self.add_message(
            "assistant",
            f"Great! I've loaded your tax data for the {pending.scenario} scenario. "
            "I'll use it as context for the rest of our conversation. What would you like to know?",
        )

    def cancel_tax_data(self) -> Message | None:
        self.modal_open = False
        if self.pending is None:
            return None

        self.pending = None
        return self.add_message(
            "assistant",
            "No problem, I won't use that tax data. "
            "Let me know if you'd like to load a different scenario or enter your details manually.",
        )

    def wrap_outgoing(self, text: str) -> str:
        """Prefix the active tax data to an outgoing question. Display text is unaffected."""
        if self.tax_data is None:
            return text
        return f"[User's Tax Data: {json.dumps(self.tax_data, ensure_ascii=False)}]\n\nUser Question: {text}"
