from .models import ConversationContext, Message, MessageRole
from .storage import FileContextStore


class ConversationMemory:
    def __init__(self, store: FileContextStore) -> None:
        self.store = store

    def add_message(
        self, session_id: str, role: MessageRole | str, content: str, message_id: str | None = None
    ) -> ConversationContext:
        # Timestamp is assigned here, at append time.
        return self.store.add_message(session_id, Message(id=message_id, role=role, content=content))

    def get_messages(self, session_id: str, limit: int = 50) -> list[Message]:
        context = self.store.get_context(session_id)
        if context is None or limit <= 0:
            return []
        return context.messages[-limit:]
