from context_store.memory import ConversationMemory
from context_store.storage import FileContextStore


def _build_memory(tmp_path) -> ConversationMemory:
    return ConversationMemory(store=FileContextStore(base_path=tmp_path / "contexts"))


def test_add_message_records_role_content_and_timestamp(tmp_path):
    memory = _build_memory(tmp_path)
    memory.add_message("chat-1", "user", "Hello")
    memory.add_message("chat-1", "assistant", "Hi there!", message_id="msg-2")

    messages = memory.get_messages("chat-1")
    assert [(m.role.value, m.content) for m in messages] == [("user", "Hello"), ("assistant", "Hi there!")]
    assert messages[1].id == "msg-2"
    assert messages[0].timestamp <= messages[1].timestamp


def test_get_messages_returns_most_recent_window(tmp_path):
    memory = _build_memory(tmp_path)
    for i in range(5):
        memory.add_message("chat-2", "user", f"turn {i}")

    assert [m.content for m in memory.get_messages("chat-2", limit=2)] == ["turn 3", "turn 4"]
    assert memory.get_messages("chat-2", limit=0) == []


def test_get_messages_for_unknown_session_is_empty(tmp_path):
    memory = _build_memory(tmp_path)
    assert memory.get_messages("never-written") == []
