"""
Conversation History & Memory Window Tests
------------------------------------------
SQLite persistence of conversations and the bounded context window built
from them.
"""
import os
import sys
import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from vault_chat.chat.models import HistoryTurn, MessageAuthor, title_from_message
from vault_chat.config import DESKTOP_MEMORY_POLICY, MOBILE_MEMORY_POLICY, MemoryPolicy
from vault_chat.state.history import ConversationRepository
from vault_chat.state.memory import ConversationMemoryProvider, select_window


def turn(text, author=MessageAuthor.USER):
    return HistoryTurn(author=author, text=text)


def test_window_drops_oldest_beyond_char_budget():
    turns = [turn(str(i) * 5000) for i in range(5)]

    window = select_window(turns, MemoryPolicy(max_messages=50, max_chars=16000))

    assert [t.text[0] for t in window] == ["2", "3", "4"]


def test_window_respects_message_cap():
    turns = [turn(f"m{i}") for i in range(20)]

    window = select_window(turns, MemoryPolicy(max_messages=15, max_chars=6000))

    assert len(window) == 15
    assert window[0].text == "m5"
    assert window[-1].text == "m19"


def test_window_never_splits_a_turn():
    turns = [turn("short"), turn("x" * 100)]

    window = select_window(turns, MemoryPolicy(max_messages=10, max_chars=50))

    assert window == []


def test_window_stops_at_first_turn_over_budget():
    turns = [turn("a"), turn("b" * 40), turn("c")]

    window = select_window(turns, MemoryPolicy(max_messages=10, max_chars=20))

    assert [t.text for t in window] == ["c"]


def test_platform_policies():
    assert MemoryPolicy.for_platform("desktop") == DESKTOP_MEMORY_POLICY
    assert MemoryPolicy.for_platform("mobile") == MOBILE_MEMORY_POLICY
    assert MOBILE_MEMORY_POLICY.max_messages == 15
    assert DESKTOP_MEMORY_POLICY.max_chars == 16000


def test_title_from_message():
    assert title_from_message("  hello  ") == "hello"
    assert title_from_message("") == "New Conversation"
    long_title = title_from_message("x" * 80)
    assert len(long_title) == 50
    assert long_title.endswith("...")


def test_repository_round_trip(tmp_path):
    repo = ConversationRepository(str(tmp_path / "history.db"))
    conversation = repo.create_conversation("/vault", "First chat")

    repo.append_messages(conversation.id, [
        turn("question"),
        turn("answer", MessageAuthor.ASSISTANT),
    ])

    messages = repo.get_messages(conversation.id)
    assert [(m.author, m.text) for m in messages] == [
        (MessageAuthor.USER, "question"),
        (MessageAuthor.ASSISTANT, "answer"),
    ]
    assert [c.id for c in repo.list_conversations("/vault")] == [conversation.id]
    assert repo.list_conversations("/other") == []


def test_repository_rename_and_delete(tmp_path):
    repo = ConversationRepository(str(tmp_path / "history.db"))
    conversation = repo.create_conversation("/vault", "Old", conversation_id="c-1")
    repo.append_messages("c-1", [turn("hi")])

    repo.rename_conversation("c-1", "New")
    assert repo.get_conversation("c-1").title == "New"

    repo.delete_conversation(conversation.id)
    assert repo.get_conversation("c-1") is None
    assert repo.get_messages("c-1") == []


@pytest.mark.asyncio
async def test_provider_builds_chronological_window(tmp_path):
    repo = ConversationRepository(str(tmp_path / "history.db"))
    conversation = repo.create_conversation("/vault", "Chat")
    repo.append_messages(conversation.id, [turn(str(i) * 5000) for i in range(5)])
    provider = ConversationMemoryProvider(repo, DESKTOP_MEMORY_POLICY)

    window = await provider.build_context_messages(conversation.id)

    assert [t.text[0] for t in window] == ["2", "3", "4"]

    mobile = await provider.build_context_messages(conversation.id, MOBILE_MEMORY_POLICY)
    assert [t.text[0] for t in mobile] == ["4"]
