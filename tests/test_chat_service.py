"""
Chat Service Tests
------------------
End-to-end message handling through the chat graph: agent replies,
retrieval + completion fallback, persistence, and error surfacing.
"""
import os
import sys
import pytest
import asyncio
import warnings
from unittest.mock import AsyncMock, MagicMock

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from vault_chat.agents.results import NoteCreated
from vault_chat.chat.models import MessageAuthor
from vault_chat.chat.service import ChatService
from vault_chat.config import DESKTOP_MEMORY_POLICY, OllamaConfig, SettingsSnapshot
from vault_chat.errors import ChatError, CompletionError, RetrievalError
from vault_chat.rag.models import RagChunk, RetrievalContext, SearchResult
from vault_chat.rag.service import RetrievalMode
from vault_chat.state.history import ConversationRepository
from vault_chat.state.memory import ConversationMemoryProvider

SETTINGS = SettingsSnapshot(main_model=OllamaConfig(host="http://mock-host:11434", model_name="mock-chat"))


def build_service(tmp_path, agent_result=None, answer="An answer.", retrieval=None, llm_error=None, retrieval_error=None):
    master = MagicMock()
    master.try_handle = AsyncMock(return_value=agent_result)
    retrieval_service = MagicMock()
    retrieval_service.retrieve = AsyncMock(return_value=retrieval or RetrievalContext(), side_effect=retrieval_error)
    llm = MagicMock()
    llm.complete = AsyncMock(return_value=answer, side_effect=llm_error)
    repository = ConversationRepository(str(tmp_path / "history.db"))
    memory = ConversationMemoryProvider(repository, DESKTOP_MEMORY_POLICY)
    service = ChatService(master, retrieval_service, llm, repository, memory, settings=SETTINGS)
    return service, master, retrieval_service, llm, repository


@pytest.mark.asyncio
async def test_agent_result_short_circuits_completion(tmp_path):
    created = NoteCreated(path="/vault/kafka.md", title="Kafka", preview="A log.")
    service, _, retrieval_service, llm, repository = build_service(tmp_path, agent_result=created)

    reply = await service.send_message("/vault", None, "create a note on kafka")

    assert reply.agent == "CreateNoteAgent"
    assert "Kafka" in reply.assistant_message
    assert "/vault/kafka.md" in reply.assistant_message
    retrieval_service.retrieve.assert_not_called()
    llm.complete.assert_not_called()
    assert len(repository.get_messages(reply.conversation_id)) == 2
    [conversation] = repository.list_conversations("/vault")
    assert conversation.id == reply.conversation_id
    assert conversation.title == "create a note on kafka"


@pytest.mark.asyncio
async def test_fallback_uses_retrieval_and_completion(tmp_path):
    chunk = SearchResult(
        chunk=RagChunk(id="1", text="Kafka stores records in partitions.", metadata={"file_path": "kafka.md", "start_line": 1, "end_line": 4}),
        similarity=0.9,
    )
    service, master, retrieval_service, llm, repository = build_service(
        tmp_path, answer="  Partitions.  ", retrieval=RetrievalContext(chunks=[chunk])
    )

    reply = await service.send_message("/vault", "conv-1", "how does kafka store data?", RetrievalMode.RAG)

    assert reply.conversation_id == "conv-1"
    assert reply.assistant_message == "Partitions."
    assert reply.agent is None
    master.try_handle.assert_awaited_once()
    args = retrieval_service.retrieve.call_args
    assert args.args[1] == "rag"
    assert args.kwargs["vault_id"] == "/vault"
    prompt = llm.complete.call_args.args[0]
    assert "[Source ID: kafka.md:1:4 | Note: kafka]" in prompt
    assert prompt.endswith("Question: how does kafka store data?")

    messages = repository.get_messages("conv-1")
    assert [(m.author, m.text) for m in messages] == [
        (MessageAuthor.USER, "how does kafka store data?"),
        (MessageAuthor.ASSISTANT, "Partitions."),
    ]


@pytest.mark.asyncio
async def test_history_window_reaches_the_prompt(tmp_path):
    service, master, _, llm, _ = build_service(tmp_path, answer="Second answer.")

    first = await service.send_message("/vault", None, "first question")
    await service.send_message("/vault", first.conversation_id, "second question")

    history = master.try_handle.call_args.args[1]
    assert [t.text for t in history] == ["first question", "Second answer."]
    prompt = llm.complete.call_args.args[0]
    assert "Conversation History:\nUser: first question" in prompt


@pytest.mark.asyncio
async def test_empty_completion_is_chat_error(tmp_path):
    service, _, _, _, repository = build_service(tmp_path, answer="   ")

    with pytest.raises(ChatError) as excinfo:
        await service.send_message("/vault", "conv-1", "hello")

    assert excinfo.value.model == "mock-chat"
    assert repository.get_messages("conv-1") == []
    assert repository.list_conversations("/vault") == []


@pytest.mark.asyncio
async def test_completion_failure_is_chat_error(tmp_path):
    service, _, _, _, repository = build_service(
        tmp_path, llm_error=CompletionError("connection refused", provider="ollama", model="mock-chat")
    )

    with pytest.raises(ChatError) as excinfo:
        await service.send_message("/vault", "conv-1", "hello")

    assert excinfo.value.provider == "ollama"
    assert "mock-chat" in excinfo.value.detail
    assert repository.get_messages("conv-1") == []
    assert repository.list_conversations("/vault") == []


@pytest.mark.asyncio
async def test_total_retrieval_failure_is_chat_error(tmp_path):
    service, _, _, llm, _ = build_service(tmp_path, retrieval_error=RetrievalError("both legs failed"))

    with pytest.raises(ChatError):
        await service.send_message("/vault", "conv-1", "hello", RetrievalMode.HYBRID)
    llm.complete.assert_not_called()


@pytest.mark.asyncio
async def test_cancelled_request_persists_nothing(tmp_path):
    service, _, _, llm, repository = build_service(tmp_path)

    async def slow_complete(prompt, system=None):
        await asyncio.sleep(1)
        return "late"

    llm.complete = AsyncMock(side_effect=slow_complete)
    task = asyncio.create_task(service.send_message("/vault", None, "hello there"))
    await asyncio.sleep(0.1)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert repository.list_conversations("/vault") == []


def test_workflow_module_compiles_without_warnings():
    import vault_chat.graph.workflow as workflow

    with open(workflow.__file__, encoding="utf-8") as f:
        source = f.read()
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        compile(source, workflow.__file__, "exec")
