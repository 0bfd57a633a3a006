"""
LLM Client Tests
----------------
Completion message assembly, error wrapping and the embedding cache, with the
Ollama clients mocked out.
"""
import os
import sys
import pytest
from langchain_core.messages import HumanMessage, SystemMessage
from unittest.mock import AsyncMock, MagicMock, patch

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from vault_chat.config import OllamaConfig
from vault_chat.errors import CompletionError
from vault_chat.llm.client import Embedder, LlamaClient

MODEL = OllamaConfig(host="http://mock-host:11434", model_name="mock-chat")


@pytest.mark.asyncio
async def test_complete_sends_system_and_user_messages():
    chat_model = MagicMock()
    chat_model.ainvoke = AsyncMock(return_value=MagicMock(content="Hello there."))

    with patch("vault_chat.llm.client.OllamaClientWrapper.get_chat_model", return_value=chat_model):
        answer = await LlamaClient(MODEL).complete("hi", system="Be brief.")

    assert answer == "Hello there."
    messages = chat_model.ainvoke.call_args.args[0]
    assert isinstance(messages[0], SystemMessage)
    assert messages[0].content == "Be brief."
    assert isinstance(messages[1], HumanMessage)
    assert messages[1].content == "hi"


@pytest.mark.asyncio
async def test_complete_wraps_failures():
    chat_model = MagicMock()
    chat_model.ainvoke = AsyncMock(side_effect=ValueError("model not found"))

    with patch("vault_chat.llm.client.OllamaClientWrapper.get_chat_model", return_value=chat_model):
        with pytest.raises(CompletionError) as excinfo:
            await LlamaClient(MODEL).complete("hi")

    assert excinfo.value.provider == "ollama"
    assert excinfo.value.model == "mock-chat"
    chat_model.ainvoke.assert_awaited_once()


@pytest.mark.asyncio
async def test_query_embeddings_are_cached():
    client = MagicMock()
    client.embed = AsyncMock(return_value={"embeddings": [[0.1, 0.2, 0.3]]})
    embedder = Embedder(OllamaConfig(host="http://mock-host:11434", model_name="mock-embed"))

    with patch("vault_chat.llm.client.OllamaClientWrapper.get_client", return_value=client):
        first = await embedder.embed_query("raft")
        second = await embedder.embed_query("raft")

    assert first == second == [0.1, 0.2, 0.3]
    client.embed.assert_awaited_once_with(model="mock-embed", input=["raft"])
