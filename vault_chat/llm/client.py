import ollama
import asyncio
import hashlib
import httpx
import logging
import weakref
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage
from langchain_ollama import ChatOllama
from typing import Dict, List, Optional
from vault_chat.config import OllamaConfig, get_config
from vault_chat.errors import CompletionError
from vault_chat.llm.retry import retry

logger = logging.getLogger(__name__)

# Cache AsyncClient instances per event loop to avoid repeated connection setup.
# Uses WeakKeyDictionary so clients are garbage-collected when the loop is gone.
_loop_client_cache: weakref.WeakKeyDictionary = weakref.WeakKeyDictionary()

TRANSIENT_ERRORS = (httpx.TransportError, ConnectionError, TimeoutError)

class OllamaClientWrapper:
    @classmethod
    def get_client(cls, host: str) -> ollama.AsyncClient:
        """
        Get or create an AsyncClient for the given host, cached per event loop.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No running loop (indexing from a worker thread)
            return ollama.AsyncClient(host=host)

        loop_clients: Dict[str, ollama.AsyncClient] = _loop_client_cache.setdefault(loop, {})
        if host not in loop_clients:
            loop_clients[host] = ollama.AsyncClient(host=host)
        return loop_clients[host]

    @classmethod
    def get_chat_model(cls, model: Optional[OllamaConfig] = None) -> ChatOllama:
        model = model or get_config().main_model
        if not model:
            raise ValueError("Main Model not configured")
        return ChatOllama(
            base_url=model.host,
            model=model.model_name,
        )


class LlamaClient:
    """
    Text completion against the configured main model.

    Transient transport failures are retried with exponential backoff; once the
    retries are exhausted (or on any other failure) a CompletionError carrying
    the provider and model name is raised.
    """

    provider = "ollama"

    def __init__(self, model: Optional[OllamaConfig] = None):
        self._model = model

    @property
    def model(self) -> Optional[OllamaConfig]:
        return self._model or get_config().main_model

    @property
    def model_name(self) -> str:
        return self.model.model_name if self.model else ""

    async def complete(self, prompt: str, system: Optional[str] = None) -> str:
        model = self.model
        if model is None:
            raise CompletionError("Main Model not configured", provider=self.provider)

        messages: List[BaseMessage] = []
        if system:
            messages.append(SystemMessage(content=system))
        messages.append(HumanMessage(content=prompt))

        try:
            response = await self._invoke(model, messages)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"[LLM] Completion failed on {model.host} / {model.model_name}: {e}")
            raise CompletionError(f"Completion failed: {e}", provider=self.provider, model=model.model_name) from e

        return response.content if isinstance(response.content, str) else str(response.content)

    @retry(max_attempts=3, initial_delay=0.5, retry_on=TRANSIENT_ERRORS)
    async def _invoke(self, model: OllamaConfig, messages: List[BaseMessage]):
        client = OllamaClientWrapper.get_chat_model(model)
        return await client.ainvoke(messages)


class Embedder:
    """Query embeddings with a bounded in-memory cache."""

    MAX_CACHE_ENTRIES = 1000

    def __init__(self, model: Optional[OllamaConfig] = None):
        self._model = model
        self._cache: Dict[str, List[float]] = {}

    @property
    def model(self) -> Optional[OllamaConfig]:
        return self._model or get_config().embedding_model

    async def embed_query(self, text: str) -> List[float]:
        model = self.model
        if model is None:
            raise ValueError("Embedding Model not configured")

        cache_key = hashlib.md5(f"{text}:{model.model_name}".encode()).hexdigest()
        if cache_key in self._cache:
            logger.debug(f"Embedding cache HIT for query: {text[:30]}...")
            return self._cache[cache_key]

        embeddings = await self.embed_documents([text])
        if not embeddings or not embeddings[0]:
            raise ValueError(f"Embedding model {model.model_name} returned no vector")

        if len(self._cache) >= self.MAX_CACHE_ENTRIES:
            # Simple eviction: drop the oldest half
            for key in list(self._cache.keys())[: self.MAX_CACHE_ENTRIES // 2]:
                del self._cache[key]
        self._cache[cache_key] = embeddings[0]
        return embeddings[0]

    @retry(max_attempts=3, initial_delay=0.5, retry_on=TRANSIENT_ERRORS)
    async def embed_documents(self, texts: List[str]) -> List[List[float]]:
        model = self.model
        if model is None:
            raise ValueError("Embedding Model not configured")
        client = OllamaClientWrapper.get_client(model.host)
        response = await client.embed(model=model.model_name, input=texts)
        return list(response.get("embeddings", []))
