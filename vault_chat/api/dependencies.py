"""
Service Wiring
--------------
Builds the object graph once, on first use, so nothing is constructed before
the configuration wizard has run.
"""

import logging
from typing import Optional
from vault_chat.agents.classifier import IntentClassifier
from vault_chat.agents.create_note import CreateNoteAgent
from vault_chat.agents.flashcard import FlashcardAgent
from vault_chat.agents.master import MasterAgent
from vault_chat.agents.search_note import SearchNoteAgent
from vault_chat.agents.study import StudyAgent
from vault_chat.agents.summarize_note import SummarizeNoteAgent
from vault_chat.chat.service import ChatService
from vault_chat.config import get_config
from vault_chat.llm.client import Embedder, LlamaClient
from vault_chat.notes.filesystem import NoteFileSystem
from vault_chat.notes.flashcards import FlashcardService
from vault_chat.rag.indexer import VaultIndexer
from vault_chat.rag.reranker import get_reranker
from vault_chat.rag.retriever import RagRetriever
from vault_chat.rag.rewriter import QueryRewriter
from vault_chat.rag.service import RetrievalService
from vault_chat.rag.store import get_vector_store
from vault_chat.state.history import ConversationRepository
from vault_chat.state.memory import ConversationMemoryProvider
from vault_chat.study.planner import StudyPlanner
from vault_chat.study.repository import (
    StudyCacheRepository,
    StudyDatabase,
    StudyGoalRepository,
    StudySessionRepository,
)
from vault_chat.study.runner import StudyRunner
from vault_chat.web.search import TavilyClient

logger = logging.getLogger(__name__)


class ServiceContainer:
    def __init__(self):
        config = get_config()
        snapshot = config.snapshot()

        self.file_system = NoteFileSystem()
        self.llm = LlamaClient()
        self.embedder = Embedder()
        self.vector_store = get_vector_store()

        reranker = get_reranker(config.reranker_model) if config.reranking_enabled else None
        self.rag_retriever = RagRetriever(
            self.embedder, self.vector_store, reranker, snapshot.retrieval, rewriter=QueryRewriter(self.llm)
        )
        web_client = TavilyClient(config.tavily_api_key) if config.tavily_api_key else None
        if web_client is None:
            logger.info("[WIRING] TAVILY_API_KEY not set, web retrieval disabled")
        self.retrieval_service = RetrievalService(self.rag_retriever, web_client, snapshot.retrieval)
        self.indexer = VaultIndexer(self.file_system, self.embedder, self.vector_store)

        self.conversations = ConversationRepository(config.history_db_path)
        self.memory = ConversationMemoryProvider(self.conversations, snapshot.memory)

        study_db = StudyDatabase(config.history_db_path)
        self.goal_repository = StudyGoalRepository(study_db)
        self.session_repository = StudySessionRepository(study_db)
        self.cache_repository = StudyCacheRepository(study_db)

        self.flashcard_service = FlashcardService(self.file_system, self.llm)
        self.create_note_agent = CreateNoteAgent(self.llm, self.file_system)
        self.search_note_agent = SearchNoteAgent(self.file_system, self.rag_retriever)
        self.summarize_note_agent = SummarizeNoteAgent(self.llm, self.file_system, self.rag_retriever)
        self.flashcard_agent = FlashcardAgent(self.flashcard_service, self.file_system)

        planner = StudyPlanner(self.llm, self.search_note_agent, self.session_repository)
        runner = StudyRunner(
            self.summarize_note_agent,
            self.flashcard_service,
            self.goal_repository,
            self.session_repository,
            self.cache_repository,
        )
        self.study_agent = StudyAgent(
            self.search_note_agent,
            planner,
            runner,
            self.goal_repository,
            self.session_repository,
            self.cache_repository,
        )

        self.master_agent = MasterAgent(
            IntentClassifier(self.llm),
            self.create_note_agent,
            self.search_note_agent,
            self.summarize_note_agent,
            self.flashcard_agent,
            self.study_agent,
        )
        self.chat_service = ChatService(
            self.master_agent,
            self.retrieval_service,
            self.llm,
            self.conversations,
            self.memory,
        )


_container: Optional[ServiceContainer] = None


def get_container() -> ServiceContainer:
    global _container
    if _container is None:
        _container = ServiceContainer()
    return _container
