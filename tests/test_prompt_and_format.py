"""
Prompt Assembly & Result Rendering Tests
"""
import os
import sys

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from vault_chat.agents.results import (
    FlashcardsGenerated,
    NoteMatch,
    NotesFound,
    NoteSummarized,
    SessionPrepared,
    agent_result_adapter,
)
from vault_chat.chat.formatter import format_agent_result
from vault_chat.chat.models import HistoryTurn, MessageAuthor
from vault_chat.chat.prompt import HYBRID_SYSTEM, NONE_SYSTEM, WEB_SYSTEM, PromptBuilder, effective_mode
from vault_chat.notes.flashcards import Flashcard
from vault_chat.rag.models import RagChunk, RetrievalContext, SearchResult, WebSnippet
from vault_chat.rag.service import RetrievalMode

CHUNK = SearchResult(
    chunk=RagChunk(id="1", text="Raft elects leaders.", metadata={"file_path": "dist/raft.md", "section_title": "Election", "start_line": 3, "end_line": 9}),
    similarity=0.8,
)
SNIPPET = WebSnippet(title="Raft paper", url="https://raft.github.io", content="In Search of an Understandable Consensus Algorithm")


def test_effective_mode_follows_available_context():
    assert effective_mode(RetrievalContext()) == RetrievalMode.NONE
    assert effective_mode(RetrievalContext(chunks=[CHUNK])) == RetrievalMode.RAG
    assert effective_mode(RetrievalContext(web_snippets=[SNIPPET])) == RetrievalMode.WEB
    assert effective_mode(RetrievalContext(chunks=[CHUNK], web_snippets=[SNIPPET])) == RetrievalMode.HYBRID


def test_plain_prompt_without_context():
    prompt = PromptBuilder().build("hello?", [], RetrievalContext())

    assert prompt.startswith(NONE_SYSTEM)
    assert "NOTES:" not in prompt
    assert prompt.endswith("Question: hello?")


def test_hybrid_prompt_lists_notes_and_web():
    history = [HistoryTurn(author=MessageAuthor.USER, text="earlier"), HistoryTurn(author=MessageAuthor.ASSISTANT, text="reply")]

    prompt = PromptBuilder().build("what is raft?", history, RetrievalContext(chunks=[CHUNK], web_snippets=[SNIPPET]))

    assert prompt.startswith(HYBRID_SYSTEM)
    assert "Conversation History:\nUser: earlier\nAssistant: reply" in prompt
    assert "[Source ID: dist/raft.md:3:9 | Note: Election]\nRaft elects leaders." in prompt
    assert "Web ID: web_1 | Raft paper | https://raft.github.io" in prompt
    assert prompt.index("NOTES:") < prompt.index("Web results:") < prompt.index("Question: what is raft?")


def test_web_prompt_has_no_notes_block():
    prompt = PromptBuilder().build("q", [], RetrievalContext(web_snippets=[SNIPPET]))

    assert prompt.startswith(WEB_SYSTEM)
    assert "NOTES:" not in prompt


def test_notes_found_rendering():
    result = NotesFound(query="raft", matches=[
        NoteMatch(file_path="dist/raft.md", title="Raft", score=0.78, snippet="Raft elects leaders."),
        NoteMatch(file_path="paxos.md", title="Paxos", score=0.12, snippet="Paxos."),
    ])

    text = format_agent_result(result)

    assert text.startswith('Found 2 note(s) matching "raft":')
    assert "1. **Raft**" in text
    assert "Relevance: 78%" in text
    assert "2. **Paxos**" in text
    assert "Relevance: 12%" in text


def test_summary_rendering_lists_sources():
    text = format_agent_result(NoteSummarized(title="raft", summary="Consensus.", source_files=["a.md", "b.md"]))

    assert text.startswith("**Summary: raft**")
    assert "- `a.md`" in text
    assert "- `b.md`" in text


def test_flashcards_rendering():
    card = Flashcard(question="Who leads?", answer="The leader", source_file="raft.md")
    text = format_agent_result(FlashcardsGenerated(cards=[card], note_path="raft.md", count=1))

    assert "1. **Q:** Who leads?" in text
    assert "**A:** The leader" in text


def test_agent_result_serializes_with_kind_tag():
    data = agent_result_adapter.dump_python(
        SessionPrepared(session_id="s1", topic="rust", summaries_count=2, flashcards_count=5), mode="json"
    )

    assert data["kind"] == "session_prepared"
    assert agent_result_adapter.validate_python(data) == SessionPrepared(
        session_id="s1", topic="rust", summaries_count=2, flashcards_count=5
    )
