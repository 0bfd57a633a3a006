"""
Prompt Assembly
---------------
Builds the single completion prompt for the normal-chat path. The template is
chosen by what was actually retrieved (notes, web, both or nothing), so a RAG
request that found nothing gets the plain chat prompt.

Every template asks the model to close its answer with a "## Sources" section
that cites the source IDs given in the context: `file_path:start:end` for note
chunks and `web_<n>` for web results.
"""

import os
from typing import List
from vault_chat.chat.models import HistoryTurn
from vault_chat.rag.models import RetrievalContext, SearchResult, WebSnippet
from vault_chat.rag.service import RetrievalMode

NO_SOURCES = "## Sources\n- None. No relevant context provided."

RESPONSE_FORMAT = """RESPONSE FORMAT (STRICT):
1. First, provide a clear, well-structured answer in Markdown. Use headings, bullet points, and code blocks when helpful.
2. After ALL your content, add a divider line: `---`
3. After the divider, add a top-level heading exactly named:

## Sources
"""

SOURCES_RULES = """IMPORTANT:
- The Sources section must appear ONLY ONCE, at the very end of your response
- It must come after ALL content and after the divider line
- Do not include sources anywhere else in your response
- Do not output JSON"""

NONE_SYSTEM = f"""You are a helpful assistant. Answer the user's question.

{RESPONSE_FORMAT}
4. Under "## Sources", since no context was provided, write:

{NO_SOURCES}

{SOURCES_RULES}"""

RAG_SYSTEM = f"""You are a helpful assistant for question answering.
Answer the question using your knowledge and the information in the NOTES.
The NOTES are supplementary context to enhance your answer, not a restriction.

INSTRUCTIONS:
- Use the NOTES as additional context when relevant and incorporate them naturally.
- Answer concisely in Markdown (headings and bullet points are fine).
- Do not mention chunks, embeddings, or retrieval.
- Do NOT list the notes or sources in your answer body.

{RESPONSE_FORMAT}
4. Under "## Sources", list each note that influenced the answer as:
   `- Note: "[short label]" | ID: <source_id>`
   If you did NOT use any notes, write exactly:
   `- None. No relevant context provided.`

- Do NOT invent IDs or paths
{SOURCES_RULES}"""

WEB_SYSTEM = f"""You are a helpful assistant. Use ONLY the following web search results to answer. Cite URLs when relevant.

Rules:
- Only use information from the provided web search results
- If the answer is not in the results, explicitly say so
- Answer concisely and accurately

{RESPONSE_FORMAT}
4. Under "## Sources", list each web source you actually used as:
   `- Web: [short label](url) | ID: <source_id>`
   Do NOT invent IDs or URLs. Use each source at most once.

If NO useful context is available, write:

{NO_SOURCES}

{SOURCES_RULES}"""

HYBRID_SYSTEM = f"""You are a helpful assistant. Use both the note excerpts and the web search results.
Prefer the user's notes when they conflict with the web.

Rules:
- When referencing sources, mention whether information came from "notes" or "web"
- If the answer is not in either source, explicitly say so
- Cite URLs when referencing web sources
- Answer concisely and accurately

{RESPONSE_FORMAT}
4. Under "## Sources", list each source you actually used:
   - For notes: `- Note: "[short label]" | ID: <source_id>`
   - For web: `- Web: [short label](url) | ID: <source_id>`
   Do NOT invent IDs, URLs, or paths. Use each source at most once.

If NO useful context is available, write:

{NO_SOURCES}

{SOURCES_RULES}"""


def format_history(history: List[HistoryTurn]) -> str:
    return "\n".join(f"{turn.author.value.capitalize()}: {turn.text}" for turn in history)


def chunk_source_id(result: SearchResult) -> str:
    metadata = result.chunk.metadata
    return f"{metadata.get('file_path', 'unknown')}:{metadata.get('start_line', '?')}:{metadata.get('end_line', '?')}"


def chunk_label(result: SearchResult) -> str:
    chunk = result.chunk
    if chunk.section_title:
        return chunk.section_title
    return os.path.splitext(os.path.basename(chunk.file_path or "unknown"))[0]


def format_notes(chunks: List[SearchResult]) -> str:
    if not chunks:
        return "NOTES:\nNo relevant notes found."
    blocks = [f"[Source ID: {chunk_source_id(r)} | Note: {chunk_label(r)}]\n{r.chunk.text}" for r in chunks]
    return "NOTES:\n" + "\n\n".join(blocks)


def format_web(snippets: List[WebSnippet]) -> str:
    if not snippets:
        return "Web results: No results found."
    blocks = [
        f"Web ID: web_{i + 1} | {snippet.title} | {snippet.url}\n{snippet.content}"
        for i, snippet in enumerate(snippets)
    ]
    return "Web results:\n\n" + "\n\n".join(blocks)


def effective_mode(context: RetrievalContext) -> RetrievalMode:
    if context.chunks and context.web_snippets:
        return RetrievalMode.HYBRID
    if context.chunks:
        return RetrievalMode.RAG
    if context.web_snippets:
        return RetrievalMode.WEB
    return RetrievalMode.NONE


class PromptBuilder:
    def build(self, question: str, history: List[HistoryTurn], context: RetrievalContext) -> str:
        mode = effective_mode(context)
        sections = [
            {
                RetrievalMode.NONE: NONE_SYSTEM,
                RetrievalMode.RAG: RAG_SYSTEM,
                RetrievalMode.WEB: WEB_SYSTEM,
                RetrievalMode.HYBRID: HYBRID_SYSTEM,
            }[mode]
        ]

        if history:
            sections.append(f"Conversation History:\n{format_history(history)}")

        if mode in (RetrievalMode.RAG, RetrievalMode.HYBRID):
            sections.append(format_notes(context.chunks))
        if mode in (RetrievalMode.WEB, RetrievalMode.HYBRID):
            sections.append(format_web(context.web_snippets))

        sections.append(f"Question: {question}")
        return "\n\n".join(sections)
