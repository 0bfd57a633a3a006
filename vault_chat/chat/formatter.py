"""
Agent Result Formatter
----------------------
Renders structured agent results as the markdown reply shown in the chat.
"""

from typing import List
from vault_chat.agents.results import (
    AgentResult,
    FlashcardsGenerated,
    NoteCreated,
    NotesFound,
    NoteSummarized,
    RoadmapGenerated,
    SessionPrepared,
    StudyGoalCreated,
    StudyGoalPlanned,
)

# Which agent produced each result kind
AGENT_NAMES = {
    "note_created": "CreateNoteAgent",
    "notes_found": "SearchNoteAgent",
    "note_summarized": "SummarizeNoteAgent",
    "flashcards_generated": "FlashcardAgent",
    "study_goal_created": "StudyAgent",
    "study_goal_planned": "StudyAgent",
    "roadmap_generated": "StudyAgent",
    "session_prepared": "StudyAgent",
}


def _note_created(result: NoteCreated) -> List[str]:
    return [
        "Created a new note:",
        "",
        f"- **Title:** {result.title}",
        f"- **File:** `{result.path}`",
        "",
        "**Preview:**",
        "```markdown",
        result.preview,
        "```",
    ]


def _notes_found(result: NotesFound) -> List[str]:
    lines = [f'Found {len(result.matches)} note(s) matching "{result.query}":', ""]
    for index, match in enumerate(result.matches):
        if index:
            lines.append("")
        lines.extend([
            f"{index + 1}. **{match.title}**",
            f"   - File: `{match.file_path}`",
            f"   - Relevance: {match.score * 100:.0f}%",
            f"   - Snippet: {match.snippet}",
        ])
    return lines


def _note_summarized(result: NoteSummarized) -> List[str]:
    lines = [f"**Summary: {result.title}**", "", result.summary]
    if result.source_files:
        lines.extend(["", "**Sources:**"])
        lines.extend(f"- `{path}`" for path in result.source_files)
    return lines


def _flashcards(result: FlashcardsGenerated) -> List[str]:
    lines = [f"Generated {result.count} flashcard(s) from `{result.note_path}`:", ""]
    for index, card in enumerate(result.cards):
        lines.append(f"{index + 1}. **Q:** {card.question}")
        lines.append(f"   **A:** {card.answer}")
    return lines


def _goal_created(result: StudyGoalCreated) -> List[str]:
    lines = [
        f"Created study goal **{result.title}**",
        "",
        f"- **Goal ID:** `{result.goal_id}`",
        f"- **Matched notes:** {result.matched_notes_count}",
    ]
    if result.topics:
        lines.append(f"- **Topics:** {', '.join(result.topics)}")
    return lines


def _goal_planned(result: StudyGoalPlanned) -> List[str]:
    lines = [f"Planned goal `{result.goal_id}`: {result.sessions_created} session(s) created."]
    if result.topics:
        lines.append(f"Topics: {', '.join(result.topics)}")
    return lines


def _roadmap(result: RoadmapGenerated) -> List[str]:
    return [f"**Roadmap for goal `{result.goal_id}`**", "", result.roadmap]


def _session_prepared(result: SessionPrepared) -> List[str]:
    return [
        f"Prepared session **{result.topic}** (`{result.session_id}`)",
        "",
        f"- **Summaries:** {result.summaries_count}",
        f"- **Flashcards:** {result.flashcards_count}",
    ]


_RENDERERS = {
    "note_created": _note_created,
    "notes_found": _notes_found,
    "note_summarized": _note_summarized,
    "flashcards_generated": _flashcards,
    "study_goal_created": _goal_created,
    "study_goal_planned": _goal_planned,
    "roadmap_generated": _roadmap,
    "session_prepared": _session_prepared,
}


def format_agent_result(result: AgentResult) -> str:
    return "\n".join(_RENDERERS[result.kind](result)).strip()
