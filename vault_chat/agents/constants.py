"""
Shared constants for the agents.
Pattern lists are checked in order; the first match wins.
"""

import re

CLASSIFIER_HISTORY_TURNS = 4

# Search: the text after the phrase is the query
SEARCH_QUERY_PATTERNS = [
    "find notes about", "find notes on",
    "search my notes for", "search my notes about",
    "search notes for", "search notes about",
    "show me notes on", "show me notes about",
    "list notes about", "list notes on",
    "which notes talk about", "which notes mention", "which notes discuss",
    "find", "search", "show", "list", "which",
]

SNIPPET_LENGTH = 150
MAX_KEYWORD_RESULTS = 20
VECTOR_WEIGHT = 0.7
KEYWORD_WEIGHT = 0.3
FILENAME_BOOST = 0.2

# Create: the text after the phrase is the topic
CREATE_TOPIC_PATTERNS = [
    "create a note on", "create a short note on", "create note on",
    "make a note about", "make a note on",
    "write a note about", "write a note on",
    "create a note about",
    "note on", "note about",
    "create", "make", "write",
]

MAX_FILENAME_LENGTH = 100
MAX_COLLISION_ATTEMPTS = 1000
PREVIEW_LENGTH = 200

# Summarize
CURRENT_NOTE_PATTERNS = [
    "summarize this note",
    "summarize the current note",
    "summarize this",
    "give me a summary of this note",
    "give me a summary of this",
    "summarize the note",
    "what is this note about",
]

TOPIC_SUMMARY_PATTERNS = [
    "summarize my notes about", "summarize my notes on",
    "summarize notes about", "summarize notes on",
    "summarise my notes about", "summarise my notes on",
    "summarise notes about", "summarise notes on",
    "give a summary of my notes about", "give a summary of my notes on",
    "give me a summary of my notes about", "give me a summary of my notes on",
    "what do my notes say about",
]

MAX_CHUNKS_FOR_SUMMARY = 6
MAX_WORDS_PER_CHUNK = 800

# Flashcards
NOTE_PATH_PATTERNS = [
    re.compile(r"""(?:from|for|of)\s+(?:the\s+)?(?:note\s+)?["']?([^"'\s]+(?:\.md)?)["']?""", re.IGNORECASE),
    re.compile(r"""(?:note|file)\s+["']?([^"'\s]+(?:\.md)?)["']?""", re.IGNORECASE),
    re.compile(r"""["']([^"']+\.md)["']""", re.IGNORECASE),
]
MAX_CARDS_PATTERN = re.compile(r"(?:max|maximum|limit|up\s+to)\s+(\d+)\s*(?:cards?|flashcards?)?", re.IGNORECASE)
DEFAULT_MAX_CARDS = 20

# Study
STUDY_CREATE_PATTERNS = [
    re.compile(r"create\s+(?:a\s+)?study\s+goal\s+(?:for|about|on)?\s*(.*)", re.IGNORECASE),
    re.compile(r"create\s+(?:a\s+)?goal\s+(?:for|about|on)?\s*(.*)", re.IGNORECASE),
]
STUDY_PLAN_PATTERNS = [
    re.compile(r"""plan\s+(?:study\s+)?goal\s+["']?([^"'\s]+)["']?""", re.IGNORECASE),
    re.compile(r"plan\s+my\s+study\s+goal", re.IGNORECASE),
    re.compile(r"""plan\s+goal\s+["']?([^"'\s]+)["']?""", re.IGNORECASE),
]
STUDY_ROADMAP_PATTERNS = [
    re.compile(r"""(?:generate|create|make)\s+(?:a\s+)?roadmap\s+(?:for|of)\s+(?:goal\s+)?["']?([^"'\s]+)["']?""", re.IGNORECASE),
    re.compile(r"""roadmap\s+(?:for|of)\s+(?:goal\s+)?["']?([^"'\s]+)["']?""", re.IGNORECASE),
]
STUDY_PREPARE_PATTERNS = [
    re.compile(r"""prepare\s+session\s+["']?([^"'\s]+)["']?""", re.IGNORECASE),
    re.compile(r"""prepare\s+["']?([^"'\s]+)["']?""", re.IGNORECASE),
]

GOAL_TITLE_PATTERN = re.compile(
    r"""create\s+(?:a\s+)?(?:study\s+)?goal\s+for\s+([^"'\s]+(?:\s+[^"'\s]+)*?)(?:\s+about|\s+description|\s+target|\s+date|$)""",
    re.IGNORECASE,
)
GOAL_FIELD_BOUNDARY = re.compile(r"\s+(?:about|description|target|date|topics?)\b", re.IGNORECASE)
GOAL_DESCRIPTION_PATTERN = re.compile(r"""description[:\s]+["']?([^"']+)["']?""", re.IGNORECASE)
GOAL_TOPICS_ABOUT_PATTERN = re.compile(r"""about\s+([^"']+)""", re.IGNORECASE)
GOAL_TOPICS_PATTERN = re.compile(r"""topics?[:\s]+["']?([^"']+)["']?""", re.IGNORECASE)
GOAL_TARGET_DATE_PATTERN = re.compile(r"""(?:target\s+)?date[:\s]+["']?(\d{4}-\d{2}-\d{2})["']?""", re.IGNORECASE)
