"""
Query Rewriting
---------------
Optional pre-processing of a question before it is embedded:

- rewrite: one clearer search query, chit-chat removed, acronyms expanded.
- alternatives: the query plus up to three rephrasings for multi-query search.

Both fall back to the unchanged query when the model call fails.
"""

import asyncio
import logging
import re
from typing import List

logger = logging.getLogger(__name__)

REWRITE_PROMPT = """Rewrite this query to be clear and specific for searching personal notes. Remove chit-chat. Expand acronyms if needed. Output only the rewritten query, nothing else.

Original query: {query}

Rewritten query:"""

ALTERNATIVES_PROMPT = """Generate 2-3 alternative phrasings of this query for semantic search.

Rules:
- Output ONLY the queries, one per line
- No explanations, no prefixes, no numbering
- Each line must be a complete search query
- Do not include the original query in your output

Original query: {query}

Alternative queries (one per line, no other text):"""

MAX_ALTERNATIVES = 3
LIST_PREFIX = re.compile(r"^(?:\d+[.)]|[-*])\s*")
CHATTER_MARKERS = ("here are", "alternative", "phrasing", "query:", "queries:")


def parse_alternatives(response: str) -> List[str]:
    """One query per line; numbering, bullets and explanatory lines are dropped."""
    alternatives = []
    for line in response.splitlines():
        line = LIST_PREFIX.sub("", line.strip()).strip()
        lower = line.lower()
        if len(line) <= 5 or lower.startswith("original") or any(m in lower for m in CHATTER_MARKERS):
            continue
        alternatives.append(line)
    return alternatives[:MAX_ALTERNATIVES]


class QueryRewriter:
    def __init__(self, llm):
        self.llm = llm

    async def rewrite(self, query: str) -> str:
        try:
            rewritten = (await self.llm.complete(REWRITE_PROMPT.format(query=query))).strip()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"[REWRITER] Rewrite failed, using original query: {e}")
            return query
        logger.info(f"[REWRITER] '{query}' -> '{rewritten}'")
        return rewritten or query

    async def alternatives(self, query: str) -> List[str]:
        """`query` first, then distinct rephrasings."""
        try:
            response = await self.llm.complete(ALTERNATIVES_PROMPT.format(query=query))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"[REWRITER] Alternative queries failed, searching with original only: {e}")
            return [query]

        queries = [query]
        for alternative in parse_alternatives(response):
            if alternative not in queries:
                queries.append(alternative)
        logger.info(f"[REWRITER] {len(queries)} queries for '{query}': {queries}")
        return queries
