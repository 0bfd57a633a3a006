"""
Web Search Client (Tavily)
--------------------------
Posts the query to Tavily's /search endpoint and maps each result to a
WebSnippet. Transport failures are retried; HTTP errors and malformed
responses raise WebSearchError.
"""

import asyncio
import httpx
import logging
from typing import List, Optional
from vault_chat.errors import WebSearchError
from vault_chat.llm.retry import retry
from vault_chat.rag.models import WebSnippet

logger = logging.getLogger(__name__)

TAVILY_BASE_URL = "https://api.tavily.com"
HTTP_TIMEOUT = httpx.Timeout(30.0, connect=10.0)

class TavilyClient:
    def __init__(self, api_key: str, base_url: str = TAVILY_BASE_URL, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._transport = transport

    async def search(self, query: str, max_results: int = 5) -> List[WebSnippet]:
        logger.debug(f"[WEB] Searching: query=\"{query}\", max_results={max_results}")
        try:
            payload = await self._post_search(query, max_results)
        except asyncio.CancelledError:
            raise
        except WebSearchError:
            raise
        except Exception as e:
            raise WebSearchError(f"Tavily request failed: {e}") from e

        results = payload.get("results") or []
        snippets = [
            WebSnippet(
                title=item.get("title") or "",
                url=item.get("url") or "",
                content=item.get("content") or "",
            )
            for item in results
            if isinstance(item, dict)
        ]
        logger.info(f"[WEB] {len(snippets)} results for '{query[:40]}'")
        return snippets[:max_results]

    @retry(max_attempts=3, initial_delay=0.5, retry_on=(httpx.TransportError,))
    async def _post_search(self, query: str, max_results: int) -> dict:
        request = {
            "query": query,
            "search_depth": "basic",
            "max_results": max_results,
            "include_answer": False,
            "include_raw_content": False,
            "include_images": False,
        }
        async with httpx.AsyncClient(timeout=HTTP_TIMEOUT, transport=self._transport) as client:
            response = await client.post(
                f"{self.base_url}/search",
                json=request,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
        if response.status_code < 200 or response.status_code >= 300:
            raise WebSearchError(f"Tavily API returned error: {response.status_code}")
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise WebSearchError(f"Tavily API returned invalid JSON: {e}") from e
