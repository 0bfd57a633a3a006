import logging
import asyncio
import threading
from typing import Dict, List
from flashrank import Ranker, RerankRequest
from vault_chat.rag.models import SearchResult

logger = logging.getLogger(__name__)

class Reranker:
    """
    Cross-encoder reranking with FlashRank.

    The ONNX model is loaded on first use inside the executor thread, so
    constructing a Reranker never blocks the event loop.
    """

    def __init__(self, model_name: str = "ms-marco-TinyBERT-L-2-v2"):
        self.model_name = model_name
        self._ranker = None
        self._load_lock = threading.Lock()
        self._load_failed = False

    def _get_ranker(self):
        if self._ranker is None and not self._load_failed:
            with self._load_lock:
                if self._ranker is None and not self._load_failed:
                    try:
                        logger.info(f"Initializing FlashRank Reranker: {self.model_name}")
                        self._ranker = Ranker(model_name=self.model_name)
                    except Exception as e:
                        logger.error(f"Failed to init FlashRank: {e}")
                        self._load_failed = True
        return self._ranker

    def _sync_rerank(self, query: str, results: List[SearchResult]) -> List[SearchResult]:
        ranker = self._get_ranker()
        if ranker is None:
            return results

        passages = [{"id": str(i), "text": r.chunk.text} for i, r in enumerate(results)]
        ranked = ranker.rerank(RerankRequest(query=query, passages=passages))

        reordered = []
        for item in ranked:
            original = results[int(item["id"])]
            reordered.append(SearchResult(chunk=original.chunk, similarity=float(item["score"])))
        return reordered

    async def rerank(self, query: str, results: List[SearchResult]) -> List[SearchResult]:
        """
        Reorders `results` by cross-encoder relevance, replacing each similarity
        with the reranker score. Falls back to the original order on failure.
        """
        if not results:
            return results

        try:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(None, self._sync_rerank, query, results)
        except Exception as e:
            logger.error(f"Reranking failed: {e}")
            return results

# One reranker per model name
_rerankers: Dict[str, Reranker] = {}
_rerankers_lock = threading.Lock()

def get_reranker(model_name: str) -> Reranker:
    with _rerankers_lock:
        if model_name not in _rerankers:
            _rerankers[model_name] = Reranker(model_name)
        return _rerankers[model_name]
