"""
Vector Database Interface (ChromaDB)
------------------------------------
Persists note chunks with their embeddings and answers similarity queries.
Chunks of every vault share one collection and are told apart by the
`vault_id` metadata key.
"""

import chromadb
from chromadb.config import Settings
import threading
from typing import Any, Dict, List, Optional
import logging
from vault_chat.rag.models import RagChunk, SearchResult

logger = logging.getLogger(__name__)

COLLECTION_NAME = "vault_notes"

class VectorStore:
    """
    Wrapper for ChromaDB operations.
    Writes are serialized with a lock; ChromaDB reads are thread-safe.
    """
    def __init__(self, persist_dir: str = "chroma_db", client=None):
        self.persist_dir = persist_dir
        self.lock = threading.Lock()

        self.client = client or chromadb.PersistentClient(
            path=persist_dir,
            settings=Settings(anonymized_telemetry=False)
        )
        self.collection = self.client.get_or_create_collection(
            name=COLLECTION_NAME,
            metadata={"hnsw:space": "cosine"}
        )
        logger.info(f"Vector Store initialized at {persist_dir}")

    def upsert(self, chunks: List[RagChunk]):
        """Adds or replaces chunks. Every chunk must carry an embedding."""
        if not chunks:
            return
        missing = [c.id for c in chunks if not c.embedding]
        if missing:
            raise ValueError(f"Chunks without embeddings: {missing[:3]}")

        with self.lock:
            self.collection.upsert(
                ids=[c.id for c in chunks],
                documents=[c.text for c in chunks],
                metadatas=[_clean_metadata(c.metadata) for c in chunks],
                embeddings=[c.embedding for c in chunks],
            )
        logger.info(f"[STORE] Upserted {len(chunks)} chunks. Total in collection: {self.collection.count()}")

    def search(self, embedding: List[float], top_k: int = 10, where: Optional[Dict[str, Any]] = None) -> List[SearchResult]:
        """
        Returns the `top_k` nearest chunks, best first.
        Cosine distance is converted to a similarity in [0, 1].
        """
        results = self.collection.query(
            query_embeddings=[embedding],
            n_results=top_k,
            where=where or None,
            include=["documents", "metadatas", "distances"],
        )

        ids = (results.get("ids") or [[]])[0]
        documents = (results.get("documents") or [[]])[0]
        metadatas = (results.get("metadatas") or [[]])[0]
        distances = (results.get("distances") or [[]])[0]

        hits = []
        for chunk_id, text, meta, distance in zip(ids, documents, metadatas, distances):
            chunk = RagChunk(id=chunk_id, text=text or "", metadata=dict(meta or {}))
            hits.append(SearchResult(chunk=chunk, similarity=1.0 - float(distance)))
        return hits

    def count(self) -> int:
        with self.lock:
            return self.collection.count()

    def delete_by_file_path(self, file_path: str, vault_id: Optional[str] = None):
        """Removes every chunk that came from `file_path`."""
        where: Dict[str, Any] = {"file_path": file_path}
        if vault_id:
            where = {"$and": [{"file_path": file_path}, {"vault_id": vault_id}]}
        with self.lock:
            self.collection.delete(where=where)
        logger.info(f"[STORE] Deleted all embeddings for file: {file_path}")

    def clear(self, vault_id: Optional[str] = None):
        """Wipes one vault's chunks, or the whole collection when no vault is given."""
        with self.lock:
            if vault_id:
                self.collection.delete(where={"vault_id": vault_id})
                logger.info(f"[STORE] Cleared vault {vault_id}")
                return
            self.client.delete_collection(COLLECTION_NAME)
            self.collection = self.client.create_collection(
                name=COLLECTION_NAME,
                metadata={"hnsw:space": "cosine"}
            )
        logger.info("[STORE] Collection wiped and recreated.")


def _clean_metadata(metadata: Dict[str, Any]) -> Dict[str, Any]:
    # Chroma only accepts scalar, non-null metadata values
    return {k: v for k, v in metadata.items() if isinstance(v, (str, int, float, bool))}

# Singleton
_store: Optional[VectorStore] = None
_store_lock = threading.Lock()

def get_vector_store() -> VectorStore:
    global _store
    if _store is None:
        with _store_lock:
            if _store is None:
                from vault_chat.config import get_config
                _store = VectorStore(persist_dir=get_config().chroma_dir)
    return _store
