# laxbay/embeddings.py
"""Posting embeddings and the reindex operation.

Embeddings are written by `reindex` (admin route, scheduled sweep, CLI) and
refreshed in the background after a posting is created or edited.
"""
from typing import List, Optional

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from google.auth import exceptions as auth_exceptions
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import config, crud
from .db import SessionLocal
from .errors import EmbeddingError
from .models import Posting
from .utils import logger

# transport failures (requests raises OSError subclasses) and bad credentials
CALL_ERRORS = (
    google_exceptions.GoogleAPIError,
    auth_exceptions.GoogleAuthError,
    OSError,
    ValueError,
)


class EmbeddingClient:
    def __init__(self, api_key: Optional[str] = None, model_name: Optional[str] = None,
                 dimensions: Optional[int] = None, timeout: Optional[float] = None, embed_fn=None):
        self.api_key = api_key if api_key is not None else config.GOOGLE_API_KEY
        self.model_name = model_name or config.EMBEDDING_MODEL
        self.dimensions = dimensions or config.EMBEDDING_DIM
        self.timeout = timeout if timeout is not None else config.LLM_TIMEOUT_SECONDS
        self._embed_fn = embed_fn

    def _embed(self, text: str, task_type: str) -> List[float]:
        if self._embed_fn is None:
            if not self.api_key:
                raise EmbeddingError("Missing GOOGLE_API_KEY env var")
            genai.configure(api_key=self.api_key)
            self._embed_fn = genai.embed_content
        try:
            result = self._embed_fn(
                model=self.model_name,
                content=text,
                task_type=task_type,
                request_options={"timeout": self.timeout},
            )
        except CALL_ERRORS as e:
            raise EmbeddingError(f"embedding call failed: {e}")
        try:
            vector = [float(x) for x in result["embedding"]]
        except (KeyError, TypeError, ValueError) as e:
            raise EmbeddingError(f"malformed embedding response: {e!r}")
        if len(vector) != self.dimensions:
            raise EmbeddingError(
                f"embedding has {len(vector)} dimensions, expected {self.dimensions}"
            )
        return vector

    def embed_query(self, text: str) -> List[float]:
        return self._embed(text, "retrieval_query")

    def embed_document(self, text: str) -> List[float]:
        return self._embed(text, "retrieval_document")


def posting_document(posting: Posting) -> str:
    return (
        f"{posting.title}\n"
        f"{posting.category} | {posting.location} | ${float(posting.price):,.2f}\n"
        f"{posting.description}"
    )


def reindex(db: Session, embedder: EmbeddingClient, stale_only: bool = True,
            limit: Optional[int] = None) -> dict:
    """Embed postings into the Embedding Index.

    Returns counts of postings indexed and postings whose embedding call
    failed; failures are left for the next run.
    """
    postings = crud.postings_needing_embedding(db, stale_only=stale_only, limit=limit)
    indexed = failed = 0
    for posting in postings:
        try:
            vector = embedder.embed_document(posting_document(posting))
        except EmbeddingError as e:
            logger.warning("Embedding failed for posting %s: %s", posting.id, e)
            failed += 1
            continue
        crud.upsert_embedding(db, posting.id, vector)
        indexed += 1
    logger.info("Reindex finished: %d indexed, %d failed (stale_only=%s)", indexed, failed, stale_only)
    return {"indexed": indexed, "failed": failed}


def refresh_posting_embedding(posting_id: int, embedder: Optional[EmbeddingClient] = None) -> bool:
    """Background task run after a posting write. Never raises."""
    embedder = embedder or EmbeddingClient()
    db = SessionLocal()
    try:
        posting = crud.get_posting(db, posting_id)
        if posting is None:
            return False
        crud.upsert_embedding(db, posting.id, embedder.embed_document(posting_document(posting)))
        logger.info("Embedded posting %s", posting_id)
        return True
    except (EmbeddingError, SQLAlchemyError) as e:
        # the scheduled sweep picks this posting up later
        logger.warning("Embedding refresh for posting %s deferred: %s", posting_id, e)
        return False
    finally:
        db.close()


def sweep_stale_embeddings():
    db = SessionLocal()
    try:
        return reindex(db, EmbeddingClient(), stale_only=True)
    finally:
        db.close()
