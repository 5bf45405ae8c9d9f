# laxbay/retrieval.py
"""Listing retrieval for the chat assistant.

Two independent retrievers (keyword and vector) each return up to N
`RetrievedListing` values; `merge_results` combines them into one ranked,
deduplicated list.
"""
import re
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Dict, List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from . import crud
from .errors import EmbeddingError
from .filters import FilterSet
from .models import Posting, PostingEmbedding
from .utils import logger

KEYWORD_BASE_SCORE = 0.5
MAX_TERMS = 6

STOP_WORDS = frozenset("""
a an the and or but for to of in on at by with from into about as is are was were be been
i me my we our you your it its this that these those there here what which who whom
do does did have has had can could would should will shall may might must
any some all show find get buy need want looking look searching search please help
under below over above less more than between price priced cost costs cheap cheaper best good
category type lacrosse gear item items listing listings sale selling sell
""".split())


@dataclass(frozen=True)
class RetrievedListing:
    id: int
    title: str
    description: str
    price: float
    category: str
    location: str
    image: Optional[str] = None
    created_at: Optional[datetime] = None
    similarity: Optional[float] = None
    score: float = 0.0

    @classmethod
    def from_posting(cls, posting: Posting, similarity: Optional[float] = None):
        return cls(
            id=posting.id,
            title=posting.title,
            description=posting.description or "",
            price=float(posting.price) if posting.price is not None else 0.0,
            category=posting.category,
            location=posting.location,
            image=posting.image,
            created_at=posting.created_at,
            similarity=similarity,
        )


def query_terms(text: str) -> List[str]:
    terms = []
    for token in re.findall(r"[a-z0-9]+", (text or "").lower()):
        if token in STOP_WORDS or token in terms:
            continue
        terms.append(token)
        if len(terms) == MAX_TERMS:
            break
    return terms


def keyword_search(db: Session, query: str, filters: FilterSet, limit: int) -> List[RetrievedListing]:
    """Newest postings matching any query term and all filters.

    With no usable terms this degrades to the newest postings under the
    filters alone.
    """
    q = db.query(Posting)
    conds = crud.posting_conditions(**filters.to_conditions())
    if conds:
        q = q.filter(and_(*conds))
    terms = query_terms(query)
    if terms:
        q = q.filter(or_(*[crud.text_match(t) for t in terms]))
    rows = q.order_by(Posting.created_at.desc(), Posting.id.desc()).limit(limit).all()
    return [RetrievedListing.from_posting(p) for p in rows]


def vector_search(db: Session, vector: List[float], filters: FilterSet, limit: int) -> List[RetrievedListing]:
    """Postings ranked by cosine similarity to `vector`.

    Postings without an embedding stay eligible with a null similarity and
    sort after every embedded posting.
    """
    similarity = (1 - PostingEmbedding.embedding.cosine_distance(vector)).label("similarity")
    q = db.query(Posting, similarity).outerjoin(
        PostingEmbedding, PostingEmbedding.posting_id == Posting.id
    )
    conds = crud.posting_conditions(**filters.to_conditions())
    if conds:
        q = q.filter(and_(*conds))
    rows = (
        q.order_by(similarity.desc().nulls_last(), Posting.created_at.desc())
        .limit(limit)
        .all()
    )
    return [
        RetrievedListing.from_posting(p, float(sim) if sim is not None else None)
        for p, sim in rows
    ]


class KeywordRetriever:
    def __init__(self, session_factory):
        self.session_factory = session_factory

    def __call__(self, query: str, filters: FilterSet, limit: int) -> List[RetrievedListing]:
        with self.session_factory() as db:
            return keyword_search(db, query, filters, limit)


class VectorRetriever:
    def __init__(self, session_factory, embedder):
        self.session_factory = session_factory
        self.embedder = embedder

    def __call__(self, query: str, filters: FilterSet, limit: int) -> List[RetrievedListing]:
        try:
            vector = self.embedder.embed_query(query)
        except EmbeddingError as e:
            # keyword results alone still answer the request
            logger.warning("Vector retrieval skipped: %s", e)
            return []
        with self.session_factory() as db:
            return vector_search(db, vector, filters, limit)


def vector_score(similarity: Optional[float]) -> float:
    sim = min(max(similarity or 0.0, 0.0), 1.0)
    return 0.5 + sim * 0.5


def merge_results(
    keyword_hits: List[RetrievedListing],
    vector_hits: List[RetrievedListing],
    limit: int = 12,
) -> List[RetrievedListing]:
    """Deduplicate and rank both hit lists.

    A keyword hit scores 0.5, a vector hit 0.5 + similarity * 0.5; a posting
    found by both keeps the larger of the two. Ties keep insertion order.
    """
    merged: Dict[int, RetrievedListing] = {}
    for hit in keyword_hits:
        if hit.id not in merged:
            merged[hit.id] = replace(hit, score=KEYWORD_BASE_SCORE)
    for hit in vector_hits:
        score = vector_score(hit.similarity)
        seen = merged.get(hit.id)
        if seen is None:
            merged[hit.id] = replace(hit, score=score)
        else:
            merged[hit.id] = replace(seen, similarity=hit.similarity, score=max(seen.score, score))
    ranked = sorted(merged.values(), key=lambda h: h.score, reverse=True)
    return ranked[:limit]


def select_related(
    merged: List[RetrievedListing],
    threshold: float = 0.58,
    limit: int = 6,
) -> List[RetrievedListing]:
    """Listings confident enough to surface as suggestions.

    Falls back to the single best listing when none clears `threshold`.
    """
    confident = [h for h in merged if h.score >= threshold]
    if not confident:
        confident = merged[:1]
    return confident[:limit]


Retriever = Callable[[str, FilterSet, int], List[RetrievedListing]]
