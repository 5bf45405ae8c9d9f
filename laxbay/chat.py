# laxbay/chat.py
"""Chat assistant pipeline.

parse filters -> (keyword retrieval | vector retrieval) -> merge ->
prompt -> generate. The two retrievers only read and run side by side;
merging waits for both.
"""
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Iterator, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from . import config
from .errors import UpstreamError, ValidationFailed
from .filters import FilterSet, parse_filters
from .prompt import build_prompt
from .retrieval import Retriever, RetrievedListing, merge_results, select_related
from .utils import logger


@dataclass
class ChatContext:
    """Everything computed before generation starts."""
    prompt: str
    filters: FilterSet
    listings: List[RetrievedListing]
    related: List[RetrievedListing] = field(default_factory=list)

    def used_items(self):
        return [
            {
                "id": item.id,
                "title": item.title,
                "price": item.price,
                "location": item.location,
                "url": f"/postdetails/{item.id}",
            }
            for item in self.related
        ]


class ChatService:
    def __init__(
        self,
        keyword_retriever: Retriever,
        vector_retriever: Retriever,
        llm,
        result_limit: int = config.CHAT_RESULT_LIMIT,
        related_threshold: float = config.CHAT_RELATED_THRESHOLD,
        related_limit: int = config.CHAT_RELATED_LIMIT,
        snippet_chars: int = config.CHAT_SNIPPET_CHARS,
    ):
        self.keyword_retriever = keyword_retriever
        self.vector_retriever = vector_retriever
        self.llm = llm
        self.result_limit = result_limit
        self.related_threshold = related_threshold
        self.related_limit = related_limit
        self.snippet_chars = snippet_chars

    def retrieve(self, query: str):
        filters = parse_filters(query)
        try:
            with ThreadPoolExecutor(max_workers=2) as pool:
                keyword = pool.submit(self.keyword_retriever, query, filters, self.result_limit)
                vector = pool.submit(self.vector_retriever, query, filters, self.result_limit)
                keyword_hits, vector_hits = keyword.result(), vector.result()
        except SQLAlchemyError as e:
            logger.exception("Listing retrieval failed: %s", e)
            raise UpstreamError("chat error")
        merged = merge_results(keyword_hits, vector_hits, self.result_limit)
        logger.info(
            "Retrieved %d keyword / %d vector hits, %d merged (filters=%s)",
            len(keyword_hits), len(vector_hits), len(merged), filters.to_dict(),
        )
        return filters, merged

    def prepare(self, prompt: str, messages=None, system: Optional[str] = None) -> ChatContext:
        query = (prompt or "").strip() or _last_user_message(messages)
        if not query:
            raise ValidationFailed("prompt is required")
        filters, merged = self.retrieve(query)
        text = build_prompt(merged, prompt, messages, system, self.snippet_chars)
        return ChatContext(
            prompt=text,
            filters=filters,
            listings=merged,
            related=select_related(merged, self.related_threshold, self.related_limit),
        )

    def reply(self, prompt: str, messages=None, system: Optional[str] = None) -> dict:
        ctx = self.prepare(prompt, messages, system)
        text = self.llm.generate(ctx.prompt)
        return {"text": text, "usedItems": ctx.used_items(), "filters": ctx.filters.to_dict()}

    def stream(self, ctx: ChatContext) -> Iterator[str]:
        return self.llm.stream(ctx.prompt)


def _last_user_message(messages) -> str:
    for m in reversed(list(messages or [])):
        role = m.get("role") if isinstance(m, dict) else m.role
        content = m.get("content") if isinstance(m, dict) else m.content
        if (role or "user") == "user" and isinstance(content, str) and content.strip():
            return content.strip()
    return ""
