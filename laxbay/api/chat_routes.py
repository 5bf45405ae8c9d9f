# laxbay/api/chat_routes.py
import json
from functools import lru_cache

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from .. import config, schemas
from ..chat import ChatService
from ..db import SessionLocal
from ..embeddings import EmbeddingClient
from ..errors import LaxbayError
from ..llm import LanguageModelClient
from ..retrieval import KeywordRetriever, VectorRetriever
from ..utils import logger

router = APIRouter(prefix="/api/store/chat")


@lru_cache
def get_chat_service() -> ChatService:
    return ChatService(
        keyword_retriever=KeywordRetriever(SessionLocal),
        vector_retriever=VectorRetriever(SessionLocal, EmbeddingClient()),
        llm=LanguageModelClient(),
    )


def _event(payload: dict) -> str:
    return f"data: {json.dumps(payload)}\n\n"


@router.get("")
def chat_info():
    return {"ok": True, "model": config.GEMINI_MODEL}


@router.post("", response_model=schemas.ChatResponse)
def chat(payload: schemas.ChatRequest, service: ChatService = Depends(get_chat_service)):
    return service.reply(payload.prompt, payload.messages, payload.system)


@router.post("/stream")
def chat_stream(payload: schemas.ChatRequest, service: ChatService = Depends(get_chat_service)):
    # retrieval and setup errors surface as plain HTTP errors before the stream opens
    ctx = service.prepare(payload.prompt, payload.messages, payload.system)
    chunks = service.stream(ctx)

    def events():
        try:
            for chunk in chunks:
                yield _event({"text": chunk})
        except LaxbayError as e:
            logger.error("chat stream error: %s", e)
            body = {"error": e.detail or "chat error"}
            if getattr(e, "retry_after", None):
                body["retryAfter"] = e.retry_after
            yield _event(body)
            return
        yield _event({"done": True, "usedItems": ctx.used_items(), "filters": ctx.filters.to_dict()})

    return StreamingResponse(
        events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )
