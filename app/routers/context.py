"""
Conversation context routes.

Thin HTTP layer over the ContextEngine held on app.state. Handlers are
async so every engine call runs on the event loop thread; only the blocking
typo-correction call is moved to the threadpool.
"""
import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Request
from starlette.concurrency import run_in_threadpool

from app.middleware.error_handling import (
    ContextHydrationException, ErrorCode, ExternalServiceException, NotFoundException,
)
from app.schemas.common import ApiResponse, ErrorResponse
from app.schemas.context import (
    AssistantMessageRequest, EnrichResponse, MessageRequest, MessageResponse,
    ResponseTopicsResponse, SnapshotResponse, TypoCorrectionRequest, TypoCorrectionResponse,
)
from app.services.context_engine import ContextEngine
from app.services.typo_correction import TypoCorrectionService

logger = logging.getLogger(__name__)

router = APIRouter(
    responses={
        404: {"model": ErrorResponse, "description": "Conversation not found"},
        422: {"model": ErrorResponse, "description": "Invalid request or snapshot"},
        503: {"model": ErrorResponse, "description": "Typo correction unavailable"},
    }
)


def get_context_engine(request: Request) -> ContextEngine:
    """Dependency injection for the application's ContextEngine."""
    return request.app.state.context_engine


def get_context_storage(request: Request):
    """Optional snapshot storage (None when persistence is disabled)."""
    return getattr(request.app.state, "context_storage", None)


def get_typo_service(request: Request) -> Optional[TypoCorrectionService]:
    return getattr(request.app.state, "typo_service", None)


def restore_context(engine: ContextEngine, storage, conversation_id: str) -> None:
    """Hydrate a conversation from storage when it is not live in memory."""
    if storage is None or conversation_id in engine.store:
        return
    data = storage.load(conversation_id)
    if not data:
        return
    try:
        engine.hydrate_context(conversation_id, data)
        logger.info(f"Restored conversation {conversation_id} from storage")
    except ContextHydrationException as e:
        logger.warning(f"Ignoring unreadable stored context for {conversation_id}: {e.message}")


def persist_context(engine: ContextEngine, storage, conversation_id: str) -> None:
    if storage is not None:
        storage.save(conversation_id, engine.serialize_context(conversation_id))


@router.post("/conversations/{conversation_id}/messages", response_model=MessageResponse)
async def process_user_message(
    conversation_id: str,
    payload: MessageRequest,
    engine: ContextEngine = Depends(get_context_engine),
    storage=Depends(get_context_storage)
):
    """
    Process a user message.

    Updates the conversation context and returns the enriched query plus the
    context metadata to send with it.
    """
    restore_context(engine, storage, conversation_id)

    follow_up = engine.on_user_message(conversation_id, payload.text)
    enriched_query = engine.get_enriched_query(conversation_id, payload.text)
    snapshot = engine.get_context_snapshot(conversation_id)

    persist_context(engine, storage, conversation_id)

    return MessageResponse(
        data={
            "enriched_query": enriched_query,
            "follow_up": follow_up.to_dict(),
            "context": snapshot.to_dict(),
        }
    )


@router.post("/conversations/{conversation_id}/assistant-messages", response_model=ResponseTopicsResponse)
async def process_assistant_message(
    conversation_id: str,
    payload: AssistantMessageRequest,
    engine: ContextEngine = Depends(get_context_engine),
    storage=Depends(get_context_storage)
):
    """Record the topics covered by an assistant response."""
    restore_context(engine, storage, conversation_id)
    topics = engine.on_assistant_message(conversation_id, payload.text)
    persist_context(engine, storage, conversation_id)
    return ResponseTopicsResponse(data={"response_topics": topics})


@router.post("/conversations/{conversation_id}/enrich", response_model=EnrichResponse)
async def enrich_query(
    conversation_id: str,
    payload: MessageRequest,
    engine: ContextEngine = Depends(get_context_engine),
    storage=Depends(get_context_storage)
):
    """Rewrite a message against the current context without updating it."""
    restore_context(engine, storage, conversation_id)
    return EnrichResponse(
        data={"enriched_query": engine.get_enriched_query(conversation_id, payload.text)}
    )


@router.get("/conversations/{conversation_id}/snapshot", response_model=SnapshotResponse)
async def get_snapshot(
    conversation_id: str,
    engine: ContextEngine = Depends(get_context_engine),
    storage=Depends(get_context_storage)
):
    restore_context(engine, storage, conversation_id)
    return SnapshotResponse(data=engine.get_context_snapshot(conversation_id).to_dict())


@router.get("/conversations/{conversation_id}/debug", response_model=ApiResponse)
async def get_debug_context(
    conversation_id: str,
    engine: ContextEngine = Depends(get_context_engine),
    storage=Depends(get_context_storage)
):
    """Diagnostics view of the conversation context."""
    restore_context(engine, storage, conversation_id)
    return ApiResponse(data=engine.get_debug_context(conversation_id))


@router.get("/conversations/{conversation_id}/export", response_model=ApiResponse)
async def export_context(
    conversation_id: str,
    engine: ContextEngine = Depends(get_context_engine),
    storage=Depends(get_context_storage)
):
    """Serialized snapshot suitable for PUT .../import."""
    restore_context(engine, storage, conversation_id)
    return ApiResponse(data=engine.serialize_context(conversation_id))


@router.put("/conversations/{conversation_id}/import", response_model=ApiResponse)
async def import_context(
    conversation_id: str,
    data: Any = Body(...),
    engine: ContextEngine = Depends(get_context_engine),
    storage=Depends(get_context_storage)
):
    """
    Replace the conversation context with a serialized snapshot.

    Malformed snapshots are rejected with CONTEXT_HYDRATION_FAILED (422).
    """
    engine.hydrate_context(conversation_id, data)
    persist_context(engine, storage, conversation_id)
    return ApiResponse(
        data=engine.get_context_snapshot(conversation_id).to_dict(),
        message="Context imported"
    )


@router.delete("/conversations/{conversation_id}", response_model=ApiResponse)
async def delete_context(
    conversation_id: str,
    engine: ContextEngine = Depends(get_context_engine),
    storage=Depends(get_context_storage)
):
    """Forget a conversation in memory and in storage."""
    removed = engine.reset_context(conversation_id)
    if storage is not None:
        removed = storage.delete(conversation_id) or removed
    if not removed:
        raise NotFoundException("Conversation", conversation_id, code=ErrorCode.CONTEXT_NOT_FOUND)
    return ApiResponse(
        data={"conversation_id": conversation_id, "deleted": True},
        message="Context deleted"
    )


@router.post("/typo-correction", response_model=TypoCorrectionResponse)
async def correct_typos(
    payload: TypoCorrectionRequest,
    service: Optional[TypoCorrectionService] = Depends(get_typo_service)
):
    """
    Suggest a typo correction for a draft message.

    data.suggestion is null when there is nothing worth correcting.
    """
    if service is None:
        raise ExternalServiceException(
            "OpenAI", "Typo correction is not configured", code=ErrorCode.LLM_SERVICE_ERROR
        )

    suggestion = await run_in_threadpool(service.correct, payload.text, payload.language)
    return TypoCorrectionResponse(
        data={"suggestion": suggestion.to_dict() if suggestion else None},
        message="Correction suggested" if suggestion else "No correction"
    )
