"""Therapist chat endpoint.

The pipeline runs in a fixed order and stops at the first rejection:
preflight, method, shared secret, rate limit, body, moderation, completion.
"""

import json
from typing import Any, Dict, List, Optional

import httpx
from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field, StrictStr, ValidationError
from starlette.background import BackgroundTask

from serenity.app.core.config import Settings
from serenity.app.core.logging import get_logger
from serenity.app.exceptions import (
    InvalidRequestError,
    MethodNotAllowedError,
    ModerationRejectedError,
    ProxyError,
    RateLimitExceededError,
)
from serenity.app.middleware.auth import SECRET_HEADER, verify_app_secret
from serenity.app.middleware.rate_limit import FixedWindowRateLimiter, get_client_key
from serenity.app.services.moderation import ModerationGate
from serenity.app.services.prompt import assemble_messages
from serenity.app.services.relay import CompletionRelay, StreamPipe

CHAT_PATH = "/api/therapist"
ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "TRACE", "CONNECT"]
STREAM_FLAGS = {"1", "true"}

INVALID_JSON_MESSAGE = "Invalid JSON body"
INVALID_SHAPE_MESSAGE = "Body must be { user: string, history?: [{role,text}] }"


class ConversationTurn(BaseModel):
    """A prior turn supplied by the caller. Unknown roles are allowed."""
    role: Any = None
    text: StrictStr


class ChatRequest(BaseModel):
    """Request body for the therapist endpoint."""
    user: StrictStr
    history: List[ConversationTurn] = Field(default_factory=list)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_rate_limiter(request: Request) -> FixedWindowRateLimiter:
    return request.app.state.rate_limiter


def get_moderation_gate(request: Request) -> ModerationGate:
    return request.app.state.moderation_gate


def get_completion_relay(request: Request) -> CompletionRelay:
    return request.app.state.completion_relay


def cors_headers(settings: Settings) -> Dict[str, str]:
    return {
        "Access-Control-Allow-Origin": settings.allow_origin,
        "Access-Control-Allow-Headers": f"Content-Type,{SECRET_HEADER}",
    }


async def parse_chat_request(request: Request) -> ChatRequest:
    """Read and validate the JSON body. An empty body counts as ``{}``.

    Raises:
        InvalidRequestError: If the body is not JSON or has the wrong shape
    """
    raw = await request.body()
    try:
        body = json.loads(raw) if raw.strip() else {}
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise InvalidRequestError(INVALID_JSON_MESSAGE)

    if not isinstance(body, dict):
        raise InvalidRequestError(INVALID_SHAPE_MESSAGE)
    try:
        return ChatRequest.model_validate(body)
    except ValidationError:
        raise InvalidRequestError(INVALID_SHAPE_MESSAGE)


router = APIRouter()
logger = get_logger(__name__)


@router.api_route(CHAT_PATH, methods=ALL_METHODS, response_model=None)
async def therapist_chat(
    request: Request,
    stream: Optional[str] = Query(default=None),
    settings: Settings = Depends(get_settings),
    rate_limiter: FixedWindowRateLimiter = Depends(get_rate_limiter),
    moderation_gate: ModerationGate = Depends(get_moderation_gate),
    relay: CompletionRelay = Depends(get_completion_relay),
) -> Response:
    """Forward one user message, with its history, to the completion API.

    Returns:
        204 for the preflight, ``{"reply": ...}`` in buffered mode, or the
        upstream event stream when ``?stream=1``

    Raises:
        ProxyException: Any rejection; rendered by the app's handler
    """
    headers = cors_headers(settings)

    if request.method == "OPTIONS":
        return Response(status_code=204, headers=headers)
    if request.method != "POST":
        raise MethodNotAllowedError()

    verify_app_secret(request, settings.app_shared_secret)

    client_key = get_client_key(request)
    result = await rate_limiter.is_allowed(client_key)
    if not result.allowed:
        logger.warning("Rate limit exceeded", extra={"client_key": client_key})
        raise RateLimitExceededError(retry_after=result.retry_after)

    chat_request = await parse_chat_request(request)
    streaming = (stream or "").lower() in STREAM_FLAGS

    try:
        if await moderation_gate.is_flagged(chat_request.user):
            logger.info("Message flagged by moderation", extra={"client_key": client_key})
            raise ModerationRejectedError()

        messages = assemble_messages(chat_request.history, chat_request.user)
        outcome = await relay.complete(messages, stream=streaming)
    except httpx.HTTPError as e:
        logger.error(
            f"Upstream request failed: {e}",
            extra={"client_key": client_key, "error_type": type(e).__name__},
        )
        raise ProxyError(str(e) or "Proxy error") from e
    except ValueError as e:
        logger.error(f"Upstream returned invalid JSON: {e}", extra={"client_key": client_key})
        raise ProxyError("Invalid response from completion API") from e

    if isinstance(outcome, StreamPipe):
        return StreamingResponse(
            outcome,
            media_type="text/event-stream",
            headers={**headers, "Cache-Control": "no-cache", "Connection": "keep-alive"},
            background=BackgroundTask(outcome.aclose),
        )
    return JSONResponse(content={"reply": outcome}, headers=headers)
