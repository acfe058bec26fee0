"""
Chat API: the AI assistant endpoint.

POST /v1/ai-chat: runs the agent loop, then streams the answer as Server-Sent Events.
"""

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import AliasChoices, BaseModel, Field, ValidationError

from ..core.auth import AuthenticatedUser
from ..core.dependencies import get_agent, get_user
from ..core.guardrails import check_history
from ..orchestrator.agent_loop import AgentLoop
from ..orchestrator.state import ConversationTurn, Role
from ..orchestrator.streamer import stream_events
from ..services.llm import ModelGatewayError

logger = logging.getLogger(__name__)

chat_router = APIRouter(tags=["chat"])


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    tenant_id: str = Field(min_length=1, validation_alias=AliasChoices("tenant_id", "company_id"))
    messages: list[ChatMessage] = Field(min_length=1)
    language: Optional[str] = None


def _describe(error: ValidationError) -> str:
    first = error.errors()[0]
    loc = ".".join(str(p) for p in first["loc"]) or "body"
    return f"Invalid request: {loc}: {first['msg']}"


@chat_router.post("/ai-chat")
async def ai_chat(
    request: Request,
    user: AuthenticatedUser = Depends(get_user),
    agent: AgentLoop = Depends(get_agent),
):
    """
    Answer a business question with the tool-calling agent.

    Body: {"tenant_id": "...", "messages": [{"role": "user", "content": "..."}], "language": "el"}

    Events:
      data: {"type": "tool_calls", "tools": [{"name": "query_revenue", "input": {...}}]}
      data: {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "..."}}
      data: {"type": "message_stop", "stop_reason": "done", "rounds": 1}
      data: {"type": "error", "error": {"type": "stream_error", "message": "..."}}
    """
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Request body must be JSON")
    if not isinstance(body, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Request body must be a JSON object")

    try:
        chat = ChatRequest.model_validate(body)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_describe(e))

    check = check_history(chat.messages, request.app.state.settings)
    if not check.allowed:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=check.reason)

    history = [ConversationTurn(role=Role(m.role), content=m.content) for m in chat.messages]
    logger.info(
        "AI chat: user=%s tenant=%s messages=%d",
        user.user_id, chat.tenant_id, len(history),
    )

    try:
        outcome = await agent.run(history, tenant_id=chat.tenant_id, language=chat.language)
    except ModelGatewayError as e:
        logger.error("AI chat failed in planning: %s", e)
        return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content={"error": "AI service error"})
    except Exception as e:
        logger.error("AI chat failed: %s", e, exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"},
        )

    return StreamingResponse(
        stream_events(outcome, agent.answer(outcome)),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
    )
