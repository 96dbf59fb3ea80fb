"""Chat endpoints - Support widget and agent inbox"""
from fastapi import APIRouter, Depends
from typing import Dict, List, Optional
from uuid import UUID
import logging

from workdesk.dependencies import get_chat_service
from workdesk.middleware.auth import get_current_user, get_optional_user
from workdesk.models.chat import (
    ChatMessageCreate,
    ChatMessageDetail,
    ChatMessageRow,
    ChatSessionCreationResult,
    ChatSessionStartRequest,
    ChatSessionSummary,
)
from workdesk.services.chat_service import ChatService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/sessions", response_model=ChatSessionCreationResult)
async def start_chat_session(
    request: ChatSessionStartRequest,
    chat_service: ChatService = Depends(get_chat_service)
):
    """
    Open the chat widget (PUBLIC endpoint - no auth required)
    Resumes the visitor's open session when their email is already known
    """
    return await chat_service.create_chat_session(request.customer_name, request.customer_email)


@router.post("/sessions/{session_id}/messages", response_model=ChatMessageRow)
async def post_customer_message(
    session_id: UUID,
    request: ChatMessageCreate,
    chat_service: ChatService = Depends(get_chat_service)
):
    """Visitor message (PUBLIC endpoint - no auth required)"""
    return await chat_service.add_customer_message(session_id, request.message)


@router.get("/sessions/{session_id}/messages", response_model=List[ChatMessageDetail])
async def list_chat_messages(
    session_id: UUID,
    auth_data: Optional[Dict] = Depends(get_optional_user),
    chat_service: ChatService = Depends(get_chat_service)
):
    """
    Message history of a session, oldest first
    Public for the widget; a signed-in agent reads under their own token
    """
    access_token = auth_data["raw_token"] if auth_data else None
    return await chat_service.get_chat_messages(session_id, access_token=access_token)


@router.get("/sessions", response_model=List[ChatSessionSummary])
async def list_chat_sessions(
    auth_data: Dict = Depends(get_current_user),
    chat_service: ChatService = Depends(get_chat_service)
):
    """Agent inbox - every session with its latest message"""
    return await chat_service.get_chat_sessions(access_token=auth_data["raw_token"])


@router.post("/sessions/{session_id}/agent-messages", response_model=ChatMessageRow)
async def post_agent_message(
    session_id: UUID,
    request: ChatMessageCreate,
    auth_data: Dict = Depends(get_current_user),
    chat_service: ChatService = Depends(get_chat_service)
):
    """Agent reply; the signed-in user is recorded as the sender"""
    message = await chat_service.add_agent_message(
        session_id,
        request.message,
        agent_id=UUID(auth_data["user_id"]),
        access_token=auth_data["raw_token"],
    )
    logger.info(f"Agent {auth_data['user_id']} replied in session {session_id}")
    return message
