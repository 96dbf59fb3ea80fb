"""Chat-related Pydantic models"""
from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum
from uuid import UUID


class SenderType(str, Enum):
    """Who wrote a chat message"""
    CUSTOMER = "customer"
    AGENT = "agent"
    SYSTEM = "system"

    @classmethod
    def parse(cls, value: Optional[str]) -> "SenderType":
        """Lenient parse: anything unrecognised is treated as a customer message"""
        if isinstance(value, SenderType):
            return value
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.CUSTOMER


class CustomerContactRow(BaseModel):
    """customer_contacts row"""
    id: UUID
    full_name: Optional[str] = None
    email: Optional[str] = None
    source: Optional[str] = None


class ChatSessionRow(BaseModel):
    """chat_sessions row"""
    id: UUID
    customer_id: Optional[UUID] = None
    status: str = "active"
    started_at: Optional[datetime] = None
    metadata: Optional[Dict[str, Any]] = None


class ChatMessageRow(BaseModel):
    """chat_messages row"""
    id: int
    session_id: UUID
    message: str = ""
    sender_type: SenderType = SenderType.CUSTOMER
    sender_id: Optional[UUID] = None
    created_at: datetime

    @field_validator("sender_type", mode="before")
    @classmethod
    def parse_sender_type(cls, v):
        return SenderType.parse(v)


class TeamMemberRow(BaseModel):
    """team_members row (agents)"""
    id: Optional[UUID] = None
    display_name: Optional[str] = None


class ContactPreview(BaseModel):
    full_name: Optional[str] = None
    email: Optional[str] = None


class MessagePreview(BaseModel):
    message: str = ""
    created_at: datetime


class ChatSessionInboxRow(BaseModel):
    """chat_sessions row with embedded contact and latest message"""
    id: UUID
    status: str = "active"
    started_at: datetime
    customer: Optional[ContactPreview] = Field(None, alias="customer_contacts")
    messages: List[MessagePreview] = Field(default_factory=list, alias="chat_messages")

    @field_validator("customer", mode="before")
    @classmethod
    def unwrap_customer(cls, v):
        # PostgREST returns an object for many-to-one, but tolerate arrays too
        if isinstance(v, list):
            v = v[0] if v else None
        return v if isinstance(v, dict) else None

    @field_validator("messages", mode="before")
    @classmethod
    def default_messages(cls, v):
        return v if isinstance(v, list) else []


class ChatSessionSummary(BaseModel):
    """Inbox entry"""
    id: UUID
    status: str
    started_at: datetime
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    last_message_preview: Optional[str] = None
    last_message_created_at: Optional[datetime] = None


class ChatMessageDetail(BaseModel):
    """Chat message annotated with the agent's display name"""
    id: int
    session_id: UUID
    message: str
    sender_type: SenderType
    sender_id: Optional[UUID] = None
    created_at: datetime
    agent_name: Optional[str] = None


class ChatSessionCreationResult(BaseModel):
    """Outcome of starting or resuming a chat"""
    session_id: UUID
    is_returning_customer: bool
    is_reusing_session: bool


class ChatSessionStartRequest(BaseModel):
    """Request to open the chat widget"""
    customer_name: str = Field(..., min_length=1, description="Visitor display name")
    customer_email: Optional[str] = Field(None, description="Optional visitor email")


class ChatMessageCreate(BaseModel):
    """Request to post a message into a session"""
    message: str = Field(..., min_length=1)
