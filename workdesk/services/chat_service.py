"""Live chat service - session reconciliation, messaging and inbox"""
import asyncio
import logging
import uuid
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from workdesk.database import DataApiClient, Embed, asc, desc, eq, in_, or_
from workdesk.errors import DecodeFault, RemoteFault, TransportFault
from workdesk.models.chat import (
    ChatMessageDetail,
    ChatMessageRow,
    ChatSessionCreationResult,
    ChatSessionInboxRow,
    ChatSessionRow,
    ChatSessionSummary,
    CustomerContactRow,
    SenderType,
    TeamMemberRow,
)

logger = logging.getLogger(__name__)

# A returning customer is reattached to a session in one of these states
OPEN_SESSION_STATUSES = ("active", "waiting")
CONTACT_SOURCE = "website_chat"


def create_placeholder_email(name: str, domain: str) -> str:
    """
    Build a unique email for visitors who did not give one

    Args:
        name: Visitor display name
        domain: Guest email domain, prefixed with ``guest.``

    Returns:
        ``<letters and digits of name>-<32 hex chars>@guest.<domain>``
    """
    sanitized = "".join(ch for ch in name.strip().lower() if ch.isalnum())
    if not sanitized:
        sanitized = "guest"
    return f"{sanitized}-{uuid.uuid4().hex}@guest.{domain}"


class ChatService:
    """Customer support chat backed by customer_contacts / chat_sessions / chat_messages"""

    def __init__(self, client: DataApiClient):
        self.client = client

    async def create_chat_session(
        self,
        customer_name: str,
        customer_email: Optional[str] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> ChatSessionCreationResult:
        """
        Start a chat, or resume the one a returning customer still has open

        Order matters: the contact lookup and the open-session lookup must
        run before anything is created, otherwise a reopened widget forks a
        second active session for the same customer.

        Args:
            customer_name: Visitor display name
            customer_email: Optional email; blank means "new visitor"
            cancel: Event that aborts the in-flight request when set

        Returns:
            Session id plus whether the contact and/or session were reused
        """
        self.client.config.ensure_configured()
        email = customer_email.strip() if customer_email and customer_email.strip() else None

        if email:
            contact = await self.find_customer_contact_by_email(email, cancel=cancel)
            if contact is not None:
                open_session_id = await self.find_active_chat_session(contact.id, cancel=cancel)
                if open_session_id is not None:
                    logger.info(f"Returning customer {contact.id} resumed chat session {open_session_id}")
                    return ChatSessionCreationResult(
                        session_id=open_session_id,
                        is_returning_customer=True,
                        is_reusing_session=True,
                    )

                session_id = await self._create_session(contact.id, customer_name, email, cancel)
                logger.info(f"Returning customer {contact.id} started chat session {session_id}")
                return ChatSessionCreationResult(
                    session_id=session_id,
                    is_returning_customer=True,
                    is_reusing_session=False,
                )

        contact = await self._create_customer_contact(customer_name, email, cancel)
        session_id = await self._create_session(contact.id, customer_name, email, cancel)
        logger.info(f"New customer {contact.id} started chat session {session_id}")
        return ChatSessionCreationResult(
            session_id=session_id,
            is_returning_customer=False,
            is_reusing_session=False,
        )

    async def find_customer_contact_by_email(
        self, email: str, cancel: Optional[asyncio.Event] = None
    ) -> Optional[CustomerContactRow]:
        """Exact, case-sensitive match on the stored email"""
        contacts = await self.client.query(
            "customer_contacts",
            columns=("id",),
            filters=[eq("email", email)],
            limit=1,
            model=CustomerContactRow,
            cancel=cancel,
        )
        return contacts[0] if contacts else None

    async def find_active_chat_session(
        self, customer_id: UUID, cancel: Optional[asyncio.Event] = None
    ) -> Optional[UUID]:
        """Most recently started active/waiting session of a customer"""
        sessions = await self.client.query(
            "chat_sessions",
            columns=("id",),
            filters=[
                eq("customer_id", customer_id),
                or_(*(eq("status", status) for status in OPEN_SESSION_STATUSES)),
            ],
            order=desc("started_at"),
            limit=1,
            model=ChatSessionRow,
            cancel=cancel,
        )
        return sessions[0].id if sessions else None

    async def _create_customer_contact(
        self, customer_name: str, email: Optional[str], cancel: Optional[asyncio.Event]
    ) -> CustomerContactRow:
        payload = {
            "full_name": customer_name,
            "email": email or create_placeholder_email(customer_name, self.client.config.guest_email_domain),
            "source": CONTACT_SOURCE,
        }
        rows = await self.client.insert(
            "customer_contacts", payload, model=CustomerContactRow, cancel=cancel
        )
        return rows[0]

    async def _create_session(
        self,
        customer_id: UUID,
        customer_name: str,
        customer_email: Optional[str],
        cancel: Optional[asyncio.Event],
    ) -> UUID:
        payload = {
            "customer_id": customer_id,
            "status": "active",
            # Trimmed email as given, or None for guests; never the generated placeholder
            "metadata": {
                "customer_name": customer_name,
                "customer_email": customer_email,
            },
        }
        rows = await self.client.insert(
            "chat_sessions", payload, model=ChatSessionRow, cancel=cancel
        )
        return rows[0].id

    async def add_customer_message(
        self, session_id: UUID, message: str, cancel: Optional[asyncio.Event] = None
    ) -> ChatMessageRow:
        """Store a message typed by the visitor"""
        payload = {
            "session_id": session_id,
            "sender_type": SenderType.CUSTOMER.value,
            "message": message,
        }
        rows = await self.client.insert(
            "chat_messages", payload, model=ChatMessageRow, cancel=cancel
        )
        return rows[0]

    async def add_agent_message(
        self,
        session_id: UUID,
        message: str,
        agent_id: Optional[UUID] = None,
        access_token: Optional[str] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> ChatMessageRow:
        """Store a reply from a support agent"""
        payload = {
            "session_id": session_id,
            "sender_type": SenderType.AGENT.value,
            "sender_id": agent_id,
            "message": message,
        }
        rows = await self.client.insert(
            "chat_messages",
            payload,
            model=ChatMessageRow,
            access_token=access_token,
            cancel=cancel,
        )
        return rows[0]

    async def get_chat_sessions(
        self, access_token: Optional[str] = None, cancel: Optional[asyncio.Event] = None
    ) -> List[ChatSessionSummary]:
        """Inbox: every session, newest first, with contact and last message"""
        rows = await self.client.query(
            "chat_sessions",
            columns=("id", "status", "started_at"),
            embeds=[
                Embed("customer_contacts", ("full_name", "email")),
                Embed("chat_messages", ("message", "created_at"), order=desc("created_at"), limit=1),
            ],
            order=desc("started_at"),
            model=ChatSessionInboxRow,
            access_token=access_token,
            cancel=cancel,
        )

        summaries = []
        for row in rows:
            preview = row.messages[0] if row.messages else None
            summaries.append(ChatSessionSummary(
                id=row.id,
                status=row.status,
                started_at=row.started_at,
                customer_name=row.customer.full_name if row.customer else None,
                customer_email=row.customer.email if row.customer else None,
                last_message_preview=preview.message if preview else None,
                last_message_created_at=preview.created_at if preview else None,
            ))
        return summaries

    async def get_chat_messages(
        self,
        session_id: UUID,
        access_token: Optional[str] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> List[ChatMessageDetail]:
        """
        Message history of a session, oldest first, with agent names resolved

        Agent names come from one batched team_members lookup. If that lookup
        fails the messages are still returned, just without names.
        """
        messages = await self.client.query(
            "chat_messages",
            columns=("id", "session_id", "message", "sender_type", "sender_id", "created_at"),
            filters=[eq("session_id", session_id)],
            order=asc("created_at"),
            model=ChatMessageRow,
            access_token=access_token,
            cancel=cancel,
        )

        agent_ids = list(dict.fromkeys(
            m.sender_id for m in messages
            if m.sender_type == SenderType.AGENT and m.sender_id is not None
        ))

        agent_names: Dict[UUID, str] = {}
        if agent_ids:
            try:
                agent_names = await self.resolve_agent_names(
                    agent_ids, access_token=access_token, cancel=cancel
                )
            except (RemoteFault, TransportFault, DecodeFault) as e:
                logger.warning(f"Failed to fetch agent names for session {session_id}: {e}")

        return [
            ChatMessageDetail(
                id=m.id,
                session_id=m.session_id,
                message=m.message,
                sender_type=m.sender_type,
                sender_id=m.sender_id,
                created_at=m.created_at,
                agent_name=agent_names.get(m.sender_id) if m.sender_type == SenderType.AGENT else None,
            )
            for m in messages
        ]

    async def resolve_agent_names(
        self,
        agent_ids: Iterable[UUID],
        access_token: Optional[str] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> Dict[UUID, str]:
        """Map team member ids to display names in a single id=in.(...) query"""
        agents = await self.client.query(
            "team_members",
            columns=("id", "display_name"),
            filters=[in_("id", agent_ids)],
            model=TeamMemberRow,
            access_token=access_token,
            cancel=cancel,
        )
        return {
            agent.id: agent.display_name
            for agent in agents
            if agent.id is not None and agent.display_name and agent.display_name.strip()
        }
