"""Supabase Auth API service"""
import asyncio
import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import ValidationError

from workdesk.database import DataApiClient, decode_json, ensure_success, eq, desc
from workdesk.errors import DecodeFault, RemoteFault, TransportFault
from workdesk.models.auth import (
    AdminUserCreate,
    AdminUserUpdate,
    AuthSession,
    CustomerSubmission,
    SupabaseUser,
)

logger = logging.getLogger(__name__)


def _decode(model, payload):
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise DecodeFault(f"Could not decode {model.__name__}: {e}") from e


class AuthService:
    """
    Sign-in / sign-out / user lookup against ``<base>/auth/v1``, plus the
    admin user endpoints (service role key) and the customer submission
    intake table.
    """

    def __init__(self, client: DataApiClient):
        self.client = client

    @property
    def auth_url(self) -> str:
        return self.client.config.auth_url

    async def sign_in(
        self, email: str, password: str, cancel: Optional[asyncio.Event] = None
    ) -> AuthSession:
        """
        Exchange email / password for an access + refresh token pair

        Raises:
            RemoteFault: Wrong credentials (400) or other upstream errors
            DecodeFault: Success status but no access token in the body
        """
        self.client.config.ensure_configured()
        response = await self.client.send(
            "POST",
            f"{self.auth_url}/token",
            headers=self.client.headers(),
            params=[("grant_type", "password")],
            json={"email": email, "password": password},
            cancel=cancel,
        )
        ensure_success(response)

        session = _decode(AuthSession, decode_json(response))
        if not session.access_token or not session.access_token.strip():
            raise DecodeFault("Unexpected response from Supabase: no access token")
        return session

    async def get_user(
        self, access_token: Optional[str], cancel: Optional[asyncio.Event] = None
    ) -> Optional[SupabaseUser]:
        """User behind a token, or None if the token is blank or rejected"""
        if not access_token or not access_token.strip():
            return None

        self.client.config.ensure_configured()
        response = await self.client.send(
            "GET",
            f"{self.auth_url}/user",
            headers=self.client.headers(access_token),
            cancel=cancel,
        )
        if not response.is_success:
            logger.warning(f"Supabase auth failed: {response.status_code} - {response.text}")
            return None

        return _decode(SupabaseUser, decode_json(response))

    async def sign_out(
        self, access_token: Optional[str], cancel: Optional[asyncio.Event] = None
    ) -> None:
        if not access_token or not access_token.strip():
            return

        self.client.config.ensure_configured()
        response = await self.client.send(
            "POST",
            f"{self.auth_url}/logout",
            headers=self.client.headers(access_token),
            cancel=cancel,
        )
        if not response.is_success:
            # The session is gone client-side either way
            logger.warning(f"Supabase sign-out returned {response.status_code}")

    async def get_customer_submissions(
        self, access_token: Optional[str], cancel: Optional[asyncio.Event] = None
    ) -> List[CustomerSubmission]:
        return await self.client.query(
            "customer_submissions",
            order=desc("submitted_at"),
            model=CustomerSubmission,
            access_token=access_token,
            cancel=cancel,
        )

    async def update_submission_status(
        self,
        submission_id: UUID,
        status: str,
        access_token: str,
        updated_by: Optional[str],
        updated_at: Optional[datetime] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> None:
        """
        Move a submission through the intake workflow

        Raises:
            ValueError: If no user access token is available
        """
        if not access_token or not access_token.strip():
            raise ValueError("No Supabase access token available for updating submissions.")

        await self.client.update(
            "customer_submissions",
            [eq("id", submission_id)],
            {
                "status": status,
                "status_updated_by": updated_by,
                "status_updated_at": updated_at.isoformat() if updated_at else None,
            },
            access_token=access_token,
            cancel=cancel,
        )

    # Admin endpoints (service role key)

    async def create_user(
        self, user: AdminUserCreate, cancel: Optional[asyncio.Event] = None
    ) -> SupabaseUser:
        service_key = self.client.config.ensure_service_role()
        response = await self.client.send(
            "POST",
            f"{self.auth_url}/admin/users",
            headers=self.client.headers(api_key=service_key),
            json=user.model_dump(mode="json"),
            cancel=cancel,
        )
        ensure_success(response)
        created = _decode(SupabaseUser, decode_json(response))
        logger.info(f"Auth user created: {created.id}")
        return created

    async def update_user(
        self, user_id: str, changes: AdminUserUpdate, cancel: Optional[asyncio.Event] = None
    ) -> SupabaseUser:
        service_key = self.client.config.ensure_service_role()
        response = await self.client.send(
            "PUT",
            f"{self.auth_url}/admin/users/{user_id}",
            headers=self.client.headers(api_key=service_key),
            json=changes.model_dump(mode="json", exclude_none=True),
            cancel=cancel,
        )
        ensure_success(response)
        return _decode(SupabaseUser, decode_json(response))

    async def list_users(
        self, page: int = 1, per_page: int = 50, cancel: Optional[asyncio.Event] = None
    ) -> List[SupabaseUser]:
        """
        List auth users (best effort)

        The admin endpoint is not available on every deployment; any failure
        other than cancellation or missing configuration yields an empty list.
        """
        service_key = self.client.config.ensure_service_role()
        try:
            response = await self.client.send(
                "GET",
                f"{self.auth_url}/admin/users",
                headers=self.client.headers(api_key=service_key),
                params=[("page", str(page)), ("per_page", str(per_page))],
                cancel=cancel,
            )
            ensure_success(response)
            payload = decode_json(response)
            users = payload.get("users", []) if isinstance(payload, dict) else payload
            if not isinstance(users, list):
                raise DecodeFault("Unexpected admin users payload")
            return [_decode(SupabaseUser, u) for u in users]
        except (RemoteFault, TransportFault, DecodeFault) as e:
            logger.warning(f"Admin user listing unavailable, returning empty list: {e}")
            return []
