"""Authentication middleware and dependencies"""
from fastapi import Request, HTTPException, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional, Dict
import logging

from workdesk.errors import TransportFault

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


async def verify_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[Dict]:
    """
    Verify Supabase JWT token via Supabase Auth API
    """
    if not credentials:
        return None

    token = credentials.credentials
    auth_service = request.app.state.auth_service

    try:
        user = await auth_service.get_user(token)
    except TransportFault:
        raise HTTPException(status_code=401, detail="Authentication service unavailable")

    if user is None or not user.id:
        raise HTTPException(status_code=401, detail="Invalid authentication token")

    logger.info(f"Auth successful for user: {user.id}")

    return {
        "user_id": user.id,
        "role": user.role,
        "email": user.email,
        "raw_token": token,
        "metadata": user.user_metadata
    }


async def get_current_user(
    auth_data: Optional[Dict] = Depends(verify_token)
) -> Dict:
    """
    Get current authenticated user

    Args:
        auth_data: Authentication data from verify_token

    Returns:
        User auth data

    Raises:
        HTTPException: If not authenticated
    """
    if not auth_data:
        raise HTTPException(status_code=401, detail="Not authenticated")

    return auth_data


async def get_optional_user(
    auth_data: Optional[Dict] = Depends(verify_token)
) -> Optional[Dict]:
    """
    Get current user if authenticated, None otherwise (for public endpoints)

    Args:
        auth_data: Authentication data from verify_token

    Returns:
        User auth data or None
    """
    return auth_data
