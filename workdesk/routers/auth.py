"""Authentication endpoints"""
from fastapi import APIRouter, HTTPException, Depends
from typing import Dict, List
from uuid import UUID
import logging

from workdesk.dependencies import get_auth_service
from workdesk.errors import RemoteFault
from workdesk.middleware.auth import get_current_user
from workdesk.models.auth import (
    AuthSession,
    CustomerSubmission,
    SignInRequest,
    SubmissionStatusUpdate,
)
from workdesk.services.auth_service import AuthService
from datetime import datetime, timezone

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/sign-in", response_model=AuthSession)
async def sign_in(
    request: SignInRequest,
    auth_service: AuthService = Depends(get_auth_service)
):
    """Email / password sign-in"""
    try:
        return await auth_service.sign_in(request.email, request.password)
    except RemoteFault as e:
        if e.status_code in (400, 401):
            raise HTTPException(status_code=401, detail="Invalid email or password")
        raise


@router.get("/me")
async def get_me(auth_data: Dict = Depends(get_current_user)):
    """Current user"""
    return {
        "user_id": auth_data["user_id"],
        "email": auth_data["email"],
        "role": auth_data["role"],
        "metadata": auth_data["metadata"]
    }


@router.post("/sign-out")
async def sign_out(
    auth_data: Dict = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service)
):
    await auth_service.sign_out(auth_data["raw_token"])
    return {"success": True}


@router.get("/submissions", response_model=List[CustomerSubmission])
async def list_submissions(
    auth_data: Dict = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service)
):
    """Contact form submissions, newest first"""
    return await auth_service.get_customer_submissions(auth_data["raw_token"])


@router.patch("/submissions/{submission_id}")
async def update_submission(
    submission_id: UUID,
    request: SubmissionStatusUpdate,
    auth_data: Dict = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service)
):
    await auth_service.update_submission_status(
        submission_id,
        request.status,
        auth_data["raw_token"],
        updated_by=auth_data["email"],
        updated_at=datetime.now(timezone.utc),
    )
    return {"success": True}
