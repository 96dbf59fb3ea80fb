"""Auth / user management Pydantic models"""
from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from uuid import UUID


class SupabaseUser(BaseModel):
    """User record returned by /auth/v1"""
    id: Optional[str] = None
    email: Optional[str] = None
    user_metadata: Dict[str, Any] = Field(default_factory=dict)
    audience: Optional[str] = Field(None, alias="aud")
    role: Optional[str] = None

    model_config = {"populate_by_name": True}


class AuthSession(BaseModel):
    """Token pair issued by a password grant"""
    access_token: Optional[str] = None
    token_type: Optional[str] = None
    expires_in: int = 0
    refresh_token: Optional[str] = None
    user: Optional[SupabaseUser] = None


class SignInRequest(BaseModel):
    """Email / password sign-in"""
    email: EmailStr
    password: str = Field(..., min_length=1)


class AdminUserCreate(BaseModel):
    """Create an auth user via the admin API (service role)"""
    email: EmailStr
    password: str = Field(..., min_length=6)
    email_confirm: bool = True
    user_metadata: Dict[str, Any] = Field(default_factory=dict)


class AdminUserUpdate(BaseModel):
    """Partial update of an auth user via the admin API"""
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=6)
    user_metadata: Optional[Dict[str, Any]] = None


class CustomerSubmission(BaseModel):
    """customer_submissions row (contact form intake)"""
    id: UUID
    full_name: str = ""
    email: str = ""
    phone: Optional[str] = None
    company: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    status: str = "new"
    submitted_at: datetime
    tags: Optional[List[str]] = None
    status_updated_by: Optional[str] = None
    status_updated_at: Optional[datetime] = None


class SubmissionStatusUpdate(BaseModel):
    status: str = Field(..., min_length=1)
