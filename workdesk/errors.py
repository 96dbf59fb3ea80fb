"""Supabase adapter exceptions"""
from typing import Optional


class SupabaseError(Exception):
    """Base class for every failure raised by the Supabase adapters"""


class NotConfigured(SupabaseError):
    """URL or credentials are missing or still template placeholders"""


class RemoteFault(SupabaseError):
    """Supabase answered with a non-success HTTP status"""

    def __init__(self, status_code: int, body: str, message: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message or f"Supabase request failed: {status_code} - {body}")


class DecodeFault(SupabaseError):
    """Response body could not be parsed into the expected row shape"""


class EmptyResult(SupabaseError):
    """A representation was requested but no rows came back"""


class Cancelled(SupabaseError):
    """The caller aborted the request through its cancellation signal"""


class TransportFault(SupabaseError):
    """The request never got an HTTP response (connection error, timeout)"""
