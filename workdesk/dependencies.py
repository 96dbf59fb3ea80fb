"""Service accessors for route handlers

Services are built once per application in the lifespan handler and kept on
``app.state``; handlers receive them through these dependencies.
"""
from fastapi import Request

from workdesk.services.auth_service import AuthService
from workdesk.services.chat_service import ChatService
from workdesk.services.projects_service import ProjectsService


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


def get_projects_service(request: Request) -> ProjectsService:
    return request.app.state.projects_service


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service
