"""Main FastAPI application"""
from fastapi import FastAPI
from contextlib import asynccontextmanager
from typing import Optional
import httpx
import logging

from workdesk.config import Settings, get_settings
from workdesk.database import DataApiClient
from workdesk.middleware.cors import setup_cors
from workdesk.middleware.error_handler import ErrorHandlerMiddleware, register_exception_handlers
from workdesk.services.auth_service import AuthService
from workdesk.services.chat_service import ChatService
from workdesk.services.projects_service import ProjectsService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, http_client: Optional[httpx.AsyncClient] = None) -> FastAPI:
    """
    Build the application

    Args:
        settings: Settings to use (environment / .env when omitted)
        http_client: Outbound HTTP client; one is created per app when omitted

    Returns:
        Configured FastAPI app
    """
    settings = settings or get_settings()
    supabase_config = settings.supabase_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan events"""
        # Startup
        client = DataApiClient(supabase_config, http=http_client)
        app.state.chat_service = ChatService(client)
        app.state.projects_service = ProjectsService(client)
        app.state.auth_service = AuthService(client)
        if not supabase_config.is_configured:
            logger.warning("Supabase is not configured - data endpoints will return 503")
        yield
        # Shutdown
        await client.aclose()

    app = FastAPI(
        title="Workdesk API",
        description="Projects, tasks and customer support chat on Supabase",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )

    # Setup CORS
    setup_cors(app, settings)

    # Add error handling middleware
    app.add_middleware(ErrorHandlerMiddleware)
    register_exception_handlers(app)

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "workdesk",
            "supabase": "configured" if supabase_config.is_configured else "not configured"
        }

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "message": "Workdesk API",
            "version": "1.0.0",
            "docs": "/docs"
        }

    # Import and include routers
    from workdesk.routers import admin, auth, chat, projects

    app.include_router(chat.router, prefix="/api/chat", tags=["Chat"])
    app.include_router(projects.router, prefix="/api/projects", tags=["Projects"])
    app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
    app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
