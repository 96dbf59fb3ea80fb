"""Application configuration"""
from pydantic import BaseModel, ConfigDict
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Optional

from workdesk.errors import NotConfigured

# Markers left behind by the project templates / .env.example
PLACEHOLDER_MARKERS = (
    "your-project-ref",
    "your-anon-key",
    "your-service-role-key",
    "placeholder",
    "changeme",
)


def is_placeholder(value: Optional[str]) -> bool:
    """True when a config value is empty or still holds a template marker"""
    if value is None or not value.strip():
        return True
    lowered = value.lower()
    return any(marker in lowered for marker in PLACEHOLDER_MARKERS)


class SupabaseConfig(BaseModel):
    """Immutable connection settings handed to every Supabase adapter"""

    model_config = ConfigDict(frozen=True)

    base_url: str = ""
    anon_key: str = ""
    service_role_key: Optional[str] = None
    guest_email_domain: str = "sominnercore.com"
    timeout: float = 30.0

    @property
    def is_configured(self) -> bool:
        return not (is_placeholder(self.base_url) or is_placeholder(self.anon_key))

    @property
    def has_service_role(self) -> bool:
        return not is_placeholder(self.service_role_key)

    def ensure_configured(self) -> None:
        """
        Fail fast before any network call

        Raises:
            NotConfigured: If the URL or anon key is missing or a placeholder
        """
        if not self.is_configured:
            raise NotConfigured(
                "Supabase configuration is missing or still using placeholder values."
            )

    def ensure_service_role(self) -> str:
        self.ensure_configured()
        if not self.has_service_role:
            raise NotConfigured("Supabase service role key is not configured.")
        return self.service_role_key

    @property
    def rest_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/rest/v1"

    @property
    def auth_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/auth/v1"


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Supabase
    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_service_role_key: Optional[str] = None

    # Chat widget
    guest_email_domain: str = "sominnercore.com"

    # Outbound HTTP
    request_timeout: float = 30.0

    # Application
    environment: str = "development"
    cors_origins: list[str] = ["*"]

    def supabase_config(self) -> SupabaseConfig:
        return SupabaseConfig(
            base_url=self.supabase_url,
            anon_key=self.supabase_anon_key,
            service_role_key=self.supabase_service_role_key,
            guest_email_domain=self.guest_email_domain,
            timeout=self.request_timeout,
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
