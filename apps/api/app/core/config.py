"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"
    VERSION: str = "0.1.0"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite+pysqlite:///./support_desk.db"
    # Run alembic upgrades on startup instead of create_all
    DB_AUTO_MIGRATE: bool = False

    # Session cookie (holds the Stytch session JWT)
    SESSION_COOKIE_NAME: str = "stytch_session_jwt"
    SESSION_COOKIE_MAX_AGE: int = 60 * 60 * 24 * 7

    # Stytch B2B
    STYTCH_PROJECT_ID: str = ""
    STYTCH_SECRET: str = ""
    STYTCH_ORGANIZATION_ID: str = ""  # Fallback when a session carries no org id
    STYTCH_API_BASE_URL: str = ""  # Derived from project id when empty

    # Jira Cloud (escalation)
    JIRA_BASE_URL: str = ""
    JIRA_EMAIL: str = ""
    JIRA_API_TOKEN: str = ""

    # AI bug report helper
    AI_PROVIDER: str = "anthropic"  # anthropic | openai
    ANTHROPIC_API_KEY: str = ""
    ANTHROPIC_MODEL: str = "claude-3-5-sonnet-latest"
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4o-mini"

    # Web app (invite emails link to {APP_URL}/login)
    APP_URL: str = "http://localhost:3000"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

    # Rate Limiting (requests per minute)
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_STORAGE_URI: str = "memory://"
    RATE_LIMIT_AUTH: int = 10  # Login callbacks

    # Outbound HTTP
    HTTP_TIMEOUT_SECONDS: float = 15.0

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def cookie_secure(self) -> bool:
        """Secure cookies only in production."""
        return self.ENV != "dev"

    @property
    def stytch_configured(self) -> bool:
        return bool(self.STYTCH_PROJECT_ID and self.STYTCH_SECRET)

    @property
    def stytch_base_url(self) -> str:
        """Stytch routes test projects to test.stytch.com."""
        if self.STYTCH_API_BASE_URL:
            return self.STYTCH_API_BASE_URL.rstrip("/")
        if self.STYTCH_PROJECT_ID.startswith("project-live-"):
            return "https://api.stytch.com"
        return "https://test.stytch.com"

    @property
    def jira_configured(self) -> bool:
        return bool(self.JIRA_BASE_URL and self.JIRA_EMAIL and self.JIRA_API_TOKEN)


settings = Settings()
