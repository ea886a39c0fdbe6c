"""Environment-based configuration for the Rechnung dashboard service."""

from pydantic import BaseModel
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Dashboard settings, loaded from environment variables."""

    # Server
    PORT: int = 8092

    # Hosted-records service (LivingApps REST API)
    RECORDS_API_URL: str = "https://my.living-apps.de/rest"
    RECORDS_APP_ID: str = "699ecef9a5f7a7df385d883f"
    RECORDS_COOKIE_NAME: str = "session"
    RECORDS_SESSION_COOKIE: str = ""  # Empty = rely on ambient credentials
    RECORDS_TIMEOUT_SECONDS: int = 30
    RECORDS_CONNECT_TIMEOUT: int = 10

    # AI extraction service (empty = photo scan disabled)
    EXTRACTION_SERVICE_URL: str = ""
    EXTRACTION_TIMEOUT_SECONDS: int = 120
    EXTRACTION_CONNECT_TIMEOUT: int = 10
    EXTRACTION_RETRY_ATTEMPTS: int = 1  # 1 = single attempt, no retry
    EXTRACTION_RETRY_DELAY: float = 2.0
    EXTRACTION_RETRY_BACKOFF: float = 2.0

    model_config = {"env_prefix": "", "case_sensitive": True}


class RecordServiceConfig(BaseModel):
    """Connection details for one record collection, passed to RecordClient."""

    base_url: str
    app_id: str
    session_cookie: str = ""
    cookie_name: str = "session"
    timeout: float = 30.0
    connect_timeout: float = 10.0

    @classmethod
    def from_settings(cls, s: Settings) -> "RecordServiceConfig":
        return cls(
            base_url=s.RECORDS_API_URL,
            app_id=s.RECORDS_APP_ID,
            session_cookie=s.RECORDS_SESSION_COOKIE,
            cookie_name=s.RECORDS_COOKIE_NAME,
            timeout=float(s.RECORDS_TIMEOUT_SECONDS),
            connect_timeout=float(s.RECORDS_CONNECT_TIMEOUT),
        )


class ExtractionServiceConfig(BaseModel):
    """Connection and retry details for the AI extraction endpoint."""

    base_url: str
    timeout: float = 120.0
    connect_timeout: float = 10.0
    retry_attempts: int = 1
    retry_delay: float = 2.0
    retry_backoff: float = 2.0

    @classmethod
    def from_settings(cls, s: Settings) -> "ExtractionServiceConfig":
        return cls(
            base_url=s.EXTRACTION_SERVICE_URL,
            timeout=float(s.EXTRACTION_TIMEOUT_SECONDS),
            connect_timeout=float(s.EXTRACTION_CONNECT_TIMEOUT),
            retry_attempts=s.EXTRACTION_RETRY_ATTEMPTS,
            retry_delay=s.EXTRACTION_RETRY_DELAY,
            retry_backoff=s.EXTRACTION_RETRY_BACKOFF,
        )


settings = Settings()
