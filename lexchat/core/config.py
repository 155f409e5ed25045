"""
Application configuration using Pydantic Settings.

Backend endpoints, side-effect parameters and local persistence are all
controlled by environment variables (or a .env file).
"""

from functools import lru_cache
from typing import List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ===========================================
    # Environment
    # ===========================================
    ENVIRONMENT: Literal["local", "test"] = "local"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # ===========================================
    # Lawyer AI backend
    # ===========================================
    API_BASE_URL: str = "http://localhost:10244"

    # Bearer token issued by the login flow (empty = anonymous)
    API_TOKEN: str = ""

    # Applies to ordinary request/response calls only; chat streams are
    # bounded by the transport and explicit cancellation.
    HTTP_TIMEOUT_SECONDS: float = 10.0

    CHAT_STREAM_PATH: str = "/admin-api/lawyer-ai/chat/stream"
    ACTION_RESPONSE_PATH: str = "/admin-api/lawyer-ai/action-response"
    FILE_UPLOAD_PATH: str = "/support/file/upload"
    DOCUMENT_GENERATE_PATH: str = "/admin-api/legal-document/generate"
    CONVERSATIONS_PATH: str = "/admin-api/lawyer-ai/conversations"

    # ===========================================
    # Action side effects
    # ===========================================
    UPLOAD_ACCEPT: str = ".pdf,.doc,.docx,.jpg,.jpeg,.png"
    DOWNLOAD_URL: str = "https://example.com/sample-document.pdf"
    DOWNLOAD_FILE_NAME: str = "法律文档模板.pdf"
    FIND_LAWYER_ROUTE: str = "/lawyers"
    FIND_LAWYER_REDIRECT_DELAY_SECONDS: float = 1.0
    AUTO_ACTION_DELAY_SECONDS: float = 0.1
    DOCUMENT_PROMPT: str = "帮我根据上下文生成文书"
    DEFAULT_CONVERSATION_TITLE: str = "AI法律助手"

    # Transient warnings shown to the user disappear after this many seconds
    WARNING_TTL_SECONDS: float = 15.0

    # ===========================================
    # Local persistence
    # ===========================================
    STATE_STORE_PATH: str = "./storage/conversations"

    # ===========================================
    # Server
    # ===========================================
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    ALLOWED_ORIGINS: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"]
    )

    @property
    def is_test(self) -> bool:
        """Check if running under the test environment."""
        return self.ENVIRONMENT == "test"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures settings are loaded only once.
    """
    return Settings()
