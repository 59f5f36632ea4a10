"""Environment-based configuration for the form extractor service."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Form extractor settings, loaded from environment variables.

    Provider API keys are deliberately not part of the settings: each backend
    reads its key from the process environment on every check so keys exported
    at runtime are picked up.
    """

    # Server
    PORT: int = 8092
    LOG_LEVEL: str = "INFO"

    # OpenAI (GPT-4o with vision)
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    OPENAI_MODEL: str = "gpt-4o"
    OPENAI_MAX_TOKENS: int = 1500

    # Google Gemini
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    GEMINI_MODEL: str = "gemini-2.5-flash"
    GEMINI_MAX_OUTPUT_TOKENS: int = 8192

    # Anthropic Claude
    CLAUDE_BASE_URL: str = "https://api.anthropic.com/v1"
    CLAUDE_MODEL: str = "claude-3-5-sonnet-20241022"
    CLAUDE_MAX_TOKENS: int = 4096

    # Shared sampling and transport settings
    TEMPERATURE: float = 0.2
    PROVIDER_TIMEOUT_SECONDS: int = 120
    PROVIDER_CONNECT_TIMEOUT: int = 30

    # Documents
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024  # 10 MiB
    PDF_RENDER_SCALE: float = 2.0
    IMAGE_MAX_WIDTH: int = 0  # 0 = submit images at full resolution

    # Session
    HISTORY_LIMIT: int = 10

    model_config = {"env_prefix": "", "case_sensitive": True}


settings = Settings()
