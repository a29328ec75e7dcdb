from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables or a .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore", populate_by_name=True)

    app_name: str = Field(default="Voice of Law API", alias="APP_NAME")
    environment: Literal["development", "staging", "production"] = Field(default="development", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    mongo_uri: str = Field(default="mongodb://localhost:27017", alias="MONGO_URI")
    mongo_db_name: str = Field(default="voiceoflaw", alias="MONGO_DB_NAME")

    jwt_secret_key: str = Field(default="change-me", alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(default=1440, alias="ACCESS_TOKEN_EXPIRE_MINUTES")
    refresh_token_expire_days: int = Field(default=7, alias="REFRESH_TOKEN_EXPIRE_DAYS")

    # Entitlement
    trial_days: int = Field(default=7, alias="TRIAL_DAYS")
    daily_trial_quota: int = Field(default=2, alias="DAILY_TRIAL_QUOTA")
    subscription_days: int = Field(default=30, alias="SUBSCRIPTION_DAYS")
    processed_events_kept: int = Field(default=50, alias="PROCESSED_EVENTS_KEPT")
    expiry_sweep_minutes: int = Field(default=60, alias="EXPIRY_SWEEP_MINUTES")
    enable_scheduler: bool = Field(default=True, alias="ENABLE_SCHEDULER")

    # Payments
    stripe_secret_key: str = Field(default="", alias="STRIPE_SECRET_KEY")
    stripe_webhook_secret: str = Field(default="", alias="STRIPE_WEBHOOK_SECRET")
    stripe_price_cents: int = Field(default=200, alias="STRIPE_PRICE_CENTS")
    stripe_currency: str = Field(default="usd", alias="STRIPE_CURRENCY")
    stripe_product_name: str = Field(default="Voice of Law - Access", alias="STRIPE_PRODUCT_NAME")
    client_url: str = Field(default="http://localhost:5173", alias="CLIENT_URL")
    external_timeout_seconds: float = Field(default=10.0, alias="EXTERNAL_TIMEOUT_SECONDS")

    # Generative model
    gemini_api_key: str = Field(default="", alias="GEMINI_API_KEY")
    gemini_model: str = Field(default="gemini-2.5-flash-lite", alias="GEMINI_MODEL")
    llm_temperature: float = Field(default=0.5, alias="LLM_TEMPERATURE")
    llm_max_output_tokens: int = Field(default=1500, alias="LLM_MAX_OUTPUT_TOKENS")
    llm_timeout_seconds: float = Field(default=30.0, alias="LLM_TIMEOUT_SECONDS")
    llm_max_attempts: int = Field(default=2, alias="LLM_MAX_ATTEMPTS")
    llm_retry_base_delay_seconds: float = Field(default=1.0, alias="LLM_RETRY_BASE_DELAY_SECONDS")

    # Chat pipeline
    chat_history_turns: int = Field(default=6, alias="CHAT_HISTORY_TURNS")
    context_item_chars: int = Field(default=500, alias="CONTEXT_ITEM_CHARS")
    book_text_chars: int = Field(default=2000, alias="BOOK_TEXT_CHARS")
    case_results_limit: int = Field(default=5, alias="CASE_RESULTS_LIMIT")
    book_results_limit: int = Field(default=3, alias="BOOK_RESULTS_LIMIT")
    article_results_limit: int = Field(default=3, alias="ARTICLE_RESULTS_LIMIT")
    greeting_max_chars: int = Field(default=50, alias="GREETING_MAX_CHARS")
    roman_urdu_min_hits: int = Field(default=2, alias="ROMAN_URDU_MIN_HITS")

    uploads_dir: str = Field(default="uploads", alias="UPLOADS_DIR")

    admin_email: Optional[str] = Field(default=None, alias="ADMIN_EMAIL")
    admin_password: Optional[str] = Field(default=None, alias="ADMIN_PASSWORD")

    cors_allow_origins: list[str] = Field(default_factory=lambda: ["*"], alias="CORS_ALLOW_ORIGINS")
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(default_factory=lambda: ["*"], alias="CORS_ALLOW_METHODS")
    cors_allow_headers: list[str] = Field(default_factory=lambda: ["*"], alias="CORS_ALLOW_HEADERS")

    api_prefix: str = Field(default="/api", alias="API_PREFIX")
    docs_url: Optional[str] = Field(default="/docs", alias="DOCS_URL")
    redoc_url: Optional[str] = Field(default="/redoc", alias="REDOC_URL")


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""

    return Settings()  # type: ignore[call-arg]
