from typing import Literal, Optional
from urllib.parse import quote_plus

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseConfig(BaseSettings):
    """Database configuration"""

    host: str = "localhost"
    port: int = 5432
    username: str = "postgres"
    password: SecretStr = Field(default=SecretStr("postgres"))
    database: str = "callscribe"
    dsn: Optional[str] = Field(
        default=None,
        description="Full async SQLAlchemy URL; overrides the discrete fields when set.",
    )
    serverless: bool = Field(
        default=False,
        description="If true, disable connection pooling so serverless DBs can pause.",
    )

    @property
    def url(self) -> str:
        """Get database URL"""
        if self.dsn:
            return self.dsn
        username = quote_plus(self.username)
        password = quote_plus(self.password.get_secret_value())
        return (
            "postgresql+asyncpg://"
            f"{username}:{password}"
            f"@{self.host}:{self.port}/{self.database}"
        )

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        env_file=".env",
        secrets_dir=".secrets",
        case_sensitive=False,
        extra="ignore",
    )


class OpenAIConfig(BaseSettings):
    """OpenAI configuration for Whisper and chat completions."""

    api_key: SecretStr | None = None
    base_url: Optional[str] = None
    transcription_model: str = "whisper-1"
    transcription_language: str = "en"
    transcription_temperature: float = Field(default=0.2, ge=0.0, le=1.0)
    analysis_model: str = "gpt-4o-mini"
    analysis_temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    timeout_seconds: float = Field(default=60.0, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="OPENAI_",
        env_file=".env",
        secrets_dir=".secrets",
        case_sensitive=False,
        extra="ignore",
    )


class TwilioConfig(BaseSettings):
    """Twilio account used for inbound calls and recording downloads."""

    account_sid: Optional[str] = None
    auth_token: SecretStr | None = None
    phone_number: str = "+15551234567"
    greeting: str = "Thank you for calling. Please leave a message after the tone."
    farewell: str = "Thank you for your message. Goodbye."
    max_recording_seconds: int = Field(default=120, ge=1)
    # Account credentials are only sent to these hosts (and their subdomains).
    recording_hosts: list[str] = Field(default_factory=lambda: ["api.twilio.com"])

    model_config = SettingsConfigDict(
        env_prefix="TWILIO_",
        env_file=".env",
        secrets_dir=".secrets",
        case_sensitive=False,
        extra="ignore",
    )


class S3Config(BaseSettings):
    """S3 configuration"""

    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    region: str = "us-east-1"

    model_config = SettingsConfigDict(
        env_prefix="S3_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


class BedrockConfig(BaseSettings):
    """Amazon Bedrock configuration."""

    region: str = Field(
        default="us-east-1",
        validation_alias="BEDROCK_REGION",
    )
    model_id: str = Field(
        default="amazon.nova-micro-v1:0",
        validation_alias="BEDROCK_MODEL_ID",
    )
    max_tokens: int = Field(
        default=800,
        validation_alias="BEDROCK_MAX_TOKENS",
        ge=1,
        le=4096,
    )
    top_p: float = Field(
        default=0.9,
        validation_alias="BEDROCK_TOP_P",
        ge=0.0,
        le=1.0,
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        secrets_dir=".secrets",
        case_sensitive=False,
        extra="ignore",
    )


class PipelineConfig(BaseSettings):
    """Call-processing pipeline tuning."""

    max_attempts: int = Field(default=3, ge=1)
    initial_delay_seconds: float = Field(default=1.0, ge=0.0)
    backoff_factor: float = Field(default=2.0, ge=1.0)
    simulated_delay_seconds: float = Field(
        default=3.0,
        ge=0.0,
        description="Artificial latency before simulated uploads are processed.",
    )
    analysis_provider: Literal["openai", "bedrock"] = "openai"
    resume_on_startup: bool = True
    fetch_timeout_seconds: float = Field(default=30.0, gt=0)
    shutdown_grace_seconds: float = Field(default=10.0, ge=0.0)

    model_config = SettingsConfigDict(
        env_prefix="PIPELINE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


class UploadConfig(BaseSettings):
    """Manual upload handling."""

    directory: str = "uploads"
    max_bytes: int = Field(default=10 * 1024 * 1024, ge=1)
    allowed_mime_prefix: str = "audio/"

    model_config = SettingsConfigDict(
        env_prefix="UPLOAD_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


class Settings(BaseSettings):
    """Application settings"""

    app_name: str = "CallScribe"
    app_version: str = "1.0.0"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 5001
    log_file: str = "logs/app.log"
    pipeline_log_file: str = "logs/pipeline.log"
    transcript_log_file: str = "logs/transcripts.log"

    # Database
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)

    # OpenAI
    openai: OpenAIConfig = Field(default_factory=OpenAIConfig)

    # Twilio
    twilio: TwilioConfig = Field(default_factory=TwilioConfig)

    # S3
    s3: S3Config = Field(default_factory=S3Config)

    # Bedrock
    bedrock: BedrockConfig = Field(default_factory=BedrockConfig)

    # Pipeline
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)

    # Uploads
    upload: UploadConfig = Field(default_factory=UploadConfig)

    # CORS
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
    cors_allow_headers: list[str] = ["Content-Type", "Authorization"]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
settings = Settings()
