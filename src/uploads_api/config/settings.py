# src/uploads_api/config/settings.py
import os
from functools import lru_cache
from typing import Optional

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOCAL_AWS_ENDPOINT = "http://localhost:5000"


class Settings(BaseSettings):
    """
    Single source of truth for all application settings.

    Configuration precedence:
    1. Environment variables (highest priority)
    2. .env file (if exists)
    3. Default values in this class (lowest priority)

    Usage:
        from uploads_api.config.settings import get_settings
        settings = get_settings()
        bucket_name = settings.s3_bucket_name
    """

    # Application Settings
    app_name: str = Field(
        default="files-pipeline",
        description="Application name"
    )

    # Deployment Mode
    deployment_mode: str = Field(
        default="local-dev",
        description="Deployment mode: local-dev, aws-mock, or aws-prod"
    )

    # AWS Core Settings
    aws_region: str = Field(
        default="us-east-1",
        alias="AWS_DEFAULT_REGION"
    )

    aws_access_key_id: Optional[str] = Field(
        default=None,
        alias="AWS_ACCESS_KEY_ID"
    )

    aws_secret_access_key: Optional[str] = Field(
        default=None,
        alias="AWS_SECRET_ACCESS_KEY"
    )

    aws_endpoint_url: Optional[str] = Field(
        default=None,
        alias="AWS_ENDPOINT_URL"
    )

    aws_public_endpoint_url: Optional[str] = Field(
        default=None,
        alias="AWS_PUBLIC_ENDPOINT_URL",
        description="Browser-reachable endpoint used when minting presigned upload URLs"
    )

    # S3 Configuration
    s3_bucket_name: str = Field(
        default="team-files",
        description="Bucket holding temp uploads and processed files"
    )

    public_base_url: Optional[str] = Field(
        default=None,
        alias="PUBLIC_BASE_URL",
        description="Public URL prefix for processed files (direct links)"
    )

    # SQS Configuration
    sqs_queue_name: str = Field(
        default="file-processing-queue",
        description="SQS queue name"
    )

    sqs_queue_url: Optional[str] = Field(
        default=None,
        alias="SQS_QUEUE_URL",
        description="Full SQS queue URL"
    )

    # Storage Configuration
    storage_dir: str = Field(
        default="storage",
        description="Local storage directory (local queue lives here)"
    )

    database_path: str = Field(
        default="files.db",
        alias="DATABASE_PATH",
        description="SQLite database file for file records and processing logs"
    )

    # Identity
    jwt_secret: str = Field(
        default="dev-secret-key-change-in-production",
        alias="JWT_SECRET"
    )

    jwt_algorithm: str = Field(default="HS256")

    default_team_id: int = Field(
        default=1,
        description="Team used when the caller has none (admin accounts)"
    )

    # Upload handshake
    upload_url_ttl_seconds: int = Field(default=3600, gt=0)

    verify_upload_on_finalize: bool = Field(
        default=False,
        description="Reject finalize when the temp object is not in the bucket"
    )

    # Processing
    max_attempts: int = Field(default=3, ge=1)

    backoff_unit_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Redelivery delay for attempt n is 2**n of these units"
    )

    queue_wait_seconds: int = Field(
        default=5,
        ge=0,
        le=20,
        description="Long-poll wait per dequeue"
    )

    queue_poll_interval_seconds: float = Field(default=0.5, gt=0)

    queue_visibility_timeout_seconds: int = Field(
        default=300,
        gt=0,
        description="Lease on a dequeued message before it is redelivered"
    )

    image_max_dimension: int = Field(default=2560, gt=0)

    image_quality: int = Field(default=80, ge=1, le=100)

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    @field_validator('deployment_mode')
    @classmethod
    def validate_deployment_mode(cls, v):
        """Validate deployment mode is one of the allowed values."""
        valid_modes = ["local-dev", "aws-mock", "aws-prod"]
        if v not in valid_modes:
            raise ValueError(f"Invalid deployment_mode: {v}. Must be one of {valid_modes}")
        return v

    @field_validator('aws_endpoint_url')
    @classmethod
    def set_endpoint_url_based_on_mode(cls, v, info: ValidationInfo):
        """Auto-set endpoint URL based on deployment mode if not explicitly provided."""
        if v is None and info.data.get('deployment_mode') in ["local-dev", "aws-mock"]:
            return LOCAL_AWS_ENDPOINT
        return v

    @field_validator('aws_access_key_id', 'aws_secret_access_key')
    @classmethod
    def set_mock_credentials_for_local_modes(cls, v, info: ValidationInfo):
        """Auto-set mock credentials for local modes if not provided."""
        if v is None and info.data.get('deployment_mode') in ["local-dev", "aws-mock"]:
            return "mock"
        return v

    @field_validator('sqs_queue_url')
    @classmethod
    def generate_queue_url_if_needed(cls, v, info: ValidationInfo):
        """Generate SQS queue URL if not provided."""
        mode = info.data.get('deployment_mode')
        if v is None and mode == "aws-mock":
            endpoint = info.data.get('aws_endpoint_url') or LOCAL_AWS_ENDPOINT
            # moto serves queues without an account number in the path
            return f"{endpoint}/queue/{info.data.get('sqs_queue_name')}"
        return v

    @property
    def direct_link_base(self) -> str:
        """Prefix for public links to processed files."""
        if self.public_base_url:
            return self.public_base_url.rstrip("/")
        if self.aws_endpoint_url:
            return f"{self.aws_endpoint_url.rstrip('/')}/{self.s3_bucket_name}"
        return f"https://{self.s3_bucket_name}.s3.{self.aws_region}.amazonaws.com"

    def get_environment_dict(self) -> dict:
        """Get configuration as a dictionary suitable for docker-compose or subprocess.

        Returns:
            Dictionary of environment variables
        """
        return {
            'DEPLOYMENT_MODE': self.deployment_mode,
            'S3_BUCKET_NAME': self.s3_bucket_name,
            'SQS_QUEUE_NAME': self.sqs_queue_name,
            'AWS_DEFAULT_REGION': self.aws_region,
            'AWS_ENDPOINT_URL': self.aws_endpoint_url or '',
            'AWS_ACCESS_KEY_ID': self.aws_access_key_id or 'mock',
            'AWS_SECRET_ACCESS_KEY': self.aws_secret_access_key or 'mock',
            'SQS_QUEUE_URL': self.sqs_queue_url or '',
            'DATABASE_PATH': self.database_path,
            'LOG_LEVEL': self.log_level,
        }

    def export_environment_variables(self) -> None:
        """Export configuration as environment variables for child processes."""
        for key, value in self.get_environment_dict().items():
            if value:  # Only set non-empty values
                os.environ[key] = str(value)

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=(".env", ".env.aws"),  # Read both .env and .env.aws (aws takes precedence)
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    This ensures we only create one Settings instance per process.
    """
    return Settings()
