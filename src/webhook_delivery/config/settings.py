"""
Module: settings.py
Description: Application configuration using pydantic-settings.

Configures the webhook delivery service from environment variables with
validation and defaults. Supports .env files for local development.
"""

import re
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application settings
    app_name: str = Field(default="BuildDesk Webhook Delivery", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    log_level: str = Field(default="INFO", description="Logging level")

    # AWS settings
    aws_region: str = Field(default="us-east-1", description="AWS region")
    stage: str = Field(default="dev", description="Deployment stage")

    # Storage settings
    storage_backend: str = Field(
        default="dynamodb",
        pattern=r"^(dynamodb|memory)$",
        description="Delivery store implementation (dynamodb or memory)"
    )
    endpoints_table_name: str = Field(
        default="webhook-endpoints",
        description="Name of the DynamoDB webhook endpoints table"
    )
    deliveries_table_name: str = Field(
        default="webhook-deliveries",
        description="Name of the DynamoDB webhook deliveries table"
    )

    # Delivery settings
    delivery_timeout_seconds: float = Field(
        default=30.0,
        ge=1,
        le=30,
        description="Hard timeout in seconds for a single delivery attempt"
    )
    response_body_limit: int = Field(
        default=1000,
        ge=0,
        description="Maximum number of response body characters kept on a delivery"
    )
    user_agent: str = Field(
        default="BuildDesk-Webhooks/1.0",
        description="User-Agent sent with every delivery"
    )

    # Retry and health settings
    default_max_attempts: int = Field(
        default=5,
        ge=1,
        description="Attempt ceiling for deliveries created without one"
    )
    backoff_base_minutes: int = Field(
        default=5,
        ge=1,
        description="Backoff multiplier: retry delay is 2^attempt_count * base minutes"
    )
    failure_threshold: int = Field(
        default=10,
        ge=1,
        description="Consecutive failures after which an endpoint is disabled"
    )

    # Sweep settings
    sweep_page_size: int = Field(
        default=100,
        ge=1,
        le=100,
        description="Maximum deliveries selected by one sweep"
    )
    sweep_concurrency: int = Field(
        default=1,
        ge=1,
        le=20,
        description="Deliveries attempted in parallel during a sweep"
    )

    # Observability settings
    metrics_enabled: bool = Field(default=True, description="Publish CloudWatch metrics")
    metrics_namespace: str = Field(default="WebhookDelivery", description="CloudWatch namespace")

    # HTTP settings
    cors_allow_origins: List[str] = Field(
        default=["*"],
        description="Origins allowed by the CORS middleware"
    )

    @field_validator('endpoints_table_name', 'deliveries_table_name')
    @classmethod
    def validate_table_names(cls, v: str) -> str:
        """Validate DynamoDB table names."""
        if not v or not isinstance(v, str):
            raise ValueError("Table name must be a non-empty string")

        if not re.match(r'^[a-zA-Z0-9_.-]{3,255}$', v):
            raise ValueError(
                "Table name must be 3-255 letters, numbers, dots, hyphens, or underscores"
            )

        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid logging level."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of: {', '.join(valid_levels)}")
        return v.upper()


# Global settings instance
settings = Settings()
