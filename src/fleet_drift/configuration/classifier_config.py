"""
Remote pipeline classifier (East deployer) configuration settings.
"""
from functools import lru_cache

from pydantic import Field, field_validator

from .base_config import BaseConfig


class ClassifierSettings(BaseConfig):
    """Settings for the single outbound classification lookup."""

    EAST_PIPELINE_BASE_URL: str = Field(
        default="https://eastpipeline.yo",
        description="Base URL of the East pipeline deployer"
    )

    EAST_PIPELINE_PATH: str = Field(
        default="doesThisWork",
        description="Per-repository path appended after /<owner>/<repo>/"
    )

    EAST_PIPELINE_MARKER: str = Field(
        default="found",
        description="Substring in the response body that confirms the East pipeline"
    )

    TIMEOUT: float = Field(
        default=10.0,
        description="Connect/read timeout for the lookup in seconds",
        alias="CLASSIFIER_TIMEOUT"
    )

    MAX_RETRIES: int = Field(
        default=0,
        description="Retries after the first attempt; zero keeps extraction non-retrying",
        alias="CLASSIFIER_MAX_RETRIES"
    )

    @field_validator('EAST_PIPELINE_BASE_URL')
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate that the URL is properly formatted."""
        if not v.startswith(('http://', 'https://')):
            raise ValueError('URL must start with http:// or https://')
        return v.rstrip('/')

    @field_validator('TIMEOUT')
    @classmethod
    def validate_positive_timeout(cls, v: float) -> float:
        """Validate that timeout values are positive."""
        if v <= 0:
            raise ValueError('Timeout values must be positive')
        return v

    @field_validator('MAX_RETRIES')
    @classmethod
    def validate_non_negative_retries(cls, v: int) -> int:
        """Validate that retry count is non-negative."""
        if v < 0:
            raise ValueError('Max retries must be non-negative')
        return v


@lru_cache()
def get_classifier_settings() -> ClassifierSettings:
    """Return cached classifier settings loaded from environment."""
    return ClassifierSettings()
