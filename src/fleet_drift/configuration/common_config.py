"""
Shared configuration settings for the fleet-drift service.
"""
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field

from .base_config import BaseConfig
from .classifier_config import ClassifierSettings
from .rebase_config import RebaseSettings

# Explicitly load .env file at the module level.
load_dotenv()


class AppSettings(BaseConfig):
    """
    Holds the composed settings for the entire application.
    """

    API_PORT: int = Field(
        default=8000,
        description="The port the API will run on"
    )

    LOG_LEVEL: str = Field(
        default="INFO",
        description="Root log level"
    )

    GIT_HOST_URL: str = Field(
        default="https://github.com",
        description="Web host used to build display links to repository files"
    )

    WORKSPACE_ROOT: str = Field(
        default="workspace",
        description="Base directory for materialized repositories"
    )

    classifier: ClassifierSettings = Field(default_factory=ClassifierSettings)
    rebase: RebaseSettings = Field(default_factory=RebaseSettings)


@lru_cache()
def get_app_settings() -> AppSettings:
    """
    Creates a cached instance of AppSettings.
    This ensures that all settings are loaded only once and reused.
    """
    return AppSettings()
