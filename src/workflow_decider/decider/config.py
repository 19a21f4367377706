"""Configuration for the decider worker.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)

The decision engine itself needs no configuration; these settings only
describe how the worker reaches the orchestration service.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DeciderSettings(BaseSettings):
    """Settings for the decider worker.

    Environment variables:
    - DECIDER_SERVICE_URL
    - DECIDER_SERVICE_TOKEN            (optional)
    - DECIDER_DOMAIN
    - DECIDER_TASK_LIST
    - DECIDER_IDENTITY                 (optional)
    - DECIDER_PAGE_FETCH_ATTEMPTS      (optional)
    - DECIDER_REQUEST_TIMEOUT_SECONDS  (optional)
    - LOG_LEVEL                        (optional)

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `DeciderSettings(_env_file=path_to_env)`.
    """

    service_url: str = Field(
        default="http://localhost:8080",
        validation_alias="DECIDER_SERVICE_URL",
        description="Base URL of the orchestration service endpoint",
    )
    service_token: str = Field(
        default="",
        validation_alias="DECIDER_SERVICE_TOKEN",
        description="Bearer token sent with every service request (empty disables auth)",
    )
    domain: str = Field(
        default="demo-domain",
        validation_alias="DECIDER_DOMAIN",
        description="Workflow domain the worker polls",
    )
    task_list: str = Field(
        default="DeciderTaskList-Default",
        validation_alias="DECIDER_TASK_LIST",
        description="Decision task list the worker polls",
    )
    identity: str = Field(
        default="",
        validation_alias="DECIDER_IDENTITY",
        description="Worker identity reported when polling (defaults to a random id)",
    )

    page_fetch_attempts: int = Field(
        default=10,
        ge=1,
        validation_alias="DECIDER_PAGE_FETCH_ATTEMPTS",
        description="Attempts per history page before deciding on what was loaded",
    )
    request_timeout_seconds: float = Field(
        default=70.0,
        gt=0,
        validation_alias="DECIDER_REQUEST_TIMEOUT_SECONDS",
        description="HTTP timeout; must exceed the service's 60 second long poll",
    )

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )
