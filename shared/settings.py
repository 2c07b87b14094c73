"""
Runtime configuration read from the environment.

main.py loads a local .env (python-dotenv) before load_settings() is called.
"""

from __future__ import annotations

import os

from pydantic import BaseModel, Field


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class AgentSettings(BaseModel):
    model_config = {"frozen": True}

    log_level: str = "INFO"
    session_timeout_seconds: float = Field(default=1800.0, gt=0)
    batch_size: int = Field(default=10, ge=1)
    batch_delay_seconds: float = Field(default=1.0, ge=0)
    error_log_limit: int = Field(default=10, ge=1)
    execution_history_limit: int = Field(default=100, ge=1)
    auto_execute_threshold: float = Field(default=0.8, ge=0, le=1)
    disambiguate_threshold: float = Field(default=0.5, ge=0, le=1)
    store_messages: bool = True
    command_backend_url: str = ""
    command_backend_token: str = ""
    command_backend_timeout_seconds: float = 30.0
    api_host: str = "0.0.0.0"
    api_port: int = 8080


def load_settings() -> AgentSettings:
    """Build settings from environment variables."""
    return AgentSettings(
        log_level=os.getenv("AGENT_LOG_LEVEL", "INFO").strip().upper() or "INFO",
        session_timeout_seconds=float(os.getenv("SESSION_TIMEOUT_SECONDS", "1800")),
        batch_size=int(os.getenv("BATCH_SIZE", "10")),
        batch_delay_seconds=float(os.getenv("BATCH_DELAY_SECONDS", "1.0")),
        error_log_limit=int(os.getenv("ERROR_LOG_LIMIT", "10")),
        execution_history_limit=int(os.getenv("EXECUTION_HISTORY_LIMIT", "100")),
        auto_execute_threshold=float(os.getenv("ROUTER_AUTO_EXECUTE_THRESHOLD", "0.8")),
        disambiguate_threshold=float(os.getenv("ROUTER_DISAMBIGUATE_THRESHOLD", "0.5")),
        store_messages=_env_flag("STORE_CHAT_MESSAGES", "true"),
        command_backend_url=os.getenv("COMMAND_BACKEND_URL", "").strip(),
        command_backend_token=os.getenv("COMMAND_BACKEND_TOKEN", "").strip(),
        command_backend_timeout_seconds=float(os.getenv("COMMAND_BACKEND_TIMEOUT_SECONDS", "30")),
        api_host=os.getenv("API_HOST", "0.0.0.0").strip() or "0.0.0.0",
        api_port=int(os.getenv("API_PORT", "8080")),
    )
