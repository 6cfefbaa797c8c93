"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "socratic-dialogue"
    log_level: str = "INFO"

    # Dialogue bounds
    max_loops: int = 5
    min_loops_for_closure: int = 1

    # Prompt execution
    decision_parse_retries: int = 1
    llm_timeout_seconds: float = 60.0

    # Gemini LLM
    gemini_model: str = "gemini-2.0-flash"
    gemini_temperature: float = 0.4
    gemini_max_output_tokens: int = 1024

    model_config = {"env_prefix": "SOCRATIC_"}


settings = Settings()
