"""Application configuration for the SmartMatch engine.

Loads settings from .env file with SMARTMATCH_ prefix.
The AI backend is optional: without an API key every AI-backed component
runs on its deterministic fallback path.
"""

from typing import Optional

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """SmartMatch engine settings.

    All settings are loaded from environment variables with SMARTMATCH_ prefix,
    or from a .env file in the working directory.
    """

    database_url: str = "sqlite:///./smartmatch.db"
    debug: bool = False

    # Generative AI backend (OpenAI-compatible chat completions API)
    ai_api_key: Optional[SecretStr] = None
    ai_base_url: str = "https://api.openai.com/v1"
    ai_model: str = "gpt-4o-mini"
    ai_embedding_model: str = "text-embedding-3-small"
    ai_timeout_seconds: float = 20.0
    use_remote_embeddings: bool = False

    # Engine constants
    embedding_dim: int = 768
    classifier_max_chars: int = 8000
    similar_entries_limit: int = 5
    training_min_entries: int = 10
    training_min_new_entries: int = 5
    optimistic_retry_limit: int = 3

    model_config = {
        "env_file": ".env",
        "env_prefix": "SMARTMATCH_",
    }

    @model_validator(mode="after")
    def validate_engine_bounds(self) -> "Settings":
        """Reject non-positive timeouts, dimensions and limits."""
        if self.ai_timeout_seconds <= 0:
            raise ValueError("ai_timeout_seconds must be greater than zero")
        if self.embedding_dim <= 0:
            raise ValueError("embedding_dim must be greater than zero")
        if self.similar_entries_limit <= 0:
            raise ValueError("similar_entries_limit must be greater than zero")
        if self.use_remote_embeddings and self.ai_api_key is None:
            raise ValueError(
                "use_remote_embeddings requires SMARTMATCH_AI_API_KEY to be set"
            )
        return self

    @property
    def ai_enabled(self) -> bool:
        return self.ai_api_key is not None


def get_settings() -> Settings:
    """Create and return a Settings instance.

    Raises a clear error message if the environment holds invalid values.
    """
    try:
        return Settings()
    except Exception as e:
        raise RuntimeError(
            f"Failed to load SmartMatch settings: {e}\n"
            "Check the SMARTMATCH_* environment variables or the .env file."
        ) from e
