from __future__ import annotations

import warnings
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    domain: str = "localhost"
    cors_origins: list[str] = []
    jwt_secret: str = ""  # Admin token signing secret, NEVER share with clients
    encryption_key: str = ""  # Raw key material for the reveal field cipher
    allow_insecure_jwt: bool = False

    @model_validator(mode="after")
    def _check_secrets(self) -> Settings:
        self.jwt_secret = self.jwt_secret.strip()
        missing = [
            name
            for name, value in (
                ("JWT_SECRET", self.jwt_secret),
                ("ENCRYPTION_KEY", self.encryption_key),
            )
            if not value
        ]
        if missing:
            names = ", ".join(missing)
            if self.allow_insecure_jwt:
                warnings.warn(
                    f"{names} empty but ALLOW_INSECURE_JWT is set — "
                    "this is INSECURE and should only be used for development.",
                    stacklevel=2,
                )
            else:
                raise ValueError(
                    f"{names} is not set. An empty JWT secret allows attackers to "
                    "forge admin tokens and an empty encryption key leaves the "
                    "reveal readable to anyone with the database. Set them in .env "
                    "or set ALLOW_INSECURE_JWT=1 for development."
                )
        return self

    jwt_access_token_expire_minutes: int = 720
    # Optional admin account created at startup when no admin exists yet
    admin_email: str = ""
    admin_password: str = ""

    data_dir: Path = Path("/app/data")
    db_url: str = "sqlite:////app/data/callreveal.db"

    ollama_url: str = "http://ollama:11434"
    chat_model: str = "llama3.1:8b"  # Small model for the hint game
    extraction_model: str = "llama3.1:70b"  # Larger model for extraction + geocoding
    # Optional cloud LLM fallback (OpenAI-compatible endpoint)
    fallback_llm_url: str = ""        # e.g. "https://api.openai.com/v1"
    fallback_llm_api_key: str = ""    # API key for the fallback endpoint
    fallback_chat_model: str = ""     # if empty, uses chat_model value
    fallback_extraction_model: str = ""  # if empty, uses extraction_model value
    llm_timeout_seconds: float = 120.0

    # Hint game
    hint_session_ttl_seconds: int = 86400
    max_hints: int = 3

    # Reveal
    opening_utc_offset_minutes: int = -360  # Villahermosa, UTC-6, no DST
    destination_cache_ttl_seconds: int = 86400
    missions_list_path: Path | None = None  # One mission name per line

    # Guest advice box
    advice_moderation: bool = True  # Ask the extraction model before storing advice


@lru_cache
def get_settings() -> Settings:
    return Settings()
