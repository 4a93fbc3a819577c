from __future__ import annotations

"""Runtime settings resolved from environment variables.

Settings are read at call time rather than import time so that a `.env` file
loaded by the API entrypoint, or variables patched in tests, are honoured.

Env vars:
- SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY / SUPABASE_ANON_KEY (hosted store + auth)
- GOOGLE_GENERATIVE_AI_API_KEY (inference credential; required by the chat relay)
- AIDEE_MODEL (default gemini-2.5-flash), AIDEE_IMAGE_MODEL
- AIDEE_INFERENCE_BASE_URL (OpenAI-compatible Gemini endpoint)
- AIDEE_MAX_DURATION_S (wall-clock ceiling for one relay round trip, default 30)
- AIDEE_STORE_IMPL (memory|supabase), AIDEE_AUTH_IMPL (local|supabase)
- AIDEE_COOKIE_SECURE (1 to mark session cookies Secure)
"""

from dataclasses import dataclass
from typing import Optional
import os


DEFAULT_INFERENCE_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"
DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_IMAGE_MODEL = "imagen-3.0-generate-002"
DEFAULT_MAX_DURATION_S = 30.0


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass(frozen=True)
class Settings:
    store_url: Optional[str] = None
    store_service_key: Optional[str] = None
    store_anon_key: Optional[str] = None
    inference_api_key: Optional[str] = None
    inference_base_url: str = DEFAULT_INFERENCE_BASE_URL
    model: str = DEFAULT_MODEL
    image_model: str = DEFAULT_IMAGE_MODEL
    max_duration_s: float = DEFAULT_MAX_DURATION_S
    store_impl: str = "memory"
    auth_impl: str = "local"
    cookie_secure: bool = False

    @staticmethod
    def from_env() -> "Settings":
        return Settings(
            store_url=_clean(os.getenv("SUPABASE_URL") or os.getenv("NEXT_PUBLIC_SUPABASE_URL")),
            store_service_key=_clean(os.getenv("SUPABASE_SERVICE_ROLE_KEY")),
            store_anon_key=_clean(os.getenv("SUPABASE_ANON_KEY") or os.getenv("NEXT_PUBLIC_SUPABASE_ANON_KEY")),
            inference_api_key=_clean(os.getenv("GOOGLE_GENERATIVE_AI_API_KEY")),
            inference_base_url=_clean(os.getenv("AIDEE_INFERENCE_BASE_URL")) or DEFAULT_INFERENCE_BASE_URL,
            model=_clean(os.getenv("AIDEE_MODEL")) or DEFAULT_MODEL,
            image_model=_clean(os.getenv("AIDEE_IMAGE_MODEL")) or DEFAULT_IMAGE_MODEL,
            max_duration_s=_env_float("AIDEE_MAX_DURATION_S", DEFAULT_MAX_DURATION_S),
            store_impl=(os.getenv("AIDEE_STORE_IMPL") or "memory").strip().lower(),
            auth_impl=(os.getenv("AIDEE_AUTH_IMPL") or "local").strip().lower(),
            cookie_secure=_env_flag("AIDEE_COOKIE_SECURE"),
        )

    @property
    def inference_configured(self) -> bool:
        return bool(self.inference_api_key)

    @property
    def store_configured(self) -> bool:
        return bool(self.store_url and (self.store_service_key or self.store_anon_key))
