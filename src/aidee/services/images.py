from __future__ import annotations

from typing import Optional
import logging

import requests

from ..config import Settings
from ..infrastructure.http import build_session


LOG = logging.getLogger("aidee.llm")


class ImageGenerationError(RuntimeError):
    pass


def generate_image(prompt: str, settings: Optional[Settings] = None, session: Optional[requests.Session] = None) -> str:
    """Generate one PNG for ``prompt`` and return it as a data URL."""
    settings = settings or Settings.from_env()
    if not settings.inference_configured:
        raise ImageGenerationError("API Key Missing")
    session = session or build_session(retries=0)
    url = settings.inference_base_url.rstrip("/") + "/images/generations"
    LOG.info("image_generate model=%s", settings.image_model)
    try:
        resp = session.post(
            url,
            json={
                "model": settings.image_model,
                "prompt": prompt,
                "n": 1,
                "response_format": "b64_json",
            },
            headers={"Authorization": f"Bearer {settings.inference_api_key}"},
            timeout=(3, 60),
        )
        resp.raise_for_status()
        data = resp.json()
    except (requests.RequestException, ValueError) as exc:
        raise ImageGenerationError(str(exc)) from exc
    items = data.get("data") or []
    b64 = items[0].get("b64_json") if items and isinstance(items[0], dict) else None
    if not b64:
        raise ImageGenerationError("no image returned")
    return f"data:image/png;base64,{b64}"
