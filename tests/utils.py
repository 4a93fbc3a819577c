from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

import requests
from fastapi.testclient import TestClient


DEMO_EMAIL = "demo@aidee.app"
DEMO_PASSWORD = "aidee-demo"
MAKER_EMAIL = "maker@aidee.app"
MAKER_PASSWORD = "maker-pass"


def password_login(client: TestClient, email: str = DEMO_EMAIL, password: str = DEMO_PASSWORD) -> Tuple[Dict[str, str], Dict[str, Any]]:
    """Sign in with a dev account, returning bearer headers and the response payload."""
    res = client.post("/auth/login", json={"email": email, "password": password})
    assert res.status_code == 200, res.text
    data = res.json()
    return {"Authorization": f"Bearer {data['access_token']}"}, data


def demo_headers(client: TestClient) -> Dict[str, str]:
    headers, _ = password_login(client)
    return headers


def maker_headers(client: TestClient) -> Dict[str, str]:
    headers, _ = password_login(client, MAKER_EMAIL, MAKER_PASSWORD)
    return headers


def valid_requirements(**overrides: Any) -> Dict[str, Any]:
    doc: Dict[str, Any] = {
        "goal": "시제품 제작 및 사업화",
        "categories": ["조명"],
        "minBudget": 2000,
        "maxBudget": 7500,
        "size": "소형 (10~50cm)",
        "features": ["빛·색 변화"],
        "duration": "3개월",
        "usage": "크라우드 펀딩",
        "idea": "Smart lamp",
    }
    doc.update(overrides)
    return doc


class StubChunk:
    def __init__(self, content: Any) -> None:
        self.content = content


def stub_llm_class(chunks: List[Any], *, fail_after: Optional[int] = None, captured: Optional[Dict[str, Any]] = None):
    """Build a ChatOpenAI stand-in whose ``astream`` yields ``chunks``.

    ``fail_after`` raises after that many chunks have been yielded.
    """

    class StubLLM:
        def __init__(self, *args: Any, **kwargs: Any) -> None:
            if captured is not None:
                captured["kwargs"] = kwargs

        async def astream(self, msgs):
            if captured is not None:
                captured["msgs"] = msgs
            for i, c in enumerate(chunks):
                if fail_after is not None and i >= fail_after:
                    raise ConnectionError("upstream reset")
                yield StubChunk(c)
            if fail_after is not None and fail_after >= len(chunks):
                raise ConnectionError("upstream reset")

    return StubLLM


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, text: str = "") -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("no JSON body")
        return self._payload

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeSession:
    """requests.Session stand-in that replays canned responses and records calls."""

    def __init__(self, responses: List[FakeResponse]) -> None:
        self.responses = list(responses)
        self.calls: List[Dict[str, Any]] = []

    def _next(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        return self.responses.pop(0)

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._next("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._next("POST", url, **kwargs)
