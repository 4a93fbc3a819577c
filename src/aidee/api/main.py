from __future__ import annotations

from datetime import UTC, datetime
from typing import Optional
import os

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest

from ..config import Settings
from ..observability.metrics import metrics_middleware_factory
from ..security.session import SessionContext, optional_session
from .routers.auth import login_router, router as auth_router
from .routers.chat import router as chat_router
from .routers.projects import router as projects_router

load_dotenv()  # GOOGLE_GENERATIVE_AI_API_KEY, SUPABASE_* etc. from .env if present

app = FastAPI(title="Aidee API", version="0.1.0")

# Observability: request latency histogram
app.middleware("http")(metrics_middleware_factory())

app.include_router(chat_router)
app.include_router(auth_router)
app.include_router(login_router)
app.include_router(projects_router)

_origins = [o.strip() for o in os.getenv("AIDEE_CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
def root(session: Optional[SessionContext] = Depends(optional_session)):
    if session is None:
        return RedirectResponse("/login", status_code=303)
    return {"name": "Aidee API", "version": "0.1.0", "user": session.user.model_dump()}


@app.get("/health")
def health():
    settings = Settings.from_env()
    return {
        "status": "ok",
        "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
        "components": {
            "api": "ok",
            "store": settings.store_impl,
            "auth": settings.auth_impl,
            "inference": "configured" if settings.inference_configured else "missing",
        },
    }


@app.get("/metrics")
def metrics() -> Response:
    data = generate_latest(REGISTRY)
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
