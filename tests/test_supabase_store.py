import uuid

import pytest

from src.aidee.config import Settings
from src.aidee.domain.models import ProjectCreate
from src.aidee.infrastructure import message_store, repository
from src.aidee.infrastructure.supabase_store import StoreError, SupabaseStore
from tests.utils import FakeResponse, FakeSession, valid_requirements


def _store(responses):
    session = FakeSession(responses)
    return SupabaseStore("https://x.supabase.co/", "svc-key", session=session), session


def test_create_inserts_owner_title_and_document():
    pid = str(uuid.uuid4())
    row = {
        "id": pid,
        "user_id": "u1",
        "title": "Smart lamp",
        "requirements": {"goal": "시제품 제작 및 사업화"},
        "created_at": "2026-01-01T00:00:00+00:00",
    }
    store, session = _store([FakeResponse(201, [row])])
    payload = ProjectCreate.model_validate({"requirements": valid_requirements()})

    proj = store.create("u1", payload)

    call = session.calls[0]
    assert call["url"] == "https://x.supabase.co/rest/v1/projects"
    assert call["headers"]["Prefer"] == "return=representation"
    assert call["headers"]["apikey"] == "svc-key"
    assert call["json"]["user_id"] == "u1"
    assert call["json"]["title"] == "Smart lamp"
    assert call["json"]["requirements"]["minBudget"] == 2000
    assert proj.id == pid and proj.owner == "u1"


def test_get_context_selects_least_data():
    store, session = _store([FakeResponse(200, [{"title": "무드등", "requirements": {"goal": "아이디어 구체화"}}])])
    ctx = store.get_context("p1")
    assert ctx.title == "무드등"
    params = session.calls[0]["params"]
    assert params["select"] == "title,requirements"
    assert params["id"] == "eq.p1"


def test_get_missing_project_is_none():
    store, _ = _store([FakeResponse(200, [])])
    assert store.get("p1") is None


def test_list_messages_orders_ascending_and_maps_rows():
    rows = [
        {"id": 1, "project_id": "p1", "role": "user", "content": "hi", "created_at": "2026-01-01T00:00:00Z"},
        {"id": 2, "project_id": "p1", "role": "assistant", "content": None, "created_at": "2026-01-01T00:00:01Z"},
    ]
    store, session = _store([FakeResponse(200, rows)])
    msgs = store.list_messages("p1")
    assert session.calls[0]["params"]["order"] == "created_at.asc"
    assert [(m.id, m.role, m.content) for m in msgs] == [("1", "user", "hi"), ("2", "assistant", "")]


def test_list_for_owner_orders_newest_first():
    store, session = _store([FakeResponse(200, [])])
    assert store.list_for_owner("u1") == []
    params = session.calls[0]["params"]
    assert params["user_id"] == "eq.u1"
    assert params["order"] == "created_at.desc"


def test_add_message_single_insert():
    row = {"id": "m1", "project_id": "p1", "role": "assistant", "content": "ok", "created_at": "t"}
    store, session = _store([FakeResponse(201, [row])])
    msg = store.add_message("p1", "assistant", "ok")
    assert msg.id == "m1"
    assert len(session.calls) == 1
    assert session.calls[0]["json"] == {"project_id": "p1", "role": "assistant", "content": "ok"}


def test_http_errors_become_store_errors():
    store, _ = _store([FakeResponse(500, {"message": "boom"})])
    with pytest.raises(StoreError):
        store.list_messages("p1")

    store, _ = _store([FakeResponse(201, [])])
    with pytest.raises(StoreError):
        store.add_message("p1", "user", "x")


def test_from_settings_requires_url_and_key():
    with pytest.raises(StoreError):
        SupabaseStore.from_settings(Settings(store_url=None, store_service_key="k"))
    store = SupabaseStore.from_settings(Settings(store_url="https://x.supabase.co", store_anon_key="anon", store_service_key="svc"))
    assert store._api_key == "svc"


def test_factories_select_hosted_store(monkeypatch):
    monkeypatch.setenv("AIDEE_STORE_IMPL", "supabase")
    monkeypatch.setenv("SUPABASE_URL", "https://x.supabase.co")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "svc")
    assert isinstance(repository.get_repo(), SupabaseStore)
    assert isinstance(message_store.get_message_store(), SupabaseStore)
