import uuid

from fastapi.testclient import TestClient

from src.aidee.api.main import app
from tests.utils import demo_headers, maker_headers, valid_requirements


client = TestClient(app)


def _create(headers, **overrides):
    r = client.post("/projects", json={"requirements": valid_requirements(**overrides)}, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


def test_projects_require_a_session():
    assert client.get("/projects").status_code == 401
    assert client.post("/projects", json={"requirements": valid_requirements()}).status_code == 401


def test_create_project_derives_title_and_owner():
    headers = demo_headers(client)
    me = client.get("/auth/me", headers=headers).json()
    proj = _create(headers, idea="무드등무드등무드등무드등무드등무드등")
    assert proj["title"] == "무드등무드등무드등무드등무드등..."
    assert proj["owner"] == me["id"]
    assert proj["requirements"]["goal"] == "시제품 제작 및 사업화"
    assert proj["requirements"]["minBudget"] == 2000


def test_invalid_requirements_rejected_with_422():
    headers = demo_headers(client)
    r = client.post("/projects", json={"requirements": valid_requirements(maxBudget=2100)}, headers=headers)
    assert r.status_code == 422


def test_listing_is_owner_scoped_and_newest_first():
    demo = demo_headers(client)
    maker = maker_headers(client)
    first = _create(demo, idea="first")
    second = _create(demo, idea="second")
    _create(maker, idea="maker's")

    ids = [p["id"] for p in client.get("/projects", headers=demo).json()]
    assert ids == [second["id"], first["id"]]
    assert client.get(f"/projects/{first['id']}", headers=maker).status_code == 404


def test_get_unknown_or_malformed_project_is_404():
    headers = demo_headers(client)
    assert client.get(f"/projects/{uuid.uuid4()}", headers=headers).status_code == 404
    assert client.get("/projects/not-a-uuid", headers=headers).status_code == 404


def test_messages_round_trip_in_order():
    headers = demo_headers(client)
    proj = _create(headers)
    pid = proj["id"]
    assert client.get(f"/projects/{pid}/messages", headers=headers).json() == []

    r1 = client.post(f"/projects/{pid}/messages", json={"role": "user", "content": "안녕"}, headers=headers)
    r2 = client.post(f"/projects/{pid}/messages", json={"role": "assistant", "content": "안녕하세요"}, headers=headers)
    assert r1.status_code == 201 and r2.status_code == 201

    msgs = client.get(f"/projects/{pid}/messages", headers=headers).json()
    assert [(m["role"], m["content"]) for m in msgs] == [("user", "안녕"), ("assistant", "안녕하세요")]


def test_malformed_project_id_yields_empty_transcript():
    headers = demo_headers(client)
    r = client.get("/projects/abc/messages", headers=headers)
    assert r.status_code == 200
    assert r.json() == []


def test_messages_of_foreign_project_are_hidden():
    proj = _create(demo_headers(client))
    maker = maker_headers(client)
    assert client.get(f"/projects/{proj['id']}/messages", headers=maker).status_code == 404
    r = client.post(f"/projects/{proj['id']}/messages", json={"role": "user", "content": "x"}, headers=maker)
    assert r.status_code == 404


def test_message_role_is_validated():
    headers = demo_headers(client)
    proj = _create(headers)
    r = client.post(f"/projects/{proj['id']}/messages", json={"role": "system", "content": "x"}, headers=headers)
    assert r.status_code == 422


def test_store_outage_on_listing_is_502(monkeypatch):
    from src.aidee.infrastructure import repository
    from src.aidee.infrastructure.supabase_store import StoreError

    class DownRepo:
        def list_for_owner(self, owner):
            raise StoreError("select from projects failed: connection refused")

    headers = demo_headers(client)
    monkeypatch.setattr(repository, "_repo", DownRepo())
    r = client.get("/projects", headers=headers)
    assert r.status_code == 502
    assert "connection refused" in r.json()["detail"]
