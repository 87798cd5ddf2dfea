"""
End-to-end tests through the FastAPI routes.
"""
import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_db, get_directory, get_store
from app.core.auth import CurrentUser, get_current_user
from app.main import app


@pytest.fixture
def client(store, directory):
    acting = {"user": CurrentUser("1", email="john@example.com")}

    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_directory] = lambda: directory
    app.dependency_overrides[get_current_user] = lambda: acting["user"]

    with TestClient(app) as c:
        c.act_as = lambda user_id, role=None: acting.update(user=CurrentUser(user_id, role=role))
        yield c

    app.dependency_overrides.clear()


def _create(client, **overrides):
    body = {
        "subject": "Office chairs",
        "summary": "Ten ergonomic chairs",
        "tin_number": "TIN-1",
        "bin_nid": "BIN-1",
        "assigned_approvers": ["2", "3"],
    }
    body.update(overrides)
    return client.post("/requisitions", json=body)


class TestRequisitionRoutes:
    def test_health(self, client):
        assert client.get("/health").json() == {"ok": True, "service": "requisitions"}

    def test_db_health_uses_request_session(self, client, session_factory):
        opened = []

        def override_get_db():
            db = session_factory()
            opened.append(db)
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        assert client.get("/db-health").json() == {"ok": True, "db": "connected"}
        assert len(opened) == 1

    def test_create_and_get(self, client):
        r = _create(client, budget="1500.00")
        assert r.status_code == 201
        body = r.json()
        assert body["created_by"] == "1"
        assert body["status"] == "Pending"
        assert body["reference_number"] == "MEMO-2024-001"

        fetched = client.get(f"/requisitions/{body['id']}")
        assert fetched.status_code == 200
        assert fetched.json()["subject"] == "Office chairs"

    def test_get_unknown_is_404(self, client):
        r = client.get("/requisitions/req_missing")
        assert r.status_code == 404
        assert r.json() == {"detail": "Requisition not found"}

    def test_create_without_approvers_is_422(self, client):
        r = _create(client, assigned_approvers=[])
        assert r.status_code == 422

    def test_draft_submit_flow(self, client):
        draft = _create(client, status="Draft").json()
        assert draft["status"] == "Draft"

        r = client.post(f"/requisitions/{draft['id']}/submit")
        assert r.status_code == 200
        assert r.json()["status"] == "Pending"

        assert client.post(f"/requisitions/{draft['id']}/submit").status_code == 403

    def test_patch_by_other_user_is_403(self, client):
        created = _create(client).json()
        client.act_as("2")
        r = client.patch(f"/requisitions/{created['id']}", json={"subject": "hijack"})
        assert r.status_code == 403

    def test_mine(self, client):
        mine = _create(client).json()
        client.act_as("2")
        _create(client, assigned_approvers=["3"])
        client.act_as("1")

        r = client.get("/requisitions/mine")
        assert [x["id"] for x in r.json()] == [mine["id"]]

    def test_list_all_requires_admin(self, client):
        _create(client)
        assert client.get("/requisitions").status_code == 403

        client.act_as("9", role="admin")
        r = client.get("/requisitions", params={"status": "Pending"})
        assert r.status_code == 200
        assert len(r.json()) == 1

    def test_timeline(self, client):
        created = _create(client).json()
        r = client.get(f"/requisitions/{created['id']}/timeline")
        assert [(e["approver_id"], e["state"]) for e in r.json()] == [
            ("2", "In Progress"),
            ("3", "Waiting"),
        ]

    def test_stats(self, client):
        _create(client)
        _create(client, status="Draft")
        r = client.get("/requisitions/stats")
        assert r.json() == {
            "draft": 1,
            "pending": 1,
            "approved": 0,
            "rejected": 0,
            "awaiting_my_decision": 0,
        }


class TestApprovalRoutes:
    def test_full_approval(self, client):
        created = _create(client).json()

        client.act_as("2")
        r = client.post(f"/approvals/{created['id']}/approve", json={"comment": "ok"})
        assert r.status_code == 200
        assert r.json()["status"] == "Pending"

        client.act_as("3")
        r = client.post(f"/approvals/{created['id']}/approve", json={"comment": "fine"})
        assert r.json()["status"] == "Approved"
        assert [a["approver_id"] for a in r.json()["approval_history"]] == ["2", "3"]

    def test_error_mapping(self, client):
        created = _create(client).json()
        url = f"/approvals/{created['id']}"

        client.act_as("4")
        assert client.post(f"{url}/approve", json={"comment": "ok"}).status_code == 403

        client.act_as("2")
        assert client.post(f"{url}/approve", json={"comment": "  "}).status_code == 422
        assert client.post(f"{url}/approve", json={"comment": "ok"}).status_code == 200
        assert client.post(f"{url}/reject", json={"comment": "no"}).status_code == 409

        client.act_as("3")
        assert client.post(f"{url}/reject", json={"comment": "no"}).json()["status"] == "Rejected"
        assert client.post("/approvals/req_missing/approve", json={"comment": "ok"}).status_code == 404

    def test_my_approvals(self, client):
        created = _create(client).json()
        client.act_as("2")

        assert [x["id"] for x in client.get("/approvals").json()] == [created["id"]]
        assert len(client.get("/approvals", params={"actionable": True}).json()) == 1

        client.post(f"/approvals/{created['id']}/approve", json={"comment": "ok"})
        assert client.get("/approvals", params={"actionable": True}).json() == []
        assert len(client.get("/approvals", params={"status": "Pending"}).json()) == 1


class TestUserRoutes:
    def test_active_users(self, client):
        ids = [u["id"] for u in client.get("/users").json()]
        assert "5" not in ids
        assert set(ids) == {"1", "2", "3", "4"}

    def test_me(self, client):
        assert client.get("/users/me").json()["name"] == "John Doe"

    def test_me_falls_back_to_email(self, client, directory):
        app.dependency_overrides[get_current_user] = lambda: CurrentUser("supabase-uuid", email="JANE@example.com")
        assert client.get("/users/me").json()["id"] == "2"

    def test_unknown_user(self, client):
        assert client.get("/users/99").status_code == 404
