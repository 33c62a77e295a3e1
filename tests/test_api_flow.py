from __future__ import annotations

from dataclasses import replace

from fastapi.testclient import TestClient

from app import create_app
from backend.utils.config import get_settings


def _build_test_settings(tmp_path, filename: str, admin_token: str | None):
    get_settings.cache_clear()
    base = get_settings()
    return replace(
        base,
        database_path=tmp_path / filename,
        default_max_capacity=20,
        admin_token=admin_token,
    )


def _login(client: TestClient, admin_token: str) -> dict[str, str]:
    response = client.post("/login", json={"admin_token": admin_token})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def test_queue_end_to_end_flow(tmp_path):
    admin_token = "secret-admin-token"
    app = create_app(_build_test_settings(tmp_path, "api_flow.db", admin_token))

    with TestClient(app) as client:
        courses = client.get("/courses").json()["courses"]
        assert [course["course_id"] for course in courses] == ["c30", "c60"]

        unauth_capacity = client.put("/settings/capacity", json={"max_capacity": 4})
        assert unauth_capacity.status_code == 401

        headers = _login(client, admin_token)
        capacity_response = client.put(
            "/settings/capacity",
            json={"max_capacity": 4},
            headers=headers,
        )
        assert capacity_response.status_code == 200
        assert capacity_response.json()["max_capacity"] == 4
        assert client.get("/settings").json()["turnover_buffer_minutes"] == 7

        first = client.post("/queue", json={"size": 4, "note": "birthday"})
        assert first.status_code == 201
        second = client.post("/queue", json={"size": 2})
        assert second.status_code == 201

        queue = client.get("/queue").json()["parties"]
        assert [party["party_id"] for party in queue] == [
            first.json()["party_id"],
            second.json()["party_id"],
        ]
        assert [party["estimated_wait_minutes"] for party in queue] == [0, 52]

        preview = client.get("/queue/preview", params={"size": 1})
        assert preview.status_code == 200
        assert preview.json() == {"size": 1, "estimated_wait_minutes": 52}

        admitted = client.post(
            f"/queue/{first.json()['party_id']}/admit",
            json={"course_id": "c30"},
        )
        assert admitted.status_code == 201
        occupant_id = admitted.json()["occupant_id"]

        inside = client.get("/inside").json()
        assert inside["headcount"] == 4
        assert inside["occupants"][0]["remaining_minutes"] == 37

        queue = client.get("/queue").json()["parties"]
        assert len(queue) == 1
        assert queue[0]["estimated_wait_minutes"] == 37

        checkout = client.post(f"/inside/{occupant_id}/checkout")
        assert checkout.status_code == 200
        history_id = checkout.json()["history_id"]

        history = client.get("/history").json()["entries"]
        assert [entry["history_id"] for entry in history] == [history_id]
        summary = client.get("/history/summary").json()
        assert summary["total_parties"] == 1
        assert summary["total_headcount"] == 4

        assert client.delete(f"/history/{history_id}").status_code == 401
        deleted = client.delete(f"/history/{history_id}", headers=headers)
        assert deleted.status_code == 200
        assert deleted.json() == {"status": "DELETED", "id": history_id}


def test_queue_errors_map_to_http_status(tmp_path):
    app = create_app(_build_test_settings(tmp_path, "api_errors.db", None))

    with TestClient(app) as client:
        assert client.post("/queue", json={"size": 0}).status_code == 422
        assert client.delete("/queue/q_missing").status_code == 404
        assert client.post("/inside/in_missing/checkout").status_code == 404

        party_id = client.post("/queue", json={"size": 2}).json()["party_id"]
        unknown_course = client.post(f"/queue/{party_id}/admit", json={"course_id": "c999"})
        assert unknown_course.status_code == 404

        cancelled = client.delete(f"/queue/{party_id}")
        assert cancelled.status_code == 200
        assert client.get("/queue").json()["parties"] == []


def test_estimate_endpoint_runs_on_supplied_snapshot(tmp_path):
    app = create_app(_build_test_settings(tmp_path, "api_estimate.db", None))

    with TestClient(app) as client:
        response = client.post(
            "/estimate",
            json={
                "queue": [
                    {"id": "first", "size": 5, "join_at": "2026-03-01T11:55:00Z"},
                    {"id": "second", "size": 5, "join_at": "2026-03-01T11:58:00Z"},
                ],
                "occupants": [],
                "capacity": 5,
                "courses": [{"id": "c30", "minutes": 30}, {"id": "c60", "minutes": 60}],
                "now": "2026-03-01T12:00:00Z",
            },
        )
        assert response.status_code == 200
        payload = response.json()
        assert payload["wait_minutes"] == {"first": 0, "second": 52}
        assert [item["approximate"] for item in payload["admissions"]] == [False, False]

        empty = client.post("/estimate", json={"capacity": 3})
        assert empty.status_code == 200
        assert empty.json()["wait_minutes"] == {}

        assert client.post("/estimate", json={"capacity": 0}).status_code == 422
        duplicate = client.post(
            "/estimate",
            json={
                "capacity": 3,
                "queue": [
                    {"id": "p1", "size": 1, "join_at": "2026-03-01T12:00:00Z"},
                    {"id": "p1", "size": 1, "join_at": "2026-03-01T12:00:00Z"},
                ],
            },
        )
        assert duplicate.status_code == 422


def test_login_rejects_invalid_admin_token(tmp_path):
    app = create_app(_build_test_settings(tmp_path, "api_login.db", "real-admin-token"))
    with TestClient(app) as client:
        response = client.post("/login", json={"admin_token": "wrong-token"})
        assert response.status_code == 401


def test_logout_revokes_session_token(tmp_path):
    admin_token = "logout-admin-token"
    app = create_app(_build_test_settings(tmp_path, "api_logout.db", admin_token))
    with TestClient(app) as client:
        headers = _login(client, admin_token)
        assert client.put("/settings/capacity", json={"max_capacity": 10}, headers=headers).status_code == 200

        response = client.post("/logout", headers=headers)
        assert response.status_code == 200
        assert response.json() == {"status": "logged_out"}

        revoked = client.put("/settings/capacity", json={"max_capacity": 12}, headers=headers)
        assert revoked.status_code == 401
        assert client.get("/settings").json()["max_capacity"] == 10

        assert client.post("/logout").status_code == 401


def test_occupant_and_history_deletes_require_admin(tmp_path):
    admin_token = "delete-admin-token"
    app = create_app(_build_test_settings(tmp_path, "api_deletes.db", admin_token))
    with TestClient(app) as client:
        headers = _login(client, admin_token)
        party_id = client.post("/queue", json={"size": 2}).json()["party_id"]
        occupant_id = client.post(f"/queue/{party_id}/admit", json={"course_id": "c30"}).json()["occupant_id"]

        assert client.delete(f"/inside/{occupant_id}").status_code == 401
        deleted = client.delete(f"/inside/{occupant_id}", headers=headers)
        assert deleted.status_code == 200
        assert client.get("/inside").json()["occupants"] == []
        assert client.get("/history").json()["entries"] == []
        assert client.delete(f"/inside/{occupant_id}", headers=headers).status_code == 404
        assert client.delete("/history/h_missing", headers=headers).status_code == 404
