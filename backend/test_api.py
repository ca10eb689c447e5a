"""
backend/test_api.py

HTTP-level tests: authentication, error-status mapping and the
"Website Redesign" walkthrough from registration to cascade delete.

Run: pytest backend/test_api.py -v
"""

import jwt
import pytest

from backend.auth_context import create_access_token
from backend.config import ALGORITHM, SECRET_KEY


def _register(client, name, email, password="password123"):
    response = client.post("/api/auth/register", json={"name": name, "email": email, "password": password})
    assert response.status_code == 201, response.text
    body = response.json()
    return body["user"], {"Authorization": f"Bearer {body['access_token']}"}


class TestAuth:

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_register_then_login(self, client):
        user, _ = _register(client, "Alice", "Alice@Example.com")
        assert user["email"] == "alice@example.com"
        assert user["role"] == "member"

        response = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "password123"})
        assert response.status_code == 200
        assert response.json()["token_type"] == "bearer"

    def test_duplicate_email_is_400(self, client):
        _register(client, "Alice", "alice@example.com")
        response = client.post(
            "/api/auth/register",
            json={"name": "Other", "email": "alice@example.com", "password": "password123"},
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Email already registered"

    def test_bad_password_is_401(self, client):
        _register(client, "Alice", "alice@example.com")
        response = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "wrong"})
        assert response.status_code == 401

    def test_missing_token_is_401(self, client):
        response = client.get("/api/projects")
        assert response.status_code == 401
        assert response.json()["detail"] == "Not authorized, no token"

    def test_garbage_token_is_401(self, client):
        response = client.get("/api/projects", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_expired_token_is_401(self, client, make_user):
        token = create_access_token(make_user("alice"), minutes=-1)
        response = client.get("/api/projects", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Token expired"

    def test_profile_update_keeps_role(self, client, make_user, headers_for):
        headers = headers_for(make_user("alice"))
        response = client.put("/api/users/profile", json={"name": "Alice B", "email": ""}, headers=headers)
        assert response.status_code == 200
        body = response.json()
        assert body["name"] == "Alice B"
        assert body["email"] == "alice@example.com"
        assert body["role"] == "member"

    def test_zero_minute_token_expires_immediately(self, make_user):
        token = create_access_token(make_user("alice"), minutes=0)
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM], options={"verify_exp": False})
        assert payload["exp"] == payload["iat"]

    @pytest.mark.parametrize(
        "body",
        [
            {"email": "not-an-email"},
            {"password": "x"},
            {"email": "@example.com", "name": "Alice"},
        ],
    )
    def test_profile_update_validates_like_registration(self, client, make_user, headers_for, body):
        headers = headers_for(make_user("alice"))
        response = client.put("/api/users/profile", json=body, headers=headers)
        assert response.status_code == 422

    def test_profile_update_rejected_password_does_not_change_login(self, client):
        _, headers = _register(client, "Alice", "alice@example.com")
        client.put("/api/users/profile", json={"password": "x"}, headers=headers)

        response = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "x"})
        assert response.status_code == 401

    def test_profile_update_blank_name_is_skipped_and_email_trimmed(self, client, make_user, headers_for):
        headers = headers_for(make_user("alice"))
        response = client.put(
            "/api/users/profile", json={"name": "   ", "email": "  Alice.B@Example.com "}, headers=headers
        )
        assert response.status_code == 200
        body = response.json()
        assert body["name"] == "alice"
        assert body["email"] == "alice.b@example.com"


class TestErrorMapping:

    def test_not_found_is_404(self, client, make_user, headers_for):
        response = client.get("/api/projects/missing", headers=headers_for(make_user("alice")))
        assert response.status_code == 404
        assert response.json()["detail"] == "Project not found"

    def test_forbidden_is_403(self, client, make_user, headers_for):
        owner = headers_for(make_user("alice"))
        outsider = headers_for(make_user("carol"))
        project = client.post("/api/projects", json={"title": "P", "description": "D"}, headers=owner).json()

        response = client.get(f"/api/projects/{project['id']}", headers=outsider)
        assert response.status_code == 403

    def test_invalid_operation_is_400(self, client, make_user, headers_for):
        alice = make_user("alice")
        owner = headers_for(alice)
        project = client.post("/api/projects", json={"title": "P", "description": "D"}, headers=owner).json()

        response = client.post(f"/api/team/{project['id']}/remove", json={"user_id": alice.id}, headers=owner)
        assert response.status_code == 400
        assert response.json()["detail"] == "Cannot remove project owner"

    def test_request_validation_is_422(self, client, make_user, headers_for):
        response = client.post("/api/projects", json={"title": ""}, headers=headers_for(make_user("alice")))
        assert response.status_code == 422


class TestWebsiteRedesign:
    """A owns "Website Redesign", adds B, B creates and assigns a task, C is locked out."""

    @pytest.fixture
    def scene(self, client):
        alice, a = _register(client, "Alice", "alice@example.com")
        bob, b = _register(client, "Bob", "bob@example.com")
        carol, c = _register(client, "Carol", "carol@example.com")

        response = client.post(
            "/api/projects",
            json={"title": "Website Redesign", "description": "New marketing site"},
            headers=a,
        )
        assert response.status_code == 201
        project = response.json()
        return {"alice": alice, "bob": bob, "carol": carol, "a": a, "b": b, "c": c, "project": project}

    def test_walkthrough(self, client, scene):
        pid = scene["project"]["id"]
        a, b, c = scene["a"], scene["b"], scene["c"]

        assert scene["project"]["owner"] == scene["alice"]["id"]
        assert scene["project"]["team_members"] == [scene["alice"]["id"]]
        assert scene["project"]["status"] == "planning"

        response = client.post(f"/api/team/{pid}/add", json={"user_id": scene["bob"]["id"]}, headers=a)
        assert response.status_code == 200
        assert response.json()["team_members"] == [scene["alice"]["id"], scene["bob"]["id"]]

        response = client.post(
            "/api/tasks",
            json={"title": "Design UI", "description": "Mockups", "project_id": pid, "priority": "high"},
            headers=b,
        )
        assert response.status_code == 201
        task = response.json()
        assert task["status"] == "todo"
        assert task["priority"] == "high"

        response = client.patch(f"/api/tasks/{task['id']}/assign", json={"user_id": scene["bob"]["id"]}, headers=b)
        assert response.status_code == 200
        assert response.json()["assigned_to"] == scene["bob"]["id"]

        my_tasks = client.get("/api/tasks/my-tasks", headers=b).json()
        assert [t["id"] for t in my_tasks] == [task["id"]]

        assert client.get(f"/api/projects/{pid}", headers=c).status_code == 403
        assert client.put(f"/api/projects/{pid}", json={"title": "Hijack"}, headers=b).status_code == 403
        assert client.delete(f"/api/projects/{pid}", headers=b).status_code == 403

        response = client.delete(f"/api/projects/{pid}", headers=a)
        assert response.status_code == 200
        assert response.json()["message"] == "Project and associated tasks deleted successfully"

        assert client.get(f"/api/projects/{pid}", headers=a).status_code == 404
        assert client.get("/api/tasks/my-tasks", headers=b).json() == []

    def test_project_listing_per_user(self, client, scene):
        pid = scene["project"]["id"]
        client.post(f"/api/team/{pid}/add", json={"user_id": scene["bob"]["id"]}, headers=scene["a"])

        assert [p["id"] for p in client.get("/api/projects", headers=scene["b"]).json()] == [pid]
        assert client.get("/api/projects", headers=scene["c"]).json() == []

    def test_detail_includes_tasks(self, client, scene):
        pid = scene["project"]["id"]
        client.post(
            "/api/tasks",
            json={"title": "Write copy", "description": "Landing text", "project_id": pid},
            headers=scene["a"],
        )
        body = client.get(f"/api/projects/{pid}", headers=scene["a"]).json()
        assert body["project"]["id"] == pid
        assert [t["title"] for t in body["tasks"]] == ["Write copy"]

    def test_partial_update_keeps_omitted_fields(self, client, scene):
        pid = scene["project"]["id"]
        response = client.put(f"/api/projects/{pid}", json={"status": "in-progress", "title": ""}, headers=scene["a"])
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "in-progress"
        assert body["title"] == "Website Redesign"
        assert body["description"] == "New marketing site"

    def test_assign_to_outsider_is_400(self, client, scene):
        pid = scene["project"]["id"]
        task = client.post(
            "/api/tasks",
            json={"title": "t", "description": "d", "project_id": pid},
            headers=scene["a"],
        ).json()
        response = client.patch(
            f"/api/tasks/{task['id']}/assign", json={"user_id": scene["carol"]["id"]}, headers=scene["a"]
        )
        assert response.status_code == 400

    def test_status_fast_path_open_to_any_user(self, client, scene):
        pid = scene["project"]["id"]
        task = client.post(
            "/api/tasks",
            json={"title": "t", "description": "d", "project_id": pid},
            headers=scene["a"],
        ).json()
        response = client.patch(f"/api/tasks/{task['id']}/status", json={"status": "review"}, headers=scene["c"])
        assert response.status_code == 200
        assert response.json()["status"] == "review"

    def test_team_listing(self, client, scene):
        pid = scene["project"]["id"]
        names = [u["name"] for u in client.get(f"/api/team/{pid}", headers=scene["a"]).json()]
        assert names == ["Alice"]
        assert client.get(f"/api/team/{pid}", headers=scene["c"]).status_code == 403

    def test_whitespace_titles_do_not_overwrite(self, client, scene):
        pid = scene["project"]["id"]
        response = client.put(f"/api/projects/{pid}", json={"title": "   "}, headers=scene["a"])
        assert response.status_code == 200
        assert response.json()["title"] == "Website Redesign"

        task = client.post(
            "/api/tasks",
            json={"title": "Design UI", "description": "Mockups", "project_id": pid},
            headers=scene["a"],
        ).json()
        response = client.put(f"/api/tasks/{task['id']}", json={"title": "  ", "description": " Wireframes "},
                              headers=scene["a"])
        assert response.status_code == 200
        assert response.json()["title"] == "Design UI"
        assert response.json()["description"] == "Wireframes"

    def test_unparseable_dates_are_422(self, client, scene):
        pid = scene["project"]["id"]
        response = client.post(
            "/api/tasks",
            json={"title": "t", "description": "d", "project_id": pid, "due_date": "next friday"},
            headers=scene["a"],
        )
        assert response.status_code == 422

        response = client.put(f"/api/projects/{pid}", json={"end_date": "whenever"}, headers=scene["a"])
        assert response.status_code == 422
        assert client.get(f"/api/projects/{pid}", headers=scene["a"]).json()["project"]["end_date"] is None

    def test_my_tasks_order_by_instant_across_offsets(self, client, scene):
        pid = scene["project"]["id"]
        due_dates = {
            "later": "2030-06-02T00:00:00Z",
            "evening": "2030-06-01T08:00:00-05:00",
            "morning": "2030-06-01T09:00:00+02:00",
        }
        for title, due in due_dates.items():
            client.post(
                "/api/tasks",
                json={
                    "title": title, "description": "d", "project_id": pid,
                    "assigned_to": scene["alice"]["id"], "due_date": due,
                },
                headers=scene["a"],
            )

        my_tasks = client.get("/api/tasks/my-tasks", headers=scene["a"]).json()
        assert [t["title"] for t in my_tasks] == ["morning", "evening", "later"]
        assert my_tasks[0]["due_date"] == "2030-06-01T07:00:00.000000+00:00"
        assert my_tasks[1]["due_date"] == "2030-06-01T13:00:00.000000+00:00"

    def test_responses_embed_user_summaries(self, client, scene):
        pid = scene["project"]["id"]
        client.post(f"/api/team/{pid}/add", json={"user_id": scene["bob"]["id"]}, headers=scene["a"])
        client.post(
            "/api/tasks",
            json={"title": "Design UI", "description": "Mockups", "project_id": pid,
                  "assigned_to": scene["bob"]["id"]},
            headers=scene["a"],
        )

        body = client.get(f"/api/projects/{pid}", headers=scene["b"]).json()
        assert body["project"]["owner_user"]["name"] == "Alice"
        assert [u["name"] for u in body["project"]["team"]] == ["Alice", "Bob"]
        assert body["tasks"][0]["assignee"]["name"] == "Bob"
        assert "password_hash" not in body["tasks"][0]["assignee"]

        my_tasks = client.get("/api/tasks/my-tasks", headers=scene["b"]).json()
        assert my_tasks[0]["assignee"]["email"] == "bob@example.com"


class TestAdminRoutes:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("get", "/api/admin/dashboard"),
            ("get", "/api/admin/users"),
            ("get", "/api/admin/projects"),
            ("get", "/api/admin/tasks"),
            ("delete", "/api/admin/projects/any"),
            ("delete", "/api/admin/tasks/any"),
            ("delete", "/api/admin/users/any"),
        ],
    )
    def test_members_get_403(self, client, make_user, headers_for, method, path):
        response = getattr(client, method)(path, headers=headers_for(make_user("alice")))
        assert response.status_code == 403
        assert response.json()["detail"] == "Admin access required"

    def test_admin_manages_everything(self, client, make_user, headers_for):
        alice = make_user("alice")
        admin = headers_for(make_user("root", role="admin"))
        project = client.post(
            "/api/projects", json={"title": "P", "description": "D"}, headers=headers_for(alice)
        ).json()

        listed = client.get("/api/admin/projects", headers=admin).json()
        assert listed["count"] == 1

        dashboard = client.get("/api/admin/dashboard", headers=admin).json()
        assert dashboard["totals"] == {"users": 2, "projects": 1, "tasks": 0}

        # admin is not a member, so the member surface stays closed
        assert client.get(f"/api/projects/{project['id']}", headers=admin).status_code == 403

        response = client.delete(f"/api/admin/projects/{project['id']}", headers=admin)
        assert response.status_code == 200
        assert client.get("/api/admin/projects", headers=admin).json()["count"] == 0

    def test_role_change_applies_on_next_request(self, client, make_user, headers_for):
        bob = make_user("bob")
        admin = headers_for(make_user("root", role="admin"))
        bob_headers = headers_for(bob)
        assert client.get("/api/admin/users", headers=bob_headers).status_code == 403

        response = client.patch(f"/api/admin/users/{bob.id}/role", json={"role": "admin"}, headers=admin)
        assert response.status_code == 200
        assert response.json()["role"] == "admin"

        assert client.get("/api/admin/users", headers=bob_headers).status_code == 200

    def test_unknown_role_is_422(self, client, make_user, headers_for):
        bob = make_user("bob")
        admin = headers_for(make_user("root", role="admin"))
        response = client.patch(f"/api/admin/users/{bob.id}/role", json={"role": "superuser"}, headers=admin)
        assert response.status_code == 422
