from types import SimpleNamespace

from firebase_admin import auth as firebase_auth

from conftest import auth_headers


def test_submit_support_request(client, db):
    rv = client.post(
        "/support",
        json={"subject": "  Billing ", "message": " Charged twice "},
        headers=auth_headers(),
    )

    assert rv.status_code == 201
    ticket = rv.get_json()
    assert ticket["subject"] == "Billing"
    assert ticket["message"] == "Charged twice"
    assert ticket["status"] == "pending"
    assert ticket["email"] == "alice@example.com"
    assert len(db.docs("supportMessages")) == 1


def test_submit_support_requires_fields(client):
    rv = client.post("/support", json={"subject": "Hi", "message": "  "}, headers=auth_headers())
    assert rv.status_code == 400
    assert rv.get_json()["message"] == "Please fill in all fields"


def test_users_only_see_their_own_tickets(client):
    client.post("/support", json={"subject": "A", "message": "a"}, headers=auth_headers("alice"))
    client.post("/support", json={"subject": "B", "message": "b"}, headers=auth_headers("bob"))

    rv = client.get("/support", headers=auth_headers("alice"))
    assert [item["subject"] for item in rv.get_json()["items"]] == ["A"]


def test_admin_routes_require_admin(client):
    assert client.get("/admin/support", headers=auth_headers("alice")).status_code == 403
    assert client.get("/admin/support").status_code == 401


def test_admin_by_claim_lists_all_tickets(client):
    client.post("/support", json={"subject": "A", "message": "a"}, headers=auth_headers("alice"))
    client.post("/support", json={"subject": "B", "message": "b"}, headers=auth_headers("bob"))

    rv = client.get("/admin/support", headers=auth_headers("admin"))
    assert rv.status_code == 200
    assert sorted(item["subject"] for item in rv.get_json()["items"]) == ["A", "B"]


def test_admin_by_email_updates_ticket_status(app, client):
    app.config["ADMIN_EMAILS"] = frozenset({"carol@example.com"})
    ticket = client.post("/support", json={"subject": "A", "message": "a"}, headers=auth_headers()).get_json()

    rv = client.patch(f"/admin/support/{ticket['id']}", json={"status": "resolved"}, headers=auth_headers("carol"))
    assert rv.status_code == 200
    assert rv.get_json()["status"] == "resolved"

    rv = client.patch(f"/admin/support/{ticket['id']}", json={"status": "done"}, headers=auth_headers("carol"))
    assert rv.status_code == 400

    rv = client.patch("/admin/support/missing", json={"status": "resolved"}, headers=auth_headers("carol"))
    assert rv.status_code == 404


def test_admin_lists_users(client, monkeypatch):
    user = SimpleNamespace(
        uid="u1",
        email="u1@example.com",
        display_name="U1",
        disabled=False,
        email_verified=True,
        user_metadata=SimpleNamespace(creation_timestamp=1700000000000, last_sign_in_timestamp=None),
    )
    monkeypatch.setattr(firebase_auth, "list_users", lambda: SimpleNamespace(iterate_all=lambda: iter([user])))

    rv = client.get("/admin/users", headers=auth_headers("admin"))

    assert rv.status_code == 200
    listed = rv.get_json()["items"]
    assert listed[0]["uid"] == "u1"
    assert listed[0]["createdAt"].startswith("2023-11-14")
    assert listed[0]["lastSignIn"] is None
