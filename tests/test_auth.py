from bson import ObjectId

from conftest import auth, register, unique_email


def _login(client, email, password):
    return client.post("/api/auth/login", json={"email": email, "password": password})


def test_register_returns_token_and_sanitized_user(client):
    email = unique_email("alice")
    resp = register(client, name="Alice", email=email, weight=72, city="Lviv")

    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert isinstance(body.get("token"), str) and body["token"]
    user = body["user"]
    assert user["email"] == email
    assert user["role"] == "user"
    assert user["status"] == "pending"
    assert user["weight"] == "72"
    assert "password" not in user


def test_register_duplicate_email_fails_without_creating_user(client, db):
    email = unique_email("bob")
    assert register(client, email=email).status_code == 201

    dup = register(client, email=email, name="Other Bob")

    assert dup.status_code == 400, dup.text
    assert "already exists" in dup.json()["detail"]
    assert db["user"].count_documents({"email": email}) == 1


def test_register_requires_fields(client):
    resp = client.post("/api/auth/register", json={"email": unique_email(), "password": "x"})
    assert resp.status_code == 422


def test_register_cannot_choose_role(client):
    resp = register(client, role="admin", status="approved")
    assert resp.status_code == 201
    assert resp.json()["user"]["role"] == "user"
    assert resp.json()["user"]["status"] == "pending"


def test_login_success(client):
    email = unique_email("charlie")
    register(client, email=email, password="secret1")

    resp = _login(client, email, "secret1")

    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["user"]["email"] == email
    assert "password" not in body["user"]
    profile = client.get("/api/users/profile", headers=auth(body["token"]))
    assert profile.status_code == 200


def test_login_failures_are_indistinguishable(client):
    email = unique_email("dave")
    register(client, email=email, password="secret1")

    wrong_password = _login(client, email, "nope")
    no_such_user = _login(client, unique_email("ghost"), "secret1")

    assert wrong_password.status_code == no_such_user.status_code == 400
    assert wrong_password.json() == no_such_user.json() == {"detail": "Invalid credentials"}


def test_password_hash_is_stored_not_plaintext(client, db):
    email = unique_email("erin")
    register(client, email=email, password="secret1")
    stored = db["user"].find_one({"email": email})
    assert stored["password"] != "secret1"
    assert stored["password"].startswith("$2")


def test_missing_header_is_unauthorized(client):
    resp = client.get("/api/users/profile")
    assert resp.status_code == 401
    assert resp.headers.get("www-authenticate") == "Bearer"


def test_bad_scheme_and_garbage_token_are_unauthorized(client, player):
    for header in (f"Token {player['token']}", "Bearer", "Bearer garbage", f"Bearer {player['token']}x"):
        resp = client.get("/api/users/dashboard", headers={"Authorization": header})
        assert resp.status_code == 401, header


def test_expired_token_is_unauthorized(client, app, player):
    from datetime import timedelta

    token = app.state.tokens.issue(player["id"], expires_delta=timedelta(seconds=-5))
    assert client.get("/api/users/profile", headers=auth(token)).status_code == 401


def test_token_for_deleted_user_is_unauthorized(client, db, player):
    db["user"].delete_one({"_id": ObjectId(player["id"])})
    resp = client.get("/api/users/profile", headers=auth(player["token"]))
    assert resp.status_code == 401
