def test_register_login_me(client):
    r = client.post(
        "/auth/register",
        json={"email": "new@example.com", "password": "password123", "full_name": "New Student"},
    )
    assert r.status_code == 201, r.text
    assert r.json()["role"] == "student"

    r = client.post("/auth/login", json={"email": "new@example.com", "password": "password123"})
    assert r.status_code == 200, r.text
    token = r.json()["access_token"]

    r = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200, r.text
    assert r.json()["email"] == "new@example.com"


def test_duplicate_email_is_rejected(client):
    r = client.post(
        "/auth/register",
        json={"email": "student1@example.com", "password": "password123"},
    )
    assert r.status_code == 400, r.text


def test_wrong_password(client):
    r = client.post("/auth/login", json={"email": "student1@example.com", "password": "nope-nope"})
    assert r.status_code == 401, r.text


def test_garbage_token(client):
    r = client.get("/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert r.status_code == 401, r.text


def test_request_id_is_echoed(client):
    r = client.get("/health", headers={"X-Request-ID": "abc123"})
    assert r.status_code == 200
    assert r.headers["X-Request-ID"] == "abc123"


def test_email_is_case_insensitive(client):
    r = client.post(
        "/auth/register",
        json={"email": "Mixed.Case@Example.com", "password": "password123", "full_name": "  "},
    )
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["email"] == "mixed.case@example.com"
    assert body["full_name"] is None
    assert body["display_name"] == "mixed.case@example.com"

    r = client.post("/auth/register", json={"email": "MIXED.CASE@example.com", "password": "password123"})
    assert r.status_code == 400, r.text

    r = client.post("/auth/login", json={"email": "MIXED.case@EXAMPLE.com", "password": "password123"})
    assert r.status_code == 200, r.text


def test_me_reports_display_name(client, student_headers):
    r = client.get("/auth/me", headers=student_headers)
    assert r.status_code == 200, r.text
    assert r.json()["display_name"] == "Nguyễn Văn An"
    assert r.json()["role"] == "student"
