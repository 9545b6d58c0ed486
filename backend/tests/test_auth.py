import pytest


@pytest.fixture
def reader(api):
    from app.services.auth_service import AuthService

    return AuthService().create_user(email="Reader@CityLibrary.org", password="correct horse", full_name="Ada Reader")


def test_login_returns_session_token(api, reader):
    response = api.post("/api/auth/login", json={"email": "  READER@citylibrary.org ", "password": "correct horse"})

    assert response.status_code == 200
    body = response.json()
    assert body["tokenType"] == "bearer"
    assert body["user"] == {"id": reader.id, "email": "reader@citylibrary.org", "name": "Ada Reader"}
    assert "session_token" in response.cookies

    session = api.get("/api/auth/session", headers={"Authorization": f"Bearer {body['accessToken']}"})
    assert session.status_code == 200
    assert session.json()["email"] == "reader@citylibrary.org"


def test_login_with_wrong_password_is_rejected(api, reader):
    response = api.post("/api/auth/login", json={"email": "reader@citylibrary.org", "password": "wrong password"})

    assert response.status_code == 401
    assert response.json()["detail"] == "INVALID_CREDENTIALS"


def test_login_for_unknown_user_is_indistinguishable(api, reader):
    response = api.post("/api/auth/login", json={"email": "nobody@citylibrary.org", "password": "correct horse"})

    assert response.status_code == 401
    assert response.json()["detail"] == "INVALID_CREDENTIALS"


@pytest.mark.parametrize(
    "payload",
    [
        {"email": "not-an-email", "password": "correct horse"},
        {"email": "reader@citylibrary.org", "password": "short"},
        {"email": "reader@citylibrary.org", "password": "x" * 129},
    ],
)
def test_malformed_credentials_are_rejected(api, payload):
    assert api.post("/api/auth/login", json=payload).status_code == 422


def test_authorize_returns_none_instead_of_raising(api, reader):
    from app.services.auth_service import AuthService

    service = AuthService()
    assert service.authorize(email="reader@citylibrary.org", password=None) is None
    assert service.authorize(email="reader@citylibrary.org", password="wrong password") is None
    assert service.authorize(email="reader@citylibrary.org", password="correct horse").id == reader.id


def test_session_requires_token(api):
    response = api.get("/api/auth/session")

    assert response.status_code == 401
    assert response.json()["detail"] == "AUTHORIZATION_REQUIRED"


def test_tampered_token_is_rejected(api, reader):
    token = api.post("/api/auth/login", json={"email": "reader@citylibrary.org", "password": "correct horse"}).json()[
        "accessToken"
    ]
    api.cookies.clear()

    response = api.get("/api/auth/session", headers={"Authorization": f"Bearer {token}x"})
    assert response.status_code == 401


@pytest.mark.parametrize("path", ["/admin", "/admin/books", "/dashboard/loans"])
def test_protected_prefixes_need_a_session(api, path):
    response = api.get(path)

    assert response.status_code == 401
    assert response.json()["detail"] == "AUTHORIZATION_REQUIRED"


def test_protected_prefixes_pass_through_with_session(api, reader):
    api.post("/api/auth/login", json={"email": "reader@citylibrary.org", "password": "correct horse"})

    # Cookie session reaches routing; no page is mounted here.
    assert api.get("/admin/books").status_code == 404


def test_public_paths_stay_open(api):
    assert api.get("/health").json() == {"status": "ok", "service": "Library Uploads Backend"}
    assert api.get("/api/auth/imagekit").status_code == 200


def test_is_path_allowed():
    from app.deps.auth import is_path_allowed

    prefixes = ["/admin", "/dashboard"]
    assert is_path_allowed("/books", protected_prefixes=prefixes, logged_in=False)
    assert not is_path_allowed("/dashboard", protected_prefixes=prefixes, logged_in=False)
    assert is_path_allowed("/dashboard", protected_prefixes=prefixes, logged_in=True)


def test_authorize_records_last_login(api, reader):
    from app.core.db import get_session
    from app.models.user import User

    assert reader.last_login_at is None
    api.post("/api/auth/login", json={"email": "reader@citylibrary.org", "password": "correct horse"})

    with get_session() as session:
        assert session.get(User, reader.id).last_login_at is not None


def test_auth_service_uses_the_database_from_its_settings(tmp_path):
    from sqlalchemy import inspect

    from app.core.config import load_settings
    from app.core.db import create_all, get_engine
    from app.services.auth_service import AuthService

    database_url = f"sqlite:///{tmp_path / 'branch.db'}"
    create_all(database_url)
    service = AuthService(load_settings(_env_file=None, database_url=database_url))

    user = service.create_user(email="branch@citylibrary.org", password="correct horse")

    assert (tmp_path / "branch.db").exists()
    assert service.authorize(email="branch@citylibrary.org", password="correct horse").id == user.id
    # The environment's database never got a users table.
    assert not inspect(get_engine()).has_table("users")
    get_engine(database_url).dispose()
