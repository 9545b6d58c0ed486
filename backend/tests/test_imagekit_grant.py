import hashlib
import hmac
import time

import pytest


def _expected_signature(private_key: str, token: str, expire: int) -> str:
    return hmac.new(private_key.encode(), f"{token}{expire}".encode(), hashlib.sha1).hexdigest()


def test_issue_grant_signs_token_and_expire_with_private_key(imagekit_service):
    grant = imagekit_service.issue_grant(token="fixed-token", expire=1_700_000_000)

    assert grant.token == "fixed-token"
    assert grant.expire == 1_700_000_000
    assert grant.signature == _expected_signature("private_test_key", "fixed-token", 1_700_000_000)


def test_issue_grant_defaults_to_fresh_token_and_ttl_window(imagekit_service, settings):
    before = int(time.time())
    first = imagekit_service.issue_grant()
    second = imagekit_service.issue_grant()
    after = int(time.time())

    assert first.token != second.token
    assert before + settings.imagekit_grant_ttl <= first.expire <= after + settings.imagekit_grant_ttl
    assert first.signature == _expected_signature("private_test_key", first.token, first.expire)


def test_grant_repr_hides_capability_fields(imagekit_service):
    grant = imagekit_service.issue_grant(token="secret-token")
    text = repr(grant)

    assert "secret-token" not in text
    assert grant.signature not in text
    assert str(grant.expire) in text


def test_grant_cannot_be_consumed_twice(imagekit_service):
    from app.core.errors import GrantReuseError

    grant = imagekit_service.issue_grant()
    grant.consume()
    with pytest.raises(GrantReuseError):
        grant.consume()


def test_signing_without_private_key_fails():
    from app.core.errors import ConfigurationError
    from app.services.imagekit import ImageKitService

    client_side = ImageKitService(public_key="pub", url_endpoint="https://ik.imagekit.io/library")
    with pytest.raises(ConfigurationError):
        client_side.issue_grant()


def test_grant_endpoint_returns_signed_triple(api):
    response = api.get("/api/auth/imagekit", headers={"Origin": "https://library.example.com"})

    assert response.status_code == 200
    body = response.json()
    assert set(body) == {"token", "expire", "signature"}
    assert body["signature"] == _expected_signature("private_test_key", body["token"], body["expire"])
    assert response.headers["access-control-allow-origin"] == "https://library.example.com"
    assert response.headers["access-control-allow-methods"] == "GET, OPTIONS"
    assert response.headers["access-control-allow-headers"] == "Content-Type"
    assert response.headers["cache-control"] == "no-store"


def test_grant_endpoint_issues_a_new_grant_per_request(api):
    first = api.get("/api/auth/imagekit").json()
    second = api.get("/api/auth/imagekit").json()

    assert first["token"] != second["token"]


def test_preflight_returns_empty_body_with_cors_headers(api):
    response = api.options(
        "/api/auth/imagekit",
        headers={"Origin": "http://localhost:3000", "Access-Control-Request-Method": "GET"},
    )

    assert response.status_code == 200
    assert response.content == b""
    assert response.headers["access-control-allow-origin"] == "http://localhost:3000"
    assert response.headers["access-control-allow-methods"] == "GET, OPTIONS"
    assert response.headers["access-control-allow-headers"] == "Content-Type"


def test_unlisted_origin_gets_first_configured_origin(api):
    response = api.options("/api/auth/imagekit", headers={"Origin": "https://evil.example.org"})

    assert response.headers["access-control-allow-origin"] == "https://library.example.com"
    assert response.headers["vary"] == "Origin"


@pytest.mark.parametrize(
    "path, expected",
    [
        ("/books/covers/dune.png", "https://ik.imagekit.io/library/books/covers/dune.png"),
        ("books/covers/dune.png", "https://ik.imagekit.io/library/books/covers/dune.png"),
        ("https://cdn.example.com/dune.png", "https://cdn.example.com/dune.png"),
    ],
)
def test_asset_url_resolution(api, path, expected):
    response = api.get("/api/assets/url", params={"path": path})

    assert response.status_code == 200
    assert response.json() == {"url": expected}
